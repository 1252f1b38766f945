# recipe_costing/recipe_costing/infrastructure/resolvers.py
from __future__ import annotations

import functools
import logging
from typing import Dict, List, Mapping, Optional, Sequence

import anyio

from recipe_costing.domain.entities import NutrientProfile, UnitAmountUse, UnitMeasure
from recipe_costing.domain.repositories import NutrientProfileResolver, NutrientTableReadRepo, UnitCatalogSource
from recipe_costing.infrastructure.async_memo import AsyncMemo
from recipe_costing.services.unit_conversion import UnitConversionEngine
from recipe_costing.services.unit_registry import UnitNormalizationRegistry

log = logging.getLogger("infra.resolvers")


class BlockingResolverAdapter(NutrientProfileResolver):
    """Runs a blocking repository (pymongo, requests) in a worker thread so the event loop stays free."""

    def __init__(self, repo: NutrientTableReadRepo, top_k: int = 5) -> None:
        self.repo = repo
        self.top_k = top_k

    async def find(self, ingredient_name: str) -> List[NutrientProfile]:
        fn = functools.partial(self.repo.find_by_name, ingredient_name, self.top_k)
        return await anyio.to_thread.run_sync(fn)


class StaticUnitCatalog(UnitCatalogSource):
    """Catalog given inline (request file, tests)."""

    def __init__(self, base_units: Sequence[UnitMeasure] = (), amount_use_units: Sequence[UnitAmountUse] = ()) -> None:
        self._base = list(base_units)
        self._amount_use = list(amount_use_units)

    def base_units(self) -> List[UnitMeasure]:
        return list(self._base)

    def amount_use_units(self) -> List[UnitAmountUse]:
        return list(self._amount_use)


class StaticNutrientResolver(NutrientProfileResolver):
    """Nutrient tables given inline, matched by case-insensitive substring like the Mongo repository."""

    def __init__(self, tables: Mapping[str, NutrientProfile]) -> None:
        self._tables = {k.strip().lower(): v for k, v in tables.items()}

    async def find(self, ingredient_name: str) -> List[NutrientProfile]:
        q = (ingredient_name or "").strip().lower()
        if not q:
            return []
        exact = self._tables.get(q)
        if exact is not None:
            return [exact]
        return [p for k, p in self._tables.items() if q in k]


class UnitCatalogLoader:
    """
    Builds a UnitNormalizationRegistry once per catalog source.
    Concurrent load() calls for the same source share one fetch.
    """

    def __init__(self, converter: Optional[UnitConversionEngine] = None) -> None:
        self.converter = converter or UnitConversionEngine()
        self._memo: AsyncMemo[UnitNormalizationRegistry] = AsyncMemo(self._load)

    async def load(self, source: UnitCatalogSource) -> UnitNormalizationRegistry:
        return await self._memo.get(source)

    async def _load(self, source: UnitCatalogSource) -> UnitNormalizationRegistry:
        lists: Dict[str, list] = {}

        async def _read(name: str, fn) -> None:
            lists[name] = list(await anyio.to_thread.run_sync(fn))

        async with anyio.create_task_group() as tg:
            tg.start_soon(_read, "base", source.base_units)
            tg.start_soon(_read, "amount_use", source.amount_use_units)

        base: List[UnitMeasure] = lists["base"]
        amount_use: List[UnitAmountUse] = lists["amount_use"]
        registry = UnitNormalizationRegistry(amount_use, base, converter=self.converter)
        log.info("unit catalog loaded base=%d amount_use=%d", len(base), len(amount_use))
        return registry

    def invalidate(self, source: UnitCatalogSource) -> None:
        self._memo.invalidate(source)

    def clear(self) -> None:
        self._memo.clear()
