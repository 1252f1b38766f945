# recipe_costing/recipe_costing/infrastructure/nutrient_cache.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from recipe_costing.core.config import NUTRIENT_CACHE_TTL_SECONDS
from recipe_costing.domain.entities import NutrientProfile
from recipe_costing.domain.repositories import NutrientProfileResolver
from recipe_costing.infrastructure.async_memo import AsyncMemo, MemoStats

log = logging.getLogger("infra.nutrient_cache")


class NutrientLookupCache:
    """
    Nutrient profile per ingredient name, memoized for ttl_seconds.
    "Not found" and failed lookups are cached as None for the same TTL.
    """

    def __init__(
        self,
        resolver: NutrientProfileResolver,
        ttl_seconds: float = NUTRIENT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.resolver = resolver
        self._memo: AsyncMemo[Optional[NutrientProfile]] = AsyncMemo(
            self._fetch, ttl_seconds=ttl_seconds, clock=clock
        )

    @staticmethod
    def key(name: str) -> str:
        return (name or "").strip().lower()

    async def get(self, ingredient_name: str) -> Optional[NutrientProfile]:
        k = self.key(ingredient_name)
        if not k:
            return None
        return await self._memo.get(ingredient_name.strip(), key=k)

    async def _fetch(self, ingredient_name: str) -> Optional[NutrientProfile]:
        try:
            tables = await self.resolver.find(ingredient_name)
        except Exception as e:
            log.warning("nutrient lookup failed for %r: %s", ingredient_name, e)
            return None
        if not tables:
            log.info("no nutritional table for %r", ingredient_name)
            return None
        return tables[0]

    def invalidate(self, ingredient_name: str) -> None:
        self._memo.invalidate(self.key(ingredient_name))

    def clear(self) -> None:
        self._memo.clear()

    @property
    def stats(self) -> MemoStats:
        return self._memo.stats
