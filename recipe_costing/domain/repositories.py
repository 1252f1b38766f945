# recipe_costing/recipe_costing/domain/repositories.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from recipe_costing.domain.entities import NutrientProfile, UnitAmountUse, UnitMeasure


class NutrientProfileResolver(ABC):
    """Candidate nutrient tables for an ingredient name; callers take the first."""

    @abstractmethod
    async def find(self, ingredient_name: str) -> List[NutrientProfile]:
        ...


class NutrientTableReadRepo(ABC):
    """Blocking flavour of the resolver (database drivers, sync HTTP clients)."""

    @abstractmethod
    def find_by_name(self, name: str, top_k: int = 5) -> List[NutrientProfile]:
        ...


class UnitCatalogSource(ABC):
    @abstractmethod
    def base_units(self) -> List[UnitMeasure]:
        ...

    @abstractmethod
    def amount_use_units(self) -> List[UnitAmountUse]:
        ...
