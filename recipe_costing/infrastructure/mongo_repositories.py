# recipe_costing/recipe_costing/infrastructure/mongo_repositories.py
from __future__ import annotations
from typing import List, Dict, Any, Optional
import logging
import re
from pymongo.collection import Collection
from bson import ObjectId
from recipe_costing.domain.entities import NutrientProfile, UnitMeasure, UnitAmountUse
from recipe_costing.domain.repositories import NutrientTableReadRepo, UnitCatalogSource

log = logging.getLogger("infra.mongo_repo")

def _as_str_id(v: Any) -> str:
    if isinstance(v, ObjectId):
        return str(v)
    return str(v or "")

class MongoNutrientTableRepository(NutrientTableReadRepo):
    """
    Nutritional tables (per 100 g) looked up by ingredient name.
    Queries Mongo on every call; caching is the NutrientLookupCache's job.
    """
    def __init__(self, col: Collection) -> None:
        self._col = col

    def _parse_table(self, doc: Dict[str, Any]) -> NutrientProfile:
        try:
            return NutrientProfile.from_document(doc)
        except Exception as e:
            log.exception("Invalid nutritional table document: %s", doc.get("_id"))
            raise ValueError(f"Invalid nutritional table document: {e}") from e

    def find_by_name(self, name: str, top_k: int = 5) -> List[NutrientProfile]:
        """Case-insensitive substring match on `name`, best candidates first (as stored)."""
        q = (name or "").strip()
        if not q:
            return []

        cursor = self._col.find(
            {"name": {"$regex": re.escape(q), "$options": "i"}}
        ).limit(top_k)

        return [self._parse_table(doc) for doc in cursor]

class MongoUnitCatalogRepository(UnitCatalogSource):
    """
    Base units (global catalog) and amount-of-use units (per user when user_id is given).
    Both lists are re-read on every call; UnitCatalogLoader memoizes them.
    """
    def __init__(self, measure_col: Collection, amount_use_col: Collection, user_id: Optional[str] = None) -> None:
        self._measure_col = measure_col
        self._amount_use_col = amount_use_col
        self.user_id = user_id

    def _parse_measure(self, doc: Dict[str, Any]) -> UnitMeasure:
        return UnitMeasure(
            id=_as_str_id(doc.get("id") or doc.get("_id")),
            name=str(doc.get("name") or "").strip(),
            acronym=str(doc.get("acronym") or "").strip(),
        )

    def _parse_amount_use(self, doc: Dict[str, Any]) -> UnitAmountUse:
        return UnitAmountUse(
            id=_as_str_id(doc.get("id") or doc.get("_id")),
            name=str(doc.get("name") or "").strip(),
            quantity=str(doc.get("quantity") or "").strip(),
            unit_measure=str(doc.get("unitMeasure") or doc.get("unit_measure") or "").strip(),
        )

    def base_units(self) -> List[UnitMeasure]:
        items = [self._parse_measure(doc) for doc in self._measure_col.find({})]
        if not items:
            log.warning("MongoUnitCatalogRepository: unit measure collection is empty")
        return items

    def amount_use_units(self) -> List[UnitAmountUse]:
        query: Dict[str, Any] = {"userId": self.user_id} if self.user_id else {}
        return [self._parse_amount_use(doc) for doc in self._amount_use_col.find(query)]
