# recipe_costing/recipe_costing/domain/errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class CostingError(ValueError):
    """
    Fatal input error. Aborts the calculation it occurs in.
    Carries enough context for the caller to highlight the faulty input.
    """

    def __init__(
        self,
        message: str,
        value: Any = None,
        ingredient_id: Optional[str] = None,
        ingredient_name: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.value = value
        self.ingredient_id = ingredient_id
        self.ingredient_name = ingredient_name

    def attach_ingredient(self, ingredient_id: Optional[str], ingredient_name: Optional[str]) -> "CostingError":
        if self.ingredient_id is None:
            self.ingredient_id = ingredient_id
        if self.ingredient_name is None:
            self.ingredient_name = ingredient_name
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "value": self.value,
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient_name,
        }

    def __str__(self) -> str:
        if self.ingredient_name:
            return f"{self.message} (ingredient: {self.ingredient_name})"
        return self.message


class UnknownUnitError(CostingError):
    def __init__(self, unit: Any, **kwargs: Any) -> None:
        super().__init__(f"Unknown unit: {unit!r}", value=unit, **kwargs)
        self.unit = unit


class InvalidQuantityError(CostingError):
    pass


# ----------------------------
# Non-fatal conditions
# ----------------------------
MISSING_PRICE = "missing_price"
UNIT_INCONSISTENCY = "unit_inconsistency"
NUTRIENT_LOOKUP_FAILURE = "nutrient_lookup_failure"
VALIDATION = "validation"


@dataclass(frozen=True)
class CalculationWarning:
    kind: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "context": dict(self.context)}
