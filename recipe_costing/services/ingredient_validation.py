# recipe_costing/recipe_costing/services/ingredient_validation.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from recipe_costing.domain.entities import RecipeIngredientLine
from recipe_costing.domain.errors import VALIDATION, CalculationWarning
from recipe_costing.services.unit_conversion import UnitConversionEngine
from recipe_costing.services.unit_registry import UnitNormalizationRegistry

CORRECTION_FACTOR_RANGE = (0.1, 2.0)
HIGH_PRICE_WARNING = 1000.0
HIGH_QUANTITY_WARNING = 10000.0


@dataclass(frozen=True)
class ValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def as_warnings(self, context: Optional[Dict[str, Any]] = None) -> List[CalculationWarning]:
        """Errors first, then warnings; each tagged with its severity."""
        out: List[CalculationWarning] = []
        for severity, messages in (("error", self.errors), ("warning", self.warnings)):
            for msg in messages:
                ctx = {**(context or {}), "severity": severity}
                out.append(CalculationWarning(kind=VALIDATION, message=msg, context=ctx))
        return out


def validate_price_measure_data(
    price: float,
    quantity: float,
    unit_measure: str,
    converter: Optional[UnitConversionEngine] = None,
    registry: Optional[UnitNormalizationRegistry] = None,
) -> ValidationResult:
    """Purchase data check. A unit is known if the converter or the user's catalog resolves it."""
    conv = converter or (registry.converter if registry else UnitConversionEngine())
    errors: List[str] = []
    warnings: List[str] = []

    if not price or price <= 0:
        errors.append("price must be greater than zero")
    if not quantity or quantity <= 0:
        errors.append("quantity must be greater than zero")
    if not (unit_measure or "").strip():
        errors.append("unit of measure is required")
    elif not conv.is_supported(unit_measure) and (registry is None or registry.find_by_name(unit_measure) is None):
        warnings.append(f"unit {unit_measure!r} is not recognised for automatic conversion")

    if price and price > HIGH_PRICE_WARNING:
        warnings.append("price looks very high, please double-check it")

    return ValidationResult(errors=errors, warnings=warnings)


def validate_recipe_ingredient(line: RecipeIngredientLine) -> ValidationResult:
    ing = line.ingredient
    errors: List[str] = []
    warnings: List[str] = []

    if not (ing.id or "").strip():
        errors.append("ingredient id is required")
    if not (ing.name or "").strip():
        errors.append("ingredient name is required")
    if not (ing.category or "").strip():
        errors.append("ingredient category is required")

    if line.quantity <= 0:
        errors.append("recipe quantity must be greater than zero")
    if not (line.unit_measure or "").strip():
        errors.append("recipe unit of measure is required")

    if line.quantity > HIGH_QUANTITY_WARNING:
        warnings.append(f"quantity looks very high ({line.quantity:g})")

    lo, hi = CORRECTION_FACTOR_RANGE
    cf = ing.correction_factor if ing.correction_factor is not None else 1.0
    if not lo <= cf <= hi:
        warnings.append(f"correction factor {cf:g} is outside the usual range [{lo:g}, {hi:g}]")

    return ValidationResult(errors=errors, warnings=warnings)


def calculate_ingredient_stats(lines: Sequence[RecipeIngredientLine]) -> Dict[str, Any]:
    with_price = sum(1 for line in lines if line.ingredient.price is not None)
    return {
        "total_ingredients": len(lines),
        "ingredients_with_price": with_price,
        "ingredients_without_price": len(lines) - with_price,
        "total_cost": sum(line.total_cost for line in lines),
        "total_weight_grams": sum(line.total_weight_grams for line in lines),
        "total_cost_per_portion": sum(line.cost_per_portion or 0.0 for line in lines),
    }
