# recipe_costing/recipe_costing/services/ingredient_cost.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from recipe_costing.domain.entities import AMOUNT_USE, Ingredient, Quantity, RecipeIngredientLine
from recipe_costing.domain.errors import (
    MISSING_PRICE,
    CalculationWarning,
    CostingError,
    InvalidQuantityError,
)
from recipe_costing.services.unit_conversion import UnitConversionEngine
from recipe_costing.services.unit_registry import UnitNormalizationRegistry

log = logging.getLogger("app.ingredient_cost")


@dataclass(frozen=True)
class IngredientCost:
    total_cost: float
    cost_per_portion: Optional[float]
    used_grams: float
    warnings: List[CalculationWarning] = field(default_factory=list)


def _finite(value: float, what: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidQuantityError(f"{what} must be a number", value=value) from None
    if not math.isfinite(v):
        raise InvalidQuantityError(f"{what} must be finite", value=value)
    return v


class IngredientCostCalculator:
    """
    Cost of one ingredient line in a recipe.

    total_cost uses purchase price per gram and the correction factor (yield loss).
    cost_per_portion uses the ingredient's own price-per-100g figure and ignores the
    correction factor. Both are reported as-is; they are not reconciled.
    """

    def __init__(
        self,
        converter: Optional[UnitConversionEngine] = None,
        registry: Optional[UnitNormalizationRegistry] = None,
    ) -> None:
        self.converter = converter or (registry.converter if registry else UnitConversionEngine())
        self.registry = registry

    def to_grams(self, amount: float, unit: str) -> float:
        if self.registry is not None:
            unit_entry = self.registry.find_by_name(unit)
            if unit_entry is not None and unit_entry.type == AMOUNT_USE:
                grams = self.converter.normalize(Quantity(amount=amount, unit="g")).amount  # validates amount
                return grams * self.registry.grams_per_unit(unit)
        return self.converter.normalize(Quantity(amount=amount, unit=unit)).amount

    def cost(self, ingredient: Ingredient, recipe_qty: float, recipe_unit: str) -> IngredientCost:
        try:
            return self._cost(ingredient, recipe_qty, recipe_unit)
        except CostingError as e:
            raise e.attach_ingredient(ingredient.id, ingredient.name)

    def _cost(self, ingredient: Ingredient, recipe_qty: float, recipe_unit: str) -> IngredientCost:
        used_grams = self.to_grams(recipe_qty, recipe_unit)
        cf = self.correction_factor(ingredient)

        price = ingredient.price
        if price is None:
            log.debug("no price for ingredient=%s", ingredient.name)
            return IngredientCost(
                total_cost=0.0,
                cost_per_portion=None,
                used_grams=used_grams,
                warnings=[
                    CalculationWarning(
                        kind=MISSING_PRICE,
                        message=f"Ingredient {ingredient.name!r} has no purchase price; cost counted as 0",
                        context={"ingredient_id": ingredient.id, "ingredient_name": ingredient.name},
                    )
                ],
            )

        purchase_price = _finite(price.price, "price")
        if purchase_price < 0:
            raise InvalidQuantityError("price must be >= 0", value=price.price)
        base_grams = self.to_grams(price.quantity, price.unit_measure)
        if base_grams <= 0:
            if purchase_price > 0:
                raise InvalidQuantityError("purchase quantity must be > 0 when a price is set", value=price.quantity)
            total_cost = 0.0
        else:
            price_per_gram = purchase_price / base_grams
            total_cost = price_per_gram * used_grams * cf

        cost_per_portion: Optional[float] = None
        if price.price_per_portion is not None:
            ppp = _finite(price.price_per_portion, "price_per_portion")
            if ppp < 0:
                raise InvalidQuantityError("price_per_portion must be >= 0", value=price.price_per_portion)
            cost_per_portion = ppp * used_grams / 100.0

        return IngredientCost(total_cost=total_cost, cost_per_portion=cost_per_portion, used_grams=used_grams)

    def correction_factor(self, ingredient: Ingredient) -> float:
        cf = ingredient.correction_factor
        if cf is None:
            return 1.0
        cf = _finite(cf, "correction_factor")
        if cf <= 0:
            raise InvalidQuantityError("correction_factor must be > 0", value=ingredient.correction_factor)
        return cf

    def build_line(self, ingredient: Ingredient, quantity: float, unit_measure: str) -> RecipeIngredientLine:
        """Derived fields (weight, costs) are recomputed from scratch on every call."""
        return self.line_from_cost(ingredient, quantity, unit_measure, self.cost(ingredient, quantity, unit_measure))

    def line_from_cost(
        self, ingredient: Ingredient, quantity: float, unit_measure: str, c: IngredientCost
    ) -> RecipeIngredientLine:
        return RecipeIngredientLine(
            ingredient=ingredient,
            quantity=float(quantity),
            unit_measure=unit_measure,
            total_weight_grams=c.used_grams * self.correction_factor(ingredient),
            total_cost=c.total_cost,
            cost_per_portion=c.cost_per_portion,
        )

    def weigh_line(self, ingredient: Ingredient, quantity: float, unit_measure: str) -> RecipeIngredientLine:
        """Line with its weight only (cost fields 0). Purchase price data is not read."""
        try:
            weight = self.to_grams(quantity, unit_measure) * self.correction_factor(ingredient)
        except CostingError as e:
            raise e.attach_ingredient(ingredient.id, ingredient.name)
        return RecipeIngredientLine(
            ingredient=ingredient,
            quantity=float(quantity),
            unit_measure=unit_measure,
            total_weight_grams=weight,
            total_cost=0.0,
        )

    def weigh_lines(self, items: Iterable[tuple]) -> List[RecipeIngredientLine]:
        return [self.weigh_line(ing, qty, unit) for ing, qty, unit in items]


def ingredients_cost(lines: Iterable[RecipeIngredientLine]) -> float:
    total = 0.0
    for line in lines:
        c = line.total_cost
        if c is None or not math.isfinite(c) or c < 0:
            continue
        total += c
    return total
