# recipe_costing/recipe_costing/application/usecases.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from recipe_costing.domain.entities import (
    TOTAL_VIEW,
    FinancialData,
    Ingredient,
    Recipe,
    RecipeIngredientLine,
)
from recipe_costing.domain.errors import VALIDATION, CalculationWarning
from recipe_costing.domain.repositories import UnitCatalogSource
from recipe_costing.infrastructure.resolvers import UnitCatalogLoader
from recipe_costing.services.cost_aggregation import CostAggregationEngine
from recipe_costing.services.ingredient_cost import IngredientCostCalculator, ingredients_cost
from recipe_costing.services.ingredient_validation import (
    calculate_ingredient_stats,
    validate_price_measure_data,
    validate_recipe_ingredient,
)
from recipe_costing.services.menu_costing import calculate_menu_financials, validate_calculations
from recipe_costing.services.nutrition import NutritionalScalingEngine
from recipe_costing.services.unit_conversion import UnitConversionEngine, conversion_description, format_grams_display
from recipe_costing.services.unit_registry import UnitNormalizationRegistry

log = logging.getLogger("app.usecases")

LineInput = Tuple[Ingredient, float, str]


def _line_view(line: RecipeIngredientLine, used_grams: float) -> Dict[str, Any]:
    return {
        "ingredient_id": line.ingredient.id,
        "ingredient_name": line.ingredient.name,
        "quantity": line.quantity,
        "unit_measure": line.unit_measure,
        "total_weight_grams": line.total_weight_grams,
        "total_cost": line.total_cost,
        "cost_per_portion": line.cost_per_portion,
        "conversion": conversion_description(line.quantity, line.unit_measure, used_grams),
        "weight_display": format_grams_display(line.total_weight_grams),
    }


def _recipe_view(recipe: Recipe) -> Dict[str, Any]:
    return {"id": recipe.id, "name": recipe.name, "yield_recipe": recipe.yield_recipe}


@dataclass(frozen=True)
class LoadUnitRegistry:
    loader: UnitCatalogLoader

    async def __call__(self, source: UnitCatalogSource) -> Dict[str, Any]:
        registry = await self.loader.load(source)
        issues = registry.inconsistencies()
        return {
            "units": [u.to_dict() for u in registry.units],
            "inconsistencies": [i.to_dict() for i in issues],
            "warnings": [w.to_dict() for w in registry.warnings(issues)],
            "convertible_units": registry.converter.units(),
        }


@dataclass(frozen=True)
class CostRecipe:
    converter: UnitConversionEngine = field(default_factory=UnitConversionEngine)
    engine: CostAggregationEngine = field(default_factory=CostAggregationEngine)

    def __call__(
        self,
        recipe: Recipe,
        items: Sequence[LineInput],
        financial: FinancialData,
        registry: Optional[UnitNormalizationRegistry] = None,
        view: str = TOTAL_VIEW,
        target_margin: Optional[float] = None,
        target_markup: Optional[float] = None,
    ) -> Dict[str, Any]:
        calculator = IngredientCostCalculator(converter=self.converter, registry=registry)
        warnings: List[CalculationWarning] = []
        lines: List[RecipeIngredientLine] = []
        views: List[Dict[str, Any]] = []

        for ingredient, qty, unit in items:
            c = calculator.cost(ingredient, qty, unit)
            line = calculator.line_from_cost(ingredient, qty, unit, c)
            lines.append(line)
            views.append(_line_view(line, c.used_grams))
            warnings.extend(c.warnings)

            ctx = {"ingredient_id": ingredient.id, "ingredient_name": ingredient.name}
            warnings.extend(validate_recipe_ingredient(line).as_warnings(ctx))
            if ingredient.price is not None:
                p = ingredient.price
                checked = validate_price_measure_data(
                    p.price, p.quantity, p.unit_measure, converter=self.converter, registry=registry
                )
                warnings.extend(checked.as_warnings(ctx))

        if registry is not None:
            warnings.extend(registry.warnings())

        ing_cost = ingredients_cost(lines)
        calc = self.engine.compute(financial, ing_cost, view=view)
        chart = self.engine.chart_data(financial, calc)

        suggested: Dict[str, float] = {}
        if target_margin is not None:
            suggested["from_margin"] = self.engine.price_from_margin(calc, target_margin)
        if target_markup is not None:
            suggested["from_markup"] = self.engine.price_from_markup(calc, target_markup)

        log.info(
            "costed recipe=%s lines=%d view=%s cost=%.2f warnings=%d",
            recipe.name, len(lines), view, calc.current_cost, len(warnings),
        )
        return {
            "recipe": _recipe_view(recipe),
            "view": view,
            "lines": views,
            "ingredients_cost": ing_cost,
            "calculations": calc.to_dict(),
            "chart": [c.to_dict() for c in chart],
            "stats": calculate_ingredient_stats(lines),
            "suggested_prices": suggested,
            "warnings": [w.to_dict() for w in warnings],
        }


@dataclass(frozen=True)
class CostMenu:
    """Menu-level costing: items cost plus direct/indirect percentages, against one sell price."""

    converter: UnitConversionEngine = field(default_factory=UnitConversionEngine)

    def __call__(
        self,
        name: str,
        items: Sequence[LineInput],
        direct_costs_percentage: float = 0.0,
        indirect_costs_percentage: float = 0.0,
        sell_price: float = 0.0,
        registry: Optional[UnitNormalizationRegistry] = None,
    ) -> Dict[str, Any]:
        calculator = IngredientCostCalculator(converter=self.converter, registry=registry)
        warnings: List[CalculationWarning] = []
        lines: List[RecipeIngredientLine] = []
        views: List[Dict[str, Any]] = []

        for ingredient, qty, unit in items:
            c = calculator.cost(ingredient, qty, unit)
            line = calculator.line_from_cost(ingredient, qty, unit, c)
            lines.append(line)
            views.append(_line_view(line, c.used_grams))
            warnings.extend(c.warnings)

        menu = calculate_menu_financials(
            total_items=len(lines),
            items_cost=ingredients_cost(lines),
            direct_costs_percentage=direct_costs_percentage,
            indirect_costs_percentage=indirect_costs_percentage,
            sell_price=sell_price,
        )
        for problem in validate_calculations(menu):
            warnings.append(CalculationWarning(kind=VALIDATION, message=problem, context={"menu": name}))

        log.info("costed menu=%s items=%d cost=%.2f warnings=%d", name, len(lines), menu.total_cost, len(warnings))
        return {
            "menu": name,
            "lines": views,
            "financials": menu.to_dict(),
            "warnings": [w.to_dict() for w in warnings],
        }


@dataclass(frozen=True)
class BuildNutritionLabel:
    engine: NutritionalScalingEngine
    converter: UnitConversionEngine = field(default_factory=UnitConversionEngine)

    async def __call__(
        self,
        recipe: Recipe,
        items: Sequence[LineInput],
        registry: Optional[UnitNormalizationRegistry] = None,
    ) -> Dict[str, Any]:
        calculator = IngredientCostCalculator(converter=self.converter, registry=registry)
        lines = calculator.weigh_lines(items)
        result = await self.engine.label_for(recipe, lines)

        out = result.to_dict()
        out["recipe"] = _recipe_view(recipe)
        return out
