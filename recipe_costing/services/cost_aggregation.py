# recipe_costing/recipe_costing/services/cost_aggregation.py
from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Any, Iterable, List

from recipe_costing.domain.entities import (
    TOTAL_VIEW,
    UNIT_VIEW,
    DirectCost,
    FinancialCalculations,
    FinancialChartData,
    FinancialData,
    IndirectCost,
)
from recipe_costing.domain.errors import InvalidQuantityError

log = logging.getLogger("app.cost_aggregation")

# Output bounds
MAX_MONEY = 999_999.0
MAX_PERCENT = 999.0
MAX_MARKUP = 99.9
NO_MARKUP = 1.0  # sentinel when cost is 0

CHART_COLORS = {
    "ingredients": "#4CAF50",
    "direct_costs": "#FF9800",
    "indirect_costs": "#2196F3",
    "profit": "#9C27B0",
}


# ----------------------------
# Sanitizing
# ----------------------------
def _is_finite(x: Any) -> bool:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return False
    return math.isfinite(x)


def _non_negative(x: Any) -> float:
    return float(x) if _is_finite(x) and x >= 0 else 0.0


def _positive_or_one(x: Any) -> float:
    return float(x) if _is_finite(x) and x > 0 else 1.0


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(min(x, hi), lo)


def _check_view(view: str) -> str:
    if view not in (TOTAL_VIEW, UNIT_VIEW):
        raise ValueError(f"view must be {TOTAL_VIEW!r} or {UNIT_VIEW!r}, got {view!r}")
    return view


def sanitize(data: FinancialData) -> FinancialData:
    """Yields default to 1; revenue and sale prices fall back to 0. Cost entries are filtered on use."""
    return replace(
        data,
        monthly_revenue=_non_negative(data.monthly_revenue),
        total_sale_price=_non_negative(data.total_sale_price),
        unit_sale_price=_non_negative(data.unit_sale_price),
        total_yield=_positive_or_one(data.total_yield),
        unit_yield=_positive_or_one(data.unit_yield),
    )


# ----------------------------
# Cost pools
# ----------------------------
def direct_costs(entries: Iterable[DirectCost], sale_price: float) -> float:
    """Percentage entries are a share of the sale price (clamped to 100%); flat entries are capped."""
    price = _non_negative(sale_price)
    total = 0.0
    for c in entries:
        if not _is_finite(c.value) or c.value < 0:
            continue
        if c.is_percentage:
            pct = min(float(c.value), 100.0)
            total += price * pct / 100.0
        else:
            total += min(float(c.value), MAX_MONEY)
    return total


def indirect_costs(entries: Iterable[IndirectCost], monthly_revenue: float, sale_price: float) -> float:
    """
    Monthly fixed costs as a share of monthly revenue, applied to this sale price.
    No revenue base (or no price) means nothing can be prorated.
    """
    if not _is_finite(monthly_revenue) or monthly_revenue <= 0:
        return 0.0
    if not _is_finite(sale_price) or sale_price <= 0:
        return 0.0

    total = 0.0
    for c in entries:
        if not _is_finite(c.monthly_value) or c.monthly_value < 0:
            continue
        total += min(float(c.monthly_value), MAX_MONEY)
    if total == 0:
        return 0.0

    share = min(total / monthly_revenue, 1.0)
    return sale_price * share


def cmv_for(price: float, cost: float) -> float:
    return min(cost / price * 100.0, MAX_PERCENT) if price > 0 else 0.0


def margin_for(price: float, cost: float) -> float:
    return _clamp((price - cost) / price * 100.0, -MAX_PERCENT, MAX_PERCENT) if price > 0 else 0.0


def markup_for(price: float, cost: float) -> float:
    return min(price / cost, MAX_MARKUP) if cost > 0 else NO_MARKUP


def _percent_of(component: float, price: float) -> float:
    return min(component / price * 100.0, MAX_PERCENT) if price > 0 else 0.0


# ----------------------------
# Engine
# ----------------------------
class CostAggregationEngine:
    """
    Pure cost/price/margin computation over two views:
      - total: the whole batch (total_yield units), priced at total_sale_price
      - unit:  one serving, priced at unit_sale_price
    Views share the ingredient base and indirect pool; direct pools and prices are independent.
    Nothing is cached: call compute() again whenever any input changes.
    """

    def compute(self, data: FinancialData, ingredients_cost: float, view: str = TOTAL_VIEW) -> FinancialCalculations:
        _check_view(view)
        d = sanitize(data)
        ing_cost = _non_negative(ingredients_cost)

        total_direct = direct_costs([*d.direct_costs, *d.total_direct_costs], d.total_sale_price)
        unit_direct = direct_costs([*d.direct_costs, *d.unit_direct_costs], d.unit_sale_price)

        indirect_total = indirect_costs(d.indirect_costs, d.monthly_revenue, d.total_sale_price)
        indirect_unit = indirect_costs(d.indirect_costs, d.monthly_revenue, d.unit_sale_price)

        total_cost = min(ing_cost + total_direct + indirect_total, MAX_MONEY)
        unit_cost = min(ing_cost / d.total_yield + unit_direct + indirect_unit, MAX_MONEY)

        if view == TOTAL_VIEW:
            price, cost = d.total_sale_price, total_cost
            cur_ing, cur_direct, cur_indirect = ing_cost, total_direct, indirect_total
        else:
            price, cost = d.unit_sale_price, unit_cost
            cur_ing, cur_direct, cur_indirect = ing_cost / d.total_yield, unit_direct, indirect_unit

        profit_margin = margin_for(price, cost)

        calc = FinancialCalculations(
            view=view,
            total_cost=total_cost,
            unit_cost=unit_cost,
            total_ingredients_cost=ing_cost,
            total_direct_costs=total_direct,
            unit_direct_costs=unit_direct,
            indirect_costs_total=indirect_total,
            indirect_costs_unit=indirect_unit,
            cmv=cmv_for(price, cost),
            profit_margin=profit_margin,
            markup=markup_for(price, cost),
            total_profit=_clamp(d.total_sale_price - total_cost, -MAX_MONEY, MAX_MONEY),
            unit_profit=_clamp(d.unit_sale_price - unit_cost, -MAX_MONEY, MAX_MONEY),
            ingredients_cost_percentage=_percent_of(cur_ing, price),
            direct_costs_percentage=_percent_of(cur_direct, price),
            indirect_costs_percentage=_percent_of(cur_indirect, price),
            profit_percentage=profit_margin,
        )
        log.debug(
            "compute view=%s price=%.2f cost=%.2f margin=%.2f markup=%.2f",
            view, price, cost, calc.profit_margin, calc.markup,
        )
        return calc

    def chart_data(self, data: FinancialData, calc: FinancialCalculations) -> List[FinancialChartData]:
        """Cost-composition slices (percent of sale price, not renormalized). Zero slices are omitted."""
        d = sanitize(data)
        total_view = calc.view == TOTAL_VIEW
        if d.sale_price(calc.view) == 0:
            return []

        out: List[FinancialChartData] = []
        if calc.ingredients_cost_percentage > 0:
            out.append(
                FinancialChartData(
                    key="ingredients",
                    label="Ingredients",
                    value=calc.total_ingredients_cost if total_view else calc.total_ingredients_cost / d.total_yield,
                    percentage=calc.ingredients_cost_percentage,
                    color=CHART_COLORS["ingredients"],
                    description="Cost of the recipe's ingredients",
                )
            )
        if calc.direct_costs_percentage > 0:
            out.append(
                FinancialChartData(
                    key="direct_costs",
                    label="Direct costs",
                    value=calc.total_direct_costs if total_view else calc.unit_direct_costs,
                    percentage=calc.direct_costs_percentage,
                    color=CHART_COLORS["direct_costs"],
                    description="Other direct costs (packaging, fees, ...)",
                )
            )
        if calc.indirect_costs_percentage > 0:
            out.append(
                FinancialChartData(
                    key="indirect_costs",
                    label="Indirect costs",
                    value=calc.indirect_costs_total if total_view else calc.indirect_costs_unit,
                    percentage=calc.indirect_costs_percentage,
                    color=CHART_COLORS["indirect_costs"],
                    description="Monthly fixed expenses prorated by revenue",
                )
            )
        if calc.profit_percentage > 0:
            out.append(
                FinancialChartData(
                    key="profit",
                    label="Profit",
                    value=calc.total_profit if total_view else calc.unit_profit,
                    percentage=calc.profit_percentage,
                    color=CHART_COLORS["profit"],
                    description="Profit margin of the recipe",
                )
            )
        return out

    # ----------------------------
    # Inverse solvers (price from a target margin / markup)
    # ----------------------------
    def price_from_margin(self, calc: FinancialCalculations, target_margin_pct: float) -> float:
        if not _is_finite(target_margin_pct):
            raise InvalidQuantityError("target margin must be a finite number", value=target_margin_pct)
        if target_margin_pct >= 100:
            raise InvalidQuantityError("target margin must be below 100%", value=target_margin_pct)
        cost = calc.current_cost
        if cost == 0:
            return 0.0
        return cost / (1.0 - target_margin_pct / 100.0)

    def price_from_markup(self, calc: FinancialCalculations, target_markup: float) -> float:
        if not _is_finite(target_markup) or target_markup < 0:
            raise InvalidQuantityError("target markup must be a finite number >= 0", value=target_markup)
        return calc.current_cost * target_markup
