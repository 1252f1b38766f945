# recipe_costing/recipe_costing/services/menu_costing.py
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List


@dataclass(frozen=True)
class MenuFinancials:
    total_cost: float
    unit_cost: float
    sell_price: float
    profit_margin: float
    markup: float  # percent over cost, unlike the recipe engine's price/cost ratio
    items_cost: float
    direct_costs: float
    indirect_costs: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _round2(x: float) -> float:
    return math.floor(x * 100 + 0.5) / 100


def calculate_menu_financials(
    total_items: int,
    items_cost: float = 0.0,
    direct_costs_percentage: float = 0.0,
    indirect_costs_percentage: float = 0.0,
    sell_price: float = 0.0,
) -> MenuFinancials:
    """Menu-level costing: direct/indirect costs are percentages of the items cost."""
    direct = items_cost * direct_costs_percentage / 100.0
    indirect = items_cost * indirect_costs_percentage / 100.0
    total = items_cost + direct + indirect
    unit = total / total_items if total_items > 0 else 0.0

    margin = 0.0
    markup = 0.0
    if sell_price > 0 and total > 0:
        margin = (sell_price - total) / sell_price * 100.0
        markup = (sell_price - total) / total * 100.0
    elif sell_price == 0 and total > 0:
        margin = -100.0

    return MenuFinancials(
        total_cost=max(0.0, total),
        unit_cost=max(0.0, unit),
        sell_price=max(0.0, sell_price),
        profit_margin=_round2(margin),
        markup=_round2(markup),
        items_cost=max(0.0, items_cost),
        direct_costs=max(0.0, direct),
        indirect_costs=max(0.0, indirect),
    )


def validate_calculations(data: MenuFinancials) -> List[str]:
    """Consistency check over a MenuFinancials value. Returns human-readable problems (empty when fine)."""
    errors: List[str] = []

    expected_total = data.items_cost + data.direct_costs + data.indirect_costs
    if abs(data.total_cost - expected_total) > 0.01:
        errors.append(
            f"total cost ({data.total_cost:.2f}) does not match the sum of its parts ({expected_total:.2f})"
        )

    if data.total_cost > 0 and data.unit_cost <= 0:
        errors.append("unit cost must be greater than zero when there is a total cost")

    if data.sell_price > 0 and data.total_cost > 0:
        expected_margin = (data.sell_price - data.total_cost) / data.sell_price * 100.0
        if abs(data.profit_margin - expected_margin) > 0.1:
            errors.append(
                f"profit margin is wrong: expected {expected_margin:.1f}%, got {data.profit_margin:.1f}%"
            )

    return errors
