# recipe_costing/recipe_costing/domain/entities.py
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

TOTAL_VIEW = "total"
UNIT_VIEW = "unit"

AMOUNT_USE = "amount-use"
BASE_UNIT = "base-unit"


@dataclass(frozen=True)
class Quantity:
    amount: float
    unit: str


@dataclass(frozen=True)
class IngredientPrice:
    price: float
    quantity: float
    unit_measure: str
    price_per_portion: Optional[float] = None  # price per 100 g


# ----------------------------
# Nutrition
# ----------------------------
# attribute name -> key used by the nutritional tables API
NUTRIENT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("energy_kcal", "energyKcal"),
    ("carbohydrate_g", "carbohydrateG"),
    ("protein_g", "proteinG"),
    ("total_fats_g", "totalFatsG"),
    ("saturated_fats_g", "saturatedFatsG"),
    ("trans_fats_g", "transFatsG"),
    ("dietary_fiber_g", "dietaryFiberG"),
    ("total_sugar_g", "totalSugarG"),
    ("add_sugar_g", "addSugarG"),
    ("sodium_mg", "sodiumMG"),
    ("cholesterol_mg", "cholesterolMG"),
    ("calcium_mg", "calciumMG"),
    ("iron_mg", "ironMG"),
    ("potassium_mg", "potassiumMG"),
    ("vitamin_c_mcg", "vitaminCMCG"),
)


def parse_nutritional_value(value: Any) -> float:
    """Lenient number parsing for nutrient documents: junk, NaN and negatives count as 0."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        v = float(value)
    else:
        s = str(value).strip().replace(",", ".")
        if s in ("", "null", "undefined"):
            return 0.0
        try:
            v = float(s)
        except ValueError:
            return 0.0
    if not math.isfinite(v) or v < 0:
        return 0.0
    return v


@dataclass(frozen=True)
class NutrientProfile:
    """Nutrient values per 100 g of an ingredient."""

    name: str = ""
    energy_kcal: float = 0.0
    carbohydrate_g: float = 0.0
    protein_g: float = 0.0
    total_fats_g: float = 0.0
    saturated_fats_g: float = 0.0
    trans_fats_g: float = 0.0
    dietary_fiber_g: float = 0.0
    total_sugar_g: float = 0.0
    add_sugar_g: float = 0.0
    sodium_mg: float = 0.0
    cholesterol_mg: float = 0.0
    calcium_mg: float = 0.0
    iron_mg: float = 0.0
    potassium_mg: float = 0.0
    vitamin_c_mcg: float = 0.0

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "NutrientProfile":
        """Accepts API/Mongo documents (camelCase) as well as snake_case dicts."""
        values: Dict[str, float] = {}
        for attr, api_key in NUTRIENT_FIELDS:
            raw = doc.get(api_key, doc.get(attr))
            values[attr] = parse_nutritional_value(raw)
        name = doc.get("name") or doc.get("description") or doc.get("tableName") or ""
        return cls(name=str(name).strip(), **values)

    def value(self, attr: str) -> float:
        return float(getattr(self, attr))


@dataclass(frozen=True)
class Ingredient:
    id: str
    name: str
    category: str = ""
    correction_factor: float = 1.0
    price: Optional[IngredientPrice] = None
    nutritional_info: Optional[NutrientProfile] = None


@dataclass(frozen=True)
class RecipeIngredientLine:
    ingredient: Ingredient
    quantity: float
    unit_measure: str
    # derived from quantity/unit/price/correction factor; rebuilt on every edit
    total_weight_grams: float
    total_cost: float
    cost_per_portion: Optional[float] = None


@dataclass(frozen=True)
class Recipe:
    id: str
    name: str
    yield_recipe: str = "1"


# ----------------------------
# Financial
# ----------------------------
@dataclass(frozen=True)
class DirectCost:
    id: str
    name: str
    value: float
    is_percentage: bool = False  # percent of the view's sale price
    description: Optional[str] = None


@dataclass(frozen=True)
class IndirectCost:
    id: str
    name: str
    monthly_value: float
    description: Optional[str] = None


@dataclass(frozen=True)
class FinancialData:
    direct_costs: List[DirectCost] = field(default_factory=list)
    indirect_costs: List[IndirectCost] = field(default_factory=list)
    monthly_revenue: float = 0.0
    total_sale_price: float = 0.0
    unit_sale_price: float = 0.0
    total_yield: float = 1.0
    unit_yield: float = 1.0
    total_direct_costs: List[DirectCost] = field(default_factory=list)
    unit_direct_costs: List[DirectCost] = field(default_factory=list)

    def sale_price(self, view: str) -> float:
        return self.total_sale_price if view == TOTAL_VIEW else self.unit_sale_price


@dataclass(frozen=True)
class FinancialCalculations:
    view: str
    total_cost: float
    unit_cost: float
    total_ingredients_cost: float
    total_direct_costs: float
    unit_direct_costs: float
    indirect_costs_total: float
    indirect_costs_unit: float
    cmv: float
    profit_margin: float
    markup: float
    total_profit: float
    unit_profit: float
    ingredients_cost_percentage: float
    direct_costs_percentage: float
    indirect_costs_percentage: float
    profit_percentage: float

    @property
    def current_cost(self) -> float:
        return self.total_cost if self.view == TOTAL_VIEW else self.unit_cost

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FinancialChartData:
    key: str
    label: str
    value: float
    percentage: float
    color: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NutritionalLabelData:
    product_name: str
    portion_size: int
    servings_per_container: float
    nutrients: Dict[str, float]
    daily_values: Dict[str, Union[int, str]]
    partial: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_name": self.product_name,
            "portion_size": self.portion_size,
            "servings_per_container": self.servings_per_container,
            "nutrients": dict(self.nutrients),
            "daily_values": dict(self.daily_values),
            "partial": self.partial,
        }


# ----------------------------
# Units
# ----------------------------
@dataclass(frozen=True)
class UnitMeasure:
    id: str
    name: str
    acronym: str = ""


@dataclass(frozen=True)
class UnitAmountUse:
    id: str
    name: str
    quantity: str = ""
    unit_measure: str = ""  # free text meant to reference a base unit


@dataclass(frozen=True)
class NormalizedUnit:
    id: str
    name: str
    type: str
    acronym: Optional[str] = None
    quantity: Optional[str] = None
    base_unit_id: Optional[str] = None
    base_unit_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class UnitInconsistency:
    unit: NormalizedUnit
    issue: str
    severity: str = "warning"
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit": self.unit.name,
            "issue": self.issue,
            "severity": self.severity,
            "suggestion": self.suggestion,
        }
