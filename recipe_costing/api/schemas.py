# recipe_costing/recipe_costing/api/schemas.py
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field

from recipe_costing.domain.entities import (
    TOTAL_VIEW,
    DirectCost,
    FinancialData,
    IndirectCost,
    Ingredient,
    IngredientPrice,
    NutrientProfile,
    Recipe,
    UnitAmountUse,
    UnitMeasure,
)
from recipe_costing.infrastructure.resolvers import StaticUnitCatalog


# Shape validation only: numeric ranges are checked by the engines, which report
# offending values with ingredient context.

class IngredientPriceIn(BaseModel):
    price: float
    quantity: float
    unit_measure: str
    price_per_portion: Optional[float] = Field(default=None, description="Price per 100 g")

    def to_domain(self) -> IngredientPrice:
        return IngredientPrice(
            price=self.price,
            quantity=self.quantity,
            unit_measure=self.unit_measure,
            price_per_portion=self.price_per_portion,
        )


class IngredientIn(BaseModel):
    id: str
    name: str
    category: str = ""
    correction_factor: float = 1.0
    price: Optional[IngredientPriceIn] = None
    nutritional_info: Optional[Dict[str, Any]] = Field(
        default=None, description="Per-100 g nutritional table (camelCase keys as served by the API)"
    )

    def to_domain(self) -> Ingredient:
        return Ingredient(
            id=self.id,
            name=self.name,
            category=self.category,
            correction_factor=self.correction_factor,
            price=self.price.to_domain() if self.price else None,
            nutritional_info=NutrientProfile.from_document(self.nutritional_info) if self.nutritional_info else None,
        )


class IngredientLineIn(BaseModel):
    ingredient: IngredientIn
    quantity: float
    unit_measure: str = Field(..., examples=["g", "kg", "2 colheres (sopa)"])

    def to_domain(self) -> Tuple[Ingredient, float, str]:
        return self.ingredient.to_domain(), self.quantity, self.unit_measure


class RecipeIn(BaseModel):
    id: str = ""
    name: str
    yield_recipe: Union[str, float] = "1"

    def to_domain(self) -> Recipe:
        y = self.yield_recipe
        if isinstance(y, float) and y.is_integer():
            y = int(y)
        return Recipe(id=self.id, name=self.name, yield_recipe=str(y))


class DirectCostIn(BaseModel):
    id: str = ""
    name: str = ""
    value: float
    is_percentage: bool = False
    description: Optional[str] = None

    def to_domain(self) -> DirectCost:
        return DirectCost(
            id=self.id, name=self.name, value=self.value, is_percentage=self.is_percentage, description=self.description
        )


class IndirectCostIn(BaseModel):
    id: str = ""
    name: str = ""
    monthly_value: float
    description: Optional[str] = None

    def to_domain(self) -> IndirectCost:
        return IndirectCost(id=self.id, name=self.name, monthly_value=self.monthly_value, description=self.description)


class FinancialDataIn(BaseModel):
    direct_costs: List[DirectCostIn] = Field(default_factory=list)
    total_direct_costs: List[DirectCostIn] = Field(default_factory=list)
    unit_direct_costs: List[DirectCostIn] = Field(default_factory=list)
    indirect_costs: List[IndirectCostIn] = Field(default_factory=list)
    monthly_revenue: float = 0.0
    total_sale_price: float = 0.0
    unit_sale_price: float = 0.0
    total_yield: float = 1.0
    unit_yield: float = 1.0

    def to_domain(self) -> FinancialData:
        return FinancialData(
            direct_costs=[c.to_domain() for c in self.direct_costs],
            total_direct_costs=[c.to_domain() for c in self.total_direct_costs],
            unit_direct_costs=[c.to_domain() for c in self.unit_direct_costs],
            indirect_costs=[c.to_domain() for c in self.indirect_costs],
            monthly_revenue=self.monthly_revenue,
            total_sale_price=self.total_sale_price,
            unit_sale_price=self.unit_sale_price,
            total_yield=self.total_yield,
            unit_yield=self.unit_yield,
        )


class UnitMeasureIn(BaseModel):
    id: str
    name: str
    acronym: str = ""


class UnitAmountUseIn(BaseModel):
    id: str
    name: str
    quantity: str = ""
    unit_measure: str = ""


class UnitCatalogIn(BaseModel):
    base_units: List[UnitMeasureIn] = Field(default_factory=list)
    amount_use_units: List[UnitAmountUseIn] = Field(default_factory=list)

    def to_source(self) -> StaticUnitCatalog:
        return StaticUnitCatalog(
            base_units=[UnitMeasure(id=u.id, name=u.name, acronym=u.acronym) for u in self.base_units],
            amount_use_units=[
                UnitAmountUse(id=u.id, name=u.name, quantity=u.quantity, unit_measure=u.unit_measure)
                for u in self.amount_use_units
            ],
        )


class CostingRequest(BaseModel):
    recipe: RecipeIn
    ingredients: List[IngredientLineIn] = Field(default_factory=list)
    financial: FinancialDataIn = Field(default_factory=FinancialDataIn)
    units: Optional[UnitCatalogIn] = None
    view: Literal["total", "unit"] = TOTAL_VIEW
    target_margin: Optional[float] = Field(default=None, description="Suggest a sale price for this margin (%)")
    target_markup: Optional[float] = Field(default=None, description="Suggest a sale price for this markup (x)")


class NutritionRequest(BaseModel):
    recipe: RecipeIn
    ingredients: List[IngredientLineIn] = Field(default_factory=list)
    units: Optional[UnitCatalogIn] = None
    nutrient_tables: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, description="Ingredient name -> per-100 g table; used instead of Mongo/HTTP when given"
    )

    def nutrient_profiles(self) -> Dict[str, NutrientProfile]:
        return {name: NutrientProfile.from_document(doc) for name, doc in self.nutrient_tables.items()}


class CostingResponse(BaseModel):
    recipe: Dict[str, Any]
    view: str
    lines: List[Dict[str, Any]]
    ingredients_cost: float
    calculations: Dict[str, Any]
    chart: List[Dict[str, Any]]
    stats: Dict[str, Any]
    suggested_prices: Dict[str, float] = Field(default_factory=dict)
    warnings: List[Dict[str, Any]]


class NutritionResponse(BaseModel):
    recipe: Dict[str, Any]
    label: Dict[str, Any]
    total_weight_grams: float
    warnings: List[Dict[str, Any]]


class MenuRequest(BaseModel):
    name: str
    items: List[IngredientLineIn] = Field(default_factory=list)
    direct_costs_percentage: float = 0.0
    indirect_costs_percentage: float = 0.0
    sell_price: float = 0.0
    units: Optional[UnitCatalogIn] = None


class MenuResponse(BaseModel):
    menu: str
    lines: List[Dict[str, Any]]
    financials: Dict[str, Any]
    warnings: List[Dict[str, Any]]
