# recipe_costing/recipe_costing/services/nutrition.py
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Union

import anyio

from recipe_costing.domain.entities import (
    NUTRIENT_FIELDS,
    NutrientProfile,
    NutritionalLabelData,
    Recipe,
    RecipeIngredientLine,
)
from recipe_costing.domain.errors import NUTRIENT_LOOKUP_FAILURE, CalculationWarning

if TYPE_CHECKING:
    from recipe_costing.infrastructure.nutrient_cache import NutrientLookupCache

log = logging.getLogger("app.nutrition")

NO_DAILY_VALUE = "**"

# Reference daily values, 2000 kcal diet (g or mg as on the label)
DAILY_VALUES: Dict[str, float] = {
    "total_fat": 65,
    "saturated_fat": 20,
    "cholesterol": 300,
    "sodium": 2300,
    "total_carbohydrate": 300,
    "dietary_fiber": 25,
    "calcium": 1000,
    "iron": 14,
    "potassium": 3500,
    "vitamin_c": 90,
}
NO_DAILY_VALUE_NUTRIENTS = ("trans_fat", "total_sugars", "added_sugars", "protein")

# label key -> (profile attribute, decimals, divisor applied before rounding)
_LABEL_FIELDS = (
    ("calories", "energy_kcal", 0, 1.0),
    ("total_fat", "total_fats_g", 1, 1.0),
    ("saturated_fat", "saturated_fats_g", 1, 1.0),
    ("trans_fat", "trans_fats_g", 1, 1.0),
    ("cholesterol", "cholesterol_mg", 0, 1.0),
    ("sodium", "sodium_mg", 0, 1.0),
    ("total_carbohydrate", "carbohydrate_g", 1, 1.0),
    ("dietary_fiber", "dietary_fiber_g", 1, 1.0),
    ("total_sugars", "total_sugar_g", 1, 1.0),
    ("added_sugars", "add_sugar_g", 1, 1.0),
    ("protein", "protein_g", 1, 1.0),
    ("calcium", "calcium_mg", 0, 1.0),
    ("iron", "iron_mg", 1, 1.0),
    ("potassium", "potassium_mg", 0, 1.0),
    ("vitamin_c", "vitamin_c_mcg", 1, 1000.0),  # mcg -> mg
)

_LEADING_NUMBER = re.compile(r"^\s*(\d+(?:[.,]\d+)?)")


def round_half_up(x: float, digits: int = 0) -> float:
    """Label rounding: 2.5 -> 3, 0.25 -> 0.3 (not banker's rounding)."""
    m = 10 ** digits
    return math.floor(x * m + 0.5) / m


def parse_yield(text: Any) -> float:
    """'4' -> 4, '2,5 porções' -> 2.5, '' / junk / '0' -> 1."""
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        n = float(text)
    else:
        m = _LEADING_NUMBER.match(str(text or ""))
        n = float(m.group(1).replace(",", ".")) if m else 0.0
    if not math.isfinite(n) or n <= 0:
        return 1.0
    return max(1.0, n)


def _key(name: str) -> str:
    return (name or "").strip().lower()


@dataclass(frozen=True)
class RecipeNutritionalInfo:
    """Whole-recipe nutrient totals (unrounded) plus portioning."""

    totals: Dict[str, float]
    total_weight_grams: float
    portion_size: int
    servings_per_container: float
    missing: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class NutritionResult:
    label: NutritionalLabelData
    info: RecipeNutritionalInfo
    warnings: List[CalculationWarning] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label.to_dict(),
            "total_weight_grams": self.info.total_weight_grams,
            "warnings": [w.to_dict() for w in self.warnings],
        }


class NutritionalScalingEngine:
    """
    Recipe nutrition label from per-100g profiles.
    aggregate() and format_label() are pure; label_for() resolves profiles through the cache.
    """

    def __init__(self, cache: Optional["NutrientLookupCache"] = None) -> None:
        self.cache = cache

    # ----------------------------
    # Pure halves
    # ----------------------------
    def aggregate(
        self,
        recipe: Recipe,
        lines: Sequence[RecipeIngredientLine],
        profiles: Mapping[str, Optional[NutrientProfile]],
    ) -> RecipeNutritionalInfo:
        """`profiles` is keyed by lower-cased, trimmed ingredient name; None or absent contributes zero."""
        totals: Dict[str, float] = {attr: 0.0 for attr, _ in NUTRIENT_FIELDS}
        missing: List[str] = []
        total_weight = 0.0

        for line in lines:
            weight = line.total_weight_grams or 0.0
            total_weight += weight
            profile = line.ingredient.nutritional_info or profiles.get(_key(line.ingredient.name))
            if profile is None:
                if line.ingredient.name not in missing:
                    missing.append(line.ingredient.name)
                continue
            proportion = weight / 100.0
            for attr, _ in NUTRIENT_FIELDS:
                totals[attr] += profile.value(attr) * proportion

        servings = parse_yield(recipe.yield_recipe)
        return RecipeNutritionalInfo(
            totals=totals,
            total_weight_grams=total_weight,
            portion_size=int(round_half_up(total_weight / servings)),
            servings_per_container=servings,
            missing=missing,
        )

    def format_label(self, recipe: Recipe, info: RecipeNutritionalInfo) -> NutritionalLabelData:
        servings = info.servings_per_container
        nutrients: Dict[str, float] = {}
        for label_key, attr, digits, divisor in _LABEL_FIELDS:
            per_serving = info.totals.get(attr, 0.0) / servings / divisor
            value = round_half_up(per_serving, digits)
            nutrients[label_key] = int(value) if digits == 0 else value

        daily_values: Dict[str, Union[int, str]] = {}
        for label_key, dv in DAILY_VALUES.items():
            daily_values[label_key] = int(round_half_up(nutrients[label_key] / dv * 100))
        for label_key in NO_DAILY_VALUE_NUTRIENTS:
            daily_values[label_key] = NO_DAILY_VALUE

        return NutritionalLabelData(
            product_name=recipe.name,
            portion_size=info.portion_size,
            servings_per_container=servings,
            nutrients=nutrients,
            daily_values=daily_values,
            partial=bool(info.missing),
        )

    # ----------------------------
    # Driver
    # ----------------------------
    async def resolve_profiles(self, lines: Sequence[RecipeIngredientLine]) -> Dict[str, Optional[NutrientProfile]]:
        """Distinct names without an attached profile, looked up concurrently."""
        names: Dict[str, str] = {}
        for line in lines:
            if line.ingredient.nutritional_info is None:
                names.setdefault(_key(line.ingredient.name), line.ingredient.name)
        if not names or self.cache is None:
            return {}

        profiles: Dict[str, Optional[NutrientProfile]] = {}

        async def _one(key: str, name: str) -> None:
            profiles[key] = await self.cache.get(name)

        async with anyio.create_task_group() as tg:
            for key, name in names.items():
                tg.start_soon(_one, key, name)
        return profiles

    async def label_for(self, recipe: Recipe, lines: Sequence[RecipeIngredientLine]) -> NutritionResult:
        profiles = await self.resolve_profiles(lines)
        info = self.aggregate(recipe, lines, profiles)
        label = self.format_label(recipe, info)

        warnings = [
            CalculationWarning(
                kind=NUTRIENT_LOOKUP_FAILURE,
                message=f"No nutritional table found for {name!r}; it contributes nothing to the label",
                context={"ingredient_name": name},
            )
            for name in info.missing
        ]
        if warnings:
            log.info("partial label recipe=%s missing=%d", recipe.name, len(warnings))
        return NutritionResult(label=label, info=info, warnings=warnings)


# ----------------------------
# Display helpers
# ----------------------------
def is_valid_nutritional_value(value: Any) -> bool:
    if value is None:
        return False
    s = str(value).strip()
    if s in ("", "0", "0.0", "null", "undefined"):
        return False
    try:
        v = float(s.replace(",", "."))
    except ValueError:
        return False
    return math.isfinite(v) and v > 0


def format_nutritional_value(value: Any) -> str:
    if not is_valid_nutritional_value(value):
        return "0.00"
    return f"{float(str(value).strip().replace(',', '.')):.2f}"


def has_valid_macronutrients(carbs: Any, proteins: Any, fats: Any) -> bool:
    return any(is_valid_nutritional_value(v) for v in (carbs, proteins, fats))
