"""
Tests for NutritionalScalingEngine and the nutrition display helpers.
"""

from dataclasses import replace

import pytest

from recipe_costing.domain.entities import Ingredient, NutrientProfile, Recipe, RecipeIngredientLine
from recipe_costing.domain.errors import NUTRIENT_LOOKUP_FAILURE
from recipe_costing.infrastructure.nutrient_cache import NutrientLookupCache
from recipe_costing.services.nutrition import (
    DAILY_VALUES,
    NO_DAILY_VALUE,
    NutritionalScalingEngine,
    format_nutritional_value,
    has_valid_macronutrients,
    is_valid_nutritional_value,
    parse_yield,
    round_half_up,
)

from conftest import CountingResolver


def make_line(name, grams, profile=None):
    return RecipeIngredientLine(
        ingredient=Ingredient(id=name.lower(), name=name, nutritional_info=profile),
        quantity=grams,
        unit_measure="g",
        total_weight_grams=grams,
        total_cost=0.0,
    )


@pytest.fixture
def engine():
    return NutritionalScalingEngine()


@pytest.fixture
def lines():
    """1000 g recipe: 500 g carrot, 500 g water."""
    return [make_line("Cenoura", 500.0), make_line("Água", 500.0)]


class TestHelpers:
    @pytest.mark.parametrize(
        "text,expected",
        [("4", 4.0), ("2,5 porções", 2.5), ("8 fatias", 8.0), ("", 1.0), ("abc", 1.0), ("0", 1.0), ("0.5", 1.0), (3, 3.0), (None, 1.0)],
    )
    def test_parse_yield(self, text, expected):
        assert parse_yield(text) == expected

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.25, 1) == pytest.approx(0.3)
        assert round_half_up(1.24, 1) == pytest.approx(1.2)

    def test_is_valid_nutritional_value(self):
        assert is_valid_nutritional_value("12.5")
        assert is_valid_nutritional_value(3)
        for bad in (None, "", "0", "0.0", "null", "undefined", "abc", -1):
            assert not is_valid_nutritional_value(bad)

    def test_format_nutritional_value(self):
        assert format_nutritional_value("3.14159") == "3.14"
        assert format_nutritional_value("null") == "0.00"

    def test_has_valid_macronutrients(self):
        assert has_valid_macronutrients(None, "0", "2")
        assert not has_valid_macronutrients(None, "0", "")


class TestAggregate:
    def test_scenario(self, engine, recipe, lines, carrot_profile):
        info = engine.aggregate(recipe, lines, {"cenoura": carrot_profile})
        assert info.total_weight_grams == pytest.approx(1000.0)
        assert info.servings_per_container == 4.0
        assert info.portion_size == 250
        assert info.totals["energy_kcal"] == pytest.approx(1000.0)
        assert info.missing == ["Água"]

    def test_attached_profile_wins(self, engine, recipe, carrot_profile):
        lines = [make_line("Cenoura", 100.0, profile=replace(carrot_profile, energy_kcal=50.0))]
        info = engine.aggregate(recipe, lines, {"cenoura": carrot_profile})
        assert info.totals["energy_kcal"] == pytest.approx(50.0)

    def test_profiles_keyed_case_insensitively(self, engine, recipe, carrot_profile):
        info = engine.aggregate(recipe, [make_line("  CENOURA ", 100.0)], {"cenoura": carrot_profile})
        assert info.totals["energy_kcal"] == pytest.approx(200.0)
        assert info.missing == []


class TestFormatLabel:
    def test_scenario(self, engine, recipe, lines, carrot_profile):
        label = engine.format_label(recipe, engine.aggregate(recipe, lines, {"cenoura": carrot_profile}))
        assert label.product_name == "Bolo de cenoura"
        assert label.portion_size == 250
        assert label.servings_per_container == 4.0
        assert label.nutrients["calories"] == 250
        assert label.nutrients["total_carbohydrate"] == pytest.approx(12.5)
        assert label.nutrients["protein"] == pytest.approx(2.5)
        assert label.nutrients["vitamin_c"] == pytest.approx(6.3)  # 6250 mcg
        assert label.daily_values["total_carbohydrate"] == 4
        assert label.daily_values["vitamin_c"] == 7
        assert label.partial is True

    def test_no_daily_value_marker(self, engine, recipe, lines, carrot_profile):
        label = engine.format_label(recipe, engine.aggregate(recipe, lines, {"cenoura": carrot_profile}))
        for key in ("trans_fat", "total_sugars", "added_sugars", "protein"):
            assert label.daily_values[key] == NO_DAILY_VALUE
        assert set(DAILY_VALUES) <= set(label.daily_values)

    def test_doubling_weights_doubles_per_serving(self, engine, recipe, lines, carrot_profile):
        profiles = {"cenoura": carrot_profile}
        doubled = [replace(line, total_weight_grams=line.total_weight_grams * 2) for line in lines]
        one = engine.format_label(recipe, engine.aggregate(recipe, lines, profiles))
        two = engine.format_label(recipe, engine.aggregate(recipe, doubled, profiles))
        assert two.servings_per_container == one.servings_per_container
        for key in ("calories", "total_carbohydrate", "protein"):
            assert two.nutrients[key] == pytest.approx(2 * one.nutrients[key])

    def test_deterministic(self, engine, recipe, lines, carrot_profile):
        a = engine.format_label(recipe, engine.aggregate(recipe, lines, {"cenoura": carrot_profile}))
        b = engine.format_label(recipe, engine.aggregate(recipe, lines, {"cenoura": carrot_profile}))
        assert a.to_dict() == b.to_dict()

    def test_empty_recipe(self, engine):
        r = Recipe(id="r", name="Vazio", yield_recipe="")
        label = engine.format_label(r, engine.aggregate(r, [], {}))
        assert label.portion_size == 0
        assert label.servings_per_container == 1.0
        assert label.nutrients["calories"] == 0
        assert label.daily_values["sodium"] == 0
        assert label.partial is False

    def test_whole_and_decimal_rounding(self, engine):
        profile = NutrientProfile(sodium_mg=10.5, total_fats_g=0.25, iron_mg=0.45)
        r = Recipe(id="r", name="x", yield_recipe="1")
        label = engine.format_label(r, engine.aggregate(r, [make_line("x", 100.0, profile=profile)], {}))
        assert label.nutrients["sodium"] == 11
        assert isinstance(label.nutrients["sodium"], int)
        assert label.nutrients["total_fat"] == pytest.approx(0.3)
        assert label.nutrients["iron"] == pytest.approx(0.5)


class TestLabelFor:
    @pytest.mark.anyio
    async def test_resolves_through_cache(self, recipe, lines, carrot_profile, fake_clock):
        resolver = CountingResolver({"Cenoura": carrot_profile})
        engine = NutritionalScalingEngine(NutrientLookupCache(resolver, clock=fake_clock))
        result = await engine.label_for(recipe, lines + [make_line("cenoura ", 0.0)])

        assert result.label.nutrients["calories"] == 250
        assert sorted(resolver.calls) == ["Cenoura", "Água"]
        assert [w.kind for w in result.warnings] == [NUTRIENT_LOOKUP_FAILURE]
        assert result.warnings[0].context["ingredient_name"] == "Água"
        assert result.label.partial is True

    @pytest.mark.anyio
    async def test_attached_profiles_skip_lookup(self, recipe, carrot_profile, fake_clock):
        resolver = CountingResolver({})
        engine = NutritionalScalingEngine(NutrientLookupCache(resolver, clock=fake_clock))
        result = await engine.label_for(recipe, [make_line("Cenoura", 400.0, profile=carrot_profile)])
        assert resolver.calls == []
        assert result.warnings == []
        assert result.label.partial is False

    @pytest.mark.anyio
    async def test_failed_lookups_do_not_abort(self, recipe, lines, fake_clock):
        resolver = CountingResolver({}, fail=True)
        engine = NutritionalScalingEngine(NutrientLookupCache(resolver, clock=fake_clock))
        result = await engine.label_for(recipe, lines)
        assert result.label.nutrients["calories"] == 0
        assert len(result.warnings) == 2
        assert result.to_dict()["label"]["partial"] is True

    @pytest.mark.anyio
    async def test_without_cache_only_attached_profiles_count(self, recipe, lines):
        result = await NutritionalScalingEngine().label_for(recipe, lines)
        assert {w.context["ingredient_name"] for w in result.warnings} == {"Cenoura", "Água"}
