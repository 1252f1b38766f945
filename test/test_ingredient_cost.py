"""
Tests for IngredientCostCalculator.
"""

from dataclasses import replace

import pytest

from recipe_costing.domain.entities import Ingredient, IngredientPrice
from recipe_costing.domain.errors import MISSING_PRICE, InvalidQuantityError, UnknownUnitError
from recipe_costing.services.ingredient_cost import IngredientCostCalculator, ingredients_cost


@pytest.fixture
def calculator(converter):
    return IngredientCostCalculator(converter=converter)


class TestCost:
    """Worked examples and properties of the per-line cost."""

    def test_scenario_plain(self, calculator, flour):
        c = calculator.cost(flour, 250, "g")
        assert c.total_cost == pytest.approx(2.50)
        assert c.used_grams == pytest.approx(250.0)
        assert c.warnings == []

    def test_scenario_correction_factor(self, calculator, flour):
        c = calculator.cost(replace(flour, correction_factor=1.2), 250, "g")
        assert c.total_cost == pytest.approx(3.00)

    def test_correction_factor_identity(self, calculator, flour):
        with_one = calculator.cost(replace(flour, correction_factor=1.0), 250, "g").total_cost
        default = calculator.cost(flour, 250, "g").total_cost
        uncorrected = flour.price.price / 1000.0 * 250
        assert with_one == default == pytest.approx(uncorrected)

    def test_purchase_in_other_unit(self, calculator):
        ing = Ingredient(id="i", name="Leite", price=IngredientPrice(price=5.0, quantity=1, unit_measure="litro"))
        assert calculator.cost(ing, 200, "ml").total_cost == pytest.approx(1.0)

    def test_culinary_recipe_unit(self, calculator, flour):
        # 2 tablespoons = 30 g
        assert calculator.cost(flour, 2, "colheres de sopa").total_cost == pytest.approx(0.30)

    def test_monotonic_in_quantity(self, calculator, flour):
        costs = [calculator.cost(flour, q, "g").total_cost for q in (0, 1, 10, 99.5, 250, 1000, 5000)]
        assert costs == sorted(costs)

    def test_cost_per_portion_is_separate(self, calculator, flour):
        ing = replace(flour, correction_factor=1.5, price=replace(flour.price, price_per_portion=2.0))
        c = calculator.cost(ing, 250, "g")
        assert c.cost_per_portion == pytest.approx(5.0)  # 2.0 * 250 / 100, no correction factor
        assert c.total_cost == pytest.approx(3.75)

    def test_no_portion_price(self, calculator, flour):
        ing = replace(flour, price=replace(flour.price, price_per_portion=None))
        assert calculator.cost(ing, 100, "g").cost_per_portion is None


class TestMissingAndInvalid:
    def test_missing_price_is_zero_with_warning(self, calculator):
        ing = Ingredient(id="i-9", name="Sal")
        c = calculator.cost(ing, 5, "g")
        assert c.total_cost == 0.0
        assert [w.kind for w in c.warnings] == [MISSING_PRICE]
        assert c.warnings[0].context["ingredient_id"] == "i-9"

    def test_zero_purchase_quantity_with_price(self, calculator, flour):
        ing = replace(flour, price=replace(flour.price, quantity=0))
        with pytest.raises(InvalidQuantityError) as exc:
            calculator.cost(ing, 100, "g")
        assert exc.value.ingredient_id == "ing-1"
        assert exc.value.ingredient_name == "Farinha de trigo"
        assert exc.value.value == 0

    def test_zero_price_and_zero_quantity_is_zero(self, calculator, flour):
        ing = replace(flour, price=replace(flour.price, price=0.0, quantity=0))
        assert calculator.cost(ing, 100, "g").total_cost == 0.0

    def test_negative_price(self, calculator, flour):
        ing = replace(flour, price=replace(flour.price, price=-1.0))
        with pytest.raises(InvalidQuantityError):
            calculator.cost(ing, 100, "g")

    @pytest.mark.parametrize("qty", [-5, float("nan"), float("inf")])
    def test_invalid_recipe_quantity(self, calculator, flour, qty):
        with pytest.raises(InvalidQuantityError) as exc:
            calculator.cost(flour, qty, "g")
        assert exc.value.ingredient_name == "Farinha de trigo"

    def test_unknown_unit_carries_ingredient(self, calculator, flour):
        with pytest.raises(UnknownUnitError) as exc:
            calculator.cost(flour, 1, "caixa")
        assert exc.value.ingredient_id == "ing-1"
        assert "Farinha de trigo" in str(exc.value)

    @pytest.mark.parametrize("cf", [0, -1.0, float("nan")])
    def test_invalid_correction_factor(self, calculator, flour, cf):
        with pytest.raises(InvalidQuantityError):
            calculator.cost(replace(flour, correction_factor=cf), 100, "g")


class TestLines:
    def test_build_line(self, calculator, flour):
        line = calculator.build_line(replace(flour, correction_factor=1.2), 250, "g")
        assert line.total_weight_grams == pytest.approx(300.0)
        assert line.total_cost == pytest.approx(3.0)
        assert line.cost_per_portion == pytest.approx(2.5)

    def test_registry_amount_use_unit(self, registry, flour):
        calc = IngredientCostCalculator(registry=registry)
        # "Xícara" is 120 g in the user's catalog (not the 160 g default)
        line = calc.build_line(flour, 2, "Xícara")
        assert line.total_weight_grams == pytest.approx(240.0)
        assert line.total_cost == pytest.approx(2.4)

    def test_ingredients_cost_sum(self, calculator, flour):
        items = [(flour, 250, "g"), (flour, 1, "kg"), (Ingredient(id="x", name="Sal"), 5, "g")]
        lines = [calculator.build_line(*item) for item in items]
        assert ingredients_cost(lines) == pytest.approx(12.5)

    def test_weigh_line_ignores_purchase_data(self, calculator, flour):
        unit_price = IngredientPrice(price=12.0, quantity=0, unit_measure="Unidade")
        broken = replace(flour, correction_factor=1.5, price=unit_price)
        line = calculator.weigh_line(broken, 100, "g")
        assert line.total_weight_grams == pytest.approx(150.0)
        assert line.total_cost == 0.0
        assert line.cost_per_portion is None

    def test_weigh_line_rejects_bad_recipe_unit(self, calculator, flour):
        with pytest.raises(UnknownUnitError) as exc:
            calculator.weigh_line(flour, 1, "caixa")
        assert exc.value.ingredient_id == "ing-1"

    def test_ingredients_cost_ignores_bad_values(self, calculator, flour):
        line = calculator.build_line(flour, 100, "g")
        bad = [replace(line, total_cost=float("nan")), replace(line, total_cost=-3.0), line]
        assert ingredients_cost(bad) == pytest.approx(1.0)
