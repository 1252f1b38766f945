"""
Pytest configuration and shared fixtures.

Async tests run on the asyncio backend through the anyio pytest plugin.
"""

from typing import Dict, List

import anyio
import pytest

from recipe_costing.domain.entities import (
    FinancialData,
    Ingredient,
    IngredientPrice,
    NutrientProfile,
    Recipe,
    UnitAmountUse,
    UnitMeasure,
)
from recipe_costing.domain.repositories import NutrientProfileResolver
from recipe_costing.services.unit_conversion import UnitConversionEngine
from recipe_costing.services.unit_registry import UnitNormalizationRegistry


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingResolver(NutrientProfileResolver):
    """
    In-memory resolver that counts calls.

    When `gate` is set, every find() waits for it, so concurrent callers pile up
    while the first lookup is still in flight.
    """

    def __init__(self, tables: Dict[str, NutrientProfile], fail: bool = False) -> None:
        self.tables = {k.lower(): v for k, v in tables.items()}
        self.fail = fail
        self.calls: List[str] = []
        self.gate = None

    async def find(self, ingredient_name: str) -> List[NutrientProfile]:
        self.calls.append(ingredient_name)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await anyio.sleep(0)
        if self.fail:
            raise ConnectionError("nutrition service unavailable")
        hit = self.tables.get(ingredient_name.strip().lower())
        return [hit] if hit else []


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def converter():
    return UnitConversionEngine()


@pytest.fixture
def flour():
    """Bought at 10 for 1000 g."""
    return Ingredient(
        id="ing-1",
        name="Farinha de trigo",
        category="Secos",
        price=IngredientPrice(price=10.0, quantity=1000.0, unit_measure="g", price_per_portion=1.0),
    )


@pytest.fixture
def carrot_profile():
    return NutrientProfile(name="Cenoura", energy_kcal=200.0, carbohydrate_g=10.0, protein_g=2.0, vitamin_c_mcg=5000.0)


@pytest.fixture
def base_units():
    return [
        UnitMeasure(id="u-g", name="Gramas", acronym="g"),
        UnitMeasure(id="u-kg", name="Quilogramas", acronym="kg"),
        UnitMeasure(id="u-ml", name="Mililitros", acronym="ml"),
        UnitMeasure(id="u-l", name="Litros", acronym="l"),
    ]


@pytest.fixture
def amount_use_units():
    return [
        UnitAmountUse(id="au-1", name="Colher de sopa", quantity="15", unit_measure="Gramas"),
        UnitAmountUse(id="au-2", name="Xícara", quantity="120", unit_measure="gramas"),
        UnitAmountUse(id="au-3", name="Pacote 5kg", quantity="5", unit_measure="Gramas"),
        UnitAmountUse(id="au-4", name="Grama", quantity="1", unit_measure=""),
        UnitAmountUse(id="au-5", name="Lata", quantity="1", unit_measure="Unidade"),
    ]


@pytest.fixture
def registry(amount_use_units, base_units, converter):
    return UnitNormalizationRegistry(amount_use_units, base_units, converter=converter)


@pytest.fixture
def financial_data():
    return FinancialData(total_sale_price=100.0, unit_sale_price=10.0, total_yield=10.0)


@pytest.fixture
def recipe():
    return Recipe(id="r-1", name="Bolo de cenoura", yield_recipe="4")
