from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, Optional, Tuple, Union

import anyio
import ujson as json
from pydantic import ValidationError
from pymongo import MongoClient
from dotenv import load_dotenv
load_dotenv()
from recipe_costing.core.config import (
    HTTP_TIMEOUT,
    MONGO_DB,
    MONGO_NUTRIENT_COL,
    MONGO_UNIT_AMOUNT_USE_COL,
    MONGO_UNIT_MEASURE_COL,
    MONGO_URI,
    NUTRITION_API_URL,
)
from recipe_costing.api.schemas import (
    CostingRequest,
    CostingResponse,
    MenuRequest,
    MenuResponse,
    NutritionRequest,
    NutritionResponse,
    UnitCatalogIn,
)
from recipe_costing.application.usecases import BuildNutritionLabel, CostMenu, CostRecipe, LoadUnitRegistry
from recipe_costing.domain.errors import CostingError
from recipe_costing.domain.repositories import NutrientProfileResolver
from recipe_costing.infrastructure.http_nutrient_client import HttpNutrientTableClient
from recipe_costing.infrastructure.mongo_repositories import MongoNutrientTableRepository, MongoUnitCatalogRepository
from recipe_costing.infrastructure.nutrient_cache import NutrientLookupCache
from recipe_costing.infrastructure.resolvers import BlockingResolverAdapter, StaticNutrientResolver, UnitCatalogLoader
from recipe_costing.services.nutrition import NutritionalScalingEngine
from recipe_costing.services.unit_registry import UnitNormalizationRegistry

log = logging.getLogger("app")


def _read_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _print_json(payload: Any, stream=None) -> None:
    (stream or sys.stdout).write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")


def _mongo() -> MongoClient:
    return MongoClient(MONGO_URI, serverSelectionTimeoutMS=3000)


async def _registry(units: Optional[UnitCatalogIn], loader: UnitCatalogLoader) -> Optional[UnitNormalizationRegistry]:
    if units is None:
        return None
    return await loader.load(units.to_source())


def _nutrient_resolver(
    req: NutritionRequest,
) -> Tuple[NutrientProfileResolver, Optional[Union[MongoClient, HttpNutrientTableClient]]]:
    """Inline tables > REST endpoint > Mongo collection. Also returns the client to close, if any."""
    if req.nutrient_tables:
        return StaticNutrientResolver(req.nutrient_profiles()), None
    if NUTRITION_API_URL:
        http = HttpNutrientTableClient(NUTRITION_API_URL, timeout=HTTP_TIMEOUT)
        return BlockingResolverAdapter(http), http
    client = _mongo()
    repo = MongoNutrientTableRepository(client[MONGO_DB][MONGO_NUTRIENT_COL])
    return BlockingResolverAdapter(repo), client


# ----------------------------
# Commands
# ----------------------------
async def run_costing(args: argparse.Namespace) -> Dict[str, Any]:
    req = CostingRequest.model_validate(_read_json(args.request))
    registry = await _registry(req.units, UnitCatalogLoader())

    out = CostRecipe()(
        req.recipe.to_domain(),
        [line.to_domain() for line in req.ingredients],
        req.financial.to_domain(),
        registry=registry,
        view=args.view or req.view,
        target_margin=args.target_margin if args.target_margin is not None else req.target_margin,
        target_markup=args.target_markup if args.target_markup is not None else req.target_markup,
    )
    return CostingResponse.model_validate(out).model_dump()


async def run_menu(args: argparse.Namespace) -> Dict[str, Any]:
    req = MenuRequest.model_validate(_read_json(args.request))
    registry = await _registry(req.units, UnitCatalogLoader())

    out = CostMenu()(
        req.name,
        [line.to_domain() for line in req.items],
        direct_costs_percentage=req.direct_costs_percentage,
        indirect_costs_percentage=req.indirect_costs_percentage,
        sell_price=args.sell_price if args.sell_price is not None else req.sell_price,
        registry=registry,
    )
    return MenuResponse.model_validate(out).model_dump()


async def run_nutrition(args: argparse.Namespace) -> Dict[str, Any]:
    req = NutritionRequest.model_validate(_read_json(args.request))
    registry = await _registry(req.units, UnitCatalogLoader())

    resolver, client = _nutrient_resolver(req)
    try:
        build_label = BuildNutritionLabel(NutritionalScalingEngine(NutrientLookupCache(resolver)))
        out = await build_label(
            req.recipe.to_domain(),
            [line.to_domain() for line in req.ingredients],
            registry=registry,
        )
    finally:
        if client is not None:
            client.close()
    return NutritionResponse.model_validate(out).model_dump()


async def run_units(args: argparse.Namespace) -> Dict[str, Any]:
    client = _mongo()
    try:
        db = client[MONGO_DB]
        source = MongoUnitCatalogRepository(
            db[MONGO_UNIT_MEASURE_COL], db[MONGO_UNIT_AMOUNT_USE_COL], user_id=args.user_id
        )
        return await LoadUnitRegistry(UnitCatalogLoader())(source)
    finally:
        client.close()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="recipe-costing", description="Recipe costing and nutrition label engine")
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("costing", help="cost/price/margin breakdown for a recipe request (JSON)")
    c.add_argument("request", help="path to the costing request JSON")
    c.add_argument("--view", choices=["total", "unit"], default=None)
    c.add_argument("--target-margin", type=float, default=None, help="suggest a price for this margin (%%)")
    c.add_argument("--target-markup", type=float, default=None, help="suggest a price for this markup (x)")
    c.set_defaults(handler=run_costing)

    m = sub.add_parser("menu", help="menu-level cost and margin for a list of items (JSON)")
    m.add_argument("request", help="path to the menu request JSON")
    m.add_argument("--sell-price", type=float, default=None, help="override the request's sell price")
    m.set_defaults(handler=run_menu)

    n = sub.add_parser("nutrition", help="per-serving nutrition label for a recipe request (JSON)")
    n.add_argument("request", help="path to the nutrition request JSON")
    n.set_defaults(handler=run_nutrition)

    u = sub.add_parser("units", help="normalized unit catalog and inconsistencies (MongoDB)")
    u.add_argument("--user-id", default=None)
    u.set_defaults(handler=run_units)
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        payload = anyio.run(args.handler, args)
    except CostingError as e:
        log.error("calculation failed: %s", e)
        _print_json(e.to_dict(), stream=sys.stderr)
        return 1
    except ValidationError as e:
        log.error("invalid request %s: %s", getattr(args, "request", "-"), e)
        return 2
    _print_json(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
