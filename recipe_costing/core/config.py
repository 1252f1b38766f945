# recipe_costing/recipe_costing/core/config.py
from __future__ import annotations
import os
import logging

# Nutrient lookup cache (profiles are per ingredient name)
NUTRIENT_CACHE_TTL_SECONDS: float = float(os.getenv("NUTRIENT_CACHE_TTL_SECONDS", "300"))

# Mongo settings
MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB: str = os.getenv("MONGO_DB", "recipes")
MONGO_NUTRIENT_COL: str = os.getenv("MONGO_NUTRIENT_COL", "nutritional_tables")
MONGO_UNIT_MEASURE_COL: str = os.getenv("MONGO_UNIT_MEASURE_COL", "unit_measures")
MONGO_UNIT_AMOUNT_USE_COL: str = os.getenv("MONGO_UNIT_AMOUNT_USE_COL", "units_amount_use")

# Nutritional tables REST endpoint (optional; Mongo is used when empty)
NUTRITION_API_URL: str = os.getenv("NUTRITION_API_URL", "")
HTTP_TIMEOUT: float = float(os.getenv("HTTP_TIMEOUT", "10"))

# Global logging (module-level loggers inherit this)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
