# recipe_costing/recipe_costing/infrastructure/http_nutrient_client.py
from __future__ import annotations

import logging
from typing import Any, List, Optional

import requests

from recipe_costing.core.config import HTTP_TIMEOUT
from recipe_costing.domain.entities import NutrientProfile
from recipe_costing.domain.repositories import NutrientTableReadRepo

log = logging.getLogger("infra.http_nutrient_client")


class HttpNutrientTableClient(NutrientTableReadRepo):
    """GET {base_url}/v1/nutritional-tables?name=... (blocking; wrap in BlockingResolverAdapter)."""

    def __init__(self, base_url: str, timeout: float = HTTP_TIMEOUT, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def find_by_name(self, name: str, top_k: int = 5) -> List[NutrientProfile]:
        q = (name or "").strip()
        if not q:
            return []

        resp = self._session.get(
            f"{self.base_url}/v1/nutritional-tables",
            params={"name": q},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        payload: Any = resp.json()

        docs = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(docs, list):
            raise ValueError(f"Unexpected nutritional tables payload for {q!r}: {type(payload).__name__}")
        log.debug("nutritional tables name=%s candidates=%d", q, len(docs))
        return [NutrientProfile.from_document(d) for d in docs[:top_k] if isinstance(d, dict)]

    def close(self) -> None:
        self._session.close()
