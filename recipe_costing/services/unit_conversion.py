# recipe_costing/recipe_costing/services/unit_conversion.py
from __future__ import annotations

import logging
import math
import re
import unicodedata
from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, List, Mapping, Optional, Tuple

from recipe_costing.domain.entities import Quantity
from recipe_costing.domain.errors import InvalidQuantityError, UnknownUnitError

log = logging.getLogger("app.unit_conversion")

MASS = "mass"
VOLUME = "volume"
CULINARY = "culinary"

_NON_ALNUM = re.compile(r"[^a-z0-9\s]+")
_LEADING_NUMBER = re.compile(r"^\s*(\d+\s*/\s*\d+|\d+(?:[.,]\d+)?)\s*")
_STOPWORDS = {"de", "do", "da", "of"}


# ----------------------------
# Unit table: normalized key -> (grams per unit, family)
# ----------------------------
_MASS_UNITS_TO_G: Dict[str, float] = {
    "g": 1.0,
    "gr": 1.0,
    "grama": 1.0,
    "gram": 1.0,
    "gramme": 1.0,
    "kg": 1000.0,
    "kilo": 1000.0,
    "quilo": 1000.0,
    "quilograma": 1000.0,
    "kilograma": 1000.0,
    "kilogram": 1000.0,
    "mg": 0.001,
    "miligrama": 0.001,
    "milligram": 0.001,
}
# volume is gram-equivalent: density of water (1 ml = 1 g)
_VOL_UNITS_TO_G: Dict[str, float] = {
    "ml": 1.0,
    "mililitro": 1.0,
    "milliliter": 1.0,
    "millilitre": 1.0,
    "l": 1000.0,
    "lt": 1000.0,
    "litro": 1000.0,
    "liter": 1000.0,
    "litre": 1000.0,
}
_CULINARY_UNITS_TO_G: Dict[str, float] = {
    "colher cha": 5.0,
    "c cha": 5.0,
    "colher sobremesa": 10.0,
    "c sobremesa": 10.0,
    "colher sopa": 15.0,
    "c sopa": 15.0,
    "xicara": 160.0,
    "xicara cha": 160.0,
    "copo": 240.0,
    "copo americano": 240.0,
    "pitada": 1.0,
    "dente": 3.0,
    "dente alho": 3.0,
    "punhado": 30.0,
}


# ----------------------------
# Normalization
# ----------------------------
def _strip_accents(text: str) -> str:
    text = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in text if unicodedata.category(ch) != "Mn")


def _singular(tok: str) -> str:
    if tok.endswith("eres"):
        return tok[:-2]  # colheres -> colher
    if len(tok) > 2 and tok.endswith("s"):
        return tok[:-1]
    return tok


def _parse_number(text: str) -> float:
    text = text.replace(" ", "")
    if "/" in text:
        try:
            return float(Fraction(text))
        except ZeroDivisionError:
            return 0.0
    return float(text.replace(",", "."))


@dataclass(frozen=True)
class ParsedUnit:
    quantity: float
    unit: str
    original: str


def parse_unit_string(text: str) -> ParsedUnit:
    """'2 colheres (sopa)' -> ParsedUnit(2.0, 'colheres (sopa)', ...). No leading number means 1."""
    clean = (text or "").strip()
    m = _LEADING_NUMBER.match(clean)
    if m:
        return ParsedUnit(quantity=_parse_number(m.group(1)), unit=clean[m.end():].strip(), original=clean)
    return ParsedUnit(quantity=1.0, unit=clean, original=clean)


def normalize_unit_text(unit: str) -> Tuple[float, str]:
    """
    "1 colher (chá)" -> (1.0, "colher cha"); "200gr" -> (200.0, "gr"); "Xícaras" -> (1.0, "xicara").
    The leading number (if any) is returned as a multiplier.
    """
    parsed = parse_unit_string(unit)
    text = _NON_ALNUM.sub(" ", _strip_accents(parsed.unit.lower()))
    toks = [_singular(t) for t in text.split() if t and t not in _STOPWORDS]
    return parsed.quantity, " ".join(toks)


def format_grams_display(grams: float) -> str:
    if grams >= 1000:
        return f"{grams / 1000:.1f} Quilogramas"
    return f"{grams:.1f} Gramas"


def _fmt(x: float) -> str:
    return f"{x:g}"


def _check_amount(amount: float, what: str = "amount") -> float:
    try:
        v = float(amount)
    except (TypeError, ValueError):
        raise InvalidQuantityError(f"{what} must be a number", value=amount) from None
    if not math.isfinite(v) or v < 0:
        raise InvalidQuantityError(f"{what} must be finite and >= 0", value=amount)
    return v


# ----------------------------
# Engine
# ----------------------------
class UnitConversionEngine:
    """
    Converts mass / volume / culinary quantities to grams (canonical base unit) and back.
    Unknown units raise UnknownUnitError; there is no 1:1 fallback.
    """

    def __init__(self, extra_units: Optional[Mapping[str, float]] = None) -> None:
        self._table: Dict[str, Tuple[float, str]] = {}
        for k, v in _MASS_UNITS_TO_G.items():
            self._table[k] = (v, MASS)
        for k, v in _VOL_UNITS_TO_G.items():
            self._table[k] = (v, VOLUME)
        for k, v in _CULINARY_UNITS_TO_G.items():
            self._table[k] = (v, CULINARY)
        for name, grams in (extra_units or {}).items():
            _, key = normalize_unit_text(name)
            if key:
                self._table[key] = (float(grams), CULINARY)

    def _lookup(self, unit: str) -> Optional[Tuple[float, str]]:
        if unit is None:
            return None
        multiplier, key = normalize_unit_text(str(unit))
        if not key:
            return None
        hit = self._table.get(key)
        if hit is None:
            # "Quilogramas (kg)": every recognised token must agree
            hits = {self._table[t] for t in key.split() if t in self._table}
            if len(hits) != 1:
                return None
            hit = hits.pop()
        factor, family = hit
        return factor * multiplier, family

    def resolve(self, unit: str) -> Tuple[float, str]:
        """(grams per unit, family) or UnknownUnitError."""
        hit = self._lookup(unit)
        if hit is None or hit[0] <= 0:
            log.debug("unresolved unit=%r", unit)
            raise UnknownUnitError(unit)
        return hit

    def is_supported(self, unit: str) -> bool:
        hit = self._lookup(unit)
        return hit is not None and hit[0] > 0

    def family(self, unit: str) -> str:
        return self.resolve(unit)[1]

    def to_grams(self, amount: float, unit: str) -> float:
        value = _check_amount(amount)
        factor, _ = self.resolve(unit)
        return value * factor

    def from_grams(self, grams: float, unit: str) -> float:
        value = _check_amount(grams, what="grams")
        factor, _ = self.resolve(unit)
        return value / factor

    def normalize(self, quantity: Quantity) -> Quantity:
        """Validated copy of `quantity` expressed in grams."""
        return Quantity(amount=self.to_grams(quantity.amount, quantity.unit), unit="g")

    def units(self, family: Optional[str] = None) -> List[str]:
        return sorted(k for k, (_, fam) in self._table.items() if family is None or fam == family)


def conversion_description(quantity: float, unit_measure: str, grams: float) -> str:
    if grams == quantity:
        return f"Kept: {_fmt(quantity)} {unit_measure}"
    return f"Converted: {_fmt(quantity)} {unit_measure} → {_fmt(grams)}g"
