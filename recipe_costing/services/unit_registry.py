# recipe_costing/recipe_costing/services/unit_registry.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from recipe_costing.domain.entities import (
    AMOUNT_USE,
    BASE_UNIT,
    NormalizedUnit,
    UnitAmountUse,
    UnitInconsistency,
    UnitMeasure,
)
from recipe_costing.domain.errors import UNIT_INCONSISTENCY, CalculationWarning
from recipe_costing.services.unit_conversion import CULINARY, UnitConversionEngine, normalize_unit_text

log = logging.getLogger("app.unit_registry")

# (name fragment, accepted base-unit fragments, suggested base unit, what the name suggests)
_NAME_HINTS = (
    ("gr", ("gram",), "Gramas", "gramas"),
    ("kg", ("kilograma", "quilograma"), "Quilogramas", "quilogramas"),
    ("ml", ("mililitro",), "Mililitros", "mililitros"),
    ("litro", ("litro",), "Litros", "litros"),
)


def _match_base_unit(unit: UnitAmountUse, base_units: Sequence[UnitMeasure]) -> Optional[UnitMeasure]:
    """
    1) exact (case-insensitive) match of unit_measure against base-unit names
    2) substring fallback between the amount-use name and a base-unit name
    The fallback is heuristic ("Grama" also matches "Quilograma"); see inconsistencies().
    """
    wanted = (unit.unit_measure or "").strip().lower()
    if wanted:
        for b in base_units:
            if b.name.strip().lower() == wanted:
                return b

    name = (unit.name or "").strip().lower()
    if not name:
        return None
    for b in base_units:
        key = b.name.strip().lower()
        if not key:
            continue
        if key in name or name in key:
            return b
    return None


class UnitNormalizationRegistry:
    """Merged lookup over user amount-of-use units and the base-unit catalog."""

    def __init__(
        self,
        amount_use_units: Sequence[UnitAmountUse],
        base_units: Sequence[UnitMeasure],
        converter: Optional[UnitConversionEngine] = None,
    ) -> None:
        self.amount_use_units: List[UnitAmountUse] = list(amount_use_units)
        self.base_units: List[UnitMeasure] = list(base_units)
        self.converter = converter or UnitConversionEngine()
        self.units: List[NormalizedUnit] = self._normalize()
        self._by_name: Dict[str, NormalizedUnit] = {}
        for u in self.units:
            self._by_name.setdefault(u.name.strip().lower(), u)
        self._by_id: Dict[str, NormalizedUnit] = {}
        for u in self.units:
            self._by_id.setdefault(u.id, u)

    def _normalize(self) -> List[NormalizedUnit]:
        out: List[NormalizedUnit] = []
        for u in self.amount_use_units:
            base = _match_base_unit(u, self.base_units)
            out.append(
                NormalizedUnit(
                    id=u.id,
                    name=u.name,
                    type=AMOUNT_USE,
                    acronym=base.acronym if base else None,
                    quantity=u.quantity,
                    base_unit_id=base.id if base else None,
                    base_unit_name=base.name if base else (u.unit_measure or None),
                )
            )
        for b in self.base_units:
            out.append(NormalizedUnit(id=b.id, name=b.name, type=BASE_UNIT, acronym=b.acronym))
        return out

    def find_by_name(self, name: str) -> Optional[NormalizedUnit]:
        return self._by_name.get((name or "").strip().lower())

    def find_by_id(self, unit_id: str) -> Optional[NormalizedUnit]:
        return self._by_id.get(unit_id)

    def validate_unit_consistency(self, unit_name: str, expected_unit: str) -> bool:
        unit = self.find_by_name(unit_name)
        if unit is None:
            return False
        return unit.base_unit_name == expected_unit or unit.name == expected_unit

    def grams_per_unit(self, unit_name: str) -> float:
        """
        Grams represented by one amount-of-use unit ("Colher de sopa" with quantity "15" in "Gramas").
        Base units and unmapped names go straight through the converter.
        """
        unit = self.find_by_name(unit_name)
        if unit is None or unit.type == BASE_UNIT or not unit.base_unit_name:
            return self.converter.to_grams(1, unit_name)
        qty = (unit.quantity or "").strip()
        if not qty:
            return self.converter.to_grams(1, unit.base_unit_name)
        return self.converter.to_grams(1, f"{qty} {unit.base_unit_name}")

    def _scale_mismatch(self, unit: NormalizedUnit) -> bool:
        """Names that are themselves mass/volume units must agree with their base unit's scale."""
        if not unit.base_unit_name:
            return False
        _, key = normalize_unit_text(unit.name)
        if not key or not self.converter.is_supported(key) or not self.converter.is_supported(unit.base_unit_name):
            return False
        name_factor, family = self.converter.resolve(key)
        if family == CULINARY:
            return False
        return name_factor != self.converter.resolve(unit.base_unit_name)[0]

    def inconsistencies(self) -> List[UnitInconsistency]:
        issues: List[UnitInconsistency] = []
        for unit in self.units:
            if unit.type != AMOUNT_USE:
                continue
            name_l = unit.name.lower()
            base_l = (unit.base_unit_name or "").lower()

            for fragment, accepted, suggested, suggests in _NAME_HINTS:
                if fragment in name_l and not any(a in base_l for a in accepted):
                    issues.append(
                        UnitInconsistency(
                            unit=unit,
                            issue=f'Unit "{unit.name}" suggests {suggests} but is mapped to "{unit.base_unit_name}"',
                            severity="warning",
                            suggestion=f'Should be mapped to "{suggested}"',
                        )
                    )

            flagged = any(i.unit is unit for i in issues)
            if not flagged and self._scale_mismatch(unit):
                issues.append(
                    UnitInconsistency(
                        unit=unit,
                        issue=f'Unit "{unit.name}" and its base unit "{unit.base_unit_name}" have different scales',
                        severity="warning",
                        suggestion=f'Check whether "{unit.name}" should map to another base unit',
                    )
                )

            if unit.base_unit_name and not self.converter.is_supported(unit.base_unit_name):
                issues.append(
                    UnitInconsistency(
                        unit=unit,
                        issue=f'Base unit "{unit.base_unit_name}" of "{unit.name}" cannot be converted to grams',
                        severity="error",
                        suggestion="Map it to a mass or volume base unit",
                    )
                )

        for i in issues:
            log.warning("unit inconsistency unit=%s issue=%s", i.unit.name, i.issue)
        return issues

    def warnings(self, issues: Optional[List[UnitInconsistency]] = None) -> List[CalculationWarning]:
        if issues is None:
            issues = self.inconsistencies()
        return [
            CalculationWarning(
                kind=UNIT_INCONSISTENCY,
                message=i.issue,
                context={"unit_id": i.unit.id, "unit": i.unit.name, "severity": i.severity, "suggestion": i.suggestion},
            )
            for i in issues
        ]
