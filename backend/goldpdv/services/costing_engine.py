"""
Costing Engine: bill-of-materials cost totals for GoldPDV formulas.

Covers:
  - Factor resolution (explicit factor, legacy percentage, default 1)
  - Line costing with a fixed 3-decimal rounding policy
  - BOM rollup: ingredient cost, legacy display breakdown, unit cost, margin

Every BOM screen, service mapper and route computes totals through
calculate_bom_totals(); derived totals are never read back from the backend.
"""

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from goldpdv.config import (
    DEFAULT_BOM_VERSION,
    LEGACY_LABOR_PCT,
    LEGACY_OVERHEAD_PCT,
    LEGACY_PACKAGING_PCT,
    LEGACY_TAXES_PCT,
    MIN_LOT_SIZE,
    QUANTITY_DECIMALS,
)

logger = logging.getLogger("goldpdv-costing")


@dataclass
class BomLine:
    component_code: str
    base_quantity: float
    unit_cost: float
    description: str = ""
    factor: Optional[float] = None        # fraction, 0.5 = 50 %
    percentage: Optional[float] = None    # legacy column, 50 = 50 %


@dataclass
class BillOfMaterials:
    product_code: str
    lines: List[BomLine] = field(default_factory=list)
    version: str = DEFAULT_BOM_VERSION
    lot_size: float = 1.0
    validity_days: int = 0
    margin_target: float = 0.0
    notes: str = ""

    @property
    def effective_lot_size(self) -> float:
        """Lot size clamped to at least 1."""
        return max(self.lot_size or 0, MIN_LOT_SIZE)


@dataclass
class BomTotals:
    ingredients: float = 0.0
    labor: float = 0.0
    packaging: float = 0.0
    taxes: float = 0.0
    overhead: float = 0.0
    total: float = 0.0
    unit: float = 0.0
    margin_achieved: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "ingredients": self.ingredients,
            "labor": self.labor,
            "packaging": self.packaging,
            "taxes": self.taxes,
            "overhead": self.overhead,
            "total": self.total,
            "unit": self.unit,
            "margin_achieved": self.margin_achieved,
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def round_half_up(value: float, places: int = QUANTITY_DECIMALS) -> float:
    """
    Round the exact binary value of ``value`` to ``places`` decimals, ties away
    from zero. Non-finite input resolves to 0.0.
    """
    if not _is_number(value):
        return 0.0
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def resolve_factor(line: BomLine) -> float:
    """Explicit factor wins, then the legacy percentage (/100), then 1."""
    if _is_number(line.factor):
        return float(line.factor)
    if _is_number(line.percentage):
        return float(line.percentage) / 100.0
    return 1.0


def calculate_line_cost(base_quantity: float, factor: float, unit_cost: float) -> float:
    """
    Cost of one BOM line.

        qty       = round3(base_quantity)
        factor    = round3(factor)
        effective = round3(qty * factor)
        cost      = round3(effective * round3(unit_cost))
    """
    qty = round_half_up(base_quantity)
    normalized_factor = round_half_up(factor)
    effective_qty = round_half_up(qty * normalized_factor)
    return round_half_up(effective_qty * round_half_up(unit_cost))


def calculate_bom_totals(bom: BillOfMaterials) -> BomTotals:
    """
    Aggregate ingredient cost, legacy breakdown and achieved margin of a BOM.

    ``total`` and ``unit`` both equal the ingredient cost. ``unit`` is a
    per-lot figure, not divided by lot size; margin_achieved depends on it.
    """
    ingredients = 0.0
    for line in bom.lines:
        ingredients += calculate_line_cost(line.base_quantity, resolve_factor(line), line.unit_cost)

    total = ingredients
    # TODO: switch to total / bom.effective_lot_size once the per-unit meaning is confirmed with finance
    unit = total

    margin_target = bom.margin_target if _is_number(bom.margin_target) else 0.0
    margin_achieved = ((margin_target - unit) / margin_target) * 100 if margin_target > 0 else 0.0

    totals = BomTotals(
        ingredients=ingredients,
        labor=ingredients * LEGACY_LABOR_PCT,
        packaging=ingredients * LEGACY_PACKAGING_PCT,
        taxes=ingredients * LEGACY_TAXES_PCT,
        overhead=ingredients * LEGACY_OVERHEAD_PCT,
        total=total,
        unit=unit,
        margin_achieved=margin_achieved,
    )
    logger.debug(
        "bom totals computed",
        extra={"product_code": bom.product_code, "lines": len(bom.lines), "ingredients": ingredients},
    )
    return totals
