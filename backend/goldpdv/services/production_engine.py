"""
Production Engine: cost projection for production orders (OP).

Covers:
  - Scaling BOM formula lines by the planned quantity
  - Extra materials added directly to an order (not scaled from the formula)
  - Packaging and extra-labour costs on top of the formula cost
  - Sale price <-> markup link anchored on whichever field the operator edited
  - Revenue, post-sale tax, net revenue and profit
  - Save payload for the backend and the order-detail cost breakdown

Division by a zero planned quantity never raises and never yields NaN or
Infinity: per-unit figures resolve to 0.0 and are shown as "--".
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence, Union

from goldpdv.config import (
    DEFAULT_UNIT,
    DEFAULT_VALIDITY_DAYS,
    LEGACY_LABOR_PCT,
    LEGACY_OVERHEAD_PCT,
    LEGACY_PACKAGING_PCT,
    LEGACY_TAXES_PCT,
)
from goldpdv.models.production import (
    BomTotalsSnapshot,
    CostBreakdown,
    OrderBomItem,
    OrderRawMaterial,
    ProductionOrder,
    ProductionOrderDraft,
)
from goldpdv.services.costing_engine import BomLine
from goldpdv.services.record_normalizer import sanitize_notes, sanitize_number

logger = logging.getLogger("goldpdv-production")

PriceMode = Literal["markup", "price"]


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass
class ExtraMaterial:
    """Component added to one order only; bypasses the BOM formula."""
    component_code: str
    unit_cost: float
    description: str = ""
    planned_quantity: Optional[float] = None   # operator-entered, else 1 × quantity planned


@dataclass
class PlannedLine:
    component_code: str
    description: str
    base_quantity: float
    unit_cost: float
    planned_quantity: float
    planned_cost: float
    is_extra: bool = False


@dataclass
class ProductionExtras:
    boxes_qty: float = 0.0
    box_cost: float = 0.0
    labor_per_unit: float = 0.0
    post_sale_tax_percent: float = 0.0


@dataclass(frozen=True)
class PriceAnchor:
    """The price field the operator last edited; the other one is always derived."""
    mode: PriceMode
    value: float

    @classmethod
    def by_markup(cls, markup_percent: float) -> "PriceAnchor":
        return cls(mode="markup", value=sanitize_number(markup_percent))

    @classmethod
    def by_price(cls, sale_price: float) -> "PriceAnchor":
        return cls(mode="price", value=sanitize_number(sale_price))


@dataclass
class ProductionCostProjection:
    quantity_planned: float
    lines: List[PlannedLine] = field(default_factory=list)
    total_quantity: float = 0.0
    base_production_cost: float = 0.0
    production_unit_cost: float = 0.0
    packaging_cost: float = 0.0
    extra_labor_cost: float = 0.0
    total_cost_with_extras: float = 0.0
    unit_cost_with_extras: float = 0.0
    sale_price_per_unit: float = 0.0
    markup_percent: float = 0.0
    revenue_total: float = 0.0
    post_sale_tax_value: float = 0.0
    net_revenue_total: float = 0.0
    profit_total: float = 0.0

    @property
    def has_quantity(self) -> bool:
        return self.quantity_planned > 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "quantity_planned": self.quantity_planned,
            "lines": [
                {
                    "component_code": ln.component_code,
                    "description": ln.description,
                    "base_quantity": ln.base_quantity,
                    "unit_cost": ln.unit_cost,
                    "planned_quantity": ln.planned_quantity,
                    "planned_cost": ln.planned_cost,
                    "is_extra": ln.is_extra,
                }
                for ln in self.lines
            ],
            "total_quantity": self.total_quantity,
            "base_production_cost": self.base_production_cost,
            "production_unit_cost": self.production_unit_cost,
            "packaging_cost": self.packaging_cost,
            "extra_labor_cost": self.extra_labor_cost,
            "total_cost_with_extras": self.total_cost_with_extras,
            "unit_cost_with_extras": self.unit_cost_with_extras,
            "sale_price_per_unit": self.sale_price_per_unit,
            "markup_percent": self.markup_percent,
            "revenue_total": self.revenue_total,
            "post_sale_tax_value": self.post_sale_tax_value,
            "net_revenue_total": self.net_revenue_total,
            "profit_total": self.profit_total,
        }


# ---------------------------------------------------------------------------
# Markup <-> sale price
# ---------------------------------------------------------------------------

def sale_price_from_markup(unit_cost: float, markup_percent: float) -> float:
    return unit_cost * (1.0 + markup_percent / 100.0)


def markup_from_sale_price(unit_cost: float, sale_price: float) -> float:
    if unit_cost <= 0:
        return 0.0
    return ((sale_price - unit_cost) / unit_cost) * 100.0


def resolve_price_pair(unit_cost: float, anchor: Optional[PriceAnchor]) -> tuple:
    """Return ``(sale_price, markup_percent)`` for the current unit cost."""
    if anchor is None:
        return 0.0, 0.0
    if anchor.mode == "markup":
        return sale_price_from_markup(unit_cost, anchor.value), anchor.value
    return anchor.value, markup_from_sale_price(unit_cost, anchor.value)


class PriceMarkupLink:
    """
    Keeps sale price and markup consistent while an operator edits either one.

    Only the anchored field holds operator input. The other is recomputed
    from the current unit cost on every read, so a change in quantity,
    extras or BOM lines (``update_unit_cost``) can never leave it stale.
    """

    def __init__(self, unit_cost: float = 0.0, anchor: Optional[PriceAnchor] = None) -> None:
        self.unit_cost: float = sanitize_number(unit_cost)
        self.anchor: Optional[PriceAnchor] = anchor

    def edit_markup(self, markup_percent: float) -> None:
        self.anchor = PriceAnchor.by_markup(markup_percent)

    def edit_sale_price(self, sale_price: float) -> None:
        self.anchor = PriceAnchor.by_price(sale_price)

    def update_unit_cost(self, unit_cost: float) -> None:
        self.unit_cost = sanitize_number(unit_cost)

    @property
    def sale_price(self) -> float:
        return resolve_price_pair(self.unit_cost, self.anchor)[0]

    @property
    def markup(self) -> float:
        return resolve_price_pair(self.unit_cost, self.anchor)[1]


# ---------------------------------------------------------------------------
# Scaling
# ---------------------------------------------------------------------------

def scale_bom_lines(
    lines: Iterable[BomLine],
    quantity_planned: float,
    extra_materials: Optional[Iterable[ExtraMaterial]] = None,
) -> List[PlannedLine]:
    """
    Formula lines:  planned = base_quantity × quantity_planned
    Extra lines:    planned = operator value, else 1 × quantity_planned
    Lines without a component code are skipped.
    """
    multiplier = sanitize_number(quantity_planned)
    planned: List[PlannedLine] = []

    for line in lines:
        if not line.component_code:
            continue
        base_qty = sanitize_number(line.base_quantity)
        unit_cost = sanitize_number(line.unit_cost)
        planned_qty = base_qty * multiplier
        planned.append(PlannedLine(
            component_code=line.component_code,
            description=line.description,
            base_quantity=base_qty,
            unit_cost=unit_cost,
            planned_quantity=planned_qty,
            planned_cost=planned_qty * unit_cost,
        ))

    for extra in extra_materials or []:
        if not extra.component_code:
            continue
        unit_cost = sanitize_number(extra.unit_cost)
        if extra.planned_quantity is None:
            planned_qty = 1.0 * multiplier
        else:
            planned_qty = sanitize_number(extra.planned_quantity)
        planned.append(PlannedLine(
            component_code=extra.component_code,
            description=extra.description,
            base_quantity=1.0,
            unit_cost=unit_cost,
            planned_quantity=planned_qty,
            planned_cost=planned_qty * unit_cost,
            is_extra=True,
        ))

    return planned


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

def project_production_cost(
    lines: Iterable[BomLine],
    quantity_planned: float,
    extras: Optional[ProductionExtras] = None,
    anchor: Optional[PriceAnchor] = None,
    extra_materials: Optional[Iterable[ExtraMaterial]] = None,
) -> ProductionCostProjection:
    """
    Full cost / price / profit breakdown for an order of ``quantity_planned``.

        production_unit_cost = base_production_cost / qty
        total_with_extras    = production_unit_cost × qty + boxes × box_cost + labor × qty
        unit_with_extras     = total_with_extras / qty
        revenue              = sale_price × qty
        profit               = revenue − (total_with_extras + post_sale_tax)
    """
    extras = extras or ProductionExtras()
    qty = sanitize_number(quantity_planned)
    planned = scale_bom_lines(lines, qty, extra_materials)

    base_cost = sum(ln.planned_cost for ln in planned)
    total_quantity = sum(ln.planned_quantity for ln in planned)

    packaging_cost = sanitize_number(extras.boxes_qty) * sanitize_number(extras.box_cost)
    extra_labor_cost = sanitize_number(extras.labor_per_unit) * qty

    if qty > 0:
        production_unit_cost = base_cost / qty
    else:
        production_unit_cost = 0.0
        if planned:
            logger.info("planned quantity is zero; unit costs reported as 0")

    total_with_extras = production_unit_cost * qty + packaging_cost + extra_labor_cost
    unit_with_extras = total_with_extras / qty if qty > 0 else 0.0

    sale_price, markup = resolve_price_pair(unit_with_extras, anchor)
    if not math.isfinite(sale_price):
        sale_price = 0.0

    revenue = sale_price * qty
    tax_value = revenue * (sanitize_number(extras.post_sale_tax_percent) / 100.0)

    return ProductionCostProjection(
        quantity_planned=qty,
        lines=planned,
        total_quantity=total_quantity,
        base_production_cost=base_cost,
        production_unit_cost=production_unit_cost,
        packaging_cost=packaging_cost,
        extra_labor_cost=extra_labor_cost,
        total_cost_with_extras=total_with_extras,
        unit_cost_with_extras=unit_with_extras,
        sale_price_per_unit=sale_price,
        markup_percent=markup,
        revenue_total=revenue,
        post_sale_tax_value=tax_value,
        net_revenue_total=revenue - tax_value,
        profit_total=revenue - (total_with_extras + tax_value),
    )


# ---------------------------------------------------------------------------
# Order form helpers
# ---------------------------------------------------------------------------

def boxes_for_packaging(quantity_planned: float, packaging_qty: float) -> Optional[float]:
    """
    Boxes needed for ``quantity_planned`` units packed ``packaging_qty`` per box.
    A packaging quantity of 1 or less is taken as the box count itself.
    None when the product has no packaging quantity configured.
    """
    per_box = sanitize_number(packaging_qty)
    if per_box <= 0:
        return None
    if per_box <= 1:
        return per_box
    return sanitize_number(quantity_planned) / per_box


def default_validity_date(
    start_date: Union[str, date, None],
    days: int = DEFAULT_VALIDITY_DAYS,
) -> Optional[str]:
    if not start_date:
        return None
    if isinstance(start_date, datetime):
        start = start_date.date()
    elif isinstance(start_date, date):
        start = start_date
    else:
        try:
            start = date.fromisoformat(str(start_date)[:10])
        except ValueError:
            logger.warning("unparseable order start date %r", start_date)
            return None
    return (start + timedelta(days=days)).isoformat()


def build_production_order_payload(
    draft: ProductionOrderDraft,
    projection: ProductionCostProjection,
    extras: Optional[ProductionExtras] = None,
) -> Dict[str, Any]:
    """Backend save body for a new order; raw materials come from the scaled lines."""
    extras = extras or ProductionExtras()

    return {
        "external_code": (draft.external_code or "").strip(),
        "product_code": draft.product_code,
        "quantity_planned": projection.quantity_planned,
        "unit": draft.unit or DEFAULT_UNIT,
        "start_date": draft.start_date,
        "due_date": draft.due_date,
        "notes": sanitize_notes((draft.notes or "").strip()) or "",
        "bom_id": draft.bom_id or "",
        "lote": draft.lote,
        "validate": draft.custom_validate_date or default_validity_date(draft.start_date),
        "custom_validate_date": draft.custom_validate_date,
        "author_user": draft.author_user,
        "boxes_qty": sanitize_number(extras.boxes_qty),
        "box_cost": sanitize_number(extras.box_cost),
        "labor_per_unit": sanitize_number(extras.labor_per_unit),
        "sale_price": sanitize_number(projection.sale_price_per_unit),
        "markup": sanitize_number(projection.markup_percent),
        "post_sale_tax": sanitize_number(extras.post_sale_tax_percent),
        "total_cost": sanitize_number(projection.total_cost_with_extras),
        "unit_cost": sanitize_number(projection.unit_cost_with_extras),
        "raw_materials": [
            {
                "component_code": ln.component_code,
                "description": ln.description or "",
                "quantity_used": sanitize_number(ln.planned_quantity),
                "planned_quantity": projection.quantity_planned,
                "unit": DEFAULT_UNIT,
                "unit_cost": sanitize_number(ln.unit_cost),
                "planned_cost": sanitize_number(ln.planned_cost),
            }
            for ln in projection.lines
        ],
    }


# ---------------------------------------------------------------------------
# Order detail breakdown
# ---------------------------------------------------------------------------

def _line_planned_cost(item: Union[OrderBomItem, OrderRawMaterial]) -> float:
    if item.planned_cost is not None:
        return sanitize_number(item.planned_cost)
    quantity = item.planned_quantity
    if quantity is None:
        quantity = getattr(item, "quantity_used", None) or item.quantity or 0.0
    return sanitize_number(item.unit_cost or 0.0) * sanitize_number(quantity)


def resolve_cost_breakdown(
    *,
    sale_price: float = 0.0,
    quantity_planned: float = 0.0,
    post_sale_tax_percent: float = 0.0,
    stored: Optional[CostBreakdown] = None,
    bom_totals: Optional[BomTotalsSnapshot] = None,
    cost_lines: Sequence[Union[OrderBomItem, OrderRawMaterial]] = (),
) -> Optional[CostBreakdown]:
    """
    Breakdown shown on the order detail panel, from the best source available:

      1. the breakdown stored by the backend
      2. the backend BOM totals, legacy percentages filling gaps
      3. the summed planned cost of the order lines, legacy percentages

    Taxes are recomputed as sale_price × qty × post_sale_tax% whenever both
    price and quantity are positive.
    """
    price = sanitize_number(sale_price)
    qty = sanitize_number(quantity_planned)
    tax_pct = sanitize_number(post_sale_tax_percent)

    def _taxes(fallback: float) -> float:
        if price > 0 and qty > 0:
            return price * qty * (tax_pct / 100.0)
        return fallback

    if stored is not None:
        return CostBreakdown(
            ingredients=stored.ingredients,
            labor=stored.labor,
            packaging=stored.packaging,
            taxes=_taxes(stored.taxes),
            overhead=stored.overhead,
        )

    if bom_totals is not None:
        ingredients = bom_totals.ingredients
        if ingredients is None:
            ingredients = bom_totals.total_cost if bom_totals.total_cost is not None else 0.0

        def _or_legacy(value: Optional[float], pct: float) -> float:
            return value if value is not None else ingredients * pct

        return CostBreakdown(
            ingredients=ingredients,
            labor=_or_legacy(bom_totals.labor, LEGACY_LABOR_PCT),
            packaging=_or_legacy(bom_totals.packaging, LEGACY_PACKAGING_PCT),
            taxes=_taxes(_or_legacy(bom_totals.taxes, LEGACY_TAXES_PCT)),
            overhead=_or_legacy(bom_totals.overhead, LEGACY_OVERHEAD_PCT),
        )

    if not cost_lines:
        return None

    ingredients = sum(_line_planned_cost(item) for item in cost_lines)
    return CostBreakdown(
        ingredients=ingredients,
        labor=ingredients * LEGACY_LABOR_PCT,
        packaging=ingredients * LEGACY_PACKAGING_PCT,
        taxes=_taxes(ingredients * LEGACY_TAXES_PCT),
        overhead=ingredients * LEGACY_OVERHEAD_PCT,
    )


def order_cost_breakdown(order: ProductionOrder) -> Optional[CostBreakdown]:
    """Breakdown of a saved order; BOM items are preferred over raw materials as cost lines."""
    return resolve_cost_breakdown(
        sale_price=order.sale_price,
        quantity_planned=order.quantity_planned,
        post_sale_tax_percent=order.post_sale_tax,
        stored=order.cost_breakdown,
        bom_totals=order.bom_totals,
        cost_lines=order.bom_items or order.raw_materials,
    )
