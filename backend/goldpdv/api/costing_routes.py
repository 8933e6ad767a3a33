"""Costing API routes: stateless BOM totals, line cost and production projection."""
import logging
from typing import Any, Dict

from fastapi import APIRouter

from goldpdv.models.schemas import BomIn, LineCostIn, ProjectionIn
from goldpdv.services.costing_engine import calculate_bom_totals, calculate_line_cost
from goldpdv.services.formatters import format_currency, format_currency_2, format_unit_cost
from goldpdv.services.production_engine import (
    ProductionCostProjection,
    project_production_cost,
)

router = APIRouter(prefix="/api/costing", tags=["Costing"])
logger = logging.getLogger("goldpdv-costing.routes")


def projection_display(projection: ProductionCostProjection) -> Dict[str, str]:
    """Operator-facing strings; unit figures read "--" while the quantity is zero."""
    has_qty = projection.has_quantity
    return {
        "base_production_cost": format_currency_2(projection.base_production_cost),
        "production_unit_cost": format_unit_cost(projection.production_unit_cost, has_qty),
        "total_cost_with_extras": format_currency_2(projection.total_cost_with_extras),
        "unit_cost_with_extras": format_unit_cost(projection.unit_cost_with_extras, has_qty),
        "sale_price_per_unit": format_currency(projection.sale_price_per_unit),
        "revenue_total": format_currency_2(projection.revenue_total),
        "post_sale_tax_value": format_currency_2(projection.post_sale_tax_value),
        "profit_total": format_currency_2(projection.profit_total),
    }


def run_projection(payload: ProjectionIn) -> ProductionCostProjection:
    return project_production_cost(
        [line.to_domain() for line in payload.lines],
        payload.quantity_planned,
        extras=payload.extras.to_domain(),
        anchor=payload.price.to_domain() if payload.price else None,
        extra_materials=[extra.to_domain() for extra in payload.extra_materials],
    )


@router.post("/bom-totals")
async def bom_totals(payload: BomIn) -> Dict[str, Any]:
    totals = calculate_bom_totals(payload.to_domain())
    return {
        "product_code": payload.product_code,
        "version": payload.version,
        "totals": totals.as_dict(),
        "display": {
            "total": format_currency_2(totals.total),
            "unit": format_currency(totals.unit),
        },
    }


@router.post("/line-cost")
async def line_cost(payload: LineCostIn) -> Dict[str, float]:
    return {"line_cost": calculate_line_cost(payload.base_quantity, payload.factor, payload.unit_cost)}


@router.post("/production-projection")
async def production_projection(payload: ProjectionIn) -> Dict[str, Any]:
    projection = run_projection(payload)
    return {
        "projection": projection.as_dict(),
        "display": projection_display(projection),
    }
