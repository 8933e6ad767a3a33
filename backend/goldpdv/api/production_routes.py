"""Production API routes: BOM CRUD and production orders, proxied to the tenant backend."""
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from goldpdv.api.costing_routes import projection_display, run_projection
from goldpdv.api.deps import backend_http_error, get_api_client, require_api_session
from goldpdv.models.schemas import BomIn, BomLineIn, BomUpdateIn, ProductionOrderIn
from goldpdv.services import bom_service, production_service
from goldpdv.services.api_client import ApiClient, ApiSession, BackendError
from goldpdv.services.bom_service import BomRecord
from goldpdv.services.formatters import format_currency_or_dash
from goldpdv.services.production_engine import (
    build_production_order_payload,
    order_cost_breakdown,
)

router = APIRouter(prefix="/api/production", tags=["Production"])
logger = logging.getLogger("goldpdv-production.routes")


def _bom_out(record: BomRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        **asdict(record.bom),
        "totals": record.totals.as_dict(),
    }


# ---------------------------------------------------------------------------
# BOM
# ---------------------------------------------------------------------------

@router.get("/bom")
async def list_boms(
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> List[Dict[str, Any]]:
    try:
        records = await bom_service.list_boms(client, session)
    except BackendError as e:
        raise backend_http_error(e)
    return [_bom_out(r) for r in records]


@router.get("/bom/{bom_id}")
async def get_bom(
    bom_id: str,
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> Dict[str, Any]:
    try:
        record = await bom_service.get_bom(client, session, bom_id)
    except BackendError as e:
        raise backend_http_error(e)
    return _bom_out(record)


@router.post("/bom", status_code=201)
async def create_bom(
    payload: BomIn,
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> Dict[str, Any]:
    try:
        record = await bom_service.create_bom(client, session, payload.to_domain())
    except BackendError as e:
        raise backend_http_error(e)
    return _bom_out(record)


@router.patch("/bom/{bom_id}")
async def update_bom(
    bom_id: str,
    payload: BomUpdateIn,
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> Dict[str, Any]:
    try:
        record = await bom_service.update_bom(client, session, bom_id, payload.to_changes())
    except BackendError as e:
        raise backend_http_error(e)
    return _bom_out(record)


@router.delete("/bom/{bom_id}", status_code=204)
async def delete_bom(
    bom_id: str,
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> None:
    try:
        await bom_service.delete_bom(client, session, bom_id)
    except BackendError as e:
        raise backend_http_error(e)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

@router.get("/orders")
async def list_orders(
    external_code: Optional[str] = Query(None),
    product_code: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> List[Dict[str, Any]]:
    try:
        orders = await production_service.list_orders(
            client, session, external_code=external_code, product_code=product_code, status=status
        )
    except BackendError as e:
        raise backend_http_error(e)
    return [asdict(o) for o in orders]


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> Dict[str, Any]:
    try:
        order = await production_service.get_order(client, session, order_id)
    except BackendError as e:
        raise backend_http_error(e)
    return asdict(order)


@router.get("/orders/{order_id}/breakdown")
async def get_order_breakdown(
    order_id: str,
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> Dict[str, Any]:
    try:
        order = await production_service.get_order(client, session, order_id)
    except BackendError as e:
        raise backend_http_error(e)
    breakdown = order_cost_breakdown(order)
    values = breakdown.as_dict() if breakdown else None
    return {
        "order_id": order.id,
        "op": order.op,
        "breakdown": values,
        "display": {k: format_currency_or_dash(v) for k, v in values.items()} if values else None,
    }


async def _order_lines(payload: ProductionOrderIn, client: ApiClient, session: ApiSession) -> ProductionOrderIn:
    """Fill ``lines`` from the referenced BOM when the caller sent none."""
    if payload.lines or not payload.bom_id:
        return payload
    record = await bom_service.get_bom(client, session, payload.bom_id)
    lines = [
        BomLineIn(
            component_code=ln.component_code,
            description=ln.description,
            base_quantity=ln.base_quantity,
            unit_cost=ln.unit_cost,
            factor=ln.factor,
            percentage=ln.percentage,
        )
        for ln in record.bom.lines
    ]
    return payload.model_copy(update={"lines": lines})


@router.post("/orders/preview")
async def preview_order(
    payload: ProductionOrderIn,
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> Dict[str, Any]:
    """Projection and the body that would be saved; nothing is sent to the backend."""
    try:
        payload = await _order_lines(payload, client, session)
    except BackendError as e:
        raise backend_http_error(e)
    projection = run_projection(payload)
    return {
        "projection": projection.as_dict(),
        "display": projection_display(projection),
        "payload": build_production_order_payload(payload.to_draft(), projection, payload.extras.to_domain()),
    }


@router.post("/orders", status_code=201)
async def create_order(
    payload: ProductionOrderIn,
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> Dict[str, Any]:
    try:
        payload = await _order_lines(payload, client, session)
        projection = run_projection(payload)
        body = build_production_order_payload(payload.to_draft(), projection, payload.extras.to_domain())
        order = await production_service.create_order(client, session, body)
    except BackendError as e:
        raise backend_http_error(e)
    return asdict(order)
