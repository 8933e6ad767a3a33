"""
Production service: production orders (OP) and their sub-resources on the
tenant backend: status events, raw-material issues, finished goods.

Order records are normalized into goldpdv.models.production dataclasses.
Costs shown on an order come from production_engine; nothing here computes.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from goldpdv.config import DEFAULT_PRODUCTION_STATUS, DEFAULT_UNIT
from goldpdv.models.production import (
    BomTotalsSnapshot,
    CostBreakdown,
    OrderBomItem,
    OrderFinishedGood,
    OrderRawMaterial,
    ProductionOrder,
    ReferenceBom,
    StatusEvent,
)
from goldpdv.services.api_client import ApiClient, ApiSession
from goldpdv.services.record_normalizer import (
    Record,
    get_number,
    get_optional_number,
    get_optional_string,
    get_string,
    sanitize_notes,
)

logger = logging.getLogger("goldpdv-production.service")

ORDERS_ENDPOINT = "/production/orders"

_PRODUCT_NAME_KEYS = [
    "product_name", "productName", "product", "product_description",
    "productDescription", "deitem", "description", "nomeproduto",
]
_BREAKDOWN_KEYS = ["ingredients", "labor", "packaging", "taxes", "overhead"]


# ---------------------------------------------------------------------------
# Request payload types
# ---------------------------------------------------------------------------

@dataclass
class StatusRegistration:
    status: str
    responsible: str
    event_time: Optional[str] = None
    remarks: Optional[str] = None


@dataclass
class RawMaterialIssueItem:
    component_code: str
    quantity_used: float
    unit: str = DEFAULT_UNIT
    unit_cost: Optional[float] = None
    warehouse: Optional[str] = None
    batch_number: Optional[str] = None
    consumed_at: Optional[str] = None
    description: Optional[str] = None


@dataclass
class RawMaterialIssue:
    raw_materials: List[RawMaterialIssueItem] = field(default_factory=list)
    warehouse: Optional[str] = None
    user: Optional[str] = None
    responsible: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class OrderCompletion:
    quantity: str                    # numeric strings, as the backend expects
    warehouse: str
    product_code: Optional[str] = None
    unit_cost: Optional[str] = None
    lot_number: Optional[str] = None
    posted_at: Optional[str] = None
    user: Optional[str] = None
    responsible: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class FinishedGoodEntry:
    product_code: str
    quantity_good: float
    quantity_scrap: float = 0.0
    lot_number: Optional[str] = None
    unit_cost: Optional[float] = None
    posted_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Inbound mappers
# ---------------------------------------------------------------------------

def map_finished_good_from_api(record: Record) -> OrderFinishedGood:
    return OrderFinishedGood(
        id=get_string(record, ["id"]),
        product_code=get_string(record, ["product_code"]),
        lot_number=get_optional_string(record, ["lot_number"]),
        quantity_good=get_number(record, ["quantity_good"]),
        quantity_scrap=get_number(record, ["quantity_scrap"]),
        unit_cost=get_optional_number(record, ["unit_cost"]),
        posted_at=get_optional_string(record, ["posted_at"]),
    )


def map_raw_material_from_api(record: Record) -> OrderRawMaterial:
    return OrderRawMaterial(
        id=get_string(record, ["id"]),
        component_code=get_string(record, ["component_code"]),
        description=get_string(record, ["description"]),
        quantity=get_number(record, ["quantity"]),
        quantity_used=get_number(record, ["quantity_used"]),
        planned_quantity=get_optional_number(record, ["planned_quantity"]),
        planned_cost=get_optional_number(record, ["planned_cost"]),
        unit=get_string(record, ["unit"], DEFAULT_UNIT),
        unit_cost=get_optional_number(record, ["unit_cost"]),
        warehouse=get_optional_string(record, ["warehouse"]),
        batch_number=get_optional_string(record, ["batch_number"]),
        consumed_at=get_optional_string(record, ["consumed_at"]),
    )


def map_bom_item_from_api(record: Record) -> OrderBomItem:
    return OrderBomItem(
        component_code=get_string(record, ["component_code"]),
        description=get_string(record, ["description"]),
        quantity=get_number(record, ["quantity"]),
        planned_quantity=get_optional_number(record, ["planned_quantity"]),
        unit_cost=get_number(record, ["unit_cost"]),
        planned_cost=get_optional_number(record, ["planned_cost"]),
    )


def map_status_event_from_api(record: Record) -> StatusEvent:
    return StatusEvent(
        id=get_string(record, ["id"]),
        status=get_string(record, ["status"], DEFAULT_PRODUCTION_STATUS),
        order_id=get_string(record, ["order_id"]),
        op=get_string(record, ["OP"]),
        name=get_string(record, ["name"]),
        timestamp=get_string(record, ["event_time"]),
        responsible=get_string(record, ["responsible"], "Sistema"),
        author_user=get_optional_string(record, ["author_user", "authoruser"]),
        notes=get_optional_string(record, ["notes"]),
    )


def _map_breakdown(record: Optional[Record]) -> Optional[CostBreakdown]:
    if not isinstance(record, dict):
        return None
    return CostBreakdown(**{key: get_number(record, [key]) for key in _BREAKDOWN_KEYS})


def _flat_breakdown(record: Record) -> Optional[CostBreakdown]:
    """Breakdown sent as top-level order columns instead of a nested object."""
    values = {key: get_optional_number(record, [key, key.capitalize()]) for key in _BREAKDOWN_KEYS}
    if all(v is None for v in values.values()):
        return None
    return CostBreakdown(**{key: v or 0.0 for key, v in values.items()})


def _map_bom_totals(record: Optional[Record]) -> Optional[BomTotalsSnapshot]:
    if not isinstance(record, dict):
        return None
    return BomTotalsSnapshot(
        total_quantity=get_optional_number(record, ["total_quantity"]),
        total_cost=get_optional_number(record, ["total_cost", "totalCost"]),
        ingredients=get_optional_number(record, ["ingredients"]),
        labor=get_optional_number(record, ["labor"]),
        packaging=get_optional_number(record, ["packaging"]),
        taxes=get_optional_number(record, ["taxes"]),
        overhead=get_optional_number(record, ["overhead"]),
        unit_cost=get_optional_number(record, ["unit_cost", "unitCost"]),
    )


def _map_reference_bom(record: Optional[Record]) -> ReferenceBom:
    record = record if isinstance(record, dict) else {}
    return ReferenceBom(
        product_code=get_string(record, ["product_code"]),
        version=get_string(record, ["version"]),
        lot_size=get_number(record, ["lot_size"]),
        validity_days=int(get_number(record, ["validity_days"])),
    )


def _records(record: Record, key: str) -> List[Record]:
    value = record.get(key)
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


def map_order_from_api(record: Record) -> ProductionOrder:
    if not isinstance(record, dict):
        record = {}
    return ProductionOrder(
        id=get_string(record, ["id"]),
        op=get_string(record, ["OP"]),
        product_code=get_string(record, ["product_code"]),
        product_name=get_optional_string(record, _PRODUCT_NAME_KEYS),
        author_user=get_optional_string(record, ["author_user", "authoruser", "author"]),
        bom_id=get_string(record, ["bom_id"]),
        quantity_planned=get_number(record, ["quantity_planned"]),
        unit=get_string(record, ["unit"], DEFAULT_UNIT),
        start_date=get_string(record, ["start_date"]),
        due_date=get_string(record, ["due_date"]),
        external_code=get_string(record, ["external_code"]),
        notes=get_string(record, ["notes"]),
        status=get_string(record, ["status"], DEFAULT_PRODUCTION_STATUS),
        lote=record.get("lote"),
        validate=get_optional_string(record, ["validate"]),
        custom_validate_date=get_optional_string(record, ["custom_validate_date"]),
        boxes_qty=get_number(record, ["boxes_qty"]),
        box_cost=get_number(record, ["box_cost"]),
        labor_per_unit=get_number(record, ["labor_per_unit"]),
        sale_price=get_number(record, ["sale_price"]),
        markup=get_number(record, ["markup"]),
        post_sale_tax=get_number(record, ["post_sale_tax"]),
        total_cost=get_number(record, ["totalCost", "total_cost"]),
        unit_cost=get_number(record, ["unitCost", "unit_cost"]),
        cost_breakdown=_map_breakdown(record.get("cost_breakdown")) or _flat_breakdown(record),
        bom_totals=_map_bom_totals(record.get("bom_totals")),
        reference_bom=_map_reference_bom(record.get("reference_bom")),
        raw_materials=[map_raw_material_from_api(r) for r in _records(record, "raw_materials")],
        bom_items=[map_bom_item_from_api(r) for r in _records(record, "bom_items")],
        finished_goods=[map_finished_good_from_api(r) for r in _records(record, "finished_goods")],
        status_history=[map_status_event_from_api(r) for r in _records(record, "status_history")],
        created_at=get_optional_string(record, ["created_at"]),
        updated_at=get_optional_string(record, ["updated_at"]),
    )


# ---------------------------------------------------------------------------
# Outbound mappers
# ---------------------------------------------------------------------------

_ORDER_UPDATE_FIELDS = [
    "external_code", "product_code", "quantity_planned", "unit", "start_date",
    "due_date", "bom_id", "lote", "validate", "custom_validate_date",
    "boxes_qty", "box_cost", "labor_per_unit", "sale_price", "markup",
    "post_sale_tax",
]


def _raw_material_issue_item(item: RawMaterialIssueItem) -> Dict[str, Any]:
    return {
        "component_code": item.component_code,
        "description": item.description,
        "quantity_used": item.quantity_used,
        "unit": item.unit,
        "unit_cost": item.unit_cost,
        "warehouse": item.warehouse,
        "batch_number": item.batch_number,
        "consumed_at": item.consumed_at,
    }


def map_order_update_to_api_payload(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Partial PATCH body: only the keys present in ``changes`` are sent."""
    body = {key: changes[key] for key in _ORDER_UPDATE_FIELDS if key in changes}
    if "notes" in changes:
        body["notes"] = sanitize_notes(changes["notes"])
    if changes.get("raw_materials") is not None:
        body["raw_materials"] = [_raw_material_issue_item(i) for i in changes["raw_materials"]]
    return body


def map_status_registration_to_api_payload(payload: StatusRegistration) -> Dict[str, Any]:
    return {
        "status": payload.status,
        "responsible": payload.responsible,
        "event_time": payload.event_time,
        "remarks": payload.remarks,
    }


def map_raw_material_issue_to_api_payload(payload: RawMaterialIssue) -> Dict[str, Any]:
    return {
        "warehouse": payload.warehouse,
        "user": payload.user,
        "responsible": payload.responsible,
        "notes": payload.notes,
        "raw_materials": [_raw_material_issue_item(i) for i in payload.raw_materials],
    }


def map_completion_to_api_payload(payload: OrderCompletion) -> Dict[str, Any]:
    return {
        "product_code": payload.product_code,
        "quantity": payload.quantity,
        "unit_cost": payload.unit_cost,
        "warehouse": payload.warehouse,
        "lot_number": payload.lot_number,
        "posted_at": payload.posted_at,
        "user": payload.user,
        "responsible": payload.responsible,
        "notes": payload.notes,
    }


def map_finished_good_to_api_payload(payload: FinishedGoodEntry) -> Dict[str, Any]:
    return {
        "product_code": payload.product_code,
        "lot_number": payload.lot_number,
        "quantity_good": payload.quantity_good,
        "quantity_scrap": payload.quantity_scrap or 0,
        "unit_cost": payload.unit_cost,
        "posted_at": payload.posted_at,
    }


# ---------------------------------------------------------------------------
# REST calls
# ---------------------------------------------------------------------------

def _as_dict(response: Any) -> Record:
    return response if isinstance(response, dict) else {}


def _as_list(response: Any) -> List[Record]:
    return [r for r in response if isinstance(r, dict)] if isinstance(response, list) else []


async def create_order(client: ApiClient, session: ApiSession, payload: Dict[str, Any]) -> ProductionOrder:
    """``payload`` is the body built by production_engine.build_production_order_payload."""
    response = await client.post(session, ORDERS_ENDPOINT, payload)
    order = map_order_from_api(_as_dict(response))
    logger.info(
        "production order created",
        extra={"tenant": session.tenant_slug, "order_id": order.id, "product_code": order.product_code},
    )
    return order


async def list_orders(
    client: ApiClient,
    session: ApiSession,
    external_code: Optional[str] = None,
    product_code: Optional[str] = None,
    status: Optional[str] = None,
) -> List[ProductionOrder]:
    response = await client.get(session, ORDERS_ENDPOINT, params={
        "external_code": external_code,
        "product_code": product_code,
        "status": status,
    })
    return [map_order_from_api(r) for r in _as_list(response)]


async def list_separation_orders(client: ApiClient, session: ApiSession) -> List[ProductionOrder]:
    response = await client.get(session, f"{ORDERS_ENDPOINT}/separacao")
    return [map_order_from_api(r) for r in _as_list(response)]


async def list_orders_in_production(client: ApiClient, session: ApiSession) -> List[ProductionOrder]:
    response = await client.get(session, f"{ORDERS_ENDPOINT}/producao")
    return [map_order_from_api(r) for r in _as_list(response)]


async def get_order(client: ApiClient, session: ApiSession, order_id: str) -> ProductionOrder:
    """Accepts either the order id or its OP number."""
    response = await client.get(session, f"{ORDERS_ENDPOINT}/{order_id}")
    return map_order_from_api(_as_dict(response))


async def update_order(
    client: ApiClient, session: ApiSession, order_id: str, changes: Dict[str, Any]
) -> ProductionOrder:
    body = map_order_update_to_api_payload(changes)
    response = await client.patch(session, f"{ORDERS_ENDPOINT}/{order_id}", body)
    order = map_order_from_api(_as_dict(response))
    logger.info(
        f"production order updated ({', '.join(sorted(body))})",
        extra={"tenant": session.tenant_slug, "order_id": order_id, "product_code": order.product_code or None},
    )
    return order


async def register_status(
    client: ApiClient, session: ApiSession, order_id: str, payload: StatusRegistration
) -> StatusEvent:
    response = await client.post(
        session, f"{ORDERS_ENDPOINT}/{order_id}/status", map_status_registration_to_api_payload(payload)
    )
    logger.info(
        f"Order {order_id} moved to {payload.status} by {payload.responsible}",
        extra={"tenant": session.tenant_slug, "order_id": order_id},
    )
    return map_status_event_from_api(_as_dict(response))


async def list_status_events(client: ApiClient, session: ApiSession, order_id: str) -> List[StatusEvent]:
    response = await client.get(session, f"{ORDERS_ENDPOINT}/{order_id}/status")
    return [map_status_event_from_api(r) for r in _as_list(response)]


async def issue_raw_materials(
    client: ApiClient, session: ApiSession, order_id: str, payload: RawMaterialIssue
) -> StatusEvent:
    response = await client.post(
        session,
        f"{ORDERS_ENDPOINT}/{order_id}/issue-raw-materials",
        map_raw_material_issue_to_api_payload(payload),
    )
    logger.info(
        f"{len(payload.raw_materials)} raw material(s) issued",
        extra={"tenant": session.tenant_slug, "order_id": order_id},
    )
    return map_status_event_from_api(_as_dict(response))


async def complete_order(
    client: ApiClient, session: ApiSession, order_id: str, payload: OrderCompletion
) -> ProductionOrder:
    response = await client.post(
        session, f"{ORDERS_ENDPOINT}/{order_id}/complete", map_completion_to_api_payload(payload)
    )
    order = map_order_from_api(_as_dict(response))
    logger.info(
        f"production order completed, quantity {payload.quantity}",
        extra={
            "tenant": session.tenant_slug,
            "order_id": order_id,
            "product_code": payload.product_code or order.product_code or None,
        },
    )
    return order


async def record_finished_good(
    client: ApiClient, session: ApiSession, order_id: str, payload: FinishedGoodEntry
) -> OrderFinishedGood:
    response = await client.post(
        session, f"{ORDERS_ENDPOINT}/{order_id}/finished-goods", map_finished_good_to_api_payload(payload)
    )
    logger.info(
        f"finished goods recorded: {payload.quantity_good} good, {payload.quantity_scrap} scrap",
        extra={"tenant": session.tenant_slug, "order_id": order_id, "product_code": payload.product_code},
    )
    return map_finished_good_from_api(_as_dict(response))


async def list_finished_goods(client: ApiClient, session: ApiSession, order_id: str) -> List[OrderFinishedGood]:
    response = await client.get(session, f"{ORDERS_ENDPOINT}/{order_id}/finished-goods")
    return [map_finished_good_from_api(r) for r in _as_list(response)]


async def record_raw_material(
    client: ApiClient, session: ApiSession, order_id: str, item: RawMaterialIssueItem
) -> OrderRawMaterial:
    response = await client.post(
        session, f"{ORDERS_ENDPOINT}/{order_id}/raw-materials", _raw_material_issue_item(item)
    )
    return map_raw_material_from_api(_as_dict(response))


async def list_raw_materials(client: ApiClient, session: ApiSession, order_id: str) -> List[OrderRawMaterial]:
    response = await client.get(session, f"{ORDERS_ENDPOINT}/{order_id}/raw-materials")
    return [map_raw_material_from_api(r) for r in _as_list(response)]
