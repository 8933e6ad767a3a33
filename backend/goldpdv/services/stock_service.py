"""
Stock service: inventory movements, item kardex and period summaries.

Movement rows mix modern keys with legacy columns (nrlan, cditem, qtde,
saldoant, sldatual, numdoc, clifor, ...).
"""
import itertools
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional

from goldpdv.services.api_client import ApiClient, ApiSession
from goldpdv.services.record_normalizer import (
    Record,
    extract_records,
    get_number,
    get_optional_number,
    get_optional_string,
)

logger = logging.getLogger("goldpdv-stock")

MOVEMENTS_ENDPOINT = "/inventory/movements"

MovementType = Literal["E", "S"]   # entrada / saida

_fallback_ids = itertools.count(1)


@dataclass
class MovementDocument:
    number: Optional[float] = None
    date: Optional[str] = None
    type: Optional[str] = None


@dataclass
class MovementCounterparty:
    code: Optional[float] = None
    type: Optional[str] = None


@dataclass
class InventoryMovement:
    id: float
    item_id: float
    type: str
    date: str
    quantity: float
    item_code: Optional[str] = None
    item_label: Optional[str] = None
    unit_price: Optional[float] = None
    total_value: Optional[float] = None
    previous_balance: Optional[float] = None
    current_balance: Optional[float] = None
    notes: Optional[str] = None
    document: MovementDocument = field(default_factory=MovementDocument)
    counterparty: MovementCounterparty = field(default_factory=MovementCounterparty)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class NewMovement:
    item_id: str
    type: str
    quantity: float
    unit_price: Optional[float] = None
    document: Optional[MovementDocument] = None
    notes: Optional[str] = None
    warehouse: Optional[str] = None
    customer_or_supplier: Optional[int] = None
    date: Optional[str] = None
    user: Optional[str] = None


def _raw(record: Record, keys: List[str]) -> Any:
    """Exact-key lookup; movement payloads are matched key by key."""
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def map_movement_from_api(record: Record) -> InventoryMovement:
    movement_id = get_optional_number(record, ["id", "nrlan"])
    if movement_id is None:
        movement_id = next(_fallback_ids)
    item_id = get_number(record, ["itemId", "cditem"])
    item_code = get_optional_string(record, ["itemCode", "cditem", "code"])
    if item_code is None and item_id:
        item_code = str(int(item_id)) if float(item_id).is_integer() else str(item_id)

    return InventoryMovement(
        id=movement_id,
        item_id=item_id,
        item_code=item_code,
        item_label=get_optional_string(record, [
            "itemLabel", "itemDescription", "item_description", "descricaoItem",
            "descricao_item", "itemName", "deitem", "descricao", "name",
        ]),
        type=str(_raw(record, ["type", "st"]) or "E"),
        date=get_optional_string(record, ["date", "data"]) or "",
        quantity=get_number(record, ["quantity", "qtde"]),
        unit_price=get_optional_number(record, ["unitPrice", "preco"]),
        total_value=get_optional_number(record, ["totalValue", "valor"]),
        previous_balance=get_optional_number(record, ["previousBalance", "saldoant"]),
        current_balance=get_optional_number(record, ["currentBalance", "sldatual"]),
        notes=get_optional_string(record, ["notes", "obs"]),
        document=MovementDocument(
            number=get_optional_number(record, ["documentNumber", "numdoc"]),
            date=get_optional_string(record, ["documentDate", "datadoc"]),
            type=get_optional_string(record, ["documentType", "tipdoc"]),
        ),
        counterparty=MovementCounterparty(
            code=get_optional_number(record, ["counterpartyCode", "clifor"]),
            type=get_optional_string(record, ["counterpartyType", "clifortipo"]),
        ),
    )


def map_movement_to_api_payload(movement: NewMovement) -> Dict[str, Any]:
    return {
        "itemId": movement.item_id,
        "type": movement.type,
        "quantity": movement.quantity,
        "unitPrice": movement.unit_price,
        "document": asdict(movement.document) if movement.document else None,
        "notes": movement.notes,
        "warehouse": movement.warehouse,
        "customerOrSupplier": movement.customer_or_supplier,
        "date": movement.date,
        "user": movement.user,
    }


# ── REST calls ────────────────────────────────────────────────────────────────

async def create_movement(client: ApiClient, session: ApiSession, movement: NewMovement) -> InventoryMovement:
    response = await client.post(session, MOVEMENTS_ENDPOINT, map_movement_to_api_payload(movement))
    logger.info(
        f"Inventory movement {movement.type} registered for item {movement.item_id}",
        extra={"tenant": session.tenant_slug, "product_code": movement.item_id},
    )
    return map_movement_from_api(response if isinstance(response, dict) else {})


async def list_movements(
    client: ApiClient,
    session: ApiSession,
    movement_type: str,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    item_id: Optional[int] = None,
    company: Optional[str] = None,
) -> List[InventoryMovement]:
    response = await client.get(session, MOVEMENTS_ENDPOINT, params={
        "type": movement_type,
        "from": date_from,
        "to": date_to,
        "itemId": item_id,
        "cdemp": company,
    })
    return [map_movement_from_api(r) for r in extract_records(response)]


async def get_item_kardex(
    client: ApiClient,
    session: ApiSession,
    item_id: int,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    company: Optional[str] = None,
) -> List[InventoryMovement]:
    response = await client.get(session, f"{MOVEMENTS_ENDPOINT}/{item_id}", params={
        "from": date_from,
        "to": date_to,
        "cdemp": company,
    })
    return [map_movement_from_api(r) for r in extract_records(response)]


async def get_movement_summary(
    client: ApiClient,
    session: ApiSession,
    date_from: str,
    date_to: str,
    item_id: Optional[int] = None,
    company: Optional[str] = None,
) -> Dict[str, Any]:
    """Entries / exits / net quantity for the period, as sent by the backend."""
    response = await client.get(session, f"{MOVEMENTS_ENDPOINT}/summary", params={
        "from": date_from,
        "to": date_to,
        "itemId": item_id,
        "cdemp": company,
    })
    return response if isinstance(response, dict) else {}
