"""
BOM service: bill-of-materials records on the tenant backend.

Records are normalized on the way in and their totals are always recomputed
with calculate_bom_totals(); stored total_cost / unit_cost / margin_achieved
values sent by the backend are ignored.
"""
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from goldpdv.config import DEFAULT_BOM_VERSION
from goldpdv.services.api_client import ApiClient, ApiSession
from goldpdv.services.costing_engine import (
    BillOfMaterials,
    BomLine,
    BomTotals,
    calculate_bom_totals,
    resolve_factor,
)
from goldpdv.services.record_normalizer import (
    Record,
    extract_records,
    get_number,
    get_optional_number,
    get_optional_string,
    get_string,
    sanitize_notes,
)

logger = logging.getLogger("goldpdv-bom")

BOM_ENDPOINT = "/production/bom"
LATEST_BOM_FOR_PRODUCT_ENDPOINT = "/production/bom/product/"
FORMULAS_ENDPOINT = "/T_FORMULAS"


@dataclass
class BomRecord:
    id: str
    bom: BillOfMaterials
    totals: BomTotals
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


def map_bom_line_from_api(record: Record) -> BomLine:
    return BomLine(
        component_code=get_string(record, ["component_code", "componentCode", "cditem"]),
        description=get_string(record, ["description", "deitem"]),
        base_quantity=get_number(record, ["quantity_base", "quantityBase", "quantity", "qtde"]),
        unit_cost=get_number(record, ["unit_cost", "unitCost", "custo"]),
        factor=get_optional_number(record, ["fator", "factor"]),
        percentage=get_optional_number(record, ["percentage", "percentual"]),
    )


def map_bom_from_api(record: Record) -> BomRecord:
    if not isinstance(record, dict):
        record = {}
    lines =[map_bom_line_from_api(item) for item in extract_records(record.get("items") or [])]
    bom = BillOfMaterials(
        product_code=get_string(record, ["product_code", "productCode"]),
        version=get_string(record, ["version"], DEFAULT_BOM_VERSION),
        lot_size=get_number(record, ["lot_size", "lotSize"]),
        validity_days=int(get_number(record, ["validity_days", "validityDays"])),
        margin_target=get_number(record, ["margin_target", "marginTarget"]),
        notes=get_string(record, ["notes"]),
        lines=lines,
    )
    return BomRecord(
        id=get_string(record, ["id"]),
        bom=bom,
        totals=calculate_bom_totals(bom),
        created_at=get_optional_string(record, ["created_at", "createdAt"]),
        updated_at=get_optional_string(record, ["updated_at", "updatedAt"]),
    )


def map_bom_line_to_api(line: BomLine) -> Dict[str, Any]:
    return {
        "component_code": line.component_code,
        "description": line.description,
        "quantity": line.base_quantity,
        "quantity_base": line.base_quantity,
        "unit_cost": line.unit_cost,
        "fator": resolve_factor(line),
    }


def map_bom_to_api_payload(bom: BillOfMaterials) -> Dict[str, Any]:
    totals = calculate_bom_totals(bom)
    return {
        "product_code": bom.product_code,
        "version": bom.version,
        "lot_size": bom.lot_size,
        "validity_days": bom.validity_days,
        "margin_target": bom.margin_target,
        "margin_achieved": totals.margin_achieved,
        "total_cost": totals.total,
        "unit_cost": totals.unit,
        "notes": sanitize_notes(bom.notes),
        "items": [map_bom_line_to_api(line) for line in bom.lines],
    }


_UPDATE_FIELDS = {
    "product_code": "product_code",
    "version": "version",
    "lot_size": "lot_size",
    "validity_days": "validity_days",
    "margin_target": "margin_target",
}


_TOTALS_INPUTS = ("lines", "margin_target")


def map_bom_update_to_api_payload(
    changes: Dict[str, Any], current: Optional[BillOfMaterials] = None
) -> Dict[str, Any]:
    """
    Partial update body. Only keys present in ``changes`` are sent, plus the
    derived totals whenever lines or margin target change. The totals are
    computed on ``current`` with ``changes`` merged in, so a lines-only or a
    target-only update still carries a fresh margin_achieved.
    """
    body: Dict[str, Any] = {}
    for key, api_key in _UPDATE_FIELDS.items():
        if key in changes:
            body[api_key] = changes[key]
    if "notes" in changes:
        body["notes"] = sanitize_notes(changes["notes"])
    if changes.get("lines") is not None:
        body["items"] = [map_bom_line_to_api(line) for line in changes["lines"]]

    if any(changes.get(key) is not None for key in _TOTALS_INPUTS):
        base = current or BillOfMaterials(product_code=changes.get("product_code", ""))
        lines = changes.get("lines")
        target = changes.get("margin_target")
        merged = replace(
            base,
            lines=list(lines) if lines is not None else base.lines,
            margin_target=target if target is not None else base.margin_target,
        )
        totals = calculate_bom_totals(merged)
        body["total_cost"] = totals.total
        body["unit_cost"] = totals.unit
        body["margin_achieved"] = totals.margin_achieved
    return body


# ── REST calls ────────────────────────────────────────────────────────────────

async def list_boms(client: ApiClient, session: ApiSession) -> List[BomRecord]:
    response = await client.get(session, BOM_ENDPOINT)
    return [map_bom_from_api(r) for r in extract_records(response)]


async def get_bom(client: ApiClient, session: ApiSession, bom_id: str) -> BomRecord:
    response = await client.get(session, f"{BOM_ENDPOINT}/{bom_id}")
    return map_bom_from_api(response)


async def create_bom(client: ApiClient, session: ApiSession, bom: BillOfMaterials) -> BomRecord:
    response = await client.post(session, BOM_ENDPOINT, map_bom_to_api_payload(bom))
    record = map_bom_from_api(response)
    logger.info(
        f"BOM created for product {bom.product_code} v{bom.version} (id={record.id})",
        extra={"tenant": session.tenant_slug, "product_code": bom.product_code},
    )
    return record


async def update_bom(
    client: ApiClient, session: ApiSession, bom_id: str, changes: Dict[str, Any]
) -> BomRecord:
    """PATCH a BOM. When lines or margin target change, the stored BOM is read first to recompute its totals."""
    current = None
    if any(changes.get(key) is not None for key in _TOTALS_INPUTS):
        current = (await get_bom(client, session, bom_id)).bom
    body = map_bom_update_to_api_payload(changes, current)
    response = await client.patch(session, f"{BOM_ENDPOINT}/{bom_id}", body)
    record = map_bom_from_api(response)
    logger.info(
        f"BOM {bom_id} updated ({', '.join(sorted(body))})",
        extra={"tenant": session.tenant_slug, "product_code": record.bom.product_code or None},
    )
    return record


async def delete_bom(client: ApiClient, session: ApiSession, bom_id: str) -> None:
    await client.delete(session, f"{BOM_ENDPOINT}/{bom_id}")
    logger.info(f"BOM {bom_id} deleted")


async def get_latest_bom_for_product(
    client: ApiClient, session: ApiSession, product_code: str
) -> Optional[BomRecord]:
    """Latest BOM version of a product, None when the product has none."""
    if not product_code:
        return None
    response = await client.get(session, f"{LATEST_BOM_FOR_PRODUCT_ENDPOINT}{product_code}")
    if not isinstance(response, dict) or not response:
        return None
    return map_bom_from_api(response)


async def list_formulas(client: ApiClient, session: ApiSession, product_code: str) -> List[Record]:
    """Legacy formula rows of a product (T_FORMULAS), returned as-is."""
    if not product_code:
        return []
    response = await client.get(
        session, FORMULAS_ENDPOINT, params={"tabela": "T_FORMULAS", "cditem": product_code}
    )
    return extract_records(response)
