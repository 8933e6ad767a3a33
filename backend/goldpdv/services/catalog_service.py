"""
Catalog service: products / raw materials (T_ITENS) and item groups (T_GRITENS).

Item rows arrive with legacy column names (cditem, deitem, unid, preco, custo,
itprodsn, matprima, ...) or their modern equivalents; both are accepted.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from goldpdv.config import DEFAULT_UNIT
from goldpdv.services.api_client import ApiClient, ApiSession
from goldpdv.services.record_normalizer import (
    Record,
    extract_records,
    get_flag,
    get_number,
    get_string,
)

logger = logging.getLogger("goldpdv-catalog")

ITEMS_ENDPOINT = "/T_ITENS"
CATEGORIES_ENDPOINT = "/T_GRITENS"


@dataclass
class CatalogItem:
    id: str
    sku: str
    name: str
    unit: str = DEFAULT_UNIT
    category: str = ""
    packaging_qty: float = 0.0
    sale_price: float = 0.0
    cost_price: float = 0.0
    purchase_price: float = 0.0
    markup: float = 0.0
    lead_time_days: float = 0.0
    balance: float = 0.0
    description: str = ""
    notes: str = ""
    image_path: str = ""
    ncm: str = ""
    cest: str = ""
    cst: str = ""
    barcode: str = ""
    created_at: str = ""
    is_composed: bool = False
    is_raw_material: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Category:
    code: str
    description: str


def normalize_item_from_api(record: Record, fallback_id: str = "") -> CatalogItem:
    sku = get_string(record, ["sku", "code", "cditem"])
    item_id = (
        get_string(record, ["id"])
        or get_string(record, ["guid", "uuid"])
        or sku
        or fallback_id
    )
    return CatalogItem(
        id=item_id,
        sku=sku,
        name=get_string(record, ["name", "deitem", "defat", "descricao"]),
        unit=get_string(record, ["unit", "unid", "undven"], DEFAULT_UNIT),
        category=get_string(record, ["category", "cdgru", "cdgruit", "cdgritem"]),
        packaging_qty=get_number(record, ["qtembitem", "qtemb", "embalagem"]),
        sale_price=get_number(record, ["salePrice", "sale_price", "preco", "vlpreco"]),
        cost_price=get_number(record, ["costPrice", "cost_price", "custo", "custlq", "vlcusto"]),
        purchase_price=get_number(record, ["valcmp", "compra", "vlcompra"]),
        markup=get_number(record, ["markup", "margem"]),
        lead_time_days=get_number(record, ["leadTimeDays", "lead_time_days", "leadtime"]),
        balance=get_number(record, ["saldo", "sldatual", "saldoatual", "sld", "saldo_total"]),
        description=get_string(record, ["description", "obsitem"]),
        notes=get_string(record, ["obsitem", "notes"]),
        image_path=get_string(record, ["locfotitem", "imagePath"]),
        ncm=get_string(record, ["ncm", "clasfis", "codncm"]),
        cest=get_string(record, ["cest"]),
        cst=get_string(record, ["cst", "codcst"]),
        barcode=get_string(record, ["barcode", "barcodeit"]),
        created_at=get_string(record, ["createdAt", "created_at", "datacadit"]),
        is_composed=get_flag(record, ["itprodsn"]),
        is_raw_material=get_flag(record, ["matprima"]),
    )


def normalize_category_from_api(record: Record, fallback: str = "") -> Category:
    code = get_string(record, ["cdgru", "cdgruit", "code", "id"], fallback)
    return Category(code=code, description=get_string(record, ["degru", "descricao", "description", "name"], code))


def map_item_to_api_payload(item: CatalogItem) -> Dict[str, Any]:
    """Legacy T_ITENS columns; flags are "S" or a blank."""
    return {
        "cditem": item.sku,
        "deitem": item.name,
        "unid": item.unit,
        "undven": item.unit,
        "cdgru": item.category,
        "itprodsn": "S" if item.is_composed else " ",
        "matprima": "S" if item.is_raw_material else " ",
        "barcodeit": item.barcode or "",
        "clasfis": item.ncm or "",
        "cest": item.cest or "",
        "codcst": item.cst or "",
        "preco": item.sale_price or 0,
        "custo": item.cost_price or 0,
        "leadtime": item.lead_time_days or 0,
        "obsitem": item.notes or "",
        "locfotitem": item.image_path or "",
    }


# ── REST calls ────────────────────────────────────────────────────────────────

async def list_items(client: ApiClient, session: ApiSession) -> List[CatalogItem]:
    response = await client.get(session, ITEMS_ENDPOINT, params={"tabela": "T_ITENS"})
    return [
        normalize_item_from_api(record, fallback_id=f"item-{idx}")
        for idx, record in enumerate(extract_records(response))
    ]


async def list_categories(client: ApiClient, session: ApiSession) -> List[Category]:
    response = await client.get(session, CATEGORIES_ENDPOINT)
    return [
        normalize_category_from_api(record, fallback=f"group-{idx}")
        for idx, record in enumerate(extract_records(response))
    ]


async def save_item(
    client: ApiClient, session: ApiSession, item: CatalogItem, item_id: Optional[str] = None
) -> CatalogItem:
    """PATCH when the item already has an id, POST otherwise."""
    payload = map_item_to_api_payload(item)
    if item_id:
        response = await client.patch(session, f"{ITEMS_ENDPOINT}/{item_id}", payload)
    else:
        response = await client.post(session, ITEMS_ENDPOINT, payload)
    saved = normalize_item_from_api(response if isinstance(response, dict) else {}, fallback_id=item_id or "")
    logger.info(
        f"Catalog item {item.sku} saved ({'PATCH' if item_id else 'POST'})",
        extra={"tenant": session.tenant_slug, "product_code": item.sku},
    )
    return saved
