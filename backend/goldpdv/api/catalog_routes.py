"""Catalog API routes: items and item groups from the tenant backend."""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from goldpdv.api.deps import backend_http_error, get_api_client, require_api_session
from goldpdv.services import catalog_service
from goldpdv.services.api_client import ApiClient, ApiSession, BackendError

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])
logger = logging.getLogger("goldpdv-catalog.routes")


@router.get("/items")
async def list_items(
    raw_materials_only: bool = Query(False, description="Only items flagged matprima = S"),
    search: Optional[str] = Query(None, description="Matches code or name, case-insensitive"),
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> List[Dict[str, Any]]:
    try:
        items = await catalog_service.list_items(client, session)
    except BackendError as e:
        raise backend_http_error(e)
    if raw_materials_only:
        items = [i for i in items if i.is_raw_material]
    if search:
        needle = search.strip().lower()
        items = [i for i in items if needle in i.sku.lower() or needle in i.name.lower()]
    return [i.as_dict() for i in items]


@router.get("/categories")
async def list_categories(
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> List[Dict[str, str]]:
    try:
        categories = await catalog_service.list_categories(client, session)
    except BackendError as e:
        raise backend_http_error(e)
    return [{"code": c.code, "description": c.description} for c in categories]
