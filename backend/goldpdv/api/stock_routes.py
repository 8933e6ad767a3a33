"""Stock API routes: inventory movements, summaries and item kardex."""
import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query

from goldpdv.api.deps import backend_http_error, get_api_client, require_api_session
from goldpdv.services import stock_service
from goldpdv.services.api_client import ApiClient, ApiSession, BackendError

router = APIRouter(prefix="/api/stock", tags=["Stock"])
logger = logging.getLogger("goldpdv-stock.routes")


@router.get("/movements")
async def list_movements(
    type: Literal["E", "S"] = Query("E", description="E = entradas, S = saidas"),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    item_id: Optional[int] = Query(None, alias="itemId"),
    company: Optional[str] = Query(None, alias="cdemp"),
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> List[Dict[str, Any]]:
    try:
        movements = await stock_service.list_movements(
            client, session, type, date_from=date_from, date_to=date_to, item_id=item_id, company=company
        )
    except BackendError as e:
        raise backend_http_error(e)
    return [m.as_dict() for m in movements]


@router.get("/movements/summary")
async def movement_summary(
    date_from: str = Query(..., alias="from"),
    date_to: str = Query(..., alias="to"),
    item_id: Optional[int] = Query(None, alias="itemId"),
    company: Optional[str] = Query(None, alias="cdemp"),
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> Dict[str, Any]:
    try:
        return await stock_service.get_movement_summary(
            client, session, date_from, date_to, item_id=item_id, company=company
        )
    except BackendError as e:
        raise backend_http_error(e)


@router.get("/kardex/{item_id}")
async def item_kardex(
    item_id: int,
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    company: Optional[str] = Query(None, alias="cdemp"),
    client: ApiClient = Depends(get_api_client),
    session: ApiSession = Depends(require_api_session),
) -> List[Dict[str, Any]]:
    try:
        movements = await stock_service.get_item_kardex(
            client, session, item_id, date_from=date_from, date_to=date_to, company=company
        )
    except BackendError as e:
        raise backend_http_error(e)
    return [m.as_dict() for m in movements]
