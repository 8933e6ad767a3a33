"""FastAPI dependency injection: backend session and shared API client."""
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from goldpdv.services.api_client import (
    ApiClient,
    ApiSession,
    BackendError,
    BackendTimeoutError,
    SessionExpiredError,
    TenantRequiredError,
)

security = HTTPBearer(auto_error=False)


def get_api_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_tenant: Optional[str] = Header(default=None),
    x_warehouse: Optional[str] = Header(default=None),
) -> ApiSession:
    """Session forwarded to the tenant backend; the token is not validated here."""
    return ApiSession(
        token=credentials.credentials if credentials else None,
        tenant_slug=(x_tenant or "").strip() or None,
        warehouse=(x_warehouse or "").strip() or None,
    )


def require_api_session(session: ApiSession = Depends(get_api_session)) -> ApiSession:
    if not session.token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def get_api_client(request: Request) -> ApiClient:
    client = getattr(request.app.state, "api_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Backend client not initialised")
    return client


def backend_http_error(exc: BackendError) -> HTTPException:
    """Translate a backend failure into the status code returned to our caller."""
    if isinstance(exc, SessionExpiredError):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(exc, TenantRequiredError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, BackendTimeoutError):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=exc.message)
    if exc.status_code == 404:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message)
