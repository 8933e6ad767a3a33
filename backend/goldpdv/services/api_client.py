"""
Backend API client: tenant-aware JSON requests against the GoldPDV REST API.

The session (token, tenant slug, warehouse) is always passed in explicitly;
nothing is read from ambient state. Tenant-aware paths are sent to the tenant
subdomain built from GOLDPDV_TENANT_DOMAIN_TEMPLATE, everything else to
GOLDPDV_API_URL.

Concurrent calls are independent: there is no sequencing, the caller decides
which response wins.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from goldpdv.config import API_TIMEOUT_MS, API_URL, TENANT_DOMAIN_TEMPLATE
from goldpdv.services.tenant import build_tenant_base_url, normalize_base_url

logger = logging.getLogger("goldpdv-api.client")


class BackendError(Exception):
    """Non-2xx answer (or transport failure) from the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class SessionExpiredError(BackendError):
    """401 from the backend; the caller must log in again."""


class TenantRequiredError(BackendError):
    """Tenant-aware call made without a tenant slug."""


class BackendTimeoutError(BackendError):
    """No answer within the configured timeout."""


@dataclass
class ApiSession:
    token: Optional[str] = None
    tenant_slug: Optional[str] = None
    warehouse: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.tenant_slug:
            headers["X-Tenant"] = self.tenant_slug
        if self.warehouse:
            headers["X-Warehouse"] = self.warehouse
        return headers


def _clean_params(params: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
    if not params:
        return None
    cleaned = {k: str(v) for k, v in params.items() if v is not None and v != ""}
    return cleaned or None


def _error_message(status_code: int, body: Any) -> str:
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"Erro {status_code} na API"


class ApiClient:
    """Thin async wrapper over httpx.AsyncClient; one instance per process."""

    def __init__(
        self,
        base_url: str = API_URL,
        tenant_template: str = TENANT_DOMAIN_TEMPLATE,
        timeout_ms: int = API_TIMEOUT_MS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = normalize_base_url(base_url)
        self.tenant_template = tenant_template
        self.timeout_ms = timeout_ms
        self._client = httpx.AsyncClient(timeout=timeout_ms / 1000.0, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def build_url(self, path: str, tenant: Optional[str], tenant_aware: bool = True) -> str:
        normalized_path = path if path.startswith("/") else f"/{path}"
        if not tenant_aware:
            return f"{self.base_url}{normalized_path}"
        if not tenant:
            raise TenantRequiredError("Tenant obrigatorio para chamada tenant-aware.")
        base = build_tenant_base_url(tenant, self.tenant_template) or self.base_url
        return f"{base}{normalized_path}"

    async def request(
        self,
        session: ApiSession,
        path: str,
        method: str = "GET",
        data: Any = None,
        params: Optional[Dict[str, Any]] = None,
        tenant_aware: bool = True,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Send one JSON request and return the decoded body.

        Empty bodies come back as ``{}``, non-JSON bodies as text.
        Raises SessionExpiredError (401), BackendTimeoutError, BackendError.
        """
        url = self.build_url(path, session.tenant_slug, tenant_aware)
        request_headers = {"Content-Type": "application/json", **session.headers(), **(headers or {})}

        try:
            response = await self._client.request(
                method,
                url,
                params=_clean_params(params),
                json=data,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Backend timeout on {method} {url}: {e}")
            raise BackendTimeoutError(
                f"Tempo limite excedido ao contactar a API ({self.timeout_ms}ms)."
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Backend unreachable on {method} {url}: {e}")
            raise BackendError(f"Falha ao contactar a API: {e}") from e

        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError:
                body = response.text

        if response.is_error:
            logger.warning(
                "backend request failed",
                extra={
                    "http_method": method,
                    "url": url,
                    "http_status": response.status_code,
                    "tenant": session.tenant_slug,
                },
            )
            message = _error_message(response.status_code, body)
            if response.status_code == 401:
                raise SessionExpiredError(message, response.status_code, body)
            raise BackendError(message, response.status_code, body)

        return body if body is not None else {}

    async def get(self, session: ApiSession, path: str, **kwargs) -> Any:
        return await self.request(session, path, "GET", **kwargs)

    async def post(self, session: ApiSession, path: str, data: Any = None, **kwargs) -> Any:
        return await self.request(session, path, "POST", data=data, **kwargs)

    async def patch(self, session: ApiSession, path: str, data: Any = None, **kwargs) -> Any:
        return await self.request(session, path, "PATCH", data=data, **kwargs)

    async def delete(self, session: ApiSession, path: str, **kwargs) -> Any:
        return await self.request(session, path, "DELETE", **kwargs)
