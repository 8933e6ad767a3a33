"""
conftest.py: Shared pytest fixtures for the GoldPDV costing test suite.

No real backend is contacted. Engine tests are pure unit tests; service and
route tests talk to an ``httpx.MockTransport`` that records every request and
answers from a per-test handler.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``goldpdv.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import json
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any goldpdv imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Sample BOM data
# ---------------------------------------------------------------------------

@pytest.fixture
def bread_bom():
    """
    Three-line formula for a loaf of bread.

      flour  0.5  × 4.20  = 2.100
      yeast  0.02 × 35.00 = 0.700
      salt   0.01 × 2.00  = 0.020
                            -----
                            2.820
    """
    from goldpdv.services.costing_engine import BillOfMaterials, BomLine
    return BillOfMaterials(
        product_code="PAO01",
        lot_size=10,
        margin_target=0.0,
        lines=[
            BomLine(component_code="FAR01", description="Farinha", base_quantity=0.5, unit_cost=4.20),
            BomLine(component_code="FER01", description="Fermento", base_quantity=0.02, unit_cost=35.0),
            BomLine(component_code="SAL01", description="Sal", base_quantity=0.01, unit_cost=2.0),
        ],
    )


# ---------------------------------------------------------------------------
# Backend mocks
# ---------------------------------------------------------------------------

class RecordingBackend:
    """
    Stand-in for the tenant backend. ``routes`` maps ``(METHOD, path)`` to a
    JSON-able body, an ``httpx.Response``, or a callable taking the request.
    Every request received is appended to ``requests``.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def __call__(self, request):
        import httpx
        self.requests.append(request)
        answer = self.routes.get((request.method, request.url.path))
        if answer is None:
            return httpx.Response(404, json={"message": f"no route {request.method} {request.url.path}"})
        if callable(answer):
            answer = answer(request)
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def api_client(backend):
    """ApiClient wired to the recording backend; tenant hosts follow https://{tenant}.test.local."""
    import httpx
    from goldpdv.services.api_client import ApiClient
    return ApiClient(
        base_url="http://core.test.local/",
        tenant_template="https://{tenant}.test.local",
        timeout_ms=1000,
        transport=httpx.MockTransport(backend),
    )


@pytest.fixture
def session():
    from goldpdv.services.api_client import ApiSession
    return ApiSession(token="tok-123", tenant_slug="acme", warehouse="01")


@pytest.fixture
def test_app(api_client):
    """FastAPI TestClient whose shared ApiClient talks to the recording backend."""
    from fastapi.testclient import TestClient
    from goldpdv.main import app
    app.state.api_client = api_client
    yield TestClient(app)
    app.state.api_client = None


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer tok-123", "X-Tenant": "acme", "X-Warehouse": "01"}
