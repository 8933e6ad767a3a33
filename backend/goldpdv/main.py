"""
GoldPDV Costing API
FastAPI service in front of the GoldPDV tenant backends: BOM costing,
production-order cost projection and read access to catalog and stock.
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from goldpdv.config import (
    API_TIMEOUT_MS,
    API_URL,
    APP_VERSION,
    CORS_ORIGINS,
    LOG_JSON,
    LOG_LEVEL,
    TENANT_DOMAIN_TEMPLATE,
)
from goldpdv.services.api_client import ApiClient
from goldpdv.services.logging_config import setup_logging
from goldpdv.services.middleware import RequestTimingMiddleware, SecurityHeadersMiddleware

setup_logging(level=LOG_LEVEL, json_output=LOG_JSON)
logger = logging.getLogger("goldpdv-api")

# Record process start time for uptime calculation
_PROCESS_START = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests install their own client (MockTransport) before startup
    if getattr(app.state, "api_client", None) is None:
        app.state.api_client = ApiClient(API_URL, TENANT_DOMAIN_TEMPLATE, API_TIMEOUT_MS)
        owns_client = True
    else:
        owns_client = False
    logger.info(f"Backend API at {API_URL}, tenant template {TENANT_DOMAIN_TEMPLATE}")

    yield

    if owns_client:
        await app.state.api_client.aclose()
        app.state.api_client = None


app = FastAPI(
    title="GoldPDV Costing API",
    version=APP_VERSION,
    description="BOM costing and production-order cost projection for GoldPDV tenants",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Tenant", "X-Warehouse", "X-Request-ID"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

# Routers
from goldpdv.api.costing_routes import router as costing_router
from goldpdv.api.production_routes import router as production_router
from goldpdv.api.catalog_routes import router as catalog_router
from goldpdv.api.stock_routes import router as stock_router

app.include_router(costing_router)
app.include_router(production_router)
app.include_router(catalog_router)
app.include_router(stock_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": APP_VERSION,
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
        "backend_url": API_URL,
        "backend_timeout_ms": API_TIMEOUT_MS,
    }
