"""
GoldPDV costing configuration: single source of truth for rounding policy,
legacy cost percentages, production defaults and backend connection settings.

Import from here in all services and routes rather than hardcoding values.
"""
from __future__ import annotations

import os

# Load .env file automatically in dev (no-op if the file is missing)
from dotenv import load_dotenv

load_dotenv()


# ── Rounding policy ────────────────────────────────────────────────────────────

# quantity × factor and line costs are rounded to this many places
QUANTITY_DECIMALS: int = 3

# Currency values shown to operators
CURRENCY_DECIMALS: int = 2

# Unit costs on catalog / BOM screens keep more precision
UNIT_COST_DISPLAY_DECIMALS: int = 4


# ── Legacy BOM cost breakdown (display only) ───────────────────────────────────
# Fractions of ingredient cost. Never part of the persisted total.
LEGACY_LABOR_PCT: float = 0.12
LEGACY_PACKAGING_PCT: float = 0.08
LEGACY_TAXES_PCT: float = 0.10
LEGACY_OVERHEAD_PCT: float = 0.05


# ── BOM / production defaults ──────────────────────────────────────────────────
DEFAULT_BOM_VERSION: str = "1.0"
MIN_LOT_SIZE: int = 1
DEFAULT_VALIDITY_DAYS: int = 30
DEFAULT_UNIT: str = "UN"
NOTES_MAX_LENGTH: int = 2000

PRODUCTION_STATUSES: tuple[str, ...] = ("SEPARACAO", "PRODUCAO", "CONCLUIDA", "CANCELADA")
DEFAULT_PRODUCTION_STATUS: str = "SEPARACAO"

# Display placeholder for values that cannot be derived (e.g. zero quantity)
DISPLAY_PLACEHOLDER: str = "--"


# ── Backend REST API ───────────────────────────────────────────────────────────
API_URL: str = os.getenv("GOLDPDV_API_URL", "http://localhost:3023")
TENANT_DOMAIN_TEMPLATE: str = os.getenv(
    "GOLDPDV_TENANT_DOMAIN_TEMPLATE", "https://{tenant}.goldpdv.com.br"
)
API_TIMEOUT_MS: int = int(os.getenv("GOLDPDV_API_TIMEOUT_MS", "15000"))


# ── Logging ────────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON: bool = os.getenv("LOG_FORMAT", "json").lower() != "text"

# ── HTTP surface ───────────────────────────────────────────────────────────────
APP_VERSION: str = "0.1.0"
CORS_ORIGINS: list[str] = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]
