"""Tenant base-URL helpers used by the API client."""
import re
from typing import Optional

from goldpdv.config import TENANT_DOMAIN_TEMPLATE

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_base_url(value: str) -> str:
    return value.rstrip("/")


def build_tenant_base_url(tenant: str, template: str = TENANT_DOMAIN_TEMPLATE) -> Optional[str]:
    """
    ``https://{tenant}.goldpdv.com.br`` -> ``https://acme.goldpdv.com.br``.
    A template without the placeholder is treated as a root host and the
    tenant becomes its subdomain. None when the template is blank.
    """
    template = (template or "").strip()
    if not template:
        return None
    if "{tenant}" in template:
        return normalize_base_url(template.replace("{tenant}", tenant))
    scheme = "http" if template.startswith("http://") else "https"
    host = _SCHEME_RE.sub("", template)
    return normalize_base_url(f"{scheme}://{tenant}.{host}")
