"""Tenant routing by message group.

Each queue message carries a routing key (the SQS ``MessageGroupId``) that
identifies the hospital it originates from. The router maps that key onto the
tenant database holding the hospital's records.
"""

from types import MappingProxyType
from typing import Mapping, Optional

TENANT_HCA = "fhir_hca"
TENANT_HCB = "fhir_hcb"

DEFAULT_TENANT_ROUTES: Mapping[str, str] = MappingProxyType({
    "001": TENANT_HCA,
    "002": TENANT_HCB,
})


class TenantRouter:
    """Closed mapping from routing keys to tenant datastore identifiers.

    Routing is a pure function on strings: unknown keys, including the empty
    string, yield ``None`` and never raise.

    Example:
        ```python
        router = TenantRouter()
        router.route("001")  # "fhir_hca"
        router.route("999")  # None
        ```
    """

    def __init__(self, routes: Optional[Mapping[str, str]] = None):
        self._routes = MappingProxyType(dict(routes if routes is not None else DEFAULT_TENANT_ROUTES))

    @property
    def routes(self) -> Mapping[str, str]:
        return self._routes

    def route(self, routing_key: Optional[str]) -> Optional[str]:
        """Return the tenant for a routing key, or None if the key is unknown."""
        if not routing_key:
            return None
        return self._routes.get(routing_key)
