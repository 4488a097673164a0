"""
Gateway shape adapters.

The reconciliation engine runs one algorithm against every supported gateway
version. What differs between versions (resource paths, payload field names
and the status codes that count as success) lives in an adapter.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional
from urllib.parse import quote

from .models.plugin import ServicePlugin
from .models.service_info import ServiceInfo


class Operation(Enum):
    """Admin API operations performed during reconciliation."""

    CREATE_SERVICE = "create_service"
    UPDATE_SERVICE = "update_service"
    CREATE_ROUTE = "create_route"
    UPDATE_ROUTE = "update_route"
    LIST = "list"
    DELETE_PLUGIN = "delete_plugin"
    CREATE_PLUGIN = "create_plugin"


SUCCESS_CODES: Dict[Operation, FrozenSet[int]] = {
    Operation.CREATE_SERVICE: frozenset({201}),
    Operation.UPDATE_SERVICE: frozenset({200}),
    Operation.CREATE_ROUTE: frozenset({201}),
    Operation.UPDATE_ROUTE: frozenset({200}),
    Operation.LIST: frozenset({200}),
    Operation.DELETE_PLUGIN: frozenset({200, 204}),
    Operation.CREATE_PLUGIN: frozenset({200, 201}),
}


def protocols_for(service: ServiceInfo) -> List[str]:
    """Route protocols derived from the ``https_only`` property."""
    if service.get_property("https_only", False):
        return ["https"]
    return ["https", "http"]


class GatewayAdapter:
    """Base adapter. Subclasses describe one gateway admin API shape."""

    name = "base"
    supports_routes = False
    success_codes = SUCCESS_CODES

    def is_success(self, operation: Operation, status: int) -> bool:
        return status in self.success_codes[operation]

    def service_path(self, service_name: str) -> str:
        raise NotImplementedError

    def services_path(self) -> str:
        raise NotImplementedError

    def service_payload(self, service: ServiceInfo) -> Dict[str, Any]:
        raise NotImplementedError

    def routes_path(self, service_name: str) -> str:
        raise NotImplementedError(f"{self.name} has no route resources")

    def route_path(self, service_name: str, route_id: str) -> str:
        raise NotImplementedError(f"{self.name} has no route resources")

    def route_payload(self, service: ServiceInfo) -> Dict[str, Any]:
        raise NotImplementedError(f"{self.name} has no route resources")

    def plugin_owner(self, service: ServiceInfo, resource: Dict[str, Any]) -> str:
        """Identifier plugins are attached under, given the written service record."""
        return service.name

    def plugins_path(self, owner: str) -> str:
        raise NotImplementedError

    def plugin_path(self, owner: str, plugin_id: str) -> str:
        raise NotImplementedError

    def plugin_payload(self, plugin: ServicePlugin) -> Dict[str, Any]:
        return plugin.to_payload()


class KongApiAdapter(GatewayAdapter):
    """Flat API shape (Kong 0.x ``/apis``).

    One resource per service carries identity, upstream URL and route URIs.
    Tuning properties are passed through verbatim.
    """

    name = "kong-v0"

    def service_path(self, service_name: str) -> str:
        return f"/apis/{_segment(service_name)}"

    def services_path(self) -> str:
        return "/apis/"

    def service_payload(self, service: ServiceInfo) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": service.name,
            "upstream_url": service.upstream_url,
            "uris": ",".join(service.paths),
        }
        for key, value in service.properties.items():
            if value is not None:
                payload[key] = value
        return payload

    def plugin_owner(self, service: ServiceInfo, resource: Dict[str, Any]) -> str:
        return str(resource.get("id") or service.name)

    def plugins_path(self, owner: str) -> str:
        return f"/apis/{_segment(owner)}/plugins"

    def plugin_path(self, owner: str, plugin_id: str) -> str:
        return f"/apis/{_segment(owner)}/plugins/{_segment(plugin_id)}"


class KongServiceAdapter(GatewayAdapter):
    """Service+route shape (Kong 1.x and later).

    Identity and upstream fields live on the service; path matching, protocols
    and host preservation live on a route scoped under the service.
    """

    name = "kong-v2"
    supports_routes = True

    # service field -> property name
    service_fields = {
        "retries": "retries",
        "connect_timeout": "upstream_connect_timeout",
        "read_timeout": "upstream_read_timeout",
        "write_timeout": "upstream_send_timeout",
    }
    route_fields = {
        "preserve_host": "preserve_host",
        "strip_path": "strip_uri",
    }

    def service_path(self, service_name: str) -> str:
        return f"/services/{_segment(service_name)}"

    def services_path(self) -> str:
        return "/services"

    def service_payload(self, service: ServiceInfo) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": service.name, "url": service.upstream_url}
        _copy_properties(service, self.service_fields, payload)
        return payload

    def routes_path(self, service_name: str) -> str:
        return f"/services/{_segment(service_name)}/routes"

    def route_path(self, service_name: str, route_id: str) -> str:
        return f"/services/{_segment(service_name)}/routes/{_segment(route_id)}"

    def route_payload(self, service: ServiceInfo) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "paths": list(service.paths),
            "protocols": protocols_for(service),
        }
        _copy_properties(service, self.route_fields, payload)
        return payload

    def plugins_path(self, owner: str) -> str:
        return f"/services/{_segment(owner)}/plugins"

    def plugin_path(self, owner: str, plugin_id: str) -> str:
        return f"/services/{_segment(owner)}/plugins/{_segment(plugin_id)}"


def _segment(value: str) -> str:
    """Percent-encode one URL path segment."""
    return quote(str(value), safe="")


def _copy_properties(service: ServiceInfo, fields: Dict[str, str], payload: Dict[str, Any]):
    for field, prop in fields.items():
        value = service.get_property(prop)
        if value is not None:
            payload[field] = value


ADAPTERS = {
    KongApiAdapter.name: KongApiAdapter,
    KongServiceAdapter.name: KongServiceAdapter,
}

SUPPORTED_ADAPTERS = tuple(ADAPTERS)


def get_adapter(name: str) -> Optional[GatewayAdapter]:
    """Instantiate the adapter registered under ``name``, or None if unknown."""
    adapter_cls = ADAPTERS.get(name)
    if adapter_cls is None:
        return None
    return adapter_cls()
