"""
Reconciliation engine.

Makes the gateway match one service's desired state:

    exists? -- no  --> create service --> create route --> sync plugins
            -- yes --> update service --> sync route   --> sync plugins

Route steps only run for adapters with route resources. Plugins are
synchronized clear-then-rebuild: every remote plugin of an existing service is deleted,
then the desired plugins are installed in order. Nothing is cached between
calls and nothing is retried; the first failure raises ``GatewayError`` and
leaves already-applied steps in place.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .adapters import GatewayAdapter, Operation
from .errors import GatewayError
from .gateway_client import GatewayClient
from .logging import get_logger
from .models.gateway import GatewayResponse, RemotePlugin, RemoteRoute
from .models.plugin import ServicePlugin
from .models.service_info import ServiceInfo


class ReconciliationEngine:
    """Stateless create-or-update logic for a service, its route and its plugins."""

    def __init__(self, client: GatewayClient, adapter: GatewayAdapter):
        self.client = client
        self.adapter = adapter
        self.logger = get_logger("kongreg.reconciler")

    def reconcile(self, service: ServiceInfo) -> None:
        """Bring the gateway in line with ``service``.

        Raises:
            GatewayError: on the first unexpected status or transport failure
        """
        created = not self.exists(service.name)
        if created:
            resource = self.create_service(service)
            if self.adapter.supports_routes:
                self.create_route(service)
        else:
            resource = self.update_service(service)
            if self.adapter.supports_routes:
                self.sync_route(service)

        owner = self.adapter.plugin_owner(service, resource)
        # a service created by this call has no plugins to clear
        self.sync_plugins(service, owner, clear=not created)

    def exists(self, name: str) -> bool:
        """Whether the gateway already has a service registered under ``name``."""
        response = self.client.get(self.adapter.service_path(name))
        if response.status == 200:
            return True
        if response.status == 404:
            return False
        raise GatewayError(
            f"Unexpected response checking for service '{name}'",
            status_code=response.status,
            body=response.body,
        )

    def create_service(self, service: ServiceInfo) -> Dict[str, Any]:
        response = self.client.post(
            self.adapter.services_path(), self.adapter.service_payload(service)
        )
        self._expect(response, Operation.CREATE_SERVICE, f"create service '{service.name}'")
        self.logger.log_service_reconciled(service.name, created=True)
        return response.json_object()

    def update_service(self, service: ServiceInfo) -> Dict[str, Any]:
        response = self.client.patch(
            self.adapter.service_path(service.name), self.adapter.service_payload(service)
        )
        self._expect(response, Operation.UPDATE_SERVICE, f"update service '{service.name}'")
        self.logger.log_service_reconciled(service.name, created=False)
        return response.json_object()

    def create_route(self, service: ServiceInfo) -> None:
        response = self.client.post(
            self.adapter.routes_path(service.name), self.adapter.route_payload(service)
        )
        self._expect(response, Operation.CREATE_ROUTE, f"create route for '{service.name}'")
        self.logger.log_route_reconciled(
            service.name, created=True, route_id=response.json_object().get("id")
        )

    def sync_route(self, service: ServiceInfo) -> None:
        """Update the first existing route in place, or create one if there is none.

        Routes after the first one returned by the gateway are left untouched.
        """
        routes = [
            self._parse(RemoteRoute, item, "route")
            for item in self._list(self.adapter.routes_path(service.name), "routes")
        ]
        if not routes:
            self.create_route(service)
            return

        route = routes[0]
        response = self.client.patch(
            self.adapter.route_path(service.name, route.id), self.adapter.route_payload(service)
        )
        self._expect(response, Operation.UPDATE_ROUTE, f"update route {route.id}")
        self.logger.log_route_reconciled(service.name, created=False, route_id=route.id)

    def sync_plugins(self, service: ServiceInfo, owner: str, clear: bool = True) -> None:
        """Replace the remote plugin set with ``service.plugins``, in order."""
        if clear:
            self.clear_plugins(service.name, owner)
        for plugin in service.plugins:
            self.register_plugin(service.name, owner, plugin)

    def clear_plugins(self, service_name: str, owner: str) -> None:
        """Delete every plugin currently attached to the service."""
        plugins = [
            self._parse(RemotePlugin, item, "plugin")
            for item in self._list(self.adapter.plugins_path(owner), "plugins")
        ]
        for plugin in plugins:
            response = self.client.delete(self.adapter.plugin_path(owner, plugin.id))
            self._expect(
                response, Operation.DELETE_PLUGIN, f"delete plugin '{plugin.name}' ({plugin.id})"
            )
            self.logger.log_plugin_removed(service_name, plugin.name, plugin.id)

    def register_plugin(self, service_name: str, owner: str, plugin: ServicePlugin) -> None:
        response = self.client.post(
            self.adapter.plugins_path(owner), self.adapter.plugin_payload(plugin)
        )
        self._expect(response, Operation.CREATE_PLUGIN, f"install plugin '{plugin.name}'")
        self.logger.log_plugin_installed(service_name, plugin.name)

    def _expect(self, response: GatewayResponse, operation: Operation, action: str) -> None:
        if not self.adapter.is_success(operation, response.status):
            raise GatewayError(
                f"Failed to {action}", status_code=response.status, body=response.body
            )

    def _list(self, path: str, what: str) -> List[Any]:
        """Collect every item of a list endpoint, following the gateway's ``next`` links."""
        items: List[Any] = []
        seen = set()
        next_path: Optional[str] = path
        while next_path:
            if next_path in seen:
                raise GatewayError(f"Pagination loop listing {what} at {next_path}")
            seen.add(next_path)

            response = self.client.get(next_path)
            self._expect(response, Operation.LIST, f"list {what}")

            body = response.body
            next_path = None
            if isinstance(body, dict):
                next_path = body.get("next")
                body = body.get("data")
            if not isinstance(body, list):
                raise GatewayError(
                    f"Malformed {what} list from {path}",
                    status_code=response.status,
                    body=response.body,
                )
            items.extend(body)
        return items

    def _parse(self, model, item: Any, what: str):
        try:
            return model.model_validate(item)
        except PydanticValidationError as e:
            raise GatewayError(f"Malformed {what} record: {item}", cause=e) from e
