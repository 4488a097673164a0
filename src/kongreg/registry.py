"""
Service registry: the single entry point for self-registration.
"""

import time
from typing import Dict, Optional, Union

import httpx

from .adapters import SUPPORTED_ADAPTERS, GatewayAdapter, get_adapter
from .errors import GatewayError, RegistrationError, ValidationError
from .gateway_client import GatewayClient
from .logging import clear_registration_id, get_logger, set_registration_id
from .models.service_info import ServiceInfo
from .reconciler import ReconciliationEngine


class ServiceRegistry:
    """Registers a service on the platform's service registry."""

    def register(self, service: ServiceInfo) -> None:
        raise NotImplementedError


class KongServiceRegistry(ServiceRegistry):
    """
    Registers microservices on a Kong API gateway.

    A preliminary existence check decides whether the service is created or
    updated; its route and plugins are then brought in line with the
    definition. Registering the same definition again converges to the same
    gateway state.
    """

    def __init__(
        self,
        admin_url: str,
        adapter: Union[str, GatewayAdapter] = "kong-v2",
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the registry.

        Args:
            admin_url: URL of the admin port on the Kong gateway
            adapter: Gateway shape, "kong-v0" (flat APIs) or "kong-v2" (services and routes)
            timeout: HTTP timeout for admin API calls in seconds
            headers: Extra headers for every admin API call
            client: Pre-configured httpx client to use for all calls

        Raises:
            RegistrationError: if the adapter name is not supported
        """
        if isinstance(adapter, str):
            resolved = get_adapter(adapter)
            if resolved is None:
                raise RegistrationError(
                    f"Gateway adapter [{adapter}] is not supported "
                    f"(supported: {', '.join(SUPPORTED_ADAPTERS)})"
                )
            adapter = resolved

        self.adapter = adapter
        self.gateway = GatewayClient(admin_url, timeout=timeout, headers=headers, client=client)
        self.engine = ReconciliationEngine(self.gateway, self.adapter)
        self.logger = get_logger("kongreg.registry")

    @property
    def admin_url(self) -> str:
        return self.gateway.base_url

    def register(self, service: ServiceInfo) -> None:
        """
        Register or update the service on the gateway.

        Args:
            service: The service definition

        Raises:
            ValidationError: if the definition is invalid; no gateway call is made
            RegistrationError: wrapping the GatewayError that aborted registration
        """
        set_registration_id()
        try:
            try:
                service = ServiceInfo.checked(service)
            except ValidationError as e:
                self.logger.log_registration_error(getattr(service, "name", None), e)
                raise

            self.logger.log_registration_start(service.name, self.adapter.name)
            start_time = time.time()
            try:
                self.engine.reconcile(service)
            except GatewayError as e:
                self.logger.log_registration_error(service.name, e)
                raise RegistrationError(
                    f"Failed to register service '{service.name}': {e}", cause=e
                ) from e

            duration_ms = (time.time() - start_time) * 1000
            self.logger.log_registration_complete(service.name, duration_ms)
            self.logger.debug(
                "Service registration info",
                service_name=service.name,
                metadata=service.model_dump(),
            )
        finally:
            clear_registration_id()
