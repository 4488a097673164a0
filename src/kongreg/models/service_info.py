"""
Desired-state model for a service registration.

``ServiceInfo`` holds what should exist on the gateway for one service: its
name, the upstream host and port, the route paths and free-form tuning
properties, plus the plugins attached to it. Instances are immutable; use
``ServiceInfo.new_service(name)`` to get a builder.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from kongreg.errors import ValidationError
from kongreg.models.plugin import ServicePlugin


class ServiceInfo(BaseModel):
    """Registration data for a microservice."""

    name: str = Field(..., min_length=1, description="Name the service is registered under")
    host: str = Field(..., min_length=1, description="Upstream host name")
    port: int = Field(..., gt=0, le=65535, description="Upstream port")
    paths: List[str] = Field(..., min_length=1, description="Route matching path patterns")
    properties: Dict[str, Any] = Field(
        default_factory=dict, description="Tuning knobs (retries, timeouts, https_only, ...)"
    )
    plugins: List[ServicePlugin] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @field_validator("name", "host")
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @property
    def upstream_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def get_property(self, key: str, default: Any = None) -> Any:
        """Get a tuning property; ``None`` values count as absent."""
        value = self.properties.get(key)
        return default if value is None else value

    @classmethod
    def new_service(cls, name: str) -> "ServiceInfoBuilder":
        """Start building a new ``ServiceInfo`` for the service with the given name."""
        return ServiceInfoBuilder(name)

    @classmethod
    def checked(cls, service: "ServiceInfo") -> "ServiceInfo":
        """Re-validate an existing instance.

        Raises:
            ValidationError: if any field violates the model constraints
        """
        if not isinstance(service, ServiceInfo):
            raise ValidationError(f"expected ServiceInfo, got {type(service).__name__}")
        try:
            return cls.model_validate(service.model_dump())
        except PydanticValidationError as e:
            raise ValidationError(describe_validation_error(e), cause=e) from e


class ServiceInfoBuilder:
    """Collects registration data and produces a validated ``ServiceInfo``."""

    def __init__(self, name: Optional[str] = None):
        self._name = name
        self._host: Optional[str] = None
        self._port: Optional[int] = None
        self._paths: List[str] = []
        self._properties: Dict[str, Any] = {}
        self._plugins: List[ServicePlugin] = []

    def name(self, name: str) -> "ServiceInfoBuilder":
        self._name = name
        return self

    def host(self, host: str) -> "ServiceInfoBuilder":
        self._host = host
        return self

    def port(self, port: int) -> "ServiceInfoBuilder":
        self._port = port
        return self

    def add_path(self, path: str) -> "ServiceInfoBuilder":
        self._paths.append(path)
        return self

    def set_property(self, name: str, value: Any) -> "ServiceInfoBuilder":
        self._properties[name] = value
        return self

    def add_plugin(self, plugin: ServicePlugin) -> "ServiceInfoBuilder":
        self._plugins.append(plugin)
        return self

    def build(self) -> ServiceInfo:
        """Build the ``ServiceInfo``.

        Raises:
            ValidationError: if the collected data is missing or invalid
        """
        try:
            return ServiceInfo(
                name=self._name,
                host=self._host,
                port=self._port,
                paths=list(self._paths),
                properties=dict(self._properties),
                plugins=list(self._plugins),
            )
        except PydanticValidationError as e:
            raise ValidationError(describe_validation_error(e), cause=e) from e


def describe_validation_error(error: PydanticValidationError) -> str:
    """Flatten pydantic errors into one readable line."""
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "service"
        problems.append(f"{location}: {item.get('msg')}")
    return "Invalid service definition - " + "; ".join(problems)
