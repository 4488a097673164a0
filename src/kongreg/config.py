import os
import re
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .adapters import SUPPORTED_ADAPTERS
from .logging import EventType, get_logger
from .models.plugin import ServicePlugin
from .models.service_info import ServiceInfo

PLUGINS_PREFIX = "service.plugins"
PLUGINS_ENV_PREFIX = PLUGINS_PREFIX.replace(".", "_").upper() + "_"

logger = get_logger("kongreg.config")


class GatewayConfig(BaseModel):
    url: Optional[str] = Field(
        default=None, description="Admin URL of the gateway; registration is skipped if unset"
    )
    adapter: str = Field(default="kong-v2", description="Gateway shape: kong-v0 or kong-v2")
    timeout: float = Field(default=30.0, gt=0, description="Admin API timeout (seconds)")
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Extra headers for admin API calls"
    )

    @field_validator("adapter")
    @classmethod
    def validate_adapter(cls, v):
        if v not in SUPPORTED_ADAPTERS:
            raise ValueError(f"adapter must be one of {', '.join(SUPPORTED_ADAPTERS)}")
        return v


class ServiceConfig(BaseModel):
    name: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    paths: List[str] = Field(default_factory=list)

    # Tuning properties sent to the gateway
    preserve_host: Optional[bool] = False
    retries: Optional[int] = Field(default=5, ge=0)
    strip_uri: Optional[bool] = True
    upstream_connect_timeout: Optional[int] = Field(default=60000, ge=0)
    upstream_read_timeout: Optional[int] = Field(default=60000, ge=0)
    upstream_send_timeout: Optional[int] = Field(default=60000, ge=0)
    https_only: Optional[bool] = False
    http_if_terminated: Optional[bool] = False

    @field_validator("paths", mode="before")
    @classmethod
    def split_paths(cls, v):
        if isinstance(v, str):
            return [path.strip() for path in v.split(",") if path.strip()]
        return v

    def properties(self) -> Dict[str, Any]:
        """Tuning properties, without the ones that are unset."""
        props = self.model_dump(exclude={"name", "host", "port", "paths"})
        return {key: value for key, value in props.items() if value is not None}


class RegistrarConfig(BaseModel):
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    plugins: Dict[str, Dict[str, str]] = Field(
        default_factory=dict, description="Plugin name -> flat property map (config.<key>)"
    )
    log_level: str = "INFO"

    @field_validator("plugins", mode="before")
    @classmethod
    def flatten_plugins(cls, v):
        if not v:
            return {}
        if not isinstance(v, dict):
            return v
        return {name: _flatten(props) for name, props in v.items()}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = str(v).upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"invalid log level: {v}")
        return level


def load_config(config_path: str = "kongreg_config.yml") -> RegistrarConfig:
    """Load configuration from YAML file with environment variable overrides."""
    config_data: Dict[str, Any] = {}

    try:
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        pass
    except (OSError, yaml.YAMLError) as e:
        _warn(f"Failed to load config from {config_path}: {e}")

    if not isinstance(config_data, dict):
        _warn(f"Ignoring config file {config_path}: top level is not a mapping")
        config_data = {}

    for section in ("gateway", "service", "plugins"):
        if not isinstance(config_data.get(section), dict):
            config_data[section] = {}

    _load_settings_from_environment(config_data)

    env_plugins = build_plugins(_plugin_properties_from_environment())
    for name, plugin in env_plugins.items():
        props = _flatten(config_data["plugins"].get(name) or {})
        props.update(plugin.properties)
        config_data["plugins"][name] = props

    config = RegistrarConfig(**config_data)
    logger.log_event(
        EventType.CONFIG_LOADED,
        f"Configuration loaded from {config_path}",
        metadata={
            "gateway_url": config.gateway.url,
            "adapter": config.gateway.adapter,
            "plugins": list(config.plugins),
        },
    )
    return config


def _load_settings_from_environment(config_data: Dict[str, Any]):
    """Apply environment variable overrides to the raw config sections."""

    field_mappings = {
        "GATEWAY_URL": ("gateway", "url", str),
        "GATEWAY_ADAPTER": ("gateway", "adapter", str),
        "GATEWAY_TIMEOUT": ("gateway", "timeout", float),
        "SERVICE_NAME": ("service", "name", str),
        "SERVICE_HOST": ("service", "host", str),
        "SERVICE_PORT": ("service", "port", int),
        "SERVICE_PATHS": ("service", "paths", str),
        "SERVICE_PRESERVE_HOST": ("service", "preserve_host", bool),
        "SERVICE_RETRIES": ("service", "retries", int),
        "SERVICE_STRIP_URI": ("service", "strip_uri", bool),
        "SERVICE_UPSTREAM_CONNECT_TIMEOUT": ("service", "upstream_connect_timeout", int),
        "SERVICE_UPSTREAM_READ_TIMEOUT": ("service", "upstream_read_timeout", int),
        "SERVICE_UPSTREAM_SEND_TIMEOUT": ("service", "upstream_send_timeout", int),
        "SERVICE_HTTPS_ONLY": ("service", "https_only", bool),
        "SERVICE_HTTP_IF_TERMINATED": ("service", "http_if_terminated", bool),
        "LOG_LEVEL": (None, "log_level", str),
    }

    for env_key, (section, config_field, field_type) in field_mappings.items():
        env_value = os.getenv(env_key)
        if env_value is None:
            continue

        target = config_data[section] if section else config_data
        try:
            if field_type is bool:
                target[config_field] = env_value.lower() in ("true", "1", "yes", "on")
            elif field_type is int:
                target[config_field] = int(env_value)
            elif field_type is float:
                target[config_field] = float(env_value)
            else:
                target[config_field] = env_value
        except (ValueError, TypeError) as e:
            _warn(f"Invalid {field_type.__name__} value for {env_key}: {env_value} ({e})")


def _plugin_properties_from_environment() -> Dict[str, str]:
    """Plugin properties from SERVICE_PLUGINS_* variables, normalized to dot notation."""
    props = {}
    for env_key in sorted(os.environ):
        if env_key.upper().startswith(PLUGINS_ENV_PREFIX):
            props[normalize_property_name(env_key.lower())] = os.environ[env_key]
    return props


def build_plugins(
    plugins_properties: Dict[str, str], prefix: str = PLUGINS_PREFIX
) -> Dict[str, ServicePlugin]:
    """
    Group ``<prefix>.<plugin>.<property>`` entries into plugins.

    Entries with no plugin segment are skipped. The property keeps the rest of
    its dotted name, e.g. ``service.plugins.cors.config.origins`` becomes
    property ``config.origins`` of plugin ``cors``.
    """
    grouped: Dict[str, Dict[str, str]] = {}
    for key, value in plugins_properties.items():
        no_prefix_name = _strip_prefix(key, prefix + ".").strip()
        if not no_prefix_name:
            continue

        idx = no_prefix_name.find(".")
        if idx <= 0:
            continue
        plugin_name = no_prefix_name[:idx]

        property_name = _strip_prefix(no_prefix_name, plugin_name + ".")
        grouped.setdefault(plugin_name, {})[property_name] = value

    return {name: ServicePlugin(name=name, properties=props) for name, props in grouped.items()}


def build_service_info(config: RegistrarConfig) -> ServiceInfo:
    """
    Build the desired service definition from configuration.

    Raises:
        ValidationError: if the configured service is incomplete or invalid
    """
    builder = ServiceInfo.new_service(config.service.name)
    builder.host(config.service.host).port(config.service.port)

    for path in config.service.paths:
        builder.add_path(path)

    for key, value in config.service.properties().items():
        builder.set_property(key, value)

    for name, props in config.plugins.items():
        builder.add_plugin(ServicePlugin(name=name, properties=props))

    return builder.build()


def normalize_property_name(name: str) -> str:
    """
    Normalize a property name given in underscore or kebab-case notation.

    ``test_prop`` -> ``test.prop``, ``test__prop`` -> ``test_prop``,
    ``test-prop`` -> ``test_prop``. Names in dot notation are left unchanged.
    """
    return kebab_case_to_underscore_notation(underscore_case_to_dot_notation(name))


def underscore_case_to_dot_notation(value: str) -> str:
    value = re.sub(r"(?<=[^_])_(?=[^_])", ".", value)
    return re.sub(r"(?<=[^_])__(?=[^_])", "_", value)


def kebab_case_to_underscore_notation(value: str) -> str:
    return value.replace("-", "_")


def _flatten(props: Any, parent: str = "") -> Dict[str, str]:
    if not isinstance(props, dict):
        return {}
    flat = {}
    for key, value in props.items():
        name = f"{parent}.{key}" if parent else str(key)
        if isinstance(value, dict):
            flat.update(_flatten(value, name))
        elif value is not None:
            flat[name] = _stringify(value)
    return flat


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(item) for item in value)
    return str(value)


def _strip_prefix(value: str, prefix: str) -> str:
    if value.startswith(prefix):
        return value[len(prefix) :]
    return value


def _warn(message: str):
    logger.warning(message, event_type=EventType.CONFIG_WARNING)
