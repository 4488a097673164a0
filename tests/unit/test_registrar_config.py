import os

import pytest
from pydantic import ValidationError as PydanticValidationError

from kongreg.config import (
    RegistrarConfig,
    build_plugins,
    build_service_info,
    kebab_case_to_underscore_notation,
    load_config,
    normalize_property_name,
    underscore_case_to_dot_notation,
)
from kongreg.errors import ValidationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove registrar variables that may leak in from the host environment."""
    for key in list(os.environ):
        if key.startswith(("GATEWAY_", "SERVICE_")) or key == "LOG_LEVEL":
            monkeypatch.delenv(key, raising=False)


def test_load_config_from_yaml_file(tmp_path):
    config_file = tmp_path / "kongreg_config.yml"
    config_file.write_text("""
gateway:
  url: "http://kong:8001"
  adapter: kong-v0
  timeout: 5
service:
  name: user-service
  host: user-service.local
  port: 8080
  paths:
    - /users
    - /accounts
  retries: 3
  https_only: true
plugins:
  cors:
    config:
      origins: "*"
      credentials: true
  jwt:
    config.claims_to_verify: exp
""")

    config = load_config(str(config_file))

    assert config.gateway.url == "http://kong:8001"
    assert config.gateway.adapter == "kong-v0"
    assert config.gateway.timeout == 5
    assert config.service.name == "user-service"
    assert config.service.port == 8080
    assert config.service.paths == ["/users", "/accounts"]
    assert config.service.retries == 3
    assert config.service.https_only is True
    assert config.plugins == {
        "cors": {"config.origins": "*", "config.credentials": "true"},
        "jwt": {"config.claims_to_verify": "exp"},
    }


def test_missing_config_file_uses_defaults():
    config = load_config("/non/existent/config.yml")

    assert config.gateway.url is None
    assert config.gateway.adapter == "kong-v2"
    assert config.service.preserve_host is False
    assert config.service.retries == 5
    assert config.service.strip_uri is True
    assert config.service.upstream_connect_timeout == 60000
    assert config.service.upstream_read_timeout == 60000
    assert config.service.upstream_send_timeout == 60000
    assert config.service.https_only is False
    assert config.service.http_if_terminated is False
    assert config.plugins == {}


def test_invalid_yaml_falls_back_to_defaults(tmp_path):
    config_file = tmp_path / "kongreg_config.yml"
    config_file.write_text("gateway: [unclosed")

    config = load_config(str(config_file))

    assert config.gateway.url is None


def test_env_overrides_yaml_config(tmp_path, monkeypatch):
    config_file = tmp_path / "kongreg_config.yml"
    config_file.write_text("""
gateway:
  url: "http://yaml-kong:8001"
service:
  name: yaml-service
  port: 8080
""")

    monkeypatch.setenv("GATEWAY_URL", "http://env-kong:8001")
    monkeypatch.setenv("SERVICE_PORT", "9090")
    monkeypatch.setenv("SERVICE_PATHS", "/a, /b")
    monkeypatch.setenv("SERVICE_HTTPS_ONLY", "yes")
    monkeypatch.setenv("SERVICE_STRIP_URI", "false")

    config = load_config(str(config_file))

    assert config.gateway.url == "http://env-kong:8001"
    assert config.service.name == "yaml-service"
    assert config.service.port == 9090
    assert config.service.paths == ["/a", "/b"]
    assert config.service.https_only is True
    assert config.service.strip_uri is False


def test_invalid_env_value_is_ignored(monkeypatch):
    monkeypatch.setenv("SERVICE_PORT", "not-a-port")
    monkeypatch.setenv("SERVICE_NAME", "env-service")

    config = load_config("/non/existent/config.yml")

    assert config.service.port is None
    assert config.service.name == "env-service"


def test_plugins_from_environment(monkeypatch):
    monkeypatch.setenv("SERVICE_PLUGINS_CORS_CONFIG_ORIGINS", "*")
    monkeypatch.setenv("SERVICE_PLUGINS_CORS_CONFIG_MAX__AGE", "3600")
    monkeypatch.setenv("SERVICE_PLUGINS_JWT_CONFIG_CLAIMS__TO__VERIFY", "exp")

    config = load_config("/non/existent/config.yml")

    assert config.plugins == {
        "cors": {"config.origins": "*", "config.max_age": "3600"},
        "jwt": {"config.claims_to_verify": "exp"},
    }


def test_env_plugin_properties_merge_over_yaml(tmp_path, monkeypatch):
    config_file = tmp_path / "kongreg_config.yml"
    config_file.write_text("""
plugins:
  cors:
    config:
      origins: "http://yaml.example"
      methods: GET
""")
    monkeypatch.setenv("SERVICE_PLUGINS_CORS_CONFIG_ORIGINS", "*")

    config = load_config(str(config_file))

    assert config.plugins["cors"] == {"config.origins": "*", "config.methods": "GET"}


def test_config_validation_errors():
    with pytest.raises(PydanticValidationError):
        RegistrarConfig(gateway={"adapter": "nginx"})

    with pytest.raises(PydanticValidationError):
        RegistrarConfig(gateway={"timeout": 0})

    with pytest.raises(PydanticValidationError):
        RegistrarConfig(service={"retries": -1})

    with pytest.raises(PydanticValidationError):
        RegistrarConfig(log_level="chatty")


def test_build_service_info_from_config():
    config = RegistrarConfig(
        service={
            "name": "user-service",
            "host": "user-service.local",
            "port": 8080,
            "paths": "/users",
            "retries": None,
        },
        plugins={"cors": {"config": {"origins": "*"}}},
    )

    service = build_service_info(config)

    assert service.name == "user-service"
    assert service.paths == ["/users"]
    assert "retries" not in service.properties
    assert service.properties["strip_uri"] is True
    assert service.properties["https_only"] is False
    assert len(service.plugins) == 1
    assert service.plugins[0].name == "cors"
    assert service.plugins[0].config() == {"origins": "*"}


def test_build_service_info_rejects_incomplete_config():
    config = RegistrarConfig(service={"name": "user-service", "paths": ["/users"]})

    with pytest.raises(ValidationError):
        build_service_info(config)


def test_underscore_case_to_dot_notation():
    assert underscore_case_to_dot_notation("service_plugins") == "service.plugins"
    assert underscore_case_to_dot_notation("com_microkubes") == "com.microkubes"
    assert underscore_case_to_dot_notation("test_prop") == "test.prop"
    assert underscore_case_to_dot_notation("test__prop") == "test_prop"
    assert underscore_case_to_dot_notation("property_some__value") == "property.some_value"
    assert underscore_case_to_dot_notation("a_b_c") == "a.b.c"
    assert underscore_case_to_dot_notation("_") == "_"
    assert underscore_case_to_dot_notation("__") == "__"
    assert underscore_case_to_dot_notation("___") == "___"
    assert underscore_case_to_dot_notation("_property_") == "_property_"


def test_kebab_case_to_underscore_notation():
    assert kebab_case_to_underscore_notation("test-prop") == "test_prop"
    assert kebab_case_to_underscore_notation("_test-prop_") == "_test_prop_"
    assert kebab_case_to_underscore_notation("-test-prop-") == "_test_prop_"
    assert kebab_case_to_underscore_notation("-") == "_"
    assert kebab_case_to_underscore_notation("") == ""


def test_normalize_property_name():
    assert normalize_property_name("service.plugins.cors") == "service.plugins.cors"
    assert normalize_property_name("service_plugins_rate-limit_config_minute") == (
        "service.plugins.rate_limit.config.minute"
    )


def test_build_plugins():
    props = {
        "service.plugins.cors.config.test_prop": "test_val",
        "service.plugins.cors.config.max_delay": "100",
        "service.plugins.cors.config.headers": "h1,h2",
        "service.plugins.custom.config.test_prop": "other_value",
        "service.plugins.custom.config.max_delay": "2000",
        "service.plugins.custom.config.headers": "h3,h4",
        "service.plugins.": "skipped",
        "service.plugins.orphan": "skipped",
    }

    plugins = build_plugins(props)

    assert set(plugins) == {"cors", "custom"}
    assert plugins["cors"].name == "cors"
    assert plugins["cors"].properties == {
        "config.test_prop": "test_val",
        "config.max_delay": "100",
        "config.headers": "h1,h2",
    }
    assert plugins["custom"].properties == {
        "config.test_prop": "other_value",
        "config.max_delay": "2000",
        "config.headers": "h3,h4",
    }
