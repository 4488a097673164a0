"""
Tests for the registrar's structured logging.
"""

import json
import logging

from kongreg.logging import (
    EventType,
    GatewayCallTimer,
    LogLevel,
    RegistrarLogger,
    StructuredFormatter,
    clear_registration_id,
    configure_logging,
    get_logger,
    get_registration_id,
    set_registration_id,
)


def _record(**extra):
    record = logging.LogRecord("kongreg.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Test JSON formatting of log records."""

    def teardown_method(self):
        clear_registration_id()

    def test_base_fields(self):
        entry = json.loads(StructuredFormatter().format(_record()))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "kongreg.test"
        assert entry["message"] == "hello"
        assert "timestamp" in entry
        assert "registration_id" not in entry

    def test_structured_fields_and_registration_id(self):
        set_registration_id("reg-123")
        record = _record(
            event_type="service_created",
            service_name="user-service",
            status_code=201,
            metadata={"adapter": "kong-v2"},
            extra_fields={"attempt": 1},
        )

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["registration_id"] == "reg-123"
        assert entry["event_type"] == "service_created"
        assert entry["service_name"] == "user-service"
        assert entry["status_code"] == 201
        assert entry["metadata"] == {"adapter": "kong-v2"}
        assert entry["attempt"] == 1


class TestRegistrarLogger:
    """Test logger helpers."""

    def test_logger_initialization(self):
        logger = RegistrarLogger("kongreg_test_init", LogLevel.INFO)
        assert logger.name == "kongreg_test_init"
        assert logger.logger.level == logging.INFO
        assert len(logger.logger.handlers) == 1
        assert logger.logger.propagate is False

    def test_event_helpers(self, capsys):
        logger = RegistrarLogger("kongreg_test_events", LogLevel.DEBUG)
        logger.log_registration_start("user-service", "kong-v2")
        logger.log_service_reconciled("user-service", created=True)
        logger.log_route_reconciled("user-service", created=False, route_id="r1")
        logger.log_plugin_removed("user-service", "cors", "p1")
        logger.log_plugin_installed("user-service", "jwt")
        logger.log_registration_complete("user-service", 12.5)

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        events = [line["event_type"] for line in lines]

        assert events == [
            EventType.REGISTRATION_START.value,
            EventType.SERVICE_CREATED.value,
            EventType.ROUTE_UPDATED.value,
            EventType.PLUGIN_REMOVED.value,
            EventType.PLUGIN_INSTALLED.value,
            EventType.REGISTRATION_COMPLETE.value,
        ]
        assert all(line["service_name"] == "user-service" for line in lines)
        assert lines[2]["metadata"] == {"route_id": "r1"}

    def test_registration_error_is_logged_at_error_level(self, capsys):
        logger = RegistrarLogger("kongreg_test_errors", LogLevel.DEBUG)
        logger.log_registration_error("user-service", ValueError("boom"))

        entry = json.loads(capsys.readouterr().out.strip())
        assert entry["level"] == "ERROR"
        assert entry["event_type"] == "registration_error"
        assert entry["metadata"] == {"error": "boom", "error_type": "ValueError"}

    def test_gateway_call_timer(self, capsys):
        logger = RegistrarLogger("kongreg_test_timer", LogLevel.DEBUG)
        with GatewayCallTimer(logger, "GET", "http://kong:8001/services/x") as timer:
            timer.set_status_code(404)

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert [line["event_type"] for line in lines] == ["gateway_request", "gateway_response"]
        assert lines[1]["status_code"] == 404
        assert timer.duration_ms is not None


class TestRegistrationContext:
    """Test registration ID context management."""

    def setup_method(self):
        clear_registration_id()

    def teardown_method(self):
        clear_registration_id()

    def test_registration_id_generation(self):
        reg_id = set_registration_id()
        assert reg_id.startswith("reg_")
        assert len(reg_id) == 16
        assert get_registration_id() == reg_id

    def test_registration_id_clearing(self):
        set_registration_id("test-id")
        clear_registration_id()
        assert get_registration_id() is None


def test_child_loggers_follow_configured_level():
    configure_logging(LogLevel.DEBUG)
    try:
        child = get_logger("kongreg.test_child")
        assert child.logger.getEffectiveLevel() == logging.DEBUG
    finally:
        configure_logging(LogLevel.INFO)

    assert get_logger("kongreg.test_child").logger.getEffectiveLevel() == logging.INFO
    assert get_logger() is get_logger("kongreg")
