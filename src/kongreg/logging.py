"""
Structured Logging for the Kong service registrar

Provides structured JSON logging with registration IDs and event tracking so
that every gateway round-trip of a single registration can be correlated.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

# httpx logs every request at INFO; the gateway client logs its own events
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Context variable for tracking the registration ID across gateway calls
registration_id_context: ContextVar[Optional[str]] = ContextVar("registration_id", default=None)


class LogLevel(Enum):
    """Log levels for structured logging."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EventType(Enum):
    """Event types for structured logging."""

    # Registration lifecycle
    REGISTRATION_START = "registration_start"
    REGISTRATION_COMPLETE = "registration_complete"
    REGISTRATION_ERROR = "registration_error"
    REGISTRATION_SKIPPED = "registration_skipped"

    # Gateway transport
    GATEWAY_REQUEST = "gateway_request"
    GATEWAY_RESPONSE = "gateway_response"
    GATEWAY_ERROR = "gateway_error"

    # Reconciled resources
    SERVICE_CREATED = "service_created"
    SERVICE_UPDATED = "service_updated"
    ROUTE_CREATED = "route_created"
    ROUTE_UPDATED = "route_updated"
    PLUGIN_REMOVED = "plugin_removed"
    PLUGIN_INSTALLED = "plugin_installed"

    # Configuration
    CONFIG_LOADED = "config_loaded"
    CONFIG_WARNING = "config_warning"


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    _fields = (
        "event_type",
        "service_name",
        "method",
        "url",
        "status_code",
        "duration_ms",
        "metadata",
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        registration_id = registration_id_context.get()
        if registration_id:
            log_entry["registration_id"] = registration_id

        for field in self._fields:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_entry.update(getattr(record, "extra_fields"))

        return json.dumps(log_entry, default=str)


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that gracefully handles closed streams during shutdown."""

    def emit(self, record):
        """Emit a record, handling closed stream errors gracefully."""
        try:
            if hasattr(self.stream, "closed") and self.stream.closed:
                return

            super().emit(record)
        except (ValueError, OSError) as e:
            error_msg = str(e).lower()
            if any(
                phrase in error_msg
                for phrase in ["closed file", "bad file descriptor", "i/o operation on closed file"]
            ):
                return
            raise


class RegistrarLogger:
    """Structured logger for the service registrar."""

    def __init__(self, name: str = "kongreg", level: Optional[LogLevel] = LogLevel.INFO):
        """Initialize the structured logger.

        Loggers created without a level inherit it from their parent logger.
        """
        self.name = name
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(getattr(logging, level.value))

        # Remove existing handlers to avoid duplicates
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        handler = SafeStreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        self.logger.addHandler(handler)

        self.logger.propagate = False

    def set_level(self, level: LogLevel):
        """Set the logging level."""
        self.logger.setLevel(getattr(logging, level.value))

    def _log(self, level: LogLevel, message: str, **kwargs):
        """Internal method to log with structured data."""
        extra = {}

        if "event_type" in kwargs:
            event_type = kwargs.pop("event_type")
            extra["event_type"] = (
                event_type.value if isinstance(event_type, EventType) else event_type
            )

        for field in ["service_name", "method", "url", "status_code", "duration_ms", "metadata"]:
            if field in kwargs:
                value = kwargs.pop(field)
                if value is not None:
                    extra[field] = value

        if kwargs:
            extra["extra_fields"] = kwargs

        getattr(self.logger, level.value.lower())(message, extra=extra)

    def debug(self, message: str, **kwargs):
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        """Log info message."""
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message."""
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message."""
        self._log(LogLevel.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message."""
        self._log(LogLevel.CRITICAL, message, **kwargs)

    def log_event(self, event_type: EventType, message: str, **kwargs):
        """Log a structured event."""
        self.info(message, event_type=event_type, **kwargs)

    def log_registration_start(self, service_name: str, adapter: str, **kwargs):
        """Log the start of a registration call."""
        self.log_event(
            EventType.REGISTRATION_START,
            f"Registering service '{service_name}' ({adapter})",
            service_name=service_name,
            metadata={"adapter": adapter},
            **kwargs,
        )

    def log_registration_complete(self, service_name: str, duration_ms: float, **kwargs):
        """Log a successful registration."""
        self.log_event(
            EventType.REGISTRATION_COMPLETE,
            f"Service '{service_name}' registered ({duration_ms:.1f}ms)",
            service_name=service_name,
            duration_ms=duration_ms,
            **kwargs,
        )

    def log_registration_error(
        self, service_name: Optional[str], error: Union[str, Exception], **kwargs
    ):
        """Log a failed registration."""
        error_msg = str(error)
        base_meta = {"error": error_msg, "error_type": type(error).__name__}
        extra_meta = kwargs.pop("metadata", None)
        if extra_meta:
            base_meta.update(extra_meta)

        self._log(
            LogLevel.ERROR,
            f"Registration of '{service_name}' failed: {error_msg}",
            event_type=EventType.REGISTRATION_ERROR,
            service_name=service_name,
            metadata=base_meta,
            **kwargs,
        )

    def log_gateway_request(self, method: str, url: str, **kwargs):
        """Log an outgoing admin API request."""
        self._log(
            LogLevel.DEBUG,
            f"{method} {url}",
            event_type=EventType.GATEWAY_REQUEST,
            method=method,
            url=url,
            **kwargs,
        )

    def log_gateway_response(
        self, method: str, url: str, status_code: int, duration_ms: float, **kwargs
    ):
        """Log an admin API response."""
        self._log(
            LogLevel.DEBUG,
            f"{method} {url} - {status_code} ({duration_ms:.1f}ms)",
            event_type=EventType.GATEWAY_RESPONSE,
            method=method,
            url=url,
            status_code=status_code,
            duration_ms=duration_ms,
            **kwargs,
        )

    def log_gateway_error(self, method: str, url: str, error: Union[str, Exception], **kwargs):
        """Log a transport failure talking to the admin API."""
        self._log(
            LogLevel.ERROR,
            f"{method} {url} failed: {error}",
            event_type=EventType.GATEWAY_ERROR,
            method=method,
            url=url,
            metadata={"error": str(error), "error_type": type(error).__name__},
            **kwargs,
        )

    def log_service_reconciled(self, service_name: str, created: bool, **kwargs):
        """Log a created or updated service resource."""
        event_type = EventType.SERVICE_CREATED if created else EventType.SERVICE_UPDATED
        action = "created" if created else "updated"
        self.log_event(
            event_type,
            f"Service '{service_name}' {action} on gateway",
            service_name=service_name,
            **kwargs,
        )

    def log_route_reconciled(
        self, service_name: str, created: bool, route_id: Optional[str] = None, **kwargs
    ):
        """Log a created or updated route resource."""
        event_type = EventType.ROUTE_CREATED if created else EventType.ROUTE_UPDATED
        message = f"Route for '{service_name}' {'created' if created else 'updated'}"
        if route_id:
            message += f" (route {route_id})"

        self.log_event(
            event_type,
            message,
            service_name=service_name,
            metadata={"route_id": route_id} if route_id else None,
            **kwargs,
        )

    def log_plugin_removed(self, service_name: str, plugin_name: str, plugin_id: str, **kwargs):
        """Log removal of a remote plugin instance."""
        self.log_event(
            EventType.PLUGIN_REMOVED,
            f"Removed plugin '{plugin_name}' ({plugin_id}) from '{service_name}'",
            service_name=service_name,
            metadata={"plugin": plugin_name, "plugin_id": plugin_id},
            **kwargs,
        )

    def log_plugin_installed(self, service_name: str, plugin_name: str, **kwargs):
        """Log installation of a plugin."""
        self.log_event(
            EventType.PLUGIN_INSTALLED,
            f"Installed plugin '{plugin_name}' on '{service_name}'",
            service_name=service_name,
            metadata={"plugin": plugin_name},
            **kwargs,
        )


# Global logger instance
logger = RegistrarLogger()


def get_logger(name: str = "kongreg") -> RegistrarLogger:
    """Get a logger instance."""
    if name == "kongreg":
        return logger
    if name.startswith("kongreg."):
        return RegistrarLogger(name, level=None)
    return RegistrarLogger(name)


def set_registration_id(registration_id: Optional[str] = None) -> str:
    """Set registration ID in context. If not provided, generates a new one."""
    if registration_id is None:
        registration_id = f"reg_{uuid.uuid4().hex[:12]}"

    registration_id_context.set(registration_id)
    return registration_id


def get_registration_id() -> Optional[str]:
    """Get current registration ID from context."""
    return registration_id_context.get()


def clear_registration_id():
    """Clear registration ID from context."""
    registration_id_context.set(None)


class GatewayCallTimer:
    """Context manager timing a single admin API round-trip."""

    def __init__(self, logger: RegistrarLogger, method: str, url: str):
        self.logger = logger
        self.method = method
        self.url = url
        self.start_time = None
        self.status_code = None
        self.duration_ms = None

    def __enter__(self):
        self.start_time = time.time()
        self.logger.log_gateway_request(self.method, self.url)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.time() - self.start_time) * 1000
        if exc_type is None and self.status_code is not None:
            self.logger.log_gateway_response(
                self.method, self.url, self.status_code, self.duration_ms
            )

    def set_status_code(self, status_code: int):
        """Set the response status code."""
        self.status_code = status_code


def configure_logging(level: LogLevel = LogLevel.INFO, enable_debug: bool = False):
    """Configure global logging settings."""
    if enable_debug:
        level = LogLevel.DEBUG

    logger.set_level(level)

    logger.debug(
        "Logging configured",
        metadata={"log_level": level.value, "debug_enabled": enable_debug},
    )
