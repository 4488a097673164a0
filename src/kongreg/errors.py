"""
Error taxonomy for service registration.

``register`` either returns normally or raises a ``RegistrationError``. Callers
tell failures apart by the exception class (``ValidationError``) or by the
wrapped ``cause`` (a ``GatewayError`` for anything that happened on the wire).
"""

from typing import Any, Optional


class RegistrationError(Exception):
    """Top-level error raised by a service registry."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ValidationError(RegistrationError):
    """The desired service definition is invalid. No gateway call was made."""


class GatewayError(Exception):
    """The gateway answered with an unexpected status, or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body
        self.cause = cause

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (status {self.status_code}): {self.body}"
        return self.message
