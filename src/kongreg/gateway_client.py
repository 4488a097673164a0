"""
Kong Admin API client.

This module provides a synchronous HTTP client for the gateway admin port.
It only frames requests and responses; deciding what a status code means is
left to the reconciliation engine.
"""

from typing import Any, Dict, Optional

import httpx

from .errors import GatewayError
from .logging import GatewayCallTimer, get_logger
from .models.gateway import GatewayResponse


class GatewayClient:
    """
    HTTP client for the gateway admin API.

    Every call returns the status code and decoded body. Transport failures
    (connection refused, timeouts, protocol errors) raise ``GatewayError``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the admin API client.

        Args:
            base_url: Admin API URL (e.g., http://kong:8001)
            timeout: HTTP request timeout in seconds
            headers: Extra headers sent with every request (e.g., admin token)
            client: Pre-configured httpx client to reuse instead of one per call
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._client = client
        self.logger = get_logger("kongreg.gateway")

    def url(self, path: str) -> str:
        """Full URL of an admin API path. Absolute URLs, such as paging links, pass through."""
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return self.base_url + path

    def request(self, method: str, path: str, payload: Optional[Any] = None) -> GatewayResponse:
        """
        Send one request to the admin API.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            path: Admin API path, e.g. /services/my-service
            payload: JSON body, if any

        Returns:
            Response status and decoded body

        Raises:
            GatewayError: if the gateway could not be reached or the exchange failed
        """
        url = self.url(path)
        kwargs: Dict[str, Any] = {"headers": self.headers}
        if payload is not None:
            kwargs["json"] = payload

        try:
            with GatewayCallTimer(self.logger, method, url) as timer:
                if self._client is not None:
                    response = self._client.request(method, url, **kwargs)
                else:
                    with httpx.Client(timeout=self.timeout) as client:
                        response = client.request(method, url, **kwargs)
                timer.set_status_code(response.status_code)
        except httpx.HTTPError as e:
            self.logger.log_gateway_error(method, url, e)
            raise GatewayError(f"{method} {url} failed: {e}", cause=e) from e

        return GatewayResponse(status=response.status_code, body=_decode_body(response))

    def get(self, path: str) -> GatewayResponse:
        return self.request("GET", path)

    def post(self, path: str, payload: Any) -> GatewayResponse:
        return self.request("POST", path, payload)

    def patch(self, path: str, payload: Any) -> GatewayResponse:
        return self.request("PATCH", path, payload)

    def delete(self, path: str) -> GatewayResponse:
        return self.request("DELETE", path)


def _decode_body(response: httpx.Response) -> Optional[Any]:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
