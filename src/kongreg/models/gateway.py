"""
Models for records read back from the gateway admin API.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GatewayResponse(BaseModel):
    """Status and decoded body of one admin API call."""

    status: int = Field(..., description="HTTP status code returned by the gateway")
    body: Optional[Any] = Field(
        default=None, description="JSON-decoded body, raw text if not JSON, None if empty"
    )

    def json_object(self) -> dict:
        """Body as a JSON object, or an empty dict when it is anything else."""
        return self.body if isinstance(self.body, dict) else {}


class RemoteRoute(BaseModel):
    """Route attached to a service (service+route gateways only)."""

    id: str
    paths: Optional[List[str]] = None

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class RemotePlugin(BaseModel):
    """Plugin instance attached to a service, keyed by its server-assigned id."""

    id: str
    name: str

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)
