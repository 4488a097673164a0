"""
Service plugin model.

A plugin is an extension attached to a service on the gateway that adds extra
behaviour for that service only, e.g. CORS or authorization.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

CONFIG_PREFIX = "config."


class ServicePlugin(BaseModel):
    """Named gateway plugin with its free-form properties.

    Properties whose key starts with ``config.`` are plugin configuration and are
    sent to the gateway without the prefix. Any other key is plugin metadata and
    is never transmitted.
    """

    name: str = Field(..., min_length=1, description="Gateway plugin name, e.g. 'cors'")
    properties: Dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def config(self) -> Dict[str, str]:
        """Plugin configuration with the ``config.`` prefix stripped."""
        return {
            key[len(CONFIG_PREFIX) :]: value
            for key, value in self.properties.items()
            if key.startswith(CONFIG_PREFIX) and len(key) > len(CONFIG_PREFIX)
        }

    def to_payload(self) -> Dict[str, Any]:
        return {"name": self.name, "config": self.config()}
