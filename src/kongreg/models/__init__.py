from .plugin import ServicePlugin
from .service_info import ServiceInfo, ServiceInfoBuilder
from .gateway import GatewayResponse, RemotePlugin, RemoteRoute

__all__ = [
    "ServicePlugin",
    "ServiceInfo",
    "ServiceInfoBuilder",
    "GatewayResponse",
    "RemotePlugin",
    "RemoteRoute",
]
