"""
Self-registration on service start-up.

Call ``auto_register()`` when the process starts (or on every re-announce);
when a gateway URL is configured the service described by the configuration
is registered on it.
"""

import argparse
import sys
from typing import Optional

import httpx

from .config import RegistrarConfig, build_service_info, load_config
from .errors import RegistrationError
from .logging import EventType, LogLevel, configure_logging, get_logger
from .registry import KongServiceRegistry

logger = get_logger("kongreg.autoregister")


def get_service_registry(
    config: RegistrarConfig, client: Optional[httpx.Client] = None
) -> KongServiceRegistry:
    """Build the registry for the configured gateway."""
    return KongServiceRegistry(
        config.gateway.url,
        adapter=config.gateway.adapter,
        timeout=config.gateway.timeout,
        headers=config.gateway.headers,
        client=client,
    )


def auto_register(
    config: Optional[RegistrarConfig] = None, client: Optional[httpx.Client] = None
) -> bool:
    """
    Register the configured service on the configured gateway.

    Args:
        config: Registrar configuration, loaded from file/environment if None
        client: Optional httpx client for admin API calls

    Returns:
        True if the service was registered, False if no gateway is configured

    Raises:
        RegistrationError: if the service definition is invalid or registration failed
    """
    if config is None:
        config = load_config()

    if not config.gateway.url:
        logger.log_event(
            EventType.REGISTRATION_SKIPPED,
            "No gateway URL configured, skipping self-registration",
            service_name=config.service.name,
        )
        return False

    service = build_service_info(config)
    get_service_registry(config, client=client).register(service)
    return True


def main(argv=None):
    """Console entry point: register this service on the gateway."""
    parser = argparse.ArgumentParser(
        description="Register a service, its route and plugins on a Kong gateway"
    )
    parser.add_argument(
        "--config",
        default="kongreg_config.yml",
        help="Path to the YAML configuration (default: kongreg_config.yml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(LogLevel(config.log_level), enable_debug=args.debug)

    try:
        auto_register(config)
    except RegistrationError as e:
        logger.error(f"Self-registration failed: {e}", service_name=config.service.name)
        sys.exit(1)


if __name__ == "__main__":
    main()
