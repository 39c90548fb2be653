"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests (app.dependency_overrides)
- Configuration is read once and passed explicitly

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated

from fastapi import Depends

from ..config.settings import Settings, get_settings
from ..core.analysis.errors import ServerMisconfigured
from ..infrastructure.openrouter.client import OpenRouterClient, OpenRouterConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_openrouter_config(
    settings: Annotated[Settings, Depends(get_settings)],
) -> OpenRouterConfig:
    """
    Build the relay configuration from settings.

    A missing API key fails the request with ServerMisconfigured here,
    before the route looks at any of the input.
    """
    missing = settings.validate_required_fields()
    if missing:
        logger.error(
            "Rejecting request: required configuration missing",
            extra={"missing_fields": missing}
        )
        raise ServerMisconfigured()

    return OpenRouterConfig(
        api_key=settings.openrouter_api_key,
        model=settings.openrouter_model,
        base_url=settings.openrouter_base_url,
        app_title=settings.openrouter_app_title,
        referer=settings.openrouter_referer,
        timeout_seconds=settings.request_timeout_seconds,
    )


def get_openrouter_client(
    config: Annotated[OpenRouterConfig, Depends(get_openrouter_config)],
) -> OpenRouterClient:
    """
    Provide the analysis relay.

    The client is stateless between calls (each call opens and closes
    its own connection), so a new instance per request is cheap.
    """
    return OpenRouterClient(config)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
OpenRouterClientDep = Annotated[OpenRouterClient, Depends(get_openrouter_client)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
