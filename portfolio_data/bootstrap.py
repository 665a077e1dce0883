"""
Startup entry point for the portfolio data layer.

Configures logging from the settings and wires the shared client into the
data service, the auth service and the optional debug tools.
"""

from dataclasses import dataclass
from typing import Optional

from supabase import AsyncClient

from .auth_service import AuthService
from .config import Settings, settings
from .data_service import DataService
from .debug import DebugTools, build_debug_tools
from .logging_config import get_logger, setup_logging
from .storage import LocalStorage, build_storage
from .supabase_client import SupabaseConfig, get_supabase_client

logger = get_logger(__name__)


@dataclass
class PortfolioServices:
    """The services one site instance runs with."""

    data: DataService
    auth: AuthService
    debug: Optional[DebugTools] = None

    async def close(self) -> None:
        await self.auth.close()


async def create_services(
    app_settings: Optional[Settings] = None,
    client: Optional[AsyncClient] = None,
    storage: Optional[LocalStorage] = None,
) -> PortfolioServices:
    """
    Configure logging and build the services.

    ``DEBUG`` forces debug-level logging; otherwise ``LOG_LEVEL`` applies.

    Args:
        app_settings: Settings (defaults to the module settings)
        client: Client to use instead of the shared one
        storage: Extended-session store (defaults to the configured path)

    Returns:
        The wired services

    Raises:
        ValueError: If no client is given and Supabase is not configured
    """
    app_settings = app_settings or settings
    setup_logging(
        log_level="DEBUG" if app_settings.DEBUG else app_settings.LOG_LEVEL,
        service_name=app_settings.APP_NAME,
        use_json=app_settings.LOG_JSON,
    )

    logger.info(
        "Starting portfolio data layer",
        service=app_settings.APP_NAME,
        debug=app_settings.DEBUG,
        log_level=app_settings.LOG_LEVEL,
    )

    if client is None:
        client = await get_supabase_client(SupabaseConfig(app_settings))

    auth = AuthService(
        client,
        storage=storage or build_storage(app_settings.EXTENDED_SESSION_STORAGE_PATH),
        app_settings=app_settings,
    )
    return PortfolioServices(
        data=DataService(client, app_settings=app_settings),
        auth=auth,
        debug=build_debug_tools(auth, app_settings),
    )
