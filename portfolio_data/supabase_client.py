"""
Supabase client configuration for the portfolio data layer.

Provides a lazily created, process-wide async Supabase client. Services
accept a client argument, so tests and embedding applications can inject
their own instead.
"""

import asyncio
from typing import Optional

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from .config import Settings, settings
from .logging_config import get_logger

logger = get_logger(__name__)


class SupabaseConfig:
    """
    Supabase configuration class.

    Loads Supabase URL and anon key from settings.
    """

    def __init__(self, app_settings: Settings = settings) -> None:
        """Initialize Supabase configuration from settings."""
        self.url: str = app_settings.SUPABASE_URL
        self.anon_key: str = app_settings.SUPABASE_ANON_KEY

        if not self.url or not self.anon_key:
            logger.warning("Supabase credentials not fully configured")
            logger.debug("SUPABASE_URL", configured=bool(self.url))
            logger.debug("SUPABASE_ANON_KEY", configured=bool(self.anon_key))

    @property
    def is_configured(self) -> bool:
        """Check if Supabase is properly configured."""
        return bool(self.url and self.anon_key)

    def client_options(self) -> AsyncClientOptions:
        """Auth options: PKCE flow with automatic token refresh."""
        return AsyncClientOptions(
            flow_type="pkce",
            auto_refresh_token=True,
            persist_session=True,
        )


_supabase_client: Optional[AsyncClient] = None
_client_lock: Optional[asyncio.Lock] = None


async def get_supabase_client(config: Optional[SupabaseConfig] = None) -> AsyncClient:
    """
    Get or create the shared Supabase client instance.

    Concurrent first calls create exactly one client.

    Args:
        config: Configuration to use on first creation

    Returns:
        Configured Supabase client

    Raises:
        ValueError: If Supabase is not properly configured
    """
    global _supabase_client, _client_lock

    if _supabase_client is not None:
        return _supabase_client

    config = config or SupabaseConfig()
    if not config.is_configured:
        raise ValueError("Supabase not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY")

    if _client_lock is None:
        _client_lock = asyncio.Lock()

    async with _client_lock:
        if _supabase_client is None:
            logger.info("Initializing Supabase client...", url=config.url)
            _supabase_client = await acreate_client(
                config.url, config.anon_key, options=config.client_options()
            )
            logger.info("Supabase client initialized successfully")

    return _supabase_client


def reset_supabase_client() -> None:
    """Forget the shared client; the next call creates a new one."""
    global _supabase_client, _client_lock
    _supabase_client = None
    _client_lock = None
