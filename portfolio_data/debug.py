"""
Developer debugging utilities for session problems.

Only available when DEBUG_TOOLS_ENABLED is set.
"""

from typing import Any, Dict, Optional

from .auth_service import AuthService
from .config import Settings, settings
from .exceptions import DebugToolsDisabledError
from .logging_config import get_logger

logger = get_logger(__name__)


class DebugTools:
    """Manual session inspection and reset."""

    def __init__(self, auth: AuthService, enabled: bool = False) -> None:
        self.auth = auth
        self.enabled = enabled

    def _require_enabled(self, tool: str) -> None:
        if not self.enabled:
            raise DebugToolsDisabledError(tool)

    async def force_sign_out(self) -> bool:
        """
        Sign out and wipe all local session state, even if the provider
        rejects the sign-out.

        Returns:
            Whether the provider accepted the sign-out
        """
        self._require_enabled("force_sign_out")
        logger.warning("Forcing sign-out")
        self.auth.stop_session_monitoring()
        result = await self.auth.sign_out()
        if not result.success:
            logger.warning("Provider sign-out failed during forced sign-out", error=str(result.error))
        return result.success

    async def check_session(self) -> Dict[str, Any]:
        """Summarize the current session for inspection."""
        self._require_enabled("check_session")
        result = await self.auth.get_session()
        info = self.auth.get_session_info(result.session)
        user = getattr(result.session, "user", None) if result.session else None

        summary = {
            "has_session": result.session is not None,
            "user_id": getattr(user, "id", None),
            "email": getattr(user, "email", None),
            "state": self.auth.state.value,
            "is_valid": info.is_valid,
            "should_refresh": info.should_refresh,
            "is_extended": info.is_extended,
            "expires_at": info.expires_at.isoformat() if info.expires_at else None,
            "extended_expiry": info.extended_expiry.isoformat() if info.extended_expiry else None,
            "time_remaining": info.time_remaining,
            "monitoring": self.auth.session_monitoring,
            "error": str(result.error) if result.error else None,
        }
        logger.info("Session check", **summary)
        return summary


def build_debug_tools(
    auth: AuthService, app_settings: Optional[Settings] = None
) -> Optional[DebugTools]:
    """Return debug tools when the feature flag is on, else None."""
    app_settings = app_settings or settings
    if not app_settings.DEBUG_TOOLS_ENABLED:
        return None
    return DebugTools(auth, enabled=True)
