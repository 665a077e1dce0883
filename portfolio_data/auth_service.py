"""
Authentication service using Supabase Auth.

Manages the session lifecycle for the portfolio site: OAuth and password
sign-in, the OAuth callback, session validity and proactive refresh, the
client-side extended-session override, cached admin-role and profile
provisioning checks, session monitoring and auth event fan-out.

No method raises across the service boundary. Reads return value/error
pairs; the admin check fails closed.
"""

import asyncio
import inspect
import itertools
import json
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from supabase import AsyncClient
from supabase import AuthError as ProviderAuthError

from .cache import SingleFlightCache
from .config import Settings, settings
from .exceptions import (AuthError, NoSessionError, PolicyRecursionError,
                         error_code, error_message, query_error_for)
from .logging_config import get_logger
from .metrics import track_auth_operation
from .models import (AuthResult, ExtendedSessionInfo, OAuthCallbackResult,
                     ProfileResult, SessionInfo, SessionResult, UserResult)
from .profile_service import UserProfileService
from .session_monitor import SessionMonitor
from .storage import LocalStorage, build_storage

logger = get_logger(__name__)

EXTENDED_SESSION_KEY = "extended_session"
PROFILES_TABLE = "profiles"
ENSURE_PROFILE_RPC = "ensure_user_profile"
HANDLE_LOGIN_RPC = "handle_user_login"
EMAIL_EXISTS_RPC = "check_email_exists"

AuthCallback = Callable[[str, Any], Any]


class SessionState(str, Enum):
    """Last known position in the session lifecycle."""

    SIGNED_OUT = "signed_out"
    PENDING_OAUTH = "pending_oauth"
    SIGNED_IN = "signed_in"
    REFRESHING = "refreshing"


def _user_id_of(session: Any) -> Optional[str]:
    user = getattr(session, "user", None) if session else None
    return getattr(user, "id", None)


class AuthService:
    """
    Service class for Supabase authentication operations.

    Args:
        client: Supabase async client
        storage: Local key/value store for the extended-session record
        app_settings: Settings (defaults to the module settings)
        clock: Time source in epoch seconds
    """

    def __init__(
        self,
        client: AsyncClient,
        storage: Optional[LocalStorage] = None,
        app_settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.settings = app_settings or settings
        self.storage = storage or build_storage(self.settings.EXTENDED_SESSION_STORAGE_PATH)
        self._clock = clock
        self.state = SessionState.SIGNED_OUT
        self.profiles = UserProfileService(client, clock=clock)

        self._admin_cache: SingleFlightCache[bool] = SingleFlightCache(
            "admin_role", ttl=self.settings.ADMIN_CACHE_TTL_SECONDS, clock=clock
        )
        self._profile_cache: SingleFlightCache[ProfileResult] = SingleFlightCache(
            "profile_ensure", ttl=self.settings.PROFILE_CACHE_TTL_SECONDS, clock=clock
        )

        self._monitor: Optional[SessionMonitor] = None
        self._listeners: Dict[int, AuthCallback] = {}
        self._listener_ids = itertools.count()
        self._provider_subscription: Any = None
        self._background_tasks: Set[asyncio.Task] = set()

    # Error helpers

    def _auth_error(self, operation: str, exc: BaseException) -> AuthError:
        track_auth_operation(operation, "error")
        if isinstance(exc, AuthError):
            return exc
        if isinstance(exc, ProviderAuthError):
            logger.warning(
                "Supabase auth error", operation=operation, error=error_message(exc)
            )
            return AuthError(
                f"{operation} failed: {error_message(exc)}",
                error_code(exc) or "supabase_error",
            )
        logger.error("Unexpected auth error", operation=operation, error=str(exc))
        return AuthError(f"{operation} failed: {exc}", "internal_error")

    # Sign-in flows

    async def sign_in_with_oauth(self, provider: str = "google") -> AuthResult:
        """
        Start the provider consent flow.

        The provider redirects back to the fixed callback URL; no local
        session exists until :meth:`handle_oauth_callback` runs there.

        Args:
            provider: OAuth provider name

        Returns:
            AuthResult whose ``data`` carries the redirect URL
        """
        redirect_url = self.settings.oauth_redirect_url
        logger.info("Initiating OAuth sign-in", provider=provider, redirect_to=redirect_url)
        try:
            response = await self.client.auth.sign_in_with_oauth(
                {
                    "provider": provider,
                    "options": {
                        "redirect_to": redirect_url,
                        "scopes": self.settings.OAUTH_SCOPES,
                        "query_params": {"access_type": "offline", "prompt": "consent"},
                    },
                }
            )
        except Exception as e:
            return AuthResult(success=False, error=self._auth_error("sign_in_with_oauth", e))

        self.state = SessionState.PENDING_OAUTH
        track_auth_operation("sign_in_with_oauth", "success")
        return AuthResult(success=True, data=response)

    async def sign_in_with_email(
        self, email: str, password: str, remember_me: bool = False
    ) -> AuthResult:
        """
        Password sign-in.

        Args:
            email: User email address
            password: User password
            remember_me: Also write the extended-session record

        Returns:
            AuthResult with the provider response and profile status
        """
        logger.info("Attempting email sign-in", email=email.lower())
        try:
            response = await self.client.auth.sign_in_with_password(
                {"email": email.lower(), "password": password}
            )
        except Exception as e:
            return AuthResult(success=False, error=self._auth_error("sign_in_with_email", e))

        session = getattr(response, "session", None)
        user_id = _user_id_of(session)
        if not user_id:
            track_auth_operation("sign_in_with_email", "error")
            return AuthResult(
                success=False,
                error=AuthError("Authentication failed - no session created", "no_session"),
            )

        self.state = SessionState.SIGNED_IN
        profile = await self.ensure_user_profile(user_id)
        if remember_me:
            self.extend_session(session)

        track_auth_operation("sign_in_with_email", "success")
        return AuthResult(
            success=True,
            data=response,
            profile_created=profile.profile_created,
            profile_completed=profile.profile_completed,
        )

    async def sign_up_with_email(self, email: str, password: str) -> AuthResult:
        """Register with email and password; the profile is provisioned on confirmation."""
        try:
            response = await self.client.auth.sign_up(
                {
                    "email": email.lower(),
                    "password": password,
                    "options": {"email_redirect_to": self.settings.oauth_redirect_url},
                }
            )
        except Exception as e:
            return AuthResult(success=False, error=self._auth_error("sign_up_with_email", e))

        track_auth_operation("sign_up_with_email", "success")
        return AuthResult(
            success=True, data=response, profile_created=False, profile_completed=False
        )

    async def reset_password(self, email: str) -> AuthResult:
        try:
            await self.client.auth.reset_password_for_email(
                email.lower(), {"redirect_to": self.settings.password_reset_url}
            )
        except Exception as e:
            return AuthResult(success=False, error=self._auth_error("reset_password", e))

        track_auth_operation("reset_password", "success")
        return AuthResult(success=True)

    async def update_password(self, new_password: str) -> AuthResult:
        try:
            response = await self.client.auth.update_user({"password": new_password})
        except Exception as e:
            return AuthResult(success=False, error=self._auth_error("update_password", e))

        track_auth_operation("update_password", "success")
        return AuthResult(success=True, data=response)

    async def handle_oauth_callback(self, auth_code: Optional[str] = None) -> OAuthCallbackResult:
        """
        Complete an OAuth redirect.

        With PKCE the redirect carries a one-time ``code`` query parameter
        that must be exchanged for a session. Without one, the session the
        client already holds is used. A profile row is then created or
        updated; a failure there leaves the sign-in successful and is
        reported in ``profile_error``.

        Args:
            auth_code: The ``code`` parameter of the callback URL

        Returns:
            OAuthCallbackResult; ``error`` is a NoSessionError when no
            session could be established
        """
        logger.info("Handling OAuth callback", has_code=bool(auth_code))
        try:
            if auth_code:
                response = await self.client.auth.exchange_code_for_session(
                    {"auth_code": auth_code}
                )
                session = getattr(response, "session", None) if response else None
            else:
                session = await self.client.auth.get_session()
        except Exception as e:
            if self.state is SessionState.PENDING_OAUTH:
                self.state = SessionState.SIGNED_OUT
            return OAuthCallbackResult(
                success=False, error=self._auth_error("handle_oauth_callback", e)
            )

        user_id = _user_id_of(session)
        if not user_id:
            track_auth_operation("handle_oauth_callback", "no_session")
            logger.warning("OAuth callback: no session found")
            if self.state is SessionState.PENDING_OAUTH:
                self.state = SessionState.SIGNED_OUT
            return OAuthCallbackResult(
                success=False, error=NoSessionError("No session found after OAuth callback")
            )

        self.state = SessionState.SIGNED_IN
        profile = await self.handle_user_login(user_id)
        if not profile.success:
            track_auth_operation("handle_oauth_callback", "profile_error")
            logger.warning("Signed in but profile setup failed", user_id=user_id, error=profile.error)
            return OAuthCallbackResult(
                success=True,
                profile_created=False,
                profile_completed=False,
                profile_error=f"Authentication successful but profile setup failed: {profile.error}",
            )

        track_auth_operation("handle_oauth_callback", "success")
        logger.info("OAuth callback successful", user_id=user_id)
        return OAuthCallbackResult(
            success=True,
            profile_created=profile.profile_created,
            profile_completed=profile.profile_completed,
        )

    # Session reads

    async def get_session(self) -> SessionResult:
        try:
            session = await self.client.auth.get_session()
        except Exception as e:
            return SessionResult(session=None, error=self._auth_error("get_session", e))
        return SessionResult(session=session)

    async def get_user(self) -> UserResult:
        try:
            response = await self.client.auth.get_user()
        except Exception as e:
            return UserResult(user=None, error=self._auth_error("get_user", e))
        return UserResult(user=getattr(response, "user", None) if response else None)

    async def refresh_session(self) -> SessionResult:
        """Exchange the refresh token for a new session."""
        previous = self.state
        self.state = SessionState.REFRESHING
        try:
            response = await self.client.auth.refresh_session()
        except Exception as e:
            self.state = previous
            return SessionResult(session=None, error=self._auth_error("refresh_session", e))

        session = getattr(response, "session", None) if response else None
        self.state = SessionState.SIGNED_IN if session else SessionState.SIGNED_OUT
        track_auth_operation("refresh_session", "success")
        return SessionResult(session=session)

    def _now(self) -> float:
        return self._clock()

    def is_session_valid(self, session: Any) -> bool:
        """True while the session's ``expires_at`` lies in the future."""
        expires_at = getattr(session, "expires_at", None) if session else None
        if expires_at is None:
            return False
        return expires_at > self._now()

    def should_refresh_session(self, session: Any) -> bool:
        """True when less than the refresh margin remains before expiry."""
        expires_at = getattr(session, "expires_at", None) if session else None
        if expires_at is None:
            return False
        return expires_at - self._now() < self.settings.SESSION_REFRESH_MARGIN_SECONDS

    # Extended-session override

    def extend_session(self, session: Any) -> Optional[ExtendedSessionInfo]:
        """
        Write the extended-session record for the session's user.

        Returns:
            The new override, or None if it could not be stored
        """
        user_id = _user_id_of(session)
        if not user_id:
            return None

        expiry = datetime.fromtimestamp(self._now(), tz=timezone.utc) + timedelta(
            days=self.settings.EXTENDED_SESSION_DAYS
        )
        try:
            self.storage.set_item(
                EXTENDED_SESSION_KEY,
                json.dumps({"expiry": expiry.isoformat(), "userId": user_id}),
            )
        except Exception as e:
            logger.warning("Failed to set extended session", error=str(e))
            return None

        logger.info("Extended session stored", user_id=user_id, expiry=expiry.isoformat())
        return ExtendedSessionInfo(is_extended=True, expiry=expiry, user_id=user_id)

    def get_extended_session_info(self, user_id: Optional[str] = None) -> ExtendedSessionInfo:
        """
        Read the extended-session record.

        Args:
            user_id: Only honor a record belonging to this user

        Returns:
            The override state; unreadable records count as absent
        """
        try:
            stored = self.storage.get_item(EXTENDED_SESSION_KEY)
            if not stored:
                return ExtendedSessionInfo(is_extended=False)
            record = json.loads(stored)
            expiry = datetime.fromisoformat(record["expiry"])
            owner = record["userId"]
        except Exception as e:
            logger.warning("Failed to get extended session info", error=str(e))
            return ExtendedSessionInfo(is_extended=False)

        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        now = datetime.fromtimestamp(self._now(), tz=timezone.utc)
        if expiry <= now or (user_id is not None and owner != user_id):
            return ExtendedSessionInfo(is_extended=False)
        return ExtendedSessionInfo(is_extended=True, expiry=expiry, user_id=owner)

    def clear_extended_session(self) -> None:
        try:
            self.storage.remove_item(EXTENDED_SESSION_KEY)
        except Exception as e:
            logger.warning("Failed to clear extended session", error=str(e))

    def is_session_usable(self, session: Any) -> bool:
        """Valid, or expired but covered by this user's extended session."""
        if self.is_session_valid(session):
            return True
        user_id = _user_id_of(session)
        return bool(user_id) and self.get_extended_session_info(user_id).is_extended

    def get_session_info(self, session: Any) -> SessionInfo:
        extended = self.get_extended_session_info(_user_id_of(session))
        expires_at = getattr(session, "expires_at", None) if session else None
        return SessionInfo(
            session=session,
            is_valid=self.is_session_valid(session),
            should_refresh=self.should_refresh_session(session),
            is_extended=extended.is_extended,
            expires_at=(
                datetime.fromtimestamp(expires_at, tz=timezone.utc)
                if expires_at is not None
                else None
            ),
            extended_expiry=extended.expiry,
            time_remaining=expires_at - self._now() if expires_at is not None else None,
        )

    # Sign-out

    def clear_caches(self) -> None:
        """Forget cached admin roles and profile checks."""
        self._admin_cache.clear()
        self._profile_cache.clear()

    async def sign_out(self) -> AuthResult:
        """
        Sign out with the provider, then clear all local session state.

        The extended-session record and caches are cleared even when the
        provider call fails.
        """
        logger.info("Signing out user")
        error: Optional[AuthError] = None
        try:
            await self.client.auth.sign_out()
        except Exception as e:
            error = self._auth_error("sign_out", e)
        finally:
            self.clear_extended_session()
            self.clear_caches()

        if error is not None:
            return AuthResult(success=False, error=error)

        self.state = SessionState.SIGNED_OUT
        track_auth_operation("sign_out", "success")
        logger.info("User signed out successfully")
        return AuthResult(success=True)

    # Cached checks

    async def is_admin(self, user_id: str) -> bool:
        """
        Whether the user's profile role is ``admin``.

        Cached per user for the admin TTL. Any failure answers False; a
        recursive row-level policy answers False and is cached as such.
        """
        if not user_id:
            return False
        try:
            return await self._admin_cache.get_or_load(
                user_id, lambda: self._load_admin_role(user_id)
            )
        except Exception as e:
            logger.warning("Admin check error", user_id=user_id, error=error_message(e))
            return False

    async def _load_admin_role(self, user_id: str) -> bool:
        try:
            response = await (
                self.client.table(PROFILES_TABLE)
                .select("role")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            error = query_error_for(PROFILES_TABLE, e)
            if isinstance(error, PolicyRecursionError):
                logger.warning(
                    "Database policy recursion detected - defaulting to non-admin",
                    user_id=user_id,
                )
                return False
            raise error from e

        rows = response.data or []
        role = rows[0].get("role") if rows else None
        logger.debug("Admin check result", user_id=user_id, role=role)
        return role == "admin"

    async def _call_profile_rpc(self, name: str, user_id: str) -> ProfileResult:
        response = await self.client.rpc(name, {"user_id": user_id}).execute()
        data = response.data if isinstance(response.data, dict) else {}
        return ProfileResult(
            success=bool(data.get("success")),
            profile_created=data.get("action") == "created",
            profile_completed=bool(data.get("profile_completed")),
            error=data.get("error"),
        )

    async def _provision_profile(self, user_id: str) -> ProfileResult:
        try:
            return await self._call_profile_rpc(ENSURE_PROFILE_RPC, user_id)
        except Exception as e:
            logger.warning(
                "Profile RPC failed, creating profile manually",
                user_id=user_id,
                error=error_message(e),
            )

        # Only the signed-in user's own row may be written from the client
        result = await self.get_user()
        if result.user is None or getattr(result.user, "id", None) != user_id:
            return ProfileResult(success=False, error="User not found or ID mismatch")
        return await self.profiles.provision_from_user(result.user)

    async def _resolve_user_id(self, user_id: Optional[str]) -> Optional[str]:
        if user_id:
            return user_id
        result = await self.get_user()
        return getattr(result.user, "id", None)

    async def ensure_user_profile(self, user_id: Optional[str] = None) -> ProfileResult:
        """
        Create the user's profile row if it does not exist yet.

        Uses the provisioning procedure, and writes the row directly from the
        signed-in user's metadata when the procedure fails. Successful
        results are cached per user for the profile TTL, and concurrent
        callers for the same user share one provisioning run.

        Args:
            user_id: Target user; defaults to the signed-in user

        Returns:
            ProfileResult; failures are returned, not raised
        """
        target = await self._resolve_user_id(user_id)
        if not target:
            return ProfileResult(success=False, error="No authenticated user found")

        try:
            result = await self._profile_cache.get_or_load(
                target,
                lambda: self._provision_profile(target),
                cacheable=lambda r: r.success,
            )
        except Exception as e:
            track_auth_operation("ensure_user_profile", "error")
            logger.error("Profile ensuring failed", user_id=target, error=error_message(e))
            return ProfileResult(success=False, error=error_message(e))

        if not result.success:
            logger.warning("Profile ensuring reported failure", user_id=target, error=result.error)
        return result

    async def handle_user_login(self, user_id: Optional[str] = None) -> ProfileResult:
        """Record a login and provision the profile if needed."""
        target = await self._resolve_user_id(user_id)
        if not target:
            return ProfileResult(success=False, error="No authenticated user found")

        try:
            return await self._call_profile_rpc(HANDLE_LOGIN_RPC, target)
        except Exception as e:
            track_auth_operation("handle_user_login", "error")
            logger.error("Login handling failed", user_id=target, error=error_message(e))
            return ProfileResult(success=False, error=error_message(e))

    async def check_email_exists(self, email: str) -> bool:
        """Whether an account is registered for ``email``; False when unknown."""
        try:
            response = await self.client.rpc(
                EMAIL_EXISTS_RPC, {"email_input": email.lower()}
            ).execute()
        except Exception as e:
            logger.warning("Email existence check failed", error=error_message(e))
            return False
        return response.data is True

    # Session monitoring

    @property
    def session_monitoring(self) -> bool:
        return self._monitor is not None and self._monitor.running

    def start_session_monitoring(self, interval: Optional[float] = None) -> None:
        """Start (or restart) the periodic refresh check."""
        self.stop_session_monitoring()
        self._monitor = SessionMonitor(
            self._refresh_if_needed,
            interval or self.settings.SESSION_MONITOR_INTERVAL_SECONDS,
        )
        self._monitor.start()

    def stop_session_monitoring(self) -> None:
        """Cancel the periodic check. Idempotent."""
        monitor, self._monitor = self._monitor, None
        if monitor is not None:
            monitor.stop()

    async def _refresh_if_needed(self) -> None:
        result = await self.get_session()
        if result.session and self.should_refresh_session(result.session):
            logger.info("Auto-refreshing session", user_id=_user_id_of(result.session))
            await self.refresh_session()

    # Auth events

    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        """
        Register a callback for provider auth events.

        All callbacks share one provider listener, which is detached when
        the last callback unsubscribes.

        Args:
            callback: Called as ``callback(event, session)``; may be async

        Returns:
            Function removing the callback; calling it twice is harmless
        """
        listener_id = next(self._listener_ids)
        self._listeners[listener_id] = callback

        if self._provider_subscription is None:
            self._provider_subscription = self.client.auth.on_auth_state_change(
                self._dispatch_auth_event
            )
            logger.debug("Auth state listener attached")

        def unsubscribe() -> None:
            self._listeners.pop(listener_id, None)
            if not self._listeners:
                self._detach_provider_listener()

        return unsubscribe

    def _detach_provider_listener(self) -> None:
        subscription, self._provider_subscription = self._provider_subscription, None
        if subscription is not None:
            subscription.unsubscribe()
            logger.debug("Auth state listener detached")

    def _spawn(self, awaitable: Any) -> None:
        try:
            task = asyncio.ensure_future(awaitable, loop=asyncio.get_running_loop())
        except RuntimeError:
            # No running loop to carry the coroutine
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.warning("No event loop for auth event work")
            return
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _dispatch_auth_event(self, event: str, session: Any) -> None:
        user_id = _user_id_of(session)
        logger.info("Auth event", auth_event=event, user_id=user_id)

        if event in ("SIGNED_IN", "TOKEN_REFRESHED") and user_id:
            self.state = SessionState.SIGNED_IN
            self._spawn(self.ensure_user_profile(user_id))
        elif event == "SIGNED_OUT":
            self.state = SessionState.SIGNED_OUT
            self.clear_caches()

        for callback in list(self._listeners.values()):
            try:
                result = callback(event, session)
            except Exception as e:
                logger.warning("Auth callback failed", auth_event=event, error=str(e))
                continue
            if inspect.isawaitable(result):
                self._spawn(result)

    async def close(self) -> None:
        """Stop monitoring, detach listeners and wait for background work."""
        monitor, self._monitor = self._monitor, None
        if monitor is not None:
            await monitor.wait_stopped()
        self._listeners.clear()
        self._detach_provider_listener()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
