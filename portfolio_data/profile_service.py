"""
User profile service.

Reads profiles, checks profile completion and provisions a profile row
directly from the auth user when the provisioning procedure is unavailable.
None of these methods raise.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from supabase import AsyncClient

from .exceptions import error_message
from .logging_config import get_logger
from .metrics import track_auth_operation
from .models import ProfileCompletionStatus, ProfileLookup, ProfileResult
from .repositories import ProfilesRepository

logger = get_logger(__name__)

PROFILE_COMPLETION_RPC = "check_profile_completion"

# Providers whose sign-up data is complete enough to skip the profile form
COMPLETE_ON_SIGNUP_PROVIDERS = frozenset({"google"})


class UserProfileService:
    """
    Service class for profile reads and manual provisioning.

    Args:
        client: Supabase async client
        clock: Time source in epoch seconds
    """

    def __init__(self, client: AsyncClient, clock: Callable[[], float] = time.time) -> None:
        self.client = client
        self.profiles = ProfilesRepository(client)
        self._clock = clock

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat()

    async def get_user_profile(self, user_id: str) -> ProfileLookup:
        """
        Get a user's profile.

        Returns:
            ProfileLookup with the profile, or with the reason it is absent
        """
        try:
            profile = await self.profiles.get_by_id(user_id)
        except Exception as e:
            logger.error("Get profile error", user_id=user_id, error=error_message(e))
            return ProfileLookup(error=error_message(e))

        if profile is None:
            return ProfileLookup(error="Profile not found")
        return ProfileLookup(profile=profile)

    async def check_profile_completion(self, user_id: str) -> ProfileCompletionStatus:
        """Whether the profile exists and is complete; unknown means it needs creation."""
        try:
            response = await self.client.rpc(
                PROFILE_COMPLETION_RPC, {"user_id": user_id}
            ).execute()
            return ProfileCompletionStatus.model_validate(response.data)
        except Exception as e:
            logger.error("Profile completion check error", user_id=user_id, error=error_message(e))
            return ProfileCompletionStatus(exists=False, completed=False, needs_creation=True)

    def _new_profile(self, user: Any, provider: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
        now = self._now_iso()
        email = getattr(user, "email", None) or ""
        complete = provider in COMPLETE_ON_SIGNUP_PROVIDERS
        return {
            "email": email,
            "full_name": metadata.get("full_name") or metadata.get("name") or email.split("@")[0],
            "avatar_url": metadata.get("avatar_url") or metadata.get("picture"),
            "provider": provider,
            "provider_id": metadata.get("sub"),
            "oauth_metadata": metadata,
            "is_verified": bool(getattr(user, "email_confirmed_at", None)),
            "profile_completed": complete,
            "profile_completion_date": now if complete else None,
            "last_login_at": now,
            "login_count": 1,
            "role": "user",
            "public_profile": True,
            "email_notifications": True,
            "marketing_emails": False,
            "is_active": True,
        }

    async def provision_from_user(self, user: Any) -> ProfileResult:
        """
        Create or refresh the profile row of an auth user.

        A missing profile is created from the user's provider metadata. An
        existing one gets its login bookkeeping updated and any empty name,
        avatar or metadata filled in.

        Args:
            user: Auth user with ``id``, ``email`` and metadata

        Returns:
            ProfileResult; failures are returned, not raised
        """
        user_id = user.id
        metadata = dict(getattr(user, "user_metadata", None) or {})
        provider = (getattr(user, "app_metadata", None) or {}).get("provider") or "email"

        try:
            existing = await self.profiles.get_by_id(user_id)

            if existing is None:
                logger.info("Creating profile manually", user_id=user_id, provider=provider)
                created = await self.profiles.create_for_user(
                    user_id, self._new_profile(user, provider, metadata)
                )
                track_auth_operation("provision_profile", "created")
                return ProfileResult(
                    success=True,
                    profile_created=True,
                    profile_completed=created.profile_completed,
                )

            updates: Dict[str, Any] = {
                "last_login_at": self._now_iso(),
                "login_count": existing.login_count + 1,
            }
            if not existing.oauth_metadata:
                updates["oauth_metadata"] = metadata
            if not existing.avatar_url and metadata.get("avatar_url"):
                updates["avatar_url"] = metadata["avatar_url"]
            full_name = metadata.get("full_name") or metadata.get("name")
            if not existing.full_name and full_name:
                updates["full_name"] = full_name

            logger.info("Updating profile manually", user_id=user_id)
            await self.profiles.update(user_id, updates)
        except Exception as e:
            track_auth_operation("provision_profile", "error")
            logger.error("Manual profile creation failed", user_id=user_id, error=error_message(e))
            return ProfileResult(success=False, error=error_message(e))

        track_auth_operation("provision_profile", "updated")
        return ProfileResult(
            success=True,
            profile_created=False,
            profile_completed=existing.profile_completed,
        )
