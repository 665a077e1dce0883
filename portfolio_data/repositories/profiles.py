"""User profiles repository."""

from typing import Any, Dict

from supabase import AsyncClient

from ..exceptions import WriteError
from ..models import UserProfile
from .base import BaseRepository


class ProfilesRepository(BaseRepository[UserProfile]):
    """Profile rows, keyed by the auth user id."""

    def __init__(self, client: AsyncClient) -> None:
        super().__init__(client, "profiles", UserProfile)

    async def create_for_user(self, user_id: str, data: Dict[str, Any]) -> UserProfile:
        """
        Insert the profile of an authenticated user.

        Unlike :meth:`create`, the row id is supplied: it is the user id.

        Raises:
            WriteError: If the insert is rejected or fails
        """
        response = await self._execute_write(
            self._table().insert({**self._writable(data), "id": user_id}),
            "create_for_user",
        )
        if not response.data:
            raise WriteError(self.table_name, "create_for_user", "no row returned")
        return self.model.model_validate(response.data[0])
