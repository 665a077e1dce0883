"""
Shared query shortcuts for published site content.

Slug lookup and view counting are common to projects, services and
articles; both are thin compositions over BaseRepository.
"""

from typing import Optional

from ..exceptions import RecordNotFoundError, error_message
from ..logging_config import get_logger
from ..metrics import track_repository_operation
from .base import BaseRepository, T

logger = get_logger(__name__)

# Remote procedure incrementing ``view_count`` on projects or articles
VIEW_COUNT_RPC = "increment_view_count"


class ContentRepository(BaseRepository[T]):
    """Repository for tables whose rows carry a unique ``slug``."""

    async def get_by_slug(self, slug: str) -> Optional[T]:
        """
        Get one row by slug.

        Args:
            slug: URL slug

        Returns:
            The row, or None if no row has this slug

        Raises:
            QueryError: If the read fails
        """
        try:
            return await self._fetch_one("slug", slug, "get_by_slug")
        except RecordNotFoundError:
            return None

    async def increment_view_count(self, record_id: str) -> None:
        """
        Bump the view counter of one row.

        View counts are a side effect of reads: failures are logged and
        never raised.

        Args:
            record_id: Row identifier
        """
        try:
            response = await self.client.rpc(
                VIEW_COUNT_RPC,
                {"table_type": self.table_name, "record_id": record_id},
            ).execute()
        except Exception as e:
            track_repository_operation(self.table_name, "increment_view_count", "error")
            logger.warning(
                "Failed to increment view count",
                table=self.table_name,
                id=record_id,
                error=error_message(e),
            )
            return

        payload = response.data if isinstance(response.data, dict) else {}
        if not payload.get("success"):
            track_repository_operation(self.table_name, "increment_view_count", "error")
            logger.warning(
                "Failed to increment view count",
                table=self.table_name,
                id=record_id,
                error=payload.get("error"),
            )
            return

        track_repository_operation(self.table_name, "increment_view_count", "success")
