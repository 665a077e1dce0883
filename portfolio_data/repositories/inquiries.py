"""Inquiries repository."""

from typing import Any, Dict, List

from supabase import AsyncClient

from ..models import Inquiry, QueryOptions
from .base import BaseRepository


class InquiriesRepository(BaseRepository[Inquiry]):
    """Contact form submissions."""

    def __init__(self, client: AsyncClient) -> None:
        super().__init__(client, "inquiries", Inquiry)

    async def submit_inquiry(self, data: Dict[str, Any]) -> Inquiry:
        """Store a new inquiry; status and priority are always reset."""
        return await self.create({**data, "status": "new", "priority": 0})

    async def get_by_status(self, status: str) -> List[Inquiry]:
        return await self.get_all(
            QueryOptions(filters={"status": status}, order_by="created_at", ascending=False)
        )
