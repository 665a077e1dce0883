"""Testimonials repository."""

from typing import List

from supabase import AsyncClient

from ..models import QueryOptions, Testimonial
from .base import BaseRepository


class TestimonialsRepository(BaseRepository[Testimonial]):
    """Client testimonials."""

    def __init__(self, client: AsyncClient) -> None:
        super().__init__(client, "testimonials", Testimonial)

    async def get_published(self) -> List[Testimonial]:
        return await self.get_all(
            QueryOptions(filters={"published": True}, order_by="created_at", ascending=False)
        )

    async def get_featured(self) -> List[Testimonial]:
        return await self.get_all(
            QueryOptions(
                filters={"published": True, "featured": True},
                order_by="rating",
                ascending=False,
            )
        )
