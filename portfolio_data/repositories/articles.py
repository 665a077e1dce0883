"""Articles repository."""

from typing import List, Optional

from supabase import AsyncClient

from ..models import Article, PaginationOptions, PaginationResult, QueryOptions
from .content import ContentRepository


class ArticlesRepository(ContentRepository[Article]):
    """Blog articles, ordered by publish date, newest first."""

    def __init__(self, client: AsyncClient) -> None:
        super().__init__(client, "articles", Article)

    async def get_published(self, options: Optional[QueryOptions] = None) -> List[Article]:
        options = options or QueryOptions()
        return await self.get_all(
            options.model_copy(
                update={
                    "filters": {"published": True, **options.filters},
                    "order_by": "published_at",
                    "ascending": False,
                }
            )
        )

    async def get_featured(self, limit: int = 3) -> List[Article]:
        return await self.get_all(
            QueryOptions(
                filters={"published": True, "featured": True},
                order_by="published_at",
                ascending=False,
                limit=limit,
            )
        )

    async def get_published_paginated(
        self, options: Optional[PaginationOptions] = None
    ) -> PaginationResult[Article]:
        options = options or PaginationOptions()
        return await self.get_paginated(
            options.model_copy(
                update={
                    "filters": {"published": True, **options.filters},
                    "order_by": options.order_by or "published_at",
                }
            )
        )

    async def get_categories(self) -> List[str]:
        """
        Distinct categories of published articles.

        Returns:
            Sorted category names

        Raises:
            QueryError: If the read fails
        """
        query = self._table().select("category").eq("published", True)
        response = await self._execute_read(query, "get_categories")
        return sorted(
            {row["category"] for row in response.data or [] if row.get("category")}
        )
