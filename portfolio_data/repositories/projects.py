"""Projects repository."""

from typing import List, Optional

from supabase import AsyncClient

from ..models import (PaginationOptions, PaginationResult, Project,
                      QueryOptions, SearchOptions)
from .content import ContentRepository


class ProjectsRepository(ContentRepository[Project]):
    """Portfolio projects; listings default to newest first."""

    def __init__(self, client: AsyncClient) -> None:
        super().__init__(client, "projects", Project)

    async def get_published(self, options: Optional[QueryOptions] = None) -> List[Project]:
        options = options or QueryOptions()
        return await self.get_all(
            options.model_copy(update={"filters": {"published": True, **options.filters}})
        )

    async def get_featured(self) -> List[Project]:
        return await self.get_all(
            QueryOptions(
                filters={"published": True, "featured": True},
                order_by="created_at",
                ascending=False,
            )
        )

    async def get_by_category(self, category: str) -> List[Project]:
        return await self.get_all(
            QueryOptions(
                filters={"published": True, "category": category},
                order_by="year",
                ascending=False,
            )
        )

    async def search(self, options: SearchOptions) -> List[Project]:
        """
        Case-insensitive text search over published projects.

        Args:
            options: Search term, searched columns, extra filters and ordering

        Returns:
            Matching projects

        Raises:
            QueryError: If the read fails
        """
        query = self._apply_filters(
            self._table().select("*"), {"published": True, **options.filters}
        )

        term = (options.search_term or "").strip()
        if term and options.search_fields:
            # PostgREST reserves commas and parentheses inside or=()
            term = term.replace(",", " ").replace("(", " ").replace(")", " ")
            query = query.or_(
                ",".join(f"{column}.ilike.%{term}%" for column in options.search_fields)
            )

        if options.order_by:
            query = query.order(options.order_by, desc=not options.ascending)
        if options.limit:
            query = query.limit(options.limit)

        response = await self._execute_read(query, "search")
        return self._to_models(response.data)

    async def get_published_paginated(
        self, options: Optional[PaginationOptions] = None
    ) -> PaginationResult[Project]:
        return await self._paginate_with({"published": True}, "created_at", options)

    async def get_featured_paginated(
        self, options: Optional[PaginationOptions] = None
    ) -> PaginationResult[Project]:
        return await self._paginate_with(
            {"published": True, "featured": True}, "created_at", options
        )

    async def get_by_category_paginated(
        self, category: str, options: Optional[PaginationOptions] = None
    ) -> PaginationResult[Project]:
        return await self._paginate_with(
            {"published": True, "category": category}, "year", options
        )

    async def _paginate_with(
        self, preset: dict, default_order: str, options: Optional[PaginationOptions]
    ) -> PaginationResult[Project]:
        # Caller filters win over presets; ordering falls back to the default
        options = options or PaginationOptions()
        return await self.get_paginated(
            options.model_copy(
                update={
                    "filters": {**preset, **options.filters},
                    "order_by": options.order_by or default_order,
                }
            )
        )
