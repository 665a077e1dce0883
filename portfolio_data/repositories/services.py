"""Services repository."""

from typing import List, Optional

from supabase import AsyncClient

from ..models import QueryOptions, ServiceOffering
from .content import ContentRepository


class ServicesRepository(ContentRepository[ServiceOffering]):
    """Service offerings, always ordered by ``order_priority`` ascending."""

    def __init__(self, client: AsyncClient) -> None:
        super().__init__(client, "services", ServiceOffering)

    async def get_published(
        self, options: Optional[QueryOptions] = None
    ) -> List[ServiceOffering]:
        options = options or QueryOptions()
        return await self.get_all(
            options.model_copy(
                update={
                    "filters": {"published": True, **options.filters},
                    "order_by": "order_priority",
                    "ascending": True,
                }
            )
        )

    async def get_featured(self) -> List[ServiceOffering]:
        return await self.get_all(
            QueryOptions(
                filters={"published": True, "featured": True},
                order_by="order_priority",
                ascending=True,
            )
        )

    async def get_by_category(self, category: str) -> List[ServiceOffering]:
        return await self.get_all(
            QueryOptions(
                filters={"published": True, "category": category},
                order_by="order_priority",
                ascending=True,
            )
        )
