"""
Data service facade.

Single construction point for every repository, plus the cross-cutting
utilities the site needs: page-view tracking, a health check and the
landing page statistics.
"""

import asyncio
from typing import Optional

from postgrest.types import CountMethod
from supabase import AsyncClient

from .config import Settings, settings
from .exceptions import error_message
from .logging_config import get_logger
from .metrics import track_repository_operation
from .models import HealthStatus, HeroStatistics
from .repositories import (ArticlesRepository, InquiriesRepository,
                           ProjectsRepository, ServicesRepository,
                           TestimonialsRepository)

logger = get_logger(__name__)

PAGE_VIEWS_TABLE = "page_views"


class DataService:
    """
    Facade over the site's repositories.

    Attributes:
        projects: Projects repository
        services: Services repository
        articles: Articles repository
        inquiries: Inquiries repository
        testimonials: Testimonials repository
    """

    def __init__(self, client: AsyncClient, app_settings: Optional[Settings] = None) -> None:
        self.client = client
        self.settings = app_settings or settings
        self.projects = ProjectsRepository(client)
        self.services = ServicesRepository(client)
        self.articles = ArticlesRepository(client)
        self.inquiries = InquiriesRepository(client)
        self.testimonials = TestimonialsRepository(client)

    async def _current_user_id(self) -> Optional[str]:
        try:
            session = await self.client.auth.get_session()
        except Exception as e:
            logger.warning("Session lookup failed during page view", error=error_message(e))
            return None
        user = getattr(session, "user", None) if session else None
        return getattr(user, "id", None)

    async def track_page_view(
        self,
        path: str,
        title: Optional[str] = None,
        referrer: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """
        Record a page view. Never raises.

        Args:
            path: Page path
            title: Page title
            referrer: Referring URL
            user_agent: Client user agent (defaults to the configured one)
        """
        user_id = await self._current_user_id()
        try:
            await self.client.table(PAGE_VIEWS_TABLE).insert(
                {
                    "page_path": path,
                    "page_title": title,
                    "user_id": user_id,
                    "referrer": referrer,
                    "user_agent": user_agent or self.settings.USER_AGENT,
                }
            ).execute()
        except Exception as e:
            track_repository_operation(PAGE_VIEWS_TABLE, "track_page_view", "error")
            logger.warning("Failed to track page view", path=path, error=error_message(e))
            return

        track_repository_operation(PAGE_VIEWS_TABLE, "track_page_view", "success")

    async def health_check(self) -> HealthStatus:
        """
        Issue a minimal read against the store. Never raises.

        Returns:
            ``ok`` when the read succeeds, ``error`` with the reason otherwise
        """
        try:
            await self.client.table("projects").select("id").limit(1).execute()
        except Exception as e:
            logger.warning("Health check failed", error=error_message(e))
            return HealthStatus(status="error", message=error_message(e) or "Unknown error")

        return HealthStatus(status="ok", message="Database connection healthy")

    async def get_hero_statistics(self) -> HeroStatistics:
        """
        Headline counts for the landing page.

        All four reads run concurrently. Any failure yields zeros.

        Returns:
            Published projects, published articles, page views and
            distinct client count
        """

        async def count(table: str, published_only: bool) -> int:
            query = self.client.table(table).select("id", count=CountMethod.exact, head=True)
            if published_only:
                query = query.eq("published", True)
            response = await query.execute()
            return response.count or 0

        async def distinct_clients() -> int:
            response = await (
                self.client.table("projects")
                .select("client_name")
                .eq("published", True)
                .execute()
            )
            return len({row["client_name"] for row in response.data or [] if row.get("client_name")})

        try:
            projects, articles, views, clients = await asyncio.gather(
                count("projects", True),
                count("articles", True),
                count(PAGE_VIEWS_TABLE, False),
                distinct_clients(),
            )
        except Exception as e:
            logger.error("Error fetching statistics", error=error_message(e))
            return HeroStatistics()

        return HeroStatistics(
            projects_count=projects,
            articles_count=articles,
            total_views=views,
            clients_count=clients,
        )
