"""
Tests for the data service facade.

Tests page-view tracking, the health check and the landing page statistics.
"""

import pytest
from conftest import api_error, make_session

from portfolio_data.data_service import DataService
from portfolio_data.repositories import ProjectsRepository


@pytest.fixture
def data_service(fake_client, test_settings):
    return DataService(fake_client, app_settings=test_settings)


@pytest.mark.asyncio
class TestDataService:
    """Facade utilities."""

    async def test_exposes_one_repository_per_table(self, data_service, fake_client):
        assert isinstance(data_service.projects, ProjectsRepository)
        assert data_service.projects.client is fake_client
        assert data_service.services.table_name == "services"
        assert data_service.articles.table_name == "articles"
        assert data_service.inquiries.table_name == "inquiries"
        assert data_service.testimonials.table_name == "testimonials"

    async def test_track_page_view_anonymous(self, data_service, fake_client, test_settings):
        await data_service.track_page_view("/projects", title="Projects")

        [row] = fake_client.tables["page_views"]
        assert row["page_path"] == "/projects"
        assert row["page_title"] == "Projects"
        assert row["user_id"] is None
        assert row["user_agent"] == test_settings.USER_AGENT

    async def test_track_page_view_attributes_signed_in_user(self, data_service, fake_client):
        fake_client.auth.get_session.return_value = make_session(user_id="user-7")

        await data_service.track_page_view("/", referrer="https://search.test", user_agent="UA")

        [row] = fake_client.tables["page_views"]
        assert row["user_id"] == "user-7"
        assert row["referrer"] == "https://search.test"
        assert row["user_agent"] == "UA"

    async def test_track_page_view_never_raises(self, data_service, fake_client):
        fake_client.auth.get_session.side_effect = RuntimeError("auth down")
        fake_client.fail("page_views", api_error("42501", "permission denied"))

        await data_service.track_page_view("/about")

        assert fake_client.calls_to("page_views", "insert")

    async def test_health_check_ok(self, data_service):
        status = await data_service.health_check()

        assert status.status == "ok"

    async def test_health_check_reports_error(self, data_service, fake_client):
        fake_client.fail("projects", api_error("08006", "connection refused"))

        status = await data_service.health_check()

        assert status.status == "error"
        assert "connection refused" in status.message

    async def test_hero_statistics(self, data_service, fake_client):
        fake_client.seed(
            "projects",
            [
                {"title": "A", "published": True, "client_name": "Acme"},
                {"title": "B", "published": True, "client_name": "Acme"},
                {"title": "C", "published": True, "client_name": "Globex"},
                {"title": "D", "published": False, "client_name": "Initech"},
            ],
        )
        fake_client.seed("articles", [{"title": "X", "published": True}, {"title": "Y", "published": False}])
        fake_client.seed("page_views", [{"page_path": "/"}] * 5)

        stats = await data_service.get_hero_statistics()

        assert stats.projects_count == 3
        assert stats.articles_count == 1
        assert stats.total_views == 5
        assert stats.clients_count == 2

    async def test_hero_statistics_failure_returns_zeros(self, data_service, fake_client):
        fake_client.seed("projects", [{"title": "A", "published": True}])
        fake_client.fail("page_views", api_error("42501", "permission denied"))

        stats = await data_service.get_hero_statistics()

        assert stats.model_dump() == {
            "projects_count": 0,
            "articles_count": 0,
            "total_views": 0,
            "clients_count": 0,
        }
