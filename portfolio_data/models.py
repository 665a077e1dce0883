"""
Data models for the portfolio data layer.

Defines the entity records stored in Supabase, the query and pagination
option types accepted by repositories, and the result types returned by
the auth service and the data service facade.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import AuthError

# Entity Records


class EntityRecord(BaseModel):
    """Fields shared by every table row; unknown columns are kept."""

    model_config = ConfigDict(extra="allow")

    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Project(EntityRecord):
    """A portfolio project."""

    title: str = ""
    slug: str = ""
    description: str = ""
    detailed_description: Optional[str] = None
    image_url: Optional[str] = None
    image_alt: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    status: Optional[str] = None
    client_name: Optional[str] = None
    year: Optional[int] = None
    featured: bool = False
    published: bool = False
    external_link: Optional[str] = None
    github_url: Optional[str] = None
    demo_url: Optional[str] = None
    screenshots: List[str] = Field(default_factory=list)
    team_size: Optional[int] = None
    duration_months: Optional[int] = None
    challenges: List[str] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    view_count: int = 0
    created_by: Optional[str] = None


class ServiceOffering(EntityRecord):
    """A service offered on the site (``services`` table)."""

    title: str = ""
    slug: str = ""
    short_description: str = ""
    detailed_description: Optional[str] = None
    icon: Optional[str] = None
    category: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list)
    pricing_model: Optional[str] = None
    base_price: Optional[float] = None
    currency: str = "USD"
    duration_estimate: Optional[str] = None
    deliverables: List[str] = Field(default_factory=list)
    published: bool = False
    featured: bool = False
    order_priority: int = 0


class Article(EntityRecord):
    """A blog article."""

    title: str = ""
    slug: str = ""
    excerpt: Optional[str] = None
    content: str = ""
    featured_image: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    published: bool = False
    featured: bool = False
    view_count: int = 0
    reading_time_minutes: Optional[int] = None
    published_at: Optional[datetime] = None
    author_id: Optional[str] = None


class Inquiry(EntityRecord):
    """A contact form submission."""

    name: str = ""
    email: str = ""
    company: Optional[str] = None
    phone: Optional[str] = None
    subject: str = ""
    message: str = ""
    service_interest: Optional[str] = None
    project_budget: Optional[str] = None
    timeline: Optional[str] = None
    status: str = "new"
    priority: int = 0
    notes: Optional[str] = None
    assigned_to: Optional[str] = None


class Testimonial(EntityRecord):
    """A client testimonial."""

    name: str = ""
    company: Optional[str] = None
    position: Optional[str] = None
    content: str = ""
    rating: int = 5
    avatar_url: Optional[str] = None
    project_id: Optional[str] = None
    service_id: Optional[str] = None
    published: bool = False
    featured: bool = False


# Query Options


class QueryOptions(BaseModel):
    """Filter, ordering and window for a list query."""

    limit: Optional[int] = Field(default=None, ge=1)
    offset: Optional[int] = Field(default=None, ge=0)
    order_by: Optional[str] = None
    ascending: bool = False
    filters: Dict[str, Any] = Field(default_factory=dict)


class SearchOptions(QueryOptions):
    """List query with a case-insensitive text match."""

    search_term: Optional[str] = None
    search_fields: List[str] = Field(default_factory=lambda: ["title", "description"])


class PaginationOptions(BaseModel):
    """Page-based window for a list query."""

    page: int = Field(default=1, ge=1)
    items_per_page: int = Field(default=10, ge=1)
    order_by: Optional[str] = None
    ascending: bool = False
    filters: Dict[str, Any] = Field(default_factory=dict)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.items_per_page


T = TypeVar("T")


class PaginationResult(BaseModel, Generic[T]):
    """One page of rows plus the page arithmetic."""

    data: List[T]
    total_count: int
    current_page: int
    total_pages: int
    items_per_page: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def build(
        cls, data: List[T], total_count: int, page: int, items_per_page: int
    ) -> "PaginationResult[T]":
        """
        Assemble a page from its rows and the total row count.

        Args:
            data: Rows of the requested page
            total_count: Number of rows matching the filters
            page: 1-based page number
            items_per_page: Page size

        Returns:
            The pagination result
        """
        total_pages = math.ceil(total_count / items_per_page)
        return cls(
            data=data[:items_per_page],
            total_count=total_count,
            current_page=page,
            total_pages=total_pages,
            items_per_page=items_per_page,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )


# Facade Results


class HealthStatus(BaseModel):
    """Outcome of a connectivity check."""

    status: Literal["ok", "error"]
    message: str


class HeroStatistics(BaseModel):
    """Headline numbers for the landing page."""

    projects_count: int = 0
    articles_count: int = 0
    total_views: int = 0
    clients_count: int = 0


# Auth Results


@dataclass
class AuthResult:
    """Outcome of a sign-in, sign-up or sign-out call."""

    success: bool
    data: Any = None
    error: Optional[AuthError] = None
    profile_created: Optional[bool] = None
    profile_completed: Optional[bool] = None


@dataclass
class SessionResult:
    """Session read; ``session`` is None when absent or on error."""

    session: Any = None
    error: Optional[AuthError] = None


@dataclass
class UserResult:
    """User read; ``user`` is None when absent or on error."""

    user: Any = None
    error: Optional[AuthError] = None


@dataclass(frozen=True)
class ProfileResult:
    """Outcome of the profile provisioning procedures."""

    success: bool
    profile_created: bool = False
    profile_completed: bool = False
    error: Optional[str] = None


@dataclass
class OAuthCallbackResult:
    """
    Outcome of completing an OAuth redirect.

    A failed profile step does not fail the sign-in: ``success`` stays True
    and ``profile_error`` carries the reason.
    """

    success: bool
    profile_created: bool = False
    profile_completed: bool = False
    error: Optional[AuthError] = None
    profile_error: Optional[str] = None


@dataclass(frozen=True)
class ExtendedSessionInfo:
    """State of the local extended-session override."""

    is_extended: bool
    expiry: Optional[datetime] = None
    user_id: Optional[str] = None


@dataclass
class SessionInfo:
    """Summary of a session and its local override."""

    session: Any
    is_valid: bool
    should_refresh: bool
    is_extended: bool
    expires_at: Optional[datetime] = None
    extended_expiry: Optional[datetime] = None
    time_remaining: Optional[float] = None


# User Profiles


class UserProfile(EntityRecord):
    """A row of the ``profiles`` table, one per authenticated user."""

    email: str = ""
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    provider: str = "email"
    provider_id: Optional[str] = None
    oauth_metadata: Dict[str, Any] = Field(default_factory=dict)
    is_verified: bool = False
    profile_completed: bool = False
    profile_completion_date: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    login_count: int = 0
    role: str = "user"
    public_profile: bool = True
    email_notifications: bool = True
    marketing_emails: bool = False
    is_active: bool = True


class ProfileCompletionStatus(BaseModel):
    """Outcome of the profile completion check."""

    exists: bool = False
    completed: bool = False
    needs_creation: bool = True


@dataclass
class ProfileLookup:
    """Profile read; ``profile`` is None when absent or on error."""

    profile: Optional[UserProfile] = None
    error: Optional[str] = None
