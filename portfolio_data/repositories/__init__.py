"""Repositories over the portfolio site's Supabase tables."""

from .articles import ArticlesRepository
from .base import BaseRepository
from .content import ContentRepository
from .inquiries import InquiriesRepository
from .profiles import ProfilesRepository
from .projects import ProjectsRepository
from .services import ServicesRepository
from .testimonials import TestimonialsRepository

__all__ = [
    "ArticlesRepository",
    "BaseRepository",
    "ContentRepository",
    "InquiriesRepository",
    "ProfilesRepository",
    "ProjectsRepository",
    "ServicesRepository",
    "TestimonialsRepository",
]
