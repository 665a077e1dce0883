"""Supabase data access and session management for the portfolio site."""

from .auth_service import AuthService, SessionState
from .bootstrap import PortfolioServices, create_services
from .data_service import DataService
from .debug import DebugTools, build_debug_tools
from .exceptions import (AuthError, NoSessionError, PolicyRecursionError,
                         PortfolioDataError, QueryError, RecordNotFoundError,
                         WriteError)
from .profile_service import UserProfileService
from .supabase_client import get_supabase_client

__version__ = "1.0.0"

__all__ = [
    "AuthError",
    "AuthService",
    "DataService",
    "DebugTools",
    "NoSessionError",
    "PolicyRecursionError",
    "PortfolioDataError",
    "PortfolioServices",
    "QueryError",
    "RecordNotFoundError",
    "SessionState",
    "UserProfileService",
    "WriteError",
    "build_debug_tools",
    "create_services",
    "get_supabase_client",
]
