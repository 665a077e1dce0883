"""
Custom exceptions for the portfolio data layer.

These exceptions are the only error types that cross the boundary between
the Supabase client and the repositories/services. Backend specific codes
are inspected in exactly one place: :func:`classify_error`.
"""

from enum import Enum
from typing import Optional

# PostgREST: the result contains 0 rows where exactly one was requested
NOT_FOUND_CODE = "PGRST116"

# PostgreSQL: infinite recursion detected in row-level security policy
POLICY_RECURSION_CODE = "42P17"


class PortfolioDataError(Exception):
    """Base exception for all portfolio data errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class RecordNotFoundError(PortfolioDataError):
    """Raised when a single-row lookup matched no row."""

    def __init__(self, table: str, key: str, value: object):
        super().__init__(
            message=f"No {table} row with {key}={value}",
            details={"table": table, "key": key, "value": str(value)},
        )


class QueryError(PortfolioDataError):
    """Raised when a read against the store fails."""

    def __init__(self, table: str, reason: str, code: Optional[str] = None):
        super().__init__(
            message=f"Failed to fetch {table}: {reason}",
            details={"table": table, "reason": reason, "code": code},
        )
        self.code = code


class WriteError(PortfolioDataError):
    """Raised when an insert, update or delete is rejected or fails."""

    def __init__(
        self, table: str, operation: str, reason: str, code: Optional[str] = None
    ):
        super().__init__(
            message=f"Failed to {operation} {table}: {reason}",
            details={
                "table": table,
                "operation": operation,
                "reason": reason,
                "code": code,
            },
        )
        self.code = code


class PolicyRecursionError(QueryError):
    """Raised when a row-level security policy recursed into itself."""

    def __init__(self, table: str, reason: str, code: Optional[str] = None):
        super().__init__(table, reason, code)
        self.message = f"Policy recursion on {table}: {reason}"
        self.args = (self.message,)


class AuthError(PortfolioDataError):
    """Identity provider failure."""

    def __init__(self, message: str, code: str = "auth_error"):
        super().__init__(message, details={"code": code})
        self.code = code


class NoSessionError(AuthError):
    """Raised when an operation needs a session and none is established."""

    def __init__(self, message: str = "No session found"):
        super().__init__(message, code="no_session")


class DebugToolsDisabledError(PortfolioDataError):
    """Raised when debug tools are used without the feature flag."""

    def __init__(self, tool: str):
        super().__init__(
            message=f"Debug tool '{tool}' is disabled; set DEBUG_TOOLS_ENABLED",
            details={"tool": tool},
        )


class ErrorKind(str, Enum):
    """Classification of a backend error."""

    NOT_FOUND = "not_found"
    POLICY_RECURSION = "policy_recursion"
    OTHER = "other"


def error_code(exc: BaseException) -> Optional[str]:
    """Return the backend error code carried by ``exc``, if any."""
    code = getattr(exc, "code", None)
    return str(code) if code is not None else None


def error_message(exc: BaseException) -> str:
    """Return the backend message carried by ``exc``."""
    message = getattr(exc, "message", None)
    return str(message) if message else str(exc)


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Classify an error returned by the Supabase client.

    Args:
        exc: Exception raised by the query builder or an RPC call

    Returns:
        The error kind
    """
    code = error_code(exc)
    if code == NOT_FOUND_CODE:
        return ErrorKind.NOT_FOUND
    if code == POLICY_RECURSION_CODE or "infinite recursion" in error_message(exc).lower():
        return ErrorKind.POLICY_RECURSION
    return ErrorKind.OTHER


def query_error_for(table: str, exc: BaseException) -> QueryError:
    """
    Convert a failed read into the matching query error.

    Args:
        table: Table the read targeted
        exc: Exception raised by the Supabase client

    Returns:
        PolicyRecursionError for recursive policies, QueryError otherwise
    """
    if classify_error(exc) is ErrorKind.POLICY_RECURSION:
        return PolicyRecursionError(table, error_message(exc), error_code(exc))
    return QueryError(table, error_message(exc), error_code(exc))
