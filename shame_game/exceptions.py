"""
Exception hierarchy for shame-game

Every error carries a request id, a developer message and a message that is
safe to show players. Errors log themselves when created, at the level their
class declares, and the API turns them into JSON with `to_dict()`.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

import httpx
import psycopg

logger = logging.getLogger(__name__)


class ShameGameError(Exception):
    """
    Base exception for all shame-game errors

    Example:
        raise ShameGameError(
            message="Failed to save wake-up log",
            user_id="3f2c...",
            operation="submit_answer",
            context={"log_date": "2024-01-15"}
        )
    """

    status_code: int = 500
    log_level: int = logging.ERROR
    default_user_message: str = "An error occurred. Please try again."

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or self.default_user_message
        self.timestamp = datetime.now(timezone.utc)

        self._log()

    def _log(self) -> None:
        # "message" is reserved on LogRecord, hence error_message
        extra = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
        }
        if self.cause is not None:
            extra["cause"] = str(self.cause)
        logger.log(
            self.log_level,
            f"{self.__class__.__name__}: {self.message}",
            extra=extra,
            exc_info=self.cause
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for API error responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Client errors (4xx)
# ==========================================

class ValidationError(ShameGameError):
    """Bad input: blank search, unparseable goal time, empty comment, short password"""

    status_code = 400
    log_level = logging.WARNING

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None, **kwargs):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


class RecordNotFoundError(ShameGameError):
    """User, request, friendship, feed item or notification does not exist"""

    status_code = 404
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


class ConflictError(ShameGameError):
    """
    The request collides with existing state.

    `reason` is a stable code: already_friends, already_requested,
    already_logged_today, email_taken.
    """

    status_code = 409
    log_level = logging.WARNING

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs):
        self.reason = reason
        super().__init__(message=message, user_message=message, context={"reason": reason}, **kwargs)


class AuthenticationError(ShameGameError):
    """Missing, unknown or expired session, or wrong credentials"""

    status_code = 401
    log_level = logging.WARNING
    default_user_message = "Authentication failed. Please check your credentials."

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(message=message, **kwargs)


class AuthorizationError(ShameGameError):
    """Signed in, but not allowed to touch this resource"""

    status_code = 403
    log_level = logging.WARNING

    def __init__(self, message: str = "Insufficient permissions", resource: Optional[str] = None, **kwargs):
        self.resource = resource
        super().__init__(
            message=message,
            user_message=f"You don't have permission to access {resource or 'this resource'}.",
            context={"resource": resource},
            **kwargs
        )


# ==========================================
# Infrastructure errors (5xx)
# ==========================================

class DatabaseError(ShameGameError):
    """Storage backend failure"""


class ConnectionError(DatabaseError):
    """Database unreachable or pool not open"""

    status_code = 503
    default_user_message = "We're having trouble reaching our servers. Please try again in a moment."

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(message=message, **kwargs)


class QueryError(DatabaseError):
    """A statement failed"""

    default_user_message = "We couldn't save your progress. Please try again."

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        self.query = query
        super().__init__(message=message, context={"query": query}, **kwargs)


class NotificationError(ShameGameError):
    """Push delivery failed; logged by the dispatcher, never returned to callers"""

    status_code = 502
    default_user_message = "Notification could not be delivered."

    def __init__(self, message: str, recipient_id: Optional[str] = None, **kwargs):
        self.recipient_id = recipient_id
        super().__init__(message=message, context={"recipient_id": recipient_id}, **kwargs)


def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> ShameGameError:
    """
    Map psycopg and httpx errors onto the hierarchy

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="fetchone", context={"query": query}) from e
    """
    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(
            message=f"Database connection failed: {error}",
            user_id=user_id,
            operation=operation,
            cause=error
        )
    if isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {error}",
            query=(context or {}).get("query"),
            user_id=user_id,
            operation=operation,
            cause=error
        )
    if isinstance(error, httpx.HTTPStatusError):
        return NotificationError(
            message=f"Push gateway returned {error.response.status_code}",
            user_id=user_id,
            operation=operation,
            cause=error
        )
    if isinstance(error, httpx.HTTPError):
        return NotificationError(
            message=f"Push gateway request failed: {error}",
            user_id=user_id,
            operation=operation,
            cause=error
        )

    return ShameGameError(
        message=f"{operation} failed: {error}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
