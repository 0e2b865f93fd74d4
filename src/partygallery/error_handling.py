"""
Error classification and user-facing messages for partygallery.

Every failure the user can see is a ``GalleryError`` subclass carrying a short,
human-readable ``user_message``. Degraded-but-harmless conditions (a failed
dimension probe, a skipped export file) are logged, never raised.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from partygallery.logging_config import get_logger, log_error, log_security_event

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    STORAGE = "storage"
    NETWORK = "network"
    DATABASE = "database"
    EXPORT = "export"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorInfo:
    """Structured error information for display."""

    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    user_message: str
    details: dict[str, Any]
    timestamp: datetime
    recoverable: bool = True
    retry_suggested: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "retry_suggested": self.retry_suggested,
        }


_DEFAULT_USER_MESSAGES = {
    ErrorCategory.AUTHENTICATION: "Please sign in and try again.",
    ErrorCategory.AUTHORIZATION: "You are not allowed to do that.",
    ErrorCategory.VALIDATION: "Please check your selection.",
    ErrorCategory.STORAGE: "Storage is unavailable right now. Please try again.",
    ErrorCategory.NETWORK: "Network problem. Please check your connection.",
    ErrorCategory.DATABASE: "Something went wrong saving your data.",
    ErrorCategory.EXPORT: "The download could not be prepared.",
    ErrorCategory.UNKNOWN: "Something went wrong.",
}


class GalleryError(Exception):
    """Base exception class for partygallery."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
        retry_suggested: bool = False,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.category = category
        self.severity = severity
        self.code = code or f"{category.value}_error"
        self.user_message = user_message or _DEFAULT_USER_MESSAGES.get(category, "Something went wrong.")
        self.details = details or {}
        self.recoverable = recoverable
        self.retry_suggested = retry_suggested
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        self._log_error()

    def _log_error(self) -> None:
        context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "recoverable": self.recoverable,
            **self.details,
        }
        if self.original_exception:
            context["original_exception"] = str(self.original_exception)

        log_error(self, context)

        if self.category in (ErrorCategory.AUTHENTICATION, ErrorCategory.AUTHORIZATION):
            log_security_event(self.category.value, code=self.code)

    def get_error_info(self) -> ErrorInfo:
        return ErrorInfo(
            category=self.category,
            severity=self.severity,
            code=self.code,
            message=str(self),
            user_message=self.user_message,
            details=self.details,
            timestamp=self.timestamp,
            recoverable=self.recoverable,
            retry_suggested=self.retry_suggested,
        )


class ValidationError(GalleryError):
    """Selection rejected before any side effect (unsupported type, bad input)."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.LOW,
            code=code or "validation_failed",
            user_message=user_message,
            details=details,
            recoverable=True,
            retry_suggested=False,
        )


class CapacityError(ValidationError):
    """Too many upload units staged at once."""

    def __init__(self, requested: int, limit: int):
        super().__init__(
            f"Cannot stage {requested} items, the limit is {limit}",
            code="capacity_exceeded",
            user_message=f"You can share up to {limit} memories at once.",
            details={"requested": requested, "limit": limit},
        )
        self.requested = requested
        self.limit = limit


class UnauthorizedError(GalleryError):
    """No valid session for an operation that needs one."""

    def __init__(
        self,
        message: str = "Unauthorized",
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        category: ErrorCategory = ErrorCategory.AUTHENTICATION,
    ):
        super().__init__(
            message=message,
            category=category,
            severity=ErrorSeverity.HIGH,
            code=code or "unauthorized",
            user_message=user_message or "Please sign in to continue.",
            details=details,
            recoverable=True,
            retry_suggested=False,
        )


class ForbiddenError(UnauthorizedError):
    """The caller is signed in but does not own the resource."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code="not_owner",
            user_message="Only the author can do that.",
            details=details,
            category=ErrorCategory.AUTHORIZATION,
        )


class AuthorNotFoundError(GalleryError):
    """The session has no matching profile record yet."""

    def __init__(self, external_id: str):
        super().__init__(
            f"User not found for identity {external_id}",
            category=ErrorCategory.AUTHENTICATION,
            severity=ErrorSeverity.MEDIUM,
            code="author_not_found",
            user_message="Your profile is still being set up. Please try again in a moment.",
            details={"external_id": external_id},
            recoverable=True,
            retry_suggested=True,
        )


class TargetUnavailableError(GalleryError):
    """The backend refused to issue an upload target."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(
            message=message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            code="upload_target_unavailable",
            user_message=message,
            recoverable=True,
            retry_suggested=True,
            original_exception=original_exception,
        )


class TransferFailedError(GalleryError):
    """The byte transfer to an upload target did not succeed."""

    def __init__(
        self,
        filename: str,
        status_code: int | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            f"Upload failed for {filename}",
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.MEDIUM,
            code="transfer_failed",
            user_message=f"Upload failed for {filename}",
            details={"filename": filename, "status_code": status_code},
            recoverable=True,
            retry_suggested=True,
            original_exception=original_exception,
        )
        self.status_code = status_code


class NotFoundError(GalleryError):
    """A post, user or media blob does not exist."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            category=ErrorCategory.DATABASE,
            severity=ErrorSeverity.LOW,
            code="not_found",
            user_message="That memory no longer exists.",
            details=details,
            recoverable=True,
        )


class DatabaseError(GalleryError):
    """Unexpected metadata store failure."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(
            message=message,
            category=ErrorCategory.DATABASE,
            severity=ErrorSeverity.HIGH,
            code="database_error",
            recoverable=True,
            retry_suggested=True,
            original_exception=original_exception,
        )


class StorageError(GalleryError):
    """Unexpected object storage failure."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(
            message=message,
            category=ErrorCategory.STORAGE,
            severity=ErrorSeverity.HIGH,
            code="storage_error",
            recoverable=True,
            retry_suggested=True,
            original_exception=original_exception,
        )


class ExportError(GalleryError):
    """Archive assembly failed; no archive is produced."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(
            message=message,
            category=ErrorCategory.EXPORT,
            severity=ErrorSeverity.MEDIUM,
            code="export_failed",
            recoverable=True,
            retry_suggested=True,
            original_exception=original_exception,
        )


class ErrorHandler:
    """Turns arbitrary exceptions into displayable ``ErrorInfo``."""

    def __init__(self) -> None:
        self.error_counts: dict[str, int] = {}

    def handle_error(self, error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
        """
        Classify an exception and record its occurrence.

        Args:
            error: Exception to handle
            context: Additional context information

        Returns:
            ErrorInfo: Structured error information
        """
        if isinstance(error, GalleryError):
            info = error.get_error_info()
        else:
            info = self._classify_error(error, context or {}).get_error_info()

        self.error_counts[info.code] = self.error_counts.get(info.code, 0) + 1
        return info

    def _classify_error(self, error: Exception, context: dict[str, Any]) -> GalleryError:
        error_type = type(error).__name__
        message = str(error)
        lowered = message.lower()
        details = {"original_type": error_type, **context}

        if any(keyword in lowered for keyword in ("unauthorized", "not logged in", "authentication")):
            return UnauthorizedError(message, details=details)
        if any(keyword in lowered for keyword in ("timeout", "connection", "network", "unreachable")):
            return GalleryError(
                message,
                category=ErrorCategory.NETWORK,
                details=details,
                retry_suggested=True,
                original_exception=error,
            )
        if any(keyword in lowered for keyword in ("duckdb", "database", "sql")):
            return DatabaseError(message, original_exception=error)
        if any(keyword in lowered for keyword in ("bucket", "storage", "gcs")):
            return StorageError(message, original_exception=error)

        return GalleryError(message, category=ErrorCategory.UNKNOWN, details=details, original_exception=error)

    def get_error_statistics(self) -> dict[str, int]:
        return self.error_counts.copy()


error_handler = ErrorHandler()


def handle_error(error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
    """Classify ``error`` with the global handler."""
    return error_handler.handle_error(error, context)


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    return error_handler
