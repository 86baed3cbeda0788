"""
Custom exceptions and error handling for the email-to-deal sync pipeline.

Provides:
- Typed exception hierarchy for different failure modes
- Error context preservation for debugging
- Partial success handling for batch operations
"""

from dataclasses import dataclass, field
from typing import Any


class EmailSyncError(Exception):
    """Base exception for all email sync errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


# =============================================================================
# Client Errors
# =============================================================================


class ClientError(EmailSyncError):
    """Base class for client-related errors."""

    pass


class HubSpotApiError(ClientError):
    """Non-success response from the HubSpot API. Not retried."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.status_code = status_code


class HubSpotRateLimitError(HubSpotApiError):
    """Rate limit (429) response. Transient, retried with backoff."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, status_code=429, context=context)
        self.retry_after = retry_after


class RateLimitExhaustedError(HubSpotApiError):
    """Rate limit persisted through every retry attempt."""

    def __init__(
        self,
        message: str,
        attempts: int,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, status_code=429, context=context)
        self.attempts = attempts


# =============================================================================
# Pipeline Errors
# =============================================================================


class PipelineError(EmailSyncError):
    """Base class for pipeline-related errors."""

    pass


class ConfigurationError(PipelineError):
    """Required configuration missing. Aborts the whole batch."""

    def __init__(self, missing: list[str]):
        super().__init__(
            f"Missing required configuration: {', '.join(missing)}",
            context={'missing': missing},
        )
        self.missing = missing


class EmailProcessingError(PipelineError):
    """A single email failed to parse, match or commit."""

    pass


# =============================================================================
# Partial Success Handling
# =============================================================================


@dataclass
class ItemResult:
    """Result for a single item in a batch operation."""

    item_id: str | None
    success: bool
    error: EmailSyncError | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class PartialSuccessResult:
    """
    Result of a batch operation that may partially succeed.

    Allows processing to continue even when some items fail,
    while preserving error context for debugging.
    """

    succeeded: list[ItemResult] = field(default_factory=list)
    failed: list[ItemResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def total_count(self) -> int:
        return self.success_count + self.failure_count

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0

    @property
    def partial_success(self) -> bool:
        return self.success_count > 0 and self.failure_count > 0

    def add_success(
        self,
        item_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Record a successful item."""
        self.succeeded.append(
            ItemResult(item_id=item_id, success=True, data=data or {})
        )

    def add_failure(
        self,
        error: EmailSyncError,
        item_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Record a failed item."""
        self.failed.append(
            ItemResult(item_id=item_id, success=False, error=error, data=data or {})
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'success_count': self.success_count,
            'failure_count': self.failure_count,
            'total_count': self.total_count,
            'all_succeeded': self.all_succeeded,
            'succeeded_ids': [r.item_id for r in self.succeeded if r.item_id],
            'failed_ids': [r.item_id for r in self.failed if r.item_id],
            'errors': [
                {'item_id': r.item_id, 'error': str(r.error)}
                for r in self.failed
                if r.error
            ],
        }


# =============================================================================
# Error Handling Utilities
# =============================================================================


def wrap_processing_error(
    exc: Exception,
    email_id: str,
    stage: str,
) -> EmailProcessingError:
    """
    Wrap an exception raised while processing one email.

    Args:
        exc: The original exception
        email_id: Email being processed
        stage: Pipeline stage that failed (fetch, parse, match, commit)

    Returns:
        EmailProcessingError carrying the original error details
    """
    ctx: dict[str, Any] = {
        'email_id': email_id,
        'stage': stage,
        'original_error': str(exc),
        'error_type': type(exc).__name__,
    }
    if isinstance(exc, HubSpotApiError):
        ctx['status_code'] = exc.status_code
    return EmailProcessingError(
        f"Email {email_id} failed during {stage}: {exc}",
        context=ctx,
    )
