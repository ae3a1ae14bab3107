"""Custom exceptions for the Gmail Labeler."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gmail_labeler.core.models import BatchReport


class GmailLabelerError(Exception):
    """Base exception for all Gmail Labeler errors."""


class AuthenticationError(GmailLabelerError):
    """Failed to authenticate with Gmail API."""


class InvalidRequestError(GmailLabelerError):
    """The caller's batch request payload is malformed."""


class GatewayError(GmailLabelerError):
    """A classified failure returned by the remote mailbox gateway.

    Attributes:
        code: HTTP status code, or None for network-level failures.
        message: Human-readable reason, copied into the batch report.
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class RequestError(GatewayError):
    """400/404 from the gateway; may be caused by a single bad message ID."""


class TransientGatewayError(GatewayError):
    """Network, 5xx or quota failure; not worth retrying item by item."""


class RateLimitError(TransientGatewayError):
    """Gmail API rate limit exceeded after exhausting backoff retries."""


class BatchAbortedError(GmailLabelerError):
    """A batch run stopped before all chunks were dispatched."""

    def __init__(self, message: str, partial_report: BatchReport | None = None) -> None:
        super().__init__(message)
        self.partial_report = partial_report


class BatchCancelledError(BatchAbortedError):
    """The caller cancelled the batch run."""


class BatchTimeoutError(BatchAbortedError):
    """The batch run exceeded its whole-request deadline."""
