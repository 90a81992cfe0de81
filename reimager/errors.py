"""Error taxonomy for the paid generation flow.

Every :class:`ReimagerError` carries a message that is safe to show to the
user as-is; the HTTP layer and the UI session turn them into responses and
notifications.
"""

from __future__ import annotations

from typing import Optional


class ReimagerError(Exception):
    """Base class for user-facing failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputValidationError(ReimagerError):
    """Bad prompt, missing wallet or rejected upload. Raised before any network call."""


class PaymentTimeoutError(ReimagerError):
    """The payment was not confirmed within the polling ceiling.

    The transaction may still land later; no image is produced for it.
    """


class PaymentFailedError(ReimagerError):
    """The wallet refused the payment or the transaction reverted."""


class GenerationServiceError(ReimagerError):
    """The generation endpoint answered with an error or an unusable body."""

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.details = details
        self.status_code = status_code

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class NetworkError(ReimagerError):
    """Transport-level failure talking to an external service."""


class FlowInProgressError(ReimagerError):
    """A generation is already running for this session."""


class InvalidTransitionError(RuntimeError):
    """Illegal payment state transition."""


class DownloadTooLargeError(ReimagerError):
    """The image to download exceeds the configured size limit."""
