"""Custom exception hierarchy for seamlock."""

from __future__ import annotations


class SeamError(Exception):
    """Base exception for all seamlock errors."""


class SeamConfigError(SeamError):
    """Invalid or missing configuration."""


class SeamTransportError(SeamError):
    """HTTP-level failure (network, timeout, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class SeamApiError(SeamError):
    """API returned a non-success response (application-level error)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_type: str = "",
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.endpoint = endpoint
        super().__init__(message)


class SeamUnsupportedEventTypeError(SeamApiError):
    """Webhook creation rejected because an event type is not supported.

    Raised by ``/webhooks/create`` when the provider refuses one of the
    requested ``event_types``. Callers may retry with a reduced set.
    """


class SeamResponseParseError(SeamError):
    """A successful response did not contain a well-formed object."""


class WebhookPayloadError(SeamError):
    """Webhook request body could not be parsed as an event payload."""


class WebhookSignatureError(SeamError):
    """Webhook signature header did not match the request body."""


class SeamCommunicationError(SeamError):
    """A lock/unlock command failed; remote state is unknown.

    This is the only error class surfaced to the accessory host.
    """

    def __init__(self, message: str, *, device_id: str = "") -> None:
        self.device_id = device_id
        super().__init__(message)


class SeamCommandTimeoutError(SeamCommunicationError):
    """A lock/unlock command did not complete within its timeout."""
