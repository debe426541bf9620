"""Exceptions raised along the webhook relay path."""


class RelayError(Exception):
    """Base exception for webhook relay errors."""


class SignatureError(RelayError):
    """Raised when a webhook fails signature validation.

    Authentication failures are never transient and are never retried.
    """


class PayloadError(RelayError):
    """Raised when an authenticated payload does not match the push schema."""


class BrokerError(RelayError):
    """Raised for transient broker failures (connect, channel, declare, publish)."""


class PublishTimeout(BrokerError):
    """Raised when a single publish attempt exceeds its time budget."""


class RelayCancelled(RelayError):
    """Raised when a retry loop is stopped by process shutdown."""
