"""Rejection types for inbound webhook deliveries."""

from __future__ import annotations


class MissingWebhookSecretError(ValueError):
    """Raised when a signature verifier is built without a secret."""

    def __init__(self) -> None:
        """Attach a fixed message; the secret itself is never echoed."""
        super().__init__("webhook secret must be a non-empty string")


class AuthenticationFailure(Exception):  # noqa: N818 - domain vocabulary
    """Raised when a delivery's signature is absent or does not verify.

    Deliveries rejected this way are never persisted.
    """

    @classmethod
    def missing_signature(cls) -> AuthenticationFailure:
        """Return a failure for a delivery without a signature header."""
        return cls("Missing webhook signature")

    @classmethod
    def invalid_signature(cls) -> AuthenticationFailure:
        """Return a failure for a signature that does not match the body."""
        return cls("Invalid webhook signature")


class MalformedDelivery(Exception):  # noqa: N818 - domain vocabulary
    """Raised when a delivery is structurally unusable.

    Covers missing identity or kind headers, unsupported kinds and bodies
    that do not decode into the shape expected for their kind.

    Attributes
    ----------
    reason
        Human-readable description suitable for the sender.

    """

    def __init__(self, reason: str) -> None:
        """Store the sender-facing reason."""
        self.reason = reason
        super().__init__(reason)

    @classmethod
    def missing_header(cls, header: str) -> MalformedDelivery:
        """Return an error for a required header that was not sent."""
        return cls(f"Missing required header {header}")

    @classmethod
    def unsupported_kind(cls, event_kind: str) -> MalformedDelivery:
        """Return an error for an event kind outside the allow-list."""
        return cls(f"Event type '{event_kind}' is not supported")

    @classmethod
    def invalid_payload(cls, detail: str) -> MalformedDelivery:
        """Return an error for a body that does not match its kind."""
        return cls(f"Webhook payload is malformed: {detail}")
