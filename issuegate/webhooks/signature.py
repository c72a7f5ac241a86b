"""HMAC-SHA256 signatures for webhook payloads.

Senders sign the raw request body with a shared secret and send the tag as
``sha256=<hex digest>``. :class:`SignatureVerifier` recomputes the tag and
compares digests in constant time.

Example:
>>> verifier = SignatureVerifier("test-secret")
>>> tag = verifier.compute_signature('{"test":"data"}')
>>> verifier.verify('{"test":"data"}', tag)
True
>>> verifier.verify('{"test":"tampered"}', tag)
False

"""

from __future__ import annotations

import hashlib
import hmac
import re

from .errors import MissingWebhookSecretError

__all__ = ["SIGNATURE_PREFIX", "SignatureVerifier"]

SIGNATURE_PREFIX = "sha256="

_HEX_DIGITS = re.compile(r"[0-9a-fA-F]+")


def _as_bytes(payload: str | bytes) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else payload


class SignatureVerifier:
    """Check payload signatures against a fixed shared secret.

    Instances hold no mutable state after construction and can be shared by
    concurrent requests.

    Parameters
    ----------
    secret
        Shared webhook secret. Must be non-empty.

    Raises
    ------
    MissingWebhookSecretError
        If *secret* is empty or ``None``.

    """

    __slots__ = ("_key",)

    def __init__(self, secret: str | bytes | None) -> None:
        """Bind the verifier to *secret*."""
        if not secret:
            raise MissingWebhookSecretError
        self._key = _as_bytes(secret)

    def compute_signature(self, payload: str | bytes) -> str:
        """Return the ``sha256=<hex>`` tag for *payload*."""
        digest = hmac.new(self._key, _as_bytes(payload), hashlib.sha256).hexdigest()
        return f"{SIGNATURE_PREFIX}{digest}"

    def verify(self, payload: str | bytes, candidate_tag: str | None) -> bool:
        """Return True when *candidate_tag* is the signature of *payload*.

        Empty, unprefixed, non-hex or wrongly sized tags verify as False
        before any digest comparison happens; only well-formed tags reach
        the constant-time comparison.
        """
        if not candidate_tag:
            return False
        if not candidate_tag.startswith(SIGNATURE_PREFIX):
            return False

        candidate_hex = candidate_tag.removeprefix(SIGNATURE_PREFIX)
        if _HEX_DIGITS.fullmatch(candidate_hex) is None:
            return False

        expected_tag = self.compute_signature(payload)
        try:
            candidate = bytes.fromhex(candidate_hex)
        except ValueError:
            return False
        expected = bytes.fromhex(expected_tag.removeprefix(SIGNATURE_PREFIX))

        if len(candidate) != len(expected):
            return False
        return hmac.compare_digest(candidate, expected)
