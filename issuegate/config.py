"""Service configuration loaded from ``ISSUEGATE_*`` environment variables.

Usage
-----
With ``ISSUEGATE_WEBHOOK_SECRET`` exported by the deployment::

    webhook = WebhookConfig.from_env()
    webhook.ack_mode  # AcknowledgementMode.ACK_THEN_PERSIST unless overridden

Explicit values bypass the environment entirely:

>>> WebhookConfig(secret="s3cret").ack_mode
<AcknowledgementMode.ACK_THEN_PERSIST: 'ack_then_persist'>

"""

from __future__ import annotations

import dataclasses as dc
import os

from limits import parse

from issuegate.api.middleware import DEFAULT_CLIENT_RATE_LIMIT
from issuegate.github.client import GitHubRESTConfig
from issuegate.webhooks.errors import MissingWebhookSecretError
from issuegate.webhooks.ingestion import AcknowledgementMode

__all__ = [
    "DEFAULT_DATABASE_URL",
    "ServiceConfig",
    "WebhookConfig",
]

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./data/events.db"

_RATE_LIMIT_DISABLED = "off"


@dc.dataclass(frozen=True, slots=True)
class WebhookConfig:
    """Settings for webhook authentication and acknowledgment.

    Attributes
    ----------
    secret
        Shared HMAC secret configured on the GitHub webhook.
    ack_mode
        Whether deliveries are answered before or after the store write.

    """

    secret: str
    ack_mode: AcknowledgementMode = AcknowledgementMode.ACK_THEN_PERSIST

    @classmethod
    def from_env(cls) -> WebhookConfig:
        """Read ``ISSUEGATE_WEBHOOK_SECRET`` and ``ISSUEGATE_WEBHOOK_ACK_MODE``.

        Raises
        ------
        MissingWebhookSecretError
            If the secret is unset or blank.
        ValueError
            If the acknowledgment mode is not recognised.

        """
        secret = os.environ.get("ISSUEGATE_WEBHOOK_SECRET", "")
        if not secret.strip():
            raise MissingWebhookSecretError

        raw_mode = os.environ.get("ISSUEGATE_WEBHOOK_ACK_MODE", "").strip().lower()
        if not raw_mode:
            return cls(secret=secret)
        try:
            ack_mode = AcknowledgementMode(raw_mode)
        except ValueError as exc:
            allowed = ", ".join(mode.value for mode in AcknowledgementMode)
            msg = (
                f"ISSUEGATE_WEBHOOK_ACK_MODE must be one of {allowed}, "
                f"got: {raw_mode!r}"
            )
            raise ValueError(msg) from exc
        return cls(secret=secret, ack_mode=ack_mode)


@dc.dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Everything the runtime needs to build the application."""

    github: GitHubRESTConfig
    webhook: WebhookConfig
    database_url: str = DEFAULT_DATABASE_URL
    client_rate_limit: str | None = DEFAULT_CLIENT_RATE_LIMIT

    @classmethod
    def from_env(cls) -> ServiceConfig:
        """Create configuration from environment variables.

        Raises
        ------
        GitHubConfigError
            If a required GitHub variable is missing.
        MissingWebhookSecretError
            If no webhook secret is configured.
        ValueError
            If a value is present but invalid.

        """
        database_url = os.environ.get("ISSUEGATE_DATABASE_URL", "").strip()
        return cls(
            github=GitHubRESTConfig.from_env(),
            webhook=WebhookConfig.from_env(),
            database_url=database_url or DEFAULT_DATABASE_URL,
            client_rate_limit=_client_rate_limit_from_env(),
        )


def _client_rate_limit_from_env() -> str | None:
    """Read ``ISSUEGATE_CLIENT_RATE_LIMIT``; ``off`` disables throttling."""
    raw = os.environ.get("ISSUEGATE_CLIENT_RATE_LIMIT", "").strip()
    if not raw:
        return DEFAULT_CLIENT_RATE_LIMIT
    if raw.lower() == _RATE_LIMIT_DISABLED:
        return None
    try:
        parse(raw)
    except ValueError as exc:
        msg = (
            "ISSUEGATE_CLIENT_RATE_LIMIT must be a rate such as '100/minute' "
            f"or 'off', got: {raw!r}"
        )
        raise ValueError(msg) from exc
    return raw
