"""Async client for the GitHub Issues REST API."""

from __future__ import annotations

import dataclasses as dc
import json
import os
import typing as typ

import httpx
import msgspec

from issuegate.common.time import utcnow
from issuegate.logging import get_logger, log_debug, log_warning

from .errors import GitHubAPIError, GitHubConfigError, RateLimitExceededError
from .models import GitHubResponse, IssueListParams, RateLimitSnapshot

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .models import CommentCreate, IssueCreate, IssueUpdate

__all__ = ["GitHubIssuesClient", "GitHubRESTConfig"]

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_FORBIDDEN = 403
_HTTP_RATE_LIMITED = 429

GITHUB_API_VERSION = "2022-11-28"


def _get_retry_after(response: httpx.Response) -> int | None:
    """Extract Retry-After header value if present and numeric."""
    retry_after = response.headers.get("Retry-After")
    if retry_after and retry_after.isascii() and retry_after.isdigit():
        return int(retry_after)
    return None


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == _HTTP_RATE_LIMITED:
        return True
    return (
        response.status_code == _HTTP_FORBIDDEN
        and response.headers.get("x-ratelimit-remaining") == "0"
    )


def _error_detail(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except json.JSONDecodeError:
        return response.text or None
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str):
            return message
    return None


@dc.dataclass(frozen=True, slots=True)
class GitHubRESTConfig:
    """Connection settings for one repository's issues."""

    token: str
    owner: str
    repo: str
    base_url: str = "https://api.github.com"
    timeout_s: float = 20.0
    user_agent: str = "issuegate/0.1"

    @classmethod
    def from_env(cls) -> GitHubRESTConfig:
        """Build configuration from ``ISSUEGATE_GITHUB_*`` variables.

        ``ISSUEGATE_GITHUB_TOKEN``, ``ISSUEGATE_GITHUB_OWNER`` and
        ``ISSUEGATE_GITHUB_REPO`` are required; ``ISSUEGATE_GITHUB_API_URL``
        overrides the public API endpoint.
        """
        values: dict[str, str] = {}
        for field, variable in (
            ("token", "ISSUEGATE_GITHUB_TOKEN"),
            ("owner", "ISSUEGATE_GITHUB_OWNER"),
            ("repo", "ISSUEGATE_GITHUB_REPO"),
        ):
            value = os.environ.get(variable, "").strip()
            if not value:
                raise GitHubConfigError.missing(variable)
            values[field] = value
        base_url = os.environ.get("ISSUEGATE_GITHUB_API_URL", "").strip()
        return cls(
            token=values["token"],
            owner=values["owner"],
            repo=values["repo"],
            base_url=base_url.rstrip("/") or "https://api.github.com",
        )


class GitHubIssuesClient:
    """Issue and comment operations scoped to a single repository.

    Every call returns a :class:`GitHubResponse`. The most recent rate-limit
    snapshot is remembered, and requests are refused locally while it shows
    the limit exhausted and the window has not reset.

    Parameters
    ----------
    config
        Repository coordinates and credentials.
    http_client
        Pre-built client, mainly for tests. It is not closed by
        :meth:`aclose`.
    clock
        Source of the current time for the rate-limit check.

    """

    def __init__(
        self,
        config: GitHubRESTConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise GitHubConfigError.empty_token()

        self._config = config
        self._clock = clock
        self._rate_limit: RateLimitSnapshot | None = None
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_s,
            headers={
                "Authorization": f"Bearer {config.token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": config.user_agent,
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
        )

    @property
    def rate_limit(self) -> RateLimitSnapshot | None:
        """Latest snapshot reported by GitHub, if any."""
        return self._rate_limit

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _issues_path(self, *segments: object) -> str:
        parts = ["repos", self._config.owner, self._config.repo, "issues"]
        parts.extend(str(segment) for segment in segments)
        return "/" + "/".join(parts)

    def _check_rate_limit(self) -> None:
        snapshot = self._rate_limit
        if snapshot is None:
            return
        now = self._clock()
        if snapshot.is_exhausted(now):
            raise RateLimitExceededError(snapshot.seconds_until_reset(now))

    async def _send(
        self,
        method: str,
        path: str,
        *,
        body: msgspec.Struct | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        content = None if body is None else msgspec.json.encode(body)
        headers = None if body is None else {"Content-Type": "application/json"}
        try:
            return await self._client.request(
                method, path, content=content, headers=headers, params=params
            )
        except httpx.TimeoutException as exc:
            raise GitHubAPIError.timeout() from exc
        except httpx.RequestError as exc:
            raise GitHubAPIError.network_error(str(exc)) from exc

    def _check_response_errors(self, response: httpx.Response) -> None:
        if _is_rate_limited(response):
            retry_after = _get_retry_after(response)
            log_warning(
                logger,
                "GitHub rate limit hit (status=%s, retry_after=%s)",
                response.status_code,
                retry_after,
            )
            raise RateLimitExceededError(retry_after)

        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise GitHubAPIError.http_error(
                response.status_code, _error_detail(response)
            )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        body: msgspec.Struct | None = None,
        params: dict[str, str] | None = None,
    ) -> GitHubResponse[typ.Any]:
        self._check_rate_limit()
        response = await self._send(method, path, body=body, params=params)

        snapshot = RateLimitSnapshot.from_headers(response.headers)
        if snapshot is not None:
            self._rate_limit = snapshot
        log_debug(
            logger,
            "GitHub %s %s -> %s (remaining=%s)",
            method,
            path,
            response.status_code,
            None if snapshot is None else snapshot.remaining,
        )

        self._check_response_errors(response)
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise GitHubAPIError.http_error(
                response.status_code, "response body is not JSON"
            ) from exc
        return GitHubResponse(
            data=data,
            headers={name.lower(): value for name, value in response.headers.items()},
            rate_limit=snapshot,
        )

    async def create_issue(self, issue: IssueCreate) -> GitHubResponse[typ.Any]:
        """Open a new issue."""
        return await self._request("POST", self._issues_path(), body=issue)

    async def get_issue(self, number: int) -> GitHubResponse[typ.Any]:
        """Fetch a single issue by number."""
        return await self._request("GET", self._issues_path(number))

    async def list_issues(
        self, params: IssueListParams | None = None
    ) -> GitHubResponse[typ.Any]:
        """List issues; pagination links are exposed via ``response.links``."""
        query = (params or IssueListParams()).to_query()
        return await self._request("GET", self._issues_path(), params=query or None)

    async def update_issue(
        self, number: int, update: IssueUpdate
    ) -> GitHubResponse[typ.Any]:
        """Apply a partial update to an issue."""
        return await self._request("PATCH", self._issues_path(number), body=update)

    async def create_comment(
        self, number: int, comment: CommentCreate
    ) -> GitHubResponse[typ.Any]:
        """Add a comment to an issue."""
        return await self._request(
            "POST", self._issues_path(number, "comments"), body=comment
        )
