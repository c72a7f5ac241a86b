"""Typed request and response models for the GitHub Issues REST API."""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import math
import typing as typ

import msgspec

from .pagination import parse_link_header

if typ.TYPE_CHECKING:
    import collections.abc as cabc

__all__ = [
    "ISSUE_TITLE_MAX_LENGTH",
    "TEXT_BODY_MAX_LENGTH",
    "CommentCreate",
    "GitHubResponse",
    "IssueCreate",
    "IssueListParams",
    "IssueUpdate",
    "RateLimitSnapshot",
]

ISSUE_TITLE_MAX_LENGTH = 200
TEXT_BODY_MAX_LENGTH = 65536

Title = typ.Annotated[
    str, msgspec.Meta(min_length=1, max_length=ISSUE_TITLE_MAX_LENGTH)
]
Body = typ.Annotated[str, msgspec.Meta(max_length=TEXT_BODY_MAX_LENGTH)]
CommentBody = typ.Annotated[
    str, msgspec.Meta(min_length=1, max_length=TEXT_BODY_MAX_LENGTH)
]
IssueState = typ.Literal["open", "closed"]
IssueStateFilter = typ.Literal["open", "closed", "all"]

_RATE_LIMIT_HEADERS = (
    "x-ratelimit-limit",
    "x-ratelimit-remaining",
    "x-ratelimit-reset",
    "x-ratelimit-used",
)


class IssueCreate(msgspec.Struct, omit_defaults=True):
    """Body of ``POST /issues``.

    An empty or null ``body`` is dropped rather than sent upstream.
    """

    title: Title
    body: Body | None | msgspec.UnsetType = msgspec.UNSET
    labels: list[str] | msgspec.UnsetType = msgspec.UNSET

    def __post_init__(self) -> None:
        """Normalise an empty body to "not provided"."""
        if not self.body:
            self.body = msgspec.UNSET


class IssueUpdate(msgspec.Struct, omit_defaults=True):
    """Body of ``PATCH /issues/{number}``; every field is optional."""

    title: Title | msgspec.UnsetType = msgspec.UNSET
    body: Body | None | msgspec.UnsetType = msgspec.UNSET
    state: IssueState | msgspec.UnsetType = msgspec.UNSET

    def __post_init__(self) -> None:
        """Normalise an empty body to "not provided"."""
        if not self.body:
            self.body = msgspec.UNSET


class CommentCreate(msgspec.Struct):
    """Body of ``POST /issues/{number}/comments``."""

    body: CommentBody


@dc.dataclass(frozen=True, slots=True)
class IssueListParams:
    """Filters and paging for listing issues."""

    state: IssueStateFilter | None = None
    labels: str | None = None
    page: int | None = None
    per_page: int | None = None

    def to_query(self) -> dict[str, str]:
        """Return the query parameters that were actually provided."""
        query: dict[str, str] = {}
        if self.state is not None:
            query["state"] = self.state
        if self.labels is not None:
            query["labels"] = self.labels
        if self.page is not None:
            query["page"] = str(self.page)
        if self.per_page is not None:
            query["per_page"] = str(self.per_page)
        return query


@dc.dataclass(frozen=True, slots=True)
class RateLimitSnapshot:
    """GitHub rate-limit state as reported on the latest response."""

    limit: int
    remaining: int
    reset: int
    used: int

    @classmethod
    def from_headers(
        cls, headers: cabc.Mapping[str, str]
    ) -> RateLimitSnapshot | None:
        """Parse ``X-RateLimit-*`` headers; ``None`` unless all four are valid.

        Lookup is case-insensitive when *headers* is an ``httpx.Headers``.
        """
        values: list[int] = []
        for name in _RATE_LIMIT_HEADERS:
            raw = headers.get(name)
            text = "" if raw is None else raw.strip()
            if not (text.isascii() and text.isdigit()):
                return None
            values.append(int(text))
        limit, remaining, reset, used = values
        return cls(limit=limit, remaining=remaining, reset=reset, used=used)

    @property
    def reset_at(self) -> dt.datetime:
        """Instant at which the window resets."""
        return dt.datetime.fromtimestamp(self.reset, tz=dt.UTC)

    def seconds_until_reset(self, now: dt.datetime) -> int:
        """Whole seconds from *now* until the reset, never negative."""
        delta = (self.reset_at - now).total_seconds()
        return max(0, math.ceil(delta))

    def is_exhausted(self, now: dt.datetime) -> bool:
        """Return True while no requests remain and the window is still open."""
        return self.remaining <= 0 and self.reset_at > now


@dc.dataclass(frozen=True, slots=True)
class GitHubResponse[T]:
    """Decoded GitHub response along with the headers callers pass through.

    Attributes
    ----------
    data
        Decoded JSON body.
    headers
        Response headers, with lower-case names.
    rate_limit
        Snapshot parsed from this response, or ``None`` when GitHub did not
        report one.

    """

    data: T
    headers: dict[str, str]
    rate_limit: RateLimitSnapshot | None = None

    @property
    def links(self) -> dict[str, str]:
        """Pagination links keyed by relation (``next``, ``last``...)."""
        return parse_link_header(self.headers.get("link"))
