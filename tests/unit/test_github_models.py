"""Unit tests for GitHub request structs and rate-limit snapshots."""

from __future__ import annotations

import datetime as dt

import httpx
import msgspec
import pytest

from issuegate.github import (
    CommentCreate,
    GitHubResponse,
    IssueCreate,
    IssueListParams,
    IssueUpdate,
    RateLimitSnapshot,
    parse_link_header,
)
from issuegate.github.models import ISSUE_TITLE_MAX_LENGTH, TEXT_BODY_MAX_LENGTH

_RESET = 1_719_835_260  # 2024-07-01T12:01:00Z


class TestIssueCreate:
    """Validation of issue creation bodies."""

    def test_minimal(self) -> None:
        """Only the title is required."""
        issue = msgspec.json.decode(b'{"title": "Crash"}', type=IssueCreate)
        assert msgspec.json.encode(issue) == b'{"title":"Crash"}', "wrong encoding"

    @pytest.mark.parametrize("body", ['""', "null"])
    def test_empty_body_is_dropped(self, body: str) -> None:
        """Empty and null bodies are not forwarded."""
        raw = f'{{"title": "Crash", "body": {body}}}'.encode()
        issue = msgspec.json.decode(raw, type=IssueCreate)
        assert issue.body is msgspec.UNSET, "body should be unset"

    def test_labels_are_kept(self) -> None:
        """Labels pass through unchanged."""
        raw = b'{"title": "Crash", "body": "trace", "labels": ["bug"]}'
        issue = msgspec.json.decode(raw, type=IssueCreate)
        assert issue.labels == ["bug"], "labels should be kept"
        assert issue.body == "trace", "body should be kept"

    @pytest.mark.parametrize(
        "raw",
        [
            b"{}",
            b'{"title": ""}',
            b'{"title": 5}',
            msgspec.json.encode({"title": "x" * (ISSUE_TITLE_MAX_LENGTH + 1)}),
            msgspec.json.encode(
                {"title": "t", "body": "x" * (TEXT_BODY_MAX_LENGTH + 1)}
            ),
        ],
        ids=["missing", "empty", "number", "long-title", "long-body"],
    )
    def test_invalid(self, raw: bytes) -> None:
        """Titles must be non-empty strings within the length limits."""
        with pytest.raises(msgspec.ValidationError):
            msgspec.json.decode(raw, type=IssueCreate)

    def test_title_at_limit(self) -> None:
        """A title of exactly the maximum length is accepted."""
        title = "x" * ISSUE_TITLE_MAX_LENGTH
        issue = msgspec.json.decode(
            msgspec.json.encode({"title": title}), type=IssueCreate
        )
        assert issue.title == title, "title at the limit should be accepted"


class TestIssueUpdate:
    """Validation of partial updates."""

    def test_empty_update_encodes_to_empty_object(self) -> None:
        """No fields provided means nothing is sent."""
        update = msgspec.json.decode(b"{}", type=IssueUpdate)
        assert msgspec.json.encode(update) == b"{}", "expected empty object"

    def test_rejects_unknown_state(self) -> None:
        """Only open and closed are valid states."""
        with pytest.raises(msgspec.ValidationError, match="state"):
            msgspec.json.decode(b'{"state": "merged"}', type=IssueUpdate)

    def test_state_and_title(self) -> None:
        """Provided fields are encoded."""
        update = IssueUpdate(title="New", state="closed")
        assert msgspec.json.decode(msgspec.json.encode(update)) == {
            "title": "New",
            "state": "closed",
        }, "unexpected encoding"


def test_comment_body_required() -> None:
    """Comments need a non-empty body."""
    with pytest.raises(msgspec.ValidationError):
        msgspec.json.decode(b'{"body": ""}', type=CommentCreate)


def test_list_params_query() -> None:
    """Only provided filters appear in the query."""
    params = IssueListParams(state="closed", per_page=10)
    assert params.to_query() == {"state": "closed", "per_page": "10"}, (
        "unexpected query"
    )


class TestRateLimitSnapshot:
    """Tests for ``RateLimitSnapshot``."""

    @pytest.fixture
    def headers(self) -> httpx.Headers:
        """Return a complete set of rate-limit headers."""
        return httpx.Headers(
            {
                "X-RateLimit-Limit": "5000",
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(_RESET),
                "X-RateLimit-Used": "5000",
            }
        )

    def test_from_headers(self, headers: httpx.Headers) -> None:
        """All four headers are parsed case-insensitively."""
        snapshot = RateLimitSnapshot.from_headers(headers)
        assert snapshot == RateLimitSnapshot(
            limit=5000, remaining=0, reset=_RESET, used=5000
        ), "unexpected snapshot"

    @pytest.mark.parametrize(
        ("name", "value"),
        [("X-RateLimit-Used", None), ("X-RateLimit-Remaining", "many")],
    )
    def test_incomplete_headers(
        self, headers: httpx.Headers, name: str, value: str | None
    ) -> None:
        """A missing or non-numeric header yields no snapshot."""
        if value is None:
            del headers[name]
        else:
            headers[name] = value
        assert RateLimitSnapshot.from_headers(headers) is None, "expected None"

    @pytest.mark.parametrize("value", ["²", "٣", " 12 x"])
    def test_non_ascii_digits_yield_no_snapshot(self, value: str) -> None:
        """Only ASCII digits count as numeric header values."""
        headers = {
            "x-ratelimit-limit": "5000",
            "x-ratelimit-remaining": value,
            "x-ratelimit-reset": str(_RESET),
            "x-ratelimit-used": "5000",
        }
        assert RateLimitSnapshot.from_headers(headers) is None, "expected None"

    def test_padded_values_are_parsed(self) -> None:
        """Surrounding whitespace is tolerated."""
        headers = {
            "x-ratelimit-limit": " 5000 ",
            "x-ratelimit-remaining": "1",
            "x-ratelimit-reset": str(_RESET),
            "x-ratelimit-used": "4999",
        }
        snapshot = RateLimitSnapshot.from_headers(headers)
        assert snapshot is not None, "snapshot should parse"
        assert snapshot.limit == 5000, "expected limit 5000"

    def test_exhaustion_depends_on_reset(self, headers: httpx.Headers) -> None:
        """A spent limit only blocks until the window resets."""
        snapshot = RateLimitSnapshot.from_headers(headers)
        assert snapshot is not None, "snapshot should parse"
        before = dt.datetime(2024, 7, 1, 12, 0, 0, 500000, tzinfo=dt.UTC)
        after = dt.datetime(2024, 7, 1, 12, 1, 1, tzinfo=dt.UTC)

        assert snapshot.is_exhausted(before), "should be exhausted before reset"
        assert snapshot.seconds_until_reset(before) == 60, "should round up"
        assert not snapshot.is_exhausted(after), "should recover after reset"
        assert snapshot.seconds_until_reset(after) == 0, "never negative"


class TestLinks:
    """Tests for ``Link`` header parsing."""

    def test_multiple_relations(self) -> None:
        """Every relation is mapped to its URL."""
        header = '<https://x/?page=1>; rel="prev", <https://x/?page=3>; rel="next"'
        assert parse_link_header(header) == {
            "prev": "https://x/?page=1",
            "next": "https://x/?page=3",
        }, "unexpected links"

    @pytest.mark.parametrize("header", [None, "", "garbage"])
    def test_no_links(self, header: str | None) -> None:
        """Missing or malformed headers give no links."""
        assert parse_link_header(header) == {}, "expected no links"

    def test_response_links(self) -> None:
        """``GitHubResponse.links`` reads the lower-cased header."""
        response = GitHubResponse(
            data=[], headers={"link": '<https://x/?page=2>; rel="next"'}
        )
        assert response.links == {"next": "https://x/?page=2"}, "wrong links"
