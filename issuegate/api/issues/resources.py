"""Issue and comment resources forwarded to the GitHub Issues API.

Each resource validates its input locally, forwards the call through
:class:`~issuegate.github.client.GitHubIssuesClient` and relays the upstream
body together with GitHub's rate-limit headers. Listing additionally relays
the ``Link`` and ``X-Total-Count`` pagination headers.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/issues", IssueCollectionResource(client))
    app.add_route("/issues/{number}", IssueResource(client))
    app.add_route("/issues/{number}/comments", IssueCommentsResource(client))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from issuegate.api.validation import decode_body, parse_issue_number, parse_list_params
from issuegate.github.models import CommentCreate, IssueCreate, IssueUpdate

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from issuegate.github.client import GitHubIssuesClient
    from issuegate.github.models import GitHubResponse

__all__ = [
    "IssueCollectionResource",
    "IssueCommentsResource",
    "IssueResource",
]

RATE_LIMIT_HEADERS = (
    ("x-ratelimit-limit", "X-RateLimit-Limit"),
    ("x-ratelimit-remaining", "X-RateLimit-Remaining"),
    ("x-ratelimit-reset", "X-RateLimit-Reset"),
    ("x-ratelimit-used", "X-RateLimit-Used"),
)
PAGINATION_HEADERS = (
    ("link", "Link"),
    ("x-total-count", "X-Total-Count"),
)


def _relay(
    resp: Response,
    result: GitHubResponse[typ.Any],
    *,
    status: HTTPStatus = HTTPStatus.OK,
    extra_headers: tuple[tuple[str, str], ...] = (),
) -> None:
    """Copy the upstream body and selected headers onto *resp*."""
    for source, target in (*RATE_LIMIT_HEADERS, *extra_headers):
        value = result.headers.get(source)
        if value is not None:
            resp.set_header(target, value)
    resp.media = result.data
    resp.status = status


def _issue_number(data: object) -> object:
    if isinstance(data, dict):
        return data.get("number")
    return None


class IssueCollectionResource:
    """``POST /issues`` and ``GET /issues``."""

    def __init__(self, client: GitHubIssuesClient) -> None:
        """Bind the resource to the GitHub client."""
        self._client = client

    async def on_post(self, req: Request, resp: Response) -> None:
        """Create an issue; answers 201 with ``Location: /issues/{number}``."""
        issue = decode_body(await req.stream.read(), IssueCreate)
        result = await self._client.create_issue(issue)
        number = _issue_number(result.data)
        if number is not None:
            resp.location = f"/issues/{number}"
        _relay(resp, result, status=HTTPStatus.CREATED)

    async def on_get(self, req: Request, resp: Response) -> None:
        """List issues, relaying GitHub's pagination headers."""
        params = parse_list_params(req)
        result = await self._client.list_issues(params)
        _relay(resp, result, extra_headers=PAGINATION_HEADERS)


class IssueResource:
    """``GET /issues/{number}`` and ``PATCH /issues/{number}``."""

    def __init__(self, client: GitHubIssuesClient) -> None:
        """Bind the resource to the GitHub client."""
        self._client = client

    async def on_get(self, _req: Request, resp: Response, *, number: str) -> None:
        """Fetch one issue."""
        result = await self._client.get_issue(parse_issue_number(number))
        _relay(resp, result)

    async def on_patch(self, req: Request, resp: Response, *, number: str) -> None:
        """Apply a partial update to one issue."""
        issue_number = parse_issue_number(number)
        update = decode_body(await req.stream.read(), IssueUpdate)
        result = await self._client.update_issue(issue_number, update)
        _relay(resp, result)


class IssueCommentsResource:
    """``POST /issues/{number}/comments``."""

    def __init__(self, client: GitHubIssuesClient) -> None:
        """Bind the resource to the GitHub client."""
        self._client = client

    async def on_post(self, req: Request, resp: Response, *, number: str) -> None:
        """Add a comment to an issue; answers 201."""
        issue_number = parse_issue_number(number)
        comment = decode_body(await req.stream.read(), CommentCreate)
        result = await self._client.create_comment(issue_number, comment)
        _relay(resp, result, status=HTTPStatus.CREATED)
