"""Request decoding and parameter validation for API resources.

Bodies are decoded straight into the msgspec request structs, so the
struct constraints (lengths, literal states, element types) are the single
source of truth for what a valid request looks like. Decoding failures are
re-raised as :class:`~issuegate.api.errors.InvalidInputError` with the
offending field name when msgspec reports one.
"""

from __future__ import annotations

import re
import typing as typ

import msgspec

from issuegate.api.errors import InvalidInputError
from issuegate.github.models import IssueListParams

if typ.TYPE_CHECKING:
    from falcon.asgi import Request

    from issuegate.github.models import IssueStateFilter

__all__ = [
    "DEFAULT_EVENT_LIMIT",
    "MAX_EVENT_LIMIT",
    "MAX_PER_PAGE",
    "decode_body",
    "parse_event_limit",
    "parse_issue_number",
    "parse_list_params",
]

DEFAULT_EVENT_LIMIT = 50
MAX_EVENT_LIMIT = 100
MAX_PER_PAGE = 100

_ISSUE_STATE_FILTERS = ("open", "closed", "all")

# msgspec appends the failing path, e.g. "... - at `$.labels[0]`".
_ERROR_PATH = re.compile(r"\s+-\s+at\s+`\$(?P<path>[^`]*)`$")
_FIELD_NAME = re.compile(r"^\.(?P<field>[A-Za-z_]\w*)")


def _split_validation_error(message: str) -> tuple[str, str | None]:
    match = _ERROR_PATH.search(message)
    if match is None:
        return message, None
    reason = message[: match.start()]
    field_match = _FIELD_NAME.match(match.group("path"))
    return reason, None if field_match is None else field_match.group("field")


def decode_body[T](raw: bytes, struct_type: type[T]) -> T:
    """Decode a JSON request body into *struct_type*.

    Raises
    ------
    InvalidInputError
        If the body is empty, not JSON, not an object, or violates a field
        constraint.

    """
    if not raw.strip():
        raise InvalidInputError("Request body must be a JSON object")
    try:
        return msgspec.json.decode(raw, type=struct_type)
    except msgspec.ValidationError as exc:
        reason, field = _split_validation_error(str(exc))
        if field is None and reason.startswith("Expected `object`"):
            reason = "Request body must be a JSON object"
        raise InvalidInputError(reason, field=field) from exc
    except msgspec.DecodeError as exc:
        msg = "Request body is not valid JSON"
        raise InvalidInputError(msg) from exc


def _parse_int(raw: str, *, field: str, reason: str) -> int:
    text = raw.strip()
    if not (text.isascii() and text.isdigit()):
        raise InvalidInputError(reason, field=field)
    return int(text)


def parse_issue_number(raw: str) -> int:
    """Return the issue number in a path segment, which must be >= 1."""
    reason = "Issue number must be a positive integer"
    number = _parse_int(raw, field="number", reason=reason)
    if number < 1:
        raise InvalidInputError(reason, field="number")
    return number


def parse_event_limit(raw: str | None) -> int:
    """Return the ``limit`` query parameter for event listing (1 to 100)."""
    if raw is None:
        return DEFAULT_EVENT_LIMIT
    reason = f"Limit must be an integer between 1 and {MAX_EVENT_LIMIT}"
    limit = _parse_int(raw, field="limit", reason=reason)
    if not 1 <= limit <= MAX_EVENT_LIMIT:
        raise InvalidInputError(reason, field="limit")
    return limit


def parse_list_params(req: Request) -> IssueListParams:
    """Build :class:`IssueListParams` from ``GET /issues`` query parameters."""
    page: int | None = None
    raw_page = req.get_param("page")
    if raw_page is not None:
        page = _parse_int(
            raw_page, field="page", reason="Page must be a positive integer"
        )
        if page < 1:
            raise InvalidInputError("Page must be a positive integer", field="page")

    per_page: int | None = None
    raw_per_page = req.get_param("per_page")
    if raw_per_page is not None:
        reason = f"Per page must be between 1 and {MAX_PER_PAGE}"
        per_page = _parse_int(raw_per_page, field="per_page", reason=reason)
        if not 1 <= per_page <= MAX_PER_PAGE:
            raise InvalidInputError(reason, field="per_page")

    state = req.get_param("state")
    if state is not None and state not in _ISSUE_STATE_FILTERS:
        raise InvalidInputError(
            'State must be "open", "closed", or "all"', field="state"
        )

    return IssueListParams(
        state=typ.cast("IssueStateFilter | None", state),
        labels=req.get_param("labels"),
        page=page,
        per_page=per_page,
    )
