"""Per-kind decoding of webhook bodies into the fields the store keeps.

Each supported event kind has its own msgspec struct describing where the
action and the issue number live in that kind's payload. Kinds that are
allowed but have no dedicated struct fall back to :class:`ActionOnlyPayload`,
which extracts the action and nothing else. Unknown fields are ignored.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import msgspec

from .errors import MalformedDelivery

__all__ = [
    "PERSISTED_EVENT_KINDS",
    "PING_EVENT_KIND",
    "SUPPORTED_EVENT_KINDS",
    "ActionOnlyPayload",
    "DecodedPayload",
    "IssueCommentPayload",
    "IssuesPayload",
    "decode_payload",
]

PING_EVENT_KIND = "ping"
PERSISTED_EVENT_KINDS = frozenset({"issues", "issue_comment"})
SUPPORTED_EVENT_KINDS = PERSISTED_EVENT_KINDS | {PING_EVENT_KIND}

Action = typ.Annotated[str, msgspec.Meta(min_length=1, max_length=64)]


class IssueRef(msgspec.Struct):
    """The ``issue`` object embedded in issue-related payloads."""

    number: int | None = None


class ActionOnlyPayload(msgspec.Struct):
    """Default variant: only the action is extracted."""

    action: Action

    @property
    def subject_number(self) -> int | None:
        """Return None; this variant does not know where a subject lives."""
        return None


class IssuesPayload(msgspec.Struct):
    """``issues`` payload: ``action`` plus ``issue.number``."""

    action: Action
    issue: IssueRef | None = None

    @property
    def subject_number(self) -> int | None:
        """Return the issue number, if the payload carries one."""
        return None if self.issue is None else self.issue.number


class IssueCommentPayload(msgspec.Struct):
    """``issue_comment`` payload: the subject is the commented issue."""

    action: Action
    issue: IssueRef | None = None

    @property
    def subject_number(self) -> int | None:
        """Return the number of the issue the comment belongs to."""
        return None if self.issue is None else self.issue.number


class _PayloadVariant(typ.Protocol):
    @property
    def action(self) -> str: ...

    @property
    def subject_number(self) -> int | None: ...


_DECODERS: dict[str, msgspec.json.Decoder[typ.Any]] = {
    "issues": msgspec.json.Decoder(IssuesPayload),
    "issue_comment": msgspec.json.Decoder(IssueCommentPayload),
}
_DEFAULT_DECODER: msgspec.json.Decoder[typ.Any] = msgspec.json.Decoder(
    ActionOnlyPayload
)


@dc.dataclass(frozen=True, slots=True)
class DecodedPayload:
    """Fields extracted from a webhook body."""

    action: str
    subject_number: int | None = None


def decode_payload(event_kind: str, body: bytes | str) -> DecodedPayload:
    """Decode *body* using the variant registered for *event_kind*.

    Raises
    ------
    MalformedDelivery
        If the body is not JSON, not an object, or lacks a usable action.

    """
    decoder = _DECODERS.get(event_kind, _DEFAULT_DECODER)
    try:
        variant: _PayloadVariant = decoder.decode(body)
    except msgspec.DecodeError as exc:
        raise MalformedDelivery.invalid_payload(str(exc)) from exc
    return DecodedPayload(
        action=variant.action,
        subject_number=variant.subject_number,
    )
