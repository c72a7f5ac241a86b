"""Helpers for GitHub's ``Link`` pagination header."""

from __future__ import annotations

import re

__all__ = ["parse_link_header"]

_LINK_ENTRY = re.compile(r'<([^>]+)>\s*;\s*rel="([^"]+)"')


def parse_link_header(header: str | None) -> dict[str, str]:
    """Map each ``rel`` in an RFC 8288 ``Link`` header to its URL.

    Entries that do not match ``<url>; rel="name"`` are skipped.

    Examples
    --------
    >>> parse_link_header('<https://x/?page=2>; rel="next"')
    {'next': 'https://x/?page=2'}

    """
    links: dict[str, str] = {}
    if not header:
        return links
    for entry in header.split(","):
        match = _LINK_ENTRY.search(entry.strip())
        if match is not None:
            url, rel = match.groups()
            links[rel] = url
    return links
