"""OpenAPI 3.1 description of the HTTP surface.

Request body schemas are generated from the msgspec request structs, so the
published constraints always match the ones enforced by
:func:`~issuegate.api.validation.decode_body`.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

import msgspec

from issuegate.api.validation import DEFAULT_EVENT_LIMIT, MAX_EVENT_LIMIT, MAX_PER_PAGE
from issuegate.github.models import CommentCreate, IssueCreate, IssueUpdate

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["OpenAPIResource", "build_openapi_document"]

API_VERSION = "0.1.0"
_REF_TEMPLATE = "#/components/schemas/{name}"
_OK: dict[str, str] = {"description": "OK"}
_CREATED: dict[str, str] = {"description": "Created"}

_ERROR_SCHEMA: dict[str, typ.Any] = {
    "type": "object",
    "required": ["title"],
    "properties": {
        "title": {"type": "string"},
        "description": {"type": "string"},
        "field": {"type": "string"},
    },
}


def _json_body(ref: str) -> dict[str, typ.Any]:
    return {
        "required": True,
        "content": {"application/json": {"schema": {"$ref": ref}}},
    }


def _error(description: str) -> dict[str, typ.Any]:
    return {
        "description": description,
        "content": {
            "application/json": {"schema": {"$ref": "#/components/schemas/Error"}}
        },
    }


def _issue_number_param() -> dict[str, typ.Any]:
    return {
        "name": "number",
        "in": "path",
        "required": True,
        "schema": {"type": "integer", "minimum": 1},
    }


def _query_int(name: str, *, maximum: int | None = None) -> dict[str, typ.Any]:
    schema: dict[str, typ.Any] = {"type": "integer", "minimum": 1}
    if maximum is not None:
        schema["maximum"] = maximum
    return {"name": name, "in": "query", "required": False, "schema": schema}


def _paths(refs: dict[str, str]) -> dict[str, typ.Any]:
    upstream_errors = {
        "400": _error("Invalid input"),
        "429": _error("GitHub rate limit exceeded"),
        "502": _error("GitHub unavailable"),
    }
    return {
        "/health": {"get": {"summary": "Liveness probe", "responses": {"200": _OK}}},
        "/ready": {"get": {"summary": "Readiness probe", "responses": {"200": _OK}}},
        "/healthz": {
            "get": {"summary": "Status with uptime", "responses": {"200": _OK}}
        },
        "/webhook": {
            "post": {
                "summary": "Receive a GitHub webhook delivery",
                "parameters": [
                    {"name": header, "in": "header", "required": True}
                    for header in (
                        "X-Hub-Signature-256",
                        "X-GitHub-Event",
                        "X-GitHub-Delivery",
                    )
                ],
                "responses": {
                    "204": {"description": "Accepted"},
                    "400": _error("Malformed delivery"),
                    "401": _error("Missing or invalid signature"),
                    "503": _error("Event store unavailable"),
                },
            }
        },
        "/events": {
            "get": {
                "summary": "List recently received webhook events",
                "parameters": [
                    {
                        **_query_int("limit", maximum=MAX_EVENT_LIMIT),
                        "description": f"Defaults to {DEFAULT_EVENT_LIMIT}.",
                    }
                ],
                "responses": {"200": _OK, "400": _error("Invalid limit")},
            }
        },
        "/events/{delivery_id}": {
            "get": {
                "summary": "Fetch one webhook event with its raw payload",
                "parameters": [
                    {
                        "name": "delivery_id",
                        "in": "path",
                        "required": True,
                        "schema": {"type": "string"},
                    }
                ],
                "responses": {"200": _OK, "404": _error("Event not found")},
            }
        },
        "/issues": {
            "get": {
                "summary": "List issues",
                "parameters": [
                    _query_int("page"),
                    _query_int("per_page", maximum=MAX_PER_PAGE),
                    {
                        "name": "state",
                        "in": "query",
                        "required": False,
                        "schema": {"enum": ["open", "closed", "all"]},
                    },
                    {"name": "labels", "in": "query", "required": False},
                ],
                "responses": {"200": _OK, **upstream_errors},
            },
            "post": {
                "summary": "Create an issue",
                "requestBody": _json_body(refs["IssueCreate"]),
                "responses": {"201": _CREATED, **upstream_errors},
            },
        },
        "/issues/{number}": {
            "parameters": [_issue_number_param()],
            "get": {
                "summary": "Fetch an issue",
                "responses": {"200": _OK, **upstream_errors},
            },
            "patch": {
                "summary": "Update an issue",
                "requestBody": _json_body(refs["IssueUpdate"]),
                "responses": {"200": _OK, **upstream_errors},
            },
        },
        "/issues/{number}/comments": {
            "parameters": [_issue_number_param()],
            "post": {
                "summary": "Comment on an issue",
                "requestBody": _json_body(refs["CommentCreate"]),
                "responses": {"201": _CREATED, **upstream_errors},
            },
        },
    }


def build_openapi_document() -> dict[str, typ.Any]:
    """Return the OpenAPI document as plain JSON-compatible data."""
    request_types = (IssueCreate, IssueUpdate, CommentCreate)
    schemas, components = msgspec.json.schema_components(
        request_types, ref_template=_REF_TEMPLATE
    )
    refs = {
        request_type.__name__: schema["$ref"]
        for request_type, schema in zip(request_types, schemas, strict=True)
    }
    return {
        "openapi": "3.1.0",
        "info": {"title": "issuegate", "version": API_VERSION},
        "paths": _paths(refs),
        "components": {"schemas": {**components, "Error": _ERROR_SCHEMA}},
    }


class OpenAPIResource:
    """``GET /openapi.json``; the document is built once per resource."""

    def __init__(self) -> None:
        """Build the document eagerly so schema errors surface at startup."""
        self._document = build_openapi_document()

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /openapi.json requests."""
        resp.media = self._document
        resp.status = HTTPStatus.OK
