"""GitHub Issues REST API client."""

from __future__ import annotations

from .client import GitHubIssuesClient, GitHubRESTConfig
from .errors import GitHubAPIError, GitHubConfigError, RateLimitExceededError
from .models import (
    CommentCreate,
    GitHubResponse,
    IssueCreate,
    IssueListParams,
    IssueUpdate,
    RateLimitSnapshot,
)
from .pagination import parse_link_header

__all__ = [
    "CommentCreate",
    "GitHubAPIError",
    "GitHubConfigError",
    "GitHubIssuesClient",
    "GitHubRESTConfig",
    "GitHubResponse",
    "IssueCreate",
    "IssueListParams",
    "IssueUpdate",
    "RateLimitExceededError",
    "RateLimitSnapshot",
    "parse_link_header",
]
