"""GitHub REST API errors."""

from __future__ import annotations

_MESSAGE_PREVIEW_LIMIT = 200


class GitHubAPIError(RuntimeError):
    """Raised when GitHub cannot be reached or answers with an error.

    Attributes
    ----------
    status_code
        Upstream HTTP status, or ``None`` for timeouts and transport errors.

    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, detail: str | None = None) -> GitHubAPIError:
        """Return an error for a non-2xx response."""
        message = f"GitHub API HTTP {status_code}"
        if detail:
            message = f"{message}: {detail[:_MESSAGE_PREVIEW_LIMIT]}"
        return cls(message, status_code=status_code)

    @classmethod
    def timeout(cls) -> GitHubAPIError:
        """Return an error for a request that timed out."""
        return cls("GitHub API request timed out")

    @classmethod
    def network_error(cls, detail: str) -> GitHubAPIError:
        """Return an error for DNS, connection or TLS failures."""
        return cls(f"GitHub API network error: {detail}")


class RateLimitExceededError(GitHubAPIError):
    """Raised when GitHub's rate limit is, or is known to be, exhausted.

    Attributes
    ----------
    retry_after
        Seconds until the limit resets, when known.

    """

    def __init__(self, retry_after: int | None = None) -> None:
        """Record the number of seconds to wait, if known."""
        self.retry_after = retry_after
        message = "Rate limit exceeded"
        if retry_after is not None:
            message = f"{message}. Retry after {retry_after} seconds"
        super().__init__(message, status_code=429)


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def missing(cls, variable: str) -> GitHubConfigError:
        """Return an error for a required environment variable."""
        return cls(f"{variable} is required for the GitHub API")

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")
