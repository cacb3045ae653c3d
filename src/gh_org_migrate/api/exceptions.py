"""GitHub API exceptions."""

from typing import Any, List, Optional


class GitHubAPIError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Any] = None,
    ):
        """Initialize GitHub API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_data: Response body returned by the API
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class GitHubAuthenticationError(GitHubAPIError):
    """Authentication error with GitHub API."""

    pass


class GitHubNotFoundError(GitHubAPIError):
    """Resource not found error."""

    pass


class GitHubRateLimitError(GitHubAPIError):
    """Request quota still exhausted after the automatic retry."""

    retryable = True

    def __init__(self, message: str, retry_after: float = 60, **kwargs):
        """Initialize rate limit error.

        Args:
            message: Error message
            retry_after: Seconds the server asked us to wait
            **kwargs: Additional arguments for base class
        """
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class GitHubAbuseLimitError(GitHubAPIError):
    """Secondary rate limit (abuse detection) triggered. Never retried."""

    retryable = False


class GitHubGraphQLError(GitHubAPIError):
    """GraphQL response carried an ``errors`` array."""

    def __init__(self, message: str, errors: Optional[List[dict]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
