"""GitHub API access."""

from .client import GitHubClient, GitHubClientFactory, APIResponse
from .pagination import paginate, collect, paginate_graphql

__all__ = [
    'GitHubClient',
    'GitHubClientFactory',
    'APIResponse',
    'paginate',
    'collect',
    'paginate_graphql',
]
