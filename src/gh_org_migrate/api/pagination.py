"""Pagination helpers for REST and GraphQL listings."""

import re
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from loguru import logger

from .client import GitHubClient

_NEXT_LINK = re.compile(r'<([^>]+)>\s*;\s*rel="next"')


def next_page_url(link_header: Optional[str]) -> Optional[str]:
    """Extract the ``rel="next"`` URL from a ``Link`` header."""
    if not link_header:
        return None
    match = _NEXT_LINK.search(link_header)
    return match.group(1) if match else None


async def paginate(
    client: GitHubClient,
    endpoint: str,
    params: Optional[Dict[str, Any]] = None,
    item_key: Optional[str] = None,
    per_page: int = 100,
) -> AsyncIterator[Any]:
    """Iterate lazily over every item of a paginated REST listing.

    Args:
        client: Client to issue requests with
        endpoint: API endpoint of the listing
        params: Query parameters for the first page
        item_key: Envelope key holding the items (e.g. ``'secrets'``)
        per_page: Page size requested from the server

    Yields:
        Items in server order
    """
    page_params = dict(params or {})
    page_params.setdefault('per_page', per_page)
    url: Optional[str] = endpoint

    while url:
        response = await client.get_async(url, params=page_params)
        data = response.data
        if item_key is not None:
            data = (data or {}).get(item_key, [])

        for item in data or []:
            yield item

        url = next_page_url(response.headers.get('link'))
        # The next link already embeds the query string.
        page_params = None


async def collect(
    client: GitHubClient,
    endpoint: str,
    params: Optional[Dict[str, Any]] = None,
    item_key: Optional[str] = None,
    per_page: int = 100,
) -> List[Any]:
    """Drain a paginated listing into a list."""
    items = [
        item
        async for item in paginate(
            client, endpoint, params=params, item_key=item_key, per_page=per_page
        )
    ]
    logger.debug(f'Retrieved {len(items)} items from {endpoint}')
    return items


async def paginate_graphql(
    client: GitHubClient,
    query: str,
    variables: Dict[str, Any],
    connection: Callable[[Dict[str, Any]], Optional[Dict[str, Any]]],
) -> AsyncIterator[Any]:
    """Iterate over the nodes of a GraphQL connection, cursor by cursor.

    The query must accept a ``$cursor`` variable and select
    ``nodes`` and ``pageInfo { hasNextPage endCursor }`` on the connection.
    ``hasNextPage`` decides termination, never the size of a page.

    Args:
        client: Client to issue queries with
        query: GraphQL document
        variables: Query variables (without the cursor)
        connection: Selects the connection object from the response data;
            returning None ends the iteration
    """
    cursor = None
    while True:
        data = await client.graphql(query, {**variables, 'cursor': cursor})
        conn = connection(data)
        if not conn:
            return

        for node in conn.get('nodes') or []:
            yield node

        page_info = conn.get('pageInfo') or {}
        if not page_info.get('hasNextPage'):
            return
        cursor = page_info.get('endCursor')
