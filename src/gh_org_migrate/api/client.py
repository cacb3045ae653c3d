"""GitHub API client implementation."""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiohttp
import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import GitHubInstanceConfig
from .exceptions import (
    GitHubAbuseLimitError,
    GitHubAPIError,
    GitHubAuthenticationError,
    GitHubGraphQLError,
    GitHubNotFoundError,
    GitHubRateLimitError,
)
from .rate_limiter import RateLimiter, RateLimitPolicy

API_VERSION = '2022-11-28'
USER_AGENT = 'gh-org-migrate/0.1.0'


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


class GitHubClient:
    """GitHub REST/GraphQL client bound to one organization token."""

    def __init__(
        self,
        config: GitHubInstanceConfig,
        policy: Optional[RateLimitPolicy] = None,
    ):
        """Initialize GitHub client.

        Args:
            config: Instance configuration (org, token, URLs)
            policy: Throttling policy, defaults to one retry on quota exhaustion
        """
        if not config.token:
            raise GitHubAuthenticationError('No authentication token provided')

        self.config = config
        self.base_url = config.api_url.rstrip('/')
        self.policy = policy or RateLimitPolicy(max_wait=config.max_retry_wait)
        self.rate_limiter = RateLimiter(config.rate_limit_per_second)
        self._session: Optional[aiohttp.ClientSession] = None
        self.logger = logger.bind(component='GitHubClient', org=config.org)

        logger.debug(f'Initialized GitHub client for {config.org} at {config.api_url}')

    @property
    def org(self) -> str:
        return self.config.org

    def _default_headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.config.token}',
            'Accept': 'application/vnd.github+json',
            'X-GitHub-Api-Version': API_VERSION,
            'User-Agent': USER_AGENT,
        }

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from an endpoint; absolute URLs pass through."""
        if endpoint.startswith(('http://', 'https://')):
            return endpoint
        return f'{self.base_url}/{endpoint.lstrip("/")}'

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(
                headers=self._default_headers(), timeout=timeout
            )
        return self._session

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        raw_body: Optional[bytes] = None,
    ) -> APIResponse:
        """Perform one HTTP exchange without any status handling."""
        session = await self._get_session()
        await self.rate_limiter.acquire()

        kwargs: Dict[str, Any] = {'params': params, 'headers': headers}
        if raw_body is not None:
            kwargs['data'] = raw_body
        elif data is not None:
            kwargs['json'] = data
        if self.config.proxy:
            kwargs['proxy'] = self.config.proxy

        try:
            async with session.request(method, url, **kwargs) as response:
                response_headers = {k.lower(): v for k, v in response.headers.items()}
                text = await response.text()
        except aiohttp.ClientError as e:
            self.logger.error(f'Network error during {method} {url}: {e}')
            raise GitHubAPIError(f'Network error: {e}')
        except asyncio.TimeoutError:
            self.logger.error(f'Timed out during {method} {url}')
            raise GitHubAPIError(f'Request timed out: {method} {url}')

        if text:
            try:
                response_data = json.loads(text)
            except ValueError:
                response_data = text
        else:
            response_data = None

        return APIResponse(
            status_code=response.status,
            data=response_data,
            headers=response_headers,
            success=200 <= response.status < 300,
        )

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        raw_body: Optional[bytes] = None,
    ) -> APIResponse:
        """Make an API request, applying the rate-limit policy.

        Args:
            method: HTTP method
            endpoint: API endpoint or absolute URL
            params: Query parameters
            data: JSON request body
            headers: Extra headers for this request
            raw_body: Raw request body (takes precedence over ``data``)

        Returns:
            API response for a 2xx status

        Raises:
            GitHubRateLimitError: Quota still exhausted after the retry
            GitHubAbuseLimitError: Abuse detection triggered
            GitHubNotFoundError: 404
            GitHubAuthenticationError: 401
            GitHubAPIError: Any other non-2xx status or network failure
        """
        url = self._build_url(endpoint)
        retry_count = 0

        while True:
            response = await self._send(
                method, url, params=params, data=data, headers=headers, raw_body=raw_body
            )
            delay = self._throttle_delay(method, url, response, retry_count)
            if delay is not None:
                retry_count += 1
                await asyncio.sleep(delay)
                continue

            return self._handle_response(method, url, response)

    def _throttle_delay(
        self, method: str, url: str, response: APIResponse, retry_count: int
    ) -> Optional[float]:
        """Apply the rate-limit policy to one response.

        Returns:
            Seconds to wait before retrying, or None if not throttled

        Raises:
            GitHubAbuseLimitError: Abuse detection triggered
            GitHubRateLimitError: Quota exhausted and no retry left
        """
        status = response.status_code

        if self.policy.is_abuse_limit(status, response.data):
            self.policy.on_abuse_limit(method, url)
            raise GitHubAbuseLimitError(
                f'Abuse detection triggered for {method} {url}',
                status_code=status,
                response_data=response.data,
            )

        if not self.policy.is_quota_exhausted(status, response.headers):
            return None

        retry_after = self.policy.retry_after(response.headers)
        if self.policy.on_rate_limit(retry_after, method, url, retry_count):
            return retry_after
        raise GitHubRateLimitError(
            f'Rate limit exceeded for {method} {url}. '
            f'Retry after {retry_after:.0f} seconds',
            retry_after=retry_after,
            status_code=status,
            response_data=response.data,
        )

    def _handle_response(self, method: str, url: str, response: APIResponse) -> APIResponse:
        status = response.status_code

        if status == 401:
            raise GitHubAuthenticationError(
                'Authentication failed', status_code=status, response_data=response.data
            )

        if status == 404:
            raise GitHubNotFoundError(
                f'Resource not found: {method} {url}',
                status_code=status,
                response_data=response.data,
            )

        if status >= 400:
            if isinstance(response.data, dict):
                message = response.data.get('message', f'HTTP {status}')
            else:
                message = f'HTTP {status}: {response.data}'
            raise GitHubAPIError(
                f'API request failed: {message}',
                status_code=status,
                response_data=response.data,
            )

        return response

    async def get_async(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make GET request."""
        return await self.request('GET', endpoint, params=params, **kwargs)

    async def post_async(
        self, endpoint: str, data: Optional[Any] = None, **kwargs
    ) -> APIResponse:
        """Make POST request."""
        return await self.request('POST', endpoint, data=data, **kwargs)

    async def put_async(
        self, endpoint: str, data: Optional[Any] = None, **kwargs
    ) -> APIResponse:
        """Make PUT request."""
        return await self.request('PUT', endpoint, data=data, **kwargs)

    async def patch_async(
        self, endpoint: str, data: Optional[Any] = None, **kwargs
    ) -> APIResponse:
        """Make PATCH request."""
        return await self.request('PATCH', endpoint, data=data, **kwargs)

    async def delete_async(self, endpoint: str, **kwargs) -> APIResponse:
        """Make DELETE request."""
        return await self.request('DELETE', endpoint, **kwargs)

    async def exists(self, endpoint: str) -> bool:
        """Probe whether a resource exists.

        A 404 means "not found" and is not an error.
        """
        try:
            await self.get_async(endpoint)
            return True
        except GitHubNotFoundError:
            self.logger.debug(f'Not found: {endpoint}')
            return False

    async def graphql(
        self, query: str, variables: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Run a GraphQL query and return its ``data`` member."""
        response = await self.request(
            'POST',
            self.config.graphql_url,
            data={'query': query, 'variables': variables or {}},
        )
        body = response.data or {}
        if not isinstance(body, dict):
            raise GitHubGraphQLError(f'Unexpected GraphQL response: {body}')

        if body.get('errors'):
            messages = '; '.join(e.get('message', str(e)) for e in body['errors'])
            raise GitHubGraphQLError(
                f'GraphQL query failed: {messages}',
                errors=body['errors'],
                response_data=body,
            )
        return body.get('data') or {}

    async def download(self, url: str, destination: Union[str, Path]) -> Path:
        """Stream a file from ``url`` to ``destination``.

        Quota exhaustion is retried under the same policy as ``request``.

        Raises:
            GitHubRateLimitError: Quota still exhausted after the retry
            GitHubAbuseLimitError: Abuse detection triggered
            GitHubNotFoundError: 404
            GitHubAPIError: Any other non-2xx status or network failure
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        retry_count = 0

        while True:
            response = await self._stream_to_file(url, destination)
            delay = self._throttle_delay('GET', url, response, retry_count)
            if delay is not None:
                retry_count += 1
                await asyncio.sleep(delay)
                continue
            break

        if not response.success:
            status = response.status_code
            message = f'HTTP {status}'
            if isinstance(response.data, dict) and response.data.get('message'):
                message = f'{message} {response.data["message"]}'
            error_cls = GitHubNotFoundError if status == 404 else GitHubAPIError
            raise error_cls(
                f'Failed to download {url}: {message}',
                status_code=status,
                response_data=response.data,
            )
        return destination

    async def _stream_to_file(self, url: str, destination: Path) -> APIResponse:
        """Perform one download attempt; the body is only written on 2xx."""
        session = await self._get_session()
        await self.rate_limiter.acquire()

        kwargs: Dict[str, Any] = {}
        if self.config.proxy:
            kwargs['proxy'] = self.config.proxy

        self.logger.debug(f'Downloading {url}')
        try:
            async with session.get(url, **kwargs) as response:
                response_headers = {k.lower(): v for k, v in response.headers.items()}
                if response.status >= 400:
                    text = await response.text()
                    try:
                        response_data = json.loads(text) if text else None
                    except ValueError:
                        response_data = text
                    return APIResponse(
                        status_code=response.status,
                        data=response_data,
                        headers=response_headers,
                        success=False,
                    )
                with open(destination, 'wb') as f:
                    async for chunk in response.content.iter_chunked(64 * 1024):
                        await asyncio.to_thread(f.write, chunk)
        except aiohttp.ClientError as e:
            raise GitHubAPIError(f'Network error while downloading {url}: {e}')
        except asyncio.TimeoutError:
            raise GitHubAPIError(f'Download timed out: {url}')

        return APIResponse(
            status_code=response.status,
            data=None,
            headers=response_headers,
            success=True,
        )

    def test_connection(self) -> bool:
        """Check synchronously that the token authenticates.

        Returns:
            True if connection successful, False otherwise
        """
        return self.get_authenticated_login() is not None

    def get_authenticated_login(self) -> Optional[str]:
        """Return the login behind the token, or None if unavailable."""
        proxies = {'https': self.config.proxy} if self.config.proxy else None
        try:
            with requests.Session() as session:
                session.headers.update(self._default_headers())
                response = session.get(
                    self._build_url('/user'),
                    timeout=self.config.timeout,
                    proxies=proxies,
                )
            if response.status_code != 200:
                logger.error(
                    f'Connection test for {self.org} failed: HTTP {response.status_code}'
                )
                return None
            return response.json().get('login')
        except (requests.RequestException, ValueError) as e:
            logger.error(f'Connection test for {self.org} failed: {e}')
            return None

    async def close(self) -> None:
        """Close the client session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        logger.debug(f'GitHub client session for {self.org} closed')

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class GitHubClientFactory:
    """Factory for creating GitHub API clients."""

    @staticmethod
    def create_client(config: GitHubInstanceConfig) -> GitHubClient:
        """Create GitHub client from configuration.

        Raises:
            GitHubAuthenticationError: If no token is configured
        """
        if not config.token:
            raise GitHubAuthenticationError('A token must be provided')

        return GitHubClient(config)
