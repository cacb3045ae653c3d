"""Shared fixtures: real clients wired to an in-memory GitHub."""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from gh_org_migrate.api.client import APIResponse, GitHubClient
from gh_org_migrate.config.config import Config, GitHubInstanceConfig
from gh_org_migrate.migration.strategy import MigrationContext

MUTATING = ('POST', 'PUT', 'PATCH', 'DELETE')


class FakeGitHub:
    """Answers client requests from canned responses and records every call.

    Routes are keyed by method and the URL with the API base stripped.
    Unknown routes answer 404. When a route has several responses they are
    consumed in order and the last one repeats.
    """

    def __init__(self, base_url: str = 'https://api.github.com'):
        self.base_url = base_url
        self.routes: Dict[Tuple[str, str], List[APIResponse]] = {}
        self.calls: List[Dict[str, Any]] = []

    def add(
        self,
        method: str,
        path: str,
        data: Any = None,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ) -> 'FakeGitHub':
        self.routes.setdefault((method, path), []).append(
            APIResponse(
                status_code=status,
                data=data,
                headers=headers or {},
                success=200 <= status < 300,
            )
        )
        return self

    def key(self, url: str) -> str:
        if url.startswith(self.base_url):
            return url[len(self.base_url):]
        return url

    async def send(self, method, url, params=None, data=None, headers=None, raw_body=None):
        path = self.key(url)
        self.calls.append(
            {
                'method': method,
                'path': path,
                'params': params,
                'data': data,
                'headers': headers,
                'raw_body': raw_body,
            }
        )
        responses = self.routes.get((method, path))
        if not responses:
            return APIResponse(
                status_code=404, data={'message': 'Not Found'}, headers={}, success=False
            )
        if len(responses) > 1:
            return responses.pop(0)
        return responses[0]

    def requests(self, method: Optional[str] = None, path: Optional[str] = None):
        return [
            call
            for call in self.calls
            if (method is None or call['method'] == method)
            and (path is None or call['path'] == path)
        ]

    def mutations(self):
        return [
            call
            for call in self.calls
            if call['method'] in MUTATING and not call['path'].endswith('/graphql')
        ]


def make_config(**migration) -> Config:
    return Config(
        source=GitHubInstanceConfig(org='src-org', token='src-token'),
        target=GitHubInstanceConfig(org='dst-org', token='dst-token'),
        migration=migration,
        logging={'file': None},
    )


def make_client(config: GitHubInstanceConfig, fake: FakeGitHub) -> GitHubClient:
    client = GitHubClient(config)
    client._send = fake.send
    return client


@pytest.fixture
def source_api():
    return FakeGitHub()


@pytest.fixture
def target_api():
    return FakeGitHub()


@pytest.fixture
def build_context(source_api, target_api):
    """Factory for a migration context backed by the fake source and target."""

    def _build(dry_run: bool = True, username_mappings=None, **migration) -> MigrationContext:
        config = make_config(dry_run=dry_run, **migration)
        return MigrationContext(
            source_client=make_client(config.source, source_api),
            target_client=make_client(config.target, target_api),
            config=config,
            dry_run=dry_run,
            concurrency=config.migration.concurrency,
            username_mappings=username_mappings or {},
        )

    return _build
