"""Tests for REST and GraphQL pagination."""

import pytest

from gh_org_migrate.api.client import GitHubClient
from gh_org_migrate.api.pagination import (
    collect,
    next_page_url,
    paginate_graphql,
)
from gh_org_migrate.config.config import GitHubInstanceConfig

from conftest import FakeGitHub


class TestNextPageUrl:
    """Test Link header parsing."""

    def test_next_link(self):
        """Test the next relation is extracted."""
        header = (
            '<https://api.github.com/orgs/acme/repos?page=2>; rel="next", '
            '<https://api.github.com/orgs/acme/repos?page=5>; rel="last"'
        )
        assert next_page_url(header) == 'https://api.github.com/orgs/acme/repos?page=2'

    def test_last_page(self):
        """Test no next relation on the last page."""
        header = '<https://api.github.com/orgs/acme/repos?page=1>; rel="prev"'
        assert next_page_url(header) is None
        assert next_page_url(None) is None


class TestPaginate:
    """Test paginated listings."""

    def setup_method(self):
        """Set up test fixtures."""
        self.fake = FakeGitHub()
        self.client = GitHubClient(GitHubInstanceConfig(org='acme', token='t'))
        self.client._send = self.fake.send

    @pytest.mark.asyncio
    async def test_follows_link_header(self):
        """Test every page is fetched in order."""
        self.fake.add(
            'GET',
            '/orgs/acme/repos',
            [{'name': 'a'}, {'name': 'b'}],
            headers={'link': '<https://api.github.com/orgs/acme/repos?page=2>; rel="next"'},
        )
        self.fake.add('GET', '/orgs/acme/repos?page=2', [{'name': 'c'}])

        items = await collect(self.client, '/orgs/acme/repos')

        assert [item['name'] for item in items] == ['a', 'b', 'c']
        first, second = self.fake.calls
        assert first['params'] == {'per_page': 100}
        assert second['params'] is None

    @pytest.mark.asyncio
    async def test_item_key_envelope(self):
        """Test envelope listings are unwrapped."""
        self.fake.add(
            'GET',
            '/orgs/acme/actions/secrets',
            {'total_count': 2, 'secrets': [{'name': 'A'}, {'name': 'B'}]},
        )

        items = await collect(self.client, '/orgs/acme/actions/secrets', item_key='secrets')

        assert items == [{'name': 'A'}, {'name': 'B'}]

    @pytest.mark.asyncio
    async def test_empty_listing(self):
        """Test an empty page yields nothing."""
        self.fake.add('GET', '/orgs/acme/teams', [])

        assert await collect(self.client, '/orgs/acme/teams') == []

    @pytest.mark.asyncio
    async def test_graphql_cursor_pagination(self):
        """Test hasNextPage drives GraphQL paging."""
        self.fake.add(
            'POST',
            '/graphql',
            {
                'data': {
                    'items': {
                        'nodes': [{'n': 1}, {'n': 2}],
                        'pageInfo': {'hasNextPage': True, 'endCursor': 'c1'},
                    }
                }
            },
        )
        self.fake.add(
            'POST',
            '/graphql',
            {
                'data': {
                    'items': {
                        'nodes': [{'n': 3}],
                        'pageInfo': {'hasNextPage': False, 'endCursor': 'c2'},
                    }
                }
            },
        )

        nodes = [
            node
            async for node in paginate_graphql(
                self.client, 'query', {'org': 'acme'}, lambda data: data.get('items')
            )
        ]

        assert [node['n'] for node in nodes] == [1, 2, 3]
        cursors = [call['data']['variables']['cursor'] for call in self.fake.calls]
        assert cursors == [None, 'c1']
        assert self.fake.calls[0]['data']['variables']['org'] == 'acme'

    @pytest.mark.asyncio
    async def test_graphql_missing_connection(self):
        """Test a missing connection ends iteration."""
        self.fake.add('POST', '/graphql', {'data': {'items': None}})

        nodes = [
            node
            async for node in paginate_graphql(
                self.client, 'query', {}, lambda data: data.get('items')
            )
        ]

        assert nodes == []
