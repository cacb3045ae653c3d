"""Tests for Actions variables migration."""

import pytest

from gh_org_migrate.migration.strategy import MigrationStatus
from gh_org_migrate.migration.variables import VariableMigrationStrategy


class TestVariableMigrationStrategy:
    """Test variables migration against a fake GitHub."""

    @pytest.fixture(autouse=True)
    def setup_org(self, source_api, target_api):
        self.source_api = source_api
        self.target_api = target_api
        source_api.add(
            'GET',
            '/orgs/src-org/actions/variables',
            {
                'total_count': 3,
                'variables': [
                    {'name': 'REGION', 'value': 'eu-west-1', 'visibility': 'all'},
                    {'name': 'DEPLOY_ENV', 'value': 'prod', 'visibility': 'selected'},
                    {'name': 'EXISTING', 'value': 'x', 'visibility': 'private'},
                ],
            },
        )
        source_api.add(
            'GET',
            '/orgs/src-org/actions/variables/DEPLOY_ENV/repositories',
            {'total_count': 2, 'repositories': [{'name': 'api'}, {'name': 'legacy'}]},
        )
        source_api.add('GET', '/orgs/src-org/repos', [{'id': 1, 'name': 'api'}, {'id': 2, 'name': 'legacy'}])
        source_api.add(
            'GET',
            '/repos/src-org/api/actions/variables',
            {'total_count': 1, 'variables': [{'name': 'PORT', 'value': '8080'}]},
        )
        source_api.add(
            'GET',
            '/repos/src-org/legacy/actions/variables',
            {'total_count': 1, 'variables': [{'name': 'OLD', 'value': '1'}]},
        )
        target_api.add('GET', '/orgs/dst-org/actions/variables/EXISTING', {'name': 'EXISTING'})
        target_api.add('GET', '/repos/dst-org/api', {'id': 42, 'name': 'api'})

    @pytest.mark.asyncio
    async def test_live_run(self, build_context):
        """Test variables are created with visibility and mapped repository ids."""
        self.target_api.add('POST', '/orgs/dst-org/actions/variables', None, status=201)
        self.target_api.add('POST', '/repos/dst-org/api/actions/variables', None, status=201)
        context = build_context(dry_run=False)

        report = await VariableMigrationStrategy(context).migrate()

        assert report.errors == []
        created = {
            call['data']['name']: call['data']
            for call in self.target_api.requests('POST', '/orgs/dst-org/actions/variables')
        }
        assert set(created) == {'REGION', 'DEPLOY_ENV'}
        assert created['REGION'] == {'name': 'REGION', 'value': 'eu-west-1', 'visibility': 'all'}
        assert created['DEPLOY_ENV']['visibility'] == 'selected'
        assert created['DEPLOY_ENV']['selected_repository_ids'] == [42]

        repo_call = self.target_api.requests('POST', '/repos/dst-org/api/actions/variables')[0]
        assert repo_call['data'] == {'name': 'PORT', 'value': '8080'}

        statuses = {(item.name, item.scope): item.status for item in report.items}
        assert statuses[('EXISTING', 'dst-org')] == MigrationStatus.SKIPPED
        assert statuses[('OLD', 'legacy')] == MigrationStatus.SKIPPED
        assert statuses[('PORT', 'api')] == MigrationStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_dry_run_makes_no_changes(self, build_context):
        """Test dry run reports intended creations only."""
        context = build_context(dry_run=True)

        report = await VariableMigrationStrategy(context).migrate()

        assert self.target_api.mutations() == []
        assert report.count(MigrationStatus.DRY_RUN) == 3
        assert report.dry_run is True

    @pytest.mark.asyncio
    async def test_create_failure_is_recorded(self, build_context):
        """Test a rejected creation fails only that variable."""
        self.target_api.add(
            'POST', '/orgs/dst-org/actions/variables', {'message': 'Validation Failed'}, status=422
        )
        self.target_api.add('POST', '/repos/dst-org/api/actions/variables', None, status=201)
        context = build_context(dry_run=False)

        report = await VariableMigrationStrategy(context).migrate()

        assert report.count(MigrationStatus.FAILED) == 2
        assert report.count(MigrationStatus.COMPLETED) == 1
        assert all('Validation Failed' in error for error in report.errors)

    @pytest.mark.asyncio
    async def test_listing_failure_is_reported(self, build_context):
        """Test a failed org listing is an error and repositories still run."""
        self.source_api.routes.pop(('GET', '/orgs/src-org/actions/variables'))
        context = build_context(dry_run=True)

        report = await VariableMigrationStrategy(context).migrate()

        assert len(report.errors) == 1
        assert 'organization variables' in report.errors[0]
        assert ('PORT', 'api') in {(item.name, item.scope) for item in report.items}
