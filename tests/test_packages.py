"""Tests for package migration."""

from pathlib import Path

import pytest
from unittest.mock import AsyncMock

from gh_org_migrate.migration.packages import PackageMigrationStrategy
from gh_org_migrate.migration.strategy import MigrationStatus

MAVEN_BASE = 'https://maven.pkg.github.com/dst-org/widget/com/acme/widget/1.2.0'


def maven_files(names):
    return {
        'data': {
            'organization': {
                'packages': {
                    'nodes': [
                        {
                            'version': {
                                'files': {
                                    'nodes': [{'name': n} for n in names],
                                    'pageInfo': {'hasNextPage': False, 'endCursor': None},
                                }
                            }
                        }
                    ]
                }
            }
        }
    }


async def fake_download(url, destination):
    path = Path(destination)
    path.write_bytes(f'content of {url.rsplit("/", 1)[-1]}'.encode())
    return path


class TestPackageMigrationStrategy:
    """Test package migration against a fake GitHub."""

    @pytest.fixture(autouse=True)
    def setup_org(self, source_api, target_api, tmp_path):
        self.source_api = source_api
        self.target_api = target_api
        self.staging_dir = str(tmp_path / 'packages')
        source_api.add(
            'GET',
            '/orgs/src-org/packages',
            [
                {
                    'id': 1,
                    'name': 'com.acme.widget',
                    'package_type': 'maven',
                    'repository': {'name': 'widget'},
                }
            ],
        )
        source_api.add(
            'GET',
            '/orgs/src-org/packages/maven/com.acme.widget/versions',
            [{'id': 11, 'name': '1.2.0'}, {'id': 10, 'name': '1.1.0'}],
        )
        source_api.add(
            'POST', '/graphql', maven_files(['widget-1.2.0.jar', 'widget-1.2.0.pom'])
        )
        target_api.add('GET', '/repos/dst-org/widget', {'id': 9, 'name': 'widget'})
        target_api.add(
            'GET',
            '/orgs/dst-org/packages/maven/com.acme.widget/versions',
            [{'id': 99, 'name': '1.1.0'}],
        )

    def context(self, build_context, dry_run, package_type='maven'):
        context = build_context(
            dry_run=dry_run, package_type=package_type, staging_dir=self.staging_dir
        )
        context.source_client.download = AsyncMock(side_effect=fake_download)
        return context

    @pytest.mark.asyncio
    async def test_maven_version_uploaded(self, build_context):
        """Test missing versions are copied file by file and existing ones skipped."""
        self.target_api.add('PUT', f'{MAVEN_BASE}/widget-1.2.0.jar', None, status=201)
        self.target_api.add('PUT', f'{MAVEN_BASE}/widget-1.2.0.pom', None, status=201)
        context = self.context(build_context, dry_run=False)

        report = await PackageMigrationStrategy(context).migrate()

        assert report.errors == []
        jar = self.target_api.requests('PUT', f'{MAVEN_BASE}/widget-1.2.0.jar')[0]
        pom = self.target_api.requests('PUT', f'{MAVEN_BASE}/widget-1.2.0.pom')[0]
        assert jar['headers'] == {'Content-Type': 'application/java-archive'}
        assert pom['headers'] == {'Content-Type': 'application/xml'}
        assert pom['raw_body'] == b'content of widget-1.2.0.pom'

        items = {item.name: item for item in report.items}
        assert items['com.acme.widget@1.1.0'].status == MigrationStatus.SKIPPED
        assert items['com.acme.widget@1.1.0'].message == 'already exists'
        uploaded = items['com.acme.widget@1.2.0']
        assert uploaded.status == MigrationStatus.COMPLETED
        assert uploaded.details['uploaded'] == ['widget-1.2.0.jar', 'widget-1.2.0.pom']
        assert uploaded.details['waves'] == 1

    @pytest.mark.asyncio
    async def test_oldest_version_processed_first(self, build_context):
        """Test versions are replayed oldest first."""
        self.target_api.routes.pop(
            ('GET', '/orgs/dst-org/packages/maven/com.acme.widget/versions')
        )
        context = self.context(build_context, dry_run=True)

        report = await PackageMigrationStrategy(context).migrate()

        assert [item.name for item in report.items] == [
            'com.acme.widget@1.1.0',
            'com.acme.widget@1.2.0',
        ]

    @pytest.mark.asyncio
    async def test_upload_failure_fails_version(self, build_context):
        """Test a rejected upload marks the version failed and keeps the other file."""
        self.target_api.add('PUT', f'{MAVEN_BASE}/widget-1.2.0.jar', None, status=201)
        self.target_api.add(
            'PUT', f'{MAVEN_BASE}/widget-1.2.0.pom', {'message': 'Conflict'}, status=409
        )
        context = self.context(build_context, dry_run=False)

        report = await PackageMigrationStrategy(context).migrate()

        item = next(i for i in report.items if i.name == 'com.acme.widget@1.2.0')
        assert item.status == MigrationStatus.FAILED
        assert item.details['uploaded'] == ['widget-1.2.0.jar']
        assert item.details['failed'][0]['asset'] == 'widget-1.2.0.pom'
        assert len(report.errors) == 1

    @pytest.mark.asyncio
    async def test_dry_run_makes_no_changes(self, build_context):
        """Test dry run lists assets without downloading or uploading."""
        context = self.context(build_context, dry_run=True)

        report = await PackageMigrationStrategy(context).migrate()

        assert self.target_api.mutations() == []
        context.source_client.download.assert_not_awaited()
        item = next(i for i in report.items if i.name == 'com.acme.widget@1.2.0')
        assert item.status == MigrationStatus.DRY_RUN
        assert item.details['assets'] == ['widget-1.2.0.jar', 'widget-1.2.0.pom']

    @pytest.mark.asyncio
    async def test_missing_target_repository_skips_package(self, build_context):
        """Test packages linked to an absent target repository are skipped."""
        self.target_api.routes.pop(('GET', '/repos/dst-org/widget'))
        context = self.context(build_context, dry_run=False)

        report = await PackageMigrationStrategy(context).migrate()

        assert len(report.items) == 1
        assert report.items[0].status == MigrationStatus.SKIPPED
        assert report.items[0].message == 'target repository missing'

    @pytest.mark.asyncio
    async def test_unsupported_package_type(self, build_context):
        """Test ecosystems without a transfer implementation fail per package."""
        self.source_api.routes.pop(('GET', '/orgs/src-org/packages'))
        self.source_api.add(
            'GET', '/orgs/src-org/packages', [{'name': 'Acme.Core', 'package_type': 'nuget'}]
        )
        context = self.context(build_context, dry_run=True, package_type='nuget')

        report = await PackageMigrationStrategy(context).migrate()

        assert report.count(MigrationStatus.FAILED) == 1
        assert 'unsupported package type nuget' in report.errors[0]
