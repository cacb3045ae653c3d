"""Package migration."""

from typing import List
from urllib.parse import quote

from ..api.exceptions import GitHubNotFoundError
from ..api.pagination import collect
from ..models.package import Package, PackageVersion
from ..packages.ecosystems import PackageEcosystem, get_ecosystem
from ..packages.staging import StagingArea
from ..packages.transfer import TransferEngine
from ..tools.process import ExternalTool
from .strategy import MigrationReport, MigrationStatus, MigrationStrategy


class PackageMigrationStrategy(MigrationStrategy):
    """Copies every version of every package of one ecosystem."""

    component = 'packages'

    async def run(self, report: MigrationReport) -> None:
        settings = self.context.config.migration
        package_type = settings.package_type
        if not package_type:
            raise ValueError('A package type is required to migrate packages')
        report.details['package_type'] = package_type

        staging = StagingArea(settings.staging_dir)
        if not self.dry_run:
            staging.reset()

        tool = ExternalTool(
            timeout=settings.tool_timeout,
            redact=[self.source.config.token, self.target.config.token],
        )
        ecosystem = get_ecosystem(package_type, self.source, self.target, staging, tool)

        packages = await self.list_packages(package_type)
        self.logger.info(
            f'Found {len(packages)} {package_type} packages in organization: {self.source.org}'
        )

        if ecosystem is None:
            for package in packages:
                self.logger.warning(f'Unsupported package type: {package_type}')
                self.record_failure(
                    report, 'package', package.name,
                    f'unsupported package type {package_type}',
                )
            return

        engine = TransferEngine(ecosystem, staging, self.context.concurrency)
        for package in packages:
            try:
                await self.migrate_package(package, ecosystem, engine, report)
            except Exception as e:
                self.record_failure(report, 'package', package.name, e)

    async def list_packages(self, package_type: str) -> List[Package]:
        listing = await collect(
            self.source,
            f'/orgs/{self.source.org}/packages',
            params={'package_type': package_type},
        )
        return [Package(**p) for p in listing]

    def versions_endpoint(self, org: str, package: Package) -> str:
        return (
            f'/orgs/{org}/packages/{package.package_type}/'
            f'{quote(package.name, safe="")}/versions'
        )

    async def list_versions(self, org_client, package: Package) -> List[PackageVersion]:
        listing = await collect(org_client, self.versions_endpoint(org_client.org, package))
        return [PackageVersion(**v) for v in listing]

    async def existing_target_versions(self, package: Package) -> List[PackageVersion]:
        try:
            return await self.list_versions(self.target, package)
        except GitHubNotFoundError:
            return []

    async def migrate_package(
        self,
        package: Package,
        ecosystem: PackageEcosystem,
        engine: TransferEngine,
        report: MigrationReport,
    ) -> None:
        self.logger.info(f'Processing package: {package.name} ({package.package_type})')

        repo_name = package.repository_name
        if repo_name and not await self.target_repository_exists(repo_name):
            report.add_item(
                'package', package.name, MigrationStatus.SKIPPED, repo_name,
                'target repository missing',
            )
            return

        versions = await self.list_versions(self.source, package)
        existing = await self.existing_target_versions(package)
        self.logger.info(f'Found {len(versions)} versions of the package {package.name}')

        # Oldest first, so the target's latest matches the source's latest.
        for version in reversed(versions):
            try:
                await self.migrate_version(package, version, existing, ecosystem, engine, report)
            except Exception as e:
                self.record_failure(
                    report, 'package_version', f'{package.name}@{version.name}', e, repo_name
                )

    async def migrate_version(
        self,
        package: Package,
        version: PackageVersion,
        existing: List[PackageVersion],
        ecosystem: PackageEcosystem,
        engine: TransferEngine,
        report: MigrationReport,
    ) -> None:
        item_name = f'{package.name}@{version.name}'
        scope = package.repository_name

        if ecosystem.is_published(version, existing):
            self.logger.info(
                f'Version {version.name} of {package.name} already exists in target. Skipping...'
            )
            report.add_item(
                'package_version', item_name, MigrationStatus.SKIPPED, scope, 'already exists'
            )
            return

        assets = await ecosystem.resolve_assets(package, version)
        if not assets:
            report.add_item(
                'package_version', item_name, MigrationStatus.SKIPPED, scope, 'no assets found'
            )
            return

        if self.dry_run:
            self.logger.info(
                f'{self.prefix}Would download {len(assets)} files for {package.name} '
                f'version {version.name} and upload them to {self.target.org}'
            )
            report.add_item(
                'package_version', item_name, MigrationStatus.DRY_RUN, scope, assets=assets
            )
            return

        self.logger.info(f'Migrating version {version.name} of package {package.name}')
        outcome = await engine.transfer(package, version, assets)
        for failure in outcome.failed:
            report.add_error(
                f'Failed to {failure.stage} {failure.asset} of {item_name}: {failure.error}'
            )

        status = MigrationStatus.COMPLETED if outcome.success else MigrationStatus.FAILED
        report.add_item(
            'package_version',
            item_name,
            status,
            scope,
            uploaded=outcome.uploaded,
            failed=[failure.model_dump() for failure in outcome.failed],
            waves=outcome.waves,
        )
