"""Actions variables migration."""

from ..api.pagination import collect
from ..models.repository import Repository
from ..models.variable import OrgVariableCreate, Variable
from ..utils.batching import run_in_batches
from .strategy import MigrationReport, MigrationStatus, MigrationStrategy


class VariableMigrationStrategy(MigrationStrategy):
    """Copies organization and repository variables to the target org."""

    component = 'variables'

    async def run(self, report: MigrationReport) -> None:
        await self.migrate_org_variables(report)
        await self.migrate_repo_variables(report)

    async def migrate_org_variables(self, report: MigrationReport) -> None:
        try:
            listing = await collect(
                self.source,
                f'/orgs/{self.source.org}/actions/variables',
                item_key='variables',
            )
        except Exception as e:
            error_msg = f'Failed to list organization variables: {e}'
            self.logger.error(error_msg)
            report.add_error(error_msg)
            return

        variables = [Variable(**v) for v in listing]
        self.logger.info(f'Found {len(variables)} organization variables')

        async def worker(variable: Variable):
            try:
                await self.migrate_org_variable(variable, report)
            except Exception as e:
                self.record_failure(report, 'variable', variable.name, e, self.target.org)

        await run_in_batches(variables, worker, self.context.concurrency)

    async def migrate_org_variable(self, variable: Variable, report: MigrationReport) -> None:
        scope = self.target.org
        if await self.target.exists(f'/orgs/{scope}/actions/variables/{variable.name}'):
            self.logger.info(f'Organization variable {variable.name} already exists. Skipping...')
            report.add_item(
                'variable', variable.name, MigrationStatus.SKIPPED, scope, 'already exists'
            )
            return

        payload = OrgVariableCreate(
            name=variable.name,
            value=variable.value,
            visibility=variable.visibility or 'all',
        )
        if payload.visibility == 'selected':
            payload.selected_repository_ids = await self.selected_repository_ids(
                f'/orgs/{self.source.org}/actions/variables/{variable.name}/repositories'
            )

        if self.dry_run:
            self.logger.info(
                f'{self.prefix}Would create organization variable {variable.name} '
                f'(visibility: {payload.visibility})'
            )
            report.add_item(
                'variable', variable.name, MigrationStatus.DRY_RUN, scope,
                visibility=payload.visibility,
            )
            return

        await self.target.post_async(
            f'/orgs/{scope}/actions/variables', data=payload.model_dump(exclude_none=True)
        )
        self.logger.debug(f'Migrated organization variable {variable.name}')
        report.add_item(
            'variable', variable.name, MigrationStatus.COMPLETED, scope,
            visibility=payload.visibility,
        )

    async def migrate_repo_variables(self, report: MigrationReport) -> None:
        repos = await self.list_source_repositories()

        async def worker(repo: Repository):
            try:
                await self.migrate_variables_for_repo(repo.name, report)
            except Exception as e:
                error_msg = f'Failed to migrate variables for repo {repo.name}: {e}'
                self.logger.error(error_msg)
                report.add_error(error_msg)

        await run_in_batches(repos, worker, self.context.concurrency)

    async def migrate_variables_for_repo(self, repo_name: str, report: MigrationReport) -> None:
        listing = await collect(
            self.source,
            f'/repos/{self.source.org}/{repo_name}/actions/variables',
            item_key='variables',
        )
        if not listing:
            return

        variables = [Variable(**v) for v in listing]
        if not await self.target_repository_exists(repo_name):
            for variable in variables:
                report.add_item(
                    'variable', variable.name, MigrationStatus.SKIPPED, repo_name,
                    'target repository missing',
                )
            return

        for variable in variables:
            try:
                await self.migrate_repo_variable(repo_name, variable, report)
            except Exception as e:
                self.record_failure(report, 'variable', variable.name, e, repo_name)

    async def migrate_repo_variable(
        self, repo_name: str, variable: Variable, report: MigrationReport
    ) -> None:
        base = f'/repos/{self.target.org}/{repo_name}/actions/variables'
        if await self.target.exists(f'{base}/{variable.name}'):
            self.logger.info(
                f'Variable {variable.name} already exists in repo {repo_name}. Skipping...'
            )
            report.add_item(
                'variable', variable.name, MigrationStatus.SKIPPED, repo_name, 'already exists'
            )
            return

        if self.dry_run:
            self.logger.info(
                f'{self.prefix}Would create variable {variable.name} in repo {repo_name}'
            )
            report.add_item('variable', variable.name, MigrationStatus.DRY_RUN, repo_name)
            return

        await self.target.post_async(base, data={'name': variable.name, 'value': variable.value})
        self.logger.debug(f'Migrated variable {variable.name} for repo {repo_name}')
        report.add_item('variable', variable.name, MigrationStatus.COMPLETED, repo_name)
