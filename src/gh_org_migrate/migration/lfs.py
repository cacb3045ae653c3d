"""Git LFS object migration."""

from ..git.lfs import LFSHandler
from ..models.repository import Repository
from ..tools.process import ExternalTool
from ..utils.batching import run_in_batches
from .strategy import MigrationReport, MigrationStatus, MigrationStrategy


class LFSMigrationStrategy(MigrationStrategy):
    """Pushes the LFS objects of LFS-enabled repositories to the target."""

    component = 'lfs'

    def create_handler(self) -> LFSHandler:
        settings = self.context.config.migration
        tool = ExternalTool(
            timeout=settings.tool_timeout,
            redact=[self.source.config.token, self.target.config.token],
        )
        return LFSHandler(
            self.source,
            self.target,
            tool,
            max_depth=settings.lfs_max_depth,
            max_attempts=settings.lfs_max_attempts,
            retry_delay=settings.lfs_retry_delay,
        )

    async def run(self, report: MigrationReport) -> None:
        handler = self.create_handler()
        repos = await self.list_source_repositories()
        self.logger.info(f'Checking all repositories in {self.source.org} for LFS usage...')

        async def check(repo: Repository):
            return await handler.uses_lfs(repo.name)

        results = await run_in_batches(repos, check, self.context.concurrency)
        lfs_repos = []
        report.details['repositories'] = []
        for repo, result in zip(repos, results):
            if isinstance(result, Exception):
                error_msg = f'Error checking LFS usage for {repo.name}: {result}'
                self.logger.error(error_msg)
                report.add_error(error_msg)
                continue
            self.logger.debug(f'Repository {repo.name} uses LFS: {result}')
            report.details['repositories'].append({'name': repo.name, 'uses_lfs': result})
            if result:
                lfs_repos.append(repo.name)

        self.logger.info(f'{len(lfs_repos)} repositories use LFS')
        if lfs_repos and not self.dry_run and not await handler.check_lfs_availability():
            raise RuntimeError('git lfs is not available on this machine')

        for repo_name in lfs_repos:
            if not await self.target_repository_exists(repo_name):
                report.add_item(
                    'lfs', repo_name, MigrationStatus.SKIPPED, repo_name,
                    'target repository missing',
                )
                continue

            if self.dry_run:
                self.logger.info(
                    f'{self.prefix}Would migrate LFS objects for repository: {repo_name}'
                )
                report.add_item('lfs', repo_name, MigrationStatus.DRY_RUN, repo_name)
                continue

            result = await handler.migrate_lfs_objects(repo_name)
            if result.success:
                report.add_item('lfs', repo_name, MigrationStatus.COMPLETED, repo_name)
            else:
                self.record_failure(report, 'lfs', repo_name, result.error, repo_name)
