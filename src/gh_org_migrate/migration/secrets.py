"""Actions secrets migration.

Secret values cannot be read through the API. A dry run therefore lists the
secret names of the source organization and its repositories into a report
CSV; a live run reads plaintext values from the secrets migration CSV and
stores them at the target encrypted with the target's public key.
"""

from pathlib import Path
from typing import Any, Dict, List, Tuple

from ..api.pagination import collect
from ..models.repository import Repository
from ..models.secret import PublicKey, SecretEntry
from ..utils.batching import run_in_batches
from ..utils.crypto import seal_secret
from ..utils.csv_files import load_secrets_csv, write_secrets_report, write_secrets_template
from .strategy import MigrationReport, MigrationStatus, MigrationStrategy


class SecretMigrationStrategy(MigrationStrategy):
    """Discovers source secrets and recreates them at the target."""

    component = 'secrets'

    @property
    def settings(self):
        return self.context.config.migration

    async def run(self, report: MigrationReport) -> None:
        if self.dry_run:
            await self.discover(report)
        else:
            await self.migrate_from_file(report)

    async def discover(self, report: MigrationReport) -> None:
        """List secret names into the discovery report CSV."""
        self.logger.info(
            'Performing dry-run check for secrets across all repositories and the organization...'
        )
        rows: List[Tuple[str, str, str]] = []
        planned: List[SecretEntry] = []

        try:
            org_secrets = await collect(
                self.source, f'/orgs/{self.source.org}/actions/secrets', item_key='secrets'
            )
        except Exception as e:
            error_msg = f'Error fetching organization secrets: {e}'
            self.logger.error(error_msg)
            report.add_error(error_msg)
            org_secrets = []

        for secret in org_secrets:
            rows.append(('Organization', self.source.org, secret['name']))
            planned.append(SecretEntry(type='org', name=secret['name']))
            report.add_item(
                'secret', secret['name'], MigrationStatus.DRY_RUN, self.target.org,
                visibility=secret.get('visibility'),
            )

        repos = await self.list_source_repositories()

        async def worker(repo: Repository):
            try:
                return await collect(
                    self.source,
                    f'/repos/{self.source.org}/{repo.name}/actions/secrets',
                    item_key='secrets',
                )
            except Exception as e:
                error_msg = f'Error fetching secrets for repo {repo.name}: {e}'
                self.logger.error(error_msg)
                report.add_error(error_msg)
                return []

        results = await run_in_batches(repos, worker, self.context.concurrency)
        for repo, secrets in zip(repos, results):
            for secret in secrets:
                rows.append(('Repository', repo.name, secret['name']))
                planned.append(SecretEntry(type='repo', name=secret['name'], repo=repo.name))
                report.add_item('secret', secret['name'], MigrationStatus.DRY_RUN, repo.name)

        report_file = self.settings.secrets_report_file
        write_secrets_report(report_file, rows)
        self.logger.info(f'Dry-run check complete. Results written to {report_file}')
        self.logger.info(f'Total secrets found: {len(rows)}')
        report.details['report_file'] = report_file
        report.details['secrets_found'] = len(rows)

        secrets_file = self.settings.secrets_file
        if not Path(secrets_file).exists():
            write_secrets_template(secrets_file, planned)
            self.logger.info(f'Fill in the values in {secrets_file} before a live run')
            report.details['secrets_template'] = secrets_file

    async def migrate_from_file(self, report: MigrationReport) -> None:
        secrets_file = self.settings.secrets_file
        self.logger.info(f'Migrating secrets listed in {secrets_file}...')

        entries, row_errors = load_secrets_csv(secrets_file)
        for error in row_errors:
            self.logger.error(f'Invalid secrets row: {error}')
            report.add_error(f'Invalid secrets row: {error}')
        self.logger.info(f'Found {len(entries)} secrets to migrate.')

        async def worker(entry: SecretEntry):
            scope = entry.repo if entry.type == 'repo' else self.target.org
            try:
                await self.migrate_secret(entry, report)
            except Exception as e:
                self.record_failure(report, 'secret', entry.name, e, scope)
            finally:
                entry.value = None

        await run_in_batches(entries, worker, self.context.concurrency)

    async def public_key(self, entry: SecretEntry) -> PublicKey:
        """Fetch the current public key of the entry's target scope."""
        if entry.type == 'repo':
            endpoint = f'/repos/{self.target.org}/{entry.repo}/actions/secrets/public-key'
        else:
            endpoint = f'/orgs/{self.target.org}/actions/secrets/public-key'
        response = await self.target.get_async(endpoint)
        return PublicKey(**response.data)

    async def migrate_secret(self, entry: SecretEntry, report: MigrationReport) -> None:
        self.logger.debug(f'Processing secret: {entry.name} for {entry.scope_label}')

        if not entry.value:
            raise ValueError('no value provided in the secrets file')

        if entry.type == 'repo':
            if not await self.target_repository_exists(entry.repo):
                report.add_item(
                    'secret', entry.name, MigrationStatus.SKIPPED, entry.repo,
                    'target repository missing',
                )
                return
            payload: Dict[str, Any] = {}
            endpoint = f'/repos/{self.target.org}/{entry.repo}/actions/secrets/{entry.name}'
            scope = entry.repo
        else:
            payload = await self.org_secret_settings(entry.name)
            endpoint = f'/orgs/{self.target.org}/actions/secrets/{entry.name}'
            scope = self.target.org

        key = await self.public_key(entry)
        payload['encrypted_value'] = seal_secret(entry.value, key.key)
        payload['key_id'] = key.key_id
        entry.value = None

        await self.target.put_async(endpoint, data=payload)
        self.logger.info(f'Created/Updated secret: {entry.name} in {entry.scope_label}')
        report.add_item(
            'secret', entry.name, MigrationStatus.COMPLETED, scope,
            visibility=payload.get('visibility'),
        )

    async def org_secret_settings(self, name: str) -> Dict[str, Any]:
        """Visibility (and selected repositories) of the source org secret."""
        response = await self.source.get_async(
            f'/orgs/{self.source.org}/actions/secrets/{name}'
        )
        visibility = (response.data or {}).get('visibility') or 'private'
        settings: Dict[str, Any] = {'visibility': visibility}
        if visibility == 'selected':
            settings['selected_repository_ids'] = await self.selected_repository_ids(
                f'/orgs/{self.source.org}/actions/secrets/{name}/repositories'
            )
        return settings
