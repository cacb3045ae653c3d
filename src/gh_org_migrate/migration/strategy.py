"""Migration driver base class, shared context and run report."""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ..api.client import GitHubClient
from ..api.exceptions import GitHubAPIError
from ..api.pagination import collect
from ..config.config import Config
from ..models.repository import Repository


class MigrationStatus(str, Enum):
    """Outcome of one migrated item."""

    COMPLETED = 'completed'
    DRY_RUN = 'dry_run'
    SKIPPED = 'skipped'
    FAILED = 'failed'


class MigrationItem(BaseModel):
    """Outcome of one item (variable, secret, package version, team, repo)."""

    kind: str = Field(..., description='Item type')
    name: str = Field(..., description='Item identifier')
    status: MigrationStatus = Field(..., description='Outcome')
    scope: Optional[str] = Field(default=None, description='Organization or repository')
    message: Optional[str] = Field(default=None, description='Reason or error')
    details: Dict[str, Any] = Field(default_factory=dict, description='Extra data')


class MigrationReport(BaseModel):
    """Aggregated result of one component run."""

    component: str = Field(..., description='Migrated component')
    dry_run: bool = Field(..., description='Run made no destination changes')
    source_org: str = Field(..., description='Source organization')
    target_org: str = Field(..., description='Target organization')
    started_at: datetime = Field(default_factory=datetime.now, description='Start time')
    completed_at: Optional[datetime] = Field(default=None, description='End time')
    items: List[MigrationItem] = Field(default_factory=list, description='Item outcomes')
    errors: List[str] = Field(default_factory=list, description='Error messages')
    details: Dict[str, Any] = Field(default_factory=dict, description='Component data')

    def add_item(
        self,
        kind: str,
        name: str,
        status: MigrationStatus,
        scope: Optional[str] = None,
        message: Optional[str] = None,
        **details,
    ) -> MigrationItem:
        item = MigrationItem(
            kind=kind, name=name, status=status, scope=scope, message=message, details=details
        )
        self.items.append(item)
        return item

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def count(self, status: MigrationStatus) -> int:
        return sum(1 for item in self.items if item.status == status)

    @property
    def summary(self) -> Dict[str, int]:
        return {status.value: self.count(status) for status in MigrationStatus}

    def to_json(self) -> str:
        data = self.model_dump(mode='json')
        data['summary'] = self.summary
        return json.dumps(data, indent=2)


class MigrationContext(BaseModel):
    """Clients, settings and per-run caches shared by a driver."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    source_client: GitHubClient = Field(..., description='Source GitHub client')
    target_client: GitHubClient = Field(..., description='Target GitHub client')
    config: Config = Field(..., description='Run configuration')

    dry_run: bool = Field(default=True, description='Perform dry run without changes')
    concurrency: int = Field(default=5, description='Batch size for concurrent work')
    username_mappings: Dict[str, str] = Field(
        default_factory=dict, description='Source login to target login'
    )

    # Per-run caches
    source_repositories: Optional[List[Repository]] = Field(
        default=None, description='Source repository listing'
    )
    target_repositories: Dict[str, Optional[int]] = Field(
        default_factory=dict, description='Probed target repos (name to id, None if missing)'
    )

    def target_login(self, source_login: str) -> str:
        return self.username_mappings.get(source_login, source_login)


class MigrationStrategy(ABC):
    """Abstract base class for per-component migration drivers."""

    component: str = ''

    def __init__(self, context: MigrationContext):
        """Initialize migration strategy.

        Args:
            context: Migration context with clients and settings
        """
        self.context = context
        self.logger = logger.bind(component=self.__class__.__name__)

    @property
    def source(self) -> GitHubClient:
        return self.context.source_client

    @property
    def target(self) -> GitHubClient:
        return self.context.target_client

    @property
    def dry_run(self) -> bool:
        return self.context.dry_run

    @property
    def prefix(self) -> str:
        return '[Dry run] ' if self.dry_run else ''

    def create_report(self) -> MigrationReport:
        return MigrationReport(
            component=self.component,
            dry_run=self.dry_run,
            source_org=self.source.org,
            target_org=self.target.org,
        )

    async def migrate(self) -> MigrationReport:
        """Run the component and return its report.

        Errors that abort the whole component are logged and recorded in the
        report instead of being raised.
        """
        report = self.create_report()
        self.logger.info(
            f'Starting {self.component} migration from {self.source.org} to '
            f'{self.target.org} (dry run: {self.dry_run})'
        )

        try:
            await self.run(report)
        except Exception as e:
            error_msg = f'Error migrating {self.component}: {e}'
            self.logger.error(error_msg)
            report.add_error(error_msg)

        report.completed_at = datetime.now()
        self.logger.info(
            f'{self.component.capitalize()} migration finished: {report.summary}, '
            f'{len(report.errors)} errors'
        )
        return report

    @abstractmethod
    async def run(self, report: MigrationReport) -> None:
        """Enumerate and migrate every item of the component."""
        pass

    def record_failure(
        self,
        report: MigrationReport,
        kind: str,
        name: str,
        error: Any,
        scope: Optional[str] = None,
    ) -> None:
        """Log and record an item-level failure."""
        where = f' in {scope}' if scope else ''
        message = f'Failed to migrate {kind} {name}{where}: {error}'
        self.logger.error(message)
        report.add_error(message)
        report.add_item(kind, name, MigrationStatus.FAILED, scope=scope, message=str(error))

    async def list_source_repositories(self) -> List[Repository]:
        """Full listing of the source organization's repositories (cached)."""
        if self.context.source_repositories is None:
            repos = await collect(self.source, f'/orgs/{self.source.org}/repos')
            self.context.source_repositories = [Repository(**repo) for repo in repos]
            self.logger.info(
                f'Found {len(self.context.source_repositories)} repositories in '
                f'organization: {self.source.org}'
            )
        return self.context.source_repositories

    async def target_repository_id(self, name: str) -> Optional[int]:
        """ID of a target repository, or None if it does not exist.

        Each name is probed at most once per run.
        """
        cache = self.context.target_repositories
        if name not in cache:
            try:
                response = await self.target.get_async(f'/repos/{self.target.org}/{name}')
                cache[name] = (response.data or {}).get('id', 0)
            except GitHubAPIError as e:
                if e.status_code != 404:
                    raise
                self.logger.debug(f'Repository {name} not found in {self.target.org}')
                cache[name] = None
        return cache[name]

    async def target_repository_exists(self, name: str) -> bool:
        exists = await self.target_repository_id(name) is not None
        if not exists:
            self.logger.warning(
                f'Repository {name} not found in target organization. Skipping...'
            )
        return exists

    async def selected_repository_ids(self, endpoint: str) -> List[int]:
        """Map a source ``.../repositories`` listing onto target repository IDs.

        Repositories missing at the target are left out with a warning.
        """
        repos = await collect(self.source, endpoint, item_key='repositories')
        ids = []
        for repo in repos:
            repo_id = await self.target_repository_id(repo['name'])
            if repo_id is None:
                self.logger.warning(
                    f'Selected repository {repo["name"]} does not exist in '
                    f'{self.target.org}; leaving it out'
                )
                continue
            ids.append(repo_id)
        return ids
