"""Migration engine - builds clients and context and runs one component."""

from typing import Dict, Optional, Type

from loguru import logger

from ..api.client import GitHubClientFactory
from ..config.config import Config, ConfigurationError
from ..utils.csv_files import load_username_mappings
from .lfs import LFSMigrationStrategy
from .packages import PackageMigrationStrategy
from .secrets import SecretMigrationStrategy
from .strategy import MigrationContext, MigrationReport, MigrationStrategy
from .teams import TeamMigrationStrategy
from .variables import VariableMigrationStrategy

STRATEGIES: Dict[str, Type[MigrationStrategy]] = {
    'variables': VariableMigrationStrategy,
    'teams': TeamMigrationStrategy,
    'secrets': SecretMigrationStrategy,
    'packages': PackageMigrationStrategy,
    'lfs': LFSMigrationStrategy,
}

COMPONENTS = tuple(STRATEGIES)


class MigrationEngine:
    """Main migration engine that coordinates a component run."""

    def __init__(self, config: Config):
        """Initialize migration engine.

        Args:
            config: Migration configuration
        """
        self.config = config
        self.logger = logger.bind(component='MigrationEngine')

        self.source_client = GitHubClientFactory.create_client(config.source)
        self.target_client = GitHubClientFactory.create_client(config.target)

    def create_context(self) -> MigrationContext:
        """Build the shared context, loading the username mapping file once.

        Raises:
            ConfigurationError: If the username mapping file cannot be read
        """
        settings = self.config.migration
        try:
            mappings = load_username_mappings(settings.username_mapping_file)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f'Cannot load username mappings: {e}') from e

        return MigrationContext(
            source_client=self.source_client,
            target_client=self.target_client,
            config=self.config,
            dry_run=settings.dry_run,
            concurrency=settings.concurrency,
            username_mappings=mappings,
        )

    async def run(self, component: str, check_connectivity: bool = True) -> MigrationReport:
        """Migrate one component.

        Args:
            component: One of ``COMPONENTS``
            check_connectivity: Verify both tokens before starting

        Returns:
            The component's migration report

        Raises:
            ValueError: Unknown component
            ConfigurationError: Missing settings the component needs
            ConnectionError: A token does not authenticate
        """
        strategy_cls = STRATEGIES.get(component)
        if strategy_cls is None:
            raise ValueError(
                f'Unknown component {component!r}; expected one of: {", ".join(COMPONENTS)}'
            )
        if component == 'packages' and not self.config.migration.package_type:
            raise ConfigurationError('--package-type is required to migrate packages')

        try:
            context = self.create_context()
            if check_connectivity:
                self._test_connectivity()

            strategy = strategy_cls(context)
            return await strategy.migrate()
        finally:
            await self.source_client.close()
            await self.target_client.close()

    def validate_connectivity(self) -> Dict[str, Optional[str]]:
        """Authenticated login behind each token (None when it fails)."""
        return {
            'source': self.source_client.get_authenticated_login(),
            'target': self.target_client.get_authenticated_login(),
        }

    def _test_connectivity(self) -> None:
        """Test connectivity to both organizations.

        Raises:
            ConnectionError: If connectivity test fails
        """
        self.logger.info('Testing connectivity to source and target')

        if not self.source_client.test_connection():
            raise ConnectionError(f'Cannot authenticate against source org {self.config.source.org}')

        if not self.target_client.test_connection():
            raise ConnectionError(f'Cannot authenticate against target org {self.config.target.org}')

        self.logger.info('Connectivity tests passed')
