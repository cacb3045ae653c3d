"""Migration engine and per-component strategies."""

from .strategy import (
    MigrationStrategy,
    MigrationContext,
    MigrationReport,
    MigrationItem,
    MigrationStatus,
)
from .variables import VariableMigrationStrategy
from .secrets import SecretMigrationStrategy
from .packages import PackageMigrationStrategy
from .teams import TeamMigrationStrategy
from .lfs import LFSMigrationStrategy
from .engine import MigrationEngine, COMPONENTS

__all__ = [
    'MigrationStrategy',
    'MigrationContext',
    'MigrationReport',
    'MigrationItem',
    'MigrationStatus',
    'VariableMigrationStrategy',
    'SecretMigrationStrategy',
    'PackageMigrationStrategy',
    'TeamMigrationStrategy',
    'LFSMigrationStrategy',
    'MigrationEngine',
    'COMPONENTS',
]
