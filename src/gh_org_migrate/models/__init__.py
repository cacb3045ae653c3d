"""Data models for GitHub entities."""

from .team import (
    Team,
    TeamParent,
    TeamMember,
    TeamRepository,
    TeamCreate,
    TeamRecord,
    TeamState,
    IdpGroup,
)
from .package import Package, PackageVersion, TransferOutcome, AssetFailure
from .secret import SecretEntry, PublicKey
from .variable import Variable, OrgVariableCreate
from .repository import Repository

__all__ = [
    'Team',
    'TeamParent',
    'TeamMember',
    'TeamRepository',
    'TeamCreate',
    'TeamRecord',
    'TeamState',
    'IdpGroup',
    'Package',
    'PackageVersion',
    'TransferOutcome',
    'AssetFailure',
    'SecretEntry',
    'PublicKey',
    'Variable',
    'OrgVariableCreate',
    'Repository',
]
