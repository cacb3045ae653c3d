"""Package ecosystems and asset transfer."""

from .ecosystems import (
    PackageEcosystem,
    MavenEcosystem,
    NpmEcosystem,
    ContainerEcosystem,
    get_ecosystem,
    content_type_for,
)
from .staging import StagingArea
from .transfer import TransferEngine

__all__ = [
    'PackageEcosystem',
    'MavenEcosystem',
    'NpmEcosystem',
    'ContainerEcosystem',
    'get_ecosystem',
    'content_type_for',
    'StagingArea',
    'TransferEngine',
]
