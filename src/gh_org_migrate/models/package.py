"""Package entity models."""

from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field


class PackageRepository(BaseModel):
    """Repository a package is linked to."""

    name: str = Field(..., description='Repository name')


class Package(BaseModel):
    """Package as returned by the packages API."""

    id: Optional[int] = Field(default=None, description='Package ID')
    name: str = Field(..., description='Package name')
    package_type: str = Field(..., description='Ecosystem (maven, npm, container, ...)')
    visibility: Optional[str] = Field(default=None, description='Package visibility')
    repository: Optional[PackageRepository] = Field(
        default=None, description='Linked repository'
    )

    @property
    def repository_name(self) -> Optional[str]:
        return self.repository.name if self.repository else None


class PackageVersion(BaseModel):
    """One published version of a package."""

    id: Optional[int] = Field(default=None, description='Version ID')
    name: str = Field(..., description='Version name (or digest for containers)')
    metadata: Dict[str, Any] = Field(default_factory=dict, description='Version metadata')

    @property
    def container_tags(self) -> List[str]:
        container = (self.metadata or {}).get('container') or {}
        return list(container.get('tags') or [])


class AssetFailure(BaseModel):
    """A single asset that failed to download or upload."""

    asset: str = Field(..., description='Asset identifier')
    stage: str = Field(..., description='download or upload')
    error: str = Field(..., description='Error message')


class TransferOutcome(BaseModel):
    """Per-asset outcome of a package-version transfer."""

    package: str = Field(..., description='Package name')
    version: str = Field(..., description='Version name')
    downloaded: List[str] = Field(default_factory=list, description='Staged assets')
    uploaded: List[str] = Field(default_factory=list, description='Published assets')
    failed: List[AssetFailure] = Field(default_factory=list, description='Failures')
    waves: int = Field(default=0, description='Sequential download waves')

    @property
    def success(self) -> bool:
        return not self.failed and bool(self.uploaded)
