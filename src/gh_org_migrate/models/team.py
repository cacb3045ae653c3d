"""Team entity models."""

from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, Field, field_validator


PERMISSION_ORDER = ('pull', 'push', 'admin')


class TeamParent(BaseModel):
    """Parent reference embedded in a team listing."""

    id: Optional[int] = Field(default=None, description='Parent team ID')
    slug: str = Field(..., description='Parent team slug')
    name: Optional[str] = Field(default=None, description='Parent team name')


class Team(BaseModel):
    """GitHub team as returned by the teams API."""

    id: int = Field(..., description='Team ID')
    slug: str = Field(..., description='Team slug')
    name: str = Field(..., description='Team name')
    description: Optional[str] = Field(default=None, description='Team description')
    privacy: Optional[str] = Field(default=None, description='secret or closed')
    permission: Optional[str] = Field(default=None, description='Default permission')
    parent: Optional[TeamParent] = Field(default=None, description='Parent team')

    @property
    def parent_slug(self) -> Optional[str]:
        return self.parent.slug if self.parent else None


class TeamMember(BaseModel):
    """A team member with the role fetched from the membership API."""

    login: str = Field(..., description='Member login')
    role: str = Field(default='member', description='member or maintainer')

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        if v not in ('member', 'maintainer'):
            raise ValueError('Role must be member or maintainer')
        return v


class TeamRepository(BaseModel):
    """A repository the team can access, with its effective permission."""

    name: str = Field(..., description='Repository name')
    permission: str = Field(..., description='pull, push or admin')

    @classmethod
    def from_api(cls, repo: Dict[str, Any]) -> 'TeamRepository':
        """Derive the highest-privilege permission from the flags."""
        permissions = repo.get('permissions') or {}
        if permissions.get('admin'):
            permission = 'admin'
        elif permissions.get('push'):
            permission = 'push'
        else:
            permission = 'pull'
        return cls(name=repo['name'], permission=permission)


class TeamCreate(BaseModel):
    """Payload for creating a team at the destination."""

    name: str = Field(..., description='Team name')
    description: Optional[str] = Field(default=None, description='Team description')
    privacy: Optional[str] = Field(default=None, description='secret or closed')
    permission: Optional[str] = Field(default=None, description='Default permission')
    parent_team_id: Optional[int] = Field(default=None, description='Parent team ID')


class IdpGroup(BaseModel):
    """Identity-provider group that can be synced to a team."""

    group_id: str = Field(..., description='IdP group ID')
    group_name: str = Field(..., description='IdP group name')
    group_description: Optional[str] = Field(default=None, description='Description')


class TeamState(str, Enum):
    """Progress of one team through the migration."""

    DISCOVERED = 'discovered'
    MEMBERS_FETCHED = 'members_fetched'
    DRY_RUN_RECORDED = 'dry_run_recorded'
    CREATED = 'created'
    MEMBERS_REPLAYED = 'members_replayed'
    PERMISSIONS_REPLAYED = 'permissions_replayed'
    FAILED = 'failed'


class TeamRecord(BaseModel):
    """Everything known about one team during a run."""

    source: Team = Field(..., description='Team in the source organization')
    state: TeamState = Field(default=TeamState.DISCOVERED, description='Progress')
    members: List[TeamMember] = Field(default_factory=list, description='Members')
    repositories: List[TeamRepository] = Field(
        default_factory=list, description='Repository permissions'
    )
    destination_id: Optional[int] = Field(default=None, description='Destination team ID')
    destination_slug: Optional[str] = Field(
        default=None, description='Destination team slug'
    )
    parent_destination_id: Optional[int] = Field(
        default=None, description='parent_team_id used at creation'
    )
    idp_group: Optional[str] = Field(default=None, description='Linked IdP group name')
