"""Actions variable models."""

from typing import Optional, List

from pydantic import BaseModel, Field


class Variable(BaseModel):
    """Configuration variable as listed by the Actions API."""

    name: str = Field(..., description='Variable name')
    value: str = Field(default='', description='Plaintext value')
    visibility: Optional[str] = Field(
        default=None, description='all, private or selected (org variables)'
    )


class OrgVariableCreate(BaseModel):
    """Payload for creating an organization variable."""

    name: str = Field(..., description='Variable name')
    value: str = Field(..., description='Plaintext value')
    visibility: str = Field(default='all', description='Visibility')
    selected_repository_ids: Optional[List[int]] = Field(
        default=None, description='Repository IDs when visibility is selected'
    )
