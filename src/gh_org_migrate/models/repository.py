"""Repository entity models."""

from typing import Optional

from pydantic import BaseModel, Field


class Repository(BaseModel):
    """Repository as returned by the organization repositories listing."""

    id: Optional[int] = Field(default=None, description='Repository ID')
    name: str = Field(..., description='Repository name')
    full_name: Optional[str] = Field(default=None, description='owner/name')
    private: Optional[bool] = Field(default=None, description='Repository is private')
    archived: Optional[bool] = Field(default=None, description='Repository is archived')
    default_branch: Optional[str] = Field(default=None, description='Default branch')
