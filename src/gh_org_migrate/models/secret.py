"""Secret entity models."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class SecretEntry(BaseModel):
    """One row of the secrets migration CSV.

    ``value`` is plaintext and is cleared once the secret has been sealed.
    """

    type: str = Field(..., description='org or repo')
    name: str = Field(..., description='Secret name')
    repo: Optional[str] = Field(default=None, description='Repository for repo secrets')
    value: Optional[str] = Field(default=None, repr=False, description='Plaintext value')

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        v = (v or '').strip().lower()
        if v not in ('org', 'repo'):
            raise ValueError("type must be 'org' or 'repo'")
        return v

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError('name is required')
        return v.strip()

    @model_validator(mode='after')
    def require_repo(self):
        if self.repo is not None:
            self.repo = self.repo.strip() or None
        if self.type == 'repo' and not self.repo:
            raise ValueError("repo is required when type is 'repo'")
        return self

    @property
    def scope_label(self) -> str:
        return f'repo {self.repo}' if self.type == 'repo' else 'organization'


class PublicKey(BaseModel):
    """Actions public key for one scope of the destination."""

    key_id: str = Field(..., description='Key identifier')
    key: str = Field(..., description='Base64 Curve25519 public key')
