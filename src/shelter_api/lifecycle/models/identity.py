"""
Identity Models

Accounts are owned by the identity collaborator; the lifecycle core only reads them.
"""

from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict

from shelter_api.lifecycle.enums import Role


class Account(BaseModel):
    """Account database model."""

    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: Role
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)

    def as_actor(self) -> "Actor":
        return Actor(id=self.id, role=self.role)


class Actor(BaseModel):
    """Caller resolved for the lifetime of a single request."""

    id: int
    role: Role

    model_config = ConfigDict(frozen=True)
