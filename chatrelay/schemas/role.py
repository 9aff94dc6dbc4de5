"""Schemas for role presets."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class RoleCategory(BaseModel):
    id: str
    name: str
    description: str


class Role(BaseModel):
    """A named system-prompt preset."""

    id: str
    name: str
    description: str
    category: str
    system_prompt: str


class RoleInfo(BaseModel):
    """Role as listed to clients; the prompt text is not exposed."""

    id: str
    name: str
    description: str
    category: str

    @classmethod
    def from_role(cls, role: Role) -> "RoleInfo":
        return cls(
            id=role.id,
            name=role.name,
            description=role.description,
            category=role.category,
        )


class RoleList(BaseModel):
    roles: list[RoleInfo]
    categories: list[RoleCategory]
    current_role: Optional[str] = None


class SetRoleRequest(BaseModel):
    role: str = Field(..., min_length=1)


class SetRoleResponse(BaseModel):
    success: bool = True
    message: str
    role: RoleInfo
