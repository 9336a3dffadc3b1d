"""Domain records held by the developer store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Role(str, Enum):
    FRONTEND = "Frontend"
    BACKEND = "Backend"
    FULL_STACK = "Full-Stack"

    @classmethod
    def values(cls) -> Tuple[str, ...]:
        return tuple(member.value for member in cls)


@dataclass(frozen=True)
class Developer:
    """A developer profile as persisted by the store."""

    id: str
    name: str
    role: Role
    tech_stack: Tuple[str, ...]
    experience: int
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    about: Optional[str] = None
    joining_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "techStack": list(self.tech_stack),
            "experience": self.experience,
            "about": self.about,
            "joiningDate": self.joining_date.isoformat() if self.joining_date else None,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Developer":
        joining = data.get("joiningDate")
        return Developer(
            id=str(data["id"]),
            name=str(data["name"]),
            role=Role(data["role"]),
            tech_stack=tuple(str(item) for item in data["techStack"]),
            experience=int(data["experience"]),
            about=data.get("about"),
            joining_date=date.fromisoformat(joining) if joining else None,
            created_by=data.get("createdBy"),
            created_at=datetime.fromisoformat(data["createdAt"]),
            updated_at=datetime.fromisoformat(data["updatedAt"]),
        )


@dataclass(frozen=True)
class DeveloperDraft:
    """Developer fields supplied by a caller before an id and timestamps exist."""

    name: str
    role: Role
    tech_stack: Tuple[str, ...]
    experience: int
    about: Optional[str] = None
    joining_date: Optional[date] = None
    created_by: Optional[str] = None


@dataclass(frozen=True)
class DeveloperPatch:
    """Partial update; only the keys present in ``values`` are overwritten."""

    values: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the developer store."""

    id: str
    name: str
    email: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class UserDraft:
    name: str
    email: str
    password_hash: str


__all__ = ["Developer", "DeveloperDraft", "DeveloperPatch", "Role", "User", "UserDraft"]
