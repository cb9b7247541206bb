from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

ROLES = ("student", "teacher", "admin", "moderator")


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    name: str = ""
    role: str = "student"  # student|teacher|admin|moderator
    is_active: bool = True

    @property
    def is_student(self) -> bool:
        return self.role == "student"

    @staticmethod
    def new(*, email: str, name: str = "", role: str = "student") -> User:
        if role not in ROLES:
            raise ValueError(f"unknown role {role!r}")
        return User(id=uuid4(), email=email.strip().lower(), name=name, role=role)
