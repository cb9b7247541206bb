from __future__ import annotations

from typing import Protocol
from uuid import UUID

from lms.models.user import User
from lms.repos.errors import DuplicateKeyError


class UserRepo(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...
    async def get_by_email(self, email: str) -> User | None: ...
    async def get_many(self, user_ids: list[UUID]) -> dict[UUID, User]: ...
    async def add(self, user: User) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_email: dict[str, User] = {}
        self._by_id: dict[UUID, User] = {}

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        return self._by_email.get(email.strip().lower())

    async def get_many(self, user_ids: list[UUID]) -> dict[UUID, User]:
        return {uid: self._by_id[uid] for uid in user_ids if uid in self._by_id}

    async def add(self, user: User) -> None:
        if user.email in self._by_email:
            raise DuplicateKeyError("email already exists")
        self._by_email[user.email] = user
        self._by_id[user.id] = user
