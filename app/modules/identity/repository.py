"""Identity repository layer."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import storage_operation
from app.modules.identity.models import User


class IdentityRepository:
    """Read-only DB access to user profiles."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @storage_operation("load user")
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        stmt = select(User).where(User.id == user_id)
        return await self.session.scalar(stmt)

    @storage_operation("load users")
    async def list_users_by_ids(self, user_ids: Iterable[UUID]) -> dict[UUID, User]:
        """Map ids to users; unknown ids are left out.

        Runs in a savepoint so callers may treat a failed lookup as best-effort
        without aborting the surrounding transaction.
        """
        ids = set(user_ids)
        if not ids:
            return {}
        stmt = select(User).where(User.id.in_(ids))
        async with self.session.begin_nested():
            users = (await self.session.scalars(stmt)).all()
        return {user.id: user for user in users}
