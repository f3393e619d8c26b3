"""
Identity lookup interface.
Users are registered and authenticated upstream; the core only resolves ids.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seatify.models.user import User


@dataclass(frozen=True)
class ResolvedUser:
    id: int
    full_name: str
    email: Optional[str] = None


class IdentityDirectory(ABC):
    """
    Interface for resolving user ids handed over by the identity provider.

    Implementations:
    - SqlIdentityDirectory: reads the replicated `users` table
    """

    @abstractmethod
    async def resolve_user(self, db: AsyncSession, user_id: int) -> Optional[ResolvedUser]:
        """
        Look up a user.

        Args:
            db: Session of the calling request
            user_id: Id taken from the verified bearer token

        Returns:
            ResolvedUser if the user exists and is active, otherwise None
        """
        pass


class SqlIdentityDirectory(IdentityDirectory):
    """Resolves users from the local directory table."""

    async def resolve_user(self, db: AsyncSession, user_id: int) -> Optional[ResolvedUser]:
        result = await db.execute(
            select(User).where(User.id == user_id, User.is_active.is_(True))
        )
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return ResolvedUser(id=user.id, full_name=user.full_name, email=user.email)
