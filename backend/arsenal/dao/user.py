"""
User Data Access Object.

WHY: UserDAO provides database operations for User model, following
the DAO pattern for separation of concerns and testability.
"""

from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.dao.base import BaseDAO
from arsenal.models.user import User, UserRole
from arsenal.core.exceptions import ResourceAlreadyExistsError, UserNotFoundError


class UserDAO(BaseDAO[User]):
    """
    Data Access Object for User model.
    """

    def __init__(self, model: type[User], session: AsyncSession):
        """Initialize UserDAO with model and session."""
        super().__init__(model, session)

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve user by email address.

        WHY: Case-insensitive comparison prevents duplicate accounts with
        different casing (user@example.com vs USER@EXAMPLE.COM).

        Args:
            email: User's email address

        Returns:
            User instance if found, None otherwise
        """
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        """Check if email already exists in database."""
        result = await self.session.execute(
            select(User.id).where(func.lower(User.email) == email.lower()).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def create_user(
        self,
        email: str,
        hashed_password: str,
        name: str,
        role: UserRole = UserRole.VIEWER,
    ) -> User:
        """
        Create a new user.

        Args:
            email: User's email address
            hashed_password: Already hashed password (use hash_password())
            name: User's full name
            role: User role

        Returns:
            Created User instance

        Raises:
            ResourceAlreadyExistsError: If email already exists
        """
        if await self.email_exists(email):
            raise ResourceAlreadyExistsError(
                message="User with this email already exists",
                resource_type="User",
                email=email,
            )

        return await self.create(
            email=email.lower(),
            hashed_password=hashed_password,
            name=name,
            role=role,
            is_active=True,
        )

    async def get_active_by_roles(self, roles: Sequence[UserRole]) -> List[User]:
        """
        Active users holding any of the given roles.

        WHY: Alert and ticket notifications go to everyone on call for a
        severity, which is expressed as a set of roles.
        """
        if not roles:
            return []
        result = await self.session.execute(
            select(User)
            .where(User.is_active.is_(True), User.role.in_(list(roles)))
            .order_by(User.id)
        )
        return list(result.scalars().all())

    async def get_active_by_ids(self, user_ids: Sequence[int]) -> List[User]:
        """Active users among the given ids (unknown ids are skipped)."""
        if not user_ids:
            return []
        result = await self.session.execute(
            select(User)
            .where(User.is_active.is_(True), User.id.in_(list(user_ids)))
            .order_by(User.id)
        )
        return list(result.scalars().all())

    async def get_or_raise(self, user_id: int) -> User:
        """
        Raises:
            UserNotFoundError: If the user doesn't exist
        """
        user = await self.get_by_id(user_id)
        if not user:
            raise UserNotFoundError(user_id=user_id)
        return user

    async def list(
        self,
        skip: int = 0,
        limit: int = 20,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[User], int]:
        """
        List users with filtering and pagination, newest first.

        Args:
            search: Case-insensitive substring of email or name

        Returns:
            Tuple of (users list, total count)
        """
        base_query = select(User)

        if role is not None:
            base_query = base_query.where(User.role == role)
        if is_active is not None:
            base_query = base_query.where(User.is_active.is_(is_active))
        if search:
            term = f"%{search.lower()}%"
            base_query = base_query.where(
                func.lower(User.email).like(term) | func.lower(User.name).like(term)
            )

        count_query = select(func.count()).select_from(base_query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(
            base_query.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def update(self, user_id: int, **fields: Any) -> User:
        """
        Apply field values (name, role, is_active) to a user and flush.

        Raises:
            UserNotFoundError: If the user doesn't exist
        """
        user = await self.get_or_raise(user_id)
        for field, value in fields.items():
            setattr(user, field, value)

        await self.session.flush()
        await self.session.refresh(user)
        return user

    async def deactivate_user(self, user_id: int) -> User:
        """
        Deactivate a user (soft delete).

        WHY: Tickets keep pointing at their creator and assignee, so rows
        are never removed; an inactive user can't log in and gets no
        notifications.
        """
        return await self.update(user_id, is_active=False)

    async def has_active_admin(self) -> bool:
        result = await self.session.execute(
            select(User.id)
            .where(User.role == UserRole.ADMIN, User.is_active.is_(True))
            .limit(1)
        )
        return result.scalar_one_or_none() is not None
