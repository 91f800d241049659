"""
User administration.

WHAT: Admin-side account management (create with a role, change role or
active flag, deactivate) and the first-admin bootstrap run at startup.

WHY: Self-registration only ever yields VIEWER accounts. Every account
that can ingest alerts or work tickets is created or promoted here, and
a fresh deployment needs one ADMIN to start that chain.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.auth import hash_password
from arsenal.core.exceptions import ValidationError
from arsenal.dao.user import UserDAO
from arsenal.models.user import User, UserRole

logger = logging.getLogger(__name__)


class UserService:
    """
    Account management on top of UserDAO.

    Attributes:
        session: Database session (the service commits its own writes)
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.user_dao = UserDAO(User, session)

    async def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[User], int]:
        return await self.user_dao.list(
            skip=(page - 1) * limit,
            limit=limit,
            role=role,
            is_active=is_active,
            search=search,
        )

    async def get_user(self, user_id: int) -> User:
        return await self.user_dao.get_or_raise(user_id)

    async def create_user(
        self,
        email: str,
        password: str,
        name: str,
        role: UserRole,
        actor_id: Optional[int] = None,
    ) -> User:
        """
        Create an active account with the given role.

        Raises:
            ResourceAlreadyExistsError (409): If the email is taken
        """
        user = await self.user_dao.create_user(
            email=email,
            hashed_password=hash_password(password),
            name=name,
            role=role,
        )
        await self.session.commit()
        logger.info(f"User {user.id} created with role {role.value} by user {actor_id}")
        return user

    async def update_user(
        self,
        user_id: int,
        actor: User,
        name: Optional[str] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
    ) -> User:
        """
        Change a user's name, role or active flag.

        Raises:
            UserNotFoundError (404): If the user doesn't exist
            ValidationError (400): If an admin demotes or deactivates
                their own account
        """
        user = await self.user_dao.get_or_raise(user_id)

        changes = {}
        if name is not None and name != user.name:
            changes["name"] = name
        if role is not None and role != user.role:
            changes["role"] = role
        if is_active is not None and is_active != user.is_active:
            changes["is_active"] = is_active

        if user.id == actor.id and ("role" in changes or changes.get("is_active") is False):
            raise ValidationError(
                message="Cannot change the role or deactivate your own account",
                user_id=user_id,
            )

        if not changes:
            return user

        user = await self.user_dao.update(user_id, **changes)
        await self.session.commit()
        logger.info(f"User {user_id} updated by user {actor.id}: {', '.join(changes)}")
        return user

    async def deactivate_user(self, user_id: int, actor: User) -> User:
        """
        Soft-delete a user.

        Raises:
            ValidationError (400): If an admin deactivates their own account
            UserNotFoundError (404): If the user doesn't exist
        """
        if user_id == actor.id:
            raise ValidationError(
                message="Cannot deactivate your own account",
                user_id=user_id,
            )

        user = await self.user_dao.deactivate_user(user_id)
        await self.session.commit()
        logger.info(f"User {user_id} deactivated by user {actor.id}")
        return user

    async def ensure_first_admin(self, email: str, password: str, name: str) -> Optional[User]:
        """
        Create an ADMIN account when no active admin exists yet.

        Returns:
            The created admin, or None if an active admin already exists

        Raises:
            ResourceAlreadyExistsError (409): If `email` belongs to a
                non-admin account
        """
        if await self.user_dao.has_active_admin():
            return None

        user = await self.create_user(email=email, password=password, name=name, role=UserRole.ADMIN)
        logger.warning(f"Bootstrap admin {user.email} created; change its password after first login")
        return user
