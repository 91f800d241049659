"""
User model.

WHY: Users are the operators of the dashboard. Their role decides which
alert/ticket mutations they may perform and which alert notifications
they receive.
"""

import enum
from sqlalchemy import Column, String, Enum, Boolean

from arsenal.models.base import Base, TimestampMixin, PrimaryKeyMixin


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    WHY: Enum ensures only valid roles can be assigned, making role-based
    access control (RBAC) and on-call recipient selection reliable.
    """

    ADMIN = "ADMIN"  # Full access, including system configuration
    MANAGER = "MANAGER"  # Supervises tickets and SLA standing
    ANALYST = "ANALYST"  # Investigates alerts
    OPS = "OPS"  # Field operations, first responders
    VIEWER = "VIEWER"  # Read-only


class User(Base, PrimaryKeyMixin, TimestampMixin):
    """
    User model representing operators of the platform.
    """

    __tablename__ = "users"

    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)

    hashed_password = Column(String(255), nullable=False)

    # WHY: Default VIEWER role ensures least-privilege access
    role = Column(Enum(UserRole, name="userrole"), nullable=False, default=UserRole.VIEWER)

    # WHY: is_active allows disabling users without losing ticket history
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
