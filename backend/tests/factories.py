"""
Test factories for creating test data.

WHY: Factories provide a consistent, reusable way to create test objects,
reducing duplication and making tests more maintainable.
"""

from datetime import datetime, timedelta
from functools import lru_cache
from itertools import count
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.auth import create_access_token, hash_password
from arsenal.models.alert import Alert, AlertCategory, AlertSeverity, AlertStatus
from arsenal.models.base import utcnow
from arsenal.models.ticket import SLAStatus, Ticket, TicketPriority, TicketStatus
from arsenal.models.user import User, UserRole


DEFAULT_PASSWORD = "TestPassword123!"

_sequence = count(1)


@lru_cache(maxsize=8)
def _hashed(password: str) -> str:
    # bcrypt is slow; one hash per distinct password is enough for tests
    return hash_password(password)


def auth_headers(user: User) -> Dict[str, str]:
    """Bearer header for `user`, without going through /login."""
    token = create_access_token({"user_id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


class UserFactory:
    """
    Factory for creating User test instances.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        email: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
        name: str = "Test User",
        role: UserRole = UserRole.OPS,
        is_active: bool = True,
    ) -> User:
        """
        Create a user for testing.

        Args:
            session: Database session
            email: User email (unique one generated if omitted)
            password: Plain text password (will be hashed)
            name: User's full name
            role: User role
            is_active: Whether user is active

        Returns:
            Created User instance
        """
        user = User(
            email=email or f"user{next(_sequence)}@example.com",
            hashed_password=_hashed(password),
            name=name,
            role=role,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


class AlertFactory:
    """
    Factory for creating Alert test instances directly, bypassing escalation.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        category: AlertCategory = AlertCategory.POWER_CONSUMPTION_ANOMALY,
        severity: AlertSeverity = AlertSeverity.CRITICAL,
        status: AlertStatus = AlertStatus.OPEN,
        title: str = "Power draw 40% above baseline",
        description: str = "Rectifier load exceeds the 30-day average",
        site_code: Optional[str] = "SITE-0001",
        detected_value: Optional[float] = 14.0,
        expected_value: Optional[float] = 10.0,
        extra: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> Alert:
        alert = Alert(
            category=category,
            severity=severity,
            status=status,
            title=title,
            description=description,
            site_code=site_code,
            detected_value=detected_value,
            expected_value=expected_value,
            extra=extra,
        )
        if created_at is not None:
            alert.created_at = created_at
            alert.updated_at = created_at
        session.add(alert)
        await session.commit()
        await session.refresh(alert)
        return alert


class TicketFactory:
    """
    Factory for creating Ticket test instances directly.

    WHY: SLA sweep and listing tests need tickets in arbitrary states
    (already at risk, past their deadline, resolved) without walking the
    whole lifecycle.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        title: str = "Investigate site anomaly",
        description: str = "Opened for testing",
        priority: TicketPriority = TicketPriority.MEDIUM,
        status: TicketStatus = TicketStatus.OPEN,
        sla_status: SLAStatus = SLAStatus.ON_TIME,
        sla_deadline: Optional[datetime] = None,
        alert_id: Optional[int] = None,
        assigned_to_id: Optional[int] = None,
        created_by_id: Optional[int] = None,
        tags: Optional[List[str]] = None,
        ticket_number: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> Ticket:
        created_at = created_at or utcnow()
        ticket = Ticket(
            ticket_number=ticket_number or f"TKT-{created_at:%Y%m}-{90000 + next(_sequence):05d}",
            title=title,
            description=description,
            priority=priority,
            status=status,
            sla_status=sla_status,
            sla_deadline=sla_deadline or created_at + timedelta(hours=24),
            alert_id=alert_id,
            assigned_to_id=assigned_to_id,
            created_by_id=created_by_id,
            tags=tags or [],
            created_at=created_at,
            updated_at=created_at,
        )
        session.add(ticket)
        await session.commit()
        await session.refresh(ticket)
        return ticket
