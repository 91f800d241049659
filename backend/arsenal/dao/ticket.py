"""
Ticket Data Access Object.

WHAT: DAO for ticket CRUD, ticket numbering, history and comments.

WHY: Encapsulates all ticket database operations with:
1. Conflict detection on the unique alert reference
2. Atomic per-month ticket number sequence
3. Filtered listing and statistics
4. Append-only comment and history logs
5. SLA sweep candidate selection

HOW: Uses SQLAlchemy 2.0 async with proper session management. DAOs
flush; transactions are owned by the caller.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.models.alert import AlertCategory
from arsenal.models.ticket import (
    Ticket,
    TicketStatus,
    TicketPriority,
    SLAStatus,
    TicketComment,
    TicketHistory,
    TicketHistoryAction,
    TicketSequence,
    SLA_FROZEN_STATUSES,
)
from arsenal.core.exceptions import (
    DatabaseError,
    TicketConflictError,
    TicketNotFoundError,
)


# Valid status transitions
VALID_STATUS_TRANSITIONS = {
    TicketStatus.OPEN: [
        TicketStatus.ASSIGNED,
        TicketStatus.IN_PROGRESS,
        TicketStatus.PENDING,
        TicketStatus.RESOLVED,
        TicketStatus.CANCELLED,
    ],
    TicketStatus.ASSIGNED: [
        TicketStatus.IN_PROGRESS,
        TicketStatus.PENDING,
        TicketStatus.RESOLVED,
        TicketStatus.CANCELLED,
    ],
    TicketStatus.IN_PROGRESS: [
        TicketStatus.PENDING,
        TicketStatus.RESOLVED,
        TicketStatus.CANCELLED,
    ],
    TicketStatus.PENDING: [
        TicketStatus.IN_PROGRESS,
        TicketStatus.RESOLVED,
        TicketStatus.CANCELLED,
    ],
    TicketStatus.RESOLVED: [TicketStatus.CLOSED],
    TicketStatus.CLOSED: [],
    TicketStatus.CANCELLED: [],
}


class TicketDAO:
    """
    Data Access Object for Ticket operations.

    WHAT: The ticket store used by the escalation engine.

    WHY: Centralizes database operations for:
    - Store-level uniqueness of the alert reference
    - Atomic ticket numbering
    - SLA sweep queries
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize TicketDAO with database session.

        Args:
            session: AsyncSession for database operations
        """
        self.session = session

    # =========================================================================
    # CRUD Operations
    # =========================================================================

    async def create(
        self,
        ticket_number: str,
        title: str,
        description: str,
        priority: TicketPriority,
        sla_deadline: datetime,
        alert_id: Optional[int] = None,
        category: Optional[AlertCategory] = None,
        tags: Optional[List[str]] = None,
        created_by_id: Optional[int] = None,
        assigned_to_id: Optional[int] = None,
        assigned_at: Optional[datetime] = None,
        status: TicketStatus = TicketStatus.OPEN,
        created_at: Optional[datetime] = None,
    ) -> Ticket:
        """
        Create a new ticket.

        WHY: The unique constraint on alert_id is checked by the database
        on flush. A violation means another request escalated the same
        alert first; it surfaces as TicketConflictError so the caller can
        roll back and fetch the winner.

        Returns:
            Created Ticket instance

        Raises:
            TicketConflictError: If alert_id already has a ticket
            DatabaseError: For any other integrity violation
        """
        ticket = Ticket(
            ticket_number=ticket_number,
            alert_id=alert_id,
            title=title,
            description=description,
            status=status,
            priority=priority,
            category=category,
            tags=list(tags or []),
            sla_deadline=sla_deadline,
            sla_status=SLAStatus.ON_TIME,
            created_by_id=created_by_id,
            assigned_to_id=assigned_to_id,
            assigned_at=assigned_at,
        )
        if created_at is not None:
            ticket.created_at = created_at
            ticket.updated_at = created_at

        self.session.add(ticket)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            if alert_id is not None:
                raise TicketConflictError(alert_id=alert_id) from exc
            raise DatabaseError(
                message="Could not create ticket",
                ticket_number=ticket_number,
            ) from exc

        await self.session.refresh(ticket)
        return ticket

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        """Get ticket by ID."""
        result = await self.session.execute(select(Ticket).where(Ticket.id == ticket_id))
        return result.scalar_one_or_none()

    async def get_or_raise(self, ticket_id: int) -> Ticket:
        """
        Get ticket by ID or raise.

        Raises:
            TicketNotFoundError: If the ticket doesn't exist
        """
        ticket = await self.get_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(
                message=f"Ticket {ticket_id} not found",
                ticket_id=ticket_id,
            )
        return ticket

    async def get_by_alert_id(self, alert_id: int) -> Optional[Ticket]:
        """Get the ticket escalated from an alert, if any."""
        result = await self.session.execute(select(Ticket).where(Ticket.alert_id == alert_id))
        return result.scalar_one_or_none()

    async def get_ticket_ids_for_alerts(self, alert_ids: Iterable[int]) -> Dict[int, int]:
        """
        Map alert id -> ticket id for the given alerts.

        WHY: Alert listings show which alerts were escalated without
        issuing one query per alert.
        """
        ids = list(alert_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(Ticket.alert_id, Ticket.id).where(Ticket.alert_id.in_(ids))
        )
        return {row[0]: row[1] for row in result}

    async def list(
        self,
        skip: int = 0,
        limit: int = 20,
        status: Optional[TicketStatus] = None,
        priority: Optional[TicketPriority] = None,
        category: Optional[AlertCategory] = None,
        sla_status: Optional[SLAStatus] = None,
        assigned_to_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Tuple[List[Ticket], int]:
        """
        List tickets with filtering and pagination.

        Returns:
            Tuple of (tickets list, total count)
        """
        base_query = select(Ticket)

        if status is not None:
            base_query = base_query.where(Ticket.status == status)
        if priority is not None:
            base_query = base_query.where(Ticket.priority == priority)
        if category is not None:
            base_query = base_query.where(Ticket.category == category)
        if sla_status is not None:
            base_query = base_query.where(Ticket.sla_status == sla_status)
        if assigned_to_id is not None:
            base_query = base_query.where(Ticket.assigned_to_id == assigned_to_id)
        if start_date is not None:
            base_query = base_query.where(Ticket.created_at >= start_date)
        if end_date is not None:
            base_query = base_query.where(Ticket.created_at <= end_date)

        count_query = select(func.count()).select_from(base_query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        list_query = (
            base_query.order_by(Ticket.created_at.desc(), Ticket.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(list_query)
        return list(result.scalars().all()), total

    async def update(self, ticket_id: int, **fields: Any) -> Ticket:
        """
        Apply field values to a ticket and flush.

        Raises:
            TicketNotFoundError: If the ticket doesn't exist
        """
        ticket = await self.get_or_raise(ticket_id)
        for field, value in fields.items():
            setattr(ticket, field, value)

        await self.session.flush()
        await self.session.refresh(ticket)
        return ticket

    # =========================================================================
    # Numbering
    # =========================================================================

    async def next_sequence_for_month(self, year_month: str) -> int:
        """
        Atomically increment and return the ticket counter for a month.

        WHY: A single INSERT ... ON CONFLICT DO UPDATE ... RETURNING
        statement takes the row lock and increments in one step, so
        concurrent callers never observe the same value. The increment
        belongs to the caller's transaction; if that transaction rolls
        back, so does the increment, which keeps numbers gap-free.

        Args:
            year_month: Period key, "YYYYMM"

        Returns:
            The new counter value (1 for the first ticket of the month)
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise DatabaseError(
                message="Ticket numbering requires PostgreSQL or SQLite",
                dialect=dialect,
            )

        stmt = insert(TicketSequence).values(period=year_month, last_value=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TicketSequence.period],
            set_={"last_value": TicketSequence.last_value + 1},
        ).returning(TicketSequence.last_value)

        result = await self.session.execute(stmt)
        return result.scalar_one()

    # =========================================================================
    # SLA Queries
    # =========================================================================

    async def get_sla_sweep_candidates(
        self,
        now: datetime,
        risk_window: timedelta,
        limit: int = 500,
    ) -> List[Ticket]:
        """
        Open tickets whose SLA standing may need to worsen.

        WHY: Only tickets that are not yet BREACHED and whose deadline
        falls inside the risk window can change standing, so the sweep
        never scans the whole table.
        """
        result = await self.session.execute(
            select(Ticket)
            .where(
                Ticket.status.notin_(list(SLA_FROZEN_STATUSES)),
                Ticket.sla_status != SLAStatus.BREACHED,
                Ticket.sla_deadline <= now + risk_window,
            )
            .order_by(Ticket.sla_deadline.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_stats(self) -> dict:
        """
        Get ticket statistics.

        Returns:
            Dictionary with ticket counts by status, priority and SLA standing
        """
        status_result = await self.session.execute(
            select(Ticket.status, func.count(Ticket.id)).group_by(Ticket.status)
        )
        status_counts = {row[0].value: row[1] for row in status_result}

        priority_result = await self.session.execute(
            select(Ticket.priority, func.count(Ticket.id))
            .where(Ticket.status.notin_(list(SLA_FROZEN_STATUSES)))
            .group_by(Ticket.priority)
        )
        priority_counts = {row[0].value: row[1] for row in priority_result}

        sla_result = await self.session.execute(
            select(Ticket.sla_status, func.count(Ticket.id)).group_by(Ticket.sla_status)
        )
        sla_counts = {row[0].value: row[1] for row in sla_result}

        return {
            "total": sum(status_counts.values()),
            "open_count": status_counts.get(TicketStatus.OPEN.value, 0),
            "by_status": status_counts,
            "by_priority": priority_counts,
            "by_sla_status": sla_counts,
            "sla_breached_count": sla_counts.get(SLAStatus.BREACHED.value, 0),
        }


class TicketHistoryDAO:
    """
    Data Access Object for the append-only ticket history.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        ticket_id: int,
        action: TicketHistoryAction,
        user_id: Optional[int] = None,
        field_name: Optional[str] = None,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> TicketHistory:
        """
        Append one history entry.

        Returns:
            Created TicketHistory
        """
        entry = TicketHistory(
            ticket_id=ticket_id,
            user_id=user_id,
            action=action,
            field_name=field_name,
            old_value=old_value,
            new_value=new_value,
        )
        if created_at is not None:
            entry.created_at = created_at

        self.session.add(entry)
        await self.session.flush()
        await self.session.refresh(entry)
        return entry

    async def list_for_ticket(self, ticket_id: int) -> List[TicketHistory]:
        """History entries for a ticket, in the order they were appended."""
        result = await self.session.execute(
            select(TicketHistory)
            .where(TicketHistory.ticket_id == ticket_id)
            .order_by(TicketHistory.id.asc())
        )
        return list(result.scalars().all())


class TicketCommentDAO:
    """
    Data Access Object for TicketComment operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        ticket_id: int,
        user_id: int,
        comment: str,
        is_internal: bool = False,
    ) -> TicketComment:
        """
        Create a new comment on a ticket.

        Returns:
            Created TicketComment
        """
        entry = TicketComment(
            ticket_id=ticket_id,
            user_id=user_id,
            comment=comment,
            is_internal=is_internal,
        )

        self.session.add(entry)
        await self.session.flush()
        await self.session.refresh(entry)
        return entry

    async def list_for_ticket(
        self,
        ticket_id: int,
        include_internal: bool = True,
    ) -> List[TicketComment]:
        """
        List comments for a ticket, oldest first.

        Args:
            ticket_id: Ticket ID
            include_internal: Whether to include internal notes
        """
        query = select(TicketComment).where(TicketComment.ticket_id == ticket_id)

        if not include_internal:
            query = query.where(TicketComment.is_internal.is_(False))

        query = query.order_by(TicketComment.id.asc())

        result = await self.session.execute(query)
        return list(result.scalars().all())
