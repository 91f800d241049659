"""
Ticket models for alert remediation.

WHAT: SQLAlchemy models for tickets, their comments, their change history
and the per-month ticket number sequence.

WHY: Provides structured remediation tracking with:
1. Priority-based SLA deadlines
2. Status workflow (open → assigned → in_progress → pending → resolved → closed)
3. At most one ticket per alert (unique alert_id)
4. Append-only comment and history logs
5. Human-readable numbers (TKT-YYYYMM-NNNNN) from an atomic sequence

HOW: Uses SQLAlchemy 2.0 with:
- Enums for status, priority and SLA standing
- A unique constraint on tickets.alert_id as the store-level guard for
  idempotent escalation
- A ticket_sequences table incremented with a single upsert statement
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Enum as SQLEnum,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from arsenal.models.alert import AlertCategory
from arsenal.models.base import Base, utcnow


# ============================================================================
# Enums
# ============================================================================


class TicketStatus(str, Enum):
    """
    Ticket status values.

    WHY: Status determines workflow and SLA behavior:
    - OPEN, ASSIGNED, IN_PROGRESS, PENDING: SLA standing keeps degrading
    - RESOLVED, CLOSED, CANCELLED: SLA standing is frozen
    """

    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class TicketPriority(str, Enum):
    """
    Ticket priority levels.

    WHY: Priority selects the SLA budget (configurable, defaults
    CRITICAL 4h, HIGH 8h, MEDIUM 24h, LOW 72h).
    """

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class SLAStatus(str, Enum):
    """
    Derived SLA standing of a ticket, ordered from best to worst.
    """

    ON_TIME = "ON_TIME"
    AT_RISK = "AT_RISK"
    BREACHED = "BREACHED"


class TicketHistoryAction(str, Enum):
    """What a history entry records."""

    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    PRIORITY_CHANGED = "PRIORITY_CHANGED"
    ASSIGNED = "ASSIGNED"
    RESOLUTION_UPDATED = "RESOLUTION_UPDATED"
    CATEGORY_CHANGED = "CATEGORY_CHANGED"
    TAGS_CHANGED = "TAGS_CHANGED"
    COMMENT_ADDED = "COMMENT_ADDED"
    SLA_STATUS_CHANGED = "SLA_STATUS_CHANGED"


# Statuses after which SLA standing no longer changes
SLA_FROZEN_STATUSES = frozenset(
    {TicketStatus.RESOLVED, TicketStatus.CLOSED, TicketStatus.CANCELLED}
)

# Severity order of SLA standing; standing only ever moves up while open
SLA_STATUS_RANK = {
    SLAStatus.ON_TIME: 0,
    SLAStatus.AT_RISK: 1,
    SLAStatus.BREACHED: 2,
}


# ============================================================================
# Ticket Model
# ============================================================================


class Ticket(Base):
    """
    A unit of work tracking remediation of one alert (or a manual issue).
    """

    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    # WHY: unique=True is the final guard against duplicate escalation.
    # NULLs (manual tickets) don't collide.
    alert_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("alerts.id"), unique=True, nullable=True
    )
    created_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    assigned_to_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[TicketStatus] = mapped_column(
        SQLEnum(TicketStatus, name="ticketstatus"),
        default=TicketStatus.OPEN,
        nullable=False,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        SQLEnum(TicketPriority, name="ticketpriority"),
        default=TicketPriority.MEDIUM,
        nullable=False,
    )
    category: Mapped[Optional[AlertCategory]] = mapped_column(
        SQLEnum(AlertCategory, name="alertcategory"), nullable=True
    )
    tags: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    # SLA tracking
    sla_deadline: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    sla_status: Mapped[SLAStatus] = mapped_column(
        SQLEnum(SLAStatus, name="slastatus"),
        default=SLAStatus.ON_TIME,
        nullable=False,
    )

    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Status timestamps
    assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_tickets_status", "status"),
        Index("ix_tickets_priority", "priority"),
        Index("ix_tickets_sla_status", "sla_status"),
        Index("ix_tickets_sla_deadline", "sla_deadline"),
        Index("ix_tickets_assigned_to", "assigned_to_id"),
        Index("ix_tickets_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, number={self.ticket_number}, status={self.status.value})>"

    @property
    def is_open(self) -> bool:
        """Check if SLA standing is still live (not resolved/closed/cancelled)."""
        return self.status not in SLA_FROZEN_STATUSES


# ============================================================================
# TicketComment Model
# ============================================================================


class TicketComment(Base):
    """
    Comment on a ticket. Append-only.

    Security: is_internal notes are hidden from VIEWER users.
    """

    __tablename__ = "ticket_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    comment: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_ticket_comments_ticket_id", "ticket_id"),
        Index("ix_ticket_comments_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<TicketComment(id={self.id}, ticket_id={self.ticket_id}, is_internal={self.is_internal})>"


# ============================================================================
# TicketHistory Model
# ============================================================================


class TicketHistory(Base):
    """
    One immutable change record on a ticket.

    WHY: Every status, assignment, priority, resolution, category or tag
    change is recorded with the acting user and the old/new values.
    Entries are ordered by id, which follows insertion order.
    """

    __tablename__ = "ticket_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tickets.id"), nullable=False
    )
    # NULL for changes made by the system (SLA sweep, auto-escalation)
    user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )

    action: Mapped[TicketHistoryAction] = mapped_column(
        SQLEnum(TicketHistoryAction, name="tickethistoryaction"), nullable=False
    )
    field_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_ticket_history_ticket_id", "ticket_id"),
    )

    def __repr__(self) -> str:
        return f"<TicketHistory(id={self.id}, ticket_id={self.ticket_id}, action={self.action.value})>"


# ============================================================================
# TicketSequence Model
# ============================================================================


class TicketSequence(Base):
    """
    Per-month counter backing ticket numbers.

    WHY: Counting this month's tickets and adding one races under
    concurrent creation. A single-row upsert that increments and returns
    the counter is atomic in the database, so every caller gets a
    distinct value.
    """

    __tablename__ = "ticket_sequences"

    period: Mapped[str] = mapped_column(String(6), primary_key=True)  # YYYYMM
    last_value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def __repr__(self) -> str:
        return f"<TicketSequence(period={self.period}, last_value={self.last_value})>"
