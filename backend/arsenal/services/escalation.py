"""
Escalation engine for alerts and tickets.

WHAT: Decides when an alert becomes a ticket, moves alerts and tickets
through their lifecycles, keeps SLA standing current, and describes the
notifications and realtime events each change should produce.

WHY: Durable state changes and their side effects have different
guarantees. A ticket that was created must stay created even if every
email bounces and every websocket is gone. So the engine only mutates
state through the DAOs and returns the side effects as data
(NotifyUsers / PublishEvent). The caller commits, then hands the effects
to EffectDispatcher, which delivers them and logs failures.

HOW:
- Escalation is idempotent: an existing ticket for the alert is returned
  unchanged. The unique constraint on tickets.alert_id backs the
  existence check; a constraint violation rolls back the attempt and
  returns the ticket that won the race.
- Ticket numbers come from an atomic per-month sequence.
- Every ticket field change appends a history entry in the order applied.
- SLA standing is recomputed (degrade-only) before any ticket update.

Callers must commit pending work before calling escalate(): the
conflict path rolls back the session's current transaction.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.config import settings
from arsenal.core.exceptions import (
    InvalidStateTransitionError,
    TicketConflictError,
    UserNotFoundError,
    ValidationError,
)
from arsenal.dao.alert import AlertDAO
from arsenal.dao.system_config import SystemConfigDAO
from arsenal.dao.ticket import TicketDAO, TicketHistoryDAO, VALID_STATUS_TRANSITIONS
from arsenal.dao.user import UserDAO
from arsenal.models.alert import (
    Alert,
    AlertCategory,
    AlertSeverity,
    AlertStatus,
    ALERT_STATUS_ORDER,
)
from arsenal.models.base import utcnow
from arsenal.models.notification import NotificationType
from arsenal.models.system_config import SystemConfig
from arsenal.models.ticket import (
    Ticket,
    TicketHistoryAction,
    TicketPriority,
    TicketStatus,
    SLAStatus,
)
from arsenal.models.user import User, UserRole
from arsenal.services.sla_policy import SLAPolicy, recompute_sla, severity_to_priority


logger = logging.getLogger(__name__)


# ============================================================================
# Realtime topics and events
# ============================================================================

TOPIC_ALERTS = "alerts"
TOPIC_TICKETS = "tickets"

EVENT_ALERT_NEW = "alert:new"
EVENT_ALERT_UPDATED = "alert:updated"
EVENT_TICKET_NEW = "ticket:new"
EVENT_TICKET_UPDATED = "ticket:updated"
EVENT_TICKET_ASSIGNED = "ticket:assigned"


def user_topic(user_id: int) -> str:
    """Private realtime topic of one user."""
    return f"user:{user_id}"


# ============================================================================
# Effects
# ============================================================================


@dataclass
class NotifyUsers:
    """
    Notify users, either explicitly by id or everyone active in `roles`.

    `context` carries the values the email templates need.
    """

    notification_type: NotificationType
    subject: str
    body: str
    user_ids: List[int] = field(default_factory=list)
    roles: List[UserRole] = field(default_factory=list)
    alert_id: Optional[int] = None
    ticket_id: Optional[int] = None
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PublishEvent:
    """Push `payload` as `event` to every subscriber of `topic`."""

    topic: str
    event: str
    payload: Dict[str, Any]


Effect = Union[NotifyUsers, PublishEvent]

T = TypeVar("T")


@dataclass
class EscalationResult(Generic[T]):
    """
    Outcome of an engine operation.

    entity: the alert or ticket after the change
    effects: side effects to dispatch once the transaction is committed
    created: True only when a new ticket was inserted
    """

    entity: T
    effects: List[Effect] = field(default_factory=list)
    created: bool = False


# ============================================================================
# Helpers
# ============================================================================

# Who is on call for each alert severity
ON_CALL_ROLES: Dict[AlertSeverity, List[UserRole]] = {
    AlertSeverity.CRITICAL: [UserRole.OPS, UserRole.ANALYST, UserRole.MANAGER, UserRole.ADMIN],
    AlertSeverity.HIGH: [UserRole.OPS, UserRole.MANAGER, UserRole.ADMIN],
    AlertSeverity.MEDIUM: [UserRole.OPS, UserRole.ANALYST],
    AlertSeverity.LOW: [UserRole.OPS, UserRole.ANALYST],
    AlertSeverity.INFO: [UserRole.OPS, UserRole.ANALYST],
}

# Fields a ticket update may change, in the order they are applied
PATCHABLE_TICKET_FIELDS: Tuple[str, ...] = (
    "status",
    "priority",
    "assigned_to_id",
    "resolution",
    "category",
    "tags",
)

HISTORY_ACTIONS: Dict[str, TicketHistoryAction] = {
    "status": TicketHistoryAction.STATUS_CHANGED,
    "priority": TicketHistoryAction.PRIORITY_CHANGED,
    "assigned_to_id": TicketHistoryAction.ASSIGNED,
    "resolution": TicketHistoryAction.RESOLUTION_UPDATED,
    "category": TicketHistoryAction.CATEGORY_CHANGED,
    "tags": TicketHistoryAction.TAGS_CHANGED,
}


def on_call_roles(severity: AlertSeverity) -> List[UserRole]:
    """Roles notified for an alert (and its ticket) of this severity."""
    return list(ON_CALL_ROLES[AlertSeverity(severity)])


def _history_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def alert_payload(alert: Alert) -> Dict[str, Any]:
    """Realtime payload for an alert."""
    return {
        "id": alert.id,
        "category": alert.category.value,
        "severity": alert.severity.value,
        "status": alert.status.value,
        "title": alert.title,
        "site_code": alert.site_code,
        "created_at": _iso(alert.created_at),
        "acknowledged_at": _iso(alert.acknowledged_at),
        "resolved_at": _iso(alert.resolved_at),
    }


def ticket_payload(ticket: Ticket) -> Dict[str, Any]:
    """Realtime payload for a ticket."""
    return {
        "id": ticket.id,
        "ticket_number": ticket.ticket_number,
        "alert_id": ticket.alert_id,
        "title": ticket.title,
        "status": ticket.status.value,
        "priority": ticket.priority.value,
        "category": ticket.category.value if ticket.category else None,
        "sla_status": ticket.sla_status.value,
        "sla_deadline": _iso(ticket.sla_deadline),
        "assigned_to_id": ticket.assigned_to_id,
        "updated_at": _iso(ticket.updated_at),
    }


def ticket_updated_events(ticket: Ticket) -> List[PublishEvent]:
    """ticket:updated for the shared topic and, when assigned, the assignee's own."""
    payload = ticket_payload(ticket)
    events = [PublishEvent(TOPIC_TICKETS, EVENT_TICKET_UPDATED, payload)]
    if ticket.assigned_to_id is not None:
        events.append(PublishEvent(user_topic(ticket.assigned_to_id), EVENT_TICKET_UPDATED, payload))
    return events


# ============================================================================
# Engine
# ============================================================================


class EscalationEngine:
    """
    Alert escalation and ticket lifecycle rules.

    Example:
        engine = await EscalationEngine.for_session(db)
        result = await engine.on_alert_created(alert)
        await db.commit()
        await EffectDispatcher(db).dispatch(result.effects)
    """

    def __init__(
        self,
        session: AsyncSession,
        policy: Optional[SLAPolicy] = None,
        ticket_number_prefix: Optional[str] = None,
    ):
        """
        Args:
            session: Database session (transaction owned by the caller)
            policy: SLA policy for this operation (defaults if omitted)
            ticket_number_prefix: Prefix of ticket numbers (Settings default)
        """
        self.session = session
        self.policy = policy or SLAPolicy()
        self.ticket_number_prefix = ticket_number_prefix or settings.TICKET_NUMBER_PREFIX
        self.alert_dao = AlertDAO(session)
        self.ticket_dao = TicketDAO(session)
        self.history_dao = TicketHistoryDAO(session)
        self.user_dao = UserDAO(User, session)

    @classmethod
    async def for_session(cls, session: AsyncSession) -> "EscalationEngine":
        """Build an engine with the SLA policy currently configured."""
        policy = await SystemConfigDAO(SystemConfig, session).get_sla_policy()
        return cls(session, policy)

    # =========================================================================
    # Alerts
    # =========================================================================

    def announce_alert(self, alert: Alert) -> List[Effect]:
        """
        Side effects of a newly stored alert (notification + realtime).

        Kept apart from escalate() so that a manual escalation never
        re-announces the alert.
        """
        return [
            NotifyUsers(
                notification_type=NotificationType.ALERT,
                subject=f"[{alert.severity.value}] {alert.title}",
                body=alert.description,
                roles=on_call_roles(alert.severity),
                alert_id=alert.id,
                context={
                    "kind": "alert",
                    "severity": alert.severity.value,
                    "category": alert.category.value,
                    "title": alert.title,
                    "description": alert.description,
                    "site_code": alert.site_code,
                    "detected_value": alert.detected_value,
                    "expected_value": alert.expected_value,
                    "deviation_percent": alert.deviation_percent,
                },
            ),
            PublishEvent(TOPIC_ALERTS, EVENT_ALERT_NEW, alert_payload(alert)),
        ]

    async def on_alert_created(
        self,
        alert: Alert,
        now: Optional[datetime] = None,
    ) -> EscalationResult[Optional[Ticket]]:
        """
        Announce a newly stored alert and escalate it if CRITICAL or HIGH.

        Returns:
            Result whose entity is the alert's ticket (None when the
            severity doesn't escalate); effects always start with the
            alert announcement
        """
        effects = self.announce_alert(alert)
        if not alert.is_escalatable:
            logger.debug(f"Alert {alert.id} ({alert.severity.value}) below escalation threshold")
            return EscalationResult(None, effects)
        result = await self.escalate(alert, now=now)
        result.effects = effects + result.effects
        return result

    async def escalate(
        self,
        alert: Alert,
        now: Optional[datetime] = None,
        actor_id: Optional[int] = None,
    ) -> EscalationResult[Ticket]:
        """
        Create the ticket for an alert, or return the one that exists.

        A second escalation of the same alert is a no-op: the existing
        ticket is returned unchanged, with no effects, even if the alert
        text has been edited since.
        """
        now = now or utcnow()
        # Read everything needed up front; the conflict path expires the alert.
        alert_id = alert.id
        severity = AlertSeverity(alert.severity)
        title = alert.title
        description = alert.description
        category = alert.category

        existing = await self.ticket_dao.get_by_alert_id(alert_id)
        if existing is not None:
            logger.info(f"Alert {alert_id} already escalated to {existing.ticket_number}")
            return EscalationResult(existing)

        priority = severity_to_priority(severity)
        try:
            ticket = await self._create_ticket(
                title=title,
                description=description,
                priority=priority,
                now=now,
                alert_id=alert_id,
                category=category,
                created_by_id=actor_id,
            )
        except TicketConflictError:
            await self.session.rollback()
            existing = await self.ticket_dao.get_by_alert_id(alert_id)
            if existing is None:
                raise
            logger.info(
                f"Concurrent escalation of alert {alert_id}; returning {existing.ticket_number}"
            )
            return EscalationResult(existing)

        logger.info(
            f"Escalated alert {alert_id} to ticket {ticket.ticket_number} "
            f"(priority={priority.value}, deadline={ticket.sla_deadline.isoformat()})"
        )

        effects: List[Effect] = [
            NotifyUsers(
                notification_type=NotificationType.TICKET_CREATED,
                subject=f"Ticket created: {ticket.ticket_number}",
                body=f"{ticket.title} (priority {ticket.priority.value})",
                roles=on_call_roles(severity),
                alert_id=alert_id,
                ticket_id=ticket.id,
                context=self._ticket_context(ticket, "created"),
            ),
            PublishEvent(TOPIC_TICKETS, EVENT_TICKET_NEW, ticket_payload(ticket)),
        ]
        return EscalationResult(ticket, effects, created=True)

    async def on_alert_acknowledge(
        self,
        alert_id: int,
        actor_id: int,
        now: Optional[datetime] = None,
    ) -> EscalationResult[Alert]:
        """
        Acknowledge an alert.

        Raises:
            AlertNotFoundError: Unknown alert
            InvalidStateTransitionError: Alert is already past OPEN
        """
        alert = await self.alert_dao.get_or_raise(alert_id)
        alert = await self._transition_alert(alert, AlertStatus.ACKNOWLEDGED, actor_id, now or utcnow())
        return EscalationResult(alert, [self._alert_updated(alert)])

    async def on_alert_resolve(
        self,
        alert_id: int,
        actor_id: int,
        resolution: str,
        now: Optional[datetime] = None,
    ) -> EscalationResult[Alert]:
        """
        Resolve an alert with a resolution note.

        Raises:
            ValidationError: Resolution text is missing or blank
            AlertNotFoundError: Unknown alert
            InvalidStateTransitionError: Alert is already resolved or closed
        """
        resolution = self._require_resolution(resolution)
        alert = await self.alert_dao.get_or_raise(alert_id)
        alert = await self._transition_alert(
            alert, AlertStatus.RESOLVED, actor_id, now or utcnow(), resolution=resolution
        )
        return EscalationResult(alert, [self._alert_updated(alert)])

    async def on_alert_close(
        self,
        alert_id: int,
        actor_id: int,
        now: Optional[datetime] = None,
    ) -> EscalationResult[Alert]:
        """
        Force an alert to CLOSED (the only form of alert deletion).

        Closing an already closed alert changes nothing and emits nothing.
        """
        alert = await self.alert_dao.get_or_raise(alert_id)
        if alert.status == AlertStatus.CLOSED:
            return EscalationResult(alert)
        alert = await self.alert_dao.update_status(
            alert.id, AlertStatus.CLOSED, closed_at=now or utcnow()
        )
        logger.info(f"Alert {alert.id} closed by user {actor_id}")
        return EscalationResult(alert, [self._alert_updated(alert)])

    async def on_alert_update(
        self,
        alert_id: int,
        actor_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[AlertStatus] = None,
        resolution: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> EscalationResult[Alert]:
        """
        Edit alert text and/or move it forward in its lifecycle.

        Status changes follow the same rules as acknowledge/resolve/close;
        CLOSED here is the forced close. Text edits are not propagated to
        an already escalated ticket.
        """
        now = now or utcnow()
        if status == AlertStatus.RESOLVED:
            resolution = self._require_resolution(resolution)

        alert = await self.alert_dao.get_or_raise(alert_id)

        if status is not None and status != AlertStatus.CLOSED:
            alert = await self._transition_alert(
                alert, AlertStatus(status), actor_id, now, resolution=resolution
            )
        elif status == AlertStatus.CLOSED and alert.status != AlertStatus.CLOSED:
            alert = await self.alert_dao.update_status(alert.id, AlertStatus.CLOSED, closed_at=now)

        if title is not None or description is not None:
            alert = await self.alert_dao.update(alert.id, title=title, description=description)

        return EscalationResult(alert, [self._alert_updated(alert)])

    # =========================================================================
    # Tickets
    # =========================================================================

    async def create_manual_ticket(
        self,
        title: str,
        description: str,
        priority: TicketPriority,
        actor_id: int,
        category: Optional[AlertCategory] = None,
        tags: Optional[Sequence[str]] = None,
        assigned_to_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> EscalationResult[Ticket]:
        """
        Open a ticket that isn't tied to an alert.

        Raises:
            UserNotFoundError: Assignee doesn't exist or is inactive
        """
        now = now or utcnow()
        if assigned_to_id is not None:
            await self._require_assignee(assigned_to_id)

        ticket = await self._create_ticket(
            title=title,
            description=description,
            priority=TicketPriority(priority),
            now=now,
            category=category,
            tags=tags,
            created_by_id=actor_id,
            assigned_to_id=assigned_to_id,
        )
        logger.info(f"Ticket {ticket.ticket_number} opened manually by user {actor_id}")

        effects: List[Effect] = [PublishEvent(TOPIC_TICKETS, EVENT_TICKET_NEW, ticket_payload(ticket))]
        if assigned_to_id is not None:
            effects.extend(self._assignment_effects(ticket, assigned_to_id))
        return EscalationResult(ticket, effects, created=True)

    async def on_ticket_update(
        self,
        ticket_id: int,
        patch: Mapping[str, Any],
        actor_id: Optional[int],
        now: Optional[datetime] = None,
    ) -> EscalationResult[Ticket]:
        """
        Apply a partial update to a ticket.

        `patch` holds only the fields the caller wants to change (status,
        priority, assigned_to_id, resolution, category, tags); an
        explicit None for assigned_to_id unassigns.

        Raises:
            ValidationError: Unknown field or null status/priority/tags
            TicketNotFoundError: Unknown ticket
            InvalidStateTransitionError: Status change not allowed
            UserNotFoundError: New assignee doesn't exist or is inactive
        """
        now = now or utcnow()
        unknown = set(patch) - set(PATCHABLE_TICKET_FIELDS)
        if unknown:
            raise ValidationError(
                message=f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )
        for required in ("status", "priority", "tags"):
            if required in patch and patch[required] is None:
                raise ValidationError(message=f"{required} cannot be null", field=required)

        ticket = await self.ticket_dao.get_or_raise(ticket_id)

        # Validate everything before the first write
        new_values: Dict[str, Any] = {}
        for name in PATCHABLE_TICKET_FIELDS:
            if name not in patch:
                continue
            value = self._normalize_ticket_field(name, patch[name])
            if value != getattr(ticket, name):
                new_values[name] = value

        if "status" in new_values:
            self._check_ticket_transition(ticket, new_values["status"])
        if new_values.get("assigned_to_id") is not None:
            await self._require_assignee(new_values["assigned_to_id"])

        _, effects = await self._apply_sla(ticket, now)

        changes: Dict[str, Any] = dict(new_values)
        new_status = new_values.get("status")
        effective_assignee = new_values.get("assigned_to_id", ticket.assigned_to_id)
        if new_status == TicketStatus.RESOLVED:
            changes["resolved_at"] = now
        elif new_status == TicketStatus.CLOSED:
            changes["closed_at"] = now
        elif new_status == TicketStatus.ASSIGNED and effective_assignee is not None:
            changes["assigned_at"] = now
        assignee_changed = (
            "assigned_to_id" in new_values and new_values["assigned_to_id"] is not None
        )
        if assignee_changed:
            changes["assigned_at"] = now

        old_values = {name: getattr(ticket, name) for name in new_values}
        if changes:
            changes["updated_at"] = now
            ticket = await self.ticket_dao.update(ticket.id, **changes)

        for name, value in new_values.items():
            await self.history_dao.create(
                ticket_id=ticket.id,
                action=HISTORY_ACTIONS[name],
                user_id=actor_id,
                field_name=name,
                old_value=_history_value(old_values[name]),
                new_value=_history_value(value),
                created_at=now,
            )

        if new_values:
            logger.info(
                f"Ticket {ticket.ticket_number} updated by user {actor_id}: "
                f"{', '.join(new_values)}"
            )

        if assignee_changed:
            effects.extend(self._assignment_effects(ticket, new_values["assigned_to_id"]))
        effects.extend(ticket_updated_events(ticket))
        return EscalationResult(ticket, effects)

    async def refresh_sla(
        self,
        ticket: Ticket,
        now: Optional[datetime] = None,
    ) -> EscalationResult[Ticket]:
        """
        Persist a worsened SLA standing (used by the periodic sweep).

        Returns:
            Result with a ticket:updated event (and a breach notification
            on entering BREACHED), or no effects if nothing changed
        """
        changed, effects = await self._apply_sla(ticket, now or utcnow())
        if changed:
            effects.extend(ticket_updated_events(ticket))
        return EscalationResult(ticket, effects)

    def project_sla(self, ticket: Ticket, now: Optional[datetime] = None) -> SLAStatus:
        """SLA standing as of `now`, without persisting it."""
        return recompute_sla(ticket, now or utcnow(), self.policy)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _create_ticket(
        self,
        title: str,
        description: str,
        priority: TicketPriority,
        now: datetime,
        alert_id: Optional[int] = None,
        category: Optional[AlertCategory] = None,
        tags: Optional[Sequence[str]] = None,
        created_by_id: Optional[int] = None,
        assigned_to_id: Optional[int] = None,
    ) -> Ticket:
        period = now.strftime("%Y%m")
        sequence = await self.ticket_dao.next_sequence_for_month(period)
        ticket_number = f"{self.ticket_number_prefix}-{period}-{sequence:05d}"

        ticket = await self.ticket_dao.create(
            ticket_number=ticket_number,
            title=title,
            description=description,
            priority=priority,
            sla_deadline=self.policy.compute_deadline(priority, now),
            alert_id=alert_id,
            category=category,
            tags=list(tags or []),
            created_by_id=created_by_id,
            assigned_to_id=assigned_to_id,
            assigned_at=now if assigned_to_id is not None else None,
            created_at=now,
        )

        await self.history_dao.create(
            ticket_id=ticket.id,
            action=TicketHistoryAction.CREATED,
            user_id=created_by_id,
            new_value=ticket_number,
            created_at=now,
        )
        if assigned_to_id is not None:
            await self.history_dao.create(
                ticket_id=ticket.id,
                action=TicketHistoryAction.ASSIGNED,
                user_id=created_by_id,
                field_name="assigned_to_id",
                new_value=str(assigned_to_id),
                created_at=now,
            )
        return ticket

    async def _apply_sla(self, ticket: Ticket, now: datetime) -> Tuple[bool, List[Effect]]:
        """
        Recompute and persist SLA standing.

        Returns:
            (changed, effects) where effects holds the breach notification
        """
        previous = SLAStatus(ticket.sla_status)
        current = recompute_sla(ticket, now, self.policy)
        if current == previous:
            return False, []

        ticket.sla_status = current
        await self.session.flush()
        await self.history_dao.create(
            ticket_id=ticket.id,
            action=TicketHistoryAction.SLA_STATUS_CHANGED,
            field_name="sla_status",
            old_value=previous.value,
            new_value=current.value,
            created_at=now,
        )
        logger.info(f"Ticket {ticket.ticket_number} SLA {previous.value} -> {current.value}")

        effects: List[Effect] = []
        if current == SLAStatus.BREACHED:
            effects.append(
                NotifyUsers(
                    notification_type=NotificationType.SLA_BREACHED,
                    subject=f"Ticket SLA breached: {ticket.ticket_number}",
                    body=f"{ticket.title} missed its {ticket.priority.value} SLA deadline",
                    user_ids=[ticket.assigned_to_id] if ticket.assigned_to_id else [],
                    roles=[] if ticket.assigned_to_id else [UserRole.MANAGER, UserRole.ADMIN],
                    alert_id=ticket.alert_id,
                    ticket_id=ticket.id,
                    context=self._ticket_context(ticket, "SLA breached"),
                )
            )
        return True, effects

    async def _transition_alert(
        self,
        alert: Alert,
        target: AlertStatus,
        actor_id: int,
        now: datetime,
        resolution: Optional[str] = None,
    ) -> Alert:
        current = AlertStatus(alert.status)
        if ALERT_STATUS_ORDER[target] <= ALERT_STATUS_ORDER[current]:
            raise InvalidStateTransitionError(
                message=f"Cannot move alert from {current.value} to {target.value}",
                alert_id=alert.id,
                current_status=current.value,
                requested_status=target.value,
            )

        fields: Dict[str, Any] = {}
        if target == AlertStatus.ACKNOWLEDGED:
            fields = {"acknowledged_at": now, "acknowledged_by_id": actor_id}
        elif target == AlertStatus.RESOLVED:
            fields = {"resolved_at": now, "resolved_by_id": actor_id, "resolution": resolution}
        elif target == AlertStatus.CLOSED:
            fields = {"closed_at": now}

        updated = await self.alert_dao.update_status(alert.id, target, **fields)
        logger.info(f"Alert {updated.id} {current.value} -> {target.value} by user {actor_id}")
        return updated

    def _check_ticket_transition(self, ticket: Ticket, target: TicketStatus) -> None:
        allowed = VALID_STATUS_TRANSITIONS.get(ticket.status, [])
        if target not in allowed:
            raise InvalidStateTransitionError(
                message=f"Cannot move ticket from {ticket.status.value} to {target.value}",
                ticket_id=ticket.id,
                current_status=ticket.status.value,
                requested_status=target.value,
                allowed=[s.value for s in allowed],
            )

    async def _require_assignee(self, user_id: int) -> User:
        users = await self.user_dao.get_active_by_ids([user_id])
        if not users:
            raise UserNotFoundError(
                message=f"Assignee {user_id} not found or inactive",
                user_id=user_id,
            )
        return users[0]

    @staticmethod
    def _require_resolution(resolution: Optional[str]) -> str:
        if resolution is None or not resolution.strip():
            raise ValidationError(
                message="Resolution is required to resolve an alert",
                field="resolution",
            )
        return resolution.strip()

    @staticmethod
    def _normalize_ticket_field(name: str, value: Any) -> Any:
        if value is None:
            return None
        if name == "status":
            return TicketStatus(value)
        if name == "priority":
            return TicketPriority(value)
        if name == "category":
            return AlertCategory(value)
        if name == "tags":
            return [str(tag) for tag in value]
        return value

    def _assignment_effects(self, ticket: Ticket, assignee_id: int) -> List[Effect]:
        return [
            NotifyUsers(
                notification_type=NotificationType.TICKET_ASSIGNED,
                subject=f"Ticket assigned: {ticket.ticket_number}",
                body=f"You have been assigned ticket {ticket.ticket_number}: {ticket.title}",
                user_ids=[assignee_id],
                alert_id=ticket.alert_id,
                ticket_id=ticket.id,
                context=self._ticket_context(ticket, "assigned"),
            ),
            PublishEvent(user_topic(assignee_id), EVENT_TICKET_ASSIGNED, ticket_payload(ticket)),
        ]

    @staticmethod
    def _alert_updated(alert: Alert) -> PublishEvent:
        return PublishEvent(TOPIC_ALERTS, EVENT_ALERT_UPDATED, alert_payload(alert))

    @staticmethod
    def _ticket_context(ticket: Ticket, action: str) -> Dict[str, Any]:
        return {
            "kind": "ticket",
            "action": action,
            "ticket_number": ticket.ticket_number,
            "title": ticket.title,
            "description": ticket.description,
            "priority": ticket.priority.value,
            "status": ticket.status.value,
            "sla_deadline": _iso(ticket.sla_deadline),
        }
