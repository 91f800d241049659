"""
Unit tests for the escalation engine.

WHAT: Alert-to-ticket escalation, ticket and alert lifecycles, SLA
persistence and the effects each operation returns.

HOW: Runs against the SQLite test database; effects are inspected as
data, nothing is dispatched.
"""

import re
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from arsenal.core.exceptions import (
    InvalidStateTransitionError,
    UserNotFoundError,
    ValidationError,
)
from arsenal.dao.system_config import SystemConfigDAO
from arsenal.dao.ticket import TicketHistoryDAO
from arsenal.models.alert import AlertCategory, AlertSeverity, AlertStatus
from arsenal.models.notification import NotificationType
from arsenal.models.system_config import SystemConfig
from arsenal.models.ticket import (
    SLAStatus,
    Ticket,
    TicketHistoryAction,
    TicketPriority,
    TicketStatus,
)
from arsenal.models.user import UserRole
from arsenal.services.escalation import (
    EVENT_ALERT_NEW,
    EVENT_ALERT_UPDATED,
    EVENT_TICKET_ASSIGNED,
    EVENT_TICKET_NEW,
    EVENT_TICKET_UPDATED,
    EscalationEngine,
    NotifyUsers,
    PublishEvent,
)

from tests.factories import AlertFactory, TicketFactory


T0 = datetime(2026, 3, 14, 9, 0, 0)
TICKET_NUMBER = re.compile(r"^TKT-\d{6}-\d{5}$")


async def ticket_count(session) -> int:
    return (await session.execute(select(func.count()).select_from(Ticket))).scalar_one()


class TestOnAlertCreated:
    """Automatic escalation of new alerts."""

    @pytest.mark.asyncio
    async def test_critical_alert_opens_critical_ticket(self, db_session):
        alert = await AlertFactory.create(db_session, severity=AlertSeverity.CRITICAL)
        engine = await EscalationEngine.for_session(db_session)

        result = await engine.on_alert_created(alert, now=T0)
        await db_session.commit()

        ticket = result.entity
        assert result.created is True
        assert ticket.alert_id == alert.id
        assert ticket.priority == TicketPriority.CRITICAL
        assert ticket.category == AlertCategory.POWER_CONSUMPTION_ANOMALY
        assert ticket.status == TicketStatus.OPEN
        assert ticket.sla_deadline == T0 + timedelta(hours=4)
        assert ticket.sla_status == SLAStatus.ON_TIME
        assert ticket.ticket_number == "TKT-202603-00001"
        assert ticket.title == alert.title

    @pytest.mark.asyncio
    async def test_high_alert_opens_high_ticket(self, db_session):
        alert = await AlertFactory.create(db_session, severity=AlertSeverity.HIGH)
        engine = await EscalationEngine.for_session(db_session)

        result = await engine.on_alert_created(alert, now=T0)

        assert result.entity.priority == TicketPriority.HIGH
        assert result.entity.sla_deadline == T0 + timedelta(hours=8)

    @pytest.mark.asyncio
    async def test_effects_announce_alert_then_ticket(self, db_session):
        alert = await AlertFactory.create(db_session, severity=AlertSeverity.CRITICAL)
        engine = await EscalationEngine.for_session(db_session)

        result = await engine.on_alert_created(alert, now=T0)

        kinds = [
            e.notification_type if isinstance(e, NotifyUsers) else e.event
            for e in result.effects
        ]
        assert kinds == [
            NotificationType.ALERT,
            EVENT_ALERT_NEW,
            NotificationType.TICKET_CREATED,
            EVENT_TICKET_NEW,
        ]
        alert_notice = result.effects[0]
        assert alert_notice.subject == f"[CRITICAL] {alert.title}"
        assert UserRole.OPS in alert_notice.roles
        assert UserRole.MANAGER in alert_notice.roles

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "severity",
        [AlertSeverity.MEDIUM, AlertSeverity.LOW, AlertSeverity.INFO],
    )
    async def test_low_severity_creates_no_ticket(self, db_session, severity):
        alert = await AlertFactory.create(db_session, severity=severity)
        engine = await EscalationEngine.for_session(db_session)

        result = await engine.on_alert_created(alert, now=T0)
        await db_session.commit()

        assert result.entity is None
        assert result.created is False
        assert await ticket_count(db_session) == 0
        # Still announced
        assert [type(e) for e in result.effects] == [NotifyUsers, PublishEvent]

    @pytest.mark.asyncio
    async def test_retry_is_idempotent(self, db_session):
        alert = await AlertFactory.create(db_session, severity=AlertSeverity.CRITICAL)
        engine = await EscalationEngine.for_session(db_session)

        first = await engine.on_alert_created(alert, now=T0)
        await db_session.commit()
        second = await engine.on_alert_created(alert, now=T0 + timedelta(minutes=5))
        await db_session.commit()

        assert first.entity.id == second.entity.id
        assert second.created is False
        assert await ticket_count(db_session) == 1
        assert not any(
            isinstance(e, NotifyUsers) and e.notification_type == NotificationType.TICKET_CREATED
            for e in second.effects
        )

    @pytest.mark.asyncio
    async def test_concurrent_escalation_returns_winner(self, db_session, monkeypatch):
        """
        Two requests both see "no ticket yet"; the loser hits the unique
        constraint and must return the winner's ticket.
        """
        alert = await AlertFactory.create(db_session, severity=AlertSeverity.HIGH)
        engine = await EscalationEngine.for_session(db_session)
        winner = await engine.escalate(alert, now=T0)
        await db_session.commit()

        real_lookup = engine.ticket_dao.get_by_alert_id
        calls = []

        async def stale_lookup(alert_id):
            calls.append(alert_id)
            if len(calls) == 1:
                return None
            return await real_lookup(alert_id)

        monkeypatch.setattr(engine.ticket_dao, "get_by_alert_id", stale_lookup)

        loser = await engine.escalate(alert, now=T0)

        assert loser.created is False
        assert loser.effects == []
        assert loser.entity.id == winner.entity.id
        assert await ticket_count(db_session) == 1

    @pytest.mark.asyncio
    async def test_second_escalation_ignores_edited_alert(self, db_session):
        alert = await AlertFactory.create(db_session, severity=AlertSeverity.CRITICAL)
        engine = await EscalationEngine.for_session(db_session)
        first = await engine.escalate(alert, now=T0)
        await db_session.commit()

        edited = await engine.on_alert_update(alert.id, actor_id=None, title="Edited title")
        await db_session.commit()
        again = await engine.escalate(edited.entity, now=T0)

        assert again.entity.id == first.entity.id
        assert again.entity.title == first.entity.title

    @pytest.mark.asyncio
    async def test_ticket_numbers_are_sequential_per_month(self, db_session):
        engine = await EscalationEngine.for_session(db_session)
        numbers = []
        for _ in range(3):
            alert = await AlertFactory.create(db_session, severity=AlertSeverity.CRITICAL)
            result = await engine.escalate(alert, now=T0)
            await db_session.commit()
            numbers.append(result.entity.ticket_number)

        alert = await AlertFactory.create(db_session, severity=AlertSeverity.CRITICAL)
        april = await engine.escalate(alert, now=datetime(2026, 4, 1, 0, 0))

        assert numbers == ["TKT-202603-00001", "TKT-202603-00002", "TKT-202603-00003"]
        assert april.entity.ticket_number == "TKT-202604-00001"
        assert all(TICKET_NUMBER.match(n) for n in numbers)

    @pytest.mark.asyncio
    async def test_configured_sla_hours_apply(self, db_session):
        await SystemConfigDAO(SystemConfig, db_session).set_value("SLA_CRITICAL_HOURS", "2")
        await db_session.commit()
        alert = await AlertFactory.create(db_session, severity=AlertSeverity.CRITICAL)

        engine = await EscalationEngine.for_session(db_session)
        result = await engine.on_alert_created(alert, now=T0)

        assert result.entity.sla_deadline == T0 + timedelta(hours=2)


class TestManualEscalation:
    @pytest.mark.asyncio
    async def test_low_alert_escalated_by_hand(self, db_session, ops_user):
        alert = await AlertFactory.create(db_session, severity=AlertSeverity.LOW)
        engine = await EscalationEngine.for_session(db_session)

        result = await engine.escalate(alert, now=T0, actor_id=ops_user.id)

        assert result.created is True
        assert result.entity.priority == TicketPriority.LOW
        assert result.entity.sla_deadline == T0 + timedelta(hours=72)
        assert result.entity.created_by_id == ops_user.id
        # Manual escalation never re-announces the alert
        assert not any(isinstance(e, PublishEvent) and e.event == EVENT_ALERT_NEW for e in result.effects)

    @pytest.mark.asyncio
    async def test_manual_ticket_with_assignee(self, db_session, ops_user, manager_user):
        engine = await EscalationEngine.for_session(db_session)

        result = await engine.create_manual_ticket(
            title="Replace rectifier module",
            description="Module 3 reports intermittent faults",
            priority=TicketPriority.HIGH,
            actor_id=manager_user.id,
            tags=["rectifier"],
            assigned_to_id=ops_user.id,
            now=T0,
        )
        await db_session.commit()

        ticket = result.entity
        assert ticket.alert_id is None
        assert ticket.assigned_to_id == ops_user.id
        assert ticket.assigned_at == T0
        assert ticket.tags == ["rectifier"]

        history = await TicketHistoryDAO(db_session).list_for_ticket(ticket.id)
        assert [h.action for h in history] == [TicketHistoryAction.CREATED, TicketHistoryAction.ASSIGNED]

        assigned = [e for e in result.effects if isinstance(e, NotifyUsers)]
        assert assigned[0].notification_type == NotificationType.TICKET_ASSIGNED
        assert assigned[0].user_ids == [ops_user.id]
        assert any(
            isinstance(e, PublishEvent) and e.topic == f"user:{ops_user.id}" and e.event == EVENT_TICKET_ASSIGNED
            for e in result.effects
        )

    @pytest.mark.asyncio
    async def test_manual_ticket_rejects_inactive_assignee(self, db_session, manager_user):
        from tests.factories import UserFactory

        inactive = await UserFactory.create(db_session, is_active=False)
        engine = await EscalationEngine.for_session(db_session)

        with pytest.raises(UserNotFoundError):
            await engine.create_manual_ticket(
                title="t",
                description="d",
                priority=TicketPriority.LOW,
                actor_id=manager_user.id,
                assigned_to_id=inactive.id,
            )
        assert await ticket_count(db_session) == 0


class TestTicketUpdate:
    @pytest.mark.asyncio
    async def test_history_records_each_transition_in_order(self, db_session, ops_user):
        alert = await AlertFactory.create(db_session, severity=AlertSeverity.HIGH)
        engine = await EscalationEngine.for_session(db_session)
        ticket = (await engine.escalate(alert, now=T0)).entity
        await db_session.commit()

        for minutes, status in ((10, "ASSIGNED"), (20, "IN_PROGRESS"), (30, "RESOLVED")):
            await engine.on_ticket_update(
                ticket.id, {"status": status}, ops_user.id, now=T0 + timedelta(minutes=minutes)
            )
            await db_session.commit()

        history = await TicketHistoryDAO(db_session).list_for_ticket(ticket.id)
        transitions = [
            (h.old_value, h.new_value)
            for h in history
            if h.action == TicketHistoryAction.STATUS_CHANGED
        ]
        assert history[0].action == TicketHistoryAction.CREATED
        assert transitions == [
            ("OPEN", "ASSIGNED"),
            ("ASSIGNED", "IN_PROGRESS"),
            ("IN_PROGRESS", "RESOLVED"),
        ]
        assert all(h.user_id == ops_user.id for h in history[1:])

    @pytest.mark.asyncio
    async def test_end_to_end_sla_lifecycle(self, db_session, ops_user):
        alert = await AlertFactory.create(
            db_session,
            severity=AlertSeverity.CRITICAL,
            category=AlertCategory.POWER_CONSUMPTION_ANOMALY,
        )
        engine = await EscalationEngine.for_session(db_session)
        ticket = (await engine.on_alert_created(alert, now=T0)).entity
        await db_session.commit()

        assert ticket.sla_deadline == T0 + timedelta(hours=4)
        assert TICKET_NUMBER.match(ticket.ticket_number)
        assert engine.project_sla(ticket, T0 + timedelta(hours=2, minutes=1)) == SLAStatus.AT_RISK
        assert engine.project_sla(ticket, T0 + timedelta(hours=4, minutes=1)) == SLAStatus.BREACHED

        result = await engine.on_ticket_update(
            ticket.id,
            {"status": "RESOLVED", "resolution": "Rectifier replaced"},
            ops_user.id,
            now=T0 + timedelta(hours=4, minutes=30),
        )
        await db_session.commit()

        resolved = result.entity
        assert resolved.status == TicketStatus.RESOLVED
        assert resolved.sla_status == SLAStatus.BREACHED
        assert resolved.resolved_at == T0 + timedelta(hours=4, minutes=30)
        assert engine.project_sla(resolved, T0 + timedelta(days=90)) == SLAStatus.BREACHED
        assert any(
            isinstance(e, NotifyUsers) and e.notification_type == NotificationType.SLA_BREACHED
            for e in result.effects
        )

    @pytest.mark.asyncio
    async def test_invalid_transition_changes_nothing(self, db_session, ops_user):
        ticket = await TicketFactory.create(db_session, status=TicketStatus.RESOLVED)
        engine = EscalationEngine(db_session)

        with pytest.raises(InvalidStateTransitionError):
            await engine.on_ticket_update(ticket.id, {"status": "OPEN"}, ops_user.id)

        history = await TicketHistoryDAO(db_session).list_for_ticket(ticket.id)
        assert history == []

    @pytest.mark.asyncio
    async def test_closed_ticket_is_terminal(self, db_session, ops_user):
        ticket = await TicketFactory.create(db_session, status=TicketStatus.CLOSED)
        engine = EscalationEngine(db_session)

        with pytest.raises(InvalidStateTransitionError):
            await engine.on_ticket_update(ticket.id, {"status": "IN_PROGRESS"}, ops_user.id)

    @pytest.mark.asyncio
    async def test_unknown_and_null_fields_rejected(self, db_session, ops_user):
        ticket = await TicketFactory.create(db_session)
        engine = EscalationEngine(db_session)

        with pytest.raises(ValidationError):
            await engine.on_ticket_update(ticket.id, {"sla_deadline": T0}, ops_user.id)
        with pytest.raises(ValidationError):
            await engine.on_ticket_update(ticket.id, {"status": None}, ops_user.id)

    @pytest.mark.asyncio
    async def test_priority_change_keeps_deadline(self, db_session, ops_user):
        ticket = await TicketFactory.create(
            db_session, priority=TicketPriority.LOW, sla_deadline=T0 + timedelta(hours=72), created_at=T0
        )
        engine = EscalationEngine(db_session)

        result = await engine.on_ticket_update(
            ticket.id, {"priority": "CRITICAL"}, ops_user.id, now=T0 + timedelta(hours=1)
        )

        assert result.entity.priority == TicketPriority.CRITICAL
        assert result.entity.sla_deadline == T0 + timedelta(hours=72)

    @pytest.mark.asyncio
    async def test_assignment_notifies_assignee(self, db_session, ops_user, manager_user):
        ticket = await TicketFactory.create(db_session, created_at=T0)
        engine = EscalationEngine(db_session)

        result = await engine.on_ticket_update(
            ticket.id, {"assigned_to_id": ops_user.id}, manager_user.id, now=T0 + timedelta(minutes=5)
        )

        assert result.entity.assigned_to_id == ops_user.id
        assert result.entity.assigned_at == T0 + timedelta(minutes=5)
        notice = [e for e in result.effects if isinstance(e, NotifyUsers)]
        assert notice[0].notification_type == NotificationType.TICKET_ASSIGNED
        assert notice[0].user_ids == [ops_user.id]
        updates = [e for e in result.effects if isinstance(e, PublishEvent) and e.event == EVENT_TICKET_UPDATED]
        assert [e.topic for e in updates] == ["tickets", f"user:{ops_user.id}"]

    @pytest.mark.asyncio
    async def test_unassigned_update_goes_to_shared_topic_only(self, db_session, ops_user):
        ticket = await TicketFactory.create(db_session, created_at=T0)
        engine = EscalationEngine(db_session)

        result = await engine.on_ticket_update(ticket.id, {"tags": ["mains"]}, ops_user.id, now=T0)

        assert [(e.topic, e.event) for e in result.effects] == [("tickets", EVENT_TICKET_UPDATED)]

    @pytest.mark.asyncio
    async def test_sla_refresh_reaches_assignee(self, db_session, ops_user):
        ticket = await TicketFactory.create(
            db_session, sla_deadline=T0 + timedelta(hours=1), assigned_to_id=ops_user.id,
            status=TicketStatus.ASSIGNED,
        )
        engine = EscalationEngine(db_session)

        result = await engine.refresh_sla(ticket, now=T0)

        assert [e.topic for e in result.effects] == ["tickets", f"user:{ops_user.id}"]

    @pytest.mark.asyncio
    async def test_unknown_assignee_rejected(self, db_session, manager_user):
        ticket = await TicketFactory.create(db_session)
        engine = EscalationEngine(db_session)

        with pytest.raises(UserNotFoundError):
            await engine.on_ticket_update(ticket.id, {"assigned_to_id": 9999}, manager_user.id)

    @pytest.mark.asyncio
    async def test_no_op_update_writes_no_history(self, db_session, ops_user):
        ticket = await TicketFactory.create(db_session, priority=TicketPriority.HIGH, created_at=T0)
        engine = EscalationEngine(db_session)

        await engine.on_ticket_update(ticket.id, {"priority": "HIGH"}, ops_user.id, now=T0)

        assert await TicketHistoryDAO(db_session).list_for_ticket(ticket.id) == []


class TestRefreshSLA:
    @pytest.mark.asyncio
    async def test_breach_is_persisted_and_notified_once(self, db_session):
        ticket = await TicketFactory.create(db_session, sla_deadline=T0, created_at=T0 - timedelta(hours=24))
        engine = EscalationEngine(db_session)

        first = await engine.refresh_sla(ticket, now=T0 + timedelta(minutes=1))
        await db_session.commit()
        second = await engine.refresh_sla(first.entity, now=T0 + timedelta(hours=1))

        assert first.entity.sla_status == SLAStatus.BREACHED
        breach = [e for e in first.effects if isinstance(e, NotifyUsers)]
        assert breach[0].notification_type == NotificationType.SLA_BREACHED
        # Unassigned tickets go to supervisors
        assert breach[0].roles == [UserRole.MANAGER, UserRole.ADMIN]
        assert second.effects == []

        history = await TicketHistoryDAO(db_session).list_for_ticket(ticket.id)
        assert [(h.action, h.old_value, h.new_value) for h in history] == [
            (TicketHistoryAction.SLA_STATUS_CHANGED, "ON_TIME", "BREACHED")
        ]

    @pytest.mark.asyncio
    async def test_at_risk_publishes_without_notification(self, db_session):
        ticket = await TicketFactory.create(db_session, sla_deadline=T0 + timedelta(hours=1))
        engine = EscalationEngine(db_session)

        result = await engine.refresh_sla(ticket, now=T0)

        assert result.entity.sla_status == SLAStatus.AT_RISK
        assert [type(e) for e in result.effects] == [PublishEvent]


class TestAlertLifecycle:
    @pytest.mark.asyncio
    async def test_acknowledge_stamps_actor(self, db_session, ops_user):
        alert = await AlertFactory.create(db_session)
        engine = EscalationEngine(db_session)

        result = await engine.on_alert_acknowledge(alert.id, ops_user.id, now=T0)

        assert result.entity.status == AlertStatus.ACKNOWLEDGED
        assert result.entity.acknowledged_at == T0
        assert result.entity.acknowledged_by_id == ops_user.id
        assert result.effects[0].event == EVENT_ALERT_UPDATED

    @pytest.mark.asyncio
    async def test_acknowledge_twice_rejected(self, db_session, ops_user):
        alert = await AlertFactory.create(db_session, status=AlertStatus.ACKNOWLEDGED)
        engine = EscalationEngine(db_session)

        with pytest.raises(InvalidStateTransitionError):
            await engine.on_alert_acknowledge(alert.id, ops_user.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resolution", [None, "", "   "])
    async def test_resolve_requires_resolution(self, db_session, ops_user, resolution):
        alert = await AlertFactory.create(db_session)
        engine = EscalationEngine(db_session)

        with pytest.raises(ValidationError):
            await engine.on_alert_resolve(alert.id, ops_user.id, resolution)

        await db_session.refresh(alert)
        assert alert.status == AlertStatus.OPEN

    @pytest.mark.asyncio
    async def test_resolve_from_open(self, db_session, ops_user):
        alert = await AlertFactory.create(db_session)
        engine = EscalationEngine(db_session)

        result = await engine.on_alert_resolve(alert.id, ops_user.id, "  Meter recalibrated ", now=T0)

        assert result.entity.status == AlertStatus.RESOLVED
        assert result.entity.resolution == "Meter recalibrated"
        assert result.entity.resolved_by_id == ops_user.id

    @pytest.mark.asyncio
    async def test_close_is_forced_and_idempotent(self, db_session, admin_user):
        alert = await AlertFactory.create(db_session, status=AlertStatus.ACKNOWLEDGED)
        engine = EscalationEngine(db_session)

        first = await engine.on_alert_close(alert.id, admin_user.id, now=T0)
        second = await engine.on_alert_close(alert.id, admin_user.id)

        assert first.entity.status == AlertStatus.CLOSED
        assert first.entity.closed_at == T0
        assert second.effects == []

    @pytest.mark.asyncio
    async def test_no_way_back_after_close(self, db_session, ops_user):
        alert = await AlertFactory.create(db_session, status=AlertStatus.CLOSED)
        engine = EscalationEngine(db_session)

        with pytest.raises(InvalidStateTransitionError):
            await engine.on_alert_resolve(alert.id, ops_user.id, "too late")
