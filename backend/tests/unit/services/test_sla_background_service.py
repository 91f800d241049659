"""
Unit tests for the SLA sweep.

WHAT: The periodic job persists worsening SLA standings, notifies on
breach exactly once and keeps going when one ticket fails.
"""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select

from arsenal.dao.ticket import TicketHistoryDAO
from arsenal.models.notification import Notification, NotificationType
from arsenal.models.ticket import SLAStatus, Ticket, TicketHistoryAction, TicketStatus
from arsenal.services.escalation import EscalationEngine
from arsenal.services.sla_background_service import SLABackgroundService

from tests.factories import TicketFactory


T0 = datetime(2026, 3, 14, 9, 0, 0)


async def reload(session, ticket_id: int) -> Ticket:
    result = await session.execute(
        select(Ticket).where(Ticket.id == ticket_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


class TestCheckAllSLABreaches:
    @pytest.mark.asyncio
    async def test_updates_at_risk_and_breached(self, db_session, session_factory, manager_user):
        at_risk = await TicketFactory.create(db_session, sla_deadline=T0 + timedelta(hours=1))
        breached = await TicketFactory.create(db_session, sla_deadline=T0 - timedelta(minutes=1))
        healthy = await TicketFactory.create(db_session, sla_deadline=T0 + timedelta(hours=12))

        stats = await SLABackgroundService(session_factory=session_factory).check_all_sla_breaches(now=T0)

        assert stats == {"checked": 2, "updated": 2, "at_risk": 1, "breached": 1, "errors": 0}
        assert (await reload(db_session, at_risk.id)).sla_status == SLAStatus.AT_RISK
        assert (await reload(db_session, breached.id)).sla_status == SLAStatus.BREACHED
        assert (await reload(db_session, healthy.id)).sla_status == SLAStatus.ON_TIME

    @pytest.mark.asyncio
    async def test_breach_notifies_once(self, db_session, session_factory, ops_user):
        ticket = await TicketFactory.create(
            db_session, sla_deadline=T0 - timedelta(minutes=1), assigned_to_id=ops_user.id,
            status=TicketStatus.ASSIGNED,
        )
        service = SLABackgroundService(session_factory=session_factory)

        await service.check_all_sla_breaches(now=T0)
        second = await service.check_all_sla_breaches(now=T0 + timedelta(minutes=5))

        assert second["checked"] == 0
        result = await db_session.execute(
            select(Notification).where(Notification.type == NotificationType.SLA_BREACHED)
        )
        notifications = result.scalars().all()
        assert [n.user_id for n in notifications] == [ops_user.id]
        assert notifications[0].ticket_id == ticket.id

        history = await TicketHistoryDAO(db_session).list_for_ticket(ticket.id)
        assert [h.action for h in history] == [TicketHistoryAction.SLA_STATUS_CHANGED]

    @pytest.mark.asyncio
    async def test_skips_resolved_tickets(self, db_session, session_factory):
        await TicketFactory.create(
            db_session, sla_deadline=T0 - timedelta(hours=3), status=TicketStatus.RESOLVED
        )

        stats = await SLABackgroundService(session_factory=session_factory).check_all_sla_breaches(now=T0)

        assert stats["checked"] == 0

    @pytest.mark.asyncio
    async def test_failure_on_one_ticket_does_not_stop_sweep(self, db_session, session_factory):
        first = await TicketFactory.create(db_session, sla_deadline=T0 - timedelta(hours=2))
        second = await TicketFactory.create(db_session, sla_deadline=T0 - timedelta(hours=1))

        real_refresh = EscalationEngine.refresh_sla

        async def flaky_refresh(self, ticket, now=None):
            if ticket.id == first.id:
                raise RuntimeError("lock timeout")
            return await real_refresh(self, ticket, now)

        with patch.object(EscalationEngine, "refresh_sla", flaky_refresh):
            stats = await SLABackgroundService(session_factory=session_factory).check_all_sla_breaches(now=T0)

        assert stats["errors"] == 1
        assert stats["breached"] == 1
        assert (await reload(db_session, first.id)).sla_status == SLAStatus.ON_TIME
        assert (await reload(db_session, second.id)).sla_status == SLAStatus.BREACHED
