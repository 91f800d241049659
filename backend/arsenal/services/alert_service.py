"""
Alert service.

WHAT: Use-case layer behind the /alerts endpoints: ingest an alert,
escalate it, and move it through its lifecycle.

WHY: Each operation has the same shape: change state through the
escalation engine, commit, then deliver the side effects. Keeping that
sequence in one place means no route can forget the commit-before-dispatch
ordering.

HOW: The alert is committed before escalation starts, so a lost
escalation race (which rolls back the session) can never take the new
alert with it. Store errors propagate to the caller; effect delivery
failures are handled by EffectDispatcher.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.dao.alert import AlertDAO
from arsenal.dao.ticket import TicketDAO
from arsenal.models.alert import Alert, AlertCategory, AlertSeverity, AlertStatus
from arsenal.models.ticket import Ticket
from arsenal.services.dispatcher import EffectDispatcher
from arsenal.services.escalation import EscalationEngine, EscalationResult

logger = logging.getLogger(__name__)


class AlertService:
    """
    Alert use cases.

    Example:
        service = AlertService(db)
        alert, ticket = await service.create_alert(
            category=AlertCategory.BATTERY_LOW,
            severity=AlertSeverity.CRITICAL,
            title="Battery bank below 20%",
            description="Site SITE-0042 running on batteries",
        )
    """

    def __init__(self, session: AsyncSession, dispatcher: Optional[EffectDispatcher] = None):
        self.session = session
        self.dispatcher = dispatcher or EffectDispatcher(session)
        self.alert_dao = AlertDAO(session)
        self.ticket_dao = TicketDAO(session)

    async def create_alert(
        self,
        category: AlertCategory,
        severity: AlertSeverity,
        title: str,
        description: str,
        detected_value: Optional[float] = None,
        expected_value: Optional[float] = None,
        threshold_value: Optional[float] = None,
        deviation_percent: Optional[float] = None,
        site_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[Alert, Optional[Ticket]]:
        """
        Store a new alert, announce it and escalate it when severe enough.

        Returns:
            (alert, ticket) where ticket is None for MEDIUM/LOW/INFO alerts
        """
        alert = await self.alert_dao.create(
            category=category,
            severity=severity,
            title=title,
            description=description,
            detected_value=detected_value,
            expected_value=expected_value,
            threshold_value=threshold_value,
            deviation_percent=deviation_percent,
            site_code=site_code,
            extra=extra,
            created_at=now,
        )
        await self.session.commit()
        alert_id = alert.id
        logger.info(
            f"Alert {alert_id} created: {severity.value} {category.value}",
            extra={"alert_id": alert_id, "site_code": site_code},
        )

        engine = await EscalationEngine.for_session(self.session)
        try:
            result = await engine.on_alert_created(alert, now=now)
            await self.session.commit()
        except Exception:
            logger.error(f"Escalation of alert {alert_id} failed; alert is stored", exc_info=True)
            raise

        ticket = result.entity
        if await self.dispatcher.dispatch(result.effects) and ticket is not None:
            await self.session.refresh(ticket)
        alert = await self.alert_dao.get_or_raise(alert_id)
        return alert, ticket

    async def escalate(
        self,
        alert_id: int,
        actor_id: int,
        now: Optional[datetime] = None,
    ) -> EscalationResult[Ticket]:
        """
        Manually escalate an alert of any severity.

        Returns:
            Result whose `created` flag tells whether a new ticket was opened

        Raises:
            AlertNotFoundError: Unknown alert
        """
        alert = await self.alert_dao.get_or_raise(alert_id)
        engine = await EscalationEngine.for_session(self.session)
        result = await engine.escalate(alert, now=now, actor_id=actor_id)
        await self.session.commit()
        if await self.dispatcher.dispatch(result.effects):
            await self.session.refresh(result.entity)
        return result

    async def acknowledge(self, alert_id: int, actor_id: int, now: Optional[datetime] = None) -> Alert:
        engine = EscalationEngine(self.session)
        return await self._finish(await engine.on_alert_acknowledge(alert_id, actor_id, now))

    async def resolve(
        self,
        alert_id: int,
        actor_id: int,
        resolution: str,
        now: Optional[datetime] = None,
    ) -> Alert:
        engine = EscalationEngine(self.session)
        return await self._finish(await engine.on_alert_resolve(alert_id, actor_id, resolution, now))

    async def close(self, alert_id: int, actor_id: int, now: Optional[datetime] = None) -> Alert:
        """Soft delete: force the alert to CLOSED."""
        engine = EscalationEngine(self.session)
        return await self._finish(await engine.on_alert_close(alert_id, actor_id, now))

    async def update(
        self,
        alert_id: int,
        actor_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[AlertStatus] = None,
        resolution: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Alert:
        engine = EscalationEngine(self.session)
        result = await engine.on_alert_update(
            alert_id,
            actor_id,
            title=title,
            description=description,
            status=status,
            resolution=resolution,
            now=now,
        )
        return await self._finish(result)

    async def get_alert(self, alert_id: int) -> Tuple[Alert, Optional[int]]:
        """
        Returns:
            (alert, id of its ticket or None)
        """
        alert = await self.alert_dao.get_or_raise(alert_id)
        ticket = await self.ticket_dao.get_by_alert_id(alert_id)
        return alert, ticket.id if ticket else None

    async def list_alerts(
        self,
        page: int = 1,
        limit: int = 20,
        **filters: Any,
    ) -> Tuple[List[Alert], int, Dict[int, int]]:
        """
        Returns:
            (alerts, total, {alert_id: ticket_id})
        """
        alerts, total = await self.alert_dao.list(skip=(page - 1) * limit, limit=limit, **filters)
        ticket_ids = await self.ticket_dao.get_ticket_ids_for_alerts(a.id for a in alerts)
        return alerts, total, ticket_ids

    async def get_statistics(self) -> dict:
        return await self.alert_dao.get_stats()

    async def _finish(self, result: EscalationResult[Alert]) -> Alert:
        await self.session.commit()
        # A failed notification rolls the session back and expires the alert
        if await self.dispatcher.dispatch(result.effects):
            await self.session.refresh(result.entity)
        return result.entity
