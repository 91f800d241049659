"""
Delivery of escalation side effects.

WHAT: Takes the effects returned by the escalation engine (NotifyUsers,
PublishEvent) and carries them out once the triggering change has been
committed.

WHY: Notifications and realtime pushes are best-effort. A failure in one
effect is logged and skipped; it never raises to the caller and never
prevents the remaining effects from running.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.services.escalation import Effect, NotifyUsers, PublishEvent
from arsenal.services.notification_service import NotificationService
from arsenal.services.realtime import ConnectionManager, realtime_bus

logger = logging.getLogger(__name__)


class EffectDispatcher:
    """
    Dispatches engine effects in order.

    Example:
        result = await engine.on_alert_created(alert)
        await db.commit()
        await EffectDispatcher(db).dispatch(result.effects)
    """

    def __init__(
        self,
        session: AsyncSession,
        notification_service: Optional[NotificationService] = None,
        bus: Optional[ConnectionManager] = None,
    ):
        self.notification_service = notification_service or NotificationService(session)
        self.bus = bus or realtime_bus

    async def dispatch(self, effects: Iterable[Effect]) -> int:
        """
        Run every effect.

        Returns:
            Number of effects that failed
        """
        failures = 0
        for effect in effects:
            try:
                await self._run(effect)
            except Exception as e:
                failures += 1
                logger.error(
                    f"Failed to deliver {type(effect).__name__}: {e}",
                    exc_info=True,
                )
        return failures

    async def _run(self, effect: Effect) -> None:
        if isinstance(effect, NotifyUsers):
            await self.notification_service.notify(
                notification_type=effect.notification_type,
                subject=effect.subject,
                body=effect.body,
                user_ids=effect.user_ids,
                roles=effect.roles,
                alert_id=effect.alert_id,
                ticket_id=effect.ticket_id,
                context=effect.context,
            )
        elif isinstance(effect, PublishEvent):
            await self.bus.publish(effect.topic, effect.event, effect.payload)
        else:
            raise TypeError(f"Unknown effect {effect!r}")
