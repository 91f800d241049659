"""
SLA Background Service.

WHAT: Periodic sweep that persists worsening SLA standings for open
tickets and notifies people when a ticket breaches.

WHY: Reads project SLA standing on the fly, but nobody gets told about a
breach unless something writes it down. The sweep makes AT_RISK and
BREACHED standings durable, records them in ticket history and sends the
breach notification exactly once (standing never improves, so a ticket
enters BREACHED only once).

HOW: Run by APScheduler every SLA_CHECK_INTERVAL_SECONDS:
1. Load the current SLA policy (system_config overrides Settings)
2. Select open, not-yet-breached tickets whose deadline is within the
   risk window
3. For each: recompute standing, commit, then dispatch its effects
4. A failure on one ticket is logged, rolled back and counted; the sweep
   moves on to the next ticket
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.dao.ticket import TicketDAO
from arsenal.db.session import AsyncSessionLocal
from arsenal.models.base import utcnow
from arsenal.models.ticket import SLAStatus
from arsenal.services.dispatcher import EffectDispatcher
from arsenal.services.escalation import EscalationEngine


logger = logging.getLogger(__name__)


class SLABackgroundService:
    """
    Background service for SLA monitoring.

    Example:
        service = SLABackgroundService()
        stats = await service.check_all_sla_breaches()
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        batch_size: int = 500,
    ):
        """
        Initialize SLA background service.

        Args:
            session_factory: Factory for database sessions (the application's
                             session factory by default)
            batch_size: Maximum tickets examined per run
        """
        self._session_factory = session_factory or AsyncSessionLocal
        self._batch_size = batch_size

    async def check_all_sla_breaches(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Main job function: refresh SLA standing of at-risk tickets.

        Returns:
            Dict with counts: checked, updated, at_risk, breached, errors
        """
        now = now or utcnow()
        logger.info("Starting SLA check job")
        start_time = utcnow()

        stats = {"checked": 0, "updated": 0, "at_risk": 0, "breached": 0, "errors": 0}

        async with self._session_factory() as session:
            engine = await EscalationEngine.for_session(session)
            ticket_dao = TicketDAO(session)
            candidates = await ticket_dao.get_sla_sweep_candidates(
                now, engine.policy.risk_window, limit=self._batch_size
            )
            ticket_ids = [ticket.id for ticket in candidates]
            logger.info(f"Checking SLA status for {len(ticket_ids)} tickets")

            dispatcher = EffectDispatcher(session)
            for ticket_id in ticket_ids:
                stats["checked"] += 1
                try:
                    ticket = await ticket_dao.get_or_raise(ticket_id)
                    result = await engine.refresh_sla(ticket, now)
                    await session.commit()
                except Exception as e:
                    await session.rollback()
                    stats["errors"] += 1
                    logger.error(f"Error checking SLA for ticket {ticket_id}: {e}", exc_info=True)
                    continue

                if result.effects:
                    stats["updated"] += 1
                    if result.entity.sla_status == SLAStatus.BREACHED:
                        stats["breached"] += 1
                    elif result.entity.sla_status == SLAStatus.AT_RISK:
                        stats["at_risk"] += 1
                    await dispatcher.dispatch(result.effects)

        elapsed = (utcnow() - start_time).total_seconds()
        logger.info(
            f"SLA check completed in {elapsed:.2f}s. "
            f"Updated: {stats['updated']}, At risk: {stats['at_risk']}, "
            f"Breached: {stats['breached']}, Errors: {stats['errors']}"
        )
        return stats


# Singleton instance for the scheduler
_sla_service: Optional[SLABackgroundService] = None


def get_sla_service() -> SLABackgroundService:
    """Get or create SLA background service instance."""
    global _sla_service
    if _sla_service is None:
        _sla_service = SLABackgroundService()
    return _sla_service
