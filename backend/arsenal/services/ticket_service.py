"""
Ticket service.

WHAT: Use-case layer behind the /tickets endpoints: manual tickets,
partial updates, comments, history and SLA-aware reads.

WHY: Reads must show the SLA standing as of now even between sweeps,
while writes must go through the escalation engine so history, SLA and
notifications stay consistent.

HOW: Reads project SLA standing with recompute_sla without writing it
back. Writes call the engine, commit, then dispatch effects.
"""

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.dao.alert import AlertDAO
from arsenal.dao.system_config import SystemConfigDAO
from arsenal.dao.ticket import TicketDAO, TicketCommentDAO, TicketHistoryDAO
from arsenal.core.exceptions import ValidationError
from arsenal.models.alert import AlertCategory
from arsenal.models.base import utcnow
from arsenal.models.system_config import SystemConfig
from arsenal.models.ticket import (
    SLAStatus,
    Ticket,
    TicketComment,
    TicketHistory,
    TicketHistoryAction,
    TicketPriority,
)
from arsenal.services.dispatcher import EffectDispatcher
from arsenal.services.escalation import (
    EscalationEngine,
    EscalationResult,
    ticket_updated_events,
)
from arsenal.services.sla_policy import recompute_sla

logger = logging.getLogger(__name__)


class TicketService:
    """
    Ticket use cases.

    Example:
        service = TicketService(db)
        ticket = await service.update_ticket(ticket_id, {"status": "IN_PROGRESS"}, user.id)
    """

    def __init__(self, session: AsyncSession, dispatcher: Optional[EffectDispatcher] = None):
        self.session = session
        self.dispatcher = dispatcher or EffectDispatcher(session)
        self.ticket_dao = TicketDAO(session)
        self.alert_dao = AlertDAO(session)
        self.comment_dao = TicketCommentDAO(session)
        self.history_dao = TicketHistoryDAO(session)

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_ticket(
        self,
        actor_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[TicketPriority] = None,
        alert_id: Optional[int] = None,
        category: Optional[AlertCategory] = None,
        tags: Optional[Sequence[str]] = None,
        assigned_to_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> EscalationResult[Ticket]:
        """
        Open a ticket by hand.

        With `alert_id` this is an escalation of that alert: the alert's
        existing ticket is returned if there is one, and title, priority
        and category come from the alert. Without it, title, description
        and priority are required.

        Raises:
            ValidationError: Missing fields for a manual ticket
            AlertNotFoundError: Unknown alert_id
        """
        engine = await EscalationEngine.for_session(self.session)

        if alert_id is not None:
            alert = await self.alert_dao.get_or_raise(alert_id)
            result = await engine.escalate(alert, now=now, actor_id=actor_id)
        else:
            missing = [
                name
                for name, value in (("title", title), ("description", description), ("priority", priority))
                if value is None
            ]
            if missing:
                raise ValidationError(
                    message=f"Missing required fields: {', '.join(missing)}",
                    fields=missing,
                )
            result = await engine.create_manual_ticket(
                title=title,
                description=description,
                priority=priority,
                actor_id=actor_id,
                category=category,
                tags=tags,
                assigned_to_id=assigned_to_id,
                now=now,
            )

        await self.session.commit()
        await self._dispatch(result)
        return result

    async def update_ticket(
        self,
        ticket_id: int,
        patch: Mapping[str, Any],
        actor_id: int,
        now: Optional[datetime] = None,
    ) -> Ticket:
        engine = await EscalationEngine.for_session(self.session)
        result = await engine.on_ticket_update(ticket_id, patch, actor_id, now)
        await self.session.commit()
        await self._dispatch(result)
        return result.entity

    async def add_comment(
        self,
        ticket_id: int,
        user_id: int,
        comment: str,
        is_internal: bool = False,
        now: Optional[datetime] = None,
    ) -> TicketComment:
        """
        Add a comment and record it in the ticket history.

        Raises:
            ValidationError: Blank comment
            TicketNotFoundError: Unknown ticket
        """
        if not comment or not comment.strip():
            raise ValidationError(message="Comment cannot be empty", field="comment")

        ticket = await self.ticket_dao.get_or_raise(ticket_id)
        entry = await self.comment_dao.create(
            ticket_id=ticket.id,
            user_id=user_id,
            comment=comment.strip(),
            is_internal=is_internal,
        )
        await self.history_dao.create(
            ticket_id=ticket.id,
            action=TicketHistoryAction.COMMENT_ADDED,
            user_id=user_id,
            new_value=str(entry.id),
            created_at=now or utcnow(),
        )
        await self.session.commit()

        await self.dispatcher.dispatch(ticket_updated_events(ticket))
        return entry

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_ticket(
        self,
        ticket_id: int,
        now: Optional[datetime] = None,
    ) -> Tuple[Ticket, SLAStatus]:
        """
        Returns:
            (ticket, SLA standing projected at `now`)
        """
        ticket = await self.ticket_dao.get_or_raise(ticket_id)
        policy = await SystemConfigDAO(SystemConfig, self.session).get_sla_policy()
        return ticket, recompute_sla(ticket, now or utcnow(), policy)

    async def list_tickets(
        self,
        page: int = 1,
        limit: int = 20,
        now: Optional[datetime] = None,
        **filters: Any,
    ) -> Tuple[List[Tuple[Ticket, SLAStatus]], int]:
        """
        List tickets with their projected SLA standing.

        The sla_status filter matches the persisted standing.
        """
        tickets, total = await self.ticket_dao.list(skip=(page - 1) * limit, limit=limit, **filters)
        policy = await SystemConfigDAO(SystemConfig, self.session).get_sla_policy()
        now = now or utcnow()
        return [(t, recompute_sla(t, now, policy)) for t in tickets], total

    async def list_comments(self, ticket_id: int, include_internal: bool = True) -> List[TicketComment]:
        await self.ticket_dao.get_or_raise(ticket_id)
        return await self.comment_dao.list_for_ticket(ticket_id, include_internal=include_internal)

    async def list_history(self, ticket_id: int) -> List[TicketHistory]:
        await self.ticket_dao.get_or_raise(ticket_id)
        return await self.history_dao.list_for_ticket(ticket_id)

    async def get_statistics(self) -> dict:
        return await self.ticket_dao.get_stats()

    async def _dispatch(self, result: EscalationResult[Ticket]) -> None:
        # A failed notification rolls the session back and expires the ticket
        if await self.dispatcher.dispatch(result.effects):
            await self.session.refresh(result.entity)
