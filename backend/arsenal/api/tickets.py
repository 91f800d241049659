"""
Ticket management API endpoints.

WHAT: RESTful API for alert tickets.

WHY: Tickets carry the work an alert causes:
1. Priority-based SLA deadlines with live standing
2. Status workflow validated against a transition table
3. Comment threading with internal notes
4. Full change history

HOW: FastAPI router over TicketService. Reads report SLA standing as of
the request time; mutations require OPS, ANALYST, MANAGER or ADMIN.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.deps import get_current_user, require_operator
from arsenal.db.session import get_db
from arsenal.models.alert import AlertCategory
from arsenal.models.ticket import SLAStatus, TicketPriority, TicketStatus
from arsenal.models.user import User, UserRole
from arsenal.schemas.common import page_count
from arsenal.schemas.ticket import (
    CommentCreate,
    CommentResponse,
    HistoryResponse,
    TicketCreate,
    TicketListResponse,
    TicketResponse,
    TicketStatistics,
    TicketUpdate,
)
from arsenal.services.ticket_service import TicketService


router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create ticket",
    description="Open a ticket by hand, or escalate an alert when alert_id is given",
)
async def create_ticket(
    data: TicketCreate,
    response: Response,
    current_user: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
) -> TicketResponse:
    """
    Create a ticket.

    Returns 201 for a new ticket and 200 when alert_id already had one.

    Raises:
        ValidationError (400): Missing title/description/priority without alert_id
        AlertNotFoundError (404): Unknown alert_id
        UserNotFoundError (404): Unknown or inactive assignee
    """
    result = await TicketService(db).create_ticket(
        actor_id=current_user.id,
        title=data.title,
        description=data.description,
        priority=data.priority,
        alert_id=data.alert_id,
        category=data.category,
        tags=data.tags,
        assigned_to_id=data.assigned_to_id,
    )
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return TicketResponse.from_ticket(result.entity)


@router.get(
    "",
    response_model=TicketListResponse,
    summary="List tickets",
)
async def list_tickets(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status_filter: Optional[TicketStatus] = Query(default=None, alias="status"),
    priority: Optional[TicketPriority] = Query(default=None),
    category: Optional[AlertCategory] = Query(default=None),
    sla_status: Optional[SLAStatus] = Query(default=None),
    assigned_to_id: Optional[int] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TicketListResponse:
    """List tickets, newest first, with SLA standing as of now."""
    rows, total = await TicketService(db).list_tickets(
        page=page,
        limit=limit,
        status=status_filter,
        priority=priority,
        category=category,
        sla_status=sla_status,
        assigned_to_id=assigned_to_id,
        start_date=start_date,
        end_date=end_date,
    )
    return TicketListResponse(
        items=[TicketResponse.from_ticket(t, sla) for t, sla in rows],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get(
    "/statistics",
    response_model=TicketStatistics,
    summary="Ticket statistics",
)
async def get_ticket_statistics(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TicketStatistics:
    return TicketStatistics(**await TicketService(db).get_statistics())


@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Get ticket",
)
async def get_ticket(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> TicketResponse:
    ticket, sla = await TicketService(db).get_ticket(ticket_id)
    return TicketResponse.from_ticket(ticket, sla)


@router.patch(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Update ticket",
)
async def update_ticket(
    ticket_id: int,
    data: TicketUpdate,
    current_user: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
) -> TicketResponse:
    """
    Partially update a ticket.

    Raises:
        ValidationError (400): Null status/priority/tags
        InvalidStateTransitionError (400): Status change not allowed
        TicketNotFoundError (404): Unknown ticket
    """
    ticket = await TicketService(db).update_ticket(ticket_id, data.to_patch(), current_user.id)
    return TicketResponse.from_ticket(ticket)


@router.post(
    "/{ticket_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add comment",
)
async def add_comment(
    ticket_id: int,
    data: CommentCreate,
    current_user: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
) -> CommentResponse:
    comment = await TicketService(db).add_comment(
        ticket_id, current_user.id, data.comment, is_internal=data.is_internal
    )
    return CommentResponse.model_validate(comment)


@router.get(
    "/{ticket_id}/comments",
    response_model=List[CommentResponse],
    summary="List comments",
)
async def list_comments(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[CommentResponse]:
    """List comments, oldest first. Internal notes are hidden from viewers."""
    comments = await TicketService(db).list_comments(
        ticket_id, include_internal=current_user.role != UserRole.VIEWER
    )
    return [CommentResponse.model_validate(c) for c in comments]


@router.get(
    "/{ticket_id}/history",
    response_model=List[HistoryResponse],
    summary="Ticket history",
)
async def get_ticket_history(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[HistoryResponse]:
    history = await TicketService(db).list_history(ticket_id)
    return [HistoryResponse.model_validate(h) for h in history]
