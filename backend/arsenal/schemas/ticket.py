"""
Pydantic schemas for ticket endpoints.

WHAT: Request/response schemas for ticket management API.

WHY: Schemas define API contracts for ticket operations:
1. Validate incoming request data including comments
2. Document API for OpenAPI/Swagger
3. Keep explicit nulls distinguishable from omitted fields on PATCH
   (null assignee means "unassign")
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from arsenal.models.alert import AlertCategory
from arsenal.models.ticket import (
    SLAStatus,
    Ticket,
    TicketHistoryAction,
    TicketPriority,
    TicketStatus,
)
from arsenal.schemas.common import PageMeta


def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    cleaned = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


class TicketCreate(BaseModel):
    """
    Manual ticket creation.

    WHAT: Either escalate an alert (alert_id) or open a standalone ticket
    (title, description and priority required).
    """

    alert_id: Optional[int] = Field(None, description="Escalate this alert")
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, min_length=1)
    priority: Optional[TicketPriority] = None
    category: Optional[AlertCategory] = None
    tags: Optional[List[str]] = None
    assigned_to_id: Optional[int] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


class TicketUpdate(BaseModel):
    """
    Partial ticket update (PATCH semantics).

    Only fields present in the request body are applied.
    """

    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assigned_to_id: Optional[int] = None
    resolution: Optional[str] = None
    category: Optional[AlertCategory] = None
    tags: Optional[List[str]] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)

    def to_patch(self) -> Dict[str, Any]:
        """Fields explicitly sent by the client."""
        return self.model_dump(exclude_unset=True)


class TicketResponse(BaseModel):
    """
    Ticket as returned by the API.

    `sla_status` is the standing as of the response time.
    """

    id: int
    ticket_number: str
    alert_id: Optional[int] = None
    title: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    category: Optional[AlertCategory] = None
    tags: List[str] = []
    assigned_to_id: Optional[int] = None
    created_by_id: Optional[int] = None
    sla_deadline: datetime
    sla_status: SLAStatus
    resolution: Optional[str] = None
    assigned_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_ticket(cls, ticket: Ticket, sla_status: Optional[SLAStatus] = None) -> "TicketResponse":
        return cls(
            id=ticket.id,
            ticket_number=ticket.ticket_number,
            alert_id=ticket.alert_id,
            title=ticket.title,
            description=ticket.description,
            status=ticket.status,
            priority=ticket.priority,
            category=ticket.category,
            tags=list(ticket.tags or []),
            assigned_to_id=ticket.assigned_to_id,
            created_by_id=ticket.created_by_id,
            sla_deadline=ticket.sla_deadline,
            sla_status=sla_status or ticket.sla_status,
            resolution=ticket.resolution,
            assigned_at=ticket.assigned_at,
            resolved_at=ticket.resolved_at,
            closed_at=ticket.closed_at,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )


class TicketListResponse(PageMeta):
    items: List[TicketResponse]


class TicketStatistics(BaseModel):
    total: int
    open_count: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    by_sla_status: Dict[str, int]
    sla_breached_count: int


class CommentCreate(BaseModel):
    comment: str = Field(..., min_length=1, max_length=10000)
    is_internal: bool = Field(False, description="Hidden from VIEWER users")


class CommentResponse(BaseModel):
    id: int
    ticket_id: int
    user_id: int
    comment: str
    is_internal: bool
    created_at: datetime

    class Config:
        from_attributes = True


class HistoryResponse(BaseModel):
    id: int
    ticket_id: int
    user_id: Optional[int] = None
    action: TicketHistoryAction
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
