"""
Alert API endpoints.

WHAT: Ingestion, listing and lifecycle of telecom-site alerts.

WHY: Alerts are the entry point of escalation:
1. CRITICAL and HIGH alerts become tickets on ingestion
2. Anything else can be escalated by hand
3. Lifecycle moves forward only (OPEN, ACKNOWLEDGED, RESOLVED, CLOSED)

HOW: Thin FastAPI router over AlertService; role checks via
require_roles. DELETE is a soft delete that closes the alert.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.deps import get_current_user, require_admin, require_operator, require_roles
from arsenal.db.session import get_db
from arsenal.models.alert import AlertCategory, AlertSeverity, AlertStatus
from arsenal.models.user import User, UserRole
from arsenal.schemas.alert import (
    AlertCreate,
    AlertCreateResponse,
    AlertListResponse,
    AlertResolve,
    AlertResponse,
    AlertStatistics,
    AlertUpdate,
    EscalationResponse,
)
from arsenal.schemas.common import page_count
from arsenal.schemas.ticket import TicketResponse
from arsenal.services.alert_service import AlertService


router = APIRouter(prefix="/alerts", tags=["alerts"])

require_ingest = require_roles(UserRole.OPS, UserRole.ANALYST, UserRole.ADMIN)


@router.post(
    "",
    response_model=AlertCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create alert",
    description="Store an alert; CRITICAL and HIGH alerts are escalated to a ticket",
)
async def create_alert(
    data: AlertCreate,
    current_user: User = Depends(require_ingest),
    db: AsyncSession = Depends(get_db),
) -> AlertCreateResponse:
    """
    Ingest an alert.

    Returns:
        The stored alert and, when escalated, its ticket
    """
    alert, ticket = await AlertService(db).create_alert(
        category=data.category,
        severity=data.severity,
        title=data.title,
        description=data.description,
        detected_value=data.detected_value,
        expected_value=data.expected_value,
        threshold_value=data.threshold_value,
        deviation_percent=data.deviation_percent,
        site_code=data.site_code,
        extra=data.metadata,
    )
    return AlertCreateResponse(
        alert=AlertResponse.from_alert(alert, ticket.id if ticket else None),
        ticket=TicketResponse.from_ticket(ticket) if ticket else None,
    )


@router.get(
    "",
    response_model=AlertListResponse,
    summary="List alerts",
)
async def list_alerts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    category: Optional[AlertCategory] = Query(default=None),
    severity: Optional[AlertSeverity] = Query(default=None),
    status_filter: Optional[AlertStatus] = Query(default=None, alias="status"),
    site_code: Optional[str] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AlertListResponse:
    """List alerts, newest first, with the id of each alert's ticket."""
    alerts, total, ticket_ids = await AlertService(db).list_alerts(
        page=page,
        limit=limit,
        category=category,
        severity=severity,
        status=status_filter,
        site_code=site_code,
        start_date=start_date,
        end_date=end_date,
    )
    return AlertListResponse(
        items=[AlertResponse.from_alert(a, ticket_ids.get(a.id)) for a in alerts],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get(
    "/statistics",
    response_model=AlertStatistics,
    summary="Alert statistics",
)
async def get_alert_statistics(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AlertStatistics:
    return AlertStatistics(**await AlertService(db).get_statistics())


@router.get(
    "/{alert_id}",
    response_model=AlertResponse,
    summary="Get alert",
)
async def get_alert(
    alert_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AlertResponse:
    """
    Get one alert.

    Raises:
        AlertNotFoundError (404): Unknown alert
    """
    alert, ticket_id = await AlertService(db).get_alert(alert_id)
    return AlertResponse.from_alert(alert, ticket_id)


@router.patch(
    "/{alert_id}",
    response_model=AlertResponse,
    summary="Update alert",
)
async def update_alert(
    alert_id: int,
    data: AlertUpdate,
    current_user: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
) -> AlertResponse:
    """
    Edit alert text and/or move its status forward.

    Raises:
        ValidationError (400): RESOLVED without a resolution
        InvalidStateTransitionError (400): Backward or repeated status
    """
    service = AlertService(db)
    await service.update(
        alert_id,
        current_user.id,
        title=data.title,
        description=data.description,
        status=data.status,
        resolution=data.resolution,
    )
    alert, ticket_id = await service.get_alert(alert_id)
    return AlertResponse.from_alert(alert, ticket_id)


@router.post(
    "/{alert_id}/acknowledge",
    response_model=AlertResponse,
    summary="Acknowledge alert",
)
async def acknowledge_alert(
    alert_id: int,
    current_user: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
) -> AlertResponse:
    service = AlertService(db)
    await service.acknowledge(alert_id, current_user.id)
    alert, ticket_id = await service.get_alert(alert_id)
    return AlertResponse.from_alert(alert, ticket_id)


@router.post(
    "/{alert_id}/resolve",
    response_model=AlertResponse,
    summary="Resolve alert",
)
async def resolve_alert(
    alert_id: int,
    data: AlertResolve,
    current_user: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
) -> AlertResponse:
    service = AlertService(db)
    await service.resolve(alert_id, current_user.id, data.resolution)
    alert, ticket_id = await service.get_alert(alert_id)
    return AlertResponse.from_alert(alert, ticket_id)


@router.post(
    "/{alert_id}/escalate",
    response_model=EscalationResponse,
    summary="Escalate alert",
    description="Open a ticket for an alert of any severity (no-op if it already has one)",
)
async def escalate_alert(
    alert_id: int,
    current_user: User = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
) -> EscalationResponse:
    result = await AlertService(db).escalate(alert_id, current_user.id)
    return EscalationResponse(
        ticket=TicketResponse.from_ticket(result.entity),
        created=result.created,
    )


@router.delete(
    "/{alert_id}",
    response_model=AlertResponse,
    summary="Close alert",
    description="Soft delete: the alert is moved to CLOSED",
)
async def delete_alert(
    alert_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AlertResponse:
    service = AlertService(db)
    await service.close(alert_id, current_user.id)
    alert, ticket_id = await service.get_alert(alert_id)
    return AlertResponse.from_alert(alert, ticket_id)
