"""
Pydantic schemas for alert endpoints.

WHAT: Request/response schemas for alert ingestion and lifecycle.

WHY: Enum values are validated here, at the API boundary, so the
escalation engine only ever sees valid severities and categories.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from arsenal.models.alert import Alert, AlertCategory, AlertSeverity, AlertStatus
from arsenal.schemas.common import PageMeta
from arsenal.schemas.ticket import TicketResponse


class AlertCreate(BaseModel):
    """
    Alert ingestion request.

    WHAT: What a detector reports: category, severity, text and the
    measured vs expected values behind the anomaly.
    """

    category: AlertCategory
    severity: AlertSeverity
    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(..., min_length=1)
    detected_value: Optional[float] = None
    expected_value: Optional[float] = None
    threshold_value: Optional[float] = None
    deviation_percent: Optional[float] = None
    site_code: Optional[str] = Field(None, max_length=100, description="Site reference")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Detector-specific details")

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    class Config:
        json_schema_extra = {
            "example": {
                "category": "BATTERY_LOW",
                "severity": "CRITICAL",
                "title": "Battery bank below 20%",
                "description": "Site running on batteries after mains failure",
                "detected_value": 18.5,
                "expected_value": 80.0,
                "threshold_value": 20.0,
                "site_code": "SITE-0042",
            }
        }


class AlertUpdate(BaseModel):
    """
    Partial alert update.

    Status may only move forward (OPEN, ACKNOWLEDGED, RESOLVED, CLOSED);
    RESOLVED requires a resolution.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = Field(None, min_length=1)
    status: Optional[AlertStatus] = None
    resolution: Optional[str] = None


class AlertResolve(BaseModel):
    """Resolve request; the resolution note is mandatory."""

    resolution: str = Field(..., min_length=1, description="How the alert was resolved")


class AlertResponse(BaseModel):
    """Alert as returned by the API, with the id of its ticket if escalated."""

    id: int
    category: AlertCategory
    severity: AlertSeverity
    status: AlertStatus
    title: str
    description: str
    detected_value: Optional[float] = None
    expected_value: Optional[float] = None
    threshold_value: Optional[float] = None
    deviation_percent: Optional[float] = None
    site_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_by_id: Optional[int] = None
    resolved_at: Optional[datetime] = None
    resolved_by_id: Optional[int] = None
    resolution: Optional[str] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    ticket_id: Optional[int] = None

    @classmethod
    def from_alert(cls, alert: Alert, ticket_id: Optional[int] = None) -> "AlertResponse":
        return cls(
            id=alert.id,
            category=alert.category,
            severity=alert.severity,
            status=alert.status,
            title=alert.title,
            description=alert.description,
            detected_value=alert.detected_value,
            expected_value=alert.expected_value,
            threshold_value=alert.threshold_value,
            deviation_percent=alert.deviation_percent,
            site_code=alert.site_code,
            metadata=alert.extra,
            acknowledged_at=alert.acknowledged_at,
            acknowledged_by_id=alert.acknowledged_by_id,
            resolved_at=alert.resolved_at,
            resolved_by_id=alert.resolved_by_id,
            resolution=alert.resolution,
            closed_at=alert.closed_at,
            created_at=alert.created_at,
            updated_at=alert.updated_at,
            ticket_id=ticket_id,
        )


class AlertCreateResponse(BaseModel):
    """Ingestion result: the stored alert and, if escalated, its ticket."""

    alert: AlertResponse
    ticket: Optional[TicketResponse] = None


class AlertListResponse(PageMeta):
    items: List[AlertResponse]


class AlertStatistics(BaseModel):
    total: int
    open_count: int
    by_status: Dict[str, int]
    open_by_severity: Dict[str, int]
    by_category: Dict[str, int]


class EscalationResponse(BaseModel):
    """Manual escalation result; `created` is False when the alert already had a ticket."""

    ticket: TicketResponse
    created: bool
