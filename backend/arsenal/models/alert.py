"""
Alert model for detected site anomalies.

WHAT: SQLAlchemy model for alerts raised against telecom sites (power
consumption anomalies, billing mismatches, backup power health, ...).

WHY: Alerts are the entry point of the escalation flow. Severe alerts
spawn exactly one ticket, and every alert moves through a forward-only
status lifecycle:
OPEN -> ACKNOWLEDGED -> RESOLVED -> CLOSED

HOW: Uses SQLAlchemy 2.0 typed mappings with enums for category,
severity and status. Alerts are never deleted; "delete" is a forced
transition to CLOSED.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    Integer,
    String,
    Text,
    Float,
    DateTime,
    ForeignKey,
    JSON,
    Enum as SQLEnum,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from arsenal.models.base import Base, utcnow


# ============================================================================
# Enums
# ============================================================================


class AlertCategory(str, Enum):
    """
    What kind of condition the detector found.

    Ticket categories reuse these values so a ticket escalated from an
    alert is filed under the alert's category.
    """

    POWER_CONSUMPTION_ANOMALY = "POWER_CONSUMPTION_ANOMALY"
    BILLING_MISMATCH = "BILLING_MISMATCH"
    SETTLEMENT_INVALID = "SETTLEMENT_INVALID"
    BACKUP_CRITICAL = "BACKUP_CRITICAL"
    BATTERY_LOW = "BATTERY_LOW"
    OUTAGE_PREDICTED = "OUTAGE_PREDICTED"
    LICENSE_EXPIRED = "LICENSE_EXPIRED"
    MONITORING_MISMATCH = "MONITORING_MISMATCH"


class AlertSeverity(str, Enum):
    """
    Alert severity.

    WHY: CRITICAL and HIGH alerts escalate to tickets automatically.
    Severity also decides which roles are notified.
    """

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"


class AlertStatus(str, Enum):
    """
    Alert lifecycle status (forward-only).
    """

    OPEN = "OPEN"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


# Position of each status in the lifecycle; transitions must strictly increase.
ALERT_STATUS_ORDER = {
    AlertStatus.OPEN: 0,
    AlertStatus.ACKNOWLEDGED: 1,
    AlertStatus.RESOLVED: 2,
    AlertStatus.CLOSED: 3,
}


# ============================================================================
# Alert Model
# ============================================================================


class Alert(Base):
    """
    A detected anomaly or condition requiring attention.
    """

    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    category: Mapped[AlertCategory] = mapped_column(
        SQLEnum(AlertCategory, name="alertcategory"), nullable=False
    )
    severity: Mapped[AlertSeverity] = mapped_column(
        SQLEnum(AlertSeverity, name="alertseverity"), nullable=False
    )
    status: Mapped[AlertStatus] = mapped_column(
        SQLEnum(AlertStatus, name="alertstatus"),
        default=AlertStatus.OPEN,
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Measurements that triggered the alert (all optional)
    detected_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    expected_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    threshold_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    deviation_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Free-form site reference (site inventory lives outside this service)
    site_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    extra: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata", JSON, nullable=True
    )

    # Lifecycle stamps
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    acknowledged_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    resolved_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    resolution: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_alerts_status", "status"),
        Index("ix_alerts_severity", "severity"),
        Index("ix_alerts_category", "category"),
        Index("ix_alerts_site_code", "site_code"),
        Index("ix_alerts_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Alert(id={self.id}, severity={self.severity.value}, status={self.status.value})>"

    @property
    def is_escalatable(self) -> bool:
        """CRITICAL and HIGH alerts get a ticket automatically."""
        return self.severity in (AlertSeverity.CRITICAL, AlertSeverity.HIGH)
