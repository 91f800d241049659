"""
Alert Data Access Object.

WHAT: DAO for alert persistence, listing and statistics.

WHY: Encapsulates all alert database operations with:
1. Filtered, paginated listing
2. Status updates that stamp lifecycle fields in one flush
3. Aggregate counts for the dashboard

HOW: Uses SQLAlchemy 2.0 async. Lifecycle rules (forward-only status)
live in the escalation engine; this DAO only persists.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.models.alert import Alert, AlertCategory, AlertSeverity, AlertStatus
from arsenal.core.exceptions import AlertNotFoundError


class AlertDAO:
    """
    Data Access Object for Alert operations.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize AlertDAO with database session.

        Args:
            session: AsyncSession for database operations
        """
        self.session = session

    async def create(
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
        created_at: Optional[datetime] = None,
    ) -> Alert:
        """
        Create a new alert with status OPEN.

        Returns:
            Created Alert instance
        """
        alert = Alert(
            category=category,
            severity=severity,
            status=AlertStatus.OPEN,
            title=title,
            description=description,
            detected_value=detected_value,
            expected_value=expected_value,
            threshold_value=threshold_value,
            deviation_percent=deviation_percent,
            site_code=site_code,
            extra=extra,
        )
        if created_at is not None:
            alert.created_at = created_at

        self.session.add(alert)
        await self.session.flush()
        await self.session.refresh(alert)

        return alert

    async def get_by_id(self, alert_id: int) -> Optional[Alert]:
        """Get alert by ID."""
        result = await self.session.execute(select(Alert).where(Alert.id == alert_id))
        return result.scalar_one_or_none()

    async def get_or_raise(self, alert_id: int) -> Alert:
        """
        Get alert by ID or raise.

        Raises:
            AlertNotFoundError: If the alert doesn't exist
        """
        alert = await self.get_by_id(alert_id)
        if alert is None:
            raise AlertNotFoundError(
                message=f"Alert {alert_id} not found",
                alert_id=alert_id,
            )
        return alert

    async def list(
        self,
        skip: int = 0,
        limit: int = 20,
        category: Optional[AlertCategory] = None,
        severity: Optional[AlertSeverity] = None,
        status: Optional[AlertStatus] = None,
        site_code: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Tuple[List[Alert], int]:
        """
        List alerts with filtering and pagination.

        Returns:
            Tuple of (alerts list, total count)
        """
        base_query = select(Alert)

        if category is not None:
            base_query = base_query.where(Alert.category == category)
        if severity is not None:
            base_query = base_query.where(Alert.severity == severity)
        if status is not None:
            base_query = base_query.where(Alert.status == status)
        if site_code:
            base_query = base_query.where(Alert.site_code == site_code)
        if start_date is not None:
            base_query = base_query.where(Alert.created_at >= start_date)
        if end_date is not None:
            base_query = base_query.where(Alert.created_at <= end_date)

        count_query = select(func.count()).select_from(base_query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        list_query = (
            base_query.order_by(Alert.created_at.desc(), Alert.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(list_query)
        return list(result.scalars().all()), total

    async def update_status(
        self,
        alert_id: int,
        status: AlertStatus,
        **fields: Any,
    ) -> Alert:
        """
        Set an alert's status together with its lifecycle stamps.

        Args:
            alert_id: Alert ID
            status: New status
            **fields: Stamps to set alongside (acknowledged_at, resolution, ...)

        Returns:
            Updated Alert

        Raises:
            AlertNotFoundError: If the alert doesn't exist
        """
        alert = await self.get_or_raise(alert_id)
        alert.status = status
        for field, value in fields.items():
            setattr(alert, field, value)

        await self.session.flush()
        await self.session.refresh(alert)
        return alert

    async def update(
        self,
        alert_id: int,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Alert:
        """
        Update alert text fields.

        Raises:
            AlertNotFoundError: If the alert doesn't exist
        """
        alert = await self.get_or_raise(alert_id)
        if title is not None:
            alert.title = title
        if description is not None:
            alert.description = description

        await self.session.flush()
        await self.session.refresh(alert)
        return alert

    async def get_stats(self) -> dict:
        """
        Get alert statistics.

        Returns:
            Dictionary with alert counts by status, severity and category
        """
        status_result = await self.session.execute(
            select(Alert.status, func.count(Alert.id)).group_by(Alert.status)
        )
        status_counts = {row[0].value: row[1] for row in status_result}

        severity_result = await self.session.execute(
            select(Alert.severity, func.count(Alert.id))
            .where(Alert.status.in_([AlertStatus.OPEN, AlertStatus.ACKNOWLEDGED]))
            .group_by(Alert.severity)
        )
        open_by_severity = {row[0].value: row[1] for row in severity_result}

        category_result = await self.session.execute(
            select(Alert.category, func.count(Alert.id)).group_by(Alert.category)
        )
        category_counts = {row[0].value: row[1] for row in category_result}

        return {
            "total": sum(status_counts.values()),
            "open_count": status_counts.get(AlertStatus.OPEN.value, 0),
            "by_status": status_counts,
            "open_by_severity": open_by_severity,
            "by_category": category_counts,
        }
