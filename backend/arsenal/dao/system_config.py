"""
System configuration Data Access Object.

WHY: SLA budgets are editable rows in system_config. This DAO resolves
them, together with the defaults from Settings, into one SLAPolicy per
operation so the escalation engine never reads configuration ad hoc.
"""

import logging
from typing import Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.config import settings
from arsenal.core.exceptions import ValidationError
from arsenal.dao.base import BaseDAO
from arsenal.models.system_config import SystemConfig
from arsenal.models.ticket import TicketPriority
from arsenal.services.sla_policy import SLAPolicy


logger = logging.getLogger(__name__)


# Config key holding the SLA budget (hours) for each priority
SLA_CONFIG_KEYS: Dict[TicketPriority, str] = {
    TicketPriority.CRITICAL: "SLA_CRITICAL_HOURS",
    TicketPriority.HIGH: "SLA_HIGH_HOURS",
    TicketPriority.MEDIUM: "SLA_MEDIUM_HOURS",
    TicketPriority.LOW: "SLA_LOW_HOURS",
}


def default_sla_hours() -> Dict[TicketPriority, int]:
    """SLA budgets from Settings, used when no config row overrides them."""
    return {
        TicketPriority.CRITICAL: settings.SLA_CRITICAL_HOURS,
        TicketPriority.HIGH: settings.SLA_HIGH_HOURS,
        TicketPriority.MEDIUM: settings.SLA_MEDIUM_HOURS,
        TicketPriority.LOW: settings.SLA_LOW_HOURS,
    }


class SystemConfigDAO(BaseDAO[SystemConfig]):
    """
    Data Access Object for SystemConfig model.
    """

    def __init__(self, model: type[SystemConfig], session: AsyncSession):
        """Initialize SystemConfigDAO with model and session."""
        super().__init__(model, session)

    async def get_by_key(self, key: str) -> Optional[SystemConfig]:
        """Get a config entry by key."""
        result = await self.session.execute(select(SystemConfig).where(SystemConfig.key == key))
        return result.scalar_one_or_none()

    async def list_all(self, category: Optional[str] = None) -> List[SystemConfig]:
        """List config entries, optionally by category."""
        query = select(SystemConfig)
        if category:
            query = query.where(SystemConfig.category == category)
        result = await self.session.execute(query.order_by(SystemConfig.key))
        return list(result.scalars().all())

    async def set_value(
        self,
        key: str,
        value: str,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> SystemConfig:
        """
        Create or update a config entry.

        Raises:
            ValidationError: If an SLA key is given a non-positive or
                non-integer value
        """
        if key in SLA_CONFIG_KEYS.values():
            try:
                hours = int(value)
            except ValueError:
                hours = 0
            if hours <= 0:
                raise ValidationError(
                    message=f"{key} must be a positive integer number of hours",
                    key=key,
                    value=value,
                )
            category = category or "TICKET"

        entry = await self.get_by_key(key)
        if entry is None:
            return await self.create(
                key=key,
                value=value,
                description=description,
                category=category,
            )

        entry.value = value
        if description is not None:
            entry.description = description
        if category is not None:
            entry.category = category
        await self.session.flush()
        await self.session.refresh(entry)
        return entry

    async def get_sla_hours(self, priority: TicketPriority) -> int:
        """SLA budget in hours for one priority."""
        policy = await self.get_sla_policy()
        return policy.hours_for(priority)

    async def get_sla_policy(self) -> SLAPolicy:
        """
        Resolve the SLA policy for one operation.

        WHY: Rows override Settings defaults key by key. A malformed row
        is logged and ignored so a bad edit can't stop ticket creation.
        """
        hours = default_sla_hours()
        result = await self.session.execute(
            select(SystemConfig).where(SystemConfig.key.in_(list(SLA_CONFIG_KEYS.values())))
        )
        rows = {row.key: row.value for row in result.scalars().all()}

        for priority, key in SLA_CONFIG_KEYS.items():
            raw = rows.get(key)
            if raw is None:
                continue
            try:
                value = int(raw)
            except ValueError:
                logger.warning(f"Ignoring non-integer SLA config {key}={raw!r}")
                continue
            if value <= 0:
                logger.warning(f"Ignoring non-positive SLA config {key}={raw!r}")
                continue
            hours[priority] = value

        return SLAPolicy.from_hours(hours, risk_window_hours=settings.SLA_RISK_WINDOW_HOURS)
