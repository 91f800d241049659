"""
System configuration API endpoints.

WHAT: Read and edit system_config entries, including the SLA budgets.

WHY: Changing an SLA budget takes effect for tickets created after the
change; existing deadlines are never moved.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.deps import require_admin, require_roles
from arsenal.db.session import get_db
from arsenal.dao.system_config import SystemConfigDAO
from arsenal.models.system_config import SystemConfig
from arsenal.models.user import User, UserRole
from arsenal.schemas.system_config import SystemConfigResponse, SystemConfigUpdate


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system-config", tags=["system-config"])


@router.get(
    "",
    response_model=List[SystemConfigResponse],
    summary="List configuration",
)
async def list_config(
    category: Optional[str] = Query(default=None),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER)),
    db: AsyncSession = Depends(get_db),
) -> List[SystemConfigResponse]:
    entries = await SystemConfigDAO(SystemConfig, db).list_all(category)
    return [SystemConfigResponse.model_validate(e) for e in entries]


@router.put(
    "/{key}",
    response_model=SystemConfigResponse,
    summary="Set configuration value",
)
async def set_config(
    key: str,
    data: SystemConfigUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> SystemConfigResponse:
    """
    Create or update a config entry.

    Raises:
        ValidationError (400): Non-positive or non-integer SLA hours
    """
    entry = await SystemConfigDAO(SystemConfig, db).set_value(
        key,
        data.value,
        description=data.description,
        category=data.category,
    )
    await db.commit()
    logger.info(f"Config {key} set to {data.value!r} by user {current_user.id}")
    return SystemConfigResponse.model_validate(entry)
