"""
Pydantic schemas for system configuration endpoints.

WHY: SLA budgets live in system_config so operators can change them
without a deploy.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SystemConfigResponse(BaseModel):
    id: int
    key: str
    value: str
    description: Optional[str] = None
    category: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SystemConfigUpdate(BaseModel):
    """
    New value for a config key.

    SLA_*_HOURS keys must hold a positive integer.
    """

    value: str = Field(..., min_length=1, max_length=1000)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)

    class Config:
        json_schema_extra = {"example": {"value": "6", "description": "Critical SLA in hours"}}
