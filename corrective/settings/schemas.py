from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CorrectiveSettingsDefaults(BaseModel):
    duplicate_window_hours: int = 48
    recurrence_window_days: int = 7
    downtime_qa_threshold_min: int = 60
    duplicate_similarity_threshold: int = 70
    recurrence_similarity_threshold: int = 60
    sla_p1_hours: int = 4
    sla_p2_hours: int = 8
    sla_p3_hours: int = 24
    sla_p4_hours: int = 72
    require_evidence_p1: bool = True
    require_evidence_p2: bool = True
    require_evidence_p3: bool = True
    require_return_confirmation_on_downtime: bool = True
    require_return_confirmation_on_qa: bool = True


class CorrectiveSettingsUpdate(BaseModel):
    duplicate_window_hours: Optional[int] = Field(default=None, ge=1, le=24 * 30)
    recurrence_window_days: Optional[int] = Field(default=None, ge=1, le=365)
    downtime_qa_threshold_min: Optional[int] = Field(default=None, ge=0)
    duplicate_similarity_threshold: Optional[int] = Field(default=None, ge=0, le=100)
    recurrence_similarity_threshold: Optional[int] = Field(default=None, ge=0, le=100)
    sla_p1_hours: Optional[int] = Field(default=None, ge=1)
    sla_p2_hours: Optional[int] = Field(default=None, ge=1)
    sla_p3_hours: Optional[int] = Field(default=None, ge=1)
    sla_p4_hours: Optional[int] = Field(default=None, ge=1)
    require_evidence_p1: Optional[bool] = None
    require_evidence_p2: Optional[bool] = None
    require_evidence_p3: Optional[bool] = None
    require_return_confirmation_on_downtime: Optional[bool] = None
    require_return_confirmation_on_qa: Optional[bool] = None

    model_config = {"extra": "forbid"}


class CorrectiveSettingsResponse(CorrectiveSettingsDefaults):
    tenant_id: int
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
