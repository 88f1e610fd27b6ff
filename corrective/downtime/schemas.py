from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from corrective.core.enums import DowntimeCategory, DowntimeState


class DowntimeStart(BaseModel):
    failure_occurrence_id: int
    work_order_id: Optional[int] = None
    asset_id: int
    caused_downtime: bool = True
    category: DowntimeCategory = DowntimeCategory.UNPLANNED
    reason: Optional[str] = None
    production_impact: Optional[str] = None


class ReturnToProductionPayload(BaseModel):
    work_order_id: Optional[int] = None
    notes: Optional[str] = None


class ReturnToProductionResult(BaseModel):
    downtime_log_id: int
    total_minutes: int
    ended_at: datetime


class DowntimeLogResponse(BaseModel):
    id: int
    failure_occurrence_id: int
    work_order_id: Optional[int] = None
    asset_id: int
    started_at: datetime
    ended_at: Optional[datetime] = None
    category: DowntimeCategory
    reason: Optional[str] = None
    production_impact: Optional[str] = None
    return_confirmed_by_id: Optional[int] = None
    return_confirmed_at: Optional[datetime] = None
    total_minutes: Optional[int] = None
    state: DowntimeState

    model_config = {"from_attributes": True}


class DowntimePage(BaseModel):
    items: list[DowntimeLogResponse]
    total: int
    has_more: bool


class DowntimeTotal(BaseModel):
    total_minutes: int
    closed_minutes: int
    open_minutes: int
    count: int


class MachineDowntimeStats(BaseModel):
    asset_id: int
    asset_name: Optional[str] = None
    total_minutes: int
    count: int
    open_count: int
    avg_minutes: float
