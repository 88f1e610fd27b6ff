from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from corrective.core.enums import FixType, SolutionOutcome, WorkOrderPriority, WorkOrderStatus
from corrective.db.lists import SparePartUsage, ToolUsage


class WorkOrderResponse(BaseModel):
    id: int
    tenant_id: int
    asset_id: Optional[int] = None
    component_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    type: str
    origin: Optional[str] = None
    status: WorkOrderStatus
    priority: Optional[WorkOrderPriority] = None
    is_safety_related: bool
    sla_due_at: Optional[datetime] = None
    requires_return_to_production: bool
    return_to_production_confirmed: bool
    created_by_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class WorkOrderClose(BaseModel):
    diagnosis: str = Field(min_length=10)
    solution: str = Field(min_length=10)
    outcome: SolutionOutcome
    performed_by_id: Optional[int] = Field(default=None, gt=0)
    performed_at: Optional[datetime] = None
    actual_minutes: Optional[int] = Field(default=None, gt=0)
    final_component_id: Optional[int] = Field(default=None, gt=0)
    final_subcomponent_id: Optional[int] = Field(default=None, gt=0)
    confirmed_cause: Optional[str] = Field(default=None, max_length=255)
    fix_type: FixType = FixType.DEFINITIVA
    tools_used: list[ToolUsage] = Field(default_factory=list)
    spare_parts_used: list[SparePartUsage] = Field(default_factory=list)
    effectiveness: Optional[int] = Field(default=None, ge=1, le=5)
    notes: Optional[str] = None


class WorkOrderCloseResult(BaseModel):
    work_order: WorkOrderResponse
    solution_id: Optional[int] = None
    resolved_occurrence_ids: list[int] = Field(default_factory=list)
