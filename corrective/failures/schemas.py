from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from corrective.core.enums import (
    AssetCriticality,
    DowntimeCategory,
    FailureCategory,
    FailureStatus,
    Priority,
)


class DuplicateCandidate(BaseModel):
    id: int
    title: str
    status: FailureStatus
    priority: Optional[Priority] = None
    reported_at: datetime
    similarity: int
    asset_id: int
    work_order_id: Optional[int] = None


class RecurrenceMatch(BaseModel):
    id: int
    title: str
    resolved_at: datetime
    similarity: int
    work_order_id: Optional[int] = None


class RecurrenceResult(BaseModel):
    is_recurrence: bool
    previous_occurrence: Optional[RecurrenceMatch] = None
    days_since_resolved: Optional[int] = None


class PriorityFactors(BaseModel):
    criticality: int
    downtime: int
    safety: int
    failure_type: int


class PriorityResult(BaseModel):
    priority: Priority
    score: int
    factors: PriorityFactors
    reasons: list[str]


class PriorityRequest(BaseModel):
    asset_criticality: Optional[AssetCriticality] = None
    caused_downtime: bool = False
    is_safety_related: bool = False
    is_intermittent: bool = False
    is_observation: bool = False


class DuplicateSearch(BaseModel):
    asset_id: int
    component_id: Optional[int] = None
    subcomponent_id: Optional[int] = None
    title: str
    symptom_ids: list[int] = Field(default_factory=list)


class RecurrenceSearch(BaseModel):
    asset_id: int
    component_id: Optional[int] = None
    subcomponent_id: Optional[int] = None
    title: str


class LinkDuplicatePayload(BaseModel):
    main_occurrence_id: int
    asset_id: int
    subcomponent_id: Optional[int] = None
    linked_reason: Optional[str] = None
    symptom_ids: list[int] = Field(default_factory=list)
    attachments: list[str] = Field(default_factory=list)
    notes: Optional[str] = None


class FailureOccurrenceResponse(BaseModel):
    id: int
    tenant_id: int
    asset_id: int
    component_id: Optional[int] = None
    subcomponent_id: Optional[int] = None
    work_order_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    status: FailureStatus
    priority: Optional[Priority] = None
    reported_by: int
    reported_at: datetime
    resolved_at: Optional[datetime] = None
    is_safety_related: bool
    caused_downtime: bool
    is_observation: bool
    is_linked_duplicate: bool
    linked_to_occurrence_id: Optional[int] = None
    linked_at: Optional[datetime] = None
    linked_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class FailureReportCreate(BaseModel):
    asset_id: int
    component_ids: list[int] = Field(default_factory=list)
    subcomponent_ids: list[int] = Field(default_factory=list)
    title: str = Field(max_length=255)
    symptom_ids: list[int] = Field(default_factory=list)
    caused_downtime: bool
    attachments: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    failure_category: FailureCategory = FailureCategory.MECANICA
    is_intermittent: bool = False
    is_observation: bool = False
    is_safety_related: bool = False
    notes: Optional[str] = None
    resolve_immediately: bool = False
    immediate_solution: Optional[str] = None
    downtime_category: DowntimeCategory = DowntimeCategory.UNPLANNED
    force_create: bool = False
    link_to_occurrence_id: Optional[int] = None


class FailureReportResult(BaseModel):
    has_duplicates: bool = False
    duplicates: list[DuplicateCandidate] = Field(default_factory=list)
    occurrence: Optional[FailureOccurrenceResponse] = None
    work_order_id: Optional[int] = None
    downtime_log_id: Optional[int] = None
    linked_to_existing: bool = False
    resolved_immediately: bool = False
    priority: Optional[PriorityResult] = None
    recurrence: Optional[RecurrenceResult] = None
    qa_required: Optional[bool] = None
    warnings: list[dict] = Field(default_factory=list)
