from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from corrective.core.enums import FixType, SolutionOutcome
from corrective.db.lists import SparePartUsage, ToolUsage


class RankedSolution(BaseModel):
    id: int
    solution_ids: list[int]
    diagnosis: str
    solution: str
    confirmed_cause: Optional[str] = None
    fix_type: Optional[FixType] = None
    usage_count: int
    avg_effectiveness: float
    last_used_at: datetime
    decay_factor: float
    adjusted_score: float
    performed_by_id: int
    failure_occurrence_id: int


class SolutionResponse(BaseModel):
    id: int
    failure_occurrence_id: int
    work_order_id: Optional[int] = None
    diagnosis: str
    solution: str
    confirmed_cause: Optional[str] = None
    outcome: SolutionOutcome
    effectiveness: Optional[int] = None
    performed_by_id: int
    performed_at: datetime
    actual_minutes: Optional[int] = None
    final_component_id: Optional[int] = None
    final_subcomponent_id: Optional[int] = None
    fix_type: Optional[FixType] = None
    tools_used: Optional[list[ToolUsage]] = None
    spare_parts_used: Optional[list[SparePartUsage]] = None
    notes: Optional[str] = None
    is_obsolete: bool

    model_config = {"from_attributes": True}


class SolutionDetail(SolutionResponse):
    failure_title: Optional[str] = None
    failure_description: Optional[str] = None
    asset_id: Optional[int] = None


class SolutionPage(BaseModel):
    items: list[SolutionResponse]
    total: int
    has_more: bool


class SimilarSolution(BaseModel):
    id: int
    failure_occurrence_id: int
    failure_title: str
    diagnosis: str
    solution: str
    effectiveness: Optional[int] = None
    similarity: int
    performed_at: datetime


class SimilarSearch(BaseModel):
    asset_id: int
    component_id: Optional[int] = None
    subcomponent_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    limit: int = 3


class SolutionStats(BaseModel):
    total: int
    by_outcome: dict[str, int]
    success_rate: float
    avg_effectiveness: Optional[float] = None
    avg_minutes: Optional[float] = None
    obsolete_count: int


class MTTRResult(BaseModel):
    mttr_minutes: Optional[float] = None
    sample_size: int


class UsageCount(BaseModel):
    name: str
    count: int


class ToolsAndParts(BaseModel):
    tools: list[UsageCount] = Field(default_factory=list)
    spare_parts: list[UsageCount] = Field(default_factory=list)
