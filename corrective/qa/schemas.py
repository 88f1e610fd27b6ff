from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from corrective.core.enums import AssetCriticality, EvidenceLevel, Priority, QAReason, QAStatus
from corrective.db.lists import EvidenceItem


class QARequirement(BaseModel):
    required: bool
    reason: Optional[QAReason] = None
    evidence_level: EvidenceLevel


class QARequirementRequest(BaseModel):
    is_safety_related: bool = False
    priority: Priority
    asset_criticality: Optional[AssetCriticality] = None
    caused_downtime: bool = False
    downtime_minutes: Optional[int] = None
    is_recurrence: bool = False
    recurrence_days: Optional[int] = None


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None


class EvidencePayload(BaseModel):
    evidence: list[EvidenceItem] = Field(min_length=1)


class QADecisionPayload(BaseModel):
    notes: Optional[str] = None


class QualityAssuranceResponse(BaseModel):
    id: int
    work_order_id: int
    is_required: bool
    required_reason: Optional[QAReason] = None
    evidence_required: EvidenceLevel
    status: QAStatus
    evidence_provided: Optional[list[EvidenceItem]] = None
    return_to_production_confirmed: bool
    verified_by_id: Optional[int] = None
    verified_at: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}
