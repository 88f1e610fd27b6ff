from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from corrective.core.enums import (
    AssetCriticality,
    DowntimeCategory,
    DowntimeState,
    EvidenceLevel,
    FailureCategory,
    FailureStatus,
    FixType,
    Priority,
    QAReason,
    QAStatus,
    SolutionOutcome,
    WorkOrderPriority,
    WorkOrderStatus,
)
from corrective.db.lists import (
    AttachmentRef,
    EvidenceItem,
    SparePartUsage,
    SymptomRef,
    ToolUsage,
    VersionedList,
)

Base = declarative_base()


def _enum(enum_cls):
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Asset(Base):
    __tablename__ = "assets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    sector_id = Column(Integer, nullable=True)
    criticality = Column(_enum(AssetCriticality), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class WorkOrder(Base):
    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=True)
    component_id = Column(Integer, nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String, nullable=False, default="CORRECTIVE")
    origin = Column(String, nullable=True)
    status = Column(_enum(WorkOrderStatus), nullable=False, default=WorkOrderStatus.PENDING)
    priority = Column(_enum(WorkOrderPriority), nullable=True)
    is_safety_related = Column(Boolean, nullable=False, default=False)
    sla_due_at = Column(DateTime, nullable=True)
    requires_return_to_production = Column(Boolean, nullable=False, default=False)
    return_to_production_confirmed = Column(Boolean, nullable=False, default=False)
    created_by_id = Column(Integer, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    asset = relationship("Asset")
    failure_occurrences = relationship("FailureOccurrence", back_populates="work_order")
    downtime_logs = relationship("DowntimeLog", back_populates="work_order")
    quality_assurance = relationship("QualityAssurance", back_populates="work_order", uselist=False)


class FailureOccurrence(Base):
    __tablename__ = "failure_occurrences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    component_id = Column(Integer, nullable=True)
    subcomponent_id = Column(Integer, nullable=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    failure_category = Column(_enum(FailureCategory), nullable=True)
    symptoms = Column(VersionedList(SymptomRef), nullable=True)
    photos = Column(VersionedList(AttachmentRef), nullable=True)
    notes = Column(Text, nullable=True)
    reported_by = Column(Integer, nullable=False)
    reported_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    status = Column(_enum(FailureStatus), nullable=False, default=FailureStatus.OPEN)
    priority = Column(_enum(Priority), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    is_safety_related = Column(Boolean, nullable=False, default=False)
    is_intermittent = Column(Boolean, nullable=False, default=False)
    is_observation = Column(Boolean, nullable=False, default=False)
    caused_downtime = Column(Boolean, nullable=False, default=False)
    is_linked_duplicate = Column(Boolean, nullable=False, default=False)
    linked_to_occurrence_id = Column(Integer, ForeignKey("failure_occurrences.id"), nullable=True)
    linked_by_id = Column(Integer, nullable=True)
    linked_at = Column(DateTime, nullable=True)
    linked_reason = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    asset = relationship("Asset")
    work_order = relationship("WorkOrder", back_populates="failure_occurrences")
    linked_occurrence = relationship("FailureOccurrence", remote_side=[id])
    solutions = relationship("SolutionApplied", back_populates="failure_occurrence")


class DowntimeLog(Base):
    __tablename__ = "downtime_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    failure_occurrence_id = Column(Integer, ForeignKey("failure_occurrences.id"), nullable=False)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=True)
    asset_id = Column(Integer, ForeignKey("assets.id"), nullable=False, index=True)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    category = Column(_enum(DowntimeCategory), nullable=False, default=DowntimeCategory.UNPLANNED)
    reason = Column(String, nullable=True)
    production_impact = Column(Text, nullable=True)
    return_confirmed_by_id = Column(Integer, nullable=True)
    return_confirmed_at = Column(DateTime, nullable=True)
    return_notes = Column(Text, nullable=True)
    total_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    asset = relationship("Asset")
    failure_occurrence = relationship("FailureOccurrence")
    work_order = relationship("WorkOrder", back_populates="downtime_logs")

    @property
    def state(self) -> DowntimeState:
        return DowntimeState.OPEN if self.ended_at is None else DowntimeState.CLOSED


class QualityAssurance(Base):
    __tablename__ = "quality_assurance"
    __table_args__ = (UniqueConstraint("work_order_id", name="uq_qa_work_order"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False)
    is_required = Column(Boolean, nullable=False, default=False)
    required_reason = Column(_enum(QAReason), nullable=True)
    evidence_required = Column(_enum(EvidenceLevel), nullable=False, default=EvidenceLevel.OPTIONAL)
    status = Column(_enum(QAStatus), nullable=False, default=QAStatus.NOT_REQUIRED)
    evidence_provided = Column(VersionedList(EvidenceItem), nullable=True)
    return_to_production_confirmed = Column(Boolean, nullable=False, default=False)
    return_confirmed_by_id = Column(Integer, nullable=True)
    return_confirmed_at = Column(DateTime, nullable=True)
    verified_by_id = Column(Integer, nullable=True)
    verified_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    work_order = relationship("WorkOrder", back_populates="quality_assurance")


class SolutionApplied(Base):
    __tablename__ = "solutions_applied"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    failure_occurrence_id = Column(Integer, ForeignKey("failure_occurrences.id"), nullable=False)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=True)
    diagnosis = Column(Text, nullable=False)
    solution = Column(Text, nullable=False)
    confirmed_cause = Column(String, nullable=True)
    outcome = Column(_enum(SolutionOutcome), nullable=False)
    effectiveness = Column(Integer, nullable=True)
    performed_by_id = Column(Integer, nullable=False)
    performed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    actual_minutes = Column(Integer, nullable=True)
    final_component_id = Column(Integer, nullable=True)
    final_subcomponent_id = Column(Integer, nullable=True)
    fix_type = Column(_enum(FixType), nullable=True)
    tools_used = Column(VersionedList(ToolUsage), nullable=True)
    spare_parts_used = Column(VersionedList(SparePartUsage), nullable=True)
    notes = Column(Text, nullable=True)
    is_obsolete = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    failure_occurrence = relationship("FailureOccurrence", back_populates="solutions")


class CorrectiveSettings(Base):
    __tablename__ = "corrective_settings"
    __table_args__ = (UniqueConstraint("tenant_id", name="uq_corrective_settings_tenant"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(Integer, nullable=False)
    duplicate_window_hours = Column(Integer, nullable=False, default=48)
    recurrence_window_days = Column(Integer, nullable=False, default=7)
    downtime_qa_threshold_min = Column(Integer, nullable=False, default=60)
    duplicate_similarity_threshold = Column(Integer, nullable=False, default=70)
    recurrence_similarity_threshold = Column(Integer, nullable=False, default=60)
    sla_p1_hours = Column(Integer, nullable=False, default=4)
    sla_p2_hours = Column(Integer, nullable=False, default=8)
    sla_p3_hours = Column(Integer, nullable=False, default=24)
    sla_p4_hours = Column(Integer, nullable=False, default=72)
    require_evidence_p1 = Column(Boolean, nullable=False, default=True)
    require_evidence_p2 = Column(Boolean, nullable=False, default=True)
    require_evidence_p3 = Column(Boolean, nullable=False, default=True)
    require_return_confirmation_on_downtime = Column(Boolean, nullable=False, default=True)
    require_return_confirmation_on_qa = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def sla_hours(self, priority: Priority) -> int:
        return {
            Priority.P1: self.sla_p1_hours,
            Priority.P2: self.sla_p2_hours,
            Priority.P3: self.sla_p3_hours,
            Priority.P4: self.sla_p4_hours,
        }[Priority(priority)]
