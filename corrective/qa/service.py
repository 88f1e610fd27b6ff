import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from corrective.core.enums import (
    QA_TRANSITIONS,
    AssetCriticality,
    EvidenceLevel,
    Priority,
    QAReason,
    QAStatus,
    can_transition,
)
from corrective.core.errors import ConflictState, NotFound, ValidationFailed, require_positive
from corrective.db import models
from corrective.db.lists import EvidenceItem
from corrective.qa.schemas import QARequirement, ValidationResult
from corrective.settings.service import SettingsProvider, provider_for

logger = logging.getLogger("corrective.qa")

HIGH_CRITICALITY = {AssetCriticality.CRITICAL, AssetCriticality.HIGH}


def requires_qa(
    db: Session,
    priority,
    tenant_id: int,
    is_safety_related: bool = False,
    asset_criticality=None,
    caused_downtime: bool = False,
    downtime_minutes: Optional[int] = None,
    is_recurrence: bool = False,
    recurrence_days: Optional[int] = None,
    settings_provider: Optional[SettingsProvider] = None,
) -> QARequirement:
    """Decide whether a work order needs QA sign-off and which evidence level.

    Rules are evaluated in order and the first match wins: safety, P1, P2,
    critical asset with downtime, long downtime, recurrence, then P3.
    """
    require_positive(tenant_id, "tenant_id")
    try:
        priority = Priority(priority)
        criticality = AssetCriticality(asset_criticality) if asset_criticality else None
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc
    if downtime_minutes is not None and downtime_minutes < 0:
        raise ValidationFailed("downtime_minutes no puede ser negativo")

    if is_safety_related:
        return QARequirement(required=True, reason=QAReason.SAFETY, evidence_level=EvidenceLevel.COMPLETE)
    if priority == Priority.P1:
        return QARequirement(required=True, reason=QAReason.HIGH_PRIORITY, evidence_level=EvidenceLevel.COMPLETE)
    if priority == Priority.P2:
        return QARequirement(required=True, reason=QAReason.HIGH_PRIORITY, evidence_level=EvidenceLevel.STANDARD)
    if criticality in HIGH_CRITICALITY and caused_downtime:
        return QARequirement(
            required=True, reason=QAReason.HIGH_CRITICALITY, evidence_level=EvidenceLevel.STANDARD
        )

    tenant_settings = provider_for(db, settings_provider).get(tenant_id)
    if downtime_minutes is not None and downtime_minutes > tenant_settings.downtime_qa_threshold_min:
        return QARequirement(required=True, reason=QAReason.HIGH_DOWNTIME, evidence_level=EvidenceLevel.STANDARD)
    if is_recurrence and (recurrence_days is None or recurrence_days <= tenant_settings.recurrence_window_days):
        return QARequirement(required=True, reason=QAReason.RECURRENCE, evidence_level=EvidenceLevel.STANDARD)
    if priority == Priority.P3 and tenant_settings.require_evidence_p3:
        return QARequirement(required=False, evidence_level=EvidenceLevel.BASIC)
    return QARequirement(required=False, evidence_level=EvidenceLevel.OPTIONAL)


def get_qa(db: Session, work_order_id: int) -> Optional[models.QualityAssurance]:
    return (
        db.query(models.QualityAssurance)
        .filter(models.QualityAssurance.work_order_id == work_order_id)
        .first()
    )


def create_or_update_qa(
    db: Session,
    work_order_id: int,
    tenant_id: int,
    requirement: QARequirement,
) -> models.QualityAssurance:
    require_positive(work_order_id, "work_order_id")
    require_positive(tenant_id, "tenant_id")

    status = QAStatus.PENDING if requirement.required else QAStatus.NOT_REQUIRED
    qa = get_qa(db, work_order_id)
    if qa is None:
        qa = models.QualityAssurance(tenant_id=tenant_id, work_order_id=work_order_id)
        db.add(qa)
    qa.is_required = requirement.required
    qa.required_reason = requirement.reason
    qa.evidence_required = requirement.evidence_level
    qa.status = status
    db.commit()
    db.refresh(qa)
    logger.info(
        "qa requirement stored work_order_id=%s required=%s reason=%s evidence=%s",
        work_order_id,
        qa.is_required,
        qa.required_reason.value if qa.required_reason else None,
        qa.evidence_required.value,
    )
    return qa


def validate_qa_completion(db: Session, work_order_id: int) -> ValidationResult:
    require_positive(work_order_id, "work_order_id")
    qa = get_qa(db, work_order_id)
    if qa is None or not qa.is_required:
        return ValidationResult(valid=True)
    if qa.status != QAStatus.APPROVED:
        return ValidationResult(
            valid=False,
            error=f"El control de calidad (QA) debe estar aprobado antes de cerrar (estado actual: {qa.status.value})",
        )
    if qa.evidence_required != EvidenceLevel.OPTIONAL and not qa.evidence_provided:
        return ValidationResult(
            valid=False,
            error=f"Debe registrar evidencia de nivel {qa.evidence_required.value} antes de cerrar",
        )
    return ValidationResult(valid=True)


def _get_qa_or_404(db: Session, work_order_id: int, tenant_id: int) -> models.QualityAssurance:
    require_positive(work_order_id, "work_order_id")
    require_positive(tenant_id, "tenant_id")
    qa = get_qa(db, work_order_id)
    if qa is None or qa.tenant_id != tenant_id:
        raise NotFound(f"La orden #{work_order_id} no tiene registro de QA")
    return qa


def _transition(qa: models.QualityAssurance, target: QAStatus) -> None:
    if not can_transition(QA_TRANSITIONS, qa.status, target):
        raise ConflictState(f"QA no puede pasar de {qa.status.value} a {target.value}")
    qa.status = target


def record_qa_evidence(
    db: Session,
    work_order_id: int,
    tenant_id: int,
    evidence: list[EvidenceItem],
) -> models.QualityAssurance:
    if not evidence:
        raise ValidationFailed("Debe adjuntar al menos una evidencia")
    qa = _get_qa_or_404(db, work_order_id, tenant_id)
    if qa.status == QAStatus.APPROVED:
        raise ConflictState("El QA ya fue aprobado")
    qa.evidence_provided = [*(qa.evidence_provided or []), *evidence]
    if qa.status == QAStatus.REJECTED:
        _transition(qa, QAStatus.PENDING)
    db.commit()
    db.refresh(qa)
    return qa


def approve_qa(
    db: Session,
    work_order_id: int,
    tenant_id: int,
    verified_by_id: int,
    notes: Optional[str] = None,
) -> models.QualityAssurance:
    require_positive(verified_by_id, "verified_by_id")
    qa = _get_qa_or_404(db, work_order_id, tenant_id)
    if qa.evidence_required != EvidenceLevel.OPTIONAL and not qa.evidence_provided:
        raise ConflictState(f"Se requiere evidencia de nivel {qa.evidence_required.value} para aprobar")
    _transition(qa, QAStatus.APPROVED)
    qa.verified_by_id = verified_by_id
    qa.verified_at = datetime.utcnow()
    qa.notes = notes or qa.notes
    db.commit()
    db.refresh(qa)
    logger.info("qa approved work_order_id=%s verified_by=%s", work_order_id, verified_by_id)
    return qa


def reject_qa(
    db: Session,
    work_order_id: int,
    tenant_id: int,
    verified_by_id: int,
    notes: Optional[str] = None,
) -> models.QualityAssurance:
    require_positive(verified_by_id, "verified_by_id")
    qa = _get_qa_or_404(db, work_order_id, tenant_id)
    _transition(qa, QAStatus.REJECTED)
    qa.verified_by_id = verified_by_id
    qa.verified_at = datetime.utcnow()
    qa.notes = notes or qa.notes
    db.commit()
    db.refresh(qa)
    logger.info("qa rejected work_order_id=%s verified_by=%s", work_order_id, verified_by_id)
    return qa
