"""Quick failure report: the full intake flow in a single call.

Duplicates are offered back to the reporter before anything is written.
Otherwise the failure is prioritised, stored and, unless it is an
observation or was fixed on the spot, turned into a corrective work order
with its QA requirement and downtime window.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from corrective.core.enums import (
    WORK_ORDER_PRIORITY_BY_PRIORITY,
    FailureStatus,
    WorkOrderStatus,
)
from corrective.core.errors import CorrectiveError, NotFound, ValidationFailed, require_positive
from corrective.db import models
from corrective.db.lists import AttachmentRef, SymptomRef
from corrective.downtime.notifier import DowntimeNotifier
from corrective.downtime.service import handle_downtime
from corrective.failures.duplicates import detect_duplicates, link_duplicate, validate_title
from corrective.failures.priority import calculate_priority, sla_due_at
from corrective.failures.recurrence import detect_recurrence
from corrective.failures.schemas import (
    FailureOccurrenceResponse,
    FailureReportCreate,
    FailureReportResult,
)
from corrective.qa.service import create_or_update_qa, requires_qa
from corrective.settings.service import SettingsProvider, provider_for

logger = logging.getLogger("corrective.failures")

WORK_ORDER_TITLE = "Solucionar — {title}"


def _first(ids: list[int]) -> Optional[int]:
    return ids[0] if ids else None


def _notes(payload: FailureReportCreate) -> str:
    notes = (payload.notes or "").strip()
    if len(payload.subcomponent_ids) > 1:
        joined = ", ".join(f"#{item}" for item in payload.subcomponent_ids)
        notes = f"Subcomponentes afectados: {joined}\n\n{notes}"
    if len(payload.component_ids) > 1:
        joined = ", ".join(f"#{item}" for item in payload.component_ids)
        notes = f"Componentes afectados: {joined}\n\n{notes}"
    return notes.strip()


def report_failure(
    db: Session,
    tenant_id: int,
    reported_by: int,
    payload: FailureReportCreate,
    notifier: Optional[DowntimeNotifier] = None,
    settings_provider: Optional[SettingsProvider] = None,
) -> FailureReportResult:
    require_positive(tenant_id, "tenant_id")
    require_positive(reported_by, "reported_by")
    require_positive(payload.asset_id, "asset_id")
    title = validate_title(payload.title)
    for symptom_id in payload.symptom_ids:
        require_positive(symptom_id, "symptom_ids")
    if payload.link_to_occurrence_id is not None:
        require_positive(payload.link_to_occurrence_id, "link_to_occurrence_id")
    if payload.is_observation and payload.resolve_immediately:
        raise ValidationFailed("Una observacion no puede resolverse inmediatamente")

    asset = (
        db.query(models.Asset)
        .filter(models.Asset.id == payload.asset_id, models.Asset.tenant_id == tenant_id)
        .first()
    )
    if not asset:
        raise NotFound(f"Maquina #{payload.asset_id} no encontrada")

    provider = provider_for(db, settings_provider)
    component_id = _first(payload.component_ids)
    subcomponent_id = _first(payload.subcomponent_ids)

    if not payload.force_create and payload.link_to_occurrence_id is None:
        duplicates = detect_duplicates(
            db,
            asset.id,
            title,
            tenant_id,
            symptom_ids=payload.symptom_ids,
            component_id=component_id,
            subcomponent_id=subcomponent_id,
            settings_provider=provider,
        )
        if duplicates:
            return FailureReportResult(has_duplicates=True, duplicates=duplicates)

    if payload.link_to_occurrence_id is not None:
        duplicate = link_duplicate(
            db,
            payload.link_to_occurrence_id,
            reported_by,
            asset.id,
            tenant_id,
            linked_reason=f"Vinculado desde reporte rápido como duplicado de #{payload.link_to_occurrence_id}",
            symptom_ids=payload.symptom_ids,
            attachments=payload.attachments,
            notes=_notes(payload) or None,
            subcomponent_id=subcomponent_id,
        )
        return FailureReportResult(
            occurrence=FailureOccurrenceResponse.model_validate(duplicate),
            work_order_id=duplicate.work_order_id,
            linked_to_existing=True,
        )

    recurrence = detect_recurrence(
        db,
        asset.id,
        title,
        tenant_id,
        component_id=component_id,
        subcomponent_id=subcomponent_id,
        settings_provider=provider,
    )
    caused_downtime = payload.caused_downtime and not payload.is_observation
    priority = calculate_priority(
        asset_criticality=asset.criticality,
        caused_downtime=caused_downtime,
        is_safety_related=payload.is_safety_related,
        is_intermittent=payload.is_intermittent,
        is_observation=payload.is_observation,
    )

    now = datetime.utcnow()
    notes = _notes(payload)
    occurrence = models.FailureOccurrence(
        tenant_id=tenant_id,
        asset_id=asset.id,
        component_id=component_id,
        subcomponent_id=subcomponent_id,
        title=title,
        description=payload.description,
        failure_category=payload.failure_category,
        symptoms=[SymptomRef(id=symptom_id) for symptom_id in payload.symptom_ids],
        photos=[AttachmentRef(url=url, uploaded_at=now) for url in payload.attachments],
        reported_by=reported_by,
        reported_at=now,
        status=FailureStatus.OPEN,
        priority=priority.priority,
        is_safety_related=payload.is_safety_related,
        is_intermittent=payload.is_intermittent,
        is_observation=payload.is_observation,
        caused_downtime=caused_downtime,
    )
    result = FailureReportResult(priority=priority, recurrence=recurrence)

    if payload.is_observation:
        occurrence.notes = f"[OBSERVACIÓN] {notes or 'Registrada para seguimiento'}"
        db.add(occurrence)
        db.commit()
    elif payload.resolve_immediately:
        solution_note = (
            f"[SOLUCIÓN INMEDIATA] {payload.immediate_solution.strip()}"
            if (payload.immediate_solution or "").strip()
            else "[SOLUCIONADA INMEDIATAMENTE]"
        )
        occurrence.notes = f"{solution_note}\n\n{notes}".strip()
        occurrence.status = FailureStatus.RESOLVED_IMMEDIATE
        occurrence.resolved_at = now
        db.add(occurrence)
        db.commit()
        result.resolved_immediately = True
    else:
        tenant_settings = provider.get(tenant_id)
        work_order = models.WorkOrder(
            tenant_id=tenant_id,
            asset_id=asset.id,
            component_id=component_id,
            title=WORK_ORDER_TITLE.format(title=title),
            description=payload.description or f"Falla reportada: {title}",
            type="CORRECTIVE",
            origin="FAILURE",
            status=WorkOrderStatus.PENDING,
            priority=WORK_ORDER_PRIORITY_BY_PRIORITY[priority.priority],
            is_safety_related=payload.is_safety_related,
            sla_due_at=sla_due_at(tenant_settings, priority.priority, now),
            created_by_id=reported_by,
        )
        db.add(work_order)
        db.flush()
        occurrence.work_order_id = work_order.id
        occurrence.notes = notes or None
        db.add(occurrence)
        db.commit()
        result.work_order_id = work_order.id

        requirement = requires_qa(
            db,
            priority.priority,
            tenant_id,
            is_safety_related=payload.is_safety_related,
            asset_criticality=asset.criticality,
            caused_downtime=caused_downtime,
            is_recurrence=recurrence.is_recurrence,
            recurrence_days=recurrence.days_since_resolved,
            settings_provider=provider,
        )
        create_or_update_qa(db, work_order.id, tenant_id, requirement)
        result.qa_required = requirement.required

        if caused_downtime:
            try:
                log = handle_downtime(
                    db,
                    occurrence.id,
                    asset.id,
                    True,
                    tenant_id,
                    work_order_id=work_order.id,
                    category=payload.downtime_category,
                    notifier=notifier,
                )
                result.downtime_log_id = log.id if log else None
            except CorrectiveError as exc:
                db.rollback()
                logger.warning(
                    "downtime not opened tenant_id=%s occurrence_id=%s error=%s",
                    tenant_id,
                    occurrence.id,
                    exc.message,
                )
                result.warnings.append({"type": "DOWNTIME", "message": exc.message})

    db.refresh(occurrence)
    result.occurrence = FailureOccurrenceResponse.model_validate(occurrence)
    logger.info(
        "failure reported tenant_id=%s occurrence_id=%s work_order_id=%s priority=%s "
        "observation=%s resolved_immediately=%s recurrence=%s",
        tenant_id,
        occurrence.id,
        result.work_order_id,
        priority.priority.value,
        payload.is_observation,
        result.resolved_immediately,
        recurrence.is_recurrence,
    )
    return result
