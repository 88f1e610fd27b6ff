import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from corrective.core.enums import ACTIVE_FAILURE_STATUSES, FailureStatus, WorkOrderStatus
from corrective.core.errors import ConflictState, NotFound, require_positive
from corrective.db import models
from corrective.downtime.service import validate_can_close
from corrective.qa.service import validate_qa_completion
from corrective.settings.service import SettingsProvider
from corrective.workorders.schemas import WorkOrderClose, WorkOrderCloseResult, WorkOrderResponse

logger = logging.getLogger("corrective.workorders")

FINAL_STATUSES = {
    WorkOrderStatus.COMPLETED: "completada",
    WorkOrderStatus.CANCELLED: "cancelada",
}


def get_work_order(db: Session, work_order_id: int, tenant_id: int) -> models.WorkOrder:
    require_positive(work_order_id, "work_order_id")
    require_positive(tenant_id, "tenant_id")
    work_order = (
        db.query(models.WorkOrder)
        .filter(models.WorkOrder.id == work_order_id, models.WorkOrder.tenant_id == tenant_id)
        .first()
    )
    if not work_order:
        raise NotFound(f"Orden de trabajo #{work_order_id} no encontrada")
    return work_order


def close_work_order(
    db: Session,
    work_order_id: int,
    tenant_id: int,
    closed_by_id: int,
    payload: WorkOrderClose,
    settings_provider: Optional[SettingsProvider] = None,
) -> WorkOrderCloseResult:
    """Close a corrective work order and record the fix that was applied.

    Closing is refused while production has not been confirmed back or QA
    is not approved. The occurrences attached to the order are resolved.
    """
    require_positive(closed_by_id, "closed_by_id")
    work_order = get_work_order(db, work_order_id, tenant_id)
    if work_order.status in FINAL_STATUSES:
        raise ConflictState(f"La orden ya está {FINAL_STATUSES[work_order.status]}")

    for check in (
        validate_can_close(db, work_order_id, tenant_id, settings_provider=settings_provider),
        validate_qa_completion(db, work_order_id),
    ):
        if not check.valid:
            raise ConflictState(check.error)

    occurrences = sorted(work_order.failure_occurrences, key=lambda row: row.id)
    main = next((row for row in occurrences if not row.is_linked_duplicate), None)
    if main is None and occurrences:
        main = occurrences[0]

    now = datetime.utcnow()
    solution = None
    if main is not None:
        solution = models.SolutionApplied(
            tenant_id=tenant_id,
            failure_occurrence_id=main.id,
            work_order_id=work_order.id,
            diagnosis=payload.diagnosis,
            solution=payload.solution,
            confirmed_cause=payload.confirmed_cause,
            outcome=payload.outcome,
            effectiveness=payload.effectiveness,
            performed_by_id=payload.performed_by_id or closed_by_id,
            performed_at=payload.performed_at or now,
            actual_minutes=payload.actual_minutes,
            final_component_id=payload.final_component_id,
            final_subcomponent_id=payload.final_subcomponent_id,
            fix_type=payload.fix_type,
            tools_used=payload.tools_used,
            spare_parts_used=payload.spare_parts_used,
            notes=payload.notes,
        )
        db.add(solution)

    resolved_ids = []
    for occurrence in occurrences:
        if occurrence.status in ACTIVE_FAILURE_STATUSES:
            occurrence.status = FailureStatus.RESOLVED
            occurrence.resolved_at = now
            resolved_ids.append(occurrence.id)

    work_order.status = WorkOrderStatus.COMPLETED
    work_order.completed_at = now
    db.commit()
    db.refresh(work_order)
    logger.info(
        "work order closed tenant_id=%s work_order_id=%s solution_id=%s resolved=%s outcome=%s",
        tenant_id,
        work_order.id,
        solution.id if solution else None,
        resolved_ids,
        payload.outcome.value,
    )
    return WorkOrderCloseResult(
        work_order=WorkOrderResponse.model_validate(work_order),
        solution_id=solution.id if solution else None,
        resolved_occurrence_ids=resolved_ids,
    )
