import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from corrective.core.context import get_tenant_id, get_user_id
from corrective.core.errors import CorrectiveError
from corrective.core.http import internal_error, to_http
from corrective.db.session import get_db
from corrective.failures.duplicates import detect_duplicates, link_duplicate
from corrective.failures.priority import calculate_priority
from corrective.failures.recurrence import detect_recurrence
from corrective.failures.report import report_failure
from corrective.failures.schemas import (
    DuplicateSearch,
    FailureOccurrenceResponse,
    FailureReportCreate,
    LinkDuplicatePayload,
    PriorityRequest,
    RecurrenceSearch,
)

logger = logging.getLogger("corrective.failures")

router = APIRouter(tags=["Failures"])


@router.post("/failures/quick-report")
def quick_report(
    payload: FailureReportCreate,
    tenant_id: int = Depends(get_tenant_id),
    user_id: int = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    try:
        return report_failure(db, tenant_id, user_id, payload)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/failures/duplicates")
def search_duplicates(
    payload: DuplicateSearch,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        items = detect_duplicates(
            db,
            payload.asset_id,
            payload.title,
            tenant_id,
            symptom_ids=payload.symptom_ids,
            component_id=payload.component_id,
            subcomponent_id=payload.subcomponent_id,
        )
        return {"items": items}
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/failures/link-duplicate", status_code=status.HTTP_201_CREATED)
def create_linked_duplicate(
    payload: LinkDuplicatePayload,
    tenant_id: int = Depends(get_tenant_id),
    user_id: int = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    try:
        duplicate = link_duplicate(
            db,
            payload.main_occurrence_id,
            user_id,
            payload.asset_id,
            tenant_id,
            linked_reason=payload.linked_reason,
            symptom_ids=payload.symptom_ids,
            attachments=payload.attachments,
            notes=payload.notes,
            subcomponent_id=payload.subcomponent_id,
        )
        return FailureOccurrenceResponse.model_validate(duplicate)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/failures/recurrence")
def search_recurrence(
    payload: RecurrenceSearch,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return detect_recurrence(
            db,
            payload.asset_id,
            payload.title,
            tenant_id,
            component_id=payload.component_id,
            subcomponent_id=payload.subcomponent_id,
        )
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/failures/priority")
def compute_priority(payload: PriorityRequest):
    try:
        return calculate_priority(**payload.model_dump())
    except CorrectiveError as exc:
        raise to_http(exc) from exc
