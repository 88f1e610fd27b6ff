import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from corrective.core.context import get_tenant_id, get_user_id
from corrective.core.errors import CorrectiveError, NotFound
from corrective.core.http import internal_error, to_http
from corrective.db.session import get_db
from corrective.qa import service
from corrective.qa.schemas import (
    EvidencePayload,
    QADecisionPayload,
    QARequirementRequest,
    QualityAssuranceResponse,
)
from corrective.workorders.service import get_work_order

logger = logging.getLogger("corrective.qa")

router = APIRouter(tags=["Quality Assurance"])


@router.post("/qa/requirement")
def evaluate_requirement(
    payload: QARequirementRequest,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return service.requires_qa(db, tenant_id=tenant_id, **payload.model_dump())
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.put("/work-orders/{work_order_id}/qa")
def store_requirement(
    work_order_id: int,
    payload: QARequirementRequest,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        get_work_order(db, work_order_id, tenant_id)
        requirement = service.requires_qa(db, tenant_id=tenant_id, **payload.model_dump())
        qa = service.create_or_update_qa(db, work_order_id, tenant_id, requirement)
        return QualityAssuranceResponse.model_validate(qa)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/work-orders/{work_order_id}/qa")
def read_qa(
    work_order_id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        get_work_order(db, work_order_id, tenant_id)
        qa = service.get_qa(db, work_order_id)
        if qa is None:
            raise NotFound(f"La orden #{work_order_id} no tiene registro de QA")
        return QualityAssuranceResponse.model_validate(qa)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/work-orders/{work_order_id}/qa/validation")
def read_qa_validation(
    work_order_id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        get_work_order(db, work_order_id, tenant_id)
        return service.validate_qa_completion(db, work_order_id)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/work-orders/{work_order_id}/qa/evidence")
def add_evidence(
    work_order_id: int,
    payload: EvidencePayload,
    tenant_id: int = Depends(get_tenant_id),
    user_id: int = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    try:
        evidence = [item.model_copy(update={"uploaded_by": item.uploaded_by or user_id}) for item in payload.evidence]
        qa = service.record_qa_evidence(db, work_order_id, tenant_id, evidence)
        return QualityAssuranceResponse.model_validate(qa)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/work-orders/{work_order_id}/qa/approve")
def approve(
    work_order_id: int,
    payload: QADecisionPayload,
    tenant_id: int = Depends(get_tenant_id),
    user_id: int = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    try:
        qa = service.approve_qa(db, work_order_id, tenant_id, user_id, notes=payload.notes)
        return QualityAssuranceResponse.model_validate(qa)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/work-orders/{work_order_id}/qa/reject")
def reject(
    work_order_id: int,
    payload: QADecisionPayload,
    tenant_id: int = Depends(get_tenant_id),
    user_id: int = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    try:
        qa = service.reject_qa(db, work_order_id, tenant_id, user_id, notes=payload.notes)
        return QualityAssuranceResponse.model_validate(qa)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)
