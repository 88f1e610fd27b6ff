import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from corrective.core.context import get_tenant_id, get_user_id
from corrective.core.errors import CorrectiveError
from corrective.core.http import internal_error, to_http
from corrective.db.session import get_db
from corrective.downtime.service import validate_can_close
from corrective.workorders import service
from corrective.workorders.schemas import WorkOrderClose, WorkOrderResponse

logger = logging.getLogger("corrective.workorders")

router = APIRouter(tags=["Work Orders"])


@router.get("/work-orders/{work_order_id}")
def read_work_order(
    work_order_id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return WorkOrderResponse.model_validate(service.get_work_order(db, work_order_id, tenant_id))
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/work-orders/{work_order_id}/can-close")
def can_close(
    work_order_id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return validate_can_close(db, work_order_id, tenant_id)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/work-orders/{work_order_id}/close")
def close(
    work_order_id: int,
    payload: WorkOrderClose,
    tenant_id: int = Depends(get_tenant_id),
    user_id: int = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    try:
        return service.close_work_order(db, work_order_id, tenant_id, user_id, payload)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)
