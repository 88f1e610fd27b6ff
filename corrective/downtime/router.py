import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from corrective.core.context import get_tenant_id, get_user_id
from corrective.core.enums import DowntimeCategory
from corrective.core.errors import CorrectiveError
from corrective.core.http import internal_error, to_http
from corrective.db.session import get_db
from corrective.downtime import service
from corrective.downtime.schemas import (
    DowntimeLogResponse,
    DowntimePage,
    DowntimeStart,
    ReturnToProductionPayload,
)

logger = logging.getLogger("corrective.downtime")

router = APIRouter(tags=["Downtime"])


@router.post("/downtime", status_code=status.HTTP_201_CREATED)
def open_downtime(
    payload: DowntimeStart,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        log = service.handle_downtime(
            db,
            payload.failure_occurrence_id,
            payload.asset_id,
            payload.caused_downtime,
            tenant_id,
            work_order_id=payload.work_order_id,
            category=payload.category,
            reason=payload.reason,
            production_impact=payload.production_impact,
        )
        return {"downtime_log": DowntimeLogResponse.model_validate(log) if log else None}
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/downtime/{downtime_log_id}/return-to-production")
def return_to_production(
    downtime_log_id: int,
    payload: ReturnToProductionPayload,
    tenant_id: int = Depends(get_tenant_id),
    user_id: int = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    try:
        return service.confirm_return_to_production(
            db,
            downtime_log_id,
            user_id,
            tenant_id,
            work_order_id=payload.work_order_id,
            notes=payload.notes,
        )
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/downtime/open")
def list_open(
    asset_id: Optional[int] = Query(default=None),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        logs = service.get_open_downtimes(db, tenant_id, asset_id=asset_id)
        return {"items": [DowntimeLogResponse.model_validate(log) for log in logs]}
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/downtime/total")
def total(
    asset_id: Optional[int] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return service.calculate_total_downtime(
            db, tenant_id, asset_id=asset_id, start_date=start_date, end_date=end_date
        )
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/downtime/stats/by-machine")
def stats_by_machine(
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return {"items": service.get_downtime_stats_by_machine(db, tenant_id, start_date, end_date)}
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/downtime")
def list_downtimes(
    asset_id: Optional[int] = Query(default=None),
    category: Optional[DowntimeCategory] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    limit: int = Query(default=50),
    offset: int = Query(default=0),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        page = service.get_all_downtimes(
            db,
            tenant_id,
            asset_id=asset_id,
            category=category,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
        return DowntimePage.model_validate(page, from_attributes=True)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/assets/{asset_id}/downtime/active")
def active_downtime(
    asset_id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        log = service.get_active_downtime(db, asset_id, tenant_id)
        return {
            "active": log is not None,
            "downtime_log": DowntimeLogResponse.model_validate(log) if log else None,
        }
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)
