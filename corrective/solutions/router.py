import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from corrective.core.context import get_tenant_id
from corrective.core.enums import SolutionOutcome
from corrective.core.errors import CorrectiveError
from corrective.core.http import internal_error, to_http
from corrective.db.session import get_db
from corrective.solutions import service
from corrective.solutions.schemas import SimilarSearch, SolutionPage, SolutionResponse

logger = logging.getLogger("corrective.solutions")

router = APIRouter(tags=["Solutions"])


@router.get("/solutions/top")
def top_solutions(
    asset_id: Optional[int] = Query(default=None),
    component_id: Optional[int] = Query(default=None),
    subcomponent_id: Optional[int] = Query(default=None),
    limit: int = Query(default=5),
    min_effectiveness: int = Query(default=3),
    decay_half_life_days: float = Query(default=180),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        items = service.get_top_solutions(
            db,
            tenant_id,
            asset_id=asset_id,
            component_id=component_id,
            subcomponent_id=subcomponent_id,
            limit=limit,
            min_effectiveness=min_effectiveness,
            decay_half_life_days=decay_half_life_days,
        )
        return {"items": items}
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/solutions/stats")
def solution_stats(
    asset_id: Optional[int] = Query(default=None),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return service.get_solution_stats(db, tenant_id, asset_id=asset_id)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/solutions/mttr")
def mttr(
    asset_id: Optional[int] = Query(default=None),
    component_id: Optional[int] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return service.get_mttr(
            db,
            tenant_id,
            asset_id=asset_id,
            component_id=component_id,
            start_date=start_date,
            end_date=end_date,
        )
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/solutions/tools-and-parts")
def tools_and_parts(
    asset_id: Optional[int] = Query(default=None),
    component_id: Optional[int] = Query(default=None),
    limit: int = Query(default=10),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return service.get_frequent_tools_and_parts(
            db, tenant_id, asset_id=asset_id, component_id=component_id, limit=limit
        )
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/solutions/similar")
def similar_solutions(
    payload: SimilarSearch,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        items = service.find_similar_solutions(
            db,
            tenant_id,
            payload.asset_id,
            payload.title,
            component_id=payload.component_id,
            subcomponent_id=payload.subcomponent_id,
            description=payload.description,
            limit=payload.limit,
        )
        return {"items": items}
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/solutions")
def solution_history(
    asset_id: Optional[int] = Query(default=None),
    component_id: Optional[int] = Query(default=None),
    performed_by_id: Optional[int] = Query(default=None),
    outcome: Optional[SolutionOutcome] = Query(default=None),
    min_effectiveness: Optional[int] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    search: Optional[str] = Query(default=None),
    include_obsolete: bool = Query(default=False),
    limit: int = Query(default=20),
    offset: int = Query(default=0),
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        page = service.get_solution_history(
            db,
            tenant_id,
            asset_id=asset_id,
            component_id=component_id,
            performed_by_id=performed_by_id,
            outcome=outcome,
            min_effectiveness=min_effectiveness,
            start_date=start_date,
            end_date=end_date,
            search=search,
            include_obsolete=include_obsolete,
            limit=limit,
            offset=offset,
        )
        return SolutionPage.model_validate(page, from_attributes=True)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.get("/solutions/{solution_id}")
def read_solution(
    solution_id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        return service.get_solution_by_id(db, solution_id, tenant_id)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)


@router.post("/solutions/{solution_id}/obsolete")
def mark_obsolete(
    solution_id: int,
    tenant_id: int = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    try:
        row = service.mark_solution_obsolete(db, solution_id, tenant_id)
        return SolutionResponse.model_validate(row)
    except CorrectiveError as exc:
        raise to_http(exc) from exc
    except Exception:
        return internal_error(logger)
