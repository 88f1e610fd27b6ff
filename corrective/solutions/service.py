import logging
import math
import re
from collections import Counter
from datetime import datetime
from functools import cmp_to_key
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from corrective.core.config import settings
from corrective.core.enums import SolutionOutcome
from corrective.core.errors import NotFound, ValidationFailed, require_positive
from corrective.db import models
from corrective.solutions.schemas import (
    MTTRResult,
    RankedSolution,
    SimilarSolution,
    SolutionDetail,
    SolutionStats,
    ToolsAndParts,
    UsageCount,
)

logger = logging.getLogger("corrective.solutions")

SOLUTION_KEY_PREFIX = 50
USAGE_BONUS_CAP = 5
USAGE_BONUS_WEIGHT = 0.2
SIMILAR_MIN_EFFECTIVENESS = 3
SIMILAR_MIN_SCORE = 30
SIMILAR_TIE_WINDOW = 10
SIMILAR_POOL_SIZE = 100
MIN_WORD_LENGTH = 4


def _normalize(text: Optional[str]) -> str:
    return " ".join((text or "").lower().split())


def _group_key(row: models.SolutionApplied) -> tuple[str, str]:
    return _normalize(row.diagnosis), _normalize(row.solution)[:SOLUTION_KEY_PREFIX]


def _scoped(query, asset_id=None, component_id=None, subcomponent_id=None):
    if asset_id or component_id or subcomponent_id:
        query = query.join(
            models.FailureOccurrence,
            models.FailureOccurrence.id == models.SolutionApplied.failure_occurrence_id,
        )
    if asset_id:
        query = query.filter(models.FailureOccurrence.asset_id == asset_id)
    if component_id:
        query = query.filter(
            or_(
                models.SolutionApplied.final_component_id == component_id,
                models.FailureOccurrence.component_id == component_id,
            )
        )
    if subcomponent_id:
        query = query.filter(
            or_(
                models.SolutionApplied.final_subcomponent_id == subcomponent_id,
                models.FailureOccurrence.subcomponent_id == subcomponent_id,
            )
        )
    return query


def _validate_range(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date and end_date and start_date > end_date:
        raise ValidationFailed("La fecha de inicio no puede ser posterior a la fecha de fin")


def get_top_solutions(
    db: Session,
    tenant_id: int,
    asset_id: Optional[int] = None,
    component_id: Optional[int] = None,
    subcomponent_id: Optional[int] = None,
    limit: int = 5,
    min_effectiveness: int = 3,
    decay_half_life_days: float = 180,
) -> list[RankedSolution]:
    """Rank proven fixes, merging repeated applications of the same fix.

    Each group scores ``avg_effectiveness * e^(-age / decay_half_life_days)``
    boosted by up to 20% for repeated use, where ``age`` is the days since
    the group was last applied.
    """
    require_positive(tenant_id, "tenant_id")
    if limit < 1 or limit > settings.MAX_TOP_SOLUTIONS:
        raise ValidationFailed(f"limit debe estar entre 1 y {settings.MAX_TOP_SOLUTIONS}")
    if min_effectiveness < 1 or min_effectiveness > 5:
        raise ValidationFailed("min_effectiveness debe estar entre 1 y 5")
    if decay_half_life_days <= 0:
        raise ValidationFailed("decay_half_life_days debe ser positivo")

    query = db.query(models.SolutionApplied).filter(
        models.SolutionApplied.tenant_id == tenant_id,
        models.SolutionApplied.is_obsolete.is_(False),
        models.SolutionApplied.outcome == SolutionOutcome.WORKED,
        models.SolutionApplied.effectiveness >= min_effectiveness,
    )
    query = _scoped(query, asset_id, component_id, subcomponent_id)
    rows = (
        query.order_by(models.SolutionApplied.effectiveness.desc(), models.SolutionApplied.performed_at.desc())
        .limit(limit * 3)
        .all()
    )

    groups: dict[tuple[str, str], list[models.SolutionApplied]] = {}
    for row in rows:
        groups.setdefault(_group_key(row), []).append(row)

    now = datetime.utcnow()
    ranked: list[RankedSolution] = []
    for members in groups.values():
        latest = max(members, key=lambda row: row.performed_at)
        usage_count = len(members)
        avg_effectiveness = sum(row.effectiveness for row in members) / usage_count
        age_days = max((now - latest.performed_at).total_seconds() / 86400, 0)
        decay_factor = math.exp(-age_days / decay_half_life_days)
        usage_bonus = min(usage_count / USAGE_BONUS_CAP, 1)
        adjusted_score = avg_effectiveness * decay_factor * (1 + usage_bonus * USAGE_BONUS_WEIGHT)
        ranked.append(
            RankedSolution(
                id=latest.id,
                solution_ids=[row.id for row in members],
                diagnosis=latest.diagnosis,
                solution=latest.solution,
                confirmed_cause=latest.confirmed_cause,
                fix_type=latest.fix_type,
                usage_count=usage_count,
                avg_effectiveness=round(avg_effectiveness, 2),
                last_used_at=latest.performed_at,
                decay_factor=round(decay_factor, 4),
                adjusted_score=round(adjusted_score, 4),
                performed_by_id=latest.performed_by_id,
                failure_occurrence_id=latest.failure_occurrence_id,
            )
        )
    ranked.sort(key=lambda item: item.adjusted_score, reverse=True)
    return ranked[:limit]


def get_solution_history(
    db: Session,
    tenant_id: int,
    asset_id: Optional[int] = None,
    component_id: Optional[int] = None,
    performed_by_id: Optional[int] = None,
    outcome=None,
    min_effectiveness: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    include_obsolete: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> dict:
    require_positive(tenant_id, "tenant_id")
    _validate_range(start_date, end_date)
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        raise ValidationFailed(f"limit debe estar entre 1 y {settings.MAX_PAGE_SIZE}")
    if offset < 0:
        raise ValidationFailed("offset no puede ser negativo")

    query = db.query(models.SolutionApplied).filter(models.SolutionApplied.tenant_id == tenant_id)
    query = _scoped(query, asset_id, component_id)
    if not include_obsolete:
        query = query.filter(models.SolutionApplied.is_obsolete.is_(False))
    if performed_by_id:
        query = query.filter(models.SolutionApplied.performed_by_id == performed_by_id)
    if outcome:
        try:
            query = query.filter(models.SolutionApplied.outcome == SolutionOutcome(outcome))
        except ValueError as exc:
            raise ValidationFailed(f"Resultado invalido: {outcome}") from exc
    if min_effectiveness:
        query = query.filter(models.SolutionApplied.effectiveness >= min_effectiveness)
    if start_date:
        query = query.filter(models.SolutionApplied.performed_at >= start_date)
    if end_date:
        query = query.filter(models.SolutionApplied.performed_at <= end_date)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.SolutionApplied.diagnosis.ilike(pattern),
                models.SolutionApplied.solution.ilike(pattern),
                models.SolutionApplied.confirmed_cause.ilike(pattern),
            )
        )

    total = query.count()
    items = query.order_by(models.SolutionApplied.performed_at.desc()).offset(offset).limit(limit).all()
    return {"items": items, "total": total, "has_more": offset + len(items) < total}


def _get_solution(db: Session, solution_id: int, tenant_id: int) -> models.SolutionApplied:
    require_positive(solution_id, "solution_id")
    require_positive(tenant_id, "tenant_id")
    row = (
        db.query(models.SolutionApplied)
        .filter(models.SolutionApplied.id == solution_id, models.SolutionApplied.tenant_id == tenant_id)
        .first()
    )
    if not row:
        raise NotFound(f"Solucion #{solution_id} no encontrada")
    return row


def get_solution_by_id(db: Session, solution_id: int, tenant_id: int) -> SolutionDetail:
    row = _get_solution(db, solution_id, tenant_id)
    detail = SolutionDetail.model_validate(row)
    occurrence = row.failure_occurrence
    if occurrence:
        detail.failure_title = occurrence.title
        detail.failure_description = occurrence.description
        detail.asset_id = occurrence.asset_id
    return detail


def mark_solution_obsolete(db: Session, solution_id: int, tenant_id: int) -> models.SolutionApplied:
    row = _get_solution(db, solution_id, tenant_id)
    if not row.is_obsolete:
        row.is_obsolete = True
        db.commit()
        db.refresh(row)
        logger.info("solution marked obsolete tenant_id=%s solution_id=%s", tenant_id, solution_id)
    return row


def get_solution_stats(db: Session, tenant_id: int, asset_id: Optional[int] = None) -> SolutionStats:
    require_positive(tenant_id, "tenant_id")
    base = _scoped(
        db.query(models.SolutionApplied).filter(models.SolutionApplied.tenant_id == tenant_id),
        asset_id,
    )
    total = base.count()
    by_outcome = {outcome.value: 0 for outcome in SolutionOutcome}
    for outcome, count in (
        base.with_entities(models.SolutionApplied.outcome, func.count(models.SolutionApplied.id))
        .group_by(models.SolutionApplied.outcome)
        .all()
    ):
        by_outcome[SolutionOutcome(outcome).value] = count
    avg_effectiveness, avg_minutes = base.with_entities(
        func.avg(models.SolutionApplied.effectiveness),
        func.avg(models.SolutionApplied.actual_minutes),
    ).one()
    obsolete_count = base.filter(models.SolutionApplied.is_obsolete.is_(True)).count()
    return SolutionStats(
        total=total,
        by_outcome=by_outcome,
        success_rate=round(by_outcome[SolutionOutcome.WORKED.value] / total * 100, 1) if total else 0.0,
        avg_effectiveness=round(float(avg_effectiveness), 2) if avg_effectiveness is not None else None,
        avg_minutes=round(float(avg_minutes), 1) if avg_minutes is not None else None,
        obsolete_count=obsolete_count,
    )


def _words(text: Optional[str]) -> set[str]:
    return {word for word in re.findall(r"\w+", (text or "").lower()) if len(word) >= MIN_WORD_LENGTH}


def _word_overlap(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def _compare_similar(a: SimilarSolution, b: SimilarSolution) -> int:
    if abs(a.similarity - b.similarity) <= SIMILAR_TIE_WINDOW:
        effectiveness_gap = (b.effectiveness or 0) - (a.effectiveness or 0)
        if effectiveness_gap:
            return effectiveness_gap
    return b.similarity - a.similarity


def find_similar_solutions(
    db: Session,
    tenant_id: int,
    asset_id: int,
    title: str,
    component_id: Optional[int] = None,
    subcomponent_id: Optional[int] = None,
    description: Optional[str] = None,
    limit: int = 3,
) -> list[SimilarSolution]:
    require_positive(tenant_id, "tenant_id")
    require_positive(asset_id, "asset_id")
    if not (title or "").strip():
        raise ValidationFailed("El titulo es obligatorio")
    if limit < 1 or limit > settings.MAX_TOP_SOLUTIONS:
        raise ValidationFailed(f"limit debe estar entre 1 y {settings.MAX_TOP_SOLUTIONS}")

    query = db.query(models.SolutionApplied).filter(
        models.SolutionApplied.tenant_id == tenant_id,
        models.SolutionApplied.is_obsolete.is_(False),
        models.SolutionApplied.outcome == SolutionOutcome.WORKED,
        models.SolutionApplied.effectiveness >= SIMILAR_MIN_EFFECTIVENESS,
    )
    query = _scoped(query, asset_id, component_id, subcomponent_id)
    rows = query.order_by(models.SolutionApplied.performed_at.desc()).limit(SIMILAR_POOL_SIZE).all()

    query_words = _words(f"{title} {description or ''}")
    results: list[SimilarSolution] = []
    for row in rows:
        occurrence = row.failure_occurrence
        if occurrence is None:
            continue
        score = round(
            100
            * max(
                _word_overlap(query_words, _words(occurrence.title)),
                _word_overlap(query_words, _words(occurrence.description)),
            )
        )
        if score <= SIMILAR_MIN_SCORE:
            continue
        results.append(
            SimilarSolution(
                id=row.id,
                failure_occurrence_id=occurrence.id,
                failure_title=occurrence.title,
                diagnosis=row.diagnosis,
                solution=row.solution,
                effectiveness=row.effectiveness,
                similarity=score,
                performed_at=row.performed_at,
            )
        )
    results.sort(key=cmp_to_key(_compare_similar))
    return results[:limit]


def get_mttr(
    db: Session,
    tenant_id: int,
    asset_id: Optional[int] = None,
    component_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> MTTRResult:
    require_positive(tenant_id, "tenant_id")
    _validate_range(start_date, end_date)
    query = db.query(
        func.avg(models.SolutionApplied.actual_minutes),
        func.count(models.SolutionApplied.id),
    ).select_from(models.SolutionApplied).filter(
        models.SolutionApplied.tenant_id == tenant_id,
        models.SolutionApplied.outcome == SolutionOutcome.WORKED,
        models.SolutionApplied.actual_minutes.isnot(None),
    )
    query = _scoped(query, asset_id, component_id)
    if start_date:
        query = query.filter(models.SolutionApplied.performed_at >= start_date)
    if end_date:
        query = query.filter(models.SolutionApplied.performed_at <= end_date)
    average, count = query.one()
    return MTTRResult(
        mttr_minutes=round(float(average), 1) if average is not None else None,
        sample_size=count,
    )


def get_frequent_tools_and_parts(
    db: Session,
    tenant_id: int,
    asset_id: Optional[int] = None,
    component_id: Optional[int] = None,
    limit: int = 10,
) -> ToolsAndParts:
    require_positive(tenant_id, "tenant_id")
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        raise ValidationFailed(f"limit debe estar entre 1 y {settings.MAX_PAGE_SIZE}")
    query = db.query(models.SolutionApplied).filter(
        models.SolutionApplied.tenant_id == tenant_id,
        models.SolutionApplied.is_obsolete.is_(False),
    )
    query = _scoped(query, asset_id, component_id)

    tools: Counter = Counter()
    parts: Counter = Counter()
    for row in query.all():
        tools.update(tool.name.strip() for tool in row.tools_used or [] if tool.name.strip())
        parts.update(part.name.strip() for part in row.spare_parts_used or [] if part.name.strip())
    return ToolsAndParts(
        tools=[UsageCount(name=name, count=count) for name, count in tools.most_common(limit)],
        spare_parts=[UsageCount(name=name, count=count) for name, count in parts.most_common(limit)],
    )
