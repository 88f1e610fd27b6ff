import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from corrective.core.enums import RESOLVED_FAILURE_STATUSES
from corrective.core.errors import ValidationFailed, require_positive
from corrective.db import models
from corrective.failures.schemas import RecurrenceMatch, RecurrenceResult
from corrective.failures.similarity import similarity
from corrective.settings.service import SettingsProvider, provider_for

logger = logging.getLogger("corrective.failures")

MAX_CANDIDATES = 50


def detect_recurrence(
    db: Session,
    asset_id: int,
    title: str,
    tenant_id: int,
    component_id: Optional[int] = None,
    subcomponent_id: Optional[int] = None,
    settings_provider: Optional[SettingsProvider] = None,
) -> RecurrenceResult:
    """Look for a recently resolved failure on the asset that came back.

    Only titles are compared; the acceptance threshold is lower than for
    duplicates because titles drift after a fix.
    """
    if not (title or "").strip():
        raise ValidationFailed("El titulo es obligatorio")
    require_positive(tenant_id, "tenant_id")
    require_positive(asset_id, "asset_id")

    tenant_settings = provider_for(db, settings_provider).get(tenant_id)
    now = datetime.utcnow()
    since = now - timedelta(days=tenant_settings.recurrence_window_days)

    query = db.query(models.FailureOccurrence).filter(
        models.FailureOccurrence.tenant_id == tenant_id,
        models.FailureOccurrence.asset_id == asset_id,
        models.FailureOccurrence.status.in_(RESOLVED_FAILURE_STATUSES),
        models.FailureOccurrence.resolved_at.isnot(None),
        models.FailureOccurrence.resolved_at >= since,
        models.FailureOccurrence.is_linked_duplicate.is_(False),
    )
    if subcomponent_id:
        query = query.filter(models.FailureOccurrence.subcomponent_id == subcomponent_id)
    rows = query.order_by(models.FailureOccurrence.resolved_at.desc()).limit(MAX_CANDIDATES).all()

    threshold = tenant_settings.recurrence_similarity_threshold
    best: Optional[models.FailureOccurrence] = None
    best_score = -1
    for row in rows:
        score = similarity(title, row.title)
        if score >= threshold and score > best_score:
            best, best_score = row, score

    if best is None:
        return RecurrenceResult(is_recurrence=False)

    days = math.floor((now - best.resolved_at).total_seconds() / 86400)
    logger.info(
        "recurrence detected tenant_id=%s asset_id=%s previous_id=%s similarity=%s days=%s",
        tenant_id,
        asset_id,
        best.id,
        best_score,
        days,
    )
    return RecurrenceResult(
        is_recurrence=True,
        previous_occurrence=RecurrenceMatch(
            id=best.id,
            title=best.title,
            resolved_at=best.resolved_at,
            similarity=best_score,
            work_order_id=best.work_order_id,
        ),
        days_since_resolved=days,
    )
