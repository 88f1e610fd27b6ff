import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from corrective.core.enums import ACTIVE_FAILURE_STATUSES, FailureStatus
from corrective.core.errors import ConflictState, NotFound, ValidationFailed, require_positive
from corrective.db import models
from corrective.db.lists import AttachmentRef, SymptomRef, symptom_ids as stored_symptom_ids
from corrective.db.store import append_occurrence_attachments
from corrective.failures.schemas import DuplicateCandidate
from corrective.failures.similarity import similarity
from corrective.settings.service import SettingsProvider, provider_for

logger = logging.getLogger("corrective.failures")

MIN_TITLE_LENGTH = 3
MAX_CANDIDATES = 50


def validate_title(title: Optional[str]) -> str:
    cleaned = (title or "").strip()
    if len(cleaned) < MIN_TITLE_LENGTH:
        raise ValidationFailed(f"El titulo debe tener al menos {MIN_TITLE_LENGTH} caracteres")
    return cleaned


def detect_duplicates(
    db: Session,
    asset_id: int,
    title: str,
    tenant_id: int,
    symptom_ids: Optional[list[int]] = None,
    component_id: Optional[int] = None,
    subcomponent_id: Optional[int] = None,
    settings_provider: Optional[SettingsProvider] = None,
) -> list[DuplicateCandidate]:
    """Open failures on the same asset that look like the same event.

    Read only. Candidates already linked as duplicates are never returned.
    """
    title = validate_title(title)
    require_positive(tenant_id, "tenant_id")
    require_positive(asset_id, "asset_id")

    tenant_settings = provider_for(db, settings_provider).get(tenant_id)
    since = datetime.utcnow() - timedelta(hours=tenant_settings.duplicate_window_hours)

    query = db.query(models.FailureOccurrence).filter(
        models.FailureOccurrence.tenant_id == tenant_id,
        models.FailureOccurrence.asset_id == asset_id,
        models.FailureOccurrence.status.in_(ACTIVE_FAILURE_STATUSES),
        models.FailureOccurrence.reported_at >= since,
        models.FailureOccurrence.is_linked_duplicate.is_(False),
    )
    if subcomponent_id:
        query = query.filter(models.FailureOccurrence.subcomponent_id == subcomponent_id)
    rows = query.order_by(models.FailureOccurrence.reported_at.desc()).limit(MAX_CANDIDATES).all()

    threshold = tenant_settings.duplicate_similarity_threshold
    candidates: list[DuplicateCandidate] = []
    for row in rows:
        score = similarity(title, row.title, symptom_ids or [], stored_symptom_ids(row.symptoms))
        if score < threshold:
            continue
        candidates.append(
            DuplicateCandidate(
                id=row.id,
                title=row.title,
                status=row.status,
                priority=row.priority,
                reported_at=row.reported_at,
                similarity=score,
                asset_id=row.asset_id,
                work_order_id=row.work_order_id,
            )
        )
    # Stable sort keeps the most recent report first among equal scores.
    candidates.sort(key=lambda candidate: candidate.similarity, reverse=True)
    logger.info(
        "duplicate search tenant_id=%s asset_id=%s scanned=%s matched=%s",
        tenant_id,
        asset_id,
        len(rows),
        len(candidates),
    )
    return candidates


def link_duplicate(
    db: Session,
    main_occurrence_id: int,
    reported_by: int,
    asset_id: int,
    tenant_id: int,
    linked_reason: Optional[str] = None,
    symptom_ids: Optional[list[int]] = None,
    attachments: Optional[list[str]] = None,
    notes: Optional[str] = None,
    subcomponent_id: Optional[int] = None,
) -> models.FailureOccurrence:
    require_positive(main_occurrence_id, "main_occurrence_id")
    require_positive(reported_by, "reported_by")
    require_positive(asset_id, "asset_id")
    require_positive(tenant_id, "tenant_id")

    main = (
        db.query(models.FailureOccurrence)
        .filter(
            models.FailureOccurrence.id == main_occurrence_id,
            models.FailureOccurrence.tenant_id == tenant_id,
        )
        .first()
    )
    if not main:
        raise NotFound(f"La falla principal #{main_occurrence_id} no existe")
    if main.is_linked_duplicate:
        raise ConflictState(f"La falla #{main_occurrence_id} ya es un duplicado vinculado")
    if main.asset_id != asset_id:
        raise ValidationFailed("Solo puede vincular fallas de la misma maquina")

    now = datetime.utcnow()
    duplicate = models.FailureOccurrence(
        tenant_id=tenant_id,
        asset_id=asset_id,
        component_id=main.component_id,
        subcomponent_id=subcomponent_id,
        work_order_id=main.work_order_id,
        title=main.title,
        failure_category=main.failure_category,
        symptoms=[SymptomRef(id=symptom_id) for symptom_id in symptom_ids or []],
        notes=notes,
        reported_by=reported_by,
        reported_at=now,
        status=FailureStatus.OPEN,
        priority=main.priority,
        is_linked_duplicate=True,
        linked_to_occurrence_id=main.id,
        linked_by_id=reported_by,
        linked_at=now,
        linked_reason=linked_reason or f"Vinculado como duplicado de #{main.id}",
    )
    db.add(duplicate)
    db.commit()
    db.refresh(duplicate)

    if attachments:
        append_occurrence_attachments(db, main.id, [AttachmentRef(url=url) for url in attachments])

    logger.info(
        "duplicate linked tenant_id=%s duplicate_id=%s main_id=%s attachments=%s",
        tenant_id,
        duplicate.id,
        main.id,
        len(attachments or []),
    )
    return duplicate
