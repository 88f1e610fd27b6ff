"""Store-level writes that must stay correct under concurrent requests."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from corrective.core.errors import AlreadyClosed, ConflictState, NotFound
from corrective.db import models
from corrective.db.lists import AttachmentRef

logger = logging.getLogger("corrective.store")

MAX_APPEND_RETRIES = 5


def append_occurrence_attachments(
    db: Session,
    occurrence_id: int,
    attachments: list[AttachmentRef],
    max_retries: int = MAX_APPEND_RETRIES,
) -> models.FailureOccurrence:
    """Append attachments to an occurrence using optimistic concurrency.

    The occurrence row is versioned, so a concurrent writer makes the UPDATE
    match no row and raises ``StaleDataError``; the append is then retried on
    fresh data.
    """
    for attempt in range(1, max_retries + 1):
        occurrence = db.get(models.FailureOccurrence, occurrence_id)
        if not occurrence:
            raise NotFound(f"Falla #{occurrence_id} no encontrada")
        occurrence.photos = [*(occurrence.photos or []), *attachments]
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.info("attachment append conflict occurrence_id=%s attempt=%s", occurrence_id, attempt)
            continue
        db.refresh(occurrence)
        return occurrence
    raise ConflictState("No se pudieron adjuntar los archivos por ediciones concurrentes, reintente")


def close_downtime_log(
    db: Session,
    log: models.DowntimeLog,
    confirmed_by_id: int,
    notes: Optional[str] = None,
    ended_at: Optional[datetime] = None,
) -> models.DowntimeLog:
    """Close an open downtime window exactly once.

    The UPDATE only matches while ``ended_at`` is still NULL, so of two
    concurrent confirmations only one changes the row.
    """
    ended_at = ended_at or datetime.utcnow()
    total_minutes = round((ended_at - log.started_at).total_seconds() / 60)
    result = db.execute(
        update(models.DowntimeLog)
        .where(models.DowntimeLog.id == log.id, models.DowntimeLog.ended_at.is_(None))
        .values(
            ended_at=ended_at,
            total_minutes=total_minutes,
            return_confirmed_by_id=confirmed_by_id,
            return_confirmed_at=ended_at,
            return_notes=notes,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise AlreadyClosed("El downtime ya fue cerrado")
    db.flush()
    db.refresh(log)
    return log
