import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from corrective.core.config import settings
from corrective.core.errors import ValidationFailed, require_positive
from corrective.db import models
from corrective.settings.schemas import CorrectiveSettingsDefaults, CorrectiveSettingsUpdate

logger = logging.getLogger("corrective.settings")

DEFAULT_SETTINGS = CorrectiveSettingsDefaults(
    duplicate_similarity_threshold=settings.DUPLICATE_SIMILARITY_THRESHOLD,
    recurrence_similarity_threshold=settings.RECURRENCE_SIMILARITY_THRESHOLD,
)


def _find(db: Session, tenant_id: int) -> Optional[models.CorrectiveSettings]:
    return (
        db.query(models.CorrectiveSettings)
        .filter(models.CorrectiveSettings.tenant_id == tenant_id)
        .first()
    )


def get_or_create_settings(db: Session, tenant_id: int) -> models.CorrectiveSettings:
    """Return the tenant settings, inserting the defaults on first access.

    The insert runs in a SAVEPOINT; a concurrent request that created the row
    first trips the unique constraint and the existing row is read instead.
    The new row is only flushed: the calling operation owns the commit.
    """
    require_positive(tenant_id, "tenant_id")
    row = _find(db, tenant_id)
    if row:
        return row

    row = models.CorrectiveSettings(tenant_id=tenant_id, **DEFAULT_SETTINGS.model_dump())
    try:
        with db.begin_nested():
            db.add(row)
    except IntegrityError:
        logger.info("settings created concurrently tenant_id=%s", tenant_id)
        row = _find(db, tenant_id)
    else:
        db.refresh(row)
        logger.info("settings created with defaults tenant_id=%s", tenant_id)
    return row


def read_settings(db: Session, tenant_id: int) -> models.CorrectiveSettings:
    row = get_or_create_settings(db, tenant_id)
    db.commit()
    return row


def update_settings(db: Session, tenant_id: int, changes: dict) -> models.CorrectiveSettings:
    require_positive(tenant_id, "tenant_id")
    try:
        payload = CorrectiveSettingsUpdate.model_validate(changes)
    except ValidationError as exc:
        raise ValidationFailed(f"Configuracion invalida: {exc.errors()[0]['msg']}") from exc
    row = get_or_create_settings(db, tenant_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(row, key, value)
    db.commit()
    db.refresh(row)
    return row


class SettingsProvider:
    """Per-request cache of tenant settings. Never shared between requests."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._cache: dict[int, models.CorrectiveSettings] = {}

    def get(self, tenant_id: int) -> models.CorrectiveSettings:
        if tenant_id not in self._cache:
            self._cache[tenant_id] = get_or_create_settings(self.db, tenant_id)
        return self._cache[tenant_id]


def provider_for(db: Session, provider: Optional[SettingsProvider] = None) -> SettingsProvider:
    return provider if provider is not None else SettingsProvider(db)
