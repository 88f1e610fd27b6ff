import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from corrective.core.config import settings
from corrective.core.enums import DowntimeCategory, QAStatus
from corrective.core.errors import AlreadyClosed, NotFound, ValidationFailed, require_positive
from corrective.db import models
from corrective.db.store import close_downtime_log
from corrective.downtime.notifier import DowntimeNotifier, get_notifier
from corrective.downtime.schemas import (
    DowntimeTotal,
    MachineDowntimeStats,
    ReturnToProductionResult,
)
from corrective.qa.schemas import ValidationResult
from corrective.qa.service import get_qa
from corrective.settings.service import SettingsProvider, provider_for

logger = logging.getLogger("corrective.downtime")


def _minutes_between(start: datetime, end: datetime) -> int:
    return round((end - start).total_seconds() / 60)


def _notify_safely(method, **kwargs) -> None:
    try:
        method(**kwargs)
    except Exception:
        logger.warning("downtime notification failed method=%s", method.__name__, exc_info=True)


def _validate_range(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date and end_date and start_date > end_date:
        raise ValidationFailed("La fecha de inicio no puede ser posterior a la fecha de fin")


def _get_open_log_for_work_order(db: Session, work_order_id: int) -> Optional[models.DowntimeLog]:
    return (
        db.query(models.DowntimeLog)
        .filter(
            models.DowntimeLog.work_order_id == work_order_id,
            models.DowntimeLog.ended_at.is_(None),
        )
        .order_by(models.DowntimeLog.started_at.desc())
        .first()
    )


def handle_downtime(
    db: Session,
    failure_occurrence_id: int,
    asset_id: int,
    caused_downtime: bool,
    tenant_id: int,
    work_order_id: Optional[int] = None,
    category=DowntimeCategory.UNPLANNED,
    reason: Optional[str] = None,
    production_impact: Optional[str] = None,
    notifier: Optional[DowntimeNotifier] = None,
) -> Optional[models.DowntimeLog]:
    """Open a downtime window for a failure that stopped production.

    Returns ``None`` when the failure did not cause downtime. A linked work
    order is flagged so it cannot close before return to production.
    """
    if not caused_downtime:
        return None
    require_positive(failure_occurrence_id, "failure_occurrence_id")
    require_positive(asset_id, "asset_id")
    require_positive(tenant_id, "tenant_id")
    if work_order_id is not None:
        require_positive(work_order_id, "work_order_id")
    try:
        category = DowntimeCategory(category or DowntimeCategory.UNPLANNED)
    except ValueError as exc:
        raise ValidationFailed(f"Categoria de downtime invalida: {category}") from exc

    work_order = None
    if work_order_id is not None:
        work_order = (
            db.query(models.WorkOrder)
            .filter(models.WorkOrder.id == work_order_id, models.WorkOrder.tenant_id == tenant_id)
            .first()
        )
        if not work_order:
            raise NotFound(f"Orden de trabajo #{work_order_id} no encontrada")
        existing = _get_open_log_for_work_order(db, work_order_id)
        if existing:
            logger.info("downtime already open work_order_id=%s log_id=%s", work_order_id, existing.id)
            return existing

    log = models.DowntimeLog(
        tenant_id=tenant_id,
        failure_occurrence_id=failure_occurrence_id,
        work_order_id=work_order_id,
        asset_id=asset_id,
        started_at=datetime.utcnow(),
        category=category,
        reason=reason,
        production_impact=production_impact,
    )
    db.add(log)
    if work_order is not None:
        work_order.requires_return_to_production = True
        work_order.return_to_production_confirmed = False
    db.commit()
    db.refresh(log)
    logger.info(
        "downtime opened tenant_id=%s log_id=%s asset_id=%s work_order_id=%s",
        tenant_id,
        log.id,
        asset_id,
        work_order_id,
    )

    asset = db.get(models.Asset, asset_id)
    occurrence = db.get(models.FailureOccurrence, failure_occurrence_id)
    notifier = notifier or get_notifier()
    _notify_safely(
        notifier.notify_downtime_start,
        asset_id=asset_id,
        asset_name=asset.name if asset else None,
        sector_id=asset.sector_id if asset else None,
        started_at=log.started_at,
        failure_id=failure_occurrence_id,
        failure_title=occurrence.title if occurrence else None,
        cause=reason,
    )
    return log


def confirm_return_to_production(
    db: Session,
    downtime_log_id: int,
    returned_by_id: int,
    tenant_id: int,
    work_order_id: Optional[int] = None,
    notes: Optional[str] = None,
    notifier: Optional[DowntimeNotifier] = None,
    settings_provider: Optional[SettingsProvider] = None,
) -> ReturnToProductionResult:
    require_positive(downtime_log_id, "downtime_log_id")
    require_positive(returned_by_id, "returned_by_id")
    require_positive(tenant_id, "tenant_id")
    if work_order_id is not None:
        require_positive(work_order_id, "work_order_id")

    log = (
        db.query(models.DowntimeLog)
        .filter(models.DowntimeLog.id == downtime_log_id, models.DowntimeLog.tenant_id == tenant_id)
        .first()
    )
    if not log:
        raise NotFound(f"Downtime #{downtime_log_id} no encontrado")
    if log.ended_at is not None:
        raise AlreadyClosed("El downtime ya fue cerrado")
    if work_order_id is not None and work_order_id != log.work_order_id:
        raise ValidationFailed(
            f"El downtime #{log.id} no pertenece a la orden de trabajo #{work_order_id}"
        )

    log = close_downtime_log(db, log, returned_by_id, notes=notes)

    work_order_id = log.work_order_id
    if work_order_id:
        work_order = (
            db.query(models.WorkOrder)
            .filter(models.WorkOrder.id == work_order_id, models.WorkOrder.tenant_id == tenant_id)
            .first()
        )
        if work_order:
            work_order.return_to_production_confirmed = True
            qa = get_qa(db, work_order_id)
            tenant_settings = provider_for(db, settings_provider).get(tenant_id)
            if qa and qa.is_required and tenant_settings.require_return_confirmation_on_qa:
                qa.return_to_production_confirmed = True
                qa.return_confirmed_by_id = returned_by_id
                qa.return_confirmed_at = log.ended_at
    db.commit()
    logger.info(
        "downtime closed tenant_id=%s log_id=%s total_minutes=%s confirmed_by=%s",
        tenant_id,
        log.id,
        log.total_minutes,
        returned_by_id,
    )

    asset = db.get(models.Asset, log.asset_id)
    occurrence = db.get(models.FailureOccurrence, log.failure_occurrence_id)
    notifier = notifier or get_notifier()
    _notify_safely(
        notifier.notify_downtime_end,
        asset_id=log.asset_id,
        asset_name=asset.name if asset else None,
        sector_id=asset.sector_id if asset else None,
        ended_at=log.ended_at,
        duration_minutes=log.total_minutes,
        failure_id=log.failure_occurrence_id,
        failure_title=occurrence.title if occurrence else None,
        cause=log.reason,
    )
    return ReturnToProductionResult(
        downtime_log_id=log.id,
        total_minutes=log.total_minutes,
        ended_at=log.ended_at,
    )


def validate_can_close(
    db: Session,
    work_order_id: int,
    tenant_id: int,
    settings_provider: Optional[SettingsProvider] = None,
) -> ValidationResult:
    """Check every gate that blocks closing a work order.

    The first failing gate is reported with a message meant for the user.
    """
    require_positive(work_order_id, "work_order_id")
    require_positive(tenant_id, "tenant_id")
    work_order = (
        db.query(models.WorkOrder)
        .filter(models.WorkOrder.id == work_order_id, models.WorkOrder.tenant_id == tenant_id)
        .first()
    )
    if not work_order:
        raise NotFound(f"Orden de trabajo #{work_order_id} no encontrada")

    if work_order.requires_return_to_production:
        if not work_order.return_to_production_confirmed:
            return ValidationResult(
                valid=False,
                error="Debe confirmar el Retorno a Producción antes de cerrar la orden (return-to-production pendiente)",
            )
        open_log = _get_open_log_for_work_order(db, work_order_id)
        if open_log:
            return ValidationResult(
                valid=False,
                error=f"El downtime #{open_log.id} sigue abierto. Confirme el Retorno a Producción para cerrarlo",
            )

    qa = get_qa(db, work_order_id)
    if qa and qa.is_required:
        if qa.status != QAStatus.APPROVED:
            return ValidationResult(
                valid=False,
                error=f"El control de calidad (QA) debe estar aprobado antes de cerrar (estado actual: {qa.status.value})",
            )
        tenant_settings = provider_for(db, settings_provider).get(tenant_id)
        if (
            work_order.requires_return_to_production
            and tenant_settings.require_return_confirmation_on_qa
            and not qa.return_to_production_confirmed
        ):
            return ValidationResult(
                valid=False,
                error="El QA requiere la confirmación de Retorno a Producción antes de cerrar",
            )
    return ValidationResult(valid=True)


def _base_query(db: Session, tenant_id: int):
    require_positive(tenant_id, "tenant_id")
    return db.query(models.DowntimeLog).filter(models.DowntimeLog.tenant_id == tenant_id)


def get_open_downtimes(db: Session, tenant_id: int, asset_id: Optional[int] = None) -> list[models.DowntimeLog]:
    query = _base_query(db, tenant_id).filter(models.DowntimeLog.ended_at.is_(None))
    if asset_id:
        query = query.filter(models.DowntimeLog.asset_id == asset_id)
    return query.order_by(models.DowntimeLog.started_at.asc()).all()


def get_all_downtimes(
    db: Session,
    tenant_id: int,
    asset_id: Optional[int] = None,
    category=None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> dict:
    _validate_range(start_date, end_date)
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        raise ValidationFailed(f"limit debe estar entre 1 y {settings.MAX_PAGE_SIZE}")
    if offset < 0:
        raise ValidationFailed("offset no puede ser negativo")

    query = _base_query(db, tenant_id)
    if asset_id:
        query = query.filter(models.DowntimeLog.asset_id == asset_id)
    if category:
        try:
            query = query.filter(models.DowntimeLog.category == DowntimeCategory(category))
        except ValueError as exc:
            raise ValidationFailed(f"Categoria de downtime invalida: {category}") from exc
    if start_date:
        query = query.filter(models.DowntimeLog.started_at >= start_date)
    if end_date:
        query = query.filter(models.DowntimeLog.started_at <= end_date)

    total = query.count()
    items = query.order_by(models.DowntimeLog.started_at.desc()).offset(offset).limit(limit).all()
    return {"items": items, "total": total, "has_more": offset + len(items) < total}


def calculate_total_downtime(
    db: Session,
    tenant_id: int,
    asset_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> DowntimeTotal:
    """Sum downtime minutes. Windows still open count up to now."""
    _validate_range(start_date, end_date)
    query = _base_query(db, tenant_id)
    if asset_id:
        query = query.filter(models.DowntimeLog.asset_id == asset_id)
    if start_date:
        query = query.filter(models.DowntimeLog.started_at >= start_date)
    if end_date:
        query = query.filter(models.DowntimeLog.started_at <= end_date)

    now = datetime.utcnow()
    closed_minutes = 0
    open_minutes = 0
    logs = query.all()
    for log in logs:
        if log.ended_at is None:
            open_minutes += _minutes_between(log.started_at, now)
        else:
            closed_minutes += log.total_minutes or _minutes_between(log.started_at, log.ended_at)
    return DowntimeTotal(
        total_minutes=closed_minutes + open_minutes,
        closed_minutes=closed_minutes,
        open_minutes=open_minutes,
        count=len(logs),
    )


def get_downtime_stats_by_machine(
    db: Session,
    tenant_id: int,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> list[MachineDowntimeStats]:
    _validate_range(start_date, end_date)
    query = _base_query(db, tenant_id)
    if start_date:
        query = query.filter(models.DowntimeLog.started_at >= start_date)
    if end_date:
        query = query.filter(models.DowntimeLog.started_at <= end_date)

    now = datetime.utcnow()
    by_asset: dict[int, dict] = {}
    for log in query.all():
        entry = by_asset.setdefault(log.asset_id, {"total": 0, "count": 0, "open": 0, "log": log})
        if log.ended_at is None:
            entry["open"] += 1
            entry["total"] += _minutes_between(log.started_at, now)
        else:
            entry["total"] += log.total_minutes or _minutes_between(log.started_at, log.ended_at)
        entry["count"] += 1

    stats = [
        MachineDowntimeStats(
            asset_id=asset_id,
            asset_name=entry["log"].asset.name if entry["log"].asset else None,
            total_minutes=entry["total"],
            count=entry["count"],
            open_count=entry["open"],
            avg_minutes=round(entry["total"] / entry["count"], 1),
        )
        for asset_id, entry in by_asset.items()
    ]
    stats.sort(key=lambda item: item.total_minutes, reverse=True)
    return stats


def get_active_downtime(db: Session, asset_id: int, tenant_id: int) -> Optional[models.DowntimeLog]:
    require_positive(asset_id, "asset_id")
    return (
        _base_query(db, tenant_id)
        .filter(models.DowntimeLog.asset_id == asset_id, models.DowntimeLog.ended_at.is_(None))
        .order_by(models.DowntimeLog.started_at.desc())
        .first()
    )


def has_active_downtime(db: Session, asset_id: int, tenant_id: int) -> bool:
    return get_active_downtime(db, asset_id, tenant_id) is not None
