from datetime import datetime, timedelta

import pytest

from conftest import TENANT_ID, USER_ID, make_occurrence
from corrective.core.enums import (
    FailureStatus,
    Priority,
    QAStatus,
    WorkOrderPriority,
    WorkOrderStatus,
)
from corrective.core.errors import NotFound, ValidationFailed
from corrective.db import models
from corrective.failures import report
from corrective.failures.report import report_failure
from corrective.failures.schemas import FailureReportCreate
from corrective.qa.service import get_qa


def _report(db, asset, notifier, **kwargs):
    values = {"asset_id": asset.id, "title": "Motor no arranca", "caused_downtime": False}
    values.update(kwargs)
    return report_failure(db, TENANT_ID, USER_ID, FailureReportCreate(**values), notifier=notifier)


def test_creates_work_order_with_sla_and_qa(db_session, asset, notifier):
    result = _report(db_session, asset, notifier, caused_downtime=True, attachments=["https://files/a.jpg"])

    assert not result.has_duplicates
    assert result.priority.priority == Priority.P1
    work_order = db_session.get(models.WorkOrder, result.work_order_id)
    assert work_order.title == "Solucionar — Motor no arranca"
    assert work_order.status == WorkOrderStatus.PENDING
    assert work_order.priority == WorkOrderPriority.URGENT
    assert work_order.sla_due_at - work_order.created_at < timedelta(hours=4, minutes=1)
    assert work_order.requires_return_to_production

    occurrence = db_session.get(models.FailureOccurrence, result.occurrence.id)
    assert occurrence.work_order_id == work_order.id
    assert [photo.url for photo in occurrence.photos] == ["https://files/a.jpg"]

    assert result.qa_required
    assert get_qa(db_session, work_order.id).status == QAStatus.PENDING
    assert result.downtime_log_id is not None
    notifier.notify_downtime_start.assert_called_once()


def test_returns_duplicates_without_writing(db_session, asset, notifier):
    existing = make_occurrence(db_session, asset, "Motor no arranca")
    result = _report(db_session, asset, notifier, title="Motor no arranca correctamente")
    assert result.has_duplicates
    assert [candidate.id for candidate in result.duplicates] == [existing.id]
    assert db_session.query(models.FailureOccurrence).count() == 1
    assert db_session.query(models.WorkOrder).count() == 0


def test_force_create_skips_duplicate_check(db_session, asset, notifier):
    make_occurrence(db_session, asset, "Motor no arranca")
    result = _report(db_session, asset, notifier, force_create=True)
    assert result.occurrence is not None
    assert db_session.query(models.FailureOccurrence).count() == 2


def test_link_to_existing(db_session, asset, notifier):
    main = make_occurrence(db_session, asset, "Motor no arranca")
    result = _report(db_session, asset, notifier, link_to_occurrence_id=main.id, attachments=["https://files/b.jpg"])
    assert result.linked_to_existing
    assert result.occurrence.is_linked_duplicate
    assert result.occurrence.linked_to_occurrence_id == main.id
    db_session.refresh(main)
    assert [photo.url for photo in main.photos] == ["https://files/b.jpg"]


def test_observation_has_no_work_order_or_downtime(db_session, asset, notifier):
    result = _report(db_session, asset, notifier, is_observation=True, caused_downtime=True)
    assert result.work_order_id is None
    assert result.downtime_log_id is None
    assert result.priority.priority != Priority.P1
    occurrence = db_session.get(models.FailureOccurrence, result.occurrence.id)
    assert not occurrence.caused_downtime
    assert occurrence.notes.startswith("[OBSERVACIÓN]")
    notifier.notify_downtime_start.assert_not_called()


def test_resolve_immediately(db_session, asset, notifier):
    result = _report(db_session, asset, notifier, resolve_immediately=True, immediate_solution="Reset de variador")
    assert result.resolved_immediately
    assert result.work_order_id is None
    occurrence = db_session.get(models.FailureOccurrence, result.occurrence.id)
    assert occurrence.status == FailureStatus.RESOLVED_IMMEDIATE
    assert occurrence.resolved_at is not None
    assert occurrence.notes.startswith("[SOLUCIÓN INMEDIATA] Reset de variador")


def test_recurrence_requires_qa(db_session, asset, notifier):
    asset.criticality = None
    db_session.commit()
    make_occurrence(
        db_session,
        asset,
        "Fuga de aceite",
        status=FailureStatus.RESOLVED,
        resolved_at=datetime.utcnow() - timedelta(days=2),
    )
    result = _report(db_session, asset, notifier, title="Fuga de aceite")
    assert result.recurrence.is_recurrence
    assert result.recurrence.days_since_resolved == 2
    assert result.priority.priority == Priority.P3
    assert result.qa_required


def test_downtime_error_becomes_warning(db_session, asset, notifier, monkeypatch):
    def broken(*args, **kwargs):
        raise ValidationFailed("Categoria de downtime invalida")

    monkeypatch.setattr(report, "handle_downtime", broken)
    result = _report(db_session, asset, notifier, caused_downtime=True)
    assert result.work_order_id is not None
    assert result.downtime_log_id is None
    assert result.warnings == [{"type": "DOWNTIME", "message": "Categoria de downtime invalida"}]


def test_invalid_reports(db_session, asset, notifier):
    with pytest.raises(ValidationFailed):
        _report(db_session, asset, notifier, title="ab")
    with pytest.raises(ValidationFailed):
        _report(db_session, asset, notifier, is_observation=True, resolve_immediately=True)
    with pytest.raises(NotFound):
        report_failure(
            db_session,
            TENANT_ID,
            USER_ID,
            FailureReportCreate(asset_id=999, title="Motor no arranca", caused_downtime=False),
            notifier=notifier,
        )
