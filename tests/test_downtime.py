from datetime import datetime, timedelta

import pytest
from sqlalchemy import update

from conftest import TENANT_ID, USER_ID, make_occurrence, make_work_order
from corrective.core.enums import DowntimeCategory, DowntimeState, EvidenceLevel, QAReason, QAStatus
from corrective.core.errors import AlreadyClosed, NotFound, ValidationFailed
from corrective.db import models
from corrective.db.store import close_downtime_log
from corrective.downtime import service
from corrective.qa.schemas import QARequirement
from corrective.qa.service import create_or_update_qa, get_qa
from corrective.settings.service import update_settings


@pytest.fixture()
def failure(db_session, asset):
    work_order = make_work_order(db_session, asset)
    occurrence = make_occurrence(db_session, asset, "Motor no arranca", work_order_id=work_order.id)
    return occurrence, work_order


def _open(db, asset, failure, notifier, minutes_ago=0):
    occurrence, work_order = failure
    log = service.handle_downtime(
        db, occurrence.id, asset.id, True, TENANT_ID, work_order_id=work_order.id, notifier=notifier
    )
    if minutes_ago:
        log.started_at = datetime.utcnow() - timedelta(minutes=minutes_ago)
        db.commit()
    return log


def test_no_downtime_creates_nothing(db_session, asset, failure, notifier):
    occurrence, work_order = failure
    assert service.handle_downtime(db_session, occurrence.id, asset.id, False, TENANT_ID, notifier=notifier) is None
    assert db_session.query(models.DowntimeLog).count() == 0
    notifier.notify_downtime_start.assert_not_called()


def test_open_downtime_flags_work_order(db_session, asset, failure, notifier):
    log = _open(db_session, asset, failure, notifier)
    _, work_order = failure
    db_session.refresh(work_order)
    assert log.state == DowntimeState.OPEN
    assert log.category == DowntimeCategory.UNPLANNED
    assert work_order.requires_return_to_production
    assert not work_order.return_to_production_confirmed
    kwargs = notifier.notify_downtime_start.call_args.kwargs
    assert kwargs["asset_name"] == "Prensa 3"
    assert kwargs["sector_id"] == 4
    assert kwargs["failure_title"] == "Motor no arranca"


def test_second_open_for_same_work_order_returns_existing(db_session, asset, failure, notifier):
    first = _open(db_session, asset, failure, notifier)
    second = _open(db_session, asset, failure, notifier)
    assert first.id == second.id
    assert db_session.query(models.DowntimeLog).count() == 1


def test_notifier_failure_is_swallowed(db_session, asset, failure, notifier):
    notifier.notify_downtime_start.side_effect = RuntimeError("queue down")
    notifier.notify_downtime_end.side_effect = RuntimeError("queue down")
    log = _open(db_session, asset, failure, notifier)
    assert log.id is not None
    result = service.confirm_return_to_production(db_session, log.id, USER_ID, TENANT_ID, notifier=notifier)
    assert result.downtime_log_id == log.id


def test_return_to_production_after_ninety_minutes(db_session, asset, failure, notifier):
    log = _open(db_session, asset, failure, notifier, minutes_ago=90)
    result = service.confirm_return_to_production(
        db_session, log.id, USER_ID, TENANT_ID, notes="Linea operativa", notifier=notifier
    )
    assert result.total_minutes == 90
    db_session.refresh(log)
    assert log.state == DowntimeState.CLOSED
    assert log.return_confirmed_by_id == USER_ID
    assert log.return_notes == "Linea operativa"
    _, work_order = failure
    db_session.refresh(work_order)
    assert work_order.return_to_production_confirmed
    assert notifier.notify_downtime_end.call_args.kwargs["duration_minutes"] == 90


def test_second_confirmation_fails_without_mutation(db_session, asset, failure, notifier):
    log = _open(db_session, asset, failure, notifier, minutes_ago=30)
    first = service.confirm_return_to_production(db_session, log.id, USER_ID, TENANT_ID, notifier=notifier)
    with pytest.raises(AlreadyClosed):
        service.confirm_return_to_production(db_session, log.id, USER_ID + 1, TENANT_ID, notifier=notifier)
    db_session.refresh(log)
    assert log.total_minutes == first.total_minutes
    assert log.return_confirmed_by_id == USER_ID


def test_conditional_close_loses_race(db_session, asset, failure, notifier):
    log = _open(db_session, asset, failure, notifier)
    db_session.execute(
        update(models.DowntimeLog)
        .where(models.DowntimeLog.id == log.id)
        .values(ended_at=datetime.utcnow(), total_minutes=12)
        .execution_options(synchronize_session=False)
    )
    db_session.commit()
    log.ended_at = None
    with pytest.raises(AlreadyClosed):
        close_downtime_log(db_session, log, USER_ID)
    row = db_session.get(models.DowntimeLog, log.id)
    assert row.total_minutes == 12


def test_missing_log(db_session):
    with pytest.raises(NotFound):
        service.confirm_return_to_production(db_session, 99, USER_ID, TENANT_ID)


def test_return_for_another_work_order_is_rejected(db_session, asset, failure, notifier):
    _, work_order = failure
    other = make_work_order(db_session, asset)
    log = _open(db_session, asset, failure, notifier)
    with pytest.raises(ValidationFailed):
        service.confirm_return_to_production(
            db_session, log.id, USER_ID, TENANT_ID, work_order_id=other.id, notifier=notifier
        )
    db_session.refresh(log)
    db_session.refresh(other)
    assert log.ended_at is None
    assert not other.return_to_production_confirmed

    service.confirm_return_to_production(
        db_session, log.id, USER_ID, TENANT_ID, work_order_id=work_order.id, notifier=notifier
    )
    db_session.refresh(work_order)
    assert work_order.return_to_production_confirmed
    assert service.validate_can_close(db_session, work_order.id, TENANT_ID).valid


def test_return_confirms_required_qa(db_session, asset, failure, notifier):
    _, work_order = failure
    create_or_update_qa(
        db_session,
        work_order.id,
        TENANT_ID,
        QARequirement(required=True, reason=QAReason.HIGH_PRIORITY, evidence_level=EvidenceLevel.STANDARD),
    )
    log = _open(db_session, asset, failure, notifier)
    service.confirm_return_to_production(db_session, log.id, USER_ID, TENANT_ID, notifier=notifier)
    qa = get_qa(db_session, work_order.id)
    assert qa.return_to_production_confirmed
    assert qa.return_confirmed_by_id == USER_ID


def test_qa_flag_untouched_when_setting_disabled(db_session, asset, failure, notifier):
    _, work_order = failure
    update_settings(db_session, TENANT_ID, {"require_return_confirmation_on_qa": False})
    create_or_update_qa(
        db_session,
        work_order.id,
        TENANT_ID,
        QARequirement(required=True, reason=QAReason.HIGH_PRIORITY, evidence_level=EvidenceLevel.STANDARD),
    )
    log = _open(db_session, asset, failure, notifier)
    service.confirm_return_to_production(db_session, log.id, USER_ID, TENANT_ID, notifier=notifier)
    assert not get_qa(db_session, work_order.id).return_to_production_confirmed


def test_cannot_close_before_return_to_production(db_session, asset, failure, notifier):
    _open(db_session, asset, failure, notifier)
    _, work_order = failure
    result = service.validate_can_close(db_session, work_order.id, TENANT_ID)
    assert not result.valid
    assert "Retorno a Producción" in result.error


def test_open_log_blocks_even_when_flag_confirmed(db_session, asset, failure, notifier):
    _open(db_session, asset, failure, notifier)
    _, work_order = failure
    work_order.return_to_production_confirmed = True
    db_session.commit()
    result = service.validate_can_close(db_session, work_order.id, TENANT_ID)
    assert not result.valid
    assert "sigue abierto" in result.error


def test_qa_gates_closing(db_session, asset, failure, notifier):
    _, work_order = failure
    qa = create_or_update_qa(
        db_session,
        work_order.id,
        TENANT_ID,
        QARequirement(required=True, reason=QAReason.HIGH_PRIORITY, evidence_level=EvidenceLevel.OPTIONAL),
    )
    result = service.validate_can_close(db_session, work_order.id, TENANT_ID)
    assert not result.valid
    assert "QA" in result.error

    log = _open(db_session, asset, failure, notifier)
    service.confirm_return_to_production(db_session, log.id, USER_ID, TENANT_ID, notifier=notifier)
    qa.status = QAStatus.APPROVED
    db_session.commit()
    assert service.validate_can_close(db_session, work_order.id, TENANT_ID).valid


def test_validate_can_close_unknown_work_order(db_session):
    with pytest.raises(NotFound):
        service.validate_can_close(db_session, 404, TENANT_ID)


def test_reads(db_session, asset, failure, notifier):
    closed = _open(db_session, asset, failure, notifier, minutes_ago=45)
    service.confirm_return_to_production(db_session, closed.id, USER_ID, TENANT_ID, notifier=notifier)
    other = make_occurrence(db_session, asset, "Fuga de aire")
    open_log = service.handle_downtime(
        db_session,
        other.id,
        asset.id,
        True,
        TENANT_ID,
        category=DowntimeCategory.EXTERNAL,
        notifier=notifier,
    )
    open_log.started_at = datetime.utcnow() - timedelta(minutes=15)
    db_session.commit()

    assert [log.id for log in service.get_open_downtimes(db_session, TENANT_ID)] == [open_log.id]
    assert service.has_active_downtime(db_session, asset.id, TENANT_ID)
    assert service.get_active_downtime(db_session, asset.id, TENANT_ID).id == open_log.id

    page = service.get_all_downtimes(db_session, TENANT_ID, limit=1)
    assert page["total"] == 2
    assert page["has_more"]
    assert len(page["items"]) == 1
    external = service.get_all_downtimes(db_session, TENANT_ID, category="EXTERNAL")
    assert [log.id for log in external["items"]] == [open_log.id]

    totals = service.calculate_total_downtime(db_session, TENANT_ID, asset_id=asset.id)
    assert totals.closed_minutes == 45
    assert totals.open_minutes == 15
    assert totals.total_minutes == 60
    assert totals.count == 2

    stats = service.get_downtime_stats_by_machine(db_session, TENANT_ID)
    assert len(stats) == 1
    assert stats[0].asset_name == "Prensa 3"
    assert stats[0].count == 2
    assert stats[0].open_count == 1


def test_read_validation(db_session):
    now = datetime.utcnow()
    with pytest.raises(ValidationFailed):
        service.get_all_downtimes(db_session, TENANT_ID, start_date=now, end_date=now - timedelta(days=1))
    with pytest.raises(ValidationFailed):
        service.get_all_downtimes(db_session, TENANT_ID, limit=1000)
    with pytest.raises(ValidationFailed):
        service.calculate_total_downtime(db_session, 0)
