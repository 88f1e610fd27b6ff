from datetime import datetime, timedelta

import pytest

from conftest import TENANT_ID, make_occurrence
from corrective.core.enums import FailureStatus
from corrective.core.errors import ValidationFailed
from corrective.failures.recurrence import detect_recurrence
from corrective.settings.service import update_settings


def _resolved(db, asset, title, days_ago, **kwargs):
    return make_occurrence(
        db,
        asset,
        title,
        status=FailureStatus.RESOLVED,
        resolved_at=datetime.utcnow() - timedelta(days=days_ago, hours=1),
        **kwargs,
    )


def test_recently_resolved_failure_is_recurrence(db_session, asset):
    previous = _resolved(db_session, asset, "Fuga de aceite en cilindro", days_ago=3)
    result = detect_recurrence(db_session, asset.id, "Perdida de aceite en cilindro", TENANT_ID)
    assert result.is_recurrence
    assert result.previous_occurrence.id == previous.id
    assert result.days_since_resolved == 3


def test_best_match_wins(db_session, asset):
    _resolved(db_session, asset, "Fuga de agua en cilindro", days_ago=1)
    exact = _resolved(db_session, asset, "Fuga de aceite en cilindro", days_ago=2)
    result = detect_recurrence(db_session, asset.id, "Fuga de aceite en cilindro", TENANT_ID)
    assert result.previous_occurrence.id == exact.id
    assert result.previous_occurrence.similarity == 100


def test_outside_window_or_open_is_not_recurrence(db_session, asset):
    _resolved(db_session, asset, "Fuga de aceite", days_ago=8)
    make_occurrence(db_session, asset, "Fuga de aceite")
    _resolved(db_session, asset, "Fuga de aceite", days_ago=1, is_linked_duplicate=True)
    result = detect_recurrence(db_session, asset.id, "Fuga de aceite", TENANT_ID)
    assert not result.is_recurrence
    assert result.previous_occurrence is None
    assert result.days_since_resolved is None


def test_resolved_immediately_counts(db_session, asset):
    make_occurrence(
        db_session,
        asset,
        "Sensor desalineado",
        status=FailureStatus.RESOLVED_IMMEDIATE,
        resolved_at=datetime.utcnow() - timedelta(hours=2),
    )
    result = detect_recurrence(db_session, asset.id, "Sensor desalineado", TENANT_ID)
    assert result.is_recurrence
    assert result.days_since_resolved == 0


def test_threshold_is_configurable(db_session, asset):
    _resolved(db_session, asset, "Fuga de aceite en cilindro", days_ago=1)
    update_settings(db_session, TENANT_ID, {"recurrence_similarity_threshold": 100})
    result = detect_recurrence(db_session, asset.id, "Perdida de aceite en cilindro", TENANT_ID)
    assert not result.is_recurrence


def test_blank_title_rejected(db_session, asset):
    with pytest.raises(ValidationFailed):
        detect_recurrence(db_session, asset.id, "  ", TENANT_ID)
