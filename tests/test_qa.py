import unittest

import pytest

from conftest import TENANT_ID, USER_ID, make_work_order
from corrective.core.enums import AssetCriticality, EvidenceLevel, Priority, QAReason, QAStatus
from corrective.core.errors import ConflictState, NotFound, ValidationFailed
from corrective.db.lists import EvidenceItem
from corrective.qa.schemas import QARequirement
from corrective.qa.service import (
    approve_qa,
    create_or_update_qa,
    record_qa_evidence,
    reject_qa,
    requires_qa,
    validate_qa_completion,
)
from corrective.settings.service import update_settings


@pytest.mark.parametrize("priority", list(Priority))
@pytest.mark.parametrize("criticality", [None, *AssetCriticality])
def test_safety_always_requires_complete_qa(db_session, priority, criticality):
    result = requires_qa(
        db_session,
        priority,
        TENANT_ID,
        is_safety_related=True,
        asset_criticality=criticality,
        caused_downtime=True,
        downtime_minutes=500,
        is_recurrence=True,
        recurrence_days=1,
    )
    assert result == QARequirement(required=True, reason=QAReason.SAFETY, evidence_level=EvidenceLevel.COMPLETE)


@pytest.mark.parametrize(
    "kwargs,expected",
    [
        ({"priority": "P1"}, (True, QAReason.HIGH_PRIORITY, EvidenceLevel.COMPLETE)),
        ({"priority": "P2"}, (True, QAReason.HIGH_PRIORITY, EvidenceLevel.STANDARD)),
        (
            {"priority": "P3", "asset_criticality": "CRITICAL", "caused_downtime": True},
            (True, QAReason.HIGH_CRITICALITY, EvidenceLevel.STANDARD),
        ),
        (
            {"priority": "P3", "asset_criticality": "CRITICAL", "caused_downtime": False},
            (False, None, EvidenceLevel.BASIC),
        ),
        ({"priority": "P4", "downtime_minutes": 61}, (True, QAReason.HIGH_DOWNTIME, EvidenceLevel.STANDARD)),
        ({"priority": "P4", "downtime_minutes": 60}, (False, None, EvidenceLevel.OPTIONAL)),
        (
            {"priority": "P4", "is_recurrence": True, "recurrence_days": 3},
            (True, QAReason.RECURRENCE, EvidenceLevel.STANDARD),
        ),
        ({"priority": "P4", "is_recurrence": True, "recurrence_days": 30}, (False, None, EvidenceLevel.OPTIONAL)),
        ({"priority": "P3"}, (False, None, EvidenceLevel.BASIC)),
        ({"priority": "P4"}, (False, None, EvidenceLevel.OPTIONAL)),
    ],
)
def test_rule_chain(db_session, kwargs, expected):
    priority = kwargs.pop("priority")
    result = requires_qa(db_session, priority, TENANT_ID, **kwargs)
    assert (result.required, result.reason, result.evidence_level) == expected


def test_p3_without_evidence_setting_is_optional(db_session):
    update_settings(db_session, TENANT_ID, {"require_evidence_p3": False})
    result = requires_qa(db_session, Priority.P3, TENANT_ID)
    assert result.evidence_level == EvidenceLevel.OPTIONAL


def test_invalid_inputs(db_session):
    with pytest.raises(ValidationFailed):
        requires_qa(db_session, "P9", TENANT_ID)
    with pytest.raises(ValidationFailed):
        requires_qa(db_session, "P1", 0)
    with pytest.raises(ValidationFailed):
        requires_qa(db_session, "P4", TENANT_ID, downtime_minutes=-1)


class QARecordTests(unittest.TestCase):
    @pytest.fixture(autouse=True)
    def _setup(self, db_session, asset):
        self.db = db_session
        self.work_order = make_work_order(db_session, asset)

    def _require(self, evidence_level=EvidenceLevel.STANDARD):
        requirement = QARequirement(required=True, reason=QAReason.HIGH_PRIORITY, evidence_level=evidence_level)
        return create_or_update_qa(self.db, self.work_order.id, TENANT_ID, requirement)

    def test_create_then_update_in_place(self):
        qa = self._require()
        self.assertEqual(qa.status, QAStatus.PENDING)
        updated = create_or_update_qa(
            self.db,
            self.work_order.id,
            TENANT_ID,
            QARequirement(required=False, evidence_level=EvidenceLevel.OPTIONAL),
        )
        self.assertEqual(updated.id, qa.id)
        self.assertEqual(updated.status, QAStatus.NOT_REQUIRED)
        self.assertFalse(updated.is_required)

    def test_validation_without_record_is_valid(self):
        self.assertTrue(validate_qa_completion(self.db, self.work_order.id).valid)

    def test_pending_qa_blocks_completion(self):
        self._require()
        result = validate_qa_completion(self.db, self.work_order.id)
        self.assertFalse(result.valid)
        self.assertIn("PENDING", result.error)

    def test_evidence_then_approval(self):
        self._require()
        with self.assertRaises(ConflictState):
            approve_qa(self.db, self.work_order.id, TENANT_ID, USER_ID)
        record_qa_evidence(self.db, self.work_order.id, TENANT_ID, [EvidenceItem(url="https://files/ok.jpg")])
        qa = approve_qa(self.db, self.work_order.id, TENANT_ID, USER_ID, notes="Verificado")
        self.assertEqual(qa.status, QAStatus.APPROVED)
        self.assertEqual(qa.verified_by_id, USER_ID)
        self.assertEqual([item.url for item in qa.evidence_provided], ["https://files/ok.jpg"])
        self.assertTrue(validate_qa_completion(self.db, self.work_order.id).valid)

    def test_optional_evidence_can_be_approved_directly(self):
        self._require(EvidenceLevel.OPTIONAL)
        qa = approve_qa(self.db, self.work_order.id, TENANT_ID, USER_ID)
        self.assertEqual(qa.status, QAStatus.APPROVED)

    def test_rejection_returns_to_pending_with_new_evidence(self):
        self._require()
        qa = reject_qa(self.db, self.work_order.id, TENANT_ID, USER_ID, notes="Foto borrosa")
        self.assertEqual(qa.status, QAStatus.REJECTED)
        qa = record_qa_evidence(self.db, self.work_order.id, TENANT_ID, [EvidenceItem(url="https://files/2.jpg")])
        self.assertEqual(qa.status, QAStatus.PENDING)

    def test_approved_is_final(self):
        self._require(EvidenceLevel.OPTIONAL)
        approve_qa(self.db, self.work_order.id, TENANT_ID, USER_ID)
        with self.assertRaises(ConflictState):
            reject_qa(self.db, self.work_order.id, TENANT_ID, USER_ID)
        with self.assertRaises(ConflictState):
            record_qa_evidence(self.db, self.work_order.id, TENANT_ID, [EvidenceItem(url="x")])

    def test_not_required_cannot_be_approved(self):
        create_or_update_qa(
            self.db,
            self.work_order.id,
            TENANT_ID,
            QARequirement(required=False, evidence_level=EvidenceLevel.OPTIONAL),
        )
        with self.assertRaises(ConflictState):
            approve_qa(self.db, self.work_order.id, TENANT_ID, USER_ID)

    def test_missing_record_and_other_tenant(self):
        with self.assertRaises(NotFound):
            approve_qa(self.db, self.work_order.id, TENANT_ID, USER_ID)
        self._require()
        with self.assertRaises(NotFound):
            approve_qa(self.db, self.work_order.id, TENANT_ID + 1, USER_ID)
