import pytest

from corrective.db.lists import AttachmentRef, EvidenceItem, SymptomRef, ToolUsage, VersionedList, symptom_ids


def test_stores_versioned_envelope():
    column = VersionedList(SymptomRef)
    stored = column.process_bind_param([1, SymptomRef(id=2)], dialect=None)
    assert stored == {"version": 1, "items": [{"id": 1}, {"id": 2}]}
    assert symptom_ids(column.process_result_value(stored, dialect=None)) == [1, 2]


def test_reads_legacy_bare_arrays():
    assert symptom_ids(VersionedList(SymptomRef).process_result_value([3, 4], dialect=None)) == [3, 4]
    photos = VersionedList(AttachmentRef).process_result_value(["https://files/a.jpg"], dialect=None)
    assert photos[0].url == "https://files/a.jpg"


def test_rejects_newer_format():
    with pytest.raises(ValueError):
        VersionedList(ToolUsage).process_result_value({"version": 2, "items": []}, dialect=None)


def test_none_passes_through():
    column = VersionedList(EvidenceItem)
    assert column.process_bind_param(None, dialect=None) is None
    assert column.process_result_value(None, dialect=None) is None
