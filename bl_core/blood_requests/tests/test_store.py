import uuid

import pytest

from bl_core.blood_requests.errors import RequestNotFound
from bl_core.blood_requests.models import BloodRequest, RequestIndexEntry, RequestStatus
from bl_core.blood_requests.store import ACTIVE_INDEX, RequestStore, hospital_index_key

pytestmark = pytest.mark.django_db


def _create(hospital, **overrides):
    fields = {"blood_type": "A+", "units": 2, "urgency": "urgent"}
    fields.update(overrides)
    return RequestStore.create(hospital_id=hospital.user_id, hospital_name=hospital.name, fields=fields)


def test_create_starts_active_with_no_responses_and_indexes_it(hospital):
    record = _create(hospital)

    assert record.status == RequestStatus.ACTIVE
    assert record.responses == []
    assert record.version == 0
    assert record.timestamp is not None
    assert record.hospital_name == "City Hospital"

    assert RequestStore.index_ids(hospital_index_key(hospital.user_id)) == [record.id]
    assert RequestStore.index_ids(ACTIVE_INDEX) == [record.id]


def test_indices_are_newest_first(hospital):
    first = _create(hospital)
    second = _create(hospital)
    third = _create(hospital)

    assert RequestStore.index_ids(ACTIVE_INDEX) == [third.id, second.id, first.id]
    assert RequestStore.index_ids(hospital_index_key(hospital.user_id)) == [third.id, second.id, first.id]


def test_get_unknown_or_malformed_id_is_not_found():
    with pytest.raises(RequestNotFound):
        RequestStore.get(uuid.uuid4())

    with pytest.raises(RequestNotFound):
        RequestStore.get("not-a-uuid")


def test_put_is_compare_and_swap_on_version(hospital):
    record = _create(hospital)
    stale = RequestStore.get(record.id)

    record.notes = "first writer"
    assert RequestStore.put(record) is True
    assert record.version == 1

    stale.notes = "second writer"
    assert RequestStore.put(stale) is False

    stored = RequestStore.get(record.id)
    assert stored.notes == "first writer"
    assert stored.version == 1


def test_put_does_not_touch_indices(hospital):
    record = _create(hospital)
    record.status = RequestStatus.FULFILLED
    assert RequestStore.put(record)

    assert RequestStore.index_ids(ACTIVE_INDEX) == [record.id]


def test_delete_removes_record_and_index_entries(hospital):
    record = _create(hospital)
    keep = _create(hospital)

    assert RequestStore.delete(record.id) is True

    assert not BloodRequest.objects.filter(id=record.id).exists()
    assert not RequestIndexEntry.objects.filter(request_id=record.id).exists()
    assert RequestStore.index_ids(ACTIVE_INDEX) == [keep.id]


def test_delete_with_stale_version_keeps_record(hospital):
    record = _create(hospital)
    record.notes = "bumped"
    RequestStore.put(record)

    assert RequestStore.delete(record.id, expected_version=0) is False
    assert BloodRequest.objects.filter(id=record.id).exists()
    assert RequestStore.delete(record.id, expected_version=1) is True


def test_resolve_skips_missing_ids_and_keeps_order(hospital):
    a = _create(hospital)
    b = _create(hospital)

    resolved = RequestStore.resolve([b.id, uuid.uuid4(), a.id])

    assert [r.id for r in resolved] == [b.id, a.id]


def test_reconcile_drops_dangling_and_inactive_entries(hospital):
    live = _create(hospital)
    fulfilled = _create(hospital)
    BloodRequest.objects.filter(id=fulfilled.id).update(status=RequestStatus.FULFILLED)

    ghost = uuid.uuid4()
    RequestStore.add_to_index(ACTIVE_INDEX, ghost)
    RequestStore.add_to_index(hospital_index_key(hospital.user_id), ghost)

    report = RequestStore.reconcile()

    assert report.dangling_removed == 2
    assert report.inactive_removed == 1
    assert RequestStore.index_ids(ACTIVE_INDEX) == [live.id]
    assert set(RequestStore.index_ids(hospital_index_key(hospital.user_id))) == {live.id, fulfilled.id}


def test_reconcile_restores_missing_entries(hospital):
    record = _create(hospital)
    RequestIndexEntry.objects.filter(request_id=record.id).delete()

    report = RequestStore.reconcile()

    assert report.hospital_restored == 1
    assert report.active_restored == 1
    assert RequestStore.index_ids(ACTIVE_INDEX) == [record.id]
    assert RequestStore.index_ids(hospital_index_key(hospital.user_id)) == [record.id]


def test_reconcile_is_idempotent(hospital):
    _create(hospital)
    RequestStore.add_to_index(ACTIVE_INDEX, uuid.uuid4())

    first = RequestStore.reconcile()
    second = RequestStore.reconcile()

    assert first.changed == 1
    assert second.changed == 0


def test_reconcile_dry_run_writes_nothing(hospital):
    _create(hospital)
    ghost = uuid.uuid4()
    RequestStore.add_to_index(ACTIVE_INDEX, ghost)

    report = RequestStore.reconcile(dry_run=True)

    assert report.dangling_removed == 1
    assert RequestIndexEntry.objects.filter(request_id=ghost).exists()


def test_reconcile_restores_entries_in_creation_order(hospital):
    older = _create(hospital)
    newer = _create(hospital)
    RequestIndexEntry.objects.filter(request_id=older.id, index_key=ACTIVE_INDEX).delete()

    RequestStore.reconcile()

    assert RequestStore.index_ids(ACTIVE_INDEX) == [newer.id, older.id]


def test_sync_active_index_follows_stored_status(hospital):
    record = _create(hospital)
    BloodRequest.objects.filter(id=record.id).update(status=RequestStatus.CANCELLED)

    assert RequestStore.sync_active_index(record.id) == RequestStatus.CANCELLED
    assert RequestStore.index_ids(ACTIVE_INDEX) == []

    BloodRequest.objects.filter(id=record.id).update(status=RequestStatus.ACTIVE)

    assert RequestStore.sync_active_index(record.id) == RequestStatus.ACTIVE
    assert RequestStore.index_ids(ACTIVE_INDEX) == [record.id]


def test_sync_active_index_for_deleted_request_drops_entry(hospital):
    record = _create(hospital)
    BloodRequest.objects.filter(id=record.id).delete()

    assert RequestStore.sync_active_index(record.id) is None
    assert RequestStore.index_ids(ACTIVE_INDEX) == []
