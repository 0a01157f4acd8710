import threading

import pytest
from django.db import connection

from bl_core.blood_requests.errors import Conflict
from bl_core.blood_requests.models import ResponseStatus
from bl_core.blood_requests.selectors import BloodRequestSelector
from bl_core.blood_requests.services import BloodRequestService
from bl_core.blood_requests.store import ACTIVE_INDEX, RequestStore
from bl_core.directory.models import ProfileRole

RACERS = 20


@pytest.mark.django_db(transaction=True)
def test_concurrent_responses_are_all_kept(settings, hospital, make_profile, request_fields):
    settings.BLOOD_REQUESTS = {**settings.BLOOD_REQUESTS, "MAX_WRITE_ATTEMPTS": 200}

    record = BloodRequestService.create_request(actor=hospital, fields=request_fields)
    donors = [make_profile(f"racer-{i}", ProfileRole.DONOR, blood_type="O-") for i in range(RACERS)]

    barrier = threading.Barrier(RACERS)
    failures = []

    def _respond(donor):
        try:
            barrier.wait()
            BloodRequestService.respond(actor=donor, request_id=record.id)
        except Exception as exc:
            failures.append(exc)
        finally:
            connection.close()

    threads = [threading.Thread(target=_respond, args=(d,)) for d in donors]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert failures == []

    stored = RequestStore.get(record.id)
    assert len(stored.responses) == RACERS
    assert {e.donor_id for e in stored.response_entries} == {d.user_id for d in donors}
    assert len({e.id for e in stored.response_entries}) == RACERS


@pytest.mark.django_db
def test_lost_race_is_retried_without_dropping_the_winner(monkeypatch, blood_request, donor_a, donor_b):
    original_put = RequestStore.put
    raced = []

    def racing_put(record):
        if not raced:
            raced.append(True)
            # Another donor lands a write between our read and our write.
            BloodRequestService.respond(actor=donor_b, request_id=record.id)
        return original_put(record)

    monkeypatch.setattr(RequestStore, "put", staticmethod(racing_put))

    mine = BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)

    entries = RequestStore.get(blood_request.id).response_entries
    assert [e.donor_id for e in entries] == [donor_b.user_id, donor_a.user_id]
    assert entries[1].id == mine.id


@pytest.mark.django_db
def test_accept_racing_a_new_response_keeps_both(monkeypatch, blood_request, hospital, donor_a, donor_b):
    first = BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)

    original_put = RequestStore.put
    raced = []

    def racing_put(record):
        if not raced:
            raced.append(True)
            BloodRequestService.respond(actor=donor_b, request_id=record.id)
        return original_put(record)

    monkeypatch.setattr(RequestStore, "put", staticmethod(racing_put))

    BloodRequestService.accept_response(actor=hospital, request_id=blood_request.id, response_id=first.id)

    entries = RequestStore.get(blood_request.id).response_entries
    assert len(entries) == 2
    assert entries[0].status == ResponseStatus.ACCEPTED
    assert entries[1].donor_id == donor_b.user_id
    assert entries[1].status == ResponseStatus.PENDING


@pytest.mark.django_db
def test_exhausted_retries_surface_conflict(settings, monkeypatch, blood_request, donor_a):
    settings.BLOOD_REQUESTS = {**settings.BLOOD_REQUESTS, "MAX_WRITE_ATTEMPTS": 3}
    calls = []

    def always_stale(record):
        calls.append(record.version)
        return False

    monkeypatch.setattr(RequestStore, "put", staticmethod(always_stale))

    with pytest.raises(Conflict):
        BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)

    assert len(calls) == 3
    monkeypatch.undo()
    assert RequestStore.get(blood_request.id).responses == []


@pytest.mark.django_db
def test_removal_retries_when_record_changes_underneath(settings, monkeypatch, blood_request, hospital):
    settings.BLOOD_REQUESTS = {**settings.BLOOD_REQUESTS, "MAX_WRITE_ATTEMPTS": 2}
    monkeypatch.setattr(RequestStore, "delete", staticmethod(lambda request_id, expected_version=None: False))

    with pytest.raises(Conflict):
        BloodRequestService.remove_request(actor=hospital, request_id=blood_request.id)


def _reactivate_before_first_sync(monkeypatch, hospital):
    """
    The first index sync is preceded by another hospital write that sets the
    request back to active (write landed, sync not yet run).
    """
    original_sync = BloodRequestService._sync_active_index
    raced = []

    def racing_sync(record):
        if not raced:
            raced.append(True)
            BloodRequestService.update_request(actor=hospital, request_id=record.id, patch={"status": "active"})
        return original_sync(record)

    monkeypatch.setattr(BloodRequestService, "_sync_active_index", staticmethod(racing_sync))


@pytest.mark.django_db
def test_interleaved_status_updates_keep_active_request_indexed(monkeypatch, blood_request, hospital, donor_a):
    _reactivate_before_first_sync(monkeypatch, hospital)

    BloodRequestService.update_request(actor=hospital, request_id=blood_request.id, patch={"status": "fulfilled"})

    assert RequestStore.get(blood_request.id).status == "active"
    assert RequestStore.index_ids(ACTIVE_INDEX) == [blood_request.id]
    assert [r.id for r in BloodRequestSelector.find_for_donor(donor=donor_a)] == [blood_request.id]


@pytest.mark.django_db
def test_fulfill_racing_a_reactivation_keeps_active_request_indexed(monkeypatch, blood_request, hospital, donor_a):
    _reactivate_before_first_sync(monkeypatch, hospital)

    BloodRequestService.fulfill(actor=hospital, request_id=blood_request.id)

    assert RequestStore.get(blood_request.id).status == "active"
    assert [r.id for r in BloodRequestSelector.find_for_donor(donor=donor_a)] == [blood_request.id]


@pytest.mark.django_db
def test_stale_reactivation_sync_does_not_resurrect_index_entry(monkeypatch, blood_request, hospital, donor_a):
    BloodRequestService.fulfill(actor=hospital, request_id=blood_request.id)

    original_sync = BloodRequestService._sync_active_index
    raced = []

    def racing_sync(record):
        if not raced:
            raced.append(True)
            BloodRequestService.cancel(actor=hospital, request_id=record.id)
        return original_sync(record)

    monkeypatch.setattr(BloodRequestService, "_sync_active_index", staticmethod(racing_sync))

    BloodRequestService.update_request(actor=hospital, request_id=blood_request.id, patch={"status": "active"})

    assert RequestStore.get(blood_request.id).status == "cancelled"
    assert RequestStore.index_ids(ACTIVE_INDEX) == []
    assert BloodRequestSelector.find_for_donor(donor=donor_a) == []
