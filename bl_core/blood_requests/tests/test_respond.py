import uuid

import pytest

from bl_core.blood_requests.errors import AlreadyResponded, Forbidden, Invalid, RequestNotFound
from bl_core.blood_requests.models import ResponseStatus
from bl_core.blood_requests.services import BloodRequestService
from bl_core.blood_requests.store import RequestStore

pytestmark = pytest.mark.django_db


def test_respond_appends_pending_response_with_donor_snapshot(blood_request, donor_a):
    response = BloodRequestService.respond(
        actor=donor_a,
        request_id=blood_request.id,
        distance=4.5,
        availability="Within 1 hour",
    )

    assert response.status == ResponseStatus.PENDING
    assert response.donor_id == donor_a.user_id
    assert response.donor_name == donor_a.name
    assert response.donor_phone == "555-0001"
    assert response.donor_blood_type == "O-"
    assert response.distance == 4.5
    assert response.availability == "Within 1 hour"
    assert response.timestamp is not None

    stored = RequestStore.get(blood_request.id)
    entries = stored.response_entries
    assert len(entries) == 1
    assert entries[0].id == response.id


def test_respond_leaves_existing_responses_untouched(blood_request, donor_a, donor_b):
    first = BloodRequestService.respond(actor=donor_a, request_id=blood_request.id, distance=2)
    before = RequestStore.get(blood_request.id).responses[0]

    second = BloodRequestService.respond(actor=donor_b, request_id=blood_request.id, distance=7)

    stored = RequestStore.get(blood_request.id)
    assert [e.id for e in stored.response_entries] == [first.id, second.id]
    assert stored.responses[0] == before


def test_snapshot_survives_later_profile_edits(blood_request, donor_a):
    BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)

    donor_a.name = "Renamed Donor"
    donor_a.phone = "555-9999"
    donor_a.save(update_fields=["name", "phone"])

    entry = RequestStore.get(blood_request.id).response_entries[0]
    assert entry.donor_name == "Donor A"
    assert entry.donor_phone == "555-0001"


def test_defaults_for_distance_and_availability(blood_request, donor_a):
    response = BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)

    assert 1 <= response.distance <= 10
    assert response.availability == "Available now"


def test_default_distance_range_is_configurable(settings, blood_request, donor_a):
    settings.BLOOD_REQUESTS = {**settings.BLOOD_REQUESTS, "DEFAULT_DISTANCE_RANGE": (3, 3)}

    response = BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)

    assert response.distance == 3


def test_hospital_cannot_respond(blood_request, hospital):
    with pytest.raises(Forbidden):
        BloodRequestService.respond(actor=hospital, request_id=blood_request.id)

    assert RequestStore.get(blood_request.id).responses == []


def test_missing_request_is_not_found_before_role_check(hospital):
    with pytest.raises(RequestNotFound):
        BloodRequestService.respond(actor=hospital, request_id=uuid.uuid4())


def test_second_response_from_same_donor_is_rejected(blood_request, donor_a):
    BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)

    with pytest.raises(AlreadyResponded):
        BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)

    assert len(RequestStore.get(blood_request.id).responses) == 1


def test_donor_may_respond_again_after_decline(blood_request, hospital, donor_a):
    response = BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)
    BloodRequestService.decline_response(actor=hospital, request_id=blood_request.id, response_id=response.id)

    again = BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)

    assert again.id != response.id
    assert [e.id for e in RequestStore.get(blood_request.id).response_entries] == [again.id]


def test_cannot_respond_to_inactive_request(blood_request, hospital, donor_a):
    BloodRequestService.fulfill(actor=hospital, request_id=blood_request.id)

    with pytest.raises(Invalid):
        BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)


def test_negative_distance_is_invalid(blood_request, donor_a):
    with pytest.raises(Invalid) as exc:
        BloodRequestService.respond(actor=donor_a, request_id=blood_request.id, distance=-1)

    assert "distance" in exc.value.details


def test_respond_is_audited(blood_request, donor_a):
    from bl_core.audit.selectors import list_events_for_entity

    response = BloodRequestService.respond(actor=donor_a, request_id=blood_request.id)

    codes = [e.event_code for e in list_events_for_entity(entity_type="BloodRequest", entity_id=blood_request.id)]
    assert codes == ["blood_request.created", "blood_request.response_created"]
    last = list_events_for_entity(entity_type="BloodRequest", entity_id=blood_request.id).last()
    assert last.metadata["response_id"] == response.id
