# bl_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from bl_core.blood_requests.services import BloodRequestService
from bl_core.directory.models import Profile, ProfileRole


@pytest.fixture
def make_profile(db):
    """
    Directory entry factory: auth user + Profile with a role.
    """
    def _make(username: str, role: str, *, name: str | None = None, blood_type: str = "", phone: str = ""):
        User = get_user_model()
        user = User.objects.create_user(username=username, password="pass123")
        return Profile.objects.create(
            user=user,
            role=role,
            name=name or username.replace("-", " ").title(),
            blood_type=blood_type,
            phone=phone,
        )

    return _make


@pytest.fixture
def hospital(make_profile):
    return make_profile("city-hospital", ProfileRole.HOSPITAL, name="City Hospital", phone="555-0100")


@pytest.fixture
def other_hospital(make_profile):
    return make_profile("county-hospital", ProfileRole.HOSPITAL, name="County Hospital", phone="555-0200")


@pytest.fixture
def donor_a(make_profile):
    return make_profile("donor-a", ProfileRole.DONOR, blood_type="O-", phone="555-0001")


@pytest.fixture
def donor_b(make_profile):
    return make_profile("donor-b", ProfileRole.DONOR, blood_type="O-", phone="555-0002")


@pytest.fixture
def donor_b_pos(make_profile):
    return make_profile("donor-bpos", ProfileRole.DONOR, blood_type="B+", phone="555-0003")


@pytest.fixture
def request_fields():
    return {
        "blood_type": "O-",
        "units": 3,
        "urgency": "emergency",
        "patient_info": "Trauma patient, OR 2",
        "contact_person": "Dr. Rivera",
        "contact_phone": "555-0199",
        "notes": "Ask for the blood bank desk",
    }


@pytest.fixture
def blood_request(hospital, request_fields):
    return BloodRequestService.create_request(actor=hospital, fields=request_fields)


@pytest.fixture
def client_for():
    """
    APIClient authenticated as the profile's user (bypasses JWT parsing).
    """
    def _client(profile):
        c = APIClient()
        c.force_authenticate(user=profile.user)
        return c

    return _client
