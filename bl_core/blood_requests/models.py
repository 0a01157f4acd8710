# bl_core/blood_requests/models.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from bl_core.common.models import UUIDModel
from bl_core.directory.models import BloodType

# Largest value a PositiveIntegerField holds on every supported backend.
MAX_UNITS = 2147483647


class Urgency(models.TextChoices):
    EMERGENCY = "emergency", "Emergency"
    URGENT = "urgent", "Urgent"
    ROUTINE = "routine", "Routine"


class RequestStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    FULFILLED = "fulfilled", "Fulfilled"
    CANCELLED = "cancelled", "Cancelled"


class ResponseStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"


@dataclass
class DonorResponse:
    """
    A donor's offer against one blood request.

    Donor fields are a snapshot taken when the donor responded; later profile
    edits do not rewrite them. Stored inside BloodRequest.responses as JSON.
    """
    id: str
    donor_id: int
    donor_name: str
    donor_phone: str
    donor_blood_type: str
    distance: float | None
    availability: str
    timestamp: datetime
    status: str = ResponseStatus.PENDING

    @classmethod
    def from_json(cls, data: dict) -> "DonorResponse":
        values = dict(data)
        ts = values.get("timestamp")
        if isinstance(ts, str):
            values["timestamp"] = parse_datetime(ts)
        return cls(**values)

    def to_json(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["status"] = str(self.status)
        return data


class BloodRequest(UUIDModel):
    """
    A hospital's solicitation for blood units of a given type and urgency.

    `responses` is arrival-ordered. `version` is bumped on every write and
    guards read-modify-write cycles (see RequestStore.put).
    """
    hospital = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="blood_requests",
    )
    hospital_name = models.CharField(max_length=200)

    blood_type = models.CharField(max_length=3, choices=BloodType.choices, db_index=True)
    units = models.PositiveIntegerField(validators=[MinValueValidator(1), MaxValueValidator(MAX_UNITS)])
    urgency = models.CharField(max_length=16, choices=Urgency.choices)

    patient_info = models.TextField(blank=True)
    contact_person = models.CharField(max_length=200, blank=True)
    contact_phone = models.CharField(max_length=32, blank=True)
    notes = models.TextField(blank=True)

    timestamp = models.DateTimeField(default=timezone.now, editable=False)

    status = models.CharField(
        max_length=16,
        choices=RequestStatus.choices,
        default=RequestStatus.ACTIVE,
        db_index=True,
    )

    responses = models.JSONField(default=list, blank=True)
    version = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "blood_requests_blood_request"
        indexes = [
            models.Index(fields=["status", "blood_type"], name="blood_req_status_type_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.hospital_name} - {self.blood_type} x{self.units} ({self.urgency})"

    @property
    def response_entries(self) -> list[DonorResponse]:
        return [DonorResponse.from_json(item) for item in (self.responses or [])]

    def set_response_entries(self, entries: list[DonorResponse]) -> None:
        self.responses = [entry.to_json() for entry in entries]


class RequestIndexEntry(models.Model):
    """
    One row of a request index.

    index_key is "active" for the global donor-facing list or
    "hospital:<user id>" for a hospital's own list. request_id is deliberately
    not a foreign key: a dangling entry is representable and
    RequestStore.reconcile() drops it.

    request_timestamp copies the request's creation time so an entry that is
    re-added (request re-activated, index repaired) keeps its place in the
    newest-first order.
    """
    index_key = models.CharField(max_length=64)
    request_id = models.UUIDField()
    request_timestamp = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "blood_requests_index_entry"
        constraints = [
            models.UniqueConstraint(fields=["index_key", "request_id"], name="uq_index_key_request"),
        ]
        indexes = [
            models.Index(fields=["request_id"], name="blood_req_index_req_idx"),
            models.Index(fields=["index_key", "-request_timestamp"], name="blood_req_index_order_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.index_key} -> {self.request_id}"
