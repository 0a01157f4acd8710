# bl_core/blood_requests/services.py

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from django.conf import settings
from django.utils.timezone import now

from bl_core.audit.services import AuditService
from bl_core.blood_requests.errors import (
    AlreadyResponded,
    Conflict,
    Forbidden,
    Invalid,
    NotRequestOwner,
    ResponseNotFound,
)
from bl_core.blood_requests.models import (
    MAX_UNITS,
    BloodRequest,
    DonorResponse,
    RequestStatus,
    ResponseStatus,
    Urgency,
)
from bl_core.blood_requests.store import RequestStore
from bl_core.directory.models import BloodType, Profile

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENTITY_TYPE = "BloodRequest"

REQUIRED_ON_CREATE = ("blood_type", "units", "urgency")
TEXT_FIELDS = ("patient_info", "contact_person", "contact_phone", "notes")
EDITABLE_FIELDS = ("blood_type", "units", "urgency", *TEXT_FIELDS)
UPDATABLE_FIELDS = (*EDITABLE_FIELDS, "status")

# Returned by a mutator that found nothing to change; the write is skipped.
_UNCHANGED = object()


def _engine_setting(name: str, default):
    return (getattr(settings, "BLOOD_REQUESTS", None) or {}).get(name, default)


def _parse_units(value) -> int | None:
    """
    Whole numbers only: ints, integral floats (3.0) and digit strings.
    Fractions, bools and anything else -> None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class RemovalResult:
    deleted: bool
    removed_responses: int
    request: Optional[BloodRequest]


class BloodRequestService:
    """
    Write-model operations for the blood-request lifecycle.

    Notes:
    - Every record mutation is read-modify-write guarded by RequestStore.put's
      version check; losers re-read and retry up to MAX_WRITE_ATTEMPTS, then Conflict.
    - Only `respond` appends to responses; only adjudication removes or flips them.
    - Decline deletes the response entry (the donor may respond again); the audit
      event keeps a snapshot.
    - `update_request` is a permissive merge (status may move backwards) unless
      STRICT_STATUS_TRANSITIONS is on; `fulfill`/`cancel`/`edit_fields` are the
      narrow alternatives.
    """

    # -------------------------
    # Internal helpers
    # -------------------------
    @staticmethod
    def _require_hospital(actor: Profile | None, message: str) -> Profile:
        if actor is None or not actor.is_hospital:
            raise Forbidden(message)
        return actor

    @staticmethod
    def _require_owner(actor: Profile | None, record: BloodRequest) -> None:
        BloodRequestService._require_hospital(actor, "Only hospitals can manage blood requests.")
        if record.hospital_id != actor.user_id:
            raise NotRequestOwner()

    @staticmethod
    def _clean_fields(data: dict[str, Any], *, allowed: tuple[str, ...], required: tuple[str, ...] = ()) -> dict:
        errors: dict[str, str] = {}
        cleaned: dict[str, Any] = {}

        for name in required:
            if data.get(name) in (None, ""):
                errors[name] = "This field is required."

        for name in allowed:
            if name not in data or name in errors:
                continue
            value = data[name]

            if name == "blood_type":
                if value not in BloodType.values:
                    errors[name] = f"Unknown blood type. Allowed: {BloodType.values}"
                    continue
            elif name == "urgency":
                if value not in Urgency.values:
                    errors[name] = f"Unknown urgency. Allowed: {Urgency.values}"
                    continue
            elif name == "status":
                if value not in RequestStatus.values:
                    errors[name] = f"Unknown status. Allowed: {RequestStatus.values}"
                    continue
            elif name == "units":
                value = _parse_units(value)
                if value is None:
                    errors[name] = "units must be a positive integer."
                    continue
                if value < 1:
                    errors[name] = "units must be at least 1."
                    continue
                if value > MAX_UNITS:
                    errors[name] = f"units must be at most {MAX_UNITS}."
                    continue
            else:
                value = "" if value is None else str(value)

            cleaned[name] = value

        if errors:
            raise Invalid("Invalid blood request data.", details=errors)
        return cleaned

    @staticmethod
    def _mutate(request_id, mutate: Callable[[BloodRequest], T]) -> tuple[BloodRequest, T]:
        """
        Re-read, apply `mutate` in memory, compare-and-swap. Domain errors raised by
        `mutate` propagate immediately; only lost races are retried.
        """
        attempts = int(_engine_setting("MAX_WRITE_ATTEMPTS", 32))
        for attempt in range(1, attempts + 1):
            record = RequestStore.get(request_id)
            outcome = mutate(record)
            if outcome is _UNCHANGED:
                return record, outcome
            if RequestStore.put(record):
                return record, outcome
            logger.debug("Lost write race on blood request %s (attempt %s/%s)", request_id, attempt, attempts)

        logger.warning("Giving up on blood request %s after %s write attempts", request_id, attempts)
        raise Conflict()

    @staticmethod
    def _sync_active_index(record: BloodRequest) -> None:
        # Reads the stored status; `record` may already be stale.
        status = RequestStore.sync_active_index(record.id)
        if status is not None and status != record.status:
            logger.debug("Blood request %s status moved to %s by a concurrent writer", record.id, status)

    @staticmethod
    def _audit(record_id, actor: Profile | None, event_code: str, metadata: dict | None = None) -> None:
        AuditService.log(
            event_code=event_code,
            entity_type=ENTITY_TYPE,
            entity_id=record_id,
            actor_user_id=getattr(actor, "user_id", None),
            metadata=metadata or {},
        )

    @staticmethod
    def _default_distance() -> int:
        low, high = _engine_setting("DEFAULT_DISTANCE_RANGE", (1, 10))
        return random.randint(low, high)

    # -------------------------
    # Create
    # -------------------------
    @staticmethod
    def create_request(*, actor: Profile | None, fields: dict[str, Any]) -> BloodRequest:
        actor = BloodRequestService._require_hospital(actor, "Only hospitals can create blood requests.")
        cleaned = BloodRequestService._clean_fields(
            fields or {},
            allowed=EDITABLE_FIELDS,
            required=REQUIRED_ON_CREATE,
        )

        record = RequestStore.create(hospital_id=actor.user_id, hospital_name=actor.name, fields=cleaned)

        BloodRequestService._audit(
            record.id,
            actor,
            "blood_request.created",
            {"blood_type": record.blood_type, "units": record.units, "urgency": record.urgency},
        )
        logger.info("Blood request %s created by hospital %s", record.id, actor.user_id)
        return record

    # -------------------------
    # Donor responses
    # -------------------------
    @staticmethod
    def respond(
        *,
        actor: Profile | None,
        request_id,
        distance: float | None = None,
        availability: str | None = None,
    ) -> DonorResponse:
        # Resolve first so a missing request is NotFound regardless of role.
        RequestStore.get(request_id)

        if actor is None or not actor.is_donor:
            raise Forbidden("Only donors can respond to blood requests.")

        if distance is not None:
            if isinstance(distance, bool):
                raise Invalid(details={"distance": "distance must be a number."})
            try:
                distance = float(distance)
            except (TypeError, ValueError):
                raise Invalid(details={"distance": "distance must be a number."})
            if distance < 0:
                raise Invalid(details={"distance": "distance cannot be negative."})
        else:
            distance = BloodRequestService._default_distance()

        availability = availability or _engine_setting("DEFAULT_AVAILABILITY", "Available now")

        def _append(record: BloodRequest) -> DonorResponse:
            if record.status != RequestStatus.ACTIVE:
                raise Invalid("Blood request is no longer active.")

            entries = record.response_entries
            if any(entry.donor_id == actor.user_id for entry in entries):
                raise AlreadyResponded()

            response = DonorResponse(
                id=uuid.uuid4().hex,
                donor_id=actor.user_id,
                donor_name=actor.name,
                donor_phone=actor.phone,
                donor_blood_type=actor.blood_type,
                distance=distance,
                availability=availability,
                timestamp=now(),
                status=ResponseStatus.PENDING,
            )
            entries.append(response)
            record.set_response_entries(entries)
            return response

        record, response = BloodRequestService._mutate(request_id, _append)

        BloodRequestService._audit(
            record.id,
            actor,
            "blood_request.response_created",
            {"response_id": response.id, "donor_id": response.donor_id},
        )
        return response

    # -------------------------
    # Adjudication
    # -------------------------
    @staticmethod
    def accept_response(*, actor: Profile | None, request_id, response_id: str) -> BloodRequest:
        """
        pending -> accepted for one response; others untouched.
        Accepting an already accepted response is a no-op.
        """

        def _accept(record: BloodRequest):
            BloodRequestService._require_owner(actor, record)
            entries = record.response_entries
            for entry in entries:
                if entry.id == response_id:
                    if entry.status == ResponseStatus.ACCEPTED:
                        return _UNCHANGED
                    entry.status = ResponseStatus.ACCEPTED
                    record.set_response_entries(entries)
                    return entry
            raise ResponseNotFound()

        record, outcome = BloodRequestService._mutate(request_id, _accept)

        if outcome is not _UNCHANGED:
            BloodRequestService._audit(
                record.id,
                actor,
                "blood_request.response_accepted",
                {"response_id": response_id, "donor_id": outcome.donor_id},
            )
        return record

    @staticmethod
    def decline_response(*, actor: Profile | None, request_id, response_id: str) -> BloodRequest:
        """
        Removes the response entry entirely. A second decline of the same id is NotFound.
        """

        def _decline(record: BloodRequest) -> DonorResponse:
            BloodRequestService._require_owner(actor, record)
            entries = record.response_entries
            for index, entry in enumerate(entries):
                if entry.id == response_id:
                    del entries[index]
                    record.set_response_entries(entries)
                    return entry
            raise ResponseNotFound()

        record, declined = BloodRequestService._mutate(request_id, _decline)

        BloodRequestService._audit(
            record.id,
            actor,
            "blood_request.response_declined",
            {"response": declined.to_json()},
        )
        return record

    @staticmethod
    def remove_request(*, actor: Profile | None, request_id, count: int | None = None) -> RemovalResult:
        """
        Removal policy by response count:
          0 or 1 responses -> delete the request
          >= 2 responses   -> `count` required, 1 <= count <= len(responses);
                              count == len -> delete the request,
                              otherwise drop the oldest `count` responses.
        """
        attempts = int(_engine_setting("MAX_WRITE_ATTEMPTS", 32))
        for attempt in range(1, attempts + 1):
            record = RequestStore.get(request_id)
            BloodRequestService._require_owner(actor, record)

            entries = record.response_entries
            total = len(entries)

            if total >= 2:
                if count is None:
                    raise Invalid(
                        "count is required when a request has 2 or more responses.",
                        details={"count": f"Provide a value between 1 and {total}."},
                    )
                if count < 1 or count > total:
                    raise Invalid(
                        f"count must be between 1 and {total}.",
                        details={"count": f"Provide a value between 1 and {total}."},
                    )

            if total <= 1 or count >= total:
                if RequestStore.delete(record.id, expected_version=record.version):
                    BloodRequestService._audit(
                        record.id,
                        actor,
                        "blood_request.deleted",
                        {"removed_responses": [entry.to_json() for entry in entries]},
                    )
                    logger.info("Blood request %s deleted by hospital %s", record.id, actor.user_id)
                    return RemovalResult(deleted=True, removed_responses=total, request=None)
            else:
                removed, kept = entries[:count], entries[count:]
                record.set_response_entries(kept)
                if RequestStore.put(record):
                    BloodRequestService._audit(
                        record.id,
                        actor,
                        "blood_request.responses_removed",
                        {"removed_responses": [entry.to_json() for entry in removed]},
                    )
                    return RemovalResult(deleted=False, removed_responses=count, request=record)

            logger.debug("Lost write race removing blood request %s (attempt %s/%s)", request_id, attempt, attempts)

        logger.warning("Giving up on removing blood request %s after %s attempts", request_id, attempts)
        raise Conflict()

    # -------------------------
    # Request edits + status transitions
    # -------------------------
    @staticmethod
    def update_request(*, actor: Profile | None, request_id, patch: dict[str, Any]) -> BloodRequest:
        """
        Shallow merge of `patch` over the mutable fields, status included.
        Status may be written to any value (fulfilled -> active too) unless
        STRICT_STATUS_TRANSITIONS is enabled.
        """
        cleaned = BloodRequestService._clean_fields(patch or {}, allowed=UPDATABLE_FIELDS)
        strict = bool(_engine_setting("STRICT_STATUS_TRANSITIONS", False))

        def _merge(record: BloodRequest) -> str:
            BloodRequestService._require_owner(actor, record)
            if strict and "status" in cleaned and cleaned["status"] != record.status:
                raise Invalid("Status changes must go through fulfill or cancel.")
            previous_status = record.status
            for name, value in cleaned.items():
                setattr(record, name, value)
            return previous_status

        record, previous_status = BloodRequestService._mutate(request_id, _merge)

        if "status" in cleaned:
            BloodRequestService._sync_active_index(record)

        BloodRequestService._audit(
            record.id,
            actor,
            "blood_request.updated",
            {"updated_fields": sorted(cleaned.keys()), "previous_status": previous_status},
        )
        return record

    @staticmethod
    def edit_fields(*, actor: Profile | None, request_id, patch: dict[str, Any]) -> BloodRequest:
        if "status" in (patch or {}):
            raise Invalid(
                "Status cannot be edited directly; use fulfill or cancel.",
                details={"status": "Not editable."},
            )
        cleaned = BloodRequestService._clean_fields(patch or {}, allowed=EDITABLE_FIELDS)

        def _edit(record: BloodRequest) -> None:
            BloodRequestService._require_owner(actor, record)
            for name, value in cleaned.items():
                setattr(record, name, value)

        record, _ = BloodRequestService._mutate(request_id, _edit)

        BloodRequestService._audit(
            record.id,
            actor,
            "blood_request.updated",
            {"updated_fields": sorted(cleaned.keys())},
        )
        return record

    @staticmethod
    def _transition(*, actor: Profile | None, request_id, target: str, event_code: str) -> BloodRequest:
        def _move(record: BloodRequest) -> None:
            BloodRequestService._require_owner(actor, record)
            if record.status != RequestStatus.ACTIVE:
                raise Invalid(f"Only active requests can be marked {target}.")
            record.status = target

        record, _ = BloodRequestService._mutate(request_id, _move)

        BloodRequestService._sync_active_index(record)
        BloodRequestService._audit(record.id, actor, event_code, {"status": str(target)})
        return record

    @staticmethod
    def fulfill(*, actor: Profile | None, request_id) -> BloodRequest:
        return BloodRequestService._transition(
            actor=actor,
            request_id=request_id,
            target=RequestStatus.FULFILLED,
            event_code="blood_request.fulfilled",
        )

    @staticmethod
    def cancel(*, actor: Profile | None, request_id) -> BloodRequest:
        return BloodRequestService._transition(
            actor=actor,
            request_id=request_id,
            target=RequestStatus.CANCELLED,
            event_code="blood_request.cancelled",
        )
