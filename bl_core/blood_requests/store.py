# bl_core/blood_requests/store.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable
from uuid import UUID

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils.timezone import now

from bl_core.blood_requests.errors import RequestNotFound
from bl_core.blood_requests.models import BloodRequest, RequestIndexEntry, RequestStatus

logger = logging.getLogger(__name__)

ACTIVE_INDEX = "active"
HOSPITAL_INDEX_PREFIX = "hospital:"

# Everything `put` overwrites. id, hospital, timestamp are immutable.
WRITABLE_FIELDS = (
    "hospital_name",
    "blood_type",
    "units",
    "urgency",
    "patient_info",
    "contact_person",
    "contact_phone",
    "notes",
    "status",
    "responses",
)


def hospital_index_key(hospital_id) -> str:
    return f"{HOSPITAL_INDEX_PREFIX}{hospital_id}"


@dataclass
class IndexRepairReport:
    dangling_removed: int = 0
    inactive_removed: int = 0
    hospital_restored: int = 0
    active_restored: int = 0

    @property
    def changed(self) -> int:
        return self.dangling_removed + self.inactive_removed + self.hospital_restored + self.active_restored


class RequestStore:
    """
    Durable storage of BloodRequest records plus the two request indices.

    Notes:
    - create/delete write the record and its index rows in one transaction.
    - put is a compare-and-swap on `version`; it never touches indices.
    - Index maintenance beyond create/delete belongs to the caller; sync_active_index
      is the race-safe way to follow a status change.
    - reconcile() repairs indices that drifted from the records.
    """

    # -------------------------
    # Records
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create(*, hospital_id: int, hospital_name: str, fields: dict[str, Any]) -> BloodRequest:
        record = BloodRequest.objects.create(
            hospital_id=hospital_id,
            hospital_name=hospital_name,
            status=RequestStatus.ACTIVE,
            responses=[],
            version=0,
            timestamp=now(),
            **fields,
        )
        RequestStore.add_to_index(hospital_index_key(hospital_id), record.id, request_timestamp=record.timestamp)
        RequestStore.add_to_index(ACTIVE_INDEX, record.id, request_timestamp=record.timestamp)
        return record

    @staticmethod
    def get(request_id) -> BloodRequest:
        try:
            return BloodRequest.objects.get(id=request_id)
        except (BloodRequest.DoesNotExist, ValidationError, ValueError):
            raise RequestNotFound()

    @staticmethod
    def put(record: BloodRequest) -> bool:
        """
        Overwrite the stored record if nobody else wrote it since it was read.
        Returns False when the stored version moved on (caller re-reads and retries).
        """
        values = {name: getattr(record, name) for name in WRITABLE_FIELDS}
        updated_at = now()
        updated = BloodRequest.objects.filter(id=record.id, version=record.version).update(
            version=F("version") + 1,
            updated_at=updated_at,
            **values,
        )
        if updated != 1:
            return False
        record.version += 1
        record.updated_at = updated_at
        return True

    @staticmethod
    def delete(request_id, *, expected_version: int | None = None) -> bool:
        """
        Remove the record and every index row pointing at it.
        With expected_version, nothing is deleted if the record changed meanwhile.
        """
        with transaction.atomic():
            qs = BloodRequest.objects.filter(id=request_id)
            if expected_version is not None:
                qs = qs.filter(version=expected_version)

            deleted, _ = qs.delete()
            if not deleted:
                return False

            RequestIndexEntry.objects.filter(request_id=request_id).delete()
        return True

    @staticmethod
    def resolve(request_ids: Iterable[UUID]) -> list[BloodRequest]:
        """
        Bulk fetch preserving the given order; ids that no longer resolve are skipped.
        """
        ids = list(request_ids)
        by_id = BloodRequest.objects.in_bulk(ids)
        return [by_id[rid] for rid in ids if rid in by_id]

    # -------------------------
    # Indices
    # -------------------------
    @staticmethod
    def index_ids(index_key: str) -> list[UUID]:
        """
        Newest request first (by request creation time, then insertion).
        """
        return list(
            RequestIndexEntry.objects.filter(index_key=index_key)
            .order_by("-request_timestamp", "-id")
            .values_list("request_id", flat=True)
        )

    @staticmethod
    def add_to_index(index_key: str, request_id, *, request_timestamp=None) -> bool:
        _, created = RequestIndexEntry.objects.get_or_create(
            index_key=index_key,
            request_id=request_id,
            defaults={"request_timestamp": request_timestamp or now()},
        )
        return created

    @staticmethod
    def remove_from_index(index_key: str, request_id) -> int:
        deleted, _ = RequestIndexEntry.objects.filter(index_key=index_key, request_id=request_id).delete()
        return deleted

    @staticmethod
    def sync_active_index(request_id) -> str | None:
        """
        Make the "active" index agree with the stored status.

        Status is re-read under a row lock in the same transaction as the index
        write, so the last sync to run always reflects the latest committed
        status no matter which writer's in-memory copy triggered it.
        Returns the status seen (None when the record is gone).
        """
        with transaction.atomic():
            row = (
                BloodRequest.objects.select_for_update()
                .filter(id=request_id)
                .values_list("status", "timestamp")
                .first()
            )
            status, timestamp = row if row else (None, None)

            if status == RequestStatus.ACTIVE:
                RequestStore.add_to_index(ACTIVE_INDEX, request_id, request_timestamp=timestamp)
            else:
                RequestStore.remove_from_index(ACTIVE_INDEX, request_id)
        return status

    # -------------------------
    # Repair
    # -------------------------
    @staticmethod
    def reconcile(*, dry_run: bool = False) -> IndexRepairReport:
        """
        Idempotent repair pass:
        - drop entries whose request no longer exists (dangling)
        - drop "active" entries whose request left the active state
        - drop hospital entries filed under the wrong hospital
        - restore missing hospital entries, and missing "active" entries for active requests
        """
        report = IndexRepairReport()

        records = {
            rid: (status, hospital_id, timestamp)
            for rid, status, hospital_id, timestamp in BloodRequest.objects.order_by("timestamp").values_list(
                "id", "status", "hospital_id", "timestamp"
            )
        }

        stale_entry_ids: list[int] = []
        present: set[tuple[str, UUID]] = set()

        for entry_id, index_key, rid in RequestIndexEntry.objects.values_list("id", "index_key", "request_id"):
            if rid not in records:
                report.dangling_removed += 1
                stale_entry_ids.append(entry_id)
                continue

            status, hospital_id, _ = records[rid]
            if index_key == ACTIVE_INDEX and status != RequestStatus.ACTIVE:
                report.inactive_removed += 1
                stale_entry_ids.append(entry_id)
                continue

            if index_key.startswith(HOSPITAL_INDEX_PREFIX) and index_key != hospital_index_key(hospital_id):
                report.dangling_removed += 1
                stale_entry_ids.append(entry_id)
                continue

            present.add((index_key, rid))

        missing: list[RequestIndexEntry] = []
        for rid, (status, hospital_id, timestamp) in records.items():
            key = hospital_index_key(hospital_id)
            if (key, rid) not in present:
                report.hospital_restored += 1
                missing.append(RequestIndexEntry(index_key=key, request_id=rid, request_timestamp=timestamp))
            if status == RequestStatus.ACTIVE and (ACTIVE_INDEX, rid) not in present:
                report.active_restored += 1
                missing.append(RequestIndexEntry(index_key=ACTIVE_INDEX, request_id=rid, request_timestamp=timestamp))

        if not dry_run and report.changed:
            with transaction.atomic():
                RequestIndexEntry.objects.filter(id__in=stale_entry_ids).delete()
                RequestIndexEntry.objects.bulk_create(missing, ignore_conflicts=True)

        if report.changed:
            logger.info(
                "Request index repair%s: dangling=%s inactive=%s hospital_restored=%s active_restored=%s",
                " (dry run)" if dry_run else "",
                report.dangling_removed,
                report.inactive_removed,
                report.hospital_restored,
                report.active_restored,
            )
        return report
