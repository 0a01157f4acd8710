# bl_core/blood_requests/selectors.py
from __future__ import annotations

from bl_core.blood_requests.matching import is_match_for_donor
from bl_core.blood_requests.models import BloodRequest
from bl_core.blood_requests.store import ACTIVE_INDEX, RequestStore, hospital_index_key
from bl_core.directory.models import Profile


class BloodRequestSelector:
    @staticmethod
    def get_request(*, request_id) -> BloodRequest:
        return RequestStore.get(request_id)

    @staticmethod
    def list_for_hospital(*, hospital_id: int) -> list[BloodRequest]:
        """
        Hospital's own requests, newest first. Index entries that no longer
        resolve are skipped.
        """
        return RequestStore.resolve(RequestStore.index_ids(hospital_index_key(hospital_id)))

    @staticmethod
    def find_for_donor(*, donor: Profile) -> list[BloodRequest]:
        """
        Active requests whose blood type equals the donor's, in active-index
        order (newest first).
        """
        if not donor.blood_type:
            return []
        candidates = RequestStore.resolve(RequestStore.index_ids(ACTIVE_INDEX))
        return [r for r in candidates if is_match_for_donor(r, donor.blood_type)]
