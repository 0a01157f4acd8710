# bl_core/blood_requests/matching.py
"""
Donor-side matching predicate.

Matching is exact equality of requested and donor blood type. No
donor-to-recipient compatibility matrix (e.g. O- as universal donor) is
applied here; a matrix would replace `blood_types_match`.
"""
from __future__ import annotations

from bl_core.blood_requests.models import BloodRequest, RequestStatus


def blood_types_match(*, requested: str, donor: str) -> bool:
    return bool(requested) and requested == donor


def is_match_for_donor(blood_request: BloodRequest, donor_blood_type: str) -> bool:
    return blood_request.status == RequestStatus.ACTIVE and blood_types_match(
        requested=blood_request.blood_type,
        donor=donor_blood_type,
    )
