# bl_core/blood_requests/permissions.py

from __future__ import annotations

from rest_framework.permissions import BasePermission

from bl_core.directory.models import ProfileRole
from bl_core.directory.selectors import get_request_profile


# Actions any authenticated caller may reach; the view decides by role
# (and answers 404 when the caller has no profile).
READ_ACTIONS = {"list", "retrieve"}

HOSPITAL_ACTIONS = {
    "create",
    "update",
    "partial_update",
    "destroy",
    "fulfill",
    "cancel",
    "accept_response",
    "decline_response",
    "history",
}

DONOR_ACTIONS = {"respond"}

ROLE_MESSAGES = {
    "create": "Only hospitals can create blood requests.",
    "update": "Only hospitals can update blood requests.",
    "partial_update": "Only hospitals can update blood requests.",
    "destroy": "Only hospitals can delete blood requests.",
    "respond": "Only donors can respond to blood requests.",
}


class BloodRequestPermission(BasePermission):
    """
    Role-based gate for BloodRequestViewSet.

    High-level policy:
    - list/retrieve: any authenticated caller (hospital sees own, donor sees matches)
    - create + adjudication actions: hospital profiles only
    - respond: donor profiles only
    - ownership of a specific request is enforced by the service layer

    Unknown action => deny.
    """

    message = "You do not have permission to perform this action."

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not user.is_authenticated:
            return False

        action = getattr(view, "action", None)

        if action in READ_ACTIONS:
            return True

        if action in HOSPITAL_ACTIONS:
            required_role = ProfileRole.HOSPITAL
        elif action in DONOR_ACTIONS:
            required_role = ProfileRole.DONOR
        else:
            return False

        profile = get_request_profile(request)
        if profile is not None and profile.role == required_role:
            return True

        self.message = ROLE_MESSAGES.get(action, self.message)
        return False
