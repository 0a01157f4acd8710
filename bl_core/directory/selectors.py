# bl_core/directory/selectors.py
from __future__ import annotations

from bl_core.directory.models import Profile

_UNSET = object()


def get_profile_for_user(user) -> Profile | None:
    if not user or not getattr(user, "is_authenticated", False):
        return None
    return Profile.objects.filter(user_id=user.id, is_active=True).first()


def get_request_profile(request) -> Profile | None:
    """
    Profile attached by CookieOrHeaderJWTAuthentication, or looked up when the
    request was authenticated some other way (session, force_authenticate).
    """
    profile = getattr(request, "profile", _UNSET)
    if profile is _UNSET:
        profile = get_profile_for_user(getattr(request, "user", None))
        request.profile = profile
    return profile
