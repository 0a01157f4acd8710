# bl_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from bl_core.blood_requests.api.views import BloodRequestViewSet
from bl_core.directory.api.views import HealthView, ProfileView

router = DefaultRouter()

router.register(r"blood-requests", BloodRequestViewSet, basename="blood-requests")

urlpatterns = [
    path("health/", HealthView.as_view(), name="health"),
    path("profile/", ProfileView.as_view(), name="profile"),

    # Router URLs last (so explicit paths win if ever overlapping)
    *router.urls,
]
