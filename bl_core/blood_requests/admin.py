# bl_core/blood_requests/admin.py
from __future__ import annotations

from django.contrib import admin

from bl_core.blood_requests.models import BloodRequest, RequestIndexEntry


@admin.register(BloodRequest)
class BloodRequestAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "hospital_name",
        "blood_type",
        "units",
        "urgency",
        "status",
        "response_count",
        "timestamp",
        "version",
    )
    list_filter = ("status", "blood_type", "urgency")
    search_fields = ("id", "hospital_name", "patient_info", "contact_person")
    ordering = ("-timestamp",)

    # version guards concurrent writes; editing it here would break that
    readonly_fields = ("timestamp", "version", "created_at", "updated_at")

    list_select_related = ("hospital",)

    fieldsets = (
        ("Owner", {"fields": ("hospital", "hospital_name")}),
        ("Request", {"fields": ("blood_type", "units", "urgency", "status")}),
        ("Details", {"fields": ("patient_info", "contact_person", "contact_phone", "notes")}),
        ("Responses", {"fields": ("responses",)}),
        ("Audit", {"fields": ("timestamp", "version", "created_at", "updated_at")}),
    )

    @admin.display(description="Responses")
    def response_count(self, obj: BloodRequest) -> int:
        return len(obj.responses or [])


@admin.register(RequestIndexEntry)
class RequestIndexEntryAdmin(admin.ModelAdmin):
    list_display = ("id", "index_key", "request_id", "request_timestamp", "created_at")
    list_filter = ("index_key",)
    search_fields = ("index_key", "request_id")
    ordering = ("-id",)
