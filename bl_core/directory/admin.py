from django.contrib import admin

from bl_core.directory.models import Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("name", "role", "blood_type", "phone", "user", "is_active", "created_at")
    list_filter = ("role", "blood_type", "is_active")
    search_fields = ("name", "email", "phone", "user__username")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("-created_at",)
