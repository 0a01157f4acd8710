from django.apps import AppConfig


class BloodRequestsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "bl_core.blood_requests"
