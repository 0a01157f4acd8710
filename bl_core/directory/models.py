# bl_core/directory/models.py
from django.conf import settings
from django.db import models

from bl_core.common.models import UUIDModel


class ProfileRole(models.TextChoices):
    HOSPITAL = "hospital", "Hospital"
    DONOR = "donor", "Donor"


class BloodType(models.TextChoices):
    A_POS = "A+", "A+"
    A_NEG = "A-", "A-"
    B_POS = "B+", "B+"
    B_NEG = "B-", "B-"
    AB_POS = "AB+", "AB+"
    AB_NEG = "AB-", "AB-"
    O_POS = "O+", "O+"
    O_NEG = "O-", "O-"


class Profile(UUIDModel):
    """
    Directory entry for a user: which side of the exchange they are on
    (hospital or donor) plus the attributes snapshotted into requests/responses.
    """
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="bl_profile")

    role = models.CharField(max_length=16, choices=ProfileRole.choices, db_index=True)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=32, blank=True)
    address = models.TextField(blank=True)

    # Donors only
    blood_type = models.CharField(max_length=3, choices=BloodType.choices, blank=True)

    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "directory_profile"
        indexes = [
            models.Index(fields=["role", "blood_type"], name="directory_profile_role_bt_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.role})"

    @property
    def is_hospital(self) -> bool:
        return self.role == ProfileRole.HOSPITAL

    @property
    def is_donor(self) -> bool:
        return self.role == ProfileRole.DONOR
