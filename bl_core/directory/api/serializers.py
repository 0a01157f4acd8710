from __future__ import annotations

from rest_framework import serializers

from bl_core.directory.models import Profile


class ProfileSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Profile
        fields = [
            "id",
            "user_id",
            "role",
            "name",
            "email",
            "phone",
            "address",
            "blood_type",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
