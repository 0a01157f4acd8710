# bl_core/blood_requests/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from bl_core.blood_requests.models import MAX_UNITS, BloodRequest, RequestStatus, ResponseStatus, Urgency
from bl_core.directory.models import BloodType


class DonorResponseSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    donor_id = serializers.IntegerField(read_only=True)
    donor_name = serializers.CharField(read_only=True)
    donor_phone = serializers.CharField(read_only=True)
    donor_blood_type = serializers.CharField(read_only=True)
    distance = serializers.FloatField(read_only=True, allow_null=True)
    availability = serializers.CharField(read_only=True)
    timestamp = serializers.DateTimeField(read_only=True)
    status = serializers.ChoiceField(choices=ResponseStatus.choices, read_only=True)


class BloodRequestSerializer(serializers.ModelSerializer):
    """
    Pass context={"donor_id": <user id>} to limit `responses` to that donor's own entry.
    """
    hospital_id = serializers.IntegerField(read_only=True)
    responses = serializers.SerializerMethodField()

    class Meta:
        model = BloodRequest
        fields = [
            "id",
            "hospital_id",
            "hospital_name",
            "blood_type",
            "units",
            "urgency",
            "patient_info",
            "contact_person",
            "contact_phone",
            "notes",
            "timestamp",
            "status",
            "responses",
        ]
        read_only_fields = fields

    def get_responses(self, obj: BloodRequest) -> list[dict]:
        entries = obj.response_entries
        donor_id = self.context.get("donor_id")
        if donor_id is not None:
            entries = [entry for entry in entries if entry.donor_id == donor_id]
        return DonorResponseSerializer(entries, many=True).data


class BloodRequestCreateSerializer(serializers.Serializer):
    blood_type = serializers.ChoiceField(choices=BloodType.choices)
    units = serializers.IntegerField(min_value=1, max_value=MAX_UNITS)
    urgency = serializers.ChoiceField(choices=Urgency.choices)
    patient_info = serializers.CharField(required=False, allow_blank=True)
    contact_person = serializers.CharField(required=False, allow_blank=True)
    contact_phone = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class BloodRequestEditSerializer(serializers.Serializer):
    blood_type = serializers.ChoiceField(choices=BloodType.choices, required=False)
    units = serializers.IntegerField(min_value=1, max_value=MAX_UNITS, required=False)
    urgency = serializers.ChoiceField(choices=Urgency.choices, required=False)
    patient_info = serializers.CharField(required=False, allow_blank=True)
    contact_person = serializers.CharField(required=False, allow_blank=True)
    contact_phone = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class BloodRequestUpdateSerializer(BloodRequestEditSerializer):
    status = serializers.ChoiceField(choices=RequestStatus.choices, required=False)


class RespondSerializer(serializers.Serializer):
    distance = serializers.FloatField(min_value=0, required=False, allow_null=True)
    availability = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class RemovalQuerySerializer(serializers.Serializer):
    count = serializers.IntegerField(required=False, allow_null=True)


class RemovalResultSerializer(serializers.Serializer):
    detail = serializers.CharField()
    deleted = serializers.BooleanField()
    removed_responses = serializers.IntegerField()
    request = BloodRequestSerializer(allow_null=True)
