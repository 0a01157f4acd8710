# bl_core/blood_requests/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError as DRFValidationError
from rest_framework.response import Response

from bl_core.audit.selectors import list_events_for_entity
from bl_core.audit.serializers import AuditEventSerializer
from bl_core.blood_requests import errors
from bl_core.blood_requests.api.serializers import (
    BloodRequestCreateSerializer,
    BloodRequestEditSerializer,
    BloodRequestSerializer,
    BloodRequestUpdateSerializer,
    DonorResponseSerializer,
    RemovalQuerySerializer,
    RemovalResultSerializer,
    RespondSerializer,
)
from bl_core.blood_requests.matching import is_match_for_donor
from bl_core.blood_requests.permissions import BloodRequestPermission
from bl_core.blood_requests.selectors import BloodRequestSelector
from bl_core.blood_requests.services import ENTITY_TYPE, BloodRequestService
from bl_core.common.api.exceptions import AlreadyRespondedError, ConflictError
from bl_core.directory.selectors import get_request_profile

OWNER_NOT_FOUND_MSG = "Blood request not found or unauthorized."


def _raise_api_error(exc: errors.BloodRequestError):
    """
    Domain error -> DRF exception (rendered by the global error envelope).
    Non-owners get 404 so request ids of other hospitals are not confirmed.
    """
    if isinstance(exc, errors.NotRequestOwner):
        raise NotFound(OWNER_NOT_FOUND_MSG)
    if isinstance(exc, errors.NotFound):
        raise NotFound(exc.message)
    if isinstance(exc, errors.Forbidden):
        raise PermissionDenied(exc.message)
    if isinstance(exc, errors.AlreadyResponded):
        raise AlreadyRespondedError(exc.message)
    if isinstance(exc, errors.Conflict):
        raise ConflictError(exc.message)
    if isinstance(exc, errors.Invalid):
        raise DRFValidationError({"detail": exc.message, **(exc.details or {})})
    raise exc


class BloodRequestViewSet(viewsets.ViewSet):
    """
    Thin API layer:
    - resolves the caller's directory profile
    - validates request bodies
    - calls selectors for reads, services for writes
    - maps domain errors to HTTP errors
    """

    permission_classes = [BloodRequestPermission]

    def _profile(self, request):
        profile = get_request_profile(request)
        if profile is None:
            raise NotFound("Profile not found.")
        return profile

    def _donor_context(self, profile) -> dict:
        return {"donor_id": profile.user_id} if profile.is_donor else {}

    # ----------------------------
    # Reads
    # ----------------------------
    @extend_schema(responses={200: BloodRequestSerializer(many=True)}, tags=["Blood requests"])
    def list(self, request):
        profile = self._profile(request)

        if profile.is_hospital:
            records = BloodRequestSelector.list_for_hospital(hospital_id=profile.user_id)
        elif profile.is_donor:
            records = BloodRequestSelector.find_for_donor(donor=profile)
        else:
            records = []

        ser = BloodRequestSerializer(records, many=True, context=self._donor_context(profile))
        return Response(ser.data, status=status.HTTP_200_OK)

    @extend_schema(responses={200: BloodRequestSerializer}, tags=["Blood requests"])
    def retrieve(self, request, pk=None):
        profile = self._profile(request)

        try:
            record = BloodRequestSelector.get_request(request_id=pk)
        except errors.BloodRequestError as e:
            _raise_api_error(e)

        if profile.is_hospital and record.hospital_id == profile.user_id:
            return Response(BloodRequestSerializer(record).data, status=status.HTTP_200_OK)

        if profile.is_donor and is_match_for_donor(record, profile.blood_type):
            ser = BloodRequestSerializer(record, context=self._donor_context(profile))
            return Response(ser.data, status=status.HTTP_200_OK)

        raise NotFound(OWNER_NOT_FOUND_MSG)

    # ----------------------------
    # Hospital writes
    # ----------------------------
    @extend_schema(
        request=BloodRequestCreateSerializer,
        responses={200: BloodRequestSerializer},
        tags=["Blood requests"],
    )
    def create(self, request):
        profile = get_request_profile(request)

        ser = BloodRequestCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            record = BloodRequestService.create_request(actor=profile, fields=ser.validated_data)
        except errors.BloodRequestError as e:
            _raise_api_error(e)

        return Response(BloodRequestSerializer(record).data, status=status.HTTP_200_OK)

    @extend_schema(
        request=BloodRequestUpdateSerializer,
        responses={200: BloodRequestSerializer},
        tags=["Blood requests"],
    )
    def update(self, request, pk=None):
        profile = get_request_profile(request)

        ser = BloodRequestUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        try:
            record = BloodRequestService.update_request(actor=profile, request_id=pk, patch=ser.validated_data)
        except errors.BloodRequestError as e:
            _raise_api_error(e)

        return Response(BloodRequestSerializer(record).data, status=status.HTTP_200_OK)

    @extend_schema(
        request=BloodRequestEditSerializer,
        responses={200: BloodRequestSerializer},
        tags=["Blood requests"],
    )
    def partial_update(self, request, pk=None):
        profile = get_request_profile(request)

        ser = BloodRequestEditSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        patch = dict(ser.validated_data)
        if "status" in request.data:
            # Let the service reject it explicitly instead of silently dropping it.
            patch["status"] = request.data.get("status")

        try:
            record = BloodRequestService.edit_fields(actor=profile, request_id=pk, patch=patch)
        except errors.BloodRequestError as e:
            _raise_api_error(e)

        return Response(BloodRequestSerializer(record).data, status=status.HTTP_200_OK)

    @extend_schema(
        parameters=[
            OpenApiParameter(
                name="count",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Responses to remove (oldest first). Required when the request has 2+ responses.",
            ),
        ],
        responses={200: RemovalResultSerializer},
        tags=["Blood requests"],
    )
    def destroy(self, request, pk=None):
        profile = get_request_profile(request)

        raw_count = request.query_params.get("count")
        if raw_count in (None, "") and isinstance(request.data, dict):
            raw_count = request.data.get("count")

        query = RemovalQuerySerializer(data={"count": raw_count if raw_count != "" else None})
        query.is_valid(raise_exception=True)

        try:
            result = BloodRequestService.remove_request(
                actor=profile,
                request_id=pk,
                count=query.validated_data.get("count"),
            )
        except errors.BloodRequestError as e:
            _raise_api_error(e)

        if result.deleted:
            detail = "Blood request deleted successfully."
            payload = None
        else:
            detail = f"Removed {result.removed_responses} response(s)."
            payload = BloodRequestSerializer(result.request).data

        return Response(
            {
                "detail": detail,
                "deleted": result.deleted,
                "removed_responses": result.removed_responses,
                "request": payload,
            },
            status=status.HTTP_200_OK,
        )

    @extend_schema(request=None, responses={200: BloodRequestSerializer}, tags=["Blood requests"])
    @action(detail=True, methods=["post"])
    def fulfill(self, request, pk=None):
        profile = get_request_profile(request)
        try:
            record = BloodRequestService.fulfill(actor=profile, request_id=pk)
        except errors.BloodRequestError as e:
            _raise_api_error(e)
        return Response(BloodRequestSerializer(record).data, status=status.HTTP_200_OK)

    @extend_schema(request=None, responses={200: BloodRequestSerializer}, tags=["Blood requests"])
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        profile = get_request_profile(request)
        try:
            record = BloodRequestService.cancel(actor=profile, request_id=pk)
        except errors.BloodRequestError as e:
            _raise_api_error(e)
        return Response(BloodRequestSerializer(record).data, status=status.HTTP_200_OK)

    # ----------------------------
    # Response adjudication
    # ----------------------------
    @extend_schema(request=None, responses={200: BloodRequestSerializer}, tags=["Donor responses"])
    @action(detail=True, methods=["post"], url_path=r"responses/(?P<response_id>[^/.]+)/accept")
    def accept_response(self, request, pk=None, response_id=None):
        profile = get_request_profile(request)
        try:
            record = BloodRequestService.accept_response(actor=profile, request_id=pk, response_id=response_id)
        except errors.BloodRequestError as e:
            _raise_api_error(e)
        return Response(BloodRequestSerializer(record).data, status=status.HTTP_200_OK)

    @extend_schema(request=None, responses={200: BloodRequestSerializer}, tags=["Donor responses"])
    @action(detail=True, methods=["post"], url_path=r"responses/(?P<response_id>[^/.]+)/decline")
    def decline_response(self, request, pk=None, response_id=None):
        profile = get_request_profile(request)
        try:
            record = BloodRequestService.decline_response(actor=profile, request_id=pk, response_id=response_id)
        except errors.BloodRequestError as e:
            _raise_api_error(e)
        return Response(BloodRequestSerializer(record).data, status=status.HTTP_200_OK)

    @extend_schema(responses={200: AuditEventSerializer(many=True)}, tags=["Blood requests"])
    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        profile = get_request_profile(request)
        try:
            record = BloodRequestSelector.get_request(request_id=pk)
        except errors.BloodRequestError as e:
            _raise_api_error(e)

        if record.hospital_id != profile.user_id:
            raise NotFound(OWNER_NOT_FOUND_MSG)

        events = list_events_for_entity(entity_type=ENTITY_TYPE, entity_id=record.id)
        return Response(AuditEventSerializer(events, many=True).data, status=status.HTTP_200_OK)

    # ----------------------------
    # Donor writes
    # ----------------------------
    @extend_schema(request=RespondSerializer, responses={200: DonorResponseSerializer}, tags=["Donor responses"])
    @action(detail=True, methods=["post"])
    def respond(self, request, pk=None):
        profile = get_request_profile(request)

        ser = RespondSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            response = BloodRequestService.respond(
                actor=profile,
                request_id=pk,
                distance=ser.validated_data.get("distance"),
                availability=ser.validated_data.get("availability"),
            )
        except errors.BloodRequestError as e:
            _raise_api_error(e)

        return Response(DonorResponseSerializer(response).data, status=status.HTTP_200_OK)
