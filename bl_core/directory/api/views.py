# bl_core/directory/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from bl_core.directory.api.serializers import ProfileSerializer
from bl_core.directory.selectors import get_request_profile


class ProfileView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: ProfileSerializer}, tags=["Directory"])
    def get(self, request):
        profile = get_request_profile(request)
        if profile is None:
            raise NotFound("Profile not found.")
        return Response(ProfileSerializer(profile).data, status=status.HTTP_200_OK)


class HealthView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(request=None, responses={200: OpenApiTypes.OBJECT}, tags=["Health"])
    def get(self, request):
        return Response({"status": "ok"}, status=status.HTTP_200_OK)
