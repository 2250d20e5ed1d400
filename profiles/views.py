"""
Profiles app views

Profile document and onboarding endpoints for the current user.
"""
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    OnboardingResultSerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
    SaveProfileSerializer,
)
from .services import OnboardingService, ProfileService


class ProfileView(APIView):
    """
    GET returns the current user's profile with stats.
    PATCH replaces ``filtered_data`` and/or ``projects``.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        ProfileService.initialize_filtered_data(request.user)
        profile = ProfileService.get_profile(request.user)
        data = ProfileSerializer(profile).data
        data['stats'] = ProfileService.get_profile_stats(request.user)
        return Response(data)

    def patch(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if 'filtered_data' in data:
            ProfileService.update_filtered_data(request.user, data['filtered_data'])
        profile = ProfileService.get_profile(request.user)
        if 'projects' in data:
            profile.projects = data['projects']
            profile.save(update_fields=['projects', 'updated_at'])
        return Response(ProfileSerializer(profile).data)


class SaveProfileView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = SaveProfileSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = OnboardingService.save_profile(
            request.user,
            serializer.validated_data['filteredData'],
            serializer.validated_data.get('interest'),
        )
        response_status = status.HTTP_200_OK if result['alreadyOnboarded'] else status.HTTP_201_CREATED
        return Response(OnboardingResultSerializer(result).data, status=response_status)
