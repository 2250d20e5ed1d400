"""
Profiles app serializers
"""
from rest_framework import serializers

from accounts.models import User
from timeline.serializers import TimelineNodeSerializer
from .models import Profile


class ProfileSerializer(serializers.ModelSerializer):
    """
    Read serializer for the profile document.
    """

    username = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = Profile
        fields = [
            'id',
            'username',
            'user_name',
            'raw_data',
            'filtered_data',
            'projects',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ProfileUpdateSerializer(serializers.Serializer):
    filtered_data = serializers.DictField(required=False)
    projects = serializers.ListField(child=serializers.DictField(), required=False)


class SaveProfileSerializer(serializers.Serializer):
    """
    Payload of POST /api/onboarding/save-profile/.

    ``filteredData`` holds the profile the user kept after reviewing the
    import: {name, experiences[], education[], skills[]}.
    """

    filteredData = serializers.DictField()
    interest = serializers.ChoiceField(choices=User.Interest.choices, required=False)


class OnboardingResultSerializer(serializers.Serializer):
    profile = serializers.DictField()
    nodes = TimelineNodeSerializer(many=True)
    nodesCreated = serializers.SerializerMethodField()
    alreadyOnboarded = serializers.BooleanField()

    def get_nodesCreated(self, obj):
        return len(obj['nodes'])
