"""
Organizations app serializers
"""
from rest_framework import serializers

from .models import Organization, OrgMember


class OrganizationSerializer(serializers.ModelSerializer):

    class Meta:
        model = Organization
        fields = [
            'id',
            'name',
            'type',
            'metadata',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class OrgMemberSerializer(serializers.ModelSerializer):

    username = serializers.CharField(source='user.username', read_only=True)
    user_name = serializers.CharField(source='user.user_name', read_only=True)

    class Meta:
        model = OrgMember
        fields = [
            'id',
            'organization',
            'user',
            'username',
            'user_name',
            'role',
            'joined_at',
        ]
        read_only_fields = fields


class AddMemberSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
    role = serializers.ChoiceField(choices=OrgMember.Role.choices, default=OrgMember.Role.MEMBER)
