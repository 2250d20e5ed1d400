"""
Accounts serializers
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from .models import User
from .utils import validate_user_name


class UserSerializer(serializers.ModelSerializer):
    """
    Account details with usage counters. ``password`` is accepted on write
    and never returned.
    """

    tokens_available = serializers.IntegerField(read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'user_name',
            'interest',
            'has_completed_onboarding',
            'role',
            'token_quota',
            'tokens_used',
            'tokens_available',
            'password',
        ]
        extra_kwargs = {'password': {'write_only': True, 'required': False}}

    def validate_user_name(self, value):
        if value in (None, ''):
            return None
        try:
            return validate_user_name(value)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.messages)

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)

    def update(self, instance, validated_data):
        new_password = validated_data.pop('password', None)
        instance = super().update(instance, validated_data)
        if new_password:
            instance.set_password(new_password)
            instance.save(update_fields=['password'])
        return instance


class CurrentUserUpdateSerializer(UserSerializer):
    """Subset of account fields a user may edit on themselves."""

    class Meta(UserSerializer.Meta):
        read_only_fields = [
            'id',
            'username',
            'role',
            'token_quota',
            'tokens_used',
            'has_completed_onboarding',
        ]
