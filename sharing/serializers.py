"""
Sharing app serializers
"""
from rest_framework import serializers

from timeline.serializers import TimelineNodeSerializer
from .models import NodePolicy

OVERVIEW_META_FIELDS = ('title', 'role', 'degree', 'orgId', 'startDate', 'endDate')


class NodePolicySerializer(serializers.ModelSerializer):
    nodeId = serializers.UUIDField(source='node_id', read_only=True)
    subjectType = serializers.CharField(source='subject_type', read_only=True)
    subjectId = serializers.IntegerField(source='subject_id', read_only=True, allow_null=True)
    grantedBy = serializers.IntegerField(source='granted_by_id', read_only=True)
    expiresAt = serializers.DateTimeField(source='expires_at', read_only=True, allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = NodePolicy
        fields = [
            'id', 'nodeId', 'level', 'action', 'subjectType', 'subjectId',
            'effect', 'grantedBy', 'expiresAt', 'createdAt',
        ]
        read_only_fields = fields


class BatchAccessCheckSerializer(serializers.Serializer):
    nodeIds = serializers.ListField(child=serializers.CharField(), max_length=100)
    action = serializers.ChoiceField(choices=NodePolicy.Action.choices, default=NodePolicy.Action.VIEW)
    level = serializers.ChoiceField(choices=NodePolicy.Level.choices, default=NodePolicy.Level.OVERVIEW)


class SharedNodeSerializer(TimelineNodeSerializer):
    """
    Node as seen by another user. Overview access only exposes a few meta keys.
    """

    accessLevel = serializers.SerializerMethodField()
    canEdit = serializers.SerializerMethodField()

    class Meta(TimelineNodeSerializer.Meta):
        fields = TimelineNodeSerializer.Meta.fields + ['accessLevel', 'canEdit']
        read_only_fields = fields

    def _access(self, obj):
        return self.context.get('access', {}).get(str(obj.id), {})

    def get_accessLevel(self, obj):
        return self._access(obj).get('accessLevel')

    def get_canEdit(self, obj):
        return self._access(obj).get('canEdit', False)

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if data.get('accessLevel') == NodePolicy.Level.OVERVIEW:
            meta = data.get('meta') or {}
            data['meta'] = {key: meta[key] for key in OVERVIEW_META_FIELDS if key in meta}
        return data
