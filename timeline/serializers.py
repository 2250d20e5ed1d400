"""
Timeline app serializers

Serializers for TimelineNode and NodeInsight. Writes go through the service
layer, so the input serializers only check shape.
"""
from rest_framework import serializers

from .models import NodeInsight, TimelineNode
from .services import InsightService


class TimelineNodeSerializer(serializers.ModelSerializer):
    """
    Read serializer for a single timeline node.
    """

    parentId = serializers.UUIDField(source='parent_id', read_only=True, allow_null=True)
    userId = serializers.IntegerField(source='user_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = TimelineNode
        fields = ['id', 'type', 'parentId', 'meta', 'userId', 'createdAt', 'updatedAt']
        read_only_fields = fields


class TimelineTreeSerializer(TimelineNodeSerializer):
    """
    Node with its ``tree_children`` rendered recursively as ``children``.
    """

    children = serializers.SerializerMethodField()

    class Meta(TimelineNodeSerializer.Meta):
        fields = TimelineNodeSerializer.Meta.fields + ['children']
        read_only_fields = fields

    def get_children(self, obj):
        return TimelineTreeSerializer(getattr(obj, 'tree_children', []), many=True).data


class NodeCreateSerializer(serializers.Serializer):
    type = serializers.CharField()
    parentId = serializers.UUIDField(required=False, allow_null=True)
    meta = serializers.DictField(required=False, default=dict)


class NodeUpdateSerializer(serializers.Serializer):
    parentId = serializers.UUIDField(required=False, allow_null=True)
    meta = serializers.DictField(required=False)


class NodeMoveSerializer(serializers.Serializer):
    parentId = serializers.UUIDField(required=False, allow_null=True)


class NodeInsightSerializer(serializers.ModelSerializer):
    nodeId = serializers.UUIDField(source='node_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)
    timeAgo = serializers.SerializerMethodField()

    class Meta:
        model = NodeInsight
        fields = ['id', 'nodeId', 'description', 'resources', 'createdAt', 'updatedAt', 'timeAgo']
        read_only_fields = fields

    def get_timeAgo(self, obj):
        return InsightService.time_ago(obj.created_at)
