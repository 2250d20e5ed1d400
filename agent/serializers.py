"""
Agent app serializers
"""
from rest_framework import serializers

from .models import AgentTurn, CareerConversation


class AgentTurnSerializer(serializers.ModelSerializer):
    class Meta:
        model = AgentTurn
        fields = [
            'id',
            'conversation',
            'user_message',
            'reply',
            'tool_results',
            'token_usage',
            'status',
            'error_message',
            'completed_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class CareerConversationSerializer(serializers.ModelSerializer):
    """
    Conversation with its message history and latest turn status.
    """

    latest_turn = serializers.SerializerMethodField()

    class Meta:
        model = CareerConversation
        fields = ['id', 'title', 'messages', 'latest_turn', 'created_at', 'updated_at']
        read_only_fields = ['id', 'messages', 'latest_turn', 'created_at', 'updated_at']

    def get_latest_turn(self, obj):
        turn = obj.turns.order_by('-created_at').first()
        return AgentTurnSerializer(turn).data if turn else None


class SendMessageSerializer(serializers.Serializer):
    message = serializers.CharField(max_length=4000, trim_whitespace=True)
