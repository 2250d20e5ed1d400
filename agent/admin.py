from django.contrib import admin
from .models import AgentTurn, CareerConversation


class AgentTurnInline(admin.TabularInline):
    model = AgentTurn
    extra = 0
    fields = ['status', 'user_message', 'reply', 'created_at']
    readonly_fields = fields


@admin.register(CareerConversation)
class CareerConversationAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'title', 'updated_at']
    search_fields = ['user__username', 'title']
    raw_id_fields = ['user']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [AgentTurnInline]


@admin.register(AgentTurn)
class AgentTurnAdmin(admin.ModelAdmin):
    """Admin interface for agent turns, including the debug log."""

    list_display = ['id', 'conversation', 'status', 'created_at', 'completed_at']
    list_filter = ['status', 'created_at']
    search_fields = ['conversation__user__username', 'user_message']
    raw_id_fields = ['conversation']
    readonly_fields = [
        'created_at',
        'updated_at',
        'completed_at',
        'token_usage',
        'openai_run_id',
        'debug_log',
    ]
