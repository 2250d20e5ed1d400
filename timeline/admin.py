from django.contrib import admin
from .models import NodeInsight, TimelineNode


class NodeInsightInline(admin.TabularInline):
    model = NodeInsight
    extra = 0
    readonly_fields = ['created_at', 'updated_at']


@admin.register(TimelineNode)
class TimelineNodeAdmin(admin.ModelAdmin):
    """Admin interface for timeline nodes."""

    list_display = ['id', 'type', 'display_title', 'user', 'parent', 'updated_at']
    list_filter = ['type', 'updated_at']
    search_fields = ['user__username', 'user__user_name']
    raw_id_fields = ['user', 'parent']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [NodeInsightInline]


@admin.register(NodeInsight)
class NodeInsightAdmin(admin.ModelAdmin):
    list_display = ['id', 'node', 'created_at']
    search_fields = ['description']
    raw_id_fields = ['node']
