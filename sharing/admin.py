from django.contrib import admin
from .models import NodePolicy


@admin.register(NodePolicy)
class NodePolicyAdmin(admin.ModelAdmin):
    """Admin interface for node sharing policies."""

    list_display = ['id', 'node', 'effect', 'action', 'level', 'subject_type', 'subject_id', 'expires_at']
    list_filter = ['effect', 'action', 'level', 'subject_type']
    raw_id_fields = ['node', 'granted_by']
    readonly_fields = ['created_at']
