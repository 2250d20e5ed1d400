from django.contrib import admin
from .models import Organization, OrgMember


class OrgMemberInline(admin.TabularInline):
    model = OrgMember
    extra = 0
    raw_id_fields = ['user']


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    """Admin interface for Organization."""

    list_display = ['id', 'name', 'type', 'created_at']
    list_filter = ['type']
    search_fields = ['name']
    inlines = [OrgMemberInline]
