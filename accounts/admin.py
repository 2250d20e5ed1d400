from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin interface for custom User model."""

    list_display = [
        'username',
        'email',
        'user_name',
        'role',
        'interest',
        'has_completed_onboarding',
        'tokens_used',
        'is_staff',
    ]
    list_filter = ['role', 'interest', 'has_completed_onboarding', 'is_staff']
    search_fields = ['username', 'email', 'user_name', 'first_name', 'last_name']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('Journey', {'fields': ('user_name', 'interest', 'has_completed_onboarding')}),
        ('Usage', {'fields': ('role', 'token_quota', 'tokens_used', 'words_used')}),
    )

    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Journey', {'fields': ('user_name', 'interest', 'role')}),
    )
