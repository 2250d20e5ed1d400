"""
Organizations app models

Companies and educational institutions referenced by job and education
timeline nodes, and the users who belong to them.
"""
from django.conf import settings
from django.db import models


class Organization(models.Model):
    """
    A company or educational institution.

    Job and education nodes point at an organization through ``meta.orgId``.
    """

    class Type(models.TextChoices):
        COMPANY = 'company', 'Company'
        EDUCATIONAL_INSTITUTION = 'educational_institution', 'Educational Institution'

    name = models.CharField(max_length=255)
    type = models.CharField(max_length=32, choices=Type.choices)
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.type})"

    class Meta:
        verbose_name = 'Organization'
        verbose_name_plural = 'Organizations'
        ordering = ['name']
        indexes = [
            models.Index(fields=['name'], name='org_name_idx'),
            models.Index(fields=['type'], name='org_type_idx'),
        ]


class OrgMember(models.Model):
    """
    Membership of a user in an organization.
    """

    class Role(models.TextChoices):
        MEMBER = 'member', 'Member'

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='members',
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='org_memberships',
    )
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.MEMBER)
    joined_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user.username} in {self.organization.name}"

    class Meta:
        verbose_name = 'Organization Member'
        verbose_name_plural = 'Organization Members'
        constraints = [
            models.UniqueConstraint(fields=['organization', 'user'], name='unique_org_member'),
        ]
