"""
Sharing app models

NodePolicy rows grant (ALLOW) or revoke (DENY) access to a single timeline
node for a user, an organization or the public.
"""
import uuid

from django.conf import settings
from django.db import models


class NodePolicy(models.Model):
    """
    Access policy attached to a timeline node.

    ``subject_id`` is a user id for ``user`` subjects, an organization id for
    ``org`` subjects and null for ``public``.
    """

    class Level(models.TextChoices):
        OVERVIEW = 'overview', 'Overview'
        FULL = 'full', 'Full'

    class Action(models.TextChoices):
        VIEW = 'view', 'View'
        EDIT = 'edit', 'Edit'

    class SubjectType(models.TextChoices):
        USER = 'user', 'User'
        ORG = 'org', 'Organization'
        PUBLIC = 'public', 'Public'

    class Effect(models.TextChoices):
        ALLOW = 'ALLOW', 'Allow'
        DENY = 'DENY', 'Deny'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    node = models.ForeignKey(
        'timeline.TimelineNode',
        on_delete=models.CASCADE,
        related_name='policies',
    )
    level = models.CharField(max_length=10, choices=Level.choices, default=Level.OVERVIEW)
    action = models.CharField(max_length=10, choices=Action.choices, default=Action.VIEW)
    subject_type = models.CharField(max_length=10, choices=SubjectType.choices)
    subject_id = models.IntegerField(null=True, blank=True)
    effect = models.CharField(max_length=5, choices=Effect.choices, default=Effect.ALLOW)
    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='granted_policies',
    )
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        subject = self.subject_type if self.subject_id is None else f"{self.subject_type}:{self.subject_id}"
        return f"{self.effect} {self.action}/{self.level} on {self.node_id} for {subject}"

    class Meta:
        verbose_name = 'Node Policy'
        verbose_name_plural = 'Node Policies'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['node', 'action', 'level'], name='policy_node_lookup_idx'),
            models.Index(fields=['subject_type', 'subject_id'], name='policy_subject_idx'),
            models.Index(fields=['expires_at'], name='policy_expiry_idx'),
        ]
