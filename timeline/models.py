"""
Timeline app models

TimelineNode stores one career event (job, education, project, event, action,
career transition) per row. Nodes form a per-user forest through the nullable
``parent`` link; type-specific details live in ``meta``.

Example job node meta:
{
  "orgId": 12,
  "role": "Operations Analyst Co-op",
  "location": "Atlanta, GA",
  "startDate": "2024-01",
  "endDate": "2024-08",
  "skills": ["python", "sql"]
}

NodeInsight attaches free-text learnings and reference resources to a node.
"""
import uuid

from django.conf import settings
from django.db import models


class TimelineNode(models.Model):
    """
    A node in a user's career timeline hierarchy.
    """

    class NodeType(models.TextChoices):
        JOB = 'job', 'Job'
        EDUCATION = 'education', 'Education'
        PROJECT = 'project', 'Project'
        EVENT = 'event', 'Event'
        ACTION = 'action', 'Action'
        CAREER_TRANSITION = 'careerTransition', 'Career Transition'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    type = models.CharField(max_length=32, choices=NodeType.choices)
    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='children',
    )
    meta = models.JSONField(default=dict, blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='timeline_nodes',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.type} {self.display_title} ({self.user.username})"

    @property
    def display_title(self) -> str:
        meta = self.meta or {}
        return meta.get('title') or meta.get('role') or meta.get('degree') or str(self.id)

    class Meta:
        verbose_name = 'Timeline Node'
        verbose_name_plural = 'Timeline Nodes'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['user', 'type'], name='timeline_user_type_idx'),
            models.Index(fields=['user', 'parent'], name='timeline_user_parent_idx'),
        ]


class NodeInsight(models.Model):
    """
    A learning or takeaway recorded against a timeline node.

    ``resources`` is a list of
    {"url", "type", "title", "description", "author", "tags", "relevanceScore"}.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    node = models.ForeignKey(
        TimelineNode,
        on_delete=models.CASCADE,
        related_name='insights',
    )
    description = models.TextField(max_length=2000)
    resources = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Insight on {self.node_id}: {self.description[:40]}"

    class Meta:
        verbose_name = 'Node Insight'
        verbose_name_plural = 'Node Insights'
        ordering = ['-created_at']
