"""
Agent app models

CareerConversation keeps the chat history between a user and the career
agent. Each user message is processed as an AgentTurn by a background task.
"""
from django.conf import settings
from django.db import models


class CareerConversation(models.Model):
    """
    A chat thread with the career agent.

    ``messages`` is a list of {"role": "user"|"assistant", "content", "created_at"}.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='career_conversations',
    )
    title = models.CharField(max_length=255, blank=True)
    messages = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Conversation {self.id} for {self.user.username}"

    class Meta:
        verbose_name = 'Career Conversation'
        verbose_name_plural = 'Career Conversations'
        ordering = ['-updated_at']


class AgentTurn(models.Model):
    """
    One user message and the agent's processing of it.
    """

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        PROCESSING = 'PROCESSING', 'Processing'
        COMPLETED = 'COMPLETED', 'Completed'
        FAILED = 'FAILED', 'Failed'

    conversation = models.ForeignKey(
        CareerConversation,
        on_delete=models.CASCADE,
        related_name='turns',
    )
    user_message = models.TextField()

    # Agent outputs
    reply = models.TextField(blank=True)
    tool_results = models.JSONField(default=list, blank=True)

    # AI runtime metadata
    openai_run_id = models.CharField(max_length=255, blank=True)
    token_usage = models.JSONField(default=dict, blank=True)
    debug_log = models.TextField(blank=True)
    error_message = models.TextField(blank=True)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    completed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Turn {self.id} ({self.status}) in conversation {self.conversation_id}"

    class Meta:
        verbose_name = 'Agent Turn'
        verbose_name_plural = 'Agent Turns'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='agent_turn_status_idx'),
        ]
