"""
Accounts models

The journey User: a public ``user_name`` used in share links, an onboarding
flag, and a token budget spent by the career agent.
"""
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """
    Account holder whose timeline, profile and agent conversations hang off it.

    Admins bypass node sharing rules and manage organizations; job seekers
    only see their own nodes plus what others share with them.
    """

    class Role(models.TextChoices):
        ADMIN = 'ADMIN', 'Admin'
        JOB_SEEKER = 'JOB_SEEKER', 'Job Seeker'

    class Interest(models.TextChoices):
        FIND_JOB = 'find-job', 'Find a job'
        GROW_CAREER = 'grow-career', 'Grow my career'
        CHANGE_CAREERS = 'change-careers', 'Change careers'
        START_STARTUP = 'start-startup', 'Start a startup'

    ADMIN = Role.ADMIN
    JOB_SEEKER = Role.JOB_SEEKER

    role = models.CharField(max_length=20, choices=Role.choices, default=Role.JOB_SEEKER)

    # Agent budget, counted in model tokens
    token_quota = models.IntegerField(default=10000)
    tokens_used = models.IntegerField(default=0)
    words_used = models.IntegerField(default=0)

    user_name = models.CharField(max_length=30, unique=True, null=True, blank=True)
    interest = models.CharField(max_length=20, choices=Interest.choices, blank=True)
    has_completed_onboarding = models.BooleanField(default=False)

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'

    def __str__(self):
        return self.user_name or self.username

    @property
    def is_admin(self) -> bool:
        return self.role == self.Role.ADMIN

    @property
    def tokens_available(self) -> int:
        return max(self.token_quota - self.tokens_used, 0)

    def record_usage(self, *, tokens: int = 0, words: int = 0) -> None:
        """
        Add a finished agent turn's usage to the running totals.

        The increment happens in the database so concurrent turns for the
        same user don't overwrite each other.
        """
        increments = {}
        if tokens > 0:
            increments['tokens_used'] = models.F('tokens_used') + tokens
        if words > 0:
            increments['words_used'] = models.F('words_used') + words
        if not increments:
            return

        type(self).objects.filter(pk=self.pk).update(**increments)
        self.refresh_from_db(fields=list(increments))
