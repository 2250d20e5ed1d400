"""
Profiles app models

Profile keeps the imported profile of a user (``raw_data``) next to the
curated profile document the career agent edits (``filtered_data``).

Example filtered_data:
{
  "experiences": [
    {
      "id": "9f0c...",
      "title": "Backend Engineer",
      "company": "Acme",
      "start": "2022-03",
      "end": null,
      "description": "Payments team",
      "projects": [
        {"id": "1b2d...", "title": "Ledger", "technologies": ["go"], "updates": []}
      ]
    }
  ],
  "education": [{"school": "State University", "degree": "BSc", "field": "CS"}],
  "skills": ["python", "sql"]
}
"""
from django.conf import settings
from django.db import models


class Profile(models.Model):
    """
    Profile document for a user.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='profile',
    )
    user_name = models.CharField(max_length=30, blank=True)
    raw_data = models.JSONField(default=dict, blank=True)
    filtered_data = models.JSONField(default=dict, blank=True)
    projects = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Profile for {self.user.username}"

    class Meta:
        verbose_name = 'Profile'
        verbose_name_plural = 'Profiles'
