"""
Accounts helpers: agent token reservation and public user name rules.
"""
import re

from django.core.exceptions import ValidationError
from django.db.models import F

USER_NAME_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')
USER_NAME_MIN_LENGTH = 3
USER_NAME_MAX_LENGTH = 30


def check_and_increment_tokens(user, cost: int = 1) -> None:
    """
    Reserve ``cost`` tokens from the user's quota before queueing agent work.

    The check and the increment are a single UPDATE, so two requests cannot
    both spend the last tokens.

    Raises:
        PermissionError: If the reservation would exceed the quota
    """
    reserved = type(user).objects.filter(
        pk=user.pk,
        tokens_used__lte=F('token_quota') - cost,
    ).update(tokens_used=F('tokens_used') + cost)
    if not reserved:
        raise PermissionError("Token quota exceeded.")
    user.refresh_from_db(fields=['tokens_used'])


def validate_user_name(value: str) -> str:
    """
    Validate a public user name and return it stripped.

    Raises:
        ValidationError: listing every rule the value breaks
    """
    value = (value or '').strip()
    errors = []

    if len(value) < USER_NAME_MIN_LENGTH:
        errors.append(f"user_name must be at least {USER_NAME_MIN_LENGTH} characters")
    if len(value) > USER_NAME_MAX_LENGTH:
        errors.append(f"user_name must be at most {USER_NAME_MAX_LENGTH} characters")
    if value and not USER_NAME_PATTERN.match(value):
        errors.append("user_name may only contain letters, numbers, underscores and dashes")
    if value.startswith('-') or value.endswith('-'):
        errors.append("user_name cannot start or end with a dash")

    if errors:
        raise ValidationError(errors)
    return value
