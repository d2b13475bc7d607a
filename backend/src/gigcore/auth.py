"""
Authentication utilities for extracting user info from Cognito tokens.
"""
from typing import Optional

from .errors import PermissionDeniedError
from .models import Actor, Role


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    try:
        return event['requestContext']['authorizer']['claims']['sub']
    except (KeyError, TypeError):
        return None


def get_user_groups(event: dict) -> list:
    """Extract user groups (student, client, admin) from Cognito claims."""
    try:
        groups = event['requestContext']['authorizer']['claims'].get('cognito:groups', '')
        if isinstance(groups, str):
            return groups.split(',') if groups else []
        return groups or []
    except (KeyError, TypeError):
        return []


def get_user_role(event: dict) -> Optional[str]:
    """
    Resolve the caller's role.
    The custom:role attribute wins; otherwise the highest group is used.
    """
    try:
        role = event['requestContext']['authorizer']['claims'].get('custom:role')
    except (KeyError, TypeError, AttributeError):
        role = None
    if role in Role.ALL:
        return role

    groups = get_user_groups(event)
    for candidate in (Role.ADMIN, Role.CLIENT, Role.STUDENT):
        if candidate in groups:
            return candidate
    return None


def get_actor(event: dict) -> Actor:
    """Build the authenticated Actor or raise PermissionDenied."""
    user_id = get_user_sub(event)
    role = get_user_role(event)
    if not user_id or not role:
        raise PermissionDeniedError('Unauthenticated', 'Authentication required')
    return Actor(user_id, role)
