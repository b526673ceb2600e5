"""
Authz helpers shared by the API apps.
"""


def get_user_roles(user):
    """Role names of an authenticated user (empty set for anonymous users)."""
    if not user or not user.is_authenticated:
        return set()
    return set(user.user_roles.values_list('role__name', flat=True))
