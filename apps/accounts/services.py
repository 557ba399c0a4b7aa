"""
Service layer for accounts app.

Principal resolution: turns user ids into (id, email) records for
building notification recipient lists.
"""

from typing import Iterable, NamedTuple

from .models import User


class Principal(NamedTuple):
    id: int
    email: str


def resolve_principals(user_ids: Iterable[int]) -> list[Principal]:
    """
    Resolve a set of user ids to principal records.

    Unknown ids and inactive users are dropped silently; the result is
    ordered by id so recipient lists are stable.

    Args:
        user_ids: Iterable of user primary keys

    Returns:
        list of Principal(id, email)
    """
    ids = {int(pk) for pk in user_ids}
    if not ids:
        return []

    rows = (
        User.objects
        .filter(pk__in=ids, is_active=True)
        .order_by('pk')
        .values_list('pk', 'email')
    )
    return [Principal(id=pk, email=email) for pk, email in rows]


def get_recipient_emails(user_ids: Iterable[int]) -> list[str]:
    """Email addresses for the given users, skipping blanks."""
    return [p.email for p in resolve_principals(user_ids) if p.email]
