"""
Role and permission rules for team management.

Pure functions: they never touch the store. Callers re-run
:func:`annotate_users` after every mutation so the edit affordance always
reflects the roles that were just written.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

ROLE_PRECEDENCE = {
    'owner': 1,
    'admin': 2,
    'member': 3,
}
UNKNOWN_ROLE_PRECEDENCE = 4

MANAGER_ROLES = frozenset({'owner', 'admin'})
ASSIGNABLE_ROLES = ('owner', 'admin', 'member')


def role_precedence(role) -> int:
    """Sort weight of a role; lower sorts first."""
    return ROLE_PRECEDENCE.get(role, UNKNOWN_ROLE_PRECEDENCE)


def is_manager(role) -> bool:
    return role in MANAGER_ROLES


def can_edit(target, acting_id, acting_role) -> bool:
    """
    Whether the acting user may change or remove ``target``.

    Nobody edits themselves; owners and admins edit everyone else;
    members edit nobody.
    """
    if target.id == acting_id:
        return False
    return is_manager(acting_role)


def sort_users(users: Iterable) -> list:
    """Stable sort by role precedence, newest first within a role."""
    newest_first = sorted(users, key=_created_at, reverse=True)
    return sorted(newest_first, key=lambda user: role_precedence(user.role))


def _created_at(user):
    return user.created_at or datetime.min


def assignable_roles(acting_role) -> tuple:
    """Roles the actor may hand out; ``owner`` included only for managers."""
    if is_manager(acting_role):
        return ASSIGNABLE_ROLES
    return ()


@dataclass
class TeamMember:
    id: str
    email: str
    role: str
    created_at: Optional[datetime]
    can_edit: bool

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'can_edit': self.can_edit,
        }


def annotate_users(users: Iterable, acting_id, acting_role) -> List[TeamMember]:
    """Sorted team view with ``can_edit`` derived for the acting user."""
    return [
        TeamMember(
            id=user.id,
            email=user.email,
            role=user.role,
            created_at=user.created_at,
            can_edit=can_edit(user, acting_id, acting_role),
        )
        for user in sort_users(users)
    ]
