"""Team management inside a tenant: listing, role changes, removal, stats."""
import logging

from tenantkit.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from tenantkit.models import Invitation, Profile, UserRole
from tenantkit.services.roles import annotate_users, assignable_roles, can_edit
from tenantkit.store import TenantScope
from tenantkit.utils.dates import utcnow

logger = logging.getLogger(__name__)


def list_team(session, actor):
    """Members of the actor's tenant, sorted, with ``can_edit`` for the actor."""
    scope = TenantScope(session, actor.tenant_id)
    profiles = scope.query(Profile).all()
    return annotate_users(profiles, actor.id, actor.role)


def _editable_target(scope, actor, target_id):
    target = scope.get(Profile, target_id)
    if target is None:
        raise NotFoundError("User not found")
    if not can_edit(target, actor.id, actor.role):
        raise PermissionDeniedError("You cannot modify this user")
    return target


def update_role(session, actor, target_id, role):
    """Change a member's role and return the refreshed team list."""
    scope = TenantScope(session, actor.tenant_id)
    target = _editable_target(scope, actor, target_id)
    if role not in assignable_roles(actor.role):
        raise ValidationError(f"Role '{role}' cannot be assigned")

    scope.update(Profile, {'role': role}, Profile.id == target.id)
    session.commit()
    logger.info(f"[TEAM] {actor.email} changed {target.email} to {role}")
    return list_team(session, actor)


def remove_member(session, actor, target_id):
    """Delete a member's profile and return the refreshed team list."""
    scope = TenantScope(session, actor.tenant_id)
    target = _editable_target(scope, actor, target_id)

    scope.delete(Profile, Profile.id == target.id)
    session.commit()
    logger.info(f"[TEAM] {actor.email} removed {target.email}")
    return list_team(session, actor)


def team_stats(session, actor):
    """Count-only dashboard figures for the actor's tenant."""
    scope = TenantScope(session, actor.tenant_id)
    by_role = scope.count_by(Profile, Profile.role)
    stats = {role.value: by_role.get(role.value, 0) for role in UserRole}
    stats['total'] = sum(by_role.values())
    stats['pending_invitations'] = scope.count(
        Invitation, Invitation.status == 'pending', Invitation.expires_at > utcnow()
    )
    return stats
