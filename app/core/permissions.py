"""Role capabilities.

Every API operation names the capability it needs; roles map to capability
sets here instead of each route branching on the role itself. Admins hold
every capability. Organization-scoped operations additionally require
membership in the owning organization (see `ensure_organization_access`).
"""

from enum import Enum
from typing import Dict, FrozenSet

from sqlalchemy.orm import Session

from ..db import models
from .errors import PermissionDeniedError


class Capability(str, Enum):
    BROWSE_OPPORTUNITIES = "browse_opportunities"
    REGISTER = "register"
    MANAGE_PROFILE = "manage_profile"
    SETUP_ORGANIZATION = "setup_organization"
    MANAGE_OPPORTUNITIES = "manage_opportunities"
    MANAGE_ROSTER = "manage_roster"
    VERIFY_ORGANIZATIONS = "verify_organizations"
    VIEW_PLATFORM_STATS = "view_platform_stats"
    SEARCH_USERS = "search_users"


ROLE_CAPABILITIES: Dict[str, FrozenSet[Capability]] = {
    models.UserRole.VOLUNTEER.value: frozenset({
        Capability.BROWSE_OPPORTUNITIES,
        Capability.REGISTER,
        Capability.MANAGE_PROFILE,
    }),
    models.UserRole.ORGANIZATION.value: frozenset({
        Capability.BROWSE_OPPORTUNITIES,
        Capability.MANAGE_PROFILE,
        Capability.SETUP_ORGANIZATION,
        Capability.MANAGE_OPPORTUNITIES,
        Capability.MANAGE_ROSTER,
    }),
    models.UserRole.ADMIN.value: frozenset(Capability),
}


def has_capability(role: str, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def require_capability(profile: models.Profile, capability: Capability) -> None:
    if not has_capability(profile.role, capability):
        raise PermissionDeniedError()


def ensure_organization_access(db: Session, profile: models.Profile, organization_id: int) -> None:
    """Admins may act on any organization; everyone else must be a member."""
    if profile.role == models.UserRole.ADMIN.value:
        return
    membership = db.query(models.OrganizationMember).filter(
        models.OrganizationMember.user_id == profile.id,
        models.OrganizationMember.organization_id == organization_id,
    ).first()
    if not membership:
        raise PermissionDeniedError("You are not a member of this organization")
