from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Dict, Any, Optional

from ..core.permissions import Capability
from ..db import models
from ..db.session import get_db
from ..services import analytics
from ..services.organizations import OrganizationService
from .deps import require
from .schemas import VerificationUpdate
from .serializers import organization_to_dict, profile_to_dict


router = APIRouter()


@router.get("/stats")
async def get_stats(
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.VIEW_PLATFORM_STATS)),
) -> Dict[str, Any]:
    """Get platform metrics."""
    return analytics.platform_stats(db)


@router.get("/users")
async def get_users(
    search: Optional[str] = None,
    role: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.SEARCH_USERS)),
) -> Dict[str, Any]:
    """Search users by email or name, optionally filtered by role."""
    users = analytics.search_users(db, search=search, role=role)
    return {
        "users": [profile_to_dict(u) for u in users],
        "role_counts": analytics.role_counts(db),
    }


@router.get("/organizations")
async def get_organizations(
    verified: Optional[bool] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.VERIFY_ORGANIZATIONS)),
) -> List[Dict[str, Any]]:
    """Get all organizations, newest first."""
    organizations = OrganizationService(db).list_all(verified=verified, search=search)
    return [organization_to_dict(org) for org in organizations]


@router.post("/organizations/{organization_id}/verify")
async def verify_organization(
    organization_id: int,
    payload: Optional[VerificationUpdate] = None,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.VERIFY_ORGANIZATIONS)),
) -> Dict[str, Any]:
    """Mark an organization verified (or revoke it with {"is_verified": false})."""
    verified = payload.is_verified if payload else True
    org = OrganizationService(db).set_verified(organization_id, verified)
    return organization_to_dict(org)
