from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.permissions import Capability
from ..db import models
from ..db.session import get_db
from ..services.profiles import ProfileService
from .deps import get_current_user, get_identity, require
from .schemas import ProfileCreate, ProfileUpdate
from .serializers import opportunity_to_dict, profile_to_dict, registration_to_dict


router = APIRouter()


@router.post("")
async def create_me(
    payload: ProfileCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_identity),
) -> Dict[str, Any]:
    """Create the caller's profile on first sign-in."""
    profile = ProfileService(db).create(user_id, payload.model_dump())
    return profile_to_dict(profile)


@router.get("")
async def get_me(user: models.Profile = Depends(get_current_user)) -> Dict[str, Any]:
    return profile_to_dict(user)


@router.patch("")
async def update_me(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_PROFILE)),
) -> Dict[str, Any]:
    profile = ProfileService(db).update(user, payload.model_dump(exclude_unset=True))
    return profile_to_dict(profile)


@router.get("/schedule")
async def my_schedule(
    db: Session = Depends(get_db),
    user: models.Profile = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    """Upcoming and past registrations that were not cancelled."""
    result = []
    for registration in ProfileService(db).schedule(user.id):
        item = registration_to_dict(registration)
        item["opportunity"] = opportunity_to_dict(registration.opportunity)
        result.append(item)
    return result
