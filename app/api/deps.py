from typing import Callable

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.permissions import Capability, require_capability
from ..db import models
from ..db.session import get_db


def get_identity(request: Request) -> str:
    """The user id handed over by the identity provider, profile or not."""
    user_id = (request.headers.get(settings.identity_header) or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id


def get_current_user(
    user_id: str = Depends(get_identity),
    db: Session = Depends(get_db),
) -> models.Profile:
    profile = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    if not profile:
        raise HTTPException(status_code=401, detail="Unknown user")
    return profile


def require(capability: Capability) -> Callable[..., models.Profile]:
    """Dependency factory: the current user, provided their role grants `capability`."""

    def dependency(user: models.Profile = Depends(get_current_user)) -> models.Profile:
        require_capability(user, capability)
        return user

    return dependency
