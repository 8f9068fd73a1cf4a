from enum import Enum
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..core.errors import InvalidInputError, NotFoundError, ProfileExistsError
from ..core.logging import logger
from ..db import models
from .normalization import normalize_email, normalize_skills

# Profile fields a user may edit themselves; role changes are not self-service
EDITABLE_FIELDS = ("full_name", "phone", "bio", "skills")

# Admins are appointed, never self-assigned
SIGNUP_ROLES = (models.UserRole.VOLUNTEER.value, models.UserRole.ORGANIZATION.value)

MAX_ID_LENGTH = 64


class ProfileService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> models.Profile:
        profile = self.db.query(models.Profile).filter(models.Profile.id == user_id).first()
        if not profile:
            raise NotFoundError("Profile not found")
        return profile

    def create(self, user_id: str, data: Dict[str, Any]) -> models.Profile:
        """Bootstrap the profile for an identity the provider has just authenticated."""
        if len(user_id) > MAX_ID_LENGTH:
            raise InvalidInputError("User id is too long")

        role = data.get("role") or models.UserRole.VOLUNTEER.value
        if isinstance(role, Enum):
            role = role.value
        if role not in SIGNUP_ROLES:
            raise InvalidInputError("Role must be volunteer or organization")

        if self.db.query(models.Profile).filter(models.Profile.id == user_id).first():
            raise ProfileExistsError()

        email = normalize_email(data.get("email"))
        if self.db.query(models.Profile).filter(models.Profile.email == email).first():
            raise ProfileExistsError("This email is already in use")

        profile = models.Profile(
            id=user_id,
            email=email,
            full_name=(data.get("full_name") or "").strip() or None,
            role=role,
        )
        self.db.add(profile)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ProfileExistsError()

        self.db.refresh(profile)
        logger.info(f"profile_created id={profile.id} role={profile.role}")
        return profile

    def update(self, profile: models.Profile, data: Dict[str, Any]) -> models.Profile:
        changed = []
        for field in EDITABLE_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field == "skills":
                value = normalize_skills(value)
            setattr(profile, field, value)
            changed.append(field)

        self.db.commit()
        self.db.refresh(profile)
        logger.info(f"profile_updated id={profile.id} fields={changed}")
        return profile

    def schedule(self, user_id: str) -> List[models.Registration]:
        """The user's registrations that are still on the books, by event date."""
        return self.db.query(models.Registration).join(
            models.Opportunity, models.Registration.opportunity_id == models.Opportunity.id
        ).options(
            joinedload(models.Registration.opportunity).joinedload(models.Opportunity.organization)
        ).filter(
            models.Registration.user_id == user_id,
            models.Registration.status != models.RegistrationStatus.CANCELLED.value,
        ).order_by(models.Opportunity.start_date.asc()).all()
