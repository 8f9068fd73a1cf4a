from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import (
    DuplicateOrganizationError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from ..core.logging import logger
from ..db import models
from .normalization import normalize_email, slugify


class OrganizationService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, owner: models.Profile, data: Dict[str, Any]) -> models.Organization:
        """Create an organization and make `owner` its first member."""
        name = (data.get("name") or "").strip()
        slug = slugify(name)
        if not slug:
            raise InvalidInputError("Organization name must contain letters or digits")

        if self.membership_for(owner.id):
            raise PermissionDeniedError("You already belong to an organization")

        existing = self.db.query(models.Organization).filter(
            models.Organization.slug == slug
        ).first()
        if existing:
            raise DuplicateOrganizationError()

        org = models.Organization(
            name=name,
            slug=slug,
            description=data.get("description"),
            contact_email=normalize_email(data.get("contact_email")),
            website=data.get("website") or None,
            address=data.get("address") or None,
            city=data.get("city") or None,
        )
        self.db.add(org)
        try:
            self.db.flush()
            self.db.add(models.OrganizationMember(
                user_id=owner.id,
                organization_id=org.id,
                role=models.MemberRole.OWNER.value,
            ))
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateOrganizationError()

        self.db.refresh(org)
        logger.info(f"organization_created id={org.id} slug={slug} owner={owner.id}")
        return org

    def membership_for(self, user_id: str) -> Optional[models.OrganizationMember]:
        return self.db.query(models.OrganizationMember).filter(
            models.OrganizationMember.user_id == user_id
        ).order_by(models.OrganizationMember.created_at.asc()).first()

    def is_member(self, user_id: str, organization_id: int) -> bool:
        return self.db.query(models.OrganizationMember).filter(
            models.OrganizationMember.user_id == user_id,
            models.OrganizationMember.organization_id == organization_id,
        ).first() is not None

    def get(self, organization_id: int) -> models.Organization:
        org = self.db.query(models.Organization).filter(
            models.Organization.id == organization_id
        ).first()
        if not org:
            raise NotFoundError("Organization not found")
        return org

    def list_all(self, verified: Optional[bool] = None, search: Optional[str] = None) -> List[models.Organization]:
        query = self.db.query(models.Organization)
        if verified is not None:
            query = query.filter(models.Organization.is_verified == verified)
        if search:
            query = query.filter(models.Organization.name.ilike(f"%{search}%"))
        return query.order_by(models.Organization.created_at.desc()).all()

    def set_verified(self, organization_id: int, verified: bool = True) -> models.Organization:
        org = self.get(organization_id)
        org.is_verified = verified
        self.db.commit()
        self.db.refresh(org)
        logger.info(f"organization_verification id={org.id} is_verified={verified}")
        return org
