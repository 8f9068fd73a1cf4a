from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..core.config import settings
from ..core.errors import InvalidInputError, NotFoundError
from ..core.logging import logger
from ..db import models
from .capacity import CapacitySnapshot, CapacityTracker
from .normalization import normalize_skills
from .notifications import NotificationService, notification_service
from .waitlist import WaitlistPromoter

# Fields an organization may set on its postings
EDITABLE_FIELDS = (
    "title",
    "description",
    "short_description",
    "category",
    "skills_needed",
    "location_type",
    "address",
    "city",
    "start_date",
    "end_date",
    "recurrence",
    "max_volunteers",
    "waitlist_enabled",
    "status",
)

# Columns that cannot be cleared once set
REQUIRED_FIELDS = (
    "title",
    "description",
    "category",
    "location_type",
    "start_date",
    "recurrence",
    "waitlist_enabled",
    "status",
)


class OpportunityService:
    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        self.db = db
        self.capacity = CapacityTracker(db)
        self.promoter = WaitlistPromoter(db)
        self.notifier = notifier or notification_service

    def create(self, organization_id: int, data: Dict[str, Any]) -> models.Opportunity:
        values = self._clean(data)
        opportunity = models.Opportunity(
            organization_id=organization_id,
            current_volunteers=0,
            **values,
        )
        self._validate_dates(opportunity.start_date, opportunity.end_date)
        self.db.add(opportunity)
        self.db.commit()
        self.db.refresh(opportunity)
        logger.info(
            f"opportunity_created id={opportunity.id} organization_id={organization_id} "
            f"status={opportunity.status}"
        )
        return opportunity

    def update(self, opportunity_id: int, data: Dict[str, Any]) -> models.Opportunity:
        """Edit a posting; raising or lifting the limit pulls people off the waitlist.

        The limit can never drop below the number of volunteers already holding a spot.
        """
        values = self._clean(data)
        promoted: List[models.Registration] = []
        try:
            opportunity = self.capacity.lock(opportunity_id)
            for field, value in values.items():
                setattr(opportunity, field, value)
            self._validate_dates(opportunity.start_date, opportunity.end_date)
            self.db.flush()

            if "max_volunteers" in values or "waitlist_enabled" in values:
                active = self.capacity.count_active(opportunity.id)
                if opportunity.max_volunteers is not None and opportunity.max_volunteers < active:
                    raise InvalidInputError(
                        f"{active} volunteers already hold a spot; "
                        "maximum volunteers cannot be lower than that"
                    )
                slots = self.promoter.open_slots(opportunity, active)
                promoted = self.promoter.promote(opportunity, slots=slots)

            self.capacity.sync(opportunity)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(opportunity)
        logger.info(
            f"opportunity_updated id={opportunity.id} fields={sorted(values)} promoted={len(promoted)}"
        )
        for registration in promoted:
            if registration.user and registration.user.email:
                self.notifier.notify_promotion(registration.user.email, opportunity.title)
        return opportunity

    def get(self, opportunity_id: int) -> models.Opportunity:
        opportunity = self.db.query(models.Opportunity).options(
            joinedload(models.Opportunity.organization)
        ).filter(models.Opportunity.id == opportunity_id).first()
        if not opportunity:
            raise NotFoundError("Opportunity not found")
        return opportunity

    def list_public(
        self,
        category: Optional[str] = None,
        location_type: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[models.Opportunity]:
        """Published opportunities that have not started yet, soonest first."""
        query = self.db.query(models.Opportunity).options(
            joinedload(models.Opportunity.organization)
        ).filter(
            models.Opportunity.status == models.OpportunityStatus.PUBLISHED.value,
            models.Opportunity.start_date >= datetime.utcnow(),
        )

        if category and category != "All":
            query = query.filter(models.Opportunity.category == category)

        if location_type:
            query = query.filter(models.Opportunity.location_type == location_type)

        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                models.Opportunity.title.ilike(pattern),
                models.Opportunity.description.ilike(pattern),
            ))

        return query.order_by(models.Opportunity.start_date.asc()).limit(
            limit or settings.catalogue_page_size
        ).all()

    def list_for_organization(self, organization_id: int) -> List[models.Opportunity]:
        return self.db.query(models.Opportunity).filter(
            models.Opportunity.organization_id == organization_id
        ).order_by(models.Opportunity.start_date.desc()).all()

    def roster(self, opportunity_id: int) -> Dict[str, List[models.Registration]]:
        """Registrations for one opportunity grouped by status, oldest first."""
        registrations = self.db.query(models.Registration).options(
            joinedload(models.Registration.user)
        ).filter(
            models.Registration.opportunity_id == opportunity_id
        ).order_by(models.Registration.created_at.asc(), models.Registration.id.asc()).all()

        grouped: Dict[str, List[models.Registration]] = {
            status.value: [] for status in models.RegistrationStatus
        }
        for registration in registrations:
            grouped.setdefault(registration.status, []).append(registration)
        return grouped

    def capacity_for(self, opportunity: models.Opportunity) -> CapacitySnapshot:
        return self.capacity.snapshot(opportunity)

    def _clean(self, data: Dict[str, Any]) -> Dict[str, Any]:
        values = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
        if "skills_needed" in values:
            values["skills_needed"] = normalize_skills(values["skills_needed"])
        if values.get("max_volunteers") is not None and values["max_volunteers"] < 1:
            raise InvalidInputError("Maximum volunteers must be at least 1")
        for key in REQUIRED_FIELDS:
            if key not in values:
                continue
            value = values[key]
            if value is None or (isinstance(value, str) and not value.strip()):
                raise InvalidInputError(f"{key.replace('_', ' ').capitalize()} is required")
        # Enum members are stored by value
        for key, value in list(values.items()):
            if isinstance(value, Enum):
                values[key] = value.value
        return values

    def _validate_dates(self, start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
        if start_date is None:
            raise InvalidInputError("Start date is required")
        if end_date is not None and end_date < start_date:
            raise InvalidInputError("End date must be after the start date")
