from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.logging import logger
from ..db import models


class WaitlistPromoter:
    """Moves waitlisted registrants into freed spots, first come first served."""

    def __init__(self, db: Session):
        self.db = db

    def waitlisted(self, opportunity_id: int, limit: Optional[int] = None) -> List[models.Registration]:
        query = (
            self.db.query(models.Registration)
            .filter(
                models.Registration.opportunity_id == opportunity_id,
                models.Registration.status == models.RegistrationStatus.WAITLISTED.value,
            )
            .order_by(models.Registration.created_at.asc(), models.Registration.id.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def promote(self, opportunity: models.Opportunity, slots: int = 1) -> List[models.Registration]:
        """Confirm up to `slots` of the earliest waitlisted registrations."""
        if not opportunity.waitlist_enabled or slots <= 0:
            return []

        promoted = self.waitlisted(opportunity.id, limit=slots)
        for registration in promoted:
            registration.status = models.RegistrationStatus.CONFIRMED.value
            logger.info(
                f"waitlist_promoted registration_id={registration.id} "
                f"opportunity_id={opportunity.id} user_id={registration.user_id}"
            )

        self.db.flush()
        return promoted

    def open_slots(self, opportunity: models.Opportunity, active_count: int) -> int:
        """How many waitlisted registrants fit right now."""
        if opportunity.max_volunteers is None:
            return len(self.waitlisted(opportunity.id))
        return max(opportunity.max_volunteers - active_count, 0)
