from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from ..core.errors import NotFoundError, StorageConflictError
from ..core.logging import logger
from ..db import models


@dataclass(frozen=True)
class CapacitySnapshot:
    opportunity_id: int
    max_volunteers: Optional[int]
    current_volunteers: int

    @property
    def spots_remaining(self) -> Optional[int]:
        """Open spots, or None when the opportunity has no limit."""
        if self.max_volunteers is None:
            return None
        return max(self.max_volunteers - self.current_volunteers, 0)

    @property
    def is_full(self) -> bool:
        return is_at_capacity(self.max_volunteers, self.current_volunteers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "opportunity_id": self.opportunity_id,
            "max_volunteers": self.max_volunteers,
            "current_volunteers": self.current_volunteers,
            "spots_remaining": self.spots_remaining,
            "is_full": self.is_full,
        }


def is_at_capacity(max_volunteers: Optional[int], active_count: int) -> bool:
    return max_volunteers is not None and active_count >= max_volunteers


class CapacityTracker:
    """Keeps opportunities.current_volunteers equal to its count of active registrations."""

    def __init__(self, db: Session):
        self.db = db

    def lock(self, opportunity_id: int) -> models.Opportunity:
        """Load the opportunity row for update, refreshing any stale copy in the session."""
        opportunity = (
            self.db.query(models.Opportunity)
            .filter(models.Opportunity.id == opportunity_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if not opportunity:
            raise NotFoundError("Opportunity not found")
        return opportunity

    def count_active(self, opportunity_id: int) -> int:
        self.db.flush()
        return (
            self.db.query(func.count(models.Registration.id))
            .filter(
                models.Registration.opportunity_id == opportunity_id,
                models.Registration.status.in_(models.ACTIVE_STATUSES),
            )
            .scalar()
            or 0
        )

    def sync(self, opportunity: models.Opportunity) -> CapacitySnapshot:
        """Recompute the counter and write it only if nobody changed it since lock()."""
        expected = opportunity.current_volunteers
        active = self.count_active(opportunity.id)

        result = self.db.execute(
            update(models.Opportunity)
            .where(
                models.Opportunity.id == opportunity.id,
                models.Opportunity.current_volunteers == expected,
            )
            .values(current_volunteers=active, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                f"capacity_conflict opportunity_id={opportunity.id} expected={expected}"
            )
            raise StorageConflictError()

        set_committed_value(opportunity, "current_volunteers", active)
        if active != expected:
            logger.info(
                f"capacity_sync opportunity_id={opportunity.id} current_volunteers={expected}->{active}"
            )
        return self.snapshot(opportunity)

    def snapshot(self, opportunity: models.Opportunity) -> CapacitySnapshot:
        return CapacitySnapshot(
            opportunity_id=opportunity.id,
            max_volunteers=opportunity.max_volunteers,
            current_volunteers=opportunity.current_volunteers or 0,
        )
