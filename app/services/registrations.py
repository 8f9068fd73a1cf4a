import math
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, List, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import (
    AlreadyRegisteredError,
    CapacityExceededError,
    InvalidHoursError,
    InvalidTransitionError,
    NotFoundError,
    NotRegisteredError,
    OpportunityUnavailableError,
    StorageConflictError,
)
from ..core.logging import logger
from ..db import models
from .capacity import CapacitySnapshot, CapacityTracker, is_at_capacity
from .notifications import NotificationService, notification_service
from .waitlist import WaitlistPromoter

Status = models.RegistrationStatus

# Allowed status changes; cancelled and completed are terminal
TRANSITIONS = {
    Status.PENDING.value: {Status.CONFIRMED.value, Status.CANCELLED.value},
    Status.CONFIRMED.value: {Status.COMPLETED.value, Status.CANCELLED.value},
    Status.WAITLISTED.value: {Status.CONFIRMED.value, Status.CANCELLED.value},
    Status.CANCELLED.value: set(),
    Status.COMPLETED.value: set(),
}

T = TypeVar("T")


@dataclass
class RegistrationResult:
    registration: models.Registration
    capacity: CapacitySnapshot
    promoted: Optional[models.Registration] = None


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, set())


def with_conflict_retry(operation: Callable[[], T]) -> T:
    """Run a ledger operation, retrying exactly once on StorageConflictError."""
    try:
        return operation()
    except StorageConflictError:
        logger.warning("storage_conflict retrying once")
        return operation()


class RegistrationLedger:
    """Volunteer sign-ups, cancellations and roster bookkeeping for opportunities."""

    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        self.db = db
        self.capacity = CapacityTracker(db)
        self.promoter = WaitlistPromoter(db)
        self.notifier = notifier or notification_service

    def register(self, user_id: str, opportunity_id: int) -> RegistrationResult:
        """Sign a volunteer up, or put them on the waitlist when the opportunity is full."""
        with self._transaction():
            opportunity = self.capacity.lock(opportunity_id)
            if opportunity.status != models.OpportunityStatus.PUBLISHED.value:
                raise OpportunityUnavailableError()

            if self.active_registration(user_id, opportunity_id):
                raise AlreadyRegisteredError()

            active = self.capacity.count_active(opportunity_id)
            caught_up = self._catch_up_waitlist(opportunity, active)
            if caught_up:
                active = self.capacity.count_active(opportunity_id)

            if is_at_capacity(opportunity.max_volunteers, active):
                if not opportunity.waitlist_enabled:
                    raise CapacityExceededError()
                status = Status.WAITLISTED.value
            else:
                status = Status.PENDING.value

            registration = models.Registration(
                user_id=user_id,
                opportunity_id=opportunity_id,
                status=status,
                hours_logged=0,
            )
            self.db.add(registration)
            try:
                self.db.flush()
            except IntegrityError:
                # A concurrent request won the unique index on (user, opportunity)
                raise AlreadyRegisteredError()

            snapshot = self.capacity.sync(opportunity)

        logger.info(
            f"registered registration_id={registration.id} opportunity_id={opportunity_id} "
            f"user_id={user_id} status={status} caught_up={len(caught_up)}"
        )
        for promoted in caught_up:
            self._notify_promoted(promoted, opportunity)
        return RegistrationResult(registration=registration, capacity=snapshot)

    def cancel(self, user_id: str, opportunity_id: int) -> RegistrationResult:
        """Cancel the caller's own registration and hand a freed spot to the waitlist."""
        promoted = None
        with self._transaction():
            opportunity = self.capacity.lock(opportunity_id)
            registration = self.active_registration(user_id, opportunity_id)
            if not registration:
                raise NotRegisteredError()

            held_spot = registration.status in models.ACTIVE_STATUSES
            was_full = is_at_capacity(
                opportunity.max_volunteers, self.capacity.count_active(opportunity_id)
            )

            self._transition(registration, Status.CANCELLED.value)

            if held_spot and was_full:
                # Only capacity that is actually free after the cancel can be handed out
                active = self.capacity.count_active(opportunity_id)
                slots = min(self.promoter.open_slots(opportunity, active), 1)
                promoted_list = self.promoter.promote(opportunity, slots=slots)
                promoted = promoted_list[0] if promoted_list else None

            snapshot = self.capacity.sync(opportunity)

        logger.info(
            f"cancelled registration_id={registration.id} opportunity_id={opportunity_id} "
            f"user_id={user_id} promoted={promoted.id if promoted else None}"
        )
        if promoted:
            self._notify_promoted(promoted, opportunity)
        return RegistrationResult(registration=registration, capacity=snapshot, promoted=promoted)

    def log_hours(self, registration_id: int, hours: float) -> RegistrationResult:
        if hours is None or not math.isfinite(hours) or hours < 0:
            raise InvalidHoursError()

        with self._transaction():
            registration = self._get(registration_id)
            registration.hours_logged = hours
            self.db.flush()
            snapshot = self.capacity.snapshot(registration.opportunity)

        logger.info(f"hours_logged registration_id={registration_id} hours={hours}")
        return RegistrationResult(registration=registration, capacity=snapshot)

    def confirm(self, registration_id: int) -> RegistrationResult:
        return self._change_status(registration_id, Status.CONFIRMED.value)

    def complete(self, registration_id: int) -> RegistrationResult:
        return self._change_status(registration_id, Status.COMPLETED.value)

    def check_in(self, registration_id: int) -> RegistrationResult:
        with self._transaction():
            registration = self._get(registration_id)
            if registration.status != Status.CONFIRMED.value:
                raise InvalidTransitionError("Only confirmed volunteers can check in")
            if registration.checked_in_at is not None:
                raise InvalidTransitionError("Volunteer is already checked in")
            registration.checked_in_at = datetime.utcnow()
            self.db.flush()
            snapshot = self.capacity.snapshot(registration.opportunity)

        logger.info(f"checked_in registration_id={registration_id}")
        return RegistrationResult(registration=registration, capacity=snapshot)

    def check_out(self, registration_id: int) -> RegistrationResult:
        with self._transaction():
            registration = self._get(registration_id)
            if registration.status not in (Status.CONFIRMED.value, Status.COMPLETED.value):
                raise InvalidTransitionError(
                    f"Cannot check out a {registration.status} registration"
                )
            if registration.checked_in_at is None:
                raise InvalidTransitionError("Volunteer has not checked in")
            if registration.checked_out_at is not None:
                raise InvalidTransitionError("Volunteer is already checked out")

            registration.checked_out_at = datetime.utcnow()
            if not registration.hours_logged:
                elapsed = registration.checked_out_at - registration.checked_in_at
                registration.hours_logged = round(elapsed.total_seconds() / 3600, 2)
            self.db.flush()
            snapshot = self.capacity.snapshot(registration.opportunity)

        logger.info(
            f"checked_out registration_id={registration_id} hours={registration.hours_logged}"
        )
        return RegistrationResult(registration=registration, capacity=snapshot)

    def active_registration(self, user_id: str, opportunity_id: int) -> Optional[models.Registration]:
        return (
            self.db.query(models.Registration)
            .filter(
                models.Registration.user_id == user_id,
                models.Registration.opportunity_id == opportunity_id,
                models.Registration.status != Status.CANCELLED.value,
            )
            .first()
        )

    def _catch_up_waitlist(
        self, opportunity: models.Opportunity, active_count: int
    ) -> List[models.Registration]:
        """Hand spots freed outside a cancel (e.g. completions) to the waitlist before a newcomer."""
        if opportunity.max_volunteers is None or is_at_capacity(opportunity.max_volunteers, active_count):
            return []
        return self.promoter.promote(
            opportunity, slots=self.promoter.open_slots(opportunity, active_count)
        )

    def _change_status(self, registration_id: int, target: str) -> RegistrationResult:
        with self._transaction():
            registration = self._get(registration_id)
            opportunity = self.capacity.lock(registration.opportunity_id)
            if (
                registration.status == Status.WAITLISTED.value
                and target == Status.CONFIRMED.value
                and is_at_capacity(
                    opportunity.max_volunteers,
                    self.capacity.count_active(opportunity.id),
                )
            ):
                raise CapacityExceededError()
            self._transition(registration, target)
            snapshot = self.capacity.sync(opportunity)

        logger.info(f"status_changed registration_id={registration_id} status={target}")
        return RegistrationResult(registration=registration, capacity=snapshot)

    def _transition(self, registration: models.Registration, target: str) -> None:
        if not can_transition(registration.status, target):
            raise InvalidTransitionError(
                f"Cannot move a {registration.status} registration to {target}"
            )
        registration.status = target
        self.db.flush()

    def _get(self, registration_id: int) -> models.Registration:
        registration = self.db.query(models.Registration).filter(
            models.Registration.id == registration_id
        ).first()
        if not registration:
            raise NotFoundError("Registration not found")
        return registration

    def _notify_promoted(self, registration: models.Registration, opportunity: models.Opportunity) -> None:
        user = registration.user
        if user is None or not user.email:
            return
        self.notifier.notify_promotion(user.email, opportunity.title)

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

