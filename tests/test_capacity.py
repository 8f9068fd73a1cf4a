"""
Tests for capacity bookkeeping: the snapshot helpers, the conditional
counter update and the retry-once wrapper used by the routers.
"""

import pytest
from sqlalchemy import text

from app.core.errors import NotFoundError, StorageConflictError
from app.db import models
from app.services.capacity import CapacitySnapshot, CapacityTracker, is_at_capacity
from app.services.registrations import RegistrationLedger, with_conflict_retry

from factories import make_opportunity


def test_is_at_capacity():
    assert is_at_capacity(2, 2) is True
    assert is_at_capacity(2, 3) is True
    assert is_at_capacity(2, 1) is False
    assert is_at_capacity(None, 1000) is False


def test_snapshot_unlimited():
    snapshot = CapacitySnapshot(opportunity_id=1, max_volunteers=None, current_volunteers=7)

    assert snapshot.spots_remaining is None
    assert snapshot.is_full is False
    assert snapshot.to_dict() == {
        "opportunity_id": 1,
        "max_volunteers": None,
        "current_volunteers": 7,
        "spots_remaining": None,
        "is_full": False,
    }


def test_snapshot_limited():
    snapshot = CapacitySnapshot(opportunity_id=1, max_volunteers=3, current_volunteers=3)

    assert snapshot.spots_remaining == 0
    assert snapshot.is_full is True


def test_sync_recounts_active_registrations(db, organization, volunteers):
    opp = make_opportunity(db, organization.id, max_volunteers=5)
    db.add_all([
        models.Registration(user_id="alice", opportunity_id=opp.id, status="pending"),
        models.Registration(user_id="bob", opportunity_id=opp.id, status="confirmed"),
        models.Registration(user_id="carol", opportunity_id=opp.id, status="waitlisted"),
        models.Registration(user_id="dave", opportunity_id=opp.id, status="cancelled"),
    ])
    db.commit()

    tracker = CapacityTracker(db)
    locked = tracker.lock(opp.id)
    snapshot = tracker.sync(locked)
    db.commit()

    assert snapshot.current_volunteers == 2
    assert snapshot.spots_remaining == 3
    db.refresh(opp)
    assert opp.current_volunteers == 2


def test_sync_detects_concurrent_counter_change(db, organization, volunteers):
    opp = make_opportunity(db, organization.id, max_volunteers=5)
    tracker = CapacityTracker(db)
    locked = tracker.lock(opp.id)

    # Another writer moved the counter after we read it
    db.execute(
        text("UPDATE opportunities SET current_volunteers = 5 WHERE id = :id"),
        {"id": opp.id},
    )

    with pytest.raises(StorageConflictError):
        tracker.sync(locked)
    db.rollback()


def test_lock_missing_opportunity(db):
    with pytest.raises(NotFoundError):
        CapacityTracker(db).lock(404)


def test_retry_runs_operation_once_on_success():
    calls = []

    def operation():
        calls.append(1)
        return "done"

    assert with_conflict_retry(operation) == "done"
    assert len(calls) == 1


def test_retry_recovers_from_single_conflict():
    calls = []

    def operation():
        calls.append(1)
        if len(calls) == 1:
            raise StorageConflictError()
        return "done"

    assert with_conflict_retry(operation) == "done"
    assert len(calls) == 2


def test_retry_gives_up_after_second_conflict():
    calls = []

    def operation():
        calls.append(1)
        raise StorageConflictError()

    with pytest.raises(StorageConflictError):
        with_conflict_retry(operation)
    assert len(calls) == 2


def test_conflicting_register_is_rolled_back_and_retried(db, organization, volunteers, monkeypatch):
    opp = make_opportunity(db, organization.id, max_volunteers=2)
    real_sync = CapacityTracker.sync
    attempts = []

    def flaky_sync(self, opportunity):
        attempts.append(1)
        if len(attempts) == 1:
            raise StorageConflictError()
        return real_sync(self, opportunity)

    monkeypatch.setattr(CapacityTracker, "sync", flaky_sync)
    ledger = RegistrationLedger(db)

    result = with_conflict_retry(lambda: ledger.register("alice", opp.id))

    assert result.registration.status == "pending"
    assert result.capacity.current_volunteers == 1
    rows = db.query(models.Registration).filter(
        models.Registration.opportunity_id == opp.id
    ).all()
    assert len(rows) == 1
