"""
Tests for organization-side opportunity management: creation, edits that
change capacity, the public catalogue and the roster view.
"""

from datetime import datetime, timedelta

import pytest

from app.core.errors import InvalidInputError, NotFoundError
from app.db import models
from app.services.opportunities import OpportunityService
from app.services.registrations import RegistrationLedger

from factories import make_opportunity


def _opportunity_data(**overrides):
    data = {
        "title": "Beach Clean-up",
        "description": "Collect litter along the shore",
        "category": "Environment",
        "start_date": datetime.utcnow() + timedelta(days=10),
        "status": "published",
    }
    data.update(overrides)
    return data


# ──────────────────────────────────────────────────────────────
# Create and update
# ──────────────────────────────────────────────────────────────


def test_create_opportunity_defaults(db, organization):
    opp = OpportunityService(db).create(organization.id, _opportunity_data(
        skills_needed=[" Driving ", "driving", "", "Driving"],
    ))

    assert opp.id is not None
    assert opp.organization_id == organization.id
    assert opp.current_volunteers == 0
    assert opp.max_volunteers is None
    assert opp.waitlist_enabled is True
    assert opp.location_type == "in-person"
    assert opp.recurrence == "one-time"
    assert opp.skills_needed == ["Driving", "driving"]


def test_create_rejects_zero_capacity(db, organization):
    with pytest.raises(InvalidInputError):
        OpportunityService(db).create(organization.id, _opportunity_data(max_volunteers=0))


def test_create_rejects_end_before_start(db, organization):
    start = datetime.utcnow() + timedelta(days=5)
    with pytest.raises(InvalidInputError):
        OpportunityService(db).create(organization.id, _opportunity_data(
            start_date=start, end_date=start - timedelta(hours=1),
        ))


def test_update_rejects_clearing_required_field(db, organization):
    opp = make_opportunity(db, organization.id)

    with pytest.raises(InvalidInputError):
        OpportunityService(db).update(opp.id, {"title": "   "})

    db.refresh(opp)
    assert opp.title == "Food Sorting"


def test_update_ignores_unknown_fields(db, organization):
    opp = make_opportunity(db, organization.id)

    updated = OpportunityService(db).update(opp.id, {
        "title": "Evening Food Sorting",
        "current_volunteers": 50,
        "organization_id": 999,
    })

    assert updated.title == "Evening Food Sorting"
    assert updated.current_volunteers == 0
    assert updated.organization_id == organization.id


def test_update_missing_opportunity(db):
    with pytest.raises(NotFoundError):
        OpportunityService(db).update(404, {"title": "Nothing"})


def test_raising_capacity_promotes_waitlist_in_order(db, organization, volunteers, sent_messages):
    opp = make_opportunity(db, organization.id, max_volunteers=1)
    ledger = RegistrationLedger(db)
    ledger.register("alice", opp.id)
    bob = ledger.register("bob", opp.id).registration.id
    carol = ledger.register("carol", opp.id).registration.id
    dave = ledger.register("dave", opp.id).registration.id

    updated = OpportunityService(db).update(opp.id, {"max_volunteers": 3})

    assert updated.current_volunteers == 3
    statuses = {
        r.id: r.status
        for r in db.query(models.Registration).filter(models.Registration.opportunity_id == opp.id)
    }
    assert statuses[bob] == "confirmed"
    assert statuses[carol] == "confirmed"
    assert statuses[dave] == "waitlisted"
    assert [to for to, _ in sent_messages] == ["bob@example.com", "carol@example.com"]


def test_removing_limit_promotes_whole_waitlist(db, organization, volunteers):
    opp = make_opportunity(db, organization.id, max_volunteers=1)
    ledger = RegistrationLedger(db)
    ledger.register("alice", opp.id)
    ledger.register("bob", opp.id)
    ledger.register("carol", opp.id)

    updated = OpportunityService(db).update(opp.id, {"max_volunteers": None})

    assert updated.max_volunteers is None
    assert updated.current_volunteers == 3
    waiting = db.query(models.Registration).filter(
        models.Registration.status == "waitlisted"
    ).count()
    assert waiting == 0


def test_lowering_capacity_below_active_count_is_rejected(db, organization, volunteers):
    opp = make_opportunity(db, organization.id, max_volunteers=3)
    ledger = RegistrationLedger(db)
    for name in ("alice", "bob", "carol"):
        ledger.register(name, opp.id)

    with pytest.raises(InvalidInputError):
        OpportunityService(db).update(opp.id, {"max_volunteers": 2})

    db.refresh(opp)
    assert opp.max_volunteers == 3
    assert opp.current_volunteers == 3


def test_lowering_capacity_to_active_count_is_allowed(db, organization, volunteers):
    opp = make_opportunity(db, organization.id, max_volunteers=5)
    ledger = RegistrationLedger(db)
    for name in ("alice", "bob"):
        ledger.register(name, opp.id)

    updated = OpportunityService(db).update(opp.id, {"max_volunteers": 2})

    assert updated.max_volunteers == 2
    assert updated.current_volunteers == 2
    assert ledger.register("carol", opp.id).registration.status == "waitlisted"


def test_updating_other_fields_does_not_promote(db, organization, volunteers):
    opp = make_opportunity(db, organization.id, max_volunteers=1)
    ledger = RegistrationLedger(db)
    ledger.register("alice", opp.id)
    bob = ledger.register("bob", opp.id).registration.id

    OpportunityService(db).update(opp.id, {"description": "Now with snacks"})

    assert db.get(models.Registration, bob).status == "waitlisted"


# ──────────────────────────────────────────────────────────────
# Catalogue
# ──────────────────────────────────────────────────────────────


def test_list_public_filters_and_orders(db, organization):
    later = make_opportunity(db, organization.id, title="Tree Planting", category="Environment", days_ahead=9)
    sooner = make_opportunity(db, organization.id, title="Food Sorting", category="Hunger Relief", days_ahead=2)
    remote = make_opportunity(
        db, organization.id, title="Remote Tutoring", category="Education", location_type="remote", days_ahead=4,
    )
    make_opportunity(db, organization.id, title="Draft Event", status="draft")
    make_opportunity(db, organization.id, title="Last Week", days_ahead=-7)

    service = OpportunityService(db)

    assert [o.id for o in service.list_public()] == [sooner.id, remote.id, later.id]
    assert [o.id for o in service.list_public(category="All")] == [sooner.id, remote.id, later.id]
    assert [o.id for o in service.list_public(category="Environment")] == [later.id]
    assert [o.id for o in service.list_public(location_type="remote")] == [remote.id]
    assert [o.id for o in service.list_public(search="tutor")] == [remote.id]
    assert [o.id for o in service.list_public(search="warehouse")] == [sooner.id, remote.id, later.id]
    assert [o.id for o in service.list_public(limit=1)] == [sooner.id]


def test_list_for_organization_includes_drafts(db, organization):
    make_opportunity(db, organization.id, status="draft")
    make_opportunity(db, organization.id)

    assert len(OpportunityService(db).list_for_organization(organization.id)) == 2


# ──────────────────────────────────────────────────────────────
# Roster
# ──────────────────────────────────────────────────────────────


def test_roster_groups_registrations_by_status(db, organization, volunteers):
    opp = make_opportunity(db, organization.id, max_volunteers=2)
    ledger = RegistrationLedger(db)
    alice = ledger.register("alice", opp.id).registration.id
    ledger.register("bob", opp.id)
    ledger.register("carol", opp.id)
    ledger.confirm(alice)
    ledger.cancel("bob", opp.id)

    roster = OpportunityService(db).roster(opp.id)

    assert set(roster) == {"pending", "confirmed", "waitlisted", "cancelled", "completed"}
    # Carol moved up when Bob left a full opportunity
    assert [r.user_id for r in roster["confirmed"]] == ["alice", "carol"]
    assert [r.user_id for r in roster["cancelled"]] == ["bob"]
    assert roster["pending"] == []
    assert roster["waitlisted"] == []
    assert roster["completed"] == []
