"""Model factories shared by the test modules."""

from datetime import datetime, timedelta

from app.db import models


def make_profile(db, user_id, role="volunteer", full_name=None):
    profile = models.Profile(
        id=user_id,
        email=f"{user_id}@example.com",
        full_name=full_name or user_id.title(),
        role=role,
    )
    db.add(profile)
    db.commit()
    return profile


def make_organization(db, owner_id, name="Community Food Bank", is_verified=False):
    org = models.Organization(
        name=name,
        slug=name.lower().replace(" ", "-"),
        description="We feed people",
        contact_email="contact@foodbank.org",
        is_verified=is_verified,
    )
    db.add(org)
    db.flush()
    db.add(models.OrganizationMember(
        user_id=owner_id,
        organization_id=org.id,
        role=models.MemberRole.OWNER.value,
    ))
    db.commit()
    return org


def make_opportunity(
    db,
    organization_id,
    max_volunteers=None,
    waitlist_enabled=True,
    status="published",
    title="Food Sorting",
    category="Hunger Relief",
    location_type="in-person",
    days_ahead=3,
):
    opportunity = models.Opportunity(
        organization_id=organization_id,
        title=title,
        description=f"{title} at the warehouse",
        category=category,
        location_type=location_type,
        start_date=datetime.utcnow() + timedelta(days=days_ahead),
        max_volunteers=max_volunteers,
        current_volunteers=0,
        waitlist_enabled=waitlist_enabled,
        status=status,
    )
    db.add(opportunity)
    db.commit()
    return opportunity
