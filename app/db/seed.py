"""
Optional seed data for development and demonstration.
Populates the database with an admin, a few volunteers and two organizations
with published opportunities.

Usage:
    cd /path/to/project
    python -m app.db.seed
"""

from datetime import datetime, timedelta

from app.core.logging import logger
from app.db import models
from app.db.session import SessionLocal
from app.services.normalization import slugify


SAMPLE_PROFILES = [
    {"id": "admin-1", "email": "admin@safha.org", "full_name": "Platform Admin", "role": "admin"},
    {"id": "org-owner-1", "email": "lina@foodbank.org", "full_name": "Lina Haddad", "role": "organization"},
    {"id": "org-owner-2", "email": "omar@greencity.org", "full_name": "Omar Nasser", "role": "organization"},
    {"id": "volunteer-1", "email": "sara@example.com", "full_name": "Sara Khalil", "role": "volunteer"},
    {"id": "volunteer-2", "email": "yusuf@example.com", "full_name": "Yusuf Amin", "role": "volunteer"},
    {"id": "volunteer-3", "email": "maya@example.com", "full_name": "Maya Saleh", "role": "volunteer"},
]

SAMPLE_ORGANIZATIONS = [
    {
        "owner": "org-owner-1",
        "name": "Community Food Bank",
        "description": "Collecting and distributing groceries to families in need.",
        "contact_email": "contact@foodbank.org",
        "city": "Amman",
        "is_verified": True,
        "opportunities": [
            {"title": "Saturday Food Sorting", "category": "Hunger Relief", "max_volunteers": 10},
            {"title": "Delivery Drivers", "category": "Hunger Relief", "max_volunteers": 2},
        ],
    },
    {
        "owner": "org-owner-2",
        "name": "Green City Initiative",
        "description": "Tree planting and neighbourhood clean-ups.",
        "contact_email": "hello@greencity.org",
        "city": "Irbid",
        "is_verified": False,
        "opportunities": [
            {"title": "Park Clean-up", "category": "Environment", "max_volunteers": None},
        ],
    },
]


def seed_sample_data():
    """Seed the database with sample users, organizations and opportunities."""
    db = SessionLocal()

    try:
        # Check if data already exists
        if db.query(models.Profile).count() > 0:
            logger.info("Database already has data, skipping seed.")
            return

        for profile_data in SAMPLE_PROFILES:
            db.add(models.Profile(**profile_data))
        db.flush()

        start = datetime.utcnow().replace(hour=9, minute=0, second=0, microsecond=0) + timedelta(days=7)
        created_count = 0
        for org_data in SAMPLE_ORGANIZATIONS:
            org = models.Organization(
                name=org_data["name"],
                slug=slugify(org_data["name"]),
                description=org_data["description"],
                contact_email=org_data["contact_email"],
                city=org_data["city"],
                is_verified=org_data["is_verified"],
            )
            db.add(org)
            db.flush()

            db.add(models.OrganizationMember(
                user_id=org_data["owner"],
                organization_id=org.id,
                role=models.MemberRole.OWNER.value,
            ))

            for offset, opp_data in enumerate(org_data["opportunities"]):
                db.add(models.Opportunity(
                    organization_id=org.id,
                    title=opp_data["title"],
                    description=f"{opp_data['title']} with {org.name}.",
                    category=opp_data["category"],
                    city=org.city,
                    start_date=start + timedelta(days=offset),
                    max_volunteers=opp_data["max_volunteers"],
                    current_volunteers=0,
                    waitlist_enabled=True,
                    status=models.OpportunityStatus.PUBLISHED.value,
                ))
            created_count += 1

        db.commit()
        logger.info(f"Successfully seeded {created_count} sample organizations")

    except Exception as e:
        db.rollback()
        logger.error(f"Error seeding data: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_sample_data()
