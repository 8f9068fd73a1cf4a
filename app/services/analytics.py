from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.config import settings
from ..db import models


def platform_stats(db: Session) -> Dict[str, Any]:
    """Aggregate counts shown on the admin dashboard."""
    total_users = db.query(models.Profile).count()
    volunteer_count = db.query(models.Profile).filter(
        models.Profile.role == models.UserRole.VOLUNTEER.value
    ).count()
    organization_users = db.query(models.Profile).filter(
        models.Profile.role == models.UserRole.ORGANIZATION.value
    ).count()

    total_organizations = db.query(models.Organization).count()
    verified_organizations = db.query(models.Organization).filter(
        models.Organization.is_verified == True  # noqa: E712
    ).count()

    total_opportunities = db.query(models.Opportunity).count()
    published_opportunities = db.query(models.Opportunity).filter(
        models.Opportunity.status == models.OpportunityStatus.PUBLISHED.value
    ).count()

    total_registrations = db.query(models.Registration).count()
    confirmed_registrations = db.query(models.Registration).filter(
        models.Registration.status == models.RegistrationStatus.CONFIRMED.value
    ).count()
    waitlisted_registrations = db.query(models.Registration).filter(
        models.Registration.status == models.RegistrationStatus.WAITLISTED.value
    ).count()

    total_hours = db.query(func.coalesce(func.sum(models.Registration.hours_logged), 0)).scalar()

    # Recent activity (last 7 days)
    week_ago = datetime.utcnow() - timedelta(days=7)
    recent_registrations = db.query(models.Registration).filter(
        models.Registration.created_at > week_ago
    ).count()

    return {
        "total_users": total_users,
        "volunteers": volunteer_count,
        "organization_users": organization_users,
        "total_organizations": total_organizations,
        "verified_organizations": verified_organizations,
        "total_opportunities": total_opportunities,
        "published_opportunities": published_opportunities,
        "total_registrations": total_registrations,
        "confirmed_registrations": confirmed_registrations,
        "waitlisted_registrations": waitlisted_registrations,
        "total_hours_logged": float(total_hours or 0),
        "recent_registrations_7d": recent_registrations,
        "generated_at": datetime.utcnow().isoformat(),
    }


def search_users(
    db: Session,
    search: Optional[str] = None,
    role: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[models.Profile]:
    query = db.query(models.Profile)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            models.Profile.email.ilike(pattern),
            models.Profile.full_name.ilike(pattern),
        ))
    if role and role != "all":
        query = query.filter(models.Profile.role == role)
    return query.order_by(models.Profile.created_at.desc()).limit(
        limit or settings.admin_page_size
    ).all()


def role_counts(db: Session) -> Dict[str, int]:
    rows = db.query(models.Profile.role, func.count(models.Profile.id)).group_by(
        models.Profile.role
    ).all()
    counts = {role.value: 0 for role in models.UserRole}
    for role, count in rows:
        counts[role] = count
    return counts
