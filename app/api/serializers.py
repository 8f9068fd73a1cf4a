from datetime import datetime
from typing import Any, Dict, Optional

from ..db import models
from ..services.capacity import CapacitySnapshot
from ..services.registrations import RegistrationResult


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def profile_to_dict(profile: models.Profile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "email": profile.email,
        "full_name": profile.full_name,
        "role": profile.role,
        "phone": profile.phone,
        "bio": profile.bio,
        "skills": profile.skills or [],
        "created_at": _iso(profile.created_at),
    }


def organization_to_dict(org: models.Organization) -> Dict[str, Any]:
    return {
        "id": org.id,
        "name": org.name,
        "slug": org.slug,
        "description": org.description,
        "website": org.website,
        "contact_email": org.contact_email,
        "address": org.address,
        "city": org.city,
        "is_verified": org.is_verified,
        "created_at": _iso(org.created_at),
    }


def opportunity_to_dict(
    opportunity: models.Opportunity,
    capacity: Optional[CapacitySnapshot] = None,
) -> Dict[str, Any]:
    org = opportunity.organization
    result = {
        "id": opportunity.id,
        "organization_id": opportunity.organization_id,
        "organization": {
            "id": org.id,
            "name": org.name,
            "is_verified": org.is_verified,
        } if org else None,
        "title": opportunity.title,
        "description": opportunity.description,
        "short_description": opportunity.short_description,
        "category": opportunity.category,
        "skills_needed": opportunity.skills_needed or [],
        "location_type": opportunity.location_type,
        "address": opportunity.address,
        "city": opportunity.city,
        "start_date": _iso(opportunity.start_date),
        "end_date": _iso(opportunity.end_date),
        "recurrence": opportunity.recurrence,
        "max_volunteers": opportunity.max_volunteers,
        "current_volunteers": opportunity.current_volunteers,
        "waitlist_enabled": opportunity.waitlist_enabled,
        "status": opportunity.status,
        "created_at": _iso(opportunity.created_at),
    }
    if capacity is not None:
        result["capacity"] = capacity.to_dict()
    return result


def registration_to_dict(registration: models.Registration, include_user: bool = False) -> Dict[str, Any]:
    result = {
        "id": registration.id,
        "user_id": registration.user_id,
        "opportunity_id": registration.opportunity_id,
        "status": registration.status,
        "hours_logged": registration.hours_logged,
        "notes": registration.notes,
        "checked_in_at": _iso(registration.checked_in_at),
        "checked_out_at": _iso(registration.checked_out_at),
        "created_at": _iso(registration.created_at),
    }
    if include_user and registration.user:
        result["volunteer"] = {
            "id": registration.user.id,
            "full_name": registration.user.full_name,
            "email": registration.user.email,
            "phone": registration.user.phone,
        }
    return result


def result_to_dict(result: RegistrationResult) -> Dict[str, Any]:
    return {
        "registration": registration_to_dict(result.registration),
        "capacity": result.capacity.to_dict(),
        "promoted": registration_to_dict(result.promoted) if result.promoted else None,
    }
