from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError
from ..core.permissions import Capability, ensure_organization_access
from ..db import models
from ..db.session import get_db
from ..services.opportunities import OpportunityService
from ..services.organizations import OrganizationService
from ..services.registrations import RegistrationLedger, with_conflict_retry
from .deps import require
from .schemas import HoursLog, OpportunityCreate, OpportunityUpdate, OrganizationCreate
from .serializers import (
    opportunity_to_dict,
    organization_to_dict,
    registration_to_dict,
    result_to_dict,
)


router = APIRouter()


def _own_organization(db: Session, user: models.Profile) -> models.Organization:
    membership = OrganizationService(db).membership_for(user.id)
    if not membership:
        raise NotFoundError("Set up your organization first")
    return membership.organization


def _managed_registration(db: Session, user: models.Profile, registration_id: int) -> models.Registration:
    registration = db.query(models.Registration).filter(
        models.Registration.id == registration_id
    ).first()
    if not registration:
        raise NotFoundError("Registration not found")
    ensure_organization_access(db, user, registration.opportunity.organization_id)
    return registration


@router.post("")
async def setup_organization(
    payload: OrganizationCreate,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.SETUP_ORGANIZATION)),
) -> Dict[str, Any]:
    org = OrganizationService(db).create(user, payload.model_dump())
    return organization_to_dict(org)


@router.get("")
async def get_my_organization(
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_OPPORTUNITIES)),
) -> Dict[str, Any]:
    return organization_to_dict(_own_organization(db, user))


@router.get("/opportunities")
async def list_my_opportunities(
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_OPPORTUNITIES)),
) -> List[Dict[str, Any]]:
    org = _own_organization(db, user)
    service = OpportunityService(db)
    return [
        opportunity_to_dict(opp, service.capacity_for(opp))
        for opp in service.list_for_organization(org.id)
    ]


@router.post("/opportunities")
async def create_opportunity(
    payload: OpportunityCreate,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_OPPORTUNITIES)),
) -> Dict[str, Any]:
    org = _own_organization(db, user)
    service = OpportunityService(db)
    opportunity = service.create(org.id, payload.model_dump())
    return opportunity_to_dict(opportunity, service.capacity_for(opportunity))


@router.patch("/opportunities/{opportunity_id}")
async def update_opportunity(
    opportunity_id: int,
    payload: OpportunityUpdate,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_OPPORTUNITIES)),
) -> Dict[str, Any]:
    service = OpportunityService(db)
    ensure_organization_access(db, user, service.get(opportunity_id).organization_id)
    opportunity = with_conflict_retry(
        lambda: service.update(opportunity_id, payload.model_dump(exclude_unset=True))
    )
    return opportunity_to_dict(opportunity, service.capacity_for(opportunity))


@router.get("/opportunities/{opportunity_id}/roster")
async def get_roster(
    opportunity_id: int,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_ROSTER)),
) -> Dict[str, Any]:
    """Registrations grouped by status for the organization's roster view."""
    service = OpportunityService(db)
    opportunity = service.get(opportunity_id)
    ensure_organization_access(db, user, opportunity.organization_id)

    grouped = service.roster(opportunity_id)
    return {
        "opportunity": opportunity_to_dict(opportunity, service.capacity_for(opportunity)),
        "registrations": {
            status: [registration_to_dict(r, include_user=True) for r in registrations]
            for status, registrations in grouped.items()
        },
    }


@router.post("/registrations/{registration_id}/confirm")
async def confirm_registration(
    registration_id: int,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_ROSTER)),
) -> Dict[str, Any]:
    _managed_registration(db, user, registration_id)
    ledger = RegistrationLedger(db)
    return result_to_dict(with_conflict_retry(lambda: ledger.confirm(registration_id)))


@router.post("/registrations/{registration_id}/complete")
async def complete_registration(
    registration_id: int,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_ROSTER)),
) -> Dict[str, Any]:
    _managed_registration(db, user, registration_id)
    ledger = RegistrationLedger(db)
    return result_to_dict(with_conflict_retry(lambda: ledger.complete(registration_id)))


@router.post("/registrations/{registration_id}/check-in")
async def check_in(
    registration_id: int,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_ROSTER)),
) -> Dict[str, Any]:
    _managed_registration(db, user, registration_id)
    return result_to_dict(RegistrationLedger(db).check_in(registration_id))


@router.post("/registrations/{registration_id}/check-out")
async def check_out(
    registration_id: int,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_ROSTER)),
) -> Dict[str, Any]:
    _managed_registration(db, user, registration_id)
    return result_to_dict(RegistrationLedger(db).check_out(registration_id))


@router.post("/registrations/{registration_id}/hours")
async def log_hours(
    registration_id: int,
    payload: HoursLog,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.MANAGE_ROSTER)),
) -> Dict[str, Any]:
    _managed_registration(db, user, registration_id)
    return result_to_dict(RegistrationLedger(db).log_hours(registration_id, payload.hours))
