from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.permissions import Capability
from ..db import models
from ..db.session import get_db
from ..services.opportunities import OpportunityService
from ..services.registrations import RegistrationLedger, with_conflict_retry
from .deps import require
from .serializers import opportunity_to_dict, registration_to_dict, result_to_dict


router = APIRouter()


@router.get("")
async def list_opportunities(
    category: Optional[str] = None,
    location_type: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.BROWSE_OPPORTUNITIES)),
) -> List[Dict[str, Any]]:
    """Published, upcoming opportunities."""
    service = OpportunityService(db)
    opportunities = service.list_public(category=category, location_type=location_type, search=search)
    return [opportunity_to_dict(opp, service.capacity_for(opp)) for opp in opportunities]


@router.get("/{opportunity_id}")
async def get_opportunity(
    opportunity_id: int,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.BROWSE_OPPORTUNITIES)),
) -> Dict[str, Any]:
    service = OpportunityService(db)
    opportunity = service.get(opportunity_id)
    registration = RegistrationLedger(db).active_registration(user.id, opportunity_id)

    result = opportunity_to_dict(opportunity, service.capacity_for(opportunity))
    result["my_registration"] = registration_to_dict(registration) if registration else None
    return result


@router.post("/{opportunity_id}/register")
async def register(
    opportunity_id: int,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.REGISTER)),
) -> Dict[str, Any]:
    ledger = RegistrationLedger(db)
    result = with_conflict_retry(lambda: ledger.register(user.id, opportunity_id))
    return result_to_dict(result)


@router.post("/{opportunity_id}/cancel")
async def cancel(
    opportunity_id: int,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require(Capability.REGISTER)),
) -> Dict[str, Any]:
    ledger = RegistrationLedger(db)
    result = with_conflict_retry(lambda: ledger.cancel(user.id, opportunity_id))
    return result_to_dict(result)
