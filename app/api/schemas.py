"""
Pydantic models for API request validation.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..db.models import LocationType, OpportunityStatus, Recurrence, UserRole


def _as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class ProfileCreate(BaseModel):
    """First sign-in: volunteers and organizations register themselves, admins never do."""

    model_config = ConfigDict(extra="forbid")
    email: str = Field(min_length=3, max_length=320)
    full_name: str = Field(min_length=1, max_length=200)
    role: UserRole = UserRole.VOLUNTEER

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("email must be an email address")
        return value

    @field_validator("role")
    @classmethod
    def check_role(cls, value: UserRole) -> UserRole:
        if value == UserRole.ADMIN:
            raise ValueError("role must be volunteer or organization")
        return value


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    model_config = ConfigDict(extra="forbid")
    full_name: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=40)
    bio: Optional[str] = None
    skills: Optional[List[str]] = None


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    description: str = Field(min_length=1)
    contact_email: str = Field(min_length=3, max_length=320)
    website: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None

    @field_validator("contact_email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("contact_email must be an email address")
        return value


class OpportunityCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    short_description: Optional[str] = None
    category: str = Field(min_length=1)
    skills_needed: List[str] = Field(default_factory=list)
    location_type: LocationType = LocationType.IN_PERSON
    address: Optional[str] = None
    city: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    recurrence: Recurrence = Recurrence.ONE_TIME
    max_volunteers: Optional[int] = Field(default=None, ge=1)
    waitlist_enabled: bool = True
    status: OpportunityStatus = OpportunityStatus.DRAFT

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_naive_utc(value)


class OpportunityUpdate(BaseModel):
    """Partial edit; only the fields sent are changed."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    short_description: Optional[str] = None
    category: Optional[str] = None
    skills_needed: Optional[List[str]] = None
    location_type: Optional[LocationType] = None
    address: Optional[str] = None
    city: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    recurrence: Optional[Recurrence] = None
    max_volunteers: Optional[int] = Field(default=None, ge=1)
    waitlist_enabled: Optional[bool] = None
    status: Optional[OpportunityStatus] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_naive_utc(value)


class HoursLog(BaseModel):
    # Sign is checked by the ledger so negative values surface as InvalidHoursError
    hours: float


class VerificationUpdate(BaseModel):
    is_verified: bool = True
