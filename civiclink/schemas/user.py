"""
civiclink/schemas/user.py

Purpose: User account, credential and presence payload schemas

- Validates account create/update payloads
- Normalizes credentials before they reach the uniqueness checks
- Pagination and result envelopes for listings
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, Literal, List, Dict, Any
from datetime import datetime

from civiclink.core.config import settings
from civiclink.utils.validation_utils import (
    is_set,
    normalize_email,
    normalize_phone,
    normalize_voter_id,
    sanitize_input,
    to_object_id,
    validate_email,
    validate_phone_number,
    validate_voter_id,
)

Platform = Literal["app", "web", "webmobile"]
PLATFORMS = ("app", "web", "webmobile")


class LocationRefs(BaseModel):
    """Civic-hierarchy references as submitted by clients (ObjectId strings)."""
    state: Optional[str] = None
    district: Optional[str] = None
    assembly_constituency: Optional[str] = None
    parliamentary_constituency: Optional[str] = None

    @validator("*", pre=True)
    def check_object_id(cls, v):
        if v is None or v == "":
            return None
        return str(to_object_id(v))


class CredentialFields(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    voter_id: Optional[str] = None

    @validator("phone", pre=True)
    def clean_phone(cls, v):
        return normalize_phone(v) if isinstance(v, str) else v

    @validator("email", pre=True)
    def clean_email(cls, v):
        return normalize_email(v) if isinstance(v, str) else v

    @validator("voter_id", pre=True)
    def clean_voter_id(cls, v):
        return normalize_voter_id(v) if isinstance(v, str) else v

    @validator("phone")
    def check_phone(cls, v):
        if is_set(v) and not validate_phone_number(v):
            raise ValueError("Invalid Indian mobile number")
        return v

    @validator("email")
    def check_email(cls, v):
        if is_set(v) and not validate_email(v):
            raise ValueError("Invalid email address")
        return v

    @validator("voter_id")
    def check_voter_id(cls, v):
        if is_set(v) and not validate_voter_id(v):
            raise ValueError("Invalid voter ID (EPIC) number")
        return v


class ProfileFields(CredentialFields):
    name: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    photo: Optional[str] = None
    location: Optional[LocationRefs] = None

    @validator("name", pre=True)
    def clean_name(cls, v):
        if v is None:
            return v
        return sanitize_input(v, max_length=200)


class UserCreate(ProfileFields):
    """
    Account registration payload.
    """
    firebase_id: str = Field(..., min_length=1, description="Identity-provider user ID")

    class Config:
        json_schema_extra = {
            "example": {
                "firebase_id": "Xy12abCDefGH34ijKLmnOP56qr",
                "phone": "+919990001111",
                "email": "voter@example.com",
                "name": "Asha Verma",
                "location": {"state": "64f0c0ffee0000000000a001"}
            }
        }


class UserUpdate(ProfileFields):
    """
    Profile patch. The identity-provider ID cannot be changed.
    """


class CheckCredentials(CredentialFields):
    """
    Candidate credentials; firebase_id / self_id exclude the caller's own record.
    """
    firebase_id: Optional[str] = None
    self_id: Optional[str] = None


class Pagination(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size


class FacetResult(BaseModel):
    """
    A page of records plus the total match count from the same aggregation.
    """
    data: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = settings.DEFAULT_PAGE_SIZE


class CivicLocation(BaseModel):
    """
    Resolved civic hierarchy. Every level is optional; an empty
    location means nothing could be resolved.
    """
    state: Optional[Dict[str, Any]] = None
    district: Optional[Dict[str, Any]] = None
    assembly_constituency: Optional[Dict[str, Any]] = None
    parliamentary_constituency: Optional[Dict[str, Any]] = None

    def is_empty(self) -> bool:
        return not any((
            self.state,
            self.district,
            self.assembly_constituency,
            self.parliamentary_constituency,
        ))


class ConnectEvent(BaseModel):
    user: str = Field(..., description="Identity-provider user ID")
    socket_id: str
    platform: Platform


class DisconnectEvent(BaseModel):
    socket_id: str
