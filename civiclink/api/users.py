"""
civiclink/api/users.py

Purpose: Account endpoints for the mobile and web clients

- Read, register and update the caller's own account
- Credential availability check before registration
- IP based constituency lookup
- Open connections per platform
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from civiclink.api.deps import get_current_firebase_id, client_ip
from civiclink.core.exceptions import NotFoundError, ValidationError
from civiclink.core.logging import get_logger
from civiclink.schemas.user import UserCreate, UserUpdate, CheckCredentials
from civiclink.services import user_service, constituency_service, presence_service
from civiclink.services.credential_service import check_credentials
from civiclink.utils.mongo_utils import serialize_document

logger = get_logger(__name__)
router = APIRouter(prefix="/user")


@router.get("/me")
async def get_me(firebase_id: str = Depends(get_current_firebase_id)):
    """The caller's account with civic location denormalized."""
    user = await user_service.find_user({"firebase_id": firebase_id})
    if not user:
        raise NotFoundError()
    return serialize_document(user)


@router.post("/me", status_code=201)
async def create_me(
    payload: UserUpdate,
    firebase_id: str = Depends(get_current_firebase_id),
):
    """Registers the caller's account."""
    data = UserCreate(firebase_id=firebase_id, **payload.model_dump(exclude_unset=True))
    user = await user_service.create_user(data)
    return serialize_document(user)


@router.patch("/me")
async def update_me(
    payload: UserUpdate,
    firebase_id: str = Depends(get_current_firebase_id),
):
    user = await user_service.update_user({"firebase_id": firebase_id}, payload)
    return serialize_document(user)


@router.get("/check-credentials")
async def check_credentials_endpoint(
    phone: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    voter_id: Optional[str] = Query(None),
    firebase_id: str = Depends(get_current_firebase_id),
):
    """
    Tells the client whether another account already uses any of the
    given credentials. The caller's own account is excluded.
    """
    candidate = CheckCredentials(
        phone=phone,
        email=email,
        voter_id=voter_id,
        firebase_id=firebase_id,
    )
    exists = await check_credentials(**candidate.model_dump())
    return {"exists": exists}


@router.get("/ip-data")
async def ip_data(
    request: Request,
    ip: Optional[str] = Query(None),
    firebase_id: str = Depends(get_current_firebase_id),
):
    """
    Resolves the caller's IP (or the given one) to a civic location and
    records the raw geo string on the caller's account.
    """
    ip = ip or client_ip(request)
    if not ip:
        raise ValidationError("Could not determine client IP")

    location = await constituency_service.resolve_by_ip(ip, firebase_id)
    return serialize_document(location.model_dump(exclude_none=True))


@router.get("/me/online")
async def my_online_platforms(firebase_id: str = Depends(get_current_firebase_id)):
    """Open connections of the caller per platform."""
    return await presence_service.get_online_platforms(firebase_id)
