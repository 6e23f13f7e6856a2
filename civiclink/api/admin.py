"""
civiclink/api/admin.py

Purpose: Admin dashboard endpoints

- Paginated user listing, export, lookup, create, update and delete
- Registration and online-presence analytics
"""

import re
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, Query

from civiclink.api.deps import require_admin, parse_user_id
from civiclink.core.config import settings
from civiclink.core.exceptions import NotFoundError
from civiclink.core.logging import get_logger
from civiclink.schemas.response import StatusResponse, CountBucket, OnlineCounts
from civiclink.schemas.user import UserCreate, UserUpdate, Pagination
from civiclink.services import user_service, analytics_service
from civiclink.services.analytics_service import build_filter
from civiclink.utils.mongo_utils import serialize_document

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/user", dependencies=[Depends(require_admin)])


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    state: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
):
    """
    Lists users page by page, optionally by state or a name/phone/email search.
    """
    pagination = Pagination(page=page, page_size=page_size)
    query = build_filter(state=state)
    if search:
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"phone": pattern}, {"email": pattern}]

    result = await user_service.find_users(query, pagination)
    return serialize_document(result.model_dump())


@router.get("/counts", response_model=List[CountBucket])
async def user_counts(
    state: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    timespan: Optional[str] = Query(None),
):
    """Registrations per date bucket."""
    query = build_filter(state=state, date_from=date_from, date_to=date_to)
    return await analytics_service.account_counts(query, timespan)


@router.get("/online-counts", response_model=OnlineCounts)
async def online_counts(
    state: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    timespan: Optional[str] = Query(None),
):
    """Live users per platform and sessions per date bucket."""
    query = build_filter(
        state=state,
        date_from=date_from,
        date_to=date_to,
        date_field="connected_at",
        state_field="state",
    )
    return await analytics_service.online_counts(query, timespan)


@router.get("/export")
async def export_users(state: Optional[str] = Query(None)):
    """All matching users, location references as plain ids."""
    users = await user_service.find_users_by_filter(build_filter(state=state))
    return serialize_document(users)


@router.get("/{user_id}")
async def get_user(user_id: str):
    user = await user_service.find_user({"_id": parse_user_id(user_id)})
    if not user:
        raise NotFoundError()
    return serialize_document(user)


@router.post("", status_code=201)
async def create_user(payload: UserCreate):
    user = await user_service.create_user(payload)
    return serialize_document(user)


@router.patch("/{user_id}")
async def update_user(user_id: str, payload: UserUpdate):
    user = await user_service.update_user({"_id": parse_user_id(user_id)}, payload)
    return serialize_document(user)


@router.delete("/{user_id}", response_model=StatusResponse)
async def delete_user(user_id: str):
    deleted = await user_service.delete_user({"_id": parse_user_id(user_id)})
    if not deleted:
        raise NotFoundError()
    return StatusResponse(message="User deleted")
