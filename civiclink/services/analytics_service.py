"""
civiclink/services/analytics_service.py

Purpose: Account and presence analytics

- Live online users per platform
- Session counts per date bucket
- Account registrations per date bucket
"""

import asyncio
from datetime import datetime
from typing import Optional, Dict, Any, List

from civiclink.core.config import settings
from civiclink.core.exceptions import ValidationError
from civiclink.core.logging import get_logger
from civiclink.db.mongo import get_users_collection, get_user_sessions_collection
from civiclink.utils.time_utils import is_valid_timespan
from civiclink.utils.validation_utils import to_object_id

logger = get_logger(__name__)


def build_filter(
    state: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    date_field: str = "created_at",
    state_field: str = "location.state",
) -> Dict[str, Any]:
    """
    Builds an analytics filter from optional state and date range.

    Args:
        state: State _id
        date_from: Inclusive lower bound
        date_to: Exclusive upper bound
        date_field: Timestamp field the range applies to
        state_field: Field holding the state reference

    Returns:
        Mongo filter
    """
    query: Dict[str, Any] = {}

    if state:
        try:
            query[state_field] = to_object_id(state)
        except ValueError as e:
            raise ValidationError(f"Invalid state id: {state}") from e

    date_range = {}
    if date_from:
        date_range["$gte"] = date_from
    if date_to:
        date_range["$lt"] = date_to
    if date_range:
        query[date_field] = date_range

    return query


def _check_timespan(timespan: str):
    if not is_valid_timespan(timespan):
        raise ValidationError(f"Invalid timespan format: {timespan}")


async def online_counts(
    session_filter: Optional[Dict[str, Any]] = None,
    timespan: Optional[str] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Online users per platform and sessions per date bucket.

    The two aggregations run concurrently and are not mutually consistent.

    Args:
        session_filter: Filter over user_sessions; its "state" key, if any,
            also restricts the platform breakdown to users in that state
        timespan: $dateToString format for the date buckets (default "%Y-%m")

    Returns:
        {"by_platform": [{_id, online}], "by_date": [{_id, count}]}
    """
    session_filter = session_filter or {}
    timespan = timespan or settings.ONLINE_COUNTS_TIMESPAN
    _check_timespan(timespan)

    user_filter: Dict[str, Any] = {"active_sockets": {"$ne": []}}
    if session_filter.get("state"):
        user_filter["location.state"] = session_filter["state"]

    platform_pipeline = [
        {"$match": user_filter},
        {"$unwind": "$active_sockets"},
        {"$group": {"_id": "$active_sockets.platform", "online": {"$sum": 1}}},
    ]

    date_pipeline = [
        {"$match": session_filter},
        {
            "$addFields": {
                "metadate": {
                    "$dateToString": {"format": timespan, "date": "$connected_at"}
                }
            }
        },
        {"$group": {"_id": "$metadate", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]

    by_platform, by_date = await asyncio.gather(
        get_users_collection().aggregate(platform_pipeline).to_list(length=None),
        get_user_sessions_collection().aggregate(date_pipeline).to_list(length=None),
    )

    logger.debug(f"Online counts: {len(by_platform)} platforms, {len(by_date)} buckets")
    return {"by_platform": by_platform, "by_date": by_date}


async def account_counts(
    user_filter: Optional[Dict[str, Any]] = None,
    timespan: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Account registrations per creation-date bucket.

    Args:
        user_filter: Filter over users
        timespan: $dateToString format for the buckets (default "%Y-%m-%d")

    Returns:
        [{_id: bucket, count: n}] sorted by bucket
    """
    timespan = timespan or settings.ACCOUNT_COUNTS_TIMESPAN
    _check_timespan(timespan)

    pipeline = [
        {"$match": user_filter or {}},
        {
            "$addFields": {
                "metadate": {
                    "$dateToString": {"format": timespan, "date": "$created_at"}
                }
            }
        },
        {"$group": {"_id": "$metadate", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]

    return await get_users_collection().aggregate(pipeline).to_list(length=None)
