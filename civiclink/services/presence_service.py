"""
civiclink/services/presence_service.py

Purpose: Online presence tracking

- Records active socket connections per user and platform
- Keeps per-platform live connection counters
- Logs an append-only user session per connection for analytics
- Removes sockets on disconnect, keyed by socket ID alone

platform_online holds live connection counts: every connect increments
the platform counter and every disconnect of a known socket decrements it,
each in the same atomic update that adds or removes the socket.
"""

from typing import Optional, Dict

from civiclink.core.exceptions import ValidationError
from civiclink.core.logging import get_logger, LogContext
from civiclink.db.mongo import get_users_collection, get_user_sessions_collection
from civiclink.schemas.user import PLATFORMS
from civiclink.utils.time_utils import utc_now

logger = get_logger(__name__)


async def connect(firebase_id: Optional[str], socket_id: Optional[str], platform: str) -> bool:
    """
    Registers a new socket connection for a user.

    Args:
        firebase_id: Identity-provider ID of the connecting user
        socket_id: Transport session identifier
        platform: "app", "web" or "webmobile"

    Returns:
        True if a user was updated, False when skipped, the user is unknown
        or the socket is already registered

    Raises:
        ValidationError: If the platform is not one of PLATFORMS
    """
    if not firebase_id or not socket_id:
        logger.debug("Skipping connect without user or socket id")
        return False

    if platform not in PLATFORMS:
        raise ValidationError(f"Unknown platform: {platform}")

    with LogContext(user_id=firebase_id, socket_id=socket_id, platform=platform):
        users = get_users_collection()
        now = utc_now()

        result = await users.update_one(
            # A socket id already registered on this user is not pushed twice
            {"firebase_id": firebase_id, "active_sockets.socket_id": {"$ne": socket_id}},
            {
                "$push": {
                    "active_sockets": {
                        "socket_id": socket_id,
                        "platform": platform,
                        "connected_at": now,
                    }
                },
                "$inc": {f"platform_online.{platform}": 1},
            }
        )

        if result.matched_count == 0:
            if await users.find_one({"firebase_id": firebase_id}, projection={"_id": 1}):
                logger.info("Socket already registered, ignoring repeated connect")
            else:
                logger.warning("Connect for unknown user")
            return False

        # Read after the push; the session log only needs eventual consistency
        user = await users.find_one(
            {"firebase_id": firebase_id},
            projection={"location.state": 1}
        )
        state = ((user or {}).get("location") or {}).get("state")

        await get_user_sessions_collection().insert_one({
            "user_id": firebase_id,
            "socket_id": socket_id,
            "platform": platform,
            "connected_at": now,
            "state": state,
        })

        logger.info("Socket connected")
        return True


async def disconnect(socket_id: Optional[str]) -> bool:
    """
    Removes a socket from whichever user holds it.

    The socket's platform is matched in the update filter so the pull and
    the counter decrement happen together or not at all.

    Args:
        socket_id: Transport session identifier

    Returns:
        True if a socket was removed
    """
    if not socket_id:
        return False

    with LogContext(socket_id=socket_id):
        users = get_users_collection()

        for platform in PLATFORMS:
            result = await users.update_one(
                {
                    "active_sockets": {
                        "$elemMatch": {"socket_id": socket_id, "platform": platform}
                    }
                },
                {
                    "$pull": {"active_sockets": {"socket_id": socket_id}},
                    "$inc": {f"platform_online.{platform}": -1},
                    "$set": {"last_seen_at": utc_now()},
                }
            )
            if result.modified_count:
                logger.info(f"Socket disconnected ({platform})")
                return True

        logger.debug("Disconnect for unknown socket")
        return False


async def get_online_platforms(firebase_id: str) -> Dict[str, int]:
    """
    Recomputes a user's live connections per platform from active_sockets.

    Returns:
        Mapping of platform to number of open sockets
    """
    user = await get_users_collection().find_one(
        {"firebase_id": firebase_id},
        projection={"active_sockets": 1}
    )

    counts = {platform: 0 for platform in PLATFORMS}
    for socket in (user or {}).get("active_sockets", []):
        platform = socket.get("platform")
        if platform in counts:
            counts[platform] += 1

    return counts
