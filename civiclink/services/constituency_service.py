"""
civiclink/services/constituency_service.py

Purpose: IP address -> civic hierarchy resolution

- Geo-IP lookup of the caller's IP
- Records the raw geo string and IP on the user when one is given
- Matches the city against assembly constituency names
- Walks assembly constituency -> parliamentary constituency,
  district -> state

City matching is a case-insensitive substring match. When several
constituencies contain the city name, the first one in the collection's
natural order wins.
"""

import re
from typing import Optional

from civiclink.core.config import settings
from civiclink.core.exceptions import ExternalProviderError
from civiclink.core.logging import get_logger, LogContext
from civiclink.db.mongo import get_users_collection
from civiclink.schemas.user import CivicLocation
from civiclink.services import civic_service
from civiclink.services.geoip_service import get_geoip_service
from civiclink.utils.time_utils import utc_now

logger = get_logger(__name__)


async def resolve_by_ip(ip: str, firebase_id: Optional[str] = None) -> CivicLocation:
    """
    Resolves an IP address to the civic hierarchy.

    Args:
        ip: Caller IP address
        firebase_id: When given, the user whose ip_geo / last_ip is recorded

    Returns:
        CivicLocation; empty when the lookup fails, the country is not
        serviced, or no constituency matches
    """
    with LogContext(ip=ip):
        try:
            geo = await get_geoip_service().lookup(ip)
        except ExternalProviderError as e:
            logger.warning(f"Geo-IP unavailable, skipping resolution: {e.message}")
            return CivicLocation()

        # Recorded regardless of whether civic resolution succeeds
        if firebase_id:
            await get_users_collection().update_one(
                {"firebase_id": firebase_id},
                {"$set": {"ip_geo": geo.raw, "last_ip": ip, "updated_at": utc_now()}}
            )
            logger.debug(f"Recorded geo '{geo.raw}' on user {firebase_id}")

        if geo.country != settings.SERVICED_COUNTRY:
            logger.info(f"IP outside serviced country ({geo.country or 'unknown'})")
            return CivicLocation()

        if not geo.city:
            logger.info("Geo-IP returned no city")
            return CivicLocation()

        assembly_constituency = await civic_service.find_assembly_constituency(
            {"name": {"$regex": re.escape(geo.city), "$options": "i"}}
        )
        if not assembly_constituency:
            logger.info(f"No assembly constituency matches city '{geo.city}'")
            return CivicLocation()

        location = CivicLocation(assembly_constituency=assembly_constituency)

        location.parliamentary_constituency = await civic_service.find_by_id(
            "parliamentary_constituency",
            assembly_constituency.get("parliamentary_constituency"),
        )

        location.district = await civic_service.find_by_id(
            "district", assembly_constituency.get("district")
        )

        if location.district:
            location.state = await civic_service.find_by_id(
                "state", location.district.get("state")
            )

        logger.info(
            f"Resolved '{geo.city}' to assembly constituency "
            f"'{assembly_constituency.get('name')}'"
        )
        return location
