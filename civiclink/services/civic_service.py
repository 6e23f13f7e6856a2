"""
civiclink/services/civic_service.py

Purpose: Civic hierarchy reference data

- findOne-style lookups for states, districts, assembly and
  parliamentary constituencies
- Denormalizes a user's location references into full records
"""

from typing import Optional, Dict, Any

from civiclink.db.mongo import (
    get_civic_collection,
    STATES,
    DISTRICTS,
    ASSEMBLY_CONSTITUENCIES,
    PARLIAMENTARY_CONSTITUENCIES,
)
from civiclink.core.logging import get_logger

logger = get_logger(__name__)

# location field -> reference collection
LOCATION_LEVELS = {
    "state": STATES,
    "district": DISTRICTS,
    "assembly_constituency": ASSEMBLY_CONSTITUENCIES,
    "parliamentary_constituency": PARLIAMENTARY_CONSTITUENCIES,
}


async def find_state(query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return await get_civic_collection(STATES).find_one(query)


async def find_district(query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return await get_civic_collection(DISTRICTS).find_one(query)


async def find_assembly_constituency(query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return await get_civic_collection(ASSEMBLY_CONSTITUENCIES).find_one(query)


async def find_parliamentary_constituency(query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return await get_civic_collection(PARLIAMENTARY_CONSTITUENCIES).find_one(query)


async def find_by_id(field: str, ref: Any) -> Optional[Dict[str, Any]]:
    """
    Looks up the record a location field points to.

    Args:
        field: Location field name (e.g. "district")
        ref: Referenced _id

    Returns:
        The referenced record, or None if the reference is empty or dangling
    """
    if ref is None:
        return None
    return await get_civic_collection(LOCATION_LEVELS[field]).find_one({"_id": ref})


async def denormalize_location(location: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Replaces each reference in a user's location with the record it points to.
    Dangling or empty references are dropped, never raised.

    Args:
        location: Stored location dict of ObjectId references

    Returns:
        New location dict containing only the levels that resolved
    """
    if not location:
        return {}

    resolved = {}
    for field in LOCATION_LEVELS:
        ref = location.get(field)
        record = await find_by_id(field, ref)
        if record is not None:
            resolved[field] = record
        elif ref is not None:
            logger.debug(f"Dangling {field} reference: {ref}")

    return resolved
