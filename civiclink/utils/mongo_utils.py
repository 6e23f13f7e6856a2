"""
civiclink/utils/mongo_utils.py

Purpose: Helpers for turning Mongo documents into API payloads
"""

from datetime import datetime
from typing import Any

from bson import ObjectId


def serialize_document(value: Any) -> Any:
    """
    Recursively converts ObjectIds to strings and datetimes to ISO strings.

    Args:
        value: Document, list or scalar read from MongoDB

    Returns:
        JSON-friendly copy of the value
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: serialize_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_document(item) for item in value]
    return value
