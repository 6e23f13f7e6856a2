"""
civiclink/schemas/response.py

Purpose: Shared response envelopes
"""

from pydantic import BaseModel, Field
from typing import Optional, Any, List


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    error: str
    code: str
    details: Optional[Any] = None


class StatusResponse(BaseModel):
    status: str = "success"
    message: Optional[str] = None


class CountBucket(BaseModel):
    """One date bucket of an analytics aggregation."""
    id: Optional[str] = Field(default=None, alias="_id")
    count: int

    class Config:
        populate_by_name = True


class PlatformCount(BaseModel):
    id: Optional[str] = Field(default=None, alias="_id")
    online: int

    class Config:
        populate_by_name = True


class OnlineCounts(BaseModel):
    by_platform: List[PlatformCount] = Field(default_factory=list)
    by_date: List[CountBucket] = Field(default_factory=list)
