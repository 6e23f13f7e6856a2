"""
civiclink/services/credential_service.py

Purpose: Credential uniqueness checks

- Detects another account claiming the same phone, email or voter ID
- Empty and absent values never collide
- Maps unique-index rejections to domain errors

The check is a best-effort pre-check. The partial unique indexes created
in civiclink/db/indexes.py are what actually rejects concurrent duplicates.
"""

from typing import Optional, Dict, Any, List

from pymongo.errors import DuplicateKeyError

from civiclink.core.exceptions import DuplicateCredentialError, DuplicateIdentityError, CivicLinkError
from civiclink.core.logging import get_logger
from civiclink.db.indexes import UNIQUE_CREDENTIAL_FIELDS
from civiclink.db.mongo import get_users_collection
from civiclink.utils.validation_utils import (
    is_set,
    normalize_email,
    normalize_phone,
    normalize_voter_id,
    to_object_id,
)

logger = get_logger(__name__)


def build_credentials_query(
    phone: Optional[str] = None,
    email: Optional[str] = None,
    voter_id: Optional[str] = None,
    firebase_id: Optional[str] = None,
    self_id: Optional[Any] = None,
) -> Optional[Dict[str, Any]]:
    """
    Builds the existence filter for a candidate set of credentials.
    Values are normalized the same way they are stored.

    Returns:
        Mongo filter, or None when no credential is set
    """
    matches: List[Dict[str, Any]] = []
    candidates = (
        ("phone", normalize_phone(phone)),
        ("email", normalize_email(email)),
        ("voter_id", normalize_voter_id(voter_id)),
    )
    for field, value in candidates:
        if is_set(value):
            matches.append({field: value})

    if not matches:
        return None

    conditions: List[Dict[str, Any]] = [{"$or": matches}]

    if is_set(firebase_id):
        conditions.append({"firebase_id": {"$ne": firebase_id}})
    if is_set(self_id):
        conditions.append({"_id": {"$ne": to_object_id(self_id)}})

    return {"$and": conditions}


async def check_credentials(
    phone: Optional[str] = None,
    email: Optional[str] = None,
    voter_id: Optional[str] = None,
    firebase_id: Optional[str] = None,
    self_id: Optional[Any] = None,
) -> bool:
    """
    Checks whether another account already claims any of the credentials.

    Args:
        phone: Candidate phone number
        email: Candidate email
        voter_id: Candidate EPIC number
        firebase_id: Identity-provider ID of the account to exclude
        self_id: Database _id of the account to exclude

    Returns:
        True if a different account holds a matching non-empty credential
    """
    query = build_credentials_query(phone, email, voter_id, firebase_id, self_id)
    if query is None:
        return False

    existing = await get_users_collection().find_one(query, projection={"_id": 1})
    if existing:
        logger.info(f"Credential collision with account {existing['_id']}")
        return True

    return False


def duplicate_key_to_error(exc: DuplicateKeyError, identity_possible: bool = True) -> CivicLinkError:
    """
    Translates a unique-index rejection into the matching domain error.

    Args:
        exc: The rejection raised by the driver
        identity_possible: False for writes that cannot touch firebase_id
            (profile updates), which always map to DuplicateCredentialError

    Returns:
        DuplicateIdentityError or DuplicateCredentialError
    """
    details = exc.details or {}
    key_pattern = details.get("keyPattern") or {}
    message = details.get("errmsg") or str(exc)

    if identity_possible and ("firebase_id" in key_pattern or "firebase_id_unique" in message):
        return DuplicateIdentityError()

    fields = [field for field in UNIQUE_CREDENTIAL_FIELDS if field in key_pattern]
    return DuplicateCredentialError(details={"fields": fields} if fields else None)
