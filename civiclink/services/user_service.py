"""
civiclink/services/user_service.py

Purpose: User account management

- Create accounts with identity and credential uniqueness enforcement
- Enrich verification flags from the identity provider
- Mirror profile fields into identity-provider custom claims
- Update, delete and read accounts with civic location denormalized
"""

import asyncio
from typing import Optional, Dict, Any, List, Set, Union

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from pydantic import BaseModel

from civiclink.core.exceptions import (
    DuplicateIdentityError,
    DuplicateCredentialError,
    ExternalProviderError,
    NotFoundError,
)
from civiclink.core.logging import get_logger, LogContext
from civiclink.db.mongo import get_users_collection
from civiclink.schemas.user import UserCreate, UserUpdate, Pagination, FacetResult
from civiclink.services.civic_service import denormalize_location, LOCATION_LEVELS
from civiclink.services.credential_service import check_credentials, duplicate_key_to_error
from civiclink.services.identity_provider import get_identity_provider, Enrichment, Enriched
from civiclink.utils.time_utils import utc_now
from civiclink.utils.validation_utils import is_set, normalize_email, normalize_phone, to_object_id

logger = get_logger(__name__)

# Fields owned by the presence tracker or fixed at creation
PROTECTED_FIELDS = ("_id", "firebase_id", "active_sockets", "platform_online", "created_at")

# Claims mirrored into the identity provider on registration
CLAIM_FIELDS = ("location", "date_of_birth", "gender")

_background_tasks: Set[asyncio.Task] = set()


def _location_refs(location: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Converts submitted location references to ObjectIds, dropping empty ones."""
    if not location:
        return {}
    refs = {}
    for field in LOCATION_LEVELS:
        ref = to_object_id(location.get(field))
        if ref is not None:
            refs[field] = ref
    return refs


def _email_confirmed(enrichment: Enrichment, email: Optional[str]) -> bool:
    if not isinstance(enrichment, Enriched) or not is_set(email):
        return False
    provider = enrichment.user
    return provider.email_verified and normalize_email(provider.email) == email


def _phone_confirmed(enrichment: Enrichment, phone: Optional[str]) -> bool:
    if not isinstance(enrichment, Enriched) or not is_set(phone):
        return False
    return normalize_phone(enrichment.user.phone_number) == phone


async def _mirror_custom_claims(firebase_id: str, claims: Dict[str, Any]):
    try:
        await get_identity_provider().set_custom_claims(firebase_id, claims)
        logger.debug(f"Custom claims mirrored for {firebase_id}")
    except ExternalProviderError as e:
        logger.warning(f"Could not mirror custom claims for {firebase_id}: {e.message}")


def _schedule_claims_mirror(firebase_id: str, claims: Dict[str, Any]):
    task = asyncio.create_task(_mirror_custom_claims(firebase_id, claims))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


async def wait_for_background_tasks():
    """
    Waits for pending custom-claim mirrors. Called on shutdown.
    """
    if _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


async def create_user(data: UserCreate) -> Dict[str, Any]:
    """
    Registers a new account.

    Args:
        data: Validated registration payload

    Returns:
        The stored user document

    Raises:
        DuplicateIdentityError: If the identity-provider ID already has an account
        DuplicateCredentialError: If another account claims the phone, email or voter ID
    """
    with LogContext(user_id=data.firebase_id):
        users = get_users_collection()

        if await users.find_one({"firebase_id": data.firebase_id}, projection={"_id": 1}):
            logger.warning("Registration rejected: account already exists")
            raise DuplicateIdentityError()

        if await check_credentials(phone=data.phone, email=data.email, voter_id=data.voter_id):
            logger.warning("Registration rejected: credentials already in use")
            raise DuplicateCredentialError()

        document = data.model_dump(exclude_none=True)
        document["location"] = _location_refs(document.get("location"))

        enrichment = await get_identity_provider().fetch_verification(data.firebase_id)

        now = utc_now()
        document.update({
            "email_verified": _email_confirmed(enrichment, data.email),
            "phone_verified": _phone_confirmed(enrichment, data.phone),
            "active_sockets": [],
            "platform_online": {},
            "created_at": now,
            "updated_at": now,
        })

        try:
            result = await users.insert_one(document)
        except DuplicateKeyError as e:
            # Lost a race against a concurrent registration
            logger.warning("Registration rejected by unique index")
            raise duplicate_key_to_error(e) from e

        document["_id"] = result.inserted_id

        _schedule_claims_mirror(
            data.firebase_id,
            {field: document.get(field) for field in CLAIM_FIELDS},
        )

        logger.info("New user created")
        return document


async def update_user(
    query: Dict[str, Any],
    patch: Union[UserUpdate, Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Applies a profile patch to the account matching the query.

    A changed email or phone is marked verified only when the identity
    provider confirms it; otherwise its verified flag is cleared.

    Args:
        query: Filter identifying the account (e.g. {"firebase_id": ...})
        patch: Fields to change

    Returns:
        The updated user document

    Raises:
        NotFoundError: If no account matches the query
        DuplicateCredentialError: If the unique indexes reject the new values
    """
    if isinstance(patch, BaseModel):
        changes = patch.model_dump(exclude_unset=True)
    else:
        changes = dict(patch)

    for field in PROTECTED_FIELDS:
        if changes.pop(field, None) is not None:
            logger.warning(f"Ignoring attempt to change protected field '{field}'")

    users = get_users_collection()
    existing = await users.find_one(query)
    if not existing:
        raise NotFoundError()

    firebase_id = query.get("firebase_id") or existing.get("firebase_id")

    with LogContext(user_id=firebase_id):
        updates: Dict[str, Any] = {}

        location = changes.pop("location", None)
        if location is not None:
            for field, ref in location.items():
                updates[f"location.{field}"] = to_object_id(ref)

        updates.update(changes)

        # NOTE: unlike create_user, no credential pre-check runs here. The
        # unique indexes still reject a collision.
        if "email" in changes or "phone" in changes:
            enrichment = await get_identity_provider().fetch_verification(firebase_id)

            for field, confirmed in (
                ("email", _email_confirmed(enrichment, changes.get("email"))),
                ("phone", _phone_confirmed(enrichment, changes.get("phone"))),
            ):
                if field not in changes:
                    continue
                if confirmed:
                    updates[f"{field}_verified"] = True
                elif changes[field] != existing.get(field):
                    updates[f"{field}_verified"] = False

        updates["updated_at"] = utc_now()

        try:
            user = await users.find_one_and_update(
                {"_id": existing["_id"]},
                {"$set": updates},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            logger.warning("Update rejected by unique index")
            raise duplicate_key_to_error(e, identity_possible=False) from e

        if not user:
            raise NotFoundError()

        logger.info(f"User updated: {sorted(updates)}")
        return user


async def delete_user(query: Dict[str, Any]) -> int:
    """
    Deletes the account matching the query. Sessions are kept.

    Returns:
        Number of deleted accounts (0 or 1)
    """
    result = await get_users_collection().delete_one(query)
    if result.deleted_count:
        logger.info(f"User deleted: {query}")
    return result.deleted_count


async def find_user(query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Finds one account with its civic location denormalized.

    Returns:
        User document or None if not found
    """
    user = await get_users_collection().find_one(query)
    if not user:
        return None

    user["location"] = await denormalize_location(user.get("location"))
    return user


async def find_users(query: Dict[str, Any], pagination: Pagination) -> FacetResult:
    """
    Lists accounts page by page.

    The page and the total count come from one $facet aggregation so both
    are computed in the same pass.

    Args:
        query: Mongo filter
        pagination: Page number and size

    Returns:
        FacetResult with the page of users and the total match count
    """
    pipeline = [
        {"$match": query},
        {"$sort": {"created_at": -1, "_id": -1}},
        {
            "$facet": {
                "data": [
                    {"$skip": pagination.skip},
                    {"$limit": pagination.page_size},
                ],
                "total": [{"$count": "count"}],
            }
        },
    ]

    results = await get_users_collection().aggregate(pipeline).to_list(length=1)
    facet = results[0] if results else {}

    total_facet = facet.get("total") or []
    total = total_facet[0]["count"] if total_facet else 0

    data = []
    for user in facet.get("data", []):
        user["location"] = await denormalize_location(user.get("location"))
        data.append(user)

    return FacetResult(
        data=data,
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


async def find_users_by_filter(query: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Lists all matching accounts with location references as plain strings.
    """
    users = await get_users_collection().find(query).to_list(length=None)

    for user in users:
        location = user.get("location") or {}
        user["location"] = {
            field: str(ref) for field, ref in location.items() if ref is not None
        }

    return users
