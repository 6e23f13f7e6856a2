import asyncio

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from civiclink.core.exceptions import DuplicateCredentialError, DuplicateIdentityError
from civiclink.services.credential_service import (
    build_credentials_query,
    check_credentials,
    duplicate_key_to_error,
)


def _insert(db, **fields):
    return asyncio.run(db["users"].insert_one(fields)).inserted_id


def test_no_credentials_builds_no_query():
    assert build_credentials_query() is None
    assert build_credentials_query(phone="", email="", voter_id="") is None


def test_query_excludes_caller():
    query = build_credentials_query(phone="99900 01111", firebase_id="u1")
    assert query == {
        "$and": [
            {"$or": [{"phone": "+919990001111"}]},
            {"firebase_id": {"$ne": "u1"}},
        ]
    }


def test_empty_values_never_collide(db):
    _insert(db, firebase_id="u1", phone="", email="")
    _insert(db, firebase_id="u2", phone="", email="")

    assert asyncio.run(check_credentials(phone="", email="")) is False
    assert asyncio.run(check_credentials(phone=None, email=None, voter_id=None)) is False


def test_matching_phone_collides(db):
    _insert(db, firebase_id="u1", phone="+919990001111")

    assert asyncio.run(check_credentials(phone="9990001111")) is True
    assert asyncio.run(check_credentials(phone="9990002222")) is False


def test_any_field_collides(db):
    _insert(db, firebase_id="u1", phone="+919990001111", email="a@example.com", voter_id="ABC1234567")

    assert asyncio.run(check_credentials(phone="9990009999", email="a@example.com")) is True
    assert asyncio.run(check_credentials(voter_id="ABC1234567")) is True


def test_own_record_is_excluded(db):
    own_id = _insert(db, firebase_id="u1", email="a@example.com")

    assert asyncio.run(check_credentials(email="a@example.com", firebase_id="u1")) is False
    assert asyncio.run(check_credentials(email="a@example.com", self_id=str(own_id))) is False
    assert asyncio.run(check_credentials(email="a@example.com", self_id=ObjectId())) is True


def test_duplicate_key_mapping():
    identity = DuplicateKeyError(
        "E11000 duplicate key error",
        11000,
        {"keyPattern": {"firebase_id": 1}, "errmsg": "index: firebase_id_unique"},
    )
    assert isinstance(duplicate_key_to_error(identity), DuplicateIdentityError)

    credential = DuplicateKeyError(
        "E11000 duplicate key error",
        11000,
        {"keyPattern": {"phone": 1}, "errmsg": "index: phone_unique"},
    )
    error = duplicate_key_to_error(credential)
    assert isinstance(error, DuplicateCredentialError)
    assert error.details == {"fields": ["phone"]}

    bare = DuplicateKeyError("E11000 Duplicate Key Error", 11000)
    assert isinstance(duplicate_key_to_error(bare), DuplicateCredentialError)


def test_update_duplicate_key_is_always_a_credential_error():
    # Some backends report the first unique index in the keyPattern
    misreported = DuplicateKeyError(
        "E11000 duplicate key error",
        11000,
        {"keyPattern": {"firebase_id": 1}, "errmsg": "index: firebase_id_unique"},
    )
    error = duplicate_key_to_error(misreported, identity_possible=False)
    assert isinstance(error, DuplicateCredentialError)
    assert error.details is None

    credential = DuplicateKeyError(
        "E11000 duplicate key error",
        11000,
        {"keyPattern": {"email": 1}},
    )
    error = duplicate_key_to_error(credential, identity_possible=False)
    assert error.details == {"fields": ["email"]}
