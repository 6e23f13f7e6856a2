import asyncio
from datetime import datetime, timedelta

import pytest
from bson import ObjectId

from civiclink.core.exceptions import DuplicateCredentialError, DuplicateIdentityError, NotFoundError
from civiclink.schemas.user import Pagination, UserCreate, UserUpdate
from civiclink.services import user_service
from civiclink.services.user_service import (
    create_user,
    delete_user,
    find_user,
    find_users,
    find_users_by_filter,
    update_user,
    wait_for_background_tasks,
)


def _create(**fields):
    async def run():
        user = await create_user(UserCreate(**fields))
        await wait_for_background_tasks()
        return user

    return asyncio.run(run())


def test_create_initializes_presence_fields(db, provider):
    user = _create(firebase_id="u1", phone="99900 01111", email=" A@Example.com ")

    assert user["phone"] == "+919990001111"
    assert user["email"] == "a@example.com"
    assert user["active_sockets"] == []
    assert user["platform_online"] == {}
    assert user["email_verified"] is False
    assert user["phone_verified"] is False


def test_duplicate_identity_rejected(db, provider):
    _create(firebase_id="u1", phone="9990001111")

    with pytest.raises(DuplicateIdentityError):
        _create(firebase_id="u1", phone="9990002222")


def test_duplicate_phone_rejected_and_first_user_unchanged(db, provider):
    first = _create(firebase_id="u1", phone="9990001111", name="First")

    with pytest.raises(DuplicateCredentialError):
        _create(firebase_id="u2", phone="9990001111")

    stored = asyncio.run(db["users"].find_one({"firebase_id": "u1"}))
    assert stored["_id"] == first["_id"]
    assert stored["name"] == "First"
    assert asyncio.run(db["users"].count_documents({})) == 1


@pytest.mark.parametrize("second_phone", ["+919990001111", "919990001111", "+91 99900-01111"])
def test_phone_formats_of_same_number_collide(db, provider, second_phone):
    _create(firebase_id="u1", phone="9990001111")

    with pytest.raises(DuplicateCredentialError):
        _create(firebase_id="u2", phone=second_phone)

    assert asyncio.run(db["users"].count_documents({})) == 1


def test_phone_formats_collide_at_index(db, provider, monkeypatch):
    async def never_collides(**kwargs):
        return False

    monkeypatch.setattr(user_service, "check_credentials", never_collides)
    _create(firebase_id="u1", phone="9990001111")

    with pytest.raises(DuplicateCredentialError):
        _create(firebase_id="u2", phone="+919990001111")


def test_concurrent_same_phone_one_wins(db, provider):
    async def run():
        return await asyncio.gather(
            create_user(UserCreate(firebase_id="u1", phone="9990001111")),
            create_user(UserCreate(firebase_id="u2", phone="9990001111")),
            return_exceptions=True,
        )

    results = asyncio.run(run())

    successes = [r for r in results if isinstance(r, dict)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], DuplicateCredentialError)
    assert asyncio.run(db["users"].count_documents({"phone": "+919990001111"})) == 1


def test_unique_index_rejects_when_precheck_misses(db, provider, monkeypatch):
    async def never_collides(**kwargs):
        return False

    monkeypatch.setattr(user_service, "check_credentials", never_collides)
    _create(firebase_id="u1", email="a@example.com")

    with pytest.raises(DuplicateCredentialError):
        _create(firebase_id="u2", email="a@example.com")


def test_empty_credentials_do_not_block_registration(db, provider):
    _create(firebase_id="u1", phone="", email="")
    _create(firebase_id="u2", phone="", email="")

    assert asyncio.run(db["users"].count_documents({})) == 2


def test_verification_flags_from_provider(db, provider):
    provider.add_user("u1", email="a@example.com", email_verified=True, phone_number="+919990001111")

    user = _create(firebase_id="u1", email="a@example.com", phone="+919990001111")

    assert user["email_verified"] is True
    assert user["phone_verified"] is True
    stored = asyncio.run(db["users"].find_one({"firebase_id": "u1"}))
    assert stored["email_verified"] is True


def test_phone_verified_for_local_format(db, provider):
    provider.add_user("u1", phone_number="+919990001111")

    user = _create(firebase_id="u1", phone="9990001111")

    assert user["phone"] == "+919990001111"
    assert user["phone_verified"] is True


def test_provider_failure_does_not_fail_create(db, provider):
    provider.fail = True

    user = _create(firebase_id="u1", email="a@example.com")

    assert user["email_verified"] is False
    assert "u1" not in provider.claims


def test_custom_claims_mirrored(db, provider, civic):
    provider.add_user("u1")

    _create(
        firebase_id="u1",
        gender="female",
        location={"state": str(civic["state"])},
    )

    claims = provider.claims["u1"]
    assert claims["gender"] == "female"
    assert claims["location"] == {"state": civic["state"]}
    assert claims["date_of_birth"] is None


def test_email_verification_round_trip(db, provider):
    provider.add_user("u1", email="a@example.com", email_verified=True)
    _create(firebase_id="u1", email="a@example.com")

    changed = asyncio.run(update_user({"firebase_id": "u1"}, UserUpdate(email="b@example.com")))
    assert changed["email"] == "b@example.com"
    assert changed["email_verified"] is False

    provider.add_user("u1", email="b@example.com", email_verified=True)
    confirmed = asyncio.run(update_user({"firebase_id": "u1"}, UserUpdate(email="b@example.com")))
    assert confirmed["email_verified"] is True


def test_update_keeps_firebase_id(db, provider):
    _create(firebase_id="u1", name="Before")

    user = asyncio.run(update_user({"firebase_id": "u1"}, {"firebase_id": "someone-else", "name": "After"}))

    assert user["firebase_id"] == "u1"
    assert user["name"] == "After"
    assert asyncio.run(db["users"].count_documents({"firebase_id": "someone-else"})) == 0


def test_update_unknown_user(db, provider):
    with pytest.raises(NotFoundError):
        asyncio.run(update_user({"firebase_id": "missing"}, UserUpdate(name="Nobody")))


def test_update_collision_rejected_by_index(db, provider):
    _create(firebase_id="u1", phone="9990001111")
    _create(firebase_id="u2", phone="9990002222")

    with pytest.raises(DuplicateCredentialError):
        asyncio.run(update_user({"firebase_id": "u2"}, UserUpdate(phone="+919990001111")))

    stored = asyncio.run(db["users"].find_one({"firebase_id": "u2"}))
    assert stored["phone"] == "+919990002222"


def test_update_location_by_id(db, provider, civic):
    user = _create(firebase_id="u1")

    updated = asyncio.run(update_user(
        {"_id": user["_id"]},
        UserUpdate(location={"district": str(civic["district"])}),
    ))

    assert updated["location"] == {"district": civic["district"]}


def test_find_user_drops_dangling_references(db, provider, civic):
    _create(
        firebase_id="u1",
        location={"state": str(civic["state"]), "district": str(ObjectId())},
    )

    user = asyncio.run(find_user({"firebase_id": "u1"}))

    assert user["location"]["state"]["name"] == "Delhi"
    assert "district" not in user["location"]


def test_find_user_missing(db):
    assert asyncio.run(find_user({"firebase_id": "missing"})) is None


def test_delete_user(db, provider):
    _create(firebase_id="u1")

    assert asyncio.run(delete_user({"firebase_id": "u1"})) == 1
    assert asyncio.run(delete_user({"firebase_id": "u1"})) == 0


def test_pagination_second_page(db):
    start = datetime(2024, 1, 1)
    asyncio.run(db["users"].insert_many([
        {"firebase_id": f"u{i}", "created_at": start + timedelta(minutes=i)}
        for i in range(25)
    ]))

    result = asyncio.run(find_users({}, Pagination(page=2, page_size=10)))

    assert result.total == 25
    assert len(result.data) == 10
    assert result.page == 2
    # Newest first: page 2 starts at the 11th newest record
    assert result.data[0]["firebase_id"] == "u14"


def test_pagination_past_the_end(db):
    asyncio.run(db["users"].insert_many([
        {"firebase_id": f"u{i}", "created_at": datetime(2024, 1, 1)} for i in range(3)
    ]))

    result = asyncio.run(find_users({}, Pagination(page=5, page_size=10)))

    assert result.total == 3
    assert result.data == []


def test_find_users_by_filter_renders_references(db, provider, civic):
    _create(firebase_id="u1", location={"state": str(civic["state"])})
    _create(firebase_id="u2")

    users = asyncio.run(find_users_by_filter({"location.state": civic["state"]}))

    assert len(users) == 1
    assert users[0]["location"] == {"state": str(civic["state"])}
