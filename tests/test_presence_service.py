import asyncio

import pytest

from civiclink.core.exceptions import ValidationError
from civiclink.services.presence_service import connect, disconnect, get_online_platforms


@pytest.fixture
def user(db, civic):
    asyncio.run(db["users"].insert_one({
        "firebase_id": "u1",
        "location": {"state": civic["state"]},
        "active_sockets": [],
        "platform_online": {},
    }))
    return "u1"


def _stored(db, firebase_id="u1"):
    return asyncio.run(db["users"].find_one({"firebase_id": firebase_id}))


def test_connect_then_disconnect_restores_state(db, user):
    assert asyncio.run(connect(user, "s1", "app")) is True

    stored = _stored(db)
    assert [s["socket_id"] for s in stored["active_sockets"]] == ["s1"]
    assert stored["active_sockets"][0]["platform"] == "app"
    assert stored["platform_online"]["app"] == 1

    assert asyncio.run(disconnect("s1")) is True

    stored = _stored(db)
    assert stored["active_sockets"] == []
    assert stored["platform_online"]["app"] == 0
    assert "last_seen_at" in stored


def test_disconnect_only_removes_that_socket(db, user):
    asyncio.run(connect(user, "s1", "app"))
    asyncio.run(connect(user, "s2", "web"))
    asyncio.run(connect(user, "s3", "web"))

    asyncio.run(disconnect("s2"))

    stored = _stored(db)
    assert [s["socket_id"] for s in stored["active_sockets"]] == ["s1", "s3"]
    assert stored["platform_online"] == {"app": 1, "web": 1}
    assert asyncio.run(get_online_platforms(user)) == {"app": 1, "web": 1, "webmobile": 0}


def test_unknown_socket_changes_nothing(db, user):
    asyncio.run(connect(user, "s1", "web"))

    assert asyncio.run(disconnect("nope")) is False
    assert asyncio.run(disconnect("s1")) is True
    assert asyncio.run(disconnect("s1")) is False

    assert _stored(db)["platform_online"]["web"] == 0


def test_missing_ids_are_skipped(db, user):
    assert asyncio.run(connect(None, "s1", "app")) is False
    assert asyncio.run(connect(user, "", "app")) is False
    assert asyncio.run(disconnect(None)) is False

    assert _stored(db)["active_sockets"] == []
    assert asyncio.run(db["user_sessions"].count_documents({})) == 0


def test_unknown_user_is_not_logged(db):
    assert asyncio.run(connect("ghost", "s1", "app")) is False
    assert asyncio.run(db["user_sessions"].count_documents({})) == 0


def test_unknown_platform_rejected(db, user):
    with pytest.raises(ValidationError):
        asyncio.run(connect(user, "s1", "desktop"))

    assert _stored(db)["active_sockets"] == []
    assert _stored(db)["platform_online"] == {}


def test_repeated_connect_with_same_socket_is_ignored(db, user):
    assert asyncio.run(connect(user, "s1", "app")) is True
    assert asyncio.run(connect(user, "s1", "app")) is False

    stored = _stored(db)
    assert [s["socket_id"] for s in stored["active_sockets"]] == ["s1"]
    assert stored["platform_online"] == {"app": 1}
    assert asyncio.run(db["user_sessions"].count_documents({"socket_id": "s1"})) == 1

    assert asyncio.run(disconnect("s1")) is True

    stored = _stored(db)
    assert stored["active_sockets"] == []
    assert stored["platform_online"] == {"app": 0}
    assert asyncio.run(get_online_platforms(user)) == {"app": 0, "web": 0, "webmobile": 0}


def test_session_records_state(db, user, civic):
    asyncio.run(connect(user, "s1", "webmobile"))

    session = asyncio.run(db["user_sessions"].find_one({"socket_id": "s1"}))
    assert session["user_id"] == "u1"
    assert session["platform"] == "webmobile"
    assert session["state"] == civic["state"]
    assert session["connected_at"] is not None


def test_online_platforms_for_unknown_user(db):
    assert asyncio.run(get_online_platforms("ghost")) == {"app": 0, "web": 0, "webmobile": 0}
