import asyncio

import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from civiclink.core.exceptions import AuthenticationError, ExternalProviderError
from civiclink.db import mongo
from civiclink.db.indexes import create_indexes
from civiclink.services import geoip_service, identity_provider, user_service
from civiclink.services.geoip_service import GeoIPResult
from civiclink.services.identity_provider import FirebaseIdentityProvider, ProviderUser


class FakeIdentityProvider(FirebaseIdentityProvider):
    """In-memory stand-in for Firebase Authentication."""

    def __init__(self):
        super().__init__()
        self.users = {}
        self.claims = {}
        self.tokens = {}
        self.fail = False

    def add_user(self, uid, email=None, email_verified=False, phone_number=None):
        self.users[uid] = ProviderUser(
            uid=uid,
            email=email,
            email_verified=email_verified,
            phone_number=phone_number,
        )
        self.tokens[f"token-{uid}"] = uid

    async def get_user(self, firebase_id):
        # Yield like a real network call so concurrent requests interleave
        await asyncio.sleep(0)
        if self.fail or firebase_id not in self.users:
            raise ExternalProviderError("Identity provider lookup failed")
        return self.users[firebase_id]

    async def set_custom_claims(self, firebase_id, claims):
        if self.fail:
            raise ExternalProviderError("Failed to set custom claims")
        self.claims[firebase_id] = claims

    async def verify_id_token(self, token):
        if token not in self.tokens:
            raise AuthenticationError("Invalid authentication token")
        return self.tokens[token]


class FakeGeoIPService:
    def __init__(self):
        self.results = {}
        self.calls = []
        self.fail = False

    async def lookup(self, ip):
        self.calls.append(ip)
        if self.fail:
            raise ExternalProviderError("Geo-IP service timed out")
        return self.results.get(ip, GeoIPResult(ip=ip))

    async def close(self):
        pass


@pytest.fixture
def db(monkeypatch):
    database = AsyncMongoMockClient()["civiclink_test"]
    monkeypatch.setattr(mongo, "_database", database)
    monkeypatch.setattr(user_service, "_background_tasks", set())
    asyncio.run(create_indexes())
    return database


@pytest.fixture
def provider(monkeypatch):
    fake = FakeIdentityProvider()
    monkeypatch.setattr(identity_provider, "_identity_provider", fake)
    return fake


@pytest.fixture
def geoip(monkeypatch):
    fake = FakeGeoIPService()
    monkeypatch.setattr(geoip_service, "_geoip_service", fake)
    return fake


@pytest.fixture
def civic(db):
    """A small Delhi hierarchy: state -> district -> AC, plus its PC."""
    ids = {
        "state": ObjectId(),
        "district": ObjectId(),
        "assembly_constituency": ObjectId(),
        "parliamentary_constituency": ObjectId(),
    }

    async def load():
        await db[mongo.STATES].insert_one({"_id": ids["state"], "name": "Delhi"})
        await db[mongo.DISTRICTS].insert_one(
            {"_id": ids["district"], "name": "New Delhi", "state": ids["state"]}
        )
        await db[mongo.PARLIAMENTARY_CONSTITUENCIES].insert_one(
            {"_id": ids["parliamentary_constituency"], "name": "New Delhi", "state": ids["state"]}
        )
        await db[mongo.ASSEMBLY_CONSTITUENCIES].insert_one({
            "_id": ids["assembly_constituency"],
            "name": "New Delhi",
            "district": ids["district"],
            "parliamentary_constituency": ids["parliamentary_constituency"],
        })

    asyncio.run(load())
    return ids
