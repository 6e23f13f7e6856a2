from fastapi.testclient import TestClient
from civiclink.main import app

client = TestClient(app)


def test_404_not_found():
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"


def test_validation_error_structure():
    # Temporary route to exercise request validation
    from pydantic import BaseModel

    class Item(BaseModel):
        name: str
        price: int

    @app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0


def test_custom_exception():
    from civiclink.core.exceptions import NotFoundError

    @app.get("/test-custom-error")
    def trigger_custom_error():
        raise NotFoundError()

    response = client.get("/test-custom-error")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["error"] == "User not exists"


def test_duplicate_credential_is_conflict():
    from civiclink.core.exceptions import DuplicateCredentialError

    @app.get("/test-duplicate-error")
    def trigger_duplicate_error():
        raise DuplicateCredentialError(details={"fields": ["phone"]})

    response = client.get("/test-duplicate-error")
    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "DUPLICATE_CREDENTIAL"
    assert data["details"] == {"fields": ["phone"]}


def test_liveness():
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_unmapped_duplicate_key_is_conflict():
    from pymongo.errors import DuplicateKeyError

    @app.get("/test-duplicate-key")
    def trigger_duplicate_key():
        raise DuplicateKeyError("E11000 duplicate key error", 11000, {"keyPattern": {"firebase_id": 1}})

    response = client.get("/test-duplicate-key")
    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_IDENTITY"
