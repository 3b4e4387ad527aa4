from unittest.mock import AsyncMock

import pytest

from app.backend.main import app
from app.backend.api.dependencies import get_attendance_service, get_user_service
from app.backend.models.db_models import UserCategory
from app.backend.services.errors import DuplicateCredentialError


@pytest.fixture
def enrolled_alice(client, memory_db):
    """Alice with fingerprint 'fp_alice_001', enrolled through the API."""
    alice = memory_db.add_user("Alice Student", UserCategory.STUDENT)
    response = client.post("/api/fingerprint/register", json={"userId": alice.id, "templateId": "fp_alice_001"})
    assert response.status_code == 201
    return alice


def test_register_fingerprint(client, memory_db):
    bob = memory_db.add_user("Bob Staff", UserCategory.STAFF)

    response = client.post(
        "/api/fingerprint/register",
        json={"userId": bob.id, "templateId": "fp_bob_002", "publicKey": "pk-bob"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["userId"] == bob.id
    assert data["templateId"] == "fp_bob_002"
    assert data["publicKey"] == "pk-bob"
    assert data["credentialType"] == "public-key"

def test_register_taken_fingerprint_is_400(client):
    mock_service = AsyncMock()
    mock_service.register_fingerprint.side_effect = DuplicateCredentialError()
    app.dependency_overrides[get_user_service] = lambda: mock_service

    response = client.post("/api/fingerprint/register", json={"userId": 1, "templateId": "fp_alice_001"})

    assert response.status_code == 400
    assert response.json() == {"message": "This fingerprint is already registered"}

def test_first_scan_signs_in(client, enrolled_alice):
    response = client.post("/api/fingerprint/verify", json={"templateId": "fp_alice_001"})

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Successfully Signed In"
    assert data["action"] == "SIGN_IN"
    assert data["user"]["id"] == enrolled_alice.id
    assert data["user"]["fullName"] == "Alice Student"

def test_scans_alternate_then_hit_the_daily_limit(client, memory_db, enrolled_alice):
    first = client.post("/api/fingerprint/verify", json={"templateId": "fp_alice_001"})
    second = client.post("/api/fingerprint/verify", json={"templateId": "fp_alice_001"})
    third = client.post("/api/fingerprint/verify", json={"templateId": "fp_alice_001"})

    assert first.json()["action"] == "SIGN_IN"
    assert second.status_code == 200
    assert second.json()["action"] == "SIGN_OUT"
    assert third.status_code == 400
    assert third.json() == {"message": "You have already signed in today", "alreadyRecorded": True}
    assert len(memory_db.logs_for(enrolled_alice.id)) == 2

def test_toggle_off_makes_repeat_scan_a_duplicate(client, memory_db, enrolled_alice):
    client.put("/api/settings", json={"autoToggleEnabled": False})

    first = client.post("/api/fingerprint/verify", json={"templateId": "fp_alice_001"})
    second = client.post("/api/fingerprint/verify", json={"templateId": "fp_alice_001"})

    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["alreadyRecorded"] is True
    assert len(memory_db.logs_for(enrolled_alice.id)) == 1

def test_unknown_fingerprint_is_404(client, memory_db):
    response = client.post("/api/fingerprint/verify", json={"templateId": "fp_unknown"})

    assert response.status_code == 404
    assert response.json() == {"message": "Fingerprint not recognized"}
    assert memory_db.logs == []
    assert memory_db.settings_reads == 0

def test_scan_for_user_deleted_mid_request_is_404(client, memory_db, enrolled_alice):
    # The credential still resolves but the user row is gone by the time of the insert.
    del memory_db.users[enrolled_alice.id]
    memory_db.find_user_by_template_id = AsyncMock(return_value=enrolled_alice)

    response = client.post("/api/fingerprint/verify", json={"templateId": "fp_alice_001"})

    assert response.status_code == 404
    assert response.json() == {"message": "User not found"}
    assert memory_db.logs == []

def test_missing_template_id_is_400(client):
    response = client.post("/api/fingerprint/verify", json={})

    assert response.status_code == 400
    assert response.json()["field"] == "templateId"

def test_empty_template_id_is_400(client):
    response = client.post("/api/fingerprint/verify", json={"templateId": ""})

    assert response.status_code == 400

def test_storage_failure_is_500(client):
    mock_service = AsyncMock()
    mock_service.verify_fingerprint.side_effect = ConnectionError("database went away")
    app.dependency_overrides[get_attendance_service] = lambda: mock_service

    response = client.post("/api/fingerprint/verify", json={"templateId": "fp_alice_001"})

    assert response.status_code == 500
    assert response.json() == {"message": "Internal Server Error"}

def test_verify_requires_login(anonymous_client):
    response = anonymous_client.post("/api/fingerprint/verify", json={"templateId": "fp_alice_001"})

    assert response.status_code == 401
    assert response.json() == {"message": "Unauthorized - Please login"}
