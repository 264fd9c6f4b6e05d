"""Tests for adoption request endpoints."""

import pytest

from tests.consts import API_BASE
from tests.consts import PET_FORM


@pytest.fixture
def pet(client, auth_headers):
    """An available pet listed by the 'shelter' account."""
    response = client.post(f"{API_BASE}/pets", data=PET_FORM, headers=auth_headers["shelter"])
    assert response.status_code == 201, response.text
    return response.json()["pet"]


def _apply(client, headers, pet_id, message="We would love to give her a home"):
    return client.post(
        f"{API_BASE}/adoptions",
        json={"pet_id": pet_id, "application_message": message, "contact_phone": "555-0199"},
        headers=headers,
    )


def _decide(client, headers, request_id, status, **extra):
    return client.put(f"{API_BASE}/adoptions/{request_id}", json={"status": status, **extra}, headers=headers)


def _pet_status(client, pet_id):
    return client.get(f"{API_BASE}/pets/{pet_id}").json()["adoption_status"]


def test_full_adoption_flow(client, auth_headers, pet, accounts):
    """Apply, lose the race as a second applicant, approve, complete."""
    response = _apply(client, auth_headers["user"], pet["id"])
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Adoption request submitted successfully"
    request = body["adoption"]
    assert request["status"] == "pending"
    assert request["applicant_user_id"] == accounts["user"].id
    assert _pet_status(client, pet["id"]) == "pending"

    second = _apply(client, auth_headers["other_user"], pet["id"])
    assert second.status_code == 409
    assert second.json()["error_type"] == "PetNotAvailable"
    assert second.json()["retryable"] is False

    approved = _decide(client, auth_headers["shelter"], request["id"], "approved", admin_notes="Lovely family")
    assert approved.status_code == 200
    assert approved.json()["message"] == "Adoption request approved successfully"
    assert approved.json()["adoption"]["approved_by"] == accounts["shelter"].id
    assert _pet_status(client, pet["id"]) == "adopted"

    completed = _decide(client, auth_headers["shelter"], request["id"], "completed")
    assert completed.status_code == 200
    assert completed.json()["adoption"]["completed_at"] is not None

    terminal = _decide(client, auth_headers["admin"], request["id"], "pending")
    assert terminal.status_code == 409
    assert terminal.json()["error_type"] == "InvalidTransition"


def test_reject_releases_pet(client, auth_headers, pet):
    request = _apply(client, auth_headers["user"], pet["id"]).json()["adoption"]

    response = _decide(client, auth_headers["shelter"], request["id"], "rejected", rejection_reason="No yard")

    assert response.status_code == 200
    assert response.json()["adoption"]["rejection_reason"] == "No yard"
    assert _pet_status(client, pet["id"]) == "available"


def test_shelter_cannot_apply(client, auth_headers, pet):
    response = _apply(client, auth_headers["shelter"], pet["id"])

    assert response.status_code == 403


def test_apply_missing_pet(client, auth_headers):
    response = _apply(client, auth_headers["user"], 12345)

    assert response.status_code == 404
    assert response.json()["error_type"] == "PetNotFound"


def test_apply_requires_message(client, auth_headers, pet):
    response = client.post(f"{API_BASE}/adoptions", json={"pet_id": pet["id"]}, headers=auth_headers["user"])

    assert response.status_code == 422


def test_other_shelter_cannot_decide(client, auth_headers, pet):
    request = _apply(client, auth_headers["user"], pet["id"]).json()["adoption"]

    response = _decide(client, auth_headers["other_shelter"], request["id"], "approved")

    assert response.status_code == 403
    assert response.json()["reason"] == "not_owner"
    assert _pet_status(client, pet["id"]) == "pending"


def test_unknown_status_value(client, auth_headers, pet):
    request = _apply(client, auth_headers["user"], pet["id"]).json()["adoption"]

    response = _decide(client, auth_headers["shelter"], request["id"], "withdrawn")

    assert response.status_code == 422


def test_withdraw(client, auth_headers, pet):
    request = _apply(client, auth_headers["user"], pet["id"]).json()["adoption"]

    forbidden = client.post(f"{API_BASE}/adoptions/{request['id']}/withdraw", headers=auth_headers["other_user"])
    response = client.post(f"{API_BASE}/adoptions/{request['id']}/withdraw", headers=auth_headers["user"])

    assert forbidden.status_code == 403
    assert response.status_code == 200
    assert response.json() == {"message": "Adoption request withdrawn successfully"}
    assert _pet_status(client, pet["id"]) == "available"


def test_admin_delete(client, auth_headers, pet):
    request = _apply(client, auth_headers["user"], pet["id"]).json()["adoption"]

    forbidden = client.delete(f"{API_BASE}/adoptions/{request['id']}", headers=auth_headers["shelter"])
    response = client.delete(f"{API_BASE}/adoptions/{request['id']}", headers=auth_headers["admin"])

    assert forbidden.status_code == 403
    assert response.status_code == 200
    assert client.get(f"{API_BASE}/adoptions/{request['id']}", headers=auth_headers["admin"]).status_code == 404
    assert _pet_status(client, pet["id"]) == "available"


def test_admin_delete_approved_request_keeps_pet_adopted(client, auth_headers, pet):
    """Removing a settled request leaves the pet adopted and no longer held by it."""
    request = _apply(client, auth_headers["user"], pet["id"]).json()["adoption"]
    _decide(client, auth_headers["shelter"], request["id"], "approved")

    response = client.delete(f"{API_BASE}/adoptions/{request['id']}", headers=auth_headers["admin"])

    assert response.status_code == 200
    adopted = client.get(f"{API_BASE}/pets/{pet['id']}").json()
    assert adopted["adoption_status"] == "adopted"
    assert adopted["active_claim"] is None


def test_same_applicant_applying_twice(client, auth_headers, pet):
    _apply(client, auth_headers["user"], pet["id"])

    response = _apply(client, auth_headers["user"], pet["id"])

    assert response.status_code == 409
    assert response.json()["error_type"] == "DuplicatePendingRequest"


def test_list_scoped_by_role(client, auth_headers, pet):
    _apply(client, auth_headers["user"], pet["id"])

    mine = client.get(f"{API_BASE}/adoptions", headers=auth_headers["user"]).json()
    theirs = client.get(f"{API_BASE}/adoptions", headers=auth_headers["other_user"]).json()
    lister = client.get(f"{API_BASE}/adoptions", headers=auth_headers["shelter"]).json()
    other_lister = client.get(f"{API_BASE}/adoptions", headers=auth_headers["other_shelter"]).json()

    assert mine["pagination"]["total_items"] == 1
    assert theirs["pagination"]["total_items"] == 0
    assert lister["pagination"]["total_items"] == 1
    assert other_lister["pagination"]["total_items"] == 0
    assert mine["pagination"]["items_per_page"] == 10


def test_list_requires_token(client):
    response = client.get(f"{API_BASE}/adoptions")

    assert response.status_code == 401


def test_list_status_filter(client, auth_headers, pet):
    _apply(client, auth_headers["user"], pet["id"])

    pending = client.get(f"{API_BASE}/adoptions", params={"status": "pending"}, headers=auth_headers["admin"])
    approved = client.get(f"{API_BASE}/adoptions", params={"status": "approved"}, headers=auth_headers["admin"])

    assert pending.json()["pagination"]["total_items"] == 1
    assert approved.json()["pagination"]["total_items"] == 0


def test_get_by_id(client, auth_headers, pet):
    request = _apply(client, auth_headers["user"], pet["id"]).json()["adoption"]

    own = client.get(f"{API_BASE}/adoptions/{request['id']}", headers=auth_headers["user"])
    other = client.get(f"{API_BASE}/adoptions/{request['id']}", headers=auth_headers["other_user"])

    assert own.status_code == 200
    assert own.json()["id"] == request["id"]
    assert other.status_code == 403


def test_stats_overview(client, auth_headers, pet):
    _apply(client, auth_headers["user"], pet["id"])

    response = client.get(f"{API_BASE}/adoptions/stats/overview", headers=auth_headers["admin"])
    forbidden = client.get(f"{API_BASE}/adoptions/stats/overview", headers=auth_headers["shelter"])

    assert response.status_code == 200
    body = response.json()
    assert body["by_status"]["pending"] == 1
    assert body["total"] == 1
    assert body["this_month"] == 1
    assert forbidden.status_code == 403
