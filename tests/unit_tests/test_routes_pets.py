"""Tests for pet listing endpoints."""

from tests.consts import API_BASE
from tests.consts import PET_FORM
from tests.consts import PNG_BYTES


def _create_pet(client, headers, **overrides):
    response = client.post(f"{API_BASE}/pets", data={**PET_FORM, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["pet"]


def _apply(client, headers, pet_id):
    response = client.post(
        f"{API_BASE}/adoptions",
        json={"pet_id": pet_id, "application_message": "Please"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["adoption"]


class TestCreatePet:
    """Tests for POST /pets."""

    def test_shelter_creates_pet(self, client, auth_headers, accounts):
        response = client.post(
            f"{API_BASE}/pets",
            data=PET_FORM,
            files=[("images", ("biscuit.png", PNG_BYTES, "image/png"))],
            headers=auth_headers["shelter"],
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Pet created successfully"
        pet = body["pet"]
        assert pet["name"] == "Biscuit"
        assert pet["age"] == 3
        assert pet["vaccination_status"] is True
        assert pet["adoption_status"] == "available"
        assert pet["uploaded_by"] == accounts["shelter"].id
        assert pet["images"][0].startswith("data:image/png;base64,")

    def test_user_forbidden(self, client, auth_headers):
        response = client.post(f"{API_BASE}/pets", data=PET_FORM, headers=auth_headers["user"])

        assert response.status_code == 403
        body = response.json()
        assert body["error_type"] == "Forbidden"
        assert body["reason"] == "insufficient_role"

    def test_no_token(self, client):
        response = client.post(f"{API_BASE}/pets", data=PET_FORM)

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error_type"] == "Unauthenticated"

    def test_invalid_token(self, client, accounts):
        response = client.post(f"{API_BASE}/pets", data=PET_FORM, headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_inactive_account_token(self, client, auth_headers):
        response = client.post(f"{API_BASE}/pets", data=PET_FORM, headers=auth_headers["inactive_shelter"])

        assert response.status_code == 401

    def test_invalid_field_returns_422(self, client, auth_headers):
        response = client.post(f"{API_BASE}/pets", data={**PET_FORM, "age": "99"}, headers=auth_headers["shelter"])

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["age"]

    def test_missing_required_field_returns_422(self, client, auth_headers):
        form = {k: v for k, v in PET_FORM.items() if k != "breed"}

        response = client.post(f"{API_BASE}/pets", data=form, headers=auth_headers["shelter"])

        assert response.status_code == 422

    def test_non_image_upload_returns_400(self, client, auth_headers):
        response = client.post(
            f"{API_BASE}/pets",
            data=PET_FORM,
            files=[("images", ("notes.txt", b"hello", "text/plain"))],
            headers=auth_headers["shelter"],
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationFailed"


class TestReadPets:
    """Tests for GET /pets and GET /pets/{id}."""

    def test_list_anonymous(self, client, auth_headers):
        _create_pet(client, auth_headers["shelter"])
        _create_pet(client, auth_headers["shelter"], name="Rex", breed="Boxer", size="large")

        response = client.get(f"{API_BASE}/pets")

        assert response.status_code == 200
        body = response.json()
        assert len(body["pets"]) == 2
        assert body["pagination"] == {"current_page": 1, "total_pages": 1, "total_items": 2, "items_per_page": 12}

    def test_list_filters(self, client, auth_headers):
        _create_pet(client, auth_headers["shelter"])
        _create_pet(client, auth_headers["shelter"], name="Rex", breed="Boxer", size="large")

        response = client.get(f"{API_BASE}/pets", params={"size": "large"})

        assert [p["name"] for p in response.json()["pets"]] == ["Rex"]

    def test_list_defaults_to_available(self, client, auth_headers):
        _create_pet(client, auth_headers["shelter"])
        claimed = _create_pet(client, auth_headers["shelter"], name="Rex")
        _apply(client, auth_headers["user"], claimed["id"])

        default = client.get(f"{API_BASE}/pets").json()
        pending = client.get(f"{API_BASE}/pets", params={"status": "pending"}).json()

        assert [p["name"] for p in default["pets"]] == ["Biscuit"]
        assert [p["id"] for p in pending["pets"]] == [claimed["id"]]

    def test_list_health_and_temperament_filters(self, client, auth_headers):
        _create_pet(client, auth_headers["shelter"])
        _create_pet(
            client,
            auth_headers["shelter"],
            name="Rex",
            health_status="recovering",
            good_with_kids="false",
            energy_level="high",
        )

        lively = client.get(
            f"{API_BASE}/pets",
            params={"health_status": "recovering", "good_with_kids": "false", "energy_level": "high"},
        )
        family = client.get(f"{API_BASE}/pets", params={"good_with_kids": "true", "good_with_pets": "true"})

        assert [p["name"] for p in lively.json()["pets"]] == ["Rex"]
        assert [p["name"] for p in family.json()["pets"]] == ["Biscuit"]

    def test_list_pagination(self, client, auth_headers):
        for i in range(3):
            _create_pet(client, auth_headers["shelter"], name=f"Pup {i}")

        response = client.get(f"{API_BASE}/pets", params={"page": 2, "limit": 2})

        body = response.json()
        assert len(body["pets"]) == 1
        assert body["pagination"]["total_pages"] == 2

    def test_bad_age_range_returns_422(self, client):
        response = client.get(f"{API_BASE}/pets", params={"min_age": 10, "max_age": 2})

        assert response.status_code == 422

    def test_bad_token_ignored_on_public_route(self, client, auth_headers):
        _create_pet(client, auth_headers["shelter"])

        response = client.get(f"{API_BASE}/pets", headers={"Authorization": "Bearer expired-or-garbage"})

        assert response.status_code == 200
        assert len(response.json()["pets"]) == 1

    def test_get_pet(self, client, auth_headers):
        pet = _create_pet(client, auth_headers["shelter"])

        response = client.get(f"{API_BASE}/pets/{pet['id']}")

        assert response.status_code == 200
        assert response.json()["id"] == pet["id"]

    def test_get_missing_pet(self, client, accounts):
        response = client.get(f"{API_BASE}/pets/999")

        assert response.status_code == 404
        body = response.json()
        assert body["error_type"] == "PetNotFound"
        assert body["retryable"] is False


class TestUpdateDeletePet:
    """Tests for PUT and DELETE /pets/{id}."""

    def test_owner_updates(self, client, auth_headers):
        pet = _create_pet(client, auth_headers["shelter"])

        response = client.put(
            f"{API_BASE}/pets/{pet['id']}",
            data={"name": "Biscuit Jr", "adoption_fee": "50"},
            headers=auth_headers["shelter"],
        )

        assert response.status_code == 200
        updated = response.json()["pet"]
        assert updated["name"] == "Biscuit Jr"
        assert updated["adoption_fee"] == 50.0
        assert updated["breed"] == "Beagle"

    def test_status_field_is_ignored(self, client, auth_headers):
        """adoption_status is not editable through the listing form."""
        pet = _create_pet(client, auth_headers["shelter"])

        response = client.put(
            f"{API_BASE}/pets/{pet['id']}",
            data={"adoption_status": "adopted"},
            headers=auth_headers["shelter"],
        )

        assert response.status_code == 200
        assert response.json()["pet"]["adoption_status"] == "available"

    def test_other_shelter_forbidden(self, client, auth_headers):
        pet = _create_pet(client, auth_headers["shelter"])

        response = client.put(
            f"{API_BASE}/pets/{pet['id']}", data={"name": "Stolen"}, headers=auth_headers["other_shelter"]
        )

        assert response.status_code == 403
        assert response.json()["reason"] == "not_owner"

    def test_delete(self, client, auth_headers):
        pet = _create_pet(client, auth_headers["shelter"])

        response = client.delete(f"{API_BASE}/pets/{pet['id']}", headers=auth_headers["shelter"])

        assert response.status_code == 200
        assert response.json() == {"message": "Pet deleted successfully"}
        assert client.get(f"{API_BASE}/pets/{pet['id']}").status_code == 404

    def test_delete_pending_pet_conflicts(self, client, auth_headers):
        pet = _create_pet(client, auth_headers["shelter"])
        _apply(client, auth_headers["user"], pet["id"])

        response = client.delete(f"{API_BASE}/pets/{pet['id']}", headers=auth_headers["shelter"])

        assert response.status_code == 409
        assert response.json()["error_type"] == "PetNotAvailable"

    def test_delete_adopted_pet(self, client, auth_headers):
        """Once the adoption is settled the listing can be removed, along with its request history."""
        pet = _create_pet(client, auth_headers["shelter"])
        request = _apply(client, auth_headers["user"], pet["id"])
        for status in ("approved", "completed"):
            decided = client.put(
                f"{API_BASE}/adoptions/{request['id']}", json={"status": status}, headers=auth_headers["shelter"]
            )
            assert decided.status_code == 200

        response = client.delete(f"{API_BASE}/pets/{pet['id']}", headers=auth_headers["admin"])

        assert response.status_code == 200
        assert client.get(f"{API_BASE}/pets/{pet['id']}").status_code == 404
        assert client.get(f"{API_BASE}/adoptions/{request['id']}", headers=auth_headers["admin"]).status_code == 404


class TestUserPets:
    """Tests for GET /pets/user/{user_id}."""

    def test_owner_lists_pets_in_every_status(self, client, auth_headers, accounts):
        _create_pet(client, auth_headers["shelter"])
        claimed = _create_pet(client, auth_headers["shelter"], name="Rex")
        _apply(client, auth_headers["user"], claimed["id"])
        _create_pet(client, auth_headers["other_shelter"], name="Elsewhere")

        response = client.get(f"{API_BASE}/pets/user/{accounts['shelter'].id}", headers=auth_headers["shelter"])

        assert response.status_code == 200
        body = response.json()
        assert sorted(p["name"] for p in body["pets"]) == ["Biscuit", "Rex"]
        assert body["pagination"]["total_items"] == 2

    def test_other_account_forbidden(self, client, auth_headers, accounts):
        response = client.get(f"{API_BASE}/pets/user/{accounts['other_shelter'].id}", headers=auth_headers["shelter"])

        assert response.status_code == 403
        assert response.json()["reason"] == "not_owner"

    def test_admin_lists_any_account(self, client, auth_headers, accounts):
        _create_pet(client, auth_headers["shelter"])

        response = client.get(f"{API_BASE}/pets/user/{accounts['shelter'].id}", headers=auth_headers["admin"])

        assert response.status_code == 200
        assert len(response.json()["pets"]) == 1

    def test_requires_token(self, client, accounts):
        response = client.get(f"{API_BASE}/pets/user/{accounts['shelter'].id}")

        assert response.status_code == 401


class TestPetStats:
    """Tests for GET /pets/stats/overview."""

    def test_admin_overview(self, client, auth_headers):
        _create_pet(client, auth_headers["shelter"])
        _create_pet(client, auth_headers["shelter"], name="Daisy")
        boxer = _create_pet(client, auth_headers["shelter"], name="Rex", breed="Boxer")
        _apply(client, auth_headers["user"], boxer["id"])

        response = client.get(f"{API_BASE}/pets/stats/overview", headers=auth_headers["admin"])

        assert response.status_code == 200
        assert response.json() == {
            "total": 3,
            "available": 2,
            "pending": 1,
            "adopted": 0,
            "added_last_30_days": 3,
            "top_breeds": [{"name": "Beagle", "count": 2}, {"name": "Boxer", "count": 1}],
        }

    def test_shelter_forbidden(self, client, auth_headers):
        response = client.get(f"{API_BASE}/pets/stats/overview", headers=auth_headers["shelter"])

        assert response.status_code == 403
        assert response.json()["reason"] == "insufficient_role"
