"""Tests for the generic /api/entities endpoints."""

import pytest


class TestEntityRoutes:
    """CRUD through the entity API on the local store."""

    def test_requires_auth(self, client):
        assert client.get("/api/entities/FlashCard").status_code == 401

    def test_unknown_entity(self, client, alice_headers):
        response = client.get("/api/entities/Spaceship", headers=alice_headers)
        assert response.status_code == 404
        assert "Spaceship" in response.json()["detail"]

    def test_create_stamps_caller(self, client, alice, alice_headers):
        response = client.post(
            "/api/entities/FavoriteWord",
            json={"word_id": 12, "created_by": "someone@else.com"},
            headers=alice_headers,
        )
        assert response.status_code == 201
        record = response.json()
        assert record["created_by"] == alice.email
        assert record["user_email"] == alice.email
        assert record["created_date"]

    def test_list_get_patch_delete(self, client, alice_headers):
        created = client.post(
            "/api/entities/UserNote", json={"word_id": 3, "note": "first"}, headers=alice_headers
        ).json()
        record_id = created["id"]

        listed = client.get("/api/entities/UserNote", params={"limit": 10}, headers=alice_headers)
        assert [r["id"] for r in listed.json()] == [record_id]

        fetched = client.get(f"/api/entities/UserNote/{record_id}", headers=alice_headers)
        assert fetched.json()["note"] == "first"

        patched = client.patch(
            f"/api/entities/UserNote/{record_id}", json={"note": "second"}, headers=alice_headers
        )
        assert patched.status_code == 200
        assert patched.json()["note"] == "second"
        assert patched.json()["updated_date"]

        deleted = client.delete(f"/api/entities/UserNote/{record_id}", headers=alice_headers)
        assert deleted.json() == {"success": True}
        assert client.get(f"/api/entities/UserNote/{record_id}", headers=alice_headers).status_code == 404

    def test_filter(self, client, store, alice_headers):
        store.QuranicWord.bulk_create(
            [
                {"word": "صبر", "surah_number": 2},
                {"word": "شكر", "surah_number": 2},
                {"word": "نور", "surah_number": 24},
            ]
        )
        response = client.post(
            "/api/entities/QuranicWord/filter",
            json={"where": {"surah_number": {"$lte": 10}}, "sort": "word"},
            headers=alice_headers,
        )
        assert response.status_code == 200
        assert [w["word"] for w in response.json()] == ["شكر", "صبر"]

    def test_bad_filter_is_400(self, client, alice_headers):
        response = client.post(
            "/api/entities/QuranicWord/filter",
            json={"where": {"word": {"$regex": "^a"}}},
            headers=alice_headers,
        )
        assert response.status_code == 400

    def test_unknown_column_is_400(self, client, alice_headers):
        response = client.post("/api/entities/UserNote", json={"colour": "red"}, headers=alice_headers)
        assert response.status_code == 400
        assert "colour" in response.json()["detail"]

    def test_filter_unknown_column_is_400(self, client, alice_headers):
        response = client.post(
            "/api/entities/QuranicWord/filter", json={"where": {"shade": 1}}, headers=alice_headers
        )
        assert response.status_code == 400

    def test_patch_missing_record(self, client, alice_headers):
        response = client.patch("/api/entities/UserNote/999", json={"note": "x"}, headers=alice_headers)
        assert response.status_code == 404


class TestEntityWriteRules:
    """Privilege tables are hidden and writes are limited to owners and admins."""

    @pytest.mark.parametrize(
        "entity",
        ["UserRole", "AppSettings", "ErrorLog", "UserGems", "UserPurchase", "Group", "Certificate"],
    )
    def test_server_side_entities_hidden(self, client, alice_headers, entity):
        assert client.get(f"/api/entities/{entity}", headers=alice_headers).status_code == 404
        assert client.post(f"/api/entities/{entity}", json={}, headers=alice_headers).status_code == 404

    def test_cannot_grant_self_admin(self, client, alice, alice_headers):
        created = client.post(
            "/api/entities/UserRole", json={"user_id": alice.id, "role": "admin"}, headers=alice_headers
        )
        assert created.status_code == 404

        response = client.post("/functions/admin-settings", json={"key": "k", "value": 1}, headers=alice_headers)
        assert response.status_code == 403

    def test_profile_create_is_keyed_to_caller(self, client, alice, alice_headers):
        response = client.post(
            "/api/entities/User",
            json={"full_name": "Alice", "email": "boss@x.com", "role": "admin"},
            headers=alice_headers,
        )
        assert response.status_code == 201
        assert response.json()["email"] == alice.email
        assert response.json()["user_id"] == alice.id
        assert response.json()["role"] is None
        assert client.get("/api/me", headers=alice_headers).json()["role"] == "user"

    def test_profile_role_not_patchable(self, client, store, alice, alice_headers):
        profile = store.User.create({"email": alice.email, "full_name": "Alice", "role": "user"})
        response = client.patch(
            f"/api/entities/User/{profile['id']}", json={"role": "admin", "country": "EG"}, headers=alice_headers
        )
        assert response.status_code == 200
        assert response.json()["role"] == "user"
        assert response.json()["country"] == "EG"

    def test_cannot_change_another_users_record(self, client, as_bob, alice_headers):
        note = as_bob.UserNote.create({"word_id": 1, "note": "bob's"})

        patched = client.patch(f"/api/entities/UserNote/{note['id']}", json={"note": "x"}, headers=alice_headers)
        assert patched.status_code == 403
        deleted = client.delete(f"/api/entities/UserNote/{note['id']}", headers=alice_headers)
        assert deleted.status_code == 403
        assert as_bob.UserNote.get(note["id"])["note"] == "bob's"

    def test_cannot_change_another_users_profile(self, client, store, bob, alice_headers):
        profile = store.User.create({"email": bob.email, "full_name": "Bob"})
        response = client.patch(f"/api/entities/User/{profile['id']}", json={"full_name": "x"}, headers=alice_headers)
        assert response.status_code == 403

    def test_cannot_transfer_ownership(self, client, alice, bob, alice_headers):
        note = client.post("/api/entities/UserNote", json={"note": "mine"}, headers=alice_headers).json()
        patched = client.patch(
            f"/api/entities/UserNote/{note['id']}",
            json={"user_email": bob.email, "user_id": bob.id},
            headers=alice_headers,
        )
        assert patched.status_code == 200
        assert patched.json()["user_email"] == alice.email

    def test_reference_content_needs_admin(self, client, store, alice, alice_headers):
        response = client.post("/api/entities/QuranicWord", json={"word": "نور"}, headers=alice_headers)
        assert response.status_code == 403

        store.UserRole.create({"user_id": alice.id, "role": "admin"})
        response = client.post("/api/entities/QuranicWord", json={"word": "نور"}, headers=alice_headers)
        assert response.status_code == 201

    def test_admin_may_change_any_record(self, client, store, as_bob, alice, bob, alice_headers):
        store.UserRole.create({"user_id": alice.id, "role": "admin"})
        note = as_bob.UserNote.create({"note": "bob's"})
        response = client.patch(f"/api/entities/UserNote/{note['id']}", json={"note": "edited"}, headers=alice_headers)
        assert response.status_code == 200
        assert response.json()["user_email"] == bob.email
