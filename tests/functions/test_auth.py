"""Tests for bearer-token authentication and profile merging."""

import httpx
import pytest

from kalimat.core.auth import (
    AuthUser,
    LocalTokenVerifier,
    SupabaseTokenVerifier,
    extract_bearer,
    load_profile,
    resolve_bearer,
    update_me,
    user_role,
)
from kalimat.errors import AuthError


class TestExtractBearer:
    """Tests for extract_bearer."""

    def test_strips_prefix(self):
        assert extract_bearer("Bearer abc") == "abc"

    def test_raw_token_accepted(self):
        assert extract_bearer("abc") == "abc"

    @pytest.mark.parametrize("header", [None, "", "Bearer ", "Bearer    "])
    def test_missing(self, header):
        with pytest.raises(AuthError):
            extract_bearer(header)


class TestLocalTokenVerifier:
    """Tests for tokens stored in SQLite."""

    def test_issue_and_verify(self, db_path):
        verifier = LocalTokenVerifier(db_path)
        token = verifier.issue("u-1", "a@x.com")
        user = verifier.verify(token)
        assert user.id == "u-1"
        assert user.email == "a@x.com"

    def test_unknown_token(self, db_path):
        assert LocalTokenVerifier(db_path).verify("nope") is None

    def test_resolve_bearer(self, db_path):
        verifier = LocalTokenVerifier(db_path)
        token = verifier.issue("u-1", "a@x.com")
        assert resolve_bearer(f"Bearer {token}", verifier).email == "a@x.com"
        with pytest.raises(AuthError):
            resolve_bearer("Bearer wrong", verifier)


class TestSupabaseTokenVerifier:
    """Tests for the hosted auth verifier."""

    def _verifier(self, handler):
        return SupabaseTokenVerifier("https://proj.supabase.co/", "anon", transport=httpx.MockTransport(handler))

    def test_valid_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={"id": "u-9", "email": "z@x.com", "user_metadata": {"full_name": "Zaid"}},
            )

        user = self._verifier(handler).verify("jwt")
        assert (user.id, user.email, user.full_name) == ("u-9", "z@x.com", "Zaid")
        assert seen[0].url == "https://proj.supabase.co/auth/v1/user"
        assert seen[0].headers["authorization"] == "Bearer jwt"
        assert seen[0].headers["apikey"] == "anon"

    def test_rejected_token(self):
        verifier = self._verifier(lambda request: httpx.Response(401, json={"msg": "bad jwt"}))
        assert verifier.verify("jwt") is None

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(AuthError, match="unreachable"):
            self._verifier(handler).verify("jwt")


class TestProfiles:
    """Tests for load_profile, update_me and user_role."""

    def test_load_profile_merges(self, store, alice):
        store.User.create(
            {"email": alice.email, "full_name": "Alice A.", "role": "admin", "preferences": {"theme": "dark"}}
        )
        user = load_profile(store, AuthUser(id=alice.id, email=alice.email))
        assert user.full_name == "Alice A."
        assert user.role == "admin"
        assert user.preferences == {"theme": "dark"}

    def test_load_profile_by_user_id(self, store):
        store.User.create({"user_id": "u-7", "email": "old@x.com", "role": "moderator"})
        user = load_profile(store, AuthUser(id="u-7", email="new@x.com"))
        assert user.role == "moderator"

    def test_no_profile_keeps_defaults(self, store):
        user = load_profile(store, AuthUser(id="u-0", email="ghost@x.com"))
        assert user.role == "user"
        assert user.display_name == "ghost"

    def test_update_me_ignores_protected_fields(self, store, alice):
        store.User.create({"email": alice.email, "role": "user"})
        updated = update_me(store, alice, {"full_name": "Alicia", "role": "admin", "email": "x@x.com"})
        assert updated["full_name"] == "Alicia"
        assert updated["role"] == "user"
        assert updated["email"] == alice.email

    def test_update_me_without_profile(self, store, alice):
        with pytest.raises(AuthError):
            update_me(store, alice, {"full_name": "A"})

    def test_user_role_prefers_roles_table(self, store, alice):
        assert user_role(store, alice) == "user"
        store.UserRole.create({"user_id": alice.id, "role": "admin"})
        assert user_role(store, alice) == "admin"
