"""Tests for profile bootstrap, admin settings and client error logs."""

import pytest

from kalimat.core.profiles import DEFAULT_PREFERENCES, create_user_profile, log_app_error, save_admin_setting
from kalimat.errors import PermissionDeniedError, StoreError, ValidationError


class TestCreateUserProfile:
    """Tests for create_user_profile."""

    def test_creates_profile_and_progress(self, as_alice, alice):
        result = create_user_profile(as_alice, alice)
        assert result["success"] is True
        assert result["profile"]["full_name"] == "Alice"
        assert result["profile"]["role"] == "user"
        assert result["profile"]["preferences"] == DEFAULT_PREFERENCES

        [progress] = as_alice.UserProgress.filter(as_alice.UserProgress.owned_by(alice.email))
        assert progress["total_xp"] == 0
        assert progress["learned_words"] == []

    def test_idempotent(self, as_alice, alice):
        first = create_user_profile(as_alice, alice)
        second = create_user_profile(as_alice, alice)
        assert second["message"] == "Profile already exists"
        assert second["profile"]["id"] == first["profile"]["id"]
        assert len(as_alice.User.list()) == 1
        assert len(as_alice.UserProgress.list()) == 1

    def test_keeps_existing_progress(self, as_alice, alice):
        as_alice.UserProgress.create({"total_xp": 500})
        create_user_profile(as_alice, alice)
        [progress] = as_alice.UserProgress.list()
        assert progress["total_xp"] == 500


class TestAdminSettings:
    """Tests for save_admin_setting."""

    def test_admin_upserts(self, store, alice):
        store.UserRole.create({"user_id": alice.id, "role": "admin"})
        save_admin_setting(store, alice, "daily_goal", {"words": 5})
        row = save_admin_setting(store, alice, "daily_goal", {"words": 10}, "Words per day")
        assert row["value"] == {"words": 10}
        assert row["description"] == "Words per day"
        assert len(store.AppSettings.list()) == 1

    def test_non_admin_rejected(self, store, alice):
        with pytest.raises(PermissionDeniedError, match="أدمن فقط"):
            save_admin_setting(store, alice, "daily_goal", 5)

    def test_key_required(self, store, alice):
        alice.role = "admin"
        with pytest.raises(ValidationError):
            save_admin_setting(store, alice, "", 5)


class TestLogAppError:
    """Tests for log_app_error."""

    def test_stores_error(self, store):
        result = log_app_error(
            store,
            {
                "error_message": "boom",
                "context": "QuizPage",
                "error_details": {"stack": "at line 3"},
                "additional_data": {"browser": "firefox"},
            },
        )
        assert result == {"success": True}
        [row] = store.ErrorLog.list()
        assert row["user_email"] == "anonymous"
        assert row["error_details"] == '{"stack": "at line 3"}'
        assert row["additional_data"] == {"browser": "firefox"}
        assert row["timestamp"]

    @pytest.mark.parametrize("payload", [{}, {"error_message": "boom"}, {"context": "x"}])
    def test_required_fields(self, store, payload):
        with pytest.raises(ValidationError, match="Missing required fields"):
            log_app_error(store, payload)

    def test_store_failure_still_acknowledged(self, store, monkeypatch):
        """A failed insert is logged, the reporting app still gets success."""

        def fail(data):
            raise StoreError("error_logs", "insert", "disk full")

        monkeypatch.setattr(store.ErrorLog, "create", fail)
        result = log_app_error(store, {"error_message": "boom", "context": "x"})
        assert result == {"success": True}
