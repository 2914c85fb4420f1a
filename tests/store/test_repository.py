"""Tests for EntityRepository and EntityClient."""

import pytest

from kalimat.db.entities import ENTITIES, get_schema
from kalimat.db.filters import Order
from kalimat.db.repository import EntityClient, EntityRepository
from kalimat.errors import EntityNotFoundError, FilterError, ValidationError


class RecordingBackend:
    """Backend stub that serves a fixed number of rows and records page requests."""

    def __init__(self, total: int):
        self.rows = [{"id": i} for i in range(1, total + 1)]
        self.calls: list[tuple[int | None, int]] = []

    def select(self, table, predicates=None, order=None, limit=None, offset=0):
        self.calls.append((limit, offset))
        end = len(self.rows) if limit is None else offset + limit
        return self.rows[offset:end]


class TestPagination:
    """Tests for paged reads."""

    def test_small_limit_single_request(self):
        backend = RecordingBackend(50)
        repo = EntityRepository(ENTITIES["QuranicWord"], backend)
        assert len(repo.list(limit=10)) == 10
        assert backend.calls == [(10, 0)]

    def test_large_limit_pages_of_1000(self):
        """Limits above the page size are fetched in pages."""
        backend = RecordingBackend(2500)
        repo = EntityRepository(ENTITIES["QuranAyah"], backend)
        rows = repo.list(limit=10000)
        assert len(rows) == 2500
        assert backend.calls == [(1000, 0), (1000, 1000), (1000, 2000)]

    def test_last_page_trimmed_to_limit(self):
        backend = RecordingBackend(5000)
        repo = EntityRepository(ENTITIES["QuranAyah"], backend)
        rows = repo.list(limit=1500)
        assert len(rows) == 1500
        assert backend.calls == [(1000, 0), (500, 1000)]

    def test_filter_pages_too(self):
        backend = RecordingBackend(1200)
        repo = EntityRepository(ENTITIES["QuranAyah"], backend, page_size=1000)
        assert len(repo.filter({"surah_number": 2})) == 1200


class TestCreate:
    """Tests for create stamping."""

    def test_owned_entity_stamps_user(self, as_alice, alice):
        """user_id, user_email and the owner field come from the bound user."""
        progress = as_alice.UserProgress.create({"total_xp": 10})
        assert progress["user_id"] == alice.id
        assert progress["user_email"] == alice.email
        assert progress["created_by"] == alice.email
        assert progress["created_date"]

    def test_caller_cannot_spoof_owner(self, as_alice):
        card = as_alice.FlashCard.create({"word_id": 1, "created_by": "mallory@example.com"})
        assert card["created_by"] == "alice@example.com"

    def test_unbound_client_keeps_given_owner(self, store):
        note = store.Notification.create({"user_email": "bob@example.com", "title": "hi"})
        assert note["user_email"] == "bob@example.com"
        assert note["user_id"] is None

    def test_shared_entity_not_stamped(self, as_alice):
        word = as_alice.QuranicWord.create({"word": "رحمة"})
        assert "user_email" not in word
        assert word["created_date"]

    def test_settings_use_updated_at(self, store):
        row = store.AppSettings.create({"key": "k", "value": 1})
        assert row["updated_at"]

    def test_bulk_create(self, store):
        rows = store.QuranicWord.bulk_create([{"word": "a"}, {"word": "b"}])
        assert len(rows) == 2
        assert store.QuranicWord.bulk_create([]) == []


class TestReadWrite:
    """Tests for get, update, delete and owned_by."""

    def test_get_missing(self, store):
        with pytest.raises(EntityNotFoundError):
            store.Group.get(42)

    def test_update_stamps_update_column(self, store):
        word = store.QuranicWord.create({"word": "نور"})
        updated = store.QuranicWord.update(word["id"], {"meaning": "light"})
        assert updated["meaning"] == "light"
        assert updated["updated_date"]

    def test_update_missing(self, store):
        with pytest.raises(EntityNotFoundError):
            store.QuranicWord.update(99, {"meaning": "x"})

    def test_delete(self, store):
        word = store.QuranicWord.create({"word": "a"})
        assert store.QuranicWord.delete(word["id"]) == {"success": True}
        assert store.QuranicWord.list() == []

    def test_owned_by_uses_declared_field(self, as_alice, as_bob, alice):
        """Progress is keyed by created_by, gems by user_email."""
        as_alice.UserProgress.create({"total_xp": 1})
        as_bob.UserProgress.create({"total_xp": 2})
        as_alice.UserGems.create({"current_gems": 5})

        assert as_alice.UserProgress.owned_by(alice.email) == {"created_by": alice.email}
        assert as_alice.UserGems.owned_by(alice.email) == {"user_email": alice.email}
        mine = as_alice.UserProgress.filter(as_alice.UserProgress.owned_by(alice.email))
        assert [p["total_xp"] for p in mine] == [1]

    def test_owned_by_unowned_entity(self, store):
        with pytest.raises(ValueError):
            store.QuranicWord.owned_by("a@x.com")

    def test_list_sort(self, store):
        store.QuranAyah.bulk_create([{"ayah_number": n} for n in (3, 1, 2)])
        assert [a["ayah_number"] for a in store.QuranAyah.list("ayah_number")] == [1, 2, 3]
        assert [a["ayah_number"] for a in store.QuranAyah.list("-ayah_number")] == [3, 2, 1]

    def test_upsert(self, store):
        store.AppSettings.upsert({"key": "theme", "value": "light"}, "key")
        row = store.AppSettings.upsert({"key": "theme", "value": "dark"}, "key")
        assert row["value"] == "dark"
        assert len(store.AppSettings.list()) == 1


class TestColumnValidation:
    """Unknown columns are rejected before reaching the backend."""

    def test_create_unknown_column(self, store):
        with pytest.raises(ValidationError, match="colour"):
            store.UserNote.create({"colour": "red"})

    def test_update_unknown_column(self, store):
        word = store.QuranicWord.create({"word": "نور"})
        with pytest.raises(ValidationError):
            store.QuranicWord.update(word["id"], {"shade": "x"})

    def test_filter_unknown_column(self, store):
        with pytest.raises(FilterError, match="no such column"):
            store.QuranicWord.filter({"shade": "x"})

    def test_sort_unknown_column(self, store):
        with pytest.raises(FilterError):
            store.QuranicWord.list("-shade")


class TestEntityClient:
    """Tests for EntityClient attribute access."""

    def test_attribute_access(self, backend):
        client = EntityClient(backend)
        assert isinstance(client.Group, EntityRepository)
        assert client.Group is client.Group

    def test_unknown_entity(self, backend):
        with pytest.raises(AttributeError):
            EntityClient(backend).Nope

    def test_as_user(self, store, alice):
        assert store.as_user(alice).user is alice

    def test_schema_lookup_by_table(self):
        assert get_schema("user_notifications").name == "Notification"
        with pytest.raises(KeyError):
            get_schema("missing")

    def test_default_sort_is_date_column(self):
        """Settings sort on updated_at when no sort is given."""
        backend = RecordingBackend(0)
        seen = {}

        def select(table, predicates=None, order=None, limit=None, offset=0):
            seen["order"] = order
            return []

        backend.select = select
        EntityRepository(ENTITIES["AppSettings"], backend).list()
        assert seen["order"] == Order("updated_at", ascending=False)
