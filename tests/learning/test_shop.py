"""Tests for the gem shop."""

import pytest

from kalimat.core.shop import (
    CATALOG,
    award_gems,
    get_item,
    get_or_create_gems,
    owned_item_ids,
    purchase,
)
from kalimat.errors import ConflictError, ValidationError


class TestCatalog:
    """Tests for catalog lookup."""

    def test_ids_unique(self):
        assert len({item.id for item in CATALOG}) == len(CATALOG)

    def test_get_item(self):
        item = get_item("frame_gold")
        assert item.price == 200
        assert item.rarity == "legendary"

    def test_unknown_item(self):
        with pytest.raises(ValidationError):
            get_item("rocket")


class TestPurchase:
    """Tests for buying items."""

    def test_balance_created_empty(self, as_alice, alice):
        gems = get_or_create_gems(as_alice, alice)
        assert gems["current_gems"] == 0
        assert gems["user_email"] == alice.email

    def test_purchase_deducts_gems(self, as_alice, alice):
        award_gems(as_alice, alice, 150)
        result = purchase(as_alice, alice, "bg_stars")

        assert result["current_gems"] == 100
        assert result["purchase"]["item_name"] == "نجوم لامعة"
        assert result["purchase"]["price_gems"] == 50
        assert owned_item_ids(as_alice, alice) == {"bg_stars"}

        gems = get_or_create_gems(as_alice, alice)
        assert gems["gems_spent"] == 50
        assert gems["total_gems"] == 150

    def test_not_enough_gems(self, as_alice, alice):
        award_gems(as_alice, alice, 10)
        with pytest.raises(ValidationError):
            purchase(as_alice, alice, "theme_ocean")
        assert owned_item_ids(as_alice, alice) == set()

    def test_already_owned(self, as_alice, alice):
        award_gems(as_alice, alice, 500)
        purchase(as_alice, alice, "bg_clouds")
        with pytest.raises(ConflictError):
            purchase(as_alice, alice, "bg_clouds")
        assert get_or_create_gems(as_alice, alice)["current_gems"] == 460

    def test_award_must_be_positive(self, as_alice, alice):
        with pytest.raises(ValidationError):
            award_gems(as_alice, alice, 0)
