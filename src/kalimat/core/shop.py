"""Gem shop: catalog, balance and purchases."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from kalimat.errors import ConflictError, ValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ShopItem:
    """An item that can be bought with gems."""

    id: str
    name: str
    price: int
    icon: str
    item_type: str
    rarity: str | None = None
    uses: int | None = None
    duration: str | None = None


CATALOG: tuple[ShopItem, ...] = (
    ShopItem("theme_ocean", "المحيط الأزرق", 100, "🌊", "theme"),
    ShopItem("theme_sunset", "غروب الشمس", 120, "🌅", "theme"),
    ShopItem("theme_forest", "الغابة الخضراء", 100, "🌲", "theme"),
    ShopItem("theme_galaxy", "المجرة البنفسجية", 150, "🌌", "theme"),
    ShopItem("bg_stars", "نجوم لامعة", 50, "⭐", "background"),
    ShopItem("bg_clouds", "سحب بيضاء", 40, "☁️", "background"),
    ShopItem("bg_gradient", "تدرج ملون", 60, "🎨", "background"),
    ShopItem("frame_gold", "إطار ذهبي", 200, "👑", "frame", rarity="legendary"),
    ShopItem("frame_silver", "إطار فضي", 150, "🥈", "frame", rarity="epic"),
    ShopItem("frame_bronze", "إطار برونزي", 100, "🥉", "frame", rarity="rare"),
    ShopItem("powerup_double_xp", "مضاعفة XP - ساعة", 75, "⚡", "powerup", duration="1 hour"),
    ShopItem("powerup_freeze_time", "تجميد الوقت - 10 أسئلة", 50, "⏰", "powerup", uses=10),
    ShopItem("powerup_hint", "تلميح ذكي - 5 استخدامات", 60, "💡", "powerup", uses=5),
)

_CATALOG_BY_ID = {item.id: item for item in CATALOG}


def get_item(item_id: str) -> ShopItem:
    """Look up a catalog item.

    Raises:
        ValidationError: If the item does not exist
    """
    item = _CATALOG_BY_ID.get(item_id)
    if item is None:
        raise ValidationError(f"Unknown item: {item_id}")
    return item


def get_or_create_gems(client: Any, user: Any) -> dict[str, Any]:
    """The user's gem balance, created empty on first visit."""
    gems = client.UserGems.first(client.UserGems.owned_by(user.email))
    if gems is None:
        gems = client.UserGems.create({"total_gems": 0, "current_gems": 0, "gems_spent": 0})
    return gems


def owned_item_ids(client: Any, user: Any) -> set[str]:
    """Ids of items the user already bought."""
    purchases = client.UserPurchase.filter(client.UserPurchase.owned_by(user.email))
    return {p["item_id"] for p in purchases}


def purchase(client: Any, user: Any, item_id: str) -> dict[str, Any]:
    """Buy an item with gems.

    Raises:
        ValidationError: Unknown item or not enough gems
        ConflictError: Item already owned

    Returns:
        Dict with keys: purchase, current_gems
    """
    item = get_item(item_id)

    if item.id in owned_item_ids(client, user):
        raise ConflictError(f"Item already owned: {item.id}")

    gems = get_or_create_gems(client, user)
    balance = gems.get("current_gems") or 0
    if balance < item.price:
        raise ValidationError(f"تحتاج {item.price} جوهرة، لديك {balance}")

    record = client.UserPurchase.create(
        {
            "item_id": item.id,
            "item_name": item.name,
            "item_type": item.item_type,
            "price_gems": item.price,
        }
    )
    updated = client.UserGems.update(
        gems["id"],
        {
            "current_gems": balance - item.price,
            "gems_spent": (gems.get("gems_spent") or 0) + item.price,
        },
    )

    logger.info("shop.purchased", user=user.email, item_id=item.id, price=item.price)
    return {"purchase": record, "current_gems": updated.get("current_gems")}


def award_gems(client: Any, user: Any, amount: int) -> dict[str, Any]:
    """Credit gems to a user."""
    if amount <= 0:
        raise ValidationError("Gem amount must be positive")
    gems = get_or_create_gems(client, user)
    return client.UserGems.update(
        gems["id"],
        {
            "current_gems": (gems.get("current_gems") or 0) + amount,
            "total_gems": (gems.get("total_gems") or 0) + amount,
        },
    )
