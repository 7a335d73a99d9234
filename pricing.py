"""
Pricing rules: custom garment base prices and promotion discounts.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

BASE_PRICES = {
    "tshirt": 25.99,
    "dress": 45.99,
    "pants": 35.99,
    "jacket": 55.99,
}
DEFAULT_BASE_PRICE = 30.00


class PromotionNotApplicable(ValueError):
    pass


def base_price_for(clothing_type: Optional[str]) -> float:
    return BASE_PRICES.get(clothing_type or "", DEFAULT_BASE_PRICE)


def custom_order_price(clothing_type: Optional[str], quantity: int) -> float:
    return round(base_price_for(clothing_type) * quantity, 2)


def discount_kind(promotion: Mapping[str, Any]) -> Optional[str]:
    """Which discount field a promotion uses.

    An explicit ``discountType`` wins; otherwise a percentage is assumed when
    one is set, then a flat value.
    """
    kind = promotion.get("discountType")
    if kind in ("flat", "percentage"):
        return kind
    if promotion.get("discountPercentage"):
        return "percentage"
    if promotion.get("discountValue"):
        return "flat"
    return None


def discounted_price(promotion: Optional[Mapping[str, Any]], base_price: float) -> float:
    """Unit price after applying a single promotion, never below zero."""
    price = float(base_price or 0)
    if not promotion:
        return round(price, 2)
    kind = discount_kind(promotion)
    if kind == "flat":
        price -= float(promotion.get("discountValue") or 0)
    elif kind == "percentage":
        price -= price * float(promotion.get("discountPercentage") or 0) / 100
    return round(max(0.0, price), 2)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired(promotion: Mapping[str, Any], now: Optional[datetime] = None) -> bool:
    valid_until = promotion.get("validUntil")
    if not isinstance(valid_until, datetime):
        return False
    now = now or datetime.now(timezone.utc)
    return as_utc(now) > as_utc(valid_until)


def is_applicable(promotion: Mapping[str, Any], item: Mapping[str, Any]) -> bool:
    products = [str(p) for p in promotion.get("applicableProducts") or []]
    categories = promotion.get("applicableCategories") or []
    if not products and not categories:
        return True
    return str(item.get("itemId")) in products or item.get("category") in categories


def promotion_discount(
    promotion: Mapping[str, Any],
    items: List[Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> Tuple[float, Dict[str, float]]:
    """Total cart discount and the discount per applicable item id.

    Raises PromotionNotApplicable when the promotion has expired or the cart
    does not reach the minimum purchase.
    """
    if is_expired(promotion, now):
        raise PromotionNotApplicable("Promotion has expired")
    subtotal = sum(float(i.get("price", 0)) * int(i.get("quantity", 1)) for i in items)
    minimum = float(promotion.get("minimumPurchase") or 0)
    if subtotal < minimum:
        raise PromotionNotApplicable(f"Minimum purchase of {minimum:.2f} required")

    per_item: Dict[str, float] = {}
    for item in items:
        if not is_applicable(promotion, item):
            continue
        price = float(item.get("price", 0))
        quantity = int(item.get("quantity", 1))
        saving = (price - discounted_price(promotion, price)) * quantity
        key = str(item.get("itemId"))
        per_item[key] = round(per_item.get(key, 0.0) + saving, 2)
    return round(sum(per_item.values()), 2), per_item
