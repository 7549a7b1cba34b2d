"""Helpers shared by the cart store and the cart gateway"""
from typing import Any, Dict, Iterable, List, Optional, Union
import secrets
from hoodskool.core.datetime_utils import timestamp_ms
from hoodskool.schemas.cart import CartItem, CartItemCreate

AnyCartItem = Union[CartItem, CartItemCreate]


def remove_undefined(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop None values recursively.
    Nested dicts left empty are dropped as well; lists are kept as they are.
    """
    result: Dict[str, Any] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, dict):
            cleaned = remove_undefined(value)
            if cleaned:
                result[key] = cleaned
        else:
            result[key] = value
    return result


def _color_name(item: AnyCartItem) -> Optional[str]:
    return item.color.name if item.color else None


def is_same_cart_item(item1: AnyCartItem, item2: AnyCartItem) -> bool:
    """Same product, variant, size and color name (absent equals absent)"""
    return (
        item1.product_id == item2.product_id
        and item1.variant_id == item2.variant_id
        and item1.size == item2.size
        and _color_name(item1) == _color_name(item2)
    )


def cart_item_key(item: AnyCartItem) -> str:
    color_key = _color_name(item) or "no-color"
    return f"{item.product_id}-{item.variant_id or 'no-variant'}-{item.size or 'no-size'}-{color_key}"


def clamp_quantity(quantity: int, max_quantity: int) -> int:
    return max(1, min(quantity, max_quantity))


def deduplicate_cart_items(items: Iterable[CartItem]) -> List[CartItem]:
    """
    Fold entries that describe the same logical item.
    The first-seen entry survives with the summed quantity, clamped to its
    max_quantity. Ordering of distinct keys is preserved.
    """
    seen: Dict[str, CartItem] = {}
    for item in items:
        key = cart_item_key(item)
        existing = seen.get(key)
        if existing:
            seen[key] = existing.model_copy(update={
                "quantity": clamp_quantity(existing.quantity + item.quantity, existing.max_quantity)
            })
        else:
            seen[key] = item
    return list(seen.values())


def count_items(items: Iterable[AnyCartItem]) -> int:
    return sum(item.quantity for item in items)


def generate_temp_id() -> str:
    """Temporary id for guest cart items"""
    return f"temp_{timestamp_ms()}_{secrets.token_hex(6)}"
