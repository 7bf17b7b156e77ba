from enum import Enum


class CartItemStatus(str, Enum):
    ACTIVE = "active"
    ORDERED = "ordered"    # Only set by order settlement, for the settled order's items
    REMOVED = "removed"
