"""Cart package: models, in-memory store, and remote mirror."""
from .models import CartLine, CartState, ItemCondition
from .remote import RemoteCartService, to_cart_lines
from .store import CartStore

__all__ = [
    "CartLine",
    "CartState",
    "ItemCondition",
    "CartStore",
    "RemoteCartService",
    "to_cart_lines",
]
