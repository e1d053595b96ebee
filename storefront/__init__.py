"""
Storefront client core

This package contains:
- gateway: HTTP round trips to the storefront API
- retry / errors: bounded retry and error normalization
- cart: in-memory cart store and remote cart mirror
- auth: auth session store and session recovery
- catalog: product filter/pagination query builder

Note: Imports are lazy so `import storefront` does not pull in the
Supabase client.
"""

__all__ = [
    "create_storefront",
    "get_settings",
    "AuthStore",
    "CartStore",
    "Gateway",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name == "create_storefront":
        from storefront.app import create_storefront
        return create_storefront
    elif name == "get_settings":
        from storefront.config import get_settings
        return get_settings
    elif name == "AuthStore":
        from storefront.auth import AuthStore
        return AuthStore
    elif name == "CartStore":
        from storefront.cart import CartStore
        return CartStore
    elif name == "Gateway":
        from storefront.gateway import Gateway
        return Gateway
    raise AttributeError(f"module 'storefront' has no attribute '{name}'")
