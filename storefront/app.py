"""Application root: one set of stores and services per running client."""
from dataclasses import dataclass
from typing import Optional

from storefront.auth import AuthService, AuthStore, SupabaseSessionCache, create_token_storage
from storefront.cart import CartStore, RemoteCartService, to_cart_lines
from storefront.catalog import ProductCatalog
from storefront.config import Settings, get_settings
from storefront.db import get_supabase
from storefront.gateway import Gateway
from storefront.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)


@dataclass
class Storefront:
    settings: Settings
    gateway: Gateway
    auth: AuthStore
    cart: CartStore
    remote_cart: RemoteCartService
    catalog: ProductCatalog

    async def start(self) -> None:
        """Recover the session, then hydrate the cart from the remote mirror."""
        await self.auth.recover_session()
        user = self.auth.user
        if user is None:
            return
        try:
            rows = await self.remote_cart.get_items(user.id)
        except Exception as e:
            logger.warning(f"Could not load remote cart for {sanitize_id_for_logging(user.id)}: {e}")
            return
        self.cart.replace_items(to_cart_lines(rows))

    async def close(self) -> None:
        await self.auth.wait_for_background_tasks()
        await self.gateway.aclose()


async def create_storefront(settings: Optional[Settings] = None) -> Storefront:
    """
    Wire the client from settings.

    Raises:
        ConfigurationError: Supabase settings missing or malformed
    """
    settings = settings or get_settings()
    supabase = await get_supabase(settings)
    gateway = Gateway(settings)

    auth = AuthStore(
        AuthService(gateway, supabase),
        token_storage=create_token_storage(settings.token_path),
        session_cache=SupabaseSessionCache(supabase),
    )
    return Storefront(
        settings=settings,
        gateway=gateway,
        auth=auth,
        cart=CartStore(),
        remote_cart=RemoteCartService(supabase),
        catalog=ProductCatalog(supabase),
    )
