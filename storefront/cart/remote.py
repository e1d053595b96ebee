"""Remote cart mirror stored in the Supabase `cart_items` table.

All calls go through with_retry; PostgREST errors are normalized.
"""
from typing import Any, Optional

from supabase import PostgrestAPIError
from supabase._async.client import AsyncClient

from storefront.errors import ValidationError, normalize_error
from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.retry import DEFAULT_BASE_DELAY, with_retry

from .models import CartLine

logger = get_logger(__name__)

CART_TABLE = "cart_items"
CART_SELECT = "*, products (id, name, price, image, condition, stock)"


class RemoteCartService:
    """Per-user cart rows. One row per (user_id, product_id)."""

    def __init__(self, client: AsyncClient, base_delay: float = DEFAULT_BASE_DELAY):
        self.client = client
        self.base_delay = base_delay

    async def _run(self, fn):
        async def guarded():
            try:
                return await fn()
            except PostgrestAPIError as e:
                raise normalize_error(e) from e

        return await with_retry(guarded, base_delay=self.base_delay)

    async def get_items(self, user_id: str) -> list[dict]:
        """Cart rows with joined product details, newest first."""
        async def fetch():
            result = await (
                self.client.table(CART_TABLE)
                .select(CART_SELECT)
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
            return result.data or []

        return await self._run(fetch)

    async def add_item(self, user_id: str, product_id: str, quantity: int = 1) -> dict:
        """Insert a row or add to the existing row's quantity."""
        async def upsert():
            existing = await (
                self.client.table(CART_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .eq("product_id", product_id)
                .limit(1)
                .execute()
            )
            if existing.data:
                row = existing.data[0]
                result = await (
                    self.client.table(CART_TABLE)
                    .update({"quantity": row["quantity"] + quantity})
                    .eq("id", row["id"])
                    .execute()
                )
            else:
                result = await (
                    self.client.table(CART_TABLE)
                    .insert({"user_id": user_id, "product_id": product_id, "quantity": quantity})
                    .execute()
                )
            return result.data[0] if result.data else {}

        return await self._run(upsert)

    async def update_quantity(self, user_id: str, item_id: str, quantity: int) -> Optional[dict]:
        """Set a row's quantity; quantity <= 0 deletes the row and returns None."""
        if quantity <= 0:
            await self.remove_item(user_id, item_id)
            return None

        async def update():
            result = await (
                self.client.table(CART_TABLE)
                .update({"quantity": quantity})
                .eq("id", item_id)
                .eq("user_id", user_id)
                .execute()
            )
            return result.data[0] if result.data else None

        return await self._run(update)

    async def remove_item(self, user_id: str, item_id: str) -> None:
        async def delete():
            await (
                self.client.table(CART_TABLE)
                .delete()
                .eq("id", item_id)
                .eq("user_id", user_id)
                .execute()
            )

        await self._run(delete)

    async def clear(self, user_id: str) -> None:
        async def delete_all():
            await self.client.table(CART_TABLE).delete().eq("user_id", user_id).execute()

        await self._run(delete_all)
        logger.info(f"Cleared remote cart for user {sanitize_id_for_logging(user_id)}")


def to_cart_lines(rows: list[dict[str, Any]]) -> list[CartLine]:
    """Convert joined cart rows into CartLines; rows without a product or with a negative price are skipped."""
    lines = []
    for row in rows:
        product = row.get("products")
        if not product:
            logger.warning(f"Cart row {sanitize_id_for_logging(row.get('id'))} has no product, skipping")
            continue
        try:
            line = CartLine.from_dict(
                {
                    "id": product["id"],
                    "name": product.get("name"),
                    "price": product.get("price"),
                    "image": product.get("image"),
                    "condition": product.get("condition"),
                    "quantity": row.get("quantity", 1),
                }
            )
        except ValidationError as e:
            logger.warning(f"Cart row {sanitize_id_for_logging(row.get('id'))} skipped: {e.message}")
            continue
        lines.append(line)
    return lines
