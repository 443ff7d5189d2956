from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from storefront.constants import FEATURED_PRODUCTS
from storefront.core.gateway import HttpGateway
from storefront.models import Category, OrderPage, Product, unwrap

SORT_KEYS = ("newest", "name", "price")


class CatalogService:
    """Read-only collaborators: products, categories and order history."""

    def __init__(self, gateway: HttpGateway):
        self.gateway = gateway

    async def list_products(self) -> List[Product]:
        body = unwrap(await self.gateway.send("GET", "/products"))
        return [Product.from_dict(p) for p in body or ()]

    async def list_categories(self) -> List[Category]:
        body = unwrap(await self.gateway.send("GET", "/categories"))
        return [Category.from_dict(c) for c in body or ()]

    async def list_orders(self, page: int = 1) -> OrderPage:
        body = await self.gateway.send("GET", "/orders", params={"page": page})
        return OrderPage.from_dict(body)


def filter_products(products: List[Product], term: str = "", category_id: Optional[int] = None) -> List[Product]:
    t = term.strip().lower()
    return [
        p
        for p in products
        if (not t or t in p.name.lower() or t in p.description.lower())
        and (category_id is None or p.category_id == category_id)
    ]


def sort_products(products: List[Product], by: str = "newest") -> List[Product]:
    if by == "name":
        return sorted(products, key=lambda p: p.name.lower())
    if by == "price":
        return sorted(products, key=lambda p: p.price)
    if by == "newest":
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(products, key=lambda p: _aware(p.created_at) or oldest, reverse=True)
    return list(products)


def featured(products: List[Product], limit: int = FEATURED_PRODUCTS) -> List[Product]:
    return list(products[:limit])


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt
