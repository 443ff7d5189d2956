"""Client-side copies of backend data.

Every object here is built from a decoded response body and never mutated
afterwards. Prices, subtotals and totals are taken verbatim from the server.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


def unwrap(payload: Any) -> Any:
    """Strip the ``{success, message, data}`` envelope when the backend sends one."""
    if isinstance(payload, dict) and "data" in payload and isinstance(payload["data"], (dict, list)):
        return payload["data"]
    return payload


def _parse_dt(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class Session:
    user_id: int
    email: str
    full_name: str
    roles: frozenset
    token: str

    @classmethod
    def from_auth_response(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            user_id=data.get("userId"),
            email=data.get("email") or "",
            full_name=data.get("fullName") or "",
            roles=frozenset(data.get("roles") or ()),
            token=data.get("token") or "",
        )

    def profile(self) -> Dict[str, Any]:
        """User profile as persisted next to the token."""
        return {
            "id": self.user_id,
            "email": self.email,
            "fullName": self.full_name,
            "roles": sorted(self.roles),
        }

    @classmethod
    def from_profile(cls, profile: Dict[str, Any], token: str) -> "Session":
        return cls(
            user_id=profile.get("id"),
            email=profile.get("email") or "",
            full_name=profile.get("fullName") or "",
            roles=frozenset(profile.get("roles") or ()),
            token=token,
        )


@dataclass(frozen=True)
class CartItem:
    id: int
    product_id: int
    product_name: str
    unit_price: float
    quantity: int
    subtotal: float
    image_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartItem":
        return cls(
            id=data["id"],
            product_id=data["productId"],
            product_name=data.get("productName") or "",
            unit_price=float(data.get("unitPrice") or 0),
            quantity=int(data["quantity"]),
            subtotal=float(data.get("subtotal") or 0),
            image_url=data.get("imageUrl"),
        )


@dataclass(frozen=True)
class Cart:
    items: Tuple[CartItem, ...] = ()
    item_count: int = 0
    total_price: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Cart":
        data = unwrap(data) or {}
        return cls(
            items=tuple(CartItem.from_dict(i) for i in data.get("items") or ()),
            item_count=int(data.get("itemCount") or 0),
            total_price=float(data.get("totalPrice") or 0),
        )

    @property
    def is_empty(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(id=data["id"], name=data.get("name") or "", description=data.get("description") or "")


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    price: float
    description: str = ""
    stock_quantity: int = 0
    category_id: Optional[int] = None
    category_name: str = ""
    image_url: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            price=float(data.get("price") or 0),
            description=data.get("description") or "",
            stock_quantity=int(data.get("stockQuantity") or 0),
            category_id=data.get("categoryId"),
            category_name=data.get("categoryName") or "",
            image_url=data.get("imageUrl"),
            is_active=bool(data.get("isActive", True)),
            created_at=_parse_dt(data.get("createdAt")),
        )


@dataclass(frozen=True)
class OrderLine:
    product_name: str
    price: float
    quantity: int
    image_url: Optional[str] = None

    @property
    def line_total(self) -> float:
        # display only; order totals come from totalAmount
        return self.price * self.quantity


@dataclass(frozen=True)
class Order:
    id: int
    status: str
    total_amount: float
    order_date: Optional[datetime] = None
    items: Tuple[OrderLine, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            status=data.get("status") or "",
            total_amount=float(data.get("totalAmount") or 0),
            order_date=_parse_dt(data.get("orderDate")),
            items=tuple(
                OrderLine(
                    product_name=i.get("productName") or "",
                    price=float(i.get("price") or 0),
                    quantity=int(i.get("quantity") or 0),
                    image_url=i.get("imageUrl"),
                )
                for i in data.get("items") or ()
            ),
        )


@dataclass(frozen=True)
class OrderPage:
    orders: List[Order] = field(default_factory=list)
    total: int = 0
    page: int = 1
    pages: int = 1

    @classmethod
    def from_dict(cls, data: Any) -> "OrderPage":
        data = unwrap(data)
        if isinstance(data, list):
            return cls(orders=[Order.from_dict(o) for o in data], total=len(data))
        data = data or {}
        return cls(
            orders=[Order.from_dict(o) for o in data.get("orders") or ()],
            total=int(data.get("total") or 0),
            page=int(data.get("page") or 1),
            pages=int(data.get("pages") or 1),
        )
