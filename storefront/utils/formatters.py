from __future__ import annotations

from html import escape
from typing import List

from storefront.config import settings
from storefront.constants import ORDER_STATUS_ICONS
from storefront.models import Cart, OrderPage, Product


def money(v: float) -> str:
    return f"{v:.{settings.decimals}f} {settings.currency}"


def cart_text(cart: Cart) -> str:
    if cart.is_empty:
        return "🛒 Your cart is empty.\nBrowse products: /products"
    lines = [f"<b>Cart items ({cart.item_count})</b>"]
    for item in cart.items:
        lines.append(
            f"• #{item.id} {escape(item.product_name)} — {item.quantity} × {money(item.unit_price)} = {money(item.subtotal)}"
        )
    lines.append("")
    lines.append(f"<b>Total: {money(cart.total_price)}</b>")
    lines.append("Shipping: free. Tax: calculated at checkout.")
    return "\n".join(lines)


def products_text(products: List[Product]) -> str:
    if not products:
        return "No products found."
    lines = ["<b>Products:</b>"]
    for p in products:
        stock = "out of stock" if p.stock_quantity <= 0 else f"{p.stock_quantity} in stock"
        category = f" [{escape(p.category_name)}]" if p.category_name else ""
        lines.append(f"• #{p.id} {escape(p.name)}{category} — {money(p.price)} ({stock})")
    lines.append("")
    lines.append("Add to cart: /add PRODUCT_ID [QTY]")
    return "\n".join(lines)


def orders_text(page: OrderPage) -> str:
    if not page.orders:
        return "You have no orders yet. Start shopping: /products"
    lines = [f"<b>My orders</b> ({page.total} total, page {page.page}/{page.pages})"]
    for o in page.orders:
        icon = ORDER_STATUS_ICONS.get(o.status.lower(), "⏰")
        date = o.order_date.strftime("%B %d, %Y") if o.order_date else "-"
        lines.append(f"\n{icon} <b>Order #{o.id}</b> — {escape(o.status)} — {date}")
        for line in o.items[:2]:
            lines.append(f"   {escape(line.product_name)} × {line.quantity} — {money(line.line_total)}")
        if len(o.items) > 2:
            lines.append(f"   +{len(o.items) - 2} more items")
        lines.append(f"   Total: {money(o.total_amount)}")
    if page.page < page.pages:
        lines.append(f"\nNext page: /orders {page.page + 1}")
    return "\n".join(lines)
