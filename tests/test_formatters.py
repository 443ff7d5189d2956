from conftest import cart_body, cart_item
from storefront.models import Cart, Order, OrderPage
from storefront.utils.formatters import cart_text, money, orders_text, products_text


def test_money_uses_configured_currency():
    assert money(3) == "3.00 USD"


def test_cart_text_shows_server_total():
    cart = Cart.from_dict(cart_body(cart_item(1, 3, 10.0, subtotal=27.0, name="Gloves <L>"), total=27.0))

    text = cart_text(cart)

    assert "Gloves &lt;L&gt;" in text
    assert "27.00 USD" in text
    assert "Total: 27.00 USD" in text


def test_empty_cart_text():
    assert "empty" in cart_text(Cart())


def test_products_text_without_products():
    assert products_text([]) == "No products found."


def test_orders_text_paginates():
    page = OrderPage(orders=[Order(id=5, status="Shipped", total_amount=12.0)], total=11, page=1, pages=2)

    text = orders_text(page)

    assert "🚚" in text
    assert "Order #5" in text
    assert "/orders 2" in text
