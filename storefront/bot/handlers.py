import logging
from html import escape

from aiogram import Bot, F, Router
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message, ReplyKeyboardRemove

from storefront.bot.clients import ShopClient, ShopClients
from storefront.bot.confirm import ConfirmationBroker
from storefront.bot.keyboards import cart_kb, guest_kb, main_kb
from storefront.bot.states import LoginForm, RegisterForm
from storefront.constants import (
    CB_CART_CHECKOUT,
    CB_CART_DEC,
    CB_CART_DEL,
    CB_CART_INC,
    CB_CART_REFRESH,
    CB_CONFIRM,
    PRODUCTS_PAGE_SIZE,
    ROLE_ADMIN,
)
from storefront.core.guard import Decision
from storefront.core.session import PasswordStrength, password_strength
from storefront.errors import CartRefreshError, MutationInProgress, StorefrontError
from storefront.services.catalog import SORT_KEYS, featured, filter_products, sort_products
from storefront.utils.formatters import cart_text, money, orders_text, products_text
from storefront.utils.validators import require_positive_int

logger = logging.getLogger(__name__)

router = Router()

STRENGTH_ICONS = {
    PasswordStrength.WEAK: "🔴",
    PasswordStrength.FAIR: "🟡",
    PasswordStrength.GOOD: "🟢",
    PasswordStrength.STRONG: "🔵",
}


BUSY_TEXT = "⏳ This item is still being updated. Try again in a moment."


def _failure(action: str, e: StorefrontError) -> str:
    return f"❌ {action}: {escape(e.message)}"


def _not_refreshed(done: str, e: CartRefreshError) -> str:
    return f"✅ {done}, but the cart could not be refreshed: {escape(e.message)}\nReload: /cart"


def _callback_chat_id(callback: CallbackQuery) -> int:
    if callback.message is not None:
        return callback.message.chat.id
    return callback.from_user.id


async def _guard(message: Message, client: ShopClient, role: str | None = None) -> bool:
    decision = client.guard.decide(role)
    if decision is Decision.RENDER:
        return True
    if decision is Decision.REDIRECT_TO_LOGIN:
        await message.answer("🔒 Please sign in first: /login\nNo account yet? /register", reply_markup=guest_kb())
    else:
        await message.answer("⛔ This section is not available for your account.", reply_markup=main_kb())
    return False


async def _forget(message: Message) -> None:
    """Delete a message that carried a password."""
    try:
        await message.delete()
    except TelegramAPIError as e:
        logger.debug("Could not delete password message: %s", e)


async def _edit_cart(message: Message, client: ShopClient) -> None:
    cart = client.cart.view.cart
    if cart is None:
        return
    try:
        await message.edit_text(cart_text(cart), reply_markup=cart_kb(cart, client.cart.pending))
    except TelegramBadRequest as e:
        if "message is not modified" not in str(e):
            raise


async def _show_home(message: Message, client: ShopClient) -> None:
    session = client.store.session
    greeting = f"Welcome to Doctama, {escape(session.full_name)}!" if session else "Welcome to Doctama!"
    lines = [f"<b>{greeting}</b>", "Your trusted online medical supplies store."]
    try:
        products = featured(await client.catalog.list_products())
    except StorefrontError as e:
        logger.warning("Featured products unavailable: %s", e)
        products = []
    if products:
        lines.append("\n<b>Featured products</b>")
        for p in products:
            lines.append(f"• #{p.id} {escape(p.name)} — {money(p.price)}")
    lines.append("\n🛍️ Shop now: /products")
    await message.answer("\n".join(lines), reply_markup=main_kb())


async def _show_orders(message: Message, client: ShopClient, page: int = 1) -> None:
    try:
        orders = await client.catalog.list_orders(page)
    except StorefrontError as e:
        await message.answer(_failure("Failed to load orders. Please try again", e))
        return
    await message.answer(orders_text(orders))


# ---------------- basics ----------------

@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext, clients: ShopClients):
    await state.clear()
    client = clients.get(message.chat.id)
    kb = main_kb() if client.store.is_authenticated() else guest_kb()
    await message.answer("❎ Cancelled.", reply_markup=kb)


@router.message(Command("start"))
async def cmd_start(message: Message, clients: ShopClients):
    client = clients.get(message.chat.id)
    if not await _guard(message, client):
        return
    await _show_home(message, client)


@router.message(Command("help"))
async def cmd_help(message: Message):
    text = (
        "<b>Doctama — commands</b>\n\n"
        "<b>Account</b>\n"
        "/login — sign in\n"
        "/register — create an account\n"
        "/logout — sign out\n\n"
        "<b>Shopping</b>\n"
        "/products [search] — catalog (sort: /products sort=name|price|newest)\n"
        "/categories — product categories\n"
        "/add PRODUCT_ID [QTY] — add to cart\n"
        "/cart — your cart\n"
        "/checkout — place the order\n"
        "/orders [PAGE] — order history\n\n"
        "/cancel — abort the current form\n"
        "/ping — check"
    )
    await message.answer(text)


@router.message(Command("ping"))
async def cmd_ping(message: Message):
    await message.answer("pong ✅")


# ---------------- login ----------------

@router.message(Command("login"))
async def cmd_login(message: Message, state: FSMContext, clients: ShopClients):
    client = clients.get(message.chat.id)
    if client.store.is_authenticated():
        await message.answer(
            f"You are already signed in as {escape(client.store.session.email)}. Sign out: /logout",
            reply_markup=main_kb(),
        )
        return
    await state.clear()
    await state.set_state(LoginForm.waiting_email)
    await message.answer("Enter your email.\nCancel: /cancel", reply_markup=ReplyKeyboardRemove())


@router.message(LoginForm.waiting_email)
async def login_email(message: Message, state: FSMContext):
    email = (message.text or "").strip()
    if not email or email.startswith("/") or "@" not in email:
        await message.answer("Enter a valid email address. Cancel: /cancel")
        return
    await state.update_data(email=email)
    await state.set_state(LoginForm.waiting_password)
    await message.answer("Enter your password.\nCancel: /cancel")


@router.message(LoginForm.waiting_password)
async def login_password(message: Message, state: FSMContext, clients: ShopClients):
    password = message.text or ""
    await _forget(message)
    if not password:
        await message.answer("Enter your password as text. Cancel: /cancel")
        return

    data = await state.get_data()
    await state.clear()
    client = clients.get(message.chat.id)
    try:
        session = await client.auth.login(str(data.get("email", "")), password)
    except StorefrontError as e:
        await message.answer(_failure("Login failed", e) + "\nTry again: /login", reply_markup=guest_kb())
        return

    await message.answer(f"✅ Signed in as <b>{escape(session.full_name or session.email)}</b>")
    await _show_home(message, client)


# ---------------- register ----------------

@router.message(Command("register"))
async def cmd_register(message: Message, state: FSMContext, clients: ShopClients):
    client = clients.get(message.chat.id)
    if client.store.is_authenticated():
        await message.answer("You are already signed in. Sign out first: /logout", reply_markup=main_kb())
        return
    await state.clear()
    await state.set_state(RegisterForm.waiting_full_name)
    await message.answer(
        "Create your account.\n\n1/4) Enter your full name\nCancel: /cancel",
        reply_markup=ReplyKeyboardRemove(),
    )


@router.message(RegisterForm.waiting_full_name)
async def register_full_name(message: Message, state: FSMContext):
    name = (message.text or "").strip()
    if not name or name.startswith("/"):
        await message.answer("Enter your name as text. Cancel: /cancel")
        return
    await state.update_data(full_name=name)
    await state.set_state(RegisterForm.waiting_email)
    await message.answer("2/4) Enter your email\nCancel: /cancel")


@router.message(RegisterForm.waiting_email)
async def register_email(message: Message, state: FSMContext):
    email = (message.text or "").strip()
    if not email or email.startswith("/") or "@" not in email:
        await message.answer("Enter a valid email address. Cancel: /cancel")
        return
    await state.update_data(email=email)
    await state.set_state(RegisterForm.waiting_password)
    await message.answer("3/4) Choose a password (at least 6 characters)\nCancel: /cancel")


@router.message(RegisterForm.waiting_password)
async def register_password(message: Message, state: FSMContext):
    password = message.text or ""
    await _forget(message)
    if not password:
        await message.answer("Enter the password as text. Cancel: /cancel")
        return
    strength = password_strength(password)
    await state.update_data(password=password)
    await state.set_state(RegisterForm.waiting_confirm)
    await message.answer(
        f"Password strength: {STRENGTH_ICONS[strength]} {strength.value}\n\n"
        "4/4) Repeat the password\nCancel: /cancel"
    )


@router.message(RegisterForm.waiting_confirm)
async def register_confirm(message: Message, state: FSMContext, clients: ShopClients):
    confirm_password = message.text or ""
    await _forget(message)
    data = await state.get_data()
    client = clients.get(message.chat.id)
    try:
        session = await client.auth.register(
            str(data.get("full_name", "")),
            str(data.get("email", "")),
            str(data.get("password", "")),
            confirm_password,
        )
    except StorefrontError as e:
        await message.answer(_failure("Registration failed", e) + "\nStart over: /register", reply_markup=guest_kb())
        return
    finally:
        await state.clear()

    await message.answer(f"✅ Account created. Welcome, <b>{escape(session.full_name)}</b>!")
    await _show_home(message, client)


@router.message(Command("logout"))
async def cmd_logout(message: Message, state: FSMContext, clients: ShopClients):
    await state.clear()
    client = clients.get(message.chat.id)
    if not client.store.is_authenticated():
        await message.answer("You are not signed in. /login", reply_markup=guest_kb())
        return
    await client.auth.logout()


# ---------------- catalog ----------------

@router.message(Command("products"))
async def cmd_products(message: Message, command: CommandObject, clients: ShopClients):
    client = clients.get(message.chat.id)

    sort_by = "newest"
    terms = []
    for part in (command.args or "").split():
        if part.startswith("sort="):
            sort_by = part.split("=", 1)[1].lower()
        else:
            terms.append(part)
    if sort_by not in SORT_KEYS:
        await message.answer(f"Sort must be one of: {', '.join(SORT_KEYS)}")
        return

    try:
        products = await client.catalog.list_products()
    except StorefrontError as e:
        await message.answer(_failure("Failed to load products", e))
        return

    shown = sort_products(filter_products(products, " ".join(terms)), sort_by)
    text = products_text(shown[:PRODUCTS_PAGE_SIZE])
    if len(shown) > PRODUCTS_PAGE_SIZE:
        text += f"\n\nShowing {PRODUCTS_PAGE_SIZE} of {len(shown)}. Narrow it down: /products SEARCH"
    await message.answer(text)


@router.message(Command("categories"))
async def cmd_categories(message: Message, clients: ShopClients):
    client = clients.get(message.chat.id)
    try:
        categories = await client.catalog.list_categories()
    except StorefrontError as e:
        await message.answer(_failure("Failed to load categories", e))
        return
    if not categories:
        await message.answer("No categories yet.")
        return
    lines = ["<b>Categories:</b>"]
    for c in categories:
        lines.append(f"• {escape(c.name)}")
    await message.answer("\n".join(lines))


# ---------------- cart ----------------

@router.message(Command("add"))
async def cmd_add(message: Message, command: CommandObject, clients: ShopClients):
    client = clients.get(message.chat.id)
    if not await _guard(message, client):
        return

    parts = (command.args or "").split()
    if len(parts) not in (1, 2):
        await message.answer("Format: /add PRODUCT_ID [QTY]")
        return
    try:
        product_id = require_positive_int(parts[0], "PRODUCT_ID")
        qty = require_positive_int(parts[1], "QTY") if len(parts) == 2 else 1
        cart = await client.cart.add_to_cart(product_id, qty)
    except CartRefreshError as e:
        await message.answer(_not_refreshed("Product added to cart", e))
        return
    except StorefrontError as e:
        await message.answer(_failure("Failed to add product to cart", e))
        return

    await message.answer(
        f"✅ Product added to cart successfully! Cart: {cart.item_count} items, {money(cart.total_price)}\n/cart"
    )


@router.message(Command("cart"))
async def cmd_cart(message: Message, clients: ShopClients):
    client = clients.get(message.chat.id)
    if not await _guard(message, client):
        return
    try:
        cart = await client.cart.load()
    except StorefrontError as e:
        await message.answer(_failure("Failed to load cart", e))
        return
    await message.answer(cart_text(cart), reply_markup=cart_kb(cart, client.cart.pending))


@router.callback_query(F.data == CB_CART_REFRESH)
async def cb_cart_refresh(callback: CallbackQuery, clients: ShopClients):
    client = clients.get(_callback_chat_id(callback))
    if not await _guard(callback.message, client):
        await callback.answer()
        return
    try:
        await client.cart.load()
    except StorefrontError as e:
        await callback.answer(_failure("Failed to load cart", e), show_alert=True)
        return
    await callback.answer()
    await _edit_cart(callback.message, client)


@router.callback_query(F.data.startswith(f"{CB_CART_INC}:") | F.data.startswith(f"{CB_CART_DEC}:"))
async def cb_cart_quantity(callback: CallbackQuery, bot: Bot, clients: ShopClients, confirmations: ConfirmationBroker):
    chat_id = _callback_chat_id(callback)
    client = clients.get(chat_id)
    if not await _guard(callback.message, client):
        await callback.answer()
        return

    action, item_s = callback.data.rsplit(":", 1)
    item_id = int(item_s)
    item = client.cart.view.find(item_id)
    if item is None:
        await callback.answer("This item is no longer in your cart.", show_alert=True)
        return
    if client.cart.is_pending(item_id):
        await callback.answer("Updating...")
        return

    new_qty = item.quantity + 1 if action == CB_CART_INC else item.quantity - 1
    await callback.answer("Updating...")
    try:
        await client.cart.update_quantity(item_id, new_qty, confirmations.for_chat(bot, chat_id))
    except MutationInProgress:
        # only reachable after a removal prompt; the pre-check above is silent
        await callback.message.answer(BUSY_TEXT)
        return
    except CartRefreshError as e:
        await callback.message.answer(_not_refreshed("Quantity updated", e))
        return
    except StorefrontError as e:
        await callback.message.answer(_failure("Failed to update item quantity", e))
        return
    await _edit_cart(callback.message, client)


@router.callback_query(F.data.startswith(f"{CB_CART_DEL}:"))
async def cb_cart_remove(callback: CallbackQuery, bot: Bot, clients: ShopClients, confirmations: ConfirmationBroker):
    chat_id = _callback_chat_id(callback)
    client = clients.get(chat_id)
    if not await _guard(callback.message, client):
        await callback.answer()
        return

    item_id = int(callback.data.rsplit(":", 1)[1])
    if client.cart.is_pending(item_id):
        await callback.answer("Updating...")
        return
    await callback.answer()
    try:
        removed = await client.cart.remove_item(item_id, confirmations.for_chat(bot, chat_id))
    except MutationInProgress:
        # another change on this item started while the prompt was open
        await callback.message.answer(BUSY_TEXT)
        return
    except CartRefreshError as e:
        await callback.message.answer(_not_refreshed("Item removed", e))
        return
    except StorefrontError as e:
        await callback.message.answer(_failure("Failed to remove item from cart", e))
        return
    if removed:
        await _edit_cart(callback.message, client)


@router.callback_query(F.data.startswith(f"{CB_CONFIRM}:"))
async def cb_confirm(callback: CallbackQuery, confirmations: ConfirmationBroker):
    _, token, answer = callback.data.split(":", 2)
    if not confirmations.resolve(token, answer == "yes"):
        await callback.answer("This question has expired.")
    else:
        await callback.answer()
    if callback.message is not None:
        try:
            await callback.message.delete()
        except TelegramAPIError as e:
            logger.debug("Could not delete confirmation prompt: %s", e)


async def _checkout(message: Message, client: ShopClient) -> None:
    try:
        if not client.cart.view.loaded:
            await client.cart.load()
        order_id = await client.cart.checkout()
    except StorefrontError as e:
        await message.answer(_failure("Checkout failed. Please try again", e))
        return
    if order_id is None:
        await message.answer("✅ Checkout successful! Your order has been created.")
    else:
        await message.answer(f"✅ Checkout successful! Order #{order_id} has been created.")
    await _show_orders(message, client)


@router.message(Command("checkout"))
async def cmd_checkout(message: Message, clients: ShopClients):
    client = clients.get(message.chat.id)
    if not await _guard(message, client):
        return
    await _checkout(message, client)


@router.callback_query(F.data == CB_CART_CHECKOUT)
async def cb_cart_checkout(callback: CallbackQuery, clients: ShopClients):
    client = clients.get(_callback_chat_id(callback))
    await callback.answer()
    if not await _guard(callback.message, client):
        return
    await _checkout(callback.message, client)


# ---------------- orders ----------------

@router.message(Command("orders"))
async def cmd_orders(message: Message, command: CommandObject, clients: ShopClients):
    client = clients.get(message.chat.id)
    if not await _guard(message, client):
        return
    page = 1
    if command.args:
        try:
            page = require_positive_int(command.args, "PAGE")
        except StorefrontError as e:
            await message.answer(f"❌ {escape(e.message)}")
            return
    await _show_orders(message, client, page)


# ---------------- admin ----------------

@router.message(Command("admin"))
async def cmd_admin(message: Message, clients: ShopClients):
    client = clients.get(message.chat.id)
    if not await _guard(message, client, ROLE_ADMIN):
        return
    session = client.store.session
    await message.answer(
        "<b>Admin dashboard</b>\n"
        f"Signed in as {escape(session.email)}\n"
        f"Roles: {escape(', '.join(sorted(session.roles)))}"
    )
