from typing import AbstractSet, Optional

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup, KeyboardButton, ReplyKeyboardMarkup

from storefront.constants import (
    CB_CART_CHECKOUT,
    CB_CART_DEC,
    CB_CART_DEL,
    CB_CART_INC,
    CB_CART_REFRESH,
    CB_CONFIRM,
)
from storefront.models import Cart


def main_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text="/products"), KeyboardButton(text="/cart")],
            [KeyboardButton(text="/orders"), KeyboardButton(text="/help")],
            [KeyboardButton(text="/logout")],
        ],
        resize_keyboard=True,
    )


def guest_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text="/login"), KeyboardButton(text="/register")],
            [KeyboardButton(text="/products"), KeyboardButton(text="/help")],
        ],
        resize_keyboard=True,
    )


def cart_kb(cart: Cart, pending: AbstractSet[int] = frozenset()) -> Optional[InlineKeyboardMarkup]:
    if cart.is_empty:
        return None
    rows = []
    for item in cart.items:
        qty = "⏳" if item.id in pending else str(item.quantity)
        rows.append(
            [
                InlineKeyboardButton(text="➖", callback_data=f"{CB_CART_DEC}:{item.id}"),
                InlineKeyboardButton(text=f"{qty} × {item.product_name}"[:40], callback_data=CB_CART_REFRESH),
                InlineKeyboardButton(text="➕", callback_data=f"{CB_CART_INC}:{item.id}"),
                InlineKeyboardButton(text="🗑", callback_data=f"{CB_CART_DEL}:{item.id}"),
            ]
        )
    rows.append([InlineKeyboardButton(text="Proceed to checkout ➡️", callback_data=CB_CART_CHECKOUT)])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def confirm_kb(token: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="Yes, remove", callback_data=f"{CB_CONFIRM}:{token}:yes"),
                InlineKeyboardButton(text="No", callback_data=f"{CB_CONFIRM}:{token}:no"),
            ]
        ]
    )
