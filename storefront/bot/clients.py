from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Awaitable, Callable, Optional

import httpx
from aiogram import Bot
from aiogram.exceptions import TelegramAPIError

from storefront.bot.keyboards import guest_kb
from storefront.constants import MAX_CHAT_CLIENTS, REQUEST_TIMEOUT
from storefront.core.cart import CartController
from storefront.core.gateway import HttpGateway, make_http_client
from storefront.core.guard import AccessGuard
from storefront.core.session import AuthController, SessionStore, SignOutReason
from storefront.db.sqlite import KeyValueStorage, SqliteStorage
from storefront.services.catalog import CatalogService

logger = logging.getLogger(__name__)

Notifier = Callable[[int, SignOutReason], Awaitable[None]]

# REJECTED has no entry: the failed action (usually /login) reports it itself
SIGN_OUT_TEXT = {
    SignOutReason.LOGOUT: "👋 Signed out. Sign in again: /login",
    SignOutReason.EXPIRED: "🔒 Your session has expired. Please sign in again: /login",
}


class ShopClient:
    """Everything one chat needs to talk to the backend as one shopper."""

    def __init__(
        self,
        chat_id: int,
        storage: KeyValueStorage,
        api_url: str,
        timeout: float = REQUEST_TIMEOUT,
        notifier: Optional[Notifier] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.chat_id = chat_id
        self.notifier = notifier
        self.store = SessionStore(storage)
        self.gateway = HttpGateway(api_url, self.store, timeout=timeout, transport=transport, client=http)
        self.auth = AuthController(self.gateway, self.store, on_signed_out=self._signed_out)
        self.guard = AccessGuard(self.store)
        self.cart = CartController(self.gateway)
        self.catalog = CatalogService(self.gateway)
        self.store.rehydrate()

    async def _signed_out(self, reason: SignOutReason) -> None:
        if self.notifier is not None:
            await self.notifier(self.chat_id, reason)

    async def aclose(self) -> None:
        await self.gateway.aclose()


class ShopClients:
    """Per-chat clients over one shared HTTP connection pool.

    At most ``max_clients`` are kept. The least recently used idle ones are
    dropped first; their session lives on in storage and is rehydrated when
    the chat comes back. Clients with a cart mutation in flight are kept.
    """

    def __init__(
        self,
        api_url: str,
        db_path: str,
        timeout: float = REQUEST_TIMEOUT,
        notifier: Optional[Notifier] = None,
        storage_factory: Optional[Callable[[int], KeyValueStorage]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_clients: int = MAX_CHAT_CLIENTS,
    ):
        self.api_url = api_url
        self.db_path = db_path
        self.notifier = notifier
        self.storage_factory = storage_factory or (lambda chat_id: SqliteStorage(db_path, str(chat_id)))
        self.max_clients = max_clients
        self._http = make_http_client(api_url, timeout, transport)
        self._clients: "OrderedDict[int, ShopClient]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._clients)

    def get(self, chat_id: int) -> ShopClient:
        client = self._clients.get(chat_id)
        if client is not None:
            self._clients.move_to_end(chat_id)
            return client

        client = ShopClient(
            chat_id,
            self.storage_factory(chat_id),
            self.api_url,
            notifier=self.notifier,
            http=self._http,
        )
        self._clients[chat_id] = client
        self._evict()
        return client

    def _evict(self) -> None:
        excess = len(self._clients) - self.max_clients
        if excess <= 0:
            return
        # the newest entry is the client being handed out
        for chat_id in list(self._clients)[:-1]:
            if excess <= 0:
                break
            if self._clients[chat_id].cart.busy:
                continue
            del self._clients[chat_id]
            excess -= 1
            logger.debug("Dropped idle client for chat %s", chat_id)

    async def aclose(self) -> None:
        self._clients.clear()
        await self._http.aclose()


def sign_out_notifier(bot: Bot) -> Notifier:
    """Sends the chat back to the sign-in entry point."""

    async def notify(chat_id: int, reason: SignOutReason) -> None:
        text = SIGN_OUT_TEXT.get(reason)
        if text is None:
            return
        try:
            await bot.send_message(chat_id, text, reply_markup=guest_kb())
        except TelegramAPIError as e:
            logger.warning("Could not notify chat %s about %s: %s", chat_id, reason.value, e)

    return notify
