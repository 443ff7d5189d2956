import asyncio

import httpx
import pytest

from conftest import BASE_URL, SESSION_BODY
from storefront.bot.clients import SIGN_OUT_TEXT, ShopClients, sign_out_notifier
from storefront.bot.confirm import ConfirmationBroker
from storefront.core.session import SignOutReason
from storefront.db.sqlite import MemoryStorage
from storefront.errors import AuthenticationError


class FakeBot:
    def __init__(self):
        self.sent = []

    async def send_message(self, chat_id, text, reply_markup=None):
        self.sent.append((chat_id, text, reply_markup))


class TestConfirmationBroker:
    def test_yes_answer(self):
        bot = FakeBot()
        broker = ConfirmationBroker(timeout=5)

        async def scenario():
            asking = asyncio.create_task(broker.for_chat(bot, 3)("Remove?"))
            while not bot.sent:
                await asyncio.sleep(0)
            token = bot.sent[0][2].inline_keyboard[0][0].callback_data.split(":")[1]
            assert broker.resolve(token, True)
            return await asking

        assert asyncio.run(scenario()) is True
        assert bot.sent[0][:2] == (3, "Remove?")

    def test_unanswered_prompt_counts_as_no(self):
        broker = ConfirmationBroker(timeout=0.01)
        assert asyncio.run(broker.ask(FakeBot(), 3, "Remove?")) is False

    def test_unknown_token(self):
        assert ConfirmationBroker().resolve("missing", True) is False


class TestShopClients:
    def _clients(self, backend, notified, storages):
        async def notifier(chat_id, reason):
            notified.append((chat_id, reason))

        return ShopClients(
            api_url=BASE_URL,
            db_path=":memory:",
            notifier=notifier,
            storage_factory=lambda chat_id: storages.setdefault(chat_id, MemoryStorage()),
            transport=httpx.MockTransport(backend.handler),
        )

    def test_one_client_per_chat(self, backend):
        clients = self._clients(backend, [], {})
        assert clients.get(1) is clients.get(1)
        assert clients.get(1) is not clients.get(2)
        asyncio.run(clients.aclose())

    def test_sessions_are_per_chat_and_rehydrated(self, backend):
        storages = {}
        backend.on("POST", "/auth/login", SESSION_BODY)
        clients = self._clients(backend, [], storages)
        asyncio.run(clients.get(1).auth.login("ana@example.com", "secret1"))
        asyncio.run(clients.aclose())

        restarted = self._clients(backend, [], storages)

        assert restarted.get(1).store.is_authenticated()
        assert not restarted.get(2).store.is_authenticated()
        asyncio.run(restarted.aclose())

    def test_expiry_notifies_the_right_chat(self, backend):
        notified = []
        backend.on("POST", "/auth/login", SESSION_BODY)
        backend.on("GET", "/cart", httpx.Response(401))
        clients = self._clients(backend, notified, {})
        asyncio.run(clients.get(8).auth.login("ana@example.com", "secret1"))

        with pytest.raises(AuthenticationError):
            asyncio.run(clients.get(8).cart.load())

        assert notified == [(8, SignOutReason.EXPIRED)]
        assert SignOutReason.EXPIRED in SIGN_OUT_TEXT
        asyncio.run(clients.aclose())

    def test_clients_share_one_http_pool(self, backend):
        clients = self._clients(backend, [], {})
        assert clients.get(1).gateway._client is clients.get(2).gateway._client
        http = clients.get(1).gateway._client

        asyncio.run(clients.get(1).aclose())
        assert not http.is_closed

        asyncio.run(clients.aclose())
        assert http.is_closed

    def test_least_recently_used_idle_client_is_dropped(self, backend):
        clients = self._clients(backend, [], {})
        clients.max_clients = 2
        first = clients.get(1)
        clients.get(2)
        clients.get(1)
        clients.get(3)

        assert len(clients) == 2
        assert clients.get(1) is first
        asyncio.run(clients.aclose())

    def test_busy_client_is_kept(self, backend):
        clients = self._clients(backend, [], {})
        clients.max_clients = 1
        busy = clients.get(1)
        busy.cart._pending.add(5)

        clients.get(2)

        assert clients.get(1) is busy
        asyncio.run(clients.aclose())


class TestSignOutNotifier:
    def test_expiry_prompts_sign_in(self):
        bot = FakeBot()
        asyncio.run(sign_out_notifier(bot)(4, SignOutReason.EXPIRED))
        assert bot.sent[0][:2] == (4, SIGN_OUT_TEXT[SignOutReason.EXPIRED])

    def test_failed_login_sends_no_extra_prompt(self):
        bot = FakeBot()
        asyncio.run(sign_out_notifier(bot)(4, SignOutReason.REJECTED))
        assert bot.sent == []
