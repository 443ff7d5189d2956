"""Shared fixtures: a scripted fake backend and a shopper client wired to it."""

import asyncio
import json

import httpx
import pytest

from storefront.bot.clients import ShopClient
from storefront.db.sqlite import MemoryStorage

BASE_URL = "http://shop.test"

SESSION_BODY = {
    "token": "tok-123",
    "userId": 7,
    "email": "ana@example.com",
    "fullName": "Ana Diaz",
    "roles": ["Customer"],
}


def cart_body(*items, item_count=None, total=None):
    return {
        "items": list(items),
        "itemCount": item_count if item_count is not None else sum(i["quantity"] for i in items),
        "totalPrice": total if total is not None else sum(i["subtotal"] for i in items),
    }


def cart_item(item_id, quantity=1, unit_price=10.0, subtotal=None, product_id=None, name="Gauze pads"):
    return {
        "id": item_id,
        "productId": product_id or item_id * 100,
        "productName": name,
        "unitPrice": unit_price,
        "quantity": quantity,
        "subtotal": subtotal if subtotal is not None else unit_price * quantity,
        "imageUrl": None,
    }


class FakeBackend:
    """MockTransport handler answering from per-route queues.

    A queued answer may be a dict/list (JSON 200), an ``httpx.Response``, an
    exception instance (raised), or a callable taking the request (sync or
    async). The last answer of a route is reused once the queue runs dry.
    """

    def __init__(self):
        self.requests = []
        self.routes = {}

    def on(self, method, path, *answers):
        self.routes.setdefault((method, path), []).extend(answers)
        return self

    def calls(self, method=None, path=None):
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]

    def handler(self, request):
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": f"no route {request.method} {request.url.path}"})
        answer = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(request)
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)


def body_of(request):
    return json.loads(request.content) if request.content else None


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def sign_outs():
    return []


@pytest.fixture
def client(backend, storage, sign_outs):
    async def notifier(chat_id, reason):
        sign_outs.append((chat_id, reason))

    c = ShopClient(1, storage, BASE_URL, notifier=notifier, transport=httpx.MockTransport(backend.handler))
    yield c
    asyncio.run(c.aclose())


@pytest.fixture
def signed_in(client, backend):
    backend.on("POST", "/auth/login", SESSION_BODY)
    asyncio.run(client.auth.login("ana@example.com", "secret1"))
    backend.requests.clear()
    return client


async def always_yes(prompt):
    return True


async def always_no(prompt):
    return False
