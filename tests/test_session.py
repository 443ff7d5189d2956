import asyncio
import json

import httpx
import pytest

from conftest import SESSION_BODY, body_of
from storefront.core.session import PasswordStrength, SessionStore, SignOutReason, password_strength
from storefront.db.sqlite import MemoryStorage
from storefront.errors import ApiError, AuthenticationError, ValidationError
from storefront.models import Session


class TestLogin:
    def test_login_writes_token_and_profile_together(self, client, backend, storage):
        backend.on("POST", "/auth/login", SESSION_BODY)

        session = asyncio.run(client.auth.login("ana@example.com", "secret1"))

        assert body_of(backend.requests[0]) == {"email": "ana@example.com", "password": "secret1"}
        assert session.token == "tok-123"
        assert session.roles == frozenset({"Customer"})
        assert client.store.session == session
        assert storage.get("token") == "tok-123"
        assert json.loads(storage.get("user")) == {
            "id": 7,
            "email": "ana@example.com",
            "fullName": "Ana Diaz",
            "roles": ["Customer"],
        }

    def test_login_accepts_enveloped_response(self, client, backend):
        backend.on("POST", "/auth/login", {"success": True, "message": "ok", "data": SESSION_BODY})

        session = asyncio.run(client.auth.login("ana@example.com", "secret1"))

        assert session.user_id == 7

    def test_response_without_token_is_rejected(self, client, backend, storage):
        backend.on("POST", "/auth/login", {"success": False, "message": "nope"})

        with pytest.raises(ApiError):
            asyncio.run(client.auth.login("ana@example.com", "secret1"))

        assert not client.store.is_authenticated()
        assert storage.data == {}

    def test_wrong_credentials_stay_unauthenticated(self, client, backend, sign_outs):
        backend.on("POST", "/auth/login", httpx.Response(401, json={"message": "Invalid credentials"}))

        with pytest.raises(AuthenticationError):
            asyncio.run(client.auth.login("ana@example.com", "wrong"))

        assert not client.store.is_authenticated()
        assert sign_outs == [(1, SignOutReason.REJECTED)]


class TestRegister:
    def test_register_posts_without_confirmation(self, client, backend):
        backend.on("POST", "/auth/register", SESSION_BODY)

        asyncio.run(client.auth.register("Ana Diaz", "ana@example.com", "secret1", "secret1"))

        assert body_of(backend.requests[0]) == {
            "fullName": "Ana Diaz",
            "email": "ana@example.com",
            "password": "secret1",
        }
        assert client.store.is_authenticated()

    def test_password_mismatch_never_reaches_network(self, client, backend):
        with pytest.raises(ValidationError, match="do not match"):
            asyncio.run(client.auth.register("Ana", "ana@example.com", "secret1", "secret2"))
        assert backend.requests == []

    def test_short_password_never_reaches_network(self, client, backend):
        with pytest.raises(ValidationError, match="at least 6"):
            asyncio.run(client.auth.register("Ana", "ana@example.com", "abc", "abc"))
        assert backend.requests == []
        assert not client.store.is_authenticated()


class TestLogout:
    def test_logout_erases_everything(self, signed_in, storage, sign_outs, backend):
        asyncio.run(signed_in.auth.logout())

        assert not signed_in.store.is_authenticated()
        assert signed_in.store.token is None
        assert storage.data == {}
        assert sign_outs == [(1, SignOutReason.LOGOUT)]
        assert backend.requests == []

    def test_state_follows_last_terminal_transition(self, client, backend):
        backend.on("POST", "/auth/login", SESSION_BODY)
        backend.on("GET", "/cart", httpx.Response(401))

        asyncio.run(client.auth.login("ana@example.com", "secret1"))
        assert client.store.is_authenticated()
        asyncio.run(client.auth.logout())
        assert not client.store.is_authenticated()
        asyncio.run(client.auth.login("ana@example.com", "secret1"))
        assert client.store.is_authenticated()
        with pytest.raises(AuthenticationError):
            asyncio.run(client.cart.load())
        assert not client.store.is_authenticated()


class TestSessionStore:
    def test_reads_do_not_touch_network(self, signed_in, backend):
        assert signed_in.store.is_authenticated()
        assert signed_in.store.has_role("Customer")
        assert not signed_in.store.has_role("Admin")
        assert backend.requests == []

    def test_has_role_when_signed_out(self):
        store = SessionStore(MemoryStorage())
        assert not store.is_authenticated()
        assert not store.has_role("Customer")

    def test_rehydrates_from_storage(self):
        storage = MemoryStorage(
            {
                "token": "tok-9",
                "user": json.dumps({"id": 3, "email": "b@x.io", "fullName": "Bo", "roles": ["Admin"]}),
            }
        )
        store = SessionStore(storage)

        session = store.rehydrate()

        assert session == Session(user_id=3, email="b@x.io", full_name="Bo", roles=frozenset({"Admin"}), token="tok-9")
        assert store.has_role("Admin")

    def test_half_written_session_is_discarded(self):
        storage = MemoryStorage({"user": json.dumps({"id": 3, "email": "b@x.io", "fullName": "Bo", "roles": []})})
        store = SessionStore(storage)

        assert store.rehydrate() is None
        assert not store.is_authenticated()
        assert storage.data == {}

    def test_corrupt_profile_is_discarded(self):
        storage = MemoryStorage({"token": "tok-9", "user": "{not json"})
        store = SessionStore(storage)

        assert store.rehydrate() is None
        assert storage.data == {}

    def test_empty_token_is_never_written(self):
        store = SessionStore(MemoryStorage())
        with pytest.raises(ValueError):
            store._write(Session(user_id=1, email="", full_name="", roles=frozenset(), token=""))
        assert not store.is_authenticated()


@pytest.mark.parametrize(
    "password, expected",
    [
        ("", PasswordStrength.WEAK),
        ("abcde", PasswordStrength.WEAK),
        ("abcdef", PasswordStrength.FAIR),
        ("Abc1!xy", PasswordStrength.FAIR),
        ("abcdefgh", PasswordStrength.GOOD),
        ("Abcdefg1", PasswordStrength.GOOD),
        ("Abcdef1!", PasswordStrength.STRONG),
    ],
)
def test_password_strength(password, expected):
    assert password_strength(password) is expected
