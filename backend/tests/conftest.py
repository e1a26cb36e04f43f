from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from cargo_tracker.auth.google import InvalidTokenError, MalformedTokenError
from cargo_tracker.core.config import Settings
from cargo_tracker.main import create_app
from cargo_tracker.models.user import User
from cargo_tracker.services.users import create_user
from cargo_tracker.store.memory import MemoryDocumentStore

TEST_CLIENT_ID = "test-client-id.apps.googleusercontent.com"
MALFORMED_TOKEN = "not-a-jwt"


class FakeTokenVerifier:
    """
    Stands in for GoogleTokenVerifier in route tests.

    Tokens are plain strings registered with ``issue``; anything else is
    rejected the way a bad signature would be.
    """

    def __init__(self) -> None:
        self.tokens: dict[str, dict] = {}

    def issue(self, sub: str) -> str:
        token = f"token-{sub}"
        self.tokens[token] = {"sub": sub, "aud": TEST_CLIENT_ID, "iss": "https://accounts.google.com"}
        return token

    def verify(self, token: str) -> dict:
        if token == MALFORMED_TOKEN:
            raise MalformedTokenError("Invalid token header")
        if token not in self.tokens:
            raise InvalidTokenError("Unknown test token")
        return self.tokens[token]


@pytest.fixture()
def settings():
    return Settings(
        OAUTH_CLIENT_ID=TEST_CLIENT_ID,
        OAUTH_CLIENT_SECRET="test-client-secret",
        BOATS_PAGE_SIZE=5,
        LOADS_PAGE_SIZE=3,
    )


@pytest.fixture()
def store():
    # Fresh in-memory store per test; nothing leaks between tests.
    return MemoryDocumentStore()


@pytest.fixture()
def verifier():
    return FakeTokenVerifier()


@pytest.fixture()
def app(settings, store, verifier):
    return create_app(settings=settings, store=store, token_verifier=verifier)


@pytest.fixture()
def users(store):
    """
    Two registered users for ownership / isolation tests.
    """
    user_a = create_user(store, User(sub="u1", firstName="Ada", lastName="Lovelace"))
    user_b = create_user(store, User(sub="u2", firstName="Grace", lastName="Hopper"))
    return user_a, user_b


@pytest.fixture()
def client_for(app, verifier):
    """
    Build a client that sends a bearer token for ``sub`` (or no token at all).

    Usage:
        c = client_for("u2")
    """

    def _client_for(sub: str | None) -> TestClient:
        c = TestClient(app)
        if sub is not None:
            c.headers["Authorization"] = f"Bearer {verifier.issue(sub)}"
        return c

    return _client_for


@pytest.fixture()
def client(client_for, users):
    """
    Default client authenticated as registered user u1.
    """
    return client_for("u1")


@pytest.fixture()
def other_client(client_for, users):
    return client_for("u2")


@pytest.fixture()
def unregistered_client(client_for, users):
    """Valid token, but the subject never signed up."""
    return client_for("u3")


@pytest.fixture()
def anon_client(client_for):
    return client_for(None)


SEA_WITCH = {"name": "Sea Witch", "type": "Catamaran", "length": 28}
LOAD_BODY = {"volume": 5, "content": "LEGO Blocks", "creation_date": "10/18/2021"}


@pytest.fixture()
def create_boat(client):
    def _create(body: dict | None = None, c: TestClient | None = None) -> dict:
        res = (c or client).post("/boats", json=body or SEA_WITCH)
        assert res.status_code == 201, res.text
        return res.json()

    return _create


@pytest.fixture()
def create_load(client):
    def _create(body: dict | None = None, c: TestClient | None = None) -> dict:
        res = (c or client).post("/loads", json=body or LOAD_BODY)
        assert res.status_code == 201, res.text
        return res.json()

    return _create
