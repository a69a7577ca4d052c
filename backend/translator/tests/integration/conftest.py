"""Shared fixtures for translator integration tests."""

from __future__ import annotations

import contextlib
import json

import pytest
from starlette.testclient import TestClient

from translator.server.app import create_app


def sse_events(body: str) -> list[dict]:
    """Decode a text/event-stream body into its JSON payloads."""
    events = []
    for block in body.split("\n\n"):
        if block.startswith("data: "):
            events.append(json.loads(block[len("data: ") :]))
    return events


@pytest.fixture
def make_client(server_settings, auth_settings, fake_provider):
    """Build a started TestClient; keyword overrides are passed to create_app().

    Each client runs its lifespan on one event loop until the test ends.
    """
    with contextlib.ExitStack() as stack:

        def factory(**overrides) -> TestClient:  # noqa: ANN003
            kwargs = {"settings": server_settings, "auth_settings": auth_settings, "provider": fake_provider}
            kwargs.update(overrides)
            return stack.enter_context(TestClient(create_app(**kwargs)))

        yield factory


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def login(api_key):
    """Log in through the API and return the bearer headers."""

    def do_login(client: TestClient, username: str = "mara") -> dict[str, str]:
        response = client.post(
            "/auth/login",
            json={"username": username, "password": f"{username}-password", "upstreamCredential": api_key},
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return do_login


@pytest.fixture
def parse_sse():
    return sse_events
