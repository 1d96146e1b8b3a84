from __future__ import annotations

import asyncio

import httpx

from predictnow.auth.access_gate import AccessGate, roster_identities
from predictnow.tests.mocks.fake_service import ROSTER_URL


def _gate(fake_service, user_id: str = "alice@example.com", **kwargs) -> AccessGate:
    kwargs.setdefault("roster_url", ROSTER_URL)
    return AccessGate(user_id, transport=fake_service.transport(), **kwargs)


def test_roster_identities_accepts_common_layouts() -> None:
    assert roster_identities("Alice@Example.com\nbob@example.com") == {"alice@example.com", "bob@example.com"}
    assert roster_identities('["alice@example.com", "bob@example.com"]') == {"alice@example.com", "bob@example.com"}
    assert roster_identities("alice@example.com,bob@example.com") == {"alice@example.com", "bob@example.com"}
    assert roster_identities("") == set()


def test_open_mode_only_needs_an_identity(fake_service) -> None:
    gate = _gate(fake_service, verify=False)

    assert asyncio.run(gate.is_open())
    assert fake_service.requests == []


def test_blank_identity_is_denied(fake_service) -> None:
    gate = _gate(fake_service, user_id="   ", verify=False)

    assert not asyncio.run(gate.is_open())
    assert gate.denial_message == "Access denied: user identification is blank"


def test_listed_identity_is_allowed_case_insensitively(fake_service) -> None:
    gate = _gate(fake_service, user_id="Bob@Example.com")

    assert asyncio.run(gate.is_open())
    assert gate.decided


def test_unlisted_identity_is_denied(fake_service) -> None:
    gate = _gate(fake_service, user_id="mallory@example.com")

    assert not asyncio.run(gate.is_open())
    assert gate.denial_message == "Access denied: mallory@example.com is not a registered user"


def test_roster_fetch_failure_denies(fake_service) -> None:
    fake_service.override("users.txt", httpx.Response(503, text="maintenance"))
    gate = _gate(fake_service)

    assert not asyncio.run(gate.is_open())
    assert "roster could not be fetched" in gate.denial_message


def test_missing_roster_url_denies(fake_service) -> None:
    gate = _gate(fake_service, roster_url="")

    assert not asyncio.run(gate.is_open())
    assert gate.denial_message == "Access denied: roster URL is not configured"
    assert fake_service.requests == []


def test_decision_is_made_once(fake_service) -> None:
    gate = _gate(fake_service)

    async def scenario():
        return await asyncio.gather(*(gate.is_open() for _ in range(5)))

    assert asyncio.run(scenario()) == [True] * 5
    assert asyncio.run(gate.is_open())
    assert fake_service.hits["roster.test/users.txt"] == 1


def test_closed_gate_never_opens(fake_service) -> None:
    gate = AccessGate.closed("CPO URL is not configured")

    assert gate.decided
    assert not asyncio.run(gate.is_open())
    assert gate.denial_message == "Access denied: CPO URL is not configured"
