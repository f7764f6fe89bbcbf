"""Shared fixtures: a scripted fake CRM client and circuit breaker isolation."""

import asyncio
import os

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from scripts.lib.circuit_breaker import CircuitBreaker


class FakeCRMClient:
    """
    Stands in for SolarCRMClient.

    Each response is either a body to return, an exception to raise, or a
    callable producing one of those. Missing entries raise ConnectionError.
    """

    def __init__(self, responses=None, delays=None):
        self.responses = dict(responses or {})
        self.delays = dict(delays or {})
        self.calls = []

    async def _answer(self, name, **params):
        self.calls.append((name, params))
        if name in self.delays:
            await asyncio.sleep(self.delays[name])
        if name not in self.responses:
            raise ConnectionError(f"{name} unavailable")
        response = self.responses[name]
        if callable(response) and not isinstance(response, type):
            response = response()
        if isinstance(response, BaseException) or (
            isinstance(response, type) and issubclass(response, BaseException)
        ):
            raise response
        return response

    async def get_customers(self, **params):
        return await self._answer("customers", **params)

    async def get_proposals(self, **params):
        return await self._answer("proposals", **params)

    async def get_projects(self, **params):
        return await self._answer("projects", **params)

    async def get_leads(self, **params):
        return await self._answer("leads", **params)

    async def get_dashboard_summary(self):
        return await self._answer("summary")

    def called(self, name):
        return [params for call, params in self.calls if call == name]


@pytest.fixture(autouse=True)
def _reset_circuit_breakers():
    CircuitBreaker.reset_all()
    yield
    CircuitBreaker.reset_all()


@pytest.fixture
def fake_client_factory():
    return FakeCRMClient
