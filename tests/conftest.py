"""Shared fakes for ruleset validation tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from ruleset_validation.governance import CommandFailed, ServiceCoordinates

OPENAPI_DOC = '{"openapi": "3.0.1", "info": {"title": "Orders", "version": "v1"}, "paths": {}}'


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeGovernanceClient:
    """Records management calls and answers REST calls from a responder.

    `failures` maps a method name to the exception it raises.
    `responder(method, url)` supplies authenticated_json_call results.
    """

    def __init__(
        self,
        responder: Callable[[str, str], Any] | None = None,
        failures: dict[str, Exception] | None = None,
    ) -> None:
        self.coordinates = ServiceCoordinates("sub-1", "rg-1", "apic-1")
        self.responder = responder or (lambda method, url: None)
        self.failures = failures or {}
        self.calls: list[tuple] = []
        self.json_calls: list[tuple[str, str]] = []

    def _record(self, name: str, *args: Any) -> str:
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]
        return "{}"

    def create_api(self, api_id: str, title: str) -> str:
        return self._record("create_api", api_id)

    def create_version(self, api_id: str, version_id: str, lifecycle_stage: str) -> str:
        return self._record("create_version", api_id, version_id, lifecycle_stage)

    def create_definition(self, api_id: str, version_id: str, definition_id: str) -> str:
        return self._record("create_definition", api_id, version_id, definition_id)

    def import_specification(
        self,
        api_id: str,
        version_id: str,
        definition_id: str,
        content: str,
    ) -> str:
        return self._record("import_specification", api_id, version_id, definition_id, content)

    def delete_api(self, api_id: str) -> str:
        return self._record("delete_api", api_id)

    def authenticated_json_call(self, method: str, url: str, body: Any = None) -> Any:
        self.json_calls.append((method, url))
        return self.responder(method, url)

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


def command_failed(name: str = "az apic api create") -> CommandFailed:
    return CommandFailed(name, "ERROR: (Conflict) already exists", 1)


def serve_document_at(matching_url: str, body: str = OPENAPI_DOC) -> tuple[httpx.Client, list]:
    """Build an httpx client that serves a document at one URL and 404 elsewhere."""
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if str(request.url) == matching_url:
            return httpx.Response(200, text=body)
        return httpx.Response(404, text="not found")

    return httpx.Client(transport=httpx.MockTransport(handler)), requested


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def coordinates() -> ServiceCoordinates:
    return ServiceCoordinates("sub-1", "rg-1", "apic-1")
