"""Shared fixtures for provider tests: a scripted httpx transport."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

FIXED_TIME = 1700000000.0


class ScriptedApi:
    """Answer provider calls by action name and record every request.

    ``responses`` maps an action to a response, a list of responses
    (consumed in order), or a callable taking the request.
    """

    def __init__(self, action_of: Callable[[httpx.Request], str]) -> None:
        self._action_of = action_of
        self.responses: dict[str, object] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        action = self._action_of(request)
        entry = self.responses[action]
        if isinstance(entry, list):
            entry = entry.pop(0)
        if callable(entry):
            return entry(request)
        return entry

    def actions(self) -> list[str]:
        return [self._action_of(r) for r in self.requests]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def json_response(data: dict, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=data)


def request_json(request: httpx.Request) -> dict:
    return json.loads(request.content.decode("utf-8"))


@pytest.fixture()
def tencent_api() -> ScriptedApi:
    return ScriptedApi(lambda r: r.headers["X-TC-Action"])


@pytest.fixture()
def aliyun_api() -> ScriptedApi:
    return ScriptedApi(lambda r: r.headers["x-acs-action"])
