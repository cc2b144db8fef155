import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pytest

from databricks.statement.config import StatementClientConfig
from databricks.statement.transport import HttpTransport


@dataclass
class SentRequest:
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[Dict[str, Any]]


class ScriptedTransport(HttpTransport):
    """
    Transport that replays a fixed list of outcomes and records every request.

    Each outcome is either an exception to raise or a ``(status, payload)``
    pair, where a dict payload is sent JSON encoded.
    """

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requests: List[SentRequest] = []
        self.closed = False

    async def send(self, method, url, headers, body=None):
        self.requests.append(
            SentRequest(method, url, dict(headers), json.loads(body) if body else None)
        )
        if not self.outcomes:
            raise AssertionError("Unexpected request: {} {}".format(method, url))

        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        status, payload = outcome
        if isinstance(payload, (dict, list)):
            payload = json.dumps(payload).encode("utf-8")
        return status, payload

    async def aclose(self):
        self.closed = True


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config():
    return StatementClientConfig(
        workspace_url="https://adb-1234567890.azuredatabricks.net/",
        warehouse_id="warehouse-1",
        poll_interval_seconds=5,
        use_managed_identity=False,
        access_token="dapi-test-token",
    )


@pytest.fixture
def make_transport():
    return ScriptedTransport


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def clock():
    return FakeClock()
