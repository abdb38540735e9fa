"""Shared fixtures for the clearauth test suite."""

import asyncio
import json

import pytest

from clearauth.config import AuthConfig
from clearauth.crypto.signer import EthAccountSigner
from clearauth.protocol.errors import ConnectionLostError
from clearauth.protocol.events import Closed

TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TEST_WALLET = "0x" + "a" * 39 + "1"
FIXED_NOW = 1_700_000_000


def res_frame(method, params, request_id=1, ts=FIXED_NOW):
    """Build an inbound frame in the node's response shape."""
    return json.dumps({"res": [request_id, method, params, ts], "sig": []})


class FakeConnection:
    """In-memory connection: records sent frames, replays queued events."""

    def __init__(self, fail_send=False):
        self.sent = []
        self.connected_to = None
        self.closed = False
        self.fail_send = fail_send
        self._events = asyncio.Queue()

    async def connect(self, endpoint):
        self.connected_to = endpoint

    async def send(self, data):
        if self.fail_send:
            raise ConnectionLostError("socket gone")
        self.sent.append(data)

    def push(self, event):
        self._events.put_nowait(event)

    async def events(self):
        while True:
            event = await self._events.get()
            yield event
            if isinstance(event, Closed):
                return

    async def close(self):
        self.closed = True


@pytest.fixture
def signer():
    return EthAccountSigner(TEST_PRIVATE_KEY)


@pytest.fixture
def config():
    return AuthConfig.build(
        wallet_address=TEST_WALLET,
        private_key=TEST_PRIVATE_KEY,
        endpoint="wss://node.example/ws",
    )


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def clock():
    return lambda: float(FIXED_NOW)
