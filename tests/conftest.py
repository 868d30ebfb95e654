"""Shared fixtures: an in-memory message connection standing in for the server."""

import asyncio
import json

import pytest

from editor_lsp.workspace import Workspace

SERVER_URI = "ws://localhost:3000/lsp"
DOC_URI = "file:///test/doc.py"


class FakeConnection:
    """A ``MessageConnection`` that records outgoing frames.

    ``responders`` maps a request method to the body of the reply, e.g.
    ``{"result": ...}`` or ``{"error": {...}}``.  Replies are delivered on
    the next loop iteration, like a real socket would.
    """

    def __init__(self, responders=None):
        self.sent = []
        self.responders = dict(responders or {})
        self.fail_send = False
        self.closed = False
        self._message_handler = None
        self._close_handler = None

    def on_message(self, handler):
        self._message_handler = handler

    def on_close(self, handler):
        self._close_handler = handler

    async def send(self, message):
        if self.fail_send:
            raise ConnectionResetError("socket is gone")
        frame = json.loads(message)
        self.sent.append(frame)
        method = frame.get("method")
        if "id" in frame and method in self.responders:
            reply = {"jsonrpc": "2.0", "id": frame["id"], **self.responders[method]}
            asyncio.get_running_loop().call_soon(self.receive, reply)

    async def close(self):
        self.closed = True

    def receive(self, message):
        """Deliver ``message`` (a dict or raw text) as if sent by the server."""
        if not isinstance(message, str):
            message = json.dumps(message)
        self._message_handler(message)

    def drop(self):
        """Simulate the server going away."""
        self._close_handler()

    def methods(self):
        return [frame.get("method") for frame in self.sent]

    def requests(self, method):
        return [frame for frame in self.sent if frame.get("method") == method]


def connector(connection):
    """Return a connect callable that hands out ``connection``."""

    async def connect(uri):
        connect.uris.append(uri)
        return connection

    connect.uris = []
    return connect


def initialize_reply(capabilities=None, server_name="fake-server"):
    return {
        "result": {
            "capabilities": capabilities or {},
            "serverInfo": {"name": server_name},
        }
    }


async def settle(rounds=10):
    """Let scheduled callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def make_workspace(connection, capabilities=None, timeout=1.0):
    connection.responders.setdefault("initialize", initialize_reply(capabilities))
    return await Workspace.create(
        SERVER_URI,
        "file:///test",
        None,
        timeout=timeout,
        connect=connector(connection),
    )


@pytest.fixture
def connection():
    return FakeConnection()
