"""
Tests for the WebSocket room manager
"""

import asyncio
import json

from clubhub.api.ws import WebSocketManager


class FakeSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


def test_notify_reaches_only_the_event_room():
    manager = WebSocketManager()
    watcher, other = FakeSocket(), FakeSocket()

    async def scenario():
        await manager.connect(watcher, "evt-1")
        await manager.connect(other, "evt-2")
        await manager.notify("evt-1", "registration", {"participant_id": "alice"})

    asyncio.run(scenario())

    assert watcher.accepted
    assert len(watcher.sent) == 1
    assert watcher.sent[0]["type"] == "registration"
    assert watcher.sent[0]["data"] == {"participant_id": "alice"}
    assert other.sent == []


def test_broken_sockets_are_dropped():
    manager = WebSocketManager()
    healthy, broken = FakeSocket(), FakeSocket(fail=True)

    async def scenario():
        await manager.connect(healthy, "evt-1")
        await manager.connect(broken, "evt-1")
        await manager.notify("evt-1", "attendance", {"removed": "bob"})

    asyncio.run(scenario())

    assert manager.get_connection_count("evt-1") == 1
    assert healthy.sent[0]["data"] == {"removed": "bob"}


def test_notify_without_listeners_is_silent():
    manager = WebSocketManager()
    asyncio.run(manager.notify("nobody", "status", {"status": "completed"}))
    assert manager.get_connection_count("nobody") == 0
