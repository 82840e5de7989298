import pytest
from fastapi.testclient import TestClient

from app import create_app
from event_router import EventRouter
from registry import RoomRegistry


class RecordingHub:
    """Stands in for ConnectionHub: records every frame instead of writing to sockets."""

    def __init__(self, connection_ids=()):
        self.connections = list(connection_ids)
        self.sent = []

    def connect(self, connection_id):
        self.connections.append(connection_id)

    def disconnect(self, connection_id):
        self.connections.remove(connection_id)

    def connection_ids(self):
        return list(self.connections)

    def send(self, targets, event, data=None):
        count = 0
        for connection_id in targets:
            if connection_id in self.connections:
                self.sent.append((connection_id, event, data))
                count += 1
        return count

    def send_to(self, connection_id, event, data=None):
        return self.send([connection_id], event, data) == 1

    def broadcast(self, event, data=None):
        return self.send(self.connection_ids(), event, data)

    def received(self, connection_id, event=None):
        return [
            (sent_event, data)
            for target, sent_event, data in self.sent
            if target == connection_id and (event is None or sent_event == event)
        ]

    def events_for(self, connection_id):
        return [sent_event for sent_event, _ in self.received(connection_id)]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def registry():
    return RoomRegistry(default_max_players=20)


@pytest.fixture
def hub():
    return RecordingHub(["alice", "bob", "carol", "dave"])


@pytest.fixture
def router(registry, hub):
    return EventRouter(registry, hub)


@pytest.fixture
def client():
    with TestClient(create_app()) as test_client:
        yield test_client
