"""WebSocket chat channel tests — end to end through the ASGI app.

Learn: Starlette's TestClient runs the app (lifespan included) in a
background thread, and each websocket_connect() is a real session
against the /ws/chat route.
"""

import re

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from emporium.realtime import protocol

TIMESTAMP = re.compile(r"\d{2}/\d{2}/\d{4} \d{2}:\d{2}:\d{2}")


@pytest.fixture()
def http(app):
    with TestClient(app) as client:
        yield client


def post(ws, author: str, text: str) -> None:
    ws.send_json({"event": "message", "data": {"author": author, "text": text}})


def test_connect_receives_history_first(http):
    with http.websocket_connect("/ws/chat") as ws:
        assert ws.receive_json() == {
            "event": "messages",
            "data": {"ids": [], "entities": {}},
        }


def test_post_is_broadcast_to_every_client(http):
    with http.websocket_connect("/ws/chat") as alice, http.websocket_connect("/ws/chat") as bob:
        alice.receive_json()
        bob.receive_json()

        post(alice, "alice", "hi")
        to_alice = alice.receive_json()
        to_bob = bob.receive_json()

    assert to_alice == to_bob
    assert to_alice["event"] == "message"
    message = to_alice["data"]
    assert message["author"] == "alice"
    assert message["text"] == "hi"
    assert TIMESTAMP.fullmatch(message["timestamp"])
    assert message["id"]


def test_late_client_gets_earlier_posts_in_history(http):
    with http.websocket_connect("/ws/chat") as alice:
        alice.receive_json()
        post(alice, "alice", "one")
        first = alice.receive_json()["data"]
        post(alice, "alice", "two")
        second = alice.receive_json()["data"]

    with http.websocket_connect("/ws/chat") as carol:
        history = carol.receive_json()

    assert history["event"] == "messages"
    assert history["data"]["ids"] == [first["id"], second["id"]]
    assert history["data"]["entities"][first["id"]] == first


def test_failed_save_is_acknowledged_to_sender(http, store):
    with http.websocket_connect("/ws/chat") as alice:
        alice.receive_json()
        store.fail_writes = True
        post(alice, "alice", "hi")
        reply = alice.receive_json()

    assert reply["event"] == "error"
    assert reply["data"]["code"] == protocol.STORE_UNAVAILABLE
    assert len(store) == 0


def test_history_failure_closes_with_internal_error(http, store):
    store.fail_reads = True
    with http.websocket_connect("/ws/chat") as ws:
        reply = ws.receive_json()
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_json()

    assert reply["event"] == "error"
    assert reply["data"]["code"] == protocol.HISTORY_UNAVAILABLE
    assert exc.value.code == protocol.CLOSE_INTERNAL_ERROR


def test_bad_frames_keep_connection_open(http):
    with http.websocket_connect("/ws/chat") as ws:
        ws.receive_json()
        ws.send_text("not json")
        bad = ws.receive_json()
        ws.send_json({"event": "ping"})
        pong = ws.receive_json()

    assert bad["event"] == "error"
    assert bad["data"]["code"] == protocol.INVALID_MESSAGE
    assert pong == {"event": "pong", "data": {}}


def test_binary_frames_are_decoded_or_rejected_without_closing(http):
    with http.websocket_connect("/ws/chat") as ws:
        ws.receive_json()
        ws.send_bytes(b'{"event": "ping"}')
        pong = ws.receive_json()
        ws.send_bytes(b"\xff\xfe")
        bad = ws.receive_json()
        ws.send_json({"event": "ping"})
        still_open = ws.receive_json()

    assert pong == {"event": "pong", "data": {}}
    assert bad["event"] == "error"
    assert bad["data"]["code"] == protocol.INVALID_MESSAGE
    assert still_open == {"event": "pong", "data": {}}


def test_disconnect_removes_connection(http, app):
    with http.websocket_connect("/ws/chat") as ws:
        ws.receive_json()
        assert http.get("/api/v1/health").json()["chat_connections"] == 1

    # the server side finishes its cleanup after the client is gone
    for _ in range(50):
        if len(app.state.broadcaster) == 0:
            break
        http.get("/api/v1/health")
    assert len(app.state.broadcaster) == 0
