import pytest
from fastapi.testclient import TestClient

from app.core.security import issue_token
from app.core.user import get_user
from app.infra.postgres import db_session
from app.main import app
from app.models.message import Message
from app.realtime.router import EventRouter
from app.services.message_store import MessageStore


@pytest.fixture
def client():
    app.state.event_router = EventRouter(store=MessageStore())
    with TestClient(app) as c:
        yield c


def emit(ws, event, **data):
    ws.send_json({"event": event, "data": data})


def expect(ws, event):
    frame = ws.receive_json()
    assert frame["event"] == event, frame
    return frame["data"]


def test_chat_round_trip(client, make_user):
    make_user("alice")
    make_user("bob")

    with client.websocket_connect("/ws") as bob:
        with client.websocket_connect("/ws") as alice:
            emit(alice, "announce", username="alice")
            assert expect(alice, "presenceChanged") == {"onlineUsernames": ["alice"]}
            assert expect(bob, "presenceChanged") == {"onlineUsernames": ["alice"]}

            emit(bob, "announce", username="bob")
            assert expect(alice, "presenceChanged") == {"onlineUsernames": ["alice", "bob"]}
            assert expect(bob, "presenceChanged") == {"onlineUsernames": ["alice", "bob"]}

            emit(alice, "sendMessage", sender="alice", receiver="bob", text="hi", clientId="c1")
            delivered = expect(bob, "messageReceived")
            echoed = expect(alice, "messageReceived")
            assert delivered["text"] == "hi" and delivered["read"] is False
            assert echoed["id"] == delivered["id"]
            assert echoed["clientId"] == "c1"

            emit(bob, "typing", sender="bob", receiver="alice")
            assert expect(alice, "typing") == {"sender": "bob"}

            emit(bob, "markRead", messageIds=[delivered["id"]], sender="alice", receiver="bob")
            assert expect(alice, "messagesRead") == {"messageIds": [delivered["id"]]}

            with db_session() as db:
                assert db.get(Message, delivered["id"]).read is True
                assert get_user(db, "alice").online is True

        # alice's socket closed; bob learns about it
        assert expect(bob, "presenceChanged") == {"onlineUsernames": ["bob"]}

    with db_session() as db:
        alice = get_user(db, "alice")
        assert alice.online is False
        assert alice.last_seen is not None


def test_garbage_frames_do_not_break_the_connection(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        ws.send_text("[1, 2, 3]")
        ws.send_bytes(b"\x00\x01")
        emit(ws, "sendMessage", sender="alice", receiver="bob", text="   ")
        emit(ws, "deleteMessage", messageId=12345)
        emit(ws, "announce", username="alice")

        # The first frame back is the presence broadcast, nothing before it
        assert expect(ws, "presenceChanged") == {"onlineUsernames": ["alice"]}


def test_socket_token_pins_identity(client, make_user):
    make_user("alice")
    token = issue_token("alice")

    with client.websocket_connect(f"/ws?token={token}") as ws:
        emit(ws, "announce", username="mallory")
        assert expect(ws, "error") == {
            "event": "announce",
            "detail": "Username does not match credentials",
        }

        emit(ws, "announce", username="alice")
        assert expect(ws, "presenceChanged") == {"onlineUsernames": ["alice"]}


def test_rest_message_reaches_live_receiver(client, make_user, auth_headers):
    make_user("alice")

    with client.websocket_connect("/ws") as bob:
        emit(bob, "announce", username="bob")
        expect(bob, "presenceChanged")

        resp = client.post("/api/messages", json={"receiver": "bob", "text": "from rest"},
                           headers=auth_headers("alice"))
        assert resp.status_code == 200

        assert expect(bob, "messageReceived")["id"] == resp.json()["id"]

        client.delete(f"/api/messages/{resp.json()['id']}", headers=auth_headers("alice"))
        assert expect(bob, "messageDeleted") == {"messageId": resp.json()["id"]}
