import os

# Settings are read at import time; point everything at throwaway values first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-for-the-chat-backend-suite")
os.environ.setdefault("COOKIE_SECURE", "false")
os.environ.setdefault("COOKIE_SAMESITE", "lax")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client")

import pytest  # noqa: E402
from sqlalchemy.exc import OperationalError  # noqa: E402

from app.core.security import issue_token  # noqa: E402
from app.core.user import upsert_user  # noqa: E402
from app.infra.postgres import Base, db_session, engine  # noqa: E402
from app.models.message import Message  # noqa: E402,F401
from app.models.user import User  # noqa: E402,F401
from app.realtime.router import EventRouter  # noqa: E402
from app.realtime.session import SessionState  # noqa: E402


# -----------------------------
# Database
# -----------------------------

@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user():
    def _make(username, name=None, avatar=None):
        with db_session() as db:
            return upsert_user(db, username, name or username.split("@")[0], avatar)
    return _make


@pytest.fixture
def auth_headers():
    def _headers(username):
        return {"Authorization": f"Bearer {issue_token(username)}"}
    return _headers


# -----------------------------
# Router fakes
# -----------------------------

class FakeSession:
    """Stands in for ConnectionSession; records every frame it is handed."""

    def __init__(self, name="", authenticated_username=None):
        self.name = name
        self.username = None
        self.authenticated_username = authenticated_username
        self.state = SessionState.CONNECTED
        self.sent = []

    def __repr__(self):
        return f"<FakeSession {self.name}>"

    @property
    def is_open(self):
        return self.state is not SessionState.CLOSED

    def bind(self, username):
        self.username = username
        self.state = SessionState.IDENTIFIED

    def mark_closed(self):
        if self.state is SessionState.CLOSED:
            return False
        self.state = SessionState.CLOSED
        return True

    def send(self, event, data):
        if not self.is_open:
            return False
        self.sent.append((event, data))
        return True

    def events(self, name=None):
        return [(e, d) for e, d in self.sent if name is None or e == name]


class FakeStore:
    """In-memory message store with switchable failure."""

    def __init__(self):
        self.messages = {}
        self.online = {}
        self.last_seen = {}
        self.failing = False
        self._next_id = 1

    def _check(self):
        if self.failing:
            raise OperationalError("INSERT", {}, Exception("database is down"))

    def save_message(self, sender, receiver, text):
        self._check()
        message = {
            "id": self._next_id,
            "sender": sender,
            "receiver": receiver,
            "text": text,
            "createdAt": f"2026-01-01T00:00:{self._next_id:02d}+00:00",
            "read": False,
        }
        self.messages[self._next_id] = message
        self._next_id += 1
        return dict(message)

    def get_message(self, message_id):
        self._check()
        message = self.messages.get(message_id)
        return dict(message) if message else None

    def mark_read(self, message_ids):
        self._check()
        updated = 0
        for message_id in message_ids:
            message = self.messages.get(message_id)
            if message and not message["read"]:
                message["read"] = True
                updated += 1
        return updated

    def delete_message(self, message_id):
        self._check()
        return self.messages.pop(message_id, None)

    def set_online(self, username):
        self._check()
        self.online[username] = True
        return True

    def set_offline(self, username, seen_at=None):
        self._check()
        self.online[username] = False
        self.last_seen[username] = seen_at
        return True


async def run_inline(fn, *args):
    return fn(*args)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def router(store):
    return EventRouter(store=store, require_auth=False, run_sync=run_inline)


@pytest.fixture
def connect(router):
    """Open a fake connection registered with the router."""
    def _connect(name="", authenticated_username=None):
        session = FakeSession(name, authenticated_username)
        router.register(session)
        return session
    return _connect
