import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
import pytest

from mission_control.models import Session
from storage.auth_client import SIGNED_OUT, AuthEvents
from storage.store_client import SINGLE_OBJECT, StoreClient
from storage.task_repository import TaskRepository


class FakeProvider:
    def __init__(self, response_text: Optional[str] = None, error: Optional[Exception] = None):
        self._response_text = response_text
        self._error = error
        self.calls = []

    def describe(self, *, prompt: str, image_url: str) -> dict:
        self.calls.append({"prompt": prompt, "image_url": image_url})
        if self._error is not None:
            raise self._error
        return {"choices": [{"index": 0, "message": {"role": "assistant", "content": self._response_text}}]}


class FakeStore:
    """In-memory stand-in for the PostgREST todos endpoint."""

    def __init__(self):
        self.rows = []
        self.requests = []
        self.fail_titles = set()
        self.error_code: Optional[str] = None
        self._clock = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def _error(self, status: int, code: str, message: str) -> httpx.Response:
        return httpx.Response(status, json={"code": code, "message": message, "details": None, "hint": None})

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error_code is not None:
            return self._error(404, self.error_code, "relation \"public.todos\" does not exist")

        params = request.url.params
        single = request.headers.get("accept") == SINGLE_OBJECT
        row_id = params.get("id", "").removeprefix("eq.") or None

        if request.method == "GET":
            rows = [r for r in self.rows if row_id is None or r["id"] == row_id]
            if params.get("order") == "created_at.desc":
                rows = sorted(rows, key=lambda r: r["created_at"], reverse=True)
            if "limit" in params:
                rows = rows[: int(params["limit"])]
            return httpx.Response(200, json=rows)

        if request.method == "POST":
            body = json.loads(request.content)
            if body.get("title") in self.fail_titles:
                return self._error(400, "23514", "simulated insert failure")
            self._clock += timedelta(seconds=1)
            row = {
                "id": str(uuid.uuid4()),
                "created_at": self._clock.isoformat(),
                "completed": False,
                "user_id": None,
                "priority": "medium",
                "due_date": None,
                "description": None,
            }
            row.update(body)
            self.rows.append(row)
            return httpx.Response(201, json=row if single else [row])

        matched = [r for r in self.rows if r["id"] == row_id]
        if not matched:
            return self._error(406, "PGRST116", "JSON object requested, multiple (or no) rows returned")
        row = matched[0]

        if request.method == "PATCH":
            row.update(json.loads(request.content))
            return httpx.Response(200, json=row)

        if request.method == "DELETE":
            self.rows.remove(row)
            return httpx.Response(200, json=row)

        return httpx.Response(405)

    @property
    def inserts(self) -> int:
        return sum(1 for r in self.requests if r.method == "POST")


class FakeAuthClient:
    def __init__(self, sessions: Optional[dict] = None, error: Optional[Exception] = None):
        self.sessions = sessions or {}
        self.error = error
        self.events = AuthEvents()
        self.lookups = 0

    async def get_session(self, access_token):
        self.lookups += 1
        if self.error is not None:
            raise self.error
        return self.sessions.get(access_token)

    async def sign_out(self, session):
        self.sessions.pop(session.access_token, None)
        self.events.emit(SIGNED_OUT, session)


@pytest.fixture
def fake_provider_factory():
    def _make(response_text: Optional[str] = None, error: Optional[Exception] = None):
        return FakeProvider(response_text, error)
    return _make


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def store_client(fake_store):
    http = httpx.AsyncClient(transport=httpx.MockTransport(fake_store.handle))
    return StoreClient(base_url="http://store.test", api_key="anon-key", http=http)


@pytest.fixture
def repository(store_client):
    return TaskRepository(store_client.with_token("user-token"), owner_id="user-1")


@pytest.fixture
def session():
    return Session(access_token="user-token", user_id="user-1", email="pilot@example.com")


@pytest.fixture
def fake_auth(session):
    return FakeAuthClient({session.access_token: session})


@pytest.fixture
def auth_factory():
    return FakeAuthClient
