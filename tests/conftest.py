import asyncio

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from learnify.ai.auth_utils import create_access_token
from learnify.database import create_indexes, get_db
from learnify.main import app


@pytest.fixture
async def db():
    database = AsyncMongoMockClient()["learnify_test"]
    await create_indexes(database)
    return database


@pytest.fixture
def client(db):
    # No `with`: startup would build indexes against a real MongoDB
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_headers():
    def _headers(user_id="student-1", role="student", name=None):
        return {"x-auth-token": create_access_token(user_id, role, name)}
    return _headers


@pytest.fixture
def admin_headers(make_headers):
    return make_headers("admin-1", "admin", "Admin")


@pytest.fixture
def student_headers(make_headers):
    return make_headers("student-1", "student", "Budi")


@pytest.fixture
def module_payload():
    def _payload(course_id, title="Module", order=None, sub_modules=0, quiz=None):
        payload = {
            "course_id": course_id,
            "title": title,
            "description": f"{title} description",
            "content": f"{title} content",
            "sub_modules": [{"title": f"{title} part {i + 1}"} for i in range(sub_modules)],
        }
        if order is not None:
            payload["order"] = order
        if quiz is not None:
            payload["quiz"] = quiz
        return payload
    return _payload


@pytest.fixture
def two_question_quiz():
    return {
        "title": "Check",
        "passing_score": 70,
        "questions": [
            {
                "question": "2 + 2?",
                "options": [{"text": "3"}, {"text": "4", "is_correct": True}],
                "points": 10,
            },
            {
                "question": "Capital of Indonesia?",
                "options": [{"text": "Jakarta", "is_correct": True}, {"text": "Bandung"}],
                "points": 10,
            },
        ],
    }


@pytest.fixture
def hold_first_call(monkeypatch):
    """Suspend the first `method` call on a collection until `release` is set"""
    def _hold(db, collection_name, method):
        cls = type(db.get_collection(collection_name))
        original = getattr(cls, method)
        reached, release = asyncio.Event(), asyncio.Event()

        async def held(self, *args, **kwargs):
            if self.name == collection_name and not reached.is_set():
                reached.set()
                await release.wait()
            return await original(self, *args, **kwargs)

        monkeypatch.setattr(cls, method, held)
        return reached, release
    return _hold
