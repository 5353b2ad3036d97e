import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from main import app


@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    db = mongomock.MongoClient()["surveyapp_test"]
    monkeypatch.setattr(database, "db", db)
    yield db


@pytest.fixture
def client():
    return TestClient(app)


def sample_questions():
    return [
        {"id": "q1", "type": "multiple-choice", "question": "Favourite colour?", "options": ["red", "blue"], "required": True},
        {"id": "q2", "type": "rating", "question": "Rate us"},
        {"id": "q3", "type": "text", "question": "Anything else?"},
    ]


def create_survey(client, title="Customer feedback", is_active=True, **extra):
    body = {"title": title, "questions": sample_questions(), "isActive": is_active, **extra}
    resp = client.post("/api/surveys", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def submit_response(client, survey_id, answers=None):
    resp = client.post("/api/responses", json={"surveyId": survey_id, "answers": answers or {"q1": "red"}})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]
