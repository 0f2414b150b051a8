import os
import tempfile
import uuid
from pathlib import Path

import pytest

# Point the app at a throwaway SQLite file before any test module imports it.
_DB_DIR = Path(tempfile.mkdtemp(prefix="quizcraft-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ.pop("SMTP_HOST", None)

from fastapi.testclient import TestClient  # noqa: E402

from quizcraft.main import app  # noqa: E402


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


def _register(client, role: str) -> dict:
    email = f"{role.lower()}-{uuid.uuid4().hex[:8]}@example.com"
    r = client.post('/auth/register', json={'name': f'{role.title()} User', 'email': email, 'password': 'Secret123', 'role': role})
    assert r.status_code == 201, r.text
    data = r.json()['data']
    return {'user': data['user'], 'headers': {'Authorization': f"Bearer {data['token']}"}}


@pytest.fixture
def tutor(client):
    """A freshly registered tutor: `{'user': ..., 'headers': ...}`."""
    return _register(client, 'TUTOR')


@pytest.fixture
def other_tutor(client):
    return _register(client, 'TUTOR')


@pytest.fixture
def student(client):
    return _register(client, 'STUDENT')


@pytest.fixture
def sample_exam(client, tutor):
    """Exam with one 10-point multiple-choice question (correct "B") and one 5-point essay."""
    payload = {
        'title': 'Sample exam',
        'description': 'Two questions',
        'timeLimit': 30,
        'questions': [
            {'type': 'MULTIPLE_CHOICE', 'question': 'Pick B', 'options': ['A', 'B', 'C', 'D'], 'correctAnswer': 'B', 'points': 10},
            {'type': 'ESSAY', 'question': 'Explain yourself', 'points': 5},
        ],
    }
    r = client.post('/exams', json=payload, headers=tutor['headers'])
    assert r.status_code == 201, r.text
    return r.json()['data']['exam']
