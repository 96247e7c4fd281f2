import mongomock
import pytest
from fastapi.testclient import TestClient

from database import Database
from main import app


class FakeCompletion:
    def __init__(self, text="Put 50% in index funds."):
        self.text = text
        self.calls = []

    def generate(self, prompt, system_instructions):
        self.calls.append((prompt, system_instructions))
        return self.text


@pytest.fixture
def db():
    database = Database("mongodb://test", "finance_test", client=mongomock.MongoClient())
    database.ensure_indexes()
    return database


@pytest.fixture
def fake_completion():
    return FakeCompletion()


@pytest.fixture
def app_state():
    saved = (app.state.database, app.state.completion)
    yield app.state
    app.state.database, app.state.completion = saved


@pytest.fixture
def client(db, app_state):
    app_state.database = db
    app_state.completion = None
    return TestClient(app)


@pytest.fixture
def ai_client(db, app_state, fake_completion):
    app_state.database = db
    app_state.completion = fake_completion
    return TestClient(app)
