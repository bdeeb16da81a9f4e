import json
import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="study-planner-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_db_dir, "test_planner.db")
os.environ.setdefault("GROQ_API_KEY", "test-key")

from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from langchain_core.language_models.fake_chat_models import FakeListChatModel

import controller.study_plans as plans_controller
from core.setup import Base, database
from main import app
from service.planner import PlannerAI, get_planner


def make_schedule(start: str, days: int, prefix: str = "Study") -> list:
    """Build a raw generator schedule with one task per day."""
    first = date.fromisoformat(start)
    return [
        {
            "date": (first + timedelta(days=i)).isoformat(),
            "task": f"{prefix} day {i + 1}",
            "youtubeSearchQuery": f"{prefix} lesson {i + 1}",
        }
        for i in range(days)
    ]


def schedule_reply(items: list, summary: str = "A balanced plan.", key: str = "schedule") -> str:
    return json.dumps({key: items, "summary": summary})


@pytest.fixture(autouse=True)
def reset_db():
    """Provide empty tables for every test."""
    engine = database.get_engine
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def no_cache(monkeypatch):
    cache = MagicMock()
    cache.get_json.return_value = None
    monkeypatch.setattr(plans_controller, "redis_instance", cache)
    return cache


@pytest.fixture
def planner():
    return PlannerAI(llm=FakeListChatModel(responses=["not json"]))


@pytest.fixture
def script_llm(planner):
    """Queue the replies the fake language model returns next, in order."""
    def _script(*replies):
        planner.llm.responses = list(replies)
        planner.llm.i = 0
    return _script


@pytest.fixture
def client(planner):
    app.dependency_overrides[get_planner] = lambda: planner
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
