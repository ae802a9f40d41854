import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ["LOCATIONS"] = "brickell,wynwood"
os.environ["OPENAI_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import Base, get_db
from app.main import app
from app.services.llm import get_insights_model, get_sentiment_classifier
from app.services.notifications import get_notifier
from tests.factories import add_question
from tests.fakes import FakeModel, RecordingNotifier

ADMIN_HEADERS = {"X-Authenticated-User": "admin@example.com"}


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def model():
    return FakeModel()


@pytest.fixture
def client(db, notifier, model):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_insights_model] = lambda: model
    app.dependency_overrides[get_sentiment_classifier] = lambda: None

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def admin(client):
    client.headers.update(ADMIN_HEADERS)
    return client


@pytest.fixture
def questions(db):
    return {
        "food": add_question(db, "food_quality", "single_choice", ["Excellent", "Good", "Fair", "Poor"], 1),
        "nps": add_question(db, "recommend", "scale_0_10", sort_order=2),
        "improve": add_question(db, "improvement", "free_text", sort_order=3),
    }
