from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.cache import QueryCache
from app.db.base import Base
from app.db.session import get_db
from app.models.question import Question
from app.models.subscription import Subscription
from app.models.user import User
from app.repositories.question_repository import QuestionRepository
from main import app

ALICE_TOKEN = "alice-token"
BOB_TOKEN = "bob-token"
ADMIN_TOKEN = "admin-token"


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_question(db, title, difficulty="EASY", topics=(), companies=(), frequency=None, acceptance_rate=None):
    question = Question(
        title=title,
        difficulty=difficulty,
        frequency=frequency,
        acceptance_rate=acceptance_rate,
        topics_csv=QuestionRepository.join_tags(topics),
        companies_csv=QuestionRepository.join_tags(companies),
    )
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def query_cache(clock):
    return QueryCache(default_ttl=300, clock=clock)


@pytest.fixture
def users(db_session):
    alice = User(email="alice@example.com", name="Alice", role="USER", api_token=ALICE_TOKEN)
    bob = User(email="bob@example.com", name="Bob", role="USER", api_token=BOB_TOKEN)
    admin = User(email="admin@example.com", name="Admin", role="ADMIN", api_token=ADMIN_TOKEN)
    db_session.add_all([alice, bob, admin])
    db_session.commit()
    db_session.add(
        Subscription(
            user_id=bob.id,
            plan="PREMIUM",
            status="ACTIVE",
            end_date=datetime.utcnow() + timedelta(days=30),
        )
    )
    db_session.commit()
    return {"alice": alice, "bob": bob, "admin": admin}


@pytest.fixture
def questions(db_session):
    seeded = [
        make_question(db_session, "Two Sum", "EASY", ["Array", "Hash Table"], ["Google", "Amazon"], frequency=100),
        make_question(db_session, "Add Two Numbers", "MEDIUM", ["Linked List", "Math"], ["Amazon"]),
        make_question(db_session, "Median of Two Sorted Arrays", "HARD", ["Array", "Binary Search"], ["Google"]),
    ]
    for index in range(27):
        seeded.append(make_question(db_session, f"Practice Problem {index:02d}", "MEDIUM", ["Arrays"], ["Meta"]))
    return seeded


@pytest.fixture
def api_app(session_factory, query_cache):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    previous_cache = app.state.query_cache
    app.dependency_overrides[get_db] = override_get_db
    app.state.query_cache = query_cache
    yield app
    app.dependency_overrides.clear()
    app.state.query_cache = previous_cache


@pytest.fixture
def client(api_app):
    return TestClient(api_app)
