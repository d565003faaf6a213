"""Shared fixtures.

The seeded course is the reference example used across the suite:

    Section A (id 10): chapters 11 (video), 12 (text), 13 (other) + quiz 101
    Section B (id 20): chapters 21 (text), 22 (video), no quiz
    Section C (id 30): no chapters, no quiz

Total items = 3 + 1 + 2 = 6.
"""

import os

# Must be set before learnpath.core.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = ""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from learnpath.core.database import Base, get_db, get_session_factory
from learnpath.core.dependencies import get_current_learner
from learnpath.models import Course, Section, Chapter, Quiz, User, Enrollment, ContentKind
from learnpath.services.content_tree import ChapterNode, ContentTree, SectionNode
from learnpath.services.completion_recorder import CompletionRecorder


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    import learnpath.models  # noqa: F401 - registers all tables
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def seeded(db):
    """Seeds learners, the example course and an enrollment for the first learner."""
    learner = User(id=1, firebase_uid="uid-learner", email="learner@example.com", full_name="Enrolled Learner")
    outsider = User(id=2, firebase_uid="uid-outsider", email="outsider@example.com", full_name="Not Enrolled")
    course = Course(id=1, title="Intro to Testing")
    empty_course = Course(id=2, title="Coming Soon")
    db.add_all([learner, outsider, course, empty_course])
    db.flush()

    # Inserted out of order; effective order is (order_index, id)
    db.add_all([
        Section(id=20, course_id=1, title="Section B", order_index=2),
        Section(id=10, course_id=1, title="Section A", order_index=1),
        Section(id=30, course_id=1, title="Section C", order_index=3),
    ])
    db.flush()
    db.add_all([
        Chapter(id=13, section_id=10, title="Wrap-up", content_type=ContentKind.OTHER, order_index=3),
        Chapter(id=11, section_id=10, title="Welcome video", content_type=ContentKind.VIDEO, order_index=1),
        Chapter(id=12, section_id=10, title="Reading", content_type=ContentKind.TEXT, order_index=2),
        Chapter(id=22, section_id=20, title="Demo", content_type=ContentKind.VIDEO, order_index=1),
        Chapter(id=21, section_id=20, title="Notes", content_type=ContentKind.TEXT, order_index=1),
        Quiz(id=101, section_id=10, title="Section A Quiz"),
    ])
    db.add_all([
        Enrollment(learner_id=1, course_id=1),
        Enrollment(learner_id=1, course_id=2),
    ])
    db.commit()
    return SimpleNamespace(
        learner_id=1,
        outsider_id=2,
        course_id=1,
        empty_course_id=2,
        section_a=10,
        section_b=20,
        section_c=30,
        quiz_a=101,
        chapters_a=[11, 12, 13],
        chapters_b=[21, 22],
    )


@pytest.fixture()
def recorder(session_factory, seeded):
    return CompletionRecorder(session_factory)


@pytest.fixture()
def example_tree() -> ContentTree:
    """In-memory tree with the same shape as the seeded course."""
    return ContentTree(
        course_id=1,
        title="Intro to Testing",
        sections=(
            SectionNode(
                id=10, title="Section A", order_index=1, quiz_id=101,
                chapters=(
                    ChapterNode(11, 10, "Welcome video", ContentKind.VIDEO, 1),
                    ChapterNode(12, 10, "Reading", ContentKind.TEXT, 2),
                    ChapterNode(13, 10, "Wrap-up", ContentKind.OTHER, 3),
                ),
            ),
            SectionNode(
                id=20, title="Section B", order_index=2,
                chapters=(
                    ChapterNode(21, 20, "Notes", ContentKind.TEXT, 1),
                    ChapterNode(22, 20, "Demo", ContentKind.VIDEO, 1),
                ),
            ),
            SectionNode(id=30, title="Section C", order_index=3),
        ),
    )


@pytest.fixture()
def learner_id_holder():
    """Mutable holder so a test can switch the authenticated learner."""
    return SimpleNamespace(learner_id=1)


@pytest.fixture()
def client(session_factory, seeded, learner_id_holder):
    from learnpath.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _current_learner():
        session = session_factory()
        try:
            learner = session.get(User, learner_id_holder.learner_id)
            session.expunge(learner)
            return learner
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_current_learner] = _current_learner
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
