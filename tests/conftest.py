import os

# Settings are read at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")

import uuid  # noqa: E402
from datetime import date  # noqa: E402
from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import doctrack.models  # noqa: E402,F401
from doctrack.db import Base, SessionLocal, engine, get_db  # noqa: E402
from doctrack.models.document import DocumentPriority  # noqa: E402
from doctrack.models.user import Designation, FileCategory, Role, User  # noqa: E402
from doctrack.schemas.document import DocumentSubmit  # noqa: E402
from doctrack.services.document_workflow import document_workflow  # noqa: E402
from doctrack.services.session import Actor, issue_token  # noqa: E402
from doctrack.tasks.notifications import create_notifications  # noqa: E402
from doctrack.tasks.storage import delete_attachment  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        # Core deletes skip the ledger's append-only mapper events.
        with engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())


@pytest.fixture(autouse=True)
def notify_delay():
    with patch.object(create_notifications, "delay") as mock_delay:
        yield mock_delay


@pytest.fixture(autouse=True)
def storage_delay():
    with patch.object(delete_attachment, "delay") as mock_delay:
        yield mock_delay


@pytest.fixture()
def client(db_session):
    from doctrack.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_designation(db_session):
    def _make(name=None):
        designation = Designation(name=name or f"Dept {uuid.uuid4().hex[:8]}")
        db_session.add(designation)
        db_session.commit()
        db_session.refresh(designation)
        return designation

    return _make


@pytest.fixture()
def make_category(db_session):
    def _make(name=None, designations=()):
        category = FileCategory(name=name or f"Category {uuid.uuid4().hex[:8]}")
        category.designations = list(designations)
        db_session.add(category)
        db_session.commit()
        db_session.refresh(category)
        return category

    return _make


@pytest.fixture()
def make_user(db_session):
    def _make(role=Role.INSTRUCTOR, designation=None, first_name=None, is_active=True):
        user = User(
            first_name=first_name or role.value.title(),
            last_name=uuid.uuid4().hex[:6],
            email=f"{role.value.lower()}-{uuid.uuid4().hex[:8]}@test.edu",
            role=role,
            designation_id=designation.id if designation else None,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def designation(make_designation):
    return make_designation("College of Engineering")


@pytest.fixture()
def category(make_category):
    return make_category("Syllabus")


@pytest.fixture()
def instructor(make_user, designation):
    return make_user(Role.INSTRUCTOR, designation)


@pytest.fixture()
def dean(make_user, designation):
    return make_user(Role.DEAN, designation)


@pytest.fixture()
def vpaa(make_user):
    return make_user(Role.VPAA)


@pytest.fixture()
def vpada(make_user):
    return make_user(Role.VPADA)


@pytest.fixture()
def president(make_user):
    return make_user(Role.PRESIDENT)


@pytest.fixture()
def hr(make_user):
    return make_user(Role.HR)


@pytest.fixture()
def submit(db_session, category):
    def _submit(owner, **overrides):
        data = {
            "attachment": f"https://files.test/documents/{uuid.uuid4().hex}.pdf",
            "file_category_id": category.id,
            "remarks": None,
            "file_date": date(2026, 1, 15),
            "priority": DocumentPriority.MEDIUM,
            "assignatories": [],
        }
        data.update(overrides)
        return document_workflow.submit(
            db_session, Actor.from_user(owner), DocumentSubmit(**data)
        )

    return _submit


@pytest.fixture()
def actor_for():
    return Actor.from_user


@pytest.fixture()
def auth_headers_for():
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {issue_token(user.id)}"}

    return _headers
