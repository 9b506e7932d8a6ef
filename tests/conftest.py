import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.deps import get_db
from app.core.security import hash_password
from app.db.base import Base
from app.main import app
from app.models.clone import Clone
from app.models.discussion import Discussion, DiscussionMessage, DiscussionReadState
from app.models.school import School
from app.models.user import User
from app.services import clone_status

TEST_DB_FILE = "test_clone_lab.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"
PASSWORD = "password123"

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# bcrypt is slow on purpose; hash the shared test password once
HASHED_PASSWORD = hash_password(PASSWORD)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture(autouse=True)
def seed():
    """
    Seed a clean dataset for each test:
    two schools, a director, one instructor and one student per school,
    an unassigned research clone and an available practice clone.
    """
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        db.query(DiscussionReadState).delete()
        db.query(DiscussionMessage).delete()
        db.query(Discussion).delete()
        db.query(Clone).delete()
        db.query(User).delete()
        db.query(School).delete()
        db.commit()

        lincoln = School(name="Lincoln High")
        other = School(name="Other Academy")
        db.add_all([lincoln, other])
        db.commit()

        def make_user(email, name, role, school):
            return User(
                email=email,
                full_name=name,
                role=role,
                school_id=school.id if school else None,
                hashed_password=HASHED_PASSWORD,
            )

        users = {
            "director": make_user("director@program.edu", "Program Director", "director", None),
            "instructor": make_user("instructor@lincoln.edu", "Sarah Johnson", "instructor", lincoln),
            "student": make_user("student@lincoln.edu", "John Smith", "student", lincoln),
            "other_instructor": make_user("instructor@other.edu", "Other Instructor", "instructor", other),
            "other_student": make_user("student@other.edu", "Other Student", "student", other),
        }
        db.add_all(users.values())
        db.commit()

        research = Clone(clone_name="pGEM-T 101", kind="research", status=clone_status.UNASSIGNED)
        practice = Clone(clone_name="Practice Clone 1", kind="practice", status=clone_status.AVAILABLE)
        db.add_all([research, practice])
        db.commit()

        ids = {key: u.id for key, u in users.items()}
        ids["school"] = lincoln.id
        ids["other_school"] = other.id
        ids["clone"] = research.id
        ids["practice_clone"] = practice.id

        yield ids
    finally:
        db.close()


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def users(db, seed):
    """Seeded users loaded in the test's own session, keyed like `seed`."""
    keys = ("director", "instructor", "student", "other_instructor", "other_student")
    return {key: db.get(User, seed[key]) for key in keys}


@pytest.fixture()
def client():
    """Test client that uses the test DB session via dependency override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def login(client, email: str, password: str = PASSWORD) -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
