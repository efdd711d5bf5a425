import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret')

from tutorhub.auth.jwt_handler import create_identity_token  # noqa: E402
from tutorhub.database import Base, get_db  # noqa: E402
from tutorhub.main import app  # noqa: E402
from tutorhub.models.admin import Admin  # noqa: E402
from tutorhub.models.study_session import StudySession  # noqa: E402
from tutorhub.models.tutor_application import TutorApplication  # noqa: E402
from tutorhub.models.user import User  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield testing_session_local
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def bearer(email: str, name: str | None = None) -> dict[str, str]:
    return {'Authorization': f'Bearer {create_identity_token(email, name=name)}'}


@pytest.fixture
def auth():
    return bearer


@pytest.fixture
def seed(session_factory):
    """Persist records and hand back detached copies with their generated ids."""
    def _seed(*records):
        with session_factory() as db:
            db.add_all(records)
            db.commit()
            for record in records:
                db.refresh(record)
                db.expunge(record)
        return records[0] if len(records) == 1 else records

    return _seed


@pytest.fixture
def make_user(seed):
    def _make_user(email: str, name: str | None = None, role: str = 'student') -> User:
        return seed(User(email=email, name=name or email.split('@')[0], role=role))

    return _make_user


@pytest.fixture
def make_admin(seed, make_user):
    def _make_admin(email: str) -> Admin:
        make_user(email, role='admin')
        return seed(Admin(email=email))

    return _make_admin


@pytest.fixture
def make_tutor(seed, make_user):
    def _make_tutor(email: str, status: str = 'approved') -> TutorApplication:
        make_user(email, role='tutor' if status == 'approved' else 'student')
        return seed(TutorApplication(email=email, name=email.split('@')[0], status=status))

    return _make_tutor


@pytest.fixture
def make_session(seed):
    def _make_session(tutor_email: str, status: str = 'approved', fee: float = 0) -> StudySession:
        return seed(StudySession(
            tutor_email=tutor_email,
            title='Algebra basics',
            status=status,
            registration_fee=fee,
        ))

    return _make_session
