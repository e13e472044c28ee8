import os
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from studesq.core.config import MOCK_MODE, OAUTH_MODE, AuthSettings  # noqa: E402
from studesq.database import Base  # noqa: E402
from studesq.models import ParentLink, StudentProfile, User, UserRole  # noqa: E402
from studesq.repository import SqlAlchemyDataAccess  # noqa: E402


class FakeRequest:
    def __init__(self, cookies=None):
        self.cookies = cookies or {}


@pytest.fixture
def make_request():
    return FakeRequest


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def data_access(db):
    return SqlAlchemyDataAccess(db)


@pytest.fixture
def mock_settings():
    return AuthSettings(mode=MOCK_MODE, session_secret='test-secret')


@pytest.fixture
def oauth_settings():
    return AuthSettings(
        mode=OAUTH_MODE,
        session_secret='test-secret',
        oidc_discovery_url='https://idp.example.com/.well-known/openid-configuration',
        oidc_client_id='client-id',
        oidc_client_secret='client-secret',
    )


@pytest.fixture
def portfolio(db):
    """Two students, a parent verified for the first student only, and an admin."""
    student = User(id='u1', email='a@x.com', name='A', role=UserRole.STUDENT)
    other_student = User(id='u2', email='b@x.com', name='B', role=UserRole.STUDENT)
    parent = User(id='p1', email='parent@x.com', name='P', role=UserRole.PARENT)
    admin = User(id='admin1', email='admin@x.com', name='Admin', role=UserRole.ADMIN)
    db.add_all([student, other_student, parent, admin])
    db.flush()

    profile = StudentProfile(id='s1', user_id='u1', display_name='A', school='Lincoln High School')
    other_profile = StudentProfile(id='s2', user_id='u2', display_name='B')
    db.add_all([profile, other_profile])
    db.flush()

    link = ParentLink(parent_user_id='p1', student_id='s1', verified=True)
    db.add(link)
    db.commit()

    return SimpleNamespace(
        student=student,
        other_student=other_student,
        parent=parent,
        admin=admin,
        profile=profile,
        other_profile=other_profile,
        link=link,
    )


@pytest.fixture
def make_client(db):
    """TestClient bound to the test database and the given auth settings."""
    from fastapi.testclient import TestClient

    from studesq.auth.dependencies import get_auth_settings
    from studesq.database import get_db
    from studesq.main import app

    def _override_get_db():
        yield db

    def _make(settings):
        app.dependency_overrides[get_db] = _override_get_db
        app.dependency_overrides[get_auth_settings] = lambda: settings
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def session_cookie(mock_settings):
    from studesq.auth import jwt_handler

    def _cookie(user):
        claims = {'userId': user.id, 'email': user.email, 'name': user.name, 'role': UserRole(user.role).value}
        token = jwt_handler.create_session_token(claims, mock_settings.session_secret, mock_settings.session_max_age)
        return {mock_settings.session_cookie_name: token}

    return _cookie
