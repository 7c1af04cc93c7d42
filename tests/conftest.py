import os

# select the test database before the app resolves its engine
os.environ["APP_ENV"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from aninotion.main import app
from aninotion.db.database import Base, get_session, make_engine, SQLITE_TEST_DB
from aninotion.models import category as _category, comment as _comment, post as _post, post_tag as _post_tag  # noqa: F401
from aninotion.models.category import Category
from aninotion.models.user import Role, UserStatus
from tests.helpers import create_user, login

test_engine = make_engine(SQLITE_TEST_DB)
TestSessionLocal = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture(autouse=True)
def clean_db():
    """Drop and recreate every table around each test"""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def session(clean_db):
    """Session for arranging and inspecting rows directly"""
    db = TestSessionLocal()
    yield db
    db.close()


@pytest.fixture
def client(clean_db):
    """Test client bound to the test database"""
    test_session = TestSessionLocal()

    def override_get_session():
        try:
            yield test_session
        finally:
            test_session.close()

    app.dependency_overrides[get_session] = override_get_session

    client = TestClient(app)
    yield client

    test_session.close()
    app.dependency_overrides.clear()


@pytest.fixture
def user_factory(session):
    def factory(role=Role.VIEWER, email=None, status=UserStatus.ACTIVE):
        return create_user(session, role=role, email=email, status=status)
    return factory


@pytest.fixture
def admin(user_factory):
    return user_factory(Role.ADMIN)


@pytest.fixture
def editor(user_factory):
    return user_factory(Role.EDITOR)


@pytest.fixture
def admin_client(client, admin):
    return login(client, admin.email)


@pytest.fixture
def editor_client(client, editor):
    return login(client, editor.email)


@pytest.fixture
def viewer_client(client, user_factory):
    return login(client, user_factory(Role.VIEWER).email)


@pytest.fixture
def paid_client(client, user_factory):
    return login(client, user_factory(Role.PAID).email)


@pytest.fixture
def category_factory(session):
    def factory(name="Action", is_hidden=False, min_role=None, is_default=False):
        category = Category(
            name=name,
            slug=name.lower().replace(" ", "-"),
            is_hidden=is_hidden,
            min_role=min_role,
            is_default=is_default
        )
        session.add(category)
        session.commit()
        session.refresh(category)
        return category
    return factory


@pytest.fixture
def category(category_factory):
    return category_factory()
