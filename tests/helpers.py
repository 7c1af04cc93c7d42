from fastapi.testclient import TestClient
from aninotion.core.security import get_password_hash
from aninotion.models.user import Role, User, UserStatus

TEST_PASSWORD = "testpassword123"


def create_user(session, role=Role.VIEWER, email=None, status=UserStatus.ACTIVE) -> User:
    user = User(
        email=email or f"{role.value}@example.com",
        name=f"Test {role.value}",
        password_hash=get_password_hash(TEST_PASSWORD),
        role=role,
        status=status
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def login(client, email, password=TEST_PASSWORD) -> TestClient:
    """Return a new client carrying a bearer token for ``email``"""
    response = client.post("/api/users/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    auth_client = TestClient(client.app)
    auth_client.headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    return auth_client
