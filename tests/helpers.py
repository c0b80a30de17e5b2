import json
from datetime import datetime, timedelta

from jose.utils import base64url_encode

TEST_SECRET = "test-signing-secret-0123456789abcdef"
TEST_PASSWORD = "TestPassword123!"


class FakeClock:
    """Controllable replacement for utc_now."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def segment(data: dict) -> str:
    return base64url_encode(json.dumps(data).encode()).decode()


def swap_payload(token: str, claims: dict) -> str:
    """Replace a JWT's claims while keeping its original header and signature."""
    header, _, signature = token.split(".")
    return f"{header}.{segment(claims)}.{signature}"


async def login(client, email: str, password: str = TEST_PASSWORD) -> dict:
    """Log in and return the token JSON, leaving the cookie jar empty."""
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    client.cookies.clear()
    return response.json()
