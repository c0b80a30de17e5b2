import pytest
from datetime import datetime, timezone
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session
from typing import Generator

import models  # noqa: F401  registers tables on Base.metadata
from main import create_app
from core.config import load_settings
from core.database import Base, build_engine, build_session_factory
from models.users import User
from services.access_tokens import AccessTokenCodec
from services.refresh_token_store import RefreshTokenStore
from services.session_issuer import SessionIssuer
from utils.hashing import get_password_hash

from tests.helpers import TEST_PASSWORD, TEST_SECRET, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings(tmp_path):
    """
    Settings for a file-backed SQLite database unique to each test.
    File-backed so several threads can open their own connections.
    """
    return load_settings(
        ENV="testing",
        JWT_SECRET=TEST_SECRET,
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        LOG_DIR=str(tmp_path / "logs"),
    )


@pytest.fixture
def engine(settings):
    engine = build_engine(settings)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def codec(clock) -> AccessTokenCodec:
    return AccessTokenCodec(TEST_SECRET, clock=clock)


@pytest.fixture
def store(session, clock) -> RefreshTokenStore:
    return RefreshTokenStore(session, clock=clock)


@pytest.fixture
def issuer(settings, store, codec) -> SessionIssuer:
    return SessionIssuer(settings, store, codec)


@pytest.fixture
def verified_user(session) -> User:
    user = User(
        email="session_user@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        is_active=True
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def app(settings, clock, engine):
    # ASGITransport does not run lifespan, tables come from the engine fixture
    app = create_app(settings, clock=clock)
    yield app
    app.state.engine.dispose()


@pytest.fixture
async def client(app):
    """
    HTTP client talking to the app in-process.

    The client keeps cookies between requests like a browser; tests that
    send tokens in the body clear them first.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

