from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")
os.environ.setdefault("JWT_SECRET", "test-secret")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.core.exceptions import EmailDeliveryError  # noqa: E402
from app.core.rate_limit import FixedWindowRateLimiter, InMemoryCounterStore  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import build_engine, get_db  # noqa: E402
from app.main import create_app  # noqa: E402
from app.services.email import OutboundEmail  # noqa: E402

import app.models  # noqa: E402,F401


class RecordingEmailSender:
    def __init__(self) -> None:
        self.sent: list[OutboundEmail] = []
        self.fail = False

    def send(self, message: OutboundEmail) -> None:
        if self.fail:
            raise EmailDeliveryError("smtp unavailable")
        self.sent.append(message)

    def last_token(self) -> str:
        link_line = next(line for line in self.sent[-1].text.splitlines() if "?token=" in line)
        return link_line.rsplit("?token=", 1)[1].strip()


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture()
def api(session_factory, email_sender):
    application = create_app(
        email_sender=email_sender,
        rate_limiter=FixedWindowRateLimiter(InMemoryCounterStore()),
    )

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = _get_db
    return application


@pytest.fixture()
def client(api):
    with TestClient(api) as test_client:
        yield test_client
