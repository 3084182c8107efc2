import os
import tempfile

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUDIT_LOG_DIR", tempfile.mkdtemp(prefix="lendcircle-audit-"))

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lendcircle.db.base import get_db
from lendcircle.models import Base
from lendcircle.models.profile import ProfileRole
from lendcircle.services.auth import create_access_token_for_user
from lendcircle.services.member import create_member


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
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
def admin(db):
    return create_member(
        db,
        email="admin@circle.org",
        password="admin-pass",
        full_name="Circle Admin",
        role=ProfileRole.ADMIN,
        member_code="A-001",
    )


@pytest.fixture
def member(db):
    return create_member(
        db,
        email="asha@circle.org",
        password="member-pass",
        full_name="Asha Patel",
        phone="+91 98765 43210",
        member_code="V-001",
        monthly_subscription=Decimal("2100"),
    )


@pytest.fixture
def second_member(db):
    return create_member(
        db,
        email="ravi@circle.org",
        password="member-pass",
        full_name="Ravi Kumar",
        member_code="V-002",
    )


@pytest.fixture
def client(session_factory):
    from lendcircle.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_access_token_for_user(admin)}"}


@pytest.fixture
def member_headers(member):
    return {"Authorization": f"Bearer {create_access_token_for_user(member)}"}
