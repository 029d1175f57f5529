import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.pop("STRIPE_SECRET_KEY", None)
os.environ.pop("SMTP_HOST", None)

from datetime import date, timedelta

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from camphub.core.rate_limit import limiter
from camphub.core.security import create_access_token, get_password_hash
from camphub.db.database import Base, get_db
from camphub import models  # noqa: F401
from camphub.models.base import utcnow
from camphub.models.camp import Camp, CampStatus, Addon
from camphub.models.registration import (
    Athlete, ParentProfile, Registration, RegistrationStatus, PaymentStatus
)
from camphub.models.tenant import Tenant, LicenseStatus
from camphub.models.user import User, UserRole
from camphub.services import email_service

PASSWORD = "secret-password"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def outbox(monkeypatch):
    """Captures every notification instead of talking to SMTP"""
    sent = []

    async def fake_send(db, *, tenant_id, to_email, subject, body, html=True):
        sent.append({"tenant_id": tenant_id, "to": to_email, "subject": subject, "body": body})
        return True

    monkeypatch.setattr(email_service, "send_email_for_tenant", fake_send)
    return sent


@pytest_asyncio.fixture
async def tenant(db):
    tenant = Tenant(
        name="Acme Camps",
        slug="acme",
        contact_email="owner@acme-camps.com",
        license_status=LicenseStatus.ACTIVE,
        royalty_rate=0.08,
        tax_rate_percent=0,
    )
    db.add(tenant)
    await db.commit()
    return tenant


@pytest_asyncio.fixture
async def other_tenant(db):
    tenant = Tenant(name="Other Camps", slug="other", license_status=LicenseStatus.ACTIVE)
    db.add(tenant)
    await db.commit()
    return tenant


@pytest.fixture
def make_user(db):
    async def _make(email: str, role: UserRole, tenant_id=None, **kwargs) -> User:
        user = User(
            email=email,
            first_name=kwargs.pop("first_name", "Test"),
            last_name=kwargs.pop("last_name", "User"),
            hashed_password=get_password_hash(PASSWORD),
            role=role,
            tenant_id=tenant_id,
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        db.add(user)
        await db.commit()
        return user
    return _make


@pytest.fixture
def make_camp(db):
    async def _make(tenant_id: str, **overrides) -> Camp:
        today = utcnow().date()
        values = dict(
            tenant_id=tenant_id,
            name="Summer Blast",
            slug="summer-blast",
            start_date=today + timedelta(days=30),
            end_date=today + timedelta(days=34),
            capacity=10,
            price_cents=20000,
            status=CampStatus.REGISTRATION_OPEN,
            min_age=5,
            max_age=14,
        )
        values.update(overrides)
        camp = Camp(**values)
        db.add(camp)
        await db.commit()
        return camp
    return _make


@pytest.fixture
def make_addon(db):
    async def _make(tenant_id: str, **overrides) -> Addon:
        values = dict(tenant_id=tenant_id, name="Camp T-Shirt", price_cents=2500, max_quantity=3, is_active=True)
        values.update(overrides)
        addon = Addon(**values)
        db.add(addon)
        await db.commit()
        return addon
    return _make


@pytest.fixture
def make_registration(db):
    """Confirmed, paid registration for a new athlete"""
    counter = {"n": 0}

    async def _make(camp: Camp, **overrides) -> Registration:
        counter["n"] += 1
        n = counter["n"]
        parent = ParentProfile(email=f"parent{n}@example.com", first_name="Pat", last_name=f"Parent{n}")
        db.add(parent)
        await db.flush()
        athlete = Athlete(
            parent_id=parent.id,
            tenant_id=camp.tenant_id,
            first_name=overrides.pop("first_name", f"Kid{n}"),
            last_name=overrides.pop("last_name", f"Camper{n}"),
            date_of_birth=overrides.pop("date_of_birth", date(2015, 6, 1)),
            grade=overrides.pop("grade", None),
        )
        db.add(athlete)
        await db.flush()
        values = dict(
            tenant_id=camp.tenant_id,
            camp_id=camp.id,
            athlete_id=athlete.id,
            parent_id=parent.id,
            base_price_cents=camp.price_cents,
            total_price_cents=camp.price_cents,
            status=RegistrationStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            friend_requests=[],
        )
        values.update(overrides)
        reg = Registration(**values)
        db.add(reg)
        await db.commit()
        return reg
    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.email)}"}
    return _headers


@pytest_asyncio.fixture
async def client(session_factory):
    from camphub.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
