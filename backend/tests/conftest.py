"""
Pytest configuration and fixtures per i test di Quote Desk.

Il database è SQLite in memoria (aiosqlite) con lo schema creato da
Base.metadata: ogni test riceve un engine pulito.
"""

import os

# Configurazione di test prima di importare quotedesk.core.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("EMAIL_MODE", "mock")
os.environ.setdefault("EMAIL_MOCK_DELAY_SECONDS", "0")
os.environ.setdefault("VIEW_TRACKING_URL", "")

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from quotedesk.models import Base
from quotedesk.schemas.quote import QuoteDraft, QuoteItemDraft
from quotedesk.services.email_service import MockEmailSender


# ============================================================
# Fixtures Database
# ============================================================


@pytest_asyncio.fixture
async def engine():
    """Engine SQLite in memoria condiviso tra le sessioni del test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory equivalente ad AsyncSessionLocal, legata all'engine di test."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_factory):
    """Sessione database per un singolo test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_db():
    """Crea un mock di AsyncSession."""
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    return db


# ============================================================
# Fixtures Bozza
# ============================================================


@pytest.fixture
def owner_id():
    return uuid.UUID("22222222-2222-2222-2222-222222222222")


@pytest.fixture
def acme_draft(owner_id):
    """Preventivo 1000 per Acme con una voce 2 × 50."""
    return QuoteDraft(
        owner=owner_id,
        quote_number="1000",
        client_name="Acme",
        client_email="billing@acme.test",
        items=[
            QuoteItemDraft(id="1", description="Consulenza", quantity=2, unit_price=Decimal("50")),
        ],
    )


@pytest.fixture
def email_sender():
    """Mittente email simulato senza ritardo."""
    return MockEmailSender(delay_seconds=0)
