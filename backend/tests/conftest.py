"""
Shared fixtures: an in-memory SQLite database and seeded marketplace rows.
"""

from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from realaist.adapters.base import AdCampaignResult, BaseAdPlatformAdapter
from realaist.core.database import Base
from realaist.core.security import SessionData
from realaist.models import Payment, Profile, Property
from realaist.services import campaign_service, payment_service

PAYSTACK_SECRET = "sk_test_realaist"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def owner(db):
    profile = Profile(id="owner-1", email="dev@example.co.ke", full_name="Wanjiru Developer", user_type="developer")
    db.add(profile)
    await db.commit()
    return profile


@pytest_asyncio.fixture
async def other_user(db):
    profile = Profile(id="buyer-9", email="buyer@example.co.ke", user_type="buyer")
    db.add(profile)
    await db.commit()
    return profile


@pytest_asyncio.fixture
async def admin(db):
    profile = Profile(id="admin-1", email="admin@realaist.tech", user_type="admin")
    db.add(profile)
    await db.commit()
    return profile


@pytest_asyncio.fixture
async def listing(db, owner):
    prop = Property(
        id="prop-1",
        developer_id=owner.id,
        title="Garden Apartments",
        location="Kilimani",
        price=12_500_000,
        property_type="Apartment",
        bedrooms=3,
        square_feet=1400,
    )
    db.add(prop)
    await db.commit()
    return prop


@pytest.fixture
def admin_session(admin):
    return SessionData(
        user_id=admin.id,
        email=admin.email,
        role="admin",
        issued_by="provider",
        token="signed-provider-token",
    )


@pytest.fixture
def submission(listing):
    start = date.today() + timedelta(days=1)
    return {
        "budget": 10000,
        "duration_start": start,
        "duration_end": start + timedelta(days=29),
        "property_ids": [listing.id],
        "target_location": ["Nairobi", "Kilimani"],
        "target_age_group": "25-34",
        "audience_interests": ["Real Estate", "Investment"],
        "platforms": ["google"],
    }


@pytest.fixture
def ads_adapter():
    adapter = MagicMock(spec=BaseAdPlatformAdapter)
    adapter.create_campaign = AsyncMock(
        return_value=AdCampaignResult(campaign_id="9876543210", budget_id="555", daily_budget_usd=1.49)
    )
    adapter.remove_campaign = AsyncMock(return_value=True)
    return adapter


@pytest.fixture
def paystack_secret():
    return PAYSTACK_SECRET


@pytest_asyncio.fixture
async def campaign(db, owner, submission):
    created = await campaign_service.create_campaign(db, owner.id, submission)
    await db.commit()
    return created


@pytest.fixture
def pay_campaign(db):
    """Attach a payment to a campaign and settle it through the charge handler."""

    async def _pay(target, amount=None):
        payment = Payment(
            campaign_id=target.id,
            user_id=target.user_id,
            paystack_reference=f"campaign_{target.id}_1760870400000",
            amount_requested=payment_service.to_cents(target.user_budget),
            currency="KES",
        )
        db.add(payment)
        target.payment_status = "processing"
        await db.commit()

        await payment_service.apply_charge_event(
            db,
            payment_service.CHARGE_SUCCESS,
            {
                "reference": payment.paystack_reference,
                "amount": payment.amount_requested if amount is None else amount,
                "currency": "KES",
                "channel": "card",
                "paid_at": "2026-10-19T09:30:00.000Z",
            },
        )
        await db.commit()
        return payment

    return _pay
