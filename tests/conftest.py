import os
import uuid

# Settings are read at import time, so the environment must be set first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test-unused.db")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("REMOVE_BG_API_KEY", "test-removebg-key")
os.environ.setdefault("VECTORIZER_API_ID", "test-id")
os.environ.setdefault("VECTORIZER_API_SECRET", "test-secret")
os.environ.setdefault("FRONTEND_URL", "http://shop.test")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

import models  # noqa: E402
from auth import create_access_token  # noqa: E402
from db import Base, get_db  # noqa: E402
from errors import RateLimitedError, ServiceError  # noqa: E402
from order_store import LocalFile, OrderConfigurationStore  # noqa: E402
from pricing import PricedGarment, PricingCatalog, calculate_quote, campaign_price, default_tiers  # noqa: E402
from schemas import (  # noqa: E402
    AppliedDiscount, CampaignCreated, CampaignPriceResponse, CheckOrderResponse, DiscountType,
    DiscountValidateResponse, DraftOut, GeneratedImageResponse, PaymentIntentResponse, PrintLocation,
    TempUploadResponse,
)
from server import app  # noqa: E402

TEE_ID = "0b6c3a52-6f0e-4a7a-9d55-0a3f6a9b1c01"
HOODIE_ID = "5d1e8f20-2b44-4c1e-8a3b-7e9f0c2d4e02"


# ===================================================================
# Database & API client
# ===================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def api(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def make(customer_id=None, email="organizer@example.com", name="Pat Organizer"):
        token = create_access_token(customer_id or uuid.uuid4(), email=email, name=name)
        return {"Authorization": f"Bearer {token}"}
    return make


async def add_garment(session, garment_id=TEE_ID, name="Classic Tee", base_cost=4.0, **fields):
    garment = models.Garment(
        id=uuid.UUID(garment_id),
        name=name,
        brand=fields.pop("brand", "Gildan"),
        base_cost=base_cost,
        available_colors=fields.pop("available_colors", ["White", "Black", "Navy"]),
        size_range=fields.pop("size_range", ["S", "M", "L", "XL"]),
        **fields,
    )
    session.add(garment)
    await session.commit()
    return garment


@pytest.fixture
def seed_garment(db_session):
    async def seed(**kwargs):
        return await add_garment(db_session, **kwargs)
    return seed


# ===================================================================
# Fake storefront client for the client-side core
# ===================================================================

class FakeStorefrontClient:
    """In-memory stand-in for `StorefrontClient` that prices with the real calculator."""

    def __init__(self):
        self.catalog = PricingCatalog(
            tiers=default_tiers(),
            garments={
                TEE_ID: PricedGarment(TEE_ID, "Classic Tee", 4.0),
                HOODIE_ID: PricedGarment(HOODIE_ID, "Pullover Hoodie", 12.0),
            },
        )
        self.calls = []
        self.quote_error = None
        self.rate_limit_after = None
        self.fail_draft_saves = False
        self.failing_mockups = set()
        self.fail_pending_order = False
        self.order_id = None

    async def fetch_quote(self, lines, print_config):
        self.calls.append(("fetch_quote", list(lines)))
        if self.quote_error:
            raise ServiceError(self.quote_error, status_code=500)
        return calculate_quote(self.catalog, lines, print_config)

    async def validate_discount(self, code, subtotal):
        self.calls.append(("validate_discount", code, subtotal))
        if code.strip().upper() != "SAVE10":
            return DiscountValidateResponse(valid=False, message="Invalid discount code")
        amount = round(subtotal * 0.10, 2)
        return DiscountValidateResponse(
            valid=True,
            discount=AppliedDiscount(code="SAVE10", discount_type=DiscountType.PERCENTAGE,
                                     discount_value=10, discount_amount=amount),
            discount_code_id=uuid.UUID("11111111-1111-4111-8111-111111111111"),
            message="10% discount applied!",
        )

    async def upload_temp_artwork(self, location, file_name, content, content_type,
                                  transform=None, is_vectorized=False):
        self.calls.append(("upload_temp_artwork", PrintLocation(location), file_name, is_vectorized))
        return TempUploadResponse(
            file_url=f"https://cdn.test/{file_name}",
            file_name=file_name,
            file_size=len(content),
            location=location,
            transform=transform,
            is_vectorized=is_vectorized,
        )

    async def create_pending_order(self, order):
        self.calls.append(("create_pending_order", order))
        if self.fail_pending_order:
            raise ServiceError("Failed to save pending order", status_code=500)
        return str(uuid.uuid4())

    async def create_payment_intent(self, amount, order_id=None, pending_order_id=None, customer_email=None):
        self.calls.append(("create_payment_intent", amount, pending_order_id, customer_email))
        return PaymentIntentResponse(client_secret="pi_test_secret_abc", payment_intent_id="pi_test")

    async def check_order(self, payment_intent_id):
        self.calls.append(("check_order", payment_intent_id))
        if self.order_id is None:
            return CheckOrderResponse(order_id=None, status="pending")
        return CheckOrderResponse(order_id=self.order_id, status="pending_art_review")

    async def save_draft(self, draft):
        self.calls.append(("save_draft", draft))
        if self.fail_draft_saves:
            raise ServiceError("Drafts are down", status_code=503)
        return DraftOut(id=draft.draft_id or uuid.uuid4(), name=draft.name)

    async def calculate_campaign_prices(self, garment_ids, print_config):
        garment_ids = [str(g) for g in garment_ids]
        self.calls.append(("calculate_campaign_prices", garment_ids))
        prices, missing = {}, []
        for gid in garment_ids:
            if gid in self.catalog.garments:
                prices[gid] = campaign_price(self.catalog, gid, print_config)
            else:
                missing.append(gid)
        return CampaignPriceResponse(prices=prices, missing_garments=missing)

    async def upload_mockup(self, color, image_data_url):
        self.calls.append(("upload_mockup", color))
        if color in self.failing_mockups:
            raise ServiceError("Upload failed", status_code=502)
        return f"https://cdn.test/mockups/{color.lower()}.png"

    async def create_campaign(self, campaign):
        self.calls.append(("create_campaign", campaign))
        return CampaignCreated(id=uuid.uuid4(), slug="team-tees-a1b2c3")

    async def generate_artwork(self, prompt, reference_images=None):
        self.calls.append(("generate_artwork", prompt))
        if self.rate_limit_after is not None:
            raise RateLimitedError("AI generation rate limit reached", retry_after=self.rate_limit_after)
        return GeneratedImageResponse(image="data:image/png;base64,iVBORw0KGgo=", message="Design generated")

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def fake_client():
    return FakeStorefrontClient()


@pytest.fixture
def store():
    return OrderConfigurationStore()


@pytest.fixture
def ready_store(store):
    """A single-garment order that can go straight to checkout."""
    store.add_garment(TEE_ID, ["White"])
    store.merge_quantities("White", {"S": 10, "M": 14})
    store.set_print_location(PrintLocation.FRONT, enabled=True, num_colors=1)
    store.set_artwork_file(PrintLocation.FRONT, LocalFile("logo.png", b"\x89PNG fake", "image/png", 400, 400))
    store.set_customer_info(customer_name="Jamie Rivera", email="jamie@example.com", phone="555-0100")
    store.set_shipping_address(line1="1 Main St", city="Springfield", state="IL", postal_code="62701")
    return store
