import pytest

from app.core.config import Settings
from app.models.db_models import Business, Service, default_working_hours
from app.services.booking_service import BookingService
from fakes import FakeStore, NOW


@pytest.fixture
def store():
    store = FakeStore()
    store.businesses["biz-1"] = Business(
        id="biz-1",
        name="صالون الأناقة",
        category="salon",
        owner_id="owner-1",
        working_hours=default_working_hours(),
    )
    store.services["svc-60"] = Service(
        id="svc-60", business_id="biz-1", name="قص شعر", duration=60, price=50.0, category="haircut"
    )
    store.services["svc-30"] = Service(
        id="svc-30", business_id="biz-1", name="تصفيف", duration=30, price=30.0, category="hair_styling"
    )
    store.services["svc-off"] = Service(
        id="svc-off", business_id="biz-1", name="مساج", duration=45, price=80.0, is_active=False
    )
    return store


@pytest.fixture
def config():
    return Settings(SLOT_STEP_MINUTES=30, ENFORCE_SLOT_GRID=False, BOOKING_TIMEOUT_SECONDS=5.0)


@pytest.fixture
def booking_service(store, config):
    return BookingService(store=store, config=config, clock=lambda: NOW)

