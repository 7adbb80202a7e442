"""
Pytest fixtures shared by the order lifecycle tests.
"""

import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from models.risk import RiskAssessment  # noqa: E402
from repositories.order_repository import OrderRepository  # noqa: E402
from repositories.store import InMemoryStore  # noqa: E402
from services.order_service import OrderService  # noqa: E402
from services.payment_gateway import SimulatedPaymentGateway  # noqa: E402
from services.payment_verifier import GatewayPaymentVerifier  # noqa: E402
from services.risk_assessment import build_assessment  # noqa: E402
from utils.cache import MemoryCache  # noqa: E402
from utils.retry import RetryOptions  # noqa: E402


class FakeClock:
    def __init__(self, start: datetime = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StubRiskAssessor:
    """Returns a fixed score and remembers what it was asked."""

    def __init__(self, score: int = 10):
        self.score = score
        self.calls = []

    async def assess(self, customer, order) -> RiskAssessment:
        self.calls.append((customer, order))
        return build_assessment(self.score, [])


class FailingRiskAssessor:
    async def assess(self, customer, order) -> RiskAssessment:
        raise RuntimeError("risk service unavailable")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def repository(store, cache) -> OrderRepository:
    return OrderRepository(store, cache=cache)


@pytest.fixture
def gateway() -> SimulatedPaymentGateway:
    return SimulatedPaymentGateway()


@pytest.fixture
def verifier(gateway) -> GatewayPaymentVerifier:
    return GatewayPaymentVerifier(gateway, RetryOptions(initial_delay=0.0, max_delay=0.0))


@pytest.fixture
def risk_assessor() -> StubRiskAssessor:
    return StubRiskAssessor()


@pytest.fixture
def order_service(repository, verifier, risk_assessor, clock) -> OrderService:
    return OrderService(repository, payment_verifier=verifier, risk_assessor=risk_assessor, clock=clock)


def order_request(**overrides) -> dict:
    """A valid registered-user order for a single LLC formation."""
    data = {
        "user_id": "u1",
        "subtotal": Decimal("225"),
        "tax": Decimal("0"),
        "total": Decimal("225"),
        "items": [
            {
                "service_type": "LLC_FORMATION",
                "description": "Florida LLC formation",
                "quantity": 1,
                "unit_price": Decimal("225"),
                "total_price": Decimal("225"),
            }
        ],
    }
    data.update(overrides)
    return data


def guest_order_request(**overrides) -> dict:
    data = order_request(
        user_id=None,
        is_guest_order=True,
        guest_email="guest@example.com",
        guest_first_name="Pat",
        guest_last_name="Lee",
        guest_phone="555-0100",
    )
    data.update(overrides)
    return data
