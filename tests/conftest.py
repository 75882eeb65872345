from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import settings

# Override settings for tests
settings.jwt_secret_key = "test-secret-key-that-is-at-least-32-bytes-long"
settings.app_env = "development"
settings.sentry_dsn = ""
settings.cdek_enabled = settings.boxberry_enabled = settings.russian_post_enabled = False

from app.core.rate_limit import limiter  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.delivery.aggregator import DeliveryQuoteAggregator  # noqa: E402
from app.delivery.carriers import build_carriers  # noqa: E402
from app.gateway.rate_limiter import AiRateLimiter  # noqa: E402
from app.gateway.service import AiService  # noqa: E402
from app.main import app  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_http_throttle():
    limiter.reset()
    yield


@pytest.fixture
def ai_service() -> AiService:
    """Service with no vendor configured. Tests attach a mocked adapter."""
    service = AiService(adapter=None, rate_limiter=AiRateLimiter(per_minute=30, per_day=1000))
    app.state.ai_service = service
    return service


@pytest.fixture
def delivery_aggregator() -> DeliveryQuoteAggregator:
    """Aggregator over unconfigured carriers; tests replace ``carriers`` as needed."""
    aggregator = DeliveryQuoteAggregator(build_carriers(settings), timeout=0.5)
    app.state.delivery_aggregator = aggregator
    return aggregator


@pytest.fixture
async def client(ai_service, delivery_aggregator) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def auth_headers_for(role: str, user_id: str = "user-1") -> dict[str, str]:
    token = create_access_token(user_id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers() -> dict[str, str]:
    return auth_headers_for("customer")


@pytest.fixture
def manager_headers() -> dict[str, str]:
    return auth_headers_for("manager")


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers_for("admin")
