import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from servicedesk.domain.activity import db_models as activity_db_models  # noqa: F401
from servicedesk.domain.bookings import db_models as booking_db_models  # noqa: F401
from servicedesk.domain.brands import db_models as brand_db_models  # noqa: F401
from servicedesk.domain.email_logs import db_models as email_log_db_models  # noqa: F401
from servicedesk.domain.errors import DownstreamError
from servicedesk.domain.users import db_models as user_db_models  # noqa: F401
from servicedesk.infra.automation import AutomationClient
from servicedesk.infra.communication import CommunicationResult
from servicedesk.infra.db import Base, get_db_session
from servicedesk.main import app
from servicedesk.services import build_app_services
from servicedesk.settings import settings
from servicedesk.shared.background import drain_background


class RecordingEmailAdapter:
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail_for = fail_for or set()

    async def send_email(
        self, recipient: str, subject: str, body: str, *, headers: dict[str, str] | None = None
    ) -> bool:
        if recipient in self.fail_for:
            raise DownstreamError("email", "status_500")
        self.sent.append((recipient, subject, body))
        return True


class RecordingWhatsAppAdapter:
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail_for = fail_for or set()

    async def send_whatsapp(self, *, to_number: str, body: str) -> CommunicationResult:
        if to_number in self.fail_for:
            return CommunicationResult(status="failed", error_code="twilio_status_400")
        self.sent.append((to_number, body))
        return CommunicationResult(status="sent", provider_msg_id=f"SM{len(self.sent)}")


class RecordingPushAdapter:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send(self, token: str, title: str, body: str, data: dict | None = None) -> bool:
        self.sent.append({"token": token, "title": title, "body": body, "data": data or {}})
        return True


@dataclass
class OutboundRecorder:
    """Captures outbound automation/webhook requests made through httpx."""

    requests: list[httpx.Request] = field(default_factory=list)
    status_code: int = 200
    status_by_url: dict[str, int] = field(default_factory=dict)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_by_url.get(str(request.url), self.status_code), json={"ok": True})

    def urls(self) -> list[str]:
        return [str(request.url) for request in self.requests]


@dataclass
class FakeChannels:
    email: RecordingEmailAdapter
    whatsapp: RecordingWhatsAppAdapter
    push: RecordingPushAdapter
    outbound: OutboundRecorder


@pytest.fixture(scope="session")
def test_engine():
    db_path = Path("test.db")
    if db_path.exists():
        db_path.unlink()
    engine = create_async_engine(
        "sqlite+aiosqlite:///./test.db",
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=NullPool,
    )

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture(scope="session")
def async_session_maker(test_engine):
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture(autouse=True)
def restore_settings():
    original_testing = settings.testing
    original_app_env = settings.app_env
    original_metrics_enabled = settings.metrics_enabled
    original_metrics_token = settings.metrics_token
    original_automation_url = settings.automation_webhook_url
    original_booking_url = settings.booking_webhook_url
    original_window = settings.correlation_window_days
    original_email_from = settings.email_from
    yield
    settings.testing = original_testing
    settings.app_env = original_app_env
    settings.metrics_enabled = original_metrics_enabled
    settings.metrics_token = original_metrics_token
    settings.automation_webhook_url = original_automation_url
    settings.booking_webhook_url = original_booking_url
    settings.correlation_window_days = original_window
    settings.email_from = original_email_from


@pytest.fixture(autouse=True)
def enable_test_mode():
    settings.testing = True
    settings.app_env = "dev"
    settings.automation_webhook_url = "http://automation.test/webhook/send-booking-email"
    settings.booking_webhook_url = "http://hooks.test/booking"
    yield


@pytest.fixture(autouse=True)
def clean_database(test_engine):
    async def truncate_tables() -> None:
        async with test_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                await conn.execute(table.delete())

    asyncio.run(truncate_tables())
    yield


@pytest.fixture()
def fake_channels() -> FakeChannels:
    return FakeChannels(
        email=RecordingEmailAdapter(),
        whatsapp=RecordingWhatsAppAdapter(),
        push=RecordingPushAdapter(),
        outbound=OutboundRecorder(),
    )


@pytest.fixture()
def client(async_session_maker, fake_channels):
    async def override_db_session():
        async with async_session_maker() as session:
            yield session

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_channels.outbound.handler))
    app.dependency_overrides[get_db_session] = override_db_session
    original_factory = getattr(app.state, "db_session_factory", None)
    app.state.db_session_factory = async_session_maker
    app.state.services = build_app_services(
        settings,
        session_factory=async_session_maker,
        http_client=http_client,
        email_adapter=fake_channels.email,
        whatsapp_adapter=fake_channels.whatsapp,
        push_adapter=fake_channels.push,
        automation=AutomationClient(http_client),
    )
    with TestClient(app) as test_client:
        yield test_client
    asyncio.run(http_client.aclose())
    app.dependency_overrides.clear()
    app.state.db_session_factory = original_factory
    app.state.services = None


@pytest.fixture()
def settle(client):
    """Block until post-response background work has finished."""

    def _settle() -> None:
        client.portal.call(drain_background)

    return _settle


@pytest.fixture()
def client_no_raise(client):
    """Same wiring as ``client`` but server errors come back as responses."""
    return TestClient(app, raise_server_exceptions=False)
