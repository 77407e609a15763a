"""
Pytest configuration and fixtures for the 5C Community Group Orchestrator.
"""
from typing import Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

from fivec.config import Settings
from fivec.core.dependencies import get_gateways, get_store, get_thread_manager
from fivec.core.exceptions import ConfigError, GatewayError
from fivec.main import app
from fivec.models.group import Group, GroupMember, GroupStatus, MemberProfile
from fivec.schemas.results import MatchResult
from fivec.services.gateways import GatewaySet, SMSReceipt
from fivec.services.notification_dispatcher import NotificationDispatcher
from fivec.services.store import InMemoryStore
from fivec.services.thread_manager import ThreadManager

RESPONSE_BASE_URL = "https://app.5c.test"


class FakeEmailGateway:
    """Records sends; addresses in ``fail_for`` raise GatewayError."""

    def __init__(self, configured: bool = True, fail_for: Optional[List[str]] = None):
        self.configured = configured
        self.fail_for = set(fail_for or [])
        self.sent: List[Dict[str, str]] = []

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigError("Resend", missing=["RESEND_API_KEY"])

    async def send(self, from_: str, to: str, subject: str, text: str) -> str:
        self.ensure_configured()
        if to in self.fail_for:
            raise GatewayError("Email Gateway", f"Rejected recipient {to}")
        self.sent.append({"from": from_, "to": to, "subject": subject, "text": text})
        return f"email-{len(self.sent)}"


class FakeSMSGateway:
    """Records sends; numbers in ``fail_for`` raise GatewayError."""

    def __init__(self, configured: bool = True, fail_for: Optional[List[str]] = None):
        self._configured = configured
        self.fail_for = set(fail_for or [])
        self.sent: List[Dict[str, str]] = []

    @property
    def configured(self) -> bool:
        return self._configured

    def ensure_configured(self) -> None:
        if not self._configured:
            raise ConfigError(
                "Twilio",
                missing=["TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"],
            )

    async def send(self, to: str, body: str) -> SMSReceipt:
        self.ensure_configured()
        if to in self.fail_for:
            raise GatewayError("SMS Gateway", "HTTP 400: invalid number", status_code=400)
        self.sent.append({"to": to, "body": body})
        return SMSReceipt(
            sid=f"SM{len(self.sent):032d}",
            status="queued",
            from_number="+15550000000",
            to_number=to,
        )


class FakeMatchCompute:
    def __init__(self, result: Optional[MatchResult] = None, error: Optional[Exception] = None):
        self.result = result or MatchResult(groups_created=4, members_matched=16)
        self.error = error
        self.calls: List[Optional[Dict[str, float]]] = []

    async def compute(self, criteria_weights=None) -> MatchResult:
        self.calls.append(criteria_weights)
        if self.error is not None:
            raise self.error
        return self.result


class FakeExportCompute:
    def __init__(self, content: bytes = b"%PDF-1.4 groups", error: Optional[Exception] = None):
        self.content = content
        self.error = error
        self.calls: List[tuple] = []

    async def render(self, format: str, group_ids=None) -> bytes:
        self.calls.append((format, group_ids))
        if self.error is not None:
            raise self.error
        return self.content


def make_group(
    group_id: str,
    member_count: int = 3,
    status: GroupStatus = GroupStatus.APPROVED,
    name: Optional[str] = None,
) -> Group:
    """Group whose members have emails ``{group_id}-m{i}@example.com``."""
    members = [
        GroupMember(
            group_id=group_id,
            user_id=f"{group_id}-user-{i}",
            profile=MemberProfile(
                full_name=f"Member {i}",
                first_name=f"Member{i}",
                email=f"{group_id}-m{i}@example.com",
                phone_number=f"+1555010{i:04d}",
            ),
        )
        for i in range(member_count)
    ]
    return Group(
        id=group_id,
        name=name or f"Group {group_id}",
        description="Neighbors who share a weekly meal",
        status=status,
        members=members,
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        sms_response_base_url=RESPONSE_BASE_URL,
        resend_api_key="re_test",
        twilio_account_sid="AC_test",
        twilio_auth_token="auth_test",
        twilio_phone_number="+15550000000",
        max_retry_attempts=1,
        retry_base_delay_seconds=0.01,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def email_gateway() -> FakeEmailGateway:
    return FakeEmailGateway()


@pytest.fixture
def sms_gateway() -> FakeSMSGateway:
    return FakeSMSGateway()


@pytest.fixture
def match_compute() -> FakeMatchCompute:
    return FakeMatchCompute()


@pytest.fixture
def export_compute() -> FakeExportCompute:
    return FakeExportCompute()


@pytest.fixture
def gateways(email_gateway, sms_gateway, match_compute, export_compute) -> GatewaySet:
    return GatewaySet(
        email=email_gateway,
        sms=sms_gateway,
        match_compute=match_compute,
        export_compute=export_compute,
    )


@pytest.fixture
def thread_manager(store) -> ThreadManager:
    return ThreadManager(store, response_base_url=RESPONSE_BASE_URL)


@pytest.fixture
def dispatcher(store, thread_manager, gateways, test_settings) -> NotificationDispatcher:
    return NotificationDispatcher(store, thread_manager, gateways, settings=test_settings)


@pytest.fixture
def client(store, thread_manager, gateways) -> Generator[TestClient, None, None]:
    """
    Test client with the store, thread manager and gateways swapped for fakes.
    """
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_thread_manager] = lambda: thread_manager
    app.dependency_overrides[get_gateways] = lambda: gateways
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def api_prefix() -> str:
    return "/api/v1"
