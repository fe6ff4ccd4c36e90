"""Pytest configuration and fixtures for the mortgage pre-qualification assistant."""

from typing import Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.main import (
    app,
    get_notification_service,
    get_reply_generator,
    get_session_store,
    get_verification_service,
)
from app.models.mortgage import (
    ApplicantData,
    CollectedData,
    ConversationPhase,
    ConversationState,
    ExpenseData,
    HouseholdData,
    Intent,
    LoanData,
    Message,
)
from app.services.conversation_service import ConversationService
from app.services.notification_service import EmailMessage, NotificationService
from app.services.session_store import InMemorySessionStore
from app.services.verification_service import VerificationService


class FakeReplyGenerator:
    """Reply collaborator that records its inputs and answers with a canned reply."""

    def __init__(self, reply: str = "Thanks, noted."):
        self.reply = reply
        self.calls: list[tuple[list[Message], str]] = []

    async def generate_reply(self, history: Sequence[Message], instructions: str) -> str:
        self.calls.append((list(history), instructions))
        return self.reply


class FailingReplyGenerator:
    async def generate_reply(self, history: Sequence[Message], instructions: str) -> str:
        raise RuntimeError("model unavailable")


class RecordingSmsSender:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def __call__(self, to: str, body: str) -> None:
        self.sent.append((to, body))

    @property
    def last_code(self) -> str:
        return self.sent[-1][1].rsplit(" ", 1)[-1]


class RecordingMailSender:
    def __init__(self):
        self.sent: list[EmailMessage] = []

    async def __call__(self, message: EmailMessage) -> None:
        self.sent.append(message)


@pytest.fixture
def reply_generator() -> FakeReplyGenerator:
    return FakeReplyGenerator()


@pytest.fixture
def sms_sender() -> RecordingSmsSender:
    return RecordingSmsSender()


@pytest.fixture
def mail_sender() -> RecordingMailSender:
    return RecordingMailSender()


@pytest.fixture
def verification_service(sms_sender) -> VerificationService:
    return VerificationService(sms_sender=sms_sender)


@pytest.fixture
def notification_service(mail_sender) -> NotificationService:
    return NotificationService(mail_sender=mail_sender)


@pytest.fixture
def conversation_service(
    reply_generator, verification_service, notification_service
) -> ConversationService:
    return ConversationService(reply_generator, verification_service, notification_service)


@pytest.fixture
def make_conversation_service(verification_service, notification_service):
    """Factory for a conversation service with a custom reply and merge priority."""

    def factory(reply: str | None = None, priority: str = "user", failing: bool = False):
        generator = FailingReplyGenerator() if failing else FakeReplyGenerator(reply or "OK")
        return ConversationService(
            generator,
            verification_service,
            notification_service,
            ai_extraction_priority=priority,
        )

    return factory


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest_asyncio.fixture
async def client(
    reply_generator, verification_service, notification_service, session_store
) -> AsyncClient:
    """HTTP client against the app with every collaborator replaced by a fake."""
    app.dependency_overrides[get_reply_generator] = lambda: reply_generator
    app.dependency_overrides[get_verification_service] = lambda: verification_service
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.state.limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def purchase_data() -> CollectedData:
    """Everything a purchase application needs before verification."""
    return CollectedData(
        full_name="Jane Smith",
        email="jane@example.com",
        phone="5551234567",
        gross_annual_income=95000,
        monthly_debts=2000,
        purchase_price=500000,
        down_payment=100000,
    )


@pytest.fixture
def verification_state(purchase_data) -> ConversationState:
    return ConversationState(
        phase=ConversationPhase.VERIFICATION,
        intent=Intent.PURCHASE,
        collected_data=purchase_data,
    )


@pytest.fixture
def reference_applicant() -> ApplicantData:
    return ApplicantData(salary=80000, overtime=5000, bonus=10000, has_hecs=False)


@pytest.fixture
def reference_loan() -> LoanData:
    return LoanData(interest_rate=0.045, loan_term=30)


@pytest.fixture
def single_household() -> HouseholdData:
    return HouseholdData(type="Single", number_of_children=0)


@pytest.fixture
def declared_expenses() -> ExpenseData:
    return ExpenseData(general_living_expenses=2000)
