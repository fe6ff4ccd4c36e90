import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field


class ConversationPhase(str, Enum):
    INTENT = "intent"
    COLLECTION = "collection"
    VERIFICATION = "verification"
    RESULTS = "results"

    @property
    def rank(self) -> int:
        return PHASE_ORDER.index(self)


PHASE_ORDER = (
    ConversationPhase.INTENT,
    ConversationPhase.COLLECTION,
    ConversationPhase.VERIFICATION,
    ConversationPhase.RESULTS,
)


class Intent(str, Enum):
    PURCHASE = "purchase"
    REFINANCE = "refinance"


class HouseholdType(str, Enum):
    SINGLE = "Single"
    COUPLE = "Couple"


class LoanPurpose(str, Enum):
    PURCHASE = "Purchase"
    REFINANCE = "Refinance"


class MessageSender(str, Enum):
    USER = "user"
    AGENT = "agent"


class CollectedData(BaseModel):
    """Applicant data accumulated over the conversation.

    Every field is optional; a field counts as present when it is not None
    (zero is a valid value).
    """

    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    gross_annual_income: float | None = None
    overtime: float | None = None
    bonus: float | None = None
    monthly_debts: float | None = None
    purchase_price: float | None = None
    down_payment: float | None = None
    property_value: float | None = None
    desired_loan_amount: float | None = None
    credit_card_limits: float | None = None
    personal_loans: float | None = None
    other_loans: float | None = None
    has_hecs: bool | None = None
    household_type: HouseholdType | None = None
    number_of_children: int | None = Field(default=None, ge=0)
    loan_term: int | None = Field(default=None, description="Loan term in years")
    interest_rate: float | None = Field(
        default=None, description="Annual rate as a decimal, e.g. 0.045"
    )

    def merged_with(self, extracted: Mapping[str, Any]) -> "CollectedData":
        """Overlay newly extracted fields; fields absent from ``extracted`` are kept."""
        updates = {
            field: value
            for field, value in extracted.items()
            if field in type(self).model_fields and value is not None
        }
        return self.model_validate({**self.model_dump(), **updates})

    def is_present(self, field: str) -> bool:
        return getattr(self, field) is not None


class VerificationStatus(BaseModel):
    sms: bool = False
    email: bool = False


class Message(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    content: str
    sender: MessageSender
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ConversationState(BaseModel):
    """Root aggregate for one conversation session."""

    phase: ConversationPhase = ConversationPhase.INTENT
    intent: Intent | None = None
    collected_data: CollectedData = Field(default_factory=CollectedData)
    verification_status: VerificationStatus = Field(
        default_factory=VerificationStatus
    )
    messages: list[Message] = Field(default_factory=list)

    def with_message(self, content: str, sender: MessageSender) -> "ConversationState":
        """Return a copy with one more message appended to the history."""
        message = Message(content=content, sender=sender)
        return self.model_copy(update={"messages": [*self.messages, message]})


# Borrowing capacity calculation


class ApplicantData(BaseModel):
    salary: float = 0
    overtime: float = 0
    bonus: float = 0
    non_taxable_income: float = 0
    rental_income: float = 0
    government_payments: float = 0
    investment_income: float = 0
    has_hecs: bool = False


class LoanData(BaseModel):
    purpose: LoanPurpose = LoanPurpose.PURCHASE
    loan_amount: float = 0
    interest_rate: float = Field(..., description="Annual rate as decimal")
    loan_term: int = Field(..., gt=0, description="Loan term in years")


class HouseholdData(BaseModel):
    type: HouseholdType = HouseholdType.SINGLE
    number_of_children: int = Field(default=0, ge=0)


class ExpenseData(BaseModel):
    general_living_expenses: float = Field(default=0, description="Monthly amount")
    credit_card_limits: float = 0
    personal_loans: float = 0
    other_loans: float = Field(default=0, description="Monthly repayments")


class BorrowingCapacityRequest(BaseModel):
    applicant1: ApplicantData
    applicant2: ApplicantData | None = None
    loan: LoanData
    household: HouseholdData = Field(default_factory=HouseholdData)
    expenses: ExpenseData = Field(default_factory=ExpenseData)


class BorrowingCapacityResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_borrowing_capacity: int = Field(..., description="Rounded to nearest $1000")
    min_borrowing_capacity: int = Field(..., description="Rounded to nearest $1000")
    net_monthly_income: int
    monthly_expenses: int
    monthly_surplus: int
    assessment_rate: float
    applicant1_net_monthly: int
    applicant2_net_monthly: int | None = None


# API bodies


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, description="User's message")
    session_id: str | None = Field(
        default=None,
        description="Session ID (optional for new conversations)",
    )


class ChatResponse(BaseModel):
    response: str = Field(..., description="Assistant's reply")
    session_id: str = Field(..., description="Session ID for tracking")
    phase: ConversationPhase
    intent: Intent | None = None
    collected_data: CollectedData
    verification_status: VerificationStatus
    results: BorrowingCapacityResult | None = Field(
        default=None, description="Borrowing capacity once results are reached"
    )


class ResetRequest(BaseModel):
    session_id: str | None = None


class ResetResponse(BaseModel):
    message: str
    session_id: str


class VerificationType(str, Enum):
    SMS = "sms"
    EMAIL = "email"


class SendCodeRequest(BaseModel):
    session_id: str
    type: VerificationType = VerificationType.SMS


class VerifyCodeRequest(BaseModel):
    session_id: str
    type: VerificationType = VerificationType.SMS
    code: str = Field(..., min_length=4, max_length=8)


class SendCodeResponse(BaseModel):
    sent: bool
    message: str


class VerifyCodeResponse(BaseModel):
    valid: bool
    error: str | None = None


class HealthResponse(BaseModel):
    status: str = Field(default="ok")
