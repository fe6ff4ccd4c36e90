"""Turn orchestration: extraction, phase transition, side effects and the agent reply"""

from dataclasses import dataclass
from enum import Enum

from app.models.mortgage import (
    BorrowingCapacityResult,
    ConversationPhase,
    ConversationState,
    MessageSender,
)
from app.services.calculation_service import BorrowingCapacityService
from app.services.conversation_state_machine import (
    BASE_REQUIRED_FIELDS,
    CONTACT_FIELDS,
    INTENT_REQUIRED_FIELDS,
    ConversationStateMachine,
)
from app.services.data_extractor import DataExtractorService
from app.services.notification_service import NotificationService
from app.services.reply_service import ReplyGenerator, phase_instructions
from app.services.verification_service import VerificationService
from app.utils.logger import LoggerMixin

# Only the financial collection fields may be filled from the agent reply, and only
# before verification. Contact details and calculator inputs (rate, term) come
# from the applicant alone.
REPLY_MERGE_PHASES = frozenset({ConversationPhase.INTENT, ConversationPhase.COLLECTION})
REPLY_MERGE_FIELDS = frozenset(BASE_REQUIRED_FIELDS).union(
    *INTENT_REQUIRED_FIELDS.values()
) - frozenset(CONTACT_FIELDS)


class ExtractionPriority(str, Enum):
    """How values re-extracted from the agent's own reply are merged"""

    DISABLED = "disabled"
    USER = "user"  # reply only fills fields the user has not given
    ASSISTANT = "assistant"  # reply overrides user-given values


@dataclass(frozen=True)
class TurnResult:
    state: ConversationState
    reply: str
    results: BorrowingCapacityResult | None = None


class ConversationService(LoggerMixin):
    """
    Runs one user turn against a conversation state.

    The incoming state is never mutated; the returned ``TurnResult.state`` is
    what the caller should persist. Failures from the reply, SMS or mail
    collaborators propagate, so nothing should be saved when a turn raises.
    """

    def __init__(
        self,
        reply_generator: ReplyGenerator,
        verification: VerificationService,
        notification: NotificationService,
        extractor: DataExtractorService | None = None,
        ai_extraction_priority: ExtractionPriority | str = ExtractionPriority.USER,
        default_interest_rate: float = 0.045,
        default_loan_term: int = 30,
    ):
        self.reply_generator = reply_generator
        self.verification = verification
        self.notification = notification
        self.extractor = extractor or DataExtractorService()
        self.state_machine = ConversationStateMachine(
            phone_verified=verification.is_phone_verified
        )
        self.ai_extraction_priority = ExtractionPriority(ai_extraction_priority)
        self.default_interest_rate = default_interest_rate
        self.default_loan_term = default_loan_term

    async def process_turn(self, message: str, state: ConversationState) -> TurnResult:
        previous_phase = state.phase
        working = state.with_message(message, MessageSender.USER)

        extracted = self.extractor.extract(
            message,
            state.phase,
            state.collected_data.model_dump(exclude_none=True),
        )
        working = self.state_machine.advance(working, message, extracted)

        if working.phase == ConversationPhase.VERIFICATION and previous_phase != working.phase:
            working = await self._start_verification(working)

        result = None
        if working.phase == ConversationPhase.RESULTS:
            result = BorrowingCapacityService.calculate_for_conversation(
                working.collected_data,
                working.intent,
                self.default_interest_rate,
                self.default_loan_term,
            )

        reply = await self.reply_generator.generate_reply(
            working.messages, phase_instructions(working, result)
        )
        working = self._merge_reply_extraction(working, reply)

        if (
            result is not None
            and previous_phase != ConversationPhase.RESULTS
            and working.collected_data.email
        ):
            await self.notification.send_results(
                working.collected_data.email, result, working.collected_data
            )

        self.logger.info(
            "Turn processed",
            phase=working.phase.value,
            fields_extracted=sorted(extracted),
            has_results=result is not None,
        )
        return TurnResult(
            state=working.with_message(reply, MessageSender.AGENT),
            reply=reply,
            results=result,
        )

    async def _start_verification(self, state: ConversationState) -> ConversationState:
        data = state.collected_data
        try:
            await self.verification.send_verification_codes(data.email, data.phone)
        except ValueError:
            # Unusable number: go back to collection so the phone is asked for again
            self.logger.warning("Phone number rejected, returning to collection")
            return state.model_copy(
                update={
                    "phase": ConversationPhase.COLLECTION,
                    "collected_data": data.model_copy(update={"phone": None}),
                }
            )
        return state

    def _merge_reply_extraction(
        self, state: ConversationState, reply: str
    ) -> ConversationState:
        if (
            self.ai_extraction_priority == ExtractionPriority.DISABLED
            or state.phase not in REPLY_MERGE_PHASES
        ):
            return state

        existing = state.collected_data.model_dump(exclude_none=True)
        from_reply = {
            field: value
            for field, value in self.extractor.extract(reply, state.phase, existing).items()
            if field in REPLY_MERGE_FIELDS
        }

        if self.ai_extraction_priority == ExtractionPriority.USER:
            from_reply = {
                field: value for field, value in from_reply.items() if field not in existing
            }
        if not from_reply:
            return state

        self.logger.info(
            "Merged fields from agent reply",
            fields=sorted(from_reply),
            priority=self.ai_extraction_priority.value,
        )
        return state.model_copy(
            update={"collected_data": state.collected_data.merged_with(from_reply)}
        )
