"""Phase transitions for the pre-qualification conversation.

intent -> collection -> verification -> results, one step per user turn.
The only way back is a restart request once results have been shown.
"""

import re
from typing import Any, Callable, Mapping

from app.models.mortgage import (
    CollectedData,
    ConversationPhase,
    ConversationState,
    Intent,
)
from app.utils.logger import LoggerMixin

CONTACT_FIELDS = ("full_name", "email", "phone")

BASE_REQUIRED_FIELDS = ("gross_annual_income", "monthly_debts", *CONTACT_FIELDS)

INTENT_REQUIRED_FIELDS: dict[Intent, tuple[str, ...]] = {
    Intent.PURCHASE: ("purchase_price", "down_payment"),
    Intent.REFINANCE: ("property_value", "desired_loan_amount"),
}

RESTART_PATTERN = re.compile(r"purchase|refinance|start\s+over|\bnew\b", re.IGNORECASE)
AFFIRMATIVE_PATTERN = re.compile(r"\b(?:yes|verified)\b", re.IGNORECASE)


def is_restart_request(message: str) -> bool:
    """Whether a message sent after results asks for a fresh application.

    Substring heuristic: mentioning purchase/refinance again, "start over"
    or "new". "new" must stand as a whole word so that "renew", "news" or
    "newcastle" in a follow-up question do not wipe the application.
    """
    return bool(RESTART_PATTERN.search(message))


def is_affirmative(message: str) -> bool:
    return bool(AFFIRMATIVE_PATTERN.search(message))


def required_fields(intent: Intent | None) -> tuple[str, ...]:
    return BASE_REQUIRED_FIELDS + INTENT_REQUIRED_FIELDS.get(intent, ())


def missing_fields(data: CollectedData, intent: Intent | None) -> list[str]:
    return [field for field in required_fields(intent) if not data.is_present(field)]


def has_required_data(data: CollectedData, intent: Intent | None) -> bool:
    return not missing_fields(data, intent)


def restarted(state: ConversationState) -> ConversationState:
    """Fresh application state that keeps the message history."""
    return ConversationState(messages=list(state.messages))


class ConversationStateMachine(LoggerMixin):
    """Applies one user turn to a conversation state.

    ``phone_verified`` is the verification collaborator's out-of-band check.
    It is only consulted for the "yes, I've verified" shortcut while in the
    verification phase; without it the machine waits for
    ``verification_status.sms`` to be set externally.
    """

    def __init__(self, phone_verified: Callable[[str], bool] | None = None):
        self.phone_verified = phone_verified

    def advance(
        self,
        state: ConversationState,
        user_message: str,
        extracted: Mapping[str, Any],
    ) -> ConversationState:
        if state.phase == ConversationPhase.RESULTS and is_restart_request(user_message):
            self.logger.info("Restart requested after results, resetting application")
            return restarted(state)

        extracted_intent = Intent(extracted["intent"]) if extracted.get("intent") else None
        intent = extracted_intent or state.intent
        collected_data = state.collected_data.merged_with(extracted)
        verification_status = state.verification_status
        next_phase = state.phase

        if state.phase == ConversationPhase.INTENT and extracted_intent:
            next_phase = ConversationPhase.COLLECTION
        elif state.phase == ConversationPhase.COLLECTION:
            missing = missing_fields(collected_data, intent)
            if missing:
                self.logger.info("Still collecting", missing_fields=missing)
            else:
                next_phase = ConversationPhase.VERIFICATION
        elif state.phase == ConversationPhase.VERIFICATION:
            if verification_status.sms:
                next_phase = ConversationPhase.RESULTS
            elif self._confirmed_out_of_band(user_message, collected_data):
                verification_status = verification_status.model_copy(update={"sms": True})
                next_phase = ConversationPhase.RESULTS

        if next_phase != state.phase:
            self.logger.info(
                "Phase transition",
                from_phase=state.phase.value,
                to_phase=next_phase.value,
                intent=intent.value if intent else None,
            )

        return state.model_copy(
            update={
                "phase": next_phase,
                "intent": intent,
                "collected_data": collected_data,
                "verification_status": verification_status,
            }
        )

    def _confirmed_out_of_band(self, message: str, data: CollectedData) -> bool:
        if self.phone_verified is None or not data.phone or not is_affirmative(message):
            return False
        return self.phone_verified(data.phone)
