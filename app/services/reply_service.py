"""Conversational reply generation backed by an OpenAI chat model"""

import time
from typing import Protocol, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from app.models.mortgage import (
    BorrowingCapacityResult,
    ConversationPhase,
    ConversationState,
    Message,
    MessageSender,
)
from app.services.conversation_state_machine import missing_fields
from app.utils.logger import LoggerMixin, log_llm_interaction
from app.utils.phone import format_phone_for_display
from app.utils.prompts import FIELD_LABELS, PHASE_INSTRUCTIONS, SYSTEM_PROMPT


class ReplyGenerator(Protocol):
    async def generate_reply(self, history: Sequence[Message], instructions: str) -> str: ...


def _currency(amount: float) -> str:
    return f"${amount:,.0f}"


def phase_instructions(
    state: ConversationState, result: BorrowingCapacityResult | None = None
) -> str:
    """Describe the current phase and its facts for the reply model."""
    template = PHASE_INSTRUCTIONS[state.phase.value]

    if state.phase == ConversationPhase.COLLECTION:
        missing = missing_fields(state.collected_data, state.intent)
        return template.format(
            intent=state.intent.value if state.intent else "get a home loan",
            missing_fields=", ".join(FIELD_LABELS.get(f, f) for f in missing) or "nothing",
        )
    if state.phase == ConversationPhase.VERIFICATION:
        phone = state.collected_data.phone
        return template.format(phone=format_phone_for_display(phone) if phone else "their phone")
    if state.phase == ConversationPhase.RESULTS and result is not None:
        return template.format(
            min_borrowing_capacity=_currency(result.min_borrowing_capacity),
            max_borrowing_capacity=_currency(result.max_borrowing_capacity),
            net_monthly_income=_currency(result.net_monthly_income),
            monthly_expenses=_currency(result.monthly_expenses),
            assessment_rate=f"{result.assessment_rate:.2%}",
        )
    return template


def to_chat_messages(history: Sequence[Message], instructions: str) -> list[BaseMessage]:
    messages: list[BaseMessage] = [SystemMessage(content=f"{SYSTEM_PROMPT}\n\n{instructions}")]
    for message in history:
        if message.sender == MessageSender.USER:
            messages.append(HumanMessage(content=message.content))
        else:
            messages.append(AIMessage(content=message.content))
    return messages


class OpenAIReplyService(LoggerMixin):
    """Reply collaborator using LangChain's ``ChatOpenAI``; errors propagate to the caller"""

    def __init__(
        self,
        openai_api_key: str,
        model: str = "gpt-4",
        temperature: float = 0.7,
        max_tokens: int = 500,
    ):
        self.model = model
        self.llm = ChatOpenAI(
            api_key=openai_api_key,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def generate_reply(self, history: Sequence[Message], instructions: str) -> str:
        start_time = time.time()
        response = await self.llm.ainvoke(to_chat_messages(history, instructions))

        usage = getattr(response, "usage_metadata", None) or {}
        log_llm_interaction(
            model=self.model,
            tokens_used=usage.get("total_tokens"),
            response_time_ms=(time.time() - start_time) * 1000,
        ).info("Generated reply", history_length=len(history))

        return str(response.content).strip()
