import time
import uuid
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.middleware.rate_limiter import apply_rate_limiting
from app.models.database import create_database_engine, create_tables, get_session_maker
from app.models.mortgage import (
    BorrowingCapacityRequest,
    BorrowingCapacityResult,
    ChatRequest,
    ChatResponse,
    ConversationState,
    HealthResponse,
    ResetRequest,
    ResetResponse,
    SendCodeRequest,
    SendCodeResponse,
    VerificationType,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from app.services.calculation_service import BorrowingCapacityService
from app.services.conversation_service import ConversationService
from app.services.notification_service import NotificationService
from app.services.reply_service import OpenAIReplyService, ReplyGenerator
from app.services.session_store import (
    DatabaseSessionStore,
    InMemorySessionStore,
    SessionStore,
)
from app.services.verification_service import VerificationService
from app.utils.logger import bind_session, configure_logging, get_logger, log_api_request
from app.utils.prompts import FALLBACK_RESPONSE

# Configure structured logging
configure_logging(log_level=settings.log_level, log_format=settings.log_format)
logger = get_logger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Conversational mortgage pre-qualification with borrowing capacity estimates",
    version=settings.app_version,
    debug=settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

limiter = apply_rate_limiting(app)


@lru_cache
def get_session_store() -> SessionStore:
    """Process-wide session store selected by ``SESSION_BACKEND``"""
    if settings.session_backend == "database":
        engine = create_database_engine(settings.database_url)
        create_tables(engine)
        return DatabaseSessionStore(get_session_maker(engine))
    return InMemorySessionStore()


@lru_cache
def get_verification_service() -> VerificationService:
    return VerificationService(
        default_country_code=settings.sms_default_country_code,
        code_ttl_minutes=settings.verification_code_ttl_minutes,
        verified_retention_hours=settings.verified_retention_hours,
    )


@lru_cache
def get_notification_service() -> NotificationService:
    return NotificationService(from_email=settings.results_from_email)


def get_reply_generator() -> ReplyGenerator:
    if not settings.openai_api_key:
        raise HTTPException(
            status_code=500,
            detail="OpenAI API key is not configured. Please set OPENAI_API_KEY environment variable.",
        )
    return OpenAIReplyService(
        settings.openai_api_key,
        model=settings.openai_model,
        temperature=settings.openai_temperature,
        max_tokens=settings.max_tokens,
    )


def get_conversation_service(
    reply_generator: ReplyGenerator = Depends(get_reply_generator),
    verification: VerificationService = Depends(get_verification_service),
    notification: NotificationService = Depends(get_notification_service),
) -> ConversationService:
    return ConversationService(
        reply_generator,
        verification,
        notification,
        ai_extraction_priority=settings.ai_extraction_priority,
        default_interest_rate=settings.default_interest_rate,
        default_loan_term=settings.default_loan_term_years,
    )


def load_state(store: SessionStore, session_id: str) -> ConversationState:
    state = store.get(session_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return state


@app.on_event("startup")
async def startup_event():
    logger.info(
        "Application starting",
        app_name=settings.app_name,
        debug=settings.debug,
        session_backend=settings.session_backend,
    )
    if not settings.openai_api_key:
        logger.warning(
            "OpenAI API key not configured",
            help="Please set OPENAI_API_KEY environment variable",
        )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="ok")


@app.post("/chat", response_model=ChatResponse)
@limiter.limit(f"{settings.max_requests_per_minute}/minute")
async def chat(
    request: Request,
    chat_request: ChatRequest,
    conversation_service: ConversationService = Depends(get_conversation_service),
    store: SessionStore = Depends(get_session_store),
):
    """
    Process one applicant message.

    A missing or unknown ``session_id`` starts a new conversation. The updated
    state is saved only when the whole turn succeeds; any failure surfaces as a
    generic 500 and leaves the stored conversation untouched.
    """
    start_time = time.time()
    session_id = chat_request.session_id or str(uuid.uuid4())
    api_logger = log_api_request(
        method="POST",
        path="/chat",
        content_length=len(chat_request.message),
    )

    with bind_session(session_id):
        state = store.get(session_id) or ConversationState()

        try:
            turn = await conversation_service.process_turn(chat_request.message, state)
        except Exception as e:
            api_logger.error(
                "Error processing chat request",
                error=str(e),
                duration_ms=(time.time() - start_time) * 1000,
                status_code=500,
            )
            raise HTTPException(status_code=500, detail=FALLBACK_RESPONSE) from e

        store.set(session_id, turn.state)

        api_logger.info(
            "Chat request processed successfully",
            duration_ms=(time.time() - start_time) * 1000,
            phase=turn.state.phase.value,
        )
    return ChatResponse(
        response=turn.reply,
        session_id=session_id,
        phase=turn.state.phase,
        intent=turn.state.intent,
        collected_data=turn.state.collected_data,
        verification_status=turn.state.verification_status,
        results=turn.results,
    )


@app.get("/chat/session/{session_id}", response_model=ConversationState)
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    return load_state(store, session_id)


@app.post("/conversation/reset", response_model=ResetResponse)
async def reset_conversation(
    reset_request: ResetRequest,
    store: SessionStore = Depends(get_session_store),
):
    """Drop the given session (if any) and start a fresh one"""
    if reset_request.session_id:
        store.delete(reset_request.session_id)

    session_id = str(uuid.uuid4())
    store.set(session_id, ConversationState())
    logger.info(
        "Conversation reset",
        previous_session_id=reset_request.session_id,
        session_id=session_id,
    )
    return ResetResponse(message="New conversation started successfully", session_id=session_id)


@app.post("/verification/send", response_model=SendCodeResponse)
async def send_verification_code(
    send_request: SendCodeRequest,
    store: SessionStore = Depends(get_session_store),
    verification: VerificationService = Depends(get_verification_service),
):
    """Resend the SMS code for the phone collected in this session"""
    if send_request.type != VerificationType.SMS:
        raise HTTPException(status_code=400, detail="Only SMS verification is supported")

    state = load_state(store, send_request.session_id)
    phone = state.collected_data.phone
    if not phone:
        raise HTTPException(status_code=400, detail="No phone number collected yet")

    try:
        await verification.send_sms_code(phone)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return SendCodeResponse(sent=True, message="Verification code sent")


@app.post("/verification/verify", response_model=VerifyCodeResponse)
async def verify_code(
    verify_request: VerifyCodeRequest,
    store: SessionStore = Depends(get_session_store),
    verification: VerificationService = Depends(get_verification_service),
):
    """Check a code; a valid SMS code marks the session's phone as verified"""
    state = load_state(store, verify_request.session_id)
    data = state.collected_data
    identifier = data.phone if verify_request.type == VerificationType.SMS else data.email
    if not identifier:
        return VerifyCodeResponse(valid=False, error="Nothing to verify for this session")

    if not verification.verify_code(verify_request.type, verify_request.code, identifier):
        return VerifyCodeResponse(valid=False, error="Invalid or expired code")

    status_field = verify_request.type.value
    store.set(
        verify_request.session_id,
        state.model_copy(
            update={
                "verification_status": state.verification_status.model_copy(
                    update={status_field: True}
                )
            }
        ),
    )
    logger.info("Session identifier verified", type=status_field)
    return VerifyCodeResponse(valid=True)


@app.post("/calculation/borrowing-capacity", response_model=BorrowingCapacityResult)
async def calculate_borrowing_capacity(calculation_request: BorrowingCapacityRequest):
    """Stateless borrowing capacity calculation"""
    return BorrowingCapacityService.calculate_from_request(calculation_request)


@app.get("/")
async def root():
    return {
        "message": "Welcome to the Mortgage Pre-Qualification Assistant API",
        "endpoints": {
            "chat": "/chat",
            "session": "/chat/session/{session_id}",
            "reset": "/conversation/reset",
            "verification": "/verification/send, /verification/verify",
            "calculation": "/calculation/borrowing-capacity",
            "health": "/health",
            "docs": "/docs",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
