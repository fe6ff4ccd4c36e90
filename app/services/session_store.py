"""Session stores: get/set/delete a ConversationState by session key"""

from typing import Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.database import ConversationSession
from app.models.mortgage import ConversationState
from app.utils.logger import LoggerMixin


class SessionStore(Protocol):
    def get(self, session_id: str) -> ConversationState | None: ...

    def set(self, session_id: str, state: ConversationState) -> None: ...

    def delete(self, session_id: str) -> None: ...


class InMemorySessionStore(LoggerMixin):
    """Process-local store; states are kept as serialized copies so callers never share one"""

    def __init__(self):
        self._states: dict[str, str] = {}

    def get(self, session_id: str) -> ConversationState | None:
        payload = self._states.get(session_id)
        if payload is None:
            return None
        return ConversationState.model_validate_json(payload)

    def set(self, session_id: str, state: ConversationState) -> None:
        self._states[session_id] = state.model_dump_json()

    def delete(self, session_id: str) -> None:
        self._states.pop(session_id, None)


class DatabaseSessionStore(LoggerMixin):
    """SQLAlchemy-backed store, one short-lived DB session per operation"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, session_id: str) -> ConversationState | None:
        with self.session_factory() as db:
            row = db.get(ConversationSession, session_id)
            if row is None:
                return None
            return ConversationState.model_validate_json(row.state_json)

    def set(self, session_id: str, state: ConversationState) -> None:
        with self.session_factory() as db:
            try:
                row = db.get(ConversationSession, session_id)
                if row is None:
                    row = ConversationSession(id=session_id)
                    db.add(row)
                row.phase = state.phase.value
                row.state_json = state.model_dump_json()
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                self.logger.error(
                    "Failed to save conversation state",
                    error=str(e),
                    session_id=session_id,
                )
                raise

        self.logger.debug("Saved conversation state", session_id=session_id, phase=state.phase.value)

    def delete(self, session_id: str) -> None:
        with self.session_factory() as db:
            try:
                row = db.get(ConversationSession, session_id)
                if row is not None:
                    db.delete(row)
                    db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                self.logger.error(
                    "Failed to delete conversation state",
                    error=str(e),
                    session_id=session_id,
                )
                raise
