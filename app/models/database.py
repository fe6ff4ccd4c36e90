"""Database models for conversation session persistence"""

import uuid

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import func

Base = declarative_base()


class ConversationSession(Base):
    """One conversation's serialized ``ConversationState``"""

    __tablename__ = "conversation_sessions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    phase = Column(String, nullable=False)  # denormalized for querying
    state_json = Column(Text, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )


# Database setup
def create_database_engine(database_url: str = "sqlite:///./mortgage_prequal.db"):
    """Create database engine"""
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
        echo=False,
    )
    return engine


def create_tables(engine):
    Base.metadata.create_all(bind=engine)


def get_session_maker(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
