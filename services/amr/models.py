import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Category(str, enum.Enum):
    behavioral = "behavioral"
    knowledge = "knowledge"
    environmental = "environmental"
    socioeconomic = "socioeconomic"


class RiskLevel(str, enum.Enum):
    low = "low"
    moderate = "moderate"
    high = "high"


class SessionStatus(str, enum.Enum):
    in_progress = "in_progress"
    completed = "completed"
    abandoned = "abandoned"


class AssessmentSession(Base):
    __tablename__ = "assessment_sessions"

    # Opaque token handed to the respondent; generated by sessions.new_session_id().
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus), default=SessionStatus.in_progress, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    abandoned_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Optional client metadata. The raw IP is never stored.
    user_agent: Mapped[str | None] = mapped_column(String, nullable=True)
    ip_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)


class AssessmentResponse(Base):
    __tablename__ = "assessment_responses"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id: Mapped[str] = mapped_column(String(64), ForeignKey("assessment_sessions.id"), index=True)
    question_id: Mapped[str] = mapped_column(String(64))

    category: Mapped[Category] = mapped_column(Enum(Category))
    answer_label: Mapped[str] = mapped_column(String)
    points: Mapped[int] = mapped_column(Integer)

    answered_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # One answer per question per session; resubmission updates this row.
    __table_args__ = (UniqueConstraint("session_id", "question_id", name="uq_session_question"),)


class AssessmentResult(Base):
    __tablename__ = "assessment_results"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("assessment_sessions.id"), unique=True, index=True
    )

    total_score: Mapped[float] = mapped_column(Float)
    rounded_score: Mapped[int] = mapped_column(Integer)
    risk_level: Mapped[RiskLevel] = mapped_column(Enum(RiskLevel), index=True)

    category_scores_json: Mapped[str] = mapped_column(String)
    category_percentages_json: Mapped[str] = mapped_column(String)
    highest_risk_categories_json: Mapped[str] = mapped_column(String)
    interpretation: Mapped[str] = mapped_column(String)
    recommendations_json: Mapped[str] = mapped_column(String)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    action: Mapped[str] = mapped_column(String, index=True)
    entity_type: Mapped[str] = mapped_column(String, index=True)
    entity_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)

    ip_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    detail_json: Mapped[str | None] = mapped_column(String, nullable=True)

    ts: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    # Tamper detection: hash chain
    prev_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    entry_hash: Mapped[str] = mapped_column(String, index=True)
