"""Assessment session state machine.

A session starts ``in_progress`` and leaves it exactly once: to ``completed``
through finalize_session(), or to ``abandoned`` through the abandonment sweep.
Both are terminal. Writes to a session are only accepted while it is
``in_progress``; each operation commits its own unit of work.
"""
import hashlib
import json
import logging
import os
import secrets
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from services.amr import models
from services.amr.audit import write_audit
from services.amr.catalog import QuestionCatalog
from services.amr.errors import (
    IncompleteAssessment,
    ResultNotFound,
    SessionAlreadyFinalized,
    SessionNotFound,
)
from services.amr.scoring import ScoringResult, calculate_risk_score
from services.amr.validator import validate_answer


logger = logging.getLogger(__name__)

IP_HASH_SALT = os.getenv("AMR_IP_HASH_SALT", "")

VALID_TRANSITIONS = {
    models.SessionStatus.in_progress: [models.SessionStatus.completed, models.SessionStatus.abandoned],
    models.SessionStatus.completed: [],
    models.SessionStatus.abandoned: [],
}


def validate_status_transition(current: models.SessionStatus, new: models.SessionStatus) -> bool:
    """Returns True if transition is valid."""
    return new in VALID_TRANSITIONS.get(current, [])


@dataclass(frozen=True)
class ResponseReceipt:
    accepted: bool
    overwritten: bool
    answered_count: int
    total_questions: int


@dataclass(frozen=True)
class SessionProgress:
    session_id: str
    status: models.SessionStatus
    answered_question_ids: tuple[str, ...]
    total_questions: int
    created_at: datetime
    completed_at: datetime | None

    @property
    def answered_count(self) -> int:
        return len(self.answered_question_ids)


def new_session_id() -> str:
    # 32 URL-safe characters, ~192 bits of entropy.
    return secrets.token_urlsafe(24)


def hash_ip(ip_address: str | None) -> str | None:
    if not ip_address:
        return None
    digest = hashlib.sha256(f"{IP_HASH_SALT}{ip_address}".encode("utf-8")).hexdigest()
    return digest[:32]


def _get_session(db: Session, session_id: str) -> models.AssessmentSession:
    session = db.get(models.AssessmentSession, session_id)
    if session is None:
        raise SessionNotFound(session_id)
    return session


def _require_in_progress(session: models.AssessmentSession) -> None:
    if session.status != models.SessionStatus.in_progress:
        logger.warning(f"Rejected write to session {session.id} in status {session.status.value}")
        raise SessionAlreadyFinalized(session.id, session.status.value)


def _answered_count(db: Session, session_id: str) -> int:
    return (
        db.query(func.count(models.AssessmentResponse.id))
        .filter(models.AssessmentResponse.session_id == session_id)
        .scalar()
    )


def _load_responses(
    db: Session, session_id: str, *, refresh: bool = False
) -> list[models.AssessmentResponse]:
    query = db.query(models.AssessmentResponse).filter(models.AssessmentResponse.session_id == session_id)
    if refresh:
        # Overwrite rows already in the identity map with what is stored now.
        query = query.populate_existing()
    return query.all()


def create_session(
    db: Session, *, user_agent: str | None = None, ip_address: str | None = None
) -> models.AssessmentSession:
    ip_hash = hash_ip(ip_address)
    session = models.AssessmentSession(
        id=new_session_id(),
        status=models.SessionStatus.in_progress,
        user_agent=user_agent,
        ip_hash=ip_hash,
    )
    db.add(session)
    write_audit(db=db, action="assessment.session.create", entity_id=session.id, ip_hash=ip_hash)
    db.commit()
    db.refresh(session)

    logger.info(f"Created assessment session {session.id}")
    return session


def record_response(
    db: Session, catalog: QuestionCatalog, session_id: str, question_id: str, label: str
) -> ResponseReceipt:
    """Store the answer to one question, replacing any earlier answer to it."""
    for attempt in range(2):
        session = _get_session(db, session_id)
        _require_in_progress(session)
        answer = validate_answer(catalog, question_id, label)

        existing = (
            db.query(models.AssessmentResponse)
            .filter(
                models.AssessmentResponse.session_id == session_id,
                models.AssessmentResponse.question_id == answer.question_id,
            )
            .first()
        )
        overwritten = existing is not None
        try:
            if existing is not None:
                existing.answer_label = answer.label
                existing.points = answer.points
                existing.category = answer.category
                existing.updated_at = datetime.utcnow()
            else:
                db.add(
                    models.AssessmentResponse(
                        session_id=session_id,
                        question_id=answer.question_id,
                        category=answer.category,
                        answer_label=answer.label,
                        points=answer.points,
                    )
                )
            write_audit(
                db=db,
                action="assessment.response.submit",
                entity_id=session_id,
                detail={"question_id": answer.question_id, "overwritten": overwritten},
            )
            db.commit()
            break
        except IntegrityError:
            # Another writer inserted this question first; retry once as an overwrite.
            db.rollback()
            if attempt:
                raise
            logger.warning(f"Retrying response upsert for session {session_id} question {question_id}")

    return ResponseReceipt(
        accepted=True,
        overwritten=overwritten,
        answered_count=_answered_count(db, session_id),
        total_questions=catalog.total_questions,
    )


def _complete_answer_set(
    catalog: QuestionCatalog, responses: list[models.AssessmentResponse]
) -> list[models.AssessmentResponse]:
    answered = {r.question_id: r for r in responses if r.question_id in catalog.question_ids}
    if set(answered) != catalog.question_ids:
        raise IncompleteAssessment(expected=catalog.total_questions, actual=len(answered))
    return [answered[q.id] for q in catalog.questions]


def _result_to_row(session_id: str, result: ScoringResult) -> models.AssessmentResult:
    data = result.to_dict()
    return models.AssessmentResult(
        session_id=session_id,
        total_score=result.total_score,
        rounded_score=result.rounded_score,
        risk_level=result.risk_level,
        category_scores_json=json.dumps(data["category_scores"]),
        category_percentages_json=json.dumps(data["category_percentages"]),
        highest_risk_categories_json=json.dumps(data["highest_risk_categories"]),
        interpretation=result.interpretation,
        recommendations_json=json.dumps(data["recommendations"]),
    )


def _result_from_row(row: models.AssessmentResult) -> ScoringResult:
    return ScoringResult(
        total_score=row.total_score,
        rounded_score=row.rounded_score,
        risk_level=row.risk_level,
        category_scores={models.Category(k): v for k, v in json.loads(row.category_scores_json).items()},
        category_percentages={
            models.Category(k): v for k, v in json.loads(row.category_percentages_json).items()
        },
        highest_risk_categories=tuple(models.Category(c) for c in json.loads(row.highest_risk_categories_json)),
        interpretation=row.interpretation,
        recommendations=tuple(json.loads(row.recommendations_json)),
        session_id=row.session_id,
        created_at=row.created_at,
    )


def finalize_session(db: Session, catalog: QuestionCatalog, session_id: str) -> ScoringResult:
    """Score a fully answered session, persist the result and complete the session.

    Exactly once per session: a second call raises SessionAlreadyFinalized.
    """
    session = _get_session(db, session_id)
    _require_in_progress(session)
    _complete_answer_set(catalog, _load_responses(db, session_id))

    # Conditional transition: only one finalizer moves the session out of in_progress.
    transitioned = (
        db.query(models.AssessmentSession)
        .filter(
            models.AssessmentSession.id == session_id,
            models.AssessmentSession.status == models.SessionStatus.in_progress,
        )
        .update(
            {"status": models.SessionStatus.completed, "completed_at": datetime.utcnow()},
            synchronize_session=False,
        )
    )
    if transitioned != 1:
        db.rollback()
        db.refresh(session)
        raise SessionAlreadyFinalized(session_id, session.status.value)

    # Score the answers as stored once the session stopped accepting writes.
    try:
        answers = _complete_answer_set(catalog, _load_responses(db, session_id, refresh=True))
    except IncompleteAssessment:
        db.rollback()
        raise
    result = calculate_risk_score(catalog, answers)

    row = _result_to_row(session_id, result)
    db.add(row)
    try:
        write_audit(
            db=db,
            action="assessment.finalize",
            entity_id=session_id,
            detail={"risk_level": result.risk_level.value, "rounded_score": result.rounded_score},
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SessionAlreadyFinalized(session_id, models.SessionStatus.completed.value)

    db.refresh(row)
    logger.info(f"Finalized assessment session {session_id}: {result.risk_level.value} ({result.rounded_score})")
    return _result_from_row(row)


def fetch_result(db: Session, session_id: str) -> ScoringResult:
    row = (
        db.query(models.AssessmentResult)
        .filter(models.AssessmentResult.session_id == session_id)
        .first()
    )
    if row is None:
        raise ResultNotFound(session_id)
    return _result_from_row(row)


def get_session_progress(db: Session, catalog: QuestionCatalog, session_id: str) -> SessionProgress:
    session = _get_session(db, session_id)
    answered = {r.question_id for r in _load_responses(db, session_id)}
    return SessionProgress(
        session_id=session.id,
        status=session.status,
        answered_question_ids=tuple(q.id for q in catalog.questions if q.id in answered),
        total_questions=catalog.total_questions,
        created_at=session.created_at,
        completed_at=session.completed_at,
    )


def abandon_session(db: Session, session: models.AssessmentSession, reason: str = "inactivity") -> bool:
    """Mark an in-progress session abandoned. Caller commits.

    Returns False (and changes nothing) when the session already left in_progress,
    including when it was finalized after the caller loaded it.
    """
    if not validate_status_transition(session.status, models.SessionStatus.abandoned):
        return False

    transitioned = (
        db.query(models.AssessmentSession)
        .filter(
            models.AssessmentSession.id == session.id,
            models.AssessmentSession.status == models.SessionStatus.in_progress,
        )
        .update(
            {"status": models.SessionStatus.abandoned, "abandoned_at": datetime.utcnow()},
            synchronize_session=False,
        )
    )
    if transitioned != 1:
        logger.warning(f"Skipped abandoning session {session.id}: no longer in progress")
        return False

    write_audit(db=db, action="assessment.abandon", entity_id=session.id, detail={"reason": reason})

    logger.info(f"Abandoned assessment session {session.id} ({reason})")
    return True
