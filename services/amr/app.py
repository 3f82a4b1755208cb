import logging
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from services.amr import sessions
from services.amr.audit import verify_audit_chain
from services.amr.catalog import Question, QuestionCatalog, build_catalog
from services.amr.db import get_db, init_db
from services.amr.errors import AssessmentError, QuestionNumberOutOfRange, StorageUnavailable
from services.amr.schemas import (
    AnswerSubmitRequest,
    AnswerSubmitResponse,
    AuditVerifyResponse,
    OptionResponse,
    QuestionListResponse,
    QuestionResponse,
    ScoringResultResponse,
    SessionCreateResponse,
    SessionProgressResponse,
)
from services.amr.scoring import ScoringResult

logger = logging.getLogger(__name__)

SERVICE_NAME = "amr-assessment-api"
SERVICE_VERSION = "0.1.0"

# Create tables (dev-only). In production use migrations.
init_db()

# Built once at startup; routes receive it through get_catalog so tests can swap it.
CATALOG = build_catalog()

app = FastAPI(title="AMR Risk Assessment API", version=SERVICE_VERSION)


def get_catalog() -> QuestionCatalog:
    return CATALOG


@app.exception_handler(AssessmentError)
async def assessment_error_handler(request: Request, exc: AssessmentError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


@app.exception_handler(OperationalError)
async def storage_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    err = StorageUnavailable()
    return JSONResponse(status_code=err.status_code, content={"detail": err.to_dict()})


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return None


def _question_response(question: Question, total_questions: int) -> QuestionResponse:
    return QuestionResponse(
        id=question.id,
        number=question.number,
        category=question.category.value,
        prompt=question.prompt,
        options=[OptionResponse(label=o.label) for o in question.options],
        total_questions=total_questions,
    )


def _result_response(result: ScoringResult) -> ScoringResultResponse:
    return ScoringResultResponse(**result.to_dict())


@app.get("/health", tags=["Monitoring"])
def get_health():
    return {"status": "ok"}


@app.get("/version", tags=["Monitoring"])
def get_version():
    return {"service": SERVICE_NAME, "version": SERVICE_VERSION, "time": datetime.utcnow().isoformat()}


@app.post("/assessments/sessions", response_model=SessionCreateResponse, tags=["Assessment"])
def create_assessment_session(
    request: Request,
    db: Session = Depends(get_db),
    catalog: QuestionCatalog = Depends(get_catalog),
):
    session = sessions.create_session(
        db,
        user_agent=request.headers.get("User-Agent"),
        ip_address=_client_ip(request),
    )
    return SessionCreateResponse(
        session_id=session.id,
        status=session.status.value,
        created_at=session.created_at.isoformat(),
        total_questions=catalog.total_questions,
    )


@app.get("/assessments/questions", response_model=QuestionListResponse, tags=["Assessment"])
def list_questions(catalog: QuestionCatalog = Depends(get_catalog)):
    return QuestionListResponse(
        questions=[_question_response(q, catalog.total_questions) for q in catalog.questions],
        total_questions=catalog.total_questions,
    )


@app.get("/assessments/questions/{number}", response_model=QuestionResponse, tags=["Assessment"])
def get_question(number: int, catalog: QuestionCatalog = Depends(get_catalog)):
    question = catalog.get_question_by_number(number)
    if question is None:
        raise QuestionNumberOutOfRange(number, catalog.total_questions)
    return _question_response(question, catalog.total_questions)


@app.get("/assessments/sessions/{session_id}", response_model=SessionProgressResponse, tags=["Assessment"])
def get_session_progress(
    session_id: str,
    db: Session = Depends(get_db),
    catalog: QuestionCatalog = Depends(get_catalog),
):
    progress = sessions.get_session_progress(db, catalog, session_id)
    return SessionProgressResponse(
        session_id=progress.session_id,
        status=progress.status.value,
        answered_question_ids=list(progress.answered_question_ids),
        answered_count=progress.answered_count,
        total_questions=progress.total_questions,
        created_at=progress.created_at.isoformat(),
        completed_at=progress.completed_at.isoformat() if progress.completed_at else None,
    )


@app.post(
    "/assessments/sessions/{session_id}/responses",
    response_model=AnswerSubmitResponse,
    tags=["Assessment"],
)
def submit_answer(
    session_id: str,
    payload: AnswerSubmitRequest,
    db: Session = Depends(get_db),
    catalog: QuestionCatalog = Depends(get_catalog),
):
    receipt = sessions.record_response(db, catalog, session_id, payload.question_id, payload.answer)
    return AnswerSubmitResponse(
        accepted=receipt.accepted,
        overwritten=receipt.overwritten,
        answered_count=receipt.answered_count,
        total_questions=receipt.total_questions,
    )


@app.post(
    "/assessments/sessions/{session_id}/finalize",
    response_model=ScoringResultResponse,
    tags=["Assessment"],
)
def finalize_assessment(
    session_id: str,
    db: Session = Depends(get_db),
    catalog: QuestionCatalog = Depends(get_catalog),
):
    return _result_response(sessions.finalize_session(db, catalog, session_id))


@app.get(
    "/assessments/sessions/{session_id}/result",
    response_model=ScoringResultResponse,
    tags=["Assessment"],
)
def get_assessment_result(session_id: str, db: Session = Depends(get_db)):
    return _result_response(sessions.fetch_result(db, session_id))


@app.get("/audit/verify", response_model=AuditVerifyResponse, tags=["Audit"])
def verify_audit(db: Session = Depends(get_db)):
    return AuditVerifyResponse(ok=verify_audit_chain(db))
