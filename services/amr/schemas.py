from pydantic import BaseModel, Field


class SessionCreateResponse(BaseModel):
    session_id: str
    status: str
    created_at: str
    total_questions: int


class SessionProgressResponse(BaseModel):
    session_id: str
    status: str
    answered_question_ids: list[str]
    answered_count: int
    total_questions: int
    created_at: str
    completed_at: str | None = None


class OptionResponse(BaseModel):
    """Option label only; point values stay server-side."""
    label: str


class QuestionResponse(BaseModel):
    id: str
    number: int
    category: str
    prompt: str
    options: list[OptionResponse]
    total_questions: int


class QuestionListResponse(BaseModel):
    questions: list[QuestionResponse]
    total_questions: int


class AnswerSubmitRequest(BaseModel):
    question_id: str = Field(min_length=1, max_length=64)
    answer: str = Field(min_length=1, max_length=256)


class AnswerSubmitResponse(BaseModel):
    accepted: bool
    overwritten: bool
    answered_count: int
    total_questions: int


class ScoringResultResponse(BaseModel):
    session_id: str
    total_score: float
    rounded_score: int
    risk_level: str
    category_scores: dict[str, int]
    category_percentages: dict[str, int]
    highest_risk_categories: list[str]
    interpretation: str
    recommendations: list[str]
    created_at: str | None = None


class AuditVerifyResponse(BaseModel):
    ok: bool
