"""Typed failures raised by the assessment core.

Every rejection is explicit: the core never substitutes a default answer or
score for bad input. Each error carries the HTTP status the API maps it to and
a JSON-safe ``detail`` payload so clients can correct the request.
"""


class AssessmentError(Exception):
    """Base class for all assessment failures."""

    status_code = 400
    code = "ASSESSMENT_ERROR"

    def __init__(self, message: str, **detail) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, **self.detail}


class UnknownQuestion(AssessmentError):
    status_code = 404
    code = "UNKNOWN_QUESTION"

    def __init__(self, question_id: str) -> None:
        super().__init__(f"Question not found: {question_id}", question_id=question_id)
        self.question_id = question_id


class QuestionNumberOutOfRange(AssessmentError):
    status_code = 404
    code = "QUESTION_NOT_FOUND"

    def __init__(self, number: int, total_questions: int) -> None:
        super().__init__("Question not found", number=number, total_questions=total_questions)
        self.number = number
        self.total_questions = total_questions


class InvalidOption(AssessmentError):
    status_code = 422
    code = "INVALID_OPTION"

    def __init__(self, question_id: str, label: str, valid_options: list[str]) -> None:
        super().__init__(
            f"Invalid answer option. Valid options: {', '.join(valid_options)}",
            question_id=question_id,
            answer=label,
            valid_options=list(valid_options),
        )
        self.question_id = question_id
        self.label = label
        self.valid_options = list(valid_options)


class SessionNotFound(AssessmentError):
    status_code = 404
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str) -> None:
        super().__init__("Assessment session not found", session_id=session_id)
        self.session_id = session_id


class SessionAlreadyFinalized(AssessmentError):
    """The session left ``in_progress``; it accepts no further writes."""

    status_code = 409
    code = "SESSION_ALREADY_FINALIZED"

    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(f"Assessment session is {status}", session_id=session_id, status=status)
        self.session_id = session_id
        self.status = status


class IncompleteAssessment(AssessmentError):
    code = "INCOMPLETE_ASSESSMENT"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Incomplete assessment. Expected {expected} responses, got {actual}",
            expected=expected,
            actual=actual,
        )
        self.expected = expected
        self.actual = actual


class ResultNotFound(AssessmentError):
    status_code = 404
    code = "RESULT_NOT_FOUND"

    def __init__(self, session_id: str) -> None:
        super().__init__("Assessment result not found", session_id=session_id)
        self.session_id = session_id


class StorageUnavailable(AssessmentError):
    status_code = 503
    code = "STORAGE_UNAVAILABLE"

    def __init__(self) -> None:
        super().__init__("Assessment storage is temporarily unavailable")
