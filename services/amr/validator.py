from dataclasses import dataclass

from services.amr import models
from services.amr.catalog import QuestionCatalog
from services.amr.errors import InvalidOption, UnknownQuestion


@dataclass(frozen=True)
class ResolvedAnswer:
    question_id: str
    category: models.Category
    label: str
    points: int


def validate_answer(catalog: QuestionCatalog, question_id: str, label: str) -> ResolvedAnswer:
    """Resolve a submitted option label to its category and point value.

    Labels must match exactly. Raises UnknownQuestion or InvalidOption (with the
    legal labels) instead of guessing.
    """
    question = catalog.get_question(question_id)
    if question is None:
        raise UnknownQuestion(question_id)

    option = question.find_option(label)
    if option is None:
        raise InvalidOption(question_id, label, question.option_labels)

    return ResolvedAnswer(
        question_id=question.id,
        category=question.category,
        label=option.label,
        points=option.points,
    )
