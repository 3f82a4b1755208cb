"""AMR risk questionnaire: the fixed question catalog.

The catalog is an immutable value built once by ``build_catalog()`` and passed
to the validator, the scoring engine and the session state machine. Category
maxima are derived from the questions; weights and risk bands are checked
when the catalog is constructed so a malformed catalog never reaches scoring.
"""
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Iterable, Mapping

from services.amr import models


@dataclass(frozen=True)
class Option:
    label: str
    points: int


@dataclass(frozen=True)
class Question:
    id: str
    number: int
    category: models.Category
    prompt: str
    options: tuple[Option, ...]

    @property
    def max_points(self) -> int:
        return max(o.points for o in self.options)

    @property
    def option_labels(self) -> list[str]:
        return [o.label for o in self.options]

    def find_option(self, label: str) -> Option | None:
        for option in self.options:
            if option.label == label:
                return option
        return None


@dataclass(frozen=True)
class RiskBand:
    level: models.RiskLevel
    min_score: int
    max_score: int

    def contains(self, score: int) -> bool:
        return self.min_score <= score <= self.max_score


SCORE_MIN = 0
SCORE_MAX = 100


class QuestionCatalog:
    """Ordered, validated set of questions plus the scoring constants derived from them."""

    def __init__(
        self,
        questions: Iterable[Question],
        weights: Mapping[models.Category, Decimal],
        bands: Iterable[RiskBand],
    ):
        self._questions = tuple(questions)
        self._bands = tuple(sorted(bands, key=lambda b: b.min_score))
        self._weights = MappingProxyType({c: Decimal(weights[c]) for c in models.Category if c in weights})
        self._check_questions()
        self._check_weights(weights)
        self._check_bands()

        self._by_id = MappingProxyType({q.id: q for q in self._questions})
        self._by_number = MappingProxyType({q.number: q for q in self._questions})
        maxima = {c: 0 for c in models.Category}
        for q in self._questions:
            maxima[q.category] += q.max_points
        self._max_points = MappingProxyType(maxima)

    def _check_questions(self) -> None:
        if not self._questions:
            raise ValueError("Catalog must contain at least one question")
        seen_ids = set()
        for expected_number, q in enumerate(self._questions, start=1):
            if q.number != expected_number:
                raise ValueError(f"Question {q.id} has number {q.number}, expected {expected_number}")
            if q.id in seen_ids:
                raise ValueError(f"Duplicate question id: {q.id}")
            seen_ids.add(q.id)
            if not q.options:
                raise ValueError(f"Question {q.id} has no options")
            labels = q.option_labels
            if len(set(labels)) != len(labels):
                raise ValueError(f"Question {q.id} has duplicate option labels")
            for option in q.options:
                if not isinstance(option.points, int) or option.points < 0:
                    raise ValueError(f"Question {q.id} option {option.label!r} has invalid points")

    def _check_weights(self, weights: Mapping[models.Category, Decimal]) -> None:
        missing = [c.value for c in models.Category if c not in weights]
        if missing:
            raise ValueError(f"Missing category weights: {', '.join(missing)}")
        for category, weight in self._weights.items():
            if not Decimal(0) <= weight <= Decimal(1):
                raise ValueError(f"Weight for {category.value} must be within [0, 1]")
        if sum(self._weights.values()) != Decimal(1):
            raise ValueError("Category weights must sum to exactly 1.0")

    def _check_bands(self) -> None:
        expected_min = SCORE_MIN
        for band in self._bands:
            if band.min_score != expected_min or band.max_score < band.min_score:
                raise ValueError(f"Risk band {band.level.value} leaves a gap or overlaps at {expected_min}")
            expected_min = band.max_score + 1
        if expected_min != SCORE_MAX + 1:
            raise ValueError(f"Risk bands must cover {SCORE_MIN}..{SCORE_MAX}")

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    @property
    def total_questions(self) -> int:
        return len(self._questions)

    def __len__(self) -> int:
        return len(self._questions)

    @property
    def question_ids(self) -> frozenset[str]:
        return frozenset(self._by_id)

    @property
    def categories(self) -> tuple[models.Category, ...]:
        """Categories in catalog order (the order of the closed enum)."""
        return tuple(models.Category)

    @property
    def weights(self) -> Mapping[models.Category, Decimal]:
        return self._weights

    @property
    def max_points(self) -> Mapping[models.Category, int]:
        return self._max_points

    @property
    def bands(self) -> tuple[RiskBand, ...]:
        return self._bands

    def get_question(self, question_id: str) -> Question | None:
        return self._by_id.get(question_id)

    def get_question_by_number(self, number: int) -> Question | None:
        return self._by_number.get(number)

    def questions_for(self, category: models.Category) -> list[Question]:
        return [q for q in self._questions if q.category == category]

    def risk_level_for(self, score: int) -> models.RiskLevel:
        for band in self._bands:
            if band.contains(score):
                return band.level
        raise ValueError(f"Score {score} outside {SCORE_MIN}..{SCORE_MAX}")


def _yes_no(yes_points: int, *, yes_first: bool = False) -> tuple[Option, ...]:
    if yes_first:
        return (Option("Yes", 0), Option("No", yes_points))
    return (Option("No", 0), Option("Yes", yes_points))


QUESTIONS = (
    Question(
        id="behavioral_1",
        number=1,
        category=models.Category.behavioral,
        prompt="Do you buy antibiotics without a doctor's prescription?",
        options=(Option("Never", 0), Option("Sometimes", 2), Option("Often", 3)),
    ),
    Question(
        id="behavioral_2",
        number=2,
        category=models.Category.behavioral,
        prompt="Do you stop taking antibiotics when you feel better, even if the course is not complete?",
        options=_yes_no(3),
    ),
    Question(
        id="behavioral_3",
        number=3,
        category=models.Category.behavioral,
        prompt="Do you use leftover antibiotics from previous illnesses?",
        options=_yes_no(3),
    ),
    Question(
        id="behavioral_4",
        number=4,
        category=models.Category.behavioral,
        prompt="Do you share your antibiotics with family members or friends?",
        options=_yes_no(2),
    ),
    Question(
        id="knowledge_1",
        number=5,
        category=models.Category.knowledge,
        prompt="Do you know that antibiotics only work against bacteria and not viruses?",
        options=_yes_no(2),
    ),
    Question(
        id="knowledge_2",
        number=6,
        category=models.Category.knowledge,
        prompt="Are you aware that it is bacteria that become resistant, not your body?",
        options=_yes_no(1),
    ),
    Question(
        id="knowledge_3",
        number=7,
        category=models.Category.knowledge,
        prompt="Do you know what Antimicrobial Resistance (AMR) is?",
        options=_yes_no(1),
    ),
    Question(
        id="environmental_1",
        number=8,
        category=models.Category.environmental,
        prompt="Do you have access to clean drinking water and proper sanitation?",
        options=_yes_no(2, yes_first=True),
    ),
    Question(
        id="environmental_2",
        number=9,
        category=models.Category.environmental,
        prompt="Do you live in an area with poor waste management or environmental pollution?",
        options=_yes_no(2),
    ),
    Question(
        id="environmental_3",
        number=10,
        category=models.Category.environmental,
        prompt="How often do you wash your hands with clean water and soap?",
        options=(Option("Always", 0), Option("Sometimes", 1), Option("Rarely", 2)),
    ),
    Question(
        id="socioeconomic_1",
        number=11,
        category=models.Category.socioeconomic,
        prompt="Do you skip doses of prescribed antibiotics due to cost?",
        options=_yes_no(2),
    ),
    Question(
        id="socioeconomic_2",
        number=12,
        category=models.Category.socioeconomic,
        prompt="Do you buy antibiotics from informal vendors or street sellers instead of licensed pharmacies?",
        options=_yes_no(2),
    ),
)

CATEGORY_WEIGHTS = {
    models.Category.behavioral: Decimal("0.4"),
    models.Category.knowledge: Decimal("0.2"),
    models.Category.environmental: Decimal("0.2"),
    models.Category.socioeconomic: Decimal("0.2"),
}

RISK_BANDS = (
    RiskBand(models.RiskLevel.low, 0, 30),
    RiskBand(models.RiskLevel.moderate, 31, 60),
    RiskBand(models.RiskLevel.high, 61, 100),
)


def build_catalog() -> QuestionCatalog:
    return QuestionCatalog(QUESTIONS, CATEGORY_WEIGHTS, RISK_BANDS)
