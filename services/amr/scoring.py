"""Deterministic AMR risk scoring.

Pure functions, no I/O. The same multiset of (category, points) answers always
produces the same result, whatever order the answers arrive in:

1. Sum points per category.
2. Normalize each category to a 0-100 percentage of its catalog maximum.
3. Weight the percentages into a total (weights sum to 1.0, so 0-100).
4. Classify the rounded total into a risk band.
5. Pick every category tied at the highest percentage (none when all are 0).
6. Build the interpretation and recommendations from the level and that set.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from services.amr import models
from services.amr.catalog import QuestionCatalog
from services.amr.errors import IncompleteAssessment


class ScoredAnswer(Protocol):
    category: models.Category
    points: int


@dataclass(frozen=True)
class ScoringResult:
    total_score: float
    rounded_score: int
    risk_level: models.RiskLevel
    category_scores: dict[models.Category, int]
    category_percentages: dict[models.Category, int]
    highest_risk_categories: tuple[models.Category, ...]
    interpretation: str
    recommendations: tuple[str, ...]
    session_id: str | None = field(default=None, compare=False)
    created_at: datetime | None = field(default=None, compare=False)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "total_score": self.total_score,
            "rounded_score": self.rounded_score,
            "risk_level": self.risk_level.value,
            "category_scores": {c.value: v for c, v in self.category_scores.items()},
            "category_percentages": {c.value: v for c, v in self.category_percentages.items()},
            "highest_risk_categories": [c.value for c in self.highest_risk_categories],
            "interpretation": self.interpretation,
            "recommendations": list(self.recommendations),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


CATEGORY_RECOMMENDATIONS = {
    models.Category.behavioral: (
        "Always complete the full course of antibiotics as prescribed, even if you feel better.",
        "Only buy antibiotics with a valid doctor's prescription.",
        "Never use leftover antibiotics from previous illnesses.",
        "Do not share your antibiotics with family members or friends.",
    ),
    models.Category.knowledge: (
        "Remember: Antibiotics only work against bacteria, not viruses like colds or flu.",
        "It is bacteria that become resistant, not your body.",
        "Always consult a healthcare professional to determine if you need antibiotics.",
        "Learn more about Antimicrobial Resistance (AMR) to make informed health decisions.",
    ),
    models.Category.environmental: (
        "Wash your hands frequently with clean water and soap.",
        "Ensure access to clean drinking water and proper sanitation.",
        "Practice good food hygiene to prevent infections.",
        "Support community efforts to improve environmental sanitation.",
    ),
    models.Category.socioeconomic: (
        "Do not skip doses due to cost; consult a healthcare provider for affordable options.",
        "Visit licensed pharmacies or clinics instead of informal vendors.",
        "Seek government health programs that provide subsidized medicines.",
        "Report counterfeit medicines to local health authorities.",
    ),
}

RISK_LEVEL_RECOMMENDATIONS = {
    models.RiskLevel.high: (
        "Please consult a licensed healthcare professional before taking any antibiotics.",
        "Report any unusual symptoms to a medical professional immediately.",
    ),
    models.RiskLevel.moderate: (
        "Learn more about antimicrobial resistance to make informed health decisions.",
        "Share this knowledge with your family and community.",
    ),
    models.RiskLevel.low: (),
}

EDUCATIONAL_DISCLAIMER = (
    "This assessment is for educational purposes only and is not a medical diagnosis. "
    "Please consult a healthcare professional for personalized medical advice."
)

INTERPRETATIONS = {
    models.RiskLevel.low: (
        "Your AMR Risk Level is LOW (Score: {score}/100). You demonstrate good antimicrobial "
        "stewardship practices. Continue following professional medical advice and maintaining "
        "your current practices."
    ),
    models.RiskLevel.moderate: (
        "Your AMR Risk Level is MODERATE (Score: {score}/100). Some of your habits may increase "
        "your risk of contributing to antimicrobial resistance. Review the recommendations "
        "provided to reduce your risk."
    ),
    models.RiskLevel.high: (
        "Your AMR Risk Level is HIGH (Score: {score}/100). Your current practices significantly "
        "increase your risk of contributing to antimicrobial resistance. Please consult a licensed "
        "healthcare professional for guidance on improving your practices."
    ),
}

# Guidance is educational; it must never read as a diagnosis.
DIAGNOSIS_TERMS = [
    "diagnosed with",
    "you have an infection",
    "you are infected",
    "resistance confirmed",
]


def _round_half_up(value: Decimal, exp: str = "1") -> Decimal:
    return value.quantize(Decimal(exp), rounding=ROUND_HALF_UP)


def sum_category_scores(catalog: QuestionCatalog, answers: Iterable[ScoredAnswer]) -> dict[models.Category, int]:
    scores = {c: 0 for c in catalog.categories}
    for answer in answers:
        scores[models.Category(answer.category)] += answer.points
    for category, score in scores.items():
        if not 0 <= score <= catalog.max_points[category]:
            raise ValueError(f"{category.value} score {score} outside 0..{catalog.max_points[category]}")
    return scores


def calculate_category_percentage(score: int, max_points: int) -> int:
    if max_points == 0:
        return 0
    return int(_round_half_up(Decimal(100 * score) / Decimal(max_points)))


def calculate_weighted_total(catalog: QuestionCatalog, percentages: dict[models.Category, int]) -> Decimal:
    return sum(
        (Decimal(percentages[c]) * catalog.weights[c] for c in catalog.categories),
        Decimal(0),
    )


def find_highest_risk_categories(
    catalog: QuestionCatalog, percentages: dict[models.Category, int]
) -> tuple[models.Category, ...]:
    """All categories tied at the top percentage, in catalog order.

    Empty when every category sits at 0: there is no riskiest area to single out.
    """
    top = max(percentages.values())
    if top == 0:
        return ()
    return tuple(c for c in catalog.categories if percentages[c] == top)


def generate_interpretation(risk_level: models.RiskLevel, score: int) -> str:
    return INTERPRETATIONS[risk_level].format(score=score)


def generate_recommendations(
    risk_level: models.RiskLevel, highest_risk_categories: Iterable[models.Category]
) -> tuple[str, ...]:
    recommendations = []
    for category in highest_risk_categories:
        recommendations.extend(CATEGORY_RECOMMENDATIONS[category])
    recommendations.extend(RISK_LEVEL_RECOMMENDATIONS[risk_level])
    recommendations.append(EDUCATIONAL_DISCLAIMER)
    return tuple(recommendations)


def calculate_risk_score(catalog: QuestionCatalog, answers: Iterable[ScoredAnswer]) -> ScoringResult:
    """Score one complete set of answers (one per catalog question).

    Raises IncompleteAssessment when the answer count does not match the catalog.
    """
    answers = list(answers)
    if len(answers) != catalog.total_questions:
        raise IncompleteAssessment(expected=catalog.total_questions, actual=len(answers))

    category_scores = sum_category_scores(catalog, answers)
    category_percentages = {
        c: calculate_category_percentage(category_scores[c], catalog.max_points[c]) for c in catalog.categories
    }

    total = calculate_weighted_total(catalog, category_percentages)
    rounded_score = int(_round_half_up(total))
    risk_level = catalog.risk_level_for(rounded_score)

    highest = find_highest_risk_categories(catalog, category_percentages)
    interpretation = generate_interpretation(risk_level, rounded_score)
    recommendations = generate_recommendations(risk_level, highest)

    return ScoringResult(
        total_score=float(_round_half_up(total, "0.01")),
        rounded_score=rounded_score,
        risk_level=risk_level,
        category_scores=category_scores,
        category_percentages=category_percentages,
        highest_risk_categories=highest,
        interpretation=interpretation,
        recommendations=recommendations,
    )


def _validate_no_diagnosis_language(*texts: str):
    """Raises ValueError if any text contains forbidden diagnosis terms."""
    for text in texts:
        lower = text.lower()
        for term in DIAGNOSIS_TERMS:
            if term in lower:
                raise ValueError(f"Guidance contains forbidden diagnosis term: {term}")


def _all_guidance_texts() -> list[str]:
    texts = list(INTERPRETATIONS.values())
    for recs in CATEGORY_RECOMMENDATIONS.values():
        texts.extend(recs)
    for recs in RISK_LEVEL_RECOMMENDATIONS.values():
        texts.extend(recs)
    texts.append(EDUCATIONAL_DISCLAIMER)
    return texts


# Guidance is fixed text, so it is screened once at import.
_validate_no_diagnosis_language(*_all_guidance_texts())
