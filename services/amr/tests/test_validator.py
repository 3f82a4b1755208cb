import pytest

from services.amr import models
from services.amr.errors import InvalidOption, UnknownQuestion
from services.amr.validator import validate_answer


def test_every_catalog_option_validates(catalog):
    for question in catalog.questions:
        for option in question.options:
            resolved = validate_answer(catalog, question.id, option.label)
            assert resolved.question_id == question.id
            assert resolved.category == question.category
            assert resolved.label == option.label
            assert resolved.points == option.points


def test_documented_point_values(catalog):
    assert validate_answer(catalog, "behavioral_1", "Sometimes").points == 2
    assert validate_answer(catalog, "environmental_1", "No").points == 2
    assert validate_answer(catalog, "environmental_1", "Yes").points == 0
    resolved = validate_answer(catalog, "knowledge_1", "Yes")
    assert (resolved.category, resolved.points) == (models.Category.knowledge, 2)


def test_unknown_question_rejected(catalog):
    with pytest.raises(UnknownQuestion) as exc:
        validate_answer(catalog, "behavioral_9", "Yes")
    assert exc.value.question_id == "behavioral_9"
    assert exc.value.status_code == 404


def test_invalid_option_lists_legal_labels(catalog):
    with pytest.raises(InvalidOption) as exc:
        validate_answer(catalog, "behavioral_1", "Always")
    assert exc.value.valid_options == ["Never", "Sometimes", "Often"]
    body = exc.value.to_dict()
    assert body["code"] == "INVALID_OPTION"
    assert body["valid_options"] == ["Never", "Sometimes", "Often"]
    assert "Never, Sometimes, Often" in body["message"]


@pytest.mark.parametrize("label", ["yes", " Yes", "Yes ", "", "1"])
def test_labels_must_match_exactly(catalog, label):
    with pytest.raises(InvalidOption):
        validate_answer(catalog, "behavioral_2", label)
