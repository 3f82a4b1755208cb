"""Answer label sets shared by the assessment tests."""
from services.amr.validator import validate_answer

# Catalog-order labels per scenario; see the point values in services/amr/catalog.py.
ALL_MIN_LABELS = {
    "behavioral_1": "Never",
    "behavioral_2": "No",
    "behavioral_3": "No",
    "behavioral_4": "No",
    "knowledge_1": "No",
    "knowledge_2": "No",
    "knowledge_3": "No",
    "environmental_1": "Yes",
    "environmental_2": "No",
    "environmental_3": "Always",
    "socioeconomic_1": "No",
    "socioeconomic_2": "No",
}

# behavioral=8, knowledge=3, environmental=4, socioeconomic=2
EXAMPLE_LABELS = {
    "behavioral_1": "Often",
    "behavioral_2": "Yes",
    "behavioral_3": "No",
    "behavioral_4": "Yes",
    "knowledge_1": "Yes",
    "knowledge_2": "Yes",
    "knowledge_3": "No",
    "environmental_1": "No",
    "environmental_2": "Yes",
    "environmental_3": "Always",
    "socioeconomic_1": "Yes",
    "socioeconomic_2": "No",
}

ALL_MAX_LABELS = {
    "behavioral_1": "Often",
    "behavioral_2": "Yes",
    "behavioral_3": "Yes",
    "behavioral_4": "Yes",
    "knowledge_1": "Yes",
    "knowledge_2": "Yes",
    "knowledge_3": "Yes",
    "environmental_1": "No",
    "environmental_2": "Yes",
    "environmental_3": "Rarely",
    "socioeconomic_1": "Yes",
    "socioeconomic_2": "Yes",
}

# knowledge=2/4 and socioeconomic=2/4, everything else at its minimum.
TIE_LABELS = {
    **ALL_MIN_LABELS,
    "knowledge_2": "Yes",
    "knowledge_3": "Yes",
    "socioeconomic_1": "Yes",
}


def resolve_all(catalog, labels):
    return [validate_answer(catalog, qid, label) for qid, label in labels.items()]
