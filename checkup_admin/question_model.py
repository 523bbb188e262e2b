"""Shapes and default factories for checkup questionnaire questions."""

from __future__ import annotations

from typing import Any, Dict, List

SINGLE = "single"
MULTI = "multi"
MULTIPLE = "multiple"
FORM = "form"
SINGLE_WITH_INPUT = "single-with-input"
MULTIPLE_WITH_INPUT = "multiple-with-input"

QUESTION_TYPES = [
    SINGLE,
    MULTI,
    MULTIPLE,
    FORM,
    SINGLE_WITH_INPUT,
    MULTIPLE_WITH_INPUT,
]
QUESTION_TYPE_LABELS = {
    SINGLE: "Single choice",
    MULTI: "Multiple choice",
    MULTIPLE: "Multiple selection",
    FORM: "Form",
    SINGLE_WITH_INPUT: "Single choice with input",
    MULTIPLE_WITH_INPUT: "Multiple choice with input",
}
CHOICE_TYPES = frozenset(
    {SINGLE, MULTI, MULTIPLE, SINGLE_WITH_INPUT, MULTIPLE_WITH_INPUT}
)

FIELD_TYPES = ["text", "number", "email", "tel"]

# Keys derived from the question's position; never edited directly.
POSITIONAL_KEYS = frozenset({"index", "id"})


def variant_value(position: int) -> str:
    """Return the letter value for the variant at ``position`` (``a``, ``b``...)."""

    return chr(ord("a") + position)


def new_variant(position: int, label: str = "") -> Dict[str, Any]:
    """Return an answer variant with the sequential letter value."""

    return {"label": label, "value": variant_value(position)}


def default_variants() -> List[Dict[str, Any]]:
    """Return the two empty variants a fresh choice question starts with."""

    return [new_variant(0), new_variant(1)]


def default_form_field() -> Dict[str, Any]:
    return {"label": "", "name": "", "type": "text"}


def is_choice_type(question_type: Any) -> bool:
    """Return ``True`` when ``question_type`` offers selectable variants."""

    return question_type in CHOICE_TYPES


def new_question(index: int) -> Dict[str, Any]:
    """Return a blank single-choice question placed at ``index``."""

    return {
        "index": index,
        "id": str(index),
        "question": "",
        "type": SINGLE,
        "variants": default_variants(),
    }


def ensure_type_defaults(question: Dict[str, Any]) -> Dict[str, Any]:
    """Initialise variants or form fields for the question's type when absent."""

    question_type = question.get("type")
    if is_choice_type(question_type):
        if not question.get("variants"):
            question["variants"] = default_variants()
    elif question_type == FORM:
        if not question.get("fields"):
            question["fields"] = [default_form_field()]
    return question


def question_variants(question: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return the variants list of ``question`` or an empty list."""

    variants = question.get("variants")
    return variants if isinstance(variants, list) else []


def question_fields(question: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return the form fields list of ``question`` or an empty list."""

    fields = question.get("fields")
    return fields if isinstance(fields, list) else []
