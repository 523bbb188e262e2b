"""Structural and field-level edits over a checkup questionnaire.

Every function takes the current question list, leaves it untouched and
returns a new list. Structural operations (add, remove, duplicate, move,
import) run the result through :func:`rebuild_questions` so ids, indexes and
conditions stay consistent.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Dict, Iterable, List, Optional, Sequence

from checkup_admin.condition_graph import rebuild_questions
from checkup_admin.log import get_logger
from checkup_admin.question_model import (
    POSITIONAL_KEYS,
    default_form_field,
    ensure_type_defaults,
    new_question,
    new_variant,
    question_fields,
    question_variants,
)

logger = get_logger(__name__)

UP = "up"
DOWN = "down"


class QuestionnaireEditError(ValueError):
    """Raised when an edit would violate the questionnaire's contract."""


def _copy(questions: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [deepcopy(question) for question in questions]


def _check_position(questions: Sequence[Dict[str, Any]], position: int) -> None:
    if not isinstance(position, int) or not 0 <= position < len(questions):
        raise QuestionnaireEditError(
            f"Question position {position!r} is out of range for {len(questions)} questions."
        )


def _check_item(items: Sequence[Any], item_index: int, label: str) -> None:
    if not isinstance(item_index, int) or not 0 <= item_index < len(items):
        raise QuestionnaireEditError(f"{label} {item_index!r} does not exist.")


def _entries(questions: Sequence[Dict[str, Any]]) -> List[tuple]:
    return [(question.get("id"), question) for question in questions]


def add_question(questions: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Append a blank single-choice question."""

    updated = _copy(questions)
    entries = _entries(updated)
    entries.append((None, new_question(len(updated) + 1)))
    return rebuild_questions(entries)


def remove_question(
    questions: Sequence[Dict[str, Any]], position: int
) -> List[Dict[str, Any]]:
    """Delete the question at ``position`` and drop conditions pointing at it."""

    _check_position(questions, position)
    updated = _copy(questions)
    removed = updated.pop(position)
    logger.debug("Removing question %s", removed.get("id"))
    return rebuild_questions(_entries(updated), removed_ids=[str(removed.get("id"))])


def duplicate_question(
    questions: Sequence[Dict[str, Any]], position: int
) -> List[Dict[str, Any]]:
    """Append a deep copy of the question at ``position``.

    The copy keeps its condition, which still references the original's
    dependency and therefore remains strictly earlier once appended.
    """

    _check_position(questions, position)
    updated = _copy(questions)
    clone = deepcopy(updated[position])
    entries = _entries(updated)
    entries.append((None, clone))
    return rebuild_questions(entries)


def move_question(
    questions: Sequence[Dict[str, Any]], position: int, direction: str
) -> List[Dict[str, Any]]:
    """Swap the question at ``position`` with its neighbour in ``direction``.

    Moving past either end returns an unchanged copy. Conditions invalidated by
    the swap are dropped.
    """

    _check_position(questions, position)
    if direction not in {UP, DOWN}:
        raise QuestionnaireEditError(f"Unknown move direction: {direction!r}")

    updated = _copy(questions)
    target = position - 1 if direction == UP else position + 1
    if not 0 <= target < len(updated):
        return updated

    entries = _entries(updated)
    entries[position], entries[target] = entries[target], entries[position]
    return rebuild_questions(entries)


def import_questions(
    questions: Sequence[Dict[str, Any]], imported: Iterable[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Append ``imported`` questions after the existing ones."""

    updated = _copy(questions)
    entries = _entries(updated)
    start = len(updated) + 1
    for offset, question in enumerate(imported):
        copied = deepcopy(question)
        copied.pop("condition", None)
        copied["index"] = start + offset
        copied["id"] = str(start + offset)
        entries.append((None, copied))
    return rebuild_questions(entries)


def set_question_field(
    questions: Sequence[Dict[str, Any]], position: int, field: str, value: Any
) -> List[Dict[str, Any]]:
    """Set ``field`` on the question at ``position``.

    Changing ``type`` initialises variants or form fields when the question
    has none. ``condition`` goes through :func:`set_condition` validation.
    """

    _check_position(questions, position)
    if field in POSITIONAL_KEYS:
        raise QuestionnaireEditError(f"'{field}' is derived from the question position.")
    if field == "condition":
        if not value:
            return clear_condition(questions, position)
        return set_condition(
            questions, position, value.get("questionId"), value.get("values") or []
        )

    updated = _copy(questions)
    question = updated[position]
    if value is None:
        question.pop(field, None)
    else:
        question[field] = value
    if field == "type":
        ensure_type_defaults(question)
    return updated


def add_answer_variant(
    questions: Sequence[Dict[str, Any]], position: int, label: str = ""
) -> List[Dict[str, Any]]:
    """Append a variant valued with the next letter after the existing count."""

    _check_position(questions, position)
    updated = _copy(questions)
    variants = question_variants(updated[position])
    variants.append(new_variant(len(variants), label))
    updated[position]["variants"] = variants
    return updated


def remove_answer_variant(
    questions: Sequence[Dict[str, Any]], position: int, variant_index: int
) -> List[Dict[str, Any]]:
    _check_position(questions, position)
    updated = _copy(questions)
    variants = question_variants(updated[position])
    _check_item(variants, variant_index, "Variant")
    variants.pop(variant_index)
    updated[position]["variants"] = variants
    return updated


def update_answer_variant(
    questions: Sequence[Dict[str, Any]],
    position: int,
    variant_index: int,
    field: str,
    value: Any,
) -> List[Dict[str, Any]]:
    _check_position(questions, position)
    updated = _copy(questions)
    variants = question_variants(updated[position])
    _check_item(variants, variant_index, "Variant")
    variants[variant_index] = {**variants[variant_index], field: value}
    updated[position]["variants"] = variants
    return updated


def add_form_field(
    questions: Sequence[Dict[str, Any]], position: int
) -> List[Dict[str, Any]]:
    _check_position(questions, position)
    updated = _copy(questions)
    fields = question_fields(updated[position])
    fields.append(default_form_field())
    updated[position]["fields"] = fields
    return updated


def remove_form_field(
    questions: Sequence[Dict[str, Any]], position: int, field_index: int
) -> List[Dict[str, Any]]:
    _check_position(questions, position)
    updated = _copy(questions)
    fields = question_fields(updated[position])
    _check_item(fields, field_index, "Form field")
    fields.pop(field_index)
    updated[position]["fields"] = fields
    return updated


def update_form_field(
    questions: Sequence[Dict[str, Any]],
    position: int,
    field_index: int,
    field: str,
    value: Any,
) -> List[Dict[str, Any]]:
    """Set ``field`` on one form field; ``None`` removes optional keys like ``min``."""

    _check_position(questions, position)
    updated = _copy(questions)
    fields = question_fields(updated[position])
    _check_item(fields, field_index, "Form field")
    entry = dict(fields[field_index])
    if value is None:
        entry.pop(field, None)
    else:
        entry[field] = value
    fields[field_index] = entry
    updated[position]["fields"] = fields
    return updated


def condition_candidates(
    questions: Sequence[Dict[str, Any]], position: int
) -> List[Dict[str, Any]]:
    """Return earlier questions with variants that ``position`` may depend on."""

    _check_position(questions, position)
    return [
        question
        for question in questions[:position]
        if question_variants(question)
    ]


def _find_question(
    questions: Sequence[Dict[str, Any]], question_id: Any
) -> Optional[int]:
    for position, question in enumerate(questions):
        if str(question.get("id")) == str(question_id):
            return position
    return None


def set_condition(
    questions: Sequence[Dict[str, Any]],
    position: int,
    depends_on_id: Any,
    values: Iterable[str],
) -> List[Dict[str, Any]]:
    """Show the question at ``position`` only for ``values`` of an earlier question."""

    _check_position(questions, position)
    target = _find_question(questions, depends_on_id)
    if target is None:
        raise QuestionnaireEditError(f"Question {depends_on_id!r} does not exist.")
    if target >= position:
        raise QuestionnaireEditError(
            "A condition can only depend on an earlier question."
        )
    variants = question_variants(questions[target])
    if not variants:
        raise QuestionnaireEditError(
            f"Question {depends_on_id!r} has no answer variants to depend on."
        )

    allowed = {variant.get("value") for variant in variants}
    accepted: List[str] = []
    for value in values:
        if value not in allowed:
            raise QuestionnaireEditError(
                f"Question {depends_on_id!r} has no variant with value {value!r}."
            )
        if value not in accepted:
            accepted.append(value)

    updated = _copy(questions)
    updated[position]["condition"] = {
        "questionId": str(updated[target].get("id")),
        "values": accepted,
    }
    return updated


def clear_condition(
    questions: Sequence[Dict[str, Any]], position: int
) -> List[Dict[str, Any]]:
    _check_position(questions, position)
    updated = _copy(questions)
    updated[position].pop("condition", None)
    return updated
