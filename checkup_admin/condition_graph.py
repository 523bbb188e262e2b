"""Keep "show if" references between questions consistent across edits.

Question identity is positional: ``id`` always equals ``str(index)``. Every
structural change (insert, delete, move, duplicate, bulk append) therefore
renumbers the questions and has to translate the ``condition.questionId``
references from the pre-mutation ids to the post-mutation ones. A condition is
only valid while it points at a strictly earlier question; anything else is
dropped rather than reported.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from checkup_admin.log import get_logger

logger = get_logger(__name__)

# ``(previous_id, question)``; ``previous_id`` is ``None`` for questions that
# did not exist before the mutation (duplicates, imports, additions).
Entry = Tuple[Optional[str], Dict[str, Any]]


def _condition(question: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    condition = question.get("condition")
    return condition if isinstance(condition, dict) else None


def rebuild_questions(
    entries: Sequence[Entry],
    removed_ids: Iterable[str] = (),
) -> List[Dict[str, Any]]:
    """Renumber ``entries`` and repair their conditions in place.

    ``entries`` is the question list in its final order, each question paired
    with the id it carried before the mutation. ``removed_ids`` holds the ids of
    questions deleted by the mutation. Returns the questions in final order.
    """

    removed = {str(item) for item in removed_ids}
    if removed:
        for _, question in entries:
            condition = _condition(question)
            if condition and str(condition.get("questionId")) in removed:
                logger.debug(
                    "Dropping condition on removed question %s", condition.get("questionId")
                )
                question.pop("condition", None)

    id_map: Dict[str, str] = {}
    for position, (previous_id, _) in enumerate(entries):
        if previous_id is not None:
            id_map[str(previous_id)] = str(position + 1)

    questions: List[Dict[str, Any]] = []
    for position, (_, question) in enumerate(entries):
        question["index"] = position + 1
        question["id"] = str(position + 1)
        questions.append(question)

    for question in questions:
        condition = _condition(question)
        if condition is None:
            question.pop("condition", None)
            continue
        new_id = id_map.get(str(condition.get("questionId")))
        if new_id is None or int(new_id) >= question["index"]:
            logger.debug(
                "Dropping condition on question %s referencing %s",
                question["id"],
                condition.get("questionId"),
            )
            question.pop("condition", None)
            continue
        condition["questionId"] = new_id

    return questions


def find_condition_violations(questions: Sequence[Mapping[str, Any]]) -> List[str]:
    """Return messages describing ids or conditions that break the invariants."""

    errors: List[str] = []
    positions: Dict[str, int] = {}
    for position, question in enumerate(questions):
        expected = position + 1
        if question.get("index") != expected or question.get("id") != str(expected):
            errors.append(
                f"Question at position {expected} has index {question.get('index')!r} "
                f"and id {question.get('id')!r}."
            )
        positions[str(question.get("id"))] = expected

    for position, question in enumerate(questions):
        condition = _condition(question)
        if condition is None:
            continue
        target = positions.get(str(condition.get("questionId")))
        if target is None:
            errors.append(
                f"Question {position + 1} depends on unknown question "
                f"{condition.get('questionId')!r}."
            )
        elif target >= position + 1:
            errors.append(
                f"Question {position + 1} must depend on an earlier question, "
                f"not question {target}."
            )
    return errors


def is_visible(question: Mapping[str, Any], answers: Mapping[str, Any]) -> bool:
    """Return whether ``question`` should be shown given the captured ``answers``.

    ``answers`` maps question ids to a single variant value or a list of them.
    """

    condition = _condition(question)
    if condition is None:
        return True
    answer = answers.get(str(condition.get("questionId")))
    if answer is None:
        return False
    selected = {answer} if isinstance(answer, str) else set(answer)
    accepted = set(condition.get("values") or [])
    return bool(selected & accepted)
