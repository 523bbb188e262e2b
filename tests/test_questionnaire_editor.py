"""Tests for structural and field edits on checkup questionnaires."""

from __future__ import annotations

import copy
import importlib
import random

import pytest

editor = importlib.import_module("checkup_admin.questionnaire_editor")
graph = importlib.import_module("checkup_admin.condition_graph")


def _question(index, text, condition=None, variants=("a", "b")):
    question = {
        "index": index,
        "id": str(index),
        "question": text,
        "type": "single",
        "variants": [{"label": value.upper(), "value": value} for value in variants],
    }
    if condition is not None:
        question["condition"] = {"questionId": condition[0], "values": list(condition[1])}
    return question


def _assert_consistent(questions):
    assert graph.find_condition_violations(questions) == []
    for position, question in enumerate(questions, start=1):
        assert question["index"] == position
        assert question["id"] == str(position)


def test_add_question_appends_blank_single_choice() -> None:
    questions = editor.add_question([])
    questions = editor.add_question(questions)

    assert [q["id"] for q in questions] == ["1", "2"]
    assert questions[1]["type"] == "single"
    assert [v["value"] for v in questions[1]["variants"]] == ["a", "b"]


def test_operations_do_not_mutate_input() -> None:
    original = [_question(1, "A"), _question(2, "B", ("1", ["a"]))]
    snapshot = copy.deepcopy(original)

    editor.remove_question(original, 0)
    editor.move_question(original, 1, editor.UP)
    editor.set_question_field(original, 0, "question", "changed")

    assert original == snapshot


def test_remove_drops_orphaned_condition_and_rewrites_the_rest() -> None:
    questions = [
        _question(1, "A"),
        _question(2, "B", ("1", ["a"])),
        _question(3, "C", ("2", ["b"])),
    ]

    result = editor.remove_question(questions, 0)

    assert [q["question"] for q in result] == ["B", "C"]
    assert "condition" not in result[0]
    assert result[1]["condition"] == {"questionId": "1", "values": ["b"]}
    _assert_consistent(result)


def test_move_up_drops_condition_that_would_point_forward() -> None:
    questions = [_question(1, "A"), _question(2, "B", ("1", ["a"]))]

    result = editor.move_question(questions, 1, editor.UP)

    assert [q["question"] for q in result] == ["B", "A"]
    assert result[0]["index"] == 1 and "condition" not in result[0]
    assert result[1]["index"] == 2
    _assert_consistent(result)


def test_move_keeps_condition_that_stays_earlier() -> None:
    questions = [
        _question(1, "A"),
        _question(2, "B"),
        _question(3, "C", ("1", ["a"])),
    ]

    result = editor.move_question(questions, 1, editor.DOWN)

    assert [q["question"] for q in result] == ["A", "C", "B"]
    assert result[1]["condition"]["questionId"] == "1"


def test_move_rewrites_reference_to_moved_dependency() -> None:
    questions = [
        _question(1, "A"),
        _question(2, "B"),
        _question(3, "C", ("2", ["a"])),
    ]

    result = editor.move_question(questions, 1, editor.UP)

    assert [q["question"] for q in result] == ["B", "A", "C"]
    assert result[2]["condition"]["questionId"] == "1"


@pytest.mark.parametrize("position,direction", [(0, "up"), (1, "down")])
def test_move_past_boundary_is_a_no_op(position, direction) -> None:
    questions = [_question(1, "A"), _question(2, "B", ("1", ["a"]))]

    assert editor.move_question(questions, position, direction) == questions


def test_move_rejects_unknown_direction() -> None:
    with pytest.raises(editor.QuestionnaireEditError):
        editor.move_question([_question(1, "A")], 0, "sideways")


def test_duplicate_appends_independent_deep_copy() -> None:
    questions = [
        _question(1, "A"),
        _question(2, "B", ("1", ["a"])),
        _question(3, "C"),
    ]

    result = editor.duplicate_question(questions, 1)

    assert len(result) == 4
    clone = result[3]
    assert clone["question"] == "B"
    assert clone["id"] == "4"
    assert clone["condition"] == {"questionId": "1", "values": ["a"]}

    clone["variants"][0]["label"] = "changed"
    clone["condition"]["values"].append("b")
    assert result[1]["variants"][0]["label"] == "A"
    assert result[1]["condition"]["values"] == ["a"]
    _assert_consistent(result)


def test_import_appends_after_existing_and_strips_conditions() -> None:
    existing = [_question(1, "A")]
    imported = [_question(1, "X", ("5", ["a"])), _question(2, "Y")]

    result = editor.import_questions(existing, imported)

    assert [q["question"] for q in result] == ["A", "X", "Y"]
    assert all("condition" not in q for q in result)
    _assert_consistent(result)


def test_random_structural_edits_keep_invariants() -> None:
    rng = random.Random(7)
    questions = []
    for _ in range(200):
        operation = rng.choice(["add", "remove", "move", "duplicate", "condition", "import"])
        if operation == "add" or not questions:
            questions = editor.add_question(questions)
        elif operation == "remove":
            questions = editor.remove_question(questions, rng.randrange(len(questions)))
        elif operation == "move":
            questions = editor.move_question(
                questions, rng.randrange(len(questions)), rng.choice([editor.UP, editor.DOWN])
            )
        elif operation == "duplicate":
            questions = editor.duplicate_question(questions, rng.randrange(len(questions)))
        elif operation == "import":
            questions = editor.import_questions(questions, [_question(1, "imported")])
        else:
            position = rng.randrange(len(questions))
            candidates = editor.condition_candidates(questions, position)
            if candidates:
                target = rng.choice(candidates)
                questions = editor.set_condition(questions, position, target["id"], ["a"])
        _assert_consistent(questions)


def test_set_question_field_rejects_positional_keys() -> None:
    with pytest.raises(editor.QuestionnaireEditError):
        editor.set_question_field([_question(1, "A")], 0, "id", "9")


def test_changing_type_to_form_initialises_fields() -> None:
    result = editor.set_question_field([_question(1, "A")], 0, "type", "form")

    assert result[0]["type"] == "form"
    assert result[0]["fields"] == [{"label": "", "name": "", "type": "text"}]


def test_set_question_field_none_removes_optional_key() -> None:
    question = _question(1, "A")
    question["image"] = "https://cdn/img.png"

    result = editor.set_question_field([question], 0, "image", None)

    assert "image" not in result[0]


def test_variant_operations() -> None:
    questions = [_question(1, "A")]

    questions = editor.add_answer_variant(questions, 0, "Maybe")
    assert questions[0]["variants"][-1] == {"label": "Maybe", "value": "c"}

    questions = editor.update_answer_variant(questions, 0, 0, "label", "Yes")
    assert questions[0]["variants"][0]["label"] == "Yes"

    questions = editor.remove_answer_variant(questions, 0, 1)
    assert [v["value"] for v in questions[0]["variants"]] == ["a", "c"]

    with pytest.raises(editor.QuestionnaireEditError):
        editor.remove_answer_variant(questions, 0, 5)


def test_form_field_operations() -> None:
    questions = editor.set_question_field([_question(1, "A")], 0, "type", "form")

    questions = editor.add_form_field(questions, 0)
    questions = editor.update_form_field(questions, 0, 1, "type", "number")
    questions = editor.update_form_field(questions, 0, 1, "min", 0)
    assert questions[0]["fields"][1] == {"label": "", "name": "", "type": "number", "min": 0}

    questions = editor.update_form_field(questions, 0, 1, "min", None)
    assert "min" not in questions[0]["fields"][1]

    questions = editor.remove_form_field(questions, 0, 0)
    assert len(questions[0]["fields"]) == 1


def test_condition_candidates_are_earlier_questions_with_variants() -> None:
    form = _question(2, "Form")
    form["type"] = "form"
    form.pop("variants")
    questions = [_question(1, "A"), form, _question(3, "C"), _question(4, "D")]

    candidates = editor.condition_candidates(questions, 3)

    assert [q["id"] for q in candidates] == ["1", "3"]


def test_set_condition_validates_target_and_values() -> None:
    questions = [_question(1, "A"), _question(2, "B")]

    result = editor.set_condition(questions, 1, 1, ["b", "a", "b"])
    assert result[1]["condition"] == {"questionId": "1", "values": ["b", "a"]}

    with pytest.raises(editor.QuestionnaireEditError):
        editor.set_condition(questions, 0, "2", ["a"])
    with pytest.raises(editor.QuestionnaireEditError):
        editor.set_condition(questions, 1, "1", ["z"])
    with pytest.raises(editor.QuestionnaireEditError):
        editor.set_condition(questions, 1, "9", ["a"])


def test_set_question_field_condition_routes_through_validation() -> None:
    questions = [_question(1, "A"), _question(2, "B")]

    result = editor.set_question_field(questions, 1, "condition", {"questionId": "1", "values": ["a"]})
    assert result[1]["condition"]["questionId"] == "1"

    cleared = editor.set_question_field(result, 1, "condition", None)
    assert "condition" not in cleared[1]


def test_out_of_range_position_raises() -> None:
    with pytest.raises(editor.QuestionnaireEditError):
        editor.remove_question([_question(1, "A")], 3)
