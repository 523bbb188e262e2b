"""Tests for question renumbering and condition repair."""

from checkup_admin.condition_graph import find_condition_violations, is_visible, rebuild_questions


def test_rebuild_renumbers_and_translates_references() -> None:
    first = {"question": "A", "id": "1", "index": 1}
    second = {"question": "B", "id": "2", "index": 2, "condition": {"questionId": "1", "values": ["a"]}}
    inserted = {"question": "new"}

    result = rebuild_questions([(None, inserted), ("1", first), ("2", second)])

    assert [q["id"] for q in result] == ["1", "2", "3"]
    assert [q["index"] for q in result] == [1, 2, 3]
    assert second["condition"]["questionId"] == "2"


def test_rebuild_drops_dangling_and_malformed_conditions() -> None:
    dangling = {"question": "A", "condition": {"questionId": "9", "values": ["a"]}}
    malformed = {"question": "B", "condition": "1"}

    result = rebuild_questions([("1", dangling), ("2", malformed)])

    assert "condition" not in result[0]
    assert "condition" not in result[1]


def test_rebuild_drops_references_to_removed_ids_before_remapping() -> None:
    question = {"question": "C", "condition": {"questionId": "2", "values": ["a"]}}

    result = rebuild_questions([("1", {"question": "A"}), ("3", question)], removed_ids=["2"])

    assert "condition" not in result[1]


def test_find_condition_violations_reports_bad_ids_and_forward_references() -> None:
    questions = [
        {"index": 1, "id": "1", "condition": {"questionId": "2", "values": ["a"]}},
        {"index": 2, "id": "7"},
        {"index": 3, "id": "3", "condition": {"questionId": "3", "values": ["a"]}},
    ]

    errors = find_condition_violations(questions)

    assert any("position 2" in error for error in errors)
    assert any("Question 1 depends on unknown question" in error for error in errors)
    assert any("Question 3 must depend on an earlier question" in error for error in errors)


def test_is_visible_matches_single_and_multiple_answers() -> None:
    question = {"id": "2", "condition": {"questionId": "1", "values": ["a", "c"]}}

    assert is_visible({"id": "1"}, {}) is True
    assert is_visible(question, {}) is False
    assert is_visible(question, {"1": "a"}) is True
    assert is_visible(question, {"1": "b"}) is False
    assert is_visible(question, {"1": ["b", "c"]}) is True
