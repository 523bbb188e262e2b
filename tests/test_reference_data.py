"""Tests for reference data form payloads."""

import importlib

import pytest

reference_data = importlib.import_module("checkup_admin.reference_data")


def test_parse_codes_splits_and_deduplicates() -> None:
    assert reference_data.parse_codes("A1, B2;B2\n C3") == ["A1", "B2", "C3"]
    assert reference_data.parse_codes("") == []


def test_parse_combinations_one_group_per_line() -> None:
    text = "A1, B2\n\nC3"

    combinations = reference_data.parse_combinations(text)

    assert combinations == [["A1", "B2"], ["C3"]]
    assert reference_data.format_combinations(combinations) == "A1, B2\nC3"


def test_analysis_payload() -> None:
    values = {
        "name": " Blood test ",
        "description": "",
        "codes": "A1, A2",
        "codesUnionCombinations": "A1, A2",
        "invitroPrice": 1500,
        "specialPrice": None,
        "orderIndex": 2.0,
        "isActive": False,
    }

    payload, errors = reference_data.reference_payload("analyses", values, "heart")

    assert errors == []
    assert payload == {
        "testType": "heart",
        "isActive": False,
        "name": "Blood test",
        "codes": ["A1", "A2"],
        "codesUnionCombinations": [["A1", "A2"]],
        "invitroPrice": 1500,
        "orderIndex": 2,
    }


def test_recommendation_requires_content() -> None:
    _, errors = reference_data.reference_payload("recommendations", {"name": "Sleep"}, "heart")

    assert errors == ["Content is required."]


def test_missing_test_type_is_reported() -> None:
    _, errors = reference_data.reference_payload("specialists", {"name": "ENT"}, "")

    assert errors == ["Select a test type."]


def test_unknown_kind_raises() -> None:
    with pytest.raises(ValueError):
        reference_data.reference_payload("vaccines", {}, "heart")


def test_available_test_types_come_from_templates() -> None:
    templates = [
        {"testKey": "heart", "carouselTitle": "Heart", "carouselSubtitle": "Checkup"},
        {"testKey": "liver"},
        {"title": "no key"},
    ]

    assert reference_data.available_test_types(templates) == [("heart", "Heart - Checkup"), ("liver", "liver")]


def test_default_test_types_when_no_templates_exist() -> None:
    options = reference_data.available_test_types([])

    assert options == list(reference_data.DEFAULT_TEST_TYPES)
    assert options[0][0] == "female"
    assert reference_data.available_test_types(None) == options
