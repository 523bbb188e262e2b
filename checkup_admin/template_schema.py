"""Defaults and save-time validation for checkup template payloads."""

from __future__ import annotations

import re
from copy import deepcopy
from typing import Any, Dict, List, Mapping

from checkup_admin.condition_graph import find_condition_violations
from checkup_admin.question_model import (
    FORM,
    QUESTION_TYPES,
    is_choice_type,
    question_fields,
    question_variants,
)

TEMPLATE_FIELDS = (
    "testKey",
    "title",
    "carouselTitle",
    "carouselSubtitle",
    "description",
    "image",
    "benefits",
    "doctors",
    "free",
    "price",
    "pdfTemplate",
    "isActive",
    "questions",
)
TEST_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
REQUIRED_TEXT_FIELDS = {
    "title": "Title is required.",
    "description": "Description is required.",
}
CAROUSEL_TEXT_FIELDS = {
    "carouselTitle": "Carousel title is required.",
    "carouselSubtitle": "Carousel subtitle is required.",
}


def default_template() -> Dict[str, Any]:
    """Return the blank form state used by the create flow."""

    return {
        "testKey": "",
        "title": "",
        "carouselTitle": "",
        "carouselSubtitle": "",
        "description": "",
        "benefits": [""],
        "doctors": [],
        "free": False,
        "isActive": True,
        "questions": [],
    }


def template_from_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the editable form state of a template fetched from the API."""

    data = default_template()
    for key in TEMPLATE_FIELDS:
        if key in record and record[key] is not None:
            data[key] = deepcopy(record[key])
    return data


def has_content(data: Any) -> bool:
    """Return ``True`` when a draft carries something worth restoring."""

    if not isinstance(data, Mapping):
        return False
    title = str(data.get("title") or "").strip()
    test_key = str(data.get("testKey") or "").strip()
    questions = data.get("questions")
    return bool(title or test_key or (isinstance(questions, list) and questions))


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def validate_template(
    payload: Mapping[str, Any], *, require_carousel: bool = True
) -> List[str]:
    """Run the save-time checks on a template payload and return error messages."""

    errors: List[str] = []

    test_key = _text(payload.get("testKey"))
    if not test_key:
        errors.append("Test key is required.")
    elif not TEST_KEY_PATTERN.match(test_key):
        errors.append("Test key may only contain Latin letters, digits, hyphens and underscores.")

    required = dict(REQUIRED_TEXT_FIELDS)
    if require_carousel:
        required.update(CAROUSEL_TEXT_FIELDS)
    for key, message in required.items():
        if not _text(payload.get(key)):
            errors.append(message)

    price = payload.get("price")
    if price is not None and (not isinstance(price, (int, float)) or isinstance(price, bool) or price < 0):
        errors.append("Price must be a non-negative number.")

    for position, doctor in enumerate(payload.get("doctors") or [], start=1):
        if not isinstance(doctor, Mapping):
            errors.append(f"Doctor {position} is malformed.")

    questions = payload.get("questions")
    if not isinstance(questions, list) or not questions:
        errors.append("Add at least one question.")
        return errors

    for position, question in enumerate(questions, start=1):
        if not _text(question.get("question")):
            errors.append(f"Question {position} has no text.")
        question_type = question.get("type")
        if question_type not in QUESTION_TYPES:
            errors.append(f"Question {position} has unknown type {question_type!r}.")
        elif is_choice_type(question_type):
            if not question_variants(question):
                errors.append(f"Question {position} needs at least one answer variant.")
        elif question_type == FORM:
            fields = question_fields(question)
            if not fields:
                errors.append(f"Question {position} needs at least one form field.")
            elif any(not _text(field.get("name")) for field in fields):
                errors.append(f"Every form field of question {position} needs a name.")
        condition = question.get("condition")
        if isinstance(condition, Mapping) and not condition.get("values"):
            errors.append(f"Question {position} condition must accept at least one answer.")

    errors.extend(find_condition_violations(questions))
    return errors


def payload_for_save(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the request body for create/update, without empty optional values."""

    payload: Dict[str, Any] = {}
    for key in TEMPLATE_FIELDS:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str) and key in {"image", "pdfTemplate"} and not value.strip():
            continue
        payload[key] = deepcopy(value)
    payload["benefits"] = [item for item in payload.get("benefits", []) if _text(item)]
    return payload
