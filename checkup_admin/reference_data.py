"""Form definitions for analyses, specialists, diagnostics and recommendations."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

ANALYSES = "analyses"
SPECIALISTS = "specialists"
DIAGNOSTICS = "diagnostics"
RECOMMENDATIONS = "recommendations"

REFERENCE_LABELS = {
    ANALYSES: "Analyses",
    SPECIALISTS: "Specialists",
    DIAGNOSTICS: "Diagnostics",
    RECOMMENDATIONS: "Recommendations",
}

# Field name, kind of input. Every kind also carries isActive and orderIndex.
REFERENCE_FIELDS: Dict[str, Tuple[Tuple[str, str], ...]] = {
    ANALYSES: (
        ("name", "text"),
        ("description", "textarea"),
        ("codes", "codes"),
        ("codesUnionCombinations", "combinations"),
        ("invitroCode", "text"),
        ("invitroPrice", "number"),
        ("specialPrice", "number"),
    ),
    SPECIALISTS: (
        ("name", "text"),
        ("codes", "codes"),
        ("codesUnionCombinations", "combinations"),
    ),
    DIAGNOSTICS: (
        ("name", "text"),
        ("description", "textarea"),
        ("codes", "codes"),
        ("codesUnionCombinations", "combinations"),
    ),
    RECOMMENDATIONS: (
        ("name", "text"),
        ("content", "textarea"),
    ),
}

REQUIRED_FIELDS = {
    ANALYSES: ("name",),
    SPECIALISTS: ("name",),
    DIAGNOSTICS: ("name",),
    RECOMMENDATIONS: ("name", "content"),
}

# Offered while no checkup template exists yet.
DEFAULT_TEST_TYPES: Tuple[Tuple[str, str], ...] = (
    ("female", "Женский чекап"),
    ("male", "Мужской чекап"),
    ("sport", "Спорт чекап"),
    ("female-pregnancy", "Планирование (жен)"),
    ("male-pregnancy", "Планирование (муж)"),
    ("post-pregnant", "После родов"),
    ("intim", "Интим тест"),
)

_CODE_SPLIT = re.compile(r"[,;\s]+")


def parse_codes(text: str) -> List[str]:
    """Split a free-form list of codes, dropping blanks and repeats."""

    codes: List[str] = []
    for code in _CODE_SPLIT.split(text or ""):
        code = code.strip()
        if code and code not in codes:
            codes.append(code)
    return codes


def parse_combinations(text: str) -> List[List[str]]:
    """Parse one union combination of codes per line."""

    combinations = []
    for line in (text or "").splitlines():
        codes = parse_codes(line)
        if codes:
            combinations.append(codes)
    return combinations


def format_combinations(combinations: Optional[List[List[str]]]) -> str:
    return "\n".join(", ".join(group) for group in combinations or [])


def reference_payload(
    kind: str,
    values: Mapping[str, Any],
    test_type: str,
) -> Tuple[Dict[str, Any], List[str]]:
    """Build the request body for ``kind`` from raw form ``values``.

    Returns the payload together with validation error messages; the payload
    must not be sent while errors are present.
    """

    if kind not in REFERENCE_FIELDS:
        raise ValueError(f"Unknown reference data kind: {kind}")

    payload: Dict[str, Any] = {"testType": test_type, "isActive": bool(values.get("isActive", True))}
    for name, input_kind in REFERENCE_FIELDS[kind]:
        raw = values.get(name)
        if input_kind == "codes":
            payload[name] = parse_codes(raw) if isinstance(raw, str) else list(raw or [])
        elif input_kind == "combinations":
            payload[name] = parse_combinations(raw) if isinstance(raw, str) else [list(group) for group in raw or []]
        elif input_kind == "number":
            if raw not in (None, ""):
                payload[name] = raw
        else:
            text = (raw or "").strip()
            if text or name in REQUIRED_FIELDS[kind]:
                payload[name] = text

    order_index = values.get("orderIndex")
    if order_index not in (None, ""):
        payload["orderIndex"] = int(order_index)

    errors = [
        f"{field.capitalize()} is required."
        for field in REQUIRED_FIELDS[kind]
        if not payload.get(field)
    ]
    if not test_type:
        errors.append("Select a test type.")
    return payload, errors


def available_test_types(templates: Optional[List[Mapping[str, Any]]]) -> List[Tuple[str, str]]:
    """Return ``(testKey, label)`` pairs for the templates, or the defaults when there are none."""

    options = []
    for template in templates or []:
        key = template.get("testKey")
        if not key:
            continue
        titles = [template.get("carouselTitle"), template.get("carouselSubtitle")]
        label = " - ".join(str(title) for title in titles if title) or str(key)
        options.append((str(key), label))
    return options or list(DEFAULT_TEST_TYPES)
