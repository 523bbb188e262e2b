"""Parse questions out of uploaded text, Markdown and Word documents.

Expected layout, one question per numbered line followed by its answers::

    1. Question text here?
    - Answer 1
    - Answer 2

    2) Next question?
    a. Answer 1
    b. Answer 2

Import is all-or-nothing: any failure raises :class:`QuestionImportError` and
no question is produced.
"""

from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Dict, List, Optional

import mammoth

from checkup_admin.log import get_logger
from checkup_admin.question_model import SINGLE, new_variant

logger = get_logger(__name__)

MAX_IMPORT_BYTES = 5 * 1024 * 1024

TEXT_EXTENSIONS = (".txt", ".md")
DOCX_EXTENSION = ".docx"
ACCEPTED_EXTENSIONS = TEXT_EXTENSIONS + (DOCX_EXTENSION,)
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
ACCEPTED_MIME_TYPES = frozenset(
    {
        "text/plain",
        "text/markdown",
        "text/x-markdown",
        DOCX_MIME_TYPE,
        # Browsers fall back to this when they cannot guess a Markdown type.
        "application/octet-stream",
    }
)

DEFAULT_VARIANT_LABELS = ("Да", "Нет")

_QUESTION_LINE = re.compile(r"^\d+[.)\-\s]+\s*(.+)")
_SEPARATOR_LINE = re.compile(r"^[-=_]+$")
_BULLET_PREFIX = re.compile(r"^[*\-•○●◦▪▸►>→·⁃‣⦿⦾]+\s*")
_LETTER_PREFIX = re.compile(r"^[a-zA-Zа-яА-Я][.)]\s*")


class QuestionImportError(Exception):
    """Raised when a file cannot be turned into questions."""


@dataclass
class ParsedQuestion:
    """A question recognised in the source text, before conversion."""

    question: str
    variants: List[str] = field(default_factory=list)


def clean_variant_text(text: str) -> str:
    """Strip list bullets and ``a)``/``б.`` style markers from an answer line."""

    text = _BULLET_PREFIX.sub("", text, count=1)
    text = _LETTER_PREFIX.sub("", text, count=1)
    return text.strip()


def parse_questions_from_text(text: str) -> List[ParsedQuestion]:
    """Split ``text`` into questions and their answer variants."""

    questions: List[ParsedQuestion] = []
    current: Optional[ParsedQuestion] = None

    lines = [line.strip() for line in text.split("\n")]
    for line in filter(None, lines):
        match = _QUESTION_LINE.match(line)
        if match:
            if current is not None and current.question:
                questions.append(current)
            current = ParsedQuestion(question=match.group(1).strip())
            continue
        if current is None or _SEPARATOR_LINE.match(line):
            continue
        variant = clean_variant_text(line)
        if variant:
            current.variants.append(variant)

    if current is not None and current.question:
        questions.append(current)
    return questions


def convert_to_questions(
    parsed: List[ParsedQuestion], start_index: int = 1
) -> List[Dict[str, Any]]:
    """Build single-choice questions from ``parsed``, numbering from ``start_index``.

    A question without answers gets the default yes/no pair.
    """

    questions: List[Dict[str, Any]] = []
    for offset, item in enumerate(parsed):
        index = start_index + offset
        labels = item.variants or list(DEFAULT_VARIANT_LABELS)
        questions.append(
            {
                "index": index,
                "id": str(index),
                "question": item.question,
                "type": SINGLE,
                "variants": [
                    new_variant(position, label) for position, label in enumerate(labels)
                ],
            }
        )
    return questions


def validate_import_file(
    filename: str, size: int, content_type: Optional[str] = None
) -> str:
    """Return the lower-cased extension of an acceptable import file."""

    extension = PurePath(filename or "").suffix.lower()
    if extension not in ACCEPTED_EXTENSIONS:
        raise QuestionImportError(
            "Unsupported file format. Please use .txt, .md or .docx files."
        )
    if content_type and content_type not in ACCEPTED_MIME_TYPES:
        raise QuestionImportError(f"Unsupported file type: {content_type}.")
    if size > MAX_IMPORT_BYTES:
        raise QuestionImportError("File is too large. Maximum size is 5MB.")
    return extension


def extract_text(filename: str, content: bytes) -> str:
    """Return the text of ``content`` keeping its line breaks."""

    extension = PurePath(filename or "").suffix.lower()
    if extension == DOCX_EXTENSION:
        try:
            result = mammoth.extract_raw_text(io.BytesIO(content))
        except Exception as exc:  # pylint: disable=broad-except
            raise QuestionImportError(f"Could not read the Word document: {exc}") from exc
        for message in result.messages:
            logger.debug("mammoth: %s", message)
        return result.value
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise QuestionImportError("The file is not valid UTF-8 text.") from exc


def parse_questions_from_file(
    filename: str,
    content: bytes,
    content_type: Optional[str] = None,
    existing_count: int = 0,
) -> List[Dict[str, Any]]:
    """Validate, extract and parse an uploaded file into questions.

    The returned questions are numbered after ``existing_count`` so they can be
    appended to the questionnaire being edited.
    """

    validate_import_file(filename, len(content), content_type)
    text = extract_text(filename, content)
    parsed = parse_questions_from_text(text)
    if not parsed:
        raise QuestionImportError(
            "No questions found in the file. Please check the file format."
        )
    logger.info("Parsed %d questions from %s", len(parsed), filename)
    return convert_to_questions(parsed, start_index=existing_count + 1)
