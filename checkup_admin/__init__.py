"""Library helpers for the checkup admin dashboard."""

from .condition_graph import rebuild_questions  # noqa: F401
from .question_model import (  # noqa: F401
    CHOICE_TYPES,
    QUESTION_TYPES,
    new_question,
)
