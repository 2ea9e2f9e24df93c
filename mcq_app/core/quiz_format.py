"""Validation and parsing of the JSON quiz format.

Format:

    {
      "title": "Week 1: Perception",
      "questions": [
        {
          "question": "Question text (supports markdown + LaTeX)",
          "options": ["First", "Second", "Third"],
          "correctAnswer": 1
        }
      ]
    }

Every question needs at least two options and a zero-based ``correctAnswer``
that points into its own option list. Keys other than the three above are
kept on the parsed models so that a document survives a load/save cycle
unchanged.

Architecture note:
    Validation collects every violation instead of stopping at the first so
    the upload page can show the whole list at once. Parsing only happens
    after validation passes, which keeps the parser free of error handling.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mcq_app.core.errors import EmptyQuizFormat, InvalidQuizFormat
from mcq_app.core.models import Question, QuizDocument

_QUESTION_KEYS = ("question", "options", "correctAnswer")
_MIN_OPTIONS = 2


def validate_quiz_format(payload: Any) -> list[str]:
    """Return a human-readable reason for every problem in ``payload``."""
    if not isinstance(payload, dict):
        return ["Invalid quiz format: must be a JSON object."]

    violations: list[str] = []
    title = payload.get("title")
    if not isinstance(title, str) or not title.strip():
        violations.append("Invalid quiz format: missing title.")

    questions = payload.get("questions")
    if not isinstance(questions, list):
        violations.append("Invalid quiz format: missing questions array.")
        return violations

    for number, question in enumerate(questions, start=1):
        violations.extend(_validate_question(number, question))
    return violations


def _validate_question(number: int, question: Any) -> list[str]:
    prefix = f"Question #{number}"
    if not isinstance(question, dict):
        return [f"{prefix} must be an object."]

    problems: list[str] = []
    text = question.get("question")
    if not isinstance(text, str) or not text.strip():
        problems.append(f"{prefix} is missing its question text.")

    options = question.get("options")
    if not isinstance(options, list):
        problems.append(f"{prefix} is missing its options list.")
        options = None
    elif len(options) < _MIN_OPTIONS:
        problems.append(f"{prefix} needs at least {_MIN_OPTIONS} options.")
    elif any(not isinstance(option, str) for option in options):
        problems.append(f"{prefix} has an option that is not text.")

    if "correctAnswer" not in question:
        problems.append(f"{prefix} is missing correctAnswer.")
        return problems

    correct = question["correctAnswer"]
    # bool is an int subclass but never a valid index here
    if isinstance(correct, bool) or not isinstance(correct, int):
        problems.append(f"{prefix} has a non-integer correctAnswer.")
    elif options is not None and not 0 <= correct < len(options):
        problems.append(f"{prefix} has an invalid correctAnswer index.")
    return problems


def parse_quiz_document(payload: Any) -> QuizDocument:
    """Validate ``payload`` and convert it into a :class:`QuizDocument`."""
    violations = validate_quiz_format(payload)
    if violations:
        raise InvalidQuizFormat(violations)
    if not payload["questions"]:
        raise EmptyQuizFormat()

    questions = tuple(_parse_question(item) for item in payload["questions"])
    extra = {key: value for key, value in payload.items() if key not in ("title", "questions")}
    return QuizDocument(title=payload["title"].strip(), questions=questions, extra=extra)


def _parse_question(item: dict[str, Any]) -> Question:
    extra = {key: value for key, value in item.items() if key not in _QUESTION_KEYS}
    return Question(
        text=item["question"],
        options=tuple(item["options"]),
        correct_index=item["correctAnswer"],
        extra=extra,
    )


def load_quiz_from_file(file_path: Path) -> QuizDocument:
    """Read and parse a quiz JSON file."""
    text = file_path.read_text(encoding="utf-8")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidQuizFormat([f"Invalid JSON in {file_path.name}: {exc.msg}."]) from exc
    return parse_quiz_document(payload)
