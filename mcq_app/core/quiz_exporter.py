"""Utilities for exporting quizzes to the JSON format used for uploads."""

from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
from typing import Any

from mcq_app.core.models import Question, QuizDocument


def save_quiz_to_file(file_path: Path, document: QuizDocument) -> None:
    """Persist ``document`` to disk in the upload format."""

    if not document.questions:
        raise ValueError("Cannot export an empty quiz.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    write_json_atomic(file_path, serialize_quiz_document(document))


def serialize_quiz_document(document: QuizDocument) -> dict[str, Any]:
    payload: dict[str, Any] = {"title": document.title}
    payload.update(document.extra)
    payload["questions"] = [_serialize_question(question) for question in document.questions]
    return payload


def _serialize_question(question: Question) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "question": question.text,
        "options": list(question.options),
        "correctAnswer": question.correct_index,
    }
    payload.update(question.extra)
    return payload


def write_json_atomic(file_path: Path, payload: Any) -> None:
    """Write ``payload`` as indented JSON, replacing the target in one step."""
    fd, temp_name = tempfile.mkstemp(dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
            handle.write("\n")
        os.replace(temp_name, file_path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
