"""Service for recording per-question answer outcomes."""

from __future__ import annotations

import logging
from typing import Any

from mcq_app.constants.storage_constants import HISTORY_STORAGE_KEY
from mcq_app.core.errors import HistoryPersistenceFailure
from mcq_app.core.models import OutcomeRecord
from mcq_app.core.storage import KeyValueStore

logger = logging.getLogger(__name__)


def history_key(course_id: str, week_id: str) -> str:
    return f"{course_id}/{week_id}"


class HistoryStore:
    """Keeps correct/incorrect counters per (course, week, question index).

    The whole history lives under one storage key as
    ``{"<course>/<week>": {"<index>": {"correct": n, "incorrect": n}}}``.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def record_outcome(self, course_id: str, week_id: str, original_index: int, is_correct: bool) -> None:
        """Increment the matching counter, creating the record on first use."""
        if not course_id or not week_id or original_index < 0:
            logger.error(
                "Ignoring outcome with invalid key course=%r week=%r index=%r",
                course_id,
                week_id,
                original_index,
            )
            return

        history = self._load()
        quiz_history = history.setdefault(history_key(course_id, week_id), {})
        record = quiz_history.setdefault(str(original_index), {"correct": 0, "incorrect": 0})
        counter = "correct" if is_correct else "incorrect"
        record[counter] = int(record.get(counter, 0)) + 1
        self._save(history)

    def get_outcomes(self, course_id: str, week_id: str) -> dict[int, OutcomeRecord]:
        quiz_history = self._load().get(history_key(course_id, week_id), {})
        outcomes: dict[int, OutcomeRecord] = {}
        for raw_index, stats in quiz_history.items():
            try:
                index = int(raw_index)
            except ValueError:
                logger.warning("Skipping non-numeric history entry %r", raw_index)
                continue
            outcomes[index] = OutcomeRecord(
                correct=int(stats.get("correct", 0)),
                incorrect=int(stats.get("incorrect", 0)),
            )
        return outcomes

    def clear_outcomes(self, course_id: str, week_id: str | None = None) -> int:
        """Drop the history for one quiz, or for every week of a course.

        Returns the number of quizzes whose history was removed.
        """
        history = self._load()
        if week_id is not None:
            keys = [history_key(course_id, week_id)] if history_key(course_id, week_id) in history else []
        else:
            keys = [key for key in history if key.split("/", 1)[0] == course_id]
        for key in keys:
            del history[key]
        if keys:
            self._save(history)
        return len(keys)

    def _load(self) -> dict[str, Any]:
        try:
            history = self._store.get(HISTORY_STORAGE_KEY, {})
        except (OSError, ValueError) as exc:
            raise HistoryPersistenceFailure(f"Unable to read answer history: {exc}") from exc
        return history if isinstance(history, dict) else {}

    def _save(self, history: dict[str, Any]) -> None:
        try:
            self._store.set(HISTORY_STORAGE_KEY, history)
        except (OSError, TypeError, ValueError) as exc:
            raise HistoryPersistenceFailure(f"Unable to save answer history: {exc}") from exc
