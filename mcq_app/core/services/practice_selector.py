"""Decides which previously missed questions should come back."""

from __future__ import annotations

from typing import Mapping

from mcq_app.constants.practice_constants import MASTERY_RATIO
from mcq_app.core.models import OutcomeRecord


def needs_practice(record: OutcomeRecord, mastery_ratio: int = MASTERY_RATIO) -> bool:
    return record.incorrect > 0 and record.correct < mastery_ratio * record.incorrect


def select_questions_needing_practice(
    outcomes: Mapping[int, OutcomeRecord],
    mastery_ratio: int = MASTERY_RATIO,
) -> set[int]:
    """Return the indices that were missed and not yet outweighed by correct answers."""
    return {index for index, record in outcomes.items() if needs_practice(record, mastery_ratio)}
