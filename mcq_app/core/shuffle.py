"""Randomisation helpers that keep the answer key valid.

Options are never shuffled by value. The index range is shuffled and the
values are mapped through it, so the correct answer is tracked by position
even when two options share the same text.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Sequence, TypeVar

from mcq_app.core.models import Question, QuizDocument, ShuffledQuestion, ShuffledQuiz

T = TypeVar("T")

_default_rng = random.Random()


@dataclass(frozen=True, slots=True)
class RemappedOptions:
    shuffled_options: tuple[str, ...]
    new_correct_index: int
    option_order: tuple[int, ...]


def shuffle(sequence: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """Return a new list with the elements of ``sequence`` in random order (Fisher-Yates)."""
    rng = rng or _default_rng
    shuffled = list(sequence)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def shuffle_with_answer_remap(
    options: Sequence[str],
    correct_index: int,
    rng: random.Random | None = None,
) -> RemappedOptions:
    if not 0 <= correct_index < len(options):
        raise IndexError(f"Correct index {correct_index} out of range for {len(options)} options")
    order = shuffle(range(len(options)), rng)
    return RemappedOptions(
        shuffled_options=tuple(options[i] for i in order),
        new_correct_index=order.index(correct_index),
        option_order=tuple(order),
    )


def shuffle_question(
    question: Question,
    original_index: int,
    rng: random.Random | None = None,
    is_repeated: bool = False,
) -> ShuffledQuestion:
    """Build a presentation copy of ``question`` with its options shuffled."""
    remapped = shuffle_with_answer_remap(question.options, question.correct_index, rng)
    return ShuffledQuestion(
        text=question.text,
        options=remapped.shuffled_options,
        correct_index=remapped.new_correct_index,
        original_index=original_index,
        option_order=remapped.option_order,
        is_repeated=is_repeated,
        source=question.source,
    )


def shuffle_quiz_questions(quiz: QuizDocument, rng: random.Random | None = None) -> ShuffledQuiz:
    """Shuffle question order and, independently, each question's options."""
    order = shuffle(range(len(quiz.questions)), rng)
    questions = tuple(shuffle_question(quiz.questions[idx], idx, rng) for idx in order)
    return ShuffledQuiz(title=quiz.title, questions=questions)
