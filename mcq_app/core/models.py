"""Domain models for the practice application."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


@dataclass(frozen=True, slots=True)
class QuestionSource:
    """Where a question came from, used when questions from several quizzes are mixed."""

    course_id: str
    course_name: str
    week_id: str
    week_name: str
    question_index: int


@dataclass(frozen=True, slots=True)
class Question:
    """Multiple-choice question with at least two options."""

    text: str
    options: tuple[str, ...]
    correct_index: int
    source: QuestionSource | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)  # Unknown keys kept for round trips


@dataclass(frozen=True, slots=True)
class QuizDocument:
    """Titled, ordered list of questions stored under a (course, week) key."""

    title: str
    questions: tuple[Question, ...]
    extra: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True, slots=True)
class ShuffledQuestion:
    """Presentation copy of a question with shuffled options.

    ``option_order[i]`` is the source position of ``options[i]``.
    """

    text: str
    options: tuple[str, ...]
    correct_index: int
    original_index: int
    option_order: tuple[int, ...]
    is_repeated: bool = False
    source: QuestionSource | None = None


@dataclass(frozen=True, slots=True)
class ShuffledQuiz:
    title: str
    questions: tuple[ShuffledQuestion, ...]


@dataclass(slots=True)
class OutcomeRecord:
    """Correct/incorrect answer counters for one question."""

    correct: int = 0
    incorrect: int = 0


@dataclass(frozen=True, slots=True)
class WeekSummary:
    id: str
    name: str
    question_count: int
    title: str = ""


@dataclass(frozen=True, slots=True)
class CourseSummary:
    id: str
    name: str
    description: str
    weeks: tuple[WeekSummary, ...]

    @property
    def total_questions(self) -> int:
        return sum(week.question_count for week in self.weeks)


class SessionMode(Enum):
    LINEAR = "linear"
    MASTERY = "mastery"


class SessionState(Enum):
    LOADING = auto()
    IN_PROGRESS = auto()
    COMPLETED = auto()


@dataclass(slots=True)
class QueueEntry:
    """One presented instance of a question inside a session."""

    instance_id: int
    question: ShuffledQuestion
    answered: bool = False
    selected_option_index: int | None = None
    is_correct: bool | None = None


@dataclass(frozen=True, slots=True)
class AnswerResult:
    is_correct: bool
    correct_index: int
    selected_option_index: int
    original_index: int


@dataclass(frozen=True, slots=True)
class SessionCompleted:
    """Returned by ``advance`` once the session queue is empty."""

    answered_instances: int
    correct_answers: int

    @property
    def score_percentage(self) -> float:
        if not self.answered_instances:
            return 0.0
        return (self.correct_answers / self.answered_instances) * 100
