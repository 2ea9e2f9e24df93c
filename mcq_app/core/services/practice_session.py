"""Service for running one quiz attempt as a queue of question instances."""

from __future__ import annotations

from collections import deque
import logging
import random
from typing import Mapping

from mcq_app.constants.practice_constants import (
    MAX_PRACTICE_REPEATS,
    MIN_PRACTICE_REPEATS,
    MIN_REQUEUE_GAP,
)
from mcq_app.core.errors import EmptyQuizFormat, HistoryPersistenceFailure, SessionStateError
from mcq_app.core.models import (
    AnswerResult,
    OutcomeRecord,
    QueueEntry,
    QuizDocument,
    SessionCompleted,
    SessionMode,
    SessionState,
    ShuffledQuestion,
)
from mcq_app.core.services.history_store import HistoryStore
from mcq_app.core.services.practice_selector import select_questions_needing_practice
from mcq_app.core.shuffle import shuffle, shuffle_question

logger = logging.getLogger(__name__)


class PracticeSession:
    """Manages the queue and answer state of one quiz attempt.

    In linear mode the queue is fixed at start and consumed front to back.
    In mastery mode a missed question is put back into the queue until its
    outstanding-mistake counter returns to zero.
    """

    def __init__(
        self,
        quiz: QuizDocument,
        mode: SessionMode = SessionMode.LINEAR,
        rng: random.Random | None = None,
        history: HistoryStore | None = None,
        history_key: tuple[str, str] | None = None,
    ) -> None:
        if not quiz.questions:
            raise EmptyQuizFormat("Cannot start a session for a quiz without questions.")
        self._quiz = quiz
        self._mode = mode
        self._rng = rng or random.Random()
        self._history = history
        self._history_key = history_key
        self._state = SessionState.LOADING

        self._queue: deque[QueueEntry] = deque()
        self._current: QueueEntry | None = None
        self._next_instance_id: int = 0
        self._mistakes: dict[int, int] = {}
        self._answered_instances: int = 0
        self._correct_answers: int = 0

    # --- Lifecycle ---

    def begin(self, outcomes: Mapping[int, OutcomeRecord] | None = None) -> None:
        """Build the initial queue and present the first entry."""
        if self._state is not SessionState.LOADING:
            raise SessionStateError("Session has already been started.")

        if self._mode is SessionMode.LINEAR:
            plan = self._plan_linear(outcomes or {})
        else:
            plan = [(index, False) for index in shuffle(range(len(self._quiz.questions)), self._rng)]

        for index, is_repeated in plan:
            self._queue.append(self._new_entry(index, is_repeated))

        self._state = SessionState.IN_PROGRESS
        self._current = self._queue.popleft()
        logger.info(
            "Started %s session for '%s' with %d entries",
            self._mode.value,
            self._quiz.title,
            len(self._queue) + 1,
        )

    def _plan_linear(self, outcomes: Mapping[int, OutcomeRecord]) -> list[tuple[int, bool]]:
        plan = [(index, False) for index in range(len(self._quiz.questions))]
        for index in sorted(select_questions_needing_practice(outcomes)):
            if not 0 <= index < len(self._quiz.questions):
                logger.debug("Ignoring history for missing question index %d", index)
                continue
            repetitions = self._rng.randint(MIN_PRACTICE_REPEATS, MAX_PRACTICE_REPEATS)
            plan.extend((index, True) for _ in range(repetitions))
        return shuffle(plan, self._rng)

    def _new_entry(self, index: int, is_repeated: bool) -> QueueEntry:
        question = shuffle_question(self._quiz.questions[index], index, self._rng, is_repeated=is_repeated)
        entry = QueueEntry(instance_id=self._next_instance_id, question=question)
        self._next_instance_id += 1
        return entry

    # --- Queries ---

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def title(self) -> str:
        return self._quiz.title

    def is_complete(self) -> bool:
        return self._state is SessionState.COMPLETED

    def get_current_entry(self) -> QueueEntry | None:
        return self._current

    def get_pending_entries(self) -> list[QueueEntry]:
        """Entries still waiting behind the current one, in presentation order."""
        return list(self._queue)

    def get_remaining_count(self) -> int:
        pending_current = 1 if self._current is not None and not self._current.answered else 0
        return len(self._queue) + pending_current

    def get_answered_count(self) -> int:
        return self._answered_instances

    def get_correct_count(self) -> int:
        return self._correct_answers

    def get_outstanding_mistakes(self, original_index: int) -> int:
        return self._mistakes.get(original_index, 0)

    # --- Answering ---

    def submit_answer(self, selected_option_index: int) -> AnswerResult:
        entry = self._current
        if self._state is not SessionState.IN_PROGRESS or entry is None:
            raise SessionStateError("No question is waiting for an answer.")
        if entry.answered:
            raise SessionStateError("The current question has already been answered.")

        question = entry.question
        if not 0 <= selected_option_index < len(question.options):
            raise ValueError(f"Option index {selected_option_index} is out of range.")

        is_correct = selected_option_index == question.correct_index
        entry.answered = True
        entry.selected_option_index = selected_option_index
        entry.is_correct = is_correct
        self._answered_instances += 1
        if is_correct:
            self._correct_answers += 1

        self._record_history(question, is_correct)
        if self._mode is SessionMode.MASTERY:
            self._update_mastery_queue(question.original_index, is_correct)

        return AnswerResult(
            is_correct=is_correct,
            correct_index=question.correct_index,
            selected_option_index=selected_option_index,
            original_index=question.original_index,
        )

    def _update_mastery_queue(self, original_index: int, is_correct: bool) -> None:
        outstanding = self._mistakes.get(original_index, 0)
        if is_correct:
            outstanding = max(0, outstanding - 1)
        else:
            outstanding += 1
        self._mistakes[original_index] = outstanding

        if not is_correct or outstanding > 0:
            entry = self._new_entry(original_index, is_repeated=True)
            self._queue.insert(self._requeue_position(), entry)

    def _requeue_position(self) -> int:
        remaining = len(self._queue)
        if remaining < MIN_REQUEUE_GAP:
            return remaining
        return self._rng.randint(MIN_REQUEUE_GAP, remaining)

    def _record_history(self, question: ShuffledQuestion, is_correct: bool) -> None:
        if self._history is None:
            return
        if question.source is not None:
            key = (question.source.course_id, question.source.week_id, question.source.question_index)
        elif self._history_key is not None:
            key = (*self._history_key, question.original_index)
        else:
            return
        try:
            self._history.record_outcome(*key, is_correct)
        except HistoryPersistenceFailure:
            logger.warning("Could not record outcome for %s/%s #%d", *key, exc_info=True)

    # --- Progression ---

    def advance(self) -> QueueEntry | SessionCompleted:
        """Move past the answered entry; return the next one or the completion summary."""
        if self._state is SessionState.LOADING:
            raise SessionStateError("Session has not been started.")
        if self._state is SessionState.IN_PROGRESS:
            if self._current is not None and not self._current.answered:
                raise SessionStateError("Answer the current question before moving on.")
            if self._queue:
                self._current = self._queue.popleft()
                return self._current
            self._current = None
            self._state = SessionState.COMPLETED
            logger.info(
                "Completed session for '%s': %d/%d correct",
                self._quiz.title,
                self._correct_answers,
                self._answered_instances,
            )
        return SessionCompleted(
            answered_instances=self._answered_instances,
            correct_answers=self._correct_answers,
        )


def start_session(
    quiz: QuizDocument,
    outcomes: Mapping[int, OutcomeRecord] | None = None,
    mode: SessionMode = SessionMode.LINEAR,
    rng: random.Random | None = None,
    history: HistoryStore | None = None,
    history_key: tuple[str, str] | None = None,
) -> PracticeSession:
    """Create a session for ``quiz`` and present its first entry."""
    session = PracticeSession(quiz, mode=mode, rng=rng, history=history, history_key=history_key)
    session.begin(outcomes)
    return session


def submit_answer(session: PracticeSession, selected_option_index: int) -> AnswerResult:
    return session.submit_answer(selected_option_index)


def advance(session: PracticeSession) -> QueueEntry | SessionCompleted:
    return session.advance()
