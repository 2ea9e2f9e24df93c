"""Business logic shared by the HTTP API: content, history and live sessions."""

from __future__ import annotations

import hmac
import logging
import random
from threading import Lock
from typing import Any
from uuid import uuid4

from mcq_app.constants.practice_constants import MAX_MASTERY_QUESTIONS
from mcq_app.core.errors import AccessDenied, HistoryPersistenceFailure, SessionNotFound
from mcq_app.core.models import (
    AnswerResult,
    CourseSummary,
    OutcomeRecord,
    QueueEntry,
    QuizDocument,
    SessionCompleted,
    SessionMode,
)
from mcq_app.core.quiz_format import parse_quiz_document
from mcq_app.core.services.content_store import ContentStore
from mcq_app.core.services.history_store import HistoryStore
from mcq_app.core.services.practice_selector import select_questions_needing_practice
from mcq_app.core.services.practice_session import PracticeSession, start_session

logger = logging.getLogger(__name__)


class PracticeScheduler:
    """Facade over ContentStore, HistoryStore and the live PracticeSessions."""

    def __init__(
        self,
        content: ContentStore,
        history: HistoryStore,
        admin_token: str | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._lock = Lock()
        self._content = content
        self._history = history
        self._admin_token = admin_token
        self._rng = rng or random.Random()
        self._sessions: dict[str, PracticeSession] = {}

    # --- Content Delegation ---

    def list_courses(self) -> list[CourseSummary]:
        with self._lock:
            return self._content.list_courses()

    def get_course(self, course_id: str) -> CourseSummary:
        with self._lock:
            return self._content.get_course(course_id)

    def get_quiz(self, course_id: str, week_id: str) -> QuizDocument:
        with self._lock:
            return self._content.get_quiz(course_id, week_id)

    def quiz_exists(self, course_id: str, week_id: str) -> bool:
        with self._lock:
            return self._content.quiz_exists(course_id, week_id)

    def save_quiz(self, course_id: str, week_id: str, payload: Any, overwrite: bool = False) -> str:
        document = parse_quiz_document(payload)
        with self._lock:
            path = self._content.save_quiz(course_id, week_id, document, overwrite=overwrite)
        return path.relative_to(self._content.root).as_posix()

    def upload_quiz(
        self,
        course_id: str,
        payload: Any,
        course_name: str | None = None,
    ) -> tuple[CourseSummary, str, bool]:
        document = parse_quiz_document(payload)
        with self._lock:
            return self._content.add_quiz_to_course(course_id, document, course_name=course_name)

    # --- History Delegation ---

    def get_outcomes(self, course_id: str, week_id: str) -> dict[int, OutcomeRecord]:
        with self._lock:
            return self._read_outcomes(course_id, week_id)

    def get_questions_needing_practice(self, course_id: str, week_id: str) -> set[int]:
        return select_questions_needing_practice(self.get_outcomes(course_id, week_id))

    def clear_history(self, token: str | None, course_id: str, week_id: str | None = None) -> int:
        self._require_admin(token)
        with self._lock:
            removed = self._history.clear_outcomes(course_id, week_id)
        logger.info("Cleared history for %s/%s (%d quizzes)", course_id, week_id or "*", removed)
        return removed

    # --- Session Management ---

    def start_quiz_session(
        self,
        course_id: str,
        week_id: str,
        mode: SessionMode = SessionMode.LINEAR,
    ) -> tuple[str, PracticeSession]:
        with self._lock:
            quiz = self._content.get_quiz(course_id, week_id)
            outcomes = self._read_outcomes(course_id, week_id)
            session = start_session(
                quiz,
                outcomes,
                mode=mode,
                rng=random.Random(self._rng.getrandbits(64)),
                history=self._history,
                history_key=(course_id, week_id),
            )
            return self._register(session), session

    def start_mastery_session(self, limit: int = MAX_MASTERY_QUESTIONS) -> tuple[str, PracticeSession]:
        with self._lock:
            session_rng = random.Random(self._rng.getrandbits(64))
            quiz = self._content.build_mastery_quiz(limit, rng=session_rng)
            session = start_session(
                quiz,
                mode=SessionMode.MASTERY,
                rng=session_rng,
                history=self._history,
            )
            return self._register(session), session

    def get_session(self, session_id: str) -> PracticeSession:
        with self._lock:
            return self._lookup(session_id)

    def submit_answer(self, session_id: str, selected_option_index: int) -> AnswerResult:
        with self._lock:
            return self._lookup(session_id).submit_answer(selected_option_index)

    def advance(self, session_id: str) -> QueueEntry | SessionCompleted:
        with self._lock:
            return self._lookup(session_id).advance()

    def abandon_session(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFound(f"Unknown session {session_id}.")

    def get_session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _register(self, session: PracticeSession) -> str:
        session_id = uuid4().hex
        self._sessions[session_id] = session
        return session_id

    def _lookup(self, session_id: str) -> PracticeSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Unknown session {session_id}.")
        return session

    def _read_outcomes(self, course_id: str, week_id: str) -> dict[int, OutcomeRecord]:
        try:
            return self._history.get_outcomes(course_id, week_id)
        except HistoryPersistenceFailure as exc:
            logger.warning("Could not read history for %s/%s: %s", course_id, week_id, exc)
            return {}

    # --- Admin ---

    def list_files(self, token: str | None) -> list[dict[str, Any]]:
        self._require_admin(token)
        with self._lock:
            return self._content.list_files()

    def read_file(self, token: str | None, relative_path: str) -> str:
        self._require_admin(token)
        with self._lock:
            return self._content.read_file(relative_path)

    def is_admin(self, token: str | None) -> bool:
        if not self._admin_token or not token:
            return False
        return hmac.compare_digest(token.encode("utf-8"), self._admin_token.encode("utf-8"))

    def _require_admin(self, token: str | None) -> None:
        if not self.is_admin(token):
            raise AccessDenied("Admin privileges required.")
