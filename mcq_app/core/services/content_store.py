"""Service for reading and writing quiz documents on disk.

Layout::

    <data_dir>/courses/<course_id>/course.json   optional {"name", "description"}
    <data_dir>/courses/<course_id>/<week_id>.json
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
import random
import re
from typing import Any

from mcq_app.constants.practice_constants import MAX_MASTERY_QUESTIONS
from mcq_app.constants.storage_constants import (
    COURSE_METADATA_FILE,
    COURSES_DIR_NAME,
    IDENTIFIER_PATTERN,
    WEEK_ID_PREFIX,
)
from mcq_app.core.errors import ContentNotFound, InvalidQuizFormat, QuizAlreadyExists
from mcq_app.core.models import CourseSummary, Question, QuestionSource, QuizDocument, WeekSummary
from mcq_app.core.quiz_exporter import save_quiz_to_file, write_json_atomic
from mcq_app.core.quiz_format import load_quiz_from_file
from mcq_app.core.shuffle import shuffle

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(IDENTIFIER_PATTERN)
_WEEK_NUMBER_RE = re.compile(rf"^{WEEK_ID_PREFIX}(\d+)$")


def normalize_course_id(raw: str) -> str:
    """Lowercase and replace whitespace runs with underscores."""
    return re.sub(r"\s+", "_", raw.strip().lower())


def week_display_name(week_id: str) -> str:
    match = _WEEK_NUMBER_RE.match(week_id)
    if match:
        return f"Week {int(match.group(1))}"
    return week_id.replace("_", " ").title()


def course_display_name(course_id: str) -> str:
    return course_id.replace("_", " ").title()


def _week_sort_key(week_id: str) -> tuple[int, int, str]:
    match = _WEEK_NUMBER_RE.match(week_id)
    if match:
        return (0, int(match.group(1)), week_id)
    return (1, 0, week_id)


class ContentStore:
    """Quiz documents grouped by course and week."""

    def __init__(self, data_dir: Path) -> None:
        self._root = (data_dir / COURSES_DIR_NAME).resolve()

    @property
    def root(self) -> Path:
        return self._root

    # --- Reading ---

    def get_quiz(self, course_id: str, week_id: str) -> QuizDocument:
        path = self._quiz_path(course_id, week_id)
        if not path.is_file():
            raise ContentNotFound(f"No quiz found for {course_id}/{week_id}.")
        return load_quiz_from_file(path)

    def quiz_exists(self, course_id: str, week_id: str) -> bool:
        return self._quiz_path(course_id, week_id).is_file()

    def list_courses(self) -> list[CourseSummary]:
        if not self._root.is_dir():
            return []
        courses = []
        for course_dir in sorted(self._root.iterdir()):
            if course_dir.is_dir() and _IDENTIFIER_RE.fullmatch(course_dir.name):
                courses.append(self._summarize_course(course_dir))
        return courses

    def get_course(self, course_id: str) -> CourseSummary:
        course_dir = self._course_dir(course_id)
        if not course_dir.is_dir():
            raise ContentNotFound(f'Course with ID "{course_id}" not found.')
        return self._summarize_course(course_dir)

    def get_all_questions(self) -> list[Question]:
        """Every readable question of every course, tagged with where it came from."""
        questions: list[Question] = []
        for course in self.list_courses():
            for week in course.weeks:
                try:
                    quiz = self.get_quiz(course.id, week.id)
                except (ContentNotFound, InvalidQuizFormat, OSError) as exc:
                    logger.warning("Could not load questions for %s/%s: %s", course.id, week.id, exc)
                    continue
                for index, question in enumerate(quiz.questions):
                    source = QuestionSource(
                        course_id=course.id,
                        course_name=course.name,
                        week_id=week.id,
                        week_name=week.name,
                        question_index=index,
                    )
                    questions.append(
                        Question(
                            text=question.text,
                            options=question.options,
                            correct_index=question.correct_index,
                            source=source,
                            extra=question.extra,
                        )
                    )
        return questions

    def build_mastery_quiz(
        self,
        limit: int = MAX_MASTERY_QUESTIONS,
        rng: random.Random | None = None,
    ) -> QuizDocument:
        """Random sample of up to ``limit`` questions drawn from all courses."""
        if limit <= 0:
            raise ValueError("Question limit must be a positive integer.")
        questions = shuffle(self.get_all_questions(), rng)[:limit]
        return QuizDocument(title="Mastery Practice", questions=tuple(questions))

    # --- Writing ---

    def save_quiz(
        self,
        course_id: str,
        week_id: str,
        document: QuizDocument,
        overwrite: bool = False,
    ) -> Path:
        path = self._quiz_path(course_id, week_id)
        if path.exists() and not overwrite:
            raise QuizAlreadyExists(
                f"Quiz {course_id}/{week_id} already exists. Set overwrite to replace it."
            )
        save_quiz_to_file(path, document)
        logger.info("Saved quiz %s/%s (%d questions)", course_id, week_id, len(document.questions))
        return path

    def add_quiz_to_course(
        self,
        course_id: str,
        document: QuizDocument,
        course_name: str | None = None,
    ) -> tuple[CourseSummary, str, bool]:
        """Store ``document`` as the next week of a course, creating the course if needed.

        Returns the updated course, the new week id and whether the course is new.
        """
        formatted_id = normalize_course_id(course_id)
        course_dir = self._course_dir(formatted_id)
        is_new_course = not course_dir.is_dir()
        if is_new_course:
            course_dir.mkdir(parents=True, exist_ok=True)
            name = (course_name or course_id).strip() or formatted_id
            write_json_atomic(
                course_dir / COURSE_METADATA_FILE,
                {"name": name, "description": document.title or f"Questions about {name}"},
            )
            logger.info("Created course %s", formatted_id)

        week_id = self._next_week_id(course_dir)
        self.save_quiz(formatted_id, week_id, document)
        return self.get_course(formatted_id), week_id, is_new_course

    # --- Raw file access (admin) ---

    def list_files(self) -> list[dict[str, Any]]:
        results = []
        if not self._root.is_dir():
            return results
        for course_dir in sorted(self._root.iterdir()):
            if not course_dir.is_dir():
                continue
            weeks = [
                {"name": path.name, "path": f"{course_dir.name}/{path.name}"}
                for path in sorted(course_dir.glob("*.json"))
                if path.name != COURSE_METADATA_FILE
            ]
            results.append({"course": course_dir.name, "weeks": weeks})
        return results

    def read_file(self, relative_path: str) -> str:
        """Return the raw text of a file below the courses directory."""
        if "\x00" in relative_path:
            raise ValueError("File path must not contain NUL bytes.")
        full_path = (self._root / relative_path.lstrip("/")).resolve()
        if not full_path.is_relative_to(self._root):
            raise PermissionError("Access outside the content directory is not allowed.")
        if not full_path.is_file():
            raise ContentNotFound(f"File not found: {relative_path}")
        return full_path.read_text(encoding="utf-8")

    # --- Helpers ---

    def _summarize_course(self, course_dir: Path) -> CourseSummary:
        metadata = self._read_metadata(course_dir)
        weeks = []
        week_paths = [path for path in course_dir.glob("*.json") if path.name != COURSE_METADATA_FILE]
        for path in sorted(week_paths, key=lambda p: _week_sort_key(p.stem)):
            if not _IDENTIFIER_RE.fullmatch(path.stem):
                continue
            title, count = self._peek_quiz(path)
            weeks.append(
                WeekSummary(id=path.stem, name=week_display_name(path.stem), question_count=count, title=title)
            )
        name = metadata.get("name") or course_display_name(course_dir.name)
        return CourseSummary(
            id=course_dir.name,
            name=name,
            description=metadata.get("description") or f"Questions about {name}",
            weeks=tuple(weeks),
        )

    @staticmethod
    def _read_metadata(course_dir: Path) -> dict[str, Any]:
        path = course_dir / COURSE_METADATA_FILE
        if not path.is_file():
            return {}
        try:
            metadata = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable course metadata %s: %s", path, exc)
            return {}
        return metadata if isinstance(metadata, dict) else {}

    @staticmethod
    def _peek_quiz(path: Path) -> tuple[str, int]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return "", 0
        if not isinstance(data, dict):
            return "", 0
        questions = data.get("questions")
        title = data.get("title") if isinstance(data.get("title"), str) else ""
        return title, len(questions) if isinstance(questions, list) else 0

    def _next_week_id(self, course_dir: Path) -> str:
        numbers = [
            int(match.group(1))
            for path in course_dir.glob("*.json")
            if (match := _WEEK_NUMBER_RE.match(path.stem))
        ]
        return f"{WEEK_ID_PREFIX}{max(numbers, default=0) + 1}"

    def _course_dir(self, course_id: str) -> Path:
        _check_identifier(course_id, "course")
        return self._root / course_id

    def _quiz_path(self, course_id: str, week_id: str) -> Path:
        _check_identifier(week_id, "week")
        return self._course_dir(course_id) / f"{week_id}.json"


def _check_identifier(value: str, kind: str) -> None:
    if not value or not _IDENTIFIER_RE.fullmatch(value):
        raise ValueError(f"Invalid {kind} id {value!r}; use letters, digits, '-' or '_'.")
