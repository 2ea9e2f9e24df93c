"""FastAPI server that exposes the practice API and the browser client."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field
import uvicorn

from mcq_app.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from mcq_app.constants.network_constants import ADMIN_TOKEN_HEADER, DEFAULT_HOST, DEFAULT_PORT
from mcq_app.constants.practice_constants import MAX_MASTERY_QUESTIONS
from mcq_app.core.errors import (
    AccessDenied,
    ContentNotFound,
    InvalidQuizFormat,
    McqError,
    QuizAlreadyExists,
    SessionNotFound,
    SessionStateError,
)
from mcq_app.core.markdown_math_renderer import MATHJAX_SCRIPT, renderer
from mcq_app.core.models import CourseSummary, QueueEntry, SessionCompleted, SessionMode
from mcq_app.core.practice_scheduler import PracticeScheduler
from mcq_app.core.quiz_exporter import serialize_quiz_document
from mcq_app.core.quiz_format import validate_quiz_format
from mcq_app.core.services.practice_session import PracticeSession

_STATUS_BY_ERROR: dict[type[McqError], int] = {
    ContentNotFound: 404,
    SessionNotFound: 404,
    InvalidQuizFormat: 422,
    QuizAlreadyExists: 409,
    SessionStateError: 409,
    AccessDenied: 403,
}

_PAGE_HTML = """<!doctype html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <title>MCQ Practice</title>
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <script>
      window.MathJax = { tex: { inlineMath: [['$','$']], displayMath: [['$$','$$']] } };
    </script>
    <script defer src=\"__MATHJAX__\"></script>
    <style>
      body { font-family: 'Segoe UI', system-ui, sans-serif; margin: 0; background: #0f172a; color: #f5f7ff; }
      main { max-width: 760px; margin: 0 auto; padding: 1.5rem; }
      h1 { font-size: 1.6rem; }
      .card { background: #1e293b; border-radius: 12px; padding: 1rem 1.25rem; margin-bottom: 1rem; }
      button { font: inherit; border: 0; border-radius: 8px; padding: 0.6rem 1rem; cursor: pointer; background: #3b82f6; color: white; }
      button.secondary { background: #334155; }
      .weeks button { margin: 0.25rem 0.5rem 0.25rem 0; }
      .option-button { display: block; width: 100%; text-align: left; margin: 0.5rem 0; background: #334155; }
      .option-button.correct { background: #16a34a; }
      .option-button.wrong { background: #dc2626; }
      .muted { color: #94a3b8; font-size: 0.9rem; }
      .repeat { color: #93c5fd; font-size: 0.9rem; }
      textarea { width: 100%; min-height: 10rem; font-family: monospace; }
      input { font: inherit; padding: 0.4rem; }
      .hidden { display: none; }
      #status { min-height: 1.5rem; }
    </style>
  </head>
  <body>
    <main>
      <h1>MCQ Practice</h1>
      <section id=\"home\">
        <div id=\"courses\"></div>
        <div class=\"card\">
          <h2>Mastery practice</h2>
          <p class=\"muted\">Questions from every course. Missed questions come back until you get them right.</p>
          <button id=\"mastery-button\">Start mastery practice</button>
        </div>
        <div class=\"card\">
          <h2>Upload quiz</h2>
          <input id=\"upload-course\" placeholder=\"Course name\" />
          <textarea id=\"upload-json\" placeholder='{\"title\": \"...\", \"questions\": [...]}'></textarea>
          <button id=\"upload-button\">Upload</button>
          <div id=\"upload-status\" class=\"muted\"></div>
        </div>
      </section>
      <section id=\"quiz\" class=\"hidden\">
        <div class=\"card\">
          <div class=\"muted\" id=\"progress\"></div>
          <div class=\"repeat hidden\" id=\"repeat-note\">You missed this one before. Try again.</div>
          <div id=\"question\"></div>
          <div id=\"options\"></div>
          <div id=\"status\"></div>
          <button id=\"next-button\" class=\"hidden\">Next</button>
          <button id=\"quit-button\" class=\"secondary\">Back</button>
        </div>
      </section>
      <section id=\"done\" class=\"hidden\">
        <div class=\"card\">
          <h2>Quiz completed</h2>
          <p id=\"score\"></p>
          <button id=\"restart-button\">Restart</button>
          <button id=\"home-button\" class=\"secondary\">Back to courses</button>
        </div>
      </section>
    </main>
    <script>
      let sessionId = null;
      let lastStart = null;

      function show(section) {
        for (const id of ['home', 'quiz', 'done']) {
          document.getElementById(id).classList.toggle('hidden', id !== section);
        }
      }

      function typeset() {
        if (window.MathJax && window.MathJax.typesetPromise) {
          window.MathJax.typesetPromise();
        }
      }

      async function api(method, url, body) {
        const options = { method, headers: { 'Content-Type': 'application/json' } };
        if (body !== undefined) {
          options.body = JSON.stringify(body);
        }
        const response = await fetch(url, options);
        const payload = await response.json();
        if (!response.ok) {
          const detail = payload.detail;
          throw new Error(Array.isArray(detail) ? detail.join(' ') : (detail || 'Request failed'));
        }
        return payload;
      }

      async function loadCourses() {
        const container = document.getElementById('courses');
        container.textContent = 'Loading courses…';
        try {
          const courses = await api('GET', '/api/courses');
          container.textContent = '';
          if (courses.length === 0) {
            container.textContent = 'No courses yet. Upload a quiz to get started.';
          }
          for (const course of courses) {
            const card = document.createElement('div');
            card.className = 'card';
            const title = document.createElement('h2');
            title.textContent = course.name;
            const meta = document.createElement('p');
            meta.className = 'muted';
            meta.textContent = course.weeks.length + ' weeks · ' + course.total_questions + ' questions';
            const weeks = document.createElement('div');
            weeks.className = 'weeks';
            for (const week of course.weeks) {
              const button = document.createElement('button');
              button.textContent = week.name + ' (' + week.question_count + ')';
              button.onclick = () => startSession({ course_id: course.id, week_id: week.id, mode: 'linear' });
              weeks.appendChild(button);
            }
            card.append(title, meta, weeks);
            container.appendChild(card);
          }
        } catch (error) {
          container.textContent = 'Failed to load courses. ' + error.message;
        }
      }

      async function startSession(request) {
        lastStart = request;
        try {
          const view = request === 'mastery'
            ? await api('POST', '/api/sessions/mastery', {})
            : await api('POST', '/api/sessions', request);
          sessionId = view.session_id;
          renderSession(view);
          show('quiz');
        } catch (error) {
          alert(error.message);
        }
      }

      function renderSession(view) {
        if (view.completed) {
          renderCompleted(view);
          return;
        }
        const entry = view.current;
        document.getElementById('progress').textContent =
          view.title + ' · ' + view.answered + ' answered · ' + view.remaining + ' remaining';
        document.getElementById('repeat-note').classList.toggle('hidden', !entry.is_repeated);
        document.getElementById('question').innerHTML = entry.question_html;
        const options = document.getElementById('options');
        options.textContent = '';
        entry.options_html.forEach((html, index) => {
          const button = document.createElement('button');
          button.className = 'option-button';
          button.innerHTML = String.fromCharCode(65 + index) + '. ' + html;
          button.onclick = () => submitAnswer(index);
          options.appendChild(button);
        });
        document.getElementById('status').textContent = '';
        document.getElementById('next-button').classList.add('hidden');
        typeset();
      }

      async function submitAnswer(index) {
        try {
          const result = await api('POST', '/api/sessions/' + sessionId + '/answer', { selected_option_index: index });
          const buttons = document.querySelectorAll('.option-button');
          buttons.forEach((button, i) => {
            button.disabled = true;
            if (i === result.correct_index) button.classList.add('correct');
            else if (i === index) button.classList.add('wrong');
          });
          const status = document.getElementById('status');
          status.textContent = result.is_correct ? '✓ Correct!' : '✗ Not quite.';
          document.getElementById('next-button').classList.remove('hidden');
        } catch (error) {
          document.getElementById('status').textContent = error.message;
        }
      }

      async function nextQuestion() {
        try {
          renderSession(await api('POST', '/api/sessions/' + sessionId + '/advance'));
        } catch (error) {
          document.getElementById('status').textContent = error.message;
        }
      }

      function renderCompleted(view) {
        const summary = view.summary;
        document.getElementById('score').textContent =
          summary.correct_answers + ' of ' + summary.answered_instances + ' answers correct (' +
          Math.round(summary.score_percentage) + '%).';
        show('done');
      }

      async function leaveSession() {
        if (sessionId) {
          try { await api('DELETE', '/api/sessions/' + sessionId); } catch (error) { console.error(error); }
          sessionId = null;
        }
        show('home');
        loadCourses();
      }

      async function uploadQuiz() {
        const status = document.getElementById('upload-status');
        let data;
        try {
          data = JSON.parse(document.getElementById('upload-json').value);
        } catch (error) {
          status.textContent = 'Invalid JSON format: ' + error.message;
          return;
        }
        const courseName = document.getElementById('upload-course').value.trim();
        if (!courseName) {
          status.textContent = 'Please enter a course name.';
          return;
        }
        try {
          const result = await api('POST', '/api/upload', { courseId: courseName, courseName, data });
          status.textContent = 'Saved as ' + result.course.name + ' / ' + result.weekId + '.';
          loadCourses();
        } catch (error) {
          status.textContent = 'Error saving quiz: ' + error.message;
        }
      }

      document.getElementById('mastery-button').onclick = () => startSession('mastery');
      document.getElementById('upload-button').onclick = uploadQuiz;
      document.getElementById('next-button').onclick = nextQuestion;
      document.getElementById('quit-button').onclick = leaveSession;
      document.getElementById('home-button').onclick = leaveSession;
      document.getElementById('restart-button').onclick = async () => {
        await leaveSession();
        startSession(lastStart);
      };
      loadCourses();
    </script>
  </body>
</html>
""".replace("__MATHJAX__", MATHJAX_SCRIPT)


class StartSessionPayload(BaseModel):
    """Payload schema for starting a single-quiz session."""

    course_id: str
    week_id: str
    mode: SessionMode = SessionMode.LINEAR


class MasteryPayload(BaseModel):
    """Payload schema for a cross-course mastery session."""

    limit: int = Field(default=MAX_MASTERY_QUESTIONS, gt=0)


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers."""

    selected_option_index: int


class SaveQuizPayload(BaseModel):
    """Payload schema for writing a quiz to a fixed course/week."""

    model_config = ConfigDict(populate_by_name=True)

    course_id: str = Field(alias="courseId")
    week_id: str = Field(alias="weekId")
    data: Any
    overwrite: bool = False


class UploadPayload(BaseModel):
    """Payload schema for adding a quiz as the next week of a course."""

    model_config = ConfigDict(populate_by_name=True)

    course_id: str = Field(alias="courseId")
    course_name: str | None = Field(default=None, alias="courseName")
    data: Any


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, InvalidQuizFormat):
        return HTTPException(status_code=422, detail=exc.violations)
    if isinstance(exc, McqError):
        for error_type, status_code in _STATUS_BY_ERROR.items():
            if isinstance(exc, error_type):
                return HTTPException(status_code=status_code, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=403, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))


def _course_view(course: CourseSummary) -> dict[str, object]:
    return {
        "id": course.id,
        "name": course.name,
        "description": course.description,
        "weeks": [asdict(week) for week in course.weeks],
        "total_questions": course.total_questions,
    }


def _entry_view(entry: QueueEntry) -> dict[str, object]:
    question = entry.question
    source = asdict(question.source) if question.source is not None else None
    return {
        "instance_id": entry.instance_id,
        "original_index": question.original_index,
        "question": question.text,
        "question_html": renderer.render_fragment(question.text),
        "options": list(question.options),
        "options_html": [renderer.render_inline(option) for option in question.options],
        "is_repeated": question.is_repeated,
        "answered": entry.answered,
        "selected_option_index": entry.selected_option_index,
        "is_correct": entry.is_correct,
        # Only reveal the key once this instance has been answered
        "correct_index": question.correct_index if entry.answered else None,
        "source": source,
    }


def _session_view(session_id: str, session: PracticeSession) -> dict[str, object]:
    entry = session.get_current_entry()
    view: dict[str, object] = {
        "session_id": session_id,
        "title": session.title,
        "mode": session.mode.value,
        "state": session.state.name.lower(),
        "remaining": session.get_remaining_count(),
        "answered": session.get_answered_count(),
        "correct": session.get_correct_count(),
        "completed": session.is_complete(),
        "current": _entry_view(entry) if entry is not None else None,
        "summary": None,
    }
    return view


def _completed_view(session_id: str, session: PracticeSession, completed: SessionCompleted) -> dict[str, object]:
    view = _session_view(session_id, session)
    view["summary"] = {
        "answered_instances": completed.answered_instances,
        "correct_answers": completed.correct_answers,
        "score_percentage": completed.score_percentage,
    }
    return view


def _get_scheduler_dependency(scheduler: PracticeScheduler):
    def dependency() -> PracticeScheduler:
        return scheduler

    return dependency


def create_api_app(scheduler: PracticeScheduler) -> FastAPI:
    """Create a FastAPI application wired to the provided scheduler."""
    app = FastAPI(title=f"{APP_NAME} API", description=APP_ABOUT_TEXT, version=APP_VERSION)
    scheduler_dep = _get_scheduler_dependency(scheduler)

    @app.get("/", response_class=HTMLResponse)
    def serve_page() -> str:
        return _PAGE_HTML

    # --- Content ---

    @app.get("/api/courses")
    def list_courses(manager: PracticeScheduler = Depends(scheduler_dep)) -> list[dict[str, object]]:
        return [_course_view(course) for course in manager.list_courses()]

    @app.get("/api/courses/{course_id}")
    def get_course(course_id: str, manager: PracticeScheduler = Depends(scheduler_dep)) -> dict[str, object]:
        try:
            return _course_view(manager.get_course(course_id))
        except (McqError, ValueError) as exc:
            raise _http_error(exc) from exc

    @app.get("/api/quizzes/{course_id}/{week_id}")
    def get_quiz(
        course_id: str,
        week_id: str,
        manager: PracticeScheduler = Depends(scheduler_dep),
    ) -> dict[str, Any]:
        try:
            return serialize_quiz_document(manager.get_quiz(course_id, week_id))
        except (McqError, ValueError) as exc:
            raise _http_error(exc) from exc

    @app.get("/api/check-file/{course_id}/{week_id}")
    def check_file(
        course_id: str,
        week_id: str,
        manager: PracticeScheduler = Depends(scheduler_dep),
    ) -> dict[str, bool]:
        try:
            return {"exists": manager.quiz_exists(course_id, week_id)}
        except ValueError as exc:
            raise _http_error(exc) from exc

    @app.post("/api/validate-quiz")
    def validate_quiz(payload: Any = Body(...)) -> dict[str, object]:
        violations = validate_quiz_format(payload)
        return {"is_valid": not violations, "violations": violations}

    @app.post("/api/save-quiz")
    def save_quiz(payload: SaveQuizPayload, manager: PracticeScheduler = Depends(scheduler_dep)) -> dict[str, str]:
        try:
            path = manager.save_quiz(payload.course_id, payload.week_id, payload.data, overwrite=payload.overwrite)
        except (McqError, ValueError) as exc:
            raise _http_error(exc) from exc
        return {"message": "Quiz data saved successfully", "path": path}

    @app.post("/api/upload", status_code=201)
    def upload_quiz(payload: UploadPayload, manager: PracticeScheduler = Depends(scheduler_dep)) -> dict[str, object]:
        try:
            course, week_id, is_new_course = manager.upload_quiz(
                payload.course_id,
                payload.data,
                course_name=payload.course_name,
            )
        except (McqError, ValueError) as exc:
            raise _http_error(exc) from exc
        return {"course": _course_view(course), "weekId": week_id, "isNewCourse": is_new_course}

    # --- Sessions ---

    @app.post("/api/sessions", status_code=201)
    def start_quiz_session(
        payload: StartSessionPayload,
        manager: PracticeScheduler = Depends(scheduler_dep),
    ) -> dict[str, object]:
        try:
            session_id, session = manager.start_quiz_session(payload.course_id, payload.week_id, payload.mode)
        except (McqError, ValueError) as exc:
            raise _http_error(exc) from exc
        return _session_view(session_id, session)

    @app.post("/api/sessions/mastery", status_code=201)
    def start_mastery_session(
        payload: MasteryPayload,
        manager: PracticeScheduler = Depends(scheduler_dep),
    ) -> dict[str, object]:
        try:
            session_id, session = manager.start_mastery_session(payload.limit)
        except (McqError, ValueError) as exc:
            raise _http_error(exc) from exc
        return _session_view(session_id, session)

    @app.get("/api/sessions/{session_id}")
    def get_session(session_id: str, manager: PracticeScheduler = Depends(scheduler_dep)) -> dict[str, object]:
        try:
            return _session_view(session_id, manager.get_session(session_id))
        except McqError as exc:
            raise _http_error(exc) from exc

    @app.post("/api/sessions/{session_id}/answer")
    def submit_answer(
        session_id: str,
        payload: AnswerPayload,
        manager: PracticeScheduler = Depends(scheduler_dep),
    ) -> dict[str, object]:
        try:
            result = manager.submit_answer(session_id, payload.selected_option_index)
            session = manager.get_session(session_id)
        except (McqError, ValueError) as exc:
            raise _http_error(exc) from exc
        return {**asdict(result), "session": _session_view(session_id, session)}

    @app.post("/api/sessions/{session_id}/advance")
    def advance(session_id: str, manager: PracticeScheduler = Depends(scheduler_dep)) -> dict[str, object]:
        try:
            outcome = manager.advance(session_id)
            session = manager.get_session(session_id)
        except McqError as exc:
            raise _http_error(exc) from exc
        if isinstance(outcome, SessionCompleted):
            return _completed_view(session_id, session, outcome)
        return _session_view(session_id, session)

    @app.delete("/api/sessions/{session_id}")
    def abandon_session(session_id: str, manager: PracticeScheduler = Depends(scheduler_dep)) -> dict[str, bool]:
        try:
            manager.abandon_session(session_id)
        except McqError as exc:
            raise _http_error(exc) from exc
        return {"abandoned": True}

    # --- History ---

    @app.get("/api/history/{course_id}/{week_id}")
    def get_history(
        course_id: str,
        week_id: str,
        manager: PracticeScheduler = Depends(scheduler_dep),
    ) -> dict[str, object]:
        outcomes = manager.get_outcomes(course_id, week_id)
        return {
            "outcomes": {str(index): asdict(record) for index, record in sorted(outcomes.items())},
            "needs_practice": sorted(manager.get_questions_needing_practice(course_id, week_id)),
        }

    @app.delete("/api/history/{course_id}")
    def clear_history(
        course_id: str,
        week_id: str | None = Query(default=None),
        x_admin_token: str | None = Header(default=None, alias=ADMIN_TOKEN_HEADER),
        manager: PracticeScheduler = Depends(scheduler_dep),
    ) -> dict[str, int]:
        try:
            removed = manager.clear_history(x_admin_token, course_id, week_id)
        except McqError as exc:
            raise _http_error(exc) from exc
        return {"cleared": removed}

    # --- Admin ---

    @app.get("/api/list-files")
    def list_files(
        x_admin_token: str | None = Header(default=None, alias=ADMIN_TOKEN_HEADER),
        manager: PracticeScheduler = Depends(scheduler_dep),
    ) -> list[dict[str, Any]]:
        try:
            return manager.list_files(x_admin_token)
        except McqError as exc:
            raise _http_error(exc) from exc

    @app.get("/api/file-content", response_class=PlainTextResponse)
    def file_content(
        path: str = Query(...),
        x_admin_token: str | None = Header(default=None, alias=ADMIN_TOKEN_HEADER),
        manager: PracticeScheduler = Depends(scheduler_dep),
    ) -> str:
        try:
            return manager.read_file(x_admin_token, path)
        except (McqError, PermissionError, ValueError) as exc:
            raise _http_error(exc) from exc

    return app


def run_api_server(
    scheduler: PracticeScheduler,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    log_level: str = "info",
) -> None:
    """Serve the API in the foreground until interrupted."""
    app = create_api_app(scheduler)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level.lower())
    server = uvicorn.Server(config)
    server.run()
