"""FastAPI server exposing question administration and the test-taking flow."""

from __future__ import annotations

from datetime import datetime
import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, field_validator

from aptitude_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION, HELP_TEXT
from aptitude_app.constants.network_constants import USER_ID_HEADER, USER_NAME_HEADER, USER_ROLE_HEADER
from aptitude_app.constants.test_constants import ROLE_STUDENT
from aptitude_app.core.errors import (
    LoadError,
    LoadErrorReason,
    NoQuestionsAvailable,
    SessionStateError,
    StaleSessionError,
    StorageError,
)
from aptitude_app.core.markdown_math_renderer import renderer
from aptitude_app.core.models import Question, ScheduledTest, TestResult, UserContext
from aptitude_app.core.question_importer import QuestionImportError
from aptitude_app.core.services.result_reports import (
    export_results_csv,
    format_duration,
    format_minutes_seconds,
    summarize_results,
    top_results,
)
from aptitude_app.core.test_manager import SessionSnapshot, TestManager

logger = logging.getLogger(__name__)

_LOAD_ERROR_STATUS = {
    LoadErrorReason.NOT_FOUND: 404,
    LoadErrorReason.TOPICS_UNAVAILABLE: 503,
}


class QuestionPayload(BaseModel):
    """Payload schema for creating or replacing a question."""

    text: str
    options: list[str]
    correct_option: int
    explanation: str | None = None
    topic: str | None = None


class ImportPayload(BaseModel):
    """CSV or text-block question data."""

    content: str


class ScheduledTestPayload(BaseModel):
    title: str
    start_date: datetime
    end_date: datetime
    duration: int = Field(description="Total minutes allotted")
    topics: list[str]
    question_count: int
    description: str | None = None
    is_active: bool = True


class ScheduledTestUpdatePayload(BaseModel):
    title: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    duration: int | None = None
    topics: list[str] | None = None
    question_count: int | None = None
    description: str | None = None
    is_active: bool | None = None

    @field_validator(
        "title", "start_date", "end_date", "duration", "topics", "question_count", "is_active"
    )
    @classmethod
    def reject_null(cls, value: object) -> object:
        # Omit a field to keep it; only the description may be cleared.
        if value is None:
            raise ValueError("Field cannot be null.")
        return value


class PracticePayload(BaseModel):
    """Payload schema for an unscheduled practice attempt."""

    question_count: int
    topics: list[str] | None = None


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers."""

    selected_option_index: int


class NavigatePayload(BaseModel):
    index: int


def _get_test_manager_dependency(test_manager: TestManager):
    def dependency() -> TestManager:
        return test_manager

    return dependency


def get_current_user(
    x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER),
    x_user_name: str | None = Header(default=None, alias=USER_NAME_HEADER),
    x_user_role: str | None = Header(default=None, alias=USER_ROLE_HEADER),
) -> UserContext:
    """Build the caller's identity from the headers set by the login front end."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing user identity.")
    return UserContext(
        user_id=x_user_id,
        user_name=x_user_name or x_user_id,
        role=(x_user_role or ROLE_STUDENT).lower(),
    )


def _require_admin(user: UserContext) -> None:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required.")


def _question_to_dict(question: Question) -> dict[str, object]:
    return {
        "id": question.id,
        "text": question.text,
        "options": list(question.options),
        "correct_option": question.correct_option,
        "explanation": question.explanation,
        "topic": question.topic,
    }


def _scheduled_test_to_dict(test: ScheduledTest) -> dict[str, object]:
    return {
        "id": test.id,
        "title": test.title,
        "description": test.description,
        "start_date": test.start_date.isoformat(),
        "end_date": test.end_date.isoformat(),
        "duration": test.duration_minutes,
        "topics": list(test.topics),
        "question_count": test.question_count,
        "is_active": test.is_active,
        "created_at": test.created_at.isoformat(),
    }


def _result_to_dict(result: TestResult) -> dict[str, object]:
    return {
        "id": result.id,
        "user_id": result.user_id,
        "user_name": result.user_name,
        "test_id": result.test_id,
        "test_date": result.test_date.isoformat(),
        "score": result.score,
        "total_questions": result.total_questions,
        "percentage": round(result.percentage),
        "time_spent": result.time_spent,
        "time_spent_display": format_minutes_seconds(result.time_spent),
        "answers": [
            {
                "question_id": answer.question_id,
                "selected_option": answer.selected_option,
                "is_correct": answer.is_correct,
                "time_spent": answer.time_spent,
            }
            for answer in result.answers
        ],
    }


def _snapshot_to_dict(snapshot: SessionSnapshot) -> dict[str, object]:
    question = snapshot.current_question
    payload: dict[str, object] = {
        "session_id": snapshot.session_id,
        "test_id": snapshot.test_id,
        "state": snapshot.state.value,
        "question_count": len(snapshot.questions),
        "current_index": snapshot.current_index,
        # The correct option stays on the server until the session is complete.
        "current_question": {
            "id": question.id,
            "question_html": renderer.render_fragment(question.text),
            "options": list(question.options),
            "topic": question.topic,
        },
        "selected_options": snapshot.selected_options,
        "marked_for_review": snapshot.marked_for_review,
        "question_status": [status.value for status in snapshot.question_status],
        "time_spent_per_question": snapshot.time_spent_per_question,
        "question_seconds_remaining": snapshot.question_seconds_remaining,
        "question_time_limit_seconds": snapshot.question_time_limit_seconds,
        "elapsed_seconds": snapshot.elapsed_seconds,
        "duration_seconds": snapshot.duration_seconds,
        "remaining_seconds": snapshot.remaining_seconds,
        "remaining_display": (
            format_duration(snapshot.remaining_seconds) if snapshot.remaining_seconds is not None else None
        ),
        "warning": snapshot.warning.message if snapshot.warning else None,
        "result": None,
    }
    completion = snapshot.completion
    if completion is not None:
        result = _result_to_dict(completion.result)
        result.update(
            {
                "reason": completion.reason.value,
                "saved": completion.saved,
                "save_warning": completion.save_warning,
                "review": [
                    {
                        "question_id": q.id,
                        "question_html": renderer.render_fragment(q.text),
                        "options": list(q.options),
                        "correct_option": q.correct_option,
                        "selected_option": answer.selected_option,
                        "is_correct": answer.is_correct,
                        "explanation_html": renderer.render_optional(q.explanation),
                        "time_spent": answer.time_spent,
                    }
                    for q, answer in zip(snapshot.questions, completion.result.answers)
                ],
            }
        )
        payload["result"] = result
    return payload


def create_api_app(test_manager: TestManager) -> FastAPI:
    """Create a FastAPI application wired to the provided test manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    test_manager_dep = _get_test_manager_dependency(test_manager)

    @app.exception_handler(LoadError)
    def handle_load_error(request: Request, exc: LoadError) -> JSONResponse:
        logger.info("Refused %s %s: %s", request.method, request.url.path, exc.reason.value)
        return JSONResponse(
            status_code=_LOAD_ERROR_STATUS.get(exc.reason, 409),
            content={"detail": str(exc), "reason": exc.reason.value},
        )

    @app.exception_handler(StorageError)
    def handle_storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "Storage is unavailable; the change was not saved."})

    @app.exception_handler(NoQuestionsAvailable)
    def handle_no_questions(request: Request, exc: NoQuestionsAvailable) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc), "reason": "no_questions"})

    @app.exception_handler(SessionStateError)
    @app.exception_handler(StaleSessionError)
    def handle_session_conflict(request: Request, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(PermissionError)
    def handle_forbidden(request: Request, exc: PermissionError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @app.get("/about")
    def about() -> dict[str, str]:
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "license": APP_LICENSE,
            "about": APP_ABOUT_TEXT,
            "import_help": HELP_TEXT,
        }

    # --- Questions ---

    @app.get("/questions")
    def list_questions(
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> list[dict[str, object]]:
        _require_admin(user)
        return [_question_to_dict(q) for q in manager.get_questions()]

    @app.post("/questions", status_code=201)
    def create_question(
        payload: QuestionPayload,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        _require_admin(user)
        try:
            created = manager.add_question(Question(id="", **payload.model_dump()))
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _question_to_dict(created)

    @app.post("/questions/import", status_code=201)
    def import_questions(
        payload: ImportPayload,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        _require_admin(user)
        try:
            added, invalid_lines = manager.import_questions(payload.content)
        except (QuestionImportError, ValueError) as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"imported": len(added), "invalid_lines": invalid_lines}

    @app.put("/questions/{question_id}")
    def update_question(
        question_id: str,
        payload: QuestionPayload,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        _require_admin(user)
        try:
            updated = manager.update_question(question_id, Question(id=question_id, **payload.model_dump()))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Question not found.") from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _question_to_dict(updated)

    @app.delete("/questions/{question_id}", status_code=204)
    def delete_question(
        question_id: str,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> None:
        _require_admin(user)
        try:
            manager.delete_question(question_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Question not found.") from exc

    @app.get("/topics")
    def list_topics(
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> list[str]:
        return manager.get_topics()

    # --- Scheduled tests ---

    @app.get("/scheduled-tests")
    def list_scheduled_tests(
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> list[dict[str, object]]:
        _require_admin(user)
        return [_scheduled_test_to_dict(t) for t in manager.list_scheduled_tests()]

    @app.get("/scheduled-tests/active")
    def list_active_scheduled_tests(
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> list[dict[str, object]]:
        return [_scheduled_test_to_dict(t) for t in manager.get_active_scheduled_tests()]

    @app.post("/scheduled-tests", status_code=201)
    def create_scheduled_test(
        payload: ScheduledTestPayload,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        _require_admin(user)
        fields = payload.model_dump()
        fields["duration_minutes"] = fields.pop("duration")
        try:
            created = manager.create_scheduled_test(**fields)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _scheduled_test_to_dict(created)

    @app.get("/scheduled-tests/{test_id}")
    def get_scheduled_test(
        test_id: str,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        test = manager.get_scheduled_test(test_id)
        if test is None:
            raise HTTPException(status_code=404, detail="Scheduled test not found.")
        return _scheduled_test_to_dict(test)

    @app.put("/scheduled-tests/{test_id}")
    def update_scheduled_test(
        test_id: str,
        payload: ScheduledTestUpdatePayload,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        _require_admin(user)
        changes = payload.model_dump(exclude_unset=True)
        if "duration" in changes:
            changes["duration_minutes"] = changes.pop("duration")
        try:
            updated = manager.update_scheduled_test(test_id, **changes)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Scheduled test not found.") from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _scheduled_test_to_dict(updated)

    @app.delete("/scheduled-tests/{test_id}", status_code=204)
    def delete_scheduled_test(
        test_id: str,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> None:
        _require_admin(user)
        try:
            manager.delete_scheduled_test(test_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Scheduled test not found.") from exc

    # --- Sessions ---

    @app.post("/sessions/practice", status_code=201)
    def start_practice_session(
        payload: PracticePayload,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        try:
            snapshot = manager.start_practice_session(user, payload.question_count, payload.topics)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _snapshot_to_dict(snapshot)

    @app.post("/sessions/scheduled/{test_id}", status_code=201)
    def start_scheduled_session(
        test_id: str,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        return _snapshot_to_dict(manager.start_scheduled_session(user, test_id))

    @app.get("/sessions/{session_id}")
    def get_session(
        session_id: str,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        try:
            return _snapshot_to_dict(manager.get_session(user, session_id))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc

    @app.post("/sessions/{session_id}/answer")
    def submit_answer(
        session_id: str,
        payload: AnswerPayload,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        try:
            snapshot = manager.select_option(user, session_id, payload.selected_option_index)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _snapshot_to_dict(snapshot)

    @app.post("/sessions/{session_id}/review")
    def toggle_review(
        session_id: str,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        try:
            return _snapshot_to_dict(manager.toggle_review(user, session_id))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc

    @app.post("/sessions/{session_id}/navigate")
    def navigate(
        session_id: str,
        payload: NavigatePayload,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        try:
            snapshot = manager.go_to_question(user, session_id, payload.index)
        except IndexError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc
        return _snapshot_to_dict(snapshot)

    @app.post("/sessions/{session_id}/next")
    def next_question(
        session_id: str,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        try:
            return _snapshot_to_dict(manager.next_question(user, session_id))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc

    @app.post("/sessions/{session_id}/finish")
    def finish_session(
        session_id: str,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        try:
            return _snapshot_to_dict(manager.finish_session(user, session_id))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc

    @app.delete("/sessions/{session_id}", status_code=204)
    def abandon_session(
        session_id: str,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> None:
        try:
            manager.abandon_session(user, session_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc

    # --- Results ---

    @app.get("/results")
    def list_results(
        user_id: str | None = None,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> list[dict[str, object]]:
        return [_result_to_dict(r) for r in manager.list_results(user, user_id)]

    @app.get("/results/summary")
    def results_summary(
        limit: int = 3,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        _require_admin(user)
        results = manager.list_results(user)
        summary = summarize_results(results)
        return {
            "total_attempts": summary.total_attempts,
            "distinct_students": summary.distinct_students,
            "average_percentage": summary.average_percentage,
            "best_percentage": summary.best_percentage,
            "average_time_seconds": summary.average_time_seconds,
            "top_results": [
                {
                    "user_id": row.user_id,
                    "user_name": row.user_name,
                    "score": row.score,
                    "total_questions": row.total_questions,
                    "time_spent": row.time_spent,
                }
                for row in top_results(results, limit)
            ],
        }

    @app.get("/results/export", response_class=PlainTextResponse)
    def export_results(
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> PlainTextResponse:
        _require_admin(user)
        document = export_results_csv(manager.list_results(user))
        return PlainTextResponse(
            document,
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=test_results.csv"},
        )

    @app.get("/results/{result_id}")
    def get_result(
        result_id: str,
        user: UserContext = Depends(get_current_user),
        manager: TestManager = Depends(test_manager_dep),
    ) -> dict[str, object]:
        try:
            return _result_to_dict(manager.get_result(user, result_id))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Result not found.") from exc

    return app

