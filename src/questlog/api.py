from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable

from fastapi import Body, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from questlog import backup, goals, service, views
from questlog.config import DEFAULT_RULES, GameRules
from questlog.db import Database
from questlog.db_constants import DEFAULT_GOAL_COLOR
from questlog.errors import InvariantViolation, QuestlogError
from questlog.periods import parse_day
from questlog.time_utils import DEFAULT_TZ, now_local, week_start

logger = logging.getLogger(__name__)


class ProfileUpdateRequest(BaseModel):
    theme: str | None = None
    accent: str | None = None


class RecurrenceRequest(BaseModel):
    weekly_target: int | None = None
    monthly_target: int | None = None
    weekdays_mask: int | None = None
    due_time_minutes: int | None = None


class GoalCreateRequest(BaseModel):
    title: str
    cadence: str
    color: str = DEFAULT_GOAL_COLOR
    xp_per_check: int | None = None
    recurrence: RecurrenceRequest | None = None


class GoalUpdateRequest(BaseModel):
    title: str | None = None
    color: str | None = None
    xp_per_check: int | None = None
    recurrence: RecurrenceRequest | None = None


class TaskCreateRequest(BaseModel):
    title: str
    notes: str | None = None


class TaskUpdateRequest(BaseModel):
    title: str | None = None
    notes: str | None = None
    active: bool | None = None


class ReorderTasksRequest(BaseModel):
    task_ids: list[str] = Field(default_factory=list)


class CheckinRequest(BaseModel):
    date: date
    goal_id: str
    task_id: str | None = None


class FreezeRequest(BaseModel):
    date: date


def _ok(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "data": jsonable_encoder(data)})


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}},
    )


def build_app(
    db: Database,
    rules: GameRules = DEFAULT_RULES,
    tz: str = DEFAULT_TZ,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    app = FastAPI(title="QuestLog", version="1.0.0")

    def _now() -> datetime:
        return clock() if clock else now_local(tz)

    def _day(raw: str | None) -> date:
        return parse_day(raw) if raw else _now().date()

    @app.exception_handler(QuestlogError)
    async def handle_questlog_error(request: Request, exc: QuestlogError) -> JSONResponse:
        if isinstance(exc, InvariantViolation):
            logger.error("invariant violation path=%s: %s", request.url.path, exc.message)
        return _error(exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'invalid request')}" if location else "Invalid request"
        return _error(400, "VALIDATION_ERROR", message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        return _error(exc.status_code, code, str(exc.detail))

    @app.get("/api/health")
    async def health() -> JSONResponse:
        return _ok({"status": "ok", "database": db.ping()})

    @app.get("/api/profile")
    async def get_profile() -> JSONResponse:
        return _ok({"profile": db.get_profile()})

    @app.patch("/api/profile")
    async def patch_profile(payload: ProfileUpdateRequest) -> JSONResponse:
        profile = goals.update_profile_settings(db, theme=payload.theme, accent=payload.accent)
        return _ok({"profile": profile})

    @app.get("/api/badges")
    async def list_badges() -> JSONResponse:
        return _ok({"badges": db.list_badges()})

    @app.get("/api/goals")
    async def list_goals(archived: bool = False) -> JSONResponse:
        return _ok({"goals": goals.list_goals(db, archived=archived)})

    @app.post("/api/goals")
    async def create_goal(payload: GoalCreateRequest) -> JSONResponse:
        created = goals.create_goal(
            db,
            title=payload.title,
            cadence=payload.cadence,
            color=payload.color,
            xp_per_check=payload.xp_per_check,
            recurrence=payload.recurrence.model_dump() if payload.recurrence else None,
            now=_now(),
            rules=rules,
        )
        return _ok({"goal": created.goal, "badges_unlocked": created.badges_unlocked}, status_code=201)

    @app.patch("/api/goals/{goal_id}")
    async def patch_goal(goal_id: str, payload: GoalUpdateRequest) -> JSONResponse:
        changes = payload.model_dump(exclude_unset=True)
        goal = goals.update_goal(db, goal_id, changes)
        return _ok({"goal": goal})

    @app.post("/api/goals/{goal_id}/archive")
    async def archive_goal(goal_id: str) -> JSONResponse:
        goals.archive_goal(db, goal_id)
        return _ok({"archived": True})

    @app.post("/api/goals/{goal_id}/unarchive")
    async def unarchive_goal(goal_id: str) -> JSONResponse:
        goals.unarchive_goal(db, goal_id)
        return _ok({"archived": False})

    @app.get("/api/goals/{goal_id}/freeze")
    async def freeze_status(goal_id: str, day: str | None = Query(default=None, alias="date")) -> JSONResponse:
        eligibility = service.freeze_eligibility(db, goal_id, _day(day))
        return _ok(eligibility)

    @app.post("/api/goals/{goal_id}/use-freeze")
    async def use_freeze(goal_id: str, payload: FreezeRequest) -> JSONResponse:
        outcome = service.use_freeze(db, goal_id, payload.date)
        if not outcome.success:
            return _error(400, "VALIDATION_ERROR", "Goal is not eligible for a streak freeze")
        return _ok(outcome)

    @app.get("/api/goals/{goal_id}/tasks")
    async def list_tasks(goal_id: str) -> JSONResponse:
        return _ok({"tasks": goals.list_tasks(db, goal_id)})

    @app.post("/api/goals/{goal_id}/tasks")
    async def create_task(goal_id: str, payload: TaskCreateRequest) -> JSONResponse:
        task = goals.create_task(db, goal_id, payload.title, payload.notes, now=_now())
        return _ok({"task": task}, status_code=201)

    @app.post("/api/goals/{goal_id}/tasks/reorder")
    async def reorder_tasks(goal_id: str, payload: ReorderTasksRequest) -> JSONResponse:
        return _ok({"tasks": goals.reorder_tasks(db, goal_id, payload.task_ids)})

    @app.patch("/api/tasks/{task_id}")
    async def patch_task(task_id: str, payload: TaskUpdateRequest) -> JSONResponse:
        task = goals.update_task(db, task_id, payload.model_dump(exclude_unset=True))
        return _ok({"task": task})

    @app.delete("/api/tasks/{task_id}")
    async def delete_task(task_id: str) -> JSONResponse:
        goals.delete_task(db, task_id)
        return _ok({"deleted": True})

    @app.get("/api/today")
    async def today(day: str | None = Query(default=None, alias="date")) -> JSONResponse:
        return _ok(views.build_today(db, _day(day), _now()))

    @app.post("/api/checkins")
    async def create_checkin(payload: CheckinRequest) -> JSONResponse:
        result = service.perform_checkin(
            db,
            payload.date,
            payload.goal_id,
            payload.task_id,
            now=_now(),
            rules=rules,
        )
        return _ok(result, status_code=201 if result.xp_earned > 0 else 200)

    @app.post("/api/checkins/undo")
    async def undo_checkin(payload: CheckinRequest) -> JSONResponse:
        result = service.undo_checkin(db, payload.date, payload.goal_id, payload.task_id)
        return _ok(result)

    @app.get("/api/review/weekly")
    async def review_weekly(start: str | None = None) -> JSONResponse:
        start_day = parse_day(start) if start else week_start(_now().date())
        return _ok(views.weekly_review(db, start_day))

    @app.get("/api/review/monthly")
    async def review_monthly(month: str | None = None) -> JSONResponse:
        month_key = month or _now().date().strftime("%Y-%m")
        data = jsonable_encoder(views.monthly_review(db, month_key))
        data["month"] = month_key
        return _ok(data)

    @app.get("/api/backup/export")
    async def export_backup() -> JSONResponse:
        now = _now()
        document = backup.export_backup(db, now)
        filename = f"questlog-backup-{now.date().isoformat()}.json"
        return JSONResponse(content=document, headers={"Content-Disposition": f'attachment; filename="{filename}"'})

    @app.post("/api/backup/import")
    async def import_backup(payload: dict[str, Any] = Body(...)) -> JSONResponse:
        summary = backup.import_backup(db, payload, now=_now())
        return _ok({"imported": True, "summary": summary})

    @app.post("/api/backup/reset")
    async def reset() -> JSONResponse:
        backup.reset_all(db)
        return _ok({"reset": True})

    return app
