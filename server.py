"""HTTP API for reports, the chat assistant and service health.

Endpoints:
    GET  /health                        Service configuration and schedule
    GET  /api/status                    Last report and next scheduled run
    GET  /api/diagnostic                Component checks
    POST /api/generate-report           Start a background report run (202)
    POST /api/reports/generate          Run a report synchronously
    GET  /api/reports/recent            Recent reports
    GET  /api/reports/{id}              One report
    GET  /api/reports/{id}/ideas        Ideas for a report
    POST /api/chat/chat                 Chat with the content assistant
    GET  /api/chat/suggestions          Default chat suggestions
    POST /api/chat/generate-idea        Develop one content idea

Errors are always JSON ``{"success": false, "error": ...}`` with a 4xx/5xx
status.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from agents.chatbot import ChatAssistant, default_suggestions
from agents.ideas import IdeaAgents
from config import Config
from database import Database
from delivery.google_docs import GoogleDocsClient
from memory.report_memory import ReportMemory
from notifications import SlackNotifier
from observability.tracing import instrument_app
from pipeline import ReportRunResult, generate_weekly_report
from scheduler import run_weekly_schedule, schedule_info, weekly_report_job
from tools.search import SearchCache, cache_day

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

GenerateFn = Callable[[Config, date | None], Awaitable[ReportRunResult]]


@dataclass
class AppServices:
    """Collaborators shared by the request handlers."""

    db: Database
    chat: ChatAssistant
    ideas: IdeaAgents
    memory: ReportMemory
    notifier: SlackNotifier
    generate: GenerateFn = generate_weekly_report

    @classmethod
    def from_config(cls, config: Config) -> "AppServices":
        db = Database(config.db_path)
        return cls(
            db=db,
            chat=ChatAssistant(config, db),
            ideas=IdeaAgents(config),
            memory=ReportMemory(config.memory_file, config.insights_file),
            notifier=SlackNotifier(config.slack_bot_token, config.slack_channel_id),
        )


class ReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    week_start: str | None = Field(default=None, alias="weekStart")


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    user_id: str = Field(default="", alias="userId")
    context: dict[str, Any] | None = None


class IdeaRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = ""
    platform: str | None = None
    user_id: str = Field(default="", alias="userId")


def error_response(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"success": False, "error": message})


def validation_message(exc: RequestValidationError) -> str:
    """First validation problem as "Invalid <field>: <message>"."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    return f"Invalid {field}: {first.get('msg', 'invalid value')}" if field else f"Invalid request: {first.get('msg')}"


def service_status(config: Config) -> dict[str, str]:
    def configured(value: Any) -> str:
        return "configured" if value else "missing"

    return {
        "openai": configured(config.openai_api_key),
        "anthropic": configured(config.anthropic_api_key),
        "tavily": configured(config.tavily_api_key),
        "google": configured(config.google_enabled),
        "email": configured(config.email_enabled),
        "slack": "enabled" if config.slack_enabled else "disabled",
    }


def report_overview(row: dict[str, Any]) -> dict[str, Any]:
    data = row.get("report_data") or {}
    return {
        "id": row["id"],
        "weekStart": row["week_start_date"],
        "weekEnd": row["week_end_date"],
        "generatedDate": row["generated_date"],
        "reportUrl": row["report_url"],
        "ideasCount": row["ideas_count"],
        "summary": row["summary"],
        "topThemes": (data.get("themes") or [])[:3],
    }


def run_summary(result: ReportRunResult) -> dict[str, Any]:
    report = result.report
    return {
        "id": result.report_id,
        "weekStart": report.week_start.isoformat(),
        "weekEnd": report.week_end.isoformat(),
        "ideasCount": len(report.content_ideas),
        "themesCount": len(report.themes),
        "reportUrl": result.document_url,
        "emailSent": result.email_sent,
        "fallbacksUsed": report.fallbacks_used,
    }


def create_app(
    config: Config,
    services: AppServices | None = None,
    schedule: bool = True,
) -> FastAPI:
    """Build the API application.

    Args:
        config: Application configuration
        services: Pre-built collaborators (built from config at startup when None)
        schedule: Run the weekly report loop alongside the API
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        built = services or AppServices.from_config(config)
        app.state.services = built
        app.state.report_task = None
        built.memory.initialize()

        if built.notifier.enabled and not await built.notifier.test_connection():
            logger.warning("Slack connection failed, notifications may not arrive")

        scheduler_task = None
        if schedule:
            scheduler_task = asyncio.create_task(
                run_weekly_schedule(lambda: weekly_report_job(config, built.generate, built.notifier), config)
            )
        logger.info("Server started | schedule=%s", "on" if schedule else "off")
        try:
            yield
        finally:
            for task in (scheduler_task, app.state.report_task):
                if task is not None and not task.done():
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass
            built.db.close()
            logger.info("Server stopped")

    app = FastAPI(title="Content Intel", version=VERSION, lifespan=lifespan)
    instrument_app(app)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(422, validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return error_response(exc.status_code, message)

    def svc() -> AppServices:
        return app.state.services

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
            "services": service_status(config),
            "scheduling": schedule_info(config),
        }

    @app.get("/api/status")
    async def status() -> Any:
        try:
            last = svc().db.latest_report_week()
        except Exception as e:
            logger.error("Status check failed | error=%s", e, exc_info=True)
            return error_response(500, "Failed to get system status")
        return {
            "status": "running",
            "last_report_generated": last,
            "next_scheduled_run": schedule_info(config)["next_report"],
            "services": service_status(config),
        }

    @app.get("/api/diagnostic")
    async def diagnostic() -> dict[str, Any]:
        checks: dict[str, Any] = {}
        try:
            checks["database"] = {"status": "ok", "tables": svc().db.stats()}
        except Exception as e:
            checks["database"] = {"status": "error", "error": str(e)}
        try:
            stats = svc().memory.load().statistics
            checks["memory"] = {"status": "ok", "total_reports": stats.total_reports}
        except Exception as e:
            checks["memory"] = {"status": "error", "error": str(e)}

        cache = SearchCache(config.search_cache_dir)
        today = cache_day(config.timezone)
        cached = cache.load(today)
        checks["search"] = {
            "status": "configured" if config.tavily_api_key else "missing",
            "mode": config.search_mode,
            "cached_today": bool(cached),
            "cache_path": str(cache.path_for(today)),
        }
        checks["slack"] = {
            "status": ("connected" if await svc().notifier.test_connection() else "error")
            if svc().notifier.enabled else "disabled",
        }
        if config.google_enabled:
            docs = GoogleDocsClient(
                config.google_client_id, config.google_client_secret,
                config.google_token_path, config.google_drive_folder,
            )
            checks["google"] = docs.token_status()
        else:
            checks["google"] = {"status": "not configured"}

        report_task = app.state.report_task
        checks["report_run"] = {"active": report_task is not None and not report_task.done()}
        return {"success": True, "timestamp": datetime.now(timezone.utc).isoformat(), "checks": checks}

    @app.post("/api/generate-report")
    async def generate_report_background() -> JSONResponse:
        task = app.state.report_task
        if task is not None and not task.done():
            return error_response(409, "A report is already being generated")
        app.state.report_task = asyncio.create_task(weekly_report_job(config, svc().generate, svc().notifier))
        return JSONResponse(
            status_code=202,
            content={"success": True, "message": "Weekly report generation started"},
        )

    @app.post("/api/reports/generate")
    async def generate_report(body: ReportRequest | None = None) -> Any:
        week_start = None
        if body is not None and body.week_start:
            try:
                week_start = date.fromisoformat(body.week_start)
            except ValueError:
                return error_response(400, "weekStart must be YYYY-MM-DD")
        try:
            result = await svc().generate(config, week_start)
        except Exception as e:
            logger.error("Report generation failed | error=%s", e, exc_info=True)
            return error_response(500, "Failed to generate report")
        return {
            "success": True,
            "report": run_summary(result),
            "message": "Weekly report generated successfully",
        }

    @app.get("/api/reports/recent")
    async def recent_reports(limit: int = Query(default=5, ge=1, le=50)) -> Any:
        try:
            rows = svc().db.recent_reports(limit)
        except Exception as e:
            logger.error("Recent reports failed | error=%s", e, exc_info=True)
            return error_response(500, "Failed to fetch reports")
        return {"success": True, "reports": [report_overview(row) for row in rows]}

    @app.get("/api/reports/{report_id}")
    async def get_report(report_id: int) -> Any:
        try:
            row = svc().db.get_report(report_id)
        except Exception as e:
            logger.error("Report fetch failed | id=%d error=%s", report_id, e, exc_info=True)
            return error_response(500, "Failed to fetch report")
        if row is None:
            return error_response(404, "Report not found")
        return {"success": True, "report": {**report_overview(row), "data": row["report_data"]}}

    @app.get("/api/reports/{report_id}/ideas")
    async def report_ideas(report_id: int, pillar: str | None = None, platform: str | None = None) -> Any:
        try:
            if svc().db.get_report(report_id) is None:
                return error_response(404, "Report not found")
            ideas = svc().db.report_ideas(report_id, pillar=pillar, platform=platform)
        except Exception as e:
            logger.error("Report ideas failed | id=%d error=%s", report_id, e, exc_info=True)
            return error_response(500, "Failed to fetch ideas")
        return {"success": True, "ideas": ideas}

    @app.post("/api/chat/chat")
    async def chat(body: ChatRequest) -> Any:
        if not body.message or not body.user_id:
            return error_response(400, "Message and userId are required")
        try:
            reply = await svc().chat.respond(body.message, body.user_id, body.context)
        except Exception as e:
            logger.error("Chat failed | user=%s error=%s", body.user_id, e, exc_info=True)
            return error_response(500, "Failed to process chat message")
        return {
            "success": True,
            "content": reply.content,
            "sources": [s.model_dump() for s in reply.sources],
            "suggestions": reply.suggestions,
            "conversationId": reply.conversation_id,
        }

    @app.get("/api/chat/suggestions")
    async def suggestions() -> dict[str, Any]:
        return {"success": True, "suggestions": default_suggestions()}

    @app.post("/api/chat/generate-idea")
    async def generate_idea(body: IdeaRequest) -> Any:
        if not body.prompt or not body.user_id:
            return error_response(400, "Prompt and userId are required")
        try:
            idea = await svc().ideas.generate_custom_idea(body.prompt, body.platform)
        except ValueError as e:
            return error_response(400, str(e))
        except Exception as e:
            logger.error("Idea generation failed | user=%s error=%s", body.user_id, e, exc_info=True)
            return error_response(500, "Failed to generate content idea")
        context = svc().chat.gather_context(body.prompt)
        return {
            "success": True,
            "idea": idea.model_dump(),
            "sources": [s.model_dump() for s in svc().chat.extract_sources(context)],
        }

    return app


def serve(config: Config, schedule: bool = True) -> None:
    """Run the API with uvicorn (blocking)."""
    import uvicorn

    uvicorn.run(create_app(config, schedule=schedule), host=config.host, port=config.port, log_config=None)
