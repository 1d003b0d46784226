from __future__ import annotations

from datetime import date

from fastapi.testclient import TestClient
from pydantic_ai.models.test import TestModel

from agents.chatbot import ChatAssistant
from agents.ideas import IdeaAgents
from conftest import build_report
from database import Database
from memory.report_memory import ReportMemory
from notifications import SlackNotifier
from pipeline import ReportRunResult
from server import AppServices, create_app


def _services(config, generate=None, chat_model=None, idea_model=None) -> AppServices:
    db = Database(config.db_path)
    services = AppServices(
        db=db,
        chat=ChatAssistant(config, db, model=chat_model),
        ideas=IdeaAgents(config, model=idea_model),
        memory=ReportMemory(config.memory_file, config.insights_file),
        notifier=SlackNotifier("", ""),
    )
    if generate is not None:
        services.generate = generate
    return services


def _client(config, services: AppServices) -> TestClient:
    return TestClient(create_app(config, services=services, schedule=False))


def test_health_reports_services_and_schedule(config) -> None:
    with _client(config, _services(config)) as client:
        response = client.get("/health")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "healthy"
    assert body["services"]["openai"] == "configured"
    assert body["services"]["google"] == "missing"
    assert body["services"]["slack"] == "disabled"
    assert body["scheduling"]["cron_expression"] == "0 9 * * 1"


def test_recent_and_single_report(config) -> None:
    services = _services(config)
    report_id = services.db.save_weekly_report(build_report(), "https://docs.google.com/document/d/1")
    services.db.save_content_idea(build_report().content_ideas[0], report_id)

    with _client(config, services) as client:
        recent = client.get("/api/reports/recent", params={"limit": 5}).json()
        single = client.get(f"/api/reports/{report_id}").json()
        ideas = client.get(f"/api/reports/{report_id}/ideas", params={"platform": "linkedin"}).json()
        missing = client.get("/api/reports/999")
        status = client.get("/api/status").json()

    assert recent["success"] is True
    assert recent["reports"][0]["weekStart"] == "2026-10-12"
    assert recent["reports"][0]["topThemes"] == ["Pay transparency is changing salary negotiation"]
    assert single["report"]["data"]["executive_summary"].startswith("Pay transparency")
    assert [i["title"] for i in ideas["ideas"]] == ["Salary ranges decoded"]
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "Report not found"}
    assert status["last_report_generated"] == "2026-10-12"


def test_generate_report_synchronously(config) -> None:
    seen: list[date | None] = []

    async def fake_generate(cfg, week_start):
        seen.append(week_start)
        return ReportRunResult(report=build_report(), report_id=7, document_url="https://doc", email_sent=True)

    with _client(config, _services(config, fake_generate)) as client:
        response = client.post("/api/reports/generate", json={"weekStart": "2026-10-14"})
        bad = client.post("/api/reports/generate", json={"weekStart": "next monday"})

    body = response.json()
    assert body["success"] is True
    assert body["report"]["id"] == 7
    assert body["report"]["ideasCount"] == 1
    assert body["report"]["reportUrl"] == "https://doc"
    assert seen == [date(2026, 10, 14)]
    assert bad.status_code == 400


def test_generate_report_failure_returns_500(config) -> None:
    async def failing(cfg, week_start):
        raise RuntimeError("research down")

    with _client(config, _services(config, failing)) as client:
        response = client.post("/api/reports/generate", json={})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Failed to generate report"}


def test_chat_requires_message_and_user(config) -> None:
    with _client(config, _services(config)) as client:
        response = client.post("/api/chat/chat", json={"message": "hi"})

    assert response.status_code == 400
    assert response.json()["error"] == "Message and userId are required"


def test_chat_returns_reply(config) -> None:
    services = _services(config, chat_model=TestModel(custom_output_text="Post a carousel on pay ranges."))

    with _client(config, services) as client:
        response = client.post("/api/chat/chat", json={"message": "What's trending?", "userId": "u1"})

    body = response.json()
    assert body["success"] is True
    assert body["content"] == "Post a carousel on pay ranges."
    assert body["conversationId"].startswith("u1_")
    assert body["suggestions"]


def test_suggestions(config) -> None:
    with _client(config, _services(config)) as client:
        body = client.get("/api/chat/suggestions").json()

    assert len(body["suggestions"]) == 4


def test_generate_idea(config) -> None:
    output = {
        "title": "Three salary questions",
        "platform": "tiktok",
        "format": "talking head",
        "hooks": ["Nobody asks this in the interview"],
        "key_points": ["Ask for the range", "Ask about reviews", "Ask about equity"],
    }
    services = _services(config, idea_model=TestModel(custom_output_args=output))

    with _client(config, services) as client:
        ok = client.post("/api/chat/generate-idea", json={"prompt": "salary", "platform": "TikTok", "userId": "u1"})
        bad_platform = client.post("/api/chat/generate-idea", json={"prompt": "salary", "platform": "myspace", "userId": "u1"})
        missing = client.post("/api/chat/generate-idea", json={"prompt": "salary"})

    assert ok.json()["idea"]["platform"] == "tiktok"
    assert ok.json()["idea"]["engagement_potential"] == 75
    assert bad_platform.status_code == 400
    assert missing.json()["error"] == "Prompt and userId are required"


def test_background_generation_accepted(config) -> None:
    async def fake_generate(cfg, week_start):
        return ReportRunResult(report=build_report())

    with _client(config, _services(config, fake_generate)) as client:
        response = client.post("/api/generate-report")

    assert response.status_code == 202
    assert response.json()["success"] is True


def test_diagnostic_lists_components(config) -> None:
    with _client(config, _services(config)) as client:
        checks = client.get("/api/diagnostic").json()["checks"]

    assert checks["database"]["status"] == "ok"
    assert checks["memory"] == {"status": "ok", "total_reports": 0}
    assert checks["slack"] == {"status": "disabled"}
    assert checks["google"] == {"status": "not configured"}
    assert checks["search"]["cached_today"] is False


def test_validation_and_routing_errors_use_error_body(config) -> None:
    with _client(config, _services(config)) as client:
        bad_id = client.get("/api/reports/abc")
        bad_limit = client.get("/api/reports/recent", params={"limit": 0})
        bad_message = client.post("/api/chat/chat", json={"message": 123, "userId": "u1"})
        unknown = client.get("/api/nowhere")
        wrong_method = client.delete("/api/chat/suggestions")

    for response in (bad_id, bad_limit, bad_message):
        assert response.status_code == 422
        assert response.json()["success"] is False
        assert "detail" not in response.json()
    assert bad_id.json()["error"].startswith("Invalid report_id")
    assert bad_limit.json()["error"].startswith("Invalid limit")
    assert bad_message.json()["error"].startswith("Invalid message")
    assert unknown.status_code == 404
    assert unknown.json() == {"success": False, "error": "Not Found"}
    assert wrong_method.status_code == 405
    assert wrong_method.json() == {"success": False, "error": "Method Not Allowed"}
