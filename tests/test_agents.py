from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta, timezone

import pytest
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel
from pydantic_ai.usage import RequestUsage

from agents.analysis import (
    AnalysisAgents,
    extract_top_research_items,
    fallback_content_hooks,
    fallback_key_stories,
    format_research_brief,
    format_research_for_synthesis,
    remaining_time,
)
from agents.base import StageOutputError, create_agent, parse_local_model, run_agent
from agents.chatbot import FAILURE_REPLY, MAX_HISTORY, ChatAssistant, classify_message, default_suggestions
from agents.ideas import (
    IdeaAgents,
    engagement_potential,
    enhance_ideas_with_sources,
    fallback_ideas,
    fallback_watchlist,
    normalize_idea,
    watchlist_context,
)
from agents.themes import (
    ContentAnalyzer,
    extract_themes,
    identify_trending_topics,
    pillar_distribution,
)
from conftest import build_research
from database import Database
from models.content import Article, ContentCluster, SocialPost
from models.report import ContentIdea
from models.research import QueryResult, SearchHit

LONG_TEXT = "Employers are rewriting pay bands while candidates compare ranges. " * 5


def _failing(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
    raise RuntimeError("model unavailable")


async def _slow(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
    await asyncio.sleep(5)
    return ModelResponse(parts=[TextPart(LONG_TEXT)])


def _metered(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
    return ModelResponse(parts=[TextPart(LONG_TEXT)], usage=RequestUsage(input_tokens=120, output_tokens=45))


def test_run_agent_logs_token_usage(caplog) -> None:
    agent = create_agent(FunctionModel(_metered), str, "Summarize the week.")

    with caplog.at_level("INFO", logger="agents.base"):
        output = asyncio.run(run_agent(agent, "research", max_tokens=500, temperature=0.2, timeout=5, stage="summary"))

    assert output == LONG_TEXT
    assert "stage=summary input_tokens=120 output_tokens=45" in caplog.text


def test_parse_local_model() -> None:
    assert parse_local_model("openai:qwen@http://127.0.0.1:8080/v1") == ("qwen", "http://127.0.0.1:8080/v1")
    assert parse_local_model("openai:gpt-4o") is None


def test_format_research_for_synthesis_is_capped() -> None:
    hits = [SearchHit(title=f"Title {i}", url=f"https://example.com/{i}", content="x" * 300) for i in range(50)]
    research = {"Career Clarity & Goals": [QueryResult(query="career pivots", results=hits)]}

    text = format_research_for_synthesis(research)

    assert text.startswith("\n=== CAREER CLARITY & GOALS ===")
    assert "1.1 Title 0" in text
    assert "Title 49" not in text
    assert "x" * 101 not in text
    assert format_research_for_synthesis({}) == "No research data available"


def test_format_research_brief_and_top_items() -> None:
    research = build_research()

    brief = format_research_brief(research)
    top = extract_top_research_items(research)

    assert brief.startswith("Career Clarity & Goals:\n- Pivot playbook")
    assert len(brief) <= 1500
    assert top == (
        "[Career Clarity & Goals] Pivot playbook\nHow to pivot...\n\n"
        "[Workplace Trends, Rights & Advocacy] New pay laws\nStates expand pay laws..."
    )


def test_synthesis_uses_primary_output(config) -> None:
    agents = AnalysisAgents(config)

    with agents.synthesis_agent.override(model=TestModel(custom_output_text=LONG_TEXT)):
        synthesis = asyncio.run(agents.synthesize_research(build_research(), "Be contrarian."))

    assert synthesis == LONG_TEXT.strip()


def test_synthesis_falls_back_to_backup_prompt(config) -> None:
    agents = AnalysisAgents(config)
    backup = "Backup insight about negotiation. " * 10

    with agents.synthesis_agent.override(model=TestModel(custom_output_text="too short")), \
            agents.backup_synthesis_agent.override(model=TestModel(custom_output_text=backup)):
        synthesis = asyncio.run(agents.synthesize_research(build_research(), ""))

    assert synthesis == backup.strip()


def test_synthesis_raises_when_backup_is_short(config) -> None:
    agents = AnalysisAgents(config)

    with agents.synthesis_agent.override(model=FunctionModel(_failing)), \
            agents.backup_synthesis_agent.override(model=TestModel(custom_output_text="short")):
        with pytest.raises(StageOutputError):
            asyncio.run(agents.synthesize_research(build_research(), ""))


def test_key_stories_are_truncated_to_six(config) -> None:
    agents = AnalysisAgents(config)
    stories = {"stories": [{"title": f"Story {i}"} for i in range(8)]}

    with agents.stories_agent.override(model=TestModel(custom_output_args=stories)):
        result = asyncio.run(agents.generate_key_stories("synthesis", "items"))

    assert [s.title for s in result] == [f"Story {i}" for i in range(6)]


def test_key_stories_empty_output_is_a_failure(config) -> None:
    agents = AnalysisAgents(config)

    with agents.stories_agent.override(model=TestModel(custom_output_args={"stories": []})):
        with pytest.raises(StageOutputError):
            asyncio.run(agents.generate_key_stories("synthesis", "items"))


def test_stage_timeout_cancels_slow_model(config) -> None:
    config.stage_timeout_seconds = 0.05
    agents = AnalysisAgents(config)

    with agents.summary_agent.override(model=FunctionModel(_slow)):
        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(agents.create_executive_summary("synthesis", ["Story"]))


def test_synthesis_attempts_share_one_timeout(config) -> None:
    config.stage_timeout_seconds = 0.3
    agents = AnalysisAgents(config)

    started = time.monotonic()
    with agents.synthesis_agent.override(model=FunctionModel(_slow)), \
            agents.backup_synthesis_agent.override(model=FunctionModel(_slow)):
        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(agents.synthesize_research(build_research(), ""))

    assert time.monotonic() - started < 0.55


def test_remaining_time_raises_after_deadline() -> None:
    assert 0 < remaining_time(time.monotonic() + 5) <= 5
    with pytest.raises(asyncio.TimeoutError):
        remaining_time(time.monotonic() - 1)


def test_hooks_and_summary(config) -> None:
    agents = AnalysisAgents(config)
    hooks = {
        "challenge_assumptions": [{"hook": "Stop applying online", "reasoning": "Contrarian"}],
        "data_backed_claims": [],
        "strategic_insights": [],
    }

    with agents.hooks_agent.override(model=TestModel(custom_output_args=hooks)), \
            agents.summary_agent.override(model=TestModel(custom_output_text="  Focus on pay.  ")):
        result = asyncio.run(agents.create_content_hooks("synthesis", ["Pay"]))
        summary = asyncio.run(agents.create_executive_summary("synthesis", []))

    assert result.count == 1
    assert summary == "Focus on pay."


def test_analysis_fallbacks() -> None:
    stories = fallback_key_stories()
    hooks = fallback_content_hooks()

    assert [s.title for s in stories] == ["Weekly Strategic Intelligence Summary"]
    assert stories[0].sources == ["Multi-source research analysis"]
    assert (len(hooks.challenge_assumptions), len(hooks.data_backed_claims), len(hooks.strategic_insights)) == (3, 3, 4)
    assert all(h.reasoning for h in hooks.all())


def test_engagement_potential() -> None:
    tiktok = ContentIdea(title="t", platform="tiktok", hooks=["Nobody tells you this"])
    carousel = ContentIdea(title="c", platform="linkedin", format="carousel")
    plain = ContentIdea(title="p", platform="instagram")

    assert engagement_potential(tiktok, avg_engagement=80) == 85
    assert engagement_potential(carousel, avg_engagement=50) == 70
    assert engagement_potential(plain, avg_engagement=10) == 50


def test_normalize_idea_fits_platform_spec() -> None:
    idea = ContentIdea(title="x", platform="TikTok", format="Podcast", key_points=["a", "b", "c", "d", "e"])

    normalized = normalize_idea(idea)

    assert normalized.platform == "tiktok"
    assert normalized.format == "talking head"
    assert normalized.key_points == ["a", "b", "c"]
    assert normalize_idea(ContentIdea(title="x", platform="myspace")) is None


def test_generate_content_ideas_normalizes_output(config) -> None:
    agents = IdeaAgents(config)
    output = {"ideas": [
        {"title": "Carousel", "platform": "linkedin", "format": "carousel"},
        {"title": "Lost", "platform": "friendster"},
    ]}

    with agents.ideas_agent.override(model=TestModel(custom_output_args=output)):
        ideas = asyncio.run(agents.generate_content_ideas("synthesis", fallback_key_stories(), avg_engagement=75))

    assert [i.title for i in ideas] == ["Carousel"]
    assert ideas[0].engagement_potential == 80


def test_generate_custom_idea_rejects_unknown_platform(config) -> None:
    agents = IdeaAgents(config)

    with pytest.raises(ValueError, match="Unsupported platform"):
        asyncio.run(agents.generate_custom_idea("salary talk", platform="myspace"))


def test_generate_custom_idea_forces_requested_platform(config) -> None:
    agents = IdeaAgents(config)
    output = {"title": "Salary scripts", "platform": "tiktok", "format": "carousel", "hooks": ["a", "b", "c"]}

    with agents.custom_idea_agent.override(model=TestModel(custom_output_args=output)):
        idea = asyncio.run(agents.generate_custom_idea("salary talk", platform="LinkedIn"))

    assert idea.platform == "linkedin"
    assert idea.format == "carousel"


def test_generate_watchlist(config) -> None:
    agents = IdeaAgents(config)
    output = {"items": [{"keyword": "pay transparency", "reason": "laws", "mentions": 3}, {"keyword": " "}]}

    with agents.watchlist_agent.override(model=TestModel(custom_output_args=output)):
        items = asyncio.run(agents.generate_watchlist("synthesis", build_research()))

    assert [i.keyword for i in items] == ["pay transparency"]


def test_fallback_ideas_and_watchlist() -> None:
    ideas = fallback_ideas(["Remote Work Shifts", "Salary Negotiation"])
    watchlist = fallback_watchlist(
        [f"Theme {i}" for i in range(8)],
        trending=[("layoffs", 5), ("theme 0", 4), ("burnout", 3)],
    )

    assert len(ideas) == 4
    assert ideas[0].platform == "tiktok" and ideas[0].title.endswith(" - what nobody tells you")
    assert ideas[1].title == "The hidden truth about remote work shifts"
    assert [i.engagement_potential for i in ideas] == [50, 60, 70, 80]
    assert len(watchlist) == 10
    assert [w.keyword for w in watchlist[:3]] == ["layoffs", "theme 0", "burnout"]
    assert "Theme 0" not in [w.keyword for w in watchlist]


def test_enhance_ideas_with_sources() -> None:
    articles = [
        Article(title="a", url="https://a", pillar_tags=["STRATEGIC_GROWTH"], engagement_score=5),
        Article(title="b", url="https://b", pillar_tags=["STRATEGIC_GROWTH"], engagement_score=50),
        Article(title="c", url="https://c", pillar_tags=["STRATEGIC_GROWTH"], engagement_score=20),
        Article(title="d", url="https://d", pillar_tags=["CAREER_CLARITY"], engagement_score=99),
    ]
    idea = ContentIdea(title="x", platform="linkedin", pillar="Strategic Growth & Skills Development")

    [enhanced] = enhance_ideas_with_sources([idea], articles)

    assert enhanced.source_links == ["https://b", "https://c"]


def test_watchlist_context() -> None:
    research = build_research()
    research["Trending"] = [QueryResult(query="")]

    assert watchlist_context(research).splitlines() == [
        "Career Clarity & Goals: Recent focus on career pivot strategies",
        "Workplace Trends, Rights & Advocacy: Recent focus on pay transparency laws",
        "Trending: Recent focus on industry trends",
    ]


def test_identify_trending_topics_uses_last_three_days() -> None:
    now = datetime(2026, 10, 18, tzinfo=timezone.utc)
    fresh = [Article(title="Layoffs hit tech layoffs again", url=f"https://x/{i}", published_date=now) for i in range(2)]
    stale = [Article(title="Layoffs everywhere", url="https://old", published_date=now - timedelta(days=5))]

    assert identify_trending_topics(fresh + stale, now=now) == [("layoffs", 4)]


def test_pillar_distribution() -> None:
    items = [
        Article(title="a", url="https://a", pillar_tags=["CAREER_CLARITY"]),
        Article(title="b", url="https://b", pillar_tags=["CAREER_CLARITY", "STRATEGIC_GROWTH"]),
        SocialPost(platform="tiktok", creator_handle="x", post_id="1"),
        Article(title="c", url="https://c"),
    ]

    distribution = pillar_distribution(items)

    assert distribution["CAREER_CLARITY"] == {"count": 2, "percentage": 50.0}
    assert distribution["STRATEGIC_GROWTH"] == {"count": 1, "percentage": 25.0}
    assert distribution["PERSONAL_BRANDING"]["count"] == 0


def test_clustering_falls_back_to_pillars(config) -> None:
    analyzer = ContentAnalyzer(config)
    articles = [
        Article(title="a", url="https://a", pillar_tags=["WORKPLACE_ADVOCACY"]),
        Article(title="b", url="https://b", pillar_tags=["WORKPLACE_ADVOCACY", "CAREER_CLARITY"]),
        Article(title="c", url="https://c", pillar_tags=["CAREER_CLARITY"]),
    ]

    with analyzer.cluster_agent.override(model=FunctionModel(_failing)):
        clusters = asyncio.run(analyzer.cluster_weekly_content(articles, []))

    assert [c.pillar for c in clusters] == ["WORKPLACE_ADVOCACY", "CAREER_CLARITY"]
    assert clusters[0].item_indices == [0, 1]


def test_clustering_drops_out_of_range_indices(config) -> None:
    analyzer = ContentAnalyzer(config)
    articles = [Article(title="a", url="https://a"), Article(title="b", url="https://b")]
    output = {"clusters": [
        {"theme": "Pay", "item_indices": [0, 1, 7]},
        {"theme": "Ghost", "item_indices": [9]},
    ]}

    with analyzer.cluster_agent.override(model=TestModel(custom_output_args=output)):
        clusters = asyncio.run(analyzer.cluster_weekly_content(articles, []))

    assert [(c.theme, c.item_indices) for c in clusters] == [("Pay", [0, 1])]
    assert extract_themes([ContentCluster(theme="small", item_indices=[1]), *clusters]) == ["Pay", "small"]


def test_classify_message() -> None:
    assert classify_message("What's trending?") == "trending"
    assert classify_message("Give me an idea") == "content_idea"
    assert classify_message("How does TikTok work") == "platform_specific"
    assert classify_message("Help me set career goals") == "pillar_question"
    assert classify_message("Hello") == "general"
    assert default_suggestions() == [
        "What's trending in career content this week?",
        "Give me 3 TikTok ideas about salary negotiation",
        "What should I post on LinkedIn today?",
        "How do I create content about remote work trends?",
    ]


def test_chat_assistant_replies_with_sources(config) -> None:
    db = Database(config.db_path)
    try:
        db.insert_article(Article(title="Pay laws expand", url="https://hbr.org/pay", source="HBR", engagement_score=9))
        assistant = ChatAssistant(config, db)

        with assistant.agent.override(model=TestModel(custom_output_text="Talk about pay laws.")):
            reply = asyncio.run(assistant.respond("What's trending this week?", "user-1"))

        assert reply.content == "Talk about pay laws."
        assert [s.url for s in reply.sources] == ["https://hbr.org/pay"]
        assert reply.suggestions[0] == "What should I post about this trend?"
        assert reply.conversation_id.startswith("user-1_")
        assert len(assistant.histories["user-1"]) == 2
    finally:
        db.close()


def test_chat_assistant_failure_and_history_bound(config) -> None:
    db = Database(config.db_path)
    try:
        assistant = ChatAssistant(config, db)

        with assistant.agent.override(model=FunctionModel(_failing)):
            reply = asyncio.run(assistant.respond("Hello", "user-2"))
        assert reply.content == FAILURE_REPLY
        assert reply.suggestions == []

        with assistant.agent.override(model=TestModel(custom_output_text="ok")):
            for i in range(15):
                asyncio.run(assistant.respond(f"Hello {i}", "user-2"))
        assert len(assistant.histories["user-2"]) == MAX_HISTORY
        assert assistant.histories["user-2"][-2]["content"] == "Hello 14"
    finally:
        db.close()


def test_chat_histories_keep_most_recent_users(config, monkeypatch) -> None:
    monkeypatch.setattr("agents.chatbot.MAX_CONVERSATIONS", 2)
    db = Database(config.db_path)
    try:
        assistant = ChatAssistant(config, db)

        with assistant.agent.override(model=TestModel(custom_output_text="ok")):
            for user in ("user-a", "user-b", "user-a", "user-c"):
                asyncio.run(assistant.respond("Hi", user))

        assert list(assistant.histories) == ["user-a", "user-c"]
        assert len(assistant.histories["user-a"]) == 4
    finally:
        db.close()
