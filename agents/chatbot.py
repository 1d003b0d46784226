"""Chat assistant for on-demand content questions.

The assistant classifies each message, pulls matching context from the
content store (reports, articles, creator analytics, competitor posts) and
answers with the fast model. History is kept in memory per user, for the
MAX_CONVERSATIONS most recently active users.
"""

import logging
import re
import time
from collections import OrderedDict
from typing import Any

from pydantic_ai.models import Model

from agents.base import create_agent, run_agent
from config import Config
from database import Database
from models.chat import ChatReply, ChatSource
from pillars import AUDIENCE_SEGMENTS, CONTENT_PILLARS

logger = logging.getLogger(__name__)

MAX_HISTORY = 20
MAX_CONVERSATIONS = 500
HISTORY_IN_PROMPT = 6
COMPETITOR_MIN_SCORE = 60

FAILURE_REPLY = (
    "I'm having trouble processing your request right now. "
    "Could you try rephrasing your question?"
)

DEFAULT_SUGGESTIONS = [
    "What's trending in career content this week?",
    "Give me 3 TikTok ideas about salary negotiation",
    "What should I post on LinkedIn today?",
    "How do I create content about remote work trends?",
    "What's the best format for leadership content?",
    "Show me what's working for competitors",
    "Help me brainstorm hooks for job search content",
    "What topics should I avoid this week?",
]

SUGGESTIONS = {
    "trending": [
        "What should I post about this trend?",
        "How can I create a unique angle on this?",
        "What platform works best for this topic?",
    ],
    "content_idea": [
        "Generate 3 hook options for this idea",
        "What format works best for this content?",
        "How can I make this more engaging?",
    ],
    "platform_specific": [
        "What's performing well on this platform?",
        "Best posting times for this content?",
        "How to adapt this for other platforms?",
    ],
    "general": [
        "What's trending in career content this week?",
        "Give me content ideas for LinkedIn",
        "What topics should I avoid?",
    ],
}

PLATFORMS = ("tiktok", "linkedin", "instagram")

CHAT_PROMPT = f"""You are the AI content assistant of a career and workplace creator.
You help professionals build intentional careers aligned with their own definition of success.

## Audience
{chr(10).join(f"- {s.name} ({s.share}): {s.description}" for s in AUDIENCE_SEGMENTS.values())}

## Content pillars
{chr(10).join(f"- {p.name}: {p.description}" for p in CONTENT_PILLARS.values())}

## Brand voice
- Authentic and relatable
- Evidence-based, credibility first
- Value-first: teach the manual method before tools
- Empowering language ("You deserve...", "You have every right to...")
- Challenge assumptions ("Most people think X, but actually...")

## Platforms
- TikTok: fast pace, trending hooks, 1:30-2:00 minutes
- LinkedIn: data-driven insight, carousels and long-form, save-worthy
- Instagram: educational frameworks, behind-the-scenes, community building

## Instructions
- Give actionable, specific advice and cite sources from the context when you use them.
- Content ideas include platform, format, hooks and key points.
- When discussing trends, explain why they matter for content.
- Refer to the creator as "the creator"."""

_WORD_RE = re.compile(r"\b[a-z]{4,}\b")


def default_suggestions() -> list[str]:
    return DEFAULT_SUGGESTIONS[:4]


def classify_message(message: str) -> str:
    """Classify a message as trending, content_idea, platform_specific, pillar_question or general."""
    lowered = message.lower()
    if any(word in lowered for word in ("trend", "hot", "popular")):
        return "trending"
    if any(word in lowered for word in ("idea", "content", "post")):
        return "content_idea"
    if any(platform in lowered for platform in PLATFORMS):
        return "platform_specific"
    if extract_pillar(message):
        return "pillar_question"
    return "general"


def extract_platform(message: str) -> str | None:
    lowered = message.lower()
    return next((p for p in PLATFORMS if p in lowered), None)


def extract_pillar(message: str) -> str | None:
    lowered = message.lower()
    for pillar in CONTENT_PILLARS.values():
        if any(keyword in lowered for keyword in pillar.keywords):
            return pillar.id
    return None


class ChatAssistant:
    """Answers chat messages with context from the content store.

    Example:
        >>> assistant = ChatAssistant(config, db)
        >>> reply = await assistant.respond("What's trending this week?", "user-1")
        >>> reply.suggestions[0]
        'What should I post about this trend?'
    """

    def __init__(self, config: Config, db: Database, model: Model | None = None):
        self.db = db
        self.timeout = config.stage_timeout_seconds
        self.agent = create_agent(model or config.fast_model, str, CHAT_PROMPT)
        self.histories: OrderedDict[str, list[dict[str, Any]]] = OrderedDict()

    def _history(self, user_id: str) -> list[dict[str, Any]]:
        history = self.histories.setdefault(user_id, [])
        self.histories.move_to_end(user_id)
        while len(self.histories) > MAX_CONVERSATIONS:
            evicted, _ = self.histories.popitem(last=False)
            logger.debug("Chat history evicted | user=%s", evicted)
        return history

    def gather_context(self, message: str) -> dict[str, list]:
        """Collect store data relevant to the message type."""
        context: dict[str, list] = {
            "reports": [],
            "articles": [],
            "creator_posts": [],
            "competitor_posts": [],
        }
        try:
            message_type = classify_message(message)
            if message_type == "trending":
                context["reports"] = self.db.recent_reports(2)
                context["articles"] = self._top_articles(days=7, limit=10)
            elif message_type == "content_idea":
                context["creator_posts"] = self.db.top_creator_posts(limit=5)
                context["competitor_posts"] = self._competitor_posts()
                context["articles"] = self._matching_articles(message)
            elif message_type == "platform_specific":
                platform = extract_platform(message)
                context["creator_posts"] = self.db.top_creator_posts(platform=platform, limit=3)
                context["competitor_posts"] = self._competitor_posts(platform)
            elif message_type == "pillar_question":
                pillar = extract_pillar(message)
                context["articles"] = self._top_articles(days=14, limit=5, pillar=pillar)
                context["creator_posts"] = [
                    p for p in self.db.top_creator_posts(limit=20) if pillar in p["pillar_tags"]
                ][:3]
            else:
                context["reports"] = self.db.recent_reports(1)
        except Exception as e:
            logger.error("Failed to gather chat context | error=%s", e, exc_info=True)
        return context

    def _top_articles(self, days: int, limit: int, pillar: str | None = None):
        articles = self.db.recent_articles(days=days, pillar=pillar)
        return sorted(articles, key=lambda a: a.engagement_score, reverse=True)[:limit]

    def _matching_articles(self, message: str, limit: int = 5):
        terms = _WORD_RE.findall(message.lower())[:3]
        if not terms:
            return []
        matches = [
            a for a in self.db.recent_articles(days=14)
            if any(term in a.text.lower() for term in terms)
        ]
        return sorted(matches, key=lambda a: a.engagement_score, reverse=True)[:limit]

    def _competitor_posts(self, platform: str | None = None, limit: int = 5):
        posts = self.db.recent_social_posts(days=30, platform=platform)
        return [p for p in posts if p.performance_score > COMPETITOR_MIN_SCORE][:limit]

    @staticmethod
    def build_context_prompt(context: dict[str, list], extra: dict[str, Any] | None = None) -> str:
        parts = []
        if context["reports"]:
            lines = ["Recent Weekly Reports:"]
            for report in context["reports"]:
                data = report.get("report_data") or {}
                lines.append(f"- Week of {report['week_start_date']}: {data.get('executive_summary', '')}")
                themes = data.get("themes") or []
                if themes:
                    lines.append(f"  Top themes: {', '.join(themes[:3])}")
            parts.append("\n".join(lines))
        if context["articles"]:
            lines = ["Relevant Recent Content:"]
            for article in context["articles"][:5]:
                lines.append(f'- "{article.title}" ({article.source}) - {article.content[:150]}...')
            parts.append("\n".join(lines))
        if context["creator_posts"]:
            lines = ["The Creator's Top Performing Content:"]
            for post in context["creator_posts"][:3]:
                lines.append(f'- {post["platform"]}: "{post["content"]}" ({post["performance_category"]} performance)')
            parts.append("\n".join(lines))
        if context["competitor_posts"]:
            lines = ["Competitor Insights:"]
            for post in context["competitor_posts"][:3]:
                lines.append(f'- {post.creator_handle} ({post.platform}): "{post.content}" - {post.performance_score} score')
            parts.append("\n".join(lines))
        if extra:
            parts.append("User Context:\n" + "\n".join(f"- {k}: {v}" for k, v in extra.items()))
        return "\n\n".join(parts) or "No stored context available."

    @staticmethod
    def extract_sources(context: dict[str, list]) -> list[ChatSource]:
        sources = [
            ChatSource(title=a.title, type="article", url=a.url, source=a.source)
            for a in context["articles"]
        ]
        sources.extend(
            ChatSource(
                title=f"Weekly Report - {r['week_start_date']}",
                type="report",
                date=r["week_start_date"],
            )
            for r in context["reports"]
        )
        return sources

    async def respond(
        self,
        message: str,
        user_id: str,
        context: dict[str, Any] | None = None,
    ) -> ChatReply:
        """Answer a message, recording it in the user's history.

        Never raises; failures return the fixed apology reply.
        """
        logger.info("Chat message | user=%s message=%s", user_id, message[:100])
        conversation_id = f"{user_id}_{str(int(time.time() * 1000))[-8:]}"
        history = self._history(user_id)

        try:
            store_context = self.gather_context(message)
            recent = "\n".join(f"{m['role']}: {m['content']}" for m in history[-HISTORY_IN_PROMPT:])
            prompt = (
                f"Current Context:\n{self.build_context_prompt(store_context, context)}\n\n"
                f"Conversation History:\n{recent or '(new conversation)'}\n\n"
                f"User Question: {message}"
            )
            content = await run_agent(
                self.agent, prompt,
                max_tokens=1500, temperature=0.7, timeout=self.timeout, stage="chat",
            )
        except Exception as e:
            logger.error("Chat response failed | user=%s error=%s", user_id, e, exc_info=True)
            return ChatReply(content=FAILURE_REPLY, conversation_id=conversation_id)

        now = time.time()
        history.append({"role": "user", "content": message, "timestamp": now})
        history.append({"role": "assistant", "content": content, "timestamp": now})
        del history[:-MAX_HISTORY]

        return ChatReply(
            content=content,
            sources=self.extract_sources(store_context),
            suggestions=SUGGESTIONS.get(classify_message(message), SUGGESTIONS["general"]),
            conversation_id=conversation_id,
        )
