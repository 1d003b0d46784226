"""Idea agents: platform-specific content ideas, watchlist and custom ideas.

Ideas returned by the model are normalized against PLATFORM_SPECS (known
platform, valid format, key point count) and scored with
engagement_potential before they reach the report.
"""

import logging
from dataclasses import dataclass

from pydantic_ai.models import Model

from agents.analysis import BRAND_POSITIONING
from agents.base import StageOutputError, create_agent, run_agent
from config import Config
from models.content import Article
from models.report import ContentIdea, ContentIdeaList, KeyStory, WatchlistItem, WatchlistList
from models.research import ResearchData
from pillars import CONTENT_PILLARS, all_pillar_names

logger = logging.getLogger(__name__)

MAX_IDEAS = 15
MAX_WATCHLIST = 12
MAX_FALLBACK_WATCHLIST = 10


@dataclass(frozen=True)
class PlatformSpec:
    """Formats and conventions for one platform."""

    formats: tuple[str, ...]
    hook_styles: tuple[str, ...]
    key_points: int
    length: str = ""


PLATFORM_SPECS: dict[str, PlatformSpec] = {
    "tiktok": PlatformSpec(
        formats=("talking head", "two-person dialogue", "personal story + lesson", "evidence-based explanation"),
        hook_styles=(
            "challenge assumptions", "credibility leading", "relatable situations",
            "contrarian view", "data-backed claims",
        ),
        key_points=3,
        length="1:30-2:00 minutes",
    ),
    "linkedin": PlatformSpec(
        formats=("carousel", "long-form post", "video", "infographic", "data visualization"),
        hook_styles=(
            "professional insight", "industry expertise", "evidence-based",
            "thought leadership", "save-worthy framework",
        ),
        key_points=5,
    ),
    "instagram": PlatformSpec(
        formats=("carousel", "reel", "story series", "behind-the-scenes", "framework post"),
        hook_styles=("educational framework", "behind-the-scenes", "community building", "personal journey"),
        key_points=4,
    ),
}


def _platform_guide() -> str:
    lines = []
    for name, spec in PLATFORM_SPECS.items():
        line = f"- {name}: formats {', '.join(spec.formats)}; hook styles {', '.join(spec.hook_styles)}; {spec.key_points} key points"
        if spec.length:
            line += f"; length {spec.length}"
        lines.append(line)
    return "\n".join(lines)


IDEAS_PROMPT = f"""You are the content strategist for a career and workplace creator.
Turn this week's key stories into platform-specific content ideas.

## Brand positioning
{BRAND_POSITIONING}

## Platforms
{_platform_guide()}

## Pillars
{chr(10).join(f"- {name}" for name in all_pillar_names())}

## Output requirements (must conform to ContentIdeaList)
Create 10-15 ideas spread across tiktok, linkedin and instagram. Each idea needs a
hook-worthy title, a format from the platform list, 3 hooks, the platform's number of
key points, a rationale, the pillar display name, the source theme and the primary
audience segment. Refer to the creator as "the creator", never by name."""

WATCHLIST_PROMPT = """You maintain a watchlist for a career and workplace content creator.

Identify 8-12 topics, trends, people, companies or policies worth monitoring next week.
For each give the keyword, a one-sentence reason, and the number of mentions this week
when the research shows it (0 otherwise). Prefer specific items over generic themes."""

CUSTOM_IDEA_PROMPT = f"""You develop a single content idea on request for a career and workplace creator.

## Brand positioning
{BRAND_POSITIONING}

## Platforms
{_platform_guide()}

Return one idea with 3 hooks, 3-5 key points, a format valid for the platform,
the pillar display name and a short rationale."""


def engagement_potential(idea: ContentIdea, avg_engagement: float = 50) -> int:
    """Heuristic 0-100 engagement estimate for an idea."""
    score = 50
    if avg_engagement > 70:
        score += 20
    elif avg_engagement > 40:
        score += 10
    hooks = " ".join(idea.hooks).lower()
    if idea.platform == "tiktok" and ("nobody" in hooks or "wish" in hooks):
        score += 15
    if idea.platform == "linkedin" and idea.format == "carousel":
        score += 10
    return min(score, 100)


def normalize_idea(idea: ContentIdea, avg_engagement: float = 50) -> ContentIdea | None:
    """Fit an idea to its platform spec, or None for unknown platforms."""
    platform = idea.platform.lower().strip()
    spec = PLATFORM_SPECS.get(platform)
    if spec is None:
        logger.debug("Dropping idea for unknown platform | platform=%s title=%s", idea.platform, idea.title)
        return None
    fmt = idea.format.lower().strip()
    idea = idea.model_copy(update={
        "platform": platform,
        "format": fmt if fmt in spec.formats else spec.formats[0],
        "key_points": idea.key_points[:spec.key_points],
    })
    idea.engagement_potential = engagement_potential(idea, avg_engagement)
    return idea


def _pillar_id(pillar: str) -> str | None:
    for p in CONTENT_PILLARS.values():
        if pillar in (p.id, p.name):
            return p.id
    return None


def enhance_ideas_with_sources(ideas: list[ContentIdea], articles: list[Article]) -> list[ContentIdea]:
    """Attach the two most engaging articles of each idea's pillar as source links."""
    enhanced = []
    for idea in ideas:
        pillar_id = _pillar_id(idea.pillar)
        if pillar_id and not idea.source_links:
            matches = sorted(
                (a for a in articles if pillar_id in a.pillar_tags),
                key=lambda a: a.engagement_score,
                reverse=True,
            )[:2]
            idea = idea.model_copy(update={"source_links": [a.url for a in matches]})
        enhanced.append(idea)
    return enhanced


def watchlist_context(research: ResearchData) -> str:
    lines = []
    for pillar, queries in research.items():
        if not queries:
            continue
        lines.append(f"{pillar}: Recent focus on {queries[0].query or 'industry trends'}")
    return "\n".join(lines)


class IdeaAgents:
    """LLM stages that produce ideas and the watchlist."""

    def __init__(self, config: Config, model: Model | None = None):
        self.timeout = config.stage_timeout_seconds
        self.ideas_agent = create_agent(model or config.analysis_model, ContentIdeaList, IDEAS_PROMPT)
        self.watchlist_agent = create_agent(model or config.fast_model, WatchlistList, WATCHLIST_PROMPT)
        self.custom_idea_agent = create_agent(model or config.analysis_model, ContentIdea, CUSTOM_IDEA_PROMPT)

    async def generate_content_ideas(
        self,
        synthesis: str,
        stories: list[KeyStory],
        avg_engagement: float = 50,
    ) -> list[ContentIdea]:
        """Generate 10-15 ideas, normalized to the platform specs.

        Raises:
            StageOutputError: If no idea survives normalization
        """
        story_text = "\n".join(f"- {s.title}: {s.why_it_matters}" for s in stories) or "- (no key stories)"
        output = await run_agent(
            self.ideas_agent,
            f"SYNTHESIS:\n{synthesis}\n\nKEY STORIES:\n{story_text}",
            max_tokens=2500, temperature=0.4, timeout=self.timeout, stage="content_ideas",
        )
        ideas = [i for i in (normalize_idea(x, avg_engagement) for x in output.ideas) if i is not None]
        if not ideas:
            raise StageOutputError("No usable content ideas returned")
        return ideas[:MAX_IDEAS]

    async def generate_watchlist(self, synthesis: str, research: ResearchData) -> list[WatchlistItem]:
        output = await run_agent(
            self.watchlist_agent,
            f"SYNTHESIS:\n{synthesis[:1500]}\n\nRESEARCH FOCUS:\n{watchlist_context(research)}",
            max_tokens=2000, temperature=0.3, timeout=self.timeout, stage="watchlist",
        )
        items = [item for item in output.items if item.keyword.strip()]
        if not items:
            raise StageOutputError("Empty watchlist returned")
        return items[:MAX_WATCHLIST]

    async def generate_custom_idea(self, prompt: str, platform: str | None = None) -> ContentIdea:
        """Develop one idea from a free-form request.

        Args:
            prompt: What the idea should be about
            platform: Target platform; the model picks one when omitted

        Raises:
            ValueError: Unknown platform
        """
        if platform and platform.lower() not in PLATFORM_SPECS:
            raise ValueError(f"Unsupported platform: {platform}")
        target = f"Platform: {platform.lower()}" if platform else "Platform: choose the best fit"
        idea = await run_agent(
            self.custom_idea_agent,
            f"{target}\n\nRequest: {prompt}",
            max_tokens=1000, temperature=0.6, timeout=self.timeout, stage="custom_idea",
        )
        if platform:
            idea = idea.model_copy(update={"platform": platform.lower()})
        normalized = normalize_idea(idea)
        if normalized is None:
            raise StageOutputError(f"Custom idea has unsupported platform '{idea.platform}'")
        return normalized


# === Fallbacks ===


def _pillar_for_theme(theme: str):
    lowered = theme.lower()
    for pillar in CONTENT_PILLARS.values():
        if any(k in lowered for k in pillar.keywords):
            return pillar
    return next(iter(CONTENT_PILLARS.values()))


def fallback_ideas(themes: list[str]) -> list[ContentIdea]:
    """Two template ideas (TikTok + LinkedIn) per theme."""
    ideas = []
    for theme in themes:
        pillar = _pillar_for_theme(theme)
        topic = pillar.sample_topics[0] if pillar.sample_topics else "Career advice"
        key_points = list(pillar.keywords[:3])
        rationale = f"Addresses current themes in {theme}"
        templates = [
            ContentIdea(
                title=f"{topic} - what nobody tells you",
                platform="tiktok",
                format="talking head",
                hooks=[
                    "Nobody talks about this career mistake",
                    "I wish someone told me this 5 years ago",
                    "This career advice is actually terrible",
                ],
                key_points=key_points,
                rationale=rationale,
                pillar=pillar.name,
                source_theme=theme,
            ),
            ContentIdea(
                title=f"The hidden truth about {theme.lower()}",
                platform="linkedin",
                format="long-form post",
                hooks=[
                    "After 10 years in the industry, here's what I've learned",
                    "The data reveals something surprising",
                    "Most professionals get this wrong",
                ],
                key_points=key_points,
                rationale=rationale,
                pillar=pillar.name,
                source_theme=theme,
            ),
        ]
        for idea in templates:
            idea.engagement_potential = min(50 + len(ideas) * 10, 100)
            ideas.append(idea)
    return ideas


def fallback_watchlist(themes: list[str], trending: list[tuple[str, int]] | None = None) -> list[WatchlistItem]:
    """Watchlist built from trending words first, then report themes."""
    items = [
        WatchlistItem(keyword=word, reason="Trending in this week's coverage", mentions=count)
        for word, count in (trending or [])
    ]
    seen = {item.keyword.lower() for item in items}
    for theme in themes:
        if theme.lower() not in seen:
            items.append(WatchlistItem(keyword=theme, reason="Key theme this week"))
            seen.add(theme.lower())
    return items[:MAX_FALLBACK_WATCHLIST]
