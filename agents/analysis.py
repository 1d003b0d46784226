"""Analysis agents: research synthesis, key stories, hooks and executive summary.

Each stage is a separate PydanticAI agent with its own token budget and
temperature. Stage methods raise on failure (timeout, model error, output
that fails validation); the pipeline decides whether to substitute the
deterministic fallbacks defined at the bottom of this module.

Synthesis and key stories retry once with a smaller "backup" prompt before
raising. Both attempts share one STAGE_TIMEOUT_SECONDS deadline, so a stage
never runs longer than a single timeout.
"""

import asyncio
import logging
import time

from pydantic_ai.models import Model

from agents.base import StageOutputError, create_agent, run_agent
from config import Config
from models.report import ContentHooks, Hook, KeyStory, KeyStoryList
from models.research import ResearchData

logger = logging.getLogger(__name__)

MAX_SYNTHESIS_CONTEXT = 3000
MAX_BRIEF_CONTEXT = 1500
MAX_BRIEF_ITEMS = 12
MIN_SYNTHESIS_LENGTH = 200
MAX_KEY_STORIES = 6
MAX_TOP_ITEMS = 8

BRAND_POSITIONING = """- Anti-corporate career advice that challenges conventional wisdom
- Data-driven insights that cut through generic career tips
- Serves four audience segments: Career Pivoters, Ambitious Climbers, Burnt Out Achievers, Recent Casualties
- A large, engaged following that expects contrarian perspectives backed by evidence"""


SYNTHESIS_PROMPT = """You are the strategic content intelligence analyst for a career and workplace creator.
You turn raw research into strategic insight the creator can act on this week.

## What to identify
1. Market opportunities: content openings that fit the creator's data-driven, anti-corporate positioning.
2. Competitive gaps: what mainstream career experts are missing or getting wrong.
3. Audience psychology: what each audience segment is most worried about right now.
4. Strategic angles: contrarian perspectives that will drive engagement and build authority.
5. Timing: current events or trends that make a theme urgent.

## Output requirements
- 5-7 paragraphs, each 3-4 sentences.
- Explain why each insight matters and how it becomes content.
- Do not invent statistics or sources that are not in the research."""

BACKUP_SYNTHESIS_PROMPT = """You analyze research about careers and the workplace.
Provide 3-4 strategic insights a career content creator could turn into content.
Do not invent facts that are not in the research."""

KEY_STORIES_PROMPT = f"""You are the senior content strategist choosing this week's key stories for a career creator.

## Brand positioning
{BRAND_POSITIONING}

## Output requirements (must conform to KeyStoryList)
Create 4-6 key stories. For each story provide:
- title: a hook that challenges an assumption or reveals a hidden truth
- why_it_matters: 3-4 sentences on the implications for the audience segments
- sources: credible sources from the research that back the story
- content_hooks: 4-5 specific content angles
- narrative_flow: the progression from problem to insight to action
- story_hook: an opening line
- community_question: a question that sparks discussion
- macro_analysis: how the story connects to broader workplace trends

## Constraints
1. Each story should reveal something most career experts are missing.
2. Prefer actionable insight over generic observation.
3. Only cite sources that appear in the research."""

HOOKS_PROMPT = """You write strategic content hooks for a career and workplace creator.

## Output requirements (must conform to ContentHooks)
- challenge_assumptions: 3 hooks that challenge conventional wisdom
- data_backed_claims: 3 hooks built on research findings
- strategic_insights: 4 hooks that advance strategic positioning
Each hook needs a one-sentence reasoning."""

SUMMARY_PROMPT = """You write the executive summary of a weekly content intelligence report.

Write 2-3 sentences that capture the biggest opportunity this week, the key
strategic insight, and the recommended focus area. Be compelling and
strategic, not merely descriptive. Return plain text only."""


def remaining_time(deadline: float) -> float:
    """Seconds left before ``deadline`` (a time.monotonic() value).

    Raises:
        asyncio.TimeoutError: The deadline has passed
    """
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise asyncio.TimeoutError()
    return remaining


# === Research formatting ===


def format_research_for_synthesis(research: ResearchData, max_chars: int = MAX_SYNTHESIS_CONTEXT) -> str:
    """Render research for the synthesis prompt.

    Items are grouped by pillar and query with 100-char content snippets.
    Formatting stops once roughly ``max_chars`` characters are reached.
    """
    if not research:
        return "No research data available"

    lines: list[str] = []
    total = 0
    for pillar, queries in research.items():
        if total >= max_chars:
            break
        lines.append(f"\n=== {pillar.upper()} ===")
        total += len(pillar) + 20

        for qi, query in enumerate(queries, start=1):
            if total >= max_chars:
                break
            if not query.results:
                continue
            lines.append(f"\nQuery: {query.query}")
            total += len(query.query) + 10

            for hi, hit in enumerate(query.results, start=1):
                if total >= max_chars:
                    break
                snippet = (hit.content or "")[:100]
                lines.append(f"{qi}.{hi} {hit.title}")
                lines.append(f"URL: {hit.url}")
                lines.append(f"Content: {snippet}...")
                if hit.published_date:
                    lines.append(f"Published: {hit.published_date}")
                lines.append("---")
                total += len(hit.title) + len(hit.url) + len(snippet) + 50

    if total >= max_chars:
        logger.warning("Research context truncated | chars=%d limit=%d", total, max_chars)
    return "\n".join(lines)


def format_research_brief(research: ResearchData) -> str:
    """Compact research digest for the backup synthesis prompt.

    Top hit of at most two queries per pillar, 12 items overall, 1500 chars.
    """
    if not research:
        return "No research data available"

    lines: list[str] = []
    count = 0
    for pillar, queries in research.items():
        if count >= MAX_BRIEF_ITEMS:
            break
        lines.append(f"{pillar}:")
        for query in queries[:2]:
            if count >= MAX_BRIEF_ITEMS:
                break
            if query.results:
                hit = query.results[0]
                lines.append(f"- {hit.title}\n  {(hit.content or '')[:100]}...")
                count += 1
    return "\n".join(lines)[:MAX_BRIEF_CONTEXT]


def extract_top_research_items(research: ResearchData) -> str:
    """First hit of the first query per pillar, at most 8 items."""
    items = []
    for pillar, queries in research.items():
        if queries and queries[0].results:
            hit = queries[0].results[0]
            items.append(f"[{pillar}] {hit.title}\n{(hit.content or '')[:200]}...")
    return "\n\n".join(items[:MAX_TOP_ITEMS])


# === Agents ===


class AnalysisAgents:
    """LLM stages that turn research into the analytical half of the report.

    Example:
        >>> agents = AnalysisAgents(config)
        >>> synthesis = await agents.synthesize_research(research, strategy)
        >>> stories = await agents.generate_key_stories(synthesis, extract_top_research_items(research))
    """

    def __init__(self, config: Config, model: Model | None = None):
        """Initialize the stage agents.

        Args:
            config: Application configuration with model names and timeouts
            model: Optional model override used for every stage
        """
        analysis_model = model or config.analysis_model
        fast_model = model or config.fast_model
        self.timeout = config.stage_timeout_seconds

        self.synthesis_agent = create_agent(analysis_model, str, SYNTHESIS_PROMPT)
        self.backup_synthesis_agent = create_agent(fast_model, str, BACKUP_SYNTHESIS_PROMPT)
        self.stories_agent = create_agent(analysis_model, KeyStoryList, KEY_STORIES_PROMPT)
        self.hooks_agent = create_agent(fast_model, ContentHooks, HOOKS_PROMPT)
        self.summary_agent = create_agent(fast_model, str, SUMMARY_PROMPT)

    async def synthesize_research(self, research: ResearchData, strategy: str) -> str:
        """Synthesize research into 5-7 paragraphs of strategic insight.

        Raises:
            StageOutputError: If both the full and backup synthesis are too short
            Exception: Model/timeout errors from the backup attempt
        """
        deadline = time.monotonic() + self.timeout
        prompt = (
            f"STRATEGY CONTEXT:\n{strategy}\n\n"
            f"RESEARCH DATA:\n{format_research_for_synthesis(research)}"
        )
        try:
            text = await run_agent(
                self.synthesis_agent, prompt,
                max_tokens=3000, temperature=0.2, timeout=self.timeout, stage="synthesis",
            )
            if len(text.strip()) < MIN_SYNTHESIS_LENGTH:
                raise StageOutputError(f"Synthesis too short ({len(text.strip())} chars)")
            return text.strip()
        except Exception as e:
            logger.warning("Synthesis failed, trying backup prompt | error=%s: %s", type(e).__name__, e)

        text = await run_agent(
            self.backup_synthesis_agent,
            f"Research:\n{format_research_brief(research)}",
            max_tokens=1500, temperature=0.4, timeout=remaining_time(deadline), stage="synthesis_backup",
        )
        if len(text.strip()) < MIN_SYNTHESIS_LENGTH:
            raise StageOutputError(f"Backup synthesis too short ({len(text.strip())} chars)")
        return text.strip()

    async def generate_key_stories(self, synthesis: str, top_items: str) -> list[KeyStory]:
        """Generate 4-6 key stories (extra stories are dropped).

        Raises:
            StageOutputError: If neither attempt produced a story
        """
        prompt = f"STRATEGIC SYNTHESIS:\n{synthesis}\n\nRESEARCH EVIDENCE:\n{top_items}"
        deadline = time.monotonic() + self.timeout
        try:
            output = await run_agent(
                self.stories_agent, prompt,
                max_tokens=4000, temperature=0.3, timeout=self.timeout, stage="key_stories",
            )
            if not output.stories:
                raise StageOutputError("No key stories returned")
            return output.stories[:MAX_KEY_STORIES]
        except Exception as e:
            logger.warning("Key stories failed, trying backup prompt | error=%s: %s", type(e).__name__, e)

        output = await run_agent(
            self.stories_agent,
            f"Create 3-4 key career stories from this synthesis:\n{synthesis[:1000]}",
            max_tokens=1000, temperature=0.4, timeout=remaining_time(deadline), stage="key_stories_backup",
        )
        if not output.stories:
            raise StageOutputError("No key stories returned by backup prompt")
        return output.stories[:MAX_KEY_STORIES]

    async def create_content_hooks(self, synthesis: str, themes: list[str]) -> ContentHooks:
        """Create 10 hooks across three categories."""
        theme_text = "\n".join(f"- {t}" for t in themes) or "- (none)"
        hooks = await run_agent(
            self.hooks_agent,
            f"SYNTHESIS:\n{synthesis}\n\nKEY THEMES:\n{theme_text}",
            max_tokens=1000, temperature=0.5, timeout=self.timeout, stage="content_hooks",
        )
        if hooks.count == 0:
            raise StageOutputError("No content hooks returned")
        return hooks

    async def create_executive_summary(self, synthesis: str, story_titles: list[str]) -> str:
        """Write a 2-3 sentence executive summary."""
        titles = "\n- ".join(story_titles) if story_titles else "No key stories available"
        summary = await run_agent(
            self.summary_agent,
            f"SYNTHESIS:\n{synthesis}\n\nKEY STORIES:\n- {titles}",
            max_tokens=200, temperature=0.4, timeout=self.timeout, stage="executive_summary",
        )
        if not summary.strip():
            raise StageOutputError("Empty executive summary")
        return summary.strip()


# === Fallbacks ===

FALLBACK_SYNTHESIS = (
    "Research analysis reveals emerging opportunities in workplace trends, career development "
    "strategies, and professional positioning that create content opportunities for strategic "
    "career guidance."
)

FALLBACK_EXECUTIVE_SUMMARY = (
    "This week's intelligence reveals strategic opportunities for enhanced audience engagement "
    "through targeted content positioning."
)


def fallback_key_stories() -> list[KeyStory]:
    return [KeyStory(
        title="Weekly Strategic Intelligence Summary",
        why_it_matters=(
            "Comprehensive analysis of current trends provides strategic positioning opportunities "
            "for content creators and professional development."
        ),
        sources=["Multi-source research analysis"],
        content_hooks=[
            "The trends shaping professional success this week",
            "Strategic insights you can't afford to miss",
            "Why this week's intelligence matters for your strategy",
        ],
        narrative_flow="Research gathering → Strategic analysis → Actionable insights",
        story_hook="What if this week's intelligence contains the key to your next breakthrough?",
        community_question="Which strategic insight resonates most with your current goals?",
        macro_analysis=(
            "These developments reflect ongoing evolution in professional strategy and career "
            "development approaches."
        ),
    )]


def fallback_content_hooks() -> ContentHooks:
    return ContentHooks(
        challenge_assumptions=[
            Hook(hook="Most professionals approach this completely wrong", reasoning="Challenges conventional wisdom"),
            Hook(hook="What everyone thinks they know is outdated", reasoning="Positions fresh perspective"),
            Hook(hook="The biggest mistake is following outdated advice", reasoning="Creates urgency for new approach"),
        ],
        data_backed_claims=[
            Hook(hook="Recent data shows a surprising trend", reasoning="Uses research to support claims"),
            Hook(hook="The numbers reveal an unexpected opportunity", reasoning="Data-driven insights"),
            Hook(hook="Statistics prove what experts suspected", reasoning="Validates strategic positioning"),
        ],
        strategic_insights=[
            Hook(hook="Strategic leaders are taking a different approach", reasoning="Appeals to ambition"),
            Hook(hook="The smartest move is counterintuitive", reasoning="Creates strategic intrigue"),
            Hook(hook="Success requires thinking differently", reasoning="Encourages strategic thinking"),
            Hook(hook="The real opportunity is where others aren't looking", reasoning="Positions unique insight"),
        ],
    )
