"""Content pillars, audience segments and keyword tagging helpers.

Pillars are the five fixed content categories used to tag ingested content,
route research queries and label generated ideas. Tagging is plain
case-insensitive keyword containment.
"""

import re
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Pillar:
    """A content pillar definition.

    Attributes:
        id: Stable identifier (e.g. 'CAREER_CLARITY')
        name: Display name used in reports and research keys
        description: One-line summary of the pillar
        keywords: Lowercase keywords that tag content with this pillar
        sample_topics: Example content topics
        audience: Audience segments the pillar serves
        content_types: Typical formats for the pillar
    """

    id: str
    name: str
    description: str
    keywords: tuple[str, ...]
    sample_topics: tuple[str, ...] = ()
    audience: str = ""
    content_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class AudienceSegment:
    """An audience segment the creator writes for."""

    id: str
    name: str
    share: str
    description: str
    pain_points: tuple[str, ...] = field(default_factory=tuple)


CONTENT_PILLARS: dict[str, Pillar] = {
    "CAREER_CLARITY": Pillar(
        id="CAREER_CLARITY",
        name="Career Clarity & Goals",
        description="Identifying values, building vision, goal-setting, overcoming confusion",
        keywords=(
            "career clarity", "values", "goals", "vision", "career path", "purpose",
            "direction", "career confusion", "priorities", "success definition",
        ),
        sample_topics=(
            "3 Questions to Define Your Ideal Career",
            "How to Spot Misalignment in Your Current Role",
            "Goal-Setting Framework for the Next 90 Days",
            "Common Myths About 'Success'",
        ),
        audience="Career Pivoters, Burnt Out Achievers",
        content_types=("framework videos", "assessment tools", "reflection prompts"),
    ),
    "PERSONAL_BRANDING": Pillar(
        id="PERSONAL_BRANDING",
        name="Personal Branding & Visibility",
        description="LinkedIn strategy, content creation, authentic messaging, building visibility",
        keywords=(
            "personal branding", "linkedin", "visibility", "thought leadership",
            "content strategy", "networking", "online presence", "storytelling", "credibility",
        ),
        sample_topics=(
            "How to Stand Out on LinkedIn",
            "Personal Brand Audits: Before & After",
            "3 Mistakes Killing Your Online Presence",
            "Content Calendar Template",
        ),
        audience="Side Hustle Seekers, Ambitious Climbers",
        content_types=("LinkedIn strategy", "content templates", "brand audits"),
    ),
    "STRATEGIC_GROWTH": Pillar(
        id="STRATEGIC_GROWTH",
        name="Strategic Growth & Skills Development",
        description="Skill development, continuous learning, career advancement, negotiation",
        keywords=(
            "skill development", "upskilling", "learning", "career advancement", "negotiation",
            "promotion", "professional development", "growth mindset",
        ),
        sample_topics=(
            "Top Skills to Thrive This Year",
            "Negotiation Scripts That Got Me a 20% Raise",
            "From Good to Great: Leveling Up Your Professional Abilities",
            "Upskilling with Micro-Learning",
        ),
        audience="Ambitious Climbers, Recent Casualties",
        content_types=("skill frameworks", "negotiation scripts", "learning strategies"),
    ),
    "WORKPLACE_ADVOCACY": Pillar(
        id="WORKPLACE_ADVOCACY",
        name="Workplace Trends, Rights & Advocacy",
        description="Workplace trends, employee rights, advocacy, culture evaluation",
        keywords=(
            "workplace trends", "employee rights", "advocacy", "workplace culture", "remote work",
            "salary transparency", "diversity", "inclusion", "boundaries",
        ),
        sample_topics=(
            "Top Workplace Trends Shaping the Future of Work",
            "Why Salary Transparency Matters",
            "Remote Work Realities vs. Myths",
            "Employee Wellbeing: Stats You Need to Know",
        ),
        audience="All segments",
        content_types=("trend analysis", "advocacy content", "industry insights"),
    ),
    "WORK_LIFE_INTEGRATION": Pillar(
        id="WORK_LIFE_INTEGRATION",
        name="Work that Complements Life",
        description="Work-life balance, personal journey, behind-the-scenes, lifestyle integration",
        keywords=(
            "work life balance", "lifestyle", "personal journey", "behind the scenes",
            "productivity", "habits", "wellness", "boundaries", "sustainable success",
        ),
        sample_topics=(
            "Day in My Life as a Career Strategist & Creator",
            "Lessons I Learned Leaving Corporate for Entrepreneurship",
            "Personal Routine That Boosts My Productivity",
            "Behind the Scenes: How I Plan My Content",
        ),
        audience="Burnt Out Achievers, Side Hustle Seekers",
        content_types=("personal stories", "lifestyle content", "routine optimization"),
    ),
}

AUDIENCE_SEGMENTS: dict[str, AudienceSegment] = {
    "CAREER_PIVOTERS": AudienceSegment(
        id="CAREER_PIVOTERS",
        name="Career Pivoters",
        share="25-30%",
        description="Currently dissatisfied but unclear on direction",
        pain_points=("Feeling stuck in wrong role", "Unsure what they actually want", "Fear of starting over"),
    ),
    "AMBITIOUS_CLIMBERS": AudienceSegment(
        id="AMBITIOUS_CLIMBERS",
        name="Ambitious Climbers",
        share="20-25%",
        description="Clear goals but stuck in execution",
        pain_points=("Working hard but not getting promoted", "Struggling with office politics"),
    ),
    "BURNT_OUT_ACHIEVERS": AudienceSegment(
        id="BURNT_OUT_ACHIEVERS",
        name="Burnt Out Achievers",
        share="20-25%",
        description="Successful on paper but exhausted and questioning the path",
        pain_points=("Chronic exhaustion", "Boundaries that never hold", "Guilt about slowing down"),
    ),
    "RECENT_CASUALTIES": AudienceSegment(
        id="RECENT_CASUALTIES",
        name="Recent Casualties",
        share="15-20%",
        description="Recently laid off or unemployed",
        pain_points=("Job search overwhelm", "Shaken confidence", "Navigating a tight market"),
    ),
}

STOP_WORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "had", "her", "was",
    "one", "our", "out", "day", "get", "has", "him", "his", "how", "its", "may", "new",
    "now", "old", "see", "two", "who", "boy", "did", "man", "way",
    "that", "this", "with", "from", "have", "your", "they", "will", "what", "when",
    "about", "more", "their", "there", "were", "been", "into", "than", "them",
})

_WORD_RE = re.compile(r"\b[a-z]{3,}\b")


def all_pillar_names() -> list[str]:
    """Display names of every pillar, in definition order."""
    return [p.name for p in CONTENT_PILLARS.values()]


def pillar_name(pillar_id: str) -> str:
    """Map a pillar id to its display name (unknown ids pass through)."""
    pillar = CONTENT_PILLARS.get(pillar_id)
    return pillar.name if pillar else pillar_id


def classify_pillars(text: str) -> list[str]:
    """Return ids of every pillar with at least one keyword in ``text``."""
    lowered = (text or "").lower()
    return [
        pillar.id
        for pillar in CONTENT_PILLARS.values()
        if any(keyword in lowered for keyword in pillar.keywords)
    ]


def get_pillar_by_keyword(keyword: str) -> Pillar | None:
    """Find the first pillar whose keywords overlap ``keyword``.

    A keyword matches when either string contains the other, so both
    'remote work policy' and 'remote' resolve to the workplace pillar.
    """
    lowered = (keyword or "").lower().strip()
    if not lowered:
        return None
    for pillar in CONTENT_PILLARS.values():
        if any(lowered in k or k in lowered for k in pillar.keywords):
            return pillar
    return None


def extract_keywords(text: str, limit: int = 10) -> list[str]:
    """Extract up to ``limit`` distinct content words, in order of appearance."""
    seen: list[str] = []
    for word in _WORD_RE.findall((text or "").lower()):
        if len(word) <= 3 or word in STOP_WORDS or word in seen:
            continue
        seen.append(word)
        if len(seen) >= limit:
            break
    return seen
