"""PydanticAI agents for the Content Intel weekly report.

AnalysisAgents:
    Research synthesis, key stories, content hooks and executive summary.

IdeaAgents:
    Platform-specific content ideas, watchlist and on-demand custom ideas.

ContentAnalyzer:
    Clusters a week of ingested content into themes.

ChatAssistant:
    Context-aware chat over the content store.

Stage methods raise on failure; deterministic fallbacks live next to each
stage (fallback_key_stories, fallback_ideas, ...) and are applied by the
pipeline.

Example:
    >>> from agents import AnalysisAgents, IdeaAgents
    >>> analysis = AnalysisAgents(config)
    >>> ideas = IdeaAgents(config)
"""

from agents.analysis import AnalysisAgents
from agents.base import StageOutputError
from agents.chatbot import ChatAssistant
from agents.ideas import IdeaAgents
from agents.themes import ContentAnalyzer

__all__ = [
    "AnalysisAgents",
    "ChatAssistant",
    "ContentAnalyzer",
    "IdeaAgents",
    "StageOutputError",
]
