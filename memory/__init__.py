"""Report memory for cross-week continuity.

ReportMemory:
    JSON-backed history of recent reports, covered topics and statistics,
    plus a derived markdown insights digest.

identify_content_gaps:
    Pillars that are under-represented across stored reports.

Example:
    >>> from memory import ReportMemory
    >>> memory = ReportMemory("data/report-memory.json", "data/cumulative-insights.md")
    >>> memory.was_recently_covered("salary negotiation", within_weeks=2)
    False
"""

from memory.report_memory import ReportMemory, identify_content_gaps

__all__ = [
    "ReportMemory",
    "identify_content_gaps",
]
