"""HTTP-facing tools shared by ingestion and research.

TavilyClient:
    Tavily search/extract client with a day-keyed JSON cache and
    fast/advanced query modes.

fetch_text, extract_items, clean_content:
    Page fetching with SSL fallback and stdlib HTML extraction.

Example:
    >>> from tools import TavilyClient
    >>> client = TavilyClient(api_key, cache_dir)
    >>> research = await client.search_all_pillars()
"""

from tools.utils import create_ssl_context, USER_AGENT
from tools.search import SearchCache, SearchError, TavilyClient
from tools.fetch import PageItem, clean_content, extract_items, fetch_text

__all__ = [
    "TavilyClient",
    "SearchCache",
    "SearchError",
    "PageItem",
    "clean_content",
    "extract_items",
    "fetch_text",
    "create_ssl_context",
    "USER_AGENT",
]
