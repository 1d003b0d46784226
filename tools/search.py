"""Tavily web research for the weekly report.

This module wraps the Tavily search API used to research every content
pillar and a handful of trending queries.

Modes:
    fast: every pillar query is fired concurrently (bounded by a semaphore)
    advanced: queries run one at a time with a pause between calls

Caching:
    Results are memoized per calendar day (in the report timezone) in
    SEARCH_CACHE_DIR/tavily-search-<YYYY-MM-DD>.json so that re-running a
    report on the same day does not spend billed searches again. A cache
    that cannot be read is treated as a miss.

Error Handling:
    - HTTP / API errors raise SearchError for the single query
    - Pillar searches log and skip failed queries
    - If every pillar query fails, search_all_pillars raises SearchError
    - The monthly limit raises SearchError before any request is sent
"""

import asyncio
import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable
from zoneinfo import ZoneInfo

import aiohttp

from models.research import QueryResult, ResearchData, SearchHit, count_results

logger = logging.getLogger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"
TAVILY_EXTRACT_URL = "https://api.tavily.com/extract"

INCLUDE_DOMAINS = [
    "harvard.edu", "linkedin.com", "hbr.org", "forbes.com",
    "wsj.com", "nytimes.com", "fastcompany.com", "inc.com",
    "entrepreneur.com", "glassdoor.com", "indeed.com",
]
EXCLUDE_DOMAINS = ["youtube.com", "tiktok.com", "instagram.com", "facebook.com"]

TRENDING_QUERIES = [
    "career development trends {year} {next_year}",
    "workplace culture changes {year}",
    "salary negotiation trends professionals",
    "LinkedIn personal branding strategies",
    "remote work future predictions {next_year}",
]


class SearchError(Exception):
    """Raised when the search API fails or the monthly budget is spent."""


def cache_day(tz: str = "UTC", now: datetime | None = None) -> date:
    """Calendar day in ``tz`` used as the search cache key."""
    return (now or datetime.now(timezone.utc)).astimezone(ZoneInfo(tz)).date()


def pillar_queries(today: date) -> dict[str, list[str]]:
    """Research queries per pillar display name, dated to ``today``."""
    year = today.year
    month = today.strftime("%B")
    return {
        "Career Clarity & Goals": [
            f"career clarity assessment tools {year}",
            f"career pivot strategies for professionals {year}",
            f"goal setting frameworks for career development {year}",
            f"career transition trends {month} {year}",
            f"professional development planning {year}",
        ],
        "Personal Branding & Visibility": [
            f"LinkedIn personal branding strategies {year}",
            f"professional visibility tactics {year}",
            "personal brand building for career advancement",
            f"LinkedIn algorithm changes {year}",
            f"networking strategies for career growth {year}",
        ],
        "Strategic Growth & Skills Development": [
            f"salary negotiation strategies {year}",
            f"in-demand skills for professionals {year}",
            f"upskilling trends workplace {year}",
            f"career advancement tactics {year}",
            "professional skill development programs",
        ],
        "Workplace Trends, Rights & Advocacy": [
            f"workplace trends {year}",
            f"remote work statistics {year}",
            f"pay transparency laws {year}",
            "employee rights workplace advocacy",
            f"diversity inclusion workplace trends {year}",
            f"future of work predictions {year}",
        ],
        "Work that Complements Life": [
            f"work life balance strategies {year}",
            "burnout prevention workplace wellness",
            f"flexible work arrangements {year}",
            "sustainable productivity methods",
            f"work from home best practices {year}",
        ],
    }


def trending_queries(today: date) -> list[str]:
    return [q.format(year=today.year, next_year=today.year + 1) for q in TRENDING_QUERIES]


class SearchCache:
    """Day-keyed JSON cache of research results."""

    def __init__(self, cache_dir: Path | str):
        self.cache_dir = Path(cache_dir)

    def path_for(self, day: date) -> Path:
        return self.cache_dir / f"tavily-search-{day.isoformat()}.json"

    def load(self, day: date) -> dict[str, Any]:
        """Cached payload for ``day`` (empty dict on miss or unreadable file)."""
        path = self.path_for(day)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Search cache unreadable, ignoring | path=%s error=%s", path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def update(self, day: date, key: str, value: Any) -> None:
        """Merge ``key`` into the cache file for ``day`` (best effort)."""
        payload = self.load(day)
        payload[key] = value
        payload["date"] = day.isoformat()
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self.path_for(day).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            logger.warning("Search cache write failed | day=%s error=%s", day, e)


class TavilyClient:
    """Async Tavily search client with day-keyed caching.

    Example:
        >>> client = TavilyClient(api_key, Path("data/tavily-cache"), mode="fast")
        >>> research = await client.search_all_pillars()
        >>> trending = await client.search_trending_topics()
        >>> await client.close()
    """

    def __init__(
        self,
        api_key: str,
        cache_dir: Path | str,
        monthly_limit: int = 1000,
        mode: str = "fast",
        max_concurrent: int = 8,
        request_delay: float = 1.0,
        timeout: int = 30,
        tz: str = "UTC",
        today: Callable[[], date] | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: Tavily API key
            cache_dir: Directory for day-keyed cache files
            monthly_limit: Maximum searches this process may spend
            mode: 'fast' (parallel) or 'advanced' (sequential)
            max_concurrent: Concurrent requests in fast mode
            request_delay: Pause between sequential requests (seconds)
            timeout: Per-request timeout (seconds)
            tz: Timezone whose calendar day keys the cache and dates queries
            today: Clock override for cache keys and query dates
        """
        self.api_key = api_key
        self.cache = SearchCache(cache_dir)
        self.monthly_limit = monthly_limit
        self.mode = mode
        self.max_concurrent = max_concurrent
        self.request_delay = request_delay
        self.timeout = timeout
        self.searches_used = 0
        self.tz = tz
        self._today = today or (lambda: cache_day(tz))
        self._session: aiohttp.ClientSession | None = None

    async def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON payload to Tavily and return the decoded response.

        Raises:
            SearchError: On non-200 status, transport errors or a non-JSON body
        """
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with self._session.post(url, json=payload, headers=headers) as resp:
                if resp.status == 401:
                    raise SearchError("Tavily API key invalid")
                if resp.status == 429:
                    raise SearchError("Tavily rate limit or quota exceeded")
                if resp.status != 200:
                    raise SearchError(f"Tavily API error: HTTP {resp.status}")
                try:
                    data = await resp.json()
                except (aiohttp.ContentTypeError, ValueError) as e:
                    raise SearchError(f"Tavily returned invalid JSON: {e}") from e
                if not isinstance(data, dict):
                    raise SearchError(f"Tavily returned unexpected {type(data).__name__} response")
                return data
        except asyncio.TimeoutError:
            raise SearchError(f"Tavily request timed out after {self.timeout}s")
        except aiohttp.ClientError as e:
            raise SearchError(f"Tavily request failed: {type(e).__name__}: {e}")

    async def search(
        self,
        query: str,
        *,
        pillar: str = "",
        search_depth: str = "advanced",
        max_results: int = 2,
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
        days: int = 30,
    ) -> QueryResult:
        """Run a single search query.

        Raises:
            SearchError: If the monthly limit is reached or the API fails
        """
        if self.searches_used >= self.monthly_limit:
            raise SearchError(f"Tavily monthly search limit reached ({self.monthly_limit})")

        payload: dict[str, Any] = {
            "query": query,
            "search_depth": search_depth,
            "max_results": max_results,
            "topic": "news" if days else "general",
            "days": days,
        }
        if include_domains:
            payload["include_domains"] = include_domains
        if exclude_domains:
            payload["exclude_domains"] = exclude_domains

        self.searches_used += 1
        data = await self._post(TAVILY_SEARCH_URL, payload)

        hits = [SearchHit.model_validate(item) for item in data.get("results") or []]
        logger.debug("Search complete | query='%s' results=%d", query[:60], len(hits))
        return QueryResult(
            query=query,
            pillar=pillar,
            results=hits,
            answer=data.get("answer"),
            search_depth=search_depth,
        )

    async def _pillar_query(self, pillar: str, query: str) -> QueryResult | None:
        try:
            return await self.search(
                query,
                pillar=pillar,
                max_results=2,
                include_domains=INCLUDE_DOMAINS,
                exclude_domains=EXCLUDE_DOMAINS,
                days=30,
            )
        except SearchError as e:
            logger.warning("Search failed | pillar=%s query='%s' error=%s", pillar, query[:60], e)
            return None

    async def _run_fast(self, queries: dict[str, list[str]]) -> ResearchData:
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def bounded(pillar: str, query: str) -> QueryResult | None:
            async with semaphore:
                return await self._pillar_query(pillar, query)

        pairs = [(pillar, q) for pillar, qs in queries.items() for q in qs]
        results = await asyncio.gather(*(bounded(p, q) for p, q in pairs))

        research: ResearchData = {pillar: [] for pillar in queries}
        for (pillar, _), result in zip(pairs, results):
            if result is not None:
                research[pillar].append(result)
        return research

    async def _run_advanced(self, queries: dict[str, list[str]]) -> ResearchData:
        research: ResearchData = {}
        for pillar, pillar_qs in queries.items():
            research[pillar] = []
            for query in pillar_qs:
                if self.searches_used >= self.monthly_limit:
                    logger.warning("Tavily monthly search limit reached | used=%d", self.searches_used)
                    return research
                result = await self._pillar_query(pillar, query)
                if result is not None:
                    research[pillar].append(result)
                await asyncio.sleep(self.request_delay)
        return research

    async def search_all_pillars(self) -> ResearchData:
        """Research every pillar, using today's cache when present.

        Returns:
            Mapping from pillar display name to its query results

        Raises:
            SearchError: If no query succeeded
        """
        today = self._today()
        cached = self.cache.load(today).get("pillars")
        if cached:
            research = {
                pillar: [QueryResult.model_validate(r) for r in results]
                for pillar, results in cached.items()
            }
            logger.info("Research loaded from cache | day=%s results=%d", today, count_results(research))
            return research

        queries = pillar_queries(today)
        total = sum(len(qs) for qs in queries.values())
        logger.info("Research started | mode=%s queries=%d used=%d/%d",
                    self.mode, total, self.searches_used, self.monthly_limit)

        if self.mode == "advanced":
            research = await self._run_advanced(queries)
        else:
            research = await self._run_fast(queries)

        succeeded = sum(len(results) for results in research.values())
        if succeeded == 0:
            raise SearchError(f"All {total} research queries failed")

        self.cache.update(
            today,
            "pillars",
            {p: [r.model_dump(mode="json") for r in results] for p, results in research.items()},
        )
        logger.info("Research complete | queries=%d/%d results=%d used=%d/%d",
                    succeeded, total, count_results(research), self.searches_used, self.monthly_limit)
        return research

    async def search_trending_topics(self) -> list[QueryResult]:
        """Search recent trending topics (last 7 days), cached per day."""
        today = self._today()
        cached = self.cache.load(today).get("trending")
        if cached:
            return [QueryResult.model_validate(r) for r in cached]

        results: list[QueryResult] = []
        for query in trending_queries(today):
            if self.searches_used >= self.monthly_limit:
                logger.warning("Tavily monthly search limit reached | used=%d", self.searches_used)
                break
            try:
                results.append(await self.search(query, pillar="Trending", max_results=5, days=7))
            except SearchError as e:
                logger.warning("Trending search failed | query='%s' error=%s", query, e)
            if self.mode == "advanced":
                await asyncio.sleep(self.request_delay)

        if results:
            self.cache.update(today, "trending", [r.model_dump(mode="json") for r in results])
        logger.info("Trending search complete | queries=%d", len(results))
        return results

    async def extract_content(self, urls: list[str] | str) -> list[dict[str, Any]]:
        """Extract full page content for ``urls`` (failures are skipped)."""
        if isinstance(urls, str):
            urls = [urls]
        extracted = []
        for url in urls:
            try:
                data = await self._post(TAVILY_EXTRACT_URL, {"urls": [url]})
            except SearchError as e:
                logger.warning("Extract failed | url=%s error=%s", url, e)
                continue
            first = (data.get("results") or [{}])[0]
            extracted.append({
                "url": url,
                "title": first.get("title"),
                "content": first.get("raw_content") or first.get("content"),
                "extracted_at": datetime.now(timezone.utc).isoformat(),
            })
        return extracted

    def usage_stats(self) -> dict[str, Any]:
        """Searches spent by this process against the monthly limit."""
        return {
            "searches_used": self.searches_used,
            "monthly_limit": self.monthly_limit,
            "remaining_searches": self.monthly_limit - self.searches_used,
            "usage_percentage": round(self.searches_used / max(self.monthly_limit, 1) * 100, 1),
        }

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
