"""HTML fetching and extraction for newsletter pages.

fetch_text:
    GET a URL with the shared User-Agent, retrying once without certificate
    verification on SSL errors. Returns None on any failure.

clean_content:
    Strip markup from feed/page content and cap its length.

extract_items:
    Pull article-like blocks (title, link, summary) out of an HTML page
    using a small subset of CSS selectors: tag names and .class names,
    comma separated.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from html.parser import HTMLParser
from io import StringIO
from urllib.parse import urljoin

import aiohttp

from tools.utils import USER_AGENT, create_ssl_context

logger = logging.getLogger(__name__)

DEFAULT_ITEM_SELECTOR = "article, .post, .entry"
MAX_CONTENT_LENGTH = 1000

_VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
})
_TITLE_TAGS = frozenset({"h1", "h2", "h3"})
_SUMMARY_CLASSES = frozenset({"summary", "excerpt", "news-article__summary"})


class _HTMLTextExtractor(HTMLParser):
    """Extract readable text from HTML, skipping non-content tags."""

    SKIP_TAGS = frozenset({"script", "style", "head", "meta", "link"})

    def __init__(self):
        super().__init__()
        self._buffer = StringIO()
        self._skip_depth = 0

    def handle_starttag(self, tag, attrs):
        if tag in self.SKIP_TAGS:
            self._skip_depth += 1

    def handle_endtag(self, tag):
        if tag in self.SKIP_TAGS and self._skip_depth > 0:
            self._skip_depth -= 1

    def handle_data(self, data):
        if self._skip_depth == 0:
            self._buffer.write(data)
            self._buffer.write(" ")

    def get_text(self) -> str:
        return self._buffer.getvalue()


def clean_content(text: str, limit: int = MAX_CONTENT_LENGTH) -> str:
    """Strip tags, collapse whitespace and truncate to ``limit`` chars."""
    if not text:
        return ""
    parser = _HTMLTextExtractor()
    try:
        parser.feed(text)
        parser.close()
        plain = parser.get_text()
    except Exception:
        plain = re.sub(r"<[^>]*>", " ", text)
    return re.sub(r"\s+", " ", plain).strip()[:limit]


@dataclass
class PageItem:
    """An article-like block found on an HTML page."""

    title: str
    url: str
    summary: str


def _parse_selector(selector: str) -> list[tuple[str | None, str | None]]:
    """Parse 'article, .post, div.entry' into (tag, class) pairs."""
    matchers = []
    for part in selector.split(","):
        part = part.strip()
        if not part:
            continue
        tag, _, cls = part.partition(".")
        matchers.append((tag or None, cls or None))
    return matchers


class _ItemExtractor(HTMLParser):
    """Collect title/link/summary from blocks matching a selector."""

    def __init__(self, selector: str):
        super().__init__(convert_charrefs=True)
        self._matchers = _parse_selector(selector)
        self.items: list[dict] = []
        self._current: dict | None = None
        self._depth = 0
        self._field: str | None = None
        self._field_depth = 0

    def _matches(self, tag: str, classes: list[str]) -> bool:
        for want_tag, want_cls in self._matchers:
            if want_tag and want_tag != tag:
                continue
            if want_cls and want_cls not in classes:
                continue
            return True
        return False

    def handle_starttag(self, tag, attrs):
        attr_map = dict(attrs)
        classes = (attr_map.get("class") or "").split()

        if self._current is None:
            if self._matches(tag, classes):
                self._current = {"title": [], "link": None, "summary": [],
                                 "title_done": False, "summary_done": False}
                self._depth = 1
            return

        if tag in _VOID_TAGS:
            return
        self._depth += 1

        item = self._current
        if tag == "a" and item["link"] is None and attr_map.get("href"):
            item["link"] = attr_map["href"]

        if self._field is not None:
            return
        if not item["title_done"] and (tag in _TITLE_TAGS or "title" in classes):
            self._field, self._field_depth = "title", self._depth
        elif not item["summary_done"] and (tag == "p" or _SUMMARY_CLASSES & set(classes)):
            self._field, self._field_depth = "summary", self._depth

    def handle_endtag(self, tag):
        if self._current is None or tag in _VOID_TAGS:
            return
        if self._field is not None and self._depth == self._field_depth:
            self._current[f"{self._field}_done"] = True
            self._field = None
        self._depth -= 1
        if self._depth <= 0:
            self._finish()

    def handle_data(self, data):
        if self._current is not None and self._field is not None:
            self._current[self._field].append(data)

    def _finish(self) -> None:
        if self._current is not None:
            self.items.append(self._current)
        self._current = None
        self._field = None
        self._depth = 0

    def close(self):
        super().close()
        self._finish()


def extract_items(
    html: str,
    base_url: str,
    selector: str = DEFAULT_ITEM_SELECTOR,
    limit: int = 15,
) -> list[PageItem]:
    """Extract up to ``limit`` items that have both a title and a link.

    Relative links are resolved against ``base_url``.
    """
    parser = _ItemExtractor(selector or DEFAULT_ITEM_SELECTOR)
    parser.feed(html)
    parser.close()

    items = []
    for raw in parser.items[:limit]:
        title = re.sub(r"\s+", " ", "".join(raw["title"])).strip()
        link = raw["link"]
        if not title or not link:
            continue
        items.append(PageItem(
            title=title,
            url=link if link.startswith("http") else urljoin(base_url, link),
            summary=clean_content("".join(raw["summary"])),
        ))
    return items


async def fetch_text(
    session: aiohttp.ClientSession,
    url: str,
    timeout: int = 30,
    headers: dict[str, str] | None = None,
    verify_ssl: bool = True,
) -> str | None:
    """Fetch a URL as text, or None on any error.

    On SSL certificate errors, retries once without verification.
    """
    try:
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=timeout),
            headers=headers or {"User-Agent": USER_AGENT},
            ssl=create_ssl_context(verify_ssl),
        ) as resp:
            if resp.status != 200:
                if resp.status >= 500:
                    logger.warning("Fetch %s: server error HTTP %d", url, resp.status)
                else:
                    logger.debug("Fetch %s: HTTP %d", url, resp.status)
                return None
            return await resp.text()
    except aiohttp.ClientSSLError as e:
        if verify_ssl:
            logger.debug("Fetch %s: SSL error, retrying without verification", url)
            return await fetch_text(session, url, timeout, headers, verify_ssl=False)
        logger.warning("Fetch %s: SSL verification failed after retry: %s", url, e)
        return None
    except asyncio.TimeoutError:
        logger.warning("Fetch %s: request timed out after %ds", url, timeout)
        return None
    except aiohttp.ClientError as e:
        logger.warning("Fetch %s: %s: %s", url, type(e).__name__, e)
        return None
