# chatbot/websearch.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple
import asyncio
import logging
import re

import requests

log = logging.getLogger("chatbot.websearch")

CSE_URL = "https://www.googleapis.com/customsearch/v1"

# Rate-My-Professors result titles we know how to read, e.g.
#   "Alice Chen at De Anza College | Rate My Professors"
#   "Professor Ratings: Alice Chen - De Anza College"
RMP_TITLE_PATTERNS = [
    re.compile(r"^(.+?)\s+at\s+(.+?)\s+\|\s+Rate My Professors$", re.I),
    re.compile(r"^Professor Ratings?:\s*(.+?)\s*[–-]\s*(.+)$", re.I),
    re.compile(r"^(.+?)\s*[–-]\s*(.+?)\s*\|\s*Rate My Professors$", re.I),
]

# naive "Firstname Lastname" run inside a school-site title
NAME_LIKE_PATTERN = re.compile(r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)")

SCHOOL_STOPWORDS = re.compile(r"\b(community|college|university|dept|department|at)\b")


@dataclass
class SearchResult:
    title: str
    link: str
    snippet: str = ""
    display_link: str = ""


# ---------------------------
# Title heuristics (pure)
# ---------------------------


def norm_school(name: str) -> str:
    s = SCHOOL_STOPWORDS.sub(" ", (name or "").lower())
    s = re.sub(r"[^a-z0-9 ]+", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def looks_like_same_school(a: str, b: str) -> bool:
    na, nb = norm_school(a), norm_school(b)
    return bool(na and nb and (na in nb or nb in na))


def extract_name_school(title: str) -> Optional[Tuple[str, str]]:
    if not title:
        return None
    for pattern in RMP_TITLE_PATTERNS:
        m = pattern.match(title)
        if m:
            return m.group(1).strip(), m.group(2).strip()
    return None


def names_in_title(title: str) -> List[str]:
    return [n.strip() for n in NAME_LIKE_PATTERN.findall(title or "") if len(n.split()) >= 2]


def school_host(website: str, default: str) -> str:
    host = re.sub(r"^https?://", "", website or "")
    host = re.sub(r"/.*$", "", host)
    return host or default


# ---------------------------
# Google Custom Search client
# ---------------------------


class WebSearchClient:
    """
    Google Custom Search JSON API. Every failure (missing credentials, HTTP
    error, bad JSON, network trouble) turns into an empty result list.
    """

    def __init__(self, api_key: Optional[str], cx: Optional[str], timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.cx = cx
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.cx)

    def _search_sync(self, query: str, site: Optional[str], num: int) -> List[SearchResult]:
        if not self.enabled:
            log.warning("webSearch disabled: missing GOOGLE_CSE_KEY or GOOGLE_CSE_CX")
            return []

        q = f"site:{site} {query}" if site else query
        params = {"key": self.api_key, "cx": self.cx, "q": q, "num": max(1, min(int(num), 10))}
        try:
            response = requests.get(CSE_URL, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            log.warning("webSearch request failed for %r (site=%s): %s", query, site, exc)
            return []

        if not response.ok:
            log.warning("webSearch HTTP %s for %r (site=%s)", response.status_code, query, site)
            return []

        try:
            data = response.json()
        except ValueError as exc:
            log.warning("webSearch returned invalid JSON for %r: %s", query, exc)
            return []

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            log.warning("webSearch returned no items for %r (site=%s); check the CSE config", query, site)
            return []

        return [
            SearchResult(
                title=str(it.get("title") or ""),
                link=str(it.get("link") or ""),
                snippet=str(it.get("snippet") or ""),
                display_link=str(it.get("displayLink") or ""),
            )
            for it in items
            if isinstance(it, dict)
        ]

    async def search(self, query: str, site: Optional[str] = None, num: int = 5) -> List[SearchResult]:
        # requests is blocking; keep the event loop free for other chats
        return await asyncio.to_thread(self._search_sync, query, site, num)
