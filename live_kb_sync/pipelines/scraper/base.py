"""Base classes for the site scraping stage."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

import aiohttp

from ...core.config import Settings
from ...core.errors import FetchFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScrapedItem:
    """One entry of a listing page (news item, broadcast notice, calendar event)."""

    title: str
    date: str = ""
    description: str = ""
    url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "date": self.date,
            "description": self.description,
            "url": self.url,
        }


@dataclass(frozen=True)
class ListingSpec:
    """Where a listing lives on the site and how to read its items."""

    key: str
    title: str
    path: str
    limit: int
    link_selector: str = "h3.title a"
    item_selector: str = ".event.readable_item"


@dataclass(frozen=True)
class ListingResult:
    """Items scraped from one listing page, or the error that emptied it."""

    spec: ListingSpec
    url: str
    items: Tuple[ScrapedItem, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Artifact:
    """The generated live document for one refresh cycle."""

    filename: str
    content: str
    source_url: str
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    item_counts: Mapping[str, int] = field(default_factory=dict)
    notice_count: int = 0
    errors: Tuple[str, ...] = ()

    def __post_init__(self):
        # Freeze the counts so downstream stages cannot mutate them
        object.__setattr__(self, "item_counts", MappingProxyType(dict(self.item_counts)))

    @property
    def data(self) -> bytes:
        return self.content.encode("utf-8")

    def summary(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "source_url": self.source_url,
            "generated_at": self.generated_at.isoformat(),
            "item_counts": dict(self.item_counts),
            "notice_count": self.notice_count,
            "errors": list(self.errors),
            "size_bytes": len(self.data),
        }


class BaseScraper(ABC):
    """Abstract base class for site scrapers.

    Subclasses open a session with ``client_session()`` and read pages with
    ``fetch_html()``; a non-2xx answer raises ``FetchFailed`` for that page only.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.session: Optional[aiohttp.ClientSession] = None
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def scrape(self) -> Artifact:
        """Scrape the source into an artifact. Must be implemented by subclasses."""
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """Get the name of this scraper's source."""
        pass

    def request_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.settings.scraper_user_agent,
            "Accept-Language": self.settings.scraper_accept_language,
        }

    def client_session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(total=self.settings.scraper_timeout)
        connector = aiohttp.TCPConnector(limit=self.settings.scraper_max_concurrent_requests)
        return aiohttp.ClientSession(
            timeout=timeout, connector=connector, headers=self.request_headers()
        )

    async def fetch_html(self, url: str) -> str:
        """Fetch a page body, raising FetchFailed on any non-2xx status.

        Bytes that do not match the declared charset are replaced, never raised.
        """
        if self.session is None:
            raise RuntimeError("fetch_html called outside of an open client session")

        async with self.session.get(url) as response:
            if not 200 <= response.status < 300:
                self.logger.warning(f"HTTP {response.status} for {url}")
                raise FetchFailed(response.status, url)
            return await response.text(errors="replace")
