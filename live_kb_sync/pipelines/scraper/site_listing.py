"""Scraper for the municipal site listings (news, broadcasts, events) and homepage notices."""

import asyncio
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

import aiohttp
from bs4 import BeautifulSoup
from bs4.element import Comment, Tag

from ...core.config import Settings
from ...core.errors import FetchFailed, ScrapeFailed
from ..normalize import clean_text, normalize_document, strip_trailing_punctuation
from .base import Artifact, BaseScraper, ListingResult, ListingSpec, ScrapedItem

DEFAULT_LISTINGS: Tuple[ListingSpec, ...] = (
    ListingSpec(key="news", title="AKTUALITY", path="/aktuality-1/", limit=20),
    ListingSpec(
        key="broadcasts",
        title="HLÁŠENÍ ROZHLASU",
        path="/hlaseni-rozhlasu/",
        limit=20,
        link_selector="a",
    ),
    ListingSpec(key="events", title="KALENDÁŘ AKCÍ", path="/kalendar-akci/", limit=10),
)

# Closures, restrictions, extraordinary and holiday opening hours
NOTICE_KEYWORDS = re.compile(r"(uzavřen|mimořádn|omezen|dovolen)", re.IGNORECASE)
NOTICE_MIN_LENGTH = 15
NOTICE_MAX_LENGTH = 200
MAX_NOTICES = 3

SECTION_SEPARATOR = "─" * 44
NOT_FOUND = "- (nenalezeno)"


def absolute_url(href: Optional[str], base_url: str) -> str:
    """Resolve ``href`` against the site origin and drop glued punctuation."""
    if not href or not href.strip():
        return ""
    return strip_trailing_punctuation(urljoin(base_url.rstrip("/") + "/", href.strip()))


def parse_listing_items(soup: BeautifulSoup, spec: ListingSpec, base_url: str) -> List[ScrapedItem]:
    """Parse every item of a listing page in document order.

    Items without a title or without a detail link are skipped.
    """
    items = []
    for block in soup.select(spec.item_selector):
        title_elem = block.select_one("h3.title")
        title = clean_text(title_elem.get_text()) if title_elem else ""

        link = block.select_one(spec.link_selector)
        url = absolute_url(link.get("href") if link else None, base_url)

        if not title or not url:
            continue

        date_elem = block.select_one(".publication_date")
        perex_elem = block.select_one(".perex")
        items.append(
            ScrapedItem(
                title=title,
                date=clean_text(date_elem.get_text()) if date_elem else "",
                description=clean_text(perex_elem.get_text()) if perex_elem else "",
                url=url,
            )
        )
    return items


def extract_listing_items(
    soup: BeautifulSoup, spec: ListingSpec, base_url: str
) -> List[ScrapedItem]:
    """Parse a listing page and keep the first ``spec.limit`` items."""
    return parse_listing_items(soup, spec, base_url)[: spec.limit]


def _own_text(element: Tag) -> str:
    """Text directly inside ``element``, ignoring nested tags."""
    parts = [
        str(s) for s in element.find_all(string=True, recursive=False) if not isinstance(s, Comment)
    ]
    return clean_text("".join(parts))


def extract_homepage_notices(
    soup: BeautifulSoup,
    max_notices: int = MAX_NOTICES,
    min_length: int = NOTICE_MIN_LENGTH,
    max_length: int = NOTICE_MAX_LENGTH,
) -> List[str]:
    """Pick short operational notices (closures, restricted hours) from the homepage."""
    notices = []
    for element in soup.find_all(["p", "li"]):
        text = _own_text(element)
        if not text or not min_length <= len(text) <= max_length:
            continue
        if NOTICE_KEYWORDS.search(text):
            notices.append(text)

    # Remove duplicates while preserving order
    return list(dict.fromkeys(notices))[:max_notices]


def collect_links(results: Iterable[ListingResult]) -> List[str]:
    """All detail links across listings, deduplicated in first-seen order."""
    seen = set()
    links = []
    for result in results:
        for item in result.items:
            if item.url and item.url not in seen:
                seen.add(item.url)
                links.append(item.url)
    return links


def format_item_list(items: Sequence[ScrapedItem]) -> str:
    if not items:
        return NOT_FOUND

    lines = []
    for item in items:
        line = f"- {item.title}"
        if item.date:
            line += f" ({item.date})"
        if item.description:
            line += f"\n  - Popis: {item.description}"
        if item.url:
            line += f"\n  - Odkaz: {item.url}"
        lines.append(line)
    return "\n".join(lines)


def render_live_document(
    site_title: str,
    base_url: str,
    generated_at: datetime,
    notices: Sequence[str],
    listings: Sequence[ListingResult],
) -> str:
    """Render the fixed section layout of the live document."""
    sections = [
        "\n".join(
            [
                site_title,
                f"Vygenerováno: {generated_at.isoformat()}",
                f"Zdroj: {base_url}",
                "",
                "POZNÁMKA:",
                "- Automaticky generovaný obsah (pravidelný update).",
                "- Při rozporu má přednost soubor 00_CORE (primární ověřené informace).",
            ]
        ),
        "\n".join(
            [
                "=== PROVOZNÍ UPOZORNĚNÍ / HOMEPAGE ===",
                "\n".join(f"- {n}" for n in notices) if notices else NOT_FOUND,
            ]
        ),
    ]

    for listing in listings:
        sections.append(
            "\n".join(
                [
                    f"=== {listing.spec.title} ===",
                    f"URL: {listing.url}",
                    f"Počet položek: {len(listing.items)}",
                    "",
                    format_item_list(listing.items),
                ]
            )
        )

    return f"\n\n{SECTION_SEPARATOR}\n\n".join(sections)


class LiveSiteScraper(BaseScraper):
    """Renders the current state of the municipal site into the live artifact."""

    site_title = "OBEC CHOMUTICE – LIVE DATA"

    def __init__(self, settings: Settings, listings: Sequence[ListingSpec] = DEFAULT_LISTINGS):
        super().__init__(settings)
        self.base_url = settings.site_base_url
        self.listings = tuple(listings)

    def get_source_name(self) -> str:
        return "live_site"

    async def scrape(self) -> Artifact:
        """Scrape homepage notices and every listing into one artifact."""
        listings = self.listings[: self.settings.scraper_max_pages]
        if len(listings) < len(self.listings):
            self.logger.warning(
                f"Listing count {len(self.listings)} exceeds page cap "
                f"{self.settings.scraper_max_pages}; extra listings skipped"
            )

        async with self.client_session() as session:
            self.session = session
            try:
                notices, homepage_error = await self._scrape_homepage()

                semaphore = asyncio.Semaphore(self.settings.scraper_max_concurrent_requests)
                results = await asyncio.gather(
                    *(self._scrape_listing_with_semaphore(semaphore, spec) for spec in listings)
                )
            finally:
                self.session = None

        errors = [r.error for r in results if r.error]
        if homepage_error:
            errors.insert(0, homepage_error)
        if homepage_error and not any(r.ok for r in results):
            raise ScrapeFailed(f"Every page of {self.base_url} failed: {'; '.join(errors)}")

        generated_at = datetime.now(timezone.utc)
        content = render_live_document(
            self.site_title, self.base_url, generated_at, notices, results
        )

        artifact = Artifact(
            filename=self.settings.live_filename,
            content=normalize_document(content, self.settings.max_artifact_chars),
            source_url=self.base_url,
            generated_at=generated_at,
            item_counts={r.spec.key: len(r.items) for r in results},
            notice_count=len(notices),
            errors=tuple(errors),
        )

        self.logger.info(
            f"Scraped {self.base_url}: {len(notices)} notices, "
            f"{dict(artifact.item_counts)} items, {len(collect_links(results))} unique links"
        )
        return artifact

    async def _scrape_homepage(self) -> Tuple[List[str], Optional[str]]:
        url = f"{self.base_url}/"
        try:
            html = await self.fetch_html(url)
        except (FetchFailed, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Failed to scrape homepage {url}: {e}")
            return [], f"{url}: {e}"

        return extract_homepage_notices(BeautifulSoup(html, "html.parser")), None

    async def _scrape_listing_with_semaphore(
        self, semaphore: asyncio.Semaphore, spec: ListingSpec
    ) -> ListingResult:
        async with semaphore:
            return await self._scrape_listing(spec)

    async def _scrape_listing(self, spec: ListingSpec) -> ListingResult:
        url = f"{self.base_url}{spec.path}"
        try:
            html = await self.fetch_html(url)
        except (FetchFailed, aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Failed to scrape listing {spec.key} ({url}): {e}")
            return ListingResult(spec=spec, url=url, error=f"{url}: {e}")

        soup = BeautifulSoup(html, "html.parser")
        items = extract_listing_items(soup, spec, self.base_url)
        self.logger.debug(f"Listing {spec.key}: {len(items)} items from {url}")
        return ListingResult(spec=spec, url=url, items=tuple(items))
