"""Multi-page knowledge base build.

Crawls one site breadth-first (same host only, bounded page count), extracts
page and PDF text and splits it into overlapping passages written to a JSON
file. Unlike the live artifact, this corpus is built once and indexed as
static reference material.
"""

import asyncio
import hashlib
import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import urldefrag, urljoin, urlparse

import aiohttp
from bs4 import BeautifulSoup

from ..core.config import Settings
from ..core.errors import FetchFailed
from .chunker import chunk_text
from .extract import html_to_text, pdf_to_text

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 200


def short_hash(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:12]


def normalize_url(href: Optional[str], base_url: str) -> Optional[str]:
    """Absolute form of ``href`` without its fragment, or None for unusable links."""
    if not href:
        return None
    try:
        absolute = urljoin(base_url, href.strip())
    except ValueError:
        return None
    url, _fragment = urldefrag(absolute)
    if urlparse(url).scheme not in ("http", "https"):
        return None
    return url


def is_same_host(url: str, root_url: str) -> bool:
    return urlparse(url).netloc == urlparse(root_url).netloc


def is_pdf_link(url: str) -> bool:
    lower = url.lower()
    return "download.php" in lower or lower.endswith(".pdf")


def extract_links(html: str, page_url: str, root_url: str) -> Tuple[List[str], List[str]]:
    """Return ``(page_links, pdf_links)`` on the same host, deduplicated in order."""
    soup = BeautifulSoup(html, "html.parser")
    pages: Dict[str, None] = {}
    pdfs: Dict[str, None] = {}
    for anchor in soup.find_all("a", href=True):
        url = normalize_url(anchor["href"], page_url)
        if not url or not is_same_host(url, root_url):
            continue
        if is_pdf_link(url):
            pdfs[url] = None
        else:
            pages[url] = None
    return list(pages), list(pdfs)


@dataclass(frozen=True)
class KnowledgeChunk:
    id: str
    source: str
    url: str
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "source": self.source, "url": self.url, "text": self.text}


@dataclass
class CrawlResult:
    pages: List[Tuple[str, str]] = field(default_factory=list)
    pdf_links: List[str] = field(default_factory=list)
    fetched: int = 0
    errors: List[str] = field(default_factory=list)


class KnowledgeBaseBuilder:
    """Builds the static multi-page knowledge base for one site."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.root_url = settings.kb_root_url
        self.session: Optional[aiohttp.ClientSession] = None

    def start_urls(self) -> List[str]:
        return [urljoin(self.root_url + "/", path.lstrip("/")) for path in self.settings.kb_start_paths]

    async def run(self, output_path: Optional[Path] = None) -> Dict[str, Any]:
        """Crawl, chunk and write the knowledge base. Returns a summary."""
        output_path = output_path or self.settings.project_root / self.settings.kb_output_path
        kb = await self.build()
        self.write(kb, output_path)
        return {
            "output_path": str(output_path),
            "generated_at": kb["generated_at"],
            "chunks": len(kb["chunks"]),
        }

    async def build(self) -> Dict[str, Any]:
        timeout = aiohttp.ClientTimeout(total=self.settings.scraper_timeout)
        headers = {"User-Agent": self.settings.kb_user_agent}
        async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
            self.session = session
            try:
                crawl = await self.crawl()
                chunks = self.chunk_pages(crawl.pages)
                for pdf_url in crawl.pdf_links[: self.settings.kb_max_pdfs]:
                    text = await self._read_pdf(pdf_url)
                    if text:
                        chunks.extend(self._chunks_for("pdf", pdf_url, text))
            finally:
                self.session = None

        logger.info(
            f"KB built: {len(chunks)} chunks from {len(crawl.pages)} pages "
            f"and up to {self.settings.kb_max_pdfs} PDFs"
        )
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "chunks": [c.to_dict() for c in chunks],
        }

    async def crawl(self) -> CrawlResult:
        """Breadth-first crawl bounded by ``kb_max_pages`` fetches."""
        result = CrawlResult()
        queue = deque(self.start_urls())
        seen: Set[str] = set()
        pdf_links: Dict[str, None] = {}

        while queue and result.fetched < self.settings.kb_max_pages:
            url = queue.popleft()
            if url in seen:
                continue
            seen.add(url)

            try:
                html = await self._fetch_html(url)
            except (FetchFailed, aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning(f"Skipping {url}: {e}")
                result.errors.append(f"{url}: {e}")
                continue
            finally:
                result.fetched += 1

            if html is None:
                continue

            text = html_to_text(html)
            if len(text) > MIN_TEXT_LENGTH:
                result.pages.append((url, text))

            page_links, pdfs = extract_links(html, url, self.root_url)
            for pdf in pdfs:
                pdf_links[pdf] = None
            queue.extend(link for link in page_links if link not in seen)

        result.pdf_links = list(pdf_links)
        logger.info(
            f"Crawled {result.fetched} URLs: {len(result.pages)} pages kept, "
            f"{len(result.pdf_links)} PDF links"
        )
        return result

    def chunk_pages(self, pages: List[Tuple[str, str]]) -> List[KnowledgeChunk]:
        chunks = []
        for url, text in pages:
            chunks.extend(self._chunks_for("web", url, text))
        return chunks

    def write(self, kb: Dict[str, Any], path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(kb, f, indent=2, ensure_ascii=False)
        logger.info(f"Saved knowledge base: {path}")
        return path

    def _chunks_for(self, kind: str, url: str, text: str) -> List[KnowledgeChunk]:
        if kind == "pdf":
            source = f"Dokument (PDF) - {self.settings.kb_site_label}"
        else:
            relative = url.replace(self.root_url, "", 1) or "/"
            source = f"{self.settings.kb_site_label} - {relative}"

        parts = chunk_text(text, self.settings.chunk_size, self.settings.chunk_overlap)
        return [
            KnowledgeChunk(id=f"{kind}-{short_hash(url)}-{i}", source=source, url=url, text=part)
            for i, part in enumerate(parts, start=1)
        ]

    async def _fetch(self, url: str) -> Tuple[str, bytes]:
        async with self.session.get(url) as response:
            if not 200 <= response.status < 300:
                raise FetchFailed(response.status, url)
            return response.headers.get("Content-Type", ""), await response.read()

    async def _fetch_html(self, url: str) -> Optional[str]:
        content_type, body = await self._fetch(url)
        if "text/html" not in content_type:
            return None
        return body.decode("utf-8", errors="replace")

    async def _read_pdf(self, url: str) -> str:
        try:
            _, body = await self._fetch(url)
        except (FetchFailed, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Skipping PDF {url}: {e}")
            return ""

        text = pdf_to_text(body)
        if len(text) < MIN_TEXT_LENGTH:
            return ""
        return text
