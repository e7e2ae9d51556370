"""Document-to-text adapters for HTML pages and PDF files."""

import io
import logging

import pypdf
from bs4 import BeautifulSoup
from pypdf.errors import PyPdfError

from .normalize import clean_block

logger = logging.getLogger(__name__)

BOILERPLATE_TAGS = ["script", "style", "noscript", "svg"]


def html_to_text(html: str, max_chars: int = 40_000) -> str:
    """Extract a page's title, first heading and main text."""
    soup = BeautifulSoup(html, "html.parser")
    for unwanted in soup.find_all(BOILERPLATE_TAGS):
        unwanted.decompose()

    title_elem = soup.find("title")
    h1_elem = soup.find("h1")
    title = clean_block(title_elem.get_text()) if title_elem else ""
    h1 = clean_block(h1_elem.get_text()) if h1_elem else ""

    main_elem = soup.find("main") or soup.body or soup
    main_text = clean_block(main_elem.get_text(separator="\n"))

    header = ""
    if title:
        header += f"Název: {title}\n"
    if h1:
        header += f"Nadpis: {h1}\n"

    return clean_block(f"{header}\n{main_text}")[:max_chars]


def pdf_to_text(content: bytes, max_chars: int = 80_000) -> str:
    """Extract the text layer of a PDF. Returns an empty string for unreadable files."""
    # pypdf reports benign encoding issues at ERROR level
    pypdf_logger = logging.getLogger("pypdf")
    original_level = pypdf_logger.level
    pypdf_logger.setLevel(logging.CRITICAL)
    try:
        reader = pypdf.PdfReader(io.BytesIO(content))
        parts = []
        for page in reader.pages:
            text = page.extract_text()
            if text:
                parts.append(text)
    except PyPdfError as e:
        logger.debug(f"Unreadable PDF: {e}")
        return ""
    except Exception as e:
        # Malformed files surface as KeyError, TypeError, RecursionError and the like
        logger.warning(f"Unreadable PDF: {type(e).__name__}: {e}")
        return ""
    finally:
        pypdf_logger.setLevel(original_level)

    return clean_block("\n\n".join(parts))[:max_chars]
