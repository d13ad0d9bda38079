from __future__ import annotations

import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup

_DROP_TAGS = ("script", "style", "noscript", "svg", "iframe")


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except Exception:
        return False


def normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


def truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars]


def html_to_text(raw_html: str, *, max_chars: int = 0) -> str:
    """Visible page text with scripts/styles removed, whitespace collapsed.

    Links that look like contact channels (mailto:/tel:) are kept inline so
    contact extraction can see addresses that only live in href attributes.
    """
    soup = BeautifulSoup(raw_html or "", "html.parser")
    for tag in soup(_DROP_TAGS):
        tag.decompose()
    for link in soup.find_all("a", href=True):
        href = str(link["href"])
        if href.startswith(("mailto:", "tel:")) and href not in link.get_text():
            link.append(f" ({href})")
    return truncate(normalize_text(soup.get_text("\n")), max_chars)

