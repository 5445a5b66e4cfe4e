"""Builtin filters available by name in every FilterRegistry."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urljoin

import html2text
from bs4 import BeautifulSoup, Tag

from .base import Document, FilterOutcome

logger = logging.getLogger(__name__)


def _params(params: Any) -> dict[str, Any]:
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise TypeError(f"Filter params must be a mapping, got {type(params).__name__}")
    return params


def _soup(document: Document) -> BeautifulSoup:
    return BeautifulSoup(document.text, "html.parser")


def _require_str(document: Document, name: str) -> str:
    if not isinstance(document.content, str):
        raise TypeError(f"'{name}' needs text content, got {type(document.content).__name__}")
    return document.content


def uppercase(document: Document, params: Any) -> FilterOutcome:
    """Replace the document with its upper-cased text."""
    document.content = _require_str(document, "uppercase").upper()
    return FilterOutcome.parsed("uppercase", document.content)


def lowercase(document: Document, params: Any) -> FilterOutcome:
    """Replace the document with its lower-cased text."""
    document.content = _require_str(document, "lowercase").lower()
    return FilterOutcome.parsed("lowercase", document.content)


def strip(document: Document, params: Any) -> FilterOutcome:
    """Strip surrounding whitespace, or the characters given as params['chars']."""
    chars = _params(params).get("chars")
    document.content = _require_str(document, "strip").strip(chars)
    return FilterOutcome.parsed("strip", document.content)


def text(document: Document, params: Any) -> FilterOutcome:
    """Visible text of an HTML document."""
    separator = _params(params).get("separator", "\n")
    soup = _soup(document)
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return FilterOutcome.parsed("text", soup.get_text(separator=separator, strip=True))


def title(document: Document, params: Any) -> FilterOutcome:
    """Page title: og:title, then <title>, then the first <h1>."""
    soup = _soup(document)

    og_title = soup.find("meta", property="og:title")
    if isinstance(og_title, Tag) and og_title.get("content"):
        return FilterOutcome.parsed("title", str(og_title["content"]).strip())

    title_tag = soup.find("title")
    if isinstance(title_tag, Tag) and title_tag.string:
        return FilterOutcome.parsed("title", title_tag.string.strip())

    h1 = soup.find("h1")
    if isinstance(h1, Tag):
        return FilterOutcome.parsed("title", h1.get_text(strip=True))

    return FilterOutcome.skip()


def links(document: Document, params: Any) -> FilterOutcome:
    """
    Unique href targets of <a> tags, in document order.

    Relative links are made absolute against params['base'], or against the
    locator when it is a URL.
    """
    base: Optional[str] = _params(params).get("base")
    if base is None and document.locator and "://" in document.locator:
        base = document.locator

    seen: dict[str, None] = {}
    for anchor in _soup(document).find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if not href or href.startswith(("#", "javascript:", "mailto:")):
            continue
        seen.setdefault(urljoin(base, href) if base else href, None)

    return FilterOutcome.parsed("links", list(seen))


def select(document: Document, params: Any) -> FilterOutcome:
    """Text (or params['attr'] values) of elements matching params['selector']."""
    options = _params(params)
    selector = options.get("selector")
    if not selector:
        raise ValueError("'select' needs a 'selector' parameter")

    attr = options.get("attr")
    matches = _soup(document).select(selector)
    if attr:
        values = [str(el.get(attr)) for el in matches if el.get(attr) is not None]
    else:
        values = [el.get_text(strip=True) for el in matches]

    if not values:
        return FilterOutcome.skip()
    return FilterOutcome.parsed(options.get("type", "select"), values)


def markdown(document: Document, params: Any) -> FilterOutcome:
    """Convert HTML to Markdown with html2text and keep it as the document."""
    options = _params(params)
    converter = html2text.HTML2Text()
    converter.body_width = 0
    converter.ignore_images = bool(options.get("ignore_images", False))
    converter.ignore_links = bool(options.get("ignore_links", False))
    converter.unicode_snob = True
    if document.locator and "://" in document.locator:
        converter.baseurl = document.locator

    converted = converter.handle(document.text)
    converted = re.sub(r"\n{3,}", "\n\n", converted).strip() + "\n"
    document.content = converted
    return FilterOutcome.parsed("markdown", converted)


def match(document: Document, params: Any) -> FilterOutcome:
    """All matches of params['pattern']; params['ignore_case'] for case-insensitive."""
    options = _params(params)
    pattern = options.get("pattern")
    if not pattern:
        raise ValueError("'match' needs a 'pattern' parameter")

    flags = re.IGNORECASE if options.get("ignore_case") else 0
    found = re.findall(pattern, document.text, flags)
    if not found:
        return FilterOutcome.skip()
    return FilterOutcome.parsed(options.get("type", "match"), found)


def files(document: Document, params: Any) -> FilterOutcome:
    """Files under a directory document, relative to it and sorted."""
    pattern = _params(params).get("pattern", "**/*")
    root = Path(document.text)
    if not root.is_dir():
        raise ValueError(f"'files' needs a directory document, got {document.text[:80]!r}")

    found = sorted(p.relative_to(root).as_posix() for p in root.glob(pattern) if p.is_file())
    logger.debug(f"Found {len(found)} files under {root}")
    return FilterOutcome.parsed("files", found)


def stop(document: Document, params: Any) -> FilterOutcome:
    """End the chain here without a result."""
    return FilterOutcome.terminal()


# name -> (filter, terminal by design)
BUILTIN_FILTERS = {
    "uppercase": (uppercase, False),
    "lowercase": (lowercase, False),
    "strip": (strip, False),
    "text": (text, False),
    "title": (title, False),
    "links": (links, False),
    "select": (select, False),
    "markdown": (markdown, False),
    "match": (match, False),
    "files": (files, False),
    "stop": (stop, True),
}
