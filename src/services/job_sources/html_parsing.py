"""
HTML extraction helpers shared by the scraping adapters.

Selectors are given as ordered fallbacks: the first selector that yields a
non-empty value wins, so markup changes degrade to the next candidate
instead of returning nothing.
"""

import re
from typing import Iterable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag


def soup_of(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def clean_text(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def select_cards(soup: BeautifulSoup, selectors: Iterable[str]) -> List[Tag]:
    """Cards from the first selector that matches anything."""
    for selector in selectors:
        cards = soup.select(selector)
        if cards:
            return cards
    return []


def select_text(element: Tag, selectors: Iterable[str]) -> str:
    """Text of the first matching, non-empty selector."""
    for selector in selectors:
        found = element.select_one(selector)
        if found is None:
            continue
        text = clean_text(found.get("title") if found.name == "span" and found.get("title") else found.get_text(" "))
        if text:
            return text
    return ""


def select_attr(element: Tag, selectors: Iterable[str], attr: str) -> str:
    """Attribute of the first matching selector that carries it."""
    for selector in selectors:
        found = element.select_one(selector)
        if found is not None and found.get(attr):
            return str(found.get(attr)).strip()
    return ""


def absolute_url(base_url: str, href: str) -> str:
    """Resolve a possibly relative link against the page base URL."""
    if not href:
        return ""
    return urljoin(base_url, href)
