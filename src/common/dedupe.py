"""
Canonical Key Module

Single source of truth for the keys used to detect duplicate job listings
across all sources.

Key precedence:
    1. "{company}::{title}" (lowercase, whitespace collapsed) when both exist
    2. Canonical URL (scheme + host + path, no query/fragment/trailing slash)
    3. "desc::{hash}" of the description as a last resort

Usage:
    from src.common.dedupe import canonical_key, generate_external_id

    key = canonical_key(company="Acme Corp", title="Sales  Manager")
    # Result: "acme corp::sales manager"

    job_id = generate_external_id(key)
    # Result: 24-char hex digest
"""

import hashlib
import re
from typing import Optional
from urllib.parse import urlsplit, urlunsplit


def normalize_for_dedupe(text: Optional[str]) -> str:
    """
    Normalize text for key generation.

    Lowercases, trims and collapses internal whitespace so that
    "Sales  Manager " and "sales manager" produce the same key.

    Examples:
        >>> normalize_for_dedupe("  Account   Manager ")
        'account manager'
        >>> normalize_for_dedupe(None)
        ''
    """
    if not text:
        return ""
    return re.sub(r"\s+", " ", str(text)).strip().lower()


def canonicalize_url(url: Optional[str]) -> str:
    """
    Reduce a job URL to scheme + host + path.

    Query strings and fragments carry tracking parameters that differ
    between sources for the same posting, so they are dropped.

    Examples:
        >>> canonicalize_url("https://Jobs.Lever.co/acme/123/?utm_source=x#apply")
        'https://jobs.lever.co/acme/123'
        >>> canonicalize_url("not a url")
        ''
    """
    if not url:
        return ""

    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        return ""

    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path.lower(), "", ""))


def canonical_key(
    company: Optional[str] = None,
    title: Optional[str] = None,
    url: Optional[str] = None,
    description: Optional[str] = None,
) -> str:
    """
    Build the canonical duplicate-detection key for a listing.

    Examples:
        >>> canonical_key(company="Acme", title="Sales Rep", url="https://x.com/1")
        'acme::sales rep'
        >>> canonical_key(title="Sales Rep", url="https://x.com/jobs/1?ref=2")
        'https://x.com/jobs/1'
    """
    norm_company = normalize_for_dedupe(company)
    norm_title = normalize_for_dedupe(title)

    if norm_company and norm_title:
        return f"{norm_company}::{norm_title}"

    canonical_url = canonicalize_url(url)
    if canonical_url:
        return canonical_url

    digest = hashlib.sha256(normalize_for_dedupe(description).encode()).hexdigest()[:16]
    return f"desc::{digest}"


def generate_external_id(key: str) -> str:
    """Hash a canonical key into the stable 24-char listing id."""
    return hashlib.sha256(key.encode()).hexdigest()[:24]


def url_host(url: Optional[str]) -> str:
    """
    Return the lowercase host of a URL without a leading "www.".

    Examples:
        >>> url_host("https://www.Indeed.com/viewjob?jk=1")
        'indeed.com'
    """
    if not url:
        return ""
    host = urlsplit(url.strip()).netloc.lower()
    return host[4:] if host.startswith("www.") else host
