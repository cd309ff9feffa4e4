"""Citation resolution: unwrap grounding redirects, dedupe, and label sources."""
from __future__ import annotations

from typing import Iterable
from urllib.parse import unquote, urlsplit

from auditor.models.audit import GroundingSource, ResolvedSource

GROUNDING_REDIRECT_HOST = "vertexaisearch.cloud.google.com"
GROUNDING_REDIRECT_PREFIX = "/grounding-api-redirect/"


def extract_real_url(url: str) -> str:
    """Return the target of a grounding redirect URL, or ``url`` unchanged."""
    try:
        parts = urlsplit(url)
        if parts.hostname == GROUNDING_REDIRECT_HOST and parts.path.startswith(
            GROUNDING_REDIRECT_PREFIX
        ):
            decoded = unquote(parts.path[len(GROUNDING_REDIRECT_PREFIX) :])
            if decoded.startswith("http"):
                return decoded
    except ValueError:
        pass
    return url


def display_host(url: str) -> str:
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host


def resolve_sources(
    grounding_sources: Iterable[GroundingSource],
    declared_urls: Iterable[str | None] = (),
) -> list[ResolvedSource]:
    """Merge grounding citations and model-declared URLs into a unique, ordered list.

    Grounding sources are processed first, so when both origins point at the
    same destination the grounding entry (and its title) wins.
    """
    seen: set[str] = set()
    sources: list[ResolvedSource] = []

    def add(raw_url: str, title: str | None) -> None:
        real_url = extract_real_url(raw_url)
        if not real_url or real_url in seen:
            return
        seen.add(real_url)
        label = (title or "").strip() or display_host(real_url) or f"Source {len(sources) + 1}"
        sources.append(ResolvedSource(url=real_url, title=label))

    for source in grounding_sources:
        add(source.url, source.title)
    for url in declared_urls:
        if isinstance(url, str):
            add(url.strip(), None)
    return sources
