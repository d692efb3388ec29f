"""Shared pieces of the versioned video sub-ledgers: link validation and version allocation."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable, TypeVar
from urllib.parse import urlparse

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import ConflictError, ValidationError

# purpose: accept only YouTube/Vimeo/Loom links and allocate max(version)+1 under a unique constraint
# inputs: raw URL lists, session handle, version query and row builder callables
# outputs: (provider, url) pairs, inserted submission rows
# status: active

logger = logging.getLogger(__name__)

MIN_LINKS = 1
MAX_LINKS = 3
MAX_VERSION_ATTEMPTS = 3

_PROVIDER_HOSTS = (
    (models.VideoProvider.YOUTUBE.value, re.compile(r"(?:^|\.)(youtube\.com|youtu\.be)$")),
    (models.VideoProvider.VIMEO.value, re.compile(r"(?:^|\.)vimeo\.com$")),
    (models.VideoProvider.LOOM.value, re.compile(r"(?:^|\.)loom\.com$")),
)

SubmissionRow = TypeVar("SubmissionRow")


def detect_provider(url: str | None) -> str | None:
    """Return the provider code for ``url`` or ``None`` when it is not an accepted video host."""

    if not isinstance(url, str):
        return None
    url = url.strip()
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https"):
        return None
    host = (parsed.hostname or "").lower()
    for provider, pattern in _PROVIDER_HOSTS:
        if pattern.search(host):
            return provider
    return None


def clean_links(urls: Iterable[Any] | None) -> list[tuple[str, str]]:
    """Validate a submission's URLs; blanks are dropped and one bad URL rejects them all."""

    links: list[tuple[str, str]] = []
    for raw in urls or []:
        url = raw.strip() if isinstance(raw, str) else ""
        if not url:
            continue
        provider = detect_provider(url)
        if provider is None:
            raise ValidationError(f"Allowed providers: YouTube, Vimeo, Loom. Invalid URL: {url[:50]}")
        links.append((provider, url))
    if not MIN_LINKS <= len(links) <= MAX_LINKS:
        raise ValidationError(f"Submit between {MIN_LINKS} and {MAX_LINKS} video links.")
    return links


def insert_next_version(
    db: Session,
    next_version: Callable[[], int],
    build: Callable[[int], SubmissionRow],
) -> SubmissionRow:
    """Insert ``build(version)`` with the next free version, retrying lost races.

    Each attempt runs in a SAVEPOINT so a unique-constraint collision only
    discards that attempt; the caller commits.
    """

    for attempt in range(1, MAX_VERSION_ATTEMPTS + 1):
        version = next_version()
        try:
            with db.begin_nested():
                row = build(version)
                db.add(row)
                db.flush()
        except IntegrityError:
            logger.warning("version %s already taken (attempt %s of %s)", version, attempt, MAX_VERSION_ATTEMPTS)
            continue
        return row
    raise ConflictError("Another submission was saved at the same time. Please retry.")


def links_view(links) -> list[dict[str, str]]:
    return [{"provider": link.provider, "url": link.url} for link in links]
