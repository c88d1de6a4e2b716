from __future__ import annotations

import logging
from typing import Iterable, Optional

from .errors import NoReadableChapters
from .extract import ExtractedChapter
from .models import Chapter, ManifestItem
from .package import Package

FRONT_MATTER_KEYWORDS = ("contents", "table", "cover", "title page", "copyright", "introduction")
FRONT_MATTER_MIN_CHARS = 120

logger = logging.getLogger("folio.chapters")


def reading_order(package: Package) -> list[tuple[int, ManifestItem]]:
    """Linear HTML spine items as ``(raw spine index, manifest item)`` pairs."""

    documents: list[tuple[int, ManifestItem]] = []
    for index, itemref in enumerate(package.spine):
        if not itemref.linear:
            continue
        item = package.manifest.get(itemref.idref)
        if item is None or not item.member_path:
            continue
        if "html" not in item.media_type:
            continue
        documents.append((index, item))
    return documents


def is_front_matter(title: str) -> bool:
    lowered = (title or "").lower()
    return any(keyword in lowered for keyword in FRONT_MATTER_KEYWORDS)


def should_drop(chapter: ExtractedChapter, min_chars: int = FRONT_MATTER_MIN_CHARS) -> bool:
    if not is_front_matter(chapter.title):
        return False
    return chapter.text_length < min_chars and not chapter.visual


def segment_chapters(
    extracted: Iterable[Optional[ExtractedChapter]],
    min_chars: int = FRONT_MATTER_MIN_CHARS,
) -> list[Chapter]:
    chapters: list[Chapter] = []
    for candidate in extracted:
        if candidate is None:
            continue
        if should_drop(candidate, min_chars):
            logger.debug("dropping front matter %r (%s)", candidate.title, candidate.member_path)
            continue
        chapters.append(Chapter(title=candidate.title, content=candidate.content, position=len(chapters)))
    if not chapters:
        raise NoReadableChapters()
    return chapters
