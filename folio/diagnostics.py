from __future__ import annotations

import logging
from typing import Optional

from .models import Diagnostic

RESOURCE_MISS = "resource-resolution-miss"
CHAPTER_EMPTY = "chapter-extraction-empty"
CHAPTER_MISSING = "chapter-missing"
CSS_IMPORT_LOOP = "css-import-loop"
COVER_MISSING = "cover-missing"

logger = logging.getLogger("folio.diagnostics")


class Diagnostics:
    """Collects non-fatal degradations of one import.

    Chapter tasks each write into their own ``ChapterLog`` and the logs are
    merged back in spine order, so the record order does not depend on thread
    scheduling.
    """

    def __init__(self) -> None:
        self.records: list[Diagnostic] = []

    def record(self, chapter_index: Optional[int], kind: str, detail: str) -> None:
        self.records.append(Diagnostic(chapter_index=chapter_index, kind=kind, detail=detail))
        logger.info("chapter=%s %s: %s", chapter_index, kind, detail)

    def for_chapter(self, chapter_index: int) -> "ChapterLog":
        return ChapterLog(chapter_index)

    def merge(self, log: "ChapterLog") -> None:
        self.records.extend(log.records)

    def of_kind(self, kind: str) -> list[Diagnostic]:
        return [item for item in self.records if item.kind == kind]


class ChapterLog:
    def __init__(self, chapter_index: int) -> None:
        self.chapter_index = chapter_index
        self.records: list[Diagnostic] = []

    def record(self, kind: str, detail: str) -> None:
        self.records.append(Diagnostic(chapter_index=self.chapter_index, kind=kind, detail=detail))
        logger.info("chapter=%s %s: %s", self.chapter_index, kind, detail)
