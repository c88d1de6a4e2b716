from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from .archive import Archive
from .chapters import reading_order, segment_chapters
from .diagnostics import COVER_MISSING, Diagnostics
from .extract import ExtractedChapter, extract_chapter
from .models import ManifestItem, ParsedBook
from .options import DEFAULT_OPTIONS, ParseOptions
from .package import (
    Package,
    book_identifier,
    book_title,
    cover_data_uri,
    load_package,
    metadata_text,
    metadata_values,
)

logger = logging.getLogger("folio.epub")


def _extract_all(
    package: Package,
    documents: list[tuple[int, ManifestItem]],
    diagnostics: Diagnostics,
    options: ParseOptions,
) -> list[Optional[ExtractedChapter]]:
    if not documents:
        return []
    logs = [diagnostics.for_chapter(index) for index, _ in documents]

    def run(slot: int) -> Optional[ExtractedChapter]:
        index, item = documents[slot]
        return extract_chapter(package, item, index, logs[slot], options)

    workers = max(1, min(options.max_workers, len(documents)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="folio-extract") as executor:
        # map() 按提交顺序返回结果，保证章节与书脊顺序一致
        results = list(executor.map(run, range(len(documents))))
    for log in logs:
        diagnostics.merge(log)
    return results


def parse_epub(
    data: bytes,
    filename: str,
    *,
    options: Optional[ParseOptions] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> ParsedBook:
    """Parse raw EPUB bytes into a ``ParsedBook``.

    ``filename`` only serves as the title fallback. Structural problems raise
    an ``EpubImportError`` subclass; per-resource and per-chapter problems are
    collected on ``ParsedBook.diagnostics`` instead.
    """

    options = options or DEFAULT_OPTIONS
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    archive = Archive.from_bytes(data)
    package = load_package(archive)
    documents = reading_order(package)
    extracted = _extract_all(package, documents, diagnostics, options)
    chapters = segment_chapters(extracted, options.front_matter_min_chars)

    cover_image, cover_item = cover_data_uri(package)
    if cover_image is None and cover_item is not None:
        diagnostics.record(None, COVER_MISSING, cover_item.member_path or cover_item.href)

    book = ParsedBook(
        title=book_title(package, filename),
        author=metadata_text(package.metadata.get("creator")),
        description=metadata_text(package.metadata.get("description")),
        cover_image=cover_image,
        chapters=chapters,
        language=metadata_text(package.metadata.get("language")),
        publisher=metadata_text(package.metadata.get("publisher")),
        identifier=book_identifier(package),
        subjects=metadata_values(package.metadata.get("subject")),
        diagnostics=list(diagnostics.records),
    )
    logger.info(
        "parsed %r: %d chapters from %d spine items, %d diagnostics",
        book.title,
        len(chapters),
        len(package.spine),
        len(book.diagnostics),
    )
    return book


def parse_epub_file(epub_file: Path, *, options: Optional[ParseOptions] = None) -> ParsedBook:
    return parse_epub(epub_file.read_bytes(), epub_file.name, options=options)
