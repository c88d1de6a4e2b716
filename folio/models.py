from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ManifestItem:
    item_id: str
    href: str
    media_type: str
    properties: frozenset[str] = frozenset()
    member_path: str = ""


@dataclass(frozen=True)
class SpineItem:
    idref: str
    linear: bool = True


@dataclass(frozen=True)
class Diagnostic:
    chapter_index: Optional[int]
    kind: str
    detail: str


@dataclass
class Chapter:
    title: str
    content: str
    position: int


@dataclass
class ParsedBook:
    title: str
    author: Optional[str]
    description: Optional[str]
    cover_image: Optional[str] = None
    chapters: list[Chapter] = field(default_factory=list)
    language: Optional[str] = None
    publisher: Optional[str] = None
    identifier: Optional[str] = None
    subjects: list[str] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)


def chapter_to_dict(chapter: Chapter) -> dict:
    return {
        "title": chapter.title,
        "content": chapter.content,
        "position": chapter.position,
    }


def chapter_from_dict(data: dict, position: int = 0) -> Chapter:
    return Chapter(
        title=data.get("title", ""),
        content=data.get("content", ""),
        position=int(data.get("position", position)),
    )


def diagnostic_to_dict(diagnostic: Diagnostic) -> dict:
    return {
        "chapterIndex": diagnostic.chapter_index,
        "kind": diagnostic.kind,
        "detail": diagnostic.detail,
    }


def diagnostic_from_dict(data: dict) -> Diagnostic:
    return Diagnostic(
        chapter_index=data.get("chapterIndex"),
        kind=data.get("kind", ""),
        detail=data.get("detail", ""),
    )


def book_to_dict(book: ParsedBook, *, include_diagnostics: bool = False) -> dict:
    payload = {
        "title": book.title,
        "author": book.author,
        "description": book.description,
        "coverImage": book.cover_image,
        "language": book.language,
        "publisher": book.publisher,
        "identifier": book.identifier,
        "subjects": list(book.subjects),
        "chapters": [chapter_to_dict(chapter) for chapter in book.chapters],
    }
    if include_diagnostics:
        payload["diagnostics"] = [diagnostic_to_dict(item) for item in book.diagnostics]
    return payload


def book_from_dict(data: dict) -> ParsedBook:
    return ParsedBook(
        title=data.get("title", ""),
        author=data.get("author"),
        description=data.get("description"),
        cover_image=data.get("coverImage"),
        chapters=[chapter_from_dict(chap, idx) for idx, chap in enumerate(data.get("chapters", []))],
        language=data.get("language"),
        publisher=data.get("publisher"),
        identifier=data.get("identifier"),
        subjects=list(data.get("subjects", [])),
        diagnostics=[diagnostic_from_dict(item) for item in data.get("diagnostics", [])],
    )
