from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Optional

from lxml import etree as LXML_ET
from lxml import html as LXML_HTML

from .diagnostics import CHAPTER_EMPTY, CHAPTER_MISSING, ChapterLog
from .inline import ResourceInliner
from .models import ManifestItem
from .options import DEFAULT_OPTIONS, ParseOptions
from .package import Package
from .sanitize import (
    filter_style_attributes,
    has_visual_content,
    remove_elements,
    sanitize_text_html,
    scrub_visual_tree,
    strip_scripts,
)
from .text import collapse_whitespace, decode_text, html_to_text, strip_xml_declaration

logger = logging.getLogger("folio.extract")

_XHTML_PARSER = LXML_ET.XMLParser(resolve_entities=False, no_network=True, load_dtd=False)
_HEADINGS = LXML_ET.XPath("descendant::*[local-name()='h1' or local-name()='h2' or local-name()='h3']")
_TITLES = LXML_ET.XPath("descendant::*[local-name()='title']")
_TITLE_CLASSES = LXML_ET.XPath("descendant::*[contains(@class, 'title')]")
_BODY = LXML_ET.XPath("descendant-or-self::*[local-name()='body']")
_HEAD_STYLES = LXML_ET.XPath("descendant::*[local-name()='head']//*[local-name()='style']")


@dataclass
class ExtractedChapter:
    spine_index: int
    member_path: str
    title: str
    content: str
    text_length: int
    visual: bool


def _strip_element_namespaces(root: LXML_ET._Element) -> None:
    for node in root.iter():
        if isinstance(node.tag, str) and node.tag.startswith("{"):
            node.tag = LXML_ET.QName(node).localname
    LXML_ET.cleanup_namespaces(root)


def parse_document(raw: bytes) -> LXML_ET._Element:
    """Parse a content document, as XHTML when well-formed, else as HTML.

    The XML route keeps inline SVG intact (self-closing shapes); element
    namespaces are dropped so both routes yield the same plain tag names.
    """

    text = strip_xml_declaration(decode_text(raw))
    try:
        root = LXML_ET.fromstring(text.encode("utf-8"), parser=_XHTML_PARSER)
    except LXML_ET.XMLSyntaxError:
        return LXML_HTML.document_fromstring(text)
    if root is None:
        return LXML_HTML.document_fromstring(text)
    _strip_element_namespaces(root)
    return root


def _first_text(nodes: list) -> Optional[str]:
    for node in nodes:
        text = collapse_whitespace("".join(node.itertext()))
        if text:
            return text
    return None


def resolve_chapter_title(root: LXML_ET._Element, body: LXML_ET._Element, spine_index: int) -> str:
    return (
        _first_text(_HEADINGS(body))
        or _first_text(_TITLES(root))
        or _first_text(_TITLE_CLASSES(root))
        or f"Chapter {spine_index + 1}"
    )


def _inner_html(node: LXML_ET._Element) -> str:
    parts = [html.escape(node.text or "", quote=False)]
    for child in node:
        parts.append(LXML_HTML.tostring(child, encoding="unicode", method="html"))
    return "".join(parts).strip()


def _head_styles(root: LXML_ET._Element) -> str:
    return "".join(
        LXML_HTML.tostring(node, encoding="unicode", method="html", with_tail=False)
        for node in _HEAD_STYLES(root)
        if (node.text or "").strip()
    )


def extract_chapter(
    package: Package,
    item: ManifestItem,
    spine_index: int,
    log: ChapterLog,
    options: ParseOptions = DEFAULT_OPTIONS,
) -> Optional[ExtractedChapter]:
    """Turn one spine document into chapter HTML.

    Documents carrying images, inline SVG or background images keep their
    markup and only get a script scrub; everything else goes through the
    allowlist sanitizer. Returns ``None`` when nothing usable is left.
    """

    raw = package.read(item.member_path)
    if raw is None:
        log.record(CHAPTER_MISSING, item.member_path)
        return None
    try:
        root = parse_document(raw)
    except (LXML_ET.ParserError, LXML_ET.XMLSyntaxError, ValueError) as exc:
        log.record(CHAPTER_EMPTY, f"{item.member_path}: {exc}")
        return None

    strip_scripts(root)
    ResourceInliner(package, log, max_import_depth=options.css_import_depth).inline_document(root, item.member_path)

    bodies = _BODY(root)
    body = bodies[0] if bodies else root
    visual = has_visual_content(body)

    if visual:
        scrub_visual_tree(root)
        content = _head_styles(root) + _inner_html(body)
    else:
        remove_elements(body, "style", "link")
        filter_style_attributes(body)
        content = sanitize_text_html(_inner_html(body)).strip()

    text_length = len(html_to_text(content))
    if not content or (text_length == 0 and not visual):
        log.record(CHAPTER_EMPTY, item.member_path)
        return None

    title = resolve_chapter_title(root, body, spine_index)
    logger.debug("extracted %s (%s, %d chars)", item.member_path, "visual" if visual else "text", text_length)
    return ExtractedChapter(
        spine_index=spine_index,
        member_path=item.member_path,
        title=title,
        content=content,
        text_length=text_length,
        visual=visual,
    )
