from __future__ import annotations

import re
from typing import Optional

from lxml import etree as LXML_ET
from lxml import html as LXML_HTML

ENCODING_CANDIDATES = ("utf-8-sig", "utf-8", "gb18030")

XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)
WHITESPACE_RE = re.compile(r"\s+")

_VISIBLE_TEXT = LXML_ET.XPath(
    "descendant-or-self::text()[not(ancestor::script) and not(ancestor::style)]"
)


def decode_text(data: bytes) -> str:
    for enc in ENCODING_CANDIDATES:
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def strip_xml_declaration(text: str) -> str:
    # lxml.html 拒绝带编码声明的 str 输入
    return XML_DECLARATION_RE.sub("", text, count=1)


def collapse_whitespace(value: Optional[str]) -> str:
    return WHITESPACE_RE.sub(" ", value or "").strip()


def plain_text(node: Optional[LXML_ET._Element]) -> str:
    if node is None:
        return ""
    return collapse_whitespace("".join(str(part) for part in _VISIBLE_TEXT(node)))


def html_to_text(html_text: str) -> str:
    """Text of an HTML fragment with tags stripped and whitespace collapsed."""
    if not html_text or not html_text.strip():
        return ""
    try:
        wrapper = LXML_HTML.fragment_fromstring(html_text, create_parent="div")
    except (LXML_ET.ParserError, ValueError):
        return collapse_whitespace(re.sub(r"<[^>]+>", " ", html_text))
    return plain_text(wrapper)
