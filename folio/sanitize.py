from __future__ import annotations

import re
import threading

import bleach
from bleach.css_sanitizer import CSSSanitizer
from lxml import etree as LXML_ET

ALLOWED_PROTOCOLS = ["http", "https", "mailto", "tel", "data"]

ALLOWED_TAGS = [
    "h1", "h2", "h3", "h4", "h5", "h6",
    "p", "br", "hr", "blockquote", "pre", "code", "div", "span",
    "section", "article", "aside", "header", "footer", "figure", "figcaption",
    "ul", "ol", "li", "dl", "dt", "dd",
    "table", "caption", "colgroup", "col", "thead", "tbody", "tfoot", "tr", "th", "td",
    "a", "em", "strong", "b", "i", "u", "s", "small", "sub", "sup", "abbr", "cite", "q", "mark",
    "ruby", "rt", "rp", "img",
    "svg", "g", "path", "circle", "ellipse", "line", "polyline", "polygon", "rect", "text", "tspan",
]

SVG_PAINT_ATTRS = [
    "fill", "fill-opacity", "stroke", "stroke-width", "stroke-linecap", "stroke-linejoin",
    "stroke-dasharray", "opacity", "transform",
]

ALLOWED_ATTRIBUTES = {
    "*": ["class", "style", "id", "title", "align", "dir", "lang"],
    "a": ["href", "name", "rel"],
    "img": ["src", "alt", "width", "height"],
    "table": ["border", "cellpadding", "cellspacing", "width", "summary"],
    "col": ["span", "width"],
    "colgroup": ["span", "width"],
    "td": ["colspan", "rowspan", "valign", "width"],
    "th": ["colspan", "rowspan", "valign", "width", "scope"],
    "ol": ["start", "type", "reversed"],
    "li": ["value"],
    "svg": ["width", "height", "viewBox", "viewbox", "preserveAspectRatio", "preserveaspectratio", "xmlns"],
    "g": SVG_PAINT_ATTRS,
    "path": ["d"] + SVG_PAINT_ATTRS,
    "circle": ["cx", "cy", "r"] + SVG_PAINT_ATTRS,
    "ellipse": ["cx", "cy", "rx", "ry"] + SVG_PAINT_ATTRS,
    "line": ["x1", "y1", "x2", "y2"] + SVG_PAINT_ATTRS,
    "polyline": ["points"] + SVG_PAINT_ATTRS,
    "polygon": ["points"] + SVG_PAINT_ATTRS,
    "rect": ["x", "y", "width", "height", "rx", "ry"] + SVG_PAINT_ATTRS,
    "text": ["x", "y", "dx", "dy", "text-anchor", "font-size", "font-family"] + SVG_PAINT_ATTRS,
    "tspan": ["x", "y", "dx", "dy"] + SVG_PAINT_ATTRS,
}

_COLOR = re.compile(r"^[#(),.%\s\w-]+$")
_LENGTH = re.compile(r"^[-+\w\s.%]+$")
_KEYWORDS = re.compile(r"^[\w\s-]+$")
_FONT_FAMILY = re.compile(r"""^[\w\s,'"-]+$""")
_BORDER = re.compile(r"^[#(),.%\s\w-]+$")

ALLOWED_STYLES: dict[str, re.Pattern[str]] = {
    "color": _COLOR,
    "background-color": _COLOR,
    "opacity": _LENGTH,
    "visibility": _KEYWORDS,
    "font-family": _FONT_FAMILY,
    "font-size": _LENGTH,
    "font-style": _KEYWORDS,
    "font-variant": _KEYWORDS,
    "font-weight": _KEYWORDS,
    "line-height": _LENGTH,
    "letter-spacing": _LENGTH,
    "word-spacing": _LENGTH,
    "text-align": _KEYWORDS,
    "text-decoration": _COLOR,
    "text-indent": _LENGTH,
    "text-transform": _KEYWORDS,
    "white-space": _KEYWORDS,
    "vertical-align": _LENGTH,
    "list-style-type": _KEYWORDS,
    "display": _KEYWORDS,
    "float": _KEYWORDS,
    "clear": _KEYWORDS,
    "position": _KEYWORDS,
    "top": _LENGTH,
    "right": _LENGTH,
    "bottom": _LENGTH,
    "left": _LENGTH,
    "width": _LENGTH,
    "height": _LENGTH,
    "max-width": _LENGTH,
    "max-height": _LENGTH,
    "min-width": _LENGTH,
    "min-height": _LENGTH,
    "margin": _LENGTH,
    "margin-top": _LENGTH,
    "margin-right": _LENGTH,
    "margin-bottom": _LENGTH,
    "margin-left": _LENGTH,
    "padding": _LENGTH,
    "padding-top": _LENGTH,
    "padding-right": _LENGTH,
    "padding-bottom": _LENGTH,
    "padding-left": _LENGTH,
    "border": _BORDER,
    "border-top": _BORDER,
    "border-right": _BORDER,
    "border-bottom": _BORDER,
    "border-left": _BORDER,
    "border-color": _COLOR,
    "border-style": _KEYWORDS,
    "border-width": _LENGTH,
    "border-radius": _LENGTH,
}

UNSAFE_STYLE_VALUE_RE = re.compile(r"url\s*\(|expression|javascript:|\\|@", re.IGNORECASE)
SCRIPT_SCHEME_RE = re.compile(r"^(?:javascript|vbscript):", re.IGNORECASE)
URL_NOISE_RE = re.compile(r"[\x00-\x20]+")
BACKGROUND_IMAGE_RE = re.compile(r"background-image\s*:|background\s*:[^;]*url\s*\(", re.IGNORECASE)
STYLE_BREAKOUT_RE = re.compile(r"</(?=\s*(?:style|script)\b)", re.IGNORECASE)
SCRIPT_CSS_DECLARATION_RE = re.compile(r"[^;{}]*?(?:javascript|vbscript)\s*:[^;{}]*;?", re.IGNORECASE)

_cleaners = threading.local()


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    if "}" in tag:
        tag = tag.split("}", 1)[1]
    if ":" in tag:
        tag = tag.split(":", 1)[1]
    return tag.lower()


def _remove_keep_tail(node: LXML_ET._Element) -> None:
    parent = node.getparent()
    if parent is None:
        return
    if node.tail:
        previous = node.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + node.tail
        else:
            parent.text = (parent.text or "") + node.tail
    parent.remove(node)


def strip_scripts(root: LXML_ET._Element) -> None:
    for node in [node for node in root.iter() if _local_name(node.tag) == "script"]:
        _remove_keep_tail(node)


def remove_elements(root: LXML_ET._Element, *local_names: str) -> None:
    wanted = set(local_names)
    for node in [node for node in root.iter() if _local_name(node.tag) in wanted]:
        _remove_keep_tail(node)


def has_visual_content(root: LXML_ET._Element) -> bool:
    for node in root.iter():
        local = _local_name(node.tag)
        if local in {"img", "svg"}:
            return True
        if local and BACKGROUND_IMAGE_RE.search(str(node.get("style") or "")):
            return True
    return False


def is_script_url(value: str) -> bool:
    return bool(SCRIPT_SCHEME_RE.match(URL_NOISE_RE.sub("", value or "")))


def strip_script_declarations(css_text: str) -> str:
    """Drop CSS declarations that carry a ``javascript:`` or ``vbscript:`` URL."""
    return SCRIPT_CSS_DECLARATION_RE.sub("", css_text or "")


def scrub_visual_tree(root: LXML_ET._Element) -> None:
    """Remove scripts, script-scheme URLs and event handlers from a visual chapter."""
    strip_scripts(root)
    for node in root.iter():
        if not isinstance(node.tag, str):
            continue
        for key in list(node.attrib.keys()):
            name = _local_name(key)
            if name.startswith("on") or is_script_url(str(node.get(key) or "")):
                del node.attrib[key]
            elif name == "style":
                cleaned = strip_script_declarations(str(node.get(key) or "")).strip()
                if cleaned:
                    node.set(key, cleaned)
                else:
                    del node.attrib[key]
        if _local_name(node.tag) == "style" and node.text:
            node.text = STYLE_BREAKOUT_RE.sub("<\\/", strip_script_declarations(node.text))


def filter_style(value: str) -> str:
    kept: list[str] = []
    for declaration in (value or "").split(";"):
        if ":" not in declaration:
            continue
        prop, _, prop_value = declaration.partition(":")
        prop = prop.strip().lower()
        prop_value = prop_value.strip()
        pattern = ALLOWED_STYLES.get(prop)
        if pattern is None or not prop_value or UNSAFE_STYLE_VALUE_RE.search(prop_value):
            continue
        if pattern.match(prop_value):
            kept.append(f"{prop}: {prop_value}")
    return "; ".join(kept)


def filter_style_attributes(root: LXML_ET._Element) -> None:
    for node in root.iter():
        if not isinstance(node.tag, str) or node.get("style") is None:
            continue
        filtered = filter_style(node.get("style") or "")
        if filtered:
            node.set("style", filtered)
        else:
            del node.attrib["style"]


def _text_cleaner() -> bleach.Cleaner:
    # bleach.Cleaner 不是线程安全的，每个线程各持一份
    cleaner = getattr(_cleaners, "cleaner", None)
    if cleaner is None:
        cleaner = bleach.Cleaner(
            tags=ALLOWED_TAGS,
            attributes=ALLOWED_ATTRIBUTES,
            protocols=ALLOWED_PROTOCOLS,
            strip=True,
            strip_comments=True,
            css_sanitizer=CSSSanitizer(allowed_css_properties=list(ALLOWED_STYLES)),
        )
        _cleaners.cleaner = cleaner
    return cleaner


def sanitize_text_html(html_text: str) -> str:
    return _text_cleaner().clean(html_text or "")
