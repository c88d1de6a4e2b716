from __future__ import annotations

from pathlib import PurePosixPath
from typing import Optional

from lxml import etree as LXML_ET

from .css import CssInliner, rewrite_css_urls
from .diagnostics import CSS_IMPORT_LOOP, RESOURCE_MISS, ChapterLog
from .package import Package, data_uri
from .paths import directory_of, has_scheme, is_external, resolve, strip_suffixes
from .text import decode_text

MEDIA_TYPES_BY_SUFFIX = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".bmp": "image/bmp",
    ".css": "text/css",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".xhtml": "application/xhtml+xml",
    ".html": "text/html",
    ".htm": "text/html",
}


def guess_media_type(member_path: str) -> str:
    suffix = PurePosixPath(member_path).suffix.lower()
    return MEDIA_TYPES_BY_SUFFIX.get(suffix, "application/octet-stream")


def _local_name(name: object) -> str:
    if not isinstance(name, str):
        return ""
    if "}" in name:
        name = name.split("}", 1)[1]
    if ":" in name:
        name = name.split(":", 1)[1]
    return name.lower()


def split_srcset(value: str) -> list[tuple[str, str]]:
    """Split a ``srcset`` into ``(url, descriptor)`` pairs.

    URLs end at whitespace, so commas inside ``data:`` URIs survive.
    """

    candidates: list[tuple[str, str]] = []
    text = value or ""
    pos = 0
    length = len(text)
    while pos < length:
        while pos < length and (text[pos].isspace() or text[pos] == ","):
            pos += 1
        if pos >= length:
            break
        start = pos
        while pos < length and not text[pos].isspace():
            pos += 1
        url = text[start:pos]
        descriptor = ""
        if url.endswith(","):
            url = url.rstrip(",")
        else:
            desc_start = pos
            while pos < length and text[pos] != ",":
                pos += 1
            descriptor = text[desc_start:pos].strip()
            pos += 1
        if url:
            candidates.append((url, descriptor))
    return candidates


def join_srcset(candidates: list[tuple[str, str]]) -> str:
    return ", ".join(f"{url} {descriptor}".strip() for url, descriptor in candidates)


class ResourceInliner:
    """Rewrites the resources of one content document into data URIs.

    One instance serves one chapter; it owns that chapter's tree while it runs.
    """

    def __init__(self, package: Package, log: ChapterLog, *, max_import_depth: int = 8) -> None:
        self.package = package
        self.log = log
        self._cache: dict[str, Optional[str]] = {}
        self._css = CssInliner(
            resolve_url=self.data_uri_for,
            load_stylesheet=self._load_stylesheet,
            on_miss=self._report_miss,
            on_loop=self._report_loop,
            max_depth=max_import_depth,
        )

    def inline_document(self, root: LXML_ET._Element, doc_path: str) -> None:
        base_dir = directory_of(doc_path)
        inlined_styles = self._inline_stylesheet_links(root, base_dir)
        self._inline_style_blocks(root, doc_path, skip=inlined_styles)
        self._inline_images(root, base_dir)
        self._inline_svg_images(root, base_dir)
        self._inline_style_attributes(root, base_dir)

    def data_uri_for(self, ref: str, base_dir: str) -> Optional[str]:
        if has_scheme(ref):
            return None
        target = resolve(base_dir, strip_suffixes(ref))
        if not target:
            self._report_miss(ref)
            return None
        if target not in self._cache:
            payload = self.package.read(target)
            if payload is None:
                self._cache[target] = None
            else:
                media_type = self.package.media_type_for(target) or guess_media_type(target)
                self._cache[target] = data_uri(payload, media_type)
        uri = self._cache[target]
        if uri is None:
            self._report_miss(ref)
        return uri

    def _load_stylesheet(self, member_path: str) -> Optional[str]:
        payload = self.package.read(member_path)
        if payload is None:
            return None
        return decode_text(payload)

    def _report_miss(self, ref: str) -> None:
        self.log.record(RESOURCE_MISS, ref)

    def _report_loop(self, target: str) -> None:
        self.log.record(CSS_IMPORT_LOOP, target)

    def _inline_stylesheet_links(self, root: LXML_ET._Element, base_dir: str) -> list[LXML_ET._Element]:
        # 持有新建元素的引用；lxml 代理对象被回收后 id() 会变
        created: list[LXML_ET._Element] = []
        links = [node for node in root.iter() if _local_name(node.tag) == "link"]
        for link in links:
            rel = str(link.get("rel") or "").lower().split()
            href = str(link.get("href") or "").strip()
            if "stylesheet" not in rel or not href or is_external(href):
                continue
            target = resolve(base_dir, strip_suffixes(href))
            css_text = self._load_stylesheet(target) if target else None
            if css_text is None:
                self._report_miss(href)
                continue
            style = link.makeelement("style", {})
            media = link.get("media")
            if media:
                style.set("media", media)
            style.text = self._css.inline(css_text, target)
            style.tail = link.tail
            parent = link.getparent()
            if parent is None:
                continue
            parent.replace(link, style)
            created.append(style)
        return created

    def _inline_style_blocks(self, root: LXML_ET._Element, doc_path: str, *, skip: list[LXML_ET._Element]) -> None:
        for node in list(root.iter()):
            if _local_name(node.tag) != "style" or any(node is created for created in skip):
                continue
            if node.text:
                node.text = self._css.inline(node.text, doc_path)

    def _inline_images(self, root: LXML_ET._Element, base_dir: str) -> None:
        for node in list(root.iter()):
            if _local_name(node.tag) != "img":
                continue
            src = str(node.get("src") or "").strip()
            if src and not is_external(src):
                uri = self.data_uri_for(src, base_dir)
                if uri is not None:
                    node.set("src", uri)
            srcset = node.get("srcset")
            if srcset:
                node.set("srcset", self._rewrite_srcset(srcset, base_dir))

    def _rewrite_srcset(self, srcset: str, base_dir: str) -> str:
        rewritten: list[tuple[str, str]] = []
        for url, descriptor in split_srcset(srcset):
            if not is_external(url):
                url = self.data_uri_for(url, base_dir) or url
            rewritten.append((url, descriptor))
        return join_srcset(rewritten)

    def _inline_svg_images(self, root: LXML_ET._Element, base_dir: str) -> None:
        for node in list(root.iter()):
            if _local_name(node.tag) != "image":
                continue
            for key in list(node.attrib.keys()):
                if _local_name(key) != "href":
                    continue
                href = str(node.get(key) or "").strip()
                if not href or href.startswith("#") or is_external(href):
                    continue
                uri = self.data_uri_for(href, base_dir)
                if uri is not None:
                    node.set(key, uri)

    def _inline_style_attributes(self, root: LXML_ET._Element, base_dir: str) -> None:
        for node in list(root.iter()):
            if not isinstance(node.tag, str):
                continue
            style = node.get("style")
            if not style or "url(" not in style.lower():
                continue
            node.set("style", rewrite_css_urls(style, base_dir, self.data_uri_for))
