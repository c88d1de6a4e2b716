from __future__ import annotations

import re
from typing import Callable, Optional

from .paths import directory_of, has_scheme, is_external, resolve, strip_suffixes

CSS_IMPORT_RE = re.compile(
    r"""@import\s+(?:url\(\s*(?P<q1>['"]?)(?P<url>[^'")]+?)(?P=q1)\s*\)|(?P<q2>['"])(?P<str>[^'"]+)(?P=q2))"""
    r"""\s*(?P<media>[^;]*);""",
    re.IGNORECASE,
)
CSS_URL_RE = re.compile(
    r"""url\(\s*(?:(?P<q>['"])(?P<quoted>[^'"]*)(?P=q)|(?P<bare>[^'")\s]*))\s*\)""", re.IGNORECASE
)
CSS_CHARSET_RE = re.compile(r"""@charset\s+['"][^'"]*['"]\s*;""", re.IGNORECASE)

UrlResolver = Callable[[str, str], Optional[str]]
StylesheetLoader = Callable[[str], Optional[str]]
Reporter = Callable[[str], None]


def rewrite_css_urls(css_text: str, base_dir: str, resolve_url: UrlResolver) -> str:
    """Replace every ``url(...)`` with what ``resolve_url`` returns for it.

    External, fragment-only and other ``scheme:`` references are kept; so is
    any reference the resolver returns ``None`` for.
    """

    def replace(match: re.Match) -> str:
        ref = (match.group("quoted") if match.group("q") else match.group("bare") or "").strip()
        if not ref or ref.startswith("#") or is_external(ref) or has_scheme(ref):
            return match.group(0)
        replacement = resolve_url(ref, base_dir)
        if replacement is None:
            return match.group(0)
        return f'url("{replacement}")'

    return CSS_URL_RE.sub(replace, css_text or "")


class CssInliner:
    """Flattens ``@import`` chains and rewrites ``url()`` references.

    Each imported file is rewritten against its own directory before it is
    substituted into the importing text. Recursion stops at ``max_depth`` and
    on cycles; the offending ``@import`` is dropped and reported.
    """

    def __init__(
        self,
        *,
        resolve_url: UrlResolver,
        load_stylesheet: StylesheetLoader,
        on_miss: Reporter,
        on_loop: Reporter,
        max_depth: int = 8,
    ) -> None:
        self.resolve_url = resolve_url
        self.load_stylesheet = load_stylesheet
        self.on_miss = on_miss
        self.on_loop = on_loop
        self.max_depth = max_depth

    def inline(self, css_text: str, source_path: str) -> str:
        return self._inline(css_text or "", source_path, depth=0, chain=(source_path,))

    def _inline(self, css_text: str, source_path: str, *, depth: int, chain: tuple[str, ...]) -> str:
        base_dir = directory_of(source_path)
        pieces: list[str] = []
        last = 0
        for match in CSS_IMPORT_RE.finditer(css_text):
            pieces.append(rewrite_css_urls(css_text[last : match.start()], base_dir, self.resolve_url))
            pieces.append(self._inline_import(match, base_dir, depth=depth, chain=chain))
            last = match.end()
        pieces.append(rewrite_css_urls(css_text[last:], base_dir, self.resolve_url))
        return "".join(pieces)

    def _inline_import(self, match: re.Match, base_dir: str, *, depth: int, chain: tuple[str, ...]) -> str:
        ref = (match.group("url") or match.group("str") or "").strip()
        if not ref or is_external(ref) or has_scheme(ref):
            return match.group(0)
        target = resolve(base_dir, strip_suffixes(ref))
        if depth + 1 > self.max_depth or target in chain:
            self.on_loop(target)
            return ""
        imported = self.load_stylesheet(target)
        if imported is None:
            self.on_miss(ref)
            return match.group(0)
        imported = CSS_CHARSET_RE.sub("", imported)
        body = self._inline(imported, target, depth=depth + 1, chain=chain + (target,))
        media = (match.group("media") or "").strip()
        if media:
            return f"@media {media} {{\n{body}\n}}"
        return body
