from __future__ import annotations

import posixpath
import re

EXTERNAL_REF_RE = re.compile(r"^(?:https?:|data:)", re.IGNORECASE)
URL_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)


def resolve(base_dir: str, ref: str) -> str:
    """Join ``ref`` onto ``base_dir`` and normalize it to an archive path.

    A leading ``/`` makes ``ref`` relative to the archive root. ``..`` never
    climbs above the root: extra parent segments are dropped.
    """

    ref = (ref or "").replace("\\", "/")
    if ref.startswith("/"):
        joined = ref.lstrip("/")
    else:
        base = (base_dir or "").replace("\\", "/").strip("/")
        joined = f"{base}/{ref}" if base else ref

    stack: list[str] = []
    for segment in joined.split("/"):
        if segment in {"", "."}:
            continue
        if segment == "..":
            if stack:
                stack.pop()
            continue
        stack.append(segment)
    return "/".join(stack)


def strip_suffixes(ref: str) -> str:
    """Drop ``#fragment`` and ``?query`` from a reference."""
    return re.split(r"[#?]", ref or "", maxsplit=1)[0].strip()


def is_external(ref: str) -> bool:
    return bool(EXTERNAL_REF_RE.match((ref or "").strip()))


def has_scheme(ref: str) -> bool:
    """True for any ``scheme:`` reference, which never names an archive member."""
    return bool(URL_SCHEME_RE.match((ref or "").strip()))


def directory_of(member_path: str) -> str:
    parent = posixpath.dirname(member_path or "")
    return "" if parent in {"", "."} else parent


def canonical_member(name: str) -> str:
    normalized = posixpath.normpath((name or "").replace("\\", "/")).lstrip("/")
    while normalized.startswith("../"):
        normalized = normalized[3:]
    return "" if normalized in {"", ".", ".."} else normalized
