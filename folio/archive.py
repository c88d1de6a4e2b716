from __future__ import annotations

import logging
import zipfile
from io import BytesIO
from types import MappingProxyType
from typing import Iterator, Mapping, Optional
from urllib.parse import quote, unquote

from .errors import InvalidArchive
from .paths import canonical_member

logger = logging.getLogger("folio.archive")


def path_lookup_keys(path: str) -> list[str]:
    """Candidate spellings of ``path``, in the order they are tried."""

    raw = path or ""
    keys = [
        raw,
        unquote(raw),
        quote(raw, safe="/"),
        raw.lstrip("/"),
        raw[2:] if raw.startswith("./") else "",
    ]
    deduped: list[str] = []
    seen: set[str] = set()
    for key in keys:
        if not key or key in seen:
            continue
        seen.add(key)
        deduped.append(key)
    return deduped


class Archive:
    """Read-only view of the members of one EPUB zip, keyed by normalized path."""

    def __init__(self, members: Mapping[str, bytes]) -> None:
        self._members = MappingProxyType(dict(members))

    @classmethod
    def from_bytes(cls, data: bytes) -> "Archive":
        try:
            zf = zipfile.ZipFile(BytesIO(data or b""))
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, OSError) as exc:
            raise InvalidArchive(f"Invalid EPUB: not a ZIP archive ({exc}).") from exc

        members: dict[str, bytes] = {}
        with zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                canonical = canonical_member(info.filename)
                if not canonical or canonical in members:
                    continue
                try:
                    members[canonical] = zf.read(info.filename)
                except (zipfile.BadZipFile, NotImplementedError, RuntimeError, OSError) as exc:
                    logger.warning("skipping unreadable zip member %s: %s", info.filename, exc)
        return cls(members)

    def lookup(self, path: str) -> Optional[bytes]:
        for key in path_lookup_keys(path):
            payload = self._members.get(key)
            if payload is not None:
                return payload
        return None

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.lookup(path) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def names(self) -> list[str]:
        return list(self._members)
