from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Optional, Union
from urllib.parse import unquote

from lxml import etree as LXML_ET

from .archive import Archive
from .errors import MissingContainer, MissingPackageDocument, MissingPackagePath
from .models import ManifestItem, SpineItem
from .paths import canonical_member, directory_of, resolve, strip_suffixes

CONTAINER_PATH = "META-INF/container.xml"
EPUB_SUFFIX_RE = re.compile(r"\.epub$", re.IGNORECASE)
ISBN_CHARS_RE = re.compile(r"[^0-9Xx]")
DC_FIELDS = ("title", "creator", "description", "language", "publisher", "identifier", "subject")

# 元数据在 XML 边界上的三种形态：缺失 / 单值 / 多值
MetadataValue = Union[None, str, tuple[str, ...]]

logger = logging.getLogger("folio.package")


@dataclass
class Package:
    archive: Archive
    opf_path: str
    metadata: dict[str, MetadataValue] = field(default_factory=dict)
    meta_tags: list[tuple[dict[str, str], str]] = field(default_factory=list)
    manifest: dict[str, ManifestItem] = field(default_factory=dict)
    manifest_items: list[ManifestItem] = field(default_factory=list)
    spine: list[SpineItem] = field(default_factory=list)

    @property
    def base_dir(self) -> str:
        return directory_of(self.opf_path)

    def read(self, member_path: str) -> Optional[bytes]:
        payload = self.archive.lookup(member_path)
        if payload is not None:
            return payload
        item = self.manifest_item_for_path(member_path)
        if item is None or item.member_path == member_path:
            return None
        return self.archive.lookup(item.member_path)

    def manifest_item_for_path(self, member_path: str) -> Optional[ManifestItem]:
        target = canonical_member(unquote(member_path or ""))
        if not target:
            return None
        candidates = [(item, canonical_member(unquote(item.member_path))) for item in self.manifest_items]
        for item, candidate in candidates:
            if candidate == target:
                return item
        for item, candidate in candidates:
            if not candidate:
                continue
            if candidate.endswith(f"/{target}") or target.endswith(f"/{candidate}"):
                return item
        return None

    def media_type_for(self, member_path: str) -> Optional[str]:
        item = self.manifest_item_for_path(member_path)
        if item is None or not item.media_type:
            return None
        return item.media_type


def metadata_text(value: MetadataValue) -> Optional[str]:
    """Collapse a metadata value to its first non-blank text."""
    if value is None:
        return None
    candidates = (value,) if isinstance(value, str) else value
    for candidate in candidates:
        cleaned = candidate.strip()
        if cleaned:
            return cleaned
    return None


def metadata_values(value: MetadataValue) -> list[str]:
    if value is None:
        return []
    candidates = (value,) if isinstance(value, str) else value
    return [candidate.strip() for candidate in candidates if candidate.strip()]


def _tag_local_name(tag: object) -> str:
    if not tag or not isinstance(tag, str):
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    if ":" in tag:
        return tag.split(":", 1)[1]
    return tag


def _child_by_local_name(node: LXML_ET._Element, local_name: str) -> Optional[LXML_ET._Element]:
    for child in list(node):
        if _tag_local_name(child.tag) == local_name:
            return child
    return None


def _iter_children_by_local_name(node: LXML_ET._Element, local_name: str) -> list[LXML_ET._Element]:
    return [child for child in list(node) if _tag_local_name(child.tag) == local_name]


def _local_attrs(node: LXML_ET._Element) -> dict[str, str]:
    return {_tag_local_name(key): str(value) for key, value in node.attrib.items()}


def _node_text(node: Optional[LXML_ET._Element]) -> str:
    if node is None:
        return ""
    return "".join(node.itertext()).strip()


def _xml_root_from_bytes(raw: bytes) -> Optional[LXML_ET._Element]:
    parser = LXML_ET.XMLParser(resolve_entities=False, no_network=True, recover=True)
    return LXML_ET.fromstring(raw, parser=parser)


def package_path_from_container(archive: Archive) -> str:
    container_raw = archive.lookup(CONTAINER_PATH)
    if container_raw is None:
        raise MissingContainer()
    try:
        root = _xml_root_from_bytes(container_raw)
    except LXML_ET.XMLSyntaxError as exc:
        raise MissingContainer(f"Invalid EPUB: unreadable container ({exc}).") from exc
    if root is None:
        raise MissingContainer("Invalid EPUB: unreadable container.")

    for node in root.iter():
        if _tag_local_name(node.tag) != "rootfile":
            continue
        full_path = str(node.attrib.get("full-path") or "").strip()
        if full_path:
            return full_path.replace("\\", "/").lstrip("/")
    raise MissingPackagePath()


def load_package(archive: Archive) -> Package:
    opf_path = package_path_from_container(archive)
    opf_raw = archive.lookup(opf_path)
    if opf_raw is None:
        raise MissingPackageDocument(f"Invalid EPUB: missing package definition ({opf_path}).")
    try:
        root = _xml_root_from_bytes(opf_raw)
    except LXML_ET.XMLSyntaxError as exc:
        raise MissingPackageDocument(f"Invalid EPUB: unreadable package definition ({exc}).") from exc
    if root is None:
        raise MissingPackageDocument(f"Invalid EPUB: unreadable package definition ({opf_path}).")

    package = Package(archive=archive, opf_path=opf_path)
    _read_metadata(package, _child_by_local_name(root, "metadata"))
    _read_manifest(package, _child_by_local_name(root, "manifest"))
    _read_spine(package, _child_by_local_name(root, "spine"))
    logger.debug(
        "package %s: %d manifest items, %d spine items",
        opf_path,
        len(package.manifest_items),
        len(package.spine),
    )
    return package


def _read_metadata(package: Package, metadata: Optional[LXML_ET._Element]) -> None:
    if metadata is None:
        return
    collected: dict[str, list[str]] = {}
    for node in metadata.iter():
        if node is metadata or not isinstance(node.tag, str):
            continue
        local = _tag_local_name(node.tag)
        if local == "meta":
            package.meta_tags.append((_local_attrs(node), _node_text(node)))
            continue
        if local in DC_FIELDS:
            collected.setdefault(local, []).append(_node_text(node))

    for name, values in collected.items():
        package.metadata[name] = values[0] if len(values) == 1 else tuple(values)


def _read_manifest(package: Package, manifest: Optional[LXML_ET._Element]) -> None:
    if manifest is None:
        return
    for node in _iter_children_by_local_name(manifest, "item"):
        href = str(node.attrib.get("href") or "").strip()
        item = ManifestItem(
            item_id=str(node.attrib.get("id") or "").strip(),
            href=href,
            media_type=str(node.attrib.get("media-type") or "").strip().lower(),
            properties=frozenset(part for part in str(node.attrib.get("properties") or "").split() if part),
            member_path=resolve(package.base_dir, strip_suffixes(href)) if href else "",
        )
        package.manifest_items.append(item)
        if item.item_id and item.item_id not in package.manifest:
            package.manifest[item.item_id] = item


def _read_spine(package: Package, spine: Optional[LXML_ET._Element]) -> None:
    if spine is None:
        return
    for itemref in _iter_children_by_local_name(spine, "itemref"):
        idref = str(itemref.attrib.get("idref") or "").strip()
        if not idref:
            continue
        linear = str(itemref.attrib.get("linear") or "").strip().lower() != "no"
        package.spine.append(SpineItem(idref=idref, linear=linear))


def book_title(package: Package, fallback_name: str) -> str:
    title = metadata_text(package.metadata.get("title"))
    if title:
        return title
    name = PurePosixPath((fallback_name or "").replace("\\", "/")).name
    return EPUB_SUFFIX_RE.sub("", name).strip() or "Untitled"


def _looks_like_isbn(value: str) -> bool:
    cleaned = ISBN_CHARS_RE.sub("", value or "")
    return len(cleaned) in {10, 13} and not value.lower().startswith("urn:uuid:")


def book_identifier(package: Package) -> Optional[str]:
    values = metadata_values(package.metadata.get("identifier"))
    for value in values:
        if not _looks_like_isbn(value):
            return value
    return values[0] if values else None


def _is_image(item: ManifestItem) -> bool:
    return item.media_type.startswith("image/")


def find_cover_item(package: Package) -> Optional[ManifestItem]:
    for attrs, text in package.meta_tags:
        name = attrs.get("name", "").strip().lower()
        prop = attrs.get("property", "").strip().lower()
        if name != "cover" and prop != "cover":
            continue
        cover_ref = (attrs.get("content") or text or "").strip()
        if not cover_ref:
            continue
        candidate = package.manifest.get(cover_ref)
        if candidate is None:
            candidate = package.manifest_item_for_path(resolve(package.base_dir, cover_ref))
        if candidate is not None and _is_image(candidate):
            return candidate

    for item in package.manifest_items:
        if "cover-image" in item.properties:
            return item

    for item in package.manifest_items:
        if _is_image(item):
            return item
    return None


def data_uri(payload: bytes, media_type: str) -> str:
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


def cover_data_uri(package: Package) -> tuple[Optional[str], Optional[ManifestItem]]:
    """Return the cover as a data URI, plus the manifest item it came from."""
    item = find_cover_item(package)
    if item is None or not item.member_path:
        return None, item
    payload = package.read(item.member_path)
    if payload is None:
        return None, item
    return data_uri(payload, item.media_type or "image/jpeg"), item
