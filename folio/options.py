from __future__ import annotations

from dataclasses import dataclass

from .env import read_env_int

WORKERS_ENV = "FOLIO_PARSE_WORKERS"
FRONT_MATTER_MIN_CHARS_ENV = "FOLIO_FRONT_MATTER_MIN_CHARS"
CSS_IMPORT_DEPTH_ENV = "FOLIO_CSS_IMPORT_DEPTH"


@dataclass(frozen=True)
class ParseOptions:
    max_workers: int = 4
    # 低于该字数且无图像的目录/版权页等前置内容会被丢弃
    front_matter_min_chars: int = 120
    css_import_depth: int = 8


DEFAULT_OPTIONS = ParseOptions()


def options_from_env() -> ParseOptions:
    return ParseOptions(
        max_workers=read_env_int(WORKERS_ENV, DEFAULT_OPTIONS.max_workers, minimum=1),
        front_matter_min_chars=read_env_int(
            FRONT_MATTER_MIN_CHARS_ENV, DEFAULT_OPTIONS.front_matter_min_chars
        ),
        css_import_depth=read_env_int(CSS_IMPORT_DEPTH_ENV, DEFAULT_OPTIONS.css_import_depth, minimum=1),
    )
