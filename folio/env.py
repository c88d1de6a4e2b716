from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


def read_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value not in {None, ""}:
        return value

    file_var = os.getenv(f"{name}_FILE")
    if not file_var:
        return default

    try:
        content = Path(file_var).read_text(encoding="utf-8")
    except OSError:
        return default
    return content.rstrip("\r\n")


def read_env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = read_env(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value >= minimum else default
