"""Project directory support — finds .fecatalog/ and builds the run settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fecatalog.config import CONFIG_DIR, Settings, load_settings


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from start (default: cwd) looking for .fecatalog/ directory."""
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_DIR).is_dir():
            return parent
    return None


def project_settings(obj: dict[str, Any] | None = None, **overrides: Any) -> Settings:
    """Settings of the enclosing project, with the global --db option applied."""
    db_path = (obj or {}).get("db_path")
    return load_settings(find_project_root(), db_path=db_path, **overrides)
