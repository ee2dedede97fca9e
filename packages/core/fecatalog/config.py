"""Import settings — defaults, project YAML file, then environment."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from fecatalog.adapters.fe import DEFAULT_PRICES_URL

PLUGIN_KEY = "service:prov:fe"
DEFAULT_HOURS_MONTH = 730
CONFIG_DIR = ".fecatalog"
CONFIG_FILE = "config.yaml"
ENV_PREFIX = "FECATALOG_"


class Settings(BaseModel):
    """Configuration of one catalog import run.

    The three patterns restrict the imported regions, instance types and
    operating systems. They must match the whole value; ``.*`` means no
    restriction.
    """

    model_config = ConfigDict(extra="ignore")

    prices_url: str = DEFAULT_PRICES_URL
    regions: str = ".*"
    instance_type: str = ".*"
    os: str = ".*"
    hours_month: float = Field(DEFAULT_HOURS_MONTH, gt=0)
    node: str = PLUGIN_KEY
    db_path: Path | None = None
    timeout: int = Field(30, gt=0)

    @field_validator("regions", "instance_type", "os")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"Invalid pattern {v!r}: {exc}") from exc
        return v

    @field_validator("prices_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("prices-url must not be empty")
        return v


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for name in Settings.model_fields:
        value = env.get(ENV_PREFIX + name.upper())
        if value:
            overrides[name] = value
    return overrides


def load_config_file(project_root: Path) -> dict[str, Any]:
    """Load .fecatalog/config.yaml if it exists."""
    config_path = project_root / CONFIG_DIR / CONFIG_FILE
    if config_path.exists():
        return yaml.safe_load(config_path.read_text()) or {}
    return {}


def load_settings(
    project_root: Path | None = None,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> Settings:
    """Build the settings: defaults < project file < environment < explicit overrides."""
    values: dict[str, Any] = {}
    if project_root is not None:
        # YAML keys are dashed: prices-url, instance-type, hours-month, db-path
        values.update({str(k).replace("-", "_"): v for k, v in load_config_file(project_root).items()})
    values.update(_env_overrides(os.environ if env is None else env))
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings.model_validate(values)
