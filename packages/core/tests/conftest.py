"""Shared fixtures for core tests."""

from __future__ import annotations

import pytest
from fe_feeds import compute_line
from fecatalog.catalog.store import CatalogStore
from fecatalog.config import Settings


@pytest.fixture
def store(tmp_path) -> CatalogStore:
    return CatalogStore(tmp_path / "catalog.db")


@pytest.fixture
def settings() -> Settings:
    return Settings(hours_month=720)


@pytest.fixture
def paris_micro() -> str:
    return compute_line("Paris - t2.micro (1 vCPU, 1GB RAM)", cpu=1, ram="1", cost_h=0.02)
