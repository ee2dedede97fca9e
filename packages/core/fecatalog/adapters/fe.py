"""Flexible Engine pricing feed adapter.

The provider publishes two CSV exports of its pricing sheet under a common
base URL: ``/prices/pricing-compute.csv`` (one row per region and instance
type, with every commitment term in columns) and ``/prices/pricing-os.csv``
(license add-on costs, grouped in license blocks).
"""

from __future__ import annotations

import logging
import urllib.request
from typing import Iterator

from fecatalog.adapters import FeedAdapter, urlopen_safe
from fecatalog.feed import ComputeRow, OsRow, read_compute_rows, read_os_rows

logger = logging.getLogger(__name__)

DEFAULT_PRICES_URL = "https://fe.ligoj.io"
COMPUTE_PATH = "/prices/pricing-compute.csv"
OS_PATH = "/prices/pricing-os.csv"
_TIMEOUT = 30  # seconds


class FePricingAdapter(FeedAdapter):
    """Fetches and decodes the Flexible Engine compute and OS feeds."""

    provider = "fe"

    def __init__(self, prices_url: str = DEFAULT_PRICES_URL, timeout: int = _TIMEOUT, delimiter: str = ";"):
        self.prices_url = prices_url.rstrip("/")
        self._timeout = timeout
        self._delimiter = delimiter

    @property
    def compute_url(self) -> str:
        return self.prices_url + COMPUTE_PATH

    @property
    def os_url(self) -> str:
        return self.prices_url + OS_PATH

    def fetch_compute_rows(self) -> Iterator[ComputeRow]:
        return read_compute_rows(self._lines(self.compute_url), delimiter=self._delimiter)

    def fetch_os_rows(self) -> Iterator[OsRow]:
        return read_os_rows(self._lines(self.os_url), delimiter=self._delimiter)

    def _lines(self, url: str) -> list[str]:
        logger.info("Fetching %s", url)
        data = self._get(url)
        return data.decode("utf-8-sig", errors="replace").splitlines()

    def _get(self, url: str) -> bytes:
        req = urllib.request.Request(url, headers={"Accept": "text/csv, */*"})
        return urlopen_safe(req, timeout=self._timeout)
