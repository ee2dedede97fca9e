"""Feed adapters — fetch the provider pricing feeds over HTTP(S)."""

from __future__ import annotations

import ssl
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from typing import Iterator

import certifi

from fecatalog.feed import ComputeRow, OsRow


def _ssl_context() -> ssl.SSLContext:
    """Create an SSL context using the certifi CA bundle."""
    return ssl.create_default_context(cafile=certifi.where())


def urlopen_safe(req: urllib.request.Request, timeout: int = 30) -> bytes:
    """urlopen with certifi SSL, mapping a missing resource to FileNotFoundError."""
    ctx = _ssl_context()
    try:
        with urllib.request.urlopen(req, timeout=timeout, context=ctx) as resp:
            return resp.read()
    except urllib.error.HTTPError as exc:
        if exc.code == 404:
            raise FileNotFoundError(req.full_url) from exc
        raise
    except urllib.error.URLError as exc:
        # file:// URLs wrap the underlying OSError
        if isinstance(exc.reason, FileNotFoundError):
            raise FileNotFoundError(req.full_url) from exc
        raise


class FeedAdapter(ABC):
    """Abstract source of the two pricing feeds.

    Both methods return lazy, non-restartable iterators. The underlying
    resource is released before the first row is yielded.
    """

    provider: str

    @abstractmethod
    def fetch_compute_rows(self) -> Iterator[ComputeRow]:
        """Yield decoded compute price rows."""

    @abstractmethod
    def fetch_os_rows(self) -> Iterator[OsRow]:
        """Yield decoded OS/license price rows."""


__all__ = ["FeedAdapter", "urlopen_safe"]
