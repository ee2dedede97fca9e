"""Row decoders for the Flexible Engine pricing CSV feeds.

Both feeds are ``;`` separated, French-localized exports of the provider's
pricing sheet. Besides the real price rows they carry decorative rows:
repeated original headers, section titles and blank separators. Some of the
section titles are meaningful: in the compute feed they switch the
"convertible" pricing mode, in the OS feed they open a license block.

Decoder state is an explicit immutable value. ``scan_compute_cells`` and
``scan_os_cells`` are pure transitions ``(state, cells) -> (state, cells |
None)``; the ``read_*`` generators only thread that state through a CSV
reader.
"""

from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable, Iterator

from fecatalog.model import VmOs

logger = logging.getLogger(__name__)

DROP = "drop"
MIN_COMPUTE_CELLS = 19
MIN_OS_CELLS = 7

_ORIGINAL_HEADER = "produit"
_CONVERTIBLE_ON = "flexible elastic cloud serve"
_CONVERTIBLE_OFF = "ecs - orange business services compute"
_LICENCE_PATTERN = re.compile(r"Licence (.*)\s+\(.*")
_DIGITS = re.compile(r"[0-9]+")
_NOT_DECIMAL = re.compile(r"[^0-9,]")
_NULL_VALUES = frozenset({"", "-", "n/a", "na", "null"})

COMPUTE_HEADERS: dict[str, str] = {
    "product": "product",
    "cpu": "cpu",
    "ram (GB)": "ram",
    "cost_h": "cost1h",
    "cost_m": "cost1m",
    "cost_m_1y_no_upfront": "cost1y_per_month",
    "cost_1y_upfront_fees": "cost1y_uf_fee",
    "cost_m_1y_upfront": "cost1y_uf_per_month",
    "cost_2y_upfront_fees": "cost2y_uf_fee",
    "cost_m_2y_upfront": "cost2y_uf_per_month",
    "cost_m_3y_no_upfront": "cost3y_per_month",
    "cost_3y_upfront_fees": "cost3y_uf_fee",
    "cost_m_3y_upfront": "cost3y_uf_per_month",
    "cost_m_5y_no_upfront": "cost5y_per_month",
    "cost_m_3y_convertible": "cost3y_per_month_convertible",
}

OS_HEADERS: dict[str, str] = {
    "product": "product",
    "cost_h": "cost1h",
    "cost_m": "cost1m",
}

_COMPUTE_COSTS = (
    "cost1h",
    "cost1m",
    "cost1y_per_month",
    "cost1y_uf_fee",
    "cost1y_uf_per_month",
    "cost2y_uf_fee",
    "cost2y_uf_per_month",
    "cost3y_per_month",
    "cost3y_uf_fee",
    "cost3y_uf_per_month",
    "cost5y_per_month",
    "cost3y_per_month_convertible",
)


class FeedFormatError(OSError):
    """The feed content cannot be decoded."""


@dataclass
class ComputeRow:
    """One instance type price point of the compute feed, all terms included."""

    product: str
    cpu: int = 0
    ram: float = 0.0  # GB
    cost1h: float | None = None
    cost1m: float | None = None
    cost1y_per_month: float | None = None
    cost1y_uf_fee: float | None = None
    cost1y_uf_per_month: float | None = None
    cost2y_uf_fee: float | None = None
    cost2y_uf_per_month: float | None = None
    cost3y_per_month: float | None = None
    cost3y_uf_fee: float | None = None
    cost3y_uf_per_month: float | None = None
    cost5y_per_month: float | None = None
    cost3y_per_month_convertible: float | None = None
    convertible: bool = False


@dataclass
class OsRow:
    """License add-on price for a (region, type) within the current license block.

    ``location`` and ``type`` are filled by the OS index once the product
    text has been parsed.
    """

    product: str
    os: VmOs | None = None
    software: str | None = None
    cost1h: float | None = None
    cost1m: float | None = None
    location: str | None = None
    type: str | None = None


@dataclass(frozen=True)
class ComputeState:
    convertible: bool = False


@dataclass(frozen=True)
class OsState:
    os: VmOs | None = None
    software: str | None = None


def map_headers(cells: list[str], mapping: dict[str, str]) -> list[str]:
    """Map raw header cells to row fields, unknown cells to ``drop``."""
    return [mapping.get(cell.strip(), DROP) for cell in cells]


def parse_decimal(raw: str | None) -> float | None:
    """Parse a feed amount. Blank and placeholder cells are ``None``."""
    if raw is None:
        return None
    value = raw.strip().replace("\u00a0", "").replace(" ", "")
    if value.lower() in _NULL_VALUES:
        return None
    try:
        return float(value.replace(",", "."))
    except ValueError:
        raise FeedFormatError(f"Invalid amount {raw!r}") from None


def scan_compute_cells(state: ComputeState, cells: list[str]) -> tuple[ComputeState, list[str] | None]:
    """Apply one raw compute row to the decoder state.

    Returns the next state and the sanitized cells, or ``None`` when the row
    is not a price row.
    """
    if cells:
        col0 = cells[0].lower()
        if _CONVERTIBLE_ON in col0:
            return replace(state, convertible=True), None
        if _CONVERTIBLE_OFF in col0:
            return replace(state, convertible=False), None
        if col0.strip() == _ORIGINAL_HEADER:
            return state, None
    if len(cells) < MIN_COMPUTE_CELLS or not _DIGITS.fullmatch(cells[1]):
        return state, None

    sanitized = list(cells)
    sanitized[1] = _NOT_DECIMAL.sub("", sanitized[1])
    sanitized[2] = _NOT_DECIMAL.sub("", sanitized[2])
    return state, sanitized


def classify_licence(name: str) -> OsState | None:
    """Return the OS/software of a license block name, ``None`` when unsupported."""
    licence = name.upper()
    if "WINDOWS" in licence:
        return OsState(VmOs.WINDOWS, None)
    if "REDHAT" in licence:
        return OsState(VmOs.RHEL, None)
    if "SUSE" in licence:
        if "SAP APPLICATIONS" in licence:
            return OsState(VmOs.SUSE, "SAP APPLICATIONS")
        if "SAP" in licence:
            return OsState(VmOs.SUSE, "SAP")
        return OsState(VmOs.SUSE, None)
    return None


def scan_os_cells(state: OsState, cells: list[str]) -> tuple[OsState, list[str] | None]:
    """Apply one raw OS row to the decoder state.

    A license block header switches the state and is consumed. An
    unsupported license keeps the previous state.
    """
    if cells:
        col0 = cells[0]
        matcher = _LICENCE_PATTERN.search(col0)
        if matcher:
            licence = matcher.group(1).upper()
            block = classify_licence(licence)
            if block is None:
                logger.warning("Unsupported licence model %s", licence)
                return state, None
            return block, None
        if col0.strip().lower() == _ORIGINAL_HEADER:
            return state, None
    if len(cells) < MIN_OS_CELLS or not cells[0].strip():
        return state, None
    return state, cells


def _records(reader) -> Iterator[list[str]]:
    try:
        yield from reader
    except csv.Error as exc:
        raise FeedFormatError(f"Malformed CSV at line {reader.line_num}: {exc}") from exc


def _values(headers: list[str], cells: list[str]) -> dict[str, str]:
    return {h: v for h, v in zip(headers, cells) if h != DROP}


def _to_compute_row(headers: list[str], cells: list[str], state: ComputeState) -> ComputeRow:
    values = _values(headers, cells)
    costs = {name: parse_decimal(values.get(name)) for name in _COMPUTE_COSTS}
    return ComputeRow(
        product=values.get("product", ""),
        cpu=int(values.get("cpu") or 0),
        ram=parse_decimal(values.get("ram")) or 0.0,
        convertible=state.convertible,
        **costs,
    )


def _to_os_row(headers: list[str], cells: list[str], state: OsState) -> OsRow:
    values = _values(headers, cells)
    return OsRow(
        product=values.get("product", ""),
        os=state.os,
        software=state.software,
        cost1h=parse_decimal(values.get("cost1h")),
        cost1m=parse_decimal(values.get("cost1m")),
    )


def read_compute_rows(lines: Iterable[str], delimiter: str = ";") -> Iterator[ComputeRow]:
    """Lazily decode the compute feed. The first line must be the header."""
    records = _records(csv.reader(lines, delimiter=delimiter))
    header = next(records, None)
    if header is None:
        return
    headers = map_headers(header, COMPUTE_HEADERS)
    state = ComputeState()
    for cells in records:
        state, accepted = scan_compute_cells(state, cells)
        if accepted is None:
            logger.debug("Skipped compute row %s", cells[:1])
            continue
        yield _to_compute_row(headers, accepted, state)


def read_os_rows(lines: Iterable[str], delimiter: str = ";") -> Iterator[OsRow]:
    """Lazily decode the OS/license feed. The first line must be the header."""
    records = _records(csv.reader(lines, delimiter=delimiter))
    header = next(records, None)
    if header is None:
        return
    headers = map_headers(header, OS_HEADERS)
    state = OsState()
    for cells in records:
        state, accepted = scan_os_cells(state, cells)
        if accepted is None:
            continue
        yield _to_os_row(headers, accepted, state)


__all__ = [
    "COMPUTE_HEADERS",
    "ComputeRow",
    "ComputeState",
    "FeedFormatError",
    "OS_HEADERS",
    "OsRow",
    "OsState",
    "classify_licence",
    "map_headers",
    "parse_decimal",
    "read_compute_rows",
    "read_os_rows",
    "scan_compute_cells",
    "scan_os_cells",
]
