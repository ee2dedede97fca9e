"""Catalog entities — the shapes the merge engine reads and writes.

Entities are plain mutable dataclasses. An entity with ``id is None`` has
never been persisted; the store assigns the id on first save.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Rate(str, Enum):
    """Performance tier, ordered from worst to best."""

    WORST = "WORST"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    GOOD = "GOOD"
    BEST = "BEST"


class VmOs(str, Enum):
    LINUX = "LINUX"
    WINDOWS = "WINDOWS"
    RHEL = "RHEL"
    SUSE = "SUSE"


class Tenancy(str, Enum):
    SHARED = "SHARED"
    DEDICATED = "DEDICATED"


@dataclass
class Region:
    name: str
    description: str | None = None
    sub_region: str | None = None
    placement: str | None = None
    continent_m49: int | None = None
    country_m49: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    id: int | None = None

    @property
    def is_new(self) -> bool:
        return self.id is None


@dataclass
class InstanceType:
    code: str
    name: str | None = None
    description: str | None = None
    cpu: float = 0
    ram: int = 0  # MB
    constant: bool | None = None
    auto_scale: bool = False
    processor: str | None = None
    cpu_rate: Rate | None = None
    ram_rate: Rate | None = None
    network_rate: Rate | None = None
    storage_rate: Rate | None = None
    id: int | None = None

    @property
    def is_new(self) -> bool:
        return self.id is None


@dataclass
class PriceTerm:
    code: str
    name: str | None = None
    period: int = 0  # months
    reservation: bool = False
    convertible_family: bool = False
    convertible_type: bool = False
    convertible_os: bool = False
    convertible_location: bool = False
    ephemeral: bool = False
    id: int | None = None

    @property
    def is_new(self) -> bool:
        return self.id is None


@dataclass
class InstancePrice:
    """One priced (region, term, instance type, OS) combination."""

    code: str
    location: Region | None = None
    term: PriceTerm | None = None
    type: InstanceType | None = None
    os: VmOs | None = None
    software: str | None = None
    tenancy: Tenancy = Tenancy.SHARED
    period: int = 0
    cost: float | None = None
    cost_period: float | None = None
    initial_cost: float | None = None
    id: int | None = None

    @property
    def is_new(self) -> bool:
        return self.id is None


@dataclass
class SupportType:
    code: str
    name: str | None = None
    description: str | None = None
    access_api: str | None = None
    access_chat: str | None = None
    access_email: str | None = None
    access_phone: str | None = None
    commitment: int | None = None
    seats: int | None = None
    level: Rate | None = None
    sla_week_end: bool = False
    id: int | None = None

    @property
    def is_new(self) -> bool:
        return self.id is None


@dataclass
class SupportPrice:
    code: str
    type: SupportType | None = None
    min: float = 0.0
    limit: float | None = None
    rate: float | None = None
    cost: float | None = None
    id: int | None = None

    @property
    def is_new(self) -> bool:
        return self.id is None


@dataclass
class CatalogCounts:
    """Per-node entity counts reported by the store."""

    locations: int = 0
    instance_types: int = 0
    price_terms: int = 0
    instance_prices: int = 0
    support_types: int = 0
    support_prices: int = 0
    by_term: dict[str, int] = field(default_factory=dict)


__all__ = [
    "CatalogCounts",
    "InstancePrice",
    "InstanceType",
    "PriceTerm",
    "Rate",
    "Region",
    "SupportPrice",
    "SupportType",
    "Tenancy",
    "VmOs",
]
