"""Catalog store — SQLite-backed persistence of the catalog entities of one node."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from fecatalog.config import PLUGIN_KEY
from fecatalog.model import (
    CatalogCounts,
    InstancePrice,
    InstanceType,
    PriceTerm,
    Rate,
    Region,
    SupportPrice,
    SupportType,
    Tenancy,
    VmOs,
)

_DEFAULT_DB = Path.home() / ".fecatalog" / "catalog.db"

SCHEMA = """
CREATE TABLE IF NOT EXISTS locations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    node TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT,
    sub_region TEXT,
    placement TEXT,
    continent_m49 INTEGER,
    country_m49 INTEGER,
    latitude REAL,
    longitude REAL,
    UNIQUE(node, name)
);

CREATE TABLE IF NOT EXISTS instance_types (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    node TEXT NOT NULL,
    code TEXT NOT NULL,
    name TEXT,
    description TEXT,
    cpu REAL NOT NULL DEFAULT 0,
    ram INTEGER NOT NULL DEFAULT 0,
    constant INTEGER,
    auto_scale INTEGER NOT NULL DEFAULT 0,
    processor TEXT,
    cpu_rate TEXT,
    ram_rate TEXT,
    network_rate TEXT,
    storage_rate TEXT,
    UNIQUE(node, code)
);

CREATE TABLE IF NOT EXISTS price_terms (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    node TEXT NOT NULL,
    code TEXT NOT NULL,
    name TEXT,
    period INTEGER NOT NULL DEFAULT 0,
    reservation INTEGER NOT NULL DEFAULT 0,
    convertible_family INTEGER NOT NULL DEFAULT 0,
    convertible_type INTEGER NOT NULL DEFAULT 0,
    convertible_os INTEGER NOT NULL DEFAULT 0,
    convertible_location INTEGER NOT NULL DEFAULT 0,
    ephemeral INTEGER NOT NULL DEFAULT 0,
    UNIQUE(node, code)
);

CREATE TABLE IF NOT EXISTS instance_prices (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    node TEXT NOT NULL,
    code TEXT NOT NULL,
    location_id INTEGER NOT NULL REFERENCES locations(id),
    term_id INTEGER NOT NULL REFERENCES price_terms(id),
    type_id INTEGER NOT NULL REFERENCES instance_types(id),
    os TEXT NOT NULL,
    software TEXT,
    tenancy TEXT NOT NULL DEFAULT 'SHARED',
    period INTEGER NOT NULL DEFAULT 0,
    cost REAL,
    cost_period REAL,
    initial_cost REAL,
    UNIQUE(node, code)
);

CREATE TABLE IF NOT EXISTS support_types (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    node TEXT NOT NULL,
    code TEXT NOT NULL,
    name TEXT,
    description TEXT,
    access_api TEXT,
    access_chat TEXT,
    access_email TEXT,
    access_phone TEXT,
    commitment INTEGER,
    seats INTEGER,
    level TEXT,
    sla_week_end INTEGER NOT NULL DEFAULT 0,
    UNIQUE(node, code)
);

CREATE TABLE IF NOT EXISTS support_prices (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    node TEXT NOT NULL,
    code TEXT NOT NULL,
    type_id INTEGER NOT NULL REFERENCES support_types(id),
    min_amount REAL NOT NULL DEFAULT 0,
    limit_amount REAL,
    rate REAL,
    cost REAL,
    UNIQUE(node, code)
);

CREATE TABLE IF NOT EXISTS catalog_metadata (
    node TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY(node, key)
);

CREATE INDEX IF NOT EXISTS idx_price_location ON instance_prices(location_id);
CREATE INDEX IF NOT EXISTS idx_price_term ON instance_prices(term_id);
CREATE INDEX IF NOT EXISTS idx_price_type ON instance_prices(type_id);
"""


def _enum(cls, value):
    return cls(value) if value is not None else None


def _value(member) -> str | None:
    return member.value if member is not None else None


class CatalogStore:
    """SQLite-backed catalog of one provider node.

    Every entity written through ``save_*`` gets its ``id`` assigned on
    first insert; later saves update the row in place. Writes issued inside
    ``transaction()`` share one connection and commit together.
    """

    def __init__(self, db_path: str | Path | None = None, node: str = PLUGIN_KEY):
        self.db_path = Path(db_path) if db_path else _DEFAULT_DB
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.node = node
        self._active: sqlite3.Connection | None = None
        self._ensure_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if self._active is not None:
            yield self._active
            return
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[CatalogStore]:
        """Group the writes of a block into a single commit, rolled back on error."""
        if self._active is not None:
            yield self
            return
        with self._connect() as conn:
            self._active = conn
            try:
                yield self
            finally:
                self._active = None

    def _ensure_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _save(self, table: str, entity: Any, values: dict[str, Any]) -> None:
        # table and column names come from the fixed mappings below, never from input
        with self._connect() as conn:
            if entity.id is None:
                columns = ["node", *values]
                placeholders = ", ".join("?" for _ in columns)
                cursor = conn.execute(
                    f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",  # noqa: S608
                    [self.node, *values.values()],
                )
                entity.id = cursor.lastrowid
            else:
                assignments = ", ".join(f"{c} = ?" for c in values)
                conn.execute(
                    f"UPDATE {table} SET {assignments} WHERE id = ?",  # noqa: S608
                    [*values.values(), entity.id],
                )

    def save_region(self, region: Region) -> None:
        self._save(
            "locations",
            region,
            {
                "name": region.name,
                "description": region.description,
                "sub_region": region.sub_region,
                "placement": region.placement,
                "continent_m49": region.continent_m49,
                "country_m49": region.country_m49,
                "latitude": region.latitude,
                "longitude": region.longitude,
            },
        )

    def save_instance_type(self, itype: InstanceType) -> None:
        self._save(
            "instance_types",
            itype,
            {
                "code": itype.code,
                "name": itype.name,
                "description": itype.description,
                "cpu": itype.cpu,
                "ram": itype.ram,
                "constant": itype.constant,
                "auto_scale": itype.auto_scale,
                "processor": itype.processor,
                "cpu_rate": _value(itype.cpu_rate),
                "ram_rate": _value(itype.ram_rate),
                "network_rate": _value(itype.network_rate),
                "storage_rate": _value(itype.storage_rate),
            },
        )

    def save_price_term(self, term: PriceTerm) -> None:
        self._save(
            "price_terms",
            term,
            {
                "code": term.code,
                "name": term.name,
                "period": term.period,
                "reservation": term.reservation,
                "convertible_family": term.convertible_family,
                "convertible_type": term.convertible_type,
                "convertible_os": term.convertible_os,
                "convertible_location": term.convertible_location,
                "ephemeral": term.ephemeral,
            },
        )

    def save_instance_price(self, price: InstancePrice) -> None:
        if price.location is None or price.term is None or price.type is None:
            raise ValueError(f"Instance price {price.code} is not attached to a location, term and type")
        self._save(
            "instance_prices",
            price,
            {
                "code": price.code,
                "location_id": price.location.id,
                "term_id": price.term.id,
                "type_id": price.type.id,
                "os": _value(price.os),
                "software": price.software,
                "tenancy": _value(price.tenancy),
                "period": price.period,
                "cost": price.cost,
                "cost_period": price.cost_period,
                "initial_cost": price.initial_cost,
            },
        )

    def save_support_type(self, support_type: SupportType) -> None:
        self._save(
            "support_types",
            support_type,
            {
                "code": support_type.code,
                "name": support_type.name,
                "description": support_type.description,
                "access_api": support_type.access_api,
                "access_chat": support_type.access_chat,
                "access_email": support_type.access_email,
                "access_phone": support_type.access_phone,
                "commitment": support_type.commitment,
                "seats": support_type.seats,
                "level": _value(support_type.level),
                "sla_week_end": support_type.sla_week_end,
            },
        )

    def save_support_price(self, price: SupportPrice) -> None:
        if price.type is None:
            raise ValueError(f"Support price {price.code} has no type")
        self._save(
            "support_prices",
            price,
            {
                "code": price.code,
                "type_id": price.type.id,
                "min_amount": price.min,
                "limit_amount": price.limit,
                "rate": price.rate,
                "cost": price.cost,
            },
        )

    def delete_instance_prices(self, keep: set[str]) -> int:
        """Delete the prices of this node whose code is not in ``keep``."""
        with self._connect() as conn:
            rows = conn.execute("SELECT id, code FROM instance_prices WHERE node = ?", (self.node,)).fetchall()
            stale = [(r["id"],) for r in rows if r["code"] not in keep]
            conn.executemany("DELETE FROM instance_prices WHERE id = ?", stale)
            return len(stale)

    def set_metadata(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO catalog_metadata (node, key, value, updated_at) VALUES (?, ?, ?, ?)",
                (self.node, key, value, datetime.now(timezone.utc).isoformat()),
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _rows(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._connect() as conn:
            return conn.execute(sql, (self.node, *params)).fetchall()

    def find_regions(self) -> dict[str, Region]:
        return {
            r["name"]: Region(
                id=r["id"],
                name=r["name"],
                description=r["description"],
                sub_region=r["sub_region"],
                placement=r["placement"],
                continent_m49=r["continent_m49"],
                country_m49=r["country_m49"],
                latitude=r["latitude"],
                longitude=r["longitude"],
            )
            for r in self._rows("SELECT * FROM locations WHERE node = ?")
        }

    def find_instance_types(self) -> dict[str, InstanceType]:
        return {
            r["code"]: InstanceType(
                id=r["id"],
                code=r["code"],
                name=r["name"],
                description=r["description"],
                cpu=r["cpu"],
                ram=r["ram"],
                constant=None if r["constant"] is None else bool(r["constant"]),
                auto_scale=bool(r["auto_scale"]),
                processor=r["processor"],
                cpu_rate=_enum(Rate, r["cpu_rate"]),
                ram_rate=_enum(Rate, r["ram_rate"]),
                network_rate=_enum(Rate, r["network_rate"]),
                storage_rate=_enum(Rate, r["storage_rate"]),
            )
            for r in self._rows("SELECT * FROM instance_types WHERE node = ?")
        }

    def find_price_terms(self) -> dict[str, PriceTerm]:
        return {
            r["code"]: PriceTerm(
                id=r["id"],
                code=r["code"],
                name=r["name"],
                period=r["period"],
                reservation=bool(r["reservation"]),
                convertible_family=bool(r["convertible_family"]),
                convertible_type=bool(r["convertible_type"]),
                convertible_os=bool(r["convertible_os"]),
                convertible_location=bool(r["convertible_location"]),
                ephemeral=bool(r["ephemeral"]),
            )
            for r in self._rows("SELECT * FROM price_terms WHERE node = ?")
        }

    def find_instance_prices(
        self,
        regions: dict[str, Region] | None = None,
        types: dict[str, InstanceType] | None = None,
        terms: dict[str, PriceTerm] | None = None,
    ) -> dict[str, InstancePrice]:
        """Load the prices keyed by code, attached to the given (or freshly loaded) entities."""
        by_id_region = {r.id: r for r in (regions if regions is not None else self.find_regions()).values()}
        by_id_type = {t.id: t for t in (types if types is not None else self.find_instance_types()).values()}
        by_id_term = {t.id: t for t in (terms if terms is not None else self.find_price_terms()).values()}
        return {
            r["code"]: InstancePrice(
                id=r["id"],
                code=r["code"],
                location=by_id_region.get(r["location_id"]),
                term=by_id_term.get(r["term_id"]),
                type=by_id_type.get(r["type_id"]),
                os=_enum(VmOs, r["os"]),
                software=r["software"],
                tenancy=Tenancy(r["tenancy"]),
                period=r["period"],
                cost=r["cost"],
                cost_period=r["cost_period"],
                initial_cost=r["initial_cost"],
            )
            for r in self._rows("SELECT * FROM instance_prices WHERE node = ?")
        }

    def find_support_types(self) -> dict[str, SupportType]:
        return {
            r["code"]: SupportType(
                id=r["id"],
                code=r["code"],
                name=r["name"],
                description=r["description"],
                access_api=r["access_api"],
                access_chat=r["access_chat"],
                access_email=r["access_email"],
                access_phone=r["access_phone"],
                commitment=r["commitment"],
                seats=r["seats"],
                level=_enum(Rate, r["level"]),
                sla_week_end=bool(r["sla_week_end"]),
            )
            for r in self._rows("SELECT * FROM support_types WHERE node = ?")
        }

    def find_support_prices(self, types: dict[str, SupportType] | None = None) -> dict[str, SupportPrice]:
        by_id_type = {t.id: t for t in (types if types is not None else self.find_support_types()).values()}
        return {
            r["code"]: SupportPrice(
                id=r["id"],
                code=r["code"],
                type=by_id_type.get(r["type_id"]),
                min=r["min_amount"],
                limit=r["limit_amount"],
                rate=r["rate"],
                cost=r["cost"],
            )
            for r in self._rows("SELECT * FROM support_prices WHERE node = ?")
        }

    def search_prices(
        self,
        location: str | None = None,
        term: str | None = None,
        os: str | None = None,
        instance_type: str | None = None,
        limit: int = 50,
    ) -> list[dict]:
        """List stored prices, cheapest first."""
        conditions = ["p.node = ?"]
        params: list[Any] = []
        if location:
            conditions.append("l.name = ?")
            params.append(location)
        if term:
            conditions.append("t.code = ?")
            params.append(term.lower())
        if os:
            conditions.append("p.os = ?")
            params.append(os.upper())
        if instance_type:
            conditions.append("i.code LIKE ?")
            params.append(f"%{instance_type}%")
        # conditions are built only from hardcoded strings above
        sql = (  # noqa: S608
            "SELECT p.code, l.name AS location, t.code AS term, i.code AS type, i.cpu, i.ram,"
            " p.os, p.software, p.cost, p.cost_period, p.initial_cost, p.period"
            " FROM instance_prices p"
            " JOIN locations l ON l.id = p.location_id"
            " JOIN price_terms t ON t.id = p.term_id"
            " JOIN instance_types i ON i.id = p.type_id"
            " WHERE " + " AND ".join(conditions) + " ORDER BY p.cost ASC, p.code ASC LIMIT ?"
        )
        params.append(limit)
        return [dict(r) for r in self._rows(sql, tuple(params))]

    def get_metadata(self, key: str) -> str | None:
        rows = self._rows("SELECT value FROM catalog_metadata WHERE node = ? AND key = ?", (key,))
        return rows[0]["value"] if rows else None

    def get_stats(self) -> CatalogCounts:
        with self._connect() as conn:

            def _count(table: str) -> int:
                return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE node = ?", (self.node,)).fetchone()[0]  # noqa: S608

            by_term = {
                r["code"]: r["n"]
                for r in conn.execute(
                    "SELECT t.code, COUNT(p.id) AS n FROM price_terms t"
                    " LEFT JOIN instance_prices p ON p.term_id = t.id"
                    " WHERE t.node = ? GROUP BY t.code ORDER BY t.code",
                    (self.node,),
                )
            }
            return CatalogCounts(
                locations=_count("locations"),
                instance_types=_count("instance_types"),
                price_terms=_count("price_terms"),
                instance_prices=_count("instance_prices"),
                support_types=_count("support_types"),
                support_prices=_count("support_prices"),
                by_term=by_term,
            )
