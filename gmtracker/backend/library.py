"""Reference data lookups for creatures, hazards and treasure items."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Protocol


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HazardProfile:
    level: int
    complex: bool = False


@dataclass(frozen=True)
class ItemProfile:
    price: float | None
    level: int = 0
    consumable: bool = False


class LibraryLookup(Protocol):
    def creature_levels(self, ids: Iterable[int]) -> dict[int, int]:
        """Return levels for the creature ids that exist."""

    def hazard_profiles(self, ids: Iterable[int]) -> dict[int, HazardProfile]:
        """Return level and complexity for the hazard ids that exist."""

    def item_profiles(self, ids: Iterable[int]) -> dict[int, ItemProfile]:
        """Return price, level and consumable flag for the item ids that exist."""

    def add_creature(self, creature_id: int, level: int) -> None:
        """Insert or replace a creature."""

    def add_hazard(self, hazard_id: int, level: int, complex: bool = False) -> None:
        """Insert or replace a hazard."""

    def add_item(self, item_id: int, price: float | None, level: int = 0, consumable: bool = False) -> None:
        """Insert or replace a treasure item."""


@dataclass
class InMemoryLibrary:
    def __post_init__(self) -> None:
        self._creatures: dict[int, int] = {}
        self._hazards: dict[int, HazardProfile] = {}
        self._items: dict[int, ItemProfile] = {}

    def add_creature(self, creature_id: int, level: int) -> None:
        self._creatures[creature_id] = level

    def add_hazard(self, hazard_id: int, level: int, complex: bool = False) -> None:
        self._hazards[hazard_id] = HazardProfile(level=level, complex=complex)

    def add_item(self, item_id: int, price: float | None, level: int = 0, consumable: bool = False) -> None:
        self._items[item_id] = ItemProfile(price=price, level=level, consumable=consumable)

    def creature_levels(self, ids: Iterable[int]) -> dict[int, int]:
        return {creature_id: self._creatures[creature_id] for creature_id in ids if creature_id in self._creatures}

    def hazard_profiles(self, ids: Iterable[int]) -> dict[int, HazardProfile]:
        return {hazard_id: self._hazards[hazard_id] for hazard_id in ids if hazard_id in self._hazards}

    def item_profiles(self, ids: Iterable[int]) -> dict[int, ItemProfile]:
        return {item_id: self._items[item_id] for item_id in ids if item_id in self._items}


@dataclass
class PostgresLibrary:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def creature_levels(self, ids: Iterable[int]) -> dict[int, int]:
        rows = self._fetch("SELECT id, level FROM library_creatures WHERE id = ANY(%s)", ids)
        return {int(row[0]): int(row[1]) for row in rows}

    def hazard_profiles(self, ids: Iterable[int]) -> dict[int, HazardProfile]:
        rows = self._fetch("SELECT id, level, complex FROM library_hazards WHERE id = ANY(%s)", ids)
        return {int(row[0]): HazardProfile(level=int(row[1]), complex=bool(row[2])) for row in rows}

    def item_profiles(self, ids: Iterable[int]) -> dict[int, ItemProfile]:
        rows = self._fetch("SELECT id, price, level, consumable FROM library_items WHERE id = ANY(%s)", ids)
        return {
            int(row[0]): ItemProfile(
                price=float(row[1]) if row[1] is not None else None,
                level=int(row[2]),
                consumable=bool(row[3]),
            )
            for row in rows
        }

    def _fetch(self, sql: str, ids: Iterable[int]) -> list[tuple]:
        unique_ids = sorted(set(ids))
        if not unique_ids:
            return []
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (unique_ids,))
                rows = cur.fetchall()
        logger.debug("library lookup matched %d of %d ids", len(rows), len(unique_ids))
        return rows

    def add_creature(self, creature_id: int, level: int) -> None:
        self._upsert(
            """
            INSERT INTO library_creatures (id, level) VALUES (%s, %s)
            ON CONFLICT (id) DO UPDATE SET level = EXCLUDED.level
            """,
            (creature_id, level),
        )

    def add_hazard(self, hazard_id: int, level: int, complex: bool = False) -> None:
        self._upsert(
            """
            INSERT INTO library_hazards (id, level, complex) VALUES (%s, %s, %s)
            ON CONFLICT (id) DO UPDATE SET level = EXCLUDED.level, complex = EXCLUDED.complex
            """,
            (hazard_id, level, complex),
        )

    def add_item(self, item_id: int, price: float | None, level: int = 0, consumable: bool = False) -> None:
        self._upsert(
            """
            INSERT INTO library_items (id, price, level, consumable) VALUES (%s, %s, %s, %s)
            ON CONFLICT (id) DO UPDATE
            SET price = EXCLUDED.price, level = EXCLUDED.level, consumable = EXCLUDED.consumable
            """,
            (item_id, price, level, consumable),
        )

    def _upsert(self, sql: str, params: tuple) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
            conn.commit()
