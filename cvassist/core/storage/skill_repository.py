"""SQLite-backed repository for skill records and raw embedding bytes.

Skill records are reference data: the query path only reads them. Vectors
are stored as float32 BLOBs next to a JSON metadata snapshot so the linear
scan backend can filter and rank without touching the skills table.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Iterator

import numpy as np

from ..models.skill import EmbeddingVector, SkillRecord
from ...observability.logger import get_logger

logger = get_logger(__name__)

_SKILL_COLUMNS = (
    "id",
    "name",
    "category",
    "years_of_experience",
    "proficiency_level",
    "narrative_summary",
    "action",
    "effect",
    "outcome",
    "related_project",
    "employer",
    "recency",
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS skills (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    category TEXT,
    years_of_experience REAL NOT NULL DEFAULT 0,
    proficiency_level TEXT NOT NULL DEFAULT '',
    narrative_summary TEXT,
    action TEXT,
    effect TEXT,
    outcome TEXT,
    related_project TEXT,
    employer TEXT,
    recency TEXT
);
CREATE TABLE IF NOT EXISTS vectors (
    item_id INTEGER NOT NULL,
    item_type TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 0,
    embedding BLOB NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}',
    PRIMARY KEY (item_id, item_type)
);
"""


class SkillRepository:
    """Read access to skills and raw vectors, plus the writes reindexing needs."""

    def __init__(self, db_path: str | Path | None = None):
        self.db_path = Path(db_path) if db_path else Path("data/skills.db")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    def ensure_schema(self) -> None:
        """Create the two tables if missing (local bootstrap only, no migrations)."""
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    # ------------------------------------------------------------------
    # Skills
    # ------------------------------------------------------------------
    def save_skills(self, records: list[SkillRecord]) -> None:
        placeholders = ", ".join("?" for _ in _SKILL_COLUMNS)
        rows = [tuple(getattr(r, col) for col in _SKILL_COLUMNS) for r in records]
        with self._connect() as conn:
            conn.executemany(
                f"INSERT OR REPLACE INTO skills ({', '.join(_SKILL_COLUMNS)}) VALUES ({placeholders})",
                rows,
            )
        self.logger.info("skills_saved", count=len(rows))

    def get_skill(self, skill_id: int) -> SkillRecord | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM skills WHERE id = ?", (skill_id,)).fetchone()
        return SkillRecord(**dict(row)) if row else None

    def get_skills(self, skill_ids: list[int]) -> dict[int, SkillRecord]:
        """Fetch several skills at once, keyed by id. Unknown ids are omitted."""
        if not skill_ids:
            return {}
        placeholders = ", ".join("?" for _ in skill_ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM skills WHERE id IN ({placeholders})", tuple(skill_ids)
            ).fetchall()
        return {row["id"]: SkillRecord(**dict(row)) for row in rows}

    def list_skills(self, limit: int, offset: int = 0) -> list[SkillRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM skills ORDER BY id LIMIT ? OFFSET ?", (limit, offset)
            ).fetchall()
        return [SkillRecord(**dict(row)) for row in rows]

    def count_skills(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM skills").fetchone()[0]

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------
    def save_vectors(self, vectors: list[EmbeddingVector]) -> None:
        rows = [
            (
                v.item_id,
                v.item_type,
                v.metadata.version,
                np.asarray(v.values, dtype=np.float32).tobytes(),
                json.dumps(v.metadata.model_dump(mode="json")),
            )
            for v in vectors
        ]
        with self._connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO vectors (item_id, item_type, version, embedding, metadata) "
                "VALUES (?, ?, ?, ?, ?)",
                rows,
            )
        self.logger.info("vectors_saved", count=len(rows))

    def iter_vectors(
        self,
        item_type: str = "skills",
        employer: str | None = None,
    ) -> Iterator[tuple[int, bytes, dict[str, Any]]]:
        """Yield (item_id, raw float32 bytes, metadata) for one item type.

        Args:
            item_type: Vector namespace
            employer: Optional case-insensitive employer filter

        Yields:
            Raw rows; decoding and validation are left to the caller
        """
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT item_id, embedding, metadata FROM vectors WHERE item_type = ? ORDER BY item_id",
                (item_type,),
            ).fetchall()

        wanted = employer.lower() if employer else None
        for row in rows:
            try:
                metadata = json.loads(row["metadata"] or "{}")
            except json.JSONDecodeError:
                self.logger.warning("vector_metadata_corrupt", item_id=row["item_id"])
                metadata = {}
            if not isinstance(metadata, dict):
                self.logger.warning("vector_metadata_not_object", item_id=row["item_id"])
                metadata = {}
            if wanted and str(metadata.get("employer", "")).lower() != wanted:
                continue
            yield row["item_id"], bytes(row["embedding"]), metadata

    def count_vectors(self, item_type: str = "skills") -> int:
        with self._connect() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM vectors WHERE item_type = ?", (item_type,)
            ).fetchone()[0]

    def health(self) -> bool:
        try:
            with self._connect() as conn:
                conn.execute("SELECT 1 FROM skills LIMIT 1").fetchall()
            return True
        except sqlite3.Error as exc:
            self.logger.warning("repository_unhealthy", error=str(exc))
            return False
