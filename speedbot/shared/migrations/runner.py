"""Applies the SQL files in ``versions/`` once each, in filename order."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"


class MigrationRunner:
    """Execute and track schema migrations for the streams store.

    Files are named ``NNN_description.sql``; each applied file stem is
    recorded in ``schema_migrations`` and skipped on later runs.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def ensure_table(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                    version    TEXT PRIMARY KEY,
                    name       TEXT NOT NULL,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )

    async def get_applied(self) -> set[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
            return {row["version"] for row in rows}

    async def run_pending(self, migrations_dir: Path | None = None) -> list[str]:
        """Apply pending migrations and return the newly applied versions."""
        migrations_dir = migrations_dir or VERSIONS_DIR
        await self.ensure_table()
        applied = await self.get_applied()

        pending = [p for p in sorted(migrations_dir.glob("*.sql")) if p.stem not in applied]
        for sql_path in pending:
            await self._apply_one(sql_path.stem, sql_path.name, sql_path.read_text(encoding="utf-8"))

        if pending:
            logger.info(f"Applied {len(pending)} migration(s): {', '.join(p.stem for p in pending)}")
        else:
            logger.info("Schema is up to date")
        return [p.stem for p in pending]

    async def _apply_one(self, version: str, name: str, sql: str) -> None:
        logger.info(f"Applying migration: {version}")
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute(
                    f"INSERT INTO {self.TRACKING_TABLE} (version, name) VALUES ($1, $2)",
                    version,
                    name,
                )
