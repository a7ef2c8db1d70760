from __future__ import annotations
import logging
import os
import sqlite3
from typing import List, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Engine

from errors import MigrationError

logger = logging.getLogger(__name__)

LEDGER_SQL = """
CREATE TABLE IF NOT EXISTS migrations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT UNIQUE NOT NULL,
    applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
)
"""


def _is_blank(chunk: str) -> bool:
    return all(not ln.strip() or ln.strip().startswith("--") for ln in chunk.splitlines())


def split_statements(script: str) -> List[str]:
    """Split a SQL script into single statements, keeping semicolons inside literals intact."""
    out, buf = [], ""
    for line in script.splitlines(keepends=True):
        buf += line
        if sqlite3.complete_statement(buf):
            if not _is_blank(buf): out.append(buf.strip())
            buf = ""
    if not _is_blank(buf): out.append(buf.strip())
    return out


class Migrator:
    """Applies every ``*.sql`` file in ``directory`` exactly once, in filename order.

    Each file runs in its own transaction together with its ledger row, so a
    failing file leaves neither schema changes nor a ledger entry behind.
    Already-recorded files are skipped even if their content changed.
    """

    def __init__(self, engine: Engine, directory: str):
        self.engine = engine
        self.directory = directory

    def _ensure_ledger(self):
        with self.engine.begin() as conn: conn.exec_driver_sql(LEDGER_SQL)

    def files(self) -> List[str]:
        if not os.path.isdir(self.directory): return []
        return sorted(f for f in os.listdir(self.directory) if f.endswith(".sql"))

    def applied(self) -> List[Tuple[str, object]]:
        self._ensure_ledger()
        with self.engine.connect() as conn:
            rows = conn.execute(text("SELECT filename, applied_at FROM migrations ORDER BY id")).all()
        return [(r[0], r[1]) for r in rows]

    def pending(self) -> List[str]:
        done = {name for name, _ in self.applied()}
        return [f for f in self.files() if f not in done]

    def run(self) -> List[str]:
        if not os.path.isdir(self.directory):
            logger.info("no migrations directory at %s", self.directory)
        ran = []
        for filename in self.pending():
            self._apply(filename)
            ran.append(filename)
        return ran

    def _apply(self, filename: str):
        path = os.path.join(self.directory, filename)
        logger.info("Applying migration: %s", filename)
        try:
            with open(path, encoding="utf-8") as fh: script = fh.read()
            with self.engine.begin() as conn:
                for stmt in split_statements(script): conn.exec_driver_sql(stmt)
                conn.execute(text("INSERT INTO migrations (filename) VALUES (:f)"), {"f": filename})
        except Exception as exc:
            logger.error("Migration failed: %s (%s)", filename, exc)
            raise MigrationError(filename, str(exc)) from exc
        logger.info("Migration applied: %s", filename)
