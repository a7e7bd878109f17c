"""Apply the bundled schema (advads_hub/sql/001_init.sql) through the RDS Data API."""
from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path

from advads_hub.rds_data import RdsData

logger = logging.getLogger(__name__)

DEFAULT_SQL_NAME = "001_init.sql"


def load_schema_sql(sql_file: Path | None = None) -> str:
    """Read ``sql_file``, or the schema shipped inside the package."""
    if sql_file is not None:
        return Path(sql_file).read_text(encoding="utf-8")
    return resources.files("advads_hub").joinpath("sql").joinpath(DEFAULT_SQL_NAME).read_text(encoding="utf-8")


def split_sql(sql_text: str) -> list[str]:
    # Naive splitter: good enough for our small schema file (no ';' inside literals).
    stmts: list[str] = []
    buf: list[str] = []
    for line in sql_text.splitlines():
        if line.strip().startswith("--"):
            continue
        buf.append(line)
        if ";" in line:
            parts = "\n".join(buf).split(";")
            stmts.extend(p.strip() for p in parts[:-1] if p.strip())
            buf = [parts[-1]]
    tail = "\n".join(buf).strip()
    if tail:
        stmts.append(tail)
    return stmts


def apply_schema(db: RdsData, sql_file: Path | None = None) -> int:
    """Execute every schema statement; returns how many ran."""
    stmts = split_sql(load_schema_sql(sql_file))
    for i, stmt in enumerate(stmts, start=1):
        logger.info("[%d/%d] %s...", i, len(stmts), stmt.splitlines()[0][:80])
        db.execute(stmt)
    return len(stmts)
