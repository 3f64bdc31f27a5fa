"""SQLiteStore: local file-based review history.

Schema:
  reviews  one row per review run; findings are kept as a JSON column so
           the read path needs no JOIN.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from prscope_store.base import BaseStore
from prscope_store.models import FindingRecord, ReviewRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS reviews (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    repo            TEXT NOT NULL,
    pr_number       INTEGER NOT NULL,
    run_id          TEXT NOT NULL,
    head_sha        TEXT,
    status          TEXT NOT NULL,
    summary         TEXT,
    reviewed_at     TEXT,
    findings_json   TEXT DEFAULT '[]'
);
CREATE INDEX IF NOT EXISTS idx_reviews_repo ON reviews (repo);
CREATE INDEX IF NOT EXISTS idx_reviews_pr   ON reviews (repo, pr_number);
"""


class SQLiteStore(BaseStore):
    """Stores review history in a SQLite database file.

    The path defaults to ``.prscope.db`` in the working directory and is
    configured with ``store_path`` in .prscope.yml.
    """

    def __init__(self, db_path: str = ".prscope.db"):
        # The engine may call list_reviews from a worker thread.
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def save(self, record: ReviewRecord) -> None:
        findings_json = json.dumps(
            [
                {
                    "severity": f.severity,
                    "category": f.category,
                    "title": f.title,
                    "file_path": f.file_path,
                    "line_start": f.line_start,
                }
                for f in record.findings
            ]
        )
        self._conn.execute(
            """
            INSERT INTO reviews
              (repo, pr_number, run_id, head_sha, status, summary, reviewed_at, findings_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.repo,
                record.pr_number,
                record.run_id,
                record.head_sha,
                record.status,
                record.summary,
                record.reviewed_at,
                findings_json,
            ),
        )
        self._conn.commit()

    def list_reviews(self, repo: str, pr_number: int | None = None, limit: int | None = None) -> list[ReviewRecord]:
        query = "SELECT * FROM reviews WHERE repo=?"
        args: list = [repo]
        if pr_number is not None:
            query += " AND pr_number=?"
            args.append(pr_number)
        query += " ORDER BY reviewed_at DESC, id DESC"
        if limit is not None:
            query += " LIMIT ?"
            args.append(limit)

        try:
            rows = self._conn.execute(query, args).fetchall()
        except sqlite3.Error as e:
            logger.warning("SQLiteStore.list_reviews() failed: %s", e)
            return []

        return [self._row_to_record(r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> ReviewRecord:
        try:
            findings_data = json.loads(row["findings_json"] or "[]")
        except json.JSONDecodeError:
            findings_data = []
        findings = [
            FindingRecord(
                severity=f.get("severity", "info"),
                category=f.get("category", ""),
                title=f.get("title", ""),
                file_path=f.get("file_path") or "",
                line_start=f.get("line_start"),
            )
            for f in findings_data
        ]
        return ReviewRecord(
            repo=row["repo"],
            pr_number=row["pr_number"],
            run_id=row["run_id"],
            head_sha=row["head_sha"] or "",
            status=row["status"],
            summary=row["summary"] or "",
            reviewed_at=row["reviewed_at"] or "",
            findings=findings,
        )
