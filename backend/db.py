from __future__ import annotations

import csv
import io
import json
import sqlite3
import threading
from typing import Iterable, List

from proctor.aggregator import AggregateSnapshot
from proctor.events import Event
from proctor.snapshot import Signal

SIGNAL_COLUMNS = [signal.value for signal in Signal]


class Database:
    def __init__(self, path: str):
        self.path = path
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.lock = threading.Lock()
        self._init_db()

    def _init_db(self) -> None:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                    id TEXT PRIMARY KEY,
                    ts REAL,
                    level TEXT,
                    category TEXT,
                    message TEXT,
                    severity TEXT,
                    details TEXT
                );
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);")
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS snapshots (
                    ts REAL,
                    all_clear INTEGER,
                    presence TEXT,
                    identity TEXT,
                    face_count TEXT,
                    attention TEXT,
                    device TEXT
                );
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_snapshots_ts ON snapshots(ts);")
            self.conn.commit()

    def emit(self, event: Event) -> None:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                INSERT OR IGNORE INTO events (id, ts, level, category, message, severity, details)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.id,
                    event.timestamp,
                    event.level.value,
                    event.category,
                    event.message,
                    event.severity.value,
                    json.dumps(event.data, default=str),
                ),
            )
            self.conn.commit()

    def log_snapshot(self, ts: float, report: AggregateSnapshot) -> None:
        statuses = []
        for signal in Signal:
            snapshot = report.signals.get(signal)
            statuses.append(str(getattr(snapshot.status, "value", snapshot.status)) if snapshot else None)
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                INSERT INTO snapshots (ts, all_clear, presence, identity, face_count, attention, device)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (ts, int(report.all_clear), *statuses),
            )
            self.conn.commit()

    def events(self, start_ts: float, end_ts: float) -> List[dict]:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                SELECT ts, level, category, message, severity, details
                FROM events WHERE ts BETWEEN ? AND ? ORDER BY ts ASC
                """,
                (start_ts, end_ts),
            )
            rows = cur.fetchall()
        keys = ["timestamp", "level", "category", "message", "severity", "details"]
        events = [dict(zip(keys, row)) for row in rows]
        for event in events:
            event["details"] = json.loads(event["details"] or "{}")
        return events

    def snapshots(self, start_ts: float, end_ts: float) -> List[dict]:
        with self.lock:
            cur = self.conn.cursor()
            cur.execute(
                f"""
                SELECT ts, all_clear, {", ".join(SIGNAL_COLUMNS)}
                FROM snapshots WHERE ts BETWEEN ? AND ? ORDER BY ts ASC
                """,
                (start_ts, end_ts),
            )
            rows = cur.fetchall()
        keys = ["timestamp", "all_clear", *SIGNAL_COLUMNS]
        snapshots = [dict(zip(keys, row)) for row in rows]
        for snapshot in snapshots:
            snapshot["all_clear"] = bool(snapshot["all_clear"])
        return snapshots

    def export_csv(self, start_ts: float, end_ts: float) -> Iterable[bytes]:
        headers = ["timestamp", "level", "category", "message", "severity", "details"]
        yield ",".join(headers).encode() + b"\n"
        for row in self.events(start_ts, end_ts):
            row["details"] = json.dumps(row["details"])
            buf = io.StringIO()
            writer = csv.DictWriter(buf, fieldnames=headers)
            writer.writerow(row)
            yield buf.getvalue().encode()
