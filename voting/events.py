"""
Event Log: SQLite-backed append-only log of voting events for indexers.

Engines buffer the events of a transaction and append them only after the
transaction commits, so a reverted call leaves no trace here.
"""

import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any, Iterable

log = logging.getLogger("voting.events")


class EventKind(Enum):
    """Observable event types."""
    PROJECT_CREATED = "ProjectCreated"
    PROJECT_STATUS_CHANGED = "ProjectStatusChanged"
    USER_JOINED = "UserJoined"
    USER_VERIFICATION_UPDATED = "UserVerificationUpdated"
    POLL_CREATED = "PollCreated"
    POLL_STATUS_CHANGED = "PollStatusChanged"
    VOTE_CAST = "VoteCast"
    VOTE_REMOVED = "VoteRemoved"


@dataclass
class Event:
    """A single emitted event."""
    kind: EventKind
    project: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    sequence: Optional[int] = None  # Assigned by the log on append

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sequence': self.sequence,
            'kind': self.kind.value,
            'project': self.project,
            'timestamp': self.timestamp,
            **self.payload,
        }


class EventLog:
    """
    Thread-safe event store shared by a factory and all of its engines.

    Usage:
        events = EventLog()                    # In-memory
        events = EventLog("voting_events.db")  # Persistent
        events.append(Event(EventKind.VOTE_CAST, project, {...}))
        events.get_events(kind=EventKind.VOTE_CAST, project=project)
    """

    DEFAULT_DB_PATH = ":memory:"

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the EventLog.

        Args:
            db_path: Path to SQLite database. Defaults to an in-memory database.
        """
        self.db_path = db_path or self.DEFAULT_DB_PATH
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()
        log.info(f"EventLog initialized at {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        # One shared connection: an in-memory database exists only per connection.
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, timeout=5.0, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    @contextmanager
    def _transaction(self):
        """Context manager for transaction handling with rollback on error."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            log.error(f"SQLite transaction failed: {e}")
            raise

    def _init_db(self) -> None:
        with self._lock:
            try:
                with self._transaction() as conn:
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS events (
                            sequence INTEGER PRIMARY KEY AUTOINCREMENT,
                            kind TEXT NOT NULL,
                            project TEXT NOT NULL,
                            timestamp REAL NOT NULL,
                            payload_json TEXT NOT NULL DEFAULT '{}'
                        )
                    """)
                    conn.execute("CREATE INDEX IF NOT EXISTS idx_kind ON events(kind)")
                    conn.execute("CREATE INDEX IF NOT EXISTS idx_project ON events(project)")
            except sqlite3.Error as e:
                log.error(f"Failed to initialize EventLog DB: {e}")
                raise RuntimeError(f"EventLog initialization failed: {e}")

    def append(self, event: Event) -> int:
        """Append one event and return its sequence number."""
        return self.append_many([event])[-1]

    def append_many(self, events: Iterable[Event]) -> List[int]:
        """Append a batch of events atomically, in order."""
        events = list(events)
        sequences = []
        with self._lock:
            with self._transaction() as conn:
                for event in events:
                    cursor = conn.execute(
                        "INSERT INTO events (kind, project, timestamp, payload_json) VALUES (?, ?, ?, ?)",
                        (event.kind.value, event.project, event.timestamp, json.dumps(event.payload, sort_keys=True))
                    )
                    event.sequence = cursor.lastrowid
                    sequences.append(cursor.lastrowid)
        for event in events:
            log.debug(f"Event #{event.sequence} {event.kind.value} on {event.project}")
        return sequences

    def get_events(
        self,
        kind: Optional[EventKind] = None,
        project: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Event]:
        """
        Read events in emission order.

        Args:
            kind: Only events of this kind
            project: Only events of this project address
            limit: Maximum number of (oldest first) events to return
        """
        query = "SELECT sequence, kind, project, timestamp, payload_json FROM events"
        clauses, params = [], []
        if kind is not None:
            clauses.append("kind = ?")
            params.append(kind.value)
        if project is not None:
            clauses.append("project = ?")
            params.append(project)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY sequence ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._lock:
            rows = self._get_connection().execute(query, params).fetchall()

        return [Event(
            kind=EventKind(row['kind']),
            project=row['project'],
            payload=json.loads(row['payload_json']),
            timestamp=row['timestamp'],
            sequence=row['sequence'],
        ) for row in rows]

    def count(self, kind: Optional[EventKind] = None) -> int:
        with self._lock:
            conn = self._get_connection()
            if kind is None:
                return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
            return conn.execute("SELECT COUNT(*) FROM events WHERE kind = ?", (kind.value,)).fetchone()[0]

    def get_stats(self) -> Dict[str, Any]:
        """Event counts per kind plus the number of distinct projects."""
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute("SELECT kind, COUNT(*) AS n FROM events GROUP BY kind").fetchall()
            projects = conn.execute("SELECT COUNT(DISTINCT project) FROM events").fetchone()[0]
        by_kind = {row['kind']: row['n'] for row in rows}
        return {
            'total_events': sum(by_kind.values()),
            'projects': projects,
            'by_kind': by_kind,
        }

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
        log.info("EventLog closed")
