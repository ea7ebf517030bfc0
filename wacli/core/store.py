"""SQLite-backed local cache of chats and messages.

The cache mirrors what the session did so that read-only commands
(``wacli chats list``) work without touching the live session.

Schema (version 2):
    chats(jid PK, kind, name, last_message_ts, archived, pinned, muted_until, unread)
    messages(rowid PK, chat_jid, chat_name, msg_id, sender_jid, sender_name,
             ts, from_me, text, UNIQUE(chat_jid, msg_id))

``muted_until`` is 0 for unmuted, -1 for muted forever, otherwise an epoch
timestamp in seconds.
"""

import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

logger = logging.getLogger(__name__)

DB_NAME = "wacli.db"


@dataclass
class Chat:
    jid: str
    kind: str
    name: str
    last_message_ts: Optional[datetime]
    archived: bool = False
    pinned: bool = False
    muted_until: int = 0
    unread: bool = False

    @property
    def is_muted(self) -> bool:
        if self.muted_until == -1:
            return True
        return self.muted_until > time.time()


def _create_core_tables(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS chats (
            jid TEXT PRIMARY KEY,
            kind TEXT NOT NULL,
            name TEXT,
            last_message_ts INTEGER
        );

        CREATE TABLE IF NOT EXISTS messages (
            rowid INTEGER PRIMARY KEY AUTOINCREMENT,
            chat_jid TEXT NOT NULL,
            chat_name TEXT,
            msg_id TEXT NOT NULL,
            sender_jid TEXT,
            sender_name TEXT,
            ts INTEGER NOT NULL,
            from_me INTEGER NOT NULL,
            text TEXT,
            UNIQUE(chat_jid, msg_id)
        );

        CREATE INDEX IF NOT EXISTS idx_messages_chat_ts ON messages(chat_jid, ts);
        """
    )


def _add_chat_state_columns(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        ALTER TABLE chats ADD COLUMN archived INTEGER NOT NULL DEFAULT 0;
        ALTER TABLE chats ADD COLUMN pinned INTEGER NOT NULL DEFAULT 0;
        ALTER TABLE chats ADD COLUMN muted_until INTEGER NOT NULL DEFAULT 0;
        ALTER TABLE chats ADD COLUMN unread INTEGER NOT NULL DEFAULT 0;
        """
    )


MIGRATIONS: List[tuple[int, str, Callable[[sqlite3.Connection], None]]] = [
    (1, "core_tables", _create_core_tables),
    (2, "chat_state_columns", _add_chat_state_columns),
]


def _to_unix(ts: Optional[datetime]) -> int:
    if ts is None:
        return 0
    return int(ts.timestamp())


def _from_unix(value: int) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class Store:
    """
    Local cache database.

    A single connection is shared between threads (the daemon handles each
    connection on its own thread), so every statement runs under ``_lock``.
    """

    def __init__(self, store_dir: Union[str, Path]):
        self.store_dir = Path(store_dir)
        self.db_path = self.store_dir / DB_NAME
        self._lock = threading.Lock()

        self.store_dir.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._migrate()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _migrate(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    applied_at INTEGER NOT NULL
                )
                """
            )
            applied = {
                row[0] for row in self._conn.execute("SELECT version FROM schema_migrations")
            }
            for version, name, apply in MIGRATIONS:
                if version in applied:
                    continue
                logger.debug(f"Applying cache migration {version} ({name})")
                apply(self._conn)
                self._conn.execute(
                    "INSERT INTO schema_migrations(version, name, applied_at) VALUES(?, ?, ?)",
                    (version, name, int(time.time())),
                )
                self._conn.commit()

    def _execute(self, sql: str, params: tuple = ()) -> None:
        with self._lock:
            with self._conn:
                self._conn.execute(sql, params)

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    def upsert_chat(self, jid: str, kind: str, name: str, last_ts: Optional[datetime]) -> None:
        """Insert or update a chat, keeping a known name and the newest timestamp."""
        if not kind.strip():
            kind = "unknown"
        self._execute(
            """
            INSERT INTO chats(jid, kind, name, last_message_ts)
            VALUES(?, ?, ?, ?)
            ON CONFLICT(jid) DO UPDATE SET
                kind=excluded.kind,
                name=CASE WHEN excluded.name IS NOT NULL AND excluded.name != ''
                          THEN excluded.name ELSE chats.name END,
                last_message_ts=CASE WHEN excluded.last_message_ts > COALESCE(chats.last_message_ts, 0)
                                     THEN excluded.last_message_ts ELSE chats.last_message_ts END
            """,
            (jid, kind, name, _to_unix(last_ts)),
        )

    def set_chat_archived(self, jid: str, archived: bool) -> None:
        self._execute("UPDATE chats SET archived = ? WHERE jid = ?", (int(archived), jid))

    def set_chat_pinned(self, jid: str, pinned: bool) -> None:
        self._execute("UPDATE chats SET pinned = ? WHERE jid = ?", (int(pinned), jid))

    def set_chat_muted_until(self, jid: str, muted_until: int) -> None:
        self._execute("UPDATE chats SET muted_until = ? WHERE jid = ?", (muted_until, jid))

    def set_chat_unread(self, jid: str, unread: bool) -> None:
        self._execute("UPDATE chats SET unread = ? WHERE jid = ?", (int(unread), jid))

    def get_chat(self, jid: str) -> Optional[Chat]:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT jid, kind, COALESCE(name, ''), COALESCE(last_message_ts, 0),
                       archived, pinned, muted_until, unread
                FROM chats WHERE jid = ?
                """,
                (jid,),
            ).fetchone()
        return self._row_to_chat(row) if row else None

    def list_chats(
        self,
        query: str = "",
        limit: int = 50,
        archived: Optional[bool] = None,
        pinned: Optional[bool] = None,
        muted: Optional[bool] = None,
        unread: Optional[bool] = None,
    ) -> List[Chat]:
        """List chats, pinned first, then by most recent activity."""
        if limit <= 0:
            limit = 50

        sql = """
            SELECT jid, kind, COALESCE(name, ''), COALESCE(last_message_ts, 0),
                   archived, pinned, muted_until, unread
            FROM chats WHERE 1=1
        """
        params: list = []
        if query.strip():
            sql += " AND (LOWER(name) LIKE LOWER(?) OR LOWER(jid) LIKE LOWER(?))"
            needle = f"%{query}%"
            params += [needle, needle]
        if archived is not None:
            sql += " AND archived = ?"
            params.append(int(archived))
        if pinned is not None:
            sql += " AND pinned = ?"
            params.append(int(pinned))
        if muted is not None:
            now = int(time.time())
            if muted:
                sql += " AND muted_until != 0 AND (muted_until = -1 OR muted_until > ?)"
            else:
                sql += " AND (muted_until = 0 OR (muted_until > 0 AND muted_until <= ?))"
            params.append(now)
        if unread is not None:
            sql += " AND unread = ?"
            params.append(int(unread))
        sql += " ORDER BY pinned DESC, last_message_ts DESC LIMIT ?"
        params.append(limit)

        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_chat(row) for row in rows]

    @staticmethod
    def _row_to_chat(row: tuple) -> Chat:
        jid, kind, name, ts, archived, pinned, muted_until, unread = row
        return Chat(
            jid=jid,
            kind=kind,
            name=name,
            last_message_ts=_from_unix(ts),
            archived=bool(archived),
            pinned=bool(pinned),
            muted_until=int(muted_until),
            unread=bool(unread),
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def upsert_message(
        self,
        chat_jid: str,
        msg_id: str,
        timestamp: datetime,
        from_me: bool,
        text: str = "",
        chat_name: str = "",
        sender_jid: str = "",
        sender_name: str = "",
    ) -> None:
        self._execute(
            """
            INSERT INTO messages(chat_jid, chat_name, msg_id, sender_jid, sender_name, ts, from_me, text)
            VALUES(?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(chat_jid, msg_id) DO UPDATE SET
                chat_name=COALESCE(NULLIF(excluded.chat_name, ''), messages.chat_name),
                sender_name=COALESCE(NULLIF(excluded.sender_name, ''), messages.sender_name),
                text=COALESCE(NULLIF(excluded.text, ''), messages.text)
            """,
            (
                chat_jid,
                chat_name,
                msg_id,
                sender_jid,
                sender_name,
                _to_unix(timestamp),
                int(from_me),
                text,
            ),
        )
