"""Process-level application context.

An ``App`` owns the three things a mutating command needs: the exclusive
store lock, the local cache, and the messaging session handle. The session is
created here and handed to whoever needs it (the daemon handler, or a direct
mode command); nothing else keeps a reference to it.
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Union

from wacli.core.errors import SessionError, ValidationError, WacliError
from wacli.core.jid import chat_kind_from_jid, parse_user_or_jid
from wacli.core.lock import StoreLock
from wacli.core.session import MessagingSession, SessionFactory
from wacli.core.store import Store
from wacli.utils import parse_duration

logger = logging.getLogger(__name__)


@contextmanager
def _session_errors(operation: str) -> Iterator[None]:
    """Re-raise backend failures as SessionError("<operation>: <cause>")."""
    try:
        yield
    except WacliError:
        raise
    except Exception as e:
        raise SessionError(f"{operation}: {e}") from e


class ChatAction(str, Enum):
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    PIN = "pin"
    UNPIN = "unpin"
    MUTE = "mute"
    UNMUTE = "unmute"
    MARK_READ = "mark-read"
    MARK_UNREAD = "mark-unread"


class App:
    def __init__(
        self,
        store_dir: Union[str, Path],
        session_factory: SessionFactory,
    ):
        """
        Args:
            store_dir: Directory holding the cache, the lock and the daemon socket
            session_factory: Callable building the session for ``store_dir``
        """
        self.store_dir = Path(store_dir)
        self._session_factory = session_factory
        self._lock = StoreLock(self.store_dir)
        self._db: Optional[Store] = None
        self._session: Optional[MessagingSession] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Acquire the store lock, then open the cache and the session handle."""
        self._lock.acquire()
        try:
            self._db = Store(self.store_dir)
            self._session = self._session_factory(self.store_dir)
        except BaseException:
            self.close()
            raise

    def close(self) -> None:
        """Close the session, the cache and release the lock, in that order."""
        if self._session is not None:
            try:
                self._session.close()
            except Exception:
                logger.exception("Error closing session")
            self._session = None
        if self._db is not None:
            self._db.close()
            self._db = None
        self._lock.release()

    @property
    def db(self) -> Store:
        if self._db is None:
            raise SessionError("app not initialized")
        return self._db

    @property
    def session(self) -> MessagingSession:
        if self._session is None:
            raise SessionError("whatsapp client not initialized")
        return self._session

    def ensure_authed(self) -> None:
        if not self.session.is_authed():
            raise SessionError("not authenticated; run `wacli auth` first")

    def connect(self) -> None:
        if not self.session.is_connected():
            with _session_errors("connect"):
                self.session.connect()

    def require_connected(self) -> None:
        if not self.session.is_connected():
            raise SessionError("whatsapp not connected")

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_text(self, to: str, message: str) -> tuple[str, str]:
        """
        Send a text message and record it in the cache.

        Returns:
            (chat_jid, msg_id)
        """
        chat = parse_user_or_jid(to)
        with _session_errors("send"):
            msg_id = self.session.send_text(chat, message)

        now = datetime.now(timezone.utc)
        chat_name = self.session.resolve_chat_name(chat, "")
        self.db.upsert_chat(chat, chat_kind_from_jid(chat), chat_name, now)
        self.db.upsert_message(
            chat_jid=chat,
            msg_id=msg_id,
            timestamp=now,
            from_me=True,
            text=message,
            chat_name=chat_name,
            sender_name="me",
        )
        return chat, msg_id

    def delete_message(self, chat: str, msg_id: str, for_everyone: bool) -> str:
        """Revoke a message. Returns the normalised chat JID."""
        chat_jid = parse_user_or_jid(chat)
        with _session_errors("revoke"):
            self.session.revoke_message(chat_jid, msg_id, for_everyone)
        return chat_jid

    # ------------------------------------------------------------------
    # Chat state
    # ------------------------------------------------------------------

    def _ensure_chat(self, jid: str) -> None:
        self.db.upsert_chat(jid, chat_kind_from_jid(jid), "", None)

    def archive_chat(self, jid: str, archive: bool) -> None:
        with _session_errors("archive"):
            self.session.archive_chat(jid, archive)
        self._ensure_chat(jid)
        self.db.set_chat_archived(jid, archive)

    def pin_chat(self, jid: str, pin: bool) -> None:
        with _session_errors("pin"):
            self.session.pin_chat(jid, pin)
        self._ensure_chat(jid)
        self.db.set_chat_pinned(jid, pin)

    def mute_chat(self, jid: str, mute: bool, duration_seconds: float = 0.0) -> None:
        with _session_errors("mute"):
            self.session.mute_chat(jid, mute, duration_seconds)
        self._ensure_chat(jid)
        muted_until = 0
        if mute:
            muted_until = -1 if duration_seconds <= 0 else int(time.time() + duration_seconds)
        self.db.set_chat_muted_until(jid, muted_until)

    def mark_chat_read(self, jid: str, read: bool) -> None:
        with _session_errors("mark read"):
            self.session.mark_chat_read(jid, read)
        self._ensure_chat(jid)
        self.db.set_chat_unread(jid, not read)

    def apply_chat_state(self, chat: str, action: str, duration: str = "") -> str:
        """
        Run one chat state action by name.

        Returns:
            The normalised chat JID

        Raises:
            ValidationError: On an unknown action or an invalid mute duration
        """
        try:
            chat_action = ChatAction(action)
        except ValueError:
            raise ValidationError(f"unknown chat state action: {action}") from None
        jid = parse_user_or_jid(chat)

        if chat_action is ChatAction.ARCHIVE:
            self.archive_chat(jid, True)
        elif chat_action is ChatAction.UNARCHIVE:
            self.archive_chat(jid, False)
        elif chat_action is ChatAction.PIN:
            self.pin_chat(jid, True)
        elif chat_action is ChatAction.UNPIN:
            self.pin_chat(jid, False)
        elif chat_action is ChatAction.MUTE:
            try:
                seconds = parse_duration(duration)
            except ValueError as e:
                raise ValidationError(f"invalid duration: {e}") from e
            self.mute_chat(jid, True, seconds)
        elif chat_action is ChatAction.UNMUTE:
            self.mute_chat(jid, False)
        elif chat_action is ChatAction.MARK_READ:
            self.mark_chat_read(jid, True)
        else:
            self.mark_chat_read(jid, False)
        return jid


@contextmanager
def open_app(store_dir: Union[str, Path], session_factory: SessionFactory) -> Iterator[App]:
    """Open an App for the duration of a block (lock held throughout)."""
    app = App(store_dir, session_factory)
    app.open()
    try:
        yield app
    finally:
        app.close()
