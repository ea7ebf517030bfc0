"""Handler capability consumed by the command dispatcher.

The dispatcher knows nothing about the session protocol or the cache; it only
calls these three operations. Failures are reported by raising ``WacliError``.
"""

import logging
import threading
from abc import ABC, abstractmethod

from wacli.core.app import App
from wacli.core.errors import SessionError

logger = logging.getLogger(__name__)


class Handler(ABC):
    @abstractmethod
    def send_text(self, to: str, message: str) -> str:
        """Send a text message and return its message id."""

    @abstractmethod
    def delete_message(self, chat: str, msg_id: str, for_everyone: bool) -> None:
        ...

    @abstractmethod
    def chat_state(self, chat: str, action: str, duration: str = "") -> None:
        """
        Apply a chat state action.

        ``action`` is one of :class:`wacli.core.app.ChatAction`; ``duration`` is only used by
        ``mute`` (e.g. ``"8h"``; empty mutes forever).
        """


class AppHandler(Handler):
    """
    Handler bound to the sync process's App.

    Connections are served on separate threads, but the session is a single
    exclusive resource, so every operation runs under one lock.
    """

    def __init__(self, app: App):
        self.app = app
        self._lock = threading.Lock()

    def _check_ready(self) -> None:
        if self.app is None:
            raise SessionError("app not initialized")
        self.app.require_connected()

    def send_text(self, to: str, message: str) -> str:
        with self._lock:
            self._check_ready()
            chat, msg_id = self.app.send_text(to, message)
        logger.info(f"Sent message {msg_id} to {chat} on behalf of a client")
        return msg_id

    def delete_message(self, chat: str, msg_id: str, for_everyone: bool) -> None:
        with self._lock:
            self._check_ready()
            chat_jid = self.app.delete_message(chat, msg_id, for_everyone)
        logger.info(f"Deleted message {msg_id} in {chat_jid} (for_everyone={for_everyone})")

    def chat_state(self, chat: str, action: str, duration: str = "") -> None:
        with self._lock:
            self._check_ready()
            jid = self.app.apply_chat_state(chat, action, duration)
        logger.info(f"Applied chat action {action} to {jid}")
