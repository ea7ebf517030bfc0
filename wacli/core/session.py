"""Messaging session interface.

The live session is the one resource that must never be opened twice for the
same store. Whoever holds it (the sync daemon, or a CLI command in direct mode
under the store lock) talks to it only through this interface.

Concrete sessions are plug-ins: ``session_backend = "package.module:ClassName"``
in the config (or ``WACLI_SESSION_BACKEND``) names a ``MessagingSession``
subclass whose constructor takes the store directory.
"""

import importlib
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable

from wacli.core.errors import ConfigError

SessionFactory = Callable[[Path], "MessagingSession"]


class MessagingSession(ABC):
    """Exclusive connection to the remote messaging account."""

    @abstractmethod
    def is_authed(self) -> bool:
        """Return True if the credential store holds a paired device."""

    @abstractmethod
    def connect(self) -> None:
        """Open the live connection."""

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @abstractmethod
    def send_text(self, jid: str, text: str) -> str:
        """Send a text message and return the generated message id."""

    @abstractmethod
    def revoke_message(self, chat: str, msg_id: str, for_everyone: bool) -> None:
        ...

    @abstractmethod
    def archive_chat(self, jid: str, archive: bool) -> None:
        ...

    @abstractmethod
    def pin_chat(self, jid: str, pin: bool) -> None:
        ...

    @abstractmethod
    def mute_chat(self, jid: str, mute: bool, duration_seconds: float = 0.0) -> None:
        """Mute or unmute; a zero duration mutes forever."""

    @abstractmethod
    def mark_chat_read(self, jid: str, read: bool) -> None:
        ...

    def resolve_chat_name(self, jid: str, fallback: str = "") -> str:
        return fallback

    def sync(self, stop_event: threading.Event) -> int:
        """
        Receive history and live events until ``stop_event`` is set.

        If the event is already set on entry, only what is pending is synced
        (``wacli sync --once``).

        Returns the number of messages stored. The default implementation
        keeps the connection open and stores nothing.
        """
        stop_event.wait()
        return 0


def load_session_factory(backend: str) -> SessionFactory:
    """
    Import a session class from a ``"module:Class"`` reference.

    Raises:
        ConfigError: If the reference is empty, malformed, or not importable
    """
    backend = (backend or "").strip()
    if not backend:
        raise ConfigError(
            "No session backend configured. Set session_backend in "
            "~/.config/wacli/config.cfg or WACLI_SESSION_BACKEND."
        )

    module_name, sep, attr = backend.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Invalid session backend {backend!r}; expected 'module:Class'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import session backend module {module_name!r}: {e}") from e

    factory = getattr(module, attr, None)
    if factory is None:
        raise ConfigError(f"Session backend {attr!r} not found in {module_name!r}")
    if isinstance(factory, type) and not issubclass(factory, MessagingSession):
        raise ConfigError(f"{backend} is not a MessagingSession")
    return factory
