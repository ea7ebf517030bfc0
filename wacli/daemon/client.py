"""Lightweight client for daemon communication.

Every mutating wacli command uses this client to reach a running
``wacli sync`` daemon via its Unix socket. It is stdlib-only so that
the check costs nothing when no daemon is running.

Usage:
    client = DaemonClient(store_dir)
    if client.is_available():
        result = client.send_text("4915112345678", "hi")
    else:
        # Fallback to direct mode
        ...
"""

import os
import socket
import sys
from pathlib import Path
from typing import Union

from wacli.daemon.protocol import (
    DIAL_TIMEOUT,
    READ_TIMEOUT,
    WRITE_TIMEOUT,
    ChatStateCommand,
    DeleteMessageCommand,
    PingCommand,
    ProtocolError,
    Request,
    Response,
    SendTextCommand,
    SendTextResult,
    deserialize_response,
    serialize_request,
    socket_path,
)

# Largest response line accepted from the daemon
MAX_RESPONSE_BYTES = 1 << 20


class DaemonError(Exception):
    """Base class for failures talking to the daemon."""


class DaemonUnavailableError(DaemonError):
    """The daemon could not be reached; nothing was sent."""


class DaemonTransportError(DaemonError):
    """
    The exchange broke after connecting.

    ``delivered`` is True once the request bytes were fully written, meaning
    the daemon may already have performed the operation.
    """

    def __init__(self, message: str, delivered: bool = False):
        super().__init__(message)
        self.delivered = delivered


class DaemonCommandError(DaemonError):
    """The daemon answered ``success=false``."""


class DaemonClient:
    """
    Client for the daemon listening in a store directory.

    One call, one connection: dial, write the request line, read the response
    line, close.
    """

    def __init__(
        self,
        store_dir: Union[str, Path],
        dial_timeout: float = DIAL_TIMEOUT,
    ):
        """
        Initialize client.

        Args:
            store_dir: Store directory whose socket to use
            dial_timeout: Connect timeout in seconds
        """
        self.store_dir = Path(store_dir)
        self.socket_path = socket_path(self.store_dir)
        self.dial_timeout = dial_timeout

    def is_available(self) -> bool:
        """
        Cheap check whether a daemon might be listening.

        True iff the socket file exists. No connection is attempted, so a file
        left behind by a crashed daemon gives a false positive that the next
        call resolves by failing to connect.
        """
        return self.socket_path.exists()

    def ping(self) -> None:
        """Check the daemon is responsive."""
        self._call(PingCommand().to_request())

    def send_text(self, to: str, message: str) -> SendTextResult:
        """
        Send a text message via the daemon.

        Returns:
            SendTextResult with the recipient and the new message id
        """
        data = self._call(SendTextCommand(to=to, message=message).to_request())
        try:
            return SendTextResult(to=str(data["to"]), msg_id=str(data["msg_id"]))
        except (KeyError, TypeError) as e:
            raise DaemonTransportError(f"parse response: {e!r}", delivered=True) from e

    def delete_message(self, chat: str, msg_id: str, for_everyone: bool) -> None:
        """Delete (revoke) a message via the daemon."""
        self._call(
            DeleteMessageCommand(chat=chat, msg_id=msg_id, for_everyone=for_everyone).to_request()
        )

    def chat_state(self, chat: str, action: str, duration: str = "") -> None:
        """Apply a chat state action (archive, pin, mute, ...) via the daemon."""
        self._call(ChatStateCommand(chat=chat, action=action, duration=duration).to_request())

    def _call(self, request: Request):
        response = self._send(request)
        if not response.success:
            raise DaemonCommandError(response.error or "unknown daemon error")
        return response.data

    def _send(self, request: Request) -> Response:
        """
        Send one request and return the decoded response.

        Raises:
            DaemonUnavailableError: If the socket cannot be dialed
            DaemonTransportError: If writing, reading or decoding fails
        """
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.settimeout(self.dial_timeout)
            try:
                sock.connect(str(self.socket_path))
            except OSError as e:
                raise DaemonUnavailableError(f"connect to daemon: {e}") from e

            sock.settimeout(WRITE_TIMEOUT)
            try:
                sock.sendall(serialize_request(request))
            except OSError as e:
                raise DaemonTransportError(f"write request: {e}") from e

            sock.settimeout(READ_TIMEOUT)
            try:
                line = self._read_line(sock)
            except OSError as e:
                raise DaemonTransportError(f"read response: {e}", delivered=True) from e

            try:
                return deserialize_response(line)
            except ProtocolError as e:
                raise DaemonTransportError(f"parse response: {e}", delivered=True) from e
        finally:
            sock.close()

    @staticmethod
    def _read_line(sock: socket.socket) -> bytes:
        chunks = []
        size = 0
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                raise ConnectionError("connection closed before a full response")
            chunks.append(chunk)
            size += len(chunk)
            if b"\n" in chunk:
                break
            if size > MAX_RESPONSE_BYTES:
                raise ConnectionError("response too large")
        data = b"".join(chunks)
        return data[: data.index(b"\n") + 1]


def is_daemon_enabled() -> bool:
    """
    Check if daemon delegation is enabled.

    Delegation is DISABLED if:
    - WACLI_NO_DAEMON=1 environment variable is set
    - Running on Windows (Unix sockets not available)
    """
    if os.environ.get("WACLI_NO_DAEMON", "").lower() in ("1", "true", "yes"):
        return False

    if sys.platform == "win32":
        return False

    return True
