"""Unix socket server for the wacli daemon.

The daemon runs inside ``wacli sync``, the one process holding the live
session. Other wacli invocations connect to ``<store>/wacli.sock`` and ask it
to act on their behalf instead of opening a second session.

Each accepted connection is served on its own thread: read one request line,
dispatch it, write one response line, close.

Usage:
    server = DaemonServer(store_dir, AppHandler(app))
    server.start()
    ...
    server.stop()

    Or use the CLI:
    wacli sync --follow
"""

import logging
import os
import signal
import socketserver
import threading
from pathlib import Path
from typing import Optional, Union

from wacli.core.app import open_app
from wacli.core.session import SessionFactory
from wacli.daemon.dispatcher import CommandDispatcher
from wacli.daemon.handler import AppHandler, Handler
from wacli.daemon.protocol import (
    READ_TIMEOUT,
    WRITE_TIMEOUT,
    ProtocolError,
    Response,
    deserialize_request,
    serialize_response,
    socket_path,
)

logger = logging.getLogger(__name__)

# Upper bound for one request line
MAX_REQUEST_BYTES = 1 << 20


class DaemonStartError(OSError):
    """The daemon could not set up its socket."""


class _ConnectionHandler(socketserver.StreamRequestHandler):
    """Serve exactly one request/response exchange."""

    # Applied to the connection in setup(); this is the read deadline.
    timeout = READ_TIMEOUT

    def handle(self) -> None:
        try:
            response = self._exchange()
        except Exception as e:
            logger.exception(f"Error handling client: {e}")
            response = Response.fail(f"internal error: {e}")
        self._write(response)

    def _exchange(self) -> Response:
        try:
            line = self.rfile.readline(MAX_REQUEST_BYTES)
        except OSError as e:
            return Response.fail(f"read error: {e}")

        if not line.endswith(b"\n"):
            if len(line) >= MAX_REQUEST_BYTES:
                return Response.fail("read error: request too large")
            return Response.fail("read error: unexpected EOF")

        try:
            request = deserialize_request(line)
        except ProtocolError as e:
            return Response.fail(f"invalid request: {e}")

        return self.server.dispatcher.dispatch(request)

    def _write(self, response: Response) -> None:
        try:
            self.connection.settimeout(WRITE_TIMEOUT)
            self.wfile.write(serialize_response(response))
        except OSError as e:
            logger.warning(f"Could not write response: {e}")


class _UnixServer(socketserver.ThreadingUnixStreamServer):
    """Threaded Unix stream server that joins its handler threads on close."""

    daemon_threads = False
    block_on_close = True

    def __init__(self, path: Path, dispatcher: CommandDispatcher):
        self.dispatcher = dispatcher
        super().__init__(str(path), _ConnectionHandler)

    def handle_error(self, request, client_address) -> None:
        logger.exception("Unhandled error in connection handler")


class DaemonServer:
    """
    Owns the listening socket for one store directory.

    The socket file is created by start() and removed by stop(); clients only
    ever check for it or connect to it.
    """

    def __init__(self, store_dir: Union[str, Path], handler: Handler):
        """
        Initialize daemon server.

        Args:
            store_dir: Store directory; the socket lives at ``<store_dir>/wacli.sock``
            handler: Capability that performs the delegated operations
        """
        self.store_dir = Path(store_dir)
        self.socket_path = socket_path(self.store_dir)
        self.dispatcher = CommandDispatcher(handler)

        self._server: Optional[_UnixServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Bind the socket and start accepting connections in the background.

        Raises:
            DaemonStartError: If the socket cannot be bound or restricted to the owner
        """
        if self._server is not None:
            raise RuntimeError("daemon server already started")

        # Clean up stale socket
        try:
            self.socket_path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"Could not remove stale socket {self.socket_path}: {e}")

        self.store_dir.mkdir(parents=True, exist_ok=True)

        try:
            self._server = _UnixServer(self.socket_path, self.dispatcher)
        except OSError as e:
            raise DaemonStartError(f"listen on socket: {e}") from e

        # Set socket permissions (owner only)
        try:
            os.chmod(self.socket_path, 0o600)
        except OSError as e:
            self._server.server_close()
            self._server = None
            self.socket_path.unlink(missing_ok=True)
            raise DaemonStartError(f"chmod socket: {e}") from e

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="wacli-daemon-accept",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Daemon listening on {self.socket_path}")

    def stop(self) -> None:
        """Stop accepting, wait for in-flight connections, remove the socket file."""
        if self._server is None:
            return

        logger.info("Stopping daemon...")
        self._server.shutdown()
        # Closes the listener, then joins every connection thread
        self._server.server_close()
        if self._thread is not None:
            self._thread.join()
        self._server = None
        self._thread = None

        try:
            self.socket_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove socket {self.socket_path}: {e}")
        logger.info("Daemon stopped")

    def __enter__(self) -> "DaemonServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def run_daemon(
    store_dir: Union[str, Path],
    session_factory: SessionFactory,
    follow: bool = True,
    enable_daemon: bool = True,
    stop_event: Optional[threading.Event] = None,
) -> int:
    """
    Hold the session, sync, and serve delegated commands.

    Args:
        store_dir: Store directory
        session_factory: Builds the messaging session
        follow: Keep syncing until stopped (otherwise sync what is pending and exit)
        enable_daemon: Serve the IPC socket (follow mode only)
        stop_event: Set to stop; SIGINT/SIGTERM set it when running on the main thread

    Returns:
        Number of messages stored by the sync
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    stop_event = stop_event or threading.Event()
    if not follow:
        stop_event.set()

    previous_handlers = {}
    if threading.current_thread() is threading.main_thread():
        def _signal_handler(signum, frame):
            logger.info("Received shutdown signal")
            stop_event.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            previous_handlers[sig] = signal.signal(sig, _signal_handler)

    try:
        with open_app(store_dir, session_factory) as app:
            app.ensure_authed()
            app.connect()

            server: Optional[DaemonServer] = None
            if enable_daemon and follow:
                server = DaemonServer(app.store_dir, AppHandler(app))
                try:
                    server.start()
                except DaemonStartError as e:
                    logger.warning(f"Failed to start daemon: {e}")
                    server = None

            try:
                stored = app.session.sync(stop_event)
            finally:
                if server is not None:
                    server.stop()

        logger.info(f"Messages stored: {stored}")
        return stored
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)
