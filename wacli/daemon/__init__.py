"""Daemon architecture for wacli.

The messaging session can only be held by one process at a time. While
``wacli sync --follow`` runs it owns that session, and other wacli
invocations hand their work to it over a Unix socket instead of failing
on the store lock.

Architecture:
- DaemonServer: threaded Unix socket server in the sync process
- CommandDispatcher: turns one request into one Handler call
- DaemonClient: one-shot client used by the CLI commands
"""

from wacli.daemon.client import DaemonClient
from wacli.daemon.protocol import (
    serialize_request,
    deserialize_request,
    serialize_response,
    deserialize_response,
)

__all__ = [
    "DaemonClient",
    "serialize_request",
    "deserialize_request",
    "serialize_response",
    "deserialize_response",
]
