"""JSON-lines protocol for daemon IPC.

One request line, one response line, then the connection is closed.

Request format:
    {
        "command": "ping" | "send_text" | "delete_message" | "chat_state",
        "to": str,              # send_text
        "message": str,         # send_text
        "file": str,            # reserved
        "caption": str,         # reserved
        "chat": str,            # delete_message, chat_state
        "msg_id": str,          # delete_message
        "for_everyone": bool,   # delete_message
        "action": str,          # chat_state
        "duration": str,        # chat_state (mute only), e.g. "8h"
    }

Unused fields are left out of the line entirely.

Response format:
    {
        "success": bool,
        "error": str,           # only when success is false
        "data": Any,            # only when success is true and there is a payload
    }
"""

import json
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from wacli.core.errors import UnknownCommandError, ValidationError

SOCKET_NAME = "wacli.sock"
READ_TIMEOUT = 30.0
WRITE_TIMEOUT = 30.0
DIAL_TIMEOUT = 5.0


def socket_path(store_dir: Union[str, Path]) -> Path:
    """Return the daemon socket path for a store directory."""
    return Path(store_dir) / SOCKET_NAME


class ProtocolError(ValueError):
    """A line could not be decoded into a request or response."""


class Command(str, Enum):
    PING = "ping"
    SEND_TEXT = "send_text"
    DELETE_MESSAGE = "delete_message"
    CHAT_STATE = "chat_state"


@dataclass
class Request:
    """Wire-level request. Only ``command`` is always present."""

    command: str
    to: Optional[str] = None
    message: Optional[str] = None
    file: Optional[str] = None
    caption: Optional[str] = None
    chat: Optional[str] = None
    msg_id: Optional[str] = None
    for_everyone: bool = False
    action: Optional[str] = None
    duration: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"command": self.command}
        for f in fields(self):
            if f.name == "command":
                continue
            value = getattr(self, f.name)
            if value is None or value is False:
                continue
            data[f.name] = value
        return data


@dataclass
class Response:
    success: bool
    error: Optional[str] = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> "Response":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "Response":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.error is not None:
            data["error"] = self.error
        if self.data is not None:
            data["data"] = self.data
        return data


@dataclass
class SendTextResult:
    to: str
    msg_id: str


# ----------------------------------------------------------------------------
# Typed commands
# ----------------------------------------------------------------------------

@dataclass(frozen=True)
class PingCommand:
    def to_request(self) -> Request:
        return Request(command=Command.PING.value)


@dataclass(frozen=True)
class SendTextCommand:
    to: str
    message: str

    def to_request(self) -> Request:
        return Request(command=Command.SEND_TEXT.value, to=self.to, message=self.message)


@dataclass(frozen=True)
class DeleteMessageCommand:
    chat: str
    msg_id: str
    for_everyone: bool = False

    def to_request(self) -> Request:
        return Request(
            command=Command.DELETE_MESSAGE.value,
            chat=self.chat,
            msg_id=self.msg_id,
            for_everyone=self.for_everyone,
        )


@dataclass(frozen=True)
class ChatStateCommand:
    chat: str
    action: str
    duration: str = ""

    def to_request(self) -> Request:
        return Request(
            command=Command.CHAT_STATE.value,
            chat=self.chat,
            action=self.action,
            duration=self.duration or None,
        )


DaemonCommand = Union[PingCommand, SendTextCommand, DeleteMessageCommand, ChatStateCommand]


def parse_command(request: Request) -> DaemonCommand:
    """
    Validate a wire request and narrow it to its typed command.

    Raises:
        UnknownCommandError: If the command tag is not supported
        ValidationError: If a required field for the tag is missing or empty
    """
    try:
        command = Command(request.command)
    except ValueError:
        raise UnknownCommandError(request.command) from None

    if command is Command.PING:
        return PingCommand()
    if command is Command.SEND_TEXT:
        if not request.to or not request.message:
            raise ValidationError("to and message are required")
        return SendTextCommand(to=request.to, message=request.message)
    if command is Command.DELETE_MESSAGE:
        if not request.chat or not request.msg_id:
            raise ValidationError("chat and msg_id are required")
        return DeleteMessageCommand(
            chat=request.chat,
            msg_id=request.msg_id,
            for_everyone=request.for_everyone,
        )
    if not request.chat or not request.action:
        raise ValidationError("chat and action are required")
    return ChatStateCommand(
        chat=request.chat,
        action=request.action,
        duration=request.duration or "",
    )


# ----------------------------------------------------------------------------
# Line codec
# ----------------------------------------------------------------------------

_STRING_FIELDS = ("to", "message", "file", "caption", "chat", "msg_id", "action", "duration")


def _encode_line(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8") + b"\n"


def _decode_object(data: bytes) -> Dict[str, Any]:
    try:
        obj = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(str(e)) from e
    if not isinstance(obj, dict):
        raise ProtocolError(f"expected a JSON object, got {type(obj).__name__}")
    return obj


def serialize_request(request: Request) -> bytes:
    """
    Serialize a request to one newline-terminated JSON line.

    Args:
        request: Request to encode

    Returns:
        UTF-8 encoded JSON bytes ending in ``\\n``
    """
    return _encode_line(request.to_dict())


def deserialize_request(data: bytes) -> Request:
    """
    Deserialize one request line.

    Raises:
        ProtocolError: If the line is not a JSON object of the expected shape
    """
    obj = _decode_object(data)

    command = obj.get("command", "")
    if not isinstance(command, str):
        raise ProtocolError("command must be a string")

    kwargs: Dict[str, Any] = {}
    for name in _STRING_FIELDS:
        value = obj.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ProtocolError(f"{name} must be a string")
        kwargs[name] = value

    for_everyone = obj.get("for_everyone", False)
    if not isinstance(for_everyone, bool):
        raise ProtocolError("for_everyone must be a boolean")

    return Request(command=command, for_everyone=for_everyone, **kwargs)


def serialize_response(response: Response) -> bytes:
    """Serialize a response to one newline-terminated JSON line."""
    return _encode_line(response.to_dict())


def deserialize_response(data: bytes) -> Response:
    """
    Deserialize one response line.

    Raises:
        ProtocolError: If the line is not a JSON object with a boolean ``success``
    """
    obj = _decode_object(data)

    success = obj.get("success")
    if not isinstance(success, bool):
        raise ProtocolError("success must be a boolean")

    error = obj.get("error")
    if error is not None and not isinstance(error, str):
        error = str(error)

    return Response(success=success, error=error, data=obj.get("data"))
