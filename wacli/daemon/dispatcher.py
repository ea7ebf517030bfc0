"""Routes decoded requests to the Handler and builds responses."""

import logging

from wacli.core.errors import WacliError
from wacli.daemon.handler import Handler
from wacli.daemon.protocol import (
    ChatStateCommand,
    DeleteMessageCommand,
    PingCommand,
    Request,
    Response,
    SendTextCommand,
    parse_command,
)

logger = logging.getLogger(__name__)

PING_REPLY = "pong"


class CommandDispatcher:
    """
    Validate a request against its command and call the handler.

    Never raises. Validation failures and handler errors (``WacliError``)
    become ``success=false`` responses carrying their message; any other
    exception is logged and answered with ``internal error: <cause>``.
    """

    def __init__(self, handler: Handler):
        self.handler = handler

    def dispatch(self, request: Request) -> Response:
        try:
            command = parse_command(request)
        except WacliError as e:
            logger.warning(f"Rejected request: {e}")
            return Response.fail(str(e))

        try:
            return self._run(command)
        except WacliError as e:
            logger.warning(f"{request.command} failed: {e}")
            return Response.fail(str(e))
        except Exception as e:
            logger.exception(f"{request.command} crashed: {e}")
            return Response.fail(f"internal error: {e}")

    def _run(self, command) -> Response:
        match command:
            case PingCommand():
                return Response.ok(PING_REPLY)

            case SendTextCommand(to=to, message=message):
                msg_id = self.handler.send_text(to, message)
                return Response.ok({"to": to, "msg_id": msg_id})

            case DeleteMessageCommand(chat=chat, msg_id=msg_id, for_everyone=for_everyone):
                self.handler.delete_message(chat, msg_id, for_everyone)
                return Response.ok(
                    {
                        "deleted": True,
                        "chat": chat,
                        "msg_id": msg_id,
                        "for_everyone": for_everyone,
                    }
                )

            case ChatStateCommand(chat=chat, action=action, duration=duration):
                self.handler.chat_state(chat, action, duration)
                return Response.ok({"action": action, "jid": chat, "ok": True})

        raise TypeError(f"unhandled command type: {type(command).__name__}")
