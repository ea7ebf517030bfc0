"""
Terminal output for the wacli CLI.

Human output goes through rich; ``--json`` output is one JSON document on
stdout so it can be piped.
"""

import json
import sys
from typing import Any, Iterable, Optional, TextIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from wacli.core.store import Chat
from wacli.utils import truncate

console = Console()
err_console = Console(stderr=True)


def write_json(data: Any, file: Optional[TextIO] = None) -> None:
    """Write ``data`` as indented JSON followed by a newline."""
    out = file or sys.stdout
    json.dump(data, out, indent=2, default=str)
    out.write("\n")
    out.flush()


class UIManager:
    """Plain-text and JSON reporting for one CLI invocation."""

    def __init__(self, as_json: bool = False):
        self.as_json = as_json

    def result(self, data: Any, text: str) -> None:
        """Report a command result: ``data`` in JSON mode, ``text`` otherwise."""
        if self.as_json:
            write_json(data)
        else:
            console.print(escape(text), highlight=False)

    def error(self, message: str) -> None:
        """Print error message in red on stderr."""
        err_console.print(f"[red]Error: {escape(message)}[/red]", highlight=False)

    def chats(self, chats: Iterable[Chat]) -> None:
        chats = list(chats)
        if self.as_json:
            write_json([_chat_to_dict(c) for c in chats])
            return

        if not chats:
            console.print("[dim]No chats[/dim]")
            return

        table = Table(show_header=True, box=None)
        table.add_column("KIND")
        table.add_column("NAME", style="cyan")
        table.add_column("JID")
        table.add_column("LAST", style="green")
        table.add_column("FLAGS", style="yellow")

        for c in chats:
            last = c.last_message_ts.astimezone().strftime("%Y-%m-%d %H:%M:%S") if c.last_message_ts else ""
            table.add_row(
                c.kind,
                escape(truncate(c.name or c.jid, 28)),
                escape(c.jid),
                last,
                chat_flags(c),
            )
        console.print(table)

    def chat(self, chat: Chat) -> None:
        """One chat as a field list, or a JSON object in JSON mode."""
        if self.as_json:
            write_json(_chat_to_dict(chat))
            return

        last = chat.last_message_ts.astimezone().isoformat(timespec="seconds") if chat.last_message_ts else ""
        lines = [
            f"JID: {chat.jid}",
            f"Kind: {chat.kind}",
            f"Name: {chat.name}",
            f"Last: {last}",
            f"Archived: {_bool_text(chat.archived)}",
            f"Pinned: {_bool_text(chat.pinned)}",
            f"Muted: {_bool_text(chat.is_muted)}",
            f"Unread: {_bool_text(chat.unread)}",
        ]
        console.print(escape("\n".join(lines)), highlight=False, soft_wrap=True)


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


def chat_flags(chat: Chat) -> str:
    flags = []
    if chat.pinned:
        flags.append("pinned")
    if chat.archived:
        flags.append("archived")
    if chat.is_muted:
        flags.append("muted")
    if chat.unread:
        flags.append("unread")
    return ",".join(flags)


def _chat_to_dict(chat: Chat) -> dict:
    return {
        "jid": chat.jid,
        "kind": chat.kind,
        "name": chat.name,
        "last_message_ts": chat.last_message_ts.isoformat() if chat.last_message_ts else None,
        "archived": chat.archived,
        "pinned": chat.pinned,
        "muted_until": chat.muted_until,
        "unread": chat.unread,
    }
