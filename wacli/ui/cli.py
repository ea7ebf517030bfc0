"""Main CLI entry point - clean subcommand architecture."""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

import typer

from wacli.core.app import App, ChatAction, open_app
from wacli.core.configs import Settings, get_settings
from wacli.core.delegation import run_delegated
from wacli.core.errors import WacliError
from wacli.core.session import load_session_factory
from wacli.core.store import Store
from wacli.daemon.client import DaemonClient, DaemonError, is_daemon_enabled
from wacli.ui.output import UIManager

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="wacli - messaging from the command line.",
)
send_app = typer.Typer(no_args_is_help=True, help="Send messages.")
delete_app = typer.Typer(no_args_is_help=True, help="Delete messages.")
chats_app = typer.Typer(no_args_is_help=True, help="List and manage chats.")
daemon_app = typer.Typer(no_args_is_help=True, help="Inspect the sync daemon.")

app.add_typer(send_app, name="send")
app.add_typer(delete_app, name="delete")
app.add_typer(chats_app, name="chats")
app.add_typer(daemon_app, name="daemon")


# ============================================================================
# Shared Setup - called on every invocation
# ============================================================================

@dataclass
class CliState:
    settings: Settings
    ui: UIManager = field(default_factory=UIManager)

    def client(self) -> DaemonClient:
        return DaemonClient(self.settings.store_dir, dial_timeout=self.settings.dial_timeout)

    def daemon_disabled(self, no_daemon: bool) -> bool:
        return no_daemon or not is_daemon_enabled()

    @contextmanager
    def direct_app(self) -> Iterator[App]:
        """
        Open the store in direct mode: lock, session, connect.

        The session backend is only resolved here, so commands that go
        through the daemon never need one configured.
        """
        factory = load_session_factory(self.settings.session_backend)
        with open_app(self.settings.store_dir, factory) as wa:
            wa.ensure_authed()
            wa.connect()
            yield wa


@app.callback()
def main(
    ctx: typer.Context,
    store: Optional[str] = typer.Option(None, "--store", help="Store directory (default: ~/.wacli)"),
    as_json: bool = typer.Option(False, "--json", help="Write JSON output"),
) -> None:
    """wacli - messaging from the command line."""
    logging.basicConfig(level=logging.WARNING, format="%(message)s", force=True)
    try:
        settings = get_settings(store_dir=store)
    except WacliError as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(1)
    ctx.obj = CliState(settings=settings, ui=UIManager(as_json=as_json))


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


@contextmanager
def _reporting_errors(state: CliState) -> Iterator[None]:
    """Print expected failures and exit 1."""
    try:
        yield
    except (WacliError, DaemonError) as e:
        state.ui.error(str(e))
        raise typer.Exit(1)


def _via_suffix(via: str) -> str:
    return " via daemon" if via == "daemon" else ""


# ============================================================================
# Commands - Each command is linear: delegate or go direct → report
# ============================================================================

@send_app.command("text")
def send_text(
    ctx: typer.Context,
    to: str = typer.Option(..., "--to", help="Recipient phone number or JID"),
    message: str = typer.Option(..., "--message", help="Message text"),
    no_daemon: bool = typer.Option(False, "--no-daemon", help="Skip the daemon and connect directly"),
) -> None:
    """
    Send a text message.

    Example: wacli send text --to 4915112345678 --message "hi"
    """
    state = _state(ctx)
    if not to.strip() or not message:
        state.ui.error("--to and --message are required")
        raise typer.Exit(1)

    def via_daemon(client: DaemonClient):
        result = client.send_text(to, message)
        return result.to, result.msg_id

    def direct():
        with state.direct_app() as wa:
            return wa.send_text(to, message)

    with _reporting_errors(state):
        (chat, msg_id), via = run_delegated(
            state.client(), "send", via_daemon, direct, disabled=state.daemon_disabled(no_daemon)
        )

    state.ui.result(
        {"sent": True, "to": chat, "id": msg_id, "via": via},
        f"Sent to {chat} (id {msg_id}){_via_suffix(via)}",
    )


@delete_app.command("message")
def delete_message(
    ctx: typer.Context,
    chat: str = typer.Option(..., "--chat", help="Chat JID (e.g. 1234567890@s.whatsapp.net)"),
    msg_id: str = typer.Option(..., "--id", help="Message ID to delete"),
    for_everyone: bool = typer.Option(
        True, "--for-everyone/--for-me", help="Delete for everyone, not just locally"
    ),
    no_daemon: bool = typer.Option(False, "--no-daemon", help="Skip the daemon and connect directly"),
) -> None:
    """Delete (revoke) a message."""
    state = _state(ctx)
    if not chat.strip() or not msg_id.strip():
        state.ui.error("--chat and --id are required")
        raise typer.Exit(1)

    def via_daemon(client: DaemonClient):
        client.delete_message(chat, msg_id, for_everyone)
        return chat

    def direct():
        with state.direct_app() as wa:
            return wa.delete_message(chat, msg_id, for_everyone)

    with _reporting_errors(state):
        chat_jid, via = run_delegated(
            state.client(), "delete", via_daemon, direct, disabled=state.daemon_disabled(no_daemon)
        )

    state.ui.result(
        {"deleted": True, "chat": chat_jid, "id": msg_id, "forEveryone": for_everyone, "via": via},
        f"Deleted message {msg_id} from {chat_jid}{_via_suffix(via)}",
    )


@chats_app.command("list")
def chats_list(
    ctx: typer.Context,
    query: str = typer.Option("", "--query", help="Search by name or JID"),
    limit: int = typer.Option(50, "--limit", min=1, help="Maximum number of chats"),
    archived: Optional[bool] = typer.Option(None, "--archived/--no-archived", help="Filter on archived"),
    pinned: Optional[bool] = typer.Option(None, "--pinned/--no-pinned", help="Filter on pinned"),
    muted: Optional[bool] = typer.Option(None, "--muted/--no-muted", help="Filter on muted"),
    unread: Optional[bool] = typer.Option(None, "--unread/--no-unread", help="Filter on unread"),
) -> None:
    """List chats from the local cache (never touches the session)."""
    state = _state(ctx)
    with _reporting_errors(state), Store(state.settings.store_dir) as db:
        chats = db.list_chats(
            query=query,
            limit=limit,
            archived=archived,
            pinned=pinned,
            muted=muted,
            unread=unread,
        )
    state.ui.chats(chats)


@chats_app.command("show")
def chats_show(
    ctx: typer.Context,
    jid: str = typer.Option(..., "--jid", help="Chat JID"),
) -> None:
    """Show one chat from the local cache."""
    state = _state(ctx)
    if not jid.strip():
        state.ui.error("--jid is required")
        raise typer.Exit(1)

    with _reporting_errors(state), Store(state.settings.store_dir) as db:
        chat = db.get_chat(jid)
    if chat is None:
        state.ui.error(f"chat not found: {jid}")
        raise typer.Exit(1)
    state.ui.chat(chat)


def _apply_chat_state(state: CliState, jid: str, action: ChatAction, duration: str, no_daemon: bool) -> None:
    if not jid.strip():
        state.ui.error("--jid is required")
        raise typer.Exit(1)

    def via_daemon(client: DaemonClient):
        client.chat_state(jid, action.value, duration)
        return jid

    def direct():
        with state.direct_app() as wa:
            return wa.apply_chat_state(jid, action.value, duration)

    with _reporting_errors(state):
        chat_jid, via = run_delegated(
            state.client(), action.value, via_daemon, direct, disabled=state.daemon_disabled(no_daemon)
        )

    state.ui.result(
        {"jid": chat_jid, "action": action.value, "ok": True, "via": via},
        "OK (via daemon)" if via == "daemon" else "OK",
    )


def _chat_state_command(action: ChatAction, help_text: str) -> Callable[..., None]:
    def command(
        ctx: typer.Context,
        jid: str = typer.Option(..., "--jid", help="Chat JID"),
        no_daemon: bool = typer.Option(False, "--no-daemon", help="Skip the daemon and connect directly"),
    ) -> None:
        _apply_chat_state(_state(ctx), jid, action, "", no_daemon)

    command.__doc__ = help_text
    return command


for _action, _help in (
    (ChatAction.ARCHIVE, "Archive a chat."),
    (ChatAction.UNARCHIVE, "Unarchive a chat."),
    (ChatAction.PIN, "Pin a chat."),
    (ChatAction.UNPIN, "Unpin a chat."),
    (ChatAction.UNMUTE, "Unmute a chat."),
    (ChatAction.MARK_READ, "Mark a chat as read."),
    (ChatAction.MARK_UNREAD, "Mark a chat as unread."),
):
    chats_app.command(_action.value)(_chat_state_command(_action, _help))


@chats_app.command("mute")
def chats_mute(
    ctx: typer.Context,
    jid: str = typer.Option(..., "--jid", help="Chat JID"),
    duration: str = typer.Option("", "--duration", help="Mute duration (e.g. 8h, 24h, 168h); empty = forever"),
    no_daemon: bool = typer.Option(False, "--no-daemon", help="Skip the daemon and connect directly"),
) -> None:
    """Mute a chat."""
    _apply_chat_state(_state(ctx), jid, ChatAction.MUTE, duration, no_daemon)


@app.command()
def sync(
    ctx: typer.Context,
    follow: bool = typer.Option(True, "--follow/--once", help="Keep syncing until Ctrl+C, or sync once and exit"),
    enable_daemon: bool = typer.Option(
        True, "--enable-daemon/--no-enable-daemon", help="Serve other wacli commands over the socket (follow mode only)"
    ),
) -> None:
    """
    Sync messages and hold the session.

    In follow mode other wacli commands delegate to this process instead
    of opening the session themselves.
    """
    from wacli.daemon.server import run_daemon

    state = _state(ctx)
    with _reporting_errors(state):
        factory = load_session_factory(state.settings.session_backend)
        stored = run_daemon(
            state.settings.store_dir,
            factory,
            follow=follow,
            enable_daemon=enable_daemon,
        )

    state.ui.result(
        {"synced": True, "messages_stored": stored},
        f"Messages stored: {stored}",
    )


@daemon_app.command("status")
def daemon_status(ctx: typer.Context) -> None:
    """Check whether a sync daemon is answering on the store's socket."""
    state = _state(ctx)
    client = state.client()
    if not client.is_available():
        state.ui.result(
            {"running": False, "socket": str(client.socket_path)},
            "No daemon running",
        )
        raise typer.Exit(1)

    with _reporting_errors(state):
        client.ping()

    state.ui.result(
        {"running": True, "socket": str(client.socket_path)},
        f"Daemon running on {client.socket_path}",
    )


def run() -> None:
    """Entry point for console script mapping."""
    app()


if __name__ == "__main__":
    run()
