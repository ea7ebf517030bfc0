"""Try the daemon first, fall back to direct mode.

Every mutating command follows the same policy:

1. Unless delegation is disabled, check whether a daemon socket exists.
2. If it does, make the matching daemon call.
3. If the call fails for any reason, log a warning and go direct: take the
   store lock, open the session, do the work, mirror it into the cache.

When the daemon call succeeds nothing else happens; the daemon already
mirrored the result into the cache.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from wacli.daemon.client import DaemonClient, DaemonError, DaemonTransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

VIA_DAEMON = "daemon"
VIA_DIRECT = "direct"


@dataclass
class Delegation(Generic[T]):
    """Outcome of a delegation attempt."""

    delegated: bool
    result: Optional[T] = None
    error: Optional[DaemonError] = None

    @property
    def via(self) -> str:
        return VIA_DAEMON if self.delegated else VIA_DIRECT


def delegate(
    client: DaemonClient,
    label: str,
    call: Callable[[DaemonClient], T],
    disabled: bool = False,
) -> Delegation[T]:
    """
    Attempt ``call`` against the daemon.

    Args:
        client: Client for the store's daemon socket
        label: Operation name used in the fallback warning (e.g. "send")
        call: Performs the daemon call, e.g. ``lambda c: c.send_text(to, msg)``
        disabled: Skip the daemon entirely (``--no-daemon``)

    Returns:
        Delegation with ``delegated=True`` and the call's result on success;
        otherwise ``delegated=False`` and the caller must go direct.
    """
    if disabled or not client.is_available():
        return Delegation(delegated=False)

    try:
        result = call(client)
    except DaemonError as e:
        note = ""
        if isinstance(e, DaemonTransportError) and e.delivered:
            note = " (the daemon may already have applied it)"
        logger.warning(f"daemon {label} failed ({e}){note}, trying direct mode...")
        return Delegation(delegated=False, error=e)

    return Delegation(delegated=True, result=result)


def run_delegated(
    client: DaemonClient,
    label: str,
    via_daemon: Callable[[DaemonClient], T],
    direct: Callable[[], Any],
    disabled: bool = False,
) -> tuple[Any, str]:
    """
    Run an operation through the daemon or, failing that, directly.

    Returns:
        (result, via) where ``via`` is ``"daemon"`` or ``"direct"``
    """
    outcome = delegate(client, label, via_daemon, disabled=disabled)
    if outcome.delegated:
        return outcome.result, outcome.via
    return direct(), outcome.via
