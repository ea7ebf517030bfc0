"""Chat and user identifier (JID) helpers."""

import re

from wacli.core.errors import ValidationError

DEFAULT_USER_SERVER = "s.whatsapp.net"
GROUP_SERVER = "g.us"
BROADCAST_SERVER = "broadcast"
HIDDEN_USER_SERVER = "lid"

_PHONE_NOISE = re.compile(r"[\s\-().]")


def parse_user_or_jid(value: str) -> str:
    """
    Normalise a recipient to a full JID.

    ``"+49 151 1234-5678"`` → ``"4915112345678@s.whatsapp.net"``;
    anything already containing ``@`` is validated and returned as-is.

    Raises:
        ValidationError: If the value is neither a phone number nor a JID
    """
    raw = (value or "").strip()
    if not raw:
        raise ValidationError("recipient is empty")

    if "@" in raw:
        user, _, server = raw.partition("@")
        if not server or "@" in server:
            raise ValidationError(f"invalid JID: {value}")
        if not user and server != BROADCAST_SERVER:
            raise ValidationError(f"invalid JID: {value}")
        return raw

    digits = _PHONE_NOISE.sub("", raw)
    if digits.startswith("+"):
        digits = digits[1:]
    if not digits.isdigit():
        raise ValidationError(f"invalid phone number or JID: {value}")
    return f"{digits}@{DEFAULT_USER_SERVER}"


def chat_kind_from_jid(jid: str) -> str:
    """Return ``dm``, ``group``, ``broadcast`` or ``unknown`` for a JID."""
    _, _, server = jid.partition("@")
    if server == GROUP_SERVER:
        return "group"
    if server == BROADCAST_SERVER:
        return "broadcast"
    if server in (DEFAULT_USER_SERVER, HIDDEN_USER_SERVER):
        return "dm"
    return "unknown"
