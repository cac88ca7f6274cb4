"""Input validation helpers."""

from __future__ import annotations

import re

MAX_INPUT_LENGTH = 1000

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_UUID4 = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE
)
_FLOW_ADDRESS = re.compile(r"^0x[a-f0-9]{16}$", re.IGNORECASE)


def sanitize_input(text: str) -> str:
    """Strip control characters, trim, and cap the length of raw user input."""
    sanitized = _CONTROL_CHARS.sub("", text).strip()
    return sanitized[:MAX_INPUT_LENGTH]


def is_valid_conversation_id(conversation_id: str) -> bool:
    return bool(_UUID4.match(conversation_id))


def flow_address_error(address: str) -> str | None:
    """Return a description of what is wrong with ``address``, or None if it is valid."""
    if not address.startswith("0x"):
        return "Flow address must start with 0x"
    if len(address) != 18:
        return "Flow address must be 18 characters (0x followed by 16 hex characters)"
    if not _FLOW_ADDRESS.match(address):
        return "Flow address must contain only hex characters (0-9, a-f)"
    return None
