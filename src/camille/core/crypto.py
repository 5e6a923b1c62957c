"""Session ids and Telegram pairing codes."""

from __future__ import annotations

import hashlib
import secrets

# No 0/O or 1/I.
PAIRING_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_session_id() -> str:
    return secrets.token_hex(16)


def generate_pairing_code() -> str:
    """Return a code formatted as ``XXXX-XXXX``."""
    chars = [secrets.choice(PAIRING_ALPHABET) for _ in range(8)]
    return "".join(chars[:4]) + "-" + "".join(chars[4:])


def hash_code(code: str) -> str:
    normalized = code.replace("-", "").upper()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
