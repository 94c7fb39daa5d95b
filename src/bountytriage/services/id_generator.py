"""Prefixed, URL-safe identifiers for stored records."""

import secrets

ID_HEX_LENGTH = 16


def generate_id(prefix: str) -> str:
    """Return ``prefix`` followed by 16 random hex characters, e.g. ``bty_3f9a0c...``."""
    return f"{prefix}{secrets.token_hex(ID_HEX_LENGTH // 2)}"
