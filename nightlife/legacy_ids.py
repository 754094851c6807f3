"""Legacy numeric identifiers.

An older admin client addresses establishments by a small integer derived from
the UUID (a 32-bit string hash). No mapping is stored, so resolving a number
means hashing every candidate UUID and scanning for a match.
"""
from __future__ import annotations

import re
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def is_uuid(value: str) -> bool:
    return bool(UUID_RE.match(value or ""))


def uuid_to_number(value: str) -> int:
    """Bit-compatible with the client's `((h << 5) - h) + code` 32-bit hash."""
    h = 0
    for ch in value:
        h = ((h << 5) - h) + ord(ch)
        h &= 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return abs(h)


def find_uuid_by_number(db: Session, model: Any, identifier: str) -> str | None:
    """Return the UUID for `identifier` (a UUID or a legacy number) or None."""
    identifier = (identifier or "").strip()
    if is_uuid(identifier):
        return identifier
    if not (identifier.isascii() and identifier.isdigit()):
        return None
    wanted = int(identifier)
    for (row_id,) in db.execute(select(model.id)):
        if uuid_to_number(row_id) == wanted:
            return row_id
    return None


__all__ = ["is_uuid", "uuid_to_number", "find_uuid_by_number"]
