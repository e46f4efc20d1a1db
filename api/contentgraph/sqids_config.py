"""Sqids configuration for encoding/decoding public handles.

Every entity kind gets its own numeric tag, encoded together with the row id,
so a handle is globally unique across tables and decoding a post handle as a
comment handle fails instead of resolving to an unrelated row.
"""

from __future__ import annotations

import os

from sqids import Sqids

SQIDS_ALPHABET = os.getenv("SQIDS_ALPHABET", "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789")

# Minimum handle length; short handles leak row counts
SQIDS_MIN_LENGTH = 6

sqids = Sqids(alphabet=SQIDS_ALPHABET, min_length=SQIDS_MIN_LENGTH)

ENTITY_TAGS: dict[str, int] = {
    "user": 1,
    "post": 2,
    "comment": 3,
}


def encode_handle(kind: str, entity_id: int) -> str:
    """
    Encode an internal id to a public handle.

    Args:
        kind: Entity kind ("user", "post" or "comment")
        entity_id: The integer primary key

    Returns:
        The encoded Sqids string (public_sqid)
    """
    return sqids.encode([ENTITY_TAGS[kind], entity_id])


def decode_handle(kind: str, handle: str) -> int | None:
    """
    Decode a public handle back to an internal id.

    Returns None when the handle is malformed or belongs to another kind.
    """
    if not handle:
        return None
    decoded = sqids.decode(handle)
    if len(decoded) != 2 or decoded[0] != ENTITY_TAGS[kind]:
        return None
    # Sqids decodes some non-canonical strings; only accept the canonical form
    if sqids.encode(decoded) != handle:
        return None
    return decoded[1]
