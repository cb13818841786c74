"""
hashvault.utils
---------------
Identity normalisation and small hashing helpers shared by the registry,
the providers and the submitters.
"""

from __future__ import annotations

import hashlib
from typing import Iterable, Optional

ZERO_ADDRESS = "0x" + "00" * 20


def normalize_identity(identity: Optional[str]) -> str:
    """Lower-case, stripped form used for every identity comparison."""
    if identity is None:
        return ""
    return str(identity).strip().lower()


def is_null_identity(identity: Optional[str]) -> bool:
    normalized = normalize_identity(identity)
    return normalized in ("", ZERO_ADDRESS)


def handles_digest(handles: Iterable[str], *parts: str) -> bytes:
    """Deterministic SHA-256 over a handle list plus scoping strings."""
    payload = ":".join([*handles, *parts])
    return hashlib.sha256(payload.encode("utf-8")).digest()
