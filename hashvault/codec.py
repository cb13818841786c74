"""
Codec — Identifier <-> Triple
Deterministic, lossless packing of a 46-byte content identifier into three
address-shaped (20-byte) values, and back.

Layout:
  v1 <- bytes [0, 20)
  v2 <- bytes [20, 40)
  v3 <- bytes [40, 46), zero-padded on the high side to 20 bytes

Within each window, byte i lands at bit position i*8 counted from the
least-significant end: window byte 0 is the low-order byte of the value.
Two parties that encode the same identifier always agree on the Triple,
with no communication.
"""

import re
from dataclasses import dataclass

from hashvault.errors import InvalidFormat, InvalidLength

IDENTIFIER_SIZE = 46
VALUE_SIZE = 20     # Address width
TAIL_SIZE = 6       # Bytes carried by v3
PREFIX = "Qm"

# Base58: no 0, O, I, l
BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_RE = re.compile(r"[1-9A-HJ-NP-Za-km-z]+")
_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")

_WINDOWS = ((0, VALUE_SIZE), (VALUE_SIZE, VALUE_SIZE), (2 * VALUE_SIZE, TAIL_SIZE))


@dataclass(frozen=True)
class Triple:
    """Three 20-byte big-endian values derived from one identifier."""
    v1: bytes
    v2: bytes
    v3: bytes

    def __post_init__(self):
        for name in ("v1", "v2", "v3"):
            value = getattr(self, name)
            if not isinstance(value, (bytes, bytearray)) or len(value) != VALUE_SIZE:
                raise InvalidFormat(f"{name} must be {VALUE_SIZE} bytes")
            object.__setattr__(self, name, bytes(value))

    def values(self) -> tuple[bytes, bytes, bytes]:
        return (self.v1, self.v2, self.v3)

    def addresses(self) -> tuple[str, str, str]:
        """Render each value as a 0x-prefixed, 40-digit hex address."""
        return tuple("0x" + v.hex() for v in self.values())

    @classmethod
    def from_addresses(cls, addr1: str, addr2: str, addr3: str) -> "Triple":
        """Parse three 0x-prefixed hex addresses back into a Triple."""
        values = []
        for addr in (addr1, addr2, addr3):
            if not isinstance(addr, str) or not _ADDRESS_RE.fullmatch(addr):
                raise InvalidFormat(f"Not an address-shaped value: {addr!r}")
            values.append(bytes.fromhex(addr[2:]))
        return cls(*values)


def _as_bytes(identifier) -> bytes:
    if isinstance(identifier, str):
        try:
            return identifier.encode("ascii")
        except UnicodeEncodeError:
            raise InvalidFormat("Identifier must be ASCII") from None
    if isinstance(identifier, (bytes, bytearray)):
        return bytes(identifier)
    raise InvalidFormat(f"Unsupported identifier type: {type(identifier).__name__}")


def _significant_bytes(identifier, strict: bool) -> bytes:
    raw = _as_bytes(identifier)

    # The marker only comes off the exact "Qm" + 46 form. A 46-byte input
    # starting with "Qm" is a complete CIDv0, not a body.
    marker = PREFIX.encode("ascii")
    if raw.startswith(marker) and len(raw) == IDENTIFIER_SIZE + len(marker):
        raw = raw[len(marker):]

    if len(raw) < IDENTIFIER_SIZE:
        raise InvalidLength("IPFS hash too short")
    if strict and len(raw) != IDENTIFIER_SIZE:
        raise InvalidLength(
            f"Identifier must be exactly {IDENTIFIER_SIZE} bytes, got {len(raw)}"
        )
    # Trailing bytes beyond 46 are ignored in tolerant mode
    return raw[:IDENTIFIER_SIZE]


def encode(identifier, strict: bool = False) -> Triple:
    """
    Pack an identifier into a Triple.

    Args:
        identifier: 46-byte identifier as str (ASCII) or bytes, optionally
            carrying the 2-character "Qm" marker in front.
        strict: Reject inputs longer than 46 bytes instead of truncating.

    Returns:
        The Triple for this identifier.

    Raises:
        InvalidLength: Fewer than 46 significant bytes (or more, if strict).
    """
    data = _significant_bytes(identifier, strict)
    values = []
    for start, width in _WINDOWS:
        packed = int.from_bytes(data[start:start + width], "little")
        values.append(packed.to_bytes(VALUE_SIZE, "big"))
    return Triple(*values)


def decode(triple: Triple) -> bytes:
    """
    Unpack a Triple into the 46 identifier bytes. Exact inverse of encode().

    Raises:
        InvalidFormat: v3 carries data above its 6-byte window.
    """
    out = bytearray()
    for value, (_, width) in zip(triple.values(), _WINDOWS):
        packed = int.from_bytes(value, "big")
        if packed >> (width * 8):
            raise InvalidFormat("Value exceeds its window width")
        out += packed.to_bytes(width, "little")
    return bytes(out)


def decode_identifier(triple: Triple) -> str:
    """decode(), rendered as ASCII text."""
    try:
        return decode(triple).decode("ascii")
    except UnicodeDecodeError:
        raise InvalidFormat("Decoded identifier is not ASCII") from None


def add_prefix(body: str) -> str:
    return f"{PREFIX}{body}"


def strip_prefix(value: str) -> str:
    """Drop the "Qm" marker from the 48-character form; anything else is returned as is."""
    if value.startswith(PREFIX) and len(value) == IDENTIFIER_SIZE + len(PREFIX):
        return value[len(PREFIX):]
    return value


def is_well_formed(candidate) -> bool:
    """
    Check identifier text format.

    Accepts "Qm" + 46 base58 characters (48 total), or 46 base58 characters.
    """
    if not isinstance(candidate, str):
        return False
    if candidate.startswith(PREFIX) and len(candidate) == IDENTIFIER_SIZE + len(PREFIX):
        return bool(_BASE58_RE.fullmatch(candidate[len(PREFIX):]))
    if len(candidate) == IDENTIFIER_SIZE:
        return bool(_BASE58_RE.fullmatch(candidate))
    return False


def validate(candidate) -> str:
    """Return candidate unchanged, or raise InvalidFormat."""
    if not is_well_formed(candidate):
        raise InvalidFormat(f"Not a well-formed identifier: {candidate!r}")
    return candidate
