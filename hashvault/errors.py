"""
Errors raised by the codec and the registry.

Every error here is local and caller-recoverable. A rejected operation
never leaves the registry in a partially-updated state.
"""


class HashVaultError(Exception):
    """Base class for all hashvault errors."""


class InvalidLength(HashVaultError, ValueError):
    """Identifier is shorter than 46 significant bytes."""


class InvalidFormat(HashVaultError, ValueError):
    """Identifier or triple failed alphabet / width validation."""


class NotFound(HashVaultError, LookupError):
    """Storage id was never issued."""

    def __init__(self, storage_id: int):
        self.storage_id = storage_id
        super().__init__("Storage ID does not exist")


class Forbidden(HashVaultError, PermissionError):
    """Caller is not the owner (or, for reads, an authorized reader)."""


class InvalidReader(HashVaultError, ValueError):
    """Grantee or owner is the null identity."""


class InvalidProof(HashVaultError, ValueError):
    """The encryption provider rejected the input proof for a set of handles."""
