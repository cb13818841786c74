"""
Base class for all encryption providers.
Every backend that turns plaintext values into opaque handles implements
this interface. The registry only ever sees handles.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from hashvault.codec import Triple


@dataclass(frozen=True)
class EncryptionContext:
    """Scope of a provider call: the registry and the submitting caller."""
    registry: str
    caller: str


class EncryptionProvider(ABC):
    """Abstract base class for encryption providers."""

    @abstractmethod
    def seal_triple(self, triple: Triple, context: EncryptionContext) -> tuple[tuple[str, str, str], bytes]:
        """
        Encrypt the three values of a Triple.

        Args:
            triple: Plaintext values from the codec.
            context: Registry and caller the handles are bound to.

        Returns:
            (handles, proof) — three opaque handles and a proof of
            well-formedness for submission to the registry.
        """

    @abstractmethod
    def verify_proof(self, handles, proof: bytes, context: EncryptionContext) -> bool:
        """Check that proof covers exactly these handles in this context."""

    @abstractmethod
    def authorize(self, handle: str, context: EncryptionContext, grantee: str) -> None:
        """
        Extend decrypt permission on a handle to grantee.

        Permissions only ever grow. There is no matching withdraw call.
        """

    @abstractmethod
    def is_authorized(self, handle: str, who: str) -> bool:
        """Whether who currently holds decrypt permission on handle."""

    @abstractmethod
    def open_handles(self, handles, context: EncryptionContext, requester: str, signature: bytes) -> Triple:
        """
        Decrypt three handles back into a Triple for an authorized requester.

        Raises:
            Forbidden: requester lacks permission or the signature is invalid.
        """

    @abstractmethod
    def get_info(self) -> dict:
        """Get metadata about this provider."""
