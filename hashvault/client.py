"""
Client — The Full Store / Share / Load Flow
Wraps the codec, an encryption provider, and a transaction submitter for
one identity.

Flow for storing an identifier:
1. Encode it into a Triple (codec)
2. Seal the Triple into three handles plus an input proof (provider)
3. Submit the handles to the registry (submitter)

Flow for loading:
1. Fetch the handles as this identity (registry checks access)
2. Open them with a signed request (provider checks permission)
3. Decode the Triple back into the identifier

The registry only ever sees handles. Plaintext exists on the client side.
"""

from hashvault import codec
from hashvault.config import HashVaultConfig
from hashvault.logger import get_logger
from hashvault.providers.base import EncryptionContext, EncryptionProvider
from hashvault.providers.local import sign_request
from hashvault.submitters.base import TransactionSubmitter
from hashvault.utils import normalize_identity

log = get_logger(__name__)


class HashVaultClient:
    """
    Stores, shares and loads identifiers as one identity.

    Args:
        identity: The acting identity (owner on store, reader on load).
        provider: Encryption provider used to seal and open handles.
        submitter: Transaction submitter for the target registry.
        signing_secret: Secret used to sign open requests, if the provider
            requires signed requests.
        strict: Reject malformed or over-long identifiers instead of
            truncating them.
    """

    def __init__(
        self,
        identity: str,
        provider: EncryptionProvider,
        submitter: TransactionSubmitter,
        signing_secret: bytes = None,
        strict: bool = False,
    ):
        self.identity = normalize_identity(identity)
        self.provider = provider
        self.submitter = submitter
        self.signing_secret = signing_secret
        self.strict = strict

        # Stats
        self.entries_stored = 0
        self.entries_loaded = 0
        self.grants_issued = 0
        self.revocations_issued = 0

    @classmethod
    def from_config(
        cls,
        config: HashVaultConfig,
        identity: str,
        provider: EncryptionProvider,
        submitter: TransactionSubmitter,
        signing_secret: bytes = None,
    ) -> "HashVaultClient":
        """Create a client whose strictness follows config.strict_length."""
        return cls(identity, provider, submitter, signing_secret=signing_secret, strict=config.strict_length)

    @property
    def context(self) -> EncryptionContext:
        return EncryptionContext(registry=self.submitter.registry_address, caller=self.identity)

    def store(self, identifier) -> dict:
        """
        Encode, seal and register an identifier.

        Args:
            identifier: 46-byte identifier (str or bytes), optionally "Qm"-prefixed.

        Returns:
            Report with the new storage id, handles and receipt.
        """
        if self.strict and isinstance(identifier, str):
            codec.validate(identifier)
        triple = codec.encode(identifier, strict=self.strict)

        handles, proof = self.provider.seal_triple(triple, self.context)
        receipt = self.submitter.register(self.identity, handles, proof)
        self.entries_stored += 1

        log.info("stored identifier as entry %s", receipt.result)
        return {
            "storage_id": receipt.result,
            "owner": self.identity,
            "handles": list(handles),
            "tx_hash": receipt.tx_hash,
            "block": receipt.block_number,
            "events": [e.name for e in receipt.events],
        }

    def load_triple(self, storage_id: int) -> codec.Triple:
        """Fetch and open an entry's handles as this identity."""
        handles = self.submitter.get_handles(self.identity, storage_id)
        signature = b""
        if self.signing_secret is not None:
            signature = sign_request(self.signing_secret, handles, self.context, self.identity)
        return self.provider.open_handles(handles, self.context, self.identity, signature)

    def load(self, storage_id: int) -> str:
        """Recover the identifier stored under storage_id."""
        identifier = codec.decode_identifier(self.load_triple(storage_id))
        self.entries_loaded += 1
        return identifier

    def share(self, storage_id: int, reader: str) -> dict:
        """Grant reader access to one of this identity's entries."""
        receipt = self.submitter.grant_access(self.identity, storage_id, reader)
        self.grants_issued += 1
        return receipt.to_dict()

    def unshare(self, storage_id: int, reader: str) -> dict:
        """
        Revoke reader's registry-level access.

        Decrypt permission the provider already extended is not withdrawn.
        """
        receipt = self.submitter.revoke_access(self.identity, storage_id, reader)
        self.revocations_issued += 1
        return receipt.to_dict()

    def list_ids(self) -> list[int]:
        return self.submitter.entries_owned_by(self.identity)

    def can_read(self, storage_id: int) -> bool:
        return self.submitter.has_access(storage_id, self.identity)

    def verify(self, storage_id: int, original) -> bool:
        """Check that an entry decodes back to original."""
        expected = codec.decode_identifier(codec.encode(original, strict=self.strict))
        return self.load(storage_id) == expected

    def stats(self) -> dict:
        return {
            "identity": self.identity,
            "entries_stored": self.entries_stored,
            "entries_loaded": self.entries_loaded,
            "grants_issued": self.grants_issued,
            "revocations_issued": self.revocations_issued,
        }
