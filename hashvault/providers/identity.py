"""
Identity provider.
Stand-in for a real encryption backend: a handle IS the plaintext
address-shaped value. Permission grants are recorded so callers can
inspect the sequence the registry issued, but nothing is enforced.

Never use this outside tests and local demos.
"""

from hashvault.codec import Triple
from hashvault.providers.base import EncryptionContext, EncryptionProvider
from hashvault.utils import normalize_identity


class IdentityProvider(EncryptionProvider):
    """Handles are the plaintext values; opening them is the identity function."""

    def __init__(self):
        self.grants: list[tuple[str, str, str]] = []  # (handle, registry, grantee)

    def seal_triple(self, triple: Triple, context: EncryptionContext):
        return triple.addresses(), b""

    def verify_proof(self, handles, proof: bytes, context: EncryptionContext) -> bool:
        return True

    def authorize(self, handle: str, context: EncryptionContext, grantee: str) -> None:
        self.grants.append((handle, context.registry, normalize_identity(grantee)))

    def is_authorized(self, handle: str, who: str) -> bool:
        who = normalize_identity(who)
        return any(h == handle and g == who for h, _, g in self.grants)

    def open_handles(self, handles, context: EncryptionContext, requester: str, signature: bytes) -> Triple:
        return Triple.from_addresses(*handles)

    def get_info(self) -> dict:
        return {
            "provider": "identity",
            "grants_recorded": len(self.grants),
            "note": "Handles are plaintext — test double only",
        }
