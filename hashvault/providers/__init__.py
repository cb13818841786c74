"""
Encryption providers for the registry.
Each provider turns plaintext address-shaped values into opaque handles
and back, under an append-only permission list.
"""

from hashvault.providers.base import EncryptionContext, EncryptionProvider
from hashvault.providers.identity import IdentityProvider
from hashvault.providers.local import LocalAEADProvider, request_digest, sign_request

__all__ = [
    "EncryptionContext",
    "EncryptionProvider",
    "IdentityProvider",
    "LocalAEADProvider",
    "request_digest",
    "sign_request",
]
