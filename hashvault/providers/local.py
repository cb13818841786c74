"""
Local AEAD provider.
A working, in-process encryption backend for development and tests that
need real ciphertext.

Each address-shaped value is sealed with AES-256-GCM under the provider key,
with the registry address as associated data. The handle is the SHA-256 of
nonce + ciphertext, so it reveals nothing about the value.

Permission model (same shape as an FHE access-control list):
  - authorize() appends a grantee to the handle's permission list
  - permissions are never withdrawn
  - opening needs BOTH the registry and the requester on the list,
    plus an HMAC-signed request from an enrolled requester

Input proofs are HMAC-SHA256 over the handles and the (registry, caller)
context, so handles sealed for one registry or caller cannot be submitted
under another.
"""

import hashlib
import hmac
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from hashvault.codec import Triple
from hashvault.errors import Forbidden, InvalidFormat
from hashvault.logger import get_logger
from hashvault.providers.base import EncryptionContext, EncryptionProvider
from hashvault.utils import handles_digest, normalize_identity

NONCE_SIZE = 12  # AES-256-GCM standard
KEY_SIZE = 32    # 256 bits

log = get_logger(__name__)


def request_digest(handles, context: EncryptionContext, requester: str) -> bytes:
    """Digest a requester signs to open a set of handles."""
    return handles_digest(
        handles,
        "open",
        normalize_identity(context.registry),
        normalize_identity(requester),
    )


def sign_request(secret: bytes, handles, context: EncryptionContext, requester: str) -> bytes:
    """HMAC-SHA256 signature over request_digest() with the requester's secret."""
    return hmac.new(secret, request_digest(handles, context, requester), hashlib.sha256).digest()


class LocalAEADProvider(EncryptionProvider):
    """
    AES-256-GCM sealing with an append-only permission list per handle.

    Args:
        key: 32-byte sealing key. Generated randomly if not provided.
        proof_secret: HMAC secret for input proofs. Generated if not provided.
    """

    def __init__(self, key: bytes = None, proof_secret: bytes = None):
        self._key = key or AESGCM.generate_key(bit_length=256)
        if len(self._key) != KEY_SIZE:
            raise ValueError(f"Sealing key must be {KEY_SIZE} bytes")
        self._proof_secret = proof_secret or os.urandom(32)
        self._ciphertexts: dict[str, tuple[bytes, bytes, str]] = {}
        self._acl: dict[str, list[str]] = {}
        self._signers: dict[str, bytes] = {}

    def enroll(self, identity: str, secret: bytes = None) -> bytes:
        """
        Enroll an identity that will sign open requests.

        Returns:
            The identity's signing secret (generated if not provided).
        """
        secret = secret or os.urandom(32)
        self._signers[normalize_identity(identity)] = secret
        return secret

    def _proof_for(self, handles, context: EncryptionContext) -> bytes:
        digest = handles_digest(
            handles,
            "input",
            normalize_identity(context.registry),
            normalize_identity(context.caller),
        )
        return hmac.new(self._proof_secret, digest, hashlib.sha256).digest()

    def seal_triple(self, triple: Triple, context: EncryptionContext):
        registry = normalize_identity(context.registry)
        aesgcm = AESGCM(self._key)
        handles = []
        for value in triple.values():
            nonce = os.urandom(NONCE_SIZE)
            ciphertext = aesgcm.encrypt(nonce, value, registry.encode("utf-8"))
            handle = "0x" + hashlib.sha256(nonce + ciphertext).hexdigest()
            self._ciphertexts[handle] = (nonce, ciphertext, registry)
            self._acl[handle] = []
            handles.append(handle)

        handles = tuple(handles)
        log.debug(f"sealed 3 values for caller {normalize_identity(context.caller)}")
        return handles, self._proof_for(handles, context)

    def verify_proof(self, handles, proof: bytes, context: EncryptionContext) -> bool:
        if any(h not in self._ciphertexts for h in handles):
            return False
        return hmac.compare_digest(proof or b"", self._proof_for(handles, context))

    def authorize(self, handle: str, context: EncryptionContext, grantee: str) -> None:
        if handle not in self._ciphertexts:
            raise InvalidFormat(f"Unknown handle: {handle}")
        grantee = normalize_identity(grantee)
        acl = self._acl[handle]
        if grantee not in acl:
            acl.append(grantee)

    def is_authorized(self, handle: str, who: str) -> bool:
        return normalize_identity(who) in self._acl.get(handle, [])

    def open_handles(self, handles, context: EncryptionContext, requester: str, signature: bytes) -> Triple:
        requester = normalize_identity(requester)
        registry = normalize_identity(context.registry)

        secret = self._signers.get(requester)
        if secret is None:
            raise Forbidden("Requester is not enrolled")
        expected = sign_request(secret, handles, context, requester)
        if not hmac.compare_digest(signature or b"", expected):
            raise Forbidden("Invalid decryption request signature")

        aesgcm = AESGCM(self._key)
        values = []
        for handle in handles:
            if handle not in self._ciphertexts:
                raise InvalidFormat(f"Unknown handle: {handle}")
            if not (self.is_authorized(handle, registry) and self.is_authorized(handle, requester)):
                raise Forbidden("Access denied")
            nonce, ciphertext, sealed_for = self._ciphertexts[handle]
            values.append(aesgcm.decrypt(nonce, ciphertext, sealed_for.encode("utf-8")))
        return Triple(*values)

    def get_info(self) -> dict:
        return {
            "provider": "local-aead",
            "cipher": "AES-256-GCM",
            "handles": len(self._ciphertexts),
            "enrolled": len(self._signers),
        }
