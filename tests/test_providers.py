"""Tests for encryption providers."""

import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from hashvault.codec import encode
from hashvault.errors import Forbidden, InvalidFormat
from hashvault.providers import (
    EncryptionContext,
    IdentityProvider,
    LocalAEADProvider,
    sign_request,
)
from hashvault.registry import Registry

REGISTRY = "0x" + "11" * 20
OTHER_REGISTRY = "0x" + "22" * 20
ALICE = "0x" + "aa" * 20
BOB = "0x" + "bb" * 20
EXAMPLE_HASH = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


def _sealed(provider, caller=ALICE):
    context = EncryptionContext(registry=REGISTRY, caller=caller)
    triple = encode(EXAMPLE_HASH)
    handles, proof = provider.seal_triple(triple, context)
    return triple, handles, proof, context


def test_identity_provider_is_identity():
    """Identity provider: handles are the plaintext addresses."""
    provider = IdentityProvider()
    triple, handles, proof, context = _sealed(provider)

    assert handles == triple.addresses()
    assert provider.verify_proof(handles, proof, context)
    assert provider.open_handles(handles, context, BOB, b"") == triple
    assert provider.get_info()["provider"] == "identity"
    print("  [PASS] Identity provider round trip")


def test_local_seal_and_open():
    """Local AEAD provider: authorized, enrolled requester recovers the triple."""
    provider = LocalAEADProvider()
    triple, handles, proof, context = _sealed(provider)
    secret = provider.enroll(ALICE)

    for handle in handles:
        provider.authorize(handle, context, REGISTRY)
        provider.authorize(handle, context, ALICE)

    signature = sign_request(secret, handles, context, ALICE)
    assert provider.open_handles(handles, context, ALICE, signature) == triple
    print("  [PASS] Local provider seal + open")


def test_local_handles_hide_plaintext():
    """Handles are 32-byte digests, unrelated to the plaintext values."""
    provider = LocalAEADProvider()
    triple, handles, _, _ = _sealed(provider)

    assert len(set(handles)) == 3
    for handle, addr in zip(handles, triple.addresses()):
        assert handle.startswith("0x") and len(handle) == 66
        assert addr[2:] not in handle

    # Sealing the same triple twice yields fresh handles
    _, again, _, _ = _sealed(provider)
    assert set(again).isdisjoint(handles)
    print("  [PASS] Local provider handles are opaque")


def test_local_rejects_unauthorized_requester():
    """Enrolled but never authorized: Forbidden."""
    provider = LocalAEADProvider()
    _, handles, _, context = _sealed(provider)
    for handle in handles:
        provider.authorize(handle, context, REGISTRY)
        provider.authorize(handle, context, ALICE)

    bob_secret = provider.enroll(BOB)
    try:
        provider.open_handles(handles, context, BOB, sign_request(bob_secret, handles, context, BOB))
        assert False, "unauthorized requester should be refused"
    except Forbidden:
        pass
    print("  [PASS] Local provider rejects unauthorized requester")


def test_local_rejects_bad_signature():
    """Wrong signing secret or unenrolled requester: Forbidden."""
    provider = LocalAEADProvider()
    _, handles, _, context = _sealed(provider)
    for handle in handles:
        provider.authorize(handle, context, REGISTRY)
        provider.authorize(handle, context, ALICE)

    try:
        provider.open_handles(handles, context, ALICE, b"")
        assert False, "unenrolled requester should be refused"
    except Forbidden:
        pass

    provider.enroll(ALICE)
    forged = sign_request(os.urandom(32), handles, context, ALICE)
    try:
        provider.open_handles(handles, context, ALICE, forged)
        assert False, "forged signature should be refused"
    except Forbidden:
        pass
    print("  [PASS] Local provider rejects bad signatures")


def test_local_requires_registry_permission():
    """The requester alone is not enough: the registry must hold permission too."""
    provider = LocalAEADProvider()
    _, handles, _, context = _sealed(provider)
    secret = provider.enroll(ALICE)
    for handle in handles:
        provider.authorize(handle, context, ALICE)

    try:
        provider.open_handles(handles, context, ALICE, sign_request(secret, handles, context, ALICE))
        assert False, "registry without permission should block opening"
    except Forbidden:
        pass
    print("  [PASS] Local provider requires registry permission")


def test_local_proof_bound_to_context():
    """Proofs cover exactly the handles, registry and caller they were issued for."""
    provider = LocalAEADProvider()
    _, handles, proof, context = _sealed(provider)

    assert provider.verify_proof(handles, proof, context)
    assert not provider.verify_proof(handles, proof, EncryptionContext(REGISTRY, BOB))
    assert not provider.verify_proof(handles, proof, EncryptionContext(OTHER_REGISTRY, ALICE))
    assert not provider.verify_proof(tuple(reversed(handles)), proof, context)
    assert not provider.verify_proof(handles, b"", context)
    assert not provider.verify_proof(("0x00", "0x01", "0x02"), proof, context)
    print("  [PASS] Local provider proofs are context-bound")


def test_local_authorize_unknown_handle():
    """Authorizing a handle the provider never issued is an error."""
    provider = LocalAEADProvider()
    try:
        provider.authorize("0xdead", EncryptionContext(REGISTRY, ALICE), BOB)
        assert False, "unknown handle should be rejected"
    except InvalidFormat:
        pass
    print("  [PASS] Local provider rejects unknown handles")


def test_revocation_is_registry_level_only():
    """After revoke, the registry refuses the reader but provider permission remains."""
    provider = LocalAEADProvider()
    registry = Registry(provider, REGISTRY)
    _, handles, proof, context = _sealed(provider)
    storage_id = registry.register(ALICE, *handles, proof=proof)

    registry.grant_access(ALICE, storage_id, BOB)
    assert all(provider.is_authorized(h, BOB) for h in handles)

    registry.revoke_access(ALICE, storage_id, BOB)
    assert not registry.has_access(storage_id, BOB)
    # Known limitation: provider permissions are append-only
    assert all(provider.is_authorized(h, BOB) for h in handles)
    print("  [PASS] Revocation caveat holds")


def test_local_key_size_checked():
    try:
        LocalAEADProvider(key=b"short")
        assert False, "short key should be rejected"
    except ValueError:
        pass
    info = LocalAEADProvider().get_info()
    assert info["cipher"] == "AES-256-GCM"
    print("  [PASS] Local provider validates its key")


if __name__ == "__main__":
    print("Testing encryption providers...\n")
    test_identity_provider_is_identity()
    test_local_seal_and_open()
    test_local_handles_hide_plaintext()
    test_local_rejects_unauthorized_requester()
    test_local_rejects_bad_signature()
    test_local_requires_registry_permission()
    test_local_proof_bound_to_context()
    test_local_authorize_unknown_handle()
    test_revocation_is_registry_level_only()
    test_local_key_size_checked()
    print(f"\n{'='*50}")
    print("All 10 provider tests passed!")
