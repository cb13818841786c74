"""
hashvault — Basic Usage Example

Registers an IPFS hash as three encrypted handles, shares it with a second
party, and shows that revocation stops registry reads.
"""

import sys
import tempfile
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hashvault import HashVaultClient, LocalAEADProvider, LocalSubmitter, Registry, Forbidden, encode


def main():
    registry_address = "0x" + "11" * 20
    alice_address = "0x" + "aa" * 20
    bob_address = "0x" + "bb" * 20
    ipfs_hash = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"

    print("=" * 50)
    print("  hashvault — Encrypted IPFS Hash Registry")
    print("=" * 50)

    provider = LocalAEADProvider()
    registry = Registry(provider, registry_address)
    submitter = LocalSubmitter(registry)

    alice = HashVaultClient(alice_address, provider, submitter, signing_secret=provider.enroll(alice_address))
    bob = HashVaultClient(bob_address, provider, submitter, signing_secret=provider.enroll(bob_address))

    print(f"\nIPFS hash: {ipfs_hash}")
    for i, addr in enumerate(encode(ipfs_hash).addresses(), start=1):
        print(f"  Address {i}: {addr}")

    # Alice stores: encode -> seal -> register
    report = alice.store(ipfs_hash)
    storage_id = report["storage_id"]
    print(f"\nStored as entry {storage_id} (tx {report['tx_hash'][:18]}...)")
    for i, handle in enumerate(report["handles"], start=1):
        print(f"  Handle {i}: {handle}")

    print(f"\nAlice reads back: {alice.load(storage_id)}")

    # Share with Bob
    alice.share(storage_id, bob_address)
    print(f"Bob can read: {bob.can_read(storage_id)}")
    print(f"Bob reads: {bob.load(storage_id)}")

    # Revoke Bob
    alice.unshare(storage_id, bob_address)
    print(f"\nAfter revoke, Bob can read: {bob.can_read(storage_id)}")
    try:
        bob.load(storage_id)
        print("  ERROR: Should have failed!")
    except Forbidden:
        print("  Correctly rejected — the registry no longer serves Bob the handles")
    print("  Note: decrypt permission Bob already held at the provider is not withdrawn")

    # Persist registry state
    with tempfile.TemporaryDirectory() as tmpdir:
        path = registry.save(Path(tmpdir) / "registry.json")
        restored = Registry.load(path, provider)
        print(f"\nSnapshot restored: {restored.stats()}")


if __name__ == "__main__":
    main()
