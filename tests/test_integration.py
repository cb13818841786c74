"""
hashvault — Integration Tests
Tests the full encode/seal/register/share/open/decode pipeline, the
command line, and configuration loading.
"""

import contextlib
import io
import json
import logging
import os
import sys
import tempfile
from pathlib import Path

# Add parent to path for local development
sys.path.insert(0, str(Path(__file__).parent.parent))

from hashvault import HashVaultClient, IdentityProvider, LocalAEADProvider, LocalSubmitter, Registry
from hashvault import encode, decode, Forbidden, InvalidFormat, InvalidLength
from hashvault.__main__ import main as cli_main
from hashvault.config import load_config
from hashvault.logger import set_level

REGISTRY = "0x" + "11" * 20
ALICE = "0x" + "aa" * 20
BOB = "0x" + "bb" * 20
CAROL = "0x" + "cc" * 20
EXAMPLE_HASH = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
SECOND_HASH = "QmT78zSuBmuS4z925WZfrqQ1qHaJ56DQaTfyMUF7F8ff5o"


def test_end_to_end_identity_provider():
    """A stores, grants B; B fetches handles, opens them, and decodes the hash."""
    print("Testing end-to-end (identity provider)...", end=" ")
    provider = IdentityProvider()
    registry = Registry(provider, REGISTRY)
    submitter = LocalSubmitter(registry)

    triple = encode(EXAMPLE_HASH)
    alice = HashVaultClient(ALICE, provider, submitter)
    report = alice.store(EXAMPLE_HASH)
    storage_id = report["storage_id"]
    assert storage_id == 1
    assert report["events"] == ["Stored"]

    alice.share(storage_id, BOB)

    handles = registry.get_handles(BOB, storage_id)
    recovered = provider.open_handles(handles, alice.context, BOB, b"")
    assert recovered == triple
    assert decode(recovered) == EXAMPLE_HASH.encode("ascii")

    bob = HashVaultClient(BOB, provider, submitter)
    assert bob.load(storage_id) == EXAMPLE_HASH
    print("PASS")


def test_end_to_end_local_encryption():
    """Same flow with real AES-GCM handles and signed open requests."""
    print("Testing end-to-end (AES-GCM provider)...", end=" ")
    provider = LocalAEADProvider()
    submitter = LocalSubmitter(Registry(provider, REGISTRY))

    alice = HashVaultClient(ALICE, provider, submitter, signing_secret=provider.enroll(ALICE))
    bob = HashVaultClient(BOB, provider, submitter, signing_secret=provider.enroll(BOB))
    carol = HashVaultClient(CAROL, provider, submitter, signing_secret=provider.enroll(CAROL))

    first = alice.store(EXAMPLE_HASH)["storage_id"]
    second = alice.store(SECOND_HASH)["storage_id"]
    assert alice.list_ids() == [first, second]
    assert alice.load(first) == EXAMPLE_HASH
    assert alice.load(second) == SECOND_HASH
    assert alice.verify(second, SECOND_HASH)

    # Handles in the registry are not the plaintext addresses
    assert submitter.get_handles(ALICE, first) != encode(EXAMPLE_HASH).addresses()

    alice.share(first, BOB)
    assert bob.can_read(first)
    assert bob.load(first) == EXAMPLE_HASH

    # Bob was never granted the second entry
    try:
        bob.load(second)
        assert False, "Bob should not read the second entry"
    except Forbidden:
        pass

    alice.unshare(first, BOB)
    assert not bob.can_read(first)
    try:
        bob.load(first)
        assert False, "revoked reader should be refused by the registry"
    except Forbidden:
        pass

    try:
        carol.load(first)
        assert False, "Carol was never granted"
    except Forbidden:
        pass

    # Bob cannot share Alice's entry
    try:
        bob.share(first, CAROL)
        assert False, "only the owner can share"
    except Forbidden:
        pass

    stats = alice.stats()
    assert stats["entries_stored"] == 2
    assert stats["grants_issued"] == 1
    assert stats["revocations_issued"] == 1
    print("PASS")


def test_strict_client():
    """A strict client refuses malformed or over-long identifiers."""
    print("Testing strict client...", end=" ")
    provider = IdentityProvider()
    submitter = LocalSubmitter(Registry(provider, REGISTRY))
    strict = HashVaultClient(ALICE, provider, submitter, strict=True)
    tolerant = HashVaultClient(ALICE, provider, submitter)

    try:
        strict.store(EXAMPLE_HASH + "extra")
        assert False, "strict client should reject long input"
    except InvalidFormat:
        pass
    try:
        strict.store(b"\x00" * 50)
        assert False, "strict client should reject long bytes"
    except InvalidLength:
        pass
    assert submitter.current_count() == 0

    storage_id = tolerant.store(EXAMPLE_HASH + "extra")["storage_id"]
    assert tolerant.load(storage_id) == EXAMPLE_HASH
    print("PASS")


def test_strict_client_rejects_line_ending():
    """A hash read with its trailing newline is refused rather than stored."""
    print("Testing strict client line endings...", end=" ")
    provider = IdentityProvider()
    submitter = LocalSubmitter(Registry(provider, REGISTRY))
    strict = HashVaultClient(ALICE, provider, submitter, strict=True)

    for candidate in (EXAMPLE_HASH[:-1] + "\n", EXAMPLE_HASH[:-1] + "\r"):
        try:
            strict.store(candidate)
            assert False, "strict client should reject a line ending"
        except InvalidFormat:
            pass
    assert submitter.current_count() == 0
    print("PASS")


def _run_cli(*argv) -> tuple[int, str]:
    out = io.StringIO()
    with contextlib.redirect_stdout(out), contextlib.redirect_stderr(out):
        code = cli_main(list(argv))
    return code, out.getvalue()


def test_cli_codec_commands():
    """hash-to-addresses / addresses-to-hash / validate round trip."""
    print("Testing CLI codec commands...", end=" ")
    code, output = _run_cli("hash-to-addresses", EXAMPLE_HASH)
    assert code == 0
    addresses = [line.split(": ")[1] for line in output.splitlines() if line.startswith("Address")]
    assert list(addresses) == list(encode(EXAMPLE_HASH).addresses())

    code, output = _run_cli("addresses-to-hash", *addresses)
    assert code == 0
    assert f"IPFS Hash: {EXAMPLE_HASH}" in output

    assert _run_cli("validate", EXAMPLE_HASH)[0] == 0
    assert _run_cli("validate", "0OIl")[0] == 1

    code, output = _run_cli("hash-to-addresses", "short")
    assert code == 1
    assert "too short" in output
    print("PASS")


def test_load_config():
    """Deployment file values load first; environment variables override."""
    print("Testing config loading...", end=" ")
    keys = [
        "HASHVAULT_DEPLOYMENT", "HASHVAULT_RPC_URL", "SEPOLIA_RPC_URL", "HASHVAULT_REGISTRY_ADDRESS",
        "HASHVAULT_CHAIN", "HASHVAULT_CONCEAL_EXISTENCE", "HASHVAULT_STRICT_LENGTH", "HASHVAULT_LOG_LEVEL",
    ]
    saved = {k: os.environ.pop(k) for k in keys if k in os.environ}
    try:
        with tempfile.TemporaryDirectory() as tmpdir:
            deployment = Path(tmpdir) / "deployment.json"
            deployment.write_text(json.dumps({
                "contract_address": REGISTRY,
                "rpc_url": "http://localhost:8545",
                "network": "sepolia",
            }))

            config = load_config(deployment)
            assert config.registry_address == REGISTRY
            assert config.rpc_url == "http://localhost:8545"
            assert config.chain_name == "sepolia"
            assert config.conceal_existence is False

            os.environ["HASHVAULT_RPC_URL"] = "http://rpc.example:8545"
            os.environ["HASHVAULT_CONCEAL_EXISTENCE"] = "true"
            os.environ["HASHVAULT_STRICT_LENGTH"] = "0"
            config = load_config(deployment)
            assert config.rpc_url == "http://rpc.example:8545"
            assert config.conceal_existence is True
            assert config.strict_length is False

        for k in ("HASHVAULT_RPC_URL", "HASHVAULT_CONCEAL_EXISTENCE", "HASHVAULT_STRICT_LENGTH"):
            os.environ.pop(k, None)
        assert load_config().registry_address == ""
    finally:
        for k in keys:
            os.environ.pop(k, None)
        os.environ.update(saved)
    print("PASS")


def test_config_drives_components():
    """Strictness, existence concealment and log level all follow the loaded config."""
    print("Testing config-driven components...", end=" ")
    keys = ["HASHVAULT_DEPLOYMENT", "HASHVAULT_STRICT_LENGTH", "HASHVAULT_CONCEAL_EXISTENCE", "HASHVAULT_LOG_LEVEL"]
    saved = {k: os.environ.pop(k) for k in keys if k in os.environ}
    long_hash = EXAMPLE_HASH + "a"
    try:
        assert _run_cli("hash-to-addresses", long_hash)[0] == 0

        os.environ["HASHVAULT_STRICT_LENGTH"] = "1"
        code, output = _run_cli("hash-to-addresses", long_hash)
        assert code == 1
        assert "exactly 46 bytes" in output
        assert _run_cli("hash-to-addresses", EXAMPLE_HASH)[0] == 0

        os.environ["HASHVAULT_CONCEAL_EXISTENCE"] = "yes"
        os.environ["HASHVAULT_LOG_LEVEL"] = "warning"
        config = load_config()

        provider = IdentityProvider()
        registry = Registry.from_config(provider, config, address=REGISTRY)
        assert registry.conceal_existence is True
        try:
            registry.get_handles(BOB, 99)
            assert False, "unknown id should be concealed"
        except Forbidden:
            pass

        client = HashVaultClient.from_config(config, ALICE, provider, LocalSubmitter(registry))
        assert client.strict is True
        try:
            client.store(long_hash)
            assert False, "strict client should reject long input"
        except InvalidFormat:
            pass

        _run_cli("validate", EXAMPLE_HASH)
        assert logging.getLogger("hashvault.registry").level == logging.WARNING
    finally:
        for k in keys:
            os.environ.pop(k, None)
        os.environ.update(saved)
        set_level("INFO")
    print("PASS")


def main():
    print("=" * 50)
    print("  hashvault Integration Tests")
    print("=" * 50)
    print()

    tests = [
        test_end_to_end_identity_provider,
        test_end_to_end_local_encryption,
        test_strict_client,
        test_cli_codec_commands,
        test_load_config,
        test_config_drives_components,
        test_strict_client_rejects_line_ending,
    ]

    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"FAIL: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print()
    print(f"Results: {passed} passed, {failed} failed")
    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
