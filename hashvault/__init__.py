"""
hashvault — Encrypted, Access-Controlled Content Identifiers
Register a 46-byte content hash as three opaque handles and decide who may
read them.

hashvault has two layers:
1. Codec — packs a 46-byte identifier into three address-shaped values
2. Registry — stores the encrypted handles, owns them, and authorizes readers

Encryption and commit are pluggable: an EncryptionProvider turns values
into handles, a TransactionSubmitter orders registry mutations.

Usage:
    from hashvault import HashVaultClient, Registry, LocalSubmitter, IdentityProvider
    provider = IdentityProvider()
    registry = Registry(provider, address="0x" + "11" * 20)
    client = HashVaultClient("0x" + "aa" * 20, provider, LocalSubmitter(registry))
    report = client.store("QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG")
"""

from hashvault.codec import (
    Triple,
    encode,
    decode,
    decode_identifier,
    add_prefix,
    strip_prefix,
    is_well_formed,
)
from hashvault.errors import (
    HashVaultError,
    InvalidLength,
    InvalidFormat,
    NotFound,
    Forbidden,
    InvalidReader,
    InvalidProof,
)
from hashvault.events import Stored, AccessGranted, AccessRevoked
from hashvault.providers import EncryptionContext, EncryptionProvider, IdentityProvider, LocalAEADProvider
from hashvault.registry import Registry, StorageEntry
from hashvault.submitters import Receipt, TransactionSubmitter, LocalSubmitter, EthereumSubmitter
from hashvault.client import HashVaultClient
from hashvault.config import HashVaultConfig, load_config

__version__ = "0.1.0"
__all__ = [
    "Triple",
    "encode",
    "decode",
    "decode_identifier",
    "add_prefix",
    "strip_prefix",
    "is_well_formed",
    "HashVaultError",
    "InvalidLength",
    "InvalidFormat",
    "NotFound",
    "Forbidden",
    "InvalidReader",
    "InvalidProof",
    "Stored",
    "AccessGranted",
    "AccessRevoked",
    "EncryptionContext",
    "EncryptionProvider",
    "IdentityProvider",
    "LocalAEADProvider",
    "Registry",
    "StorageEntry",
    "Receipt",
    "TransactionSubmitter",
    "LocalSubmitter",
    "EthereumSubmitter",
    "HashVaultClient",
    "HashVaultConfig",
    "load_config",
]
