"""
hashvault command line.

Offline codec commands:
    python -m hashvault hash-to-addresses QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG
    python -m hashvault addresses-to-hash 0x... 0x... 0x...
    python -m hashvault validate Qm...

Registry commands (deployed contract, see hashvault.config):
    python -m hashvault grant-access ID USER
    python -m hashvault revoke-access ID USER
    python -m hashvault get-handles ID
    python -m hashvault list-ids [--user USER]
    python -m hashvault count
"""

import argparse
import os
import sys

from hashvault import codec
from hashvault.config import load_config
from hashvault.errors import HashVaultError
from hashvault.logger import set_level
from hashvault.submitters.ethereum import EthereumSubmitter


def _submitter(args) -> EthereumSubmitter:
    config = args.config
    if not config.rpc_url or not config.registry_address:
        raise SystemExit("Set HASHVAULT_RPC_URL and HASHVAULT_REGISTRY_ADDRESS, or pass --deployment")
    return EthereumSubmitter(
        rpc_url=config.rpc_url,
        contract_address=config.registry_address,
        private_key=os.getenv("HASHVAULT_PRIVATE_KEY"),
        chain_name=config.chain_name,
    )


def cmd_hash_to_addresses(args) -> int:
    print(f"Converting IPFS hash: {args.hash}")
    triple = codec.encode(args.hash, strict=args.strict or args.config.strict_length)
    for i, addr in enumerate(triple.addresses(), start=1):
        print(f"Address {i}: {addr}")
    return 0


def cmd_addresses_to_hash(args) -> int:
    triple = codec.Triple.from_addresses(args.addr1, args.addr2, args.addr3)
    print(f"IPFS Hash: {codec.decode_identifier(triple)}")
    return 0


def cmd_validate(args) -> int:
    ok = codec.is_well_formed(args.hash)
    print(f"{args.hash}: {'valid' if ok else 'INVALID'}")
    return 0 if ok else 1


def cmd_grant_access(args) -> int:
    submitter = _submitter(args)
    receipt = submitter.grant_access(submitter.account_address, args.id, args.user)
    print(f"Transaction hash: {receipt.tx_hash}")
    return 0


def cmd_revoke_access(args) -> int:
    submitter = _submitter(args)
    receipt = submitter.revoke_access(submitter.account_address, args.id, args.user)
    print(f"Transaction hash: {receipt.tx_hash}")
    return 0


def cmd_get_handles(args) -> int:
    submitter = _submitter(args)
    actor = args.user or submitter.account_address
    for i, handle in enumerate(submitter.get_handles(actor, args.id), start=1):
        print(f"Encrypted Address {i} Handle: {handle}")
    return 0


def cmd_list_ids(args) -> int:
    submitter = _submitter(args)
    user = args.user or submitter.account_address
    if not user:
        raise SystemExit("Pass --user or set HASHVAULT_PRIVATE_KEY")
    ids = submitter.entries_owned_by(user)
    print(f"Storage IDs: [{', '.join(str(i) for i in ids)}]")
    return 0


def cmd_count(args) -> int:
    print(f"Current ID: {_submitter(args).current_count()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hashvault", description="Encrypted content identifier registry")
    parser.add_argument("--deployment", help="Deployment JSON (contract_address, rpc_url, network)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("hash-to-addresses", help="Encode an IPFS hash into three addresses")
    p.add_argument("hash")
    p.add_argument("--strict", action="store_true", help="Reject hashes longer than 46 bytes (also HASHVAULT_STRICT_LENGTH)")
    p.set_defaults(func=cmd_hash_to_addresses)

    p = sub.add_parser("addresses-to-hash", help="Decode three addresses into an IPFS hash")
    p.add_argument("addr1")
    p.add_argument("addr2")
    p.add_argument("addr3")
    p.set_defaults(func=cmd_addresses_to_hash)

    p = sub.add_parser("validate", help="Check IPFS hash format")
    p.add_argument("hash")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("grant-access", help="Grant a user read access to a storage id")
    p.add_argument("id", type=int)
    p.add_argument("user")
    p.set_defaults(func=cmd_grant_access)

    p = sub.add_parser("revoke-access", help="Revoke a user's read access to a storage id")
    p.add_argument("id", type=int)
    p.add_argument("user")
    p.set_defaults(func=cmd_revoke_access)

    p = sub.add_parser("get-handles", help="Read the encrypted handles of a storage id")
    p.add_argument("id", type=int)
    p.add_argument("--user", help="Read as this address (defaults to the configured account)")
    p.set_defaults(func=cmd_get_handles)

    p = sub.add_parser("list-ids", help="List storage ids owned by a user")
    p.add_argument("--user", help="Defaults to the configured account")
    p.set_defaults(func=cmd_list_ids)

    p = sub.add_parser("count", help="Number of entries registered so far")
    p.set_defaults(func=cmd_count)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    args.config = load_config(args.deployment)
    set_level(args.config.log_level)
    try:
        return args.func(args)
    except HashVaultError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
