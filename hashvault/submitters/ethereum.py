"""
Ethereum / EVM submitter.
Drives a deployed encrypted-storage registry contract over JSON-RPC.
Works for Ethereum mainnet, Sepolia testnet, or any EVM chain running the
contract.

Mutations are signed with the configured account and wait for a receipt;
the chain provides the total order. Contract reverts are mapped back onto
the hashvault error taxonomy.
"""

import json
import os
from pathlib import Path

from hashvault.errors import Forbidden, InvalidProof, InvalidReader, NotFound
from hashvault.events import AccessGranted, AccessRevoked, Stored
from hashvault.logger import get_logger
from hashvault.submitters.base import Receipt, TransactionSubmitter
from hashvault.utils import is_null_identity, normalize_identity

log = get_logger(__name__)

RECEIPT_TIMEOUT = 120  # seconds
GAS_MARGIN = 1.2


def _fn(name, inputs, outputs=(), mutability="view"):
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": n, "type": t} for n, t in outputs],
    }


def _event(name, inputs):
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [{"name": n, "type": t, "indexed": True} for n, t in inputs],
    }


DEFAULT_ABI = [
    _fn("storeEncryptedIPFSData",
        [("encryptedAddr1", "bytes32"), ("encryptedAddr2", "bytes32"),
         ("encryptedAddr3", "bytes32"), ("inputProof", "bytes")],
        [("storageId", "uint256")], "nonpayable"),
    _fn("grantAccess", [("storageId", "uint256"), ("user", "address")], (), "nonpayable"),
    _fn("revokeAccess", [("storageId", "uint256"), ("user", "address")], (), "nonpayable"),
    _fn("getEncryptedAddresses", [("storageId", "uint256")],
        [("addr1", "bytes32"), ("addr2", "bytes32"), ("addr3", "bytes32")]),
    _fn("hasAccess", [("storageId", "uint256"), ("user", "address")], [("hasAccess", "bool")]),
    _fn("getOwner", [("storageId", "uint256")], [("owner", "address")]),
    _fn("getUserStorageIds", [("user", "address")], [("storageIds", "uint256[]")]),
    _fn("getCurrentId", [], [("currentId", "uint256")]),
    _event("IPFSDataStored", [("storageId", "uint256"), ("owner", "address")]),
    _event("AccessGranted", [("storageId", "uint256"), ("user", "address"), ("grantor", "address")]),
    _event("AccessRevoked", [("storageId", "uint256"), ("user", "address"), ("revoker", "address")]),
]

# Revert reason -> error class
_REVERTS = [
    ("Storage ID does not exist", NotFound),
    ("Only owner", Forbidden),
    ("Access denied", Forbidden),
    ("Invalid user address", InvalidReader),
    ("proof", InvalidProof),
]


def _as_bytes32(handle) -> bytes:
    if isinstance(handle, (bytes, bytearray)):
        return bytes(handle).rjust(32, b"\x00")
    return bytes.fromhex(handle[2:] if handle.startswith("0x") else handle).rjust(32, b"\x00")


class EthereumSubmitter(TransactionSubmitter):
    """
    Submits registry operations to an on-chain registry contract.

    Supports: Ethereum (mainnet/Sepolia), or any EVM-compatible chain.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str = None,
        contract_abi: list = None,
        private_key: str = None,
        chain_name: str = "ethereum",
    ):
        self.rpc_url = rpc_url
        self.contract_address = contract_address
        self.chain_name = chain_name
        self._private_key = private_key
        self._abi = contract_abi or DEFAULT_ABI
        self._w3 = None
        self._contract = None
        self._account = None

    @property
    def registry_address(self) -> str:
        return normalize_identity(self.contract_address)

    @property
    def account_address(self) -> str | None:
        self._connect()
        return self._account.address if self._account else None

    def _connect(self):
        """Lazy connection to the chain."""
        if self._w3 is not None:
            return

        from web3 import Web3
        from web3.middleware import ExtraDataToPOAMiddleware as ExtraDataToPoa

        self._w3 = Web3(Web3.HTTPProvider(self.rpc_url))
        self._w3.middleware_onion.inject(ExtraDataToPoa, layer=0)

        if self._private_key:
            self._account = self._w3.eth.account.from_key(self._private_key)

        if self.contract_address:
            self._contract = self._w3.eth.contract(
                address=Web3.to_checksum_address(self.contract_address),
                abi=self._abi,
            )

    def _require_contract(self):
        self._connect()
        if not self._contract:
            raise RuntimeError("Contract address must be configured")

    def _checksum(self, identity: str) -> str:
        return self._w3.to_checksum_address(identity)

    def _translate(self, error: Exception) -> Exception:
        """Map a contract revert onto the hashvault error taxonomy."""
        message = str(error)
        for needle, error_cls in _REVERTS:
            if needle in message:
                if error_cls is NotFound:
                    return NotFound(None)
                return error_cls(message)
        return error

    def _call(self, fn, actor: str = None):
        from web3.exceptions import ContractLogicError

        tx = {"from": self._checksum(actor)} if actor else {}
        try:
            return fn.call(tx)
        except ContractLogicError as e:
            raise self._translate(e) from e

    def _transact(self, fn, actor: str):
        """Sign, send, and wait for a state-changing call from the configured account."""
        from web3.exceptions import ContractLogicError

        self._require_contract()
        if not self._account:
            raise RuntimeError("A private key must be configured to submit transactions")
        if normalize_identity(actor) != normalize_identity(self._account.address):
            raise Forbidden(f"Configured account cannot act as {actor}")

        try:
            tx = fn.build_transaction({
                "from": self._account.address,
                "nonce": self._w3.eth.get_transaction_count(self._account.address),
                "gasPrice": self._w3.eth.gas_price,
                "chainId": self._w3.eth.chain_id,
            })
            gas_estimate = self._w3.eth.estimate_gas(tx)
        except ContractLogicError as e:
            raise self._translate(e) from e
        tx["gas"] = int(gas_estimate * GAS_MARGIN)

        signed = self._account.sign_transaction(tx)
        tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT)
        if receipt.status != 1:
            raise RuntimeError(f"Transaction {receipt.transactionHash.hex()} reverted")
        return receipt

    def _events(self, receipt) -> list:
        events = []
        for log_entry in self._contract.events.IPFSDataStored().process_receipt(receipt):
            args = log_entry["args"]
            events.append(Stored(int(args["storageId"]), normalize_identity(args["owner"])))
        for log_entry in self._contract.events.AccessGranted().process_receipt(receipt):
            args = log_entry["args"]
            events.append(AccessGranted(
                int(args["storageId"]), normalize_identity(args["user"]), normalize_identity(args["grantor"]),
            ))
        for log_entry in self._contract.events.AccessRevoked().process_receipt(receipt):
            args = log_entry["args"]
            events.append(AccessRevoked(
                int(args["storageId"]), normalize_identity(args["user"]), normalize_identity(args["revoker"]),
            ))
        return events

    def _receipt(self, receipt, result=None) -> Receipt:
        return Receipt(
            tx_hash=receipt.transactionHash.hex(),
            block_number=receipt.blockNumber,
            status=receipt.status,
            events=self._events(receipt),
            result=result,
        )

    def register(self, owner: str, handles, proof: bytes) -> Receipt:
        self._require_contract()
        h1, h2, h3 = (_as_bytes32(h) for h in handles)
        fn = self._contract.functions.storeEncryptedIPFSData(h1, h2, h3, proof or b"")
        raw = self._transact(fn, owner)

        receipt = self._receipt(raw)
        stored = [e for e in receipt.events if isinstance(e, Stored)]
        if stored:
            receipt.result = stored[0].storage_id
        log.info("registered entry %s on %s (tx %s)", receipt.result, self.chain_name, receipt.tx_hash)
        return receipt

    def grant_access(self, actor: str, storage_id: int, reader: str) -> Receipt:
        if is_null_identity(reader):
            # Rejected locally, but only after the existence and owner checks
            if not 1 <= storage_id <= self.current_count():
                raise NotFound(storage_id)
            if self.owner_of(storage_id) != normalize_identity(actor):
                raise Forbidden("Only owner can grant access")
            raise InvalidReader("Invalid user address")
        self._require_contract()
        fn = self._contract.functions.grantAccess(storage_id, self._checksum(reader))
        receipt = self._receipt(self._transact(fn, actor))
        log.info("granted %s on entry %s (tx %s)", reader, storage_id, receipt.tx_hash)
        return receipt

    def revoke_access(self, actor: str, storage_id: int, reader: str) -> Receipt:
        self._require_contract()
        fn = self._contract.functions.revokeAccess(storage_id, self._checksum(reader))
        receipt = self._receipt(self._transact(fn, actor))
        log.info("revoked %s on entry %s (tx %s)", reader, storage_id, receipt.tx_hash)
        return receipt

    def get_handles(self, actor: str, storage_id: int):
        self._require_contract()
        raw = self._call(self._contract.functions.getEncryptedAddresses(storage_id), actor)
        return tuple("0x" + bytes(h).hex() for h in raw)

    def has_access(self, storage_id: int, who: str) -> bool:
        self._require_contract()
        return bool(self._call(self._contract.functions.hasAccess(storage_id, self._checksum(who))))

    def owner_of(self, storage_id: int) -> str:
        self._require_contract()
        return normalize_identity(self._call(self._contract.functions.getOwner(storage_id)))

    def entries_owned_by(self, who: str) -> list[int]:
        self._require_contract()
        ids = self._call(self._contract.functions.getUserStorageIds(self._checksum(who)))
        return [int(i) for i in ids]

    def current_count(self) -> int:
        self._require_contract()
        return int(self._call(self._contract.functions.getCurrentId()))

    def is_available(self) -> bool:
        """Check if the chain is reachable and the contract is deployed."""
        try:
            self._connect()
            if not self._w3.is_connected():
                return False
            if self.contract_address:
                code = self._w3.eth.get_code(self._checksum(self.contract_address))
                return len(code) > 0
            return True
        except Exception:
            return False

    def get_info(self) -> dict:
        """Get chain and contract info."""
        self._connect()

        info = {
            "submitter": "ethereum",
            "chain": self.chain_name,
            "rpc_url": self.rpc_url,
            "contract_address": self.contract_address,
            "account": self._account.address if self._account else None,
            "connected": self._w3.is_connected() if self._w3 else False,
        }

        if self._contract and info["connected"]:
            try:
                info["current_id"] = self.current_count()
            except Exception as e:
                info["error"] = str(e)

        return info

    @classmethod
    def from_deployment(cls, deployment_file: str | Path, private_key: str = None) -> "EthereumSubmitter":
        """Create a submitter from a saved deployment JSON file."""
        data = json.loads(Path(deployment_file).read_text())

        # ABI from an adjacent file overrides the built-in one
        abi_file = Path(deployment_file).parent / "IPFSEncryptedStorage.abi.json"
        abi = json.loads(abi_file.read_text()) if abi_file.exists() else None

        return cls(
            rpc_url=data.get("rpc_url", os.environ.get("SEPOLIA_RPC_URL", "")),
            contract_address=data.get("contract_address") or data.get("address"),
            contract_abi=abi,
            private_key=private_key,
            chain_name=data.get("network", "ethereum"),
        )
