"""
Local submitter.
Commits mutations to an in-process Registry. Every commit becomes one
"block" with a deterministic transaction hash, so receipts can be checked
exactly like chain receipts.

Rejected operations raise the registry's error and produce no receipt and
no block.
"""

import hashlib
import threading

from hashvault.logger import get_logger
from hashvault.registry import Registry
from hashvault.submitters.base import Receipt, TransactionSubmitter

log = get_logger(__name__)


class LocalSubmitter(TransactionSubmitter):
    """
    Totally orders mutations against one Registry.

    Args:
        registry: The registry to commit to.
    """

    def __init__(self, registry: Registry):
        self.registry = registry
        self._lock = threading.Lock()
        self._block_number = 0
        self.receipts: list[Receipt] = []

    @property
    def registry_address(self) -> str:
        return self.registry.address

    def _commit(self, operation: str, apply, *args) -> Receipt:
        with self._lock:
            seen = len(self.registry.events())
            result = apply(*args)   # Raises before any state change on rejection

            self._block_number += 1
            payload = f"{self.registry.address}:{self._block_number}:{operation}:{args}"
            receipt = Receipt(
                tx_hash="0x" + hashlib.sha256(payload.encode("utf-8")).hexdigest(),
                block_number=self._block_number,
                status=1,
                events=self.registry.events()[seen:],
                result=result,
            )
            self.receipts.append(receipt)

        log.info("committed %s in block %s", operation, receipt.block_number)
        return receipt

    def register(self, owner: str, handles, proof: bytes) -> Receipt:
        h1, h2, h3 = handles
        return self._commit("register", self.registry.register, owner, h1, h2, h3, proof)

    def grant_access(self, actor: str, storage_id: int, reader: str) -> Receipt:
        return self._commit("grant_access", self.registry.grant_access, actor, storage_id, reader)

    def revoke_access(self, actor: str, storage_id: int, reader: str) -> Receipt:
        return self._commit("revoke_access", self.registry.revoke_access, actor, storage_id, reader)

    def get_handles(self, actor: str, storage_id: int):
        return self.registry.get_handles(actor, storage_id)

    def has_access(self, storage_id: int, who: str) -> bool:
        return self.registry.has_access(storage_id, who)

    def owner_of(self, storage_id: int) -> str:
        return self.registry.owner_of(storage_id)

    def entries_owned_by(self, who: str) -> list[int]:
        return self.registry.entries_owned_by(who)

    def current_count(self) -> int:
        return self.registry.current_count()

    def is_available(self) -> bool:
        return True

    def get_info(self) -> dict:
        info = {
            "submitter": "local",
            "registry_address": self.registry.address,
            "block_number": self._block_number,
        }
        info.update(self.registry.stats())
        return info
