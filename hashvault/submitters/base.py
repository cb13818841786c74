"""
Base class for all transaction submitters.
A submitter commits registry mutations in a total order and reports what
happened through receipts and events.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class Receipt:
    """Outcome of one committed mutation."""
    tx_hash: str
    block_number: int
    status: int                 # 1 = committed
    events: list = field(default_factory=list)
    result: int | None = None   # New storage id for register

    @property
    def success(self) -> bool:
        return self.status == 1

    def to_dict(self) -> dict:
        return {
            "tx_hash": self.tx_hash,
            "block": self.block_number,
            "status": self.status,
            "events": [getattr(e, "name", str(e)) for e in self.events],
            "result": self.result,
        }


class TransactionSubmitter(ABC):
    """Abstract base class for registry transaction submitters."""

    @abstractmethod
    def register(self, owner: str, handles, proof: bytes) -> Receipt:
        """
        Submit a new entry of three handles.

        Returns:
            Receipt whose result is the new storage id.
        """

    @abstractmethod
    def grant_access(self, actor: str, storage_id: int, reader: str) -> Receipt:
        """Submit a grant of read access on storage_id to reader."""

    @abstractmethod
    def revoke_access(self, actor: str, storage_id: int, reader: str) -> Receipt:
        """Submit a revocation of reader's access on storage_id."""

    @abstractmethod
    def get_handles(self, actor: str, storage_id: int) -> tuple[str, str, str]:
        """Read the handles of an entry as actor."""

    @abstractmethod
    def has_access(self, storage_id: int, who: str) -> bool:
        """Whether who may read storage_id."""

    @abstractmethod
    def owner_of(self, storage_id: int) -> str:
        """Owner of storage_id."""

    @abstractmethod
    def entries_owned_by(self, who: str) -> list[int]:
        """Storage ids created by who, oldest first."""

    @abstractmethod
    def current_count(self) -> int:
        """Number of entries created so far."""

    @property
    @abstractmethod
    def registry_address(self) -> str:
        """Identity of the registry this submitter commits to."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the underlying registry is reachable."""

    @abstractmethod
    def get_info(self) -> dict:
        """Get metadata about this submitter."""
