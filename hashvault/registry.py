"""
Registry — Access-Controlled Handle Store
Owns storage entries of three opaque handles, their owners, and the set of
readers each owner has authorized.

Invariants held at all times:
  - an entry's id, owner and handles never change after creation
  - every authorization refers to an existing entry
  - the owner always has access to their own entries
  - ids are dense and start at 1: next id == count + 1
  - the owner index lists exactly the owner's ids, in creation order

Every mutation validates first and mutates last. A rejected operation
leaves no trace: no state change, no event.

Known limitation: revoke_access() is bookkeeping at this layer only.
Encryption providers grant decrypt permission append-only, so a revoked
reader who already holds the handles may still be able to open them.
"""

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from hashvault.config import HashVaultConfig
from hashvault.errors import Forbidden, InvalidFormat, InvalidProof, InvalidReader, NotFound
from hashvault.events import AccessGranted, AccessRevoked, Stored, event_from_dict, event_to_dict
from hashvault.logger import get_logger
from hashvault.providers.base import EncryptionContext, EncryptionProvider
from hashvault.utils import is_null_identity, normalize_identity

SNAPSHOT_VERSION = 1

ACCESS_DENIED = "Access denied"
GRANT_DENIED = "Only owner can grant access"
REVOKE_DENIED = "Only owner can revoke access"

log = get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class StorageEntry:
    """One registered triple of handles and its owner."""
    storage_id: int
    owner: str
    handles: tuple[str, str, str]
    created_at: str = field(default_factory=_now)


class Registry:
    """
    In-memory registry of storage entries.

    One instance per deployment (or per test). There is no global registry;
    pass the instance to whoever needs it.

    Args:
        provider: Encryption provider whose permission primitive is called on
            register and grant.
        address: This registry's own identity. Handles are authorized to it.
        conceal_existence: Report unknown ids as Forbidden (same message as a
            real refusal) from get_handles / grant_access / revoke_access, so
            unauthorized callers cannot probe which ids exist.
    """

    def __init__(self, provider: EncryptionProvider, address: str, conceal_existence: bool = False):
        if is_null_identity(address):
            raise ValueError("Registry address must not be the null identity")
        self.provider = provider
        self.address = normalize_identity(address)
        self.conceal_existence = conceal_existence

        self._lock = threading.RLock()
        self._entries: dict[int, StorageEntry] = {}
        self._readers: dict[int, set[str]] = {}
        self._owned: dict[str, list[int]] = {}
        self._events: list = []
        self._listeners: list = []

    @classmethod
    def from_config(cls, provider: EncryptionProvider, config: HashVaultConfig, address: str = None) -> "Registry":
        """Build a registry at config.registry_address (or address) with the configured policy."""
        return cls(
            provider,
            address or config.registry_address,
            conceal_existence=config.conceal_existence,
        )

    # -- internals --------------------------------------------------------

    def _context(self, caller: str) -> EncryptionContext:
        return EncryptionContext(registry=self.address, caller=caller)

    def _require_entry(self, storage_id: int, denied: str = None) -> StorageEntry:
        entry = self._entries.get(storage_id)
        if entry is None:
            log.warning("rejected: storage id %s does not exist", storage_id)
            if self.conceal_existence and denied:
                raise Forbidden(denied)
            raise NotFound(storage_id)
        return entry

    def _emit(self, event) -> None:
        self._events.append(event)

    def _notify(self, event) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # Already committed; a broken listener cannot undo it
                log.exception("event listener failed on %s", event.name)

    # -- mutations --------------------------------------------------------

    def register(self, owner: str, h1: str, h2: str, h3: str, proof: bytes = None) -> int:
        """
        Store three handles as a new entry owned by owner.

        The registry and the owner are authorized on every handle through the
        provider before the entry is recorded.

        Args:
            owner: Identity of the creator.
            h1, h2, h3: Opaque handles from the encryption provider.
            proof: Optional input proof; checked by the provider when given.

        Returns:
            The new storage id.

        Raises:
            InvalidReader: owner is the null identity.
            InvalidProof: the provider rejected proof.
        """
        owner = normalize_identity(owner)
        if is_null_identity(owner):
            log.warning("rejected register: null owner")
            raise InvalidReader("Invalid owner address")

        handles = (h1, h2, h3)
        context = self._context(owner)
        if proof is not None and not self.provider.verify_proof(handles, proof, context):
            log.warning("rejected register from %s: input proof invalid", owner)
            raise InvalidProof("Input proof does not cover these handles")

        with self._lock:
            for handle in handles:
                self.provider.authorize(handle, context, self.address)
                self.provider.authorize(handle, context, owner)

            storage_id = len(self._entries) + 1
            self._entries[storage_id] = StorageEntry(storage_id, owner, handles)
            self._readers[storage_id] = set()
            self._owned.setdefault(owner, []).append(storage_id)
            event = Stored(storage_id, owner)
            self._emit(event)

        log.info("stored entry %s for %s", storage_id, owner)
        self._notify(event)
        return storage_id

    def grant_access(self, actor: str, storage_id: int, reader: str) -> None:
        """
        Authorize reader on an entry. Owner only.

        Granting an existing reader (or the owner) is a successful no-op:
        no state changes and the provider is not called again, though the
        AccessGranted event is still emitted.

        Raises:
            NotFound: storage_id does not exist.
            Forbidden: actor is not the owner.
            InvalidReader: reader is the null identity.
        """
        actor = normalize_identity(actor)
        reader = normalize_identity(reader)

        with self._lock:
            entry = self._require_entry(storage_id, denied=GRANT_DENIED)
            if actor != entry.owner:
                log.warning("rejected grant on %s: %s is not the owner", storage_id, actor)
                raise Forbidden(GRANT_DENIED)
            if is_null_identity(reader):
                log.warning("rejected grant on %s: null reader", storage_id)
                raise InvalidReader("Invalid user address")

            readers = self._readers[storage_id]
            if reader != entry.owner and reader not in readers:
                context = self._context(actor)
                for handle in entry.handles:
                    self.provider.authorize(handle, context, reader)
                readers.add(reader)

            event = AccessGranted(storage_id, reader, actor)
            self._emit(event)

        log.info("granted %s access to entry %s", reader, storage_id)
        self._notify(event)

    def revoke_access(self, actor: str, storage_id: int, reader: str) -> None:
        """
        Remove reader from an entry's authorization set. Owner only.

        Registry-level only: decrypt permission already extended by the
        provider stays in place. The owner cannot be revoked.

        Raises:
            NotFound: storage_id does not exist.
            Forbidden: actor is not the owner.
        """
        actor = normalize_identity(actor)
        reader = normalize_identity(reader)

        with self._lock:
            entry = self._require_entry(storage_id, denied=REVOKE_DENIED)
            if actor != entry.owner:
                log.warning("rejected revoke on %s: %s is not the owner", storage_id, actor)
                raise Forbidden(REVOKE_DENIED)

            self._readers[storage_id].discard(reader)
            event = AccessRevoked(storage_id, reader, actor)
            self._emit(event)

        log.info("revoked %s access to entry %s", reader, storage_id)
        self._notify(event)

    # -- queries ----------------------------------------------------------

    def get_handles(self, actor: str, storage_id: int) -> tuple[str, str, str]:
        """
        Return the three handles of an entry to its owner or an authorized reader.

        Raises:
            NotFound: storage_id does not exist.
            Forbidden: actor is neither owner nor authorized reader.
        """
        actor = normalize_identity(actor)
        with self._lock:
            entry = self._require_entry(storage_id, denied=ACCESS_DENIED)
            if actor != entry.owner and actor not in self._readers[storage_id]:
                log.warning("rejected read on %s by %s", storage_id, actor)
                raise Forbidden(ACCESS_DENIED)
            return entry.handles

    def has_access(self, storage_id: int, who: str) -> bool:
        """True iff who owns or may read the entry. False for unknown ids."""
        who = normalize_identity(who)
        with self._lock:
            entry = self._entries.get(storage_id)
            if entry is None:
                return False
            return who == entry.owner or who in self._readers[storage_id]

    def owner_of(self, storage_id: int) -> str:
        with self._lock:
            return self._require_entry(storage_id).owner

    def entries_owned_by(self, who: str) -> list[int]:
        with self._lock:
            return list(self._owned.get(normalize_identity(who), []))

    def current_count(self) -> int:
        """Entries created so far; also the most recently issued id (0 if none)."""
        with self._lock:
            return len(self._entries)

    def authorized_readers(self, storage_id: int) -> list[str]:
        """Readers explicitly granted access, excluding the implicit owner."""
        with self._lock:
            self._require_entry(storage_id)
            return sorted(self._readers[storage_id])

    def events(self, storage_id: int = None, identity: str = None) -> list:
        """Committed events, oldest first, optionally filtered."""
        identity = normalize_identity(identity) if identity is not None else None
        with self._lock:
            events = list(self._events)
        if storage_id is not None:
            events = [e for e in events if e.storage_id == storage_id]
        if identity is not None:
            events = [e for e in events if identity in e.identities()]
        return events

    def subscribe(self, listener):
        """
        Call listener(event) after each committed mutation.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -- snapshots --------------------------------------------------------

    def to_dict(self) -> dict:
        """Serialize the persisted state: counter, entries, authorizations, index, events."""
        with self._lock:
            return {
                "version": SNAPSHOT_VERSION,
                "address": self.address,
                "next_id": len(self._entries) + 1,
                "entries": [
                    {
                        "id": e.storage_id,
                        "owner": e.owner,
                        "handles": list(e.handles),
                        "created_at": e.created_at,
                    }
                    for e in self._entries.values()
                ],
                "authorizations": [
                    [storage_id, reader]
                    for storage_id, readers in self._readers.items()
                    for reader in sorted(readers)
                ],
                "owner_index": {owner: list(ids) for owner, ids in self._owned.items()},
                "events": [event_to_dict(e) for e in self._events],
            }

    @classmethod
    def from_dict(cls, data: dict, provider: EncryptionProvider, conceal_existence: bool = False) -> "Registry":
        """
        Rebuild a registry from to_dict() output.

        Provider permissions are not replayed; the provider keeps its own state.

        Raises:
            InvalidFormat: the snapshot breaks one of the registry invariants.
        """
        if data.get("version") != SNAPSHOT_VERSION:
            raise InvalidFormat(f"Unsupported snapshot version: {data.get('version')}")

        try:
            registry = cls(provider, data["address"], conceal_existence=conceal_existence)
        except (KeyError, ValueError) as e:
            raise InvalidFormat(f"Snapshot has no usable registry address: {e}") from None

        for expected_id, raw in enumerate(data.get("entries", []), start=1):
            try:
                storage_id, owner, handles = raw["id"], raw["owner"], raw["handles"]
            except (KeyError, TypeError):
                raise InvalidFormat(f"Entry {expected_id} is missing id, owner or handles") from None
            if storage_id != expected_id:
                raise InvalidFormat(f"Storage ids not dense: expected {expected_id}, got {storage_id}")
            if len(handles) != 3:
                raise InvalidFormat(f"Entry {storage_id} must carry exactly 3 handles")
            if is_null_identity(owner):
                raise InvalidFormat(f"Entry {storage_id} has a null owner")
            entry = StorageEntry(
                storage_id=storage_id,
                owner=normalize_identity(owner),
                handles=tuple(handles),
                created_at=raw.get("created_at", _now()),
            )
            registry._entries[entry.storage_id] = entry
            registry._readers[entry.storage_id] = set()
            registry._owned.setdefault(entry.owner, []).append(entry.storage_id)

        if data.get("next_id", len(registry._entries) + 1) != len(registry._entries) + 1:
            raise InvalidFormat("next_id does not match entry count")

        for pair in data.get("authorizations", []):
            try:
                storage_id, reader = pair
            except (TypeError, ValueError):
                raise InvalidFormat(f"Malformed authorization: {pair!r}") from None
            if storage_id not in registry._entries:
                raise InvalidFormat(f"Authorization for unknown entry {storage_id}")
            if is_null_identity(reader):
                raise InvalidFormat(f"Authorization on entry {storage_id} names the null identity")
            registry._readers[storage_id].add(normalize_identity(reader))

        index = {normalize_identity(k): list(v) for k, v in data.get("owner_index", {}).items()}
        if index and index != registry._owned:
            raise InvalidFormat("Owner index does not match entries")

        registry._events = [event_from_dict(e) for e in data.get("events", [])]
        return registry

    def save(self, path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))
        return path

    @classmethod
    def load(cls, path, provider: EncryptionProvider, conceal_existence: bool = False) -> "Registry":
        data = json.loads(Path(path).read_text())
        return cls.from_dict(data, provider, conceal_existence=conceal_existence)

    def stats(self) -> dict:
        with self._lock:
            return {
                "address": self.address,
                "entries": len(self._entries),
                "owners": len(self._owned),
                "authorizations": sum(len(r) for r in self._readers.values()),
                "events": len(self._events),
            }
