"""
Registry events.
Append-only records of committed register / grant / revoke operations,
indexed by storage id and the identities involved.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Stored:
    storage_id: int
    owner: str
    timestamp: str = field(default_factory=_now, compare=False)

    name = "Stored"

    def identities(self) -> tuple[str, ...]:
        return (self.owner,)


@dataclass(frozen=True)
class AccessGranted:
    storage_id: int
    reader: str
    grantor: str
    timestamp: str = field(default_factory=_now, compare=False)

    name = "AccessGranted"

    def identities(self) -> tuple[str, ...]:
        return (self.reader, self.grantor)


@dataclass(frozen=True)
class AccessRevoked:
    storage_id: int
    reader: str
    revoker: str
    timestamp: str = field(default_factory=_now, compare=False)

    name = "AccessRevoked"

    def identities(self) -> tuple[str, ...]:
        return (self.reader, self.revoker)


EVENT_TYPES = {cls.name: cls for cls in (Stored, AccessGranted, AccessRevoked)}


def event_to_dict(event) -> dict:
    data = asdict(event)
    data["event"] = event.name
    return data


def event_from_dict(data: dict):
    data = dict(data)
    cls = EVENT_TYPES[data.pop("event")]
    return cls(**data)
