"""Hash-chained journal of applied ledger operations."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Iterable

GENESIS_HASH = "GENESIS"


def canonical_json(value: Any) -> str:
    """Serialize data into stable JSON for replay-safe hashes."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def stable_hash_hex(*parts: str) -> str:
    h = hashlib.sha256()
    for part in parts:
        h.update(part.encode("utf-8"))
        h.update(b"\n")
    return h.hexdigest()


def entry_hash(prev_hash: str, event_type: str, caller: str, payload_json: str) -> str:
    return stable_hash_hex(prev_hash, event_type, caller, payload_json)


@dataclass(frozen=True)
class JournalEntry:
    seq: int
    event_type: str
    caller: str
    payload_json: str
    prev_hash: str
    event_hash: str

    @property
    def operation(self) -> str:
        return self.event_type.split(".", 1)[-1]

    @property
    def payload(self) -> dict[str, Any]:
        return json.loads(self.payload_json)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JournalEntry":
        return cls(
            seq=int(data["seq"]),
            event_type=str(data["event_type"]),
            caller=str(data["caller"]),
            payload_json=str(data["payload_json"]),
            prev_hash=str(data["prev_hash"]),
            event_hash=str(data["event_hash"]),
        )


class Journal:
    """Append-only operation log.

    Entries are kept in memory for the lifetime of the ledger; replay needs
    the full chain from GENESIS. Long-running callers should page through
    ``since`` and persist with ``write_jsonl`` rather than copying ``entries``.

    Callers must hold the ledger lock while appending; the journal itself
    does no locking.
    """

    def __init__(self, entries: Iterable[JournalEntry] = ()):
        self._entries: list[JournalEntry] = list(entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def head(self) -> str:
        return self._entries[-1].event_hash if self._entries else GENESIS_HASH

    def append(self, *, event_type: str, caller: str, payload: dict[str, Any]) -> JournalEntry:
        payload_json = canonical_json(payload)
        prev_hash = self.head
        entry = JournalEntry(
            seq=len(self._entries) + 1,
            event_type=event_type,
            caller=caller,
            payload_json=payload_json,
            prev_hash=prev_hash,
            event_hash=entry_hash(prev_hash, event_type, caller, payload_json),
        )
        self._entries.append(entry)
        return entry

    def entries(self) -> list[JournalEntry]:
        return list(self._entries)

    def since(self, seq: int, limit: int | None = None) -> list[JournalEntry]:
        """Entries with sequence number greater than ``seq``. Only the slice is copied."""
        start = max(seq, 0)
        stop = None if limit is None else start + max(limit, 0)
        return self._entries[start:stop]


def write_jsonl(path: str | Path, entries: Iterable[JournalEntry], genesis: dict[str, Any] | None = None) -> Path:
    """Write a journal as JSON Lines, optionally led by a genesis header line."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as fp:
        if genesis is not None:
            fp.write(canonical_json({"kind": "genesis", "config": genesis}) + "\n")
        for entry in entries:
            fp.write(canonical_json({"kind": "entry", **entry.to_dict()}) + "\n")
    return path


def read_jsonl(path: str | Path) -> tuple[dict[str, Any] | None, list[JournalEntry]]:
    """Read a JSON Lines journal. Any malformed line raises ValueError with its position."""
    genesis: dict[str, Any] | None = None
    entries: list[JournalEntry] = []
    with open(path, "r", encoding="utf-8") as fp:
        for lineno, line in enumerate(fp, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{path}:{lineno}: invalid JSON ({exc.msg})") from exc
            if not isinstance(record, dict):
                raise ValueError(f"{path}:{lineno}: expected a JSON object, got {type(record).__name__}")
            kind = record.pop("kind", "entry")
            if kind == "genesis":
                if genesis is not None or entries:
                    raise ValueError(f"{path}:{lineno}: genesis header must be the first line")
                config = record.get("config")
                if not isinstance(config, dict):
                    raise ValueError(f"{path}:{lineno}: genesis header needs a 'config' object")
                genesis = config
            elif kind == "entry":
                try:
                    entries.append(JournalEntry.from_dict(record))
                except KeyError as exc:
                    raise ValueError(f"{path}:{lineno}: missing field {exc}") from exc
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"{path}:{lineno}: malformed entry ({exc})") from exc
            else:
                raise ValueError(f"{path}:{lineno}: unknown record kind '{kind}'")
    return genesis, entries
