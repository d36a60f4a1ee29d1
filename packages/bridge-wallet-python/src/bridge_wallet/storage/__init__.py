"""Storage module for transfer records."""

from typing import Any, Protocol
import json
from pathlib import Path

from ..types import BridgeWalletError, ErrorCode


class TransferStore(Protocol):
    """Protocol for transfer record storage backends."""

    def save(self, transfer_id: str, record: dict[str, Any]) -> None:
        """Store a transfer record."""
        ...

    def load(self, transfer_id: str) -> dict[str, Any]:
        """Load a transfer record."""
        ...

    def delete(self, transfer_id: str) -> bool:
        """Delete a transfer record."""
        ...

    def exists(self, transfer_id: str) -> bool:
        """Check if a record exists."""
        ...

    def list_transfers(self) -> list[str]:
        """List all transfer IDs."""
        ...


class MemoryStore:
    """In-memory store for testing."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}

    def save(self, transfer_id: str, record: dict[str, Any]) -> None:
        """Store a transfer record."""
        self._records[transfer_id] = json.dumps(record)

    def load(self, transfer_id: str) -> dict[str, Any]:
        """Load a transfer record."""
        if transfer_id not in self._records:
            raise KeyError(f"Transfer not found: {transfer_id}")
        return json.loads(self._records[transfer_id])

    def delete(self, transfer_id: str) -> bool:
        """Delete a transfer record."""
        if transfer_id in self._records:
            del self._records[transfer_id]
            return True
        return False

    def exists(self, transfer_id: str) -> bool:
        """Check if a record exists."""
        return transfer_id in self._records

    def list_transfers(self) -> list[str]:
        """List all transfer IDs."""
        return list(self._records.keys())

    def clear(self) -> None:
        """Clear all records."""
        self._records.clear()


class FileSystemStore:
    """File system store writing one JSON document per transfer."""

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    def _record_path(self, transfer_id: str) -> Path:
        if not transfer_id:
            raise BridgeWalletError(ErrorCode.INVALID_CONFIG, "Empty transfer id")
        # Sanitize ID
        safe_id = transfer_id.replace("/", "_").replace("\\", "_").replace(".", "_")
        return self._base_path / f"{safe_id}.json"

    def save(self, transfer_id: str, record: dict[str, Any]) -> None:
        """Store a transfer record."""
        path = self._record_path(transfer_id)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(record, indent=2, sort_keys=True))

        # Set restrictive permissions
        try:
            tmp.chmod(0o600)
        except OSError:
            pass  # Windows doesn't support chmod
        tmp.replace(path)

    def load(self, transfer_id: str) -> dict[str, Any]:
        """Load a transfer record."""
        path = self._record_path(transfer_id)
        if not path.exists():
            raise KeyError(f"Transfer not found: {transfer_id}")
        return json.loads(path.read_text())

    def delete(self, transfer_id: str) -> bool:
        """Delete a transfer record."""
        path = self._record_path(transfer_id)
        if path.exists():
            path.unlink()
            return True
        return False

    def exists(self, transfer_id: str) -> bool:
        """Check if a record exists."""
        return self._record_path(transfer_id).exists()

    def list_transfers(self) -> list[str]:
        """List all transfer IDs."""
        return sorted(p.stem for p in self._base_path.glob("*.json"))


def export_records(store: TransferStore) -> str:
    """Dump every record in a store as one JSON document."""
    records = {tid: store.load(tid) for tid in store.list_transfers()}
    return json.dumps({"version": 1, "transfer_count": len(records), "transfers": records})


def import_records(store: TransferStore, dump: str) -> list[str]:
    """Load records produced by export_records into a store."""
    data = json.loads(dump)
    if data.get("version") != 1:
        raise BridgeWalletError(
            ErrorCode.INVALID_CONFIG, f"Unsupported export version: {data.get('version')!r}"
        )
    imported = []
    for transfer_id, record in data.get("transfers", {}).items():
        store.save(transfer_id, record)
        imported.append(transfer_id)
    return imported


__all__ = [
    "TransferStore",
    "MemoryStore",
    "FileSystemStore",
    "export_records",
    "import_records",
]
