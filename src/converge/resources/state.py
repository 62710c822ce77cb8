"""Scope state persistence."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Protocol

DEFAULT_STATE_DIR = Path(".converge")

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]")


class StateStore(Protocol):
    """Storage for scope snapshots."""

    def load(self, scope: str) -> dict[str, Any] | None:
        ...

    def save(self, scope: str, snapshot: dict[str, Any]) -> None:
        ...

    def delete(self, scope: str) -> None:
        ...

    def list(self) -> List[str]:
        ...


class MemoryStateStore:
    def __init__(self) -> None:
        self._snapshots: Dict[str, str] = {}

    def load(self, scope: str) -> dict[str, Any] | None:
        raw = self._snapshots.get(scope)
        return json.loads(raw) if raw is not None else None

    def save(self, scope: str, snapshot: dict[str, Any]) -> None:
        # Stored serialized so later mutations of the live scope never leak in.
        self._snapshots[scope] = json.dumps(snapshot, sort_keys=True)

    def delete(self, scope: str) -> None:
        self._snapshots.pop(scope, None)

    def list(self) -> List[str]:
        return sorted(self._snapshots)


class FileStateStore:
    """One JSON document per scope under a root directory."""

    def __init__(self, root: Path | str | None = None) -> None:
        self.root = Path(root) if root is not None else DEFAULT_STATE_DIR

    def path_for(self, scope: str) -> Path:
        return self.root / f"{_SAFE_NAME.sub('_', scope)}.json"

    def load(self, scope: str) -> dict[str, Any] | None:
        path = self.path_for(scope)
        if not path.exists():
            return None
        return json.loads(path.read_text())

    def save(self, scope: str, snapshot: dict[str, Any]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(scope)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(snapshot, indent=2, sort_keys=True) + "\n")
        tmp.replace(path)

    def delete(self, scope: str) -> None:
        self.path_for(scope).unlink(missing_ok=True)

    def list(self) -> List[str]:
        if not self.root.exists():
            return []
        names = []
        for path in sorted(self.root.glob("*.json")):
            data = json.loads(path.read_text())
            names.append(data.get("scope", path.stem))
        return names
