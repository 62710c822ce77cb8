from __future__ import annotations

from typing import Optional

from converge.config.settings import get_settings
from converge.resources import FileStateStore, Scope


def open_scope(scope_name: Optional[str] = None, state_dir: Optional[str] = None) -> Scope:
    """Load a file-backed scope, defaulting name and directory from settings."""
    settings = get_settings()
    store = FileStateStore(state_dir or settings.state_dir)
    return Scope.load(scope_name or settings.default_scope, store=store)
