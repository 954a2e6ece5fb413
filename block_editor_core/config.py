"""
Editor configuration.

Every configurable value resolves in three tiers: a setting stored in the
workspace store, then an environment variable, then a hard-coded default.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from .code_generator import DEFAULT_LANGUAGE
from .storage import WorkspaceStore, resolve_db_path


DEFAULT_STORAGE_KEY = 'block_editor.save'

logger = logging.getLogger(__name__)


def resolve_setting(key: str, env_var: str, default: str,
                    store: Optional[WorkspaceStore] = None) -> str:
    """Three-tier resolution: store → env → default."""
    if store is not None:
        stored = store.get_setting(key)
        if stored is not None:
            return stored
    env_val = os.environ.get(env_var, '').strip()
    if env_val:
        return env_val
    return default


def _resolve_float(key: str, env_var: str, default: float, store: Optional[WorkspaceStore]) -> float:
    raw = resolve_setting(key, env_var, str(default), store)
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", key, raw, default)
        return default


@dataclass
class EditorSettings:
    """Effective editor configuration."""
    db_path: str = field(default_factory=resolve_db_path)
    storage_key: str = DEFAULT_STORAGE_KEY
    default_language: str = DEFAULT_LANGUAGE
    workspace_width: float = 1920.0
    workspace_height: float = 1080.0

    @classmethod
    def load(cls, store: Optional[WorkspaceStore] = None) -> 'EditorSettings':
        """Resolve settings from the store, the environment and the defaults."""
        db_path = store.db_path if store is not None else resolve_db_path()
        return cls(
            db_path=db_path,
            storage_key=resolve_setting('storage_key', 'BLOCK_EDITOR_STORAGE_KEY', DEFAULT_STORAGE_KEY, store),
            default_language=resolve_setting('default_language', 'BLOCK_EDITOR_DEFAULT_LANGUAGE',
                                             DEFAULT_LANGUAGE, store),
            workspace_width=_resolve_float('workspace_width', 'BLOCK_EDITOR_WORKSPACE_WIDTH', 1920.0, store),
            workspace_height=_resolve_float('workspace_height', 'BLOCK_EDITOR_WORKSPACE_HEIGHT', 1080.0, store),
        )
