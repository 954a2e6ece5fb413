"""
Block-editor-specific exceptions.
"""

from typing import Optional, Any, Dict


class BlockEditorError(Exception):
    """Base exception for all block editor errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class BlockNotFoundError(BlockEditorError):
    """Raised when a block id does not resolve to a live registry entry."""

    def __init__(self, block_id: str):
        super().__init__(f"Block not found: {block_id}", {'block_id': block_id})
        self.block_id = block_id


class AttachError(BlockEditorError):
    """Raised when an attach operation violates a composition precondition."""
    pass


class SlotOccupiedError(AttachError):
    """Raised when attaching to an input slot that already holds a child."""

    def __init__(self, parent_id: str, varname: str, occupant_id: str):
        super().__init__(
            f"Input '{varname}' of block {parent_id} is occupied by {occupant_id}",
            {'parent_id': parent_id, 'varname': varname, 'occupant_id': occupant_id}
        )
        self.parent_id = parent_id
        self.varname = varname
        self.occupant_id = occupant_id


class CycleError(AttachError):
    """Raised when an attach would make a block its own ancestor."""

    def __init__(self, child_id: str, target_id: str):
        super().__init__(
            f"Attaching {child_id} to {target_id} would create a cycle",
            {'child_id': child_id, 'target_id': target_id}
        )
        self.child_id = child_id
        self.target_id = target_id


class InvalidKindError(AttachError):
    """Raised when a block kind cannot take part in the requested attachment."""
    pass


class DragSessionError(BlockEditorError):
    """Raised on drag session misuse (overlap, wrong state)."""
    pass


class DefinitionError(BlockEditorError):
    """Raised when a block definition fails validation."""
    pass


class ImportPayloadError(BlockEditorError):
    """Raised when a snapshot or import bundle is malformed."""
    pass


class StorageError(BlockEditorError):
    """Raised when the workspace store cannot be read or written."""

    def __init__(self, message: str, key: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.key = key
