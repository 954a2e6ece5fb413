"""
Block Editor Core - composition engine of the block-based code editor.

This package provides the block data model, the nesting graph, drag-and-drop snap
resolution, workspace serialization and template-driven code generation.
"""

__version__ = "0.1.0"
__author__ = "Block Editor Development Team"

from .models import BlockDefinition, BlockInstance, BlockKind, InputSlot, ParentRef, ValidationError
from .exceptions import (
    BlockEditorError, BlockNotFoundError, AttachError, SlotOccupiedError, CycleError,
    InvalidKindError, DragSessionError, DefinitionError, ImportPayloadError, StorageError
)
from .registry import BlockRegistry
from .geometry import EstimatedLayout, GeometryProvider, Rect, ViewportState
from .composition import CompositionGraph
from .snap import SnapKind, SnapResolver, SnapTarget
from .drag import DragSession, DragState
from .code_generator import CodeGenerator, GenerationContext
from .palette import BlockPalette
from .serializer import ExportVariant, WorkspaceSerializer
from .storage import WorkspaceStore
from .config import EditorSettings, resolve_setting
from .canvas import Canvas

__all__ = [
    'BlockDefinition', 'BlockInstance', 'BlockKind', 'InputSlot', 'ParentRef', 'ValidationError',
    'BlockEditorError', 'BlockNotFoundError', 'AttachError', 'SlotOccupiedError', 'CycleError',
    'InvalidKindError', 'DragSessionError', 'DefinitionError', 'ImportPayloadError', 'StorageError',
    'BlockRegistry', 'EstimatedLayout', 'GeometryProvider', 'Rect', 'ViewportState',
    'CompositionGraph', 'SnapKind', 'SnapResolver', 'SnapTarget', 'DragSession', 'DragState',
    'CodeGenerator', 'GenerationContext', 'BlockPalette', 'ExportVariant', 'WorkspaceSerializer',
    'WorkspaceStore', 'EditorSettings', 'resolve_setting', 'Canvas',
]
