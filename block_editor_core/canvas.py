"""
Canvas class for block workspace management.

This module provides the Canvas class which ties the block registry, composition
graph, snap resolver, code generator, palette and workspace store together. It is
the single entry point the web layer talks to and owns the one drag session that
may be active at a time.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .code_generator import CodeGenerator
from .composition import CompositionGraph
from .config import EditorSettings
from .drag import DragSession, DragState
from .exceptions import BlockEditorError, DragSessionError, ImportPayloadError, StorageError
from .geometry import EstimatedLayout, GeometryProvider, Point, Rect, ViewportState
from .models import BlockDefinition, BlockInstance, ValidationError
from .palette import BlockPalette
from .registry import BlockRegistry
from .serializer import ExportVariant, WorkspaceSerializer
from .snap import SnapResolver
from .storage import WorkspaceStore


class Canvas:
    """Manages the block workspace: placed blocks, palette, drags and persistence."""

    def __init__(self, settings: Optional[EditorSettings] = None,
                 store: Optional[WorkspaceStore] = None,
                 palette: Optional[BlockPalette] = None,
                 geometry: Optional[GeometryProvider] = None,
                 trash_rect: Optional[Rect] = None):
        self.settings = settings or EditorSettings.load(store)
        self.store = store
        self.logger = logging.getLogger(__name__)

        self.registry = BlockRegistry()
        self.palette = palette or BlockPalette()
        self.viewport = ViewportState(width=self.settings.workspace_width,
                                      height=self.settings.workspace_height)
        self.geometry = geometry or EstimatedLayout(self.registry, self.viewport, trash_rect)
        self.graph = CompositionGraph(self.registry, self.geometry)
        self.resolver = SnapResolver(self.registry, self.graph, self.geometry)
        self.generator = CodeGenerator(self.registry, self.settings.default_language)
        self.serializer = WorkspaceSerializer()

        self.drag_session: Optional[DragSession] = None
        self.last_drag: Optional[DragSession] = None

        # Event callbacks
        self.on_model_changed: Optional[Callable[[], None]] = None
        self.on_layout_changed: Optional[Callable[[str], None]] = None
        self.graph.on_child_set_changed = self._child_set_changed

    # -- Blocks ----------------------------------------------------------

    def add_block(self, definition: Union[BlockDefinition, int],
                  position: Tuple[float, float] = (10.0, 10.0)) -> str:
        """Place a new parentless block from a definition or a palette index."""
        if not isinstance(definition, BlockDefinition):
            definition = self.palette.get(int(definition))
        block = self.registry.create(definition, position)
        self._trigger_model_changed()
        return block.id

    def get_block(self, block_id: str) -> BlockInstance:
        return self.registry.require(block_id)

    def remove_block(self, block_id: str) -> List[str]:
        """Delete a block and everything composed into it."""
        removed = self.graph.remove_block(block_id)
        self.logger.info("Removed %d block(s)", len(removed))
        self._trigger_model_changed()
        return removed

    def set_input_value(self, block_id: str, varname: str, value: Any):
        """Set the literal text of an input slot."""
        block = self.registry.require(block_id)
        slot = block.get_input(varname)
        if slot is None:
            raise BlockEditorError(f"Block {block_id} has no input '{varname}'",
                                   {'block_id': block_id, 'varname': varname})
        slot.literal = "" if value is None else str(value)
        self._trigger_model_changed()

    def attach_to_container(self, child_id: str, container_id: str):
        self.graph.attach_to_container(child_id, container_id)
        self._trigger_model_changed()

    def attach_to_input(self, child_id: str, parent_id: str, varname: str):
        self.graph.attach_to_input(child_id, parent_id, varname)
        self._trigger_model_changed()

    def move_block(self, block_id: str, parent_id: str, varname: Optional[str] = None):
        """Re-parent a block, leaving it where it was if the new parent rejects it."""
        self.graph.move(block_id, parent_id, varname)
        self._trigger_model_changed()

    def detach(self, block_id: str) -> bool:
        detached = self.graph.detach(block_id)
        if detached:
            self._trigger_model_changed()
        return detached

    def release_inputs(self, block_id: str) -> List[str]:
        """Pop every embedded reporter out of a block's inputs."""
        released = self.graph.release_inputs(block_id)
        if released:
            self._trigger_model_changed()
        return released

    # -- Dragging --------------------------------------------------------

    def start_drag(self, block_id: str, pointer: Point) -> DragSession:
        """Begin dragging a placed block. Only one drag may be active."""
        self._require_no_drag()
        session = DragSession(self.registry, self.graph, self.resolver, self.geometry)
        session.start(block_id, pointer)
        self.drag_session = session
        return session

    def start_palette_drag(self, index: int, pointer: Point) -> str:
        """Instantiate a palette definition under the pointer and start dragging it."""
        self._require_no_drag()
        definition = self.palette.get(index)
        block = self.registry.create(definition, self.geometry.workspace_point_of(pointer))
        self.start_drag(block.id, pointer)
        return block.id

    def move_drag(self, pointer: Point):
        self._active_drag().move(pointer)

    def end_drag(self, pointer: Point) -> DragState:
        """Drop the dragged block and close the session."""
        session = self._active_drag()
        try:
            state = session.end(pointer)
        finally:
            self.last_drag = session
            self.drag_session = None
        self._trigger_model_changed()
        return state

    @property
    def is_dragging(self) -> bool:
        return self.drag_session is not None and self.drag_session.is_active

    # -- Code generation -------------------------------------------------

    def generate_code(self, language: Optional[str] = None) -> str:
        return self.generator.generate(language)

    # -- Snapshots -------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Full serializable state of palette and workspace."""
        self._require_no_drag()
        return self.serializer.serialize(self.registry, self.palette)

    def export(self, variant: Union[ExportVariant, str] = ExportVariant.PROJECT,
               language: Optional[str] = None) -> Dict[str, Any]:
        """Export definitions, instances or the whole project with generated code."""
        self._require_no_drag()
        try:
            variant = ExportVariant(variant)
        except ValueError:
            raise ImportPayloadError(f"Unknown export variant: {variant}", {'variant': str(variant)})
        language = language or self.settings.default_language
        code = self.generate_code(language) if variant is ExportVariant.PROJECT else None
        bundle = self.serializer.export_bundle(variant, self.registry, self.palette, code, language)
        self.logger.info("Exported %s bundle", variant.value)
        return bundle

    def import_bundle(self, payload: Any) -> Dict[str, Any]:
        """Apply any subset of definitions, instances and code.

        The payload is parsed completely before anything is swapped in, so a
        rejected payload leaves the workspace untouched.
        """
        self._require_no_drag()
        bundle = self.serializer.parse_bundle(payload)

        if bundle.definitions is not None:
            self.palette.replace(bundle.definitions)
        if bundle.registry is not None:
            self.registry.replace_with(bundle.registry)
            self.geometry.reset()
            self.graph.refresh_layout()

        summary = {
            'applied': bundle.parts,
            'definition_count': len(self.palette),
            'block_count': len(self.registry),
        }
        if bundle.code is not None:
            summary['code'] = bundle.code
            summary['language'] = bundle.language
        self.logger.info("Imported %s", ", ".join(bundle.parts))
        self._trigger_model_changed()
        return summary

    # -- Persistence -----------------------------------------------------

    def save(self) -> Dict[str, Any]:
        """Write the snapshot to the workspace store."""
        store = self._require_store()
        snapshot = self.snapshot()
        store.save(self.settings.storage_key, json.dumps(snapshot))
        return {
            'key': self.settings.storage_key,
            'definition_count': len(snapshot['definitions']),
            'block_count': len(snapshot['instances']),
        }

    def load(self) -> bool:
        """Restore the saved snapshot. Returns False when nothing was saved."""
        store = self._require_store()
        raw = store.load(self.settings.storage_key)
        if raw is None:
            self.logger.info("No saved workspace under %r", self.settings.storage_key)
            return False
        self.import_bundle(raw)
        return True

    def clear_workspace(self):
        """Drop every block, restore the default palette and forget the saved blob."""
        self._require_no_drag()
        self.registry.clear()
        self.geometry.reset()
        self.palette.reset()
        if self.store is not None:
            self.store.delete(self.settings.storage_key)
        self.logger.info("Workspace cleared")
        self._trigger_model_changed()

    # -- State -----------------------------------------------------------

    def validate_model(self) -> List[ValidationError]:
        """Validate the composition graph and return any errors."""
        return self.graph.validate()

    def get_canvas_state(self) -> Dict[str, Any]:
        """Get the current state of the canvas."""
        drag = self.drag_session
        return {
            'viewport': {
                'zoom': self.viewport.zoom,
                'pan_x': self.viewport.pan_x,
                'pan_y': self.viewport.pan_y,
                'width': self.viewport.width,
                'height': self.viewport.height
            },
            'drag': {
                'active': self.is_dragging,
                'block_id': drag.block_id if drag else None,
                'state': drag.state.value if drag else DragState.IDLE.value
            },
            'settings': {
                'storage_key': self.settings.storage_key,
                'default_language': self.settings.default_language,
                'languages': self.generator.available_languages()
            },
            'model': {
                'block_count': len(self.registry),
                'root_count': len(self.registry.roots()),
                'definition_count': len(self.palette)
            }
        }

    # -- Internals -------------------------------------------------------

    def _require_no_drag(self):
        if self.is_dragging:
            raise DragSessionError(f"Block {self.drag_session.block_id} is being dragged")

    def _active_drag(self) -> DragSession:
        if not self.is_dragging:
            raise DragSessionError("No drag in progress")
        return self.drag_session

    def _require_store(self) -> WorkspaceStore:
        if self.store is None:
            raise StorageError("No workspace store configured", self.settings.storage_key)
        return self.store

    def _child_set_changed(self, block_id: str):
        if self.on_layout_changed:
            self.on_layout_changed(block_id)

    def _trigger_model_changed(self):
        """Trigger model changed callback."""
        if self.on_model_changed:
            self.on_model_changed()
