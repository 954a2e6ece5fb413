"""
Drag session state machine.

A session covers one drag-to-drop lifecycle of a single block:

    IDLE -> DRAGGING -> ATTACHED | FLOATING | DELETED

The dragged block is always parentless while it moves: a nested block is detached
at its current on-screen position when the session starts.
"""

import logging
from enum import Enum
from typing import List, Optional, Tuple

from .composition import CompositionGraph
from .exceptions import AttachError, DragSessionError
from .geometry import GeometryProvider, Point
from .registry import BlockRegistry
from .snap import SnapKind, SnapResolver, SnapTarget


class DragState(Enum):
    """Drag session states."""
    IDLE = "idle"
    DRAGGING = "dragging"
    ATTACHED = "attached"
    FLOATING = "floating"
    DELETED = "deleted"

    @property
    def is_terminal(self) -> bool:
        return self in (DragState.ATTACHED, DragState.FLOATING, DragState.DELETED)


class DragSession:
    """Orchestrates a single drag of one block from pick-up to drop."""

    def __init__(self, registry: BlockRegistry, graph: CompositionGraph,
                 resolver: SnapResolver, geometry: GeometryProvider):
        self.registry = registry
        self.graph = graph
        self.resolver = resolver
        self.geometry = geometry
        self.logger = logging.getLogger(__name__)

        self.state = DragState.IDLE
        self.block_id: Optional[str] = None
        self.offset: Tuple[float, float] = (0.0, 0.0)
        self.last_pointer: Optional[Point] = None
        self.target: Optional[SnapTarget] = None
        self.removed_ids: List[str] = []

    @property
    def is_active(self) -> bool:
        return self.state is DragState.DRAGGING

    def start(self, block_id: str, pointer: Point):
        """Pick up a block; pointer is in screen coordinates."""
        if self.state is not DragState.IDLE:
            raise DragSessionError(f"Drag session already {self.state.value}")
        block = self.registry.require(block_id)

        if not block.is_root:
            self.graph.detach(block_id)

        wx, wy = self.geometry.workspace_point_of(pointer)
        bx, by = block.position
        self.offset = (wx - bx, wy - by)
        self.block_id = block_id
        self.last_pointer = pointer
        self.state = DragState.DRAGGING
        self.logger.debug("Drag started for %s at %s", block_id, pointer)

    def move(self, pointer: Point):
        """Move the dragged block so it keeps its offset from the pointer."""
        self._require_dragging()
        self.last_pointer = pointer
        block = self.registry.require(self.block_id)
        block.position = self._release_position(pointer)

    def end(self, pointer: Point) -> DragState:
        """Drop the block: delete it, attach it, or leave it floating."""
        self._require_dragging()
        self.last_pointer = pointer
        block = self.registry.require(self.block_id)

        if self.resolver.is_deletion_drop(pointer):
            self.removed_ids = self.graph.remove_block(block.id)
            self.target = SnapTarget()
            self.state = DragState.DELETED
            self.logger.debug("Dropped %s on a deletion target", block.id)
            self.graph.refresh_layout()
            return self.state

        block.position = self._release_position(pointer)
        release_point = self.geometry.workspace_point_of(pointer)
        self.target = self.resolver.resolve(block.id, self.last_pointer, release_point)

        self.state = DragState.FLOATING
        try:
            if self.target.kind is SnapKind.INPUT:
                self.graph.attach_to_input(block.id, self.target.parent_id, self.target.varname)
                self.state = DragState.ATTACHED
            elif self.target.kind is SnapKind.CONTAINER:
                self.graph.attach_to_container(block.id, self.target.parent_id)
                self.state = DragState.ATTACHED
            elif self.target.kind is SnapKind.BELOW:
                block.position = self.target.position
        except AttachError as e:
            self.logger.warning("Drop of %s rejected: %s", block.id, e)
            self.target = SnapTarget()

        self.graph.refresh_layout()
        self.logger.debug("Drag of %s ended %s (%s)", block.id, self.state.value, self.target.kind.value)
        return self.state

    def _release_position(self, pointer: Point) -> Tuple[float, float]:
        wx, wy = self.geometry.workspace_point_of(pointer)
        return wx - self.offset[0], wy - self.offset[1]

    def _require_dragging(self):
        if self.state is not DragState.DRAGGING:
            raise DragSessionError(f"No drag in progress (state: {self.state.value})")
