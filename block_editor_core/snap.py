"""
Snap resolution for dropped blocks.

Given the dragged block and the latest pointer sample, candidates are tried in a
fixed priority order and the first match wins:

1. input slot      - reporter/boolean blocks only, unoccupied slots, registry order
2. container body  - deepest enclosing container/function body
3. below a stack   - purely positional placement under a command/container block;
                     visual adjacency on the top-level surface records no edge
4. no match        - the block stays where it was released

A drop outside the workspace or over the deletion target means deletion and is
checked separately by ``is_deletion_drop``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .composition import CompositionGraph
from .geometry import GeometryProvider, Point
from .registry import BlockRegistry


class SnapKind(Enum):
    """Kinds of drop targets."""
    INPUT = "input"
    CONTAINER = "container"
    BELOW = "below"
    NONE = "none"


@dataclass
class SnapTarget:
    """Resolved drop target."""
    kind: SnapKind = SnapKind.NONE
    parent_id: Optional[str] = None
    varname: Optional[str] = None
    position: Optional[Tuple[float, float]] = None

    @property
    def attaches(self) -> bool:
        return self.kind in (SnapKind.INPUT, SnapKind.CONTAINER)


class SnapResolver:
    """Decides where a dragged block lands."""

    CONTAINER_MARGIN = 8.0
    BELOW_X_TOLERANCE = 10.0
    BELOW_ABOVE_BAND = 16.0
    BELOW_BELOW_BAND = 20.0
    BELOW_GAP = 6.0
    WORKSPACE_MARGIN = 6.0

    def __init__(self, registry: BlockRegistry, graph: CompositionGraph, geometry: GeometryProvider):
        self.registry = registry
        self.graph = graph
        self.geometry = geometry

    def resolve(self, dragged_id: str, pointer: Point, release_point: Optional[Point] = None) -> SnapTarget:
        """Resolve the drop target for a dragged block.

        ``pointer`` is the latest pointer sample in screen coordinates and drives
        slot and body hit testing; ``release_point`` is the release position in
        workspace coordinates used for below-stack placement.
        """
        dragged = self.registry.require(dragged_id)
        if release_point is None:
            release_point = self.geometry.workspace_point_of(pointer)
        excluded = {dragged_id, *self.graph.descendants_of(dragged_id)}

        if dragged.kind.fits_input:
            target = self._find_input_slot(pointer, excluded)
            if target is not None:
                return target

        target = self._find_container(pointer, excluded)
        if target is not None:
            return target

        target = self._find_stack_below(release_point, excluded)
        if target is not None:
            return target

        return SnapTarget()

    def is_deletion_drop(self, pointer: Point) -> bool:
        """True when a release at this screen point deletes the block."""
        workspace = self.geometry.workspace_rect().expanded(self.WORKSPACE_MARGIN)
        if not workspace.contains(pointer):
            return True
        trash = self.geometry.deletion_rect()
        return trash is not None and trash.contains(pointer)

    def _find_input_slot(self, pointer: Point, excluded: set) -> Optional[SnapTarget]:
        for block in self.registry:
            if block.id in excluded:
                continue
            for varname, slot in block.inputs.items():
                if slot.child_id is not None and slot.child_id in self.registry:
                    continue
                rect = self.geometry.input_slot_rect(block.id, varname)
                if rect is not None and self.geometry.screen_rect_of(rect).contains(pointer):
                    return SnapTarget(SnapKind.INPUT, parent_id=block.id, varname=varname)
        return None

    def _find_container(self, pointer: Point, excluded: set) -> Optional[SnapTarget]:
        best_id = None
        best_depth = -1
        for block in self.registry:
            if block.id in excluded or not block.has_body:
                continue
            rect = self.geometry.container_body_rect(block.id)
            if rect is None:
                continue
            if not self.geometry.screen_rect_of(rect).expanded(self.CONTAINER_MARGIN).contains(pointer):
                continue
            depth = self.graph.depth_of(block.id)
            if depth > best_depth:
                best_id, best_depth = block.id, depth
        if best_id is None:
            return None
        return SnapTarget(SnapKind.CONTAINER, parent_id=best_id)

    def _find_stack_below(self, release_point: Point, excluded: set) -> Optional[SnapTarget]:
        x, y = release_point
        for block in self.registry:
            if block.id in excluded or not block.kind.stackable:
                continue
            box = self.geometry.bounding_box_of(block.id)
            if (box.left - self.BELOW_X_TOLERANCE < x < box.right + self.BELOW_X_TOLERANCE and
                    box.bottom - self.BELOW_ABOVE_BAND < y < box.bottom + self.BELOW_BELOW_BAND):
                return SnapTarget(SnapKind.BELOW, parent_id=block.id,
                                  position=(box.left, box.bottom + self.BELOW_GAP))
        return None
