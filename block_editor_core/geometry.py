"""
Geometry queries consumed by the composition core.

Rendering is not part of the core. Snapping and position-preserving detach only
need a handful of abstract queries (bounding boxes, slot and body rectangles, and
workspace/screen coordinate conversion), expressed by ``GeometryProvider``.

``EstimatedLayout`` is a headless provider that lays blocks out from label-length
size estimates, so the engine runs without a renderer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple

from .models import BlockKind, parse_label
from .registry import BlockRegistry


Point = Tuple[float, float]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle."""
    x: float
    y: float
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.x

    @property
    def top(self) -> float:
        return self.y

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, point: Point) -> bool:
        """Inclusive point containment."""
        px, py = point
        return self.left <= px <= self.right and self.top <= py <= self.bottom

    def expanded(self, margin: float) -> 'Rect':
        return Rect(self.x - margin, self.y - margin,
                    self.width + 2 * margin, self.height + 2 * margin)


@dataclass
class ViewportState:
    """Represents the current viewport state."""
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    width: float = 1920.0
    height: float = 1080.0

    def world_to_screen(self, world_x: float, world_y: float) -> Tuple[float, float]:
        """Convert world coordinates to screen coordinates."""
        screen_x = (world_x + self.pan_x) * self.zoom
        screen_y = (world_y + self.pan_y) * self.zoom
        return screen_x, screen_y

    def screen_to_world(self, screen_x: float, screen_y: float) -> Tuple[float, float]:
        """Convert screen coordinates to world coordinates."""
        world_x = (screen_x / self.zoom) - self.pan_x
        world_y = (screen_y / self.zoom) - self.pan_y
        return world_x, world_y


class GeometryProvider(ABC):
    """Capability interface supplied by the rendering layer.

    Block, slot and body rectangles are in workspace coordinates. Pointer samples,
    the workspace rectangle and the deletion target are in screen coordinates.
    """

    @abstractmethod
    def bounding_box_of(self, block_id: str) -> Rect:
        """Composed (world) bounding box of a block."""
        pass

    @abstractmethod
    def screen_point_of(self, point: Point) -> Point:
        """Convert a workspace coordinate to a screen point."""
        pass

    @abstractmethod
    def workspace_point_of(self, point: Point) -> Point:
        """Convert a screen point to a workspace coordinate."""
        pass

    @abstractmethod
    def input_slot_rect(self, block_id: str, varname: str) -> Optional[Rect]:
        pass

    @abstractmethod
    def container_body_rect(self, block_id: str) -> Optional[Rect]:
        pass

    @abstractmethod
    def workspace_rect(self) -> Rect:
        pass

    def deletion_rect(self) -> Optional[Rect]:
        """Screen rectangle of the deletion target, if the surface has one."""
        return None

    def on_child_set_changed(self, block_id: str):
        """Layout invalidation hook, called for a block and each of its ancestors."""
        pass

    def forget(self, block_id: str):
        """Drop cached layout of a block that no longer exists."""
        pass

    def reset(self):
        """Forget any cached layout."""
        pass

    def screen_rect_of(self, rect: Rect) -> Rect:
        """Convert a workspace rectangle to screen space."""
        x1, y1 = self.screen_point_of((rect.left, rect.top))
        x2, y2 = self.screen_point_of((rect.right, rect.bottom))
        return Rect(min(x1, x2), min(y1, y2), abs(x2 - x1), abs(y2 - y1))


class EstimatedLayout(GeometryProvider):
    """Headless layout using label-length size estimates."""

    MIN_WIDTH = 140.0
    HEADER_HEIGHT = 30.0
    ROUND_HEIGHT = 28.0
    CHAR_WIDTH = 8.0
    INPUT_WIDTH_ESTIMATE = 64.0
    INPUT_ADVANCE = 66.0
    SLOT_WIDTH = 60.0
    SLOT_HEIGHT = 22.0
    BODY_INSET = 10.0
    BODY_PADDING = 12.0
    MIN_BODY_HEIGHT = 80.0
    STACK_GAP = 8.0

    def __init__(self, registry: BlockRegistry,
                 viewport: Optional[ViewportState] = None,
                 trash_rect: Optional[Rect] = None):
        self.registry = registry
        self.viewport = viewport or ViewportState()
        self.trash_rect = trash_rect
        self._sizes: Dict[str, Tuple[float, float]] = {}
        self._body_heights: Dict[str, float] = {}

    # -- GeometryProvider ------------------------------------------------

    def bounding_box_of(self, block_id: str) -> Rect:
        x, y = self.world_origin(block_id)
        width, height = self.size_of(block_id)
        return Rect(x, y, width, height)

    def screen_point_of(self, point: Point) -> Point:
        return self.viewport.world_to_screen(point[0], point[1])

    def workspace_point_of(self, point: Point) -> Point:
        return self.viewport.screen_to_world(point[0], point[1])

    def input_slot_rect(self, block_id: str, varname: str) -> Optional[Rect]:
        offset = self._slot_offset(block_id, varname)
        if offset is None:
            return None
        x, y = self.world_origin(block_id)
        return Rect(x + offset[0], y + offset[1], self.SLOT_WIDTH, self.SLOT_HEIGHT)

    def container_body_rect(self, block_id: str) -> Optional[Rect]:
        block = self.registry.get(block_id)
        if block is None or not block.has_body:
            return None
        x, y = self.world_origin(block_id)
        width, _ = self.size_of(block_id)
        return Rect(x + self.BODY_INSET, y + self.HEADER_HEIGHT - 8,
                    width - 2 * self.BODY_INSET, self.body_height(block_id))

    def workspace_rect(self) -> Rect:
        return Rect(0.0, 0.0, self.viewport.width, self.viewport.height)

    def deletion_rect(self) -> Optional[Rect]:
        return self.trash_rect

    def on_child_set_changed(self, block_id: str):
        self.forget(block_id)

    def forget(self, block_id: str):
        self._sizes.pop(block_id, None)
        self._body_heights.pop(block_id, None)

    def reset(self):
        self._sizes.clear()
        self._body_heights.clear()

    # -- Layout estimates ------------------------------------------------

    def size_of(self, block_id: str) -> Tuple[float, float]:
        """Estimated (width, height) of a block including its nested body."""
        if block_id in self._sizes:
            return self._sizes[block_id]
        block = self.registry.require(block_id)

        estimate = 12.0
        for part in parse_label(block.label):
            estimate += self.INPUT_WIDTH_ESTIMATE if part.startswith('%') else len(part) * self.CHAR_WIDTH
        width = max(self.MIN_WIDTH, estimate)

        if block.has_body:
            height = self.HEADER_HEIGHT - 8 + self.body_height(block_id)
        elif block.kind in (BlockKind.REPORTER, BlockKind.BOOLEAN):
            height = self.ROUND_HEIGHT
        else:
            height = self.HEADER_HEIGHT

        self._sizes[block_id] = (width, height)
        return width, height

    def body_height(self, block_id: str) -> float:
        """Height of a container's inner body, grown to fit its stacked children."""
        if block_id in self._body_heights:
            return self._body_heights[block_id]
        block = self.registry.require(block_id)
        stacked = sum(self.size_of(child_id)[1] + self.STACK_GAP
                      for child_id in block.nested_children if child_id in self.registry)
        height = max(self.MIN_BODY_HEIGHT, stacked + self.BODY_PADDING)
        self._body_heights[block_id] = height
        return height

    def world_origin(self, block_id: str, _seen: Optional[Set[str]] = None) -> Point:
        """Top-left corner of a block in workspace coordinates."""
        block = self.registry.require(block_id)
        seen = _seen or set()
        if block_id in seen:
            return block.position
        seen.add(block_id)

        parent = self.registry.get(block.parent.parent_id)
        if parent is None:
            return block.position

        px, py = self.world_origin(parent.id, seen)
        if block.parent.is_container:
            offset_y = 0.0
            for sibling_id in parent.nested_children:
                if sibling_id == block_id:
                    break
                if sibling_id in self.registry:
                    offset_y += self.size_of(sibling_id)[1] + self.STACK_GAP
            return px + self.BODY_INSET, py + self.HEADER_HEIGHT + 4 + offset_y

        offset = self._slot_offset(parent.id, block.parent.varname)
        if offset is None:
            return px, py
        return px + offset[0], py + offset[1]

    def _slot_offset(self, block_id: str, varname: Optional[str]) -> Optional[Point]:
        block = self.registry.get(block_id)
        if block is None or varname not in block.inputs:
            return None
        if block.has_body:
            offset_y = 8.0
        else:
            offset_y = self.size_of(block_id)[1] / 2 - 10
        offset_x = 10.0
        for part in parse_label(block.label):
            if part.startswith('%'):
                if part[1:] == varname:
                    return offset_x, offset_y
                offset_x += self.INPUT_ADVANCE
            else:
                offset_x += len(part) * self.CHAR_WIDTH
        return None
