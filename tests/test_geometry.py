"""
Unit tests for geometry queries and the estimated layout.
"""

import pytest
from hypothesis import given, strategies as st

from block_editor_core.geometry import EstimatedLayout, Rect, ViewportState

from conftest import PLUS, REPEAT, SAY


class TestRect:
    """Test cases for Rect."""

    def test_edges(self):
        rect = Rect(10, 20, 30, 40)
        assert (rect.left, rect.top, rect.right, rect.bottom) == (10, 20, 40, 60)

    def test_contains_is_inclusive(self):
        rect = Rect(0, 0, 10, 10)
        assert rect.contains((0, 0))
        assert rect.contains((10, 10))
        assert not rect.contains((10.1, 5))

    def test_expanded(self):
        assert Rect(10, 10, 10, 10).expanded(5) == Rect(5, 5, 20, 20)


class TestViewportState:
    """Test cases for ViewportState class."""

    def test_world_to_screen_conversion(self):
        viewport = ViewportState(zoom=2.0, pan_x=10.0, pan_y=20.0)
        # (100 + 10) * 2 = 220, (200 + 20) * 2 = 440
        assert viewport.world_to_screen(100.0, 200.0) == (220.0, 440.0)

    def test_screen_to_world_conversion(self):
        viewport = ViewportState(zoom=2.0, pan_x=10.0, pan_y=20.0)
        assert viewport.screen_to_world(220.0, 440.0) == (100.0, 200.0)

    @given(
        st.floats(min_value=0.1, max_value=5.0),
        st.floats(min_value=-500, max_value=500),
        st.floats(min_value=-500, max_value=500),
        st.floats(min_value=-2000, max_value=2000),
        st.floats(min_value=-2000, max_value=2000),
    )
    def test_round_trip_conversion(self, zoom, pan_x, pan_y, x, y):
        """Property: screen_to_world inverts world_to_screen."""
        viewport = ViewportState(zoom=zoom, pan_x=pan_x, pan_y=pan_y)
        world_x, world_y = viewport.screen_to_world(*viewport.world_to_screen(x, y))
        assert world_x == pytest.approx(x, abs=1e-6)
        assert world_y == pytest.approx(y, abs=1e-6)


class TestEstimatedLayout:
    """Test cases for EstimatedLayout."""

    def test_command_size(self, registry, layout):
        block = registry.create(SAY, (0, 0))
        assert layout.size_of(block.id) == (140.0, 30.0)

    def test_reporter_size(self, registry, layout):
        block = registry.create(PLUS, (0, 0))
        # 12 + 64 + 3 * 8 + 64
        assert layout.size_of(block.id) == (164.0, 28.0)

    def test_empty_container_size(self, registry, layout):
        block = registry.create(REPEAT, (0, 0))
        # 12 + 7 * 8 + 64 + 6 * 8 wide, header plus minimum body tall
        assert layout.size_of(block.id) == (180.0, 102.0)

    def test_container_body_rect(self, registry, layout):
        block = registry.create(REPEAT, (100, 100))
        assert layout.container_body_rect(block.id) == Rect(110, 122, 160, 80)

    def test_no_body_rect_for_commands(self, registry, layout):
        block = registry.create(SAY, (100, 100))
        assert layout.container_body_rect(block.id) is None

    def test_input_slot_rect(self, registry, layout):
        block = registry.create(SAY, (300, 300))
        assert layout.input_slot_rect(block.id, "text") == Rect(342, 305, 60, 22)
        assert layout.input_slot_rect(block.id, "missing") is None

    def test_nested_blocks_stack_in_body(self, registry, graph, layout):
        """Nested children are laid out one under another inside the body."""
        container = registry.create(REPEAT, (100, 100))
        first = registry.create(SAY)
        second = registry.create(SAY)
        graph.attach_to_container(first.id, container.id)
        graph.attach_to_container(second.id, container.id)

        assert layout.world_origin(first.id) == (110, 134)
        assert layout.world_origin(second.id) == (110, 134 + 30 + 8)

    def test_body_grows_with_children(self, registry, graph, layout):
        outer = registry.create(REPEAT, (100, 100))
        inner = registry.create(REPEAT)
        assert layout.body_height(outer.id) == 80
        graph.attach_to_container(inner.id, outer.id)
        assert layout.body_height(outer.id) == 102 + 8 + 12

    def test_removed_blocks_leave_no_cached_layout(self, registry, graph, layout):
        outer = registry.create(REPEAT, (100, 100))
        inner = registry.create(REPEAT)
        graph.attach_to_container(inner.id, outer.id)
        layout.size_of(outer.id)
        assert inner.id in layout._sizes

        graph.remove_block(outer.id)

        assert layout._sizes == {}
        assert layout._body_heights == {}

    def test_workspace_rect_follows_viewport(self, registry):
        layout = EstimatedLayout(registry, ViewportState(width=800, height=600))
        assert layout.workspace_rect() == Rect(0, 0, 800, 600)

    def test_screen_rect_applies_zoom(self, registry):
        layout = EstimatedLayout(registry, ViewportState(zoom=2.0))
        assert layout.screen_rect_of(Rect(10, 10, 5, 5)) == Rect(20, 20, 10, 10)
