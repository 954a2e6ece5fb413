"""
Unit tests for the composition graph.
"""

import pytest
from hypothesis import given, settings, strategies as st

from block_editor_core.composition import CompositionGraph
from block_editor_core.exceptions import (
    AttachError, BlockEditorError, CycleError, InvalidKindError, SlotOccupiedError
)
from block_editor_core.models import ParentRef
from block_editor_core.registry import BlockRegistry

from conftest import PLUS, REPEAT, SAY


class TestAttach:
    """Test cases for attach operations."""

    def test_attach_to_container_appends(self, registry, graph):
        container = registry.create(REPEAT)
        first = registry.create(SAY)
        second = registry.create(SAY)

        graph.attach_to_container(first.id, container.id)
        graph.attach_to_container(second.id, container.id)

        assert container.nested_children == [first.id, second.id]
        assert first.parent == ParentRef.in_container(container.id)
        assert graph.validate() == []

    def test_attach_to_command_rejected(self, registry, graph):
        target = registry.create(SAY)
        child = registry.create(SAY)
        with pytest.raises(InvalidKindError):
            graph.attach_to_container(child.id, target.id)

    def test_attach_to_input(self, registry, graph):
        say = registry.create(SAY)
        reporter = registry.create(PLUS)

        graph.attach_to_input(reporter.id, say.id, "text")

        assert say.inputs["text"].child_id == reporter.id
        assert reporter.parent == ParentRef.in_input(say.id, "text")

    def test_only_reporters_fit_inputs(self, registry, graph):
        say = registry.create(SAY)
        other = registry.create(SAY)
        with pytest.raises(InvalidKindError):
            graph.attach_to_input(other.id, say.id, "text")

    def test_unknown_input_rejected(self, registry, graph):
        say = registry.create(SAY)
        reporter = registry.create(PLUS)
        with pytest.raises(AttachError):
            graph.attach_to_input(reporter.id, say.id, "nope")

    def test_occupied_slot_rejected(self, registry, graph):
        """An occupied slot is never silently overwritten."""
        say = registry.create(SAY)
        first = registry.create(PLUS)
        second = registry.create(PLUS)
        graph.attach_to_input(first.id, say.id, "text")

        with pytest.raises(SlotOccupiedError) as excinfo:
            graph.attach_to_input(second.id, say.id, "text")

        assert excinfo.value.occupant_id == first.id
        assert say.inputs["text"].child_id == first.id
        assert second.is_root

    def test_slot_with_dangling_child_is_free(self, registry, graph):
        say = registry.create(SAY)
        say.inputs["text"].child_id = "ghost"
        reporter = registry.create(PLUS)
        graph.attach_to_input(reporter.id, say.id, "text")
        assert say.inputs["text"].child_id == reporter.id

    def test_parented_block_must_detach_first(self, registry, graph):
        first = registry.create(REPEAT)
        second = registry.create(REPEAT)
        child = registry.create(SAY)
        graph.attach_to_container(child.id, first.id)

        with pytest.raises(AttachError):
            graph.attach_to_container(child.id, second.id)
        assert first.nested_children == [child.id]

    def test_self_attach_is_a_cycle(self, registry, graph):
        container = registry.create(REPEAT)
        with pytest.raises(CycleError):
            graph.attach_to_container(container.id, container.id)

    def test_attach_into_descendant_is_a_cycle(self, registry, graph):
        outer = registry.create(REPEAT)
        inner = registry.create(REPEAT)
        graph.attach_to_container(inner.id, outer.id)

        with pytest.raises(CycleError):
            graph.attach_to_container(outer.id, inner.id)

    def test_notifications_reach_ancestors(self, registry, graph):
        """Every attach notifies the parent and each ancestor."""
        outer = registry.create(REPEAT)
        inner = registry.create(REPEAT)
        graph.attach_to_container(inner.id, outer.id)
        seen = []
        graph.on_child_set_changed = seen.append

        graph.attach_to_container(registry.create(SAY).id, inner.id)

        assert seen == [inner.id, outer.id]


class TestDetach:
    """Test cases for detach and release."""

    def test_detach_preserves_position(self, registry, graph, layout):
        """A detached block stays exactly where it was drawn."""
        container = registry.create(REPEAT, (100, 100))
        child = registry.create(SAY, (0, 0))
        graph.attach_to_container(child.id, container.id)
        before = layout.bounding_box_of(child.id)

        assert graph.detach(child.id) is True

        assert child.is_root
        assert child.position == (before.x, before.y) == (110, 134)
        assert container.nested_children == []

    def test_detach_from_input(self, registry, graph):
        say = registry.create(SAY, (300, 300))
        reporter = registry.create(PLUS)
        graph.attach_to_input(reporter.id, say.id, "text")

        graph.detach(reporter.id)

        assert say.inputs["text"].child_id is None
        assert reporter.position == (342, 305)

    def test_detach_root_is_noop(self, registry, graph):
        block = registry.create(SAY, (5, 5))
        assert graph.detach(block.id) is False
        assert block.position == (5, 5)

    def test_detach_without_geometry_keeps_stored_position(self, registry):
        graph = CompositionGraph(registry)
        container = registry.create(REPEAT, (100, 100))
        child = registry.create(SAY, (7, 8))
        graph.attach_to_container(child.id, container.id)
        graph.detach(child.id)
        assert child.position == (7, 8)

    def test_release_inputs(self, registry, graph):
        reporter_parent = registry.create(PLUS)
        a = registry.create(PLUS)
        b = registry.create(PLUS)
        graph.attach_to_input(a.id, reporter_parent.id, "a")
        graph.attach_to_input(b.id, reporter_parent.id, "b")

        released = graph.release_inputs(reporter_parent.id)

        assert released == [a.id, b.id]
        assert reporter_parent.input_children() == []
        assert a.is_root and b.is_root


class TestMove:
    """Test cases for re-parenting a composed block."""

    def test_move_between_containers(self, registry, graph):
        first = registry.create(REPEAT)
        second = registry.create(REPEAT)
        child = registry.create(SAY)
        graph.attach_to_container(child.id, first.id)

        graph.move(child.id, second.id)

        assert first.nested_children == []
        assert second.nested_children == [child.id]
        assert child.parent == ParentRef.in_container(second.id)

    @pytest.mark.parametrize("target", ["occupied", "cycle", "command"])
    def test_rejected_move_changes_nothing(self, registry, graph, target):
        loop = registry.create(REPEAT)
        inner = registry.create(REPEAT)
        say = registry.create(SAY)
        occupant = registry.create(PLUS)
        graph.attach_to_container(inner.id, loop.id)
        graph.attach_to_input(occupant.id, say.id, "text")

        with pytest.raises(AttachError):
            if target == "occupied":
                reporter = registry.create(PLUS)
                graph.attach_to_input(reporter.id, loop.id, "times")
                graph.move(reporter.id, say.id, "text")
            elif target == "cycle":
                graph.move(loop.id, inner.id)
            else:
                graph.move(inner.id, say.id)

        assert loop.nested_children == [inner.id]
        assert inner.parent == ParentRef.in_container(loop.id)
        assert say.inputs["text"].child_id == occupant.id
        assert graph.validate() == []

    def test_move_within_own_slot(self, registry, graph):
        say = registry.create(SAY)
        reporter = registry.create(PLUS)
        graph.attach_to_input(reporter.id, say.id, "text")

        graph.move(reporter.id, say.id, "text")

        assert say.inputs["text"].child_id == reporter.id
        assert reporter.parent == ParentRef.in_input(say.id, "text")


class TestRemoveBlock:
    """Test cases for cascading removal."""

    def test_cascade_removes_subtree(self, registry, graph):
        outer = registry.create(REPEAT)
        inner = registry.create(REPEAT)
        say = registry.create(SAY)
        reporter = registry.create(PLUS)
        graph.attach_to_container(inner.id, outer.id)
        graph.attach_to_container(say.id, inner.id)
        graph.attach_to_input(reporter.id, say.id, "text")

        removed = graph.remove_block(inner.id)

        assert set(removed) == {inner.id, say.id, reporter.id}
        assert removed[-1] == inner.id
        assert registry.ids() == [outer.id]
        assert outer.nested_children == []
        assert graph.validate() == []

    def test_removal_scrubs_input_references(self, registry, graph):
        say = registry.create(SAY)
        reporter = registry.create(PLUS)
        graph.attach_to_input(reporter.id, say.id, "text")

        graph.remove_block(reporter.id)

        assert say.inputs["text"].child_id is None
        assert graph.validate() == []


class TestQueries:
    """Test cases for graph queries and validation."""

    def test_ancestors_and_depth(self, registry, graph):
        outer = registry.create(REPEAT)
        inner = registry.create(REPEAT)
        say = registry.create(SAY)
        graph.attach_to_container(inner.id, outer.id)
        graph.attach_to_container(say.id, inner.id)

        assert graph.ancestors_of(say.id) == [inner.id, outer.id]
        assert graph.depth_of(say.id) == 2
        assert graph.is_descendant(say.id, outer.id)
        assert graph.descendants_of(outer.id) == [inner.id, say.id]

    def test_validate_detects_missing_back_pointer(self, registry, graph):
        container = registry.create(REPEAT)
        child = registry.create(SAY)
        container.nested_children.append(child.id)
        assert graph.validate()

    def test_validate_detects_self_containment(self, registry, graph):
        container = registry.create(REPEAT)
        container.nested_children.append(container.id)
        container.parent = ParentRef.in_container(container.id)
        assert graph.validate()


OPERATIONS = st.lists(
    st.tuples(st.sampled_from(["container", "input", "detach", "remove"]),
              st.integers(0, 5), st.integers(0, 5)),
    max_size=30,
)


class TestGraphProperties:
    """Property-based tests for graph invariants."""

    @settings(max_examples=75, deadline=None)
    @given(OPERATIONS)
    def test_invariants_hold_under_any_operation_sequence(self, operations):
        """Property: no self-containment and a single parent per block, always."""
        registry = BlockRegistry()
        graph = CompositionGraph(registry)
        ids = [registry.create(definition).id for definition in (REPEAT, REPEAT, SAY, PLUS, PLUS, REPEAT)]

        for op, i, j in operations:
            child_id, parent_id = ids[i], ids[j]
            try:
                if op == "container":
                    graph.attach_to_container(child_id, parent_id)
                elif op == "input":
                    parent = registry.require(parent_id)
                    varname = next(iter(parent.inputs), "missing")
                    graph.attach_to_input(child_id, parent_id, varname)
                elif op == "detach":
                    graph.detach(child_id)
                else:
                    graph.remove_block(child_id)
            except BlockEditorError:
                pass

            assert graph.validate() == []
            for block in registry:
                assert block.id not in graph.descendants_of(block.id)
                assert block.id not in graph.ancestors_of(block.id)
