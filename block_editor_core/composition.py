"""
Composition graph for block nesting.

Blocks are nested in two ways: stacked inside a container's body, or embedded in
another block's input slot. Edges are stored as ids on the instances (the parent's
``nested_children`` / slot ``child_id`` and the child's ``parent`` reference); this
module is the only place that mutates them.

After every attach or detach the affected block and each of its ancestors receive
a synchronous ``on_child_set_changed`` notification so the layout layer can resize.
"""

import logging
from typing import Callable, List, Optional, Set, Tuple

from .exceptions import AttachError, CycleError, InvalidKindError, SlotOccupiedError
from .geometry import GeometryProvider
from .models import BlockInstance, ParentRef, ValidationError
from .registry import BlockRegistry


class CompositionGraph:
    """Attach, detach and remove operations over the block registry."""

    def __init__(self, registry: BlockRegistry, geometry: Optional[GeometryProvider] = None):
        self.registry = registry
        self.geometry = geometry
        self.logger = logging.getLogger(__name__)

        # Event callbacks
        self.on_child_set_changed: Optional[Callable[[str], None]] = None

    # -- Attach ----------------------------------------------------------

    def attach_to_container(self, child_id: str, container_id: str):
        """Append a parentless block to the tail of a container's body."""
        child, container = self._check_container_attach(child_id, container_id)

        container.nested_children.append(child_id)
        child.parent = ParentRef.in_container(container_id)
        self.logger.debug("Attached %s to container %s", child_id, container_id)
        self._notify_chain(container_id)

    def attach_to_input(self, child_id: str, parent_id: str, varname: str):
        """Embed a reporter or boolean block in an unoccupied input slot."""
        child, parent = self._check_input_attach(child_id, parent_id, varname)

        parent.get_input(varname).child_id = child_id
        child.parent = ParentRef.in_input(parent_id, varname)
        self.logger.debug("Attached %s to input %s.%s", child_id, parent_id, varname)
        self._notify_chain(parent_id)

    def move(self, child_id: str, parent_id: str, varname: Optional[str] = None):
        """Re-parent a block into a container body, or an input slot when varname is given.

        Every attach rule is checked before the block leaves its current parent,
        so a rejected move leaves the graph as it was.
        """
        if varname is None:
            self._check_container_attach(child_id, parent_id, moving=True)
        else:
            self._check_input_attach(child_id, parent_id, varname, moving=True)

        self.detach(child_id)
        if varname is None:
            self.attach_to_container(child_id, parent_id)
        else:
            self.attach_to_input(child_id, parent_id, varname)

    # -- Detach ----------------------------------------------------------

    def detach(self, block_id: str) -> bool:
        """Make a block top-level again without moving it on screen.

        Returns False when the block was already parentless.
        """
        block = self.registry.require(block_id)
        if block.parent.is_none:
            return False

        # Read the composed position before any edge changes
        world_position = self.world_position(block_id)
        old_parent_id = block.parent.parent_id
        parent = self.registry.get(old_parent_id)

        if parent is not None:
            if block.parent.is_container:
                parent.nested_children = [cid for cid in parent.nested_children if cid != block_id]
            else:
                slot = parent.get_input(block.parent.varname)
                if slot is not None and slot.child_id == block_id:
                    slot.child_id = None

        block.parent = ParentRef.none()
        block.position = world_position
        self.logger.debug("Detached %s from %s at %s", block_id, old_parent_id, world_position)

        if parent is not None:
            self._notify_chain(parent.id)
        return True

    def release_inputs(self, block_id: str) -> List[str]:
        """Detach every block embedded in this block's inputs."""
        block = self.registry.require(block_id)
        released = []
        for slot in block.inputs.values():
            if slot.child_id is None:
                continue
            if slot.child_id in self.registry:
                child_id = slot.child_id
                self.detach(child_id)
                released.append(child_id)
            else:
                slot.child_id = None
        return released

    # -- Removal ---------------------------------------------------------

    def remove_block(self, block_id: str) -> List[str]:
        """Delete a block with everything nested in it and scrub references to them.

        Returns the removed ids, children before parents.
        """
        block = self.registry.require(block_id)
        old_parent_id = block.parent.parent_id

        removed: List[str] = []
        self._collect_subtree(block_id, removed, set())
        removed_set = set(removed)

        touched: List[str] = []
        for other in self.registry:
            if other.id in removed_set:
                continue
            changed = False
            for slot in other.inputs.values():
                if slot.child_id in removed_set:
                    slot.child_id = None
                    changed = True
            if any(cid in removed_set for cid in other.nested_children):
                other.nested_children = [cid for cid in other.nested_children if cid not in removed_set]
                changed = True
            if changed:
                touched.append(other.id)

        for removed_id in removed:
            self.registry.discard(removed_id)
            if self.geometry is not None:
                self.geometry.forget(removed_id)

        self.logger.debug("Removed %d block(s) rooted at %s", len(removed), block_id)
        for touched_id in touched:
            self._notify_chain(touched_id)
        if old_parent_id and old_parent_id in self.registry and old_parent_id not in touched:
            self._notify_chain(old_parent_id)
        return removed

    def _collect_subtree(self, block_id: str, out: List[str], seen: Set[str]):
        if block_id in seen:
            return
        seen.add(block_id)
        block = self.registry.get(block_id)
        if block is None:
            return
        for child_id in list(block.nested_children):
            self._collect_subtree(child_id, out, seen)
        for child_id in block.input_children():
            self._collect_subtree(child_id, out, seen)
        out.append(block_id)

    # -- Queries ---------------------------------------------------------

    def ancestors_of(self, block_id: str) -> List[str]:
        """Ids of live ancestors, nearest first."""
        ancestors = []
        seen = {block_id}
        block = self.registry.get(block_id)
        while block is not None and not block.parent.is_none:
            parent_id = block.parent.parent_id
            if parent_id in seen or parent_id not in self.registry:
                break
            ancestors.append(parent_id)
            seen.add(parent_id)
            block = self.registry.get(parent_id)
        return ancestors

    def is_descendant(self, candidate_id: str, ancestor_id: str) -> bool:
        """True when ancestor_id is found on candidate_id's parent chain."""
        return ancestor_id in self.ancestors_of(candidate_id)

    def descendants_of(self, block_id: str) -> List[str]:
        """Ids of all nested and input descendants, depth first."""
        result: List[str] = []
        seen = {block_id}
        stack = [block_id]
        while stack:
            block = self.registry.get(stack.pop())
            if block is None:
                continue
            children = block.nested_children + block.input_children()
            for child_id in reversed(children):
                if child_id in seen or child_id not in self.registry:
                    continue
                seen.add(child_id)
                result.append(child_id)
                stack.append(child_id)
        return result

    def depth_of(self, block_id: str) -> int:
        return len(self.ancestors_of(block_id))

    def world_position(self, block_id: str) -> Tuple[float, float]:
        """Composed position of a block, its stored position without geometry."""
        block = self.registry.require(block_id)
        if self.geometry is None:
            return block.position
        box = self.geometry.bounding_box_of(block_id)
        return box.x, box.y

    def refresh_layout(self):
        """Notify every container so sizes are recomputed."""
        for block in self.registry:
            if block.has_body:
                self._notify(block.id)

    def validate(self) -> List[ValidationError]:
        """Check edge consistency and return any violations."""
        errors = []
        owners = {}

        for block in self.registry:
            for child_id in block.nested_children:
                child = self.registry.get(child_id)
                if child is None:
                    errors.append(ValidationError(f"Block {block.id} nests missing block {child_id}"))
                    continue
                if child.parent != ParentRef.in_container(block.id):
                    errors.append(ValidationError(f"Block {child_id} does not point back to container {block.id}"))
                if child_id in owners:
                    errors.append(ValidationError(f"Block {child_id} has more than one parent"))
                owners[child_id] = block.id

            for varname, slot in block.inputs.items():
                if slot.child_id is None:
                    continue
                child = self.registry.get(slot.child_id)
                if child is None:
                    errors.append(ValidationError(f"Input {block.id}.{varname} references missing block {slot.child_id}"))
                    continue
                if child.parent != ParentRef.in_input(block.id, varname):
                    errors.append(ValidationError(f"Block {slot.child_id} does not point back to input {block.id}.{varname}"))
                if slot.child_id in owners:
                    errors.append(ValidationError(f"Block {slot.child_id} has more than one parent"))
                owners[slot.child_id] = block.id

        for block in self.registry:
            if not block.parent.is_none and block.id not in owners and block.parent.parent_id in self.registry:
                errors.append(ValidationError(f"Block {block.id} claims parent {block.parent.parent_id} which does not hold it"))
            if self._in_parent_cycle(block.id):
                errors.append(ValidationError(f"Block {block.id} contains itself"))

        return errors

    # -- Internals -------------------------------------------------------

    def _check_container_attach(self, child_id: str, container_id: str,
                                moving: bool = False) -> Tuple[BlockInstance, BlockInstance]:
        child = self.registry.require(child_id)
        container = self.registry.require(container_id)

        if not container.has_body:
            raise InvalidKindError(
                f"Block {container_id} ({container.kind.value}) has no body to nest into",
                {'container_id': container_id, 'kind': container.kind.value}
            )
        if not moving:
            self._require_parentless(child)
        if container_id == child_id or self.is_descendant(container_id, child_id):
            raise CycleError(child_id, container_id)
        return child, container

    def _check_input_attach(self, child_id: str, parent_id: str, varname: str,
                            moving: bool = False) -> Tuple[BlockInstance, BlockInstance]:
        child = self.registry.require(child_id)
        parent = self.registry.require(parent_id)

        if not child.kind.fits_input:
            raise InvalidKindError(
                f"Only reporter and boolean blocks fit an input, not {child.kind.value}",
                {'child_id': child_id, 'kind': child.kind.value}
            )
        slot = parent.get_input(varname)
        if slot is None:
            raise AttachError(
                f"Block {parent_id} has no input '{varname}'",
                {'parent_id': parent_id, 'varname': varname}
            )
        # A block moving within its own slot frees it on detach
        if slot.child_id is not None and slot.child_id in self.registry and slot.child_id != child_id:
            raise SlotOccupiedError(parent_id, varname, slot.child_id)
        if not moving:
            self._require_parentless(child)
        if parent_id == child_id or self.is_descendant(parent_id, child_id):
            raise CycleError(child_id, parent_id)
        return child, parent

    def _require_parentless(self, block: BlockInstance):
        if not block.parent.is_none:
            raise AttachError(
                f"Block {block.id} must be detached before it is attached elsewhere",
                {'block_id': block.id, 'parent_id': block.parent.parent_id}
            )

    def _in_parent_cycle(self, block_id: str) -> bool:
        seen: Set[str] = set()
        block = self.registry.get(block_id)
        while block is not None and not block.parent.is_none:
            parent_id = block.parent.parent_id
            if parent_id == block_id:
                return True
            if parent_id in seen:
                return False
            seen.add(parent_id)
            block = self.registry.get(parent_id)
        return False

    def _notify_chain(self, block_id: str):
        for target_id in [block_id] + self.ancestors_of(block_id):
            self._notify(target_id)

    def _notify(self, block_id: str):
        if self.geometry is not None:
            self.geometry.on_child_set_changed(block_id)
        if self.on_child_set_changed:
            self.on_child_set_changed(block_id)
