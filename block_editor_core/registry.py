"""
Block instance registry.

The registry owns every live block and addresses it by id. Graph edges between
blocks are stored as ids on the instances themselves; every graph algorithm works
over ids plus registry lookups. Iteration follows creation order.
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from .exceptions import BlockNotFoundError, ImportPayloadError
from .models import BlockDefinition, BlockInstance


class BlockRegistry:
    """Id-addressed arena of block instances."""

    def __init__(self):
        self._blocks: Dict[str, BlockInstance] = {}
        self.logger = logging.getLogger(__name__)

    def create(self, definition: BlockDefinition,
               position: Tuple[float, float] = (10.0, 10.0),
               block_id: Optional[str] = None) -> BlockInstance:
        """Instantiate a definition and register the new block."""
        if block_id and block_id in self._blocks:
            raise ImportPayloadError(f"Duplicate block id: {block_id}", {'block_id': block_id})
        block = BlockInstance.from_definition(definition, position, block_id)
        self._blocks[block.id] = block
        self.logger.debug("Created %s block %s (%r)", block.kind.value, block.id, block.label)
        return block

    def add(self, block: BlockInstance) -> str:
        """Register an existing instance and return its id."""
        if block.id in self._blocks:
            raise ImportPayloadError(f"Duplicate block id: {block.id}", {'block_id': block.id})
        self._blocks[block.id] = block
        return block.id

    def get(self, block_id: Optional[str]) -> Optional[BlockInstance]:
        """Get a block by id, None for unknown or dangling ids."""
        if block_id is None:
            return None
        return self._blocks.get(block_id)

    def require(self, block_id: str) -> BlockInstance:
        """Get a block by id, raising BlockNotFoundError when absent."""
        block = self._blocks.get(block_id)
        if block is None:
            raise BlockNotFoundError(block_id)
        return block

    def discard(self, block_id: str) -> bool:
        """Drop a block from the registry without touching any edge."""
        return self._blocks.pop(block_id, None) is not None

    def clear(self):
        self._blocks.clear()

    def replace_with(self, other: 'BlockRegistry'):
        """Take over the blocks of another registry in its creation order."""
        self._blocks = dict(other._blocks)
        self.logger.debug("Registry replaced with %d block(s)", len(self._blocks))

    def roots(self) -> List[BlockInstance]:
        """Parentless blocks in creation order."""
        return [block for block in self._blocks.values() if block.is_root]

    def ids(self) -> List[str]:
        return list(self._blocks)

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._blocks

    def __iter__(self) -> Iterator[BlockInstance]:
        # Snapshot so callers may mutate while iterating
        return iter(list(self._blocks.values()))

    def __len__(self) -> int:
        return len(self._blocks)
