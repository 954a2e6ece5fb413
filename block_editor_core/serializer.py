"""
Workspace snapshot serialization.

A snapshot holds the palette definitions and every block instance with its edges
recorded as ids::

    {
      "definitions": [{label, kind, color, templates, containerVar?}, ...],
      "instances": [{id, label, kind, color, templates, containerVar, x, y,
                     parentContainerId, parentInput, inputs, nestedChildIds}, ...]
    }

Loading is two-phase: every record is first instantiated as a parentless block with
its literal input values, then nesting and input edges are re-linked in recorded
order. References that cannot be honoured are skipped, never fatal.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .composition import CompositionGraph
from .exceptions import AttachError, DefinitionError, ImportPayloadError
from .models import BlockDefinition, BlockInstance, BlockKind
from .palette import BlockPalette
from .registry import BlockRegistry


class ExportVariant(Enum):
    """Shapes of exported bundles."""
    DEFINITIONS = "definitions"
    INSTANCES = "instances"
    PROJECT = "project"


@dataclass
class ImportBundle:
    """Parsed import payload; parts absent from the payload are None."""
    definitions: Optional[List[BlockDefinition]] = None
    registry: Optional[BlockRegistry] = None
    code: Optional[str] = None
    language: Optional[str] = None

    @property
    def parts(self) -> List[str]:
        present = []
        if self.definitions is not None:
            present.append('definitions')
        if self.registry is not None:
            present.append('instances')
        if self.code is not None:
            present.append('code')
        return present


class WorkspaceSerializer:
    """Converts between block graphs and their snapshot form."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    # -- Serialize -------------------------------------------------------

    def serialize_instance(self, block: BlockInstance) -> Dict[str, Any]:
        parent_input = None
        if block.parent.is_input:
            parent_input = {'parentId': block.parent.parent_id, 'varname': block.parent.varname}
        return {
            'id': block.id,
            'label': block.label,
            'kind': block.kind.value,
            'color': block.color,
            'templates': dict(block.templates),
            'containerVar': block.container_var,
            'x': block.position[0],
            'y': block.position[1],
            'parentContainerId': block.parent.parent_id if block.parent.is_container else None,
            'parentInput': parent_input,
            'inputs': {
                varname: {'literal': slot.literal, 'childId': slot.child_id}
                for varname, slot in block.inputs.items()
            },
            'nestedChildIds': list(block.nested_children),
        }

    def serialize_instances(self, registry: BlockRegistry) -> List[Dict[str, Any]]:
        return [self.serialize_instance(block) for block in registry]

    def serialize(self, registry: BlockRegistry, palette: BlockPalette) -> Dict[str, Any]:
        """Full snapshot of palette and workspace."""
        return {
            'definitions': palette.to_list(),
            'instances': self.serialize_instances(registry),
        }

    def export_bundle(self, variant: ExportVariant, registry: BlockRegistry, palette: BlockPalette,
                      code: Optional[str] = None, language: Optional[str] = None) -> Dict[str, Any]:
        """Build an export bundle of the requested shape."""
        variant = ExportVariant(variant)
        if variant is ExportVariant.DEFINITIONS:
            return {'definitions': palette.to_list()}
        if variant is ExportVariant.INSTANCES:
            return {'instances': self.serialize_instances(registry)}
        return {
            'definitions': palette.to_list(),
            'instances': self.serialize_instances(registry),
            'code': code or "",
            'language': language,
        }

    # -- Deserialize -----------------------------------------------------

    def parse_definitions(self, records: Any) -> List[BlockDefinition]:
        if not isinstance(records, list):
            raise ImportPayloadError("'definitions' must be a list")
        definitions = []
        for index, record in enumerate(records):
            try:
                definitions.append(BlockDefinition.from_dict(record))
            except DefinitionError as e:
                raise ImportPayloadError(f"Invalid definition at index {index}: {e}", {'index': index})
        return definitions

    def deserialize_instances(self, records: Any) -> BlockRegistry:
        """Rebuild a registry from instance records."""
        if not isinstance(records, list):
            raise ImportPayloadError("'instances' must be a list")

        registry = BlockRegistry()
        graph = CompositionGraph(registry)

        # Phase 1: parentless nodes with literal values
        for index, record in enumerate(records):
            self._instantiate(registry, record, index)

        # Phase 2: re-link nesting in recorded order, then input children
        for record in records:
            block_id = str(record['id'])
            for child_id in record.get('nestedChildIds') or []:
                self._relink(graph, registry, child_id, block_id, None)
            for varname, state in (record.get('inputs') or {}).items():
                if isinstance(state, dict) and state.get('childId') is not None:
                    self._relink(graph, registry, state['childId'], block_id, varname)

        self.logger.debug("Deserialized %d block(s)", len(registry))
        return registry

    def deserialize(self, snapshot: Dict[str, Any]) -> ImportBundle:
        """Rebuild definitions and instances of a full snapshot."""
        return self.parse_bundle(snapshot)

    def parse_bundle(self, payload: Any) -> ImportBundle:
        """Parse any subset of definitions, instances and code+language.

        Nothing is applied here; callers swap the parsed parts in once the whole
        payload has been accepted.
        """
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except ValueError as e:
                raise ImportPayloadError(f"Invalid JSON: {e}")
        if not isinstance(payload, dict):
            raise ImportPayloadError("Import payload must be a JSON object")

        bundle = ImportBundle()
        if payload.get('definitions') is not None:
            bundle.definitions = self.parse_definitions(payload['definitions'])
        if payload.get('instances') is not None:
            bundle.registry = self.deserialize_instances(payload['instances'])
        if payload.get('code') is not None and payload.get('language'):
            bundle.code = str(payload['code'])
            bundle.language = str(payload['language'])

        if not bundle.parts:
            raise ImportPayloadError("Payload contains no definitions, instances or code")
        return bundle

    def _instantiate(self, registry: BlockRegistry, record: Any, index: int):
        if not isinstance(record, dict):
            raise ImportPayloadError(f"Instance record {index} is not an object", {'index': index})
        missing = [key for key in ('id', 'label') if not record.get(key)]
        if missing or not (record.get('kind') or record.get('type')):
            raise ImportPayloadError(f"Instance record {index} is missing id, label or kind", {'index': index})

        try:
            kind = BlockKind.parse(record.get('kind') or record.get('type'))
        except DefinitionError as e:
            raise ImportPayloadError(f"Instance record {index}: {e}", {'index': index})

        templates = record.get('templates') or {}
        if not isinstance(templates, dict):
            raise ImportPayloadError(f"Instance record {index} has invalid templates", {'index': index})

        definition = BlockDefinition(
            label=str(record['label']),
            kind=kind,
            color=str(record.get('color') or "#4C97FF"),
            templates=dict(templates),
            container_var=record.get('containerVar') or None,
        )
        try:
            position = (float(record.get('x') or 0.0), float(record.get('y') or 0.0))
        except (TypeError, ValueError):
            raise ImportPayloadError(f"Instance record {index} has an invalid position", {'index': index})

        inputs = record.get('inputs') or {}
        if not isinstance(inputs, dict):
            raise ImportPayloadError(f"Instance record {index} has invalid inputs", {'index': index})
        if not isinstance(record.get('nestedChildIds') or [], list):
            raise ImportPayloadError(f"Instance record {index} has invalid nestedChildIds", {'index': index})

        block = registry.create(definition, position, str(record['id']))
        for varname, state in inputs.items():
            slot = block.get_input(varname)
            if slot is None:
                continue
            if isinstance(state, dict):
                slot.literal = str(state.get('literal', state.get('value', '')) or '')
            elif state is not None:
                slot.literal = str(state)

    def _relink(self, graph: CompositionGraph, registry: BlockRegistry,
                child_id: Any, parent_id: str, varname: Optional[str]):
        child_id = str(child_id)
        if child_id not in registry:
            self.logger.debug("Skipping reference from %s to unknown block %s", parent_id, child_id)
            return
        try:
            if varname is None:
                graph.attach_to_container(child_id, parent_id)
            else:
                graph.attach_to_input(child_id, parent_id, varname)
        except AttachError as e:
            self.logger.warning("Skipping snapshot edge %s -> %s: %s", parent_id, child_id, e)
