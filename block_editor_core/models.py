"""
Core data models for the Block Editor.

This module defines the fundamental data structures of the block composition system:
palette definitions, live block instances, their input slots and the single parent
reference each instance carries.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any, Tuple, Optional
from enum import Enum
import uuid
import re

from .exceptions import DefinitionError


LABEL_PLACEHOLDER = re.compile(r'(%\w+)')

# Placeholders conventionally used for the nested body of a container template
CONTAINER_PLACEHOLDERS = ('body', 'then', 'else', 'area', 'content', 'inner')
_CONTAINER_PLACEHOLDER_RE = re.compile(r'%(' + '|'.join(CONTAINER_PLACEHOLDERS) + r')\b')

DEFAULT_CONTAINER_VAR = 'body'


class ValidationError(Exception):
    """Exception raised when composition graph validation fails."""
    pass


class BlockKind(Enum):
    """Enumeration of supported block shapes."""
    COMMAND = "command"
    CONTAINER = "container"
    FUNCTION = "function"
    REPORTER = "reporter"
    BOOLEAN = "boolean"

    @property
    def has_body(self) -> bool:
        """Container and function blocks hold a stack of nested blocks."""
        return self in (BlockKind.CONTAINER, BlockKind.FUNCTION)

    @property
    def fits_input(self) -> bool:
        """Reporter and boolean blocks can be embedded in an input slot."""
        return self in (BlockKind.REPORTER, BlockKind.BOOLEAN)

    @property
    def stackable(self) -> bool:
        return self in (BlockKind.COMMAND, BlockKind.CONTAINER)

    @classmethod
    def parse(cls, value: Any) -> 'BlockKind':
        """Resolve a kind from its string value, raising DefinitionError when unknown."""
        if isinstance(value, BlockKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise DefinitionError(f"Unknown block kind: {value!r}", {'kind': value})


def parse_label(label: str) -> List[str]:
    """Split a label into text parts and %placeholder parts."""
    return [part for part in LABEL_PLACEHOLDER.split(label) if part]


def label_input_names(label: str) -> List[str]:
    """Get placeholder names of a label in order of first appearance."""
    names = []
    for part in parse_label(label):
        if part.startswith('%'):
            name = part[1:]
            if name not in names:
                names.append(name)
    return names


def infer_container_var(templates: Dict[str, str], explicit: Optional[str] = None) -> str:
    """Pick the placeholder that receives nested-body code.

    An explicit name wins; otherwise the first conventional placeholder found in
    the joined templates is used, and ``body`` when nothing obvious is present.
    """
    if explicit:
        return explicit
    match = _CONTAINER_PLACEHOLDER_RE.search(' '.join(templates.values()))
    return match.group(1) if match else DEFAULT_CONTAINER_VAR


@dataclass(frozen=True)
class BlockDefinition:
    """A palette template from which block instances are created."""
    label: str
    kind: BlockKind = BlockKind.COMMAND
    color: str = "#4C97FF"
    templates: Dict[str, str] = field(default_factory=dict)
    container_var: Optional[str] = None

    @property
    def input_names(self) -> List[str]:
        return label_input_names(self.label)

    @property
    def resolved_container_var(self) -> Optional[str]:
        """Effective body placeholder, None for kinds without a body."""
        if not self.kind.has_body:
            return None
        return infer_container_var(self.templates, self.container_var)

    @property
    def display_name(self) -> str:
        """Label with placeholders shown as blanks, as listed in the palette."""
        return LABEL_PLACEHOLDER.sub('_', self.label)

    def validate(self) -> List[DefinitionError]:
        """Validate the definition and return any errors."""
        errors = []
        if not self.label or not self.label.strip():
            errors.append(DefinitionError("Label required"))
        if not isinstance(self.templates, dict):
            errors.append(DefinitionError("Templates must map language names to strings"))
        elif any(not isinstance(t, str) for t in self.templates.values()):
            errors.append(DefinitionError("Templates must map language names to strings"))
        return errors

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'label': self.label,
            'kind': self.kind.value,
            'color': self.color,
            'templates': dict(self.templates),
        }
        if self.container_var:
            data['containerVar'] = self.container_var
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BlockDefinition':
        """Build a definition from its snapshot form (``type`` is accepted for ``kind``)."""
        if not isinstance(data, dict):
            raise DefinitionError("Block definition must be a mapping")
        if 'label' not in data:
            raise DefinitionError("Block definition is missing 'label'")
        kind = data.get('kind', data.get('type', BlockKind.COMMAND.value))
        return cls(
            label=str(data['label']),
            kind=BlockKind.parse(kind),
            color=str(data.get('color', "#4C97FF")),
            templates=dict(data.get('templates') or {}),
            container_var=data.get('containerVar') or None,
        )


class ParentKind(Enum):
    """Where a block currently lives."""
    NONE = "none"
    CONTAINER = "container"
    INPUT = "input"


@dataclass(frozen=True)
class ParentRef:
    """The single parent representation of a block instance."""
    kind: ParentKind = ParentKind.NONE
    parent_id: Optional[str] = None
    varname: Optional[str] = None

    @classmethod
    def none(cls) -> 'ParentRef':
        return cls()

    @classmethod
    def in_container(cls, container_id: str) -> 'ParentRef':
        return cls(ParentKind.CONTAINER, container_id)

    @classmethod
    def in_input(cls, parent_id: str, varname: str) -> 'ParentRef':
        return cls(ParentKind.INPUT, parent_id, varname)

    @property
    def is_none(self) -> bool:
        return self.kind is ParentKind.NONE

    @property
    def is_container(self) -> bool:
        return self.kind is ParentKind.CONTAINER

    @property
    def is_input(self) -> bool:
        return self.kind is ParentKind.INPUT


@dataclass
class InputSlot:
    """An input field on a block: literal text, optionally superseded by a child block."""
    literal: str = ""
    child_id: Optional[str] = None

    @property
    def occupied(self) -> bool:
        return self.child_id is not None


@dataclass
class BlockInstance:
    """A live block placed on the workspace."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    label: str = ""
    kind: BlockKind = BlockKind.COMMAND
    color: str = "#4C97FF"
    templates: Dict[str, str] = field(default_factory=dict)
    container_var: Optional[str] = None
    position: Tuple[float, float] = (0.0, 0.0)  # Top-level position, valid while parentless
    inputs: Dict[str, InputSlot] = field(default_factory=dict)
    nested_children: List[str] = field(default_factory=list)
    parent: ParentRef = field(default_factory=ParentRef.none)

    @classmethod
    def from_definition(cls, definition: BlockDefinition,
                        position: Tuple[float, float] = (10.0, 10.0),
                        block_id: Optional[str] = None) -> 'BlockInstance':
        """Instantiate a block from a palette definition."""
        instance = cls(
            label=definition.label,
            kind=definition.kind,
            color=definition.color,
            templates=dict(definition.templates),
            container_var=definition.resolved_container_var,
            position=(float(position[0]), float(position[1])),
            inputs={name: InputSlot() for name in definition.input_names},
        )
        if block_id:
            instance.id = block_id
        return instance

    def to_definition(self) -> BlockDefinition:
        return BlockDefinition(
            label=self.label,
            kind=self.kind,
            color=self.color,
            templates=dict(self.templates),
            container_var=self.container_var,
        )

    @property
    def has_body(self) -> bool:
        return self.kind.has_body

    @property
    def is_root(self) -> bool:
        return self.parent.is_none

    def get_input(self, varname: str) -> Optional[InputSlot]:
        """Get an input slot by name."""
        return self.inputs.get(varname)

    def input_children(self) -> List[str]:
        """Get ids of blocks embedded in this block's input slots."""
        return [slot.child_id for slot in self.inputs.values() if slot.child_id]

    def free_inputs(self) -> List[str]:
        """Get names of input slots without an embedded child."""
        return [name for name, slot in self.inputs.items() if not slot.occupied]
