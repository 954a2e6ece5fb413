"""
Block Palette for managing block definitions.

The palette is the ordered list of definitions users drag blocks from. It ships
with a default set covering every block kind and accepts custom definitions from
the block designer. Removing a definition never touches blocks already placed.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import DefinitionError
from .models import BlockDefinition, BlockKind


def default_definitions() -> List[BlockDefinition]:
    """Definitions the palette starts with."""
    return [
        BlockDefinition(
            label="say %text",
            kind=BlockKind.COMMAND,
            color="#4C97FF",
            templates={
                'javascript': "console.log(%text);",
                'python': "print(%text)",
                'c': 'printf("%s\\n", %text);',
            },
        ),
        BlockDefinition(
            label="wait %seconds seconds",
            kind=BlockKind.COMMAND,
            color="#FFAB19",
            templates={
                'javascript': "await new Promise(r => setTimeout(r, %seconds * 1000));",
                'python': "import time\ntime.sleep(%seconds)",
                'c': "sleep(%seconds);",
            },
        ),
        BlockDefinition(
            label="repeat %times times",
            kind=BlockKind.CONTAINER,
            color="#FF6680",
            templates={
                'javascript': "for (let i = 0; i < %times; i++) {\n%body\n}",
                'python': "for i in range(%times):\n    %body",
                'c': "for (int i = 0; i < %times; i++) {\n%body\n}",
            },
        ),
        BlockDefinition(
            label="if %condition then",
            kind=BlockKind.CONTAINER,
            color="#2EBA55",
            templates={
                'javascript': "if (%condition) {\n%body\n}",
                'python': "if %condition:\n    %body",
                'c': "if (%condition) {\n%body\n}",
            },
        ),
        BlockDefinition(
            label="if %condition then else",
            kind=BlockKind.CONTAINER,
            color="#1E90FF",
            templates={
                'javascript': "if (%condition) {\n%then\n} else {\n%else\n}",
                'python': "if %condition:\n    %then\nelse:\n    %else",
                'c': "if (%condition) {\n%then\n} else {\n%else\n}",
            },
        ),
        BlockDefinition(
            label="define %name",
            kind=BlockKind.FUNCTION,
            color="#FF8C1A",
            templates={
                'javascript': "%name = %body",
                'python': "%name = %body",
                'c': "%name = %body",
            },
        ),
        BlockDefinition(
            label="call %name",
            kind=BlockKind.COMMAND,
            color="#FF8C1A",
            templates={
                'javascript': "%name",
                'python': "%name",
                'c': "%name",
            },
        ),
        BlockDefinition(
            label="%a + %b",
            kind=BlockKind.REPORTER,
            color="#FFCA28",
            templates={
                'javascript': "(%a + %b)",
                'python': "(%a + %b)",
                'c': "(%a + %b)",
            },
        ),
        BlockDefinition(
            label="%a > %b",
            kind=BlockKind.BOOLEAN,
            color="#F44336",
            templates={
                'javascript': "(%a > %b)",
                'python': "(%a > %b)",
                'c': "(%a > %b)",
            },
        ),
    ]


class BlockPalette:
    """Manages the ordered collection of block definitions."""

    def __init__(self, definitions: Optional[Iterable[BlockDefinition]] = None):
        self.definitions: List[BlockDefinition] = list(definitions) if definitions is not None else default_definitions()
        self.logger = logging.getLogger(__name__)

    def add_definition(self, label: str, kind: Any = BlockKind.COMMAND, color: str = "#4C97FF",
                       templates: Optional[Dict[str, str]] = None,
                       container_var: Optional[str] = None) -> int:
        """Validate and append a designer-made definition, returning its index."""
        definition = BlockDefinition(
            label=(label or "").strip(),
            kind=BlockKind.parse(kind),
            color=color,
            templates={lang: (text or "").strip() for lang, text in (templates or {}).items()},
            container_var=container_var or None,
        )
        return self.add(definition)

    def add(self, definition: BlockDefinition) -> int:
        errors = definition.validate()
        if errors:
            raise errors[0]
        self.definitions.append(definition)
        self.logger.info("Added palette definition %r (%s)", definition.label, definition.kind.value)
        return len(self.definitions) - 1

    def remove_definition(self, index: int) -> BlockDefinition:
        """Remove a definition by index. Placed blocks are unaffected."""
        definition = self.get(index)
        del self.definitions[index]
        self.logger.info("Removed palette definition %r", definition.label)
        return definition

    def get(self, index: int) -> BlockDefinition:
        if not 0 <= index < len(self.definitions):
            raise DefinitionError(f"No palette entry at index {index}", {'index': index})
        return self.definitions[index]

    def reset(self):
        """Restore the default definitions."""
        self.definitions = default_definitions()

    def replace(self, definitions: Iterable[BlockDefinition]):
        self.definitions = list(definitions)

    def search(self, query: str, limit: int = 50) -> List[BlockDefinition]:
        """Search definitions by label, kind and template text."""
        if not query.strip():
            return self.definitions[:limit]

        results = []
        query_lower = query.lower()
        for position, definition in enumerate(self.definitions):
            score = 0
            if definition.display_name.lower() == query_lower:
                score += 100
            elif query_lower in definition.label.lower():
                score += 50
            if definition.kind.value == query_lower:
                score += 30
            if any(query_lower in template.lower() for template in definition.templates.values()):
                score += 10
            if score > 0:
                results.append((-score, position, definition))

        results.sort(key=lambda item: (item[0], item[1]))
        return [definition for _, _, definition in results[:limit]]

    def filter_by_kind(self, kind: BlockKind) -> List[BlockDefinition]:
        """Filter definitions by block kind."""
        return [definition for definition in self.definitions if definition.kind == kind]

    def to_list(self) -> List[Dict[str, Any]]:
        return [definition.to_dict() for definition in self.definitions]

    def __len__(self) -> int:
        return len(self.definitions)
