"""
Shared fixtures for the block editor tests.
"""

import pytest

from block_editor_core.composition import CompositionGraph
from block_editor_core.geometry import EstimatedLayout
from block_editor_core.models import BlockDefinition, BlockKind
from block_editor_core.registry import BlockRegistry


SAY = BlockDefinition(
    label="say %text",
    kind=BlockKind.COMMAND,
    templates={'javascript': "console.log(%text);", 'python': "print(%text)"},
)
REPEAT = BlockDefinition(
    label="repeat %times times",
    kind=BlockKind.CONTAINER,
    templates={
        'javascript': "for (let i = 0; i < %times; i++) {\n%body\n}",
        'python': "for i in range(%times):\n    %body",
    },
)
PLUS = BlockDefinition(
    label="%a + %b",
    kind=BlockKind.REPORTER,
    templates={'javascript': "(%a + %b)", 'python': "(%a + %b)"},
)
DEFINE = BlockDefinition(
    label="define %name",
    kind=BlockKind.FUNCTION,
    templates={'javascript': "%name = %body", 'python': "%name = %body"},
)
CALL = BlockDefinition(
    label="call %name",
    kind=BlockKind.COMMAND,
    templates={'javascript': "%name", 'python': "%name"},
)


@pytest.fixture
def registry():
    return BlockRegistry()


@pytest.fixture
def layout(registry):
    return EstimatedLayout(registry)


@pytest.fixture
def graph(registry, layout):
    return CompositionGraph(registry, layout)
