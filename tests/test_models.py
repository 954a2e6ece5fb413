"""
Unit tests for core data models.
"""

import pytest
from hypothesis import given, strategies as st

from block_editor_core.exceptions import DefinitionError
from block_editor_core.models import (
    BlockDefinition, BlockInstance, BlockKind, InputSlot, ParentRef,
    infer_container_var, label_input_names, parse_label
)


class TestBlockKind:
    """Test cases for BlockKind."""

    def test_body_kinds(self):
        """Only containers and functions hold a nested body."""
        assert BlockKind.CONTAINER.has_body
        assert BlockKind.FUNCTION.has_body
        assert not BlockKind.COMMAND.has_body
        assert not BlockKind.REPORTER.has_body

    def test_input_kinds(self):
        """Only reporters and booleans fit an input slot."""
        assert BlockKind.REPORTER.fits_input
        assert BlockKind.BOOLEAN.fits_input
        assert not BlockKind.COMMAND.fits_input
        assert not BlockKind.CONTAINER.fits_input

    def test_parse_is_case_insensitive(self):
        assert BlockKind.parse(" Reporter ") is BlockKind.REPORTER
        assert BlockKind.parse(BlockKind.FUNCTION) is BlockKind.FUNCTION

    def test_parse_unknown_kind(self):
        """Unknown kinds raise DefinitionError."""
        with pytest.raises(DefinitionError):
            BlockKind.parse("hat")


class TestLabels:
    """Test cases for label parsing."""

    def test_parse_label_parts(self):
        assert parse_label("repeat %times times") == ["repeat ", "%times", " times"]

    def test_input_names_in_order(self):
        assert label_input_names("%a + %b") == ["a", "b"]

    def test_duplicate_placeholders_collapse(self):
        """A placeholder used twice yields one input."""
        assert label_input_names("%x and %x") == ["x"]

    def test_label_without_placeholders(self):
        assert label_input_names("forever") == []

    @given(st.lists(st.from_regex(r'[a-z]{1,6}', fullmatch=True), min_size=1, max_size=5, unique=True))
    def test_every_placeholder_becomes_an_input(self, names):
        """Property: each distinct placeholder in a label is an input name."""
        label = " then ".join('%' + name for name in names)
        assert label_input_names(label) == names


class TestContainerVar:
    """Test cases for container placeholder inference."""

    def test_explicit_wins(self):
        assert infer_container_var({'javascript': "%body"}, "inner") == "inner"

    def test_first_conventional_placeholder(self):
        templates = {'javascript': "if (%condition) {\n%then\n} else {\n%else\n}"}
        assert infer_container_var(templates) == "then"

    def test_defaults_to_body(self):
        assert infer_container_var({'javascript': "loop()"}) == "body"


class TestBlockDefinition:
    """Test cases for BlockDefinition."""

    def test_display_name(self):
        """Placeholders are shown as blanks in the palette."""
        definition = BlockDefinition(label="repeat %times times", kind=BlockKind.CONTAINER)
        assert definition.display_name == "repeat _ times"

    def test_resolved_container_var_only_for_body_kinds(self):
        command = BlockDefinition(label="say %text", templates={'javascript': "%body"})
        container = BlockDefinition(label="repeat", kind=BlockKind.CONTAINER)
        assert command.resolved_container_var is None
        assert container.resolved_container_var == "body"

    def test_validate_requires_label(self):
        errors = BlockDefinition(label="   ").validate()
        assert len(errors) == 1
        assert str(errors[0]) == "Label required"

    def test_validate_rejects_non_string_templates(self):
        errors = BlockDefinition(label="x", templates={'javascript': 42}).validate()
        assert errors

    def test_dict_round_trip(self):
        definition = BlockDefinition(
            label="if %c then else", kind=BlockKind.CONTAINER, color="#123456",
            templates={'javascript': "if (%c) {%then} else {%else}"}, container_var="then"
        )
        assert BlockDefinition.from_dict(definition.to_dict()) == definition

    def test_from_dict_accepts_type_alias(self):
        definition = BlockDefinition.from_dict({'label': "%a > %b", 'type': "boolean"})
        assert definition.kind is BlockKind.BOOLEAN

    def test_from_dict_rejects_missing_label(self):
        with pytest.raises(DefinitionError):
            BlockDefinition.from_dict({'kind': "command"})


class TestBlockInstance:
    """Test cases for BlockInstance."""

    def test_from_definition(self):
        """Instances copy the definition and get one empty slot per placeholder."""
        definition = BlockDefinition(label="%a + %b", kind=BlockKind.REPORTER,
                                     templates={'javascript': "(%a + %b)"})
        block = BlockInstance.from_definition(definition, (5, 6))

        assert block.label == "%a + %b"
        assert block.kind is BlockKind.REPORTER
        assert block.position == (5.0, 6.0)
        assert set(block.inputs) == {"a", "b"}
        assert all(slot == InputSlot() for slot in block.inputs.values())
        assert block.is_root
        assert block.container_var is None

    def test_explicit_id(self):
        block = BlockInstance.from_definition(BlockDefinition(label="x"), block_id="fixed")
        assert block.id == "fixed"

    def test_generated_ids_are_unique(self):
        definition = BlockDefinition(label="x")
        assert BlockInstance.from_definition(definition).id != BlockInstance.from_definition(definition).id

    def test_templates_are_copied(self):
        definition = BlockDefinition(label="x", templates={'javascript': "x();"})
        block = BlockInstance.from_definition(definition)
        block.templates['javascript'] = "y();"
        assert definition.templates['javascript'] == "x();"

    def test_input_children_and_free_inputs(self):
        block = BlockInstance.from_definition(BlockDefinition(label="%a + %b", kind=BlockKind.REPORTER))
        block.inputs['a'].child_id = "child"
        assert block.input_children() == ["child"]
        assert block.free_inputs() == ["b"]

    def test_parent_refs(self):
        assert ParentRef.none().is_none
        assert ParentRef.in_container("c").is_container
        ref = ParentRef.in_input("p", "a")
        assert ref.is_input and ref.parent_id == "p" and ref.varname == "a"
