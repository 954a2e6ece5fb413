"""
Code Generator for producing source text from composed blocks.

Every block carries one template per target language. Generation substitutes input
values (literal text or the generated code of an embedded block) for ``%name``
placeholders and the generated code of the nested stack for the block's body
placeholder. Blocks whose template reads ``name = %body`` define a function: their
body is hoisted into the run's function table and later call sites whose text is
exactly ``name`` are expanded inline.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import BlockInstance
from .registry import BlockRegistry


DEFAULT_LANGUAGE = 'javascript'

# Placeholders replaced by the nested body when a block names no body placeholder
FALLBACK_BODY_PLACEHOLDERS = re.compile(r'%(?:body|then|else)(?!\w)')

DECLARATION_QUOTES = re.compile(
    r'(\b(?:local|var|let|const|int|float|string|auto|char|double|bool|def|function)\s+)"([^"]+)"(\s*=)'
)
ASSIGNMENT_QUOTES = re.compile(r'=(\s*)"([^"]+)"')


@dataclass(frozen=True)
class LanguageSpec:
    """Nesting conventions of a target language."""
    name: str
    indentation_sensitive: bool = False
    indent_unit: str = "    "


LANGUAGES: Dict[str, LanguageSpec] = {
    'javascript': LanguageSpec('javascript'),
    'python': LanguageSpec('python', indentation_sensitive=True),
    'c': LanguageSpec('c'),
}


@dataclass
class HoistedFunction:
    """Body text of a function definition and the indent its lines were generated at."""
    body: str
    indent: str = ""


@dataclass
class GenerationContext:
    """State of one generation run. Create a fresh one per run."""
    language: str
    functions: Dict[str, HoistedFunction] = field(default_factory=dict)


def substitute_placeholder(template: str, name: str, value: str) -> str:
    """Replace every %name not followed by another word character."""
    pattern = re.compile('%' + re.escape(name) + r'(?!\w)')
    return pattern.sub(lambda _: value, template)


def strip_assignment_quotes(code: str) -> str:
    """Drop quotes around names in declaration positions and values after '='."""
    code = DECLARATION_QUOTES.sub(lambda m: m.group(1) + m.group(2) + m.group(3), code)
    return ASSIGNMENT_QUOTES.sub(lambda m: '=' + m.group(1) + m.group(2), code)


class CodeGenerator:
    """Produces source text from the blocks of a registry."""

    def __init__(self, registry: BlockRegistry, default_language: str = DEFAULT_LANGUAGE,
                 languages: Optional[Dict[str, LanguageSpec]] = None):
        self.registry = registry
        self.default_language = default_language
        self.languages = dict(languages or LANGUAGES)

    def language_spec(self, language: str) -> LanguageSpec:
        return self.languages.get(language) or LanguageSpec(language)

    def available_languages(self) -> List[str]:
        return list(self.languages)

    def select_template(self, block: BlockInstance, language: str) -> str:
        """Template for a language, falling back to the default language, then ''."""
        template = block.templates.get(language)
        if not template:
            template = block.templates.get(self.default_language)
        return template or ""

    def generate(self, language: Optional[str] = None) -> str:
        """Generate code for every root block in creation order."""
        language = language or self.default_language
        context = GenerationContext(language)
        parts = [self.generate_block(block.id, language, context) for block in self.registry.roots()]
        return '\n'.join(part for part in parts if part)

    def generate_block(self, block_id: str, language: str,
                       context: Optional[GenerationContext] = None, indent: str = "") -> str:
        """Generate code for one block and everything composed into it."""
        block = self.registry.get(block_id)
        if block is None:
            return ""
        if context is None:
            context = GenerationContext(language)

        spec = self.language_spec(language)
        child_indent = indent + spec.indent_unit if spec.indentation_sensitive else indent

        template = self.select_template(block, language)
        if spec.indentation_sensitive and indent:
            template = template.replace('\n', '\n' + indent)

        # Inputs: embedded block code or literal text
        text = template
        for varname, slot in block.inputs.items():
            child = self.registry.get(slot.child_id)
            if child is not None:
                value = self.generate_block(child.id, language, context, child_indent)
            else:
                value = slot.literal
            text = substitute_placeholder(text, varname, value)

        # Nested stack
        nested = [self.generate_block(child_id, language, context, child_indent)
                  for child_id in block.nested_children if child_id in self.registry]
        separator = '\n' + child_indent if spec.indentation_sensitive else '\n'
        inner = separator.join(code for code in nested if code)

        if block.container_var:
            definition = re.match(r'^\s*(\w+)\s*=\s*%' + re.escape(block.container_var) + r'\s*$', text)
            if definition:
                context.functions[definition.group(1)] = HoistedFunction(inner, child_indent)
                return ""
            text = substitute_placeholder(text, block.container_var, inner)
        else:
            text = FALLBACK_BODY_PLACEHOLDERS.sub(lambda _: inner, text)

        hoisted = context.functions.get(text.strip())
        if hoisted is not None:
            return self._reindent(hoisted, indent, spec)

        return strip_assignment_quotes(text)

    def _reindent(self, hoisted: HoistedFunction, indent: str, spec: LanguageSpec) -> str:
        # Function bodies are generated one level inside the definition
        if not spec.indentation_sensitive or hoisted.indent == indent:
            return hoisted.body
        return hoisted.body.replace('\n' + hoisted.indent, '\n' + indent)
