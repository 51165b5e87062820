"""
Best-effort local type and constant resolution for C# expressions.

There is no compiler here: identifiers are resolved by walking the syntax
tree outward from the use site through lambda/method parameters, earlier
local declarations, catch/foreach/using variables, and the fields,
properties and primary-constructor parameters of the enclosing types.
Anything that cannot be decided locally resolves to None.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple, Union

from tree_sitter import Node

from source_loading.config import (
    MEMBER_ACCESS_NODES,
    PARAMETER_SCOPE_NODES,
    STATEMENT_CONTAINERS,
    STRING_LITERAL_NODES,
    TYPE_DECLARATION_NODES,
    WELL_KNOWN_CALL_TYPES,
    WELL_KNOWN_MEMBER_SUFFIXES,
    WELL_KNOWN_MEMBER_TYPES,
)
from source_loading.parser import node_text

logger = logging.getLogger(__name__)

Constant = Union[str, int, float, bool]

_MAX_DEPTH = 24
_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|U[0-9a-fA-F]{8}|x[0-9a-fA-F]{1,4}|.)", re.DOTALL)
_SIMPLE_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "0": "\0", "a": "\a", "b": "\b",
    "f": "\f", "v": "\v", "e": "\x1b", "\\": "\\", "\"": "\"", "'": "'",
}
_NUMERIC_TYPES = ("int", "long", "uint", "ulong", "float", "double", "decimal")
_COMPARISON_OPERATORS = {"==", "!=", "<", ">", "<=", ">=", "&&", "||", "is"}
_VARIABLE_STATEMENTS = {"using_statement", "for_statement", "fixed_statement"}


@dataclass(frozen=True)
class Binding:
    """What a name was declared as: type text and, for locals/fields, its initializer."""

    type_name: Optional[str]
    initializer: Optional[Node] = None
    is_const: bool = False


def unescape_string_literal(text: str) -> Optional[str]:
    """Value of a C# string literal as written in source.

    Handles regular, verbatim (``@"..."``) and raw (``\"\"\"...\"\"\"``)
    literals, with or without a ``u8`` suffix. Returns None for anything
    else.
    """
    if text.endswith("u8") or text.endswith("U8"):
        text = text[:-2]

    if text.startswith('@"') and text.endswith('"') and len(text) >= 3:
        return text[2:-1].replace('""', '"')

    if text.startswith('"""'):
        quotes = len(text) - len(text.lstrip('"'))
        if len(text) < quotes * 2:
            return None
        return _raw_string_value(text[quotes:-quotes])

    if text.startswith('"') and text.endswith('"') and len(text) >= 2:
        return _ESCAPE_RE.sub(_replace_escape, text[1:-1])
    return None


def _replace_escape(match) -> str:
    escape = match.group(1)
    head = escape[0]
    if head in ("u", "U", "x") and len(escape) > 1:
        return chr(int(escape[1:], 16))
    return _SIMPLE_ESCAPES.get(escape, escape)


def _raw_string_value(inner: str) -> str:
    if "\n" not in inner:
        return inner
    lines = inner.replace("\r\n", "\n").split("\n")
    # Content starts on the line after the opening quotes and ends before
    # the closing line, whose whitespace is stripped from every line.
    indent = lines[-1] if not lines[-1].strip() else ""
    body = lines[1:-1] if not lines[-1].strip() else lines[1:]
    return "\n".join(line[len(indent):] if line.startswith(indent) else line for line in body)


def _integer_value(text: str) -> Optional[int]:
    cleaned = text.replace("_", "").lower().rstrip("ul")
    try:
        if cleaned.startswith("0x"):
            return int(cleaned, 16)
        if cleaned.startswith("0b"):
            return int(cleaned, 2)
        return int(cleaned)
    except ValueError:
        return None


def _integer_type(text: str) -> str:
    lowered = text.lower()
    suffix = lowered[len(lowered.rstrip("ul")):]
    if suffix.endswith(("ul", "lu")):
        return "ulong"
    if suffix.endswith("l"):
        return "long"
    if suffix.endswith("u"):
        return "uint"
    return "int"


def _real_type(text: str) -> str:
    lowered = text.lower()
    if lowered.endswith("f"):
        return "float"
    if lowered.endswith("m"):
        return "decimal"
    return "double"


def normalize_type(text: str) -> str:
    """Collapse whitespace inside a type written in source."""
    return " ".join(text.split())


class TypeResolver:
    """Resolve declared types and constant values inside one syntax tree.

    Args:
        source: Source bytes the tree was parsed from.
        root: Root node of the tree.
    """

    def __init__(self, source: bytes, root: Node):
        self.source = source
        self.root = root
        self._type_index: Optional[Dict[str, List[Node]]] = None

    def text(self, node: Node) -> str:
        return node_text(node, self.source)

    # ------------------------------------------------------------------
    # Types
    # ------------------------------------------------------------------

    def type_of(self, node: Optional[Node], depth: int = 0) -> Optional[str]:
        """Best-effort static type of an expression, or None."""
        if node is None or depth > _MAX_DEPTH:
            return None
        kind = node.type

        if kind == "identifier":
            return self._binding_type(self.lookup(self.text(node), node), depth)
        if kind == "integer_literal":
            return _integer_type(self.text(node))
        if kind == "real_literal":
            return _real_type(self.text(node))
        if kind in STRING_LITERAL_NODES or kind == "interpolated_string_expression":
            return "string"
        if kind == "character_literal":
            return "char"
        if kind == "boolean_literal":
            return "bool"
        if kind in ("parenthesized_expression", "checked_expression"):
            return self.type_of(_first_named(node), depth + 1)
        if kind in ("cast_expression", "default_expression", "object_creation_expression",
                    "array_creation_expression", "stackalloc_array_creation_expression"):
            type_node = node.child_by_field_name("type")
            return normalize_type(self.text(type_node)) if type_node is not None else None
        if kind == "implicit_array_creation_expression":
            elements = list(self.initializer_elements(node))
            element_type = self.type_of(elements[0], depth + 1) if elements else None
            return f"{element_type}[]" if element_type else None
        if kind == "typeof_expression":
            return "Type"
        if kind in ("this_expression", "this"):
            return self.enclosing_type_name(node)
        if kind == "invocation_expression":
            return self._invocation_type(node, depth)
        if kind == "member_access_expression":
            return self._member_access_type(node, depth)
        if kind == "binary_expression":
            return self._binary_type(node, depth)
        if kind == "conditional_expression":
            return (
                self.type_of(node.child_by_field_name("consequence"), depth + 1)
                or self.type_of(node.child_by_field_name("alternative"), depth + 1)
            )
        if kind == "prefix_unary_expression":
            if self.text(node).startswith("!"):
                return "bool"
            return self.type_of(_first_named(node), depth + 1)
        if kind == "postfix_unary_expression":
            return self.type_of(_first_named(node), depth + 1)
        if kind in ("is_expression", "is_pattern_expression"):
            return "bool"
        return None

    def _binding_type(self, binding: Optional[Binding], depth: int) -> Optional[str]:
        if binding is None:
            return None
        if binding.type_name and binding.type_name != "var":
            return binding.type_name
        if binding.initializer is not None:
            return self.type_of(binding.initializer, depth + 1)
        return None

    def _invocation_type(self, node: Node, depth: int) -> Optional[str]:
        function = node.child_by_field_name("function")
        if function is None:
            return None
        function_text = self.text(function)
        if function_text == "nameof":
            return "string"
        if function_text in WELL_KNOWN_CALL_TYPES:
            return WELL_KNOWN_CALL_TYPES[function_text]
        if function.type == "member_access_expression":
            name = function.child_by_field_name("name")
            if name is not None and self.text(name) == "ToString":
                return "string"
        return None

    def _member_access_type(self, node: Node, depth: int) -> Optional[str]:
        full = self.text(node)
        if full in WELL_KNOWN_MEMBER_TYPES:
            return WELL_KNOWN_MEMBER_TYPES[full]

        expression = node.child_by_field_name("expression")
        name_node = node.child_by_field_name("name")
        if expression is None or name_node is None:
            return None
        name = self.text(name_node)

        if expression.type in ("this_expression", "this"):
            type_node = self.enclosing_type(node)
            if type_node is not None:
                return self._binding_type(self.member_binding(type_node, name), depth)
            return None

        if expression.type in ("identifier",) + tuple(MEMBER_ACCESS_NODES):
            owner = self.text(expression).rsplit(".", 1)[-1]
            if expression.type != "identifier" or self.lookup(owner, node) is None:
                for type_node in self.declared_types(owner):
                    if type_node.type == "enum_declaration":
                        return owner
                    binding = self.member_binding(type_node, name)
                    if binding is not None:
                        return self._binding_type(binding, depth)
                if owner == "LogLevel":
                    return "LogLevel"

        return WELL_KNOWN_MEMBER_SUFFIXES.get(name)

    def _binary_type(self, node: Node, depth: int) -> Optional[str]:
        operator = node.child_by_field_name("operator")
        op = operator.type if operator is not None else (node.children[1].type if node.child_count > 2 else "")
        if op in _COMPARISON_OPERATORS:
            return "bool"
        left = self.type_of(node.child_by_field_name("left"), depth + 1)
        right = self.type_of(node.child_by_field_name("right"), depth + 1)
        if op == "??":
            return (left or "").rstrip("?") or right
        if op == "+" and "string" in (left, right):
            return "string"
        if left and left == right and left in _NUMERIC_TYPES:
            return left
        return None

    # ------------------------------------------------------------------
    # Constants
    # ------------------------------------------------------------------

    def constant_of(self, node: Optional[Node], depth: int = 0) -> Optional[Constant]:
        """Compile-time constant value of an expression, or None."""
        if node is None or depth > _MAX_DEPTH:
            return None
        kind = node.type

        if kind in STRING_LITERAL_NODES:
            return unescape_string_literal(self.text(node))
        if kind == "integer_literal":
            return _integer_value(self.text(node))
        if kind == "real_literal":
            try:
                return float(self.text(node).replace("_", "").rstrip("fFdDmM"))
            except ValueError:
                return None
        if kind == "boolean_literal":
            return self.text(node) == "true"
        if kind == "parenthesized_expression":
            return self.constant_of(_first_named(node), depth + 1)
        if kind == "identifier":
            return self._binding_constant(self.lookup(self.text(node), node), depth)
        if kind == "member_access_expression":
            expression = node.child_by_field_name("expression")
            name_node = node.child_by_field_name("name")
            if expression is None or name_node is None:
                return None
            if self.text(node) == "string.Empty":
                return ""
            if expression.type in ("this_expression", "this"):
                type_nodes = [self.enclosing_type(node)]
            else:
                type_nodes = self.declared_types(self.text(expression).rsplit(".", 1)[-1])
            for type_node in type_nodes:
                if type_node is None:
                    continue
                binding = self.member_binding(type_node, self.text(name_node))
                if binding is not None:
                    return self._binding_constant(binding, depth)
            return None
        if kind == "invocation_expression":
            function = node.child_by_field_name("function")
            if function is not None and self.text(function) == "nameof":
                arguments = node.child_by_field_name("arguments")
                target = _first_named(arguments) if arguments is not None else None
                if target is not None:
                    return self.text(target).rsplit(".", 1)[-1]
            return None
        if kind == "binary_expression":
            operator = node.child_by_field_name("operator")
            if operator is None or operator.type != "+":
                return None
            left = self.constant_of(node.child_by_field_name("left"), depth + 1)
            right = self.constant_of(node.child_by_field_name("right"), depth + 1)
            if isinstance(left, str) and isinstance(right, str):
                return left + right
            return None
        return None

    def _binding_constant(self, binding: Optional[Binding], depth: int) -> Optional[Constant]:
        if binding is None or not binding.is_const or binding.initializer is None:
            return None
        return self.constant_of(binding.initializer, depth + 1)

    # ------------------------------------------------------------------
    # Name lookup
    # ------------------------------------------------------------------

    def lookup(self, name: str, node: Node) -> Optional[Binding]:
        """Find the declaration ``name`` refers to at ``node``."""
        current = node
        parent = node.parent
        while parent is not None:
            binding = self._binding_in(parent, current, name)
            if binding is not None:
                return binding
            current = parent
            parent = parent.parent
        return None

    def _binding_in(self, parent: Node, current: Node, name: str) -> Optional[Binding]:
        kind = parent.type

        if kind in STATEMENT_CONTAINERS:
            for statement in parent.named_children:
                if statement.start_byte >= current.start_byte:
                    break
                binding = self._statement_binding(statement, name)
                if binding is not None:
                    return binding
            return None

        if kind in PARAMETER_SCOPE_NODES:
            return self._parameter_binding(parent, name)

        if kind in _VARIABLE_STATEMENTS:
            for child in parent.named_children:
                if child.type == "variable_declaration":
                    binding = self._declaration_binding(child, name, False)
                    if binding is not None:
                        return binding
            return None

        if kind == "foreach_statement":
            left = parent.child_by_field_name("left")
            if left is not None and self.text(left) == name:
                type_node = parent.child_by_field_name("type")
                type_name = normalize_type(self.text(type_node)) if type_node is not None else None
                if type_name == "var":
                    collection = self.type_of(parent.child_by_field_name("right"))
                    type_name = collection[:-2] if collection and collection.endswith("[]") else None
                return Binding(type_name)
            return None

        if kind == "catch_clause":
            for child in parent.named_children:
                if child.type == "catch_declaration":
                    name_node = child.child_by_field_name("name")
                    type_node = child.child_by_field_name("type")
                    if name_node is not None and self.text(name_node) == name:
                        return Binding(normalize_type(self.text(type_node)) if type_node is not None else None)
            return None

        if kind in TYPE_DECLARATION_NODES:
            return self.member_binding(parent, name)

        return None

    def _statement_binding(self, statement: Node, name: str) -> Optional[Binding]:
        if statement.type == "global_statement":
            inner = _first_named(statement)
            return self._statement_binding(inner, name) if inner is not None else None
        if statement.type != "local_declaration_statement":
            return None
        is_const = _has_modifier(statement, "const", self.text)
        for child in statement.named_children:
            if child.type == "variable_declaration":
                return self._declaration_binding(child, name, is_const)
        return None

    def _declaration_binding(self, declaration: Node, name: str, is_const: bool) -> Optional[Binding]:
        type_node = declaration.child_by_field_name("type")
        type_name = normalize_type(self.text(type_node)) if type_node is not None else None
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name") or _first_of_type(declarator, "identifier")
            if name_node is None or self.text(name_node) != name:
                continue
            return Binding(type_name, _declarator_initializer(declarator), is_const)
        return None

    def _parameter_binding(self, owner: Node, name: str) -> Optional[Binding]:
        parameters = owner.child_by_field_name("parameters") or _first_of_type(owner, "parameter_list")
        if parameters is None:
            return None
        if parameters.type == "identifier":
            return Binding(None) if self.text(parameters) == name else None
        for parameter in parameters.named_children:
            if parameter.type == "identifier" and self.text(parameter) == name:
                return Binding(None)
            if parameter.type != "parameter":
                continue
            name_node = parameter.child_by_field_name("name")
            if name_node is None or self.text(name_node) != name:
                continue
            type_node = parameter.child_by_field_name("type")
            return Binding(normalize_type(self.text(type_node)) if type_node is not None else None)
        return None

    def member_binding(self, type_node: Node, name: str) -> Optional[Binding]:
        """Field, property or primary-constructor parameter ``name`` of a type."""
        for child in type_node.named_children:
            if child.type == "parameter_list":
                binding = self._parameter_binding(type_node, name)
                if binding is not None:
                    return binding

        body = type_node.child_by_field_name("body") or _first_of_type(type_node, "declaration_list")
        if body is None:
            return None
        for member in body.named_children:
            if member.type == "field_declaration":
                is_const = _has_modifier(member, "const", self.text)
                for child in member.named_children:
                    if child.type == "variable_declaration":
                        binding = self._declaration_binding(child, name, is_const)
                        if binding is not None:
                            return binding
            elif member.type == "property_declaration":
                name_node = member.child_by_field_name("name")
                type_node_ = member.child_by_field_name("type")
                if name_node is not None and self.text(name_node) == name:
                    return Binding(normalize_type(self.text(type_node_)) if type_node_ is not None else None)
        return None

    # ------------------------------------------------------------------
    # Types declared in this file
    # ------------------------------------------------------------------

    def declared_types(self, name: str) -> List[Node]:
        """Type declarations named ``name`` anywhere in this tree."""
        if self._type_index is None:
            self._type_index = {}
            for node in _walk(self.root):
                if node.type in TYPE_DECLARATION_NODES or node.type == "enum_declaration":
                    name_node = node.child_by_field_name("name")
                    if name_node is not None:
                        self._type_index.setdefault(self.text(name_node), []).append(node)
        return self._type_index.get(name, [])

    def enclosing_type(self, node: Node) -> Optional[Node]:
        parent = node.parent
        while parent is not None:
            if parent.type in TYPE_DECLARATION_NODES:
                return parent
            parent = parent.parent
        return None

    def enclosing_type_name(self, node: Node) -> Optional[str]:
        type_node = self.enclosing_type(node)
        if type_node is None:
            return None
        name_node = type_node.child_by_field_name("name")
        return self.text(name_node) if name_node is not None else None

    def initializer_elements(self, node: Node) -> Iterator[Node]:
        """Element expressions of an array, collection or object initializer."""
        if node.type == "collection_expression":
            yield from (c for c in node.named_children if c.type != "comment")
            return
        initializer = node.child_by_field_name("initializer") or _first_of_type(node, "initializer_expression")
        if initializer is None:
            return
        yield from (c for c in initializer.named_children if c.type != "comment")


def _walk(root: Node) -> Iterator[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.named_children))


def _first_named(node: Node) -> Optional[Node]:
    for child in node.named_children:
        if child.type != "comment":
            return child
    return None


def _first_of_type(node: Node, node_type: str) -> Optional[Node]:
    for child in node.named_children:
        if child.type == node_type:
            return child
    return None


def _declarator_initializer(declarator: Node) -> Optional[Node]:
    clause = _first_of_type(declarator, "equals_value_clause")
    if clause is not None:
        return _first_named(clause)
    seen_equals = False
    for child in declarator.children:
        if seen_equals and child.is_named:
            return child
        if child.type == "=":
            seen_equals = True
    return None


def _has_modifier(node: Node, keyword: str, text) -> bool:
    for child in node.children:
        if child.type == keyword:
            return True
        if child.type == "modifier" and text(child) == keyword:
            return True
    return False


def span_of(node: Node) -> Tuple[int, int]:
    return (node.start_byte, node.end_byte)
