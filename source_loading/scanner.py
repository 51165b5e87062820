"""
Call-site scanner.

Walks one parsed C# file in source order and snapshots every invocation
expression and every attribute-decorated method declaration into a
``CallCandidate``. Nothing tree-sitter owned survives in the snapshots.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from tree_sitter import Node, Tree

from source_loading.config import (
    ARRAY_NODES,
    ATTRIBUTE_LIST_NODE,
    INVOCATION_NODE,
    LAMBDA_NODES,
    MEMBER_ACCESS_NODES,
    MEMBER_DECLARATION_NODES,
    METHOD_DECLARATION_NODE,
    MODIFIER_KEYWORDS,
    NAMESPACE_NODES,
    OBJECT_CREATION_NODES,
    PAIR_CONTAINER_SUFFIXES,
    SCOPE_REGION_NODES,
    STRING_LITERAL_NODES,
    TYPE_DECLARATION_NODES,
    USING_STATEMENT_NODE,
)
from source_loading.symbols import TypeResolver, normalize_type, span_of
from usage_extraction.candidates import (
    ArgumentInfo,
    ArgumentMember,
    ArgumentShape,
    AttributeInfo,
    CallCandidate,
    CandidateShape,
    FormalParameter,
    RegionKey,
    simple_type_name,
)
from usage_extraction.models import SourceSpan

logger = logging.getLogger(__name__)

_LITERAL_NODES = STRING_LITERAL_NODES | {
    "integer_literal",
    "real_literal",
    "character_literal",
    "boolean_literal",
    "null_literal",
}
_PARAMETER_MODIFIERS = {"this", "ref", "out", "in", "params", "scoped", "readonly"}
_LABEL_NODES = {"name_colon", "name_equals"}
_SKIPPED_TOKENS = {"new", "{", "}"}


class CallSiteScanner:
    """Build call-site candidates for one file.

    Args:
        tree: Parsed tree of the file.
        source: Bytes the tree was parsed from.
        file_path: Path recorded in every location (relative to the scan root).

    Example:
        >>> tree = parse_bytes(source)
        >>> candidates = CallSiteScanner(tree, source, "src/Worker.cs").scan()
    """

    def __init__(self, tree: Tree, source: bytes, file_path: str):
        self.tree = tree
        self.source = source
        self.file_path = file_path
        self.resolver = TypeResolver(source, tree.root_node)
        self._file_namespace = self._file_scoped_namespace()

    def text(self, node: Node) -> str:
        return self.resolver.text(node)

    def scan(self) -> List[CallCandidate]:
        """Return all candidates of the file in source order."""
        candidates: List[CallCandidate] = []
        ancestors: List[Node] = []
        stack: List[Tuple[Node, int]] = [(self.tree.root_node, 0)]

        while stack:
            node, depth = stack.pop()
            del ancestors[depth:]

            if node.type == INVOCATION_NODE:
                candidate = self._invocation_candidate(node, ancestors)
                if candidate is not None:
                    candidates.append(candidate)
            elif node.type == METHOD_DECLARATION_NODE and any(
                child.type == ATTRIBUTE_LIST_NODE for child in node.named_children
            ):
                candidates.append(self._declaration_candidate(node, ancestors))

            ancestors.append(node)
            for child in reversed(node.named_children):
                stack.append((child, depth + 1))

        logger.debug("Found %d candidate(s) in %s", len(candidates), self.file_path)
        return candidates

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    def _invocation_candidate(self, node: Node, ancestors: Sequence[Node]) -> Optional[CallCandidate]:
        function = node.child_by_field_name("function")
        if function is None:
            return None

        receiver_node = None
        name_node = function
        if function.type in MEMBER_ACCESS_NODES:
            receiver_node = function.child_by_field_name("expression")
            name_node = function.child_by_field_name("name")
        elif function.type == "member_binding_expression":
            name_node = function.child_by_field_name("name") or _last_named(function)
            receiver_node = self._conditional_receiver(ancestors)
        elif function.type == "conditional_access_expression":
            receiver_node = function.child_by_field_name("condition") or _first_named(function)
            binding = _last_named(function)
            if binding is None or binding.type != "member_binding_expression":
                return None
            name_node = binding.child_by_field_name("name") or _last_named(binding)
        if name_node is None:
            return None

        method_name, type_arguments = self._split_generic(name_node)
        arguments_node = node.child_by_field_name("arguments")
        arguments = ()
        if arguments_node is not None:
            arguments = tuple(
                self.describe(value, label)
                for label, value in (self._split_argument(a) for a in arguments_node.named_children if a.type == "argument")
                if value is not None
            )

        return CallCandidate(
            shape=CandidateShape.INVOCATION,
            method_name=method_name,
            location=self._location(node),
            containing_symbol=self._containing_symbol(ancestors),
            receiver=self.text(receiver_node) if receiver_node is not None else None,
            receiver_type=self.resolver.type_of(receiver_node) if receiver_node is not None else None,
            type_arguments=type_arguments,
            arguments=arguments,
            lexical_path=tuple(span_of(a) for a in ancestors),
            governed_region=self._governed_region(node, ancestors),
        )

    def _declaration_candidate(self, node: Node, ancestors: Sequence[Node]) -> CallCandidate:
        name_node = node.child_by_field_name("name")
        method_name = self.text(name_node) if name_node is not None else ""

        formal_parameters = []
        parameters = node.child_by_field_name("parameters")
        if parameters is not None:
            for parameter in parameters.named_children:
                if parameter.type != "parameter":
                    continue
                parameter_name = parameter.child_by_field_name("name")
                parameter_type = parameter.child_by_field_name("type")
                formal_parameters.append(FormalParameter(
                    name=self.text(parameter_name) if parameter_name is not None else "",
                    declared_type=normalize_type(self.text(parameter_type)) if parameter_type is not None else None,
                    modifiers=self._modifiers(parameter, _PARAMETER_MODIFIERS),
                    attributes=self._attributes(parameter),
                ))

        return CallCandidate(
            shape=CandidateShape.METHOD_DECLARATION,
            method_name=method_name,
            location=self._location(node),
            containing_symbol=self._containing_symbol(list(ancestors) + [node]),
            attributes=self._attributes(node),
            formal_parameters=tuple(formal_parameters),
            modifiers=self._modifiers(node, MODIFIER_KEYWORDS),
            lexical_path=tuple(span_of(a) for a in ancestors),
        )

    def _attributes(self, node: Node) -> Tuple[AttributeInfo, ...]:
        attributes = []
        for attribute_list in node.named_children:
            if attribute_list.type != ATTRIBUTE_LIST_NODE:
                continue
            for attribute in attribute_list.named_children:
                if attribute.type == "attribute":
                    attributes.append(self._attribute(attribute))
        return tuple(attributes)

    def _attribute(self, node: Node) -> AttributeInfo:
        name_node = node.child_by_field_name("name") or _first_named(node)
        arguments = []
        for child in node.named_children:
            if child.type != "attribute_argument_list":
                continue
            for argument in child.named_children:
                if argument.type != "attribute_argument":
                    continue
                label, value = self._split_argument(argument)
                if value is not None:
                    arguments.append(self.describe(value, label))
        return AttributeInfo(name=self.text(name_node) if name_node is not None else "", arguments=tuple(arguments))

    # ------------------------------------------------------------------
    # Arguments
    # ------------------------------------------------------------------

    def _split_argument(self, argument: Node) -> Tuple[Optional[str], Optional[Node]]:
        """Return (label, value expression) of an argument node."""
        named = [c for c in argument.named_children if c.type != "comment"]
        if not named:
            return None, None
        value = named[-1]
        label = None

        for child in named:
            if child.type in _LABEL_NODES:
                identifier = _first_named(child)
                label = self.text(identifier) if identifier is not None else None
        if label is None and len(named) > 1:
            name_node = argument.child_by_field_name("name")
            if name_node is not None and span_of(name_node) != span_of(value):
                label = self.text(name_node)
            elif named[0].type == "identifier" and any(c.type in (":", "=") for c in argument.children):
                label = self.text(named[0])
        return label, value

    def describe(self, node: Node, label: Optional[str] = None) -> ArgumentInfo:
        """Snapshot one argument expression."""
        shape = self._shape_of(node)
        elements: Tuple[ArgumentInfo, ...] = ()
        members: Tuple[ArgumentMember, ...] = ()

        if shape is ArgumentShape.ARRAY:
            elements = tuple(self.describe(e) for e in self.resolver.initializer_elements(node))
        elif shape is ArgumentShape.OBJECT_CREATION:
            elements = tuple(self.describe(v) for _, v in self._call_arguments(node) if v is not None)
        elif shape is ArgumentShape.ANONYMOUS_OBJECT:
            members = self._anonymous_members(node)
        elif shape is ArgumentShape.PAIR_SEQUENCE:
            members = self._pairs(node)

        return ArgumentInfo(
            expression=self.text(node),
            shape=shape,
            declared_type=self.resolver.type_of(node),
            constant_value=self.resolver.constant_of(node),
            label=label,
            elements=elements,
            members=members,
        )

    def _shape_of(self, node: Node) -> ArgumentShape:
        kind = node.type
        if kind in _LITERAL_NODES:
            return ArgumentShape.LITERAL
        if kind == "identifier":
            return ArgumentShape.IDENTIFIER
        if kind in MEMBER_ACCESS_NODES:
            return ArgumentShape.MEMBER_ACCESS
        if kind == "anonymous_object_creation_expression":
            return ArgumentShape.ANONYMOUS_OBJECT
        if kind == "interpolated_string_expression":
            return ArgumentShape.INTERPOLATED
        if kind in LAMBDA_NODES:
            return ArgumentShape.LAMBDA
        if kind == INVOCATION_NODE:
            return ArgumentShape.INVOCATION
        if kind in OBJECT_CREATION_NODES:
            return ArgumentShape.PAIR_SEQUENCE if self._is_pair_container(node) else ArgumentShape.OBJECT_CREATION
        if kind in ARRAY_NODES:
            return ArgumentShape.PAIR_SEQUENCE if self._is_pair_container(node) else ArgumentShape.ARRAY
        return ArgumentShape.OTHER

    def _is_pair_container(self, node: Node) -> bool:
        type_node = node.child_by_field_name("type")
        type_text = normalize_type(self.text(type_node)) if type_node is not None else ""
        simple = simple_type_name(type_text) or ""

        if node.type in OBJECT_CREATION_NODES:
            if simple == "KeyValuePair":
                return len(self._call_arguments(node)) == 2
            has_initializer = next(self.resolver.initializer_elements(node), None) is not None
            return has_initializer and (simple.endswith(PAIR_CONTAINER_SUFFIXES) or "KeyValuePair" in type_text)

        if "KeyValuePair" in type_text:
            return True
        elements = list(self.resolver.initializer_elements(node))
        return bool(elements) and all(self._is_explicit_pair(e) for e in elements)

    def _is_explicit_pair(self, node: Node) -> bool:
        if node.type == "object_creation_expression":
            type_node = node.child_by_field_name("type")
            return type_node is not None and simple_type_name(self.text(type_node)) == "KeyValuePair"
        if node.type == INVOCATION_NODE:
            function = node.child_by_field_name("function")
            return function is not None and self.text(function).endswith("KeyValuePair.Create")
        return False

    def _pairs(self, node: Node) -> Tuple[ArgumentMember, ...]:
        if node.type in OBJECT_CREATION_NODES and simple_type_name(
            self.text(node.child_by_field_name("type")) if node.child_by_field_name("type") is not None else ""
        ) == "KeyValuePair":
            elements = [node]
        else:
            elements = list(self.resolver.initializer_elements(node))

        members = []
        for element in elements:
            pair = self._pair_of(element)
            if pair is None:
                logger.debug("Unrecognized pair element %r in %s", self.text(element), self.file_path)
                continue
            key, value = pair
            key_value = self.resolver.constant_of(key)
            if isinstance(key_value, str) and key_value:
                members.append(ArgumentMember(name=key_value, value=self.describe(value)))
            else:
                members.append(ArgumentMember(name=None, value=self.describe(value), key_expression=self.text(key)))
        return tuple(members)

    def _pair_of(self, element: Node) -> Optional[Tuple[Node, Node]]:
        if element.type in OBJECT_CREATION_NODES or element.type == INVOCATION_NODE:
            values = [v for _, v in self._call_arguments(element) if v is not None]
            return (values[0], values[1]) if len(values) == 2 else None
        if element.type == "initializer_expression":
            values = [c for c in element.named_children if c.type != "comment"]
            return (values[0], values[1]) if len(values) == 2 else None
        if element.type == "tuple_expression":
            values = [self._split_argument(a)[1] for a in element.named_children if a.type == "argument"]
            return (values[0], values[1]) if len(values) == 2 and None not in values else None
        if element.type == "assignment_expression":
            left = element.child_by_field_name("left")
            right = element.child_by_field_name("right")
            if left is None or right is None:
                return None
            key = self._bracketed_key(left)
            return (key, right) if key is not None else None
        return None

    def _bracketed_key(self, node: Node) -> Optional[Node]:
        stack = [node]
        while stack:
            current = stack.pop()
            if current.type == "argument":
                return self._split_argument(current)[1]
            if current.type == "collection_expression":
                return _first_named(current)
            stack.extend(reversed(current.named_children))
        return None

    def _call_arguments(self, node: Node) -> List[Tuple[Optional[str], Optional[Node]]]:
        arguments = node.child_by_field_name("arguments")
        if arguments is None:
            for child in node.named_children:
                if child.type == "argument_list":
                    arguments = child
                    break
        if arguments is None:
            return []
        return [self._split_argument(a) for a in arguments.named_children if a.type == "argument"]

    def _anonymous_members(self, node: Node) -> Tuple[ArgumentMember, ...]:
        groups: List[List[Node]] = [[]]
        for child in node.children:
            if child.type == "anonymous_object_member_declarator":
                groups[-1].extend(child.children)
            elif child.type == ",":
                groups.append([])
            elif child.type not in _SKIPPED_TOKENS and child.type != "comment":
                groups[-1].append(child)

        members = []
        for group in groups:
            named = [c for c in group if c.is_named]
            if not named:
                continue
            value = named[-1]
            label = None
            for child in named:
                if child.type == "name_equals":
                    identifier = _first_named(child)
                    label = self.text(identifier) if identifier is not None else None
            if label is None and len(named) > 1 and any(c.type == "=" for c in group):
                label = self.text(named[0])
            if label is None:
                label = self._projection_name(value)
            members.append(ArgumentMember(name=label, value=self.describe(value)))
        return tuple(members)

    def _projection_name(self, value: Node) -> str:
        if value.type in MEMBER_ACCESS_NODES:
            name = value.child_by_field_name("name")
            if name is not None:
                return self.text(name)
        return self.text(value).rsplit(".", 1)[-1]

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def _split_generic(self, name_node: Node) -> Tuple[str, Tuple[str, ...]]:
        if name_node.type != "generic_name":
            return self.text(name_node), ()
        identifier = _first_named(name_node)
        type_arguments: Tuple[str, ...] = ()
        for child in name_node.named_children:
            if child.type == "type_argument_list":
                type_arguments = tuple(
                    normalize_type(self.text(t)) for t in child.named_children if t.type != "comment"
                )
        return (self.text(identifier) if identifier is not None else self.text(name_node)), type_arguments

    def _conditional_receiver(self, ancestors: Sequence[Node]) -> Optional[Node]:
        for ancestor in reversed(ancestors):
            if ancestor.type == "conditional_access_expression":
                return ancestor.child_by_field_name("condition") or _first_named(ancestor)
        return None

    def _governed_region(self, node: Node, ancestors: Sequence[Node]) -> Optional[RegionKey]:
        child = node
        for ancestor in reversed(ancestors):
            if ancestor.type == USING_STATEMENT_NODE:
                body = ancestor.child_by_field_name("body") or _last_named(ancestor)
                if body is not None and not (body.start_byte <= child.start_byte and child.end_byte <= body.end_byte):
                    return span_of(body)
            if ancestor.type in SCOPE_REGION_NODES:
                return span_of(ancestor)
            child = ancestor
        return None

    def _containing_symbol(self, path: Sequence[Node]) -> str:
        parts = []
        has_namespace = False
        for node in path:
            if node.type in NAMESPACE_NODES:
                has_namespace = True
            elif node.type not in TYPE_DECLARATION_NODES and node.type not in MEMBER_DECLARATION_NODES:
                continue
            name_node = node.child_by_field_name("name")
            if name_node is not None:
                parts.append(self.text(name_node))
        if not has_namespace and self._file_namespace:
            parts.insert(0, self._file_namespace)
        return ".".join(parts)

    def _file_scoped_namespace(self) -> Optional[str]:
        for child in self.tree.root_node.named_children:
            if child.type == "file_scoped_namespace_declaration":
                name_node = child.child_by_field_name("name")
                return self.text(name_node) if name_node is not None else None
        return None

    def _modifiers(self, node: Node, keywords) -> Tuple[str, ...]:
        modifiers = []
        for child in node.children:
            if child.type in ("modifier", "parameter_modifier"):
                modifiers.append(self.text(child))
            elif not child.is_named and child.type in keywords:
                modifiers.append(child.type)
        return tuple(modifiers)

    def _location(self, node: Node) -> SourceSpan:
        return SourceSpan(
            file_path=self.file_path,
            start_line=node.start_point[0] + 1,
            start_column=node.start_point[1] + 1,
            end_line=node.end_point[0] + 1,
            end_column=node.end_point[1] + 1,
        )


def _first_named(node: Node) -> Optional[Node]:
    for child in node.named_children:
        if child.type != "comment":
            return child
    return None


def _last_named(node: Node) -> Optional[Node]:
    named = [c for c in node.named_children if c.type != "comment"]
    return named[-1] if named else None


def scan_tree(tree: Tree, source: bytes, file_path: str) -> List[CallCandidate]:
    """Convenience wrapper around ``CallSiteScanner``."""
    return CallSiteScanner(tree, source, file_path).scan()
