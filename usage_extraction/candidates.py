"""
Input contract handed over by the source-loading subsystem.

A compilation unit is a list of call-site candidates in source order. Each
candidate is a self-contained snapshot of what the loader could learn
about one invocation or one attribute-decorated method declaration,
including the best-effort semantic type of every argument.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from usage_extraction.models import SourceSpan

# (start_byte, end_byte) of a syntax region
RegionKey = Tuple[int, int]
ConstantValue = Union[str, int, float, bool]

_GENERIC_ARGS_RE = re.compile(r"<.*>$")


class CandidateShape(Enum):
    """Syntactic form of a candidate."""
    INVOCATION = "Invocation"
    METHOD_DECLARATION = "MethodDeclaration"


class ArgumentShape(Enum):
    """Structural shape of an argument expression."""
    LITERAL = "Literal"
    IDENTIFIER = "Identifier"
    MEMBER_ACCESS = "MemberAccess"
    ANONYMOUS_OBJECT = "AnonymousObject"
    PAIR_SEQUENCE = "PairSequence"
    ARRAY = "Array"
    OBJECT_CREATION = "ObjectCreation"
    INTERPOLATED = "Interpolated"
    LAMBDA = "Lambda"
    INVOCATION = "Invocation"
    OTHER = "Other"


@dataclass(frozen=True)
class ArgumentMember:
    """A named member of an anonymous object or one explicit key/value pair.

    ``name`` is None when a pair key is not a compile-time constant; the key
    source text is then kept in ``key_expression``.
    """

    name: Optional[str]
    value: "ArgumentInfo"
    key_expression: Optional[str] = None


@dataclass(frozen=True)
class ArgumentInfo:
    """Snapshot of one argument expression.

    Attributes:
        expression: Source text of the argument value
        shape: Structural shape of the value
        declared_type: Resolved type name, or None when it could not be resolved
        constant_value: Compile-time constant value, when known
        label: Named-argument label (``name: value``), if written
        capture_marker: True when the source marked the argument for structured capture
        elements: Element snapshots of an array or collection value
        members: Members of an anonymous object, or pairs of a pair sequence
    """

    expression: str
    shape: ArgumentShape
    declared_type: Optional[str] = None
    constant_value: Optional[ConstantValue] = None
    label: Optional[str] = None
    capture_marker: bool = False
    elements: Tuple["ArgumentInfo", ...] = ()
    members: Tuple[ArgumentMember, ...] = ()

    @property
    def is_string_constant(self) -> bool:
        return isinstance(self.constant_value, str)


@dataclass(frozen=True)
class AttributeInfo:
    """An attribute applied to a declaration, with its arguments."""

    name: str
    arguments: Tuple[ArgumentInfo, ...] = ()

    @property
    def short_name(self) -> str:
        name = self.name.rsplit(".", 1)[-1]
        if name.endswith("Attribute") and name != "Attribute":
            name = name[: -len("Attribute")]
        return name


@dataclass(frozen=True)
class FormalParameter:
    """A formal parameter of a declared method."""

    name: str
    declared_type: Optional[str] = None
    modifiers: Tuple[str, ...] = ()
    attributes: Tuple[AttributeInfo, ...] = ()

    def attribute(self, short_name: str) -> Optional[AttributeInfo]:
        return next((a for a in self.attributes if a.short_name == short_name), None)


@dataclass(frozen=True)
class CallCandidate:
    """A call site considered for analysis before any analyzer claimed it.

    Attributes:
        shape: Invocation or method declaration
        method_name: Invoked or declared method name
        location: Span of the invocation or declaration
        containing_symbol: Dotted path of the enclosing namespace/type/member
        receiver: Source text of the receiver expression, if any
        receiver_type: Resolved receiver type, if known
        type_arguments: Generic type arguments written at the call
        arguments: Argument snapshots in call order
        attributes: Attributes of a declaration
        formal_parameters: Formal parameters of a declaration
        modifiers: Modifiers of a declaration (``partial``, ``static``, ...)
        lexical_path: Regions of every enclosing syntax node, outermost first
        governed_region: Region a scope opened by this call stays open for
    """

    shape: CandidateShape
    method_name: str
    location: SourceSpan
    containing_symbol: str
    receiver: Optional[str] = None
    receiver_type: Optional[str] = None
    type_arguments: Tuple[str, ...] = ()
    arguments: Tuple[ArgumentInfo, ...] = ()
    attributes: Tuple[AttributeInfo, ...] = ()
    formal_parameters: Tuple[FormalParameter, ...] = ()
    modifiers: Tuple[str, ...] = ()
    lexical_path: Tuple[RegionKey, ...] = ()
    governed_region: Optional[RegionKey] = None


@dataclass(frozen=True)
class CompilationUnit:
    """One source file with its candidates, in source order."""

    path: str
    candidates: Tuple[CallCandidate, ...] = ()
    parse_error_count: int = 0


def simple_type_name(type_name: Optional[str]) -> Optional[str]:
    """Reduce a type display string to its bare simple name.

    ``global::Microsoft.Extensions.Logging.ILogger<Foo>?`` becomes ``ILogger``.
    """
    if not type_name:
        return None
    name = type_name.strip()
    if name.startswith("global::"):
        name = name[len("global::"):]
    name = name.rstrip("?")
    name = _GENERIC_ARGS_RE.sub("", name)
    return name.rsplit(".", 1)[-1] or None
