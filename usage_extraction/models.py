"""
Data models for the structured-logging usage inventory.

Every model is an immutable snapshot made of primitives: nothing here
refers back to a syntax tree or any other loader-owned object.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class AnalyzerKind(Enum):
    """Call shape that produced a usage record."""
    DIRECT_CALL = "DirectCall"
    ATTRIBUTE_DECLARED = "AttributeDeclared"
    PROGRAMMATIC_DEFINE = "ProgrammaticDefine"
    SCOPE_BEGIN = "ScopeBegin"


class ParameterKind(Enum):
    """How a message parameter was extracted."""
    NAMED = "Named"
    POSITIONAL = "Positional"
    DESTRUCTURED = "Destructured"
    KEY_VALUE_MEMBER = "KeyValueMember"


class LogLevel(Enum):
    """Logging-facade severity levels."""
    TRACE = "Trace"
    DEBUG = "Debug"
    INFORMATION = "Information"
    WARNING = "Warning"
    ERROR = "Error"
    CRITICAL = "Critical"
    NONE = "None"


@dataclass(frozen=True)
class SourceSpan:
    """File path plus a 1-indexed line/column span.

    Attributes:
        file_path: Path of the compilation unit, relative to the scanned root
        start_line: 1-indexed first line
        start_column: 1-indexed first column
        end_line: 1-indexed last line
        end_column: 1-indexed column just past the last character
    """

    file_path: str
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @property
    def key(self) -> str:
        """Stable unique key of the call site."""
        return (
            f"{self.file_path}:{self.start_line}:{self.start_column}"
            f"-{self.end_line}:{self.end_column}"
        )

    def sort_key(self) -> Tuple[str, int, int, int, int]:
        return (
            self.file_path,
            self.start_line,
            self.start_column,
            self.end_line,
            self.end_column,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "start_line": self.start_line,
            "start_column": self.start_column,
            "end_line": self.end_line,
            "end_column": self.end_column,
        }


@dataclass(frozen=True)
class TemplatePlaceholder:
    """A named hole inside a message template.

    ``capture_marker`` holds the structured-capture marker written in front
    of the name (``@`` destructures, ``$`` stringifies), without it being
    part of ``name``.
    """

    name: str
    ordinal: int
    alignment: Optional[int] = None
    format_specifier: Optional[str] = None
    capture_marker: Optional[str] = None

    @property
    def destructures(self) -> bool:
        return self.capture_marker == "@"


@dataclass(frozen=True)
class MessageParameter:
    """One normalized parameter of a logging call site."""

    name: str
    type: str
    kind: ParameterKind

    def __post_init__(self):
        if not self.name:
            raise ValueError("MessageParameter name must not be empty")

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type, "kind": self.kind.value}


@dataclass(frozen=True)
class EventIdInfo:
    """Event id attached to a logging call.

    A constant event id fills ``id``/``name``; anything computed at runtime
    is kept as the source expression in ``reference``.
    """

    id: Optional[int] = None
    name: Optional[str] = None
    reference: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "reference": self.reference}


@dataclass(frozen=True)
class TagProviderInfo:
    """``[TagProvider]`` applied next to ``[LogProperties]`` on a parameter.

    Type and method come from the ``typeof(...)`` and ``nameof(...)``
    arguments as written; they are not checked against the provider type.
    """

    provider_type: Optional[str] = None
    provider_method: Optional[str] = None
    omit_reference_name: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_type": self.provider_type,
            "provider_method": self.provider_method,
            "omit_reference_name": self.omit_reference_name,
        }


@dataclass(frozen=True)
class LogPropertiesParameter:
    """A declared logging-method parameter marked ``[LogProperties]``."""

    name: str
    type: str
    omit_reference_name: bool = False
    skip_null_properties: bool = False
    transitive: bool = False
    tag_provider: Optional[TagProviderInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "omit_reference_name": self.omit_reference_name,
            "skip_null_properties": self.skip_null_properties,
            "transitive": self.transitive,
            "tag_provider": self.tag_provider.to_dict() if self.tag_provider else None,
        }


@dataclass(frozen=True)
class UsageRecord:
    """Normalized record of one recognized logging call site.

    Attributes:
        analyzer_kind: Which call shape was recognized
        location: Span of the call site; its key is unique per record
        containing_symbol: Dotted path of the enclosing type/method
        method_name: Invoked or declared method name
        log_level: Resolved level, or None when computed dynamically
        raw_template: Message template, when one exists
        parameters: Ordered message parameters (placeholder order when templated)
        scope_chain: Keys of enclosing ScopeBegin records, outermost first
        event_id: Event id, when the call site supplies one
        declaring_type: Dotted path of the type declaring an AttributeDeclared method
        log_properties: Parameters of a declared method marked [LogProperties]
        invocations: Call sites of a declared method, sorted by location
    """

    analyzer_kind: AnalyzerKind
    location: SourceSpan
    containing_symbol: str
    method_name: str
    log_level: Optional[LogLevel] = None
    raw_template: Optional[str] = None
    parameters: Tuple[MessageParameter, ...] = ()
    scope_chain: Tuple[str, ...] = ()
    event_id: Optional[EventIdInfo] = None
    declaring_type: Optional[str] = None
    log_properties: Tuple[LogPropertiesParameter, ...] = ()
    invocations: Tuple[SourceSpan, ...] = ()

    @property
    def key(self) -> str:
        return self.location.key

    def to_dict(self) -> Dict[str, Any]:
        """Convert the record to a dictionary suitable for JSON serialization."""
        return {
            "key": self.key,
            "analyzer_kind": self.analyzer_kind.value,
            "location": self.location.to_dict(),
            "containing_symbol": self.containing_symbol,
            "method_name": self.method_name,
            "log_level": self.log_level.value if self.log_level else None,
            "raw_template": self.raw_template,
            "parameters": [parameter.to_dict() for parameter in self.parameters],
            "scope_chain": list(self.scope_chain),
            "event_id": self.event_id.to_dict() if self.event_id else None,
            "declaring_type": self.declaring_type,
            "log_properties": [parameter.to_dict() for parameter in self.log_properties],
            "invocations": [span.to_dict() for span in self.invocations],
        }


@dataclass
class UsageModel:
    """Aggregated output of one extraction run.

    Consumers should treat ``analyzer_kind`` values as open-ended: new
    analyzer kinds may appear without notice.
    """

    records: Tuple[UsageRecord, ...] = ()
    statistics: Any = None
    cancelled: bool = False
    units_total: int = 0
    _by_key: Dict[str, UsageRecord] = field(default=None, init=False, repr=False)

    def find(self, key: str) -> Optional[UsageRecord]:
        """Look a record up by its location key."""
        if self._by_key is None:
            self._by_key = {record.key: record for record in self.records}
        return self._by_key.get(key)

    def records_of(self, kind: AnalyzerKind) -> Tuple[UsageRecord, ...]:
        return tuple(record for record in self.records if record.analyzer_kind is kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": [record.to_dict() for record in self.records],
            "statistics": self.statistics.to_dict() if self.statistics else None,
            "cancelled": self.cancelled,
            "units_total": self.units_total,
        }
