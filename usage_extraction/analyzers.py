"""
Call-site analyzers.

Each analyzer recognizes one logging call shape. Every analyzer is tried
against every candidate; a shape mismatch is reported as a skip reason,
not an error. Problems found inside a recognized call site become
``ExtractionFailure`` entries next to a best-effort record.

Registry order (see ``default_analyzers``): DirectCall, AttributeDeclared,
ProgrammaticDefine, ScopeBegin. The shapes are disjoint, so at most one
analyzer may claim a candidate.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from usage_extraction.candidates import (
    ArgumentInfo,
    ArgumentShape,
    AttributeInfo,
    CallCandidate,
    CandidateShape,
    simple_type_name,
)
from usage_extraction.config import (
    BEGIN_SCOPE_METHOD,
    CORE_LOG_METHOD,
    DEFINE_METHODS,
    DEFINER_TYPE,
    EVENT_ID_TYPE,
    EXCEPTION_SUFFIX,
    LEVEL_METHODS,
    LOG_LEVEL_TYPE,
    LOG_PROPERTIES_ATTRIBUTE,
    LOGGER_TYPE_NAMES,
    LOGGING_ATTRIBUTE,
    MESSAGE_LABELS,
    PARAMS_ARRAY_TYPES,
    TAG_PROVIDER_ATTRIBUTE,
    UNKNOWN_TYPE,
)
from usage_extraction.invocations import declaring_type_of
from usage_extraction.models import (
    AnalyzerKind,
    EventIdInfo,
    LogLevel,
    LogPropertiesParameter,
    TagProviderInfo,
    UsageRecord,
)
from usage_extraction.parameter_factory import MessageParameterFactory, ParameterBuild
from usage_extraction.scopes import ScopeAnalysisService
from usage_extraction.statistics import ExtractionFailure, FailureKind

logger = logging.getLogger(__name__)

_LEVELS_BY_NAME = {level.value: level for level in LogLevel}
_INTEGER_TYPES = {"int", "short", "byte", "sbyte", "ushort"}
_TYPEOF_RE = re.compile(r"^typeof\s*\(\s*(.+?)\s*\)$")


@dataclass
class AnalysisContext:
    """Per-unit collaborators shared by the analyzers."""

    factory: MessageParameterFactory
    scopes: ScopeAnalysisService = field(default_factory=ScopeAnalysisService)


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of one ``try_analyze`` call: a record, or a skip reason."""

    record: Optional[UsageRecord] = None
    skip_reason: Optional[str] = None
    failures: Tuple[ExtractionFailure, ...] = ()

    @property
    def matched(self) -> bool:
        return self.record is not None

    @classmethod
    def skip(cls, reason: str) -> "AnalysisOutcome":
        return cls(skip_reason=reason)


class CallSiteAnalyzer:
    """Base class of the analyzers; subclasses set ``kind``."""

    kind: AnalyzerKind

    def try_analyze(self, candidate: CallCandidate, context: AnalysisContext) -> AnalysisOutcome:
        raise NotImplementedError

    def _failure(self, candidate: CallCandidate, kind: FailureKind, message: str) -> ExtractionFailure:
        return ExtractionFailure(kind=kind, location=candidate.location, message=message, analyzer=self.kind)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------

def _is_logger_receiver(candidate: CallCandidate) -> Optional[bool]:
    """True for a logger-typed receiver, None when the type is unknown."""
    if candidate.receiver is None:
        return False
    type_name = simple_type_name(candidate.receiver_type)
    if type_name is None:
        return None
    return type_name in LOGGER_TYPE_NAMES


def _is_level_argument(argument: ArgumentInfo) -> bool:
    if simple_type_name(argument.declared_type) == LOG_LEVEL_TYPE:
        return True
    head, _, tail = argument.expression.rpartition(".")
    return bool(head) and head.rsplit(".", 1)[-1] == LOG_LEVEL_TYPE and tail in _LEVELS_BY_NAME


def resolve_level(argument: ArgumentInfo) -> Optional[LogLevel]:
    """Constant ``LogLevel.X`` member access to a level; None when dynamic."""
    if argument.shape is not ArgumentShape.MEMBER_ACCESS:
        return None
    head, _, tail = argument.expression.rpartition(".")
    if head.rsplit(".", 1)[-1] != LOG_LEVEL_TYPE:
        return None
    return _LEVELS_BY_NAME.get(tail)


def _is_event_id_argument(argument: ArgumentInfo) -> bool:
    return simple_type_name(argument.declared_type) == EVENT_ID_TYPE


def _named_flags(attribute: AttributeInfo) -> Dict[str, bool]:
    """Boolean constants passed by name (``Transitive = true``)."""
    return {
        argument.label: argument.constant_value
        for argument in attribute.arguments
        if argument.label and isinstance(argument.constant_value, bool)
    }


def _tag_provider(attribute: AttributeInfo) -> TagProviderInfo:
    """Read ``[TagProvider(typeof(T), nameof(T.Method), OmitReferenceName = ...)]``."""
    positional = [a for a in attribute.arguments if not a.label]
    provider_type = None
    provider_method = None
    if positional:
        match = _TYPEOF_RE.match(positional[0].expression)
        if match is not None:
            provider_type = simple_type_name(match.group(1))
    if len(positional) > 1 and positional[1].is_string_constant:
        provider_method = positional[1].constant_value
    return TagProviderInfo(
        provider_type=provider_type,
        provider_method=provider_method,
        omit_reference_name=_named_flags(attribute).get("OmitReferenceName", False),
    )


def _is_integer(argument: ArgumentInfo) -> bool:
    if isinstance(argument.constant_value, bool):
        return False
    return isinstance(argument.constant_value, int) or argument.declared_type in _INTEGER_TYPES


def _is_exception_argument(argument: ArgumentInfo) -> bool:
    type_name = simple_type_name(argument.declared_type)
    return bool(type_name) and type_name.endswith(EXCEPTION_SUFFIX)


def _is_string_argument(argument: ArgumentInfo) -> bool:
    return argument.is_string_constant or argument.declared_type in ("string", "String", "System.String")


def event_id_from(argument: ArgumentInfo) -> EventIdInfo:
    """Event id of an ``EventId``-typed or integer argument."""
    if _is_integer(argument) and isinstance(argument.constant_value, int):
        return EventIdInfo(id=argument.constant_value)
    if argument.shape is ArgumentShape.OBJECT_CREATION and argument.elements:
        id_arg = argument.elements[0]
        name_arg = argument.elements[1] if len(argument.elements) > 1 else None
        if isinstance(id_arg.constant_value, int) and not isinstance(id_arg.constant_value, bool):
            name = name_arg.constant_value if name_arg is not None and name_arg.is_string_constant else None
            if name_arg is None or name is not None:
                return EventIdInfo(id=id_arg.constant_value, name=name)
    return EventIdInfo(reference=argument.expression)


def expand_params_array(arguments: Sequence[ArgumentInfo]) -> Tuple[ArgumentInfo, ...]:
    """Replace a single explicit ``object[]`` argument by its elements."""
    if len(arguments) != 1:
        return tuple(arguments)
    argument = arguments[0]
    if argument.shape is ArgumentShape.ARRAY and (argument.declared_type or "").replace(" ", "") in PARAMS_ARRAY_TYPES:
        return argument.elements
    return tuple(arguments)


# ---------------------------------------------------------------------------
# Analyzers
# ---------------------------------------------------------------------------

class DirectCallAnalyzer(CallSiteAnalyzer):
    """``logger.LogInformation(...)`` and ``logger.Log(level, ...)`` calls."""

    kind = AnalyzerKind.DIRECT_CALL

    def try_analyze(self, candidate: CallCandidate, context: AnalysisContext) -> AnalysisOutcome:
        if candidate.shape is not CandidateShape.INVOCATION:
            return AnalysisOutcome.skip("not an invocation")

        name = candidate.method_name
        if name not in LEVEL_METHODS and name != CORE_LOG_METHOD:
            return AnalysisOutcome.skip(f"method {name} is not a direct log method")

        is_logger = _is_logger_receiver(candidate)
        arguments = list(candidate.arguments)
        if is_logger is False:
            return AnalysisOutcome.skip("receiver is not a logger")
        if is_logger is None and name == CORE_LOG_METHOD and not (arguments and _is_level_argument(arguments[0])):
            return AnalysisOutcome.skip("untyped receiver without a level argument")

        index = 0
        level = LEVEL_METHODS.get(name)
        if name == CORE_LOG_METHOD:
            if not arguments:
                return AnalysisOutcome.skip("Log call without arguments")
            level = resolve_level(arguments[0])
            if level is None:
                logger.debug("Dynamic level at %s", candidate.location.key)
            index = 1

        event_id = None
        if index < len(arguments) and (
            _is_event_id_argument(arguments[index])
            or (_is_integer(arguments[index]) and index + 1 < len(arguments))
        ):
            event_id = event_id_from(arguments[index])
            index += 1

        if index < len(arguments) and _is_exception_argument(arguments[index]):
            index += 1

        message_index = self._message_index(arguments, index)
        template = None
        message_arguments: Tuple[ArgumentInfo, ...] = ()
        if message_index is not None:
            message = arguments[message_index]
            if message.is_string_constant:
                template = message.constant_value
            message_arguments = expand_params_array(arguments[message_index + 1:])

        build = context.factory.from_arguments(template, message_arguments, candidate.location, self.kind)
        record = UsageRecord(
            analyzer_kind=self.kind,
            location=candidate.location,
            containing_symbol=candidate.containing_symbol,
            method_name=name,
            log_level=level,
            raw_template=template,
            parameters=tuple(build.parameters),
            scope_chain=context.scopes.current_chain(),
            event_id=event_id,
        )
        return AnalysisOutcome(record=record, failures=tuple(build.failures))

    @staticmethod
    def _message_index(arguments: List[ArgumentInfo], start: int) -> Optional[int]:
        for offset, argument in enumerate(arguments):
            if argument.label in MESSAGE_LABELS:
                return offset
        for offset in range(start, len(arguments)):
            if _is_string_argument(arguments[offset]):
                return offset
        return start if start < len(arguments) else None


class AttributeDeclaredAnalyzer(CallSiteAnalyzer):
    """Partial methods decorated with the logging-message attribute."""

    kind = AnalyzerKind.ATTRIBUTE_DECLARED

    def try_analyze(self, candidate: CallCandidate, context: AnalysisContext) -> AnalysisOutcome:
        if candidate.shape is not CandidateShape.METHOD_DECLARATION:
            return AnalysisOutcome.skip("not a method declaration")

        attribute = next((a for a in candidate.attributes if a.short_name == LOGGING_ATTRIBUTE), None)
        if attribute is None:
            return AnalysisOutcome.skip("no logging attribute")

        failures: List[ExtractionFailure] = []
        if "partial" not in candidate.modifiers:
            failures.append(self._failure(
                candidate, FailureKind.MALFORMED_DECLARATION,
                f"Method {candidate.method_name} carries {attribute.name} but is not partial",
            ))

        level, template, event_id, problems = self._read_attribute(attribute)
        for problem in problems:
            failures.append(self._failure(candidate, FailureKind.MALFORMED_DECLARATION, problem))

        build = context.factory.from_declaration(
            template, candidate.formal_parameters, candidate.location, self.kind
        )
        failures.extend(build.failures)
        record = UsageRecord(
            analyzer_kind=self.kind,
            location=candidate.location,
            containing_symbol=candidate.containing_symbol,
            method_name=candidate.method_name,
            log_level=level,
            raw_template=template,
            parameters=tuple(build.parameters),
            scope_chain=context.scopes.current_chain(),
            event_id=event_id,
            declaring_type=declaring_type_of(candidate.containing_symbol),
            log_properties=self._log_properties(candidate),
        )
        return AnalysisOutcome(record=record, failures=tuple(failures))

    @staticmethod
    def _log_properties(candidate: CallCandidate) -> Tuple[LogPropertiesParameter, ...]:
        """Parameters marked ``[LogProperties]``, with their options and tag provider."""
        found = []
        for parameter in candidate.formal_parameters:
            attribute = parameter.attribute(LOG_PROPERTIES_ATTRIBUTE)
            if attribute is None:
                continue
            options = _named_flags(attribute)
            provider = parameter.attribute(TAG_PROVIDER_ATTRIBUTE)
            found.append(LogPropertiesParameter(
                name=parameter.name,
                type=simple_type_name(parameter.declared_type) or UNKNOWN_TYPE,
                omit_reference_name=options.get("OmitReferenceName", False),
                skip_null_properties=options.get("SkipNullProperties", False),
                transitive=options.get("Transitive", False),
                tag_provider=_tag_provider(provider) if provider is not None else None,
            ))
        return tuple(found)

    @staticmethod
    def _read_attribute(attribute: AttributeInfo):
        """Return (level, template, event id, problems) of the attribute.

        Accepts the named form (``EventId = 1, Level = LogLevel.Debug,
        Message = "..."``) and the positional forms (message),
        (level, message) and (event id, level, message).
        """
        level = None
        template = None
        event_id_value = None
        event_name = None
        event_reference = None
        problems = []

        positional = [a for a in attribute.arguments if not a.label]
        named = {a.label: a for a in attribute.arguments if a.label}

        slots = {1: ("message",), 2: ("level", "message"), 3: ("event", "level", "message")}
        if len(positional) > 3:
            problems.append(f"{attribute.name} takes at most 3 positional arguments, got {len(positional)}")
            positional = positional[:3]
        roles = dict(zip(slots.get(len(positional), ()), positional))
        for label, argument in named.items():
            role = {"Message": "message", "Level": "level", "EventId": "event", "EventName": "name"}.get(label)
            if role is None:
                continue
            if role in roles:
                problems.append(f"{label} given both positionally and by name")
            roles[role] = argument

        message = roles.get("message")
        if message is not None:
            if message.is_string_constant:
                template = message.constant_value
            else:
                problems.append(f"Message {message.expression!r} is not a constant string")

        level_arg = roles.get("level")
        if level_arg is not None:
            level = resolve_level(level_arg)
            if level is None:
                problems.append(f"Level {level_arg.expression!r} is not a LogLevel constant")

        event_arg = roles.get("event")
        if event_arg is not None:
            if _is_integer(event_arg) and isinstance(event_arg.constant_value, int):
                event_id_value = event_arg.constant_value
            elif event_arg.shape is ArgumentShape.LITERAL:
                problems.append(f"EventId {event_arg.expression!r} is not an integer")
            else:
                event_reference = event_arg.expression

        name_arg = roles.get("name")
        if name_arg is not None:
            if name_arg.is_string_constant:
                event_name = name_arg.constant_value
            else:
                problems.append(f"EventName {name_arg.expression!r} is not a constant string")

        event_id = None
        if event_id_value is not None or event_name is not None or event_reference is not None:
            event_id = EventIdInfo(id=event_id_value, name=event_name, reference=event_reference)
        return level, template, event_id, problems


class ProgrammaticDefineAnalyzer(CallSiteAnalyzer):
    """``LoggerMessage.Define<T1, ...>(level, eventId, template)`` and ``DefineScope``."""

    kind = AnalyzerKind.PROGRAMMATIC_DEFINE

    def try_analyze(self, candidate: CallCandidate, context: AnalysisContext) -> AnalysisOutcome:
        if candidate.shape is not CandidateShape.INVOCATION:
            return AnalysisOutcome.skip("not an invocation")
        if candidate.method_name not in DEFINE_METHODS:
            return AnalysisOutcome.skip(f"method {candidate.method_name} is not a definer")
        if candidate.receiver is None or candidate.receiver.rsplit(".", 1)[-1] != DEFINER_TYPE:
            return AnalysisOutcome.skip("receiver is not the static definer")

        failures: List[ExtractionFailure] = []
        arguments = list(candidate.arguments)
        level = None
        event_id = None

        if candidate.method_name == "DefineScope":
            template_index = 0
        else:
            template_index = 2
            if arguments:
                level = resolve_level(arguments[0])
                if level is None:
                    failures.append(self._failure(
                        candidate, FailureKind.MALFORMED_DECLARATION,
                        f"Level {arguments[0].expression!r} is not a LogLevel constant",
                    ))
            if len(arguments) > 1:
                event_id = event_id_from(arguments[1])

        labeled = next((i for i, a in enumerate(arguments) if a.label in MESSAGE_LABELS), None)
        if labeled is not None:
            template_index = labeled

        template = None
        if template_index >= len(arguments):
            failures.append(self._failure(
                candidate, FailureKind.MALFORMED_DECLARATION,
                f"{candidate.method_name} call with {len(arguments)} argument(s) has no template",
            ))
        elif arguments[template_index].is_string_constant:
            template = arguments[template_index].constant_value
        else:
            failures.append(self._failure(
                candidate, FailureKind.MALFORMED_DECLARATION,
                f"Template {arguments[template_index].expression!r} is not a constant string",
            ))

        build = context.factory.from_type_arguments(
            template, candidate.type_arguments, candidate.location, self.kind
        )
        failures.extend(build.failures)
        record = UsageRecord(
            analyzer_kind=self.kind,
            location=candidate.location,
            containing_symbol=candidate.containing_symbol,
            method_name=candidate.method_name,
            log_level=level,
            raw_template=template,
            parameters=tuple(build.parameters),
            scope_chain=context.scopes.current_chain(),
            event_id=event_id,
        )
        return AnalysisOutcome(record=record, failures=tuple(failures))


class ScopeBeginAnalyzer(CallSiteAnalyzer):
    """``logger.BeginScope(state)`` calls; opens a scope for the governed region."""

    kind = AnalyzerKind.SCOPE_BEGIN

    def try_analyze(self, candidate: CallCandidate, context: AnalysisContext) -> AnalysisOutcome:
        if candidate.shape is not CandidateShape.INVOCATION:
            return AnalysisOutcome.skip("not an invocation")
        if candidate.method_name != BEGIN_SCOPE_METHOD:
            return AnalysisOutcome.skip(f"method {candidate.method_name} is not a scope method")
        if _is_logger_receiver(candidate) is False:
            return AnalysisOutcome.skip("receiver is not a logger")

        arguments = list(candidate.arguments)
        template = None
        if not arguments:
            build = ParameterBuild(failures=[self._failure(
                candidate, FailureKind.MALFORMED_DECLARATION, "BeginScope call without a state argument",
            )])
        elif arguments[0].is_string_constant:
            template = arguments[0].constant_value
            build = context.factory.from_arguments(
                template, expand_params_array(arguments[1:]), candidate.location, self.kind
            )
        elif _is_string_argument(arguments[0]) and len(arguments) > 1:
            build = context.factory.from_arguments(
                None, expand_params_array(arguments[1:]), candidate.location, self.kind
            )
        else:
            build = context.factory.from_state(arguments[0], candidate.location, self.kind)

        record = UsageRecord(
            analyzer_kind=self.kind,
            location=candidate.location,
            containing_symbol=candidate.containing_symbol,
            method_name=candidate.method_name,
            raw_template=template,
            parameters=tuple(build.parameters),
            scope_chain=context.scopes.current_chain(),
        )
        context.scopes.push(candidate.governed_region, record.key, record.parameters)
        return AnalysisOutcome(record=record, failures=tuple(build.failures))


def default_analyzers() -> Tuple[CallSiteAnalyzer, ...]:
    """The built-in analyzers in their fixed dispatch order."""
    return (
        DirectCallAnalyzer(),
        AttributeDeclaredAnalyzer(),
        ProgrammaticDefineAnalyzer(),
        ScopeBeginAnalyzer(),
    )
