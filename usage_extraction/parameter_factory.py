"""
Message parameter factory.

Fuses template placeholders with per-argument extraction results into the
final ``MessageParameter`` sequence of a record, and reports every
degradation it had to make as an ``ExtractionFailure``.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from usage_extraction.candidates import ArgumentInfo, FormalParameter, simple_type_name
from usage_extraction.config import (
    EXCEPTION_SUFFIX,
    EXCESS_ARGUMENT_PREFIX,
    LOG_LEVEL_TYPE,
    LOG_PROPERTIES_ATTRIBUTE,
    LOGGER_TYPE_NAMES,
    UNKNOWN_TYPE,
    ErrorHandlingOptions,
)
from usage_extraction.key_values import KeyValuePairExtractionService
from usage_extraction.models import (
    AnalyzerKind,
    MessageParameter,
    ParameterKind,
    SourceSpan,
    TemplatePlaceholder,
)
from usage_extraction.parameters import ParameterExtractionService, resolve_type_name
from usage_extraction.statistics import ExtractionFailure, FailureKind
from usage_extraction.template_parser import parse_template

logger = logging.getLogger(__name__)


@dataclass
class ParameterBuild:
    """Parameters of one call site plus the failures found building them."""

    parameters: List[MessageParameter] = field(default_factory=list)
    failures: List[ExtractionFailure] = field(default_factory=list)


class MessageParameterFactory:
    """Build parameter descriptors for the four call shapes.

    Args:
        options: Error-handling options of the run.
        parameter_service: Resolves argument types and default kinds.
        key_value_service: Expands scope state arguments.
    """

    def __init__(
        self,
        options: Optional[ErrorHandlingOptions] = None,
        parameter_service: Optional[ParameterExtractionService] = None,
        key_value_service: Optional[KeyValuePairExtractionService] = None,
    ):
        self.options = options or ErrorHandlingOptions()
        self.parameter_service = parameter_service or ParameterExtractionService()
        self.key_value_service = key_value_service or KeyValuePairExtractionService(
            self.parameter_service
        )

    def _placeholders(
        self,
        template: str,
        build: ParameterBuild,
        location: SourceSpan,
        analyzer: AnalyzerKind,
    ) -> Tuple[Tuple[TemplatePlaceholder, ...], bool]:
        """Distinct placeholders of the template and whether it parsed.

        An unparsed template has no placeholders; its arguments are kept but
        never reported as excess or partially correlated.
        """
        parsed = parse_template(template)
        if not parsed.parsed and self.options.use_enhanced_error_handling:
            build.failures.append(ExtractionFailure(
                kind=FailureKind.TEMPLATE_SYNTAX,
                location=location,
                message=f"Unparseable template {template!r}: {parsed.error}",
                analyzer=analyzer,
            ))
        return parsed.distinct_placeholders, parsed.parsed

    def from_arguments(
        self,
        template: Optional[str],
        arguments: Sequence[ArgumentInfo],
        location: SourceSpan,
        analyzer: AnalyzerKind,
    ) -> ParameterBuild:
        """Correlate message arguments with template placeholders by position.

        ``arguments`` must already exclude the arguments the analyzer consumed
        for other roles (level, event id, exception, the template itself).
        A repeated placeholder name consumes a single argument.
        """
        build = ParameterBuild()

        if template is None:
            for ordinal, argument in enumerate(arguments):
                extraction = self.parameter_service.extract(argument)
                kind = extraction.kind
                if kind is ParameterKind.NAMED:
                    kind = ParameterKind.POSITIONAL
                name = str(ordinal)
                build.parameters.append(MessageParameter(name=name, type=extraction.type, kind=kind))
                if not extraction.resolved:
                    build.failures.append(self._unresolved(argument.expression, location, analyzer))
            return build

        placeholders, parsed = self._placeholders(template, build, location, analyzer)
        missing = []
        for index, placeholder in enumerate(placeholders):
            if index >= len(arguments):
                missing.append(placeholder.name)
                build.parameters.append(MessageParameter(
                    name=placeholder.name,
                    type=UNKNOWN_TYPE,
                    kind=ParameterKind.DESTRUCTURED if placeholder.destructures else ParameterKind.POSITIONAL,
                ))
                continue

            argument = arguments[index]
            extraction = self.parameter_service.extract(argument)
            kind = extraction.kind
            if placeholder.destructures:
                kind = ParameterKind.DESTRUCTURED
            build.parameters.append(MessageParameter(name=placeholder.name, type=extraction.type, kind=kind))
            if not extraction.resolved:
                build.failures.append(self._unresolved(argument.expression, location, analyzer))

        if missing:
            build.failures.append(ExtractionFailure(
                kind=FailureKind.PARTIAL_CORRELATION,
                location=location,
                message=(
                    f"{len(arguments)} argument(s) for {len(placeholders)} placeholder(s); "
                    f"no argument for {', '.join(missing)}"
                ),
                analyzer=analyzer,
            ))

        extras = arguments[len(placeholders):]
        for offset, argument in enumerate(extras):
            extraction = self.parameter_service.extract(argument)
            build.parameters.append(MessageParameter(
                name=f"{EXCESS_ARGUMENT_PREFIX}{offset}",
                type=extraction.type,
                kind=ParameterKind.KEY_VALUE_MEMBER,
            ))
            if not extraction.resolved:
                build.failures.append(self._unresolved(argument.expression, location, analyzer))
        if extras and parsed:
            build.failures.append(ExtractionFailure(
                kind=FailureKind.EXCESS_ARGUMENTS,
                location=location,
                message=(
                    f"{len(arguments)} argument(s) for {len(placeholders)} placeholder(s); "
                    f"{len(extras)} extra argument(s) kept as {EXCESS_ARGUMENT_PREFIX}0.."
                ),
                analyzer=analyzer,
            ))
        return build

    def from_declaration(
        self,
        template: Optional[str],
        formal_parameters: Sequence[FormalParameter],
        location: SourceSpan,
        analyzer: AnalyzerKind = AnalyzerKind.ATTRIBUTE_DECLARED,
    ) -> ParameterBuild:
        """Match placeholders to declared formal parameters by name.

        Logger and level parameters never become message parameters; an
        exception parameter does only when the template names it.
        """
        build = ParameterBuild()
        candidates = [p for p in formal_parameters if not _is_infrastructure(p, template)]

        if template is None:
            for parameter in candidates:
                self._append_formal(build, parameter, parameter.name, ParameterKind.KEY_VALUE_MEMBER, location, analyzer)
            return build

        placeholders, parsed = self._placeholders(template, build, location, analyzer)
        by_name = {}
        for parameter in candidates:
            by_name.setdefault(_identifier(parameter.name).lower(), parameter)

        referenced = set()
        missing = []
        for placeholder in placeholders:
            parameter = by_name.get(placeholder.name.lower())
            kind = ParameterKind.DESTRUCTURED if placeholder.destructures else ParameterKind.NAMED
            if parameter is None:
                missing.append(placeholder.name)
                build.parameters.append(MessageParameter(name=placeholder.name, type=UNKNOWN_TYPE, kind=kind))
                continue
            referenced.add(id(parameter))
            self._append_formal(build, parameter, placeholder.name, kind, location, analyzer)

        if missing:
            build.failures.append(ExtractionFailure(
                kind=FailureKind.PARTIAL_CORRELATION,
                location=location,
                message=f"No method parameter for placeholder(s) {', '.join(missing)}",
                analyzer=analyzer,
            ))

        unreferenced = [p for p in candidates if id(p) not in referenced]
        for parameter in unreferenced:
            self._append_formal(
                build, parameter, _identifier(parameter.name), ParameterKind.KEY_VALUE_MEMBER, location, analyzer
            )
        # [LogProperties] parameters are logged through their properties
        stray = [p for p in unreferenced if p.attribute(LOG_PROPERTIES_ATTRIBUTE) is None]
        if stray and parsed:
            build.failures.append(ExtractionFailure(
                kind=FailureKind.EXCESS_ARGUMENTS,
                location=location,
                message=(
                    "Method parameter(s) not referenced by the template: "
                    f"{', '.join(_identifier(p.name) for p in stray)}"
                ),
                analyzer=analyzer,
            ))
        return build

    def from_type_arguments(
        self,
        template: Optional[str],
        type_arguments: Sequence[str],
        location: SourceSpan,
        analyzer: AnalyzerKind = AnalyzerKind.PROGRAMMATIC_DEFINE,
    ) -> ParameterBuild:
        """Pair generic type arguments with placeholders, kind always Positional."""
        build = ParameterBuild()
        placeholders, parsed = (
            self._placeholders(template, build, location, analyzer) if template is not None else ((), True)
        )

        count = max(len(placeholders), len(type_arguments))
        for index in range(count):
            name = placeholders[index].name if index < len(placeholders) else str(index)
            if index < len(type_arguments):
                type_name = resolve_type_name(type_arguments[index])
                if type_name is None:
                    build.failures.append(self._unresolved(type_arguments[index], location, analyzer))
            else:
                type_name = None
            build.parameters.append(MessageParameter(
                name=name,
                type=type_name or UNKNOWN_TYPE,
                kind=ParameterKind.POSITIONAL,
            ))

        if template is None or not parsed:
            return build
        if len(type_arguments) < len(placeholders):
            build.failures.append(ExtractionFailure(
                kind=FailureKind.PARTIAL_CORRELATION,
                location=location,
                message=f"{len(type_arguments)} type argument(s) for {len(placeholders)} placeholder(s)",
                analyzer=analyzer,
            ))
        elif len(type_arguments) > len(placeholders):
            build.failures.append(ExtractionFailure(
                kind=FailureKind.EXCESS_ARGUMENTS,
                location=location,
                message=f"{len(type_arguments)} type argument(s) for {len(placeholders)} placeholder(s)",
                analyzer=analyzer,
            ))
        return build

    def from_state(
        self,
        argument: ArgumentInfo,
        location: SourceSpan,
        analyzer: AnalyzerKind = AnalyzerKind.SCOPE_BEGIN,
    ) -> ParameterBuild:
        """Expand a scope state argument into KeyValueMember descriptors."""
        expansion = self.key_value_service.expand(argument)
        build = ParameterBuild(parameters=list(expansion.parameters))
        for name in expansion.unresolved:
            build.failures.append(ExtractionFailure(
                kind=FailureKind.UNRESOLVED_TYPE,
                location=location,
                message=f"Could not resolve type of state member '{name}'",
                analyzer=analyzer,
            ))
        return build

    def _append_formal(
        self,
        build: ParameterBuild,
        parameter: FormalParameter,
        name: str,
        kind: ParameterKind,
        location: SourceSpan,
        analyzer: AnalyzerKind,
    ) -> None:
        type_name = resolve_type_name(parameter.declared_type)
        if type_name is None:
            build.failures.append(self._unresolved(parameter.name, location, analyzer))
        build.parameters.append(MessageParameter(name=name, type=type_name or UNKNOWN_TYPE, kind=kind))

    @staticmethod
    def _unresolved(expression: str, location: SourceSpan, analyzer: AnalyzerKind) -> ExtractionFailure:
        return ExtractionFailure(
            kind=FailureKind.UNRESOLVED_TYPE,
            location=location,
            message=f"Could not resolve type of '{expression}'",
            analyzer=analyzer,
        )


def _identifier(name: str) -> str:
    return name[1:] if name.startswith("@") else name


def _is_infrastructure(parameter: FormalParameter, template: Optional[str]) -> bool:
    type_name = simple_type_name(parameter.declared_type)
    if type_name is None:
        return False
    if type_name in LOGGER_TYPE_NAMES or type_name == LOG_LEVEL_TYPE:
        return True
    if type_name.endswith(EXCEPTION_SUFFIX):
        if template is None:
            return True
        names = {p.name.lower() for p in parse_template(template).placeholders}
        return _identifier(parameter.name).lower() not in names
    return False
