"""
Key/value pair extraction service.

Expands the single "state" argument of a scope call into named
descriptors. Two shapes expand: an explicit sequence of name/value pairs
and an anonymous object. Everything else collapses into one ``State``
descriptor typed as the argument itself.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

from usage_extraction.candidates import ArgumentInfo, ArgumentMember, ArgumentShape
from usage_extraction.config import STATE_PLACEHOLDER_NAME
from usage_extraction.models import MessageParameter, ParameterKind
from usage_extraction.parameters import ParameterExtractionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyValueExpansion:
    """Descriptors produced from one state argument.

    Attributes:
        parameters: KeyValueMember descriptors in source order
        unresolved: Names of descriptors whose value type is unknown
        expanded: False when the fallback ``State`` descriptor was used
    """

    parameters: Tuple[MessageParameter, ...]
    unresolved: Tuple[str, ...] = ()
    expanded: bool = True


class KeyValuePairExtractionService:
    """Expand state arguments into KeyValueMember descriptors."""

    def __init__(self, parameter_service: ParameterExtractionService = None):
        self.parameter_service = parameter_service or ParameterExtractionService()

    def expand(self, argument: ArgumentInfo) -> KeyValueExpansion:
        if argument.shape in (ArgumentShape.PAIR_SEQUENCE, ArgumentShape.ANONYMOUS_OBJECT):
            if argument.members:
                return self._expand_members(argument.members)
            logger.debug("State %r has no members; using fallback", argument.expression)

        extraction = self.parameter_service.extract(argument)
        descriptor = MessageParameter(
            name=STATE_PLACEHOLDER_NAME,
            type=extraction.type,
            kind=ParameterKind.KEY_VALUE_MEMBER,
        )
        return KeyValueExpansion(
            parameters=(descriptor,),
            unresolved=() if extraction.resolved else (STATE_PLACEHOLDER_NAME,),
            expanded=False,
        )

    def _expand_members(self, members: Tuple[ArgumentMember, ...]) -> KeyValueExpansion:
        parameters: List[MessageParameter] = []
        unresolved: List[str] = []
        for index, member in enumerate(members):
            name = member.name or member.key_expression or f"{STATE_PLACEHOLDER_NAME}{index}"
            extraction = self.parameter_service.extract(member.value)
            parameters.append(MessageParameter(
                name=name,
                type=extraction.type,
                kind=ParameterKind.KEY_VALUE_MEMBER,
            ))
            if not extraction.resolved:
                unresolved.append(name)
        return KeyValueExpansion(parameters=tuple(parameters), unresolved=tuple(unresolved))
