"""
Call-site tracking for attribute-declared logging methods.

Every unit contributes the invocations no analyzer claimed as
``CallReference`` entries and every AttributeDeclared record as a
``DeclaredMethod``. Once all units are analysed the references are
matched to declarations by name and receiver, syntactically:

    Log.OrderPlaced(logger, id)      receiver names the declaring type
    OrderPlaced(id)                  unqualified, inside the declaring type
    logger.OrderPlaced(id)           any receiver, for an extension method
    _log.OrderPlaced(id)             receiver typed as the declaring type
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence

from usage_extraction.candidates import CallCandidate, CandidateShape, simple_type_name
from usage_extraction.config import SELF_RECEIVERS
from usage_extraction.models import AnalyzerKind, SourceSpan, UsageRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallReference:
    """An invocation that might target a declared logging method."""

    method_name: str
    location: SourceSpan
    caller: str
    receiver: Optional[str] = None
    receiver_type: Optional[str] = None

    @classmethod
    def from_candidate(cls, candidate: CallCandidate) -> Optional["CallReference"]:
        if candidate.shape is not CandidateShape.INVOCATION:
            return None
        return cls(
            method_name=candidate.method_name,
            location=candidate.location,
            caller=candidate.containing_symbol,
            receiver=candidate.receiver,
            receiver_type=candidate.receiver_type,
        )


@dataclass(frozen=True)
class DeclaredMethod:
    """Lookup data of one AttributeDeclared record.

    Attributes:
        key: Key of the record the invocations are attached to
        method_name: Declared method name
        declaring_type: Dotted path of the declaring type
        extension: True when the first parameter carries ``this``
    """

    key: str
    method_name: str
    declaring_type: str
    extension: bool = False

    @classmethod
    def from_candidate(cls, candidate: CallCandidate, key: str) -> "DeclaredMethod":
        first = candidate.formal_parameters[0] if candidate.formal_parameters else None
        return cls(
            key=key,
            method_name=candidate.method_name,
            declaring_type=declaring_type_of(candidate.containing_symbol),
            extension=first is not None and "this" in first.modifiers,
        )

    @property
    def type_name(self) -> str:
        return self.declaring_type.rsplit(".", 1)[-1]

    def is_called_by(self, call: CallReference) -> bool:
        if call.method_name != self.method_name:
            return False
        if call.receiver is None or call.receiver in SELF_RECEIVERS:
            return call.caller == self.declaring_type or call.caller.startswith(self.declaring_type + ".")
        if self.extension:
            return True
        if simple_type_name(call.receiver) == self.type_name:
            return True
        return simple_type_name(call.receiver_type) == self.type_name


def declaring_type_of(containing_symbol: str) -> str:
    """Strip the member name from a declaration's containing symbol."""
    return containing_symbol.rpartition(".")[0]


def attach_invocations(
    records: Sequence[UsageRecord],
    declarations: Iterable[DeclaredMethod],
    calls: Iterable[CallReference],
) -> List[UsageRecord]:
    """Return ``records`` with the matching call sites set on declared methods.

    Records that are not AttributeDeclared, or that no call reaches, are
    returned unchanged.
    """
    by_name: Dict[str, List[DeclaredMethod]] = defaultdict(list)
    for declaration in declarations:
        by_name[declaration.method_name].append(declaration)
    if not by_name:
        return list(records)

    found: Dict[str, List[SourceSpan]] = defaultdict(list)
    for call in calls:
        for declaration in by_name.get(call.method_name, ()):
            if declaration.is_called_by(call):
                found[declaration.key].append(call.location)

    attached = []
    for record in records:
        spans = found.get(record.key)
        if spans and record.analyzer_kind is AnalyzerKind.ATTRIBUTE_DECLARED:
            record = replace(record, invocations=tuple(sorted(spans, key=SourceSpan.sort_key)))
        attached.append(record)
    logger.debug(
        "Attached %d call site(s) to %d declared method(s)",
        sum(len(spans) for spans in found.values()),
        len(found),
    )
    return attached
