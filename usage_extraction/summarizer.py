"""
Usage summary over an extracted ``UsageModel``.

Groups parameters by name to surface naming and typing inconsistencies
across the codebase: the same name logged with different types, or the
same name spelled with different casing.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

from usage_extraction.config import UNKNOWN_TYPE
from usage_extraction.models import UsageModel

TOP_PARAMETER_COUNT = 10
UNSPECIFIED_LEVEL = "Unspecified"


class InconsistencyKind(Enum):
    TYPE_MISMATCH = "TypeMismatch"
    CASING_DIFFERENCE = "CasingDifference"


@dataclass(frozen=True)
class ParameterInconsistency:
    """One naming or typing inconsistency between call sites."""

    kind: InconsistencyKind
    name: str
    variants: Tuple[str, ...]
    locations: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "variants": list(self.variants),
            "locations": list(self.locations),
        }


@dataclass(frozen=True)
class CommonParameter:
    name: str
    occurrences: int
    most_common_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "occurrences": self.occurrences,
            "most_common_type": self.most_common_type,
        }


@dataclass
class UsageSummary:
    """Aggregated view of a usage model."""

    total_records: int = 0
    templated_records: int = 0
    parameter_types: Dict[str, List[str]] = field(default_factory=dict)
    inconsistencies: List[ParameterInconsistency] = field(default_factory=list)
    common_parameters: List[CommonParameter] = field(default_factory=list)
    by_analyzer_kind: Dict[str, int] = field(default_factory=dict)
    by_log_level: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_records": self.total_records,
            "templated_records": self.templated_records,
            "parameter_types": self.parameter_types,
            "inconsistencies": [item.to_dict() for item in self.inconsistencies],
            "common_parameters": [item.to_dict() for item in self.common_parameters],
            "by_analyzer_kind": self.by_analyzer_kind,
            "by_log_level": self.by_log_level,
        }


def summarize_usage(model: UsageModel) -> UsageSummary:
    """Summarize parameter naming and typing across all records.

    ``unknown`` types never count as a type mismatch. Records of analyzer
    kinds this function does not know about are still counted.

    Args:
        model: Output of an extraction run.

    Returns:
        The usage summary; ``model`` is not modified.
    """
    summary = UsageSummary(total_records=len(model.records))
    types_by_name: Dict[str, Counter] = defaultdict(Counter)
    locations_by_name: Dict[str, List[str]] = defaultdict(list)
    spellings: Dict[str, Counter] = defaultdict(Counter)
    kinds: Counter = Counter()
    levels: Counter = Counter()

    for record in model.records:
        kinds[record.analyzer_kind.value] += 1
        levels[record.log_level.value if record.log_level else UNSPECIFIED_LEVEL] += 1
        if record.raw_template is not None:
            summary.templated_records += 1
        for parameter in record.parameters:
            types_by_name[parameter.name][parameter.type] += 1
            locations_by_name[parameter.name].append(record.key)
            spellings[parameter.name.lower()][parameter.name] += 1

    summary.parameter_types = {
        name: sorted(types) for name, types in sorted(types_by_name.items())
    }

    for name, types in sorted(types_by_name.items()):
        known = sorted(t for t in types if t != UNKNOWN_TYPE)
        if len(known) > 1:
            summary.inconsistencies.append(ParameterInconsistency(
                kind=InconsistencyKind.TYPE_MISMATCH,
                name=name,
                variants=tuple(known),
                locations=tuple(sorted(set(locations_by_name[name]))),
            ))

    for lowered, names in sorted(spellings.items()):
        if len(names) > 1:
            variants = tuple(sorted(names))
            locations = sorted({key for variant in variants for key in locations_by_name[variant]})
            summary.inconsistencies.append(ParameterInconsistency(
                kind=InconsistencyKind.CASING_DIFFERENCE,
                name=lowered,
                variants=variants,
                locations=tuple(locations),
            ))

    occurrences = Counter({name: sum(types.values()) for name, types in types_by_name.items()})
    ranked = sorted(occurrences.items(), key=lambda item: (-item[1], item[0]))
    for name, count in ranked[:TOP_PARAMETER_COUNT]:
        type_counts = types_by_name[name]
        most_common = sorted(type_counts.items(), key=lambda item: (-item[1], item[0]))[0][0]
        summary.common_parameters.append(CommonParameter(name=name, occurrences=count, most_common_type=most_common))

    summary.by_analyzer_kind = dict(sorted(kinds.items()))
    summary.by_log_level = dict(sorted(levels.items()))
    return summary
