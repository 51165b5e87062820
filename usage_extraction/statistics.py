"""
Extraction statistics and the failure taxonomy.

One ``ExtractionStatistics`` is owned by one orchestrator run (or, during a
parallel run, by one compilation unit until the partial results are
merged). Merging is commutative and associative: counters add, and the
capped failure-detail list always holds the first ``max_failure_details``
failures in (location, kind, message) order.
"""

from bisect import insort
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from usage_extraction.config import DEFAULT_MAX_FAILURE_DETAILS
from usage_extraction.models import AnalyzerKind, SourceSpan


class FailureKind(Enum):
    """Recoverable, call-site level extraction problems."""
    TEMPLATE_SYNTAX = "TemplateSyntax"
    UNRESOLVED_TYPE = "UnresolvedType"
    PARTIAL_CORRELATION = "PartialCorrelation"
    EXCESS_ARGUMENTS = "ExcessArguments"
    MALFORMED_DECLARATION = "MalformedDeclaration"


@dataclass(frozen=True)
class ExtractionFailure:
    """A classified failure attached to one call site."""

    kind: FailureKind
    location: SourceSpan
    message: str
    analyzer: Optional[AnalyzerKind] = None

    def sort_key(self) -> Tuple[Any, ...]:
        return (
            self.location.sort_key(),
            self.kind.value,
            self.message,
            self.analyzer.value if self.analyzer else "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "location": self.location.key,
            "message": self.message,
            "analyzer": self.analyzer.value if self.analyzer else None,
        }


@dataclass
class AnalyzerCounters:
    """Dispatch counters of one analyzer.

    ``attempted`` counts every dispatch; each dispatch ends up in exactly one
    of ``succeeded``, ``failed`` (record produced with failures) or
    ``skipped`` (shape did not match).
    """

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    def merged(self, other: "AnalyzerCounters") -> "AnalyzerCounters":
        return AnalyzerCounters(
            attempted=self.attempted + other.attempted,
            succeeded=self.succeeded + other.succeeded,
            failed=self.failed + other.failed,
            skipped=self.skipped + other.skipped,
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
        }


class ExtractionStatistics:
    """Statistics for an extraction run."""

    def __init__(self, max_failure_details: int = DEFAULT_MAX_FAILURE_DETAILS):
        self.max_failure_details = max_failure_details
        self.candidates_dispatched = 0
        self.units_processed = 0
        self.units_failed = 0
        self.records_extracted = 0
        self.analyzers: Dict[AnalyzerKind, AnalyzerCounters] = {}
        self.failure_counts: Dict[FailureKind, int] = {}
        self.failure_details: List[ExtractionFailure] = []

    def counters(self, analyzer: AnalyzerKind) -> AnalyzerCounters:
        """Counters of ``analyzer``, created on first use."""
        counters = self.analyzers.get(analyzer)
        if counters is None:
            counters = AnalyzerCounters()
            self.analyzers[analyzer] = counters
        return counters

    def record_dispatch(
        self,
        analyzer: AnalyzerKind,
        matched: bool,
        failures: Iterable[ExtractionFailure] = (),
    ) -> None:
        """Account for one analyzer being tried against one candidate."""
        counters = self.counters(analyzer)
        counters.attempted += 1
        if not matched:
            counters.skipped += 1
            return

        failures = list(failures)
        if failures:
            counters.failed += 1
        else:
            counters.succeeded += 1
        for failure in failures:
            self.record_failure(failure)

    def record_failure(self, failure: ExtractionFailure) -> None:
        self.failure_counts[failure.kind] = self.failure_counts.get(failure.kind, 0) + 1
        if self.max_failure_details <= 0:
            return
        insort(self.failure_details, failure, key=ExtractionFailure.sort_key)
        if len(self.failure_details) > self.max_failure_details:
            self.failure_details.pop()

    @property
    def total_failures(self) -> int:
        return sum(self.failure_counts.values())

    @property
    def failure_details_dropped(self) -> int:
        return self.total_failures - len(self.failure_details)

    @property
    def total_attempts(self) -> int:
        return sum(counters.attempted for counters in self.analyzers.values())

    @property
    def success_rate(self) -> float:
        """Share of recognized call sites extracted without any failure, in percent."""
        matched = sum(c.succeeded + c.failed for c in self.analyzers.values())
        if matched == 0:
            return 0.0
        succeeded = sum(c.succeeded for c in self.analyzers.values())
        return succeeded / matched * 100

    def merge(self, other: "ExtractionStatistics") -> "ExtractionStatistics":
        """Return a new statistics object combining ``self`` and ``other``."""
        merged = ExtractionStatistics(
            max_failure_details=min(self.max_failure_details, other.max_failure_details)
        )
        merged.candidates_dispatched = self.candidates_dispatched + other.candidates_dispatched
        merged.units_processed = self.units_processed + other.units_processed
        merged.units_failed = self.units_failed + other.units_failed
        merged.records_extracted = self.records_extracted + other.records_extracted

        for source in (self, other):
            for analyzer, counters in source.analyzers.items():
                merged.analyzers[analyzer] = merged.counters(analyzer).merged(counters)
            for kind, count in source.failure_counts.items():
                merged.failure_counts[kind] = merged.failure_counts.get(kind, 0) + count

        details = sorted(
            self.failure_details + other.failure_details,
            key=ExtractionFailure.sort_key,
        )
        merged.failure_details = details[: max(merged.max_failure_details, 0)]
        return merged

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "candidates_dispatched": self.candidates_dispatched,
            "units_processed": self.units_processed,
            "units_failed": self.units_failed,
            "records_extracted": self.records_extracted,
            "analyzers": {
                analyzer.value: self.analyzers[analyzer].to_dict()
                for analyzer in sorted(self.analyzers, key=lambda a: a.value)
            },
            "failure_counts": {
                kind.value: self.failure_counts[kind]
                for kind in sorted(self.failure_counts, key=lambda k: k.value)
            },
            "failure_details": [failure.to_dict() for failure in self.failure_details],
            "failure_details_dropped": self.failure_details_dropped,
        }

    def __str__(self) -> str:
        """String representation of stats."""
        return (
            f"ExtractionStatistics(units={self.units_processed}, "
            f"failed_units={self.units_failed}, candidates={self.candidates_dispatched}, "
            f"records={self.records_extracted}, failures={self.total_failures})"
        )
