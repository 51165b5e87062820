"""
Extraction orchestrator.

Walks compilation units, dispatches every candidate to every registered
analyzer, applies the error-handling policy and returns the final
``UsageModel``.

Units are independent: each one is analysed with its own scope stack and
its own partial statistics, optionally on a thread pool, and the partial
results are merged in unit input order once all units are done. Calls
that no analyzer claimed are kept per unit and matched to the
attribute-declared methods of every unit during that merge.
"""

import contextvars
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Sized

from usage_core.structured_logging import unit_scope
from usage_extraction.analyzers import AnalysisContext, CallSiteAnalyzer, default_analyzers
from usage_extraction.candidates import CompilationUnit
from usage_extraction.config import ErrorHandlingOptions
from usage_extraction.invocations import CallReference, DeclaredMethod, attach_invocations
from usage_extraction.models import AnalyzerKind, UsageModel, UsageRecord
from usage_extraction.parameter_factory import MessageParameterFactory
from usage_extraction.scopes import ScopeAnalysisService
from usage_extraction.statistics import ExtractionFailure, ExtractionStatistics

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[int], str], None]


class OrchestratorState(Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    COMPLETED = "Completed"


class AnalyzerConflictError(RuntimeError):
    """Two registered analyzers claimed the same candidate."""


class ExtractionAbortedError(RuntimeError):
    """A failure stopped a run configured not to continue on failures.

    Attributes:
        failure: The failure that triggered the abort
        model: Records and statistics gathered up to the abort
    """

    def __init__(self, failure: ExtractionFailure, model: UsageModel):
        super().__init__(
            f"Extraction aborted by {failure.kind.value} at {failure.location.key}: {failure.message}"
        )
        self.failure = failure
        self.model = model


@dataclass
class _UnitResult:
    """Partial result of one compilation unit."""

    records: List[UsageRecord] = field(default_factory=list)
    statistics: Optional[ExtractionStatistics] = None
    cancelled: bool = False
    declarations: List[DeclaredMethod] = field(default_factory=list)
    calls: List[CallReference] = field(default_factory=list)


class _UnitAborted(Exception):
    def __init__(self, failure: ExtractionFailure, result: _UnitResult):
        super().__init__(failure.message)
        self.failure = failure
        self.result = result


class ExtractionOrchestrator:
    """Run the registered analyzers over compilation units.

    Args:
        analyzers: Analyzers in dispatch order; defaults to the built-in four.
        options: Error-handling policy of the run.
        max_workers: Units analysed concurrently (1 means inline).
        fine_grained_cancellation: Also check the cancellation signal
            between candidates of one unit.
        progress_callback: Called as ``(units_done, units_total, path)``
            after each unit; ``units_total`` is None for a unit stream.

    Example:
        >>> orchestrator = ExtractionOrchestrator()
        >>> model = orchestrator.run(iter_compilation_units("src/"))
        >>> model.statistics.records_extracted
        42
    """

    def __init__(
        self,
        analyzers: Optional[Sequence[CallSiteAnalyzer]] = None,
        options: Optional[ErrorHandlingOptions] = None,
        max_workers: int = 1,
        fine_grained_cancellation: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.analyzers = tuple(analyzers) if analyzers is not None else default_analyzers()
        self.options = options or ErrorHandlingOptions()
        self.max_workers = max(1, max_workers)
        self.fine_grained_cancellation = fine_grained_cancellation
        self.progress_callback = progress_callback
        self.state = OrchestratorState.IDLE

    def run(
        self,
        units: Iterable[CompilationUnit],
        cancel_event: Optional[threading.Event] = None,
    ) -> UsageModel:
        """Analyse ``units`` and return the aggregated usage model.

        A sequential run pulls units from ``units`` one at a time, so a lazy
        loader stops loading as soon as the run is cancelled. Progress then
        reports ``None`` as the total unless ``units`` has a length.

        Raises:
            RuntimeError: If this orchestrator already ran.
            ExtractionAbortedError: On the first failure when
                ``continue_on_extraction_failure`` is off.
            AnalyzerConflictError: If two analyzers claim one candidate.
        """
        if self.state is not OrchestratorState.IDLE:
            raise RuntimeError("ExtractionOrchestrator instances cannot be reused across runs")
        self.state = OrchestratorState.RUNNING

        cancel_event = cancel_event or threading.Event()
        stop_event = threading.Event()
        if self.max_workers > 1:
            units = list(units)
        total = len(units) if isinstance(units, Sized) else None
        logger.info(
            "Extracting logging usage from %s compilation unit(s) with %d analyzer(s)",
            total if total is not None else "a stream of",
            len(self.analyzers),
        )

        results: List[Optional[_UnitResult]] = []
        try:
            if self.max_workers == 1:
                cancelled = self._run_sequential(units, total, results, cancel_event, stop_event)
            else:
                results.extend([None] * total)
                self._run_parallel(units, results, cancel_event, stop_event)
                cancelled = False
        finally:
            self.state = OrchestratorState.COMPLETED

        model = self._assemble(results, total, cancelled)
        logger.info("Extraction finished: %s", model.statistics)
        return model

    def _run_sequential(self, units, total, results, cancel_event, stop_event) -> bool:
        """Analyse units in input order; return True when cancelled early."""
        iterator = iter(units)
        while True:
            if cancel_event.is_set():
                return total is None or len(results) < total
            unit = next(iterator, None)
            if unit is None:
                return False
            try:
                result = self._analyze_unit(unit, cancel_event, stop_event)
            except _UnitAborted as exc:
                results.append(exc.result)
                raise ExtractionAbortedError(exc.failure, self._assemble(results, total, False)) from exc
            if result is None:
                return True
            results.append(result)
            self._report_progress(len(results), total, unit.path)

    def _run_parallel(self, units, results, cancel_event, stop_event) -> None:
        total = len(units)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(contextvars.copy_context().run, self._analyze_unit, unit, cancel_event, stop_event)
                for unit in units
            ]
            for index, future in enumerate(futures):
                try:
                    results[index] = future.result()
                except _UnitAborted as exc:
                    stop_event.set()
                    results[index] = exc.result
                    for remaining in futures[index + 1:]:
                        remaining.cancel()
                    raise ExtractionAbortedError(exc.failure, self._assemble(results, total, False)) from exc
                except BaseException:
                    stop_event.set()
                    for remaining in futures[index + 1:]:
                        remaining.cancel()
                    raise
                if results[index] is not None:
                    done = sum(1 for result in results if result is not None)
                    self._report_progress(done, total, units[index].path)

    def _report_progress(self, done: int, total: Optional[int], path: str) -> None:
        if self.progress_callback is not None:
            self.progress_callback(done, total, path)

    def _analyze_unit(
        self,
        unit: CompilationUnit,
        cancel_event: threading.Event,
        stop_event: threading.Event,
    ) -> Optional[_UnitResult]:
        if cancel_event.is_set() or stop_event.is_set():
            return None

        result = _UnitResult(statistics=ExtractionStatistics(self.options.max_failure_details))
        statistics = result.statistics
        context = AnalysisContext(
            factory=MessageParameterFactory(self.options),
            scopes=ScopeAnalysisService(),
        )

        with unit_scope(unit.path):
            logger.debug("Analysing %s (%d candidates)", unit.path, len(unit.candidates))
            try:
                for candidate in unit.candidates:
                    if self.fine_grained_cancellation and cancel_event.is_set():
                        logger.info("Cancelled inside %s", unit.path)
                        result.cancelled = True
                        break
                    self._dispatch(candidate, context, result)
            except (_UnitAborted, AnalyzerConflictError):
                statistics.units_processed += 1
                raise
            except Exception as exc:
                statistics.units_processed += 1
                statistics.units_failed += 1
                logger.error("Error analysing %s: %s", unit.path, exc, exc_info=True)
                if not self.options.continue_on_extraction_failure:
                    raise
                return result

        statistics.units_processed += 1
        logger.debug("Extracted %d record(s) from %s", len(result.records), unit.path)
        return result

    def _dispatch(self, candidate, context: AnalysisContext, result: _UnitResult) -> None:
        statistics = result.statistics
        statistics.candidates_dispatched += 1
        context.scopes.enter(candidate)

        claimed = None
        for analyzer in self.analyzers:
            outcome = analyzer.try_analyze(candidate, context)
            statistics.record_dispatch(analyzer.kind, outcome.matched, outcome.failures)
            if not outcome.matched:
                continue
            if claimed is not None:
                raise AnalyzerConflictError(
                    f"{analyzer!r} and {claimed!r} both claimed {candidate.location.key}"
                )
            claimed = analyzer

            result.records.append(outcome.record)
            statistics.records_extracted += 1
            if outcome.record.analyzer_kind is AnalyzerKind.ATTRIBUTE_DECLARED:
                result.declarations.append(DeclaredMethod.from_candidate(candidate, outcome.record.key))
            for failure in outcome.failures:
                if self.options.log_extraction_failures:
                    logger.warning(
                        "%s at %s (%s): %s",
                        failure.kind.value,
                        failure.location.key,
                        analyzer.kind.value,
                        failure.message,
                    )
            if outcome.failures and not self.options.continue_on_extraction_failure:
                raise _UnitAborted(outcome.failures[0], result)

        if claimed is None:
            call = CallReference.from_candidate(candidate)
            if call is not None:
                result.calls.append(call)

    def _assemble(
        self,
        results: Sequence[Optional[_UnitResult]],
        total: Optional[int],
        cancelled: bool,
    ) -> UsageModel:
        statistics = ExtractionStatistics(self.options.max_failure_details)
        records: List[UsageRecord] = []
        declarations: List[DeclaredMethod] = []
        calls: List[CallReference] = []
        for result in results:
            if result is None:
                cancelled = True
                continue
            records.extend(result.records)
            declarations.extend(result.declarations)
            calls.extend(result.calls)
            statistics = statistics.merge(result.statistics)
            cancelled = cancelled or result.cancelled
        return UsageModel(
            records=tuple(attach_invocations(records, declarations, calls)),
            statistics=statistics,
            cancelled=cancelled,
            units_total=total if total is not None else len(results),
        )
