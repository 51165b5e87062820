"""Logging usage extraction: template parsing, analyzers, orchestration."""

from usage_extraction.analyzers import (
    AnalysisContext,
    AnalysisOutcome,
    AttributeDeclaredAnalyzer,
    CallSiteAnalyzer,
    DirectCallAnalyzer,
    ProgrammaticDefineAnalyzer,
    ScopeBeginAnalyzer,
    default_analyzers,
)
from usage_extraction.candidates import (
    ArgumentInfo,
    ArgumentMember,
    ArgumentShape,
    AttributeInfo,
    CallCandidate,
    CandidateShape,
    CompilationUnit,
    FormalParameter,
)
from usage_extraction.config import ErrorHandlingOptions, load_error_handling_options
from usage_extraction.invocations import CallReference, DeclaredMethod, attach_invocations
from usage_extraction.key_values import KeyValuePairExtractionService
from usage_extraction.models import (
    AnalyzerKind,
    EventIdInfo,
    LogLevel,
    LogPropertiesParameter,
    MessageParameter,
    ParameterKind,
    SourceSpan,
    TagProviderInfo,
    TemplatePlaceholder,
    UsageModel,
    UsageRecord,
)
from usage_extraction.orchestrator import (
    AnalyzerConflictError,
    ExtractionAbortedError,
    ExtractionOrchestrator,
    OrchestratorState,
)
from usage_extraction.parameter_factory import MessageParameterFactory
from usage_extraction.parameters import ParameterExtractionService
from usage_extraction.scopes import ScopeAnalysisService
from usage_extraction.statistics import ExtractionFailure, ExtractionStatistics, FailureKind
from usage_extraction.summarizer import UsageSummary, summarize_usage
from usage_extraction.template_parser import ParsedTemplate, parse_template

__all__ = [
    "AnalysisContext",
    "AnalysisOutcome",
    "AttributeDeclaredAnalyzer",
    "CallSiteAnalyzer",
    "DirectCallAnalyzer",
    "ProgrammaticDefineAnalyzer",
    "ScopeBeginAnalyzer",
    "default_analyzers",
    "ArgumentInfo",
    "ArgumentMember",
    "ArgumentShape",
    "AttributeInfo",
    "CallCandidate",
    "CandidateShape",
    "CompilationUnit",
    "FormalParameter",
    "ErrorHandlingOptions",
    "load_error_handling_options",
    "CallReference",
    "DeclaredMethod",
    "attach_invocations",
    "KeyValuePairExtractionService",
    "AnalyzerKind",
    "EventIdInfo",
    "LogLevel",
    "LogPropertiesParameter",
    "MessageParameter",
    "ParameterKind",
    "SourceSpan",
    "TagProviderInfo",
    "TemplatePlaceholder",
    "UsageModel",
    "UsageRecord",
    "AnalyzerConflictError",
    "ExtractionAbortedError",
    "ExtractionOrchestrator",
    "OrchestratorState",
    "MessageParameterFactory",
    "ParameterExtractionService",
    "ScopeAnalysisService",
    "ExtractionFailure",
    "ExtractionStatistics",
    "FailureKind",
    "UsageSummary",
    "summarize_usage",
    "ParsedTemplate",
    "parse_template",
]
