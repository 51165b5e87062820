"""Tests for the usage summary."""

import unittest

from usage_extraction.models import (
    AnalyzerKind,
    LogLevel,
    MessageParameter,
    ParameterKind,
    SourceSpan,
    UsageModel,
    UsageRecord,
)
from usage_extraction.summarizer import InconsistencyKind, summarize_usage


def _record(line: int, *parameters, level=LogLevel.INFORMATION, kind=AnalyzerKind.DIRECT_CALL, template="t"):
    return UsageRecord(
        analyzer_kind=kind,
        location=SourceSpan("a.cs", line, 1, line, 10),
        containing_symbol="App.Worker",
        method_name="LogInformation",
        log_level=level,
        raw_template=template,
        parameters=tuple(MessageParameter(name, type_name, ParameterKind.POSITIONAL) for name, type_name in parameters),
    )


class TestSummarizeUsage(unittest.TestCase):
    def test_counts_by_kind_and_level(self):
        """Test records are counted by analyzer kind and level."""
        model = UsageModel(records=(
            _record(1, ("UserId", "int")),
            _record(2, level=LogLevel.ERROR),
            _record(3, kind=AnalyzerKind.SCOPE_BEGIN, level=None, template=None),
        ))
        summary = summarize_usage(model)
        self.assertEqual(summary.total_records, 3)
        self.assertEqual(summary.templated_records, 2)
        self.assertEqual(summary.by_analyzer_kind, {"DirectCall": 2, "ScopeBegin": 1})
        self.assertEqual(summary.by_log_level, {"Error": 1, "Information": 1, "Unspecified": 1})

    def test_type_mismatch_ignores_unknown(self):
        """Test unknown types do not count as a type mismatch."""
        model = UsageModel(records=(
            _record(1, ("UserId", "int")),
            _record(2, ("UserId", "string")),
            _record(3, ("OrderId", "Guid")),
            _record(4, ("OrderId", "unknown")),
        ))
        summary = summarize_usage(model)
        mismatches = [i for i in summary.inconsistencies if i.kind is InconsistencyKind.TYPE_MISMATCH]
        self.assertEqual(len(mismatches), 1)
        self.assertEqual(mismatches[0].name, "UserId")
        self.assertEqual(mismatches[0].variants, ("int", "string"))
        self.assertEqual(summary.parameter_types["OrderId"], ["Guid", "unknown"])

    def test_casing_difference(self):
        """Test names differing only in case are reported."""
        model = UsageModel(records=(_record(1, ("userId", "int")), _record(2, ("UserId", "int"))))
        summary = summarize_usage(model)
        casing = [i for i in summary.inconsistencies if i.kind is InconsistencyKind.CASING_DIFFERENCE]
        self.assertEqual(len(casing), 1)
        self.assertEqual(casing[0].variants, ("UserId", "userId"))
        self.assertEqual(len(casing[0].locations), 2)

    def test_common_parameters_top_ten(self):
        """Test the ten most common parameter names with their usual type."""
        records = [_record(i, (f"P{i % 12}", "int"), ("Shared", "string" if i % 3 else "int")) for i in range(24)]
        summary = summarize_usage(UsageModel(records=tuple(records)))
        self.assertEqual(len(summary.common_parameters), 10)
        top = summary.common_parameters[0]
        self.assertEqual((top.name, top.occurrences, top.most_common_type), ("Shared", 24, "string"))
        payload = summary.to_dict()
        self.assertEqual(payload["common_parameters"][0]["name"], "Shared")


if __name__ == "__main__":
    unittest.main()
