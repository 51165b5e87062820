"""Tests for the four call-site analyzers."""

import unittest

from usage_extraction.analyzers import (
    AnalysisContext,
    AttributeDeclaredAnalyzer,
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
    FormalParameter,
)
from usage_extraction.models import (
    AnalyzerKind,
    EventIdInfo,
    LogLevel,
    LogPropertiesParameter,
    MessageParameter,
    ParameterKind,
    SourceSpan,
    TagProviderInfo,
)
from usage_extraction.parameter_factory import MessageParameterFactory
from usage_extraction.statistics import FailureKind


def _literal(value, declared_type=None, label=None) -> ArgumentInfo:
    if declared_type is None:
        declared_type = "string" if isinstance(value, str) else "int"
    expression = f'"{value}"' if isinstance(value, str) else str(value)
    return ArgumentInfo(expression, ArgumentShape.LITERAL, declared_type, constant_value=value, label=label)


def _ident(expression: str, declared_type=None, shape=ArgumentShape.IDENTIFIER, **kwargs) -> ArgumentInfo:
    return ArgumentInfo(expression, shape, declared_type, **kwargs)


def _level(name: str, label=None) -> ArgumentInfo:
    return ArgumentInfo(f"LogLevel.{name}", ArgumentShape.MEMBER_ACCESS, "LogLevel", label=label)


def _call(method: str, *arguments, receiver="_logger", receiver_type="ILogger<Worker>", line=10, **kwargs) -> CallCandidate:
    return CallCandidate(
        shape=CandidateShape.INVOCATION,
        method_name=method,
        location=SourceSpan("src/Worker.cs", line, 9, line, 70),
        containing_symbol="App.Worker.Run",
        receiver=receiver,
        receiver_type=receiver_type,
        arguments=tuple(arguments),
        **kwargs,
    )


def _context() -> AnalysisContext:
    return AnalysisContext(factory=MessageParameterFactory())


class TestDirectCallAnalyzer(unittest.TestCase):
    def setUp(self):
        self.analyzer = DirectCallAnalyzer()

    def test_log_with_leading_level(self):
        """Test Log(level, template, args) is a DirectCall record."""
        candidate = _call("Log", _level("Information"), _literal("User {UserId} signed in"), _literal(42))
        outcome = self.analyzer.try_analyze(candidate, _context())

        record = outcome.record
        self.assertEqual(record.analyzer_kind, AnalyzerKind.DIRECT_CALL)
        self.assertEqual(record.log_level, LogLevel.INFORMATION)
        self.assertEqual(record.raw_template, "User {UserId} signed in")
        self.assertEqual(record.parameters, (MessageParameter("UserId", "int", ParameterKind.POSITIONAL),))
        self.assertEqual(record.method_name, "Log")
        self.assertEqual(outcome.failures, ())

    def test_level_method_with_event_id_and_exception(self):
        """Test event id and exception arguments are not message parameters."""
        event = _ident(
            'new EventId(1001, "OrderFailed")',
            "EventId",
            shape=ArgumentShape.OBJECT_CREATION,
            elements=(_literal(1001), _literal("OrderFailed")),
        )
        candidate = _call(
            "LogError",
            event,
            _ident("ex", "InvalidOperationException"),
            _literal("Order {OrderId} failed"),
            _ident("order.Id", "Guid", shape=ArgumentShape.MEMBER_ACCESS),
        )
        record = self.analyzer.try_analyze(candidate, _context()).record
        self.assertEqual(record.log_level, LogLevel.ERROR)
        self.assertEqual(record.event_id, EventIdInfo(id=1001, name="OrderFailed"))
        self.assertEqual(record.parameters, (MessageParameter("OrderId", "Guid", ParameterKind.POSITIONAL),))

    def test_integer_event_id(self):
        """Test a bare integer event id is recognized."""
        candidate = _call("LogWarning", _literal(7), _literal("Retrying {Attempt}"), _literal(3))
        record = self.analyzer.try_analyze(candidate, _context()).record
        self.assertEqual(record.event_id, EventIdInfo(id=7))
        self.assertEqual([p.name for p in record.parameters], ["Attempt"])

    def test_dynamic_level_is_unresolved(self):
        """Test a level held in a variable leaves the level unset."""
        candidate = _call("Log", _ident("level", "LogLevel"), _literal("Tick"))
        record = self.analyzer.try_analyze(candidate, _context()).record
        self.assertIsNone(record.log_level)
        self.assertEqual(record.raw_template, "Tick")

    def test_params_array_is_expanded(self):
        """Test an explicit object[] argument is expanded into its elements."""
        array = _ident(
            "new object[] { id, name }",
            "object[]",
            shape=ArgumentShape.ARRAY,
            elements=(_ident("id", "int"), _ident("name", "string")),
        )
        candidate = _call("LogInformation", _literal("{Id} {Name}"), array)
        record = self.analyzer.try_analyze(candidate, _context()).record
        self.assertEqual([(p.name, p.type) for p in record.parameters], [("Id", "int"), ("Name", "string")])

    def test_non_constant_message_has_no_template(self):
        """Test a variable message still yields a record without template."""
        candidate = _call(
            "LogInformation",
            _ident('$"Hello {name}"', "string", shape=ArgumentShape.INTERPOLATED),
        )
        outcome = self.analyzer.try_analyze(candidate, _context())
        self.assertIsNone(outcome.record.raw_template)
        self.assertEqual(outcome.record.parameters, ())
        self.assertEqual(outcome.failures, ())

    def test_unresolved_receiver_is_accepted(self):
        candidate = _call("LogDebug", _literal("Ready"), receiver_type=None)
        self.assertTrue(self.analyzer.try_analyze(candidate, _context()).matched)

    def test_skips(self):
        """Test non-logging calls are skipped with a reason."""
        cases = {
            "other method": _call("WriteLine", _literal("x"), receiver="Console", receiver_type="Console"),
            "non logger receiver": _call("LogInformation", _literal("x"), receiver_type="AuditTrail"),
            "no receiver": _call("Log", _literal("x"), receiver=None, receiver_type=None),
            "untyped Log": _call("Log", _literal("x"), receiver_type=None),
        }
        for label, candidate in cases.items():
            with self.subTest(label=label):
                outcome = self.analyzer.try_analyze(candidate, _context())
                self.assertFalse(outcome.matched)
                self.assertIsNotNone(outcome.skip_reason)

    def test_scope_chain_is_captured(self):
        """Test the current scope chain is stored on the record."""
        context = _context()
        context.scopes.push((0, 100), "scope-key")
        record = self.analyzer.try_analyze(_call("LogTrace", _literal("x")), context).record
        self.assertEqual(record.scope_chain, ("scope-key",))


class TestAttributeDeclaredAnalyzer(unittest.TestCase):
    def setUp(self):
        self.analyzer = AttributeDeclaredAnalyzer()

    def _declaration(self, attribute_args, formal_parameters, modifiers=("static", "partial")) -> CallCandidate:
        return CallCandidate(
            shape=CandidateShape.METHOD_DECLARATION,
            method_name="LogProcessed",
            location=SourceSpan("src/Log.cs", 8, 5, 9, 80),
            containing_symbol="App.Log.LogProcessed",
            attributes=(AttributeInfo("LoggerMessage", tuple(attribute_args)),),
            formal_parameters=tuple(formal_parameters),
            modifiers=modifiers,
        )

    def test_named_attribute_arguments(self):
        """Test named LoggerMessage arguments give level, event id and template."""
        candidate = self._declaration(
            [
                _literal(12, label="EventId"),
                _level("Information", label="Level"),
                _literal("Processed {name} ({count})", label="Message"),
            ],
            [
                FormalParameter("logger", "ILogger"),
                FormalParameter("name", "string"),
                FormalParameter("count", "int"),
            ],
        )
        outcome = self.analyzer.try_analyze(candidate, _context())
        record = outcome.record
        self.assertEqual(record.analyzer_kind, AnalyzerKind.ATTRIBUTE_DECLARED)
        self.assertEqual(record.log_level, LogLevel.INFORMATION)
        self.assertEqual(record.raw_template, "Processed {name} ({count})")
        self.assertEqual(record.event_id, EventIdInfo(id=12))
        self.assertEqual(
            record.parameters,
            (
                MessageParameter("name", "string", ParameterKind.NAMED),
                MessageParameter("count", "int", ParameterKind.NAMED),
            ),
        )
        self.assertEqual(outcome.failures, ())

    def test_log_properties_parameters_and_declaring_type(self):
        """Test [LogProperties] parameters are listed with their options and tag provider."""
        order = FormalParameter(
            "order",
            "Shop.Order",
            attributes=(
                AttributeInfo("LogProperties", (
                    ArgumentInfo("true", ArgumentShape.LITERAL, "bool", constant_value=True, label="Transitive"),
                    ArgumentInfo("true", ArgumentShape.LITERAL, "bool", constant_value=True, label="SkipNullProperties"),
                )),
                AttributeInfo("TagProvider", (
                    _ident("typeof(OrderTags)", "Type", shape=ArgumentShape.OTHER),
                    _ident("nameof(OrderTags.Record)", "string", shape=ArgumentShape.INVOCATION,
                           constant_value="Record"),
                    ArgumentInfo("true", ArgumentShape.LITERAL, "bool", constant_value=True, label="OmitReferenceName"),
                )),
            ),
        )
        candidate = self._declaration(
            [_literal("Placed order {id}", label="Message")],
            [FormalParameter("logger", "ILogger"), FormalParameter("id", "int"), order],
        )
        outcome = self.analyzer.try_analyze(candidate, _context())
        record = outcome.record

        self.assertEqual(record.declaring_type, "App.Log")
        self.assertEqual(
            record.log_properties,
            (LogPropertiesParameter(
                name="order",
                type="Order",
                skip_null_properties=True,
                transitive=True,
                tag_provider=TagProviderInfo("OrderTags", "Record", omit_reference_name=True),
            ),),
        )
        self.assertEqual(outcome.failures, ())
        self.assertEqual(record.to_dict()["log_properties"][0]["tag_provider"]["provider_method"], "Record")

    def test_log_properties_defaults(self):
        """Test a bare [LogProperties] leaves every option off."""
        candidate = self._declaration(
            [_literal("Tick", label="Message")],
            [FormalParameter("state", "Clock", attributes=(AttributeInfo("LogPropertiesAttribute"),))],
        )
        (parameter,) = self.analyzer.try_analyze(candidate, _context()).record.log_properties
        self.assertEqual(parameter, LogPropertiesParameter("state", "Clock"))
        self.assertIsNone(parameter.tag_provider)

    def test_positional_constructor_forms(self):
        """Test the (eventId, level, message) constructor form."""
        candidate = self._declaration(
            [_literal(3), _level("Warning"), _literal("Slow {Elapsed}")],
            [FormalParameter("elapsed", "TimeSpan")],
        )
        record = self.analyzer.try_analyze(candidate, _context()).record
        self.assertEqual(record.event_id, EventIdInfo(id=3))
        self.assertEqual(record.log_level, LogLevel.WARNING)
        self.assertEqual(record.parameters, (MessageParameter("Elapsed", "TimeSpan", ParameterKind.NAMED),))

    def test_level_parameter_makes_level_dynamic(self):
        """Test a LogLevel parameter leaves the level dynamic and is not a message parameter."""
        candidate = self._declaration(
            [_literal("Value {value}", label="Message")],
            [FormalParameter("level", "LogLevel"), FormalParameter("value", "double")],
        )
        record = self.analyzer.try_analyze(candidate, _context()).record
        self.assertIsNone(record.log_level)
        self.assertEqual([p.name for p in record.parameters], ["value"])

    def test_malformed_arguments_keep_record(self):
        """Test non-constant attribute arguments are malformed but keep the record."""
        candidate = self._declaration(
            [_ident("Messages.Processed", "string", shape=ArgumentShape.MEMBER_ACCESS, label="Message"),
             _ident("level", "LogLevel", label="Level")],
            [FormalParameter("name", "string")],
        )
        outcome = self.analyzer.try_analyze(candidate, _context())
        self.assertTrue(outcome.matched)
        self.assertIsNone(outcome.record.raw_template)
        kinds = [failure.kind for failure in outcome.failures]
        self.assertEqual(kinds.count(FailureKind.MALFORMED_DECLARATION), 2)

    def test_non_partial_method_is_malformed(self):
        """Test a non-partial attributed method is reported as malformed."""
        candidate = self._declaration([_literal("Hi")], [], modifiers=("static",))
        outcome = self.analyzer.try_analyze(candidate, _context())
        self.assertEqual([f.kind for f in outcome.failures], [FailureKind.MALFORMED_DECLARATION])

    def test_skips_invocations_and_unrelated_attributes(self):
        self.assertFalse(self.analyzer.try_analyze(_call("LogInformation", _literal("x")), _context()).matched)
        candidate = CallCandidate(
            shape=CandidateShape.METHOD_DECLARATION,
            method_name="Run",
            location=SourceSpan("a.cs", 1, 1, 1, 5),
            containing_symbol="App.Run",
            attributes=(AttributeInfo("Obsolete"),),
        )
        self.assertFalse(self.analyzer.try_analyze(candidate, _context()).matched)

    def test_fully_qualified_attribute_name(self):
        attribute = AttributeInfo(
            "Microsoft.Extensions.Logging.LoggerMessageAttribute",
            (_literal("Started", label="Message"),),
        )
        candidate = CallCandidate(
            shape=CandidateShape.METHOD_DECLARATION,
            method_name="LogStarted",
            location=SourceSpan("a.cs", 1, 1, 1, 5),
            containing_symbol="App.Log.LogStarted",
            attributes=(attribute,),
            modifiers=("partial",),
        )
        self.assertEqual(self.analyzer.try_analyze(candidate, _context()).record.raw_template, "Started")


class TestProgrammaticDefineAnalyzer(unittest.TestCase):
    def setUp(self):
        self.analyzer = ProgrammaticDefineAnalyzer()

    def test_define_with_type_arguments(self):
        """Test Define<T1, T2> reads level, event id and template."""
        candidate = _call(
            "Define",
            _level("Debug"),
            _ident("new EventId(5, \"Fetched\")", "EventId", shape=ArgumentShape.OBJECT_CREATION,
                   elements=(_literal(5), _literal("Fetched"))),
            _literal("Fetched {Count} rows from {Table}"),
            receiver="LoggerMessage",
            receiver_type=None,
            type_arguments=("int", "string"),
        )
        outcome = self.analyzer.try_analyze(candidate, _context())
        record = outcome.record
        self.assertEqual(record.analyzer_kind, AnalyzerKind.PROGRAMMATIC_DEFINE)
        self.assertEqual(record.log_level, LogLevel.DEBUG)
        self.assertEqual(record.event_id, EventIdInfo(id=5, name="Fetched"))
        self.assertEqual(
            record.parameters,
            (
                MessageParameter("Count", "int", ParameterKind.POSITIONAL),
                MessageParameter("Table", "string", ParameterKind.POSITIONAL),
            ),
        )
        self.assertEqual(outcome.failures, ())

    def test_define_scope(self):
        """Test DefineScope via a qualified receiver."""
        candidate = _call(
            "DefineScope",
            _literal("Batch {BatchId}"),
            receiver="Microsoft.Extensions.Logging.LoggerMessage",
            receiver_type=None,
            type_arguments=("Guid",),
        )
        record = self.analyzer.try_analyze(candidate, _context()).record
        self.assertIsNone(record.log_level)
        self.assertEqual(record.parameters, (MessageParameter("BatchId", "Guid", ParameterKind.POSITIONAL),))

    def test_missing_template_is_malformed(self):
        """Test a definer call without template is malformed."""
        candidate = _call(
            "Define",
            _level("Information"),
            _literal(1),
            receiver="LoggerMessage",
            receiver_type=None,
            type_arguments=("int",),
        )
        outcome = self.analyzer.try_analyze(candidate, _context())
        self.assertIsNone(outcome.record.raw_template)
        self.assertEqual(outcome.record.parameters, (MessageParameter("0", "int", ParameterKind.POSITIONAL),))
        self.assertEqual([f.kind for f in outcome.failures], [FailureKind.MALFORMED_DECLARATION])

    def test_skips_other_receivers(self):
        candidate = _call("Define", _literal("x"), receiver="Settings", receiver_type="Settings")
        self.assertFalse(self.analyzer.try_analyze(candidate, _context()).matched)


class TestScopeBeginAnalyzer(unittest.TestCase):
    def setUp(self):
        self.analyzer = ScopeBeginAnalyzer()

    def test_anonymous_state_is_expanded_and_pushed(self):
        """Test an anonymous object state is expanded and opens a scope."""
        state = _ident(
            "new { OrderId = id }",
            None,
            shape=ArgumentShape.ANONYMOUS_OBJECT,
            members=(ArgumentMember("OrderId", _ident("id", "Guid")),),
        )
        context = _context()
        candidate = _call("BeginScope", state, governed_region=(10, 90))
        outcome = self.analyzer.try_analyze(candidate, context)
        record = outcome.record
        self.assertEqual(record.analyzer_kind, AnalyzerKind.SCOPE_BEGIN)
        self.assertIsNone(record.raw_template)
        self.assertEqual(record.parameters, (MessageParameter("OrderId", "Guid", ParameterKind.KEY_VALUE_MEMBER),))
        self.assertEqual(context.scopes.current_chain(), (record.key,))

    def test_templated_scope(self):
        """Test a templated BeginScope correlates its arguments."""
        candidate = _call("BeginScope", _literal("Request {RequestId}"), _ident("requestId", "string"))
        record = self.analyzer.try_analyze(candidate, _context()).record
        self.assertEqual(record.raw_template, "Request {RequestId}")
        self.assertEqual(record.parameters, (MessageParameter("RequestId", "string", ParameterKind.POSITIONAL),))

    def test_opaque_state_falls_back(self):
        """Test an opaque state becomes a single State parameter."""
        candidate = _call("BeginScope", _ident("context", "RequestContext"))
        record = self.analyzer.try_analyze(candidate, _context()).record
        self.assertEqual(record.parameters, (MessageParameter("State", "RequestContext", ParameterKind.KEY_VALUE_MEMBER),))

    def test_missing_state_is_malformed(self):
        outcome = self.analyzer.try_analyze(_call("BeginScope"), _context())
        self.assertTrue(outcome.matched)
        self.assertEqual([f.kind for f in outcome.failures], [FailureKind.MALFORMED_DECLARATION])


class TestAnalyzerRegistry(unittest.TestCase):
    def test_fixed_order(self):
        """Test the registry dispatch order."""
        self.assertEqual(
            [analyzer.kind for analyzer in default_analyzers()],
            [
                AnalyzerKind.DIRECT_CALL,
                AnalyzerKind.ATTRIBUTE_DECLARED,
                AnalyzerKind.PROGRAMMATIC_DEFINE,
                AnalyzerKind.SCOPE_BEGIN,
            ],
        )

    def test_shapes_are_claimed_by_exactly_one_analyzer(self):
        """Test each call shape is claimed by one analyzer only."""
        candidates = [
            _call("LogInformation", _literal("x")),
            _call("Log", _level("Trace"), _literal("x")),
            _call("BeginScope", _literal("x")),
            _call("Define", _level("Trace"), _literal(1), _literal("x"), receiver="LoggerMessage", receiver_type=None),
            CallCandidate(
                shape=CandidateShape.METHOD_DECLARATION,
                method_name="LogX",
                location=SourceSpan("a.cs", 1, 1, 1, 5),
                containing_symbol="App.LogX",
                attributes=(AttributeInfo("LoggerMessage", (_literal("x"),)),),
                modifiers=("partial",),
            ),
        ]
        for candidate in candidates:
            with self.subTest(method=candidate.method_name):
                matches = [
                    analyzer.kind
                    for analyzer in default_analyzers()
                    if analyzer.try_analyze(candidate, _context()).matched
                ]
                self.assertEqual(len(matches), 1)


if __name__ == "__main__":
    unittest.main()
