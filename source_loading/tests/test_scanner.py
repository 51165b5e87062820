"""Tests for call-site candidate scanning."""

import unittest

from source_loading.workspace import load_source
from usage_extraction.candidates import ArgumentShape, CandidateShape

ORDER_SERVICE = """\
using Microsoft.Extensions.Logging;

namespace Shop.Orders
{
    public partial class OrderService
    {
        private const string Template = "Item {Id}";
        private readonly ILogger<OrderService> _logger;

        public OrderService(ILogger<OrderService> logger)
        {
            _logger = logger;
        }

        public void Place(int orderId, string customer, string[] names)
        {
            _logger.LogInformation("Placing order {OrderId} for {Customer}", orderId, customer);
            var count = 3;
            foreach (var name in names)
            {
                _logger.LogInformation(Template, name);
            }
            try
            {
            }
            catch (InvalidOperationException ex)
            {
                _logger.LogError(ex, "Failed after {Count}", count);
            }
        }
    }
}
"""


def _by_line(unit):
    return {candidate.location.start_line: candidate for candidate in unit.candidates}


class TestCallSiteScanner(unittest.TestCase):
    def setUp(self):
        self.unit = load_source(ORDER_SERVICE, "src/OrderService.cs")
        self.candidates = _by_line(self.unit)

    def test_invocations_in_source_order(self):
        """Test invocation candidates are returned in source order."""
        self.assertEqual(self.unit.parse_error_count, 0)
        self.assertEqual(
            [c.method_name for c in self.unit.candidates],
            ["LogInformation", "LogInformation", "LogError"],
        )
        lines = [c.location.start_line for c in self.unit.candidates]
        self.assertEqual(lines, sorted(lines))

    def test_receiver_and_arguments(self):
        """Test receiver text, receiver type and argument snapshots are captured."""
        candidate = self.candidates[17]
        self.assertEqual(candidate.shape, CandidateShape.INVOCATION)
        self.assertEqual(candidate.receiver, "_logger")
        self.assertEqual(candidate.receiver_type, "ILogger<OrderService>")
        self.assertEqual(candidate.containing_symbol, "Shop.Orders.OrderService.Place")
        self.assertEqual(candidate.location.file_path, "src/OrderService.cs")

        template, order_id, customer = candidate.arguments
        self.assertEqual(template.shape, ArgumentShape.LITERAL)
        self.assertEqual(template.constant_value, "Placing order {OrderId} for {Customer}")
        self.assertEqual(order_id.declared_type, "int")
        self.assertEqual(customer.declared_type, "string")

    def test_constant_template_and_foreach_variable(self):
        """Test const templates resolve and foreach variables get their element type."""
        template, name = self.candidates[21].arguments
        self.assertEqual(template.constant_value, "Item {Id}")
        self.assertEqual(template.declared_type, "string")
        self.assertEqual(name.declared_type, "string")

    def test_catch_variable_and_inferred_local(self):
        """Test catch variables and var locals are typed."""
        exception, _, count = self.candidates[28].arguments
        self.assertEqual(exception.declared_type, "InvalidOperationException")
        self.assertEqual(count.declared_type, "int")

    def test_lexical_path_is_outermost_first(self):
        """Test the lexical path lists enclosing regions outermost first."""
        path = self.candidates[17].lexical_path
        self.assertEqual(path[0][0], 0)
        self.assertGreaterEqual(len(path), 5)
        starts = [start for start, _ in path]
        self.assertEqual(starts, sorted(starts))


class TestArgumentShapes(unittest.TestCase):
    SOURCE = """\
class Worker
{
    private readonly ILogger _logger;

    void Run(System.Guid id, object payload)
    {
        _logger.BeginScope(new { OrderId = id, payload });
        _logger.BeginScope(new Dictionary<string, object> { { "TraceId", id }, { "Tenant", 5 } });
        _logger.LogInformation("{A} {B}", new object[] { 1, "two" });
        _logger.LogDebug($"Hello {id}");
    }
}
"""

    def setUp(self):
        self.candidates = load_source(self.SOURCE, "Worker.cs").candidates

    def test_anonymous_object_members(self):
        """Test anonymous object members keep declaration order and projection names."""
        state = self.candidates[0].arguments[0]
        self.assertEqual(state.shape, ArgumentShape.ANONYMOUS_OBJECT)
        self.assertEqual([m.name for m in state.members], ["OrderId", "payload"])
        self.assertEqual(state.members[0].value.declared_type, "System.Guid")
        self.assertEqual(state.members[1].value.declared_type, "object")

    def test_dictionary_pairs(self):
        """Test dictionary initializers become key/value members."""
        state = self.candidates[1].arguments[0]
        self.assertEqual(state.shape, ArgumentShape.PAIR_SEQUENCE)
        self.assertEqual([m.name for m in state.members], ["TraceId", "Tenant"])
        self.assertEqual(state.members[1].value.declared_type, "int")

    def test_object_array(self):
        array = self.candidates[2].arguments[1]
        self.assertEqual(array.shape, ArgumentShape.ARRAY)
        self.assertEqual(array.declared_type, "object[]")
        self.assertEqual([e.declared_type for e in array.elements], ["int", "string"])

    def test_interpolated_message_is_not_constant(self):
        """Test an interpolated message has no constant value."""
        message = self.candidates[3].arguments[0]
        self.assertEqual(message.shape, ArgumentShape.INTERPOLATED)
        self.assertIsNone(message.constant_value)
        self.assertEqual(message.declared_type, "string")


class TestDeclarationCandidates(unittest.TestCase):
    SOURCE = """\
namespace App.Logging;

public static partial class Log
{
    [LoggerMessage(EventId = 1, Level = LogLevel.Information, Message = "Processed {name} ({count})")]
    public static partial void Processed(ILogger logger, string name, int count);

    public static void Helper() { }
}
"""

    def test_attributed_method_declaration(self):
        """Test an attributed partial method becomes a declaration candidate."""
        candidates = load_source(self.SOURCE, "Log.cs").candidates
        self.assertEqual(len(candidates), 1)
        candidate = candidates[0]
        self.assertEqual(candidate.shape, CandidateShape.METHOD_DECLARATION)
        self.assertEqual(candidate.method_name, "Processed")
        self.assertEqual(candidate.containing_symbol, "App.Logging.Log.Processed")
        self.assertIn("partial", candidate.modifiers)
        self.assertEqual(
            [(p.name, p.declared_type) for p in candidate.formal_parameters],
            [("logger", "ILogger"), ("name", "string"), ("count", "int")],
        )
        attribute = candidate.attributes[0]
        self.assertEqual(attribute.short_name, "LoggerMessage")
        self.assertEqual([a.label for a in attribute.arguments], ["EventId", "Level", "Message"])
        self.assertEqual(attribute.arguments[2].constant_value, "Processed {name} ({count})")


    def test_parameter_attributes_and_modifiers(self):
        """Test attributes and the this-modifier of declared parameters are captured."""
        source = """\
namespace App.Logging;

public static partial class Log
{
    [LoggerMessage(Message = "Saved {id}")]
    public static partial void Saved(this ILogger logger, int id, [LogProperties(OmitReferenceName = true)] Item item);
}
"""
        (candidate,) = load_source(source, "Log.cs").candidates
        logger_parameter, id_parameter, item_parameter = candidate.formal_parameters
        self.assertIn("this", logger_parameter.modifiers)
        self.assertEqual(id_parameter.attributes, ())
        attribute = item_parameter.attribute("LogProperties")
        self.assertIsNotNone(attribute)
        self.assertEqual([(a.label, a.constant_value) for a in attribute.arguments], [("OmitReferenceName", True)])
        self.assertEqual(candidate.attributes[0].short_name, "LoggerMessage")


if __name__ == "__main__":
    unittest.main()
