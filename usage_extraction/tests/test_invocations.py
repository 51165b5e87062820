"""Tests for matching call sites to attribute-declared logging methods."""

import unittest

from usage_extraction.candidates import CallCandidate, CandidateShape, FormalParameter
from usage_extraction.invocations import (
    CallReference,
    DeclaredMethod,
    attach_invocations,
    declaring_type_of,
)
from usage_extraction.models import AnalyzerKind, SourceSpan, UsageRecord

DECLARED = SourceSpan("src/Log.cs", 5, 5, 6, 80)


def _call_at(line: int, receiver=None, caller="Shop.Orders.Checkout.Run", receiver_type=None, method="OrderPlaced"):
    return CallReference(
        method_name=method,
        location=SourceSpan("src/Checkout.cs", line, 9, line, 40),
        caller=caller,
        receiver=receiver,
        receiver_type=receiver_type,
    )


class TestDeclaredMethod(unittest.TestCase):
    def setUp(self):
        self.static = DeclaredMethod(DECLARED.key, "OrderPlaced", "Shop.Log")
        self.extension = DeclaredMethod(DECLARED.key, "OrderPlaced", "Shop.Log", extension=True)

    def test_receiver_naming_the_declaring_type(self):
        """Test Type.Method(...) and Namespace.Type.Method(...) reach the declaration."""
        self.assertTrue(self.static.is_called_by(_call_at(1, receiver="Log")))
        self.assertTrue(self.static.is_called_by(_call_at(2, receiver="Shop.Log")))
        self.assertFalse(self.static.is_called_by(_call_at(3, receiver="Audit")))

    def test_unqualified_call_only_inside_declaring_type(self):
        """Test an unqualified call must come from the declaring type or a type nested in it."""
        self.assertTrue(self.static.is_called_by(_call_at(1, caller="Shop.Log.Flush")))
        self.assertTrue(self.static.is_called_by(_call_at(2, receiver="this", caller="Shop.Log.Inner.Run")))
        self.assertFalse(self.static.is_called_by(_call_at(3, caller="Shop.Logger.Flush")))
        self.assertFalse(self.static.is_called_by(_call_at(4)))

    def test_extension_method_accepts_any_receiver(self):
        """Test logger.Method(...) reaches an extension-method declaration only."""
        call = _call_at(1, receiver="_logger", receiver_type="ILogger<Checkout>")
        self.assertTrue(self.extension.is_called_by(call))
        self.assertFalse(self.static.is_called_by(call))

    def test_receiver_typed_as_declaring_type(self):
        self.assertTrue(self.static.is_called_by(_call_at(1, receiver="_log", receiver_type="Shop.Log")))

    def test_other_method_names_never_match(self):
        self.assertFalse(self.extension.is_called_by(_call_at(1, receiver="Log", method="OrderShipped")))

    def test_from_candidate_reads_extension_marker(self):
        """Test the declaring type and the this-modifier come from the declaration."""
        candidate = CallCandidate(
            shape=CandidateShape.METHOD_DECLARATION,
            method_name="OrderPlaced",
            location=DECLARED,
            containing_symbol="Shop.Log.OrderPlaced",
            formal_parameters=(FormalParameter("logger", "ILogger", modifiers=("this",)),),
        )
        declared = DeclaredMethod.from_candidate(candidate, DECLARED.key)
        self.assertEqual((declared.declaring_type, declared.extension), ("Shop.Log", True))
        self.assertEqual(declaring_type_of("Shop.Log.OrderPlaced"), "Shop.Log")


class TestAttachInvocations(unittest.TestCase):
    def test_call_sites_sorted_onto_declared_record(self):
        """Test matching calls are attached in location order and other records stay as they are."""
        declared = UsageRecord(AnalyzerKind.ATTRIBUTE_DECLARED, DECLARED, "Shop.Log.OrderPlaced", "OrderPlaced")
        direct = UsageRecord(AnalyzerKind.DIRECT_CALL, SourceSpan("src/A.cs", 1, 1, 1, 9), "Shop.A.Run", "LogDebug")
        calls = [_call_at(9, receiver="Log"), _call_at(4, receiver="Log"), _call_at(6, receiver="Other")]

        attached = attach_invocations(
            [declared, direct],
            [DeclaredMethod(DECLARED.key, "OrderPlaced", "Shop.Log")],
            calls,
        )

        self.assertEqual([span.start_line for span in attached[0].invocations], [4, 9])
        self.assertIs(attached[1], direct)
        self.assertEqual(attached[0].to_dict()["invocations"][0]["start_line"], 4)

    def test_uncalled_declaration_keeps_empty_invocations(self):
        declared = UsageRecord(AnalyzerKind.ATTRIBUTE_DECLARED, DECLARED, "Shop.Log.OrderPlaced", "OrderPlaced")
        attached = attach_invocations([declared], [DeclaredMethod(DECLARED.key, "OrderPlaced", "Shop.Log")], [])
        self.assertEqual(attached[0].invocations, ())


if __name__ == "__main__":
    unittest.main()
