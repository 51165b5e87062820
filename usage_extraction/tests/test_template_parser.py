"""Tests for message template parsing."""

import unittest

from usage_extraction.models import TemplatePlaceholder
from usage_extraction.template_parser import parse_template


class TestParseTemplate(unittest.TestCase):
    def test_placeholders_in_order(self):
        """Test placeholders are reported left to right with ordinals."""
        parsed = parse_template("User {UserId} signed in from {Address}")
        self.assertTrue(parsed.parsed)
        self.assertEqual([p.name for p in parsed.placeholders], ["UserId", "Address"])
        self.assertEqual([p.ordinal for p in parsed.placeholders], [0, 1])
        self.assertEqual(
            parsed.segments,
            (
                "User ",
                TemplatePlaceholder(name="UserId", ordinal=0),
                " signed in from ",
                TemplatePlaceholder(name="Address", ordinal=1),
            ),
        )

    def test_alignment_and_format(self):
        """Test alignment and format specifier are split off the name."""
        parsed = parse_template("{Elapsed,-10:0.00} ms {Count,5} {When:yyyy-MM-dd HH:mm}")
        elapsed, count, when = parsed.placeholders
        self.assertEqual((elapsed.alignment, elapsed.format_specifier), (-10, "0.00"))
        self.assertEqual((count.alignment, count.format_specifier), (5, None))
        self.assertEqual((when.alignment, when.format_specifier), (None, "yyyy-MM-dd HH:mm"))

    def test_capture_markers_are_not_part_of_the_name(self):
        """Test @ and $ markers are stored apart from the name."""
        order, total = parse_template("Order {@Order} costs {$Total}").placeholders
        self.assertEqual((order.name, order.capture_marker), ("Order", "@"))
        self.assertTrue(order.destructures)
        self.assertEqual((total.name, total.capture_marker), ("Total", "$"))
        self.assertFalse(total.destructures)

    def test_doubled_braces_are_literal(self):
        """Test doubled braces resolve to literal text."""
        parsed = parse_template("{{x}}")
        self.assertTrue(parsed.parsed)
        self.assertEqual(parsed.segments, ("{x}",))
        self.assertEqual(parsed.placeholders, ())

    def test_escapes_next_to_placeholder(self):
        parsed = parse_template("{{{Value}}}")
        self.assertEqual(
            parsed.segments,
            ("{", TemplatePlaceholder(name="Value", ordinal=0), "}"),
        )

    def test_unmatched_open_brace_is_unparsed(self):
        """Test an unclosed brace keeps the whole text as one literal."""
        text = "Broken {Name template"
        parsed = parse_template(text)
        self.assertFalse(parsed.parsed)
        self.assertEqual(parsed.placeholders, ())
        self.assertEqual(parsed.segments, (text,))
        self.assertEqual("".join(parsed.segments), text)
        self.assertIsNotNone(parsed.error)

    def test_unmatched_close_brace_is_unparsed(self):
        """Test a stray closing brace leaves the template unparsed."""
        parsed = parse_template("Value} here")
        self.assertFalse(parsed.parsed)
        self.assertEqual(parsed.segments, ("Value} here",))

    def test_malformed_placeholder_is_unparsed(self):
        """Test empty names, bad alignments and nested braces are rejected."""
        for text in ("{}", "{Name,abc}", "{a{b}", "{,5}", "{:x}"):
            with self.subTest(text=text):
                self.assertFalse(parse_template(text).parsed)

    def test_names_with_punctuation_and_spaces(self):
        """Test any text before the first comma or colon is a valid name."""
        parsed = parse_template("Req {request-id} by {User Name,4:G} as {@request-id}")
        self.assertTrue(parsed.parsed)
        request, user, captured = parsed.placeholders
        self.assertEqual(request.name, "request-id")
        self.assertEqual((user.name, user.alignment, user.format_specifier), ("User Name", 4, "G"))
        self.assertEqual((captured.name, captured.capture_marker), ("request-id", "@"))
        self.assertEqual([p.name for p in parsed.distinct_placeholders], ["request-id", "User Name"])

    def test_repeated_names_get_distinct_ordinals(self):
        """Test repeated names keep their own ordinal but dedupe in distinct."""
        parsed = parse_template("{Id} then {Id,4} and {Other}")
        self.assertEqual([p.ordinal for p in parsed.placeholders], [0, 1, 2])
        self.assertEqual([p.name for p in parsed.distinct_placeholders], ["Id", "Other"])

    def test_positional_and_dotted_names(self):
        parsed = parse_template("{0} {Request.Path}")
        self.assertEqual([p.name for p in parsed.placeholders], ["0", "Request.Path"])

    def test_empty_template(self) -> None:
        """Test the empty template parses with no segments."""
        parsed = parse_template("")
        self.assertTrue(parsed.parsed)
        self.assertEqual(parsed.segments, ())


if __name__ == "__main__":
    unittest.main()
