"""
Constant evaluation and SA1139 rule tests (parser-independent).

CastSite records are built by hand, so these tests exercise the guard
chain and the constant arithmetic without tree-sitter.
"""

import os
import sys
import unittest
from decimal import Decimal

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from literal_suffix.suffix_table import NumericKind
from literal_suffix.literal_classifier import classify
from literal_suffix.constant_evaluator import ConstantEvaluator, reinterpret_unchecked
from literal_suffix.cast_rule import CastLiteralRule, CastSite, Outcome, RULE_ID


def make_site(type_keyword, literal, operand_type="integer_literal",
              unary_operator=None, unchecked=False):
    sign = unary_operator or ""
    text = f"({type_keyword}){sign}{literal}"
    return CastSite(
        file_path="Demo.cs",
        start_byte=100,
        end_byte=100 + len(text),
        start_line=5,
        start_column=17,
        end_line=5,
        end_column=17 + len(text),
        type_keyword=type_keyword,
        operand_type=operand_type,
        operand_text=literal,
        unary_operator=unary_operator,
        unchecked=unchecked,
        text=text,
    )


class TestReinterpretUnchecked(unittest.TestCase):

    def test_wraps_to_unsigned(self):
        self.assertEqual(reinterpret_unchecked(-1, NumericKind.ULONG), 2 ** 64 - 1)
        self.assertEqual(reinterpret_unchecked(-1, NumericKind.UINT), 2 ** 32 - 1)

    def test_wraps_to_signed(self):
        self.assertEqual(reinterpret_unchecked(2 ** 63, NumericKind.LONG), -(2 ** 63))
        self.assertEqual(reinterpret_unchecked(2 ** 64 - 1, NumericKind.LONG), -1)

    def test_rejects_real_kind(self):
        with self.assertRaises(ValueError):
            reinterpret_unchecked(1, NumericKind.DOUBLE)


class TestConstantEvaluator(unittest.TestCase):

    def setUp(self):
        self.evaluator = ConstantEvaluator()

    def test_literal_type_promotion(self):
        self.assertIs(self.evaluator.literal_type(classify("1")), NumericKind.INT)
        self.assertIs(self.evaluator.literal_type(classify("4294967295")), NumericKind.UINT)
        self.assertIs(self.evaluator.literal_type(classify("4294967296")), NumericKind.LONG)
        self.assertIs(self.evaluator.literal_type(classify("9223372036854775808")),
                      NumericKind.ULONG)
        self.assertIsNone(self.evaluator.literal_type(classify("18446744073709551616")))
        self.assertIs(self.evaluator.literal_type(classify("4294967296U")), NumericKind.ULONG)

    def test_negating_ulong_literal(self):
        self.assertEqual(self.evaluator.signed_value(classify("9223372036854775808"), "-"),
                         -(2 ** 63))
        self.assertEqual(self.evaluator.signed_value(classify("9223372036854775808L"), "-"),
                         -(2 ** 63))
        self.assertIsNone(self.evaluator.signed_value(classify("1UL"), "-"))
        self.assertIsNone(self.evaluator.signed_value(classify("0UL"), "-"))
        self.assertIsNone(self.evaluator.signed_value(classify("0ul"), "-"))
        self.assertIsNone(self.evaluator.signed_value(classify("9223372036854775808UL"), "-"))
        self.assertIsNone(self.evaluator.signed_value(classify("9223372036854775808u"), "-"))
        self.assertIsNone(self.evaluator.signed_value(classify("0x8000000000000000"), "-"))

    def test_negative_zero_drops_sign(self):
        for target in (NumericKind.ULONG, NumericKind.UINT, NumericKind.LONG, NumericKind.DOUBLE):
            result = self.evaluator.convert(classify("0"), target, "-")
            self.assertTrue(result.is_constant, target)
            self.assertTrue(result.value_changed, target)
            self.assertEqual(result.value_text, "0")

    def test_negative_real_zero_keeps_sign_for_real_target(self):
        result = self.evaluator.convert(classify("0.0"), NumericKind.FLOAT, "-")
        self.assertTrue(result.is_constant)
        self.assertFalse(result.value_changed)

    def test_checked_overflow_is_not_constant(self):
        result = self.evaluator.convert(classify("1"), NumericKind.ULONG, "-")
        self.assertFalse(result.is_constant)
        self.assertIn("unchecked", result.reason)

    def test_unchecked_overflow_wraps(self):
        result = self.evaluator.convert(classify("1L"), NumericKind.ULONG, "-", unchecked=True)
        self.assertTrue(result.is_constant)
        self.assertTrue(result.overflowed)
        self.assertTrue(result.value_changed)
        self.assertEqual(result.value_text, "18446744073709551615")

    def test_fitting_conversion_keeps_digits(self):
        result = self.evaluator.convert(classify("1L"), NumericKind.ULONG)
        self.assertTrue(result.is_constant)
        self.assertFalse(result.value_changed)
        self.assertEqual(result.value, 1)

    def test_real_to_integral_truncates(self):
        result = self.evaluator.convert(classify("1.9"), NumericKind.LONG, "-")
        self.assertTrue(result.is_constant)
        self.assertEqual(result.value, -1)
        self.assertTrue(result.value_changed)

    def test_real_to_integral_out_of_range_even_unchecked(self):
        result = self.evaluator.convert(classify("1e30"), NumericKind.LONG, unchecked=True)
        self.assertFalse(result.is_constant)

    def test_real_range(self):
        self.assertFalse(self.evaluator.convert(classify("1e39"), NumericKind.FLOAT).is_constant)
        self.assertTrue(self.evaluator.convert(classify("1e38"), NumericKind.FLOAT).is_constant)
        self.assertFalse(self.evaluator.convert(classify("1e29"), NumericKind.DECIMAL).is_constant)

    def test_hex_to_real_changes_notation(self):
        result = self.evaluator.convert(classify("0x10"), NumericKind.DOUBLE)
        self.assertTrue(result.is_constant)
        self.assertTrue(result.value_changed)
        self.assertEqual(result.value_text, "16")

    def test_integer_to_real_keeps_digits(self):
        result = self.evaluator.convert(classify("3"), NumericKind.DECIMAL, "-")
        self.assertTrue(result.is_constant)
        self.assertFalse(result.value_changed)
        self.assertEqual(Decimal(result.value), Decimal(-3))


class TestCastLiteralRule(unittest.TestCase):

    def setUp(self):
        self.rule = CastLiteralRule()

    def assertOutcome(self, site, outcome):
        result = self.rule.evaluate(site)
        self.assertIs(result.outcome, outcome, f"{site.text}: {result.reason}")
        return result

    def test_simple_cast_is_flagged(self):
        result = self.assertOutcome(make_site("long", "1"), Outcome.MATCHED)
        finding = result.finding
        self.assertEqual(finding.rule_id, RULE_ID)
        self.assertEqual(finding.message, "Use literal suffix notation instead of casting")
        self.assertIs(finding.target_kind, NumericKind.LONG)
        self.assertEqual((finding.line_number, finding.column), (5, 17))
        self.assertIsNone(finding.effective_value)

    def test_every_suffixable_target_with_signs(self):
        cases = [
            ("long", "1", ["", "+", "-"]),
            ("ulong", "1", ["", "+"]),
            ("uint", "1", [""]),
            ("float", "1", ["", "+", "-"]),
            ("double", "1", ["", "+", "-"]),
            ("decimal", "1", ["", "+", "-"]),
        ]
        for keyword, literal, signs in cases:
            for sign in signs:
                site = make_site(keyword, literal, unary_operator=sign or None)
                self.assertOutcome(site, Outcome.MATCHED)

    def test_int_target_is_not_applicable(self):
        self.assertOutcome(make_site("int", "1L"), Outcome.NOT_APPLICABLE)

    def test_non_predefined_target(self):
        self.assertOutcome(make_site(None, "1"), Outcome.NOT_APPLICABLE)

    def test_bitwise_complement_is_not_applicable(self):
        self.assertOutcome(make_site("long", "1", unary_operator="~"), Outcome.NOT_APPLICABLE)

    def test_boolean_literal_is_not_applicable(self):
        self.assertOutcome(make_site("long", "true", operand_type="boolean_literal"),
                           Outcome.NOT_APPLICABLE)

    def test_parenthesized_operand_is_not_applicable(self):
        self.assertOutcome(make_site("long", "(1)", operand_type="parenthesized_expression"),
                           Outcome.NOT_APPLICABLE)

    def test_unsupported_notation_is_not_applicable(self):
        self.assertOutcome(make_site("long", "0b1"), Outcome.NOT_APPLICABLE)
        self.assertOutcome(make_site("long", "1_000"), Outcome.NOT_APPLICABLE)

    def test_redundant_cast(self):
        self.assertOutcome(make_site("long", "1l"), Outcome.REDUNDANT)
        self.assertOutcome(make_site("double", "1.5"), Outcome.REDUNDANT)
        self.assertOutcome(make_site("float", "2F", operand_type="real_literal"),
                           Outcome.REDUNDANT)

    def test_checked_negative_to_unsigned_is_invalid(self):
        self.assertOutcome(make_site("ulong", "1", unary_operator="-"),
                           Outcome.INVALID_CONSTANT)

    def test_negated_ulong_literal_is_invalid(self):
        for literal in ("0UL", "0ul", "9223372036854775808UL"):
            self.assertOutcome(make_site("long", literal, unary_operator="-"),
                               Outcome.INVALID_CONSTANT)
        result = self.assertOutcome(
            make_site("decimal", "9223372036854775808", unary_operator="-"), Outcome.MATCHED)
        self.assertIsNone(result.finding.effective_value)

    def test_unchecked_negative_to_unsigned_is_flagged(self):
        result = self.assertOutcome(
            make_site("ulong", "1L", unary_operator="-", unchecked=True), Outcome.MATCHED)
        self.assertTrue(result.finding.unchecked)
        self.assertEqual(result.finding.effective_value, "18446744073709551615")

    def test_suffix_conversions_are_flagged(self):
        for literal in ("1L", "1l", "1U", "1u"):
            self.assertOutcome(make_site("ulong", literal), Outcome.MATCHED)

    def test_severity_is_configurable(self):
        rule = CastLiteralRule(severity="error")
        self.assertEqual(rule.evaluate_finding(make_site("long", "1")).severity, "error")
        self.assertIsNone(rule.evaluate_finding(make_site("long", "1L")))


if __name__ == "__main__":
    unittest.main()
