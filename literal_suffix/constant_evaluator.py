"""
Constant Evaluator

Answers the question the cast rule cannot answer from syntax alone: is
``(T)literal`` (optionally signed) a valid C# compile-time constant, and what
value does it produce?

Follows the C# rules for constant expressions:
  • an unsuffixed integer literal takes the first of int, uint, long, ulong
    that holds its value (U: uint, ulong; L: long, ulong; UL: ulong);
  • unary minus on a ulong literal is an error (CS0023), except for the
    decimal literal 9223372036854775808 without suffix or with L, which
    negates to long.MinValue;
  • -0 on an integer literal is plain 0 and is rewritten without its sign;
  • integral → integral conversions that do not fit are errors (CS0221)
    unless the expression sits in an ``unchecked`` context, where they wrap;
  • real → integral conversions truncate toward zero and must fit;
  • conversions into float / double / decimal must stay inside the range
    of the target.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Union
from dataclasses import dataclass, replace

from literal_suffix.literal_classifier import NumericLiteralToken
from literal_suffix.suffix_table import KIND_INFO, NumericKind, LiteralFamily

logger = logging.getLogger(__name__)

Number = Union[int, Decimal]

# Candidate C# types for an integer literal, by its suffix kind
_INTEGER_LITERAL_TYPES: Dict[NumericKind, List[NumericKind]] = {
    NumericKind.INT: [NumericKind.INT, NumericKind.UINT, NumericKind.LONG, NumericKind.ULONG],
    NumericKind.UINT: [NumericKind.UINT, NumericKind.ULONG],
    NumericKind.LONG: [NumericKind.LONG, NumericKind.ULONG],
    NumericKind.ULONG: [NumericKind.ULONG],
}

_LONG_MIN_MAGNITUDE = 1 << 63


def reinterpret_unchecked(value: int, kind: NumericKind) -> int:
    """Two's-complement reinterpretation of ``value`` at the width of ``kind``.

    This is what an ``unchecked`` integral conversion does: keep the low
    ``width`` bits, then read them back as signed or unsigned.

        reinterpret_unchecked(-1, NumericKind.ULONG)      == 18446744073709551615
        reinterpret_unchecked(4294967296, NumericKind.UINT) == 0
        reinterpret_unchecked(2**63, NumericKind.LONG)      == -9223372036854775808
    """
    info = KIND_INFO[kind]
    if not info.is_integral:
        raise ValueError(f"'{kind.keyword}' is not an integral kind")
    wrapped = value & ((1 << info.width) - 1)
    if info.is_signed and wrapped > info.max_value:
        wrapped -= 1 << info.width
    return wrapped


def _fits(value: int, kind: NumericKind) -> bool:
    info = KIND_INFO[kind]
    return info.min_value <= value <= info.max_value


@dataclass(frozen=True)
class ConstantConversion:
    """Outcome of converting a (signed) literal to a target kind."""
    is_constant: bool                  # a valid compile-time constant
    value: Optional[Number] = None     # the converted value, when constant
    overflowed: bool = False           # wrapped under unchecked arithmetic
    value_changed: bool = False        # converted value differs from the literal's digits
    reason: str = ""

    @property
    def value_text(self) -> Optional[str]:
        """Decimal text of the converted value (sign included)."""
        if self.value is None:
            return None
        return str(self.value)


class ConstantEvaluator:
    """Compile-time evaluation of ``(kind)[sign]literal`` casts."""

    def literal_type(self, token: NumericLiteralToken) -> Optional[NumericKind]:
        """The C# type the literal itself has, or None if it is out of range."""
        if token.family is LiteralFamily.REAL:
            info = KIND_INFO[token.kind]
            return token.kind if abs(token.numeric_value()) <= info.max_magnitude else None

        value = token.numeric_value()
        for kind in _INTEGER_LITERAL_TYPES[token.kind]:
            if _fits(value, kind):
                return kind
        return None

    def signed_value(self, token: NumericLiteralToken, sign: str = "") -> Optional[Number]:
        """Value of ``sign literal``, or None when the expression is not constant."""
        literal_kind = self.literal_type(token)
        if literal_kind is None:
            return None
        value = token.numeric_value()
        if sign != "-":
            return value
        if literal_kind is NumericKind.ULONG:
            # Unary minus on ulong is CS0023, except for the decimal literal
            # 9223372036854775808 written without suffix or with L
            if (value == _LONG_MIN_MAGNITUDE and not token.is_hex
                    and token.kind in (NumericKind.INT, NumericKind.LONG)):
                return -value
            return None
        return -value

    def convert(
        self,
        token: NumericLiteralToken,
        target: NumericKind,
        sign: str = "",
        unchecked: bool = False,
    ) -> ConstantConversion:
        """Evaluate the cast ``(target)sign token``."""
        value = self.signed_value(token, sign)
        if value is None:
            return ConstantConversion(
                False, reason=f"'{sign}{token.text}' is not a valid constant"
            )

        info = KIND_INFO[target]
        if info.is_integral:
            conversion = self._to_integral(token, value, target, unchecked)
        else:
            conversion = self._to_real(token, value, target)
        if conversion.is_constant and sign == "-" and value == 0 and not conversion.value_changed:
            # -0 on an integer is plain 0: "-0UL" does not compile, "-0D" is negative zero
            if token.family is LiteralFamily.INTEGER or not info.is_signed:
                conversion = replace(conversion, value_changed=True)
        return conversion

    # ────────────────────────────────────────────────────────────────
    #  Conversion helpers
    # ────────────────────────────────────────────────────────────────

    def _to_integral(self, token, value: Number, target: NumericKind,
                     unchecked: bool) -> ConstantConversion:
        if isinstance(value, Decimal):
            truncated = int(value)  # toward zero
            if not _fits(truncated, target):
                return ConstantConversion(
                    False,
                    reason=f"constant value '{value}' is outside the range of '{target.keyword}'",
                )
            return ConstantConversion(True, truncated, value_changed=True)

        if _fits(value, target):
            return ConstantConversion(True, value)

        if not unchecked:
            return ConstantConversion(
                False,
                reason=(f"constant value '{value}' cannot be converted to a "
                        f"'{target.keyword}' (use 'unchecked' syntax to override)"),
            )
        wrapped = reinterpret_unchecked(value, target)
        logger.debug("unchecked %s → %s wraps %d to %d", token.text, target.keyword, value, wrapped)
        return ConstantConversion(True, wrapped, overflowed=True, value_changed=True)

    def _to_real(self, token, value: Number, target: NumericKind) -> ConstantConversion:
        info = KIND_INFO[target]
        if abs(Decimal(value)) > info.max_magnitude:
            return ConstantConversion(
                False,
                reason=f"constant value '{value}' is outside the range of '{target.keyword}'",
            )
        # A hex digit body cannot carry a real suffix: 0x10D is an integer.
        return ConstantConversion(True, value, value_changed=token.is_hex)
