"""
Literal Classifier

Turns the raw text of a C# numeric literal token into a structured
description: base, integer/real family, suffix and canonical kind.

Two mutually exclusive grammars are recognised (case-insensitive):

  integer   0x<hex digits> | <decimal digits>   then  "" | U | L | UL
  real      <digits>.<digits>[e±<digits>][M|F|D]
            <digits>e±<digits>[M|F|D]
            <digits>(M|F|D)

Binary literals and digit separators are outside both grammars; use
``is_classifiable`` before ``classify`` when the text comes from user code.
"""

import re
from decimal import Decimal
from dataclasses import dataclass

from literal_suffix.suffix_table import (
    SUFFIX_TABLE, SuffixTable, NumericKind, LiteralFamily, LiteralBase,
    LiteralGrammarError,
)

_FLAGS = re.IGNORECASE
_INTEGER_DEC_RE = re.compile(r"^[0-9]+(?:|u|l|ul)$", _FLAGS)
_INTEGER_HEX_RE = re.compile(r"^0x[0-9a-f]+(?:|u|l|ul)$", _FLAGS)
_REAL_RE = re.compile(
    r"^(?:"
    r"[0-9]*\.[0-9]+(?:e[+-]?[0-9]+)?[mfd]?"
    r"|[0-9]+e[+-]?[0-9]+[mfd]?"
    r"|[0-9]+[mfd]"
    r")$",
    _FLAGS,
)


@dataclass(frozen=True)
class NumericLiteralToken:
    """An immutable, classified numeric literal."""
    text: str
    base: LiteralBase
    family: LiteralFamily
    suffix_text: str        # original casing, may be empty
    kind: NumericKind

    @property
    def body(self) -> str:
        """Digits (and fraction / exponent) without the suffix."""
        return self.text[:len(self.text) - len(self.suffix_text)]

    @property
    def is_hex(self) -> bool:
        return self.base is LiteralBase.HEXADECIMAL

    def numeric_value(self):
        """Mathematical value: ``int`` for integer literals, ``Decimal`` for reals."""
        if self.family is LiteralFamily.INTEGER:
            return int(self.body, 16 if self.is_hex else 10)
        return Decimal(self.body)


def _family_of(text: str):
    if _INTEGER_HEX_RE.match(text):
        return LiteralFamily.INTEGER, LiteralBase.HEXADECIMAL
    if _INTEGER_DEC_RE.match(text):
        return LiteralFamily.INTEGER, LiteralBase.DECIMAL
    if _REAL_RE.match(text):
        return LiteralFamily.REAL, LiteralBase.DECIMAL
    return None, None


def is_classifiable(text: str) -> bool:
    """True when ``text`` follows the integer or the real literal grammar."""
    family, _ = _family_of(text)
    return family is not None


def _suffix_start(text: str, letters: str, skip: int = 0) -> int:
    for i in range(skip, len(text)):
        if text[i] in letters:
            return i
    return -1


def classify(text: str, table: SuffixTable = SUFFIX_TABLE) -> NumericLiteralToken:
    """Classify a numeric literal token.

    Raises:
        LiteralGrammarError: the text matches neither grammar, or its suffix
            has no entry in the table.
    """
    family, base = _family_of(text)
    if family is None:
        raise LiteralGrammarError(f"'{text}' is not an integer nor a real numeric literal.")

    # The 0x prefix never contains a suffix letter, but skip it anyway.
    skip = 2 if base is LiteralBase.HEXADECIMAL else 0
    start = _suffix_start(text, table.suffix_letters(family), skip)
    suffix = "" if start == -1 else text[start:]
    kind = table.kind_for_suffix(suffix, family)
    return NumericLiteralToken(
        text=text,
        base=base,
        family=family,
        suffix_text=suffix,
        kind=kind,
    )


def strip_suffix(text: str, table: SuffixTable = SUFFIX_TABLE) -> str:
    """Return the literal text without its suffix."""
    return classify(text, table).body
