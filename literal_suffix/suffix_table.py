"""
Suffix / Kind Table

The single lookup shared by the literal classifier, the cast rule and the
rewriter.  Maps C# numeric kinds to their literal suffixes (both directions,
case-insensitive on the suffix side) and to the predefined-type keywords
that name them in a cast.

  Kind      Suffix   Keyword
  ───────   ──────   ───────
  INT       ""       int
  LONG      L        long
  ULONG     UL       ulong
  UINT      U        uint
  FLOAT     F        float
  DOUBLE    D        double
  DECIMAL   M        decimal
"""

from enum import Enum
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Mapping, Optional
from dataclasses import dataclass


class LiteralGrammarError(AssertionError):
    """A numeric literal matched no known grammar or suffix.

    Raised for internal contract failures only: literal text reaching the
    classifier has already passed the numeric-literal check, so a miss here
    means the grammar tables and the suffix alphabet are out of sync.
    """


class NumericKind(Enum):
    INT = "int"
    LONG = "long"
    ULONG = "ulong"
    UINT = "uint"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"

    @property
    def keyword(self) -> str:
        return self.value


class LiteralFamily(Enum):
    INTEGER = "integer"
    REAL = "real"


class LiteralBase(Enum):
    DECIMAL = 10
    HEXADECIMAL = 16


@dataclass(frozen=True)
class KindInfo:
    """Value-range facts about a numeric kind."""
    kind: NumericKind
    is_integral: bool
    width: int = 0                      # bits, integral kinds only
    is_signed: bool = True
    max_magnitude: Optional[Decimal] = None  # real kinds only

    @property
    def min_value(self) -> int:
        return -(1 << (self.width - 1)) if self.is_signed else 0

    @property
    def max_value(self) -> int:
        return (1 << (self.width - 1)) - 1 if self.is_signed else (1 << self.width) - 1


KIND_INFO: Mapping[NumericKind, KindInfo] = MappingProxyType({
    NumericKind.INT:     KindInfo(NumericKind.INT, True, 32, True),
    NumericKind.UINT:    KindInfo(NumericKind.UINT, True, 32, False),
    NumericKind.LONG:    KindInfo(NumericKind.LONG, True, 64, True),
    NumericKind.ULONG:   KindInfo(NumericKind.ULONG, True, 64, False),
    NumericKind.FLOAT:   KindInfo(NumericKind.FLOAT, False,
                                  max_magnitude=Decimal("3.40282347E+38")),
    NumericKind.DOUBLE:  KindInfo(NumericKind.DOUBLE, False,
                                  max_magnitude=Decimal("1.7976931348623157E+308")),
    NumericKind.DECIMAL: KindInfo(NumericKind.DECIMAL, False,
                                  max_magnitude=Decimal("79228162514264337593543950335")),
})


class SuffixTable:
    """Immutable, bidirectional suffix ↔ kind lookup.

    Suffix keys are stored upper-case; lookups upper-case their argument, so
    ``"ul"``, ``"uL"`` and ``"UL"`` all resolve to ULONG.
    """

    def __init__(self, entries: Mapping[str, NumericKind],
                 families: Mapping[NumericKind, LiteralFamily],
                 implicit_real_kind: NumericKind = NumericKind.DOUBLE):
        self._by_suffix: Mapping[str, NumericKind] = MappingProxyType(
            {s.upper(): k for s, k in entries.items()}
        )
        self._by_kind: Mapping[NumericKind, str] = MappingProxyType(
            {k: s.upper() for s, k in entries.items()}
        )
        self._families = MappingProxyType(dict(families))
        self._implicit_real_kind = implicit_real_kind
        self._by_keyword: Mapping[str, NumericKind] = MappingProxyType(
            {k.keyword: k for k in self._by_kind}
        )
        letters: Dict[LiteralFamily, str] = {}
        for family in LiteralFamily:
            chars = sorted({c for s, k in self._by_suffix.items()
                            if self._families[k] is family for c in s})
            letters[family] = "".join(c + c.lower() for c in chars)
        self._letters = MappingProxyType(letters)

    # ────────────────────────────────────────────────────────────────
    #  Suffix → kind
    # ────────────────────────────────────────────────────────────────

    def kind_for_suffix(self, suffix: str, family: LiteralFamily) -> NumericKind:
        """Resolve a literal suffix (any casing) within a literal family."""
        key = suffix.upper()
        if key == "" and family is LiteralFamily.REAL:
            # 1.5, 1e3: a real literal without suffix is a double
            return self._implicit_real_kind
        kind = self._by_suffix.get(key)
        if kind is None or self._families[kind] is not family:
            raise LiteralGrammarError(
                f"There is no {family.value} numeric literal with suffix '{suffix}'."
            )
        return kind

    def suffix_letters(self, family: LiteralFamily) -> str:
        return self._letters[family]

    # ────────────────────────────────────────────────────────────────
    #  Kind → suffix
    # ────────────────────────────────────────────────────────────────

    def suffix_for_kind(self, kind: NumericKind) -> str:
        return self._by_kind[kind]

    def is_suffixable_target(self, kind: NumericKind) -> bool:
        """True for kinds that literal notation can express with a suffix."""
        return self._by_kind.get(kind, "") != ""

    # ────────────────────────────────────────────────────────────────
    #  Keywords
    # ────────────────────────────────────────────────────────────────

    def kind_for_keyword(self, keyword: str) -> Optional[NumericKind]:
        """Map a C# predefined-type keyword (``ulong``) to its kind."""
        return self._by_keyword.get(keyword.strip())



SUFFIX_TABLE = SuffixTable(
    entries={
        "": NumericKind.INT,
        "L": NumericKind.LONG,
        "UL": NumericKind.ULONG,
        "U": NumericKind.UINT,
        "F": NumericKind.FLOAT,
        "D": NumericKind.DOUBLE,
        "M": NumericKind.DECIMAL,
    },
    families={
        NumericKind.INT: LiteralFamily.INTEGER,
        NumericKind.LONG: LiteralFamily.INTEGER,
        NumericKind.ULONG: LiteralFamily.INTEGER,
        NumericKind.UINT: LiteralFamily.INTEGER,
        NumericKind.FLOAT: LiteralFamily.REAL,
        NumericKind.DOUBLE: LiteralFamily.REAL,
        NumericKind.DECIMAL: LiteralFamily.REAL,
    },
)
