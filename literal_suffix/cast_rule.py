"""
SA1139 — Use literal suffix notation instead of casting.

The rule looks at one cast expression at a time and runs an ordered chain
of guards, each of which can end the evaluation with a tagged outcome:

  1. target must be a predefined numeric keyword with a literal suffix
     (long, ulong, uint, float, double, decimal)          → NOT_APPLICABLE
  2. operand must be a literal, or +/- applied to one      → NOT_APPLICABLE
  3. that literal must be a classifiable numeric literal   → NOT_APPLICABLE
  4. literal kind already equals the target kind           → REDUNDANT
  5. cast is not a valid compile-time constant             → INVALID_CONSTANT
  6. otherwise                                             → MATCHED

Redundant casts belong to a different rule and must not be reported twice;
invalid constants are already compiler errors (CS0221 and friends).
"""

import logging
from enum import Enum
from typing import Optional
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

from literal_suffix.suffix_table import SUFFIX_TABLE, SuffixTable, NumericKind
from literal_suffix.literal_classifier import classify, is_classifiable
from literal_suffix.constant_evaluator import ConstantEvaluator

logger = logging.getLogger(__name__)

RULE_ID = "SA1139"
MESSAGE = "Use literal suffix notation instead of casting"

NUMERIC_LITERAL_TYPES = {"integer_literal", "real_literal"}
LITERAL_TYPES = NUMERIC_LITERAL_TYPES | {
    "boolean_literal", "character_literal", "string_literal",
    "verbatim_string_literal", "raw_string_literal", "null_literal",
}
SIGN_OPERATORS = {"+", "-"}


# ═══════════════════════════════════════════════════════════════════════
#  Data types
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CastSite:
    """Syntax facts about one cast expression, independent of the parser."""
    file_path: str
    start_byte: int
    end_byte: int
    start_line: int             # 1-indexed
    start_column: int           # 1-indexed
    end_line: int
    end_column: int
    type_keyword: Optional[str]  # "ulong" for predefined types, None otherwise
    operand_type: str           # node type of the operand (below any sign)
    operand_text: str
    unary_operator: Optional[str] = None
    unchecked: bool = False
    text: str = ""

    @property
    def sign(self) -> str:
        return self.unary_operator if self.unary_operator in SIGN_OPERATORS else ""


class CastFinding(BaseModel):
    """One reported SA1139 diagnostic."""
    model_config = ConfigDict(frozen=True)

    rule_id: str = RULE_ID
    message: str = MESSAGE
    severity: str = "warning"
    file_path: str
    line_number: int
    column: int
    end_line: int
    end_column: int
    start_byte: int
    end_byte: int
    target_kind: NumericKind
    literal_text: str
    sign: str = ""
    unchecked: bool = False
    effective_value: Optional[str] = None   # set when the digits must change
    cast_text: str = ""


class Outcome(Enum):
    MATCHED = "matched"
    NOT_APPLICABLE = "not_applicable"
    REDUNDANT = "redundant"
    INVALID_CONSTANT = "invalid_constant"


@dataclass(frozen=True)
class RuleResult:
    outcome: Outcome
    finding: Optional[CastFinding] = None
    reason: str = ""

    @property
    def matched(self) -> bool:
        return self.outcome is Outcome.MATCHED


# ═══════════════════════════════════════════════════════════════════════
#  Rule
# ═══════════════════════════════════════════════════════════════════════

class CastLiteralRule:
    """Decides whether a cast of a numeric literal should use a suffix instead."""

    rule_id = RULE_ID

    def __init__(self, table: SuffixTable = SUFFIX_TABLE,
                 evaluator: Optional[ConstantEvaluator] = None,
                 severity: str = "warning"):
        self.table = table
        self.evaluator = evaluator or ConstantEvaluator()
        self.severity = severity

    def evaluate(self, site: CastSite) -> RuleResult:
        target = self._target_kind(site)
        if target is None:
            return RuleResult(Outcome.NOT_APPLICABLE,
                              reason="target is not a numeric type with a literal suffix")

        if site.unary_operator is not None and site.unary_operator not in SIGN_OPERATORS:
            return RuleResult(Outcome.NOT_APPLICABLE,
                              reason=f"operand uses unary '{site.unary_operator}'")
        if site.operand_type not in LITERAL_TYPES:
            return RuleResult(Outcome.NOT_APPLICABLE, reason="operand is not a literal")
        if site.operand_type not in NUMERIC_LITERAL_TYPES:
            return RuleResult(Outcome.NOT_APPLICABLE, reason="operand is not a numeric literal")
        if not is_classifiable(site.operand_text):
            return RuleResult(Outcome.NOT_APPLICABLE,
                              reason=f"literal notation '{site.operand_text}' is not supported")

        token = classify(site.operand_text, self.table)
        if token.kind is target:
            return RuleResult(Outcome.REDUNDANT,
                              reason=f"literal is already of type '{target.keyword}'")

        conversion = self.evaluator.convert(token, target, site.sign, site.unchecked)
        if not conversion.is_constant:
            return RuleResult(Outcome.INVALID_CONSTANT, reason=conversion.reason)

        finding = CastFinding(
            severity=self.severity,
            file_path=site.file_path,
            line_number=site.start_line,
            column=site.start_column,
            end_line=site.end_line,
            end_column=site.end_column,
            start_byte=site.start_byte,
            end_byte=site.end_byte,
            target_kind=target,
            literal_text=token.text,
            sign=site.sign,
            unchecked=site.unchecked,
            effective_value=conversion.value_text if conversion.value_changed else None,
            cast_text=site.text,
        )
        logger.debug("%s:%d: %s flagged", site.file_path, site.start_line, site.text)
        return RuleResult(Outcome.MATCHED, finding=finding)

    def evaluate_finding(self, site: CastSite) -> Optional[CastFinding]:
        """The finding for ``site``, or None when the cast is not flagged."""
        return self.evaluate(site).finding

    def _target_kind(self, site: CastSite) -> Optional[NumericKind]:
        if site.type_keyword is None:
            return None
        kind = self.table.kind_for_keyword(site.type_keyword)
        if kind is None or not self.table.is_suffixable_target(kind):
            return None
        return kind
