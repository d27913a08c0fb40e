"""
SA1139 Fix Engine — literal suffix rewriting.

Given a previously reported finding, the engine:
  1. Re-parses the file and re-locates the cast by its byte span, or by
     line and text when earlier fixes moved it
  2. Re-evaluates the rule on the current tree (the file may have changed)
  3. Rewrites the cast into sign + digits + canonical suffix
  4. Returns a FixAnalysis with a byte-range edit covering the whole cast

Only the cast node itself is replaced, so whitespace and comments around it
are preserved.
"""

import logging
from typing import Optional, List, Dict, Any
from dataclasses import dataclass, field

from literal_suffix.suffix_table import SUFFIX_TABLE, SuffixTable, LiteralFamily, NumericKind, KIND_INFO
from literal_suffix.literal_classifier import classify
from literal_suffix.cast_rule import CastFinding
from literal_suffix.cs_analyzer import CSharpAnalyzer
from literal_suffix.context_provider import ContextProvider
from literal_suffix.batch_fixer import apply_edits
from literal_suffix.rule_catalog import get_rule

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
#  Rewriter
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReplacementLiteral:
    sign_text: str
    digits_text: str
    suffix_text: str

    @property
    def text(self) -> str:
        return f"{self.sign_text}{self.digits_text}{self.suffix_text}"


class Rewriter:
    """Computes the suffixed literal that replaces a flagged cast."""

    def __init__(self, table: SuffixTable = SUFFIX_TABLE):
        self.table = table

    def rewrite(self, finding: CastFinding) -> ReplacementLiteral:
        suffix = self.table.suffix_for_kind(finding.target_kind)
        if finding.effective_value is not None:
            # The converted value differs from the written digits
            # (unchecked wraparound, truncated real, hex into a real type).
            value = finding.effective_value
            sign = "-" if value.startswith("-") else ""
            return ReplacementLiteral(sign, value.lstrip("-"), suffix)

        body = classify(finding.literal_text, self.table).body
        return ReplacementLiteral(finding.sign, body, suffix)


# ═══════════════════════════════════════════════════════════════════════
#  Output data type
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class FixAnalysis:
    """Structured fix proposal for one finding."""
    rule_id: str
    file_path: str
    line_number: int
    confidence: str                    # HIGH / MEDIUM / LOW
    original: str                      # the flagged cast expression
    replacement: str                   # the literal replacing it ("" if none)
    violation_line: str = ""
    fix_guidance: str = ""
    compliant_example: str = ""
    non_compliant_example: str = ""
    side_effects: List[str] = field(default_factory=list)
    edits: List[Dict[str, Any]] = field(default_factory=list)  # [{start_byte, end_byte, text}]
    edit_skip_reason: Optional[str] = None

    def to_markdown(self) -> str:
        md = f"### Fix Analysis — {self.rule_id}\n"
        md += f"**Location**: `{self.file_path}:{self.line_number}`  \n"
        md += f"**Confidence**: {self.confidence}\n\n"

        if self.violation_line:
            md += "#### Violation Line\n```csharp\n"
            md += self.violation_line.rstrip() + "\n```\n\n"

        md += "#### Rewrite\n"
        if self.replacement:
            md += f"- `{self.original}` → `{self.replacement}`\n\n"
        else:
            md += f"- `{self.original}`: no rewrite ({self.edit_skip_reason})\n\n"

        if self.edits:
            md += "#### Suggested Fix (Auto-Apply Available)\n"
            for edit in self.edits:
                md += (f"- Replace bytes {edit['start_byte']}–{edit['end_byte']} "
                       f"with `{edit['text']}`\n")
            md += "\n"

        if self.fix_guidance:
            md += "#### Fix Guidance\n"
            md += self.fix_guidance + "\n\n"

        if self.compliant_example:
            md += "#### Compliant Example\n```csharp\n"
            md += self.compliant_example.rstrip() + "\n```\n\n"

        if self.side_effects:
            md += "#### ⚠ Potential Side Effects\n"
            for se in self.side_effects:
                md += f"- {se}\n"

        return md


# ═══════════════════════════════════════════════════════════════════════
#  Engine
# ═══════════════════════════════════════════════════════════════════════

class FixEngine:
    """Generates SA1139 fixes for reported findings."""

    def __init__(self, analyzer: Optional[CSharpAnalyzer] = None,
                 context_provider: Optional[ContextProvider] = None,
                 rewriter: Optional[Rewriter] = None):
        self.analyzer = analyzer
        self.context_provider = context_provider
        self.rewriter = rewriter or Rewriter()

    def propose_fix(self, finding: CastFinding) -> FixAnalysis:
        """Build the fix for a finding against the file's current contents."""
        rule = get_rule(finding.rule_id)
        analysis = FixAnalysis(
            rule_id=finding.rule_id,
            file_path=finding.file_path,
            line_number=finding.line_number,
            confidence="HIGH",
            original=finding.cast_text,
            replacement="",
            fix_guidance=rule.fix_strategy if rule else "",
            compliant_example=rule.compliant if rule else "",
            non_compliant_example=rule.non_compliant if rule else "",
        )
        if self.context_provider is not None:
            analysis.violation_line = self.context_provider.get_line(
                finding.file_path, finding.line_number
            )

        source = None
        current = finding
        if self.analyzer is None:
            # No tree available: trust the stored finding
            analysis.confidence = "MEDIUM"
        else:
            site = self.analyzer.find_cast_at(finding.file_path, finding.start_byte, finding.end_byte)
            if site is None or (finding.cast_text and site.text != finding.cast_text):
                # Earlier fixes in the same file shift offsets but keep lines
                site = self.analyzer.find_cast_on_line(
                    finding.file_path, finding.line_number, finding.cast_text, finding.column
                )
            if site is None:
                analysis.confidence = "LOW"
                analysis.edit_skip_reason = (
                    "No cast expression at the reported location; the file "
                    "changed since it was analyzed. Re-run the analysis."
                )
                return analysis
            result = self.analyzer.rule.evaluate(site)
            if not result.matched:
                analysis.confidence = "LOW"
                analysis.edit_skip_reason = f"Cast is no longer flagged: {result.reason}"
                return analysis
            current = result.finding
            analysis.original = current.cast_text
            source = self.analyzer.get_source(finding.file_path)

        replacement = self.rewriter.rewrite(current)
        text = replacement.text
        if source is not None and self._needs_separator(source, current.start_byte, text):
            text = " " + text

        analysis.replacement = replacement.text
        analysis.edits = [{
            "start_byte": current.start_byte,
            "end_byte": current.end_byte,
            "text": text,
        }]
        analysis.side_effects = self._side_effects(current, replacement)
        return analysis

    def fix_source(self, source: str) -> str:
        """Rewrite every SA1139 finding of an in-memory C# text."""
        analyzer = self.analyzer or CSharpAnalyzer(".")
        raw = source.encode("utf-8")
        edits = []
        for finding in analyzer.analyze_source(source):
            text = self.rewriter.rewrite(finding).text
            if self._needs_separator(raw, finding.start_byte, text):
                text = " " + text
            edits.append({"start_byte": finding.start_byte, "end_byte": finding.end_byte, "text": text})
        fixed, _, _ = apply_edits(raw, edits)
        return fixed.decode("utf-8")

    @staticmethod
    def _needs_separator(source: bytes, start_byte: int, text: str) -> bool:
        """True when a leading sign would fuse with the preceding character.

        ``a-(long)-1`` must become ``a- -1L``, not the decrement ``a--1L``.
        """
        if start_byte <= 0 or not text or text[0] not in "+-":
            return False
        return source[start_byte - 1:start_byte] == text[0].encode("ascii")

    def _side_effects(self, finding: CastFinding, replacement: ReplacementLiteral) -> List[str]:
        effects = []
        info = KIND_INFO[finding.target_kind]
        literal = classify(finding.literal_text, self.rewriter.table)
        if literal.kind is NumericKind.FLOAT and finding.target_kind is NumericKind.DOUBLE:
            effects.append(
                f"`{finding.cast_text}` widens the float value of `{finding.literal_text}`; "
                f"`{replacement.text}` is the exact double, which can differ in the low digits "
                f"(e.g. `(double)1.1F` is 1.10000002384185791015625)."
            )
        if finding.effective_value is None:
            return effects
        # effective_value on an integer → integral cast only comes from wraparound
        if info.is_integral and literal.family is LiteralFamily.INTEGER:
            effects.append(
                f"Value written as `{replacement.text}`: `{finding.cast_text}` wraps around "
                f"in the unchecked context. The literal no longer depends on the "
                f"`unchecked` block."
            )
        elif literal.family is LiteralFamily.REAL and info.is_integral:
            effects.append(
                f"The fractional part of `{finding.literal_text}` is dropped; the cast "
                f"truncated toward zero, so `{replacement.text}` keeps the same value."
            )
        elif literal.is_hex and not info.is_integral:
            effects.append(
                f"Hexadecimal `{finding.literal_text}` is written in decimal: real literals "
                f"have no hexadecimal form."
            )
        return effects
