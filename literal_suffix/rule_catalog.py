"""
Readability Rule Catalog

Structured data for the rules this agent reports.  Each entry provides the
official title, category, diagnostic message, rationale, compliant /
non-compliant examples, and a human-readable fix strategy.

Fix generation is handled by the fix engine (fix_engine.py + cs_analyzer.py).
"""

from typing import Dict, Optional, List
from dataclasses import dataclass, field


@dataclass
class RuleInfo:
    rule_id: str
    title: str
    category: str                          # "Readability" | ...
    severity: str                          # "warning" | "info" | "error"
    message: str                           # diagnostic message
    rationale: str
    non_compliant: str                     # code example
    compliant: str                         # fixed code example
    fix_strategy: str                      # human-readable guidance
    code_fix_title: str = ""
    help_link: str = ""
    cross_references: List[str] = field(default_factory=list)


_RULES: Dict[str, RuleInfo] = {}

def _add(rule: RuleInfo):
    _RULES[rule.rule_id] = rule


_add(RuleInfo(
    rule_id="SA1139",
    title="Use literal suffix notation instead of casting",
    category="Readability",
    severity="warning",
    message="Use literal suffix notation instead of casting",
    rationale=(
        "A cast is performed instead of using a literal of the right type.  "
        "Use the \"U\" suffix to create a 32-bit unsigned integer literal, "
        "\"L\" for a 64-bit integer, \"UL\" for a 64-bit unsigned integer, "
        "\"F\" for float, \"D\" for double and \"M\" for decimal.  "
        "The suffix states the type at the literal itself and removes a "
        "conversion the reader has to evaluate."
    ),
    non_compliant="""\
long a = (long)1;
ulong b = (ulong)1L;
float c = (float)-1;
unchecked
{
    ulong d = (ulong)-1L;
}""",
    compliant="""\
long a = 1L;
ulong b = 1UL;
float c = -1F;
unchecked
{
    ulong d = 18446744073709551615UL;
}""",
    fix_strategy=(
        "Replace the whole cast expression with the literal followed by the "
        "suffix of the target type.  An existing suffix is replaced, never "
        "stacked.  Inside an unchecked block, casts that wrap around are "
        "replaced by the wrapped value.  Casts to int, short, byte and other "
        "types without a suffix, casts of non-literal operands and casts that "
        "are compile errors are left alone."
    ),
    code_fix_title="Replace cast with literal suffix",
    help_link="https://github.com/DotNetAnalyzers/StyleCopAnalyzers/blob/master/documentation/SA1139.md",
    cross_references=["IDE0004"],
))


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def get_rule(rule_id: str) -> Optional[RuleInfo]:
    """Look up a single rule by its ID (e.g. 'SA1139')."""
    return _RULES.get(rule_id.strip().upper())


def get_all_rules() -> Dict[str, RuleInfo]:
    """Return the entire catalog dictionary."""
    return dict(_RULES)


def format_rule_explanation(rule_id: str) -> str:
    """Return a rich, human-readable explanation of a rule."""
    rule = get_rule(rule_id)
    if rule is None:
        return f"Unknown rule: {rule_id}"

    explanation = f"""## {rule.rule_id} — {rule.title}
**Category**: {rule.category}  |  **Severity**: {rule.severity}

### Rationale
{rule.rationale}

### Non-Compliant Example
```csharp
{rule.non_compliant}
```

### Compliant Example
```csharp
{rule.compliant}
```

### How to Fix
{rule.fix_strategy}"""

    if rule.help_link:
        explanation += f"\n\n### Documentation\n{rule.help_link}"
    if rule.cross_references:
        explanation += f"\n\n### Related Rules\n{', '.join(rule.cross_references)}"

    return explanation
