"""
Findings Report

Persists SA1139 findings as JSON so a later session can apply fixes
against a previously reported finding.  Written reports use the layout

  {"tool": "literal-suffix-agent", "rule": "SA1139", "findings": [...]}

Loading accepts the same key conventions as other analysis reports:

  • {"findings": [...]}     (default)
  • {"issues": [...]}
  • {"results": [...]}
  • {"diagnostics": [...]}
  • [...]                   (bare array at top level)

Malformed entries are skipped with a warning.
"""

import json
import logging
from typing import List, Dict, Optional

from pydantic import ValidationError

from literal_suffix.cast_rule import CastFinding, RULE_ID

logger = logging.getLogger(__name__)

TOOL_NAME = "literal-suffix-agent"

# Keys we scan for when auto-detecting the report structure
_CANDIDATE_KEYS = ("findings", "issues", "results", "diagnostics", "violations")


class FindingsReport:
    """Hold, save, load and query SA1139 findings."""

    def __init__(self, findings: Optional[List[CastFinding]] = None):
        self.findings: List[CastFinding] = sorted(
            findings or [], key=lambda f: (f.file_path, f.start_byte)
        )
        self._detected_key: Optional[str] = None

    # ────────────────────────────────────────────────────────────────
    #  Persistence
    # ────────────────────────────────────────────────────────────────

    def save(self, report_path: str) -> None:
        data = {
            "tool": TOOL_NAME,
            "rule": RULE_ID,
            "findings": [f.model_dump(mode="json") for f in self.findings],
        }
        with open(report_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.info("Wrote %d findings to %s", len(self.findings), report_path)

    @classmethod
    def load(cls, report_path: str) -> "FindingsReport":
        report = cls()
        try:
            with open(report_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.error("Report file not found: %s", report_path)
            return report
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", report_path, e)
            return report

        items = report._extract_items(data)
        if items is None:
            logger.warning("No findings array found in %s", report_path)
            return report

        findings = []
        for item in items:
            try:
                findings.append(CastFinding.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed finding: %s — %s", item, e)
        report.findings = sorted(findings, key=lambda f: (f.file_path, f.start_byte))
        return report

    def _extract_items(self, data) -> Optional[list]:
        """Auto-detect the array of findings inside the JSON structure."""
        if isinstance(data, list):
            self._detected_key = "<root array>"
            return data

        if not isinstance(data, dict):
            return None

        for key in _CANDIDATE_KEYS:
            if key in data and isinstance(data[key], list):
                self._detected_key = key
                return data[key]

        # Last resort: the first key whose value is a list of objects
        for key, val in data.items():
            if isinstance(val, list) and len(val) > 0 and isinstance(val[0], dict):
                self._detected_key = key
                logger.info("Auto-detected findings under key '%s'", key)
                return val

        return None

    # ────────────────────────────────────────────────────────────────
    #  Queries
    # ────────────────────────────────────────────────────────────────

    def get_findings_by_file(self, file_path: str) -> List[CastFinding]:
        """Get findings for a file, using multi-tier matching.

        Matching tiers (returns on first tier that produces results):
          1. Exact match
          2. Case-insensitive exact match
          3. Suffix match (either direction)
          4. Basename match (case-insensitive)
        """
        query = file_path.replace("\\", "/").rstrip("/")
        query_lower = query.lower()
        query_base = query.rsplit("/", 1)[-1].lower()

        exact, exact_ci, suffix, basename = [], [], [], []
        for f in self.findings:
            fp = f.file_path.replace("\\", "/").rstrip("/")
            fp_lower = fp.lower()
            if fp == query:
                exact.append(f)
            elif fp_lower == query_lower:
                exact_ci.append(f)
            elif fp_lower.endswith("/" + query_lower) or query_lower.endswith("/" + fp_lower):
                suffix.append(f)
            elif fp_lower.rsplit("/", 1)[-1] == query_base:
                basename.append(f)

        return exact or exact_ci or suffix or basename

    def find(self, file_path: str, line_number: int) -> Optional[CastFinding]:
        """The first finding of a file on a given line."""
        return next(
            (f for f in self.get_findings_by_file(file_path) if f.line_number == line_number),
            None,
        )

    def get_all_findings(self) -> List[CastFinding]:
        return self.findings

    def get_summary(self) -> Dict:
        """Return a summary of the report for quick overview."""
        files: Dict[str, int] = {}
        kinds: Dict[str, int] = {}
        unchecked = 0
        for f in self.findings:
            files[f.file_path] = files.get(f.file_path, 0) + 1
            kinds[f.target_kind.keyword] = kinds.get(f.target_kind.keyword, 0) + 1
            unchecked += 1 if f.unchecked else 0
        return {
            "total_findings": len(self.findings),
            "files_affected": len(files),
            "by_file": files,
            "by_target_type": kinds,
            "in_unchecked_context": unchecked,
            "detected_format": self._detected_key,
        }
