"""
Context Provider

Retrieves code context around finding lines, the enclosing C# member
header, and a quick textual scan for literal casts.

Guards:
  • Skips binary files (null-byte check)
  • Caps reads at MAX_LINES to prevent memory issues
  • Handles encoding errors gracefully
"""

import os
import re
import logging
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_LINES = 100_000  # safety cap for very large files

_MEMBER_RE = re.compile(
    r"^\s*(?:\[[^\]]*\]\s*)*"
    r"(?:(?:public|private|protected|internal|static|virtual|override|abstract|"
    r"sealed|async|extern|unsafe|new|partial|readonly)\s+)*"
    r"[\w<>\[\],.?]+(?:\s+[\w<>\[\],.?]+)?\s*\([^;]*$"
)
_CONTROL_KEYWORDS = {"if", "for", "foreach", "while", "switch", "using", "lock",
                     "catch", "return", "fixed", "checked", "unchecked", "else"}

# Quick pre-scan; the tree-sitter analyzer makes the real decision.
_LITERAL_CAST_RE = re.compile(
    r"\(\s*(long|ulong|uint|float|double|decimal)\s*\)\s*[+-]?\s*(?:0[xX][0-9a-fA-F]+|[0-9.][0-9.eE+-]*)\w*"
)


class ContextProvider:
    def __init__(self, workspace_root: str):
        self.workspace_root = workspace_root

    # ────────────────────────────────────────────────────────────────
    #  Internal helpers
    # ────────────────────────────────────────────────────────────────

    def _resolve(self, file_path: str) -> str:
        native = file_path.replace("/", os.sep).replace("\\", os.sep)
        return os.path.join(self.workspace_root, native)

    @staticmethod
    def _read_lines(full_path: str) -> Optional[List[str]]:
        """Read file lines with binary-file guard and size cap."""
        if not os.path.isfile(full_path):
            return None
        try:
            with open(full_path, "rb") as fb:
                head = fb.read(8192)
                if b"\x00" in head:
                    logger.warning("Skipping binary file: %s", full_path)
                    return None
            with open(full_path, "r", encoding="utf-8-sig", errors="replace") as f:
                lines = []
                for i, line in enumerate(f):
                    if i >= MAX_LINES:
                        logger.warning(
                            "File %s exceeds %d lines — truncated", full_path, MAX_LINES
                        )
                        break
                    lines.append(line)
                return lines
        except OSError as e:
            logger.error("Error reading %s: %s", full_path, e)
            return None

    # ────────────────────────────────────────────────────────────────
    #  Core: Code context around a line
    # ────────────────────────────────────────────────────────────────

    def get_code_context(
        self, file_path: str, line_number: int, context_lines: int = 15
    ) -> str:
        """Retrieve code surrounding a specific line number."""
        lines = self._read_lines(self._resolve(file_path))
        if lines is None:
            return f"Error: Cannot read {file_path}"

        start = max(0, line_number - 1 - context_lines)
        end = min(len(lines), line_number + context_lines)
        return "".join(lines[start:end])

    def get_line(self, file_path: str, line_number: int) -> str:
        """Return a single line from a file (1-indexed)."""
        lines = self._read_lines(self._resolve(file_path))
        if lines is None:
            return ""
        if 1 <= line_number <= len(lines):
            return lines[line_number - 1]
        return ""

    # ────────────────────────────────────────────────────────────────
    #  Enclosing member
    # ────────────────────────────────────────────────────────────────

    def get_enclosing_member(
        self, file_path: str, line_number: int
    ) -> Optional[str]:
        """
        Return the header of the method / constructor / property enclosing
        'line_number', or None if the line is at type or namespace level.
        """
        lines = self._read_lines(self._resolve(file_path))
        if lines is None:
            return None

        brace_depth = 0
        for i in range(min(line_number - 1, len(lines) - 1), -1, -1):
            line = lines[i]
            brace_depth -= line.count("}")
            brace_depth += line.count("{")
            if brace_depth < 1:
                continue
            # Found an enclosing opening brace; look for a member header
            for j in range(i, max(-1, i - 3), -1):
                header = lines[j].split("{")[0].rstrip()
                if not _MEMBER_RE.match(header):
                    continue
                first_word = header.strip().split("(")[0].split()[0] if header.strip() else ""
                if first_word in _CONTROL_KEYWORDS:
                    break
                return header.strip()
            brace_depth = 0
        return None

    # ────────────────────────────────────────────────────────────────
    #  Textual pre-scan
    # ────────────────────────────────────────────────────────────────

    def find_literal_casts(self, file_path: str) -> List[Tuple[int, str]]:
        """
        Find lines that look like they cast a numeric literal.
        Returns list of (line_number, matched_text).
        """
        lines = self._read_lines(self._resolve(file_path))
        if lines is None:
            return []
        results: List[Tuple[int, str]] = []
        for i, line in enumerate(lines, start=1):
            for m in _LITERAL_CAST_RE.finditer(line):
                results.append((i, m.group(0)))
        return results
