"""
C# Analyzer — AST-based cast analysis using tree-sitter.

Provides the syntax side of SA1139:
  • Workspace discovery of C# sources (skips bin/obj/.git/...)
  • Parse caching per file (raw bytes + tree)
  • Cast-expression extraction into parser-independent CastSite records
  • Checked / unchecked context detection (lexical, innermost wins)
  • Rule evaluation per file / per workspace, findings in source order
  • Re-locating a stored finding's cast node in a freshly parsed tree
"""

import os
import logging
from typing import List, Dict, Optional, Tuple, Iterator

import tree_sitter_c_sharp as tscs
from tree_sitter import Language, Parser, Node
from pydantic import BaseModel, Field

from literal_suffix.cast_rule import CastLiteralRule, CastSite, CastFinding

logger = logging.getLogger(__name__)

CS_LANGUAGE = Language(tscs.language())
_parser = Parser(CS_LANGUAGE)

DEFAULT_EXCLUDED_DIRS = (
    ".git", ".vs", ".vscode", ".idea", "bin", "obj", "packages",
    "node_modules", "TestResults", "__pycache__",
)

_CHECKED_CONTEXTS = {"checked_expression", "checked_statement"}


class AnalyzerOptions(BaseModel):
    """Settings for workspace scanning and reporting."""
    extensions: List[str] = Field(default_factory=lambda: [".cs"])
    excluded_dirs: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS))
    severity: str = "warning"
    max_file_bytes: int = 5_000_000


def _norm_path(p: str) -> str:
    return p.replace("\\", "/")


def parse_source(source: bytes):
    """Parse C# bytes into a tree-sitter tree."""
    return _parser.parse(source)


def has_parse_errors(source: bytes) -> bool:
    return parse_source(source).root_node.has_error


# ═══════════════════════════════════════════════════════════════════════
#  Analyzer
# ═══════════════════════════════════════════════════════════════════════

class CSharpAnalyzer:
    """Finds SA1139 cast findings in C# files of a workspace."""

    def __init__(self, workspace_root: str, options: Optional[AnalyzerOptions] = None,
                 rule: Optional[CastLiteralRule] = None):
        self.workspace_root = workspace_root
        self.options = options or AnalyzerOptions()
        self.rule = rule or CastLiteralRule(severity=self.options.severity)
        self._cache: Dict[str, Tuple[bytes, object]] = {}  # path -> (source, tree)

    def _resolve(self, file_path: str) -> str:
        """Resolve a (possibly POSIX-style) relative path to an absolute path."""
        native = file_path.replace("/", os.sep).replace("\\", os.sep)
        if os.path.isabs(native):
            return native
        return os.path.join(self.workspace_root, native)

    def _get_tree(self, file_path: str) -> Tuple[Optional[bytes], Optional[object]]:
        """Parse file and cache the result."""
        full = self._resolve(file_path)
        if full in self._cache:
            return self._cache[full]

        if not os.path.isfile(full):
            logger.warning("File not found: %s", full)
            return None, None

        try:
            if os.path.getsize(full) > self.options.max_file_bytes:
                logger.warning("Skipping oversized file: %s", full)
                return None, None
            with open(full, "rb") as f:
                source = f.read()
            if b"\x00" in source[:8192]:
                logger.warning("Skipping binary file: %s", full)
                return None, None
            tree = parse_source(source)
            self._cache[full] = (source, tree)
            return source, tree
        except OSError as e:
            logger.error("Failed to read %s: %s", full, e)
            return None, None

    def invalidate(self, file_path: str) -> None:
        """Forget the cached parse of a file (after it was edited)."""
        self._cache.pop(self._resolve(file_path), None)

    def get_source(self, file_path: str) -> Optional[bytes]:
        source, _ = self._get_tree(file_path)
        return source

    @staticmethod
    def _node_text(node: Node, source: bytes) -> str:
        return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    # ────────────────────────────────────────────────────────────────
    #  File discovery
    # ────────────────────────────────────────────────────────────────

    def discover_files(self) -> List[str]:
        """Find all C# sources in the workspace (relative POSIX paths)."""
        excluded = set(self.options.excluded_dirs)
        extensions = {e.lower() for e in self.options.extensions}
        files = []
        for root, dirs, filenames in os.walk(self.workspace_root):
            dirs[:] = [d for d in dirs if d not in excluded]
            for fname in filenames:
                if os.path.splitext(fname)[1].lower() in extensions:
                    rel = _norm_path(os.path.relpath(os.path.join(root, fname), self.workspace_root))
                    files.append(rel)
        return sorted(files)

    # ────────────────────────────────────────────────────────────────
    #  Cast extraction
    # ────────────────────────────────────────────────────────────────

    def get_cast_sites(self, file_path: str) -> List[CastSite]:
        """All cast expressions of a file, in source order."""
        source, tree = self._get_tree(file_path)
        if tree is None:
            return []
        return self.cast_sites_in_tree(source, tree, _norm_path(file_path))

    def cast_sites_in_tree(self, source: bytes, tree, file_path: str) -> List[CastSite]:
        return [self._build_site(node, source, file_path)
                for node in self._walk_type(tree.root_node, "cast_expression")]

    def _build_site(self, node: Node, source: bytes, file_path: str) -> CastSite:
        type_node = node.child_by_field_name("type")
        operand = node.child_by_field_name("value")

        type_keyword = None
        if type_node is not None and type_node.type == "predefined_type":
            type_keyword = self._node_text(type_node, source)

        unary_operator = None
        if operand is not None and operand.type == "prefix_unary_expression":
            unary_operator = self._node_text(operand.children[0], source)
            operand = operand.children[-1]
        operand = self._unwrap_literal(operand)

        return CastSite(
            file_path=file_path,
            start_byte=node.start_byte,
            end_byte=node.end_byte,
            start_line=node.start_point[0] + 1,
            start_column=node.start_point[1] + 1,
            end_line=node.end_point[0] + 1,
            end_column=node.end_point[1] + 1,
            type_keyword=type_keyword,
            operand_type=operand.type if operand is not None else "",
            operand_text=self._node_text(operand, source) if operand is not None else "",
            unary_operator=unary_operator,
            unchecked=self.is_unchecked(node, source),
            text=self._node_text(node, source),
        )

    @staticmethod
    def _unwrap_literal(node: Optional[Node]) -> Optional[Node]:
        """Descend through a ``literal`` wrapper node, if the grammar emits one."""
        while node is not None and node.type == "literal" and node.named_child_count == 1:
            node = node.named_children[0]
        return node

    def is_unchecked(self, node: Node, source: bytes) -> bool:
        """True when the innermost checked/unchecked context around node is unchecked.

        Constant expressions default to checked evaluation in C#.
        """
        current = node.parent
        while current is not None:
            if current.type in _CHECKED_CONTEXTS and current.children:
                return self._node_text(current.children[0], source) == "unchecked"
            current = current.parent
        return False

    def find_cast_at(self, file_path: str, start_byte: int, end_byte: int) -> Optional[CastSite]:
        """Re-locate the cast covering exactly [start_byte, end_byte) in the current tree.

        When several casts share the span the innermost one wins.
        """
        source, tree = self._get_tree(file_path)
        if tree is None:
            return None
        match = None
        for node in self._walk_type(tree.root_node, "cast_expression"):
            if node.start_byte == start_byte and node.end_byte == end_byte:
                match = node
        if match is None:
            return None
        return self._build_site(match, source, _norm_path(file_path))

    def find_cast_on_line(self, file_path: str, line_number: int, cast_text: str,
                          column: Optional[int] = None) -> Optional[CastSite]:
        """Re-locate a cast by its line and text once byte offsets have moved.

        Among several identical casts on the line, the one at ``column`` wins,
        otherwise the first.
        """
        source, tree = self._get_tree(file_path)
        if tree is None:
            return None
        candidates = [
            node for node in self._walk_type(tree.root_node, "cast_expression")
            if node.start_point[0] + 1 == line_number and self._node_text(node, source) == cast_text
        ]
        if not candidates:
            return None
        node = next((n for n in candidates if n.start_point[1] + 1 == column), candidates[0])
        return self._build_site(node, source, _norm_path(file_path))

    # ────────────────────────────────────────────────────────────────
    #  Rule evaluation
    # ────────────────────────────────────────────────────────────────

    def analyze_file(self, file_path: str) -> List[CastFinding]:
        """SA1139 findings of one file, in source order."""
        return self._evaluate(self.get_cast_sites(file_path))

    def analyze_source(self, source: str, file_path: str = "<memory>") -> List[CastFinding]:
        """SA1139 findings of in-memory C# text."""
        raw = source.encode("utf-8")
        return self._evaluate(self.cast_sites_in_tree(raw, parse_source(raw), file_path))

    def analyze_workspace(self) -> List[CastFinding]:
        findings: List[CastFinding] = []
        files = self.discover_files()
        for rel in files:
            findings.extend(self.analyze_file(rel))
        logger.info("Analyzed %d C# files: %d SA1139 findings", len(files), len(findings))
        return sorted(findings, key=lambda f: (f.file_path, f.start_byte))

    def _evaluate(self, sites: List[CastSite]) -> List[CastFinding]:
        findings = []
        for site in sites:
            result = self.rule.evaluate(site)
            if result.matched:
                findings.append(result.finding)
            else:
                logger.debug("%s:%d: %s skipped (%s: %s)", site.file_path, site.start_line,
                             site.text, result.outcome.value, result.reason)
        return sorted(findings, key=lambda f: f.start_byte)

    # ────────────────────────────────────────────────────────────────
    #  Tree traversal helpers
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def _walk_type(node: Node, type_name: str) -> Iterator[Node]:
        """Yield all descendant nodes of a given type, in pre-order."""
        cursor = node.walk()
        visited = False
        while True:
            if not visited and cursor.node.type == type_name:
                yield cursor.node
            if not visited and cursor.goto_first_child():
                visited = False
                continue
            if cursor.goto_next_sibling():
                visited = False
                continue
            if cursor.goto_parent():
                visited = True
                continue
            break
