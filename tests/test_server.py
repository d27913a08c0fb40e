"""
MCP server tool tests — scan, inspect, fix, verify and report end to end.

Tools are plain functions after registration, so they are called directly
against a temporary copy of the mock workspace.
"""

import os
import sys
import shutil
import tempfile
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

MOCK_PROJECT = os.path.join(PROJECT_ROOT, "tests", "mock_project")

import fastmcp_server as server


class TestServerTools(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.root = os.path.join(self.tmp, "ws")
        shutil.copytree(MOCK_PROJECT, self.root)
        server.options = server.AnalyzerOptions()
        self.scan = server.scan_workspace(self.root)
        self.numbers = os.path.join(self.root, "Src", "Numbers.cs")

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def read_numbers(self):
        with open(self.numbers, "r", encoding="utf-8") as f:
            return f.read()

    def test_scan(self):
        self.assertIn("Scanned 2 C# file(s)", self.scan)
        self.assertIn("Found 5 SA1139 finding(s) in 1 file(s)", self.scan)

    def test_scan_missing_root(self):
        self.assertTrue(server.scan_workspace(os.path.join(self.tmp, "nope")).startswith("Error"))

    def test_list_findings(self):
        listing = server.list_findings("Src/Numbers.cs")
        self.assertIn("5 findings", listing)
        self.assertIn("`(ulong)-1L`", listing)
        self.assertEqual(server.list_findings("Src/Clean.cs"), "No findings for Src/Clean.cs")

    def test_analyze_finding_with_closest_line(self):
        result = server.analyze_finding("Src/Numbers.cs", 11)
        self.assertIn("Closest match", result)
        self.assertIn("public void Compute()", result)
        self.assertIn("1L", result)
        self.assertIn("| **Literal casts in file** | 6 (lines 7, 8, 12, 13, 14, 18) |", result)

    def test_explain_and_classify(self):
        self.assertIn("SA1139", server.explain_rule())
        table = server.classify_literal("0x1Ful")
        self.assertIn("hexadecimal", table)
        self.assertIn("`ulong`", table)
        self.assertIn("not a supported", server.classify_literal("0b1"))

    def test_apply_and_verify(self):
        result = server.apply_fix("Src/Numbers.cs", 12)
        self.assertIn("Successfully replaced `(long)1` with `1L`", result)
        self.assertIn("var x = 1L;", self.read_numbers())
        self.assertIn("[FIXED]", server.list_findings("Src/Numbers.cs"))

        self.assertIn("VERIFIED", server.verify_fix("Src/Numbers.cs", 12))
        self.assertIn("[VERIFIED]", server.list_findings("Src/Numbers.cs"))

    def test_apply_fixes_one_after_another(self):
        for line in (7, 8, 12, 13, 18):
            result = server.apply_fix("Src/Numbers.cs", line)
            self.assertIn("Successfully replaced", result, f"line {line}: {result}")
        text = self.read_numbers()
        self.assertIn("long field = 1L;", text)
        self.assertIn("ulong big = 1UL;", text)
        self.assertIn("var y = -1.5F;", text)
        self.assertIn("var w = 18446744073709551615UL;", text)

    def test_verify_unfixed_finding_fails(self):
        self.assertIn("STILL PRESENT", server.verify_fix("Src/Numbers.cs", 8))

    def test_propose_fix_does_not_write(self):
        before = self.read_numbers()
        self.assertIn("18446744073709551615UL", server.propose_fix("Src/Numbers.cs", 18))
        self.assertEqual(self.read_numbers(), before)

    def test_fix_all(self):
        dry = server.fix_all("Src/Numbers.cs", dry_run=True)
        self.assertIn("dry-run", dry)
        self.assertIn("(long)1", self.read_numbers())

        result = server.fix_all("Src/Numbers.cs")
        self.assertIn("| verified | 5 |", result)
        text = self.read_numbers()
        self.assertIn("ulong big = 1UL;", text)
        self.assertIn("var w = 18446744073709551615UL;", text)
        self.assertIn("var ok = (long)1L;", text)

    def test_fix_all_writes_each_matching_file(self):
        other = os.path.join(self.root, "Other", "Numbers.cs")
        os.makedirs(os.path.dirname(other))
        shutil.copyfile(self.numbers, other)
        server.scan_workspace(self.root)

        result = server.fix_all("Numbers.cs")
        self.assertIn("| Files | 2 |", result)
        self.assertIn("| verified | 10 |", result)
        for path in (self.numbers, other):
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
            self.assertIn("ulong big = 1UL;", text)
            self.assertIn("var w = 18446744073709551615UL;", text)

    def test_export_and_load(self):
        report_path = os.path.join(self.tmp, "report.json")
        self.assertIn("Wrote 5 finding(s)", server.export_report(report_path))
        loaded = server.load_report(report_path, self.root)
        self.assertIn("Found 5 finding(s) in 1 file(s)", loaded)
        self.assertIn("Successfully replaced", server.apply_fix("Src/Numbers.cs", 7))

    def test_configure_excluded_dirs(self):
        result = server.configure(excluded_dirs=".git")
        self.assertIn("6 finding(s)", result)
        self.assertIn("Error", server.configure(severity="fatal"))

    def test_coverage_report(self):
        server.apply_fix("Src/Numbers.cs", 12)
        report = server.coverage_report()
        self.assertIn("**SA1139**", report)
        self.assertIn("| `long` | 2 |", report)
        self.assertIn("| fixed | 1 |", report)


if __name__ == "__main__":
    unittest.main()
