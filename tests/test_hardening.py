"""
Hardening tests:
  1. Findings report round-trips through JSON and tolerates other layouts
  2. Malformed report entries are skipped, bad files yield empty reports
  3. Multi-tier file path matching
  4. Context provider handles missing and binary files
  5. Enclosing member and the textual pre-scan
  6. Rule catalog lookups
"""

import os
import sys
import json
import shutil
import tempfile
import unittest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

MOCK_PROJECT = os.path.join(PROJECT_ROOT, "tests", "mock_project")

from literal_suffix.cs_analyzer import CSharpAnalyzer
from literal_suffix.findings_report import FindingsReport
from literal_suffix.context_provider import ContextProvider
from literal_suffix.rule_catalog import get_rule, get_all_rules, format_rule_explanation


class TestFindingsReport(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.findings = CSharpAnalyzer(MOCK_PROJECT).analyze_workspace()

    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def write_json(self, name, data):
        path = os.path.join(self.tmp, name)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        return path

    def test_save_and_load(self):
        path = os.path.join(self.tmp, "report.json")
        FindingsReport(self.findings).save(path)

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self.assertEqual(data["rule"], "SA1139")
        self.assertEqual(data["findings"][0]["target_kind"], "long")

        loaded = FindingsReport.load(path)
        self.assertEqual(loaded.get_all_findings(), self.findings)
        self.assertEqual(loaded.get_summary()["detected_format"], "findings")

    def test_alternative_layouts(self):
        items = [f.model_dump(mode="json") for f in self.findings]
        for name, data in (("issues", {"issues": items}), ("bare", items),
                           ("custom", {"custom_report": items})):
            report = FindingsReport.load(self.write_json(name + ".json", data))
            self.assertEqual(len(report.get_all_findings()), len(items), name)

    def test_malformed_entries_are_skipped(self):
        items = [f.model_dump(mode="json") for f in self.findings]
        items.append({"file_path": "Broken.cs"})
        items.append({**items[0], "target_kind": "short"})
        report = FindingsReport.load(self.write_json("bad.json", {"findings": items}))
        self.assertEqual(len(report.get_all_findings()), len(self.findings))

    def test_missing_and_invalid_files(self):
        self.assertEqual(FindingsReport.load(os.path.join(self.tmp, "none.json")).findings, [])
        path = os.path.join(self.tmp, "broken.json")
        with open(path, "w", encoding="utf-8") as f:
            f.write("{not json")
        self.assertEqual(FindingsReport.load(path).findings, [])
        self.assertEqual(FindingsReport.load(self.write_json("empty.json", {"a": 1})).findings, [])

    def test_path_matching_tiers(self):
        report = FindingsReport(self.findings)
        self.assertEqual(len(report.get_findings_by_file("Src/Numbers.cs")), 5)
        self.assertEqual(len(report.get_findings_by_file("src/numbers.cs")), 5)
        self.assertEqual(len(report.get_findings_by_file("C:\\repo\\Src\\Numbers.cs")), 5)
        self.assertEqual(len(report.get_findings_by_file("Numbers.cs")), 5)
        self.assertEqual(report.get_findings_by_file("Other.cs"), [])

    def test_find_and_summary(self):
        report = FindingsReport(self.findings)
        self.assertEqual(report.find("Src/Numbers.cs", 13).cast_text, "(float)-1.5")
        self.assertIsNone(report.find("Src/Numbers.cs", 1))
        summary = report.get_summary()
        self.assertEqual(summary["total_findings"], 5)
        self.assertEqual(summary["files_affected"], 1)
        self.assertEqual(summary["by_target_type"], {"long": 2, "ulong": 2, "float": 1})
        self.assertEqual(summary["in_unchecked_context"], 1)


class TestContextProvider(unittest.TestCase):

    def setUp(self):
        self.provider = ContextProvider(MOCK_PROJECT)

    def test_code_context(self):
        context = self.provider.get_code_context("Src/Numbers.cs", 12, 1)
        self.assertEqual(len(context.splitlines()), 3)
        self.assertIn("var x = (long)1;", context)

    def test_missing_file(self):
        self.assertTrue(self.provider.get_code_context("Nope.cs", 1).startswith("Error"))
        self.assertEqual(self.provider.get_line("Nope.cs", 1), "")
        self.assertIsNone(self.provider.get_enclosing_member("Nope.cs", 1))
        self.assertEqual(self.provider.find_literal_casts("Nope.cs"), [])

    def test_binary_file(self):
        tmp = tempfile.mkdtemp()
        try:
            with open(os.path.join(tmp, "Bin.cs"), "wb") as f:
                f.write(b"class A\x00\x01\x02")
            provider = ContextProvider(tmp)
            self.assertTrue(provider.get_code_context("Bin.cs", 1).startswith("Error"))
        finally:
            shutil.rmtree(tmp)

    def test_enclosing_member(self):
        self.assertEqual(self.provider.get_enclosing_member("Src/Numbers.cs", 12),
                         "public void Compute()")
        self.assertEqual(self.provider.get_enclosing_member("Src/Numbers.cs", 18),
                         "public void Compute()")
        self.assertIsNone(self.provider.get_enclosing_member("Src/Numbers.cs", 7))

    def test_textual_prescan(self):
        lines = [line for line, _ in self.provider.find_literal_casts("Src/Numbers.cs")]
        self.assertEqual(lines, [7, 8, 12, 13, 14, 18])


class TestRuleCatalog(unittest.TestCase):

    def test_lookup(self):
        self.assertIsNotNone(get_rule("SA1139"))
        self.assertIsNotNone(get_rule(" sa1139 "))
        self.assertIsNone(get_rule("SA0000"))
        self.assertEqual(list(get_all_rules()), ["SA1139"])

    def test_explanation(self):
        text = format_rule_explanation("SA1139")
        self.assertIn("literal suffix", text.lower())
        self.assertIn("```csharp", text)
        self.assertTrue(format_rule_explanation("SA0000").startswith("Unknown rule"))


if __name__ == "__main__":
    unittest.main()
