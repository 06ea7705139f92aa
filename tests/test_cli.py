"""Tests for the command-line entry point (offline commands only)."""

import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from main import main


class TestCLI(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def _run(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            with self.assertRaises(SystemExit) as ctx:
                main(["--data-dir", self.data_dir, *argv])
        return ctx.exception.code, out.getvalue(), err.getvalue()

    def test_cert_add_and_list(self):
        code, _, _ = self._run("cert", "add", "example.com", "--no-check", "--threshold", "14")
        self.assertEqual(code, 0)
        code, out, _ = self._run("cert", "list")
        self.assertEqual(code, 0)
        self.assertIn("example.com", out)
        code, out, _ = self._run("cert", "show", "example.com")
        self.assertEqual(json.loads(out)["renewal_threshold"], 14)

    def test_cert_show_unknown_fails(self):
        code, _, err = self._run("cert", "show", "missing.example")
        self.assertEqual(code, 1)
        self.assertIn("missing.example is not monitored", err)

    def test_uptime_add_and_remove(self):
        code, out, _ = self._run("uptime", "add", "shop.example", "--name", "Shop")
        self.assertEqual(code, 0)
        self.assertIn("https://shop.example", out)
        code, _, _ = self._run("uptime", "remove", "https://shop.example")
        self.assertEqual(code, 0)
        code, _, _ = self._run("uptime", "remove", "https://shop.example")
        self.assertEqual(code, 1)

    def test_history_export_to_file(self):
        target = Path(self.data_dir) / "out" / "history.csv"
        code, _, _ = self._run("history", "export", "--output", str(target))
        self.assertEqual(code, 0)
        self.assertTrue(target.read_text().startswith("timestamp,kind,target"))

    def test_missing_module_prints_help(self):
        code, out, _ = self._run()
        self.assertEqual(code, 1)
        self.assertIn("usage", out)


if __name__ == "__main__":
    unittest.main()
