"""Integration tests — E2E via subprocess against sample.log."""

import json
import os
import subprocess
import sys
import tempfile
import unittest

from samples import SAMPLE_LOG, minimal_log

MAIN_PY = os.path.join(os.path.dirname(__file__), "..", "main.py")


def _env() -> dict:
    env = dict(os.environ)
    for name in ("ROBOCOPY_PARSER_CONFIG", "ROBOCOPY_CODEPAGES", "ROBOCOPY_MAX_REPLACEMENT"):
        env.pop(name, None)
    env["PYTHONIOENCODING"] = "utf-8"
    return env


def _run(*args: str, stdin: bytes | None = None) -> subprocess.CompletedProcess:
    """Run main.py with given args, return CompletedProcess."""
    result = subprocess.run(
        [sys.executable, MAIN_PY, *args],
        input=stdin,
        capture_output=True,
        env=_env(),
    )
    result.stdout = result.stdout.decode("utf-8")
    result.stderr = result.stderr.decode("utf-8")
    return result


class TestParseSample(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.result = _run("parse", SAMPLE_LOG)
        cls.data = json.loads(cls.result.stdout)

    def test_exit_code(self):
        self.assertEqual(self.result.returncode, 0)

    def test_header(self):
        header = self.data["header"]
        self.assertEqual(header["started_at"], "2023-01-09T10:15:33")
        self.assertEqual(header["source_path"], "C:\\Data\\Source\\")
        self.assertEqual(header["destination_path"], "\\\\backup01\\share\\Source\\")
        self.assertEqual(header["extra"], {"Exc Files": "*.bak Thumbs.db"})

    def test_entries(self):
        entries = self.data["entries"]
        self.assertEqual([e["action"] for e in entries],
                         ["Same", "New", "Newer", "Same", "New", "New", "Failed", "Extra"])
        self.assertEqual(entries[2]["size_bytes"], 1572864)
        failed = entries[6]
        self.assertEqual(failed["path"], "C:\\Data\\Source\\photos\\locked.psd")
        self.assertEqual(failed["error_code"], 32)
        self.assertEqual(
            failed["error_message"],
            "The process cannot access the file because it is being used by another process.",
        )

    def test_summary(self):
        summary = self.data["summary"]
        self.assertEqual(summary["files"]["total"], 6)
        self.assertEqual(summary["times"]["total"], 5)
        self.assertEqual(summary["speed_bytes_per_sec"], 355737)
        self.assertEqual(summary["ended_at"], "2023-01-09T10:15:38")

    def test_warnings_on_stderr(self):
        self.assertEqual([w["kind"] for w in self.data["warnings"]], ["unparsed_line"])
        self.assertIn("warning: unparsed_line", self.result.stderr)


class TestOutputFile(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.output = os.path.join(self.tmpdir.name, "run.json")

    def test_writes_then_refuses_then_overwrites(self):
        first = _run("parse", SAMPLE_LOG, "--output", self.output)
        self.assertEqual(first.returncode, 0)
        self.assertEqual(first.stdout, "")
        with open(self.output, encoding="utf-8") as f:
            self.assertEqual(len(json.load(f)["entries"]), 8)

        second = _run("parse", SAMPLE_LOG, "--output", self.output)
        self.assertEqual(second.returncode, 1)
        self.assertIn("already exists", second.stderr)

        third = _run("parse", SAMPLE_LOG, "--output", self.output, "--overwrite")
        self.assertEqual(third.returncode, 0)


class TestInputs(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def _write(self, name: str, data: bytes) -> str:
        path = os.path.join(self.tmpdir.name, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def test_utf16_log(self):
        path = self._write("unilog.log", b"\xff\xfe" + minimal_log().encode("utf-16-le"))
        result = _run("parse", path)
        self.assertEqual(result.returncode, 0)
        data = json.loads(result.stdout)
        self.assertEqual(data["encoding"], "utf-16-le")
        self.assertEqual(len(data["entries"]), 2)

    def test_explicit_encoding(self):
        path = self._write("oem.log", minimal_log().replace("x.txt", "é.txt").encode("cp850"))
        result = _run("parse", path, "--encoding", "cp850")
        self.assertEqual(result.returncode, 0)
        self.assertEqual(json.loads(result.stdout)["entries"][0]["path"], "é.txt")

    def test_stdin(self):
        result = _run("parse", "-", stdin=minimal_log().encode("utf-8"))
        self.assertEqual(result.returncode, 0)
        self.assertEqual(json.loads(result.stdout)["header"]["source_path"], "C:\\A")

    def test_missing_file(self):
        result = _run("parse", os.path.join(self.tmpdir.name, "nope.log"))
        self.assertEqual(result.returncode, 1)
        self.assertIn("Error", result.stderr)

    def test_empty_file(self):
        result = _run("parse", self._write("empty.log", b""))
        self.assertEqual(result.returncode, 1)

    def test_unstructured_file(self):
        result = _run("parse", self._write("notes.txt", b"hello\r\nworld\r\n"))
        self.assertEqual(result.returncode, 1)


class TestUsageErrors(unittest.TestCase):
    def test_unknown_encoding(self):
        result = _run("parse", SAMPLE_LOG, "--encoding", "no-such-codec")
        self.assertEqual(result.returncode, 2)
        self.assertIn("unknown encoding", result.stderr)

    def test_no_command(self):
        self.assertEqual(_run().returncode, 2)

    def test_bad_config(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            f.write("decoding:\n  max_replacement_ratio: 3\n")
            path = f.name
        try:
            result = _run("parse", SAMPLE_LOG, "--config", path)
        finally:
            os.unlink(path)
        self.assertEqual(result.returncode, 2)
        self.assertIn("invalid configuration", result.stderr)


if __name__ == "__main__":
    unittest.main()
