"""Tests for robocopy_parser/config.py — YAML loading, env overrides, locales."""

import os
import tempfile
import unittest
from datetime import datetime
from unittest import mock

import yaml

from robocopy_parser.config import CONFIG_ENV, ParserConfig, load_config, load_yaml_config
from robocopy_parser.decoder import DEFAULT_CODEPAGES
from robocopy_parser.header import DEFAULT_TIMESTAMP_FORMATS
from robocopy_parser.models import Action, EntryKind
from robocopy_parser.parser import parse_text

EXAMPLE_CONFIG = os.path.join(os.path.dirname(__file__), "..", "config", "robocopy_parser.yml")

OVERRIDE_VARS = ("ROBOCOPY_CODEPAGES", "ROBOCOPY_MAX_REPLACEMENT", CONFIG_ENV)

GERMAN_LOG = "\r\n".join([
    "-" * 78,
    "   ROBOCOPY     ::     Robustes Dateikopieren für Windows",
    "-" * 78,
    "",
    "  Gestartet : 09.01.2023 10:15:33",
    "     Quelle : C:\\Daten\\",
    "       Ziel : D:\\Sicherung\\",
    "",
    "-" * 78,
    "",
    "\t  Neues Verz.        1\tC:\\Daten\\neu\\",
    "\t    Neue Datei \t\t    1024\tbericht.docx",
    "\t    Älter      \t\t     200\talt.txt",
    "",
    "-" * 78,
    "",
    "      Insgesamt   Kopiert Übersprungen Keine Übereinstimmung FEHLER Extras",
    "  Verzeich. :         1         1         0         0         0         0",
    "    Dateien :         2         1         1         0         0         0",
    "      Bytes :      1224      1024       200         0         0         0",
    "   Beendet : 09.01.2023 10:15:38",
    "",
])


def _clean_env():
    """Patch os.environ without any override variables set."""
    patcher = mock.patch.dict(os.environ)
    patcher.start()
    for name in OVERRIDE_VARS:
        os.environ.pop(name, None)
    return patcher


class TestLoadYamlConfig(unittest.TestCase):
    def setUp(self):
        self.env = _clean_env()
        self.addCleanup(self.env.stop)

    def test_no_path_returns_empty(self):
        self.assertEqual(load_yaml_config(None), {})

    def test_missing_file_returns_empty(self):
        self.assertEqual(load_yaml_config("/nonexistent/path/config.yml"), {})

    def test_reads_file(self):
        data = {"decoding": {"codepages": ["cp850"], "max_replacement_ratio": 0.01}}
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            yaml.dump(data, f)
            temp_path = f.name
        try:
            self.assertEqual(load_yaml_config(temp_path), data)
        finally:
            os.unlink(temp_path)

    def test_path_from_environment(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            yaml.dump({"timestamp_formats": ["%Y"]}, f)
            temp_path = f.name
        try:
            os.environ[CONFIG_ENV] = temp_path
            self.assertEqual(load_yaml_config(None), {"timestamp_formats": ["%Y"]})
        finally:
            os.unlink(temp_path)

    def test_empty_file(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            temp_path = f.name
        try:
            self.assertEqual(load_yaml_config(temp_path), {})
        finally:
            os.unlink(temp_path)


class TestLoadConfig(unittest.TestCase):
    def setUp(self):
        self.env = _clean_env()
        self.addCleanup(self.env.stop)

    def test_defaults(self):
        config = load_config()
        self.assertEqual(config, ParserConfig())
        self.assertEqual(config.codepages, DEFAULT_CODEPAGES)
        self.assertEqual(config.max_replacement_ratio, 0.0)
        self.assertEqual(config.timestamp_formats, DEFAULT_TIMESTAMP_FORMATS)
        self.assertEqual(config.keyword_tables, ())

    def test_yaml_values(self):
        config = load_config({
            "decoding": {"codepages": ["cp850", "cp1252"], "max_replacement_ratio": 0.05},
            "timestamp_formats": ["%d.%m.%Y %H:%M:%S"],
        })
        self.assertEqual(config.codepages, ("cp850", "cp1252"))
        self.assertEqual(config.max_replacement_ratio, 0.05)
        self.assertEqual(config.timestamp_formats, ("%d.%m.%Y %H:%M:%S",))

    def test_env_overrides_yaml(self):
        os.environ["ROBOCOPY_CODEPAGES"] = "cp437, latin-1"
        os.environ["ROBOCOPY_MAX_REPLACEMENT"] = "0.2"
        config = load_config({"decoding": {"codepages": ["cp850"], "max_replacement_ratio": 0.05}})
        self.assertEqual(config.codepages, ("cp437", "latin-1"))
        self.assertEqual(config.max_replacement_ratio, 0.2)

    def test_ratio_out_of_range(self):
        with self.assertRaises(ValueError):
            load_config({"decoding": {"max_replacement_ratio": 1.5}})

    def test_bad_keyword_table(self):
        with self.assertRaises(ValueError):
            load_config({"keyword_tables": [{"header_labels": {"Quelle": "origin"}}]})

    def test_config_is_frozen(self):
        config = load_config()
        with self.assertRaises(AttributeError):
            config.codepages = ("ascii",)


class TestExampleConfig(unittest.TestCase):
    """config/robocopy_parser.yml loads and its German table parses a log."""

    def setUp(self):
        self.env = _clean_env()
        self.addCleanup(self.env.stop)
        self.config = load_config(load_yaml_config(EXAMPLE_CONFIG))

    def test_loads(self):
        self.assertEqual([t.name for t in self.config.keyword_tables], ["de"])
        self.assertIn("%d.%m.%Y %H:%M:%S", self.config.timestamp_formats)

    def test_german_log(self):
        doc = parse_text(GERMAN_LOG, self.config)
        self.assertEqual(doc.header.started_at, datetime(2023, 1, 9, 10, 15, 33))
        self.assertEqual(doc.header.source_path, "C:\\Daten\\")
        self.assertEqual(doc.header.destination_path, "D:\\Sicherung\\")
        self.assertEqual(
            [(e.kind, e.action) for e in doc.entries],
            [(EntryKind.DIR, Action.NEW), (EntryKind.FILE, Action.NEW), (EntryKind.FILE, Action.OLDER)],
        )
        self.assertEqual(doc.entries[1].size_bytes, 1024)
        self.assertEqual(doc.summary.files.total, 2)
        self.assertEqual(doc.summary.bytes.total, 1224)
        self.assertEqual(doc.summary.ended_at, datetime(2023, 1, 9, 10, 15, 38))
        self.assertEqual(doc.warnings, ())


if __name__ == "__main__":
    unittest.main()
