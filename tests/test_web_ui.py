#!/usr/bin/env python3
"""
Tests for the web UI handlers (without launching the server).

Run with: python tests/test_web_ui.py
"""

import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from protocol_errors import UpstreamFetchFailed
from protocol_types import ProtocolData
from sample_data import snapshot_dict
from web_ui import generate_from_inputs, load_snapshot, validate_snapshot_file


class TestWebUI(unittest.TestCase):
    """Tests for snapshot loading and generation handlers."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.snapshot = self.dir / "snapshot.json"
        self.snapshot.write_text(json.dumps(snapshot_dict(), ensure_ascii=False), encoding="utf-8")

    def tearDown(self):
        self.tmp.cleanup()

    def test_validate_snapshot_file(self):
        """Test extension and existence checks."""
        self.assertEqual(validate_snapshot_file(str(self.snapshot)), (True, ""))
        other = self.dir / "snapshot.txt"
        other.write_text("{}")
        self.assertFalse(validate_snapshot_file(str(other))[0])
        self.assertFalse(validate_snapshot_file(str(self.dir / "missing.json"))[0])

    def test_load_from_file(self):
        """Test an uploaded file wins over the meeting id."""
        client = Mock()
        data = load_snapshot("m-1", str(self.snapshot), "  ", client=client)
        self.assertEqual(data.meeting.number, 12)
        client.fetch_protocol_data.assert_not_called()

    def test_load_from_backend(self):
        """Test the meeting id is fetched with the address override."""
        client = Mock()
        client.fetch_protocol_data.return_value = ProtocolData.from_dict(snapshot_dict())
        load_snapshot(" m-42 ", None, "ул. Бабура, 1", client=client)
        client.fetch_protocol_data.assert_called_once_with("m-42", building_address="ул. Бабура, 1")

    def test_load_requires_input(self):
        """Test an empty form is rejected."""
        with self.assertRaises(ValueError):
            load_snapshot("", None)

    def test_generate_writes_docx(self):
        """Test the protocol is written with its suggested name."""
        path, status = generate_from_inputs(None, str(self.snapshot), output_dir=str(self.dir / "out"))
        self.assertIsNotNone(path)
        self.assertTrue(path.endswith("Протокол_12_ул__Навои__5.docx"))
        self.assertTrue(Path(path).read_bytes().startswith(b"PK"))
        self.assertIn("Protocol 12 generated", status)
        self.assertIn("3 participants", status)

    def test_generate_reports_invalid_json(self):
        """Test a broken upload becomes a status message."""
        self.snapshot.write_text("{not json", encoding="utf-8")
        path, status = generate_from_inputs(None, str(self.snapshot))
        self.assertIsNone(path)
        self.assertTrue(status.startswith("Error"))

    def test_generate_reports_fetch_failure(self):
        """Test a recoverable backend failure suggests trying again."""
        client = Mock()
        client.fetch_protocol_data.side_effect = UpstreamFetchFailed("backend down", "m-42", status_code=503)
        path, status = generate_from_inputs("m-42", None, client=client)
        self.assertIsNone(path)
        self.assertIn("try again", status)
        self.assertIn("backend down", status)


if __name__ == "__main__":
    unittest.main(verbosity=2)
