#!/usr/bin/env python3
"""
Unit tests for logging_config.py.

Run with: python tests/test_logging_config.py
"""

import logging
import os
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import Config
from logging_config import LogContext, format_context, get_logger, setup_logging
from protocol_errors import ProtocolError


class TestSetupLogging(unittest.TestCase):
    """Tests for root logger configuration."""

    def setUp(self):
        root = logging.getLogger()
        self.saved = (root.level, list(root.handlers))

    def tearDown(self):
        root = logging.getLogger()
        root.setLevel(self.saved[0])
        root.handlers = self.saved[1]

    @patch.dict(os.environ, {"LOG_LEVEL": "DEBUG"}, clear=True)
    def test_level_from_config(self):
        """Test LOG_LEVEL sets the root level."""
        setup_logging(Config())
        root = logging.getLogger()
        self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(len(root.handlers), 1)
        # Chatty libraries stay at WARNING even in debug mode
        self.assertEqual(logging.getLogger("urllib3").level, logging.WARNING)

    @patch.dict(os.environ, {"LOG_LEVEL": "nonsense"}, clear=True)
    def test_unknown_level_falls_back_to_info(self):
        """Test an unknown level name gives INFO."""
        setup_logging(Config())
        self.assertEqual(logging.getLogger().level, logging.INFO)


class TestLogContext(unittest.TestCase):
    """Tests for timed stages with meeting context."""

    def setUp(self):
        self.logger = get_logger("tests.log_context")

    def test_format_context(self):
        """Test context keys render in insertion order."""
        self.assertEqual(format_context({"meeting": "42", "protocol": 12}), "[meeting=42 protocol=12] ")
        self.assertEqual(format_context({}), "")

    def test_success_logs_context(self):
        """Test a finished stage logs its duration with the meeting tag."""
        with self.assertLogs(self.logger, level="INFO") as logs:
            with LogContext(self.logger, "Encoding signature images", meeting="m-1") as ctx:
                pass
        self.assertIsNotNone(ctx.elapsed)
        self.assertEqual(len(logs.records), 1)
        self.assertIn("[meeting=m-1] Encoding signature images done in", logs.output[0])

    def test_failure_logs_details_and_reraises(self):
        """Test a failing stage logs the error details and does not swallow it."""
        with self.assertLogs(self.logger, level="ERROR") as logs:
            with self.assertRaises(ProtocolError):
                with LogContext(self.logger, "Packaging", meeting="m-1", protocol=12):
                    raise ProtocolError("Part written twice", details={"part": "word/document.xml"})
        message = logs.output[0]
        self.assertIn("[meeting=m-1 protocol=12] Packaging failed after", message)
        self.assertIn("ProtocolError: Part written twice", message)
        self.assertIn("word/document.xml", message)


if __name__ == "__main__":
    unittest.main(verbosity=2)
