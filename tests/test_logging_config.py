"""
Tests for logging setup.
"""

import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.logging_config import setup_logging, log_error, get_logger


class TestLoggingConfig:
    """Tests for the log files written by setup_logging."""

    def test_errors_reach_error_log_once(self, tmp_path):
        """Test that log_error writes one record with its traceback."""
        root = setup_logging(log_dir=str(tmp_path), console_level=logging.CRITICAL)
        try:
            try:
                raise ValueError("bad input")
            except ValueError as e:
                log_error("scan failed", e)
            get_logger("test").info("just info")
            for handler in root.handlers:
                handler.flush()

            error_log = (tmp_path / "error.log").read_text()
            app_log = (tmp_path / "app.log").read_text()

            assert error_log.count("scan failed") == 1
            assert "ValueError: bad input" in error_log
            assert "just info" not in error_log
            assert "just info" in app_log
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
            sys.excepthook = sys.__excepthook__
