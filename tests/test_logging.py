"""Tests for logging configuration"""
import tempfile
import os
import logging
from pathlib import Path
from unittest.mock import patch

from logging_config import (
    setup_structured_logging,
    get_logger,
    log_export_cycle,
    log_server_startup,
    log_error
)
from tests.helpers import make_config


class TestLoggingConfig:
    """Test logging configuration and structured logging"""

    def test_setup_structured_logging(self):
        """Test structured logging setup"""
        with tempfile.TemporaryDirectory() as tmp_dir:
            log_file = Path(tmp_dir) / "test.log"
            config = make_config(log_file=log_file, log_level="DEBUG")

            setup_structured_logging(config)

            assert log_file.parent.exists()
            logger = logging.getLogger("test")
            assert logger.isEnabledFor(logging.DEBUG)

    def test_get_logger(self):
        """Test getting structured logger"""
        logger = get_logger("test_logger")

        assert logger is not None
        assert hasattr(logger, 'info')
        assert hasattr(logger, 'error')
        assert hasattr(logger, 'warning')

    def test_log_export_cycle(self):
        """Test structured export cycle logging"""
        logger = get_logger("test")

        # This should not raise an exception
        log_export_cycle(logger, metric_count=12, export_time=0.05)
        log_export_cycle(logger, metric_count=12, export_time=1.2, success=False)

    def test_log_server_startup(self):
        """Test structured server startup logging"""
        logger = get_logger("test")

        log_server_startup(logger, make_config())

    def test_log_error(self):
        """Test structured error logging"""
        logger = get_logger("test")
        error = ValueError("Test error")

        log_error(logger, error, {"component": "test", "request_id": "123"})
        log_error(logger, error)

    def test_development_vs_production_logging(self):
        """Console renderer in development, JSON otherwise"""
        config = make_config()

        with patch.dict(os.environ, {"ENVIRONMENT": "development"}):
            setup_structured_logging(config)
            get_logger("test").info("Test development log")

        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            setup_structured_logging(config)
            get_logger("test").info("Test production log")
