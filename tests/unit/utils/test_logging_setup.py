"""Tests for logging setup and the exception hierarchy."""

from __future__ import annotations

import json
import logging

import pytest

pytestmark = [pytest.mark.unit]

from magnetdav.models import ObservabilityConfig
from magnetdav.utils.exceptions import (
    MagnetDAVError,
    MetadataTimeoutError,
    RangeNotSatisfiableError,
    SwarmError,
    ValidationError,
)
from magnetdav.utils.logging_config import (
    correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)
from magnetdav.utils.rich_logging import CorrelationRichHandler


class TestSetupLogging:
    """Handler wiring."""

    def test_rich_handler_installed(self):
        setup_logging(ObservabilityConfig(log_level="debug"))
        logger = logging.getLogger("magnetdav")
        assert logger.level == logging.DEBUG
        assert any(isinstance(h, CorrelationRichHandler) for h in logger.handlers)

    def test_structured_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "magnetdav.log"
        setup_logging(
            ObservabilityConfig(log_file=str(log_file), structured_logging=True)
        )
        set_correlation_id("req-1")
        get_logger("session.manager").info("Content %s metadata ready", "abc")
        for handler in logging.getLogger("magnetdav").handlers:
            handler.flush()

        entry = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert entry["message"] == "Content abc metadata ready"
        assert entry["correlation_id"] == "req-1"
        assert entry["logger"] == "magnetdav.session.manager"

    def test_correlation_id_generated(self):
        corr = set_correlation_id()
        assert len(corr) == 12
        assert correlation_id.get() == corr


class TestExceptions:
    """Error taxonomy."""

    def test_str_includes_details(self):
        err = MagnetDAVError("boom", {"k": 1})
        assert str(err) == "boom (Details: {'k': 1})"
        assert str(MagnetDAVError("plain")) == "plain"

    def test_hierarchy(self):
        assert issubclass(MetadataTimeoutError, SwarmError)
        assert issubclass(RangeNotSatisfiableError, ValidationError)
        err = RangeNotSatisfiableError(10, 5)
        assert err.details == {"start": 10, "length": 5}
