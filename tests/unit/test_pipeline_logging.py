"""Tests for the structlog setup used by the CLI."""

import json
import logging

import pytest
import structlog

from alda_eda.utils.logging import QUIET_LOGGERS, setup_pipeline_logging


@pytest.fixture(autouse=True)
def reset_logging():
    """Leave no handlers or cached structlog config behind."""
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


class TestSetupPipelineLogging:
    """Tests for setup_pipeline_logging."""

    def test_json_file_receives_debug_events(self, tmp_path):
        """structlog and stdlib records both land in the JSON file."""
        log_file = tmp_path / "logs" / "run.jsonl"
        setup_pipeline_logging(log_file=log_file)

        structlog.get_logger().debug("entity_fit_failed", entity=45)
        logging.getLogger("alda_eda.models").debug("Starting MCMC")
        for handler in logging.getLogger().handlers:
            handler.flush()

        records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        assert records[0]["event"] == "entity_fit_failed"
        assert records[0]["entity"] == 45
        assert records[0]["level"] == "debug"
        assert records[1]["event"] == "Starting MCMC"
        assert records[1]["logger"] == "alda_eda.models"

    def test_console_level_follows_verbose(self):
        """The console handler is INFO by default and DEBUG when verbose."""
        setup_pipeline_logging()
        assert logging.getLogger().handlers[0].level == logging.INFO

        setup_pipeline_logging(verbose=True)
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert handlers[0].level == logging.DEBUG

    def test_sampler_loggers_quieted(self):
        """JAX and NumPyro loggers only pass warnings."""
        setup_pipeline_logging(verbose=True)
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
