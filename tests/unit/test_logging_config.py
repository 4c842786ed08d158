import logging

import pytest
from autopecas.config import logging_config

pytestmark = pytest.mark.unit


def _clear_autopecas_handlers():
    logger = logging.getLogger("autopecas")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def test_setup_logging_is_idempotent(monkeypatch):
    _clear_autopecas_handlers()
    monkeypatch.setattr(logging_config.sys, "platform", "linux", raising=False)

    logging_config.setup_logging(level=logging.DEBUG)
    logging_config.setup_logging(level=logging.DEBUG)

    logger = logging.getLogger("autopecas")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    _clear_autopecas_handlers()


def test_setup_logging_adds_file_handler_when_log_file_provided(tmp_path, monkeypatch):
    _clear_autopecas_handlers()
    monkeypatch.setattr(logging_config.sys, "platform", "linux", raising=False)
    log_file = tmp_path / "autopecas.log"

    logging_config.setup_logging(log_file=str(log_file))
    logger = logging.getLogger("autopecas")
    assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)
    _clear_autopecas_handlers()


def test_get_logger_uses_autopecas_prefix():
    assert logging_config.get_logger("erp").name == "autopecas.erp"
    assert logging_config.catalog_logger.name == "autopecas.catalog"
