import logging

from utils import logger as logger_module


def test_configure_logging_applies_level_and_quiets_noisy_loggers(monkeypatch):
    monkeypatch.delenv("LOG_FILE", raising=False)
    logger_module.configure_logging("warning")
    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("urllib3").level == logging.WARNING

    logger_module.configure_logging("debug")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("uvicorn.access").level == logging.DEBUG


def test_file_handler_is_added_once(tmp_path, monkeypatch):
    monkeypatch.setattr(logger_module, "_file_handler", None)
    root = logging.getLogger()
    log_path = tmp_path / "logs" / "display.log"
    try:
        logger_module.configure_logging("info", str(log_path))
        handler = logger_module._file_handler
        logger_module.configure_logging("info", str(log_path))
        assert logger_module._file_handler is handler
        assert log_path.parent.is_dir()

        logger_module.get_logger("drawing.test").info("hello file")
        handler.flush()
        assert "hello file" in log_path.read_text(encoding="utf-8")
    finally:
        if logger_module._file_handler is not None:
            root.removeHandler(logger_module._file_handler)
            logger_module._file_handler.close()
