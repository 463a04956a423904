import logging

from tobii_chat_control.logging import LOG_FORMAT, configure_logging


def _reset_root(handlers, level):
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_configure_logging_writes_file_and_quiets_libraries(tmp_path):
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    log_path = tmp_path / "logs" / "bridge.log"
    try:
        configure_logging("debug", log_path=log_path)

        assert root.level == logging.DEBUG
        assert logging.getLogger("TikTokLive").level == logging.WARNING
        assert logging.getLogger("aiohttp.access").level == logging.WARNING

        logging.getLogger("tobii_chat_control.test").info("Selected profile %r", "p2")
        for handler in root.handlers:
            handler.flush()

        assert "INFO | tobii_chat_control.test | Selected profile 'p2'" in log_path.read_text(
            encoding="utf-8"
        )
        assert any(
            isinstance(handler, logging.FileHandler)
            and handler.formatter._fmt == LOG_FORMAT
            for handler in root.handlers
        )
    finally:
        _reset_root(*saved)
        logging.getLogger("TikTokLive").setLevel(logging.NOTSET)
        logging.getLogger("aiohttp.access").setLevel(logging.NOTSET)


def test_configure_logging_keeps_network_libraries_when_requested():
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    logging.getLogger("websockets").setLevel(logging.NOTSET)
    try:
        configure_logging("nonsense", log_network=True)

        assert root.level == logging.INFO
        assert logging.getLogger("websockets").level == logging.NOTSET
    finally:
        _reset_root(*saved)
