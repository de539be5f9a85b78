"""Tests for logging setup."""

from macrolink.logger import get_logger, setup_logger


def test_file_sink_carries_logger_name(tmp_path):
    log_file = tmp_path / "macrolink.log"
    setup_logger(log_file=str(log_file), log_level="DEBUG")

    get_logger("connection.manager").info("codec.local: idle -> connecting")
    get_logger().debug("unnamed")

    content = log_file.read_text(encoding="utf-8")
    assert "connection.manager:" in content
    assert "codec.local: idle -> connecting" in content
    assert "macrolink:" in content


def test_level_filters(tmp_path):
    log_file = tmp_path / "quiet.log"
    setup_logger(log_file=str(log_file), log_level="WARNING")

    get_logger("health").info("probe passed")
    get_logger("health").warning("probe failed")

    content = log_file.read_text(encoding="utf-8")
    assert "probe passed" not in content
    assert "probe failed" in content
