from claude_relay import config
from claude_relay.observability import logging as relay_logging


def test_no_sinks_when_logging_disabled(monkeypatch) -> None:
    monkeypatch.setattr(config, "OBS_LOG_ENABLED", False)
    monkeypatch.setattr(config, "OBS_STREAM_LOG_ENABLED", False)

    assert relay_logging._enabled_sinks() == []


def test_stream_sink_is_separate_from_request_log(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(config, "OBS_LOG_ENABLED", True)
    monkeypatch.setattr(config, "OBS_STREAM_LOG_ENABLED", True)
    monkeypatch.setattr(config, "OBS_LOG_FILE", str(tmp_path / "requests.log"))
    monkeypatch.setattr(config, "OBS_STREAM_LOG_FILE", str(tmp_path / "streaming.log"))

    sinks = relay_logging._enabled_sinks()

    assert [(sink.logger_name, sink.console) for sink in sinks] == [
        (None, True),
        (relay_logging.STREAM_LOGGER_NAME, False),
    ]
    assert sinks[1].file_path.endswith("streaming.log")
