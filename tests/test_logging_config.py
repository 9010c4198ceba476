"""Tests for logging configuration and entrypoint wiring."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import SimpleNamespace

import tz_radio.app as app_module
import tz_radio.cli as cli_module
from tz_radio.logging_utils import setup_logging


def _flush_root_handlers() -> None:
    for handler in logging.getLogger().handlers:
        flush = getattr(handler, "flush", None)
        if callable(flush):
            flush()


def _restore_root(handlers, level) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_setup_logging_default_path_writes_json_lines(tmp_path) -> None:
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    try:
        log_path = setup_logging(log_dir=tmp_path, level="INFO")
        logger = logging.getLogger("tz_radio.test")
        logger.info("default-log-path", extra={"station_id": "1001"})
        _flush_root_handlers()
        assert log_path == tmp_path / "tz-radio.log"
        line = log_path.read_text(encoding="utf-8").strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "default-log-path"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "tz_radio.test"
        assert payload["context"] == {"station_id": "1001"}
    finally:
        _restore_root(original_handlers, original_level)


def test_setup_logging_custom_log_file_writes_log(tmp_path) -> None:
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    custom_path = tmp_path / "custom" / "radio.log"
    try:
        setup_logging(log_dir=tmp_path, level="DEBUG", log_file=custom_path)
        logging.getLogger("tz_radio.test").debug("custom-log-path")
        _flush_root_handlers()
        assert custom_path.exists()
        assert "custom-log-path" in custom_path.read_text(encoding="utf-8")
        assert root.level == logging.DEBUG
    finally:
        _restore_root(original_handlers, original_level)


def test_cli_main_passes_effective_level_and_log_file(
    monkeypatch, tmp_path, capsys
) -> None:
    captured: dict[str, object] = {}

    def fake_setup_logging(*, log_dir: Path, level: str, log_file: Path | None):
        captured["level"] = level
        captured["log_file"] = log_file

    monkeypatch.setattr(cli_module, "setup_logging", fake_setup_logging)
    monkeypatch.setattr(cli_module, "log_dir", lambda: tmp_path / "logs")
    config = tmp_path / "config.json"
    config.write_text(
        '{"email": "a@example.invalid", "password": "pw", "max_station_tracks": 30}',
        encoding="utf-8",
    )

    rc = cli_module.main(
        [
            "--verbose",
            "--quiet",
            "--log-file",
            str(tmp_path / "cli.log"),
            "--config",
            str(config),
        ]
    )
    out = capsys.readouterr().out

    assert rc == 0
    assert captured["level"] == "WARNING"
    assert captured["log_file"] == tmp_path / "cli.log"
    assert "Credentials: configured" in out
    assert "max 30, refill below 15" in out
    assert "tz-radio CLI is ready." in out


def test_cli_main_prints_settings_notices(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.setattr(cli_module, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli_module, "log_dir", lambda: tmp_path / "logs")
    config = tmp_path / "config.json"
    config.write_text("{bad json", encoding="utf-8")

    rc = cli_module.main(["--config", str(config)])
    captured = capsys.readouterr()

    assert rc == 0
    assert "Settings were reset to defaults." in captured.err
    assert "Credentials: missing" in captured.out


def test_app_main_passes_effective_level_and_log_file(monkeypatch, tmp_path) -> None:
    args = SimpleNamespace(
        verbose=True,
        quiet=False,
        log_file=str(tmp_path / "app.log"),
        demo=True,
    )
    captured: dict[str, object] = {}

    class FakeParser:
        def parse_args(self):
            return args

    class FakeApp:
        def __init__(self, *, demo: bool = False) -> None:
            captured["demo"] = demo

        def run(self) -> None:
            captured["ran"] = True

    def fake_setup_logging(*, log_dir: Path, level: str, log_file: Path | None):
        captured["level"] = level
        captured["log_file"] = log_file

    monkeypatch.setattr(app_module, "build_parser", lambda: FakeParser())
    monkeypatch.setattr(app_module, "setup_logging", fake_setup_logging)
    monkeypatch.setattr(app_module, "log_dir", lambda: tmp_path / "logs")
    monkeypatch.setattr(app_module, "config_path", lambda: tmp_path / "config.json")
    monkeypatch.setattr(app_module, "RadioApp", FakeApp)

    rc = app_module.main()

    assert rc == 0
    assert captured["level"] == "DEBUG"
    assert captured["log_file"] == tmp_path / "app.log"
    assert captured["demo"] is True
    assert captured["ran"] is True


def test_app_main_returns_nonzero_on_startup_failure(
    monkeypatch, tmp_path, capsys
) -> None:
    args = SimpleNamespace(verbose=False, quiet=False, log_file=None, demo=False)

    class FakeParser:
        def parse_args(self):
            return args

    class FailingApp:
        def __init__(self, *, demo: bool = False) -> None:
            del demo

        def run(self) -> None:
            raise RuntimeError("boom")

    monkeypatch.setattr(app_module, "build_parser", lambda: FakeParser())
    monkeypatch.setattr(app_module, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(app_module, "log_dir", lambda: tmp_path / "logs")
    monkeypatch.setattr(app_module, "config_path", lambda: tmp_path / "config.json")
    monkeypatch.setattr(app_module, "RadioApp", FailingApp)

    rc = app_module.main()
    captured = capsys.readouterr()

    assert rc == 1
    assert "Startup failed." in captured.err


def test_app_main_uses_configured_level_without_flags(monkeypatch, tmp_path) -> None:
    args = SimpleNamespace(verbose=False, quiet=False, log_file=None, demo=False)
    captured: dict[str, object] = {}

    class FakeParser:
        def parse_args(self):
            return args

    class FakeApp:
        def __init__(self, *, demo: bool = False) -> None:
            del demo

        def run(self) -> None:
            return None

    def fake_setup_logging(*, log_dir: Path, level: str, log_file: Path | None):
        captured["level"] = level

    config = tmp_path / "config.json"
    config.write_text('{"log_level": "error"}', encoding="utf-8")
    monkeypatch.setattr(app_module, "build_parser", lambda: FakeParser())
    monkeypatch.setattr(app_module, "setup_logging", fake_setup_logging)
    monkeypatch.setattr(app_module, "log_dir", lambda: tmp_path / "logs")
    monkeypatch.setattr(app_module, "config_path", lambda: config)
    monkeypatch.setattr(app_module, "RadioApp", FakeApp)

    assert app_module.main() == 0
    assert captured["level"] == "ERROR"


def test_cli_flags_override_configured_level(monkeypatch, tmp_path, capsys) -> None:
    levels: list[str] = []
    monkeypatch.setattr(
        cli_module, "setup_logging", lambda **kwargs: levels.append(kwargs["level"])
    )
    monkeypatch.setattr(cli_module, "log_dir", lambda: tmp_path / "logs")
    config = tmp_path / "config.json"
    config.write_text('{"log_level": "DEBUG"}', encoding="utf-8")

    assert cli_module.main(["--config", str(config)]) == 0
    assert cli_module.main(["--quiet", "--config", str(config)]) == 0
    capsys.readouterr()

    assert levels == ["DEBUG", "WARNING"]
