"""Tests for uchikomi.app – controller wiring from configuration."""

from __future__ import annotations

from pathlib import Path

import yaml
from PySide6.QtCore import QCoreApplication

from uchikomi.app import create_bridge, create_controller, ensure_application
from uchikomi.core.config import EngineConfig
from uchikomi.core.phrases import Phrase


def _write_config(path: Path, data: dict) -> Path:
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path


class TestEnsureApplication:
    def test_returns_single_instance(self):
        app = ensure_application()
        assert app is QCoreApplication.instance()
        assert ensure_application() is app


class TestCreateBridge:
    def test_cache_settings_applied(self):
        bridge = create_bridge(EngineConfig(cache_ceiling=5, offload_threaded=False, offload_max_in_flight=2))
        try:
            assert bridge.worker.cache.session_id is None
            assert len(bridge.worker.cache) == 0
        finally:
            bridge.shutdown()


class TestCreateController:
    def test_defaults_without_file(self, tmp_path):
        ctrl = create_controller(tmp_path / "missing.yaml")
        ctrl.load(Phrase("と", "と"))
        ctrl.handle_key("t", 0.0)
        ctrl.handle_key("o", 100.0)
        assert ctrl.completed_phrases == 1

    def test_offload_enabled(self, tmp_path):
        cfg = _write_config(tmp_path / "config.yaml", {"offload_enabled": True, "offload_threaded": False})
        events = []
        ctrl = create_controller(cfg, telemetry_sink=events.append)
        ctrl.load(Phrase("ねこ", "ねこ"))
        ctrl.handle_key("n", 0.0)
        ctrl.handle_key("e", 50.0)
        assert ctrl.snapshot().seq == 2
        assert events[0]["type"] == "problem_start"


class TestRun:
    def _feed(self, monkeypatch, lines):
        pending = list(lines)

        def _input(prompt=""):
            if not pending:
                raise EOFError
            return pending.pop(0)

        monkeypatch.setattr("builtins.input", _input)

    def test_console_drill(self, tmp_path, monkeypatch, capsys):
        import uchikomi.core.config as config_module
        from uchikomi.app import run

        monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
        self._feed(monkeypatch, ["ko-hi-", "pa"])
        run(["phrases3"])
        out = capsys.readouterr().out
        assert "Katakana" in out
        assert "[ko-hi-]" in out
        assert "unfinished: 28%" in out
        assert "rank" in out
