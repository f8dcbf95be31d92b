"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

from zoneinfo import ZoneInfoNotFoundError

import pytest

from gavel.config import GavelConfig, PushConfig, load_config


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_minimal_file_uses_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, (
            "service_name: Gavel\n"
            "public_base_url: https://gavel.example/\n"
        )))
        assert cfg.public_base_url == "https://gavel.example"
        assert cfg.timezone == "Asia/Seoul"
        assert cfg.vote_window_hours == 48
        assert cfg.close_interval_minutes == 10
        assert cfg.reconcile_interval_hours == 168
        assert cfg.push == PushConfig()
        assert str(cfg.tzinfo) == "Asia/Seoul"

    def test_full_file(self, tmp_path):
        cfg = load_config(_write(tmp_path, (
            "service_name: Gavel\n"
            "public_base_url: https://gavel.example\n"
            "timezone: UTC\n"
            "vote_window_hours: 24\n"
            "transaction_max_attempts: 9\n"
            "nickname_prefix: Judge\n"
            "push:\n"
            "  enabled: true\n"
            "  client_id: gavel\n"
            "  template_set_code: case-closed\n"
            "  cert_path: /etc/gavel/client.crt\n"
            "  key_path: /etc/gavel/client.key\n"
        )))
        assert cfg.timezone == "UTC"
        assert cfg.vote_window_hours == 24
        assert cfg.transaction_max_attempts == 9
        assert cfg.nickname_prefix == "Judge"
        assert cfg.push.enabled is True
        assert cfg.push.cert_path == "/etc/gavel/client.crt"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_missing_required_key(self, tmp_path):
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, "service_name: Gavel\n"))

    def test_unknown_timezone(self, tmp_path):
        with pytest.raises(ZoneInfoNotFoundError):
            load_config(_write(tmp_path, (
                "service_name: Gavel\n"
                "public_base_url: https://gavel.example\n"
                "timezone: Mars/Olympus_Mons\n"
            )))

    def test_config_is_frozen(self):
        cfg = GavelConfig(service_name="Gavel", public_base_url="https://gavel.example")
        with pytest.raises(AttributeError):
            cfg.timezone = "UTC"
