# tests/config/test_settings.py
from pathlib import Path

from chess_insights.config import settings as settings_module
from chess_insights.config.settings import Settings


def test_module_holds_no_prebuilt_instance():
    assert not hasattr(settings_module, "settings")


def test_environment_is_read_when_constructed(monkeypatch, tmp_path):
    monkeypatch.setenv("CHESS_INSIGHTS_LOG_JSON", "true")
    monkeypatch.setenv("CHESS_INSIGHTS_LOG_FILE", str(tmp_path / "run.log"))
    monkeypatch.setenv("CHESS_INSIGHTS_CACHE__ARCHIVE_LIST_TTL_SECONDS", "60")

    settings = Settings()

    assert settings.log_json is True
    assert settings.log_file == Path(tmp_path / "run.log")
    assert settings.cache.archive_list_ttl_seconds == 60


def test_run_config_carries_nested_settings():
    run_config = Settings().to_run_config("bob", game_limit=5)

    assert run_config.username == "bob"
    assert run_config.game_limit == 5
    assert run_config.cache_settings.archive_list_ttl_seconds == 300
